import threading

from models.status import PipelineStatus


class SharedState:
    """
    Singleton class to share the running pipeline between the asyncio
    pipeline thread and the FastAPI web server.
    """
    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super(SharedState, cls).__new__(cls)
                    cls._instance.pipeline = None
                    cls._instance.pipeline_lock = threading.Lock()
                    cls._instance.config = None
        return cls._instance

    def set_pipeline(self, pipeline):
        """Publish the pipeline whose status and overlay the API serves."""
        with self.pipeline_lock:
            self.pipeline = pipeline

    def get_pipeline(self):
        with self.pipeline_lock:
            return self.pipeline

    def set_config(self, config):
        self.config = config

    def get_status(self):
        """Current pipeline status (initializing until a pipeline is published)."""
        pipeline = self.get_pipeline()
        if pipeline is None:
            return PipelineStatus()
        return pipeline.status_snapshot()

    def get_stats(self):
        pipeline = self.get_pipeline()
        if pipeline is None:
            return None
        return pipeline.stats.to_dict()

    def get_surface(self):
        pipeline = self.get_pipeline()
        if pipeline is None:
            return None
        return pipeline.surface

    def reset(self):
        with self.pipeline_lock:
            self.pipeline = None
        self.config = None

# Global instance
state = SharedState()
