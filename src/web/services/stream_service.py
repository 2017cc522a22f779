from __future__ import annotations

import asyncio
from typing import AsyncIterator, Callable, Optional

from pipeline.overlay import Surface


class StreamService:
    @staticmethod
    def snapshot_jpeg(surface: Optional[Surface], quality: int = 80) -> Optional[bytes]:
        if surface is None:
            return None
        return surface.encode_jpeg(quality)

    @staticmethod
    async def mjpeg_stream(
        get_surface: Callable[[], Optional[Surface]],
        fps: int = 10,
        quality: int = 80,
    ) -> AsyncIterator[bytes]:
        """
        Yield MJPEG multipart chunks of the overlay surface.

        Reads the already-rendered surface, so viewers never touch the camera.
        A chunk is only sent when a new frame was presented.
        """
        fps = max(1, min(30, int(fps)))
        delay = 1.0 / fps
        last_version = -1

        while True:
            surface = get_surface()
            if surface is not None and surface.version != last_version:
                last_version = surface.version
                jpg = surface.encode_jpeg(quality)
                if jpg is not None:
                    yield b"--frame\r\nContent-Type: image/jpeg\r\n\r\n" + jpg + b"\r\n"
            await asyncio.sleep(delay)
