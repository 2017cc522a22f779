"""
Checks on the source tree itself.
"""

from pathlib import Path


ROOT = Path(__file__).resolve().parent.parent


def test_python_sources_use_crlf_line_endings():
    lf_only = []
    for path in sorted(ROOT.joinpath("src").rglob("*.py")) + sorted(ROOT.joinpath("tests").rglob("*.py")):
        data = path.read_bytes()
        if data.count(b"\n") != data.count(b"\r\n"):
            lf_only.append(str(path.relative_to(ROOT)))

    assert lf_only == []
