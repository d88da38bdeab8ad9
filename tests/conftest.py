import sys
from pathlib import Path
from typing import Callable, List, Optional, Tuple

import pytest

# Ensure the repo root is on the path for imports in tests
ROOT = Path(__file__).resolve().parents[1]
for p in (ROOT,):
    if str(p) not in sys.path:
        sys.path.insert(0, str(p))

from clipcraft.media_library import MediaLibrary  # noqa: E402
from clipcraft.process_runner import ProcessOutcome  # noqa: E402


def output_arg(args: List[str]) -> str:
    """Output path of a yt-dlp (-o) or ffmpeg (-y) command line."""
    flag = "-o" if "-o" in args else "-y"
    return args[args.index(flag) + 1]


class FakeRunner:
    """Stands in for ProcessRunner; records every call and delegates to `handler`."""

    def __init__(self, handler: Optional[Callable] = None) -> None:
        self.handler = handler
        self.calls: List[Tuple[str, List[str]]] = []

    def run(self, executable, args, cwd=None, on_progress=None, on_marker=None, timeout=None):
        args = [str(a) for a in args]
        self.calls.append((executable, args))
        if self.handler:
            return self.handler(executable, args, on_progress, on_marker)
        return ProcessOutcome(executable=executable, exit_code=0)


def writes_output(size: int = 2048, progress: Tuple[float, ...] = ()):
    """Handler that behaves like a successful tool run: reports progress, writes the output file."""

    def handler(executable, args, on_progress, on_marker):
        for pct in progress:
            if on_progress:
                on_progress(pct)
        out = output_arg(args)
        if on_marker:
            on_marker(f"[download] Destination: {out}")
        Path(out).write_bytes(b"\0" * size)
        return ProcessOutcome(executable=executable, exit_code=0)

    return handler


def exits_with(code: int, tail: str = "boom"):
    def handler(executable, args, on_progress, on_marker):
        return ProcessOutcome(executable=executable, exit_code=code, output_tail=tail)

    return handler


@pytest.fixture
def library(tmp_path):
    lib = MediaLibrary(str(tmp_path / "downloads"))
    lib.ensure()
    return lib
