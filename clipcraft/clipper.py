from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional

from clipcraft.errors import OutputMissingError
from clipcraft.media_library import MediaLibrary
from clipcraft.process_runner import ProcessRunner
from clipcraft.settings import CLIP_STRATEGIES
from clipcraft.utils.formatting import format_seconds, validate_time_range
from clipcraft.utils.logging import get_logger


@dataclass
class ClipResult:
    filename: str
    size_bytes: int
    path: str


def stream_copy_args(source: Path, output: Path, start: float, duration: float) -> List[str]:
    return [
        "-ss", format_seconds(start),
        "-i", str(source),
        "-t", format_seconds(duration),
        "-c", "copy",
        "-y", str(output),
    ]


def merge_audio_args(source: Path, audio: Path, output: Path, start: float, duration: float) -> List[str]:
    """Video stream copied from `source`, audio re-encoded from the separate `audio` track."""
    return [
        "-ss", format_seconds(start),
        "-i", str(source),
        "-ss", format_seconds(start),
        "-i", str(audio),
        "-t", format_seconds(duration),
        "-c:v", "copy",
        "-c:a", "aac",
        "-map", "0:v:0",
        "-map", "1:a:0",
        "-shortest",
        "-y", str(output),
    ]


class ClipExtractor:
    """Cuts [start, end) out of the most recent download with ffmpeg.

    Strategy ``copy`` always stream-copies the single source file. Strategy
    ``merge_audio`` pairs the source with a separately downloaded ``.m4a``
    track of the same name when one exists, and falls back to ``copy``.
    """

    def __init__(
        self,
        runner: ProcessRunner,
        library: MediaLibrary,
        ffmpeg_path: str = "ffmpeg",
        strategy: str = "copy",
        timeout: Optional[float] = None,
    ) -> None:
        if strategy not in CLIP_STRATEGIES:
            raise ValueError(f"Unknown clip strategy {strategy!r}; expected one of {', '.join(CLIP_STRATEGIES)}")
        self.runner = runner
        self.library = library
        self.ffmpeg_path = ffmpeg_path
        self.strategy = strategy
        self.timeout = timeout
        self.logger = get_logger("clipper")

    def build_args(self, source: Path, output: Path, start: float, end: float) -> List[str]:
        duration = end - start
        if self.strategy == "merge_audio":
            audio = self.library.matching_audio(source)
            if audio is not None:
                return merge_audio_args(source, audio, output, start, duration)
        return stream_copy_args(source, output, start, duration)

    def extract(self, start_time: Any, end_time: Any) -> ClipResult:
        start, end = validate_time_range(start_time, end_time)
        source = self.library.latest_source()
        output = self.library.new_clip_path()
        self.logger.info("Creating clip: %ss to %ss from %s", format_seconds(start), format_seconds(end), source.name)

        outcome = self.runner.run(
            self.ffmpeg_path,
            self.build_args(source, output, start, end),
            timeout=self.timeout,
        )
        outcome.check("Clip creation failed")

        if not output.is_file():
            raise OutputMissingError("Clip file not created")
        size = output.stat().st_size
        self.logger.info("Clip created: %s (%d bytes)", output.name, size)
        return ClipResult(filename=output.name, size_bytes=size, path=str(output))
