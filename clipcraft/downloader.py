from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Callable, List, Optional

from clipcraft.media_library import MediaLibrary
from clipcraft.process_runner import ProcessRunner
from clipcraft.utils.logging import get_logger

# best mp4 video + m4a audio, falling back to any best pair, then best single file
FORMAT_SELECTOR = "bestvideo[ext=mp4]+bestaudio[ext=m4a]/bestvideo+bestaudio/best"
MERGE_FORMAT = "mp4"


@dataclass
class DownloadResult:
    filename: str
    path: str
    reported_filename: Optional[str] = None


class Downloader:
    """Runs the retrieval tool (yt-dlp) for a single URL into the storage directory."""

    def __init__(
        self,
        runner: ProcessRunner,
        library: MediaLibrary,
        ytdlp_path: str = "yt-dlp",
        ffmpeg_path: Optional[str] = "ffmpeg",
        timeout: Optional[float] = None,
    ) -> None:
        self.runner = runner
        self.library = library
        self.ytdlp_path = ytdlp_path
        self.ffmpeg_path = ffmpeg_path
        self.timeout = timeout
        self.logger = get_logger("downloader")

    def build_args(self, url: str, output_path: str) -> List[str]:
        args: List[str] = []
        ffmpeg_dir = os.path.dirname(self.ffmpeg_path) if self.ffmpeg_path else ""
        if ffmpeg_dir:
            args += ["--ffmpeg-location", ffmpeg_dir]
        args += [
            "-f", FORMAT_SELECTOR,
            "--merge-output-format", MERGE_FORMAT,
            "--newline",
            "-o", output_path,
            url,
        ]
        return args

    def fetch(
        self,
        job_id: str,
        url: str,
        on_progress: Optional[Callable[[float], None]] = None,
        on_log: Optional[Callable[[str], None]] = None,
    ) -> DownloadResult:
        """Download `url` as ``video_<job_id>.mp4``; raises ProcessError on failure."""
        self.library.ensure()
        filename = self.library.source_filename(job_id)
        output_path = str(self.library.path_for(filename).resolve())
        seen = {}

        def on_marker(line: str) -> None:
            # the file name is deterministic; the marker only confirms a write happened
            seen["line"] = line
            if on_log:
                on_log(line.strip())

        self.logger.info("Downloading %s -> %s", url, filename)
        outcome = self.runner.run(
            self.ytdlp_path,
            self.build_args(url, output_path),
            cwd=str(self.library.root),
            on_progress=on_progress,
            on_marker=on_marker,
            timeout=self.timeout,
        )
        outcome.check("Download failed")
        self.logger.info("Downloaded %s", filename)
        return DownloadResult(filename=filename, path=output_path, reported_filename=seen.get("line"))
