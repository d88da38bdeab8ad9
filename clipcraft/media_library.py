from __future__ import annotations

import contextlib
import os
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional

from clipcraft.errors import FilesystemError, NotFoundError, ValidationError
from clipcraft.utils.formatting import is_safe_filename
from clipcraft.utils.logging import get_logger

SOURCE_PREFIX = "video_"
CLIP_PREFIX = "clip_"
TEMP_AUDIO_PREFIX = "temp_audio_"
CONTAINER_EXT = ".mp4"
AUDIO_EXT = ".m4a"


@dataclass
class StoredFile:
    filename: str
    size_bytes: int

    def to_dict(self, url: str) -> dict:
        return {"filename": self.filename, "sizeBytes": self.size_bytes, "url": url}


class MediaLibrary:
    """The storage directory holding retrieved sources, clips and temp audio.

    Naming convention: ``video_<jobId>.mp4`` for downloads and
    ``clip_<ms>.mp4`` for clips. Both embed a creation timestamp, so the
    lexicographically greatest source name is the most recent download.
    """

    def __init__(self, root: str, public_base_url: str = "") -> None:
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/")
        self.logger = get_logger("library")
        self._name_lock = threading.Lock()
        self._last_stamp = 0

    def ensure(self) -> Path:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise FilesystemError(f"Cannot create storage directory {self.root}: {exc}") from exc
        return self.root

    # naming

    def source_filename(self, job_id: str) -> str:
        return f"{SOURCE_PREFIX}{job_id}{CONTAINER_EXT}"

    def path_for(self, filename: str) -> Path:
        return self.root / filename

    def _unique_stamp(self) -> int:
        with self._name_lock:
            stamp = int(time.time() * 1000)
            if stamp <= self._last_stamp:
                stamp = self._last_stamp + 1
            self._last_stamp = stamp
            return stamp

    def new_clip_path(self) -> Path:
        return self.root / f"{CLIP_PREFIX}{self._unique_stamp()}{CONTAINER_EXT}"

    def new_temp_audio_path(self) -> Path:
        return self.root / f"{TEMP_AUDIO_PREFIX}{self._unique_stamp()}.mp3"

    def file_url(self, filename: str) -> str:
        return f"{self.public_base_url}/downloads/{filename}"

    # selection

    def _names(self) -> List[str]:
        if not self.root.is_dir():
            return []
        try:
            return sorted(entry.name for entry in self.root.iterdir() if entry.is_file())
        except OSError as exc:
            raise FilesystemError(f"Cannot list {self.root}: {exc}") from exc

    def source_candidates(self) -> List[str]:
        """Container files that are not previous clip outputs, newest first."""
        names = [
            n for n in self._names()
            if n.endswith(CONTAINER_EXT) and not n.startswith(CLIP_PREFIX)
        ]
        return sorted(names, reverse=True)

    def latest_source(self) -> Path:
        candidates = self.source_candidates()
        if not candidates:
            raise NotFoundError("No video file found")
        return self.root / candidates[0]

    def matching_audio(self, source: Path) -> Optional[Path]:
        """A separate audio track downloaded next to `source` (same stem prefix), if any."""
        prefix = source.name.split(".")[0]
        audio = sorted((n for n in self._names() if n.endswith(AUDIO_EXT)), reverse=True)
        for name in audio:
            if name.startswith(prefix):
                return self.root / name
        return None

    # files

    def list_files(self) -> List[StoredFile]:
        files: List[StoredFile] = []
        for name in self._names():
            try:
                size = (self.root / name).stat().st_size
            except OSError:
                # removed between listing and stat
                continue
            files.append(StoredFile(filename=name, size_bytes=size))
        return files

    def resolve(self, filename: str) -> Path:
        """Map a client supplied file name onto the storage directory, refusing traversal."""
        if not isinstance(filename, str) or not is_safe_filename(filename):
            raise ValidationError("Invalid filename")
        root = self.root.resolve()
        path = (self.root / filename).resolve()
        if path.parent != root:
            raise ValidationError("Invalid filename")
        return path

    def stat(self, filename: str) -> StoredFile:
        path = self.resolve(filename)
        if not path.is_file():
            raise NotFoundError("File not found")
        return StoredFile(filename=filename, size_bytes=path.stat().st_size)

    def delete(self, filename: str) -> None:
        path = self.resolve(filename)
        if not path.is_file():
            raise NotFoundError("File not found")
        try:
            path.unlink()
        except FileNotFoundError as exc:
            raise NotFoundError("File not found") from exc
        except OSError as exc:
            raise FilesystemError(f"Could not delete {filename}: {exc}") from exc
        self.logger.info("Deleted %s", filename)

    @contextlib.contextmanager
    def temporary_audio(self) -> Iterator[Path]:
        """Yield a fresh temp audio path; the file is removed on every exit path."""
        path = self.new_temp_audio_path()
        try:
            yield path
        finally:
            try:
                path.unlink()
            except FileNotFoundError:
                pass
            except OSError as exc:
                self.logger.warning("Could not remove temp audio %s: %s", path.name, exc)
