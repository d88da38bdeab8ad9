from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional, Tuple

from clipcraft.downloader import Downloader
from clipcraft.errors import ClipCraftError
from clipcraft.utils.formatting import require_url
from clipcraft.utils.logging import get_logger

QUEUED = "queued"
DOWNLOADING = "downloading"
COMPLETE = "complete"
FAILED = "failed"
CANCELLED = "cancelled"
TERMINAL_STATUSES = {COMPLETE, FAILED, CANCELLED}

MAX_JOB_LOG_LINES = 50


def _iso(ts: Optional[float]) -> Optional[str]:
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


@dataclass
class AcquisitionJob:
    id: str
    source_url: str
    display_title: str
    status: str = QUEUED
    progress_percent: float = 0.0
    result_filename: Optional[str] = None
    last_error: Optional[str] = None
    created_at: float = field(default_factory=time.time)
    started_at: Optional[float] = None
    finished_at: Optional[float] = None
    logs: List[str] = field(default_factory=list)
    _done: threading.Event = field(default_factory=threading.Event, repr=False, compare=False)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def log(self, line: str) -> None:
        self.logs.append(line)
        if len(self.logs) > MAX_JOB_LOG_LINES:
            self.logs.pop(0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "url": self.source_url,
            "title": self.display_title,
            "status": self.status,
            "progress": self.progress_percent,
            "filename": self.result_filename,
            "error": self.last_error,
            "addedAt": _iso(self.created_at),
            "startedAt": _iso(self.started_at),
            "finishedAt": _iso(self.finished_at),
            "logs": list(self.logs),
        }


class DownloadQueue:
    """FIFO of acquisition jobs drained one at a time by a single worker thread.

    The queue head is the active job while its status is ``downloading``;
    there is no separate "current download" pointer. ``_lock`` guards the
    deque, the draining flag and every job status transition.
    """

    def __init__(self, downloader: Downloader, history_limit: int = 20) -> None:
        self.downloader = downloader
        self.logger = get_logger("queue")
        self._lock = threading.Lock()
        self._jobs: Deque[AcquisitionJob] = deque()
        self._history: Deque[AcquisitionJob] = deque(maxlen=max(history_limit, 0))
        self._draining = False
        self._last_id = 0
        self._worker: Optional[threading.Thread] = None

    def _next_id(self) -> str:
        # caller holds the lock
        stamp = int(time.time() * 1000)
        if stamp <= self._last_id:
            stamp = self._last_id + 1
        self._last_id = stamp
        return str(stamp)

    # public operations

    def enqueue(self, url: str, title: Optional[str] = None) -> Tuple[AcquisitionJob, int]:
        """Append a job and make sure the worker is running. Returns (job, 1-based queue position)."""
        url = require_url(url)
        with self._lock:
            job = AcquisitionJob(id=self._next_id(), source_url=url, display_title=title or "Video")
            self._jobs.append(job)
            position = len(self._jobs)
            start_worker = not self._draining
            if start_worker:
                self._draining = True
        job.log(f"Queued at position {position}")
        self.logger.info("Added to queue: %s (id=%s, position=%d)", url, job.id, position)
        if start_worker:
            self._worker = threading.Thread(target=self._drain, name="download-queue", daemon=True)
            self._worker.start()
        return job, position

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            head = self._jobs[0] if self._jobs else None
            active = head if head is not None and head.status == DOWNLOADING else None
            return {
                "activeJob": active.to_dict() if active else None,
                "pendingJobs": [j.to_dict() for j in self._jobs if j is not active],
                "isDraining": self._draining,
                "finishedJobs": [j.to_dict() for j in self._history],
            }

    def cancel(self, job_id: str) -> bool:
        """Remove a job from the queue.

        A queued job never starts. The active job only loses its queue entry:
        its subprocess is not interrupted and finishes on its own.
        """
        with self._lock:
            job = next((j for j in self._jobs if j.id == job_id), None)
            if job is None:
                return False
            self._jobs.remove(job)
            if job.status == QUEUED:
                job.status = CANCELLED
                job.finished_at = time.time()
                job.log("Cancelled before start")
                self._history.appendleft(job)
                job._done.set()
            else:
                job.log("Removed from queue while downloading; the download keeps running")
        self.logger.info("Cancelled job %s (was %s)", job_id, job.status)
        return True

    def get(self, job_id: str) -> Optional[AcquisitionJob]:
        with self._lock:
            for job in self._jobs:
                if job.id == job_id:
                    return job
            for job in self._history:
                if job.id == job_id:
                    return job
        return None

    def wait(self, job: AcquisitionJob, timeout: Optional[float] = None) -> bool:
        """Block until `job` is terminal. False on timeout."""
        return job._done.wait(timeout)

    @property
    def is_draining(self) -> bool:
        with self._lock:
            return self._draining

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    # worker

    def _drain(self) -> None:
        while True:
            with self._lock:
                if not self._jobs:
                    self._draining = False
                    return
                job = self._jobs[0]
                job.status = DOWNLOADING
                job.started_at = time.time()
            job.log("Download started")
            self.logger.info("Downloading: %s", job.source_url)
            self._process(job)

    def _process(self, job: AcquisitionJob) -> None:
        def on_progress(percent: float) -> None:
            job.progress_percent = percent

        result = None
        error: Optional[str] = None
        try:
            result = self.downloader.fetch(job.id, job.source_url, on_progress=on_progress, on_log=job.log)
        except ClipCraftError as exc:
            error = exc.message
        except Exception as exc:
            self.logger.exception("Unexpected error in job %s", job.id)
            error = str(exc) or type(exc).__name__

        with self._lock:
            job.finished_at = time.time()
            if result is not None:
                job.status = COMPLETE
                job.progress_percent = 100.0
                job.result_filename = result.filename
            else:
                job.status = FAILED
                job.last_error = error
            # a soft-cancelled job is already gone from the queue
            if self._jobs and self._jobs[0] is job:
                self._jobs.popleft()
            self._history.appendleft(job)
        if result is not None:
            job.log(f"Complete: {result.filename}")
            self.logger.info("Complete: %s", result.filename)
        else:
            job.log(f"Failed: {error}")
            self.logger.warning("Failed: %s (%s)", job.source_url, error)
        job._done.set()
