from __future__ import annotations

import re
import subprocess
import threading
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, List, Optional, Sequence

from clipcraft.errors import ProcessError
from clipcraft.utils.logging import get_logger

PROGRESS_RE = re.compile(r"(\d+(?:\.\d+)?)%")
# yt-dlp prints these when a destination file is written or streams get merged
FILENAME_MARKERS = ("Destination:", "Merging")
TAIL_CHARS = 300
_TAIL_LINES = 50

ProgressCallback = Callable[[float], None]
MarkerCallback = Callable[[str], None]


@dataclass
class ProcessOutcome:
    """Result of one subprocess run.

    Either succeeded (exit code 0) or failed with an exit code, a spawn error
    or a timeout. Never raises on its own; call `check()` for that.
    """

    executable: str
    exit_code: Optional[int] = None
    spawn_error: Optional[str] = None
    timed_out: bool = False
    output_tail: str = ""

    @property
    def succeeded(self) -> bool:
        return self.spawn_error is None and not self.timed_out and self.exit_code == 0

    def describe(self) -> str:
        if self.spawn_error is not None:
            return f"could not start {self.executable}: {self.spawn_error}"
        if self.timed_out:
            return f"{self.executable} timed out"
        return f"{self.executable} exited with code {self.exit_code}"

    def check(self, action: str = "") -> "ProcessOutcome":
        """Raise ProcessError unless the process succeeded."""
        if self.succeeded:
            return self
        prefix = f"{action}: " if action else ""
        raise ProcessError(
            prefix + self.describe(),
            exit_code=None if self.spawn_error is not None else self.exit_code,
            details=self.output_tail,
            timed_out=self.timed_out,
        )


class ProcessRunner:
    """Spawns and supervises one external tool per call."""

    def __init__(self) -> None:
        self.logger = get_logger("process")

    def run(
        self,
        executable: str,
        args: Sequence[str],
        cwd: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
        on_marker: Optional[MarkerCallback] = None,
        timeout: Optional[float] = None,
    ) -> ProcessOutcome:
        cmd: List[str] = [executable, *[str(a) for a in args]]
        self.logger.debug("spawn: %s", " ".join(cmd))
        try:
            proc = subprocess.Popen(
                cmd,
                cwd=cwd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        except (OSError, ValueError) as exc:
            self.logger.warning("could not start %s: %s", executable, exc)
            return ProcessOutcome(executable=executable, spawn_error=str(exc))

        tail: Deque[str] = deque(maxlen=_TAIL_LINES)
        tail_lock = threading.Lock()

        def handle_line(line: str) -> None:
            line = line.rstrip("\r\n")
            if not line:
                return
            with tail_lock:
                tail.append(line)
            if on_progress:
                # a single line can hold several percentages; the last one wins
                matches = PROGRESS_RE.findall(line)
                if matches:
                    on_progress(float(matches[-1]))
            if on_marker and any(marker in line for marker in FILENAME_MARKERS):
                on_marker(line)

        def pump(stream) -> None:
            try:
                for raw in iter(stream.readline, ""):
                    # ffmpeg redraws its status line with carriage returns
                    for part in raw.split("\r"):
                        try:
                            handle_line(part)
                        except Exception:
                            self.logger.exception("output callback failed for %s", executable)
            finally:
                stream.close()

        readers = [
            threading.Thread(target=pump, args=(proc.stdout,), daemon=True),
            threading.Thread(target=pump, args=(proc.stderr,), daemon=True),
        ]
        for t in readers:
            t.start()

        timed_out = False
        try:
            exit_code = proc.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            timed_out = True
            self.logger.warning("%s exceeded %.0fs; killing", executable, timeout or 0)
            proc.kill()
            exit_code = proc.wait()

        # drain everything still buffered before reporting
        for t in readers:
            t.join()

        with tail_lock:
            output_tail = "\n".join(tail)[-TAIL_CHARS:]
        outcome = ProcessOutcome(
            executable=executable,
            exit_code=exit_code,
            timed_out=timed_out,
            output_tail=output_tail,
        )
        if not outcome.succeeded:
            self.logger.warning("%s", outcome.describe())
        return outcome
