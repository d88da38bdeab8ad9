from __future__ import annotations

from typing import Optional


class ClipCraftError(Exception):
    """Base class for every error raised by the acquisition and clip pipeline."""

    kind = "internal"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message, "kind": self.kind}


class ValidationError(ClipCraftError):
    """Malformed or missing input, rejected before any I/O."""

    kind = "validation"


class NotFoundError(ClipCraftError):
    """No source media, unknown job id or unknown stored file."""

    kind = "not_found"


class FilesystemError(ClipCraftError):
    kind = "filesystem"


class OutputMissingError(NotFoundError, FilesystemError):
    """The tool reported success but its output file is not on disk."""

    kind = "output_missing"


class ProcessError(ClipCraftError):
    """Subprocess spawn failure, non-zero exit or timeout."""

    kind = "process"

    def __init__(
        self,
        message: str,
        exit_code: Optional[int] = None,
        details: str = "",
        timed_out: bool = False,
    ) -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.details = details
        self.timed_out = timed_out

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["exitCode"] = self.exit_code
        payload["details"] = self.details
        if self.timed_out:
            payload["timedOut"] = True
        return payload


class ExternalServiceError(ClipCraftError):
    """Speech-to-text call failed, was not configured or returned unusable data."""

    kind = "external_service"

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
