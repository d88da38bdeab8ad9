from __future__ import annotations

import math
import re
from typing import Any, Tuple
from urllib.parse import urlsplit

from clipcraft.errors import ValidationError

_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*$")


def is_valid_url(value: Any) -> bool:
    """True for an absolute URI with a scheme and a network location."""
    if not isinstance(value, str) or not value.strip():
        return False
    if any(ch.isspace() for ch in value.strip()):
        return False
    try:
        parts = urlsplit(value.strip())
    except ValueError:
        return False
    if not parts.scheme or not _SCHEME_RE.match(parts.scheme):
        return False
    return bool(parts.netloc)


def require_url(value: Any) -> str:
    if not value or not isinstance(value, str):
        raise ValidationError("URL is required and must be a string")
    if not is_valid_url(value):
        raise ValidationError("Invalid URL format")
    return value.strip()


def _as_seconds(name: str, value: Any) -> float:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{name} must be a number")
    value = float(value)
    if not math.isfinite(value):
        raise ValidationError(f"{name} must be finite")
    return value


def validate_time_range(start_time: Any, end_time: Any) -> Tuple[float, float]:
    """Return (start, end) as floats or raise ValidationError.

    Requires 0 <= start < end.
    """
    start = _as_seconds("startTime", start_time)
    end = _as_seconds("endTime", end_time)
    if start < 0 or end <= start:
        raise ValidationError("Invalid time range")
    return start, end


def format_seconds(value: float) -> str:
    """Render seconds for a command line argument without float noise (12.5 -> '12.5', 3.0 -> '3')."""
    text = f"{value:.3f}".rstrip("0").rstrip(".")
    return text or "0"


def is_safe_filename(name: str) -> bool:
    """Plain file name only: no separators, no parent references, no NUL."""
    if not name or name in {".", ".."}:
        return False
    if ".." in name or "/" in name or "\\" in name or "\x00" in name:
        return False
    return True


def human_size(num_bytes: int) -> str:
    size = float(num_bytes)
    for unit in ("B", "KiB", "MiB", "GiB"):
        if size < 1024 or unit == "GiB":
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GiB"
