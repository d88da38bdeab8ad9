from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

GROQ_TRANSCRIPTIONS_URL = "https://api.groq.com/openai/v1/audio/transcriptions"
DEFAULT_SPEECH_MODEL = "whisper-large-v3"
CLIP_STRATEGIES = ("copy", "merge_audio")


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, "") or default)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, "") or default)
    except ValueError:
        return default


def _timeout(value: float) -> Optional[float]:
    # 0 (or negative) disables the timeout
    return value if value > 0 else None


@dataclass
class Settings:
    storage_dir: str = "downloads"
    ytdlp_path: str = "yt-dlp"
    ffmpeg_path: str = "ffmpeg"
    speech_api_key: Optional[str] = None
    speech_api_url: str = GROQ_TRANSCRIPTIONS_URL
    speech_model: str = DEFAULT_SPEECH_MODEL
    download_timeout: Optional[float] = 3600.0
    clip_timeout: Optional[float] = 600.0
    speech_timeout: Optional[float] = 120.0
    clip_strategy: str = "copy"
    public_base_url: str = ""
    frontend_dir: Optional[str] = None
    log_file: Optional[str] = None
    history_limit: int = 20
    host: str = "0.0.0.0"
    port: int = 3000

    @property
    def transcription_enabled(self) -> bool:
        return bool(self.speech_api_key)

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        """Read settings from the environment (and `.env` when present)."""
        if dotenv:
            try:
                load_dotenv()
            except OSError as exc:
                # An unreadable .env must not prevent startup.
                print(f"[clipcraft] Warning: could not load .env ({exc})")

        strategy = (os.getenv("CLIP_STRATEGY") or "copy").strip().lower()
        if strategy not in CLIP_STRATEGIES:
            strategy = "copy"

        return cls(
            storage_dir=os.getenv("STORAGE_DIR", "downloads"),
            ytdlp_path=os.getenv("YTDLP_PATH", "yt-dlp"),
            ffmpeg_path=os.getenv("FFMPEG_PATH", "ffmpeg"),
            speech_api_key=os.getenv("GROQ_API_KEY") or None,
            speech_api_url=os.getenv("SPEECH_API_URL", GROQ_TRANSCRIPTIONS_URL),
            speech_model=os.getenv("SPEECH_MODEL", DEFAULT_SPEECH_MODEL),
            download_timeout=_timeout(_env_float("DOWNLOAD_TIMEOUT", 3600.0)),
            clip_timeout=_timeout(_env_float("CLIP_TIMEOUT", 600.0)),
            speech_timeout=_timeout(_env_float("SPEECH_TIMEOUT", 120.0)),
            clip_strategy=strategy,
            public_base_url=os.getenv("PUBLIC_BASE_URL", "").rstrip("/"),
            frontend_dir=os.getenv("FRONTEND_DIR") or None,
            log_file=os.getenv("LOG_FILE") or None,
            history_limit=max(0, _env_int("QUEUE_HISTORY_LIMIT", 20)),
            host=os.getenv("HOST", "0.0.0.0"),
            port=_env_int("PORT", 3000),
        )
