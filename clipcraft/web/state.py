from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Optional

from clipcraft.clipper import ClipExtractor
from clipcraft.download_queue import DownloadQueue
from clipcraft.downloader import Downloader
from clipcraft.media_library import MediaLibrary
from clipcraft.process_runner import ProcessRunner
from clipcraft.settings import Settings
from clipcraft.speech_client import SpeechToTextClient
from clipcraft.transcriber import Transcriber
from clipcraft.utils.logging import setup_logger


@dataclass
class Services:
    settings: Settings
    library: MediaLibrary
    runner: ProcessRunner
    downloader: Downloader
    queue: DownloadQueue
    clipper: ClipExtractor
    transcriber: Transcriber


def build_services(settings: Settings, runner: Optional[ProcessRunner] = None) -> Services:
    """Wire every component from one Settings object."""
    runner = runner or ProcessRunner()
    library = MediaLibrary(settings.storage_dir, public_base_url=settings.public_base_url)
    library.ensure()
    downloader = Downloader(
        runner,
        library,
        ytdlp_path=settings.ytdlp_path,
        ffmpeg_path=settings.ffmpeg_path,
        timeout=settings.download_timeout,
    )
    speech = None
    if settings.speech_api_key:
        speech = SpeechToTextClient(
            settings.speech_api_key,
            endpoint=settings.speech_api_url,
            model=settings.speech_model,
            timeout=settings.speech_timeout,
        )
    return Services(
        settings=settings,
        library=library,
        runner=runner,
        downloader=downloader,
        queue=DownloadQueue(downloader, history_limit=settings.history_limit),
        clipper=ClipExtractor(
            runner,
            library,
            ffmpeg_path=settings.ffmpeg_path,
            strategy=settings.clip_strategy,
            timeout=settings.clip_timeout,
        ),
        transcriber=Transcriber(
            runner,
            library,
            speech,
            ffmpeg_path=settings.ffmpeg_path,
            timeout=settings.clip_timeout,
        ),
    )


# Process-wide instance; one download queue per server.
_SERVICES: Optional[Services] = None
_SERVICES_LOCK = threading.Lock()


def get_services() -> Services:
    global _SERVICES
    with _SERVICES_LOCK:
        if _SERVICES is None:
            settings = Settings.from_env()
            logger = setup_logger(logfile=settings.log_file)
            _SERVICES = build_services(settings)
            logger.info("Downloads: %s", _SERVICES.library.root.resolve())
            if not settings.transcription_enabled:
                logger.warning("GROQ_API_KEY not set. Transcription will not work.")
        return _SERVICES
