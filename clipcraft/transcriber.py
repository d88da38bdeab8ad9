from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from clipcraft.captions import Caption, group_words_into_captions
from clipcraft.errors import ExternalServiceError, OutputMissingError
from clipcraft.media_library import MediaLibrary
from clipcraft.process_runner import ProcessRunner
from clipcraft.speech_client import SpeechToTextClient
from clipcraft.utils.formatting import format_seconds, validate_time_range
from clipcraft.utils.logging import get_logger

AUDIO_QUALITY = "4"


@dataclass
class Transcript:
    text: str
    captions: List[Caption] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"text": self.text, "captions": [c.to_dict() for c in self.captions]}


def audio_extract_args(source: Path, output: Path, start: float, duration: float) -> List[str]:
    return [
        "-ss", format_seconds(start),
        "-i", str(source),
        "-t", format_seconds(duration),
        "-vn",
        "-acodec", "libmp3lame",
        "-q:a", AUDIO_QUALITY,
        "-y", str(output),
    ]


class Transcriber:
    """Audio segment of the latest download -> speech-to-text -> 8-word captions.

    Failure kinds stay distinct: NotFoundError (no source video),
    ProcessError (audio extraction) and ExternalServiceError (service not
    configured, unreachable or unparseable). The temporary audio file is
    removed whichever way the call ends.
    """

    def __init__(
        self,
        runner: ProcessRunner,
        library: MediaLibrary,
        speech_client: Optional[SpeechToTextClient],
        ffmpeg_path: str = "ffmpeg",
        timeout: Optional[float] = None,
    ) -> None:
        self.runner = runner
        self.library = library
        self.speech_client = speech_client
        self.ffmpeg_path = ffmpeg_path
        self.timeout = timeout
        self.logger = get_logger("transcriber")

    @property
    def enabled(self) -> bool:
        return self.speech_client is not None

    def transcribe(self, start_time: Any, end_time: Any) -> Transcript:
        if self.speech_client is None:
            raise ExternalServiceError("Transcription service not configured")
        start, end = validate_time_range(start_time, end_time)
        source = self.library.latest_source()

        with self.library.temporary_audio() as audio_path:
            self.logger.info("Extracting audio %ss-%ss from %s", format_seconds(start), format_seconds(end), source.name)
            outcome = self.runner.run(
                self.ffmpeg_path,
                audio_extract_args(source, audio_path, start, end - start),
                timeout=self.timeout,
            )
            outcome.check("Audio extraction failed")
            if not audio_path.is_file():
                raise OutputMissingError("Extracted audio file not created")

            result = self.speech_client.transcribe_file(str(audio_path))

        captions = group_words_into_captions(result.words)
        self.logger.info("Transcription complete: %d caption segments", len(captions))
        return Transcript(text=result.text, captions=captions)
