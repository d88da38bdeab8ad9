from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_fixed

from clipcraft.captions import CaptionWord
from clipcraft.errors import ExternalServiceError
from clipcraft.settings import DEFAULT_SPEECH_MODEL, GROQ_TRANSCRIPTIONS_URL
from clipcraft.utils.logging import get_logger

RETRYABLE_STATUS = {429, 500, 502, 503, 504}


class _TransientError(Exception):
    """Connection failure, timeout, rate limit or 5xx; worth another attempt."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass
class SpeechResult:
    text: str
    words: List[CaptionWord]


def parse_transcription(payload: Any) -> SpeechResult:
    """Read a verbose_json transcription body into text plus ordered words."""
    if not isinstance(payload, dict) or not isinstance(payload.get("text"), str):
        raise ExternalServiceError("Unexpected transcription response")
    words: List[CaptionWord] = []
    raw_words = payload.get("words") or []
    if not isinstance(raw_words, list):
        raise ExternalServiceError("Unexpected transcription response: words is not a list")
    for raw in raw_words:
        try:
            words.append(
                CaptionWord(
                    text=str(raw["word"]).strip(),
                    start_time=float(raw["start"]),
                    end_time=float(raw["end"]),
                )
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ExternalServiceError(f"Malformed word timestamp in transcription response: {raw!r}") from exc
    return SpeechResult(text=payload["text"].strip(), words=words)


class SpeechToTextClient:
    """Uploads audio to an OpenAI-compatible transcription endpoint (Groq Whisper by default)."""

    def __init__(
        self,
        api_key: str,
        endpoint: str = GROQ_TRANSCRIPTIONS_URL,
        model: str = DEFAULT_SPEECH_MODEL,
        timeout: Optional[float] = 120.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not api_key:
            raise ExternalServiceError("Transcription API key not configured")
        self.api_key = api_key
        self.endpoint = endpoint
        self.model = model
        self.timeout = timeout
        self.session = session or requests.Session()
        self.logger = get_logger("speech")

    def _form_fields(self) -> List[tuple]:
        return [
            ("model", self.model),
            ("response_format", "verbose_json"),
            ("timestamp_granularities[]", "word"),
        ]

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_fixed(1),
        retry=retry_if_exception_type(_TransientError),
        reraise=True,
    )
    def _post(self, audio_path: str) -> requests.Response:
        with open(audio_path, "rb") as fh:
            try:
                resp = self.session.post(
                    self.endpoint,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    data=self._form_fields(),
                    files={"file": (os.path.basename(audio_path), fh, "audio/mpeg")},
                    timeout=self.timeout,
                )
            except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as exc:
                self.logger.warning("Transcription request failed: %s", exc)
                raise _TransientError(f"Transcription service unreachable: {exc}") from exc
        if resp.status_code in RETRYABLE_STATUS:
            self.logger.warning("Transcription service returned %s; retrying", resp.status_code)
            raise _TransientError(
                f"Transcription service returned {resp.status_code}: {resp.text[:300]}",
                status_code=resp.status_code,
            )
        return resp

    def transcribe_file(self, audio_path: str) -> SpeechResult:
        self.logger.info("Sending %s to %s", os.path.basename(audio_path), self.endpoint)
        try:
            resp = self._post(audio_path)
        except _TransientError as exc:
            raise ExternalServiceError(str(exc), status_code=exc.status_code) from exc
        except requests.exceptions.RequestException as exc:
            raise ExternalServiceError(f"Transcription request failed: {exc}") from exc
        except OSError as exc:
            raise ExternalServiceError(f"Could not read audio for upload: {exc}") from exc

        if resp.status_code != 200:
            body = resp.text[:300] if resp.text else "No response body"
            raise ExternalServiceError(
                f"Transcription service returned {resp.status_code}: {body}",
                status_code=resp.status_code,
            )
        try:
            payload: Dict[str, Any] = resp.json()
        except ValueError as exc:
            raise ExternalServiceError(f"Could not parse transcription response: {resp.text[:300]}") from exc
        return parse_transcription(payload)
