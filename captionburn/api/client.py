"""Async HTTP client for the hosted Whisper transcription API.

WHY: The pipeline needs word-level timings for the extracted audio. The
provider (Groq's OpenAI-compatible endpoint) is a network service, so some
failures are transient and worth retrying while others (bad key, bad
input) never will succeed. This module owns that policy.

HOW: Each attempt opens an httpx.AsyncClient with a hard per-call timeout,
uploads the audio as multipart form data, and returns an AttemptResult.
The retry loop in transcribe() looks only at the result's FailureKind:
AUTH and INVALID_INPUT end immediately, RETRYABLE waits ``2**attempt``
seconds and tries again, up to max_attempts.

RULES:
- At most 3 attempts; delays of 2s then 4s between them
- HTTP 401 → AuthError, HTTP 400 → InvalidInputError, both without retry
- Timeouts, transport errors, other statuses, non-JSON bodies, and bodies
  without a word list are retryable
- An empty word list is a successful attempt (the pipeline rejects it)
- After the last failed attempt, TranscriptionError with the last detail
- The sleep function is injectable so tests can record delays
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, Optional

import httpx

from captionburn.api.models import (
    AttemptResult,
    FailureKind,
    parse_transcription,
)
from captionburn.config import (
    GROQ_BASE_URL,
    TRANSCRIPTION_TIMEOUT_S,
    WHISPER_LANGUAGE,
    WHISPER_MODEL,
    Settings,
)
from captionburn.core.ir import Transcript
from captionburn.errors import AuthError, ConfigError, InvalidInputError, TranscriptionError

MAX_ATTEMPTS = 3

_ERROR_BODY_LIMIT = 500


def backoff_delay(attempt: int) -> float:
    """Seconds to wait after failed attempt number ``attempt`` (1-based)."""
    return float(2 ** attempt)


class TranscriptionClient:
    """Transcribes audio files into word-timed Transcripts.

    WHY: Gives the orchestrator one call — transcribe(path) — with a
    well-defined set of errors, hiding HTTP, multipart, and retry details.

    RULES:
    - api_key is required (ConfigError if empty)
    - timeout_s applies to each HTTP call, independent of backoff sleeps
    - transport is for tests (httpx.MockTransport)
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = GROQ_BASE_URL,
        model: str = WHISPER_MODEL,
        language: str = WHISPER_LANGUAGE,
        timeout_s: float = TRANSCRIPTION_TIMEOUT_S,
        max_attempts: int = MAX_ATTEMPTS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if not api_key:
            raise ConfigError("Transcription API key is required")
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self.model = model
        self.language = language
        self.timeout_s = timeout_s
        self.max_attempts = max_attempts
        self._sleep = sleep
        self._transport = transport
        self._log = logger or logging.getLogger(__name__)

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> TranscriptionClient:
        return cls(
            api_key=settings.require_groq_key(),
            base_url=settings.groq_base_url,
            model=settings.whisper_model,
            language=settings.whisper_language,
            timeout_s=settings.transcription_timeout_s,
            **kwargs,
        )

    async def transcribe(self, audio_path: Path) -> Transcript:
        """Transcribe one audio file, retrying transient failures.

        Raises:
            AuthError: The provider rejected the API key.
            InvalidInputError: The provider rejected the audio or request.
            TranscriptionError: Every attempt failed.
        """
        audio_path = Path(audio_path)
        last_detail = "no attempt made"

        for attempt in range(1, self.max_attempts + 1):
            self._log.info("Transcription attempt %d/%d", attempt, self.max_attempts)
            result = await self._attempt(audio_path)

            if result.ok and result.transcript is not None:
                self._log.info(
                    "Transcription successful: %d words", len(result.transcript)
                )
                return result.transcript

            self._log.error(
                "Transcription API error (attempt %d): %s", attempt, result.detail
            )
            if result.kind is FailureKind.AUTH:
                raise AuthError("Invalid transcription API key: {}".format(result.detail))
            if result.kind is FailureKind.INVALID_INPUT:
                raise InvalidInputError(
                    "Invalid audio file or request: {}".format(result.detail)
                )

            last_detail = result.detail
            if attempt < self.max_attempts:
                delay = backoff_delay(attempt)
                self._log.info("Retrying in %.0fs...", delay)
                await self._sleep(delay)

        raise TranscriptionError(
            "Transcription failed after {} attempts: {}".format(
                self.max_attempts, last_detail
            )
        )

    async def _attempt(self, audio_path: Path) -> AttemptResult:
        """Run one HTTP call and classify its outcome."""
        data = {
            "model": self.model,
            "language": self.language,
            "response_format": "verbose_json",
            "timestamp_granularities[]": "word",
        }
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                headers={"Authorization": "Bearer {}".format(self._api_key)},
                timeout=httpx.Timeout(self.timeout_s),
                transport=self._transport,
            ) as client:
                with open(audio_path, "rb") as f:
                    resp = await client.post(
                        "/audio/transcriptions",
                        data=data,
                        files={"file": (audio_path.name, f)},
                    )
        except httpx.TimeoutException as exc:
            return AttemptResult.failure(
                FailureKind.RETRYABLE, "request timed out ({})".format(exc)
            )
        except httpx.HTTPError as exc:
            return AttemptResult.failure(
                FailureKind.RETRYABLE, "transport error: {}".format(exc)
            )
        except OSError as exc:
            return AttemptResult.failure(
                FailureKind.INVALID_INPUT, "cannot read {}: {}".format(audio_path, exc)
            )

        if resp.status_code == 401:
            return AttemptResult.failure(FailureKind.AUTH, _body_excerpt(resp))
        if resp.status_code == 400:
            return AttemptResult.failure(FailureKind.INVALID_INPUT, _body_excerpt(resp))
        if resp.status_code != 200:
            return AttemptResult.failure(
                FailureKind.RETRYABLE,
                "HTTP {}: {}".format(resp.status_code, _body_excerpt(resp)),
            )

        try:
            transcript = parse_transcription(resp.json())
        except ValueError as exc:
            # Covers both JSON decoding errors and MalformedResponse
            return AttemptResult.failure(
                FailureKind.RETRYABLE, "invalid response: {}".format(exc)
            )
        return AttemptResult.success(transcript)


def _body_excerpt(resp: httpx.Response) -> str:
    text = resp.text.strip()
    if len(text) > _ERROR_BODY_LIMIT:
        text = text[:_ERROR_BODY_LIMIT] + "..."
    return text or "HTTP {}".format(resp.status_code)
