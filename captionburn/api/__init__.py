"""Provider clients package — hosted transcription and styling APIs.

WHY: Two network services sit behind the pipeline: the Whisper
transcription endpoint (required) and the Gemini text-generation endpoint
(optional, for AI-assisted styling). This package keeps all outbound HTTP
in one place.

HOW: Both clients use httpx.AsyncClient, open one connection pool per call,
and translate every failure into the package's typed errors.

RULES:
- All outbound HTTP goes through these clients (no direct httpx elsewhere)
- Credentials are passed in by the caller, never read from the environment
"""

from captionburn.api.client import TranscriptionClient
from captionburn.api.models import AttemptResult, FailureKind
from captionburn.api.styling import GeminiClient

__all__ = ["AttemptResult", "FailureKind", "GeminiClient", "TranscriptionClient"]
