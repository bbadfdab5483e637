"""Exception taxonomy for the captioning pipeline.

WHY: Each stage fails in its own way — ffmpeg exits non-zero, the
transcription provider rejects credentials or input, or gives up after
retries. Callers (HTTP layer, CLI, tests) need typed exceptions to tell
these apart and to decide what to show the user.

HOW: Every exception derives from CaptionBurnError so the outer layers can
catch the whole family in one place. Stage-specific subclasses carry the
details needed for a useful message.

RULES:
- Any of these raised inside the pipeline aborts the job and triggers cleanup
- StylingError never leaves the subtitle renderer (it degrades to rules)
- Cleanup failures are logged, never converted into one of these
"""

from __future__ import annotations

from typing import Optional


class CaptionBurnError(Exception):
    """Base class for all captionburn errors."""


class ConfigError(CaptionBurnError, ValueError):
    """Raised when a required setting is missing or invalid."""


class ToolExecutionError(CaptionBurnError):
    """Raised when ffmpeg/ffprobe fails or produces no usable output.

    WHY: Transcoding failures are not transient. The orchestrator surfaces
    them immediately, and the message must include what ffmpeg said so the
    user can see why.

    RULES:
    - operation is the adapter operation name ("scale", "burn_captions", ...)
    - returncode is None when the process never ran or was killed
    - diagnostics is the bounded tail of the tool's stderr
    """

    def __init__(
        self,
        operation: str,
        reason: str,
        returncode: Optional[int] = None,
        diagnostics: str = "",
    ) -> None:
        self.operation = operation
        self.reason = reason
        self.returncode = returncode
        self.diagnostics = diagnostics
        message = "{} failed: {}".format(operation, reason)
        if diagnostics:
            message = "{}\n{}".format(message, diagnostics.strip())
        super().__init__(message)


class AuthError(CaptionBurnError):
    """Raised when the transcription provider rejects the API key."""


class InvalidInputError(CaptionBurnError):
    """Raised when the transcription provider rejects the request as malformed."""


class TranscriptionError(CaptionBurnError):
    """Raised when transcription fails after all retries or returns no words."""


class StylingError(CaptionBurnError):
    """Raised by the AI styler when the provider reply is unusable.

    Caught inside the subtitle renderer, which falls back to rule-based
    styling for the whole document.
    """
