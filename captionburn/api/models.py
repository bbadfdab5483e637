"""Transcription response parsing and typed attempt results.

WHY: The provider returns an OpenAI-compatible ``verbose_json`` body whose
word list drives everything downstream. Parsing it in one place keeps the
client's retry loop free of JSON details, and a typed attempt result lets
that loop branch on what went wrong instead of catching exceptions.

HOW: parse_transcription() turns a response dict into a Transcript or
raises MalformedResponse. AttemptResult is either a success carrying the
Transcript or a failure carrying a FailureKind and a detail string.

RULES:
- A body without a ``words`` list is malformed (retryable upstream)
- A present-but-empty ``words`` list parses to an empty Transcript
- Each word needs ``word`` (or ``text``), ``start`` and ``end``
- Word timings are normalized through Word.create (end >= start)
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Dict, Optional

from captionburn.core.ir import Transcript, Word


class MalformedResponse(ValueError):
    """Raised when a response body does not have the expected shape."""


class FailureKind(str, enum.Enum):
    """Classification of a failed transcription attempt.

    - AUTH: credentials rejected; stop immediately
    - INVALID_INPUT: request rejected as malformed; stop immediately
    - RETRYABLE: anything else; try again after backoff
    """

    AUTH = "auth"
    INVALID_INPUT = "invalid_input"
    RETRYABLE = "retryable"


@dataclass(frozen=True)
class AttemptResult:
    """Outcome of one transcription attempt."""

    transcript: Optional[Transcript] = None
    kind: Optional[FailureKind] = None
    detail: str = ""

    @classmethod
    def success(cls, transcript: Transcript) -> AttemptResult:
        return cls(transcript=transcript)

    @classmethod
    def failure(cls, kind: FailureKind, detail: str) -> AttemptResult:
        return cls(kind=kind, detail=detail)

    @property
    def ok(self) -> bool:
        return self.kind is None


def _parse_word(raw: Any, index: int) -> Word:
    if not isinstance(raw, dict):
        raise MalformedResponse("word {} is not an object".format(index))
    text = raw.get("word", raw.get("text"))
    if text is None:
        raise MalformedResponse("word {} has no text".format(index))
    try:
        start = float(raw["start"])
        end = float(raw["end"])
    except (KeyError, TypeError, ValueError) as exc:
        raise MalformedResponse("word {} has invalid timing: {}".format(index, exc))
    return Word.create(str(text), start, end)


def parse_transcription(data: Dict[str, Any]) -> Transcript:
    """Build a Transcript from a ``verbose_json`` response body."""
    if not isinstance(data, dict):
        raise MalformedResponse("response body is not a JSON object")
    raw_words = data.get("words")
    if not isinstance(raw_words, list):
        raise MalformedResponse("response has no word list")

    words = [_parse_word(raw, i) for i, raw in enumerate(raw_words)]

    duration = data.get("duration")
    try:
        duration_s = float(duration) if duration is not None else None
    except (TypeError, ValueError):
        duration_s = None

    return Transcript(
        words=words,
        language=data.get("language"),
        duration_s=duration_s,
        text=str(data.get("text") or ""),
    )
