"""Shared test fixtures for the captionburn test suite.

WHY: Several modules need the same sample data: the three-word clip used
throughout the renderer and pipeline tests, and the provider response it
comes from. Keeping them here means every test agrees on the timings.

HOW: VERIFIED_WORDS mirrors the ``words`` array of a ``verbose_json``
transcription response. Fixtures expose it as a raw response dict and as
a parsed Transcript.

RULES:
- "Hello amazing world": Hello and world are default tier, amazing is hero
- Timings 0-1s, 1-3s, 3-5s on a five-second clip
"""

from typing import Any, Dict, List

import pytest

from captionburn.config import Settings
from captionburn.core.ir import Transcript, Word

VERIFIED_WORDS: List[Dict[str, Any]] = [
    {"word": "Hello",   "start": 0.0, "end": 1.0},
    {"word": "amazing", "start": 1.0, "end": 3.0},
    {"word": "world",   "start": 3.0, "end": 5.0},
]


@pytest.fixture
def groq_response() -> Dict[str, Any]:
    """A verbose_json transcription body for the sample clip."""
    return {
        "task": "transcribe",
        "language": "english",
        "duration": 5.0,
        "text": "Hello amazing world",
        "words": [dict(w) for w in VERIFIED_WORDS],
    }


@pytest.fixture
def sample_transcript() -> Transcript:
    """The sample clip as a parsed Transcript."""
    return Transcript(
        words=[Word.create(w["word"], w["start"], w["end"]) for w in VERIFIED_WORDS],
        language="english",
        duration_s=5.0,
        text="Hello amazing world",
    )


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings rooted in tmp_path with no provider keys."""
    return Settings(
        groq_api_key="test-key",
        workspace_root=tmp_path / "temp",
        upload_dir=tmp_path / "uploads",
    )
