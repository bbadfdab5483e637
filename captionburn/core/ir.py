"""Data types shared across the pipeline stages.

WHY: The transcription client, subtitle renderer, and orchestrator pass
data to each other: timed words, caption events, job state. Typed
dataclasses make those hand-offs explicit and keep the stages decoupled.

HOW: Four groups of types:
  Word / Transcript          — normalized provider output
  StyleTier                  — visual treatment bucket for one word
  CaptionEvent               — one timed, styled line of the caption track
  Stage / Job                — pipeline state for one execution

RULES:
- Word is immutable and always satisfies start_s <= end_s
- All times are float seconds
- A Transcript may be empty here; the pipeline rejects empty ones
- The caption document itself lives in captionburn.subtitles.ass
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional


@dataclass(frozen=True)
class Word:
    """One transcribed token with its timing.

    RULES:
    - text is the provider's text, untrimmed (the renderer trims)
    - start_s <= end_s, enforced by Word.create()
    """

    text: str
    start_s: float
    end_s: float

    @classmethod
    def create(cls, text: str, start_s: float, end_s: float) -> Word:
        """Build a Word, clamping end_s up to start_s if the provider reversed them."""
        start = max(0.0, float(start_s))
        end = max(start, float(end_s))
        return cls(text=text, start_s=start, end_s=end)


@dataclass
class Transcript:
    """Ordered words for one job plus the provider's metadata."""

    words: List[Word] = field(default_factory=list)
    language: Optional[str] = None
    duration_s: Optional[float] = None
    text: str = ""

    def __len__(self) -> int:
        return len(self.words)

    @property
    def is_empty(self) -> bool:
        return not self.words


class StyleTier(str, enum.Enum):
    """Visual treatment bucket for a caption word.

    - connector: function words, shown static
    - hero: high-impact words, animated and coloured
    - default: everything else, animated
    """

    CONNECTOR = "connector"
    HERO = "hero"
    DEFAULT = "default"


@dataclass
class CaptionEvent:
    """One Dialogue line of the caption track.

    text holds the full event payload, including any leading override
    block. tier is set by the rule-based styler and is None for plain or
    AI-styled events.
    """

    start_s: float
    end_s: float
    text: str
    tier: Optional[StyleTier] = None


class Stage(str, enum.Enum):
    """Pipeline states for one job.

    Linear progression INIT → ... → DONE. FAILED is absorbing and reachable
    from every non-terminal state.
    """

    INIT = "init"
    SCALED = "scaled"
    AUDIO_EXTRACTED = "audio_extracted"
    TRANSCRIBED = "transcribed"
    STYLED = "styled"
    SAVED = "saved"
    BURNED = "burned"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (Stage.DONE, Stage.FAILED)

    @property
    def next(self) -> Optional[Stage]:
        """The stage that follows this one, or None for DONE and FAILED."""
        if self.is_terminal:
            return None
        order = list(Stage)
        return order[order.index(self) + 1]


@dataclass
class Job:
    """State of one pipeline execution.

    RULES:
    - workspace_id is unique per job (see captionburn.core.workspace)
    - stage only moves forward, or to FAILED
    - output_path is set only when stage is DONE
    - error is set only when stage is FAILED
    """

    input_path: Path
    workspace_id: str
    stage: Stage = Stage.INIT
    output_path: Optional[Path] = None
    error: Optional[BaseException] = None
    word_count: int = 0

    def advance(self, stage: Stage) -> None:
        """Move to the stage after the current one; skips and moves back raise."""
        if self.stage.is_terminal:
            raise RuntimeError(
                "Job {} is already {}; cannot move to {}".format(
                    self.workspace_id, self.stage.value, stage.value
                )
            )
        if stage is not self.stage.next:
            raise RuntimeError(
                "Job {} cannot move from {} to {}".format(
                    self.workspace_id, self.stage.value, stage.value
                )
            )
        self.stage = stage

    def fail(self, error: BaseException) -> None:
        """Record the error and move to FAILED (allowed from any non-terminal stage)."""
        if self.stage.is_terminal:
            raise RuntimeError(
                "Job {} is already {}; cannot fail".format(self.workspace_id, self.stage.value)
            )
        self.error = error
        self.stage = Stage.FAILED
