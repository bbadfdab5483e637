"""Abstract base styler.

WHY: The renderer chooses between rule-based and AI-assisted styling at
run time. A shared interface lets it treat both the same way and lets new
strategies be added without touching the renderer.

HOW: BaseStyler is an ABC with a ``name`` property and an async
``style()`` method taking a plain CaptionDocument and returning a styled
copy.

RULES:
- style() never mutates its input document
- style() keeps event count and timings unchanged
- Override blocks added by a styler must be balanced ``{...}`` groups
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from captionburn.subtitles.ass import CaptionDocument


class BaseStyler(ABC):
    """Abstract base for caption styling strategies."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable strategy name, e.g. 'Rule-based'."""

    @abstractmethod
    async def style(self, document: CaptionDocument) -> CaptionDocument:
        """Return a styled copy of a plain caption document."""
