"""Subtitle renderer — transcript in, styled caption document out.

WHY: The orchestrator needs one call that turns word timings into the
document it burns onto the video, whichever styling strategy applies.

HOW: render() builds the plain document, then styles it. In AI mode with
an AI styler configured it tries that first; a StylingError falls back to
rule-based styling for the whole document. Without an AI styler, AI mode
quietly uses the rules.

RULES:
- Styling failures are logged, never raised
- Fallback is all-or-nothing: no mix of AI and rule-styled events
- font_size per call overrides the renderer default
"""

from __future__ import annotations

import enum
import logging
from typing import Optional

from captionburn.config import DEFAULT_FONT_SIZE
from captionburn.core.ir import Transcript
from captionburn.errors import StylingError
from captionburn.subtitles.ai import AIStyler
from captionburn.subtitles.ass import CaptionDocument, build_plain_document
from captionburn.subtitles.rules import RuleBasedStyler


class StyleMode(str, enum.Enum):
    RULES = "rules"
    AI = "ai"


class SubtitleRenderer:
    """Builds and styles the caption document for one transcript."""

    def __init__(
        self,
        rules: Optional[RuleBasedStyler] = None,
        ai_styler: Optional[AIStyler] = None,
        font_size: int = DEFAULT_FONT_SIZE,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.rules = rules or RuleBasedStyler()
        self.ai_styler = ai_styler
        self.font_size = font_size
        self._log = logger or logging.getLogger(__name__)

    async def render(
        self,
        transcript: Transcript,
        style_mode: StyleMode = StyleMode.RULES,
        font_size: Optional[int] = None,
    ) -> CaptionDocument:
        plain = build_plain_document(transcript, font_size or self.font_size)
        self._log.debug("Built plain document with %d events", len(plain))

        if StyleMode(style_mode) is StyleMode.AI:
            if self.ai_styler is None:
                self._log.info("AI styling requested but not configured; using rules")
            else:
                try:
                    return await self.ai_styler.style(plain)
                except StylingError as exc:
                    self._log.warning(
                        "AI styling failed, falling back to rule-based: %s", exc
                    )

        return await self.rules.style(plain)
