"""AI-assisted styling through a hosted text-generation model.

WHY: A language model can pick out emphasis that a fixed word list
misses. The cost is that its output is untrusted text: it may wrap the
document in a code fence, drop lines, touch timestamps, or leave an
override block unclosed. Any of those would corrupt the burn-in.

HOW: AIStyler sends the plain document with instructions, strips code
fences from the reply, parses it back with parse_ass(), and compares it
with the input event by event. The original header is kept; only event
text is taken from the reply.

RULES:
- Raises StylingError for any provider failure or unusable reply
- Event count and formatted start/end times must match the input exactly
- Every event's override blocks must be balanced and non-nested
- No retries; the renderer falls back to rule-based styling at once
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional

from captionburn.api.styling import GeminiClient
from captionburn.core.ir import CaptionEvent
from captionburn.errors import StylingError
from captionburn.subtitles.ass import (
    CaptionDocument,
    CaptionParseError,
    format_time,
    parse_ass,
)
from captionburn.subtitles.base import BaseStyler

_LEADING_FENCE = re.compile(r"^\s*```[\w+-]*[ \t]*\r?\n?")
_TRAILING_FENCE = re.compile(r"\r?\n?\s*```\s*$")

PROMPT_TEMPLATE = """You are a subtitle styling expert. Transform this plain .ass subtitle file into a dynamic, engaging version.

Rules:
1. Start the text of every Dialogue line with one override block containing {{\\an2\\bord2\\shad1\\fs{size}}} for size and readability
2. Connector words (a, the, is): static text, no animation
3. Action words: add the animation \\t(0,150,\\fscx120\\fscy120)\\t(150,300,\\fscx100\\fscy100) inside that block
4. Hero/impactful words: add the animation plus a colour, e.g. \\t(0,150,\\1c&H00FFFF00&\\fscx120\\fscy120)\\t(150,300,\\fscx100\\fscy100)
5. Every {{ must be closed by }}; never nest blocks

ONLY modify the text at the end of each Dialogue line. DO NOT change timestamps, DO NOT add or remove lines.

Input:
{document}

Return ONLY the complete styled .ass file, no explanations."""


def strip_code_fences(text: str) -> str:
    """Remove a surrounding Markdown code fence (``` or ```ass) if present."""
    text = _LEADING_FENCE.sub("", text, count=1)
    text = _TRAILING_FENCE.sub("", text, count=1)
    return text.strip()


def blocks_balanced(text: str) -> bool:
    """True when every ``{`` is closed by a ``}`` with no nesting."""
    depth = 0
    for char in text:
        if char == "{":
            depth += 1
            if depth > 1:
                return False
        elif char == "}":
            depth -= 1
            if depth < 0:
                return False
    return depth == 0


class AIStyler(BaseStyler):
    """Restyles a document with a hosted language model."""

    def __init__(
        self, client: GeminiClient, logger: Optional[logging.Logger] = None
    ) -> None:
        self.client = client
        self._log = logger or logging.getLogger(__name__)

    @property
    def name(self) -> str:
        return "AI-assisted"

    def build_prompt(self, document: CaptionDocument) -> str:
        return PROMPT_TEMPLATE.format(size=document.font_size, document=document.to_ass())

    async def style(self, document: CaptionDocument) -> CaptionDocument:
        reply = await self.client.generate(self.build_prompt(document))
        restyled = strip_code_fences(reply)
        try:
            parsed = parse_ass(restyled)
            events = _merge_events(document.events, parsed.events)
        except StylingError:
            raise
        except CaptionParseError as exc:
            raise StylingError("styled document unreadable: {}".format(exc)) from exc
        except Exception as exc:
            raise StylingError("styled document rejected: {!r}".format(exc)) from exc

        self._log.info("AI styling applied to %d events", len(events))
        return document.with_events(events)


def _merge_events(
    original: List[CaptionEvent], styled: List[CaptionEvent]
) -> List[CaptionEvent]:
    """Take styled text onto the original events, checking nothing else moved."""
    if len(styled) != len(original):
        raise StylingError(
            "styled document has {} events, expected {}".format(len(styled), len(original))
        )
    merged: List[CaptionEvent] = []
    for index, (before, after) in enumerate(zip(original, styled)):
        if (format_time(before.start_s), format_time(before.end_s)) != (
            format_time(after.start_s), format_time(after.end_s)
        ):
            raise StylingError("event {} timing was changed".format(index))
        text = after.text.strip()
        if not text or not blocks_balanced(text):
            raise StylingError("event {} has malformed styling: {!r}".format(index, text))
        merged.append(CaptionEvent(start_s=before.start_s, end_s=before.end_s, text=text))
    return merged
