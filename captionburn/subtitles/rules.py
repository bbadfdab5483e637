"""Rule-based word styling — connector / hero / default tiers.

WHY: Word-by-word captions read best when filler words stay quiet and
impactful words pop. A fixed vocabulary gives predictable, fast styling
without any network call, and is the fallback whenever AI styling fails.

HOW: classify_word() lower-cases the word, strips surrounding punctuation,
and looks it up in two closed lists. RuleBasedStyler prefixes each event's
text with the override block for its tier. Hero words get a colour from
PALETTE through an injectable picker, the only random choice in styling.

RULES:
- Matching is case-insensitive and whole-word (punctuation around the word
  is ignored, punctuation inside it is not)
- connector → static block; default → pop animation; hero → pop animation
  plus a palette colour chosen per occurrence
- Every tier produces exactly one balanced ``{...}`` block
- The colour picker receives the full palette and must return one entry
"""

from __future__ import annotations

import random
import string
from typing import Callable, FrozenSet, List, Optional, Sequence, Tuple

from captionburn.core.ir import CaptionEvent, StyleTier
from captionburn.subtitles.ass import CaptionDocument
from captionburn.subtitles.base import BaseStyler

# ---------------------------------------------------------------------------
# Word lists
# ---------------------------------------------------------------------------

CONNECTOR_WORDS: FrozenSet[str] = frozenset({
    "a", "an", "the",
    "is", "are", "was", "were", "am", "be", "been",
    "to", "of", "in", "on", "at", "by", "for", "with", "from",
    "and", "or", "but", "as", "if", "it",
    "this", "that", "these", "those",
})

HERO_WORDS: FrozenSet[str] = frozenset({
    "amazing", "incredible", "awesome", "epic", "wow", "best", "worst",
    "never", "always", "love", "hate", "perfect", "terrible", "beautiful",
    "stunning", "shocking", "unbelievable", "extraordinary", "phenomenal",
})

# ---------------------------------------------------------------------------
# Colours (ASS &HAABBGGRR& order)
# ---------------------------------------------------------------------------

PALETTE: Tuple[str, ...] = (
    "&H0000FFFF&",  # yellow
    "&H00FFFF00&",  # cyan
    "&H0000FF00&",  # green
    "&H000000FF&",  # red
    "&H0000A5FF&",  # orange
)

ColorPicker = Callable[[Sequence[str]], str]

# ---------------------------------------------------------------------------
# Override blocks
# ---------------------------------------------------------------------------

_BASE_TAGS = "\\an2\\bord2\\shad1\\fs{size}"
_POP_IN = "\\t(0,150,{color}\\fscx120\\fscy120)"
_POP_OUT = "\\t(150,300,\\fscx100\\fscy100)"


def classify_word(text: str) -> StyleTier:
    """Return the tier for one word of caption text."""
    key = text.strip().lower().strip(string.punctuation + "“”‘’")
    if key in CONNECTOR_WORDS:
        return StyleTier.CONNECTOR
    if key in HERO_WORDS:
        return StyleTier.HERO
    return StyleTier.DEFAULT


def override_block(tier: StyleTier, font_size: int, color: Optional[str] = None) -> str:
    """Build the ``{...}`` override block for a tier.

    color is required for HERO and ignored otherwise.
    """
    tags = _BASE_TAGS.format(size=font_size)
    if tier is StyleTier.CONNECTOR:
        return "{" + tags + "}"
    if tier is StyleTier.HERO:
        if not color:
            raise ValueError("hero tier needs a colour")
        pop_in = _POP_IN.format(color="\\1c" + color)
    else:
        pop_in = _POP_IN.format(color="")
    return "{" + tags + pop_in + _POP_OUT + "}"


class RuleBasedStyler(BaseStyler):
    """Styles every event from the connector/hero word lists.

    RULES:
    - color_picker defaults to random.choice; tests pass a stub
    - Events keep their timings; text gains one leading override block
    - The tier is recorded on each styled event
    """

    def __init__(self, color_picker: Optional[ColorPicker] = None) -> None:
        self.color_picker: ColorPicker = color_picker or random.choice

    @property
    def name(self) -> str:
        return "Rule-based"

    async def style(self, document: CaptionDocument) -> CaptionDocument:
        return self.apply(document)

    def apply(self, document: CaptionDocument) -> CaptionDocument:
        """Synchronous form of style()."""
        styled: List[CaptionEvent] = []
        for event in document.events:
            tier = classify_word(event.text)
            color = self.color_picker(PALETTE) if tier is StyleTier.HERO else None
            block = override_block(tier, document.font_size, color)
            styled.append(CaptionEvent(
                start_s=event.start_s,
                end_s=event.end_s,
                text=block + event.text,
                tier=tier,
            ))
        return document.with_events(styled)
