"""Subtitle renderer package — .ass documents and styling strategies.

WHY: The burn-in stage consumes a styled .ass file. Building it involves a
document model, two styling strategies, and the choice between them.

HOW: ass.py models and serializes documents; rules.py and ai.py implement
BaseStyler; renderer.py picks the strategy and handles fallback.

RULES:
- The rule-based styler is always available; AI needs a provider client
"""

from captionburn.subtitles.ai import AIStyler
from captionburn.subtitles.ass import CaptionDocument, build_plain_document, format_time
from captionburn.subtitles.renderer import StyleMode, SubtitleRenderer
from captionburn.subtitles.rules import RuleBasedStyler, classify_word

__all__ = [
    "AIStyler",
    "CaptionDocument",
    "RuleBasedStyler",
    "StyleMode",
    "SubtitleRenderer",
    "build_plain_document",
    "classify_word",
    "format_time",
]
