"""Advanced SubStation Alpha (.ass) caption documents.

WHY: The burn-in stage feeds ffmpeg's subtitles filter an .ass file, the
format that supports per-word override tags (size, border, colour,
animation). The renderer, the stylers, and the pipeline all need to build,
serialize, and (for AI output) re-read these documents.

HOW: CaptionDocument holds the header settings and an ordered list of
CaptionEvent objects. build_plain_document() makes one event per
non-empty word. to_ass() writes the file text; parse_ass() reads file text
back so restyled output from a language model can be checked.

RULES:
- One Dialogue event per Word whose trimmed text is non-empty
- Times are H:MM:SS.CC; a centisecond value that rounds to 100 carries
  into the seconds so the output stays well-formed and monotonic
- Word text is sanitized: braces and backslashes cannot appear in the
  payload, so override blocks are only ever added by stylers
- Event payloads never contain newlines
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field, replace
from typing import List

from captionburn.config import DEFAULT_FONT_SIZE
from captionburn.core.ir import CaptionEvent, Transcript

DEFAULT_TITLE = "Auto-Generated Subtitles"

EVENT_FORMAT = "Layer, Start, End, Style, Name, MarginL, MarginR, MarginV, Effect, Text"

STYLE_FORMAT = (
    "Name, Fontname, Fontsize, PrimaryColour, SecondaryColour, OutlineColour, "
    "BackColour, Bold, Italic, Underline, StrikeOut, ScaleX, ScaleY, Spacing, "
    "Angle, BorderStyle, Outline, Shadow, Alignment, MarginL, MarginR, MarginV, "
    "Encoding"
)

_STYLE_TEMPLATE = (
    "Style: Default,Arial,{size},&H00FFFFFF,&H0000FFFF,&H00000000,&H00000000,"
    "-1,0,0,0,100,100,0,0,1,2,2,2,10,10,75,1"
)

_TIME_RE = re.compile(r"^(\d+):([0-5]\d):([0-5]\d)\.(\d\d)$")


class CaptionParseError(ValueError):
    """Raised when .ass text cannot be read back into a CaptionDocument."""


def format_time(seconds: float) -> str:
    """Format seconds as an .ass timestamp, ``H:MM:SS.CC``.

    >>> format_time(3725.5)
    '1:02:05.50'
    """
    seconds = max(0.0, float(seconds))
    whole = math.floor(seconds)
    centis = math.floor((seconds - whole) * 100 + 0.5)
    total = whole * 100 + centis
    hours, rest = divmod(total, 360000)
    minutes, rest = divmod(rest, 6000)
    secs, cs = divmod(rest, 100)
    return "{}:{:02d}:{:02d}.{:02d}".format(hours, minutes, secs, cs)


def parse_time(value: str) -> float:
    """Inverse of format_time, to centisecond precision."""
    match = _TIME_RE.match(value.strip())
    if not match:
        raise CaptionParseError("invalid timestamp {!r}".format(value))
    h, m, s, cs = (int(g) for g in match.groups())
    return h * 3600 + m * 60 + s + cs / 100.0


def sanitize_text(text: str) -> str:
    """Make word text safe to place after an override block."""
    text = text.replace("\\", "/").replace("{", "(").replace("}", ")")
    return " ".join(text.split())


@dataclass
class CaptionDocument:
    """A complete caption track: header settings plus timed events."""

    events: List[CaptionEvent] = field(default_factory=list)
    font_size: int = DEFAULT_FONT_SIZE
    title: str = DEFAULT_TITLE

    def __len__(self) -> int:
        return len(self.events)

    def with_events(self, events: List[CaptionEvent]) -> CaptionDocument:
        """Return a copy with the same header and new events."""
        return replace(self, events=list(events))

    def header(self) -> str:
        lines = [
            "[Script Info]",
            "Title: {}".format(self.title),
            "ScriptType: v4.00+",
            "",
            "[V4+ Styles]",
            "Format: {}".format(STYLE_FORMAT),
            _STYLE_TEMPLATE.format(size=self.font_size),
            "",
            "[Events]",
            "Format: {}".format(EVENT_FORMAT),
        ]
        return "\n".join(lines) + "\n"

    def to_ass(self) -> str:
        """Serialize to .ass file text."""
        lines = [
            "Dialogue: 0,{},{},Default,,0,0,0,,{}".format(
                format_time(event.start_s), format_time(event.end_s), event.text
            )
            for event in self.events
        ]
        return self.header() + "".join(line + "\n" for line in lines)


def build_plain_document(
    transcript: Transcript, font_size: int = DEFAULT_FONT_SIZE
) -> CaptionDocument:
    """One unstyled event per word with non-empty trimmed text."""
    events: List[CaptionEvent] = []
    for word in transcript.words:
        text = sanitize_text(word.text.strip())
        if not text:
            continue
        events.append(CaptionEvent(start_s=word.start_s, end_s=word.end_s, text=text))
    return CaptionDocument(events=events, font_size=font_size)


def parse_ass(text: str) -> CaptionDocument:
    """Read .ass text back into a CaptionDocument.

    Only what this package writes is understood: the title, the Default
    style's font size, and Dialogue lines.

    Raises:
        CaptionParseError: No [Events] section, or a malformed Dialogue line.
    """
    if "[Events]" not in text:
        raise CaptionParseError("no [Events] section")

    title = DEFAULT_TITLE
    font_size = DEFAULT_FONT_SIZE
    events: List[CaptionEvent] = []

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if line.startswith("Title:"):
            title = line[len("Title:"):].strip() or DEFAULT_TITLE
        elif line.startswith("Style: Default,"):
            fields = line[len("Style:"):].split(",")
            try:
                font_size = int(float(fields[2]))
            except (IndexError, ValueError, OverflowError):
                raise CaptionParseError("invalid style line {!r}".format(line))
        elif line.startswith("Dialogue:"):
            fields = line[len("Dialogue:"):].split(",", 9)
            if len(fields) != 10:
                raise CaptionParseError("invalid dialogue line {!r}".format(line))
            events.append(CaptionEvent(
                start_s=parse_time(fields[1]),
                end_s=parse_time(fields[2]),
                text=fields[9],
            ))

    return CaptionDocument(events=events, font_size=font_size, title=title)
