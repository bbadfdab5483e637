"""captionburn — turn an uploaded video into a captioned video.

WHY: Short-form video needs word-by-word animated captions burned into the
picture. Doing that by hand means transcribing, timing every word, styling
the subtitle track, and re-encoding. This package automates the whole chain.

HOW: A linear pipeline — scale (ffmpeg) → extract audio (ffmpeg) →
transcribe (hosted Whisper) → render a styled .ass document → burn it onto
the video (ffmpeg) — running inside a per-job temporary workspace that is
always cleaned up.

RULES:
- Components receive their configuration through constructors
- The orchestrator owns the workspace; nothing else keeps references to it
- Only the final burned video survives a successful job
"""

__version__ = "0.1.0"
