"""Command-line interface for captionburn.

WHY: Besides the HTTP service, users want to caption a local file from the
terminal, inspect a video's streams, or start the server. The CLI wires
Settings into the same pipeline the server uses.

HOW: argparse with three modes chosen by the first argument:
  captionburn INPUT [-o OUTPUT] [--ai-styling | --rules] [--font-size N] [--no-scale]
  captionburn probe INPUT
  captionburn serve [--host HOST] [--port PORT]
The pipeline runs via asyncio.run(). Status and log output go to stderr;
the path of the captioned file is printed to stdout.

RULES:
- The user's input file is never deleted (remove_input=False)
- Default output: {stem}-captioned.mp4 next to the input, with a numeric
  suffix when that name is taken (-captioned-2.mp4)
- The job workspace is removed after the output has been moved out
- Exit status 0 on success, 1 on any captionburn or file error
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import shutil
import sys
from pathlib import Path
from typing import List, Optional

from captionburn import __version__
from captionburn.config import FONT_SIZE_RANGE, Settings
from captionburn.core.pipeline import ProcessOptions, build_pipeline
from captionburn.core.workspace import remove_tree
from captionburn.errors import CaptionBurnError
from captionburn.media.ffmpeg import FFmpegTool
from captionburn.subtitles.renderer import StyleMode

logger = logging.getLogger("captionburn")


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _font_size(value: str) -> int:
    size = int(value)
    low, high = FONT_SIZE_RANGE
    if not low <= size <= high:
        raise argparse.ArgumentTypeError(
            "font size must be between {} and {}".format(low, high)
        )
    return size


def default_output_path(input_path: Path) -> Path:
    """``{stem}-captioned.mp4`` next to the input, avoiding existing files."""
    candidate = input_path.with_name("{}-captioned.mp4".format(input_path.stem))
    counter = 2
    while candidate.exists():
        candidate = input_path.with_name(
            "{}-captioned-{}.mp4".format(input_path.stem, counter)
        )
        counter += 1
    return candidate


def _build_process_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="captionburn",
        description="Burn animated word-by-word captions into a video.",
        epilog="Other commands: 'captionburn probe INPUT', 'captionburn serve'.",
    )
    parser.add_argument("input", type=Path, help="Video file to caption")
    parser.add_argument("-o", "--output", type=Path, help="Output video path")
    style = parser.add_mutually_exclusive_group()
    style.add_argument(
        "--ai-styling", dest="style_mode", action="store_const", const=StyleMode.AI,
        help="Style captions with the AI provider (needs GEMINI_API_KEY)",
    )
    style.add_argument(
        "--rules", dest="style_mode", action="store_const", const=StyleMode.RULES,
        help="Style captions with the built-in word lists",
    )
    parser.add_argument("--font-size", type=_font_size, help="Caption font size")
    parser.add_argument(
        "--no-scale", dest="scale_video", action="store_false", default=None,
        help="Skip the 1.2x zoom before captioning",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--version", action="version", version=__version__)
    return parser


def _build_probe_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="captionburn probe", description="Print ffprobe metadata as JSON."
    )
    parser.add_argument("input", type=Path, help="Video file to inspect")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def _build_serve_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="captionburn serve", description="Run the HTTP API."
    )
    parser.add_argument("--host", default="0.0.0.0", help="Bind address")
    parser.add_argument("--port", type=int, default=None, help="Port (default: PORT or 3001)")
    return parser


def run_process(args: argparse.Namespace, settings: Settings) -> int:
    input_path: Path = args.input
    if not input_path.is_file():
        logger.error("Input file not found: %s", input_path)
        return 1

    destination = args.output or default_output_path(input_path)
    options = ProcessOptions(
        scale_video=args.scale_video,
        style_mode=args.style_mode,
        font_size=args.font_size,
    )

    try:
        pipeline = build_pipeline(settings)
        result = asyncio.run(pipeline.run(input_path, options=options, remove_input=False))
    except (CaptionBurnError, OSError) as exc:
        logger.error("%s", exc)
        return 1

    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(result.output_path), str(destination))
    except OSError as exc:
        logger.error("Could not write %s: %s", destination, exc)
        return 1
    finally:
        remove_tree(result.output_path.parent)

    print(destination)
    return 0


def run_probe(args: argparse.Namespace, settings: Settings) -> int:
    tool = FFmpegTool(
        ffmpeg_path=settings.ffmpeg_path,
        ffprobe_path=settings.ffprobe_path,
        timeout_s=settings.ffmpeg_timeout_s,
    )
    try:
        info = asyncio.run(tool.probe(args.input))
    except CaptionBurnError as exc:
        logger.error("%s", exc)
        return 1
    print(json.dumps(info, indent=2, ensure_ascii=True))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)

    if argv and argv[0] == "serve":
        args = _build_serve_parser().parse_args(argv[1:])
        from captionburn.server.app import run_api
        run_api(host=args.host, port=args.port)
        return 0

    if argv and argv[0] == "probe":
        args = _build_probe_parser().parse_args(argv[1:])
        _setup_logging(args.verbose)
        return run_probe(args, Settings.from_env())

    args = _build_process_parser().parse_args(argv)
    _setup_logging(args.verbose)
    return run_process(args, Settings.from_env())


if __name__ == "__main__":
    sys.exit(main())
