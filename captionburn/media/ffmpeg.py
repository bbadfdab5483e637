"""Async adapter around the ffmpeg and ffprobe command-line tools.

WHY: The pipeline needs four media operations — zoom-and-crop scaling,
audio extraction, subtitle burn-in, and probing — but none of the codec
work. This module owns how those tools are invoked and how their results
are judged, so the orchestrator only sees "succeeded" or a
ToolExecutionError with ffmpeg's own explanation.

HOW: Each operation builds an argument list and runs it with
asyncio.create_subprocess_exec (no shell, so file paths are never split or
interpreted). stderr is drained into a bounded tail buffer while the
process runs. A per-invocation timeout kills runaway processes. After a
zero exit, file-producing operations also check that the output exists and
is non-empty.

RULES:
- Success = exit status 0 AND a non-empty output file (probe: valid JSON)
- Failure = ToolExecutionError carrying the stderr tail, for non-zero exit,
  missing binary, missing/empty output, unparsable probe output, timeout
- The caption path is escaped for both levels of ffmpeg filter syntax
- Diagnostics are bounded (keep the last max_diagnostic_bytes)
- No retries here — transcoding failures are not transient
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import shutil
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from captionburn.config import FFMPEG_TIMEOUT_S
from captionburn.errors import ToolExecutionError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SCALE_FILTER = "scale=iw*1.2:ih*1.2,crop=iw/1.2:ih/1.2"

DEFAULT_MAX_DIAGNOSTIC_BYTES = 64 * 1024
DEFAULT_MAX_STDOUT_BYTES = 10 * 1024 * 1024
_READ_CHUNK = 8192

# Characters with meaning inside a filter option value, then inside the
# filtergraph description that contains it.
_OPTION_SPECIAL = re.compile(r"([\\':])")
_FILTERGRAPH_SPECIAL = re.compile(r"([\\'\[\],;])")


def escape_filter_path(path: Union[str, Path]) -> str:
    """Escape a file path for use as a value inside an ffmpeg -vf string.

    ffmpeg unescapes a filter argument twice: once when splitting the
    filtergraph and once when parsing the filter's key=value options. The
    value is therefore escaped for the option level first (backslash,
    quote, colon) and the result escaped again for the filtergraph level
    (backslash, quote, brackets, comma, semicolon).

    >>> escape_filter_path("/tmp/a:b.ass")
    '/tmp/a\\\\\\\\:b.ass'
    """
    value = _OPTION_SPECIAL.sub(r"\\\1", str(path))
    return _FILTERGRAPH_SPECIAL.sub(r"\\\1", value)


def resolve_binary(name: str, configured: Optional[str] = None) -> str:
    """Return the configured path, else the PATH lookup, else the bare name."""
    if configured:
        return configured
    found = shutil.which(name)
    if found:
        return found
    logger.warning("%s not found on PATH; invoking it by name", name)
    return name


class _TailBuffer:
    """Bytes buffer that keeps only the last ``limit`` bytes written."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        self._data = bytearray()
        self.truncated = False

    def write(self, chunk: bytes) -> None:
        self._data.extend(chunk)
        overflow = len(self._data) - self.limit
        if overflow > 0:
            del self._data[:overflow]
            self.truncated = True

    def text(self) -> str:
        return self._data.decode("utf-8", errors="replace")


class _CappedBuffer:
    """Bytes buffer that stops accepting data once ``limit`` is reached."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        self._data = bytearray()
        self.overflowed = False

    def write(self, chunk: bytes) -> None:
        room = self.limit - len(self._data)
        if len(chunk) > room:
            self.overflowed = True
            chunk = chunk[:max(room, 0)]
        self._data.extend(chunk)

    def text(self) -> str:
        return self._data.decode("utf-8", errors="replace")


async def _drain(stream: Optional[asyncio.StreamReader], sink: Any) -> None:
    if stream is None:
        return
    while True:
        chunk = await stream.read(_READ_CHUNK)
        if not chunk:
            return
        sink.write(chunk)


class FFmpegTool:
    """Runs ffmpeg/ffprobe for the four media operations of the pipeline.

    WHY: Keeps process management (spawning, draining, timeouts, exit
    codes) out of the orchestrator and gives it one error type to handle.

    RULES:
    - ffmpeg_path / ffprobe_path default to a PATH lookup
    - timeout_s bounds each invocation; None disables the bound
    - All operations overwrite their output (-y)
    """

    def __init__(
        self,
        ffmpeg_path: Optional[str] = None,
        ffprobe_path: Optional[str] = None,
        timeout_s: Optional[float] = FFMPEG_TIMEOUT_S,
        max_diagnostic_bytes: int = DEFAULT_MAX_DIAGNOSTIC_BYTES,
        max_stdout_bytes: int = DEFAULT_MAX_STDOUT_BYTES,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.ffmpeg_path = resolve_binary("ffmpeg", ffmpeg_path)
        self.ffprobe_path = resolve_binary("ffprobe", ffprobe_path)
        self.timeout_s = timeout_s
        self.max_diagnostic_bytes = max_diagnostic_bytes
        self.max_stdout_bytes = max_stdout_bytes
        self._log = logger or logging.getLogger(__name__)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def scale(self, input_path: Path, output_path: Path) -> Path:
        """Zoom the picture 1.2x and crop back to the original frame size."""
        args = [
            self.ffmpeg_path, "-y",
            "-i", str(input_path),
            "-vf", SCALE_FILTER,
            "-c:a", "copy",
            str(output_path),
        ]
        await self._run_to_file("scale", args, Path(output_path))
        return Path(output_path)

    async def extract_audio(self, video_path: Path, output_path: Path) -> Path:
        """Extract the audio stream at the highest VBR quality."""
        args = [
            self.ffmpeg_path, "-y",
            "-i", str(video_path),
            "-q:a", "0",
            "-map", "a",
            str(output_path),
        ]
        await self._run_to_file("extract_audio", args, Path(output_path))
        return Path(output_path)

    async def burn_captions(
        self, video_path: Path, captions_path: Path, output_path: Path
    ) -> Path:
        """Render the caption track into the video pixels."""
        video_filter = "subtitles=filename={}".format(escape_filter_path(captions_path))
        args = [
            self.ffmpeg_path, "-y",
            "-i", str(video_path),
            "-vf", video_filter,
            "-c:a", "copy",
            str(output_path),
        ]
        await self._run_to_file("burn_captions", args, Path(output_path))
        return Path(output_path)

    async def probe(self, video_path: Path) -> Dict[str, Any]:
        """Return ffprobe's format and stream metadata as a dict."""
        args = [
            self.ffprobe_path,
            "-v", "quiet",
            "-print_format", "json",
            "-show_format",
            "-show_streams",
            str(video_path),
        ]
        stdout, diagnostics = await self._run("probe", args, capture_stdout=True)
        try:
            info = json.loads(stdout)
        except ValueError as exc:
            raise ToolExecutionError(
                "probe", "ffprobe returned invalid JSON ({})".format(exc),
                returncode=0, diagnostics=diagnostics,
            ) from exc
        if not isinstance(info, dict):
            raise ToolExecutionError(
                "probe", "ffprobe returned {} instead of an object".format(
                    type(info).__name__
                ),
                returncode=0, diagnostics=diagnostics,
            )
        return info

    # ------------------------------------------------------------------
    # Process handling
    # ------------------------------------------------------------------

    async def _run_to_file(self, operation: str, args: List[str], output: Path) -> None:
        _, diagnostics = await self._run(operation, args)
        try:
            size = output.stat().st_size
        except FileNotFoundError:
            raise ToolExecutionError(
                operation, "no output file at {}".format(output),
                returncode=0, diagnostics=diagnostics,
            )
        if size == 0:
            raise ToolExecutionError(
                operation, "output file {} is empty".format(output),
                returncode=0, diagnostics=diagnostics,
            )

    async def _run(
        self, operation: str, args: List[str], capture_stdout: bool = False
    ) -> tuple[str, str]:
        """Run one tool invocation; return (stdout, stderr tail) on exit 0."""
        self._log.debug("Running %s: %s", operation, " ".join(args))
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE if capture_stdout else asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            raise ToolExecutionError(
                operation, "executable not found: {}".format(args[0])
            ) from exc
        except PermissionError as exc:
            raise ToolExecutionError(
                operation, "executable not runnable: {}".format(args[0])
            ) from exc

        stdout = _CappedBuffer(self.max_stdout_bytes)
        stderr = _TailBuffer(self.max_diagnostic_bytes)

        async def _communicate() -> int:
            await asyncio.gather(_drain(proc.stdout, stdout), _drain(proc.stderr, stderr))
            return await proc.wait()

        try:
            returncode = await asyncio.wait_for(_communicate(), timeout=self.timeout_s)
        except asyncio.TimeoutError:
            await _kill(proc)
            self._log.error("%s timed out after %ss", operation, self.timeout_s)
            raise ToolExecutionError(
                operation, "timed out after {}s".format(self.timeout_s),
                diagnostics=stderr.text(),
            )
        except asyncio.CancelledError:
            await _kill(proc)
            raise

        diagnostics = stderr.text()
        if stderr.truncated:
            diagnostics = "[... earlier output truncated ...]\n" + diagnostics

        if returncode != 0:
            self._log.error("%s failed with code %d", operation, returncode)
            raise ToolExecutionError(
                operation, "exit status {}".format(returncode),
                returncode=returncode, diagnostics=diagnostics,
            )
        if stdout.overflowed:
            raise ToolExecutionError(
                operation,
                "output exceeded {} bytes".format(self.max_stdout_bytes),
                returncode=returncode, diagnostics=diagnostics,
            )

        self._log.debug("%s output: %s", operation, diagnostics)
        return stdout.text(), diagnostics


async def _kill(proc: asyncio.subprocess.Process) -> None:
    """Kill a process if still running and reap it."""
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
    await proc.wait()
