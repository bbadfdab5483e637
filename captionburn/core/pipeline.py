"""Pipeline orchestrator — one video in, one captioned video out.

WHY: Captioning a video is a chain of stages that each depend on the
previous stage's file: scale → extract audio → transcribe → style → save
→ burn. Any stage can fail, and whatever happens, the job must not leave
intermediate files behind. This module owns that ordering and that
cleanup guarantee.

HOW: CaptionPipeline.run() creates a JobWorkspace and walks a Job through
its stages, awaiting each collaborator in turn:
  INIT → SCALED → AUDIO_EXTRACTED → TRANSCRIBED → STYLED → SAVED → BURNED → DONE
On success only the intermediates are removed and the output path is
returned. On any exception the job moves to FAILED, the whole workspace
(and the uploaded input) is removed best-effort, and the original
exception is re-raised unchanged.

RULES:
- Stages run strictly in order; stage N+1 only reads files stage N wrote
- A transcript with zero words is a TranscriptionError (no styling, no burn)
- Cleanup never raises; removal failures are logged per path
- The final output video is the only file that survives a successful job
- The input file is removed with the intermediates unless remove_input=False
- With scaling disabled the SCALED stage reuses the input video as-is
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

from captionburn.api.client import TranscriptionClient
from captionburn.api.styling import GeminiClient
from captionburn.config import Settings, clamp_font_size
from captionburn.core.ir import Job, Stage
from captionburn.core.workspace import JobWorkspace, remove_file, remove_files
from captionburn.errors import TranscriptionError
from captionburn.media.ffmpeg import FFmpegTool
from captionburn.subtitles.ai import AIStyler
from captionburn.subtitles.renderer import StyleMode, SubtitleRenderer


@dataclass
class ProcessOptions:
    """Per-request overrides of the pipeline defaults.

    None means "use the pipeline's default".
    """

    scale_video: Optional[bool] = None
    style_mode: Optional[StyleMode] = None
    font_size: Optional[int] = None


@dataclass
class JobResult:
    """Outcome of a successful run: the finished Job and its output file."""

    job: Job
    output_path: Path
    leftover_files: List[Path] = field(default_factory=list)


class CaptionPipeline:
    """Sequences the media, transcription, and rendering stages for a job.

    WHY: Each collaborator knows its own stage; none of them know about
    workspaces, ordering, or cleanup. The pipeline is the single owner of
    those concerns.

    RULES:
    - Collaborators are injected; the pipeline never builds them itself
    - on_stage, if given, is called after every stage change (FAILED too)
    - workspace_root is shared by concurrent jobs; isolation comes from
      unique workspace ids
    """

    def __init__(
        self,
        media: FFmpegTool,
        transcriber: TranscriptionClient,
        renderer: SubtitleRenderer,
        workspace_root: Path,
        scale_video: bool = True,
        style_mode: StyleMode = StyleMode.RULES,
        on_stage: Optional[Callable[[Job], None]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.media = media
        self.transcriber = transcriber
        self.renderer = renderer
        self.workspace_root = Path(workspace_root)
        self.scale_video = scale_video
        self.style_mode = StyleMode(style_mode)
        self.on_stage = on_stage
        self._log = logger or logging.getLogger(__name__)

    async def process_video(
        self,
        input_path: Path,
        options: Optional[ProcessOptions] = None,
        remove_input: bool = True,
    ) -> Path:
        """Caption one video and return the path of the burned output."""
        result = await self.run(input_path, options=options, remove_input=remove_input)
        return result.output_path

    async def run(
        self,
        input_path: Path,
        options: Optional[ProcessOptions] = None,
        remove_input: bool = True,
    ) -> JobResult:
        """Run every stage for one job.

        Raises:
            ToolExecutionError: ffmpeg failed in any media stage.
            AuthError, InvalidInputError, TranscriptionError: transcription
                failed, or returned no words.
            OSError: the caption document could not be written.
        """
        input_path = Path(input_path)
        options = options or ProcessOptions()
        scale = self.scale_video if options.scale_video is None else options.scale_video
        style_mode = options.style_mode or self.style_mode
        font_size = clamp_font_size(options.font_size) if options.font_size else None

        workspace = JobWorkspace.create(self.workspace_root)
        job = Job(input_path=input_path, workspace_id=workspace.id)
        self._log.info("Starting video processing: %s (job %s)", input_path, job.workspace_id)

        try:
            # 1. Scale video
            if scale:
                self._log.info("Step 1/7: Scaling video...")
                video_path = await self.media.scale(input_path, workspace.scaled_video)
            else:
                self._log.info("Step 1/7: Scaling disabled, using input video")
                video_path = input_path
            self._advance(job, Stage.SCALED)

            # 2. Extract audio
            self._log.info("Step 2/7: Extracting audio...")
            audio_path = await self.media.extract_audio(video_path, workspace.audio)
            self._advance(job, Stage.AUDIO_EXTRACTED)

            # 3. Transcribe
            self._log.info("Step 3/7: Transcribing audio...")
            transcript = await self.transcriber.transcribe(audio_path)
            if transcript.is_empty:
                raise TranscriptionError("No transcription data received: transcript has no words")
            job.word_count = len(transcript)
            self._advance(job, Stage.TRANSCRIBED)

            # 4-5. Render and style
            self._log.info("Step 4/7: Generating subtitle document...")
            self._log.info("Step 5/7: Styling subtitles (%s)...", style_mode.value)
            document = await self.renderer.render(
                transcript, style_mode=style_mode, font_size=font_size
            )
            self._advance(job, Stage.STYLED)

            # 6. Save
            self._log.info("Step 6/7: Saving subtitle file...")
            workspace.captions.write_text(document.to_ass(), encoding="utf-8")
            self._advance(job, Stage.SAVED)

            # 7. Burn in
            self._log.info("Step 7/7: Burning subtitles onto video...")
            output_path = await self.media.burn_captions(
                video_path, workspace.captions, workspace.output_video
            )
            self._advance(job, Stage.BURNED)
        except BaseException as exc:
            self._fail(job, workspace, exc, remove_input)
            raise

        self._log.info("Cleaning up temporary files...")
        intermediates = [workspace.scaled_video, workspace.audio, workspace.captions]
        if remove_input:
            intermediates.insert(0, input_path)
        leftovers = remove_files(intermediates, log=self._log)

        job.output_path = output_path
        self._advance(job, Stage.DONE)
        self._log.info("Video processing completed successfully: %s", output_path)
        return JobResult(job=job, output_path=output_path, leftover_files=leftovers)

    def _advance(self, job: Job, stage: Stage) -> None:
        job.advance(stage)
        self._log.debug("Job %s entered stage %s", job.workspace_id, stage.value)
        self._notify(job)

    def _notify(self, job: Job) -> None:
        if self.on_stage is not None:
            self.on_stage(job)

    def _fail(
        self,
        job: Job,
        workspace: JobWorkspace,
        exc: BaseException,
        remove_input: bool,
    ) -> None:
        """Move the job to FAILED and remove everything it created."""
        failed_at = job.stage
        job.fail(exc)
        self._log.error(
            "Video processing failed after stage %s: %s", failed_at.value, exc
        )
        workspace.remove(log=self._log)
        if remove_input:
            remove_file(job.input_path, log=self._log)
        try:
            self._notify(job)
        except Exception:
            self._log.exception("Stage callback failed for job %s", job.workspace_id)


def build_pipeline(settings: Settings, **kwargs) -> CaptionPipeline:
    """Assemble a CaptionPipeline and its collaborators from Settings.

    WHY: The CLI and the HTTP server both need the same wiring. This is
    the one place where configuration values become constructor arguments.

    RULES:
    - Raises ConfigError when the transcription key is missing
    - The AI styler is only built when a styling key is configured
    - Extra keyword arguments are passed to CaptionPipeline (e.g. on_stage)
    """
    media = FFmpegTool(
        ffmpeg_path=settings.ffmpeg_path,
        ffprobe_path=settings.ffprobe_path,
        timeout_s=settings.ffmpeg_timeout_s,
    )
    transcriber = TranscriptionClient.from_settings(settings)
    gemini = GeminiClient.from_settings(settings)
    renderer = SubtitleRenderer(
        ai_styler=AIStyler(gemini) if gemini is not None else None,
        font_size=settings.default_font_size,
    )
    style_mode = StyleMode.AI if settings.ai_styling_available else StyleMode.RULES
    return CaptionPipeline(
        media=media,
        transcriber=transcriber,
        renderer=renderer,
        workspace_root=settings.workspace_root,
        scale_video=settings.enable_video_scaling,
        style_mode=style_mode,
        **kwargs,
    )
