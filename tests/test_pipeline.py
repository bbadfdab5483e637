"""Tests for the pipeline orchestrator, job state, and workspaces.

WHY: The orchestrator's guarantees are about ordering and cleanup: stages
run in sequence, an empty transcript stops the job before styling, and
no exit path leaves intermediate files behind. These are the properties
most likely to regress silently.

HOW: Media and transcription are replaced with small fakes that write
placeholder files and record calls; the renderer is the real one with a
deterministic colour picker. Tests are grouped:
  - TestSuccessfulRun: the three-word sample clip end to end
  - TestFailures: empty transcripts, tool errors, cancellation
  - TestOptions: per-request overrides
  - TestJobState: Job transitions
  - TestWorkspace: unique ids and cleanup helpers

RULES:
- Every test works inside tmp_path
- Fakes write real files so cleanup is observable on disk
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

import pytest

from captionburn.core.ir import Job, Stage, Transcript
from captionburn.core.pipeline import CaptionPipeline, ProcessOptions, build_pipeline
from captionburn.core.workspace import (
    JobWorkspace,
    next_workspace_id,
    remove_file,
    remove_files,
    remove_tree,
)
from captionburn.errors import ConfigError, ToolExecutionError, TranscriptionError
from captionburn.subtitles.ass import parse_ass
from captionburn.subtitles.renderer import StyleMode, SubtitleRenderer
from captionburn.subtitles.rules import PALETTE, RuleBasedStyler


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeMedia:
    """Stands in for FFmpegTool; writes placeholder files and records calls."""

    def __init__(self, fail_on: Optional[str] = None) -> None:
        self.fail_on = fail_on
        self.calls: List[tuple] = []
        self.captions_text = ""

    async def _produce(self, operation: str, output: Path, *inputs: Path) -> Path:
        self.calls.append((operation,) + inputs)
        if operation == self.fail_on:
            raise ToolExecutionError(
                operation, "exit status 1", returncode=1,
                diagnostics="Invalid data found when processing input",
            )
        output.write_bytes(b"media")
        return output

    async def scale(self, input_path, output_path):
        return await self._produce("scale", output_path, input_path)

    async def extract_audio(self, video_path, output_path):
        return await self._produce("extract_audio", output_path, video_path)

    async def burn_captions(self, video_path, captions_path, output_path):
        self.captions_text = Path(captions_path).read_text(encoding="utf-8")
        return await self._produce("burn_captions", output_path, video_path, captions_path)


class FakeTranscriber:
    def __init__(self, transcript: Transcript) -> None:
        self.transcript = transcript
        self.calls: List[Path] = []

    async def transcribe(self, audio_path):
        self.calls.append(audio_path)
        return self.transcript


class HangingTranscriber:
    async def transcribe(self, audio_path):
        await asyncio.sleep(3600)


@pytest.fixture
def input_video(tmp_path):
    path = tmp_path / "clip.mp4"
    path.write_bytes(b"original video")
    return path


@pytest.fixture
def renderer():
    return SubtitleRenderer(rules=RuleBasedStyler(color_picker=lambda palette: palette[0]))


def _pipeline(tmp_path, media, transcriber, renderer, **kwargs) -> CaptionPipeline:
    return CaptionPipeline(
        media=media,
        transcriber=transcriber,
        renderer=renderer,
        workspace_root=tmp_path / "temp",
        **kwargs,
    )


def _workspaces(tmp_path) -> List[Path]:
    root = tmp_path / "temp"
    return sorted(root.iterdir()) if root.exists() else []


# ---------------------------------------------------------------------------
# TestSuccessfulRun
# ---------------------------------------------------------------------------


class TestSuccessfulRun:
    """The sample clip runs through every stage and leaves one file."""

    def test_sample_clip(self, tmp_path, input_video, sample_transcript, renderer):
        media = FakeMedia()
        pipeline = _pipeline(tmp_path, media, FakeTranscriber(sample_transcript), renderer)

        output = asyncio.run(pipeline.process_video(input_video))

        assert output.name == "output.mp4"
        assert output.parent.name.startswith("project-")
        assert [p.name for p in output.parent.iterdir()] == ["output.mp4"]
        assert not input_video.exists()

        events = parse_ass(media.captions_text).events
        assert len(events) == 3
        assert "\\1c" not in events[0].text
        assert "\\1c{}".format(PALETTE[0]) in events[1].text
        assert "\\1c" not in events[2].text

    def test_stage_order(self, tmp_path, input_video, sample_transcript, renderer):
        seen: List[Stage] = []
        pipeline = _pipeline(
            tmp_path, FakeMedia(), FakeTranscriber(sample_transcript), renderer,
            on_stage=lambda job: seen.append(job.stage),
        )
        result = asyncio.run(pipeline.run(input_video))

        assert seen == [
            Stage.SCALED, Stage.AUDIO_EXTRACTED, Stage.TRANSCRIBED, Stage.STYLED,
            Stage.SAVED, Stage.BURNED, Stage.DONE,
        ]
        assert result.job.stage is Stage.DONE
        assert result.job.output_path == result.output_path
        assert result.job.word_count == 3
        assert result.leftover_files == []

    def test_stages_read_previous_outputs(self, tmp_path, input_video, sample_transcript, renderer):
        media = FakeMedia()
        transcriber = FakeTranscriber(sample_transcript)
        asyncio.run(_pipeline(tmp_path, media, transcriber, renderer).run(input_video))

        scale, extract, burn = media.calls
        assert scale == ("scale", input_video)
        assert extract[1].name == "scaled.mp4"
        assert transcriber.calls[0].name == "audio.mp3"
        assert burn[1].name == "scaled.mp4"
        assert burn[2].name == "subtitles.ass"

    def test_input_kept_when_requested(self, tmp_path, input_video, sample_transcript, renderer):
        pipeline = _pipeline(tmp_path, FakeMedia(), FakeTranscriber(sample_transcript), renderer)
        asyncio.run(pipeline.process_video(input_video, remove_input=False))
        assert input_video.read_bytes() == b"original video"

    def test_concurrent_jobs_use_separate_workspaces(self, tmp_path, sample_transcript, renderer):
        inputs = []
        for i in range(5):
            path = tmp_path / "clip{}.mp4".format(i)
            path.write_bytes(b"v")
            inputs.append(path)
        pipeline = _pipeline(tmp_path, FakeMedia(), FakeTranscriber(sample_transcript), renderer)

        async def run_all():
            return await asyncio.gather(*(pipeline.process_video(p) for p in inputs))

        outputs = asyncio.run(run_all())
        assert len({o.parent for o in outputs}) == 5
        assert all(o.exists() for o in outputs)


# ---------------------------------------------------------------------------
# TestFailures
# ---------------------------------------------------------------------------


class TestFailures:
    """Failures move the job to FAILED and remove everything it created."""

    def test_empty_transcript_fails_before_styling(self, tmp_path, input_video):
        media = FakeMedia()
        styled = []

        class RecordingRules(RuleBasedStyler):
            async def style(self, document):
                styled.append(document)
                return await super().style(document)

        seen: List[Stage] = []
        pipeline = _pipeline(
            tmp_path, media, FakeTranscriber(Transcript()),
            SubtitleRenderer(rules=RecordingRules()),
            on_stage=lambda job: seen.append(job.stage),
        )

        with pytest.raises(TranscriptionError, match="No transcription data"):
            asyncio.run(pipeline.process_video(input_video))

        assert styled == []
        assert [c[0] for c in media.calls] == ["scale", "extract_audio"]
        assert seen[-1] is Stage.FAILED
        assert Stage.TRANSCRIBED not in seen
        assert _workspaces(tmp_path) == []
        assert not input_video.exists()

    def test_tool_failure_surfaces_diagnostics(
        self, tmp_path, input_video, sample_transcript, renderer
    ):
        pipeline = _pipeline(
            tmp_path, FakeMedia(fail_on="burn_captions"),
            FakeTranscriber(sample_transcript), renderer,
        )
        with pytest.raises(ToolExecutionError) as info:
            asyncio.run(pipeline.process_video(input_video))

        assert "Invalid data found when processing input" in str(info.value)
        assert _workspaces(tmp_path) == []
        assert not input_video.exists()

    def test_failure_keeps_input_when_requested(
        self, tmp_path, input_video, sample_transcript, renderer
    ):
        pipeline = _pipeline(
            tmp_path, FakeMedia(fail_on="scale"), FakeTranscriber(sample_transcript), renderer
        )
        with pytest.raises(ToolExecutionError):
            asyncio.run(pipeline.process_video(input_video, remove_input=False))
        assert input_video.exists()
        assert _workspaces(tmp_path) == []

    def test_failed_job_records_error(self, tmp_path, input_video, sample_transcript, renderer):
        jobs: List[Job] = []
        pipeline = _pipeline(
            tmp_path, FakeMedia(fail_on="extract_audio"),
            FakeTranscriber(sample_transcript), renderer,
            on_stage=jobs.append,
        )
        with pytest.raises(ToolExecutionError) as info:
            asyncio.run(pipeline.run(input_video))
        job = jobs[-1]
        assert job.stage is Stage.FAILED
        assert job.error is info.value
        assert job.output_path is None

    def test_failing_callback_does_not_mask_error(
        self, tmp_path, input_video, sample_transcript, renderer
    ):
        def on_stage(job):
            if job.stage is Stage.FAILED:
                raise RuntimeError("callback broke")

        pipeline = _pipeline(
            tmp_path, FakeMedia(fail_on="scale"),
            FakeTranscriber(sample_transcript), renderer,
            on_stage=on_stage,
        )
        with pytest.raises(ToolExecutionError):
            asyncio.run(pipeline.run(input_video))
        assert _workspaces(tmp_path) == []

    def test_cancellation_cleans_up(self, tmp_path, input_video, renderer):
        pipeline = _pipeline(tmp_path, FakeMedia(), HangingTranscriber(), renderer)

        async def cancel_mid_transcription():
            task = asyncio.ensure_future(pipeline.process_video(input_video))
            await asyncio.sleep(0.05)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(cancel_mid_transcription())
        assert _workspaces(tmp_path) == []


# ---------------------------------------------------------------------------
# TestOptions
# ---------------------------------------------------------------------------


class TestOptions:
    """ProcessOptions override the pipeline defaults for one job."""

    def test_scaling_disabled(self, tmp_path, input_video, sample_transcript, renderer):
        media = FakeMedia()
        pipeline = _pipeline(tmp_path, media, FakeTranscriber(sample_transcript), renderer)
        asyncio.run(pipeline.process_video(
            input_video, options=ProcessOptions(scale_video=False), remove_input=False
        ))
        assert [c[0] for c in media.calls] == ["extract_audio", "burn_captions"]
        assert media.calls[0][1] == input_video
        assert media.calls[1][1] == input_video

    def test_font_size_clamped(self, tmp_path, input_video, sample_transcript, renderer):
        media = FakeMedia()
        pipeline = _pipeline(tmp_path, media, FakeTranscriber(sample_transcript), renderer)
        asyncio.run(pipeline.process_video(input_video, options=ProcessOptions(font_size=99)))
        assert parse_ass(media.captions_text).font_size == 48

    def test_ai_mode_without_styler_uses_rules(
        self, tmp_path, input_video, sample_transcript, renderer
    ):
        media = FakeMedia()
        pipeline = _pipeline(
            tmp_path, media, FakeTranscriber(sample_transcript), renderer,
            style_mode=StyleMode.AI,
        )
        asyncio.run(pipeline.process_video(input_video))
        assert "\\1c" in parse_ass(media.captions_text).events[1].text

    def test_build_pipeline_requires_key(self, settings):
        with pytest.raises(ConfigError):
            build_pipeline(replace(settings, groq_api_key=None))

    def test_build_pipeline_modes(self, settings):
        assert build_pipeline(settings).style_mode is StyleMode.RULES
        pipeline = build_pipeline(
            replace(settings, gemini_api_key="g-key", use_ai_styling=True)
        )
        assert pipeline.style_mode is StyleMode.AI
        assert pipeline.renderer.ai_styler is not None


# ---------------------------------------------------------------------------
# TestJobState
# ---------------------------------------------------------------------------


class TestJobState:
    """Job moves forward and cannot leave a terminal stage."""

    def test_advance_and_fail(self, tmp_path):
        job = Job(input_path=tmp_path / "x.mp4", workspace_id="project-1")
        job.advance(Stage.SCALED)
        error = ValueError("boom")
        job.fail(error)
        assert job.stage is Stage.FAILED
        assert job.error is error

    def test_stages_in_order(self, tmp_path):
        job = Job(input_path=tmp_path / "x.mp4", workspace_id="project-1")
        for stage in (Stage.SCALED, Stage.AUDIO_EXTRACTED, Stage.TRANSCRIBED,
                      Stage.STYLED, Stage.SAVED, Stage.BURNED, Stage.DONE):
            job.advance(stage)
        assert job.stage is Stage.DONE

    def test_skipping_a_stage_rejected(self, tmp_path):
        job = Job(input_path=tmp_path / "x.mp4", workspace_id="project-1")
        with pytest.raises(RuntimeError):
            job.advance(Stage.TRANSCRIBED)
        assert job.stage is Stage.INIT

    def test_moving_back_rejected(self, tmp_path):
        job = Job(input_path=tmp_path / "x.mp4", workspace_id="project-1",
                  stage=Stage.STYLED)
        with pytest.raises(RuntimeError):
            job.advance(Stage.SCALED)
        with pytest.raises(RuntimeError):
            job.advance(Stage.FAILED)
        assert job.stage is Stage.STYLED

    def test_terminal_is_absorbing(self, tmp_path):
        job = Job(input_path=tmp_path / "x.mp4", workspace_id="project-1", stage=Stage.DONE)
        with pytest.raises(RuntimeError):
            job.advance(Stage.SCALED)
        with pytest.raises(RuntimeError):
            job.fail(ValueError("late"))


# ---------------------------------------------------------------------------
# TestWorkspace
# ---------------------------------------------------------------------------


class TestWorkspace:
    """Workspace ids are unique and cleanup helpers never raise."""

    def test_ids_strictly_increase(self):
        ids = [int(next_workspace_id()[len("project-"):]) for _ in range(1000)]
        assert ids == sorted(set(ids))

    def test_create_allocates_distinct_directories(self, tmp_path):
        spaces = [JobWorkspace.create(tmp_path) for _ in range(20)]
        assert len({s.path for s in spaces}) == 20
        assert all(s.path.is_dir() for s in spaces)
        assert spaces[0].captions.name == "subtitles.ass"

    def test_remove_is_recursive(self, tmp_path):
        space = JobWorkspace.create(tmp_path)
        space.audio.write_bytes(b"a")
        (space.path / "nested").mkdir()
        space.remove()
        assert not space.path.exists()

    def test_remove_missing_is_fine(self, tmp_path):
        assert remove_tree(tmp_path / "gone")
        assert remove_file(tmp_path / "gone.mp4")

    def test_remove_files_reports_failures(self, tmp_path):
        keep = tmp_path / "dir-not-file"
        keep.mkdir()
        ok = tmp_path / "a.mp3"
        ok.write_bytes(b"a")
        failed = remove_files([keep, ok])
        assert failed == [keep]
        assert not ok.exists()
