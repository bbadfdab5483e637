"""FastAPI application exposing the captioning pipeline over HTTP.

WHY: The web front end uploads a video and expects the captioned video
back as a download. This module is the thin layer between that request
and CaptionPipeline: it validates and stores the upload, runs the
pipeline, and streams the result.

HOW: create_app() builds a FastAPI app around a Settings value. The
pipeline is built lazily on the first request (so the app can start, and
answer /health, without provider keys) unless one is injected. Uploads
are streamed to disk in chunks with a size cap. The output file is sent
with FileResponse and its job directory is removed after the response
has been sent.

RULES:
- Only video/* content types are accepted (400 otherwise)
- Uploads larger than max_file_size_mb are rejected with 413
- Any pipeline failure → 500 with the failure message as detail
- The download is named ``subtitled_<original filename>``
- The pipeline owns the stored upload and removes it on every path
"""

from __future__ import annotations

import logging
import random
import time
from pathlib import Path
from typing import Annotated, Optional

from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from starlette.background import BackgroundTask

from captionburn import __version__
from captionburn.config import FONT_SIZE_RANGE, Settings
from captionburn.core.pipeline import CaptionPipeline, ProcessOptions, build_pipeline
from captionburn.core.workspace import remove_file, remove_tree
from captionburn.server.models import ErrorResponse, HealthResponse
from captionburn.subtitles.renderer import StyleMode

logger = logging.getLogger(__name__)

_UPLOAD_CHUNK = 1024 * 1024


def _upload_name(original: str) -> str:
    """Unique on-disk name for an upload, keeping the original extension."""
    suffix = Path(original).suffix.lower()
    return "video-{}-{}{}".format(int(time.time() * 1000), random.randint(0, 10**9), suffix)


async def _store_upload(upload: UploadFile, target: Path, max_bytes: int) -> None:
    """Stream an upload to disk, enforcing the size cap.

    A partial file is removed on any failure, including the size cap.
    """
    target.parent.mkdir(parents=True, exist_ok=True)
    written = 0
    try:
        with open(target, "wb") as out:
            while True:
                chunk = await upload.read(_UPLOAD_CHUNK)
                if not chunk:
                    break
                written += len(chunk)
                if written > max_bytes:
                    raise HTTPException(
                        status_code=413,
                        detail="File too large (limit {} MB)".format(max_bytes // (1024 * 1024)),
                    )
                out.write(chunk)
    except BaseException:
        remove_file(target)
        raise


def create_app(
    settings: Optional[Settings] = None,
    pipeline: Optional[CaptionPipeline] = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Configuration; read from the environment when omitted.
        pipeline: Pre-built pipeline (tests); built from settings on first use otherwise.
    """
    settings = settings or Settings.from_env()

    app = FastAPI(
        title="captionburn API",
        description=(
            "Upload a video and receive it back with animated, word-by-word "
            "captions burned into the picture."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )
    app.state.settings = settings
    app.state.pipeline = pipeline

    def _get_pipeline(request: Request) -> CaptionPipeline:
        if request.app.state.pipeline is None:
            request.app.state.pipeline = build_pipeline(request.app.state.settings)
        return request.app.state.pipeline

    @app.post(
        "/api/subtitles/process",
        tags=["subtitles"],
        summary="Caption a video",
        description=(
            "Upload a video file (multipart field 'video'). The response is the "
            "captioned video as a download."
        ),
        response_class=FileResponse,
        responses={
            200: {"content": {"video/mp4": {}}, "description": "The captioned video"},
            400: {"model": ErrorResponse, "description": "Missing or non-video upload"},
            413: {"model": ErrorResponse, "description": "Upload too large"},
            500: {"model": ErrorResponse, "description": "Processing failed"},
        },
    )
    async def process_video(
        request: Request,
        video: Annotated[
            Optional[UploadFile],
            File(description="Video file to caption."),
        ] = None,
        use_ai_styling: Annotated[
            Optional[bool],
            Form(description="Use AI-assisted styling when configured."),
        ] = None,
        font_size: Annotated[
            Optional[int],
            Form(
                ge=FONT_SIZE_RANGE[0],
                le=FONT_SIZE_RANGE[1],
                description="Caption font size.",
            ),
        ] = None,
        scale_video: Annotated[
            Optional[bool],
            Form(description="Apply the 1.2x zoom before captioning."),
        ] = None,
    ) -> FileResponse:
        if video is None:
            raise HTTPException(status_code=400, detail="No video file provided")
        if not (video.content_type or "").startswith("video/"):
            raise HTTPException(status_code=400, detail="Only video files are allowed")

        original_name = Path(video.filename or "video.mp4").name
        upload_path = settings.upload_dir / _upload_name(original_name)
        await _store_upload(video, upload_path, settings.max_file_size_mb * 1024 * 1024)

        options = ProcessOptions(scale_video=scale_video, font_size=font_size)
        if use_ai_styling is not None:
            options.style_mode = StyleMode.AI if use_ai_styling else StyleMode.RULES

        try:
            output_path = await _get_pipeline(request).process_video(upload_path, options=options)
        except Exception as exc:
            logger.exception("Processing failed for upload %s", original_name)
            # Pipeline failures already removed the upload; this covers setup errors
            remove_file(upload_path)
            raise HTTPException(status_code=500, detail=str(exc) or "Failed to process video")

        return FileResponse(
            output_path,
            media_type="video/mp4",
            filename="subtitled_{}".format(original_name),
            background=BackgroundTask(remove_tree, output_path.parent),
        )

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["health"],
        summary="Health check",
    )
    async def health_check() -> HealthResponse:
        return HealthResponse(
            status="ok", version=__version__, ai_styling=settings.ai_styling_available
        )

    return app


app = create_app()


def run_api(host: str = "0.0.0.0", port: Optional[int] = None) -> None:
    """Entry point for ``captionburn serve``."""
    import uvicorn

    uvicorn.run(app, host=host, port=port or app.state.settings.port)
