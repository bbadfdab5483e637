"""Per-job workspace directories and best-effort cleanup helpers.

WHY: Every job produces four files on disk (scaled video, audio, caption
track, output video). Concurrent jobs share one filesystem root, so each
job needs its own directory, and every exit path must be able to remove
what the job left behind without masking the job's real outcome.

HOW: JobWorkspace.create() allocates a directory named
``project-<nanosecond timestamp>`` under the root. Identifiers are strictly
increasing within the process and the directory is created with an
exclusive mkdir, so two jobs can never end up in the same directory even
across processes. Removal helpers log OSErrors instead of raising.

RULES:
- Workspace ids are unique per job; no locking is needed between jobs
- remove() is recursive and tolerant of partial or missing state
- remove_files() removes each file independently; one failure does not
  stop the others
- Cleanup helpers never raise OSError
"""

from __future__ import annotations

import logging
import shutil
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)

WORKSPACE_PREFIX = "project-"

SCALED_NAME = "scaled.mp4"
AUDIO_NAME = "audio.mp3"
CAPTIONS_NAME = "subtitles.ass"
OUTPUT_NAME = "output.mp4"

_id_lock = threading.Lock()
_last_id = 0


def next_workspace_id() -> str:
    """Return a new workspace id, strictly greater than any issued before.

    Based on time.time_ns(); if the clock has not advanced since the last
    call, the previous value plus one is used instead.
    """
    global _last_id
    with _id_lock:
        stamp = max(time.time_ns(), _last_id + 1)
        _last_id = stamp
    return "{}{}".format(WORKSPACE_PREFIX, stamp)


@dataclass
class JobWorkspace:
    """Directory holding one job's intermediate and final artifacts."""

    id: str
    path: Path

    @classmethod
    def create(cls, root: Path) -> JobWorkspace:
        """Allocate a fresh workspace directory under root.

        Retries with a new id if another process already created a
        directory with the same name.
        """
        root = Path(root)
        root.mkdir(parents=True, exist_ok=True)
        while True:
            workspace_id = next_workspace_id()
            path = root / workspace_id
            try:
                path.mkdir()
            except FileExistsError:
                logger.debug("Workspace %s already exists, picking another id", path)
                continue
            logger.debug("Created workspace %s", path)
            return cls(id=workspace_id, path=path)

    @property
    def scaled_video(self) -> Path:
        return self.path / SCALED_NAME

    @property
    def audio(self) -> Path:
        return self.path / AUDIO_NAME

    @property
    def captions(self) -> Path:
        return self.path / CAPTIONS_NAME

    @property
    def output_video(self) -> Path:
        return self.path / OUTPUT_NAME

    def remove(self, log: Optional[logging.Logger] = None) -> None:
        """Recursively remove the whole workspace (best-effort)."""
        remove_tree(self.path, log=log)


def remove_tree(path: Path, log: Optional[logging.Logger] = None) -> bool:
    """Remove a directory tree, logging failures. Returns True on success."""
    log = log or logger
    if not path.exists():
        return True
    try:
        shutil.rmtree(path)
    except OSError as exc:
        log.error("Failed to remove workspace %s: %s", path, exc)
        return False
    return True


def remove_file(path: Path, log: Optional[logging.Logger] = None) -> bool:
    """Remove one file, logging failures. A missing file counts as removed."""
    log = log or logger
    try:
        path.unlink()
    except FileNotFoundError:
        return True
    except OSError as exc:
        log.warning("Failed to delete %s: %s", path, exc)
        return False
    return True


def remove_files(
    paths: Iterable[Path], log: Optional[logging.Logger] = None
) -> List[Path]:
    """Remove every path independently; return the ones that could not be removed."""
    failed: List[Path] = []
    for path in paths:
        if not remove_file(path, log=log):
            failed.append(path)
    return failed
