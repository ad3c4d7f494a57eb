"""
session.py — Capture Session.

Orchestrates one capture at a time:

    capture()   active project? tags selected? → acquire frame →
                name it against the current image list → hold as pending
    finalize()  attach optional note → ProjectStore.commit_capture
    abandon()   drop the pending image

Nothing touches the project until finalize(). An abandoned or replaced
pending image simply disappears.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from . import PROJECT_NAME
from .errors import FrameSourceError, NoActiveProject, NoPendingImage, NoTagsSelected
from .frames import FrameSource
from .models import CapturedImage, utc_now
from .projects import ProjectStore
from .sequencer import next_sequence

logger = logging.getLogger(f"{PROJECT_NAME.lower()}.session")


@dataclass
class PendingImage:
    """A captured frame waiting for its note before being committed."""

    project_id: str
    payload: bytes
    filename: str
    sequence_number: int
    tags: list[str]
    timestamp: datetime


class CaptureSession:
    def __init__(
        self,
        projects: ProjectStore,
        frame_source: FrameSource,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.projects = projects
        self.frame_source = frame_source
        self.clock = clock
        self.pending = None  # type: Optional[PendingImage]

    def capture(self) -> Optional[PendingImage]:
        """Grab a frame for the active project.

        Raises NoActiveProject / NoTagsSelected when preconditions fail.
        Returns None when the frame source fails; nothing is recorded then.
        """
        project = self.projects.active_project
        if project is None:
            raise NoActiveProject()
        if not project.current_tags:
            raise NoTagsSelected()

        if self.pending is not None:
            logger.info(f"Discarding unfinalized capture {self.pending.filename}")
            self.pending = None

        try:
            frame = self.frame_source.acquire()
        except FrameSourceError as e:
            logger.warning(f"No image produced: {e}")
            return None

        tags = list(project.current_tags)
        seq = next_sequence(tags, project.images)
        self.pending = PendingImage(
            project_id=project.id,
            payload=frame.payload,
            filename=seq.filename,
            sequence_number=seq.sequence_number,
            tags=tags,
            timestamp=frame.taken_at or self.clock(),
        )
        logger.debug(f"Pending capture {seq.filename} for '{project.name}'")
        return self.pending

    def finalize(self, note: str = "") -> CapturedImage:
        """Commit the pending image with an optional note."""
        pending = self.pending
        if pending is None:
            raise NoPendingImage("No captured image to save")

        image = self.projects.commit_capture(
            pending.project_id,
            pending.tags,
            note=note,
            payload=pending.payload,
            timestamp=pending.timestamp,
        )
        self.pending = None
        if image.filename != pending.filename:
            logger.info(f"Capture renamed {pending.filename} → {image.filename} (project changed before save)")
        return image

    def abandon(self) -> None:
        if self.pending is not None:
            logger.debug(f"Abandoned capture {self.pending.filename}")
        self.pending = None
