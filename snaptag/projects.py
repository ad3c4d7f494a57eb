"""
projects.py — Project Store.

Holds every project plus the active-project reference. Each operation
validates first and then swaps in a fully built replacement Project, so a
rejected call leaves the store untouched and readers never observe a
half-applied change. Subscribers are notified after each successful mutation
(the workspace uses this to autosave).
"""

from __future__ import annotations

import dataclasses
import logging
from datetime import datetime
from typing import Callable, Iterable, Optional

from . import PROJECT_NAME
from .errors import ValidationError
from .models import CapturedImage, Project, Template, new_id, utc_now
from .sequencer import next_sequence
from .tags import require_tag, sanitize, unique_tags

logger = logging.getLogger(f"{PROJECT_NAME.lower()}.projects")


class ProjectStore:
    """In-memory collection of projects, keyed by id, in creation order."""

    def __init__(self, projects: Optional[Iterable[Project]] = None, active_project_id: Optional[str] = None):
        self._projects = {p.id: p for p in (projects or [])}  # type: dict[str, Project]
        self._active_id = active_project_id if active_project_id in self._projects else None
        self._listeners = []  # type: list[Callable[[], None]]

    # ── Subscription ────────────────────────────────────────────────────

    def subscribe(self, listener: Callable[[], None]) -> None:
        """Register a callback invoked after every successful mutation."""
        self._listeners.append(listener)

    def _changed(self) -> None:
        for listener in self._listeners:
            listener()

    # ── Read access ─────────────────────────────────────────────────────

    def get(self, project_id: str) -> Optional[Project]:
        return self._projects.get(project_id)

    def list(self) -> list[Project]:
        return list(self._projects.values())

    def __len__(self) -> int:
        return len(self._projects)

    @property
    def active_project_id(self) -> Optional[str]:
        return self._active_id

    @property
    def active_project(self) -> Optional[Project]:
        if self._active_id is None:
            return None
        return self._projects.get(self._active_id)

    def find_image(self, project_id: str, image_id: str) -> Optional[CapturedImage]:
        project = self._require(project_id)
        for img in project.images:
            if img.id == image_id:
                return img
        return None

    def _require(self, project_id: str) -> Project:
        project = self._projects.get(project_id)
        if project is None:
            raise ValidationError(f"Project not found: {project_id}")
        return project

    def _replace(self, project: Project) -> None:
        self._projects[project.id] = project

    def _validated_selection(self, project: Project, tags: Iterable[str]) -> list[str]:
        selection = unique_tags(tags or [])
        if not selection:
            raise ValidationError("Select at least one tag")
        unknown = [t for t in selection if t not in project.tags]
        if unknown:
            raise ValidationError(f"Tags not in project '{project.name}': {', '.join(unknown)}")
        return selection

    # ── Mutations ───────────────────────────────────────────────────────

    def create_project(
        self,
        name: str,
        template: Optional[Template] = None,
        raw_tag: Optional[str] = None,
    ) -> Project:
        """Create a project seeded from a template or a single raw tag.

        The template wins when both are given. The new project becomes active.
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Please enter a project name")

        template_id = None
        if template is not None and template.tags:
            tags = list(template.tags)
            template_id = template.id
        else:
            tag = sanitize(raw_tag or "")
            if not tag:
                raise ValidationError("Please select a template or enter an initial tag")
            tags = [tag]

        project = Project(
            id=new_id(),
            name=name,
            tags=tags,
            current_tags=list(tags),
            images=[],
            last_modified=utc_now(),
            template_id=template_id,
        )
        self._replace(project)
        self._active_id = project.id
        logger.info(f"Created project '{name}' with tags {tags}")
        self._changed()
        return project

    def delete_project(self, project_id: str) -> bool:
        """Remove a project if present, clearing the active reference if needed."""
        removed = self._projects.pop(project_id, None)
        if removed is None:
            logger.debug(f"Project {project_id} not found, nothing to delete")
            return False
        if self._active_id == project_id:
            self._active_id = None
        logger.info(f"Deleted project '{removed.name}' ({removed.image_count} images)")
        self._changed()
        return True

    def select(self, project_id: str) -> Project:
        """Make an existing project the active one."""
        project = self._require(project_id)
        self._active_id = project.id
        self._changed()
        return project

    def set_current_tags(self, project_id: str, tags: Iterable[str]) -> Project:
        """Replace the tag selection used for the next capture."""
        project = self._require(project_id)
        selection = self._validated_selection(project, tags)
        updated = dataclasses.replace(project, current_tags=selection)
        self._replace(updated)
        logger.debug(f"Project '{project.name}' current tags → {selection}")
        self._changed()
        return updated

    def add_custom_tag(self, project_id: str, raw_tag: str) -> str:
        """Add a tag to the project vocabulary. Returns the sanitized tag.

        Raises InvalidTag when the input sanitizes to nothing. Adding a tag
        that already exists is a no-op. The current selection is left alone.
        """
        project = self._require(project_id)
        tag = require_tag(raw_tag)
        if tag in project.tags:
            return tag
        self._replace(dataclasses.replace(project, tags=project.tags + [tag]))
        logger.info(f"Added tag '{tag}' to project '{project.name}'")
        self._changed()
        return tag

    def commit_capture(
        self,
        project_id: str,
        tags: Iterable[str],
        note: str = "",
        payload: bytes = b"",
        timestamp: Optional[datetime] = None,
    ) -> CapturedImage:
        """Append a new image to a project, naming it from the current image list."""
        project = self._require(project_id)
        selection = self._validated_selection(project, tags)
        seq = next_sequence(selection, project.images)

        image = CapturedImage(
            id=new_id(),
            filename=seq.filename,
            tags=selection,
            timestamp=timestamp or utc_now(),
            sequence_number=seq.sequence_number,
            note=(note or "").strip(),
            payload=payload or b"",
        )
        self._replace(
            dataclasses.replace(
                project,
                images=project.images + [image],
                last_modified=utc_now(),
            )
        )
        logger.info(f"Captured {image.filename} into '{project.name}'")
        self._changed()
        return image

    def delete_image(self, project_id: str, image_id: str) -> bool:
        """Remove an image from a project. Returns False if it was not there."""
        project = self._require(project_id)
        remaining = [img for img in project.images if img.id != image_id]
        if len(remaining) == len(project.images):
            logger.debug(f"Image {image_id} not in project '{project.name}'")
            return False
        self._replace(dataclasses.replace(project, images=remaining, last_modified=utc_now()))
        logger.info(f"Deleted image {image_id} from '{project.name}'")
        self._changed()
        return True
