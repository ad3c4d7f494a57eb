"""
workspace.py — Stores plus autosave, wired together.

Holds one TemplateStore and one ProjectStore, rehydrated from a
StateAdapter at open time. After every successful store mutation the whole
state is saved. A failed save is logged and remembered in last_save_error;
the in-memory change stands.
"""

from __future__ import annotations

import logging
from typing import Optional

from . import PROJECT_NAME
from .errors import PersistenceFailure
from .frames import FrameSource
from .models import Project
from .persistence import StateAdapter
from .projects import ProjectStore
from .session import CaptureSession
from .storage import KeyValueStore
from .templates import TemplateStore

logger = logging.getLogger(f"{PROJECT_NAME.lower()}.workspace")


class Workspace:
    def __init__(self, templates: TemplateStore, projects: ProjectStore, adapter: StateAdapter):
        self.templates = templates
        self.projects = projects
        self.adapter = adapter
        self.last_save_error = None  # type: Optional[str]
        templates.subscribe(self.save)
        projects.subscribe(self.save)

    @classmethod
    def open(cls, store: KeyValueStore) -> "Workspace":
        """Load state from store and return an autosaving workspace."""
        adapter = StateAdapter(store)
        state = adapter.load()
        return cls(
            TemplateStore(state.templates),
            ProjectStore(state.projects, state.active_project_id),
            adapter,
        )

    def save(self) -> bool:
        """Persist the current state. Returns False (and logs) on failure."""
        try:
            self.adapter.save(self.projects.list(), self.templates.list(), self.projects.active_project_id)
        except PersistenceFailure as e:
            self.last_save_error = str(e)
            logger.error(f"{e} — changes are kept in memory only")
            return False
        self.last_save_error = None
        return True

    def create_project(
        self,
        name: str,
        template_id: Optional[str] = None,
        raw_tag: Optional[str] = None,
    ) -> Project:
        """Create a project from a template id or a raw tag.

        An unknown template id counts as no template; the raw tag is then
        required.
        """
        template = self.templates.get(template_id) if template_id else None
        if template_id and template is None:
            logger.warning(f"Template {template_id} not found")
        return self.projects.create_project(name, template=template, raw_tag=raw_tag)

    def session(self, frame_source: FrameSource) -> CaptureSession:
        return CaptureSession(self.projects, frame_source)
