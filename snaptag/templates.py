"""
templates.py — Template Store.

Templates are named tag sets. A project created from a template copies its
tags, so deleting a template never affects existing projects.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional

from . import PROJECT_NAME
from .errors import ValidationError
from .models import Template, new_id, utc_now
from .tags import sanitize, unique_tags

logger = logging.getLogger(f"{PROJECT_NAME.lower()}.templates")


class TemplateStore:
    """In-memory collection of templates, keyed by id, in creation order."""

    def __init__(self, templates: Optional[Iterable[Template]] = None):
        self._templates = {t.id: t for t in (templates or [])}  # type: dict[str, Template]
        self._listeners = []  # type: list[Callable[[], None]]

    def subscribe(self, listener: Callable[[], None]) -> None:
        """Register a callback invoked after every successful mutation."""
        self._listeners.append(listener)

    def _changed(self) -> None:
        for listener in self._listeners:
            listener()

    def create_template(self, name: str, raw_tags: Iterable[str], description: str = "") -> Template:
        """Create a template from raw tag input.

        Tags are sanitized; empty results are dropped and duplicates collapse
        to their first occurrence. Raises ValidationError if the name is blank
        or no usable tag remains.
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Please enter a template name")

        tags = unique_tags(t for t in (sanitize(raw) for raw in raw_tags or []) if t)
        if not tags:
            raise ValidationError("Please enter at least one valid tag")

        template = Template(
            id=new_id(),
            name=name,
            tags=tags,
            description=(description or "").strip(),
            created_at=utc_now(),
        )
        self._templates[template.id] = template
        logger.info(f"Created template '{template.name}' with tags {tags}")
        self._changed()
        return template

    def delete_template(self, template_id: str) -> bool:
        """Remove a template if present. Returns True if something was removed."""
        removed = self._templates.pop(template_id, None)
        if removed is None:
            logger.debug(f"Template {template_id} not found, nothing to delete")
            return False
        logger.info(f"Deleted template '{removed.name}'")
        self._changed()
        return True

    def get(self, template_id: str) -> Optional[Template]:
        return self._templates.get(template_id)

    def list(self) -> list[Template]:
        return list(self._templates.values())

    def __len__(self) -> int:
        return len(self._templates)
