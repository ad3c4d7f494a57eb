"""
models.py — Core data model: templates, projects and captured images.

Projects are replaced wholesale on every change (see ProjectStore), so the
dataclasses here are treated as values: build a new one with
dataclasses.replace() instead of mutating a stored instance.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


def new_id() -> str:
    """Fresh identifier; random UUIDs are never reissued after deletion."""
    return uuid.uuid4().hex


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Template:
    """A named, reusable tag set used to seed new projects."""

    id: str
    name: str
    tags: list[str]
    description: str = ""
    created_at: datetime = field(default_factory=utc_now)


@dataclass
class CapturedImage:
    """A committed capture inside a project."""

    id: str
    filename: str
    tags: list[str]  # selection at capture time, in selection order
    timestamp: datetime
    sequence_number: int
    note: str = ""
    payload: bytes = b""  # pre-encoded image (JPEG), stored as-is


@dataclass
class Project:
    """A project owns its tag vocabulary and its ordered image list."""

    id: str
    name: str
    tags: list[str]  # vocabulary — only ever grows
    current_tags: list[str] = field(default_factory=list)
    images: list[CapturedImage] = field(default_factory=list)
    last_modified: datetime = field(default_factory=utc_now)
    template_id: Optional[str] = None  # provenance only, never dereferenced

    @property
    def image_count(self) -> int:
        return len(self.images)
