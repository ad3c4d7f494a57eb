"""
persistence.py — Persistence adapter for SnapTag state.

Mirrors the Project Store, the Template Store and the active-project id into a
durable key-value store, one JSON document per key:

  "projects":
    {
      "version": 1,
      "projects": [
        {
          "id": "9f1c...",
          "name": "Site1",
          "tags": ["BLDG", "ROOF"],
          "currentTags": ["ROOF"],
          "imageCount": 1,
          "lastModified": "2024-05-01T09:30:12.123456+00:00",
          "templateId": "4b7e...",
          "images": [
            {
              "id": "c0de...",
              "filename": "ROOF_0001.jpg",
              "note": "north slope",
              "timestamp": "2024-05-01T09:30:11.987654+00:00",
              "tags": ["ROOF"],
              "sequenceNumber": 1,
              "payloadRef": "data:image/jpeg;base64,/9j/4AAQ..."
            }
          ]
        }
      ]
    }

  "templates":       {"version": 1, "templates": [{id, name, tags, description, createdAt}]}
  "active_project":  {"version": 1, "activeProjectId": "9f1c..." | null}

Timestamps are ISO-8601 with offset and microseconds, so they load back to the
same instant. imageCount is written for readers of the raw document but is
recomputed from the image list on load.

Loading never fails the caller: a missing key means an empty collection, and a
corrupt document (bad JSON, wrong version, malformed record) is logged and
treated as empty for that key only. The corrupt bytes are first moved aside
with KeyValueStore.quarantine, so the next save cannot overwrite them.

A project whose image or current tags are missing from its vocabulary is
repaired on load by appending those tags to the vocabulary.
"""

from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from . import ACTIVE_PROJECT_KEY, PROJECT_NAME, PROJECTS_KEY, TEMPLATES_KEY
from .errors import PersistenceFailure
from .models import CapturedImage, Project, Template
from .storage import KeyValueStore
from .tags import is_valid_tag, unique_tags

logger = logging.getLogger(f"{PROJECT_NAME.lower()}.persistence")

STATE_VERSION = 1
PAYLOAD_PREFIX = "data:image/jpeg;base64,"


class CorruptState(ValueError):
    """A stored document could not be decoded."""


@dataclass
class LoadedState:
    """Everything needed to rehydrate the stores."""

    projects: list[Project] = field(default_factory=list)
    templates: list[Template] = field(default_factory=list)
    active_project_id: Optional[str] = None


# ── Record conversion ──────────────────────────────────────────────────


def _encode_payload(payload: bytes) -> str:
    if not payload:
        return ""
    return PAYLOAD_PREFIX + base64.b64encode(payload).decode("ascii")


def _decode_payload(ref: str) -> bytes:
    if not ref:
        return b""
    _, _, data = ref.partition(",")
    return base64.b64decode(data, validate=True)


def _tags(values: list) -> list[str]:
    tags = [str(t) for t in values]
    bad = [t for t in tags if not is_valid_tag(t)]
    if bad:
        raise ValueError(f"invalid tags {bad}")
    return tags


def _image_to_entry(img: CapturedImage) -> dict:
    return {
        "id": img.id,
        "filename": img.filename,
        "note": img.note,
        "timestamp": img.timestamp.isoformat(),
        "tags": list(img.tags),
        "sequenceNumber": img.sequence_number,
        "payloadRef": _encode_payload(img.payload),
    }


def _entry_to_image(entry: dict) -> CapturedImage:
    return CapturedImage(
        id=str(entry["id"]),
        filename=str(entry["filename"]),
        tags=_tags(entry["tags"]),
        timestamp=datetime.fromisoformat(entry["timestamp"]),
        sequence_number=int(entry["sequenceNumber"]),
        note=entry.get("note") or "",
        payload=_decode_payload(entry.get("payloadRef") or ""),
    )


def _project_to_entry(project: Project) -> dict:
    entry = {
        "id": project.id,
        "name": project.name,
        "tags": list(project.tags),
        "currentTags": list(project.current_tags),
        "imageCount": project.image_count,
        "lastModified": project.last_modified.isoformat(),
        "images": [_image_to_entry(img) for img in project.images],
    }
    if project.template_id is not None:
        entry["templateId"] = project.template_id
    return entry


def _entry_to_project(entry: dict) -> Project:
    project = Project(
        id=str(entry["id"]),
        name=str(entry["name"]),
        tags=_tags(entry["tags"]),
        current_tags=_tags(entry.get("currentTags", [])),
        images=[_entry_to_image(e) for e in entry.get("images", [])],
        last_modified=datetime.fromisoformat(entry["lastModified"]),
        template_id=entry.get("templateId"),
    )
    vocabulary = unique_tags(project.tags + project.current_tags + [t for img in project.images for t in img.tags])
    missing = [t for t in vocabulary if t not in project.tags]
    if missing:
        logger.warning(f"Project '{project.name}': tags {missing} used but not in vocabulary, adding them")
        project.tags = vocabulary
    stored_count = entry.get("imageCount")
    if stored_count is not None and stored_count != project.image_count:
        logger.warning(
            f"Project '{project.name}': stored imageCount {stored_count} != {project.image_count} images, using image list"
        )
    return project


def _template_to_entry(template: Template) -> dict:
    return {
        "id": template.id,
        "name": template.name,
        "tags": list(template.tags),
        "description": template.description,
        "createdAt": template.created_at.isoformat(),
    }


def _entry_to_template(entry: dict) -> Template:
    return Template(
        id=str(entry["id"]),
        name=str(entry["name"]),
        tags=_tags(entry["tags"]),
        description=entry.get("description") or "",
        created_at=datetime.fromisoformat(entry["createdAt"]),
    )


# ── Adapter ────────────────────────────────────────────────────────────


class StateAdapter:
    """
    Serializes SnapTag state to a KeyValueStore and back.

    Usage:
        adapter = StateAdapter(DirectoryStore(state_dir))
        state = adapter.load()
        ...
        adapter.save(projects.list(), templates.list(), projects.active_project_id)
    """

    def __init__(self, store: KeyValueStore):
        self.store = store

    def save(self, projects: list[Project], templates: list[Template], active_project_id: Optional[str]) -> None:
        """Write all three documents. Raises PersistenceFailure on storage errors.

        All documents are encoded before the first write. Each key is written
        atomically, but the three writes are not: if one fails, keys written
        before it hold the new state and the rest keep the previous one.
        The error names the key that failed.
        """
        documents = {
            PROJECTS_KEY: {"version": STATE_VERSION, "projects": [_project_to_entry(p) for p in projects]},
            TEMPLATES_KEY: {"version": STATE_VERSION, "templates": [_template_to_entry(t) for t in templates]},
            ACTIVE_PROJECT_KEY: {"version": STATE_VERSION, "activeProjectId": active_project_id},
        }
        encoded = {key: json.dumps(doc, separators=(",", ":")).encode("utf-8") for key, doc in documents.items()}
        for key, value in encoded.items():
            try:
                self.store.set(key, value)
            except OSError as e:
                raise PersistenceFailure(f"Failed to save {key}: {e}") from e
        logger.debug(f"State saved: {len(projects)} projects, {len(templates)} templates")

    def _quarantine(self, key: str) -> None:
        try:
            backup = self.store.quarantine(key)
        except OSError as e:
            logger.error(f"Could not back up corrupt {key} data, it will be overwritten on next save: {e}")
            return
        if backup is not None:
            logger.warning(f"Corrupt {key} data kept at {backup}")

    def _read_document(self, key: str) -> Optional[dict]:
        try:
            raw = self.store.get(key)
        except OSError as e:
            raise CorruptState(f"unreadable: {e}") from e
        if raw is None:
            return None
        try:
            doc = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise CorruptState(f"invalid JSON: {e}") from e
        if not isinstance(doc, dict):
            raise CorruptState("not a JSON object")
        if doc.get("version") != STATE_VERSION:
            raise CorruptState(f"version mismatch (got {doc.get('version')}, need {STATE_VERSION})")
        return doc

    def _load_records(self, key: str, field_name: str, convert) -> list:
        try:
            doc = self._read_document(key)
            if doc is None:
                logger.info(f"No stored {key}, starting fresh")
                return []
            return [convert(entry) for entry in doc[field_name]]
        except (CorruptState, KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Corrupt {key} data, starting fresh: {e}")
            self._quarantine(key)
            return []

    def load(self) -> LoadedState:
        """Read state back. Never raises; bad or missing data yields empty collections."""
        projects = self._load_records(PROJECTS_KEY, "projects", _entry_to_project)
        templates = self._load_records(TEMPLATES_KEY, "templates", _entry_to_template)

        active_id = None
        try:
            doc = self._read_document(ACTIVE_PROJECT_KEY)
            if doc is not None:
                active_id = doc.get("activeProjectId")
        except CorruptState as e:
            logger.warning(f"Corrupt {ACTIVE_PROJECT_KEY} data, ignoring: {e}")
            self._quarantine(ACTIVE_PROJECT_KEY)

        if active_id is not None and not any(p.id == active_id for p in projects):
            logger.info(f"Active project {active_id} not found, clearing")
            active_id = None

        logger.info(f"Loaded {len(projects)} projects, {len(templates)} templates")
        return LoadedState(projects=projects, templates=templates, active_project_id=active_id)
