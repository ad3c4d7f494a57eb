"""
manifest.py — Plain-text project manifest.

The manifest depends only on the project, so the same project always renders
the same text. Images appear in stored (capture) order and their tags in
capture order, not re-sorted.
"""

from __future__ import annotations

import re
from datetime import datetime

from . import PROJECT_NAME, __version__
from .models import Project

_UNSAFE_NAME_CHARS = re.compile(r'[\\/:*?"<>|\x00-\x1f]')
PROJECT_LINE_PREFIX = "Project:       "


def safe_name(name: str) -> str:
    """Folder/file-safe version of a free-text project name."""
    cleaned = _UNSAFE_NAME_CHARS.sub("_", name).strip().strip(".")
    return cleaned or "project"


def _fmt_time(dt: datetime) -> str:
    return dt.isoformat(timespec="seconds")


def manifest_filename(project_name: str) -> str:
    return f"{safe_name(project_name)}_manifest.txt"


def generate_manifest(project: Project) -> str:
    """Render a project's metadata and image list as text."""
    lines = [
        f"{PROJECT_NAME} manifest (v{__version__})",
        "=" * 40,
        f"{PROJECT_LINE_PREFIX}{project.name}",
        f"Last modified: {_fmt_time(project.last_modified)}",
        f"Images:        {project.image_count}",
        f"Tags:          {', '.join(project.tags)}",
    ]
    if project.template_id:
        lines.append(f"Template:      {project.template_id}")
    lines.append("")

    for i, img in enumerate(project.images, 1):
        lines.append(f"{i}. {img.filename}")
        lines.append(f"   Tags:     {', '.join(img.tags)}")
        lines.append(f"   Captured: {_fmt_time(img.timestamp)}")
        if img.note:
            lines.append(f"   Note:     {img.note}")
        lines.append("")

    return "\n".join(lines)
