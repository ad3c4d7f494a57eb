"""
export.py — Export a project's captures and manifest.

Primary path: DirectorySink materializes every image plus manifest.txt under
a folder named after the project. When that is not possible (sink missing,
unwritable target, ...) export_project falls back to ManifestOnlySink, which
writes just the text manifest.

Exporting only reads project state; a failed export never changes it.
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field
from typing import Optional, Protocol

from tqdm import tqdm

from . import PROJECT_NAME
from .errors import ExportFailure
from .manifest import PROJECT_LINE_PREFIX, generate_manifest, manifest_filename, safe_name
from .models import Project

logger = logging.getLogger(f"{PROJECT_NAME.lower()}.export")

MANIFEST_BASENAME = "manifest.txt"


@dataclass
class ExportResult:
    """Result of an export attempt."""

    project_name: str
    success: bool
    method: str  # "directory" or "manifest"
    paths: list[str] = field(default_factory=list)
    error: Optional[str] = None


class ExportSink(Protocol):
    def export(self, project_name: str, files: list[tuple[str, bytes]], manifest: str) -> ExportResult:
        """Write the files and manifest, or raise ExportFailure."""
        ...


def _is_tty() -> bool:
    """Check if stdout is a terminal (not piped/redirected)."""
    try:
        return sys.stdout.isatty()
    except AttributeError:
        return False


def _unique_name(filename: str, taken: set) -> str:
    """Return filename, or 'stem (n).ext' if it was already written in this export."""
    if filename not in taken:
        return filename
    stem, ext = os.path.splitext(filename)
    n = 2
    while f"{stem} ({n}){ext}" in taken:
        n += 1
    return f"{stem} ({n}){ext}"


def _write_text(path: str, text: str) -> None:
    with open(path, "w", encoding="utf-8", newline="\n") as f:
        f.write(text)


def _exported_project(folder: str) -> Optional[str]:
    """Project name recorded in folder's manifest.txt, None if there is no readable manifest."""
    try:
        with open(os.path.join(folder, MANIFEST_BASENAME), "r", encoding="utf-8") as f:
            for line in f:
                if line.startswith(PROJECT_LINE_PREFIX):
                    return line[len(PROJECT_LINE_PREFIX) :].rstrip("\n")
    except (OSError, UnicodeDecodeError):
        return None
    return ""


class DirectorySink:
    """Writes <root>/<project name>/<filename> for every image, plus manifest.txt."""

    def __init__(self, root: str):
        self.root = root

    def _folder_for(self, project_name: str) -> str:
        """<root>/<safe name>, or <safe name> (n) if that folder holds another project's export."""
        base = safe_name(project_name)
        folder = os.path.join(self.root, base)
        n = 2
        while _exported_project(folder) not in (None, project_name):
            folder = os.path.join(self.root, f"{base} ({n})")
            n += 1
        if n > 2:
            logger.warning(f"{os.path.join(self.root, base)} holds another project's export, using {folder}")
        return folder

    def export(self, project_name: str, files: list[tuple[str, bytes]], manifest: str) -> ExportResult:
        folder = self._folder_for(project_name)
        written = []
        taken = set()
        try:
            os.makedirs(folder, exist_ok=True)
            with tqdm(
                total=len(files),
                desc="  Exporting",
                unit=" files",
                disable=not _is_tty(),
                bar_format="  {desc}: {percentage:3.0f}%|{bar:30}| {n_fmt}/{total_fmt}",
            ) as pbar:
                for filename, payload in files:
                    name = _unique_name(filename, taken)
                    if name != filename:
                        logger.warning(f"Duplicate filename {filename} in '{project_name}', writing as {name}")
                    taken.add(name)
                    path = os.path.join(folder, name)
                    with open(path, "wb") as f:
                        f.write(payload)
                    written.append(path)
                    pbar.update(1)

            manifest_path = os.path.join(folder, MANIFEST_BASENAME)
            _write_text(manifest_path, manifest)
            written.append(manifest_path)
        except OSError as e:
            raise ExportFailure(f"Export to {folder} failed: {e}") from e

        logger.info(f"Exported {len(files)} images for '{project_name}' → {folder}")
        return ExportResult(project_name=project_name, success=True, method="directory", paths=written)


class ManifestOnlySink:
    """Fallback: writes only <root>/<project name>_manifest.txt."""

    def __init__(self, root: str):
        self.root = root

    def export(self, project_name: str, files: list[tuple[str, bytes]], manifest: str) -> ExportResult:
        path = os.path.join(self.root, manifest_filename(project_name))
        try:
            os.makedirs(self.root, exist_ok=True)
            _write_text(path, manifest)
        except OSError as e:
            raise ExportFailure(f"Could not write manifest {path}: {e}") from e
        logger.info(f"Wrote manifest for '{project_name}' → {path}")
        return ExportResult(project_name=project_name, success=True, method="manifest", paths=[path])


def export_project(
    project: Project,
    sink: Optional[ExportSink],
    fallback: ExportSink,
) -> ExportResult:
    """Export a project through sink, falling back to a manifest-only export.

    Returns a failed ExportResult (never raises) if even the fallback fails.
    """
    manifest = generate_manifest(project)
    files = [(img.filename, img.payload) for img in project.images]

    primary_error = None
    if sink is not None:
        try:
            return sink.export(project.name, files, manifest)
        except ExportFailure as e:
            primary_error = str(e)
            logger.warning(f"{e} — falling back to manifest only")
    else:
        primary_error = "Directory export unavailable"
        logger.info(f"{primary_error}, writing manifest only")

    try:
        result = fallback.export(project.name, files, manifest)
    except ExportFailure as e:
        logger.error(f"Manifest export failed: {e}")
        return ExportResult(project_name=project.name, success=False, method="manifest", error=str(e))
    result.error = primary_error
    return result
