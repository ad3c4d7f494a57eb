#!/usr/bin/env python3
"""
SnapTag — Tagged Camera Capture & Photo Organizer

Organizes captures into projects, names them from the selected tags
(BLDG-ROOF_0001.jpg, ...), and keeps everything in a local state directory.

Usage:
    snaptag template create Inspection BLDG ROOF   # Reusable tag set
    snaptag project create Site1 --template Inspection
    snaptag tags set ROOF                          # Selection for next capture
    snaptag capture photo.jpg --note "north slope"
    snaptag project show                           # Images + next filename
    snaptag export --output exports/               # Images + manifest.txt
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Optional

import yaml

from . import PROJECT_NAME, STATE_DIRNAME
from . import __version__ as VERSION
from .errors import SnapTagError, ValidationError
from .export import DirectorySink, ManifestOnlySink, export_project
from .frames import FileFrameSource
from .manifest import generate_manifest
from .models import Project, Template
from .sequencer import preview_filename
from .storage import DirectoryStore
from .workspace import Workspace

DEFAULT_CONFIG = "config.yaml"


def setup_logging(level: str = "WARNING", log_file: str = None):
    """Configure logging with console and optional file output."""
    log_level = getattr(logging, level.upper(), logging.WARNING)

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)-7s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers,
        force=True,
    )


def load_config(config_path: Optional[str]) -> dict:
    """Load configuration from YAML (if given) and fill in defaults.

    Relative paths in the config are resolved against the config file's
    directory, or the current directory when running without a config.
    """
    config = {}
    base_dir = os.getcwd()
    if config_path:
        with open(config_path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}
        if not isinstance(config, dict):
            raise ValidationError(f"Config must be a mapping: {config_path}")
        base_dir = os.path.dirname(os.path.abspath(config_path))

    # Defaults
    config.setdefault("state_dir", STATE_DIRNAME)
    config.setdefault("export_dir", "exports")
    config.setdefault("log_level", "WARNING")
    config.setdefault("log_file", None)

    for key in ("state_dir", "export_dir"):
        if not os.path.isabs(config[key]):
            config[key] = os.path.join(base_dir, config[key])

    return config


# ── Lookup helpers ──────────────────────────────────────────────────────


def _match_one(kind: str, ref: str, items: list, name_of) -> object:
    """Resolve ref as exact id, exact name, or unique id prefix."""
    for item in items:
        if item.id == ref:
            return item
    named = [item for item in items if name_of(item) == ref]
    if len(named) == 1:
        return named[0]
    if len(named) > 1:
        raise ValidationError(f"Several {kind}s are named '{ref}', use the id instead")
    prefixed = [item for item in items if item.id.startswith(ref)]
    if len(prefixed) == 1:
        return prefixed[0]
    if len(prefixed) > 1:
        raise ValidationError(f"Ambiguous {kind} id prefix '{ref}'")
    raise ValidationError(f"No {kind} matches '{ref}'")


def _resolve_template(ws: Workspace, ref: str) -> Template:
    return _match_one("template", ref, ws.templates.list(), lambda t: t.name)


def _resolve_project(ws: Workspace, ref: Optional[str]) -> Project:
    """Project named by ref, or the active project when ref is None."""
    if ref:
        return _match_one("project", ref, ws.projects.list(), lambda p: p.name)
    project = ws.projects.active_project
    if project is None:
        raise ValidationError("No active project. Create one with 'snaptag project create' or pick one with 'project use'")
    return project


def _resolve_image(project: Project, ref: str):
    return _match_one("image", ref, project.images, lambda img: img.filename)


# ── Output ──────────────────────────────────────────────────────────────


def _short(identifier: str) -> str:
    return identifier[:8]


def print_templates(templates: list):
    if not templates:
        print("  No templates yet.")
        return
    print("  TEMPLATES")
    print("  ─────────")
    for t in templates:
        print(f"  {_short(t.id)}  {t.name:<24s} {', '.join(t.tags)}")
        if t.description:
            print(f"            {t.description}")


def print_projects(projects: list, active_id: Optional[str]):
    if not projects:
        print("  No projects yet.")
        return
    print("  PROJECTS")
    print("  ────────")
    for p in projects:
        marker = "*" if p.id == active_id else " "
        print(f"{marker} {_short(p.id)}  {p.name:<24s} {p.image_count:>5d} images  [{', '.join(p.current_tags)}]")


def print_project(project: Project, active_id: Optional[str]):
    active = " (active)" if project.id == active_id else ""
    print(f"  {project.name}{active}")
    print(f"  {'─' * max(len(project.name), 8)}")
    print(f"  Id:            {project.id}")
    print(f"  Tags:          {', '.join(project.tags)}")
    print(f"  Selected:      {', '.join(project.current_tags) or '-'}")
    print(f"  Next file:     {preview_filename(project) or '-'}")
    print(f"  Images:        {project.image_count}")
    print(f"  Last modified: {project.last_modified.isoformat(timespec='seconds')}")
    if project.template_id:
        print(f"  Template:      {project.template_id}")
    for img in project.images:
        note = f"  — {img.note}" if img.note else ""
        print(f"    {_short(img.id)}  {img.filename:<32s} {img.timestamp.isoformat(timespec='seconds')}{note}")


# ── Commands ────────────────────────────────────────────────────────────


def cmd_template_create(ws: Workspace, args, config: dict) -> int:
    t = ws.templates.create_template(args.name, args.tags, args.description or "")
    print(f"  Template '{t.name}' created ({_short(t.id)}): {', '.join(t.tags)}")
    return 0


def cmd_template_delete(ws: Workspace, args, config: dict) -> int:
    t = _resolve_template(ws, args.template)
    ws.templates.delete_template(t.id)
    print(f"  Template '{t.name}' deleted")
    return 0


def cmd_template_list(ws: Workspace, args, config: dict) -> int:
    print_templates(ws.templates.list())
    return 0


def cmd_project_create(ws: Workspace, args, config: dict) -> int:
    template_id = _resolve_template(ws, args.template).id if args.template else None
    p = ws.create_project(args.name, template_id=template_id, raw_tag=args.tag)
    print(f"  Project '{p.name}' created ({_short(p.id)}) and selected")
    print(f"  Tags: {', '.join(p.tags)}")
    return 0


def cmd_project_delete(ws: Workspace, args, config: dict) -> int:
    p = _resolve_project(ws, args.project)
    ws.projects.delete_project(p.id)
    print(f"  Project '{p.name}' deleted ({p.image_count} images)")
    return 0


def cmd_project_list(ws: Workspace, args, config: dict) -> int:
    print_projects(ws.projects.list(), ws.projects.active_project_id)
    return 0


def cmd_project_use(ws: Workspace, args, config: dict) -> int:
    p = ws.projects.select(_resolve_project(ws, args.project).id)
    print(f"  Active project: {p.name}")
    return 0


def cmd_project_show(ws: Workspace, args, config: dict) -> int:
    print_project(_resolve_project(ws, args.project), ws.projects.active_project_id)
    return 0


def cmd_tags_set(ws: Workspace, args, config: dict) -> int:
    p = ws.projects.set_current_tags(_resolve_project(ws, args.project).id, args.tags)
    print(f"  Selected tags: {', '.join(p.current_tags)}")
    print(f"  Next file:     {preview_filename(p)}")
    return 0


def cmd_tags_add(ws: Workspace, args, config: dict) -> int:
    p = _resolve_project(ws, args.project)
    tag = ws.projects.add_custom_tag(p.id, args.tag)
    print(f"  Tag '{tag}' available in '{p.name}'")
    return 0


def cmd_capture(ws: Workspace, args, config: dict) -> int:
    if args.project:
        ws.projects.select(_resolve_project(ws, args.project).id)
    if args.tags:
        active = ws.projects.active_project
        if active is not None:
            ws.projects.set_current_tags(active.id, args.tags)

    session = ws.session(FileFrameSource(args.file))
    pending = session.capture()
    if pending is None:
        print(f"  ✗  No image captured from {args.file}")
        return 1
    image = session.finalize(args.note or "")
    print(f"  ✓  Saved {image.filename} (#{image.sequence_number})")
    return 0


def cmd_image_delete(ws: Workspace, args, config: dict) -> int:
    p = _resolve_project(ws, args.project)
    img = _resolve_image(p, args.image)
    ws.projects.delete_image(p.id, img.id)
    print(f"  Deleted {img.filename} from '{p.name}'")
    return 0


def cmd_manifest(ws: Workspace, args, config: dict) -> int:
    text = generate_manifest(_resolve_project(ws, args.project))
    if args.output:
        with open(args.output, "w", encoding="utf-8", newline="\n") as f:
            f.write(text)
        print(f"  Manifest written to {args.output}")
    else:
        print(text)
    return 0


def cmd_export(ws: Workspace, args, config: dict) -> int:
    p = _resolve_project(ws, args.project)
    root = args.output or config["export_dir"]
    sink = None if args.manifest_only else DirectorySink(root)
    result = export_project(p, sink, ManifestOnlySink(root))
    if not result.success:
        print(f"  ✗  Export failed: {result.error}")
        return 1
    if result.method == "manifest":
        print(f"  ⚠  Images not exported, manifest only: {result.paths[0]}")
    else:
        print(f"  ✓  Exported {p.image_count} images to {os.path.dirname(result.paths[-1])}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="snaptag",
        description=f"{PROJECT_NAME} — Capture photos into projects with tag-based filenames",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  snaptag template create Inspection BLDG ROOF   Create a template
  snaptag project create Site1 -t Inspection     New project from template
  snaptag project create Yard --tag GARDEN       New project from one tag
  snaptag tags set ROOF                          Select tags for next capture
  snaptag capture img.jpg --note "leak"          Add a capture
  snaptag export                                 Write images + manifest
        """,
    )
    parser.add_argument("--version", action="version", version=f"{PROJECT_NAME} {VERSION}")
    parser.add_argument("--config", "-c", default=None, help=f"Path to config YAML (default: {DEFAULT_CONFIG} if present)")
    parser.add_argument("--state-dir", default=None, help="State directory (overrides config)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose (DEBUG) logging")

    sub = parser.add_subparsers(dest="command", metavar="COMMAND")
    sub.required = True

    # template
    tpl = sub.add_parser("template", help="Manage tag templates").add_subparsers(dest="action", metavar="ACTION")
    tpl.required = True
    p = tpl.add_parser("create", help="Create a template")
    p.add_argument("name")
    p.add_argument("tags", nargs="+")
    p.add_argument("--description", "-d", default="")
    p.set_defaults(func=cmd_template_create)
    p = tpl.add_parser("delete", help="Delete a template")
    p.add_argument("template", help="Template id, id prefix or name")
    p.set_defaults(func=cmd_template_delete)
    p = tpl.add_parser("list", help="List templates")
    p.set_defaults(func=cmd_template_list)

    # project
    prj = sub.add_parser("project", help="Manage projects").add_subparsers(dest="action", metavar="ACTION")
    prj.required = True
    p = prj.add_parser("create", help="Create a project and make it active")
    p.add_argument("name")
    p.add_argument("--template", "-t", default=None, help="Seed tags from a template")
    p.add_argument("--tag", default=None, help="Seed with a single tag")
    p.set_defaults(func=cmd_project_create)
    p = prj.add_parser("delete", help="Delete a project and its images")
    p.add_argument("project")
    p.set_defaults(func=cmd_project_delete)
    p = prj.add_parser("list", help="List projects (* = active)")
    p.set_defaults(func=cmd_project_list)
    p = prj.add_parser("use", help="Make a project active")
    p.add_argument("project")
    p.set_defaults(func=cmd_project_use)
    p = prj.add_parser("show", help="Show a project (default: active)")
    p.add_argument("project", nargs="?", default=None)
    p.set_defaults(func=cmd_project_show)

    # tags
    tg = sub.add_parser("tags", help="Select or add project tags").add_subparsers(dest="action", metavar="ACTION")
    tg.required = True
    p = tg.add_parser("set", help="Replace the tag selection for the next capture")
    p.add_argument("tags", nargs="+")
    p.add_argument("--project", "-p", default=None)
    p.set_defaults(func=cmd_tags_set)
    p = tg.add_parser("add", help="Add a custom tag to the project vocabulary")
    p.add_argument("tag")
    p.add_argument("--project", "-p", default=None)
    p.set_defaults(func=cmd_tags_add)

    # capture
    p = sub.add_parser("capture", help="Capture an image file into the active project")
    p.add_argument("file", help="Encoded image file (JPEG)")
    p.add_argument("--tags", nargs="+", default=None, help="Select these tags first")
    p.add_argument("--note", "-n", default="", help="Note stored with the image")
    p.add_argument("--project", "-p", default=None, help="Switch active project first")
    p.set_defaults(func=cmd_capture)

    # image
    img = sub.add_parser("image", help="Manage captured images").add_subparsers(dest="action", metavar="ACTION")
    img.required = True
    p = img.add_parser("delete", help="Delete an image (id, id prefix or filename)")
    p.add_argument("image")
    p.add_argument("--project", "-p", default=None)
    p.set_defaults(func=cmd_image_delete)

    # manifest / export
    p = sub.add_parser("manifest", help="Print or save a project manifest")
    p.add_argument("--project", "-p", default=None)
    p.add_argument("--output", "-o", default=None)
    p.set_defaults(func=cmd_manifest)
    p = sub.add_parser("export", help="Export images and manifest to a folder")
    p.add_argument("--project", "-p", default=None)
    p.add_argument("--output", "-o", default=None, help="Export root (overrides config export_dir)")
    p.add_argument("--manifest-only", action="store_true", help="Write only the text manifest")
    p.set_defaults(func=cmd_export)

    return parser


def main(argv: Optional[list] = None) -> int:
    args = build_parser().parse_args(argv)

    config_path = args.config
    if config_path is not None:
        if not os.path.isabs(config_path):
            config_path = os.path.join(os.getcwd(), config_path)
        if not os.path.exists(config_path):
            print(f"Error: Config file not found: {config_path}", file=sys.stderr)
            return 1
    elif os.path.exists(DEFAULT_CONFIG):
        config_path = os.path.abspath(DEFAULT_CONFIG)

    try:
        config = load_config(config_path)
    except (yaml.YAMLError, ValidationError) as e:
        print(f"Error: Invalid config {config_path}: {e}", file=sys.stderr)
        return 1

    if args.verbose:
        config["log_level"] = "DEBUG"
    if args.state_dir:
        config["state_dir"] = os.path.abspath(args.state_dir)

    setup_logging(config["log_level"], config.get("log_file"))
    logger = logging.getLogger(PROJECT_NAME.lower())
    logger.debug(f"State directory: {config['state_dir']}")

    ws = Workspace.open(DirectoryStore(config["state_dir"]))
    try:
        code = args.func(ws, args, config)
    except SnapTagError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if ws.last_save_error:
        print(f"  ⚠  Changes not saved: {ws.last_save_error}", file=sys.stderr)
        return 1
    return code


if __name__ == "__main__":
    sys.exit(main())
