"""
sequencer.py — Filename sequencing for captures.

Sequence numbers are per tag combination, not global:

    key             = sorted tags joined with "-"      e.g. BLDG-ROOF
    sequence_number = existing images with that key + 1
    filename        = f"{key}_{sequence_number:04d}.jpg"

The number is recomputed from the current image list on every call. Deleting
an image never renumbers the others, so after a delete the next capture can
produce a basename that is already present in the project (e.g. two
ROOF_0003.jpg). That collision is the established naming behavior; exports
disambiguate on disk instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from .errors import ValidationError
from .models import CapturedImage, Project
from .tags import combination_key

FILENAME_EXTENSION = ".jpg"
SEQUENCE_WIDTH = 4


@dataclass(frozen=True)
class SequenceResult:
    """Outcome of sequencing a tag selection against a project."""

    key: str
    sequence_number: int
    filename: str


def format_filename(key: str, sequence_number: int) -> str:
    return f"{key}_{sequence_number:0{SEQUENCE_WIDTH}d}{FILENAME_EXTENSION}"


def next_sequence(tags: Iterable[str], images: Iterable[CapturedImage]) -> SequenceResult:
    """Compute the next sequence number and filename for a tag selection.

    Raises ValidationError for an empty selection.
    """
    tags = list(tags)
    if not tags:
        raise ValidationError("At least one tag is required to name a capture")

    key = combination_key(tags)
    count = sum(1 for img in images if combination_key(img.tags) == key)
    sequence_number = count + 1
    return SequenceResult(key=key, sequence_number=sequence_number, filename=format_filename(key, sequence_number))


def preview_filename(project: Project) -> Optional[str]:
    """Filename the next capture would get with the current selection, if any."""
    if not project.current_tags:
        return None
    return next_sequence(project.current_tags, project.images).filename
