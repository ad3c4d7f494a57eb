"""
frames.py — Frame sources for the capture session.

A frame source hands the session one pre-encoded still image per request.
Sources never decode or re-encode pixels; the only thing read from the
payload is the EXIF capture time (via exifread), when present.

A failing source raises FrameSourceError. The session turns that into
"no image produced" rather than letting it escape.
"""

from __future__ import annotations

import io
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Protocol

import exifread

from . import PROJECT_NAME
from .errors import FrameSourceError

logger = logging.getLogger(f"{PROJECT_NAME.lower()}.frames")

_EXIF_DATETIME_TAGS = (
    "EXIF DateTimeOriginal",
    "EXIF DateTimeDigitized",
    "Image DateTime",
)


@dataclass
class Frame:
    """One still image produced by a frame source."""

    payload: bytes
    taken_at: Optional[datetime] = None  # capture time reported by the image itself
    source: str = ""


class FrameSource(Protocol):
    def acquire(self) -> Frame:
        """Return one frame or raise FrameSourceError."""
        ...


def _parse_exif_datetime(dt_string: str) -> Optional[datetime]:
    """Parse an EXIF datetime string. EXIF carries no zone; treat it as UTC."""
    for fmt in ("%Y:%m:%d %H:%M:%S", "%Y-%m-%d %H:%M:%S", "%Y:%m:%d %H:%M:%S.%f"):
        try:
            return datetime.strptime(str(dt_string).strip(), fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    return None


def read_taken_at(payload: bytes) -> Optional[datetime]:
    """Best-effort EXIF capture time for an encoded image, None if unavailable."""
    try:
        tags = exifread.process_file(io.BytesIO(payload), details=False)
    except Exception as e:
        logger.debug(f"EXIF read failed: {e}")
        return None

    for dt_tag in _EXIF_DATETIME_TAGS:
        if dt_tag in tags:
            parsed = _parse_exif_datetime(str(tags[dt_tag]))
            if parsed:
                return parsed
    return None


class FileFrameSource:
    """Reads an already-encoded image file as the captured frame."""

    def __init__(self, path: str):
        self.path = path

    def acquire(self) -> Frame:
        try:
            with open(self.path, "rb") as f:
                payload = f.read()
        except OSError as e:
            raise FrameSourceError(f"Cannot read image {self.path}: {e}") from e

        if not payload:
            raise FrameSourceError(f"Image file is empty: {self.path}")

        return Frame(payload=payload, taken_at=read_taken_at(payload), source=os.path.abspath(self.path))


class StaticFrameSource:
    """Always returns the same payload. Handy for scripting and tests."""

    def __init__(self, payload: bytes, taken_at: Optional[datetime] = None):
        self.payload = payload
        self.taken_at = taken_at

    def acquire(self) -> Frame:
        if not self.payload:
            raise FrameSourceError("No frame available")
        return Frame(payload=self.payload, taken_at=self.taken_at, source="static")
