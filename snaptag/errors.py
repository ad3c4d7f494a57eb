"""
errors.py — Error taxonomy for SnapTag.

Every error is recoverable: stores validate before mutating, so a rejected
operation leaves projects and templates exactly as they were.
"""

from __future__ import annotations


class SnapTagError(Exception):
    """Base class for all SnapTag errors."""


class ValidationError(SnapTagError):
    """A required field is empty, missing, or refers to something unknown."""


class InvalidTag(ValidationError):
    """Tag input sanitized to an empty string."""


class NoActiveProject(SnapTagError):
    """Capture attempted with no active project."""

    def __init__(self, message: str = "Select or create a project first"):
        super().__init__(message)


class NoTagsSelected(SnapTagError):
    """Capture attempted with an empty tag selection."""

    def __init__(self, message: str = "Select at least one tag before capturing"):
        super().__init__(message)


class NoPendingImage(SnapTagError):
    """Finalize called with no captured image waiting for a note."""


class FrameSourceError(SnapTagError):
    """Frame source could not produce an image (device, permission, I/O)."""


class PersistenceFailure(SnapTagError):
    """Durable storage could not be written."""


class ExportFailure(SnapTagError):
    """Export sink is unavailable or failed while writing."""
