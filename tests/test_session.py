"""
Tests for CaptureSession and frame sources.

Covers:
  - Precondition failures (no active project, no tags)
  - Pending image → finalize → committed image
  - Abandon and replacement leave the project untouched
  - Frame source failures produce no image
  - FileFrameSource reading files and EXIF capture time
"""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from snaptag.errors import FrameSourceError, NoActiveProject, NoPendingImage, NoTagsSelected
from snaptag.frames import FileFrameSource, Frame, StaticFrameSource, _parse_exif_datetime, read_taken_at
from snaptag.models import Project
from snaptag.projects import ProjectStore
from snaptag.session import CaptureSession

JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 100 + b"\xff\xd9"
CLOCK_TIME = datetime(2024, 5, 1, 12, 0, 0, 123456, tzinfo=timezone.utc)


def _clock():
    return CLOCK_TIME


@pytest.fixture()
def store():
    return ProjectStore()


@pytest.fixture()
def project(store):
    p = store.create_project("Site1", raw_tag="ROOF")
    store.add_custom_tag(p.id, "BLDG")
    return p


def _session(store, source=None):
    return CaptureSession(store, source or StaticFrameSource(JPEG_BYTES), clock=_clock)


# ─── Preconditions ──────────────────────────────────────────────────────


class TestPreconditions:
    def test_no_active_project(self, store):
        with pytest.raises(NoActiveProject):
            _session(store).capture()

    def test_no_active_project_after_delete(self, store, project):
        store.delete_project(project.id)
        with pytest.raises(NoActiveProject):
            _session(store).capture()

    def test_no_tags_selected(self, store):
        store._projects["p"] = Project(id="p", name="Bare", tags=["X"], current_tags=[])
        store._active_id = "p"
        with pytest.raises(NoTagsSelected):
            _session(store).capture()

    def test_frame_not_requested_when_preconditions_fail(self, store):
        source = MagicMock()
        with pytest.raises(NoActiveProject):
            _session(store, source).capture()
        source.acquire.assert_not_called()


# ─── Capture flow ───────────────────────────────────────────────────────


class TestCaptureFlow:
    def test_capture_holds_pending_without_committing(self, store, project):
        session = _session(store)
        pending = session.capture()

        assert pending is not None
        assert pending.filename == "ROOF_0001.jpg"
        assert pending.sequence_number == 1
        assert pending.tags == ["ROOF"]
        assert pending.timestamp == CLOCK_TIME
        assert pending.payload == JPEG_BYTES
        assert store.get(project.id).image_count == 0

    def test_finalize_commits(self, store, project):
        session = _session(store)
        session.capture()
        image = session.finalize("  rusty flashing ")

        assert image.filename == "ROOF_0001.jpg"
        assert image.note == "rusty flashing"
        assert image.timestamp == CLOCK_TIME
        assert image.payload == JPEG_BYTES
        assert session.pending is None
        assert store.get(project.id).images == [image]

    def test_finalize_without_note(self, store, project):
        session = _session(store)
        session.capture()
        assert session.finalize().note == ""

    def test_uses_current_selection(self, store, project):
        store.set_current_tags(project.id, ["ROOF", "BLDG"])
        session = _session(store)
        session.capture()
        assert session.finalize().filename == "BLDG-ROOF_0001.jpg"

    def test_sequence_advances(self, store, project):
        session = _session(store)
        names = []
        for _ in range(3):
            session.capture()
            names.append(session.finalize().filename)
        assert names == ["ROOF_0001.jpg", "ROOF_0002.jpg", "ROOF_0003.jpg"]

    def test_frame_time_preferred_over_clock(self, store, project):
        taken = datetime(2023, 6, 15, 14, 30, tzinfo=timezone.utc)
        session = _session(store, StaticFrameSource(JPEG_BYTES, taken_at=taken))
        session.capture()
        assert session.finalize().timestamp == taken

    def test_finalize_without_capture(self, store, project):
        with pytest.raises(NoPendingImage):
            _session(store).finalize()

    def test_abandon_discards(self, store, project):
        session = _session(store)
        session.capture()
        session.abandon()
        assert session.pending is None
        assert store.get(project.id).image_count == 0
        with pytest.raises(NoPendingImage):
            session.finalize()

    def test_new_capture_replaces_pending(self, store, project):
        session = _session(store)
        session.capture()
        session.capture()
        session.finalize()
        assert store.get(project.id).image_count == 1

    def test_pending_survives_deletion_race(self, store, project):
        session = _session(store)
        first = store.commit_capture(project.id, ["ROOF"])
        assert session.capture().filename == "ROOF_0002.jpg"
        store.delete_image(project.id, first.id)
        # Name is recomputed against the current image list at commit time
        assert session.finalize().filename == "ROOF_0001.jpg"


class TestFrameFailures:
    def test_source_error_returns_none(self, store, project):
        source = MagicMock()
        source.acquire.side_effect = FrameSourceError("permission denied")
        session = _session(store, source)

        assert session.capture() is None
        assert session.pending is None
        assert store.get(project.id).image_count == 0

    def test_static_source_empty_payload(self):
        with pytest.raises(FrameSourceError):
            StaticFrameSource(b"").acquire()


# ─── FileFrameSource ────────────────────────────────────────────────────


class TestFileFrameSource:
    def test_reads_payload(self, tmp_path):
        path = tmp_path / "shot.jpg"
        path.write_bytes(JPEG_BYTES)
        frame = FileFrameSource(str(path)).acquire()
        assert isinstance(frame, Frame)
        assert frame.payload == JPEG_BYTES
        assert frame.taken_at is None
        assert frame.source.endswith("shot.jpg")

    def test_missing_file(self, tmp_path):
        with pytest.raises(FrameSourceError):
            FileFrameSource(str(tmp_path / "nope.jpg")).acquire()

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.jpg"
        path.write_bytes(b"")
        with pytest.raises(FrameSourceError):
            FileFrameSource(str(path)).acquire()

    def test_missing_file_gives_no_image(self, tmp_path, store, project):
        session = CaptureSession(store, FileFrameSource(str(tmp_path / "nope.jpg")))
        assert session.capture() is None
        assert store.get(project.id).image_count == 0


class TestExifTime:
    def test_parse_exif_format(self):
        assert _parse_exif_datetime("2023:06:15 14:30:00") == datetime(2023, 6, 15, 14, 30, tzinfo=timezone.utc)

    def test_parse_dash_format(self):
        assert _parse_exif_datetime("2023-06-15 14:30:00") == datetime(2023, 6, 15, 14, 30, tzinfo=timezone.utc)

    def test_parse_garbage(self):
        assert _parse_exif_datetime("    ") is None

    def test_non_image_payload(self):
        assert read_taken_at(b"definitely not an image") is None
