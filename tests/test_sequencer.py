"""
Tests for the filename sequencer.

Covers:
  - Key normalization and zero padding
  - Counting only images with the identical tag combination
  - Recomputation after deletions (no caching)
  - preview_filename for a project's current selection
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from snaptag.errors import ValidationError
from snaptag.models import CapturedImage, Project
from snaptag.sequencer import format_filename, next_sequence, preview_filename

TS = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _img(tags, n=1):
    return CapturedImage(id=f"id-{'-'.join(tags)}-{n}", filename="x.jpg", tags=list(tags), timestamp=TS, sequence_number=n)


class TestNextSequence:
    def test_first_image(self):
        r = next_sequence(["ROOF"], [])
        assert r.key == "ROOF"
        assert r.sequence_number == 1
        assert r.filename == "ROOF_0001.jpg"

    def test_counts_same_combination_only(self):
        images = [_img(["ROOF"]), _img(["BLDG"]), _img(["BLDG", "ROOF"]), _img(["ROOF"], 2)]
        assert next_sequence(["ROOF"], images).filename == "ROOF_0003.jpg"
        assert next_sequence(["BLDG"], images).filename == "BLDG_0002.jpg"
        assert next_sequence(["ROOF", "BLDG"], images).filename == "BLDG-ROOF_0002.jpg"

    def test_image_tag_order_ignored(self):
        images = [_img(["ROOF", "BLDG"]), _img(["BLDG", "ROOF"])]
        assert next_sequence(["BLDG", "ROOF"], images).sequence_number == 3

    def test_subset_does_not_match(self):
        images = [_img(["BLDG", "ROOF"])]
        assert next_sequence(["ROOF"], images).sequence_number == 1

    def test_recomputed_after_removal(self):
        images = [_img(["X"], i) for i in range(1, 4)]
        assert next_sequence(["X"], images).sequence_number == 4
        del images[1]
        assert next_sequence(["X"], images).sequence_number == 3

    def test_empty_selection_rejected(self):
        with pytest.raises(ValidationError):
            next_sequence([], [])

    def test_pure(self):
        images = [_img(["X"])]
        next_sequence(["X"], images)
        assert len(images) == 1


class TestFormatFilename:
    def test_padding(self):
        assert format_filename("ROOF", 7) == "ROOF_0007.jpg"

    def test_wider_than_padding(self):
        assert format_filename("ROOF", 12345) == "ROOF_12345.jpg"


class TestPreviewFilename:
    def test_preview_uses_current_tags(self):
        p = Project(id="p", name="P", tags=["A", "B"], current_tags=["B", "A"], images=[_img(["A", "B"])])
        assert preview_filename(p) == "A-B_0002.jpg"

    def test_no_selection(self):
        p = Project(id="p", name="P", tags=["A"], current_tags=[])
        assert preview_filename(p) is None
