"""
Test suite for chunk building.

Tests evidence flattening, category ordering and size-bounded greedy chunking.
"""

import pytest

from vehicle_report_pipeline.core.exceptions import ValidationError
from vehicle_report_pipeline.models.evidence import AssessableItem, ItemType, category_rank, CATEGORY_PRIORITY
from vehicle_report_pipeline.services.chunk_builder import (
    build_chunks,
    collect_assessable_items,
    plan_chunks,
    sort_by_category_priority
)

MB = 1024 * 1024


def item(item_id: str, category: str, size: int) -> AssessableItem:
    return AssessableItem(item_id=item_id, size_bytes=size, category=category, path=f"{item_id}.jpg")


@pytest.fixture
def seven_items():
    """Provide the mixed-category, mixed-size item list."""
    return [
        item("a", "exterior", 5 * MB),
        item("b", "interior", 5 * MB),
        item("c", "obd", 5 * MB),
        item("d", "title", 1 * MB),
        item("e", "engine", 20 * MB),
        item("f", "exterior", 2 * MB),
        item("g", "rust", 2 * MB),
    ]


class TestCategoryOrdering:
    """Test suite for category priority sorting."""

    def test_unknown_category_ranks_last(self):
        assert category_rank("exterior") == 0
        assert category_rank("spaceship") == len(CATEGORY_PRIORITY)
        assert category_rank(None) == len(CATEGORY_PRIORITY)

    def test_sort_is_stable_within_category(self):
        # Arrange
        items = [item("x1", "mystery", 1), item("i1", "interior", 1), item("e1", "exterior", 1),
                 item("i2", "interior", 1), item("e2", "exterior", 1)]

        # Act
        ordered = sort_by_category_priority(items)

        # Assert
        assert [i.item_id for i in ordered] == ["e1", "e2", "i1", "i2", "x1"]


class TestBuildChunks:
    """Test suite for build_chunks."""

    def test_seven_items_at_ten_megabytes_yield_four_chunks(self, seven_items):
        # Act
        chunks = build_chunks(seven_items, 10 * MB)

        # Assert
        assert [[i.item_id for i in chunk.items] for chunk in chunks] == [
            ["a", "f"],
            ["b", "g"],
            ["e"],
            ["c", "d"],
        ]
        assert [chunk.total_size for chunk in chunks] == [7 * MB, 7 * MB, 20 * MB, 6 * MB]
        assert [chunk.chunk_index for chunk in chunks] == [0, 1, 2, 3]

    def test_chunks_cover_every_item_exactly_once(self, seven_items):
        chunks = build_chunks(seven_items, 10 * MB)

        flattened = [i.item_id for chunk in chunks for i in chunk.items]
        expected = [i.item_id for i in sort_by_category_priority(seven_items)]
        assert flattened == expected

    def test_only_single_item_chunks_exceed_budget(self, seven_items):
        chunks = build_chunks(seven_items, 10 * MB)

        for chunk in chunks:
            assert chunk.total_size <= 10 * MB or len(chunk) == 1
        assert [chunk.is_oversized(10 * MB) for chunk in chunks] == [False, False, True, False]

    def test_empty_input_yields_no_chunks(self):
        assert build_chunks([], 10 * MB) == []

    def test_exact_fit_stays_in_one_chunk(self):
        chunks = build_chunks([item("a", "exterior", 4), item("b", "exterior", 6)], 10)

        assert len(chunks) == 1
        assert chunks[0].total_size == 10

    @pytest.mark.parametrize("budget", [0, -1])
    def test_non_positive_budget_is_rejected(self, budget):
        with pytest.raises(ValidationError):
            build_chunks([item("a", "exterior", 1)], budget)


class TestCollectAssessableItems:
    """Test suite for flattening evidence rows."""

    def test_converted_paths_win_and_incomplete_rows_are_skipped(self):
        # Arrange
        photos = [{"id": 1, "path": "raw.heic", "converted_path": "raw.jpg", "category": "exterior", "storage": "2048"}]
        obd2_codes = [
            {"id": 2, "code": "P0300", "description": "Misfire", "screenshot_path": "scan.png", "storage": 10},
            {"id": 3, "code": "P0171", "description": "Lean", "screenshot_path": None},
        ]
        title_images = [{"id": 4, "path": "title.jpg", "storage": "bad"}, {"id": 5, "path": None}]

        # Act
        items = collect_assessable_items(photos, obd2_codes, title_images)

        # Assert
        assert [i.item_id for i in items] == ["1", "2", "4"]
        assert items[0].path == "raw.jpg"
        assert items[0].size_bytes == 2048
        assert items[1].item_type == ItemType.OBD2_IMAGE
        assert items[1].category == "obd"
        assert items[1].code == "P0300"
        assert items[2].category == "title"
        assert items[2].size_bytes == 0

    def test_plan_chunks_reads_evidence_mapping(self):
        evidence = {
            "photos": [{"id": "p", "path": "p.jpg", "category": "interior", "storage": 5}],
            "obd2_codes": [],
            "title_images": [{"id": "t", "path": "t.jpg", "storage": 5}],
        }

        chunks = plan_chunks(evidence, 100)

        assert len(chunks) == 1
        assert chunks[0].to_payload()["images"][1]["type"] == "title_image"
