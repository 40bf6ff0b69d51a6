"""Tests for AnalysisMeta normalization and VersionHistoryEntry serialization."""

from datetime import UTC, datetime

import pytest

from vision_builder.schemas.vision import AnalysisMeta, VersionHistoryEntry, VisionVariations

pytestmark = pytest.mark.unit


class TestAnalysisMeta:
    def test_defaults(self):
        meta = AnalysisMeta()
        assert meta.keywords == []
        assert meta.insights == []
        assert meta.notes == ""
        assert meta.processing_time_ms is None
        assert meta.version_history == []

    def test_comma_separated_keywords_are_split(self):
        meta = AnalysisMeta.model_validate({"keywords": "trust,  growth ,,impact"})
        assert meta.keywords == ["trust", "growth", "impact"]

    def test_single_insight_is_wrapped(self):
        assert AnalysisMeta.model_validate({"insights": "one"}).insights == ["one"]

    def test_notes_list_is_joined(self):
        assert AnalysisMeta.model_validate({"notes": ["a", "b"]}).notes == "a\nb"

    def test_null_fields_become_defaults(self):
        meta = AnalysisMeta.model_validate(
            {"keywords": None, "insights": None, "notes": None, "version_history": None}
        )
        assert meta.keywords == []
        assert meta.insights == []
        assert meta.notes == ""
        assert meta.version_history == []

    def test_unknown_keys_survive_round_trip(self):
        meta = AnalysisMeta.model_validate({"keywords": ["a"], "legacy_score": 7})
        assert meta.to_json()["legacy_score"] == 7

    def test_to_json_serializes_history(self):
        entry = VersionHistoryEntry(
            type="original",
            timestamp=datetime(2025, 1, 1, tzinfo=UTC),
            vision_inspirational="i",
            vision_measurable="m",
        )
        data = AnalysisMeta(version_history=[entry]).to_json()

        assert data["version_history"] == [
            {
                "type": "original",
                "timestamp": "2025-01-01T00:00:00Z",
                "vision_inspirational": "i",
                "vision_measurable": "m",
            }
        ]


class TestVersionHistoryEntry:
    def test_naive_timestamp_is_treated_as_utc(self):
        entry = VersionHistoryEntry(
            type="original",
            timestamp=datetime(2025, 1, 1, 8, 30),
            vision_inspirational="i",
            vision_measurable="m",
        )
        assert entry.timestamp.tzinfo is not None
        assert entry.timestamp.utcoffset().total_seconds() == 0

    def test_unknown_type_is_rejected(self):
        with pytest.raises(ValueError):
            VersionHistoryEntry(
                type="longer",
                timestamp=datetime.now(UTC),
                vision_inspirational="i",
                vision_measurable="m",
            )

    def test_entries_are_frozen(self):
        entry = VersionHistoryEntry(
            type="original",
            timestamp=datetime.now(UTC),
            vision_inspirational="i",
            vision_measurable="m",
        )
        with pytest.raises(ValueError):
            entry.vision_inspirational = "changed"


class TestVisionVariations:
    def test_blank_items_are_dropped(self):
        variations = VisionVariations.model_validate({"inspirational": ["a", " ", None], "measurable": "single"})
        assert variations.inspirational == ["a"]
        assert variations.measurable == ["single"]
