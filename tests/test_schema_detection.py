"""
tests/test_schema_detection.py

Field type inference, mapping suggestions and schema confidence.
"""

from __future__ import annotations

import pytest

from app.adapters.csv_adapter import CSVAdapter, parse_csv
from app.adapters.rows_adapter import RowListAdapter
from app.domain.records import DetectedField, FieldType
from app.normalization.normalizer import normalise
from app.normalization.schema_detection import (
    calculate_confidence,
    calculate_field_stats,
    detect_fields,
    detect_schema,
    infer_type,
    suggest_mappings,
    suggested_field_mappings,
)


@pytest.mark.parametrize(
    ("values", "expected"),
    [
        ([], FieldType.STRING),
        (["1", "2.5", "-3"], FieldType.NUMBER),
        (["1000"], FieldType.NUMBER),
        (["true", "False"], FieldType.BOOLEAN),
        ([True, False], FieldType.BOOLEAN),
        (["2024-01-15", "01/20/2024"], FieldType.DATE),
        (["hello", "world"], FieldType.STRING),
        ([[1, 2]], FieldType.ARRAY),
        ([{"a": 1}], FieldType.OBJECT),
        (["hello", "12"], FieldType.MIXED),
    ],
)
def test_infer_type(values, expected) -> None:
    assert infer_type(values) == expected


def test_detect_fields_marks_blank_values_nullable() -> None:
    rows = [{"id": "1", "amount": ""}, {"id": "2", "amount": "50"}]

    fields = detect_fields(rows, ["id", "amount", "missing"])

    by_name = {field.name: field for field in fields}
    assert by_name["id"].nullable is False
    assert by_name["id"].type == FieldType.NUMBER
    assert by_name["amount"].nullable is True
    assert by_name["amount"].sample_values == ["50"]
    assert by_name["missing"].type == FieldType.STRING
    assert by_name["missing"].nullable is True


def test_detect_fields_keeps_at_most_five_samples() -> None:
    rows = [{"name": f"n{index}"} for index in range(20)]
    (field,) = detect_fields(rows, ["name"])
    assert field.sample_values == ["n0", "n1", "n2", "n3", "n4"]


def test_calculate_field_stats_counts_unique_and_non_null() -> None:
    rows = [{"stage": "won"}, {"stage": "won"}, {"stage": "lost"}, {"stage": None}]

    (stats,) = calculate_field_stats(rows, ["stage"])

    assert stats.non_null_count == 3
    assert stats.unique_count == 2
    assert stats.type == FieldType.STRING


class TestSuggestMappings:
    @staticmethod
    def _field(name: str) -> DetectedField:
        return DetectedField(name=name, type=FieldType.STRING, nullable=False, sample_values=[])

    def test_matches_patterns_in_order(self) -> None:
        names = ["id", "Deal Owner", "Amount", "Stage", "created_date", "last_modified", "closed_on", "notes"]

        suggestions = suggest_mappings([self._field(name) for name in names])

        assert {item.source_field: item.target_field for item in suggestions} == {
            "id": "id",
            "Deal Owner": "ownerId",
            "Amount": "value",
            "Stage": "status",
            "created_date": "createdAt",
            "last_modified": "updatedAt",
            "closed_on": "closedAt",
        }
        assert all(item.confidence == pytest.approx(0.8) for item in suggestions)
        assert all(item.reason for item in suggestions)

    def test_identifier_pattern_is_anchored(self) -> None:
        assert suggest_mappings([self._field("paid")]) == []

    def test_first_matching_pattern_wins(self) -> None:
        (suggestion,) = suggest_mappings([self._field("owner_total")])
        assert suggestion.target_field == "ownerId"


@pytest.mark.parametrize(
    ("names", "expected"),
    [
        (["id", "status"], 1.0),
        (["uuid"], 0.5),
        (["notes"], 0.0),
    ],
)
def test_calculate_confidence(names, expected) -> None:
    fields = [DetectedField(name=name, type=FieldType.STRING, nullable=False, sample_values=[]) for name in names]
    assert calculate_confidence(suggest_mappings(fields)) == pytest.approx(expected)


def test_suggested_field_mappings_keep_first_suggestion_per_target() -> None:
    adapter = RowListAdapter()
    rows = [{"owner": "a", "assigned_to": "b", "id": "1"}]

    mappings = suggested_field_mappings(detect_schema(adapter, rows))

    assert [(item.source_field, item.target_field) for item in mappings] == [
        ("owner", "ownerId"),
        ("id", "id"),
    ]


def test_detected_schema_drives_normalisation_end_to_end() -> None:
    content = "id,owner,amount,status,created\n1,alice,1200,won,2024-01-15\n2,bob,800,lost,2024-01-20\n"
    adapter = CSVAdapter()
    raw = parse_csv(content)

    schema = detect_schema(adapter, raw)
    result = normalise(adapter, raw, suggested_field_mappings(schema))

    assert schema.confidence == pytest.approx(1.0)
    assert [record.id for record in result.records] == ["1", "2"]
    assert [record.value for record in result.records] == [1200.0, 800.0]
    assert result.records[0].owner_id == "alice"
    assert result.records[1].created_at.day == 20
    assert result.transform_errors == []
    assert result.unmapped_fields == []
