"""
tests/test_metrics_engine.py

Pytest unit tests for the metrics engine.

Pure computations over in-memory records; no I/O.

Coverage
--------
- Period filtering and metric filters
- Every aggregation type, including empty inputs
- Comparison with the previous period
- Breakdown grouping and ordering
- Definition parsing from camelCase JSON
"""

from __future__ import annotations

import pytest

from conftest import utc
from metric_engine.aggregations import aggregate, cycle_time_days
from metric_engine.engine import MetricsEngine, calculate_comparison, create_metrics_engine
from metric_engine.filters import matches_filter
from metric_engine.models import (
    AggregationType,
    FilterOperator,
    FormatType,
    FormulaType,
    MetricDefinition,
    MetricFilter,
    MetricFormat,
    MetricFormula,
    PeriodType,
    Trend,
)
from metric_engine.periods import create_period, get_previous_period

JANUARY = create_period(PeriodType.MONTH, utc(2024, 1, 15))
VALUE = MetricFormula(field="value")


def _definition(aggregation: AggregationType, **overrides) -> MetricDefinition:
    fields = {
        "id": f"{aggregation.value}_metric",
        "name": aggregation.value,
        "aggregation": aggregation,
        "formula": VALUE,
    }
    fields.update(overrides)
    return MetricDefinition(**fields)


@pytest.fixture()
def pipeline(make_record):
    return [
        make_record("a", owner_id="alice", status="won", value=1000, created_at=utc(2024, 1, 3)),
        make_record("b", owner_id="bob", status="open", value=2000, created_at=utc(2024, 1, 10)),
        make_record("c", owner_id="alice", status="won", value=3000, created_at=utc(2024, 1, 31, 23)),
        make_record("d", owner_id="carol", status="open", value=9000, created_at=utc(2024, 2, 1)),
        make_record("e", owner_id="dave", status="won", value=3000, created_at=utc(2023, 12, 20)),
    ]


# ---------------------------------------------------------------------------
# MetricsEngine.compute
# ---------------------------------------------------------------------------


class TestCompute:
    def test_sum_in_period_formats_currency(self, pipeline) -> None:
        definition = _definition(
            AggregationType.SUM,
            format=MetricFormat(type=FormatType.CURRENCY, decimals=2, currency="USD"),
        )

        result = MetricsEngine(pipeline).compute(definition, JANUARY)

        assert result.value == pytest.approx(6000)
        assert result.formatted_value == "$6,000.00"
        assert result.metric_id == "sum_metric"
        assert result.period == JANUARY
        assert result.comparison is None
        assert result.breakdown is None

    def test_empty_period(self, pipeline) -> None:
        empty = create_period(PeriodType.MONTH, utc(2030, 6, 1))
        engine = create_metrics_engine(pipeline)

        average = engine.compute(_definition(AggregationType.AVERAGE), empty)
        count = engine.compute(_definition(AggregationType.COUNT), empty)

        assert average.value is None
        assert average.formatted_value == "—"
        assert count.value == 0
        assert count.formatted_value == "0"

    def test_filters_apply_after_period(self, pipeline) -> None:
        definition = _definition(
            AggregationType.COUNT,
            filters=(MetricFilter(field="status", operator=FilterOperator.EQ, value="won"),),
        )
        assert MetricsEngine(pipeline).compute(definition, JANUARY).value == 2

    def test_filters_on_custom_fields(self, make_record) -> None:
        records = [
            make_record("a", custom_fields={"region": "EMEA"}),
            make_record("b", custom_fields={"region": "APAC"}),
        ]
        definition = _definition(
            AggregationType.COUNT,
            filters=(MetricFilter(field="metadata.customFields.region", operator=FilterOperator.IN, value=["EMEA"]),),
        )
        assert MetricsEngine(records).compute(definition, JANUARY).value == 1

    def test_comparison_with_previous_period(self, pipeline) -> None:
        result = MetricsEngine(pipeline).compute(
            _definition(AggregationType.SUM),
            JANUARY,
            get_previous_period(JANUARY),
        )

        assert result.comparison is not None
        assert result.comparison.previous_value == pytest.approx(3000)
        assert result.comparison.delta == pytest.approx(3000)
        assert result.comparison.delta_percent == pytest.approx(100)
        assert result.comparison.trend == Trend.UP

    def test_comparison_can_be_disabled(self, pipeline) -> None:
        result = MetricsEngine(pipeline).compute(
            _definition(AggregationType.SUM, comparison=False),
            JANUARY,
            get_previous_period(JANUARY),
        )
        assert result.comparison is None

    def test_compute_many_keeps_order(self, pipeline) -> None:
        definitions = [_definition(AggregationType.COUNT), _definition(AggregationType.MAX)]

        results = MetricsEngine(pipeline).compute_many(definitions, JANUARY)

        assert [item.metric_id for item in results] == ["count_metric", "max_metric"]
        assert [item.value for item in results] == [3, 3000]


class TestBreakdown:
    def test_groups_sorted_by_value(self, pipeline) -> None:
        result = MetricsEngine(pipeline).compute(_definition(AggregationType.SUM, group_by=("ownerId",)), JANUARY)

        assert [(item.group_key, item.value) for item in result.breakdown] == [("alice", 4000), ("bob", 2000)]
        assert result.breakdown[0].group_label == "alice"
        assert result.breakdown[0].percentage == pytest.approx(66.6667, rel=1e-4)
        assert result.breakdown[1].formatted_value == "2,000"

    def test_ties_keep_first_seen_order_and_missing_values_group_as_other(self, make_record) -> None:
        records = [
            make_record("a", custom_fields={"team": "red"}),
            make_record("b"),
            make_record("c", custom_fields={"team": "blue"}),
        ]
        definition = _definition(AggregationType.COUNT, group_by=("metadata.customFields.team",))

        result = MetricsEngine(records).compute(definition, JANUARY)

        assert [item.group_key for item in result.breakdown] == ["red", "Other", "blue"]
        assert all(item.percentage == pytest.approx(100 / 3) for item in result.breakdown)


# ---------------------------------------------------------------------------
# Aggregations
# ---------------------------------------------------------------------------


class TestAggregate:
    def test_numeric_aggregations(self, make_record) -> None:
        records = [make_record(str(index), value=value) for index, value in enumerate([1, 3, 2, 10])]

        assert aggregate(records, AggregationType.SUM, VALUE) == pytest.approx(16)
        assert aggregate(records, AggregationType.AVERAGE, VALUE) == pytest.approx(4)
        assert aggregate(records, AggregationType.MIN, VALUE) == pytest.approx(1)
        assert aggregate(records, AggregationType.MAX, VALUE) == pytest.approx(10)
        assert aggregate(records, AggregationType.MEDIAN, VALUE) == pytest.approx(2.5)

    def test_average_divides_by_record_count(self, make_record) -> None:
        records = [make_record("a", value=10), make_record("b", value=None)]
        assert aggregate(records, AggregationType.AVERAGE, VALUE) == pytest.approx(5)

    def test_no_numeric_values(self, make_record) -> None:
        records = [make_record("a"), make_record("b")]

        assert aggregate(records, AggregationType.SUM, VALUE) == 0
        assert aggregate(records, AggregationType.MIN, VALUE) is None
        assert aggregate(records, AggregationType.MEDIAN, VALUE) is None

    def test_expression_formulas_contribute_nothing(self, make_record) -> None:
        formula = MetricFormula(type=FormulaType.EXPRESSION, expression="value * 2")
        records = [make_record("a", value=5)]

        assert aggregate(records, AggregationType.SUM, formula) == 0
        assert aggregate(records, AggregationType.COUNT, formula) == 1

    @pytest.mark.parametrize("aggregation", [a for a in AggregationType if a != AggregationType.COUNT])
    def test_empty_input_is_none(self, aggregation) -> None:
        assert aggregate([], aggregation, VALUE) is None

    def test_conversion_rate_counts_closed_records(self, make_record) -> None:
        records = [make_record(str(index)) for index in range(3)]
        records.append(make_record("closed", closed_at=utc(2024, 1, 20)))

        assert aggregate(records, AggregationType.CONVERSION_RATE, VALUE) == pytest.approx(25)

    def test_conversion_rate_ratio_formula_is_not_computed(self, make_record) -> None:
        formula = MetricFormula(
            type=FormulaType.DERIVED,
            numerator=_definition(AggregationType.COUNT),
            denominator=_definition(AggregationType.COUNT),
        )
        assert aggregate([make_record()], AggregationType.CONVERSION_RATE, formula) is None

    def test_cycle_time_ignores_non_positive_durations(self, make_record) -> None:
        records = [
            make_record("a", created_at=utc(2024, 1, 1), closed_at=utc(2024, 1, 11)),
            make_record("b", created_at=utc(2024, 1, 1), closed_at=utc(2024, 1, 5)),
            make_record("c", created_at=utc(2024, 1, 10), closed_at=utc(2024, 1, 5)),
            make_record("d", created_at=utc(2024, 1, 10)),
        ]

        assert aggregate(records, AggregationType.CYCLE_TIME, VALUE) == pytest.approx(7)
        assert cycle_time_days(records[2]) is None

    def test_unknown_aggregation_raises(self, make_record) -> None:
        with pytest.raises(ValueError):
            aggregate([make_record()], "mode", VALUE)  # type: ignore[arg-type]


@pytest.mark.parametrize(
    ("value", "operator", "expected", "matches"),
    [
        ("won", FilterOperator.EQ, "won", True),
        ("won", FilterOperator.NEQ, "won", False),
        (10, FilterOperator.GT, 5, True),
        (5, FilterOperator.GTE, 5, True),
        (4, FilterOperator.LT, 5, True),
        (6, FilterOperator.LTE, 5, False),
        ("10", FilterOperator.GT, 5, False),
        ("won", FilterOperator.IN, ["won", "lost"], True),
        ("won", FilterOperator.IN, "won", False),
        ("Closed Won", FilterOperator.CONTAINS, "won", True),
        (None, FilterOperator.CONTAINS, "won", False),
    ],
)
def test_matches_filter(value, operator, expected, matches) -> None:
    assert matches_filter(value, MetricFilter(field="x", operator=operator, value=expected)) is matches


@pytest.mark.parametrize(
    ("current", "previous", "delta", "trend"),
    [
        (150, 100, 50, Trend.UP),
        (50, 100, -50, Trend.DOWN),
        (100, 100, 0, Trend.NEUTRAL),
        (10, 0, None, Trend.UP),
        (0, None, None, Trend.NEUTRAL),
        (None, 100, None, Trend.NEUTRAL),
    ],
)
def test_calculate_comparison(current, previous, delta, trend) -> None:
    comparison = calculate_comparison(current, previous)
    assert comparison.delta == delta
    assert comparison.trend == trend


def test_definition_from_camel_case_json() -> None:
    definition = MetricDefinition.from_dict(
        {
            "id": "pipeline_value",
            "name": "Pipeline value",
            "aggregation": "sum",
            "formula": {"type": "field", "field": "value"},
            "format": {"type": "currency", "decimals": 2, "currency": "EUR"},
            "filters": [{"field": "status", "operator": "neq", "value": "lost"}],
            "groupBy": ["ownerId"],
            "comparison": False,
        }
    )

    assert definition.aggregation == AggregationType.SUM
    assert definition.formula.field == "value"
    assert definition.format == MetricFormat(type=FormatType.CURRENCY, decimals=2, currency="EUR")
    assert definition.filters == (MetricFilter(field="status", operator=FilterOperator.NEQ, value="lost"),)
    assert definition.group_by == ("ownerId",)
    assert definition.comparison is False


def test_definition_from_json_rejects_unknown_aggregation() -> None:
    with pytest.raises(ValueError):
        MetricDefinition.from_dict({"id": "x", "aggregation": "mode"})


def test_definition_from_json_wraps_single_group_by_field() -> None:
    definition = MetricDefinition.from_dict({"id": "x", "aggregation": "count", "groupBy": "ownerId"})
    assert definition.group_by == ("ownerId",)


@pytest.mark.parametrize("group_by", [{"field": "ownerId"}, 3])
def test_definition_from_json_rejects_malformed_group_by(group_by) -> None:
    with pytest.raises(ValueError, match="groupBy"):
        MetricDefinition.from_dict({"id": "x", "aggregation": "count", "groupBy": group_by})


@pytest.mark.parametrize("decimals", [-1, 21, 25])
def test_definition_from_json_rejects_out_of_range_decimals(decimals) -> None:
    with pytest.raises(ValueError, match="decimals"):
        MetricDefinition.from_dict({"id": "x", "aggregation": "count", "format": {"decimals": decimals}})
