"""
tests/test_deal_analytics.py

Stage durations, deal quality, win-rate trend, dashboard filters and
rule-based insights.
"""

from __future__ import annotations

from datetime import datetime

import pytest

from conftest import utc
from funnel_engine.models import FunnelStageMetrics
from metric_engine.deal_quality import (
    compute_deal_size_by_stage,
    compute_deal_size_distribution,
    format_amount,
    high_value_threshold,
    identify_high_value_deals,
    percentile,
)
from metric_engine.filters import DateRange, RecordFilter, apply_record_filters, get_filter_options
from metric_engine.insights import (
    InsightPriority,
    InsightType,
    format_insight_text,
    generate_insights,
    get_top_insights,
)
from metric_engine.stage_duration import (
    compute_stage_durations,
    compute_time_to_close,
    round_half_up,
    summarise_days,
)
from metric_engine.time_series import compute_deal_velocity, compute_stage_distribution, compute_win_rate_trend

# ---------------------------------------------------------------------------
# Stage durations
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(("value", "expected"), [(2.5, 3), (1.5, 2), (2.49, 2), (0.5, 1)])
def test_round_half_up(value, expected) -> None:
    assert round_half_up(value) == expected


def test_summarise_days_rounds_even_median() -> None:
    summary = summarise_days([2, 1])

    assert summary.median_days == 2
    assert summary.average_days == 2
    assert (summary.min_days, summary.max_days, summary.sample_size) == (1, 2, 2)
    assert summarise_days([]) is None


class TestStageDurations:
    def test_groups_by_status_in_pipeline_order(self, make_record) -> None:
        records = [
            make_record("1", status="negotiation", created_at=utc(2024, 1, 1), updated_at=utc(2024, 2, 10)),
            make_record("2", status="On Hold", created_at=utc(2024, 1, 1), updated_at=utc(2024, 1, 3)),
            make_record("3", status="prospecting", created_at=utc(2024, 1, 1), updated_at=utc(2024, 1, 4)),
            make_record("4", status="prospecting", created_at=utc(2024, 1, 1), updated_at=utc(2024, 1, 6)),
            make_record("5", status="Closed Won", created_at=utc(2024, 1, 1), updated_at=utc(2024, 1, 15)),
            make_record("6", status="qualification", created_at=utc(2024, 1, 1)),
        ]

        durations = compute_stage_durations(records)

        assert [item.stage for item in durations] == ["prospecting", "negotiation", "Closed Won", "On Hold"]
        prospecting = durations[0]
        assert (prospecting.average_days, prospecting.median_days, prospecting.sample_size) == (4, 4, 2)
        assert prospecting.prediction == "Deals typically move through prospecting quickly (4 days avg)"
        assert durations[1].prediction == "Deals tend to stay in negotiation for 40 days - consider reviewing"
        assert durations[2].prediction == "Deals spend about 14 days in Closed Won on average"

    def test_half_days_round_up(self, make_record) -> None:
        record = make_record(created_at=utc(2024, 1, 1), updated_at=utc(2024, 1, 3, 12))
        assert compute_stage_durations([record])[0].average_days == 3

    def test_time_to_close_covers_won_records(self, make_record) -> None:
        records = [
            make_record("1", status="Closed Won", created_at=utc(2024, 1, 1), closed_at=utc(2024, 1, 11)),
            make_record("2", status="closed-won", created_at=utc(2024, 1, 1), closed_at=utc(2024, 1, 21)),
            make_record("3", status="Closed Lost", created_at=utc(2024, 1, 1), closed_at=utc(2024, 1, 2)),
            make_record("4", status="Closed Won"),
        ]

        summary = compute_time_to_close(records)

        assert (summary.average_days, summary.median_days) == (15, 15)
        assert (summary.min_days, summary.max_days, summary.sample_size) == (10, 20, 2)

    def test_time_to_close_without_wins(self, make_record) -> None:
        assert compute_time_to_close([make_record()]) is None


# ---------------------------------------------------------------------------
# Deal quality
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("value", "expected"),
    [(1_500_000, "$1.5M"), (25_000, "$25k"), (1_000, "$1k"), (999, "$999")],
)
def test_format_amount(value, expected) -> None:
    assert format_amount(value) == expected


def test_percentile_uses_lower_rank() -> None:
    assert percentile([10, 20, 30, 40], 25) == 10
    assert percentile([10, 20, 30, 40], 75) == 30
    assert percentile([], 50) == 0.0


class TestDealSizeDistribution:
    def test_ten_equal_width_buckets(self, make_record) -> None:
        records = [make_record(str(index), value=index * 100) for index in range(1, 11)]

        buckets = compute_deal_size_distribution(records)

        assert [bucket.count for bucket in buckets] == [1] * 10
        assert buckets[0].range == "$100 - $190"
        assert buckets[-1].range == "$910 - $1k"
        assert sum(bucket.percentage for bucket in buckets) == pytest.approx(100)

    def test_identical_values_land_in_last_bucket(self, make_record) -> None:
        records = [make_record(str(index), value=500) for index in range(3)]

        buckets = compute_deal_size_distribution(records)

        assert [bucket.count for bucket in buckets] == [0] * 9 + [3]

    def test_ignores_missing_and_non_positive_values(self, make_record) -> None:
        records = [make_record("1", value=None), make_record("2", value=0), make_record("3", value=-5)]
        assert compute_deal_size_distribution(records) == []


class TestDealSizeByStage:
    def test_box_plot_statistics_highest_average_first(self, make_record) -> None:
        records = [make_record(str(value), status="proposal", value=value) for value in (40, 10, 30, 20)]
        records.append(make_record("won", status="won", value=100))

        won, proposal = compute_deal_size_by_stage(records)

        assert won.stage == "won"
        assert (won.min, won.max, won.count) == (100, 100, 1)
        assert proposal.median == pytest.approx(25)
        assert proposal.average == pytest.approx(25)
        assert (proposal.q1, proposal.q3) == (10, 30)


class TestHighValueDeals:
    @pytest.fixture()
    def records(self, make_record):
        return [
            make_record("a", owner_id="alice", status="proposal", value=60_000),
            make_record("b", owner_id="bob", status="won", value=80_000),
            make_record("c", owner_id="carol", status="lead", value=10_000),
            make_record("d", owner_id="dan", status="proposal", value=70_000),
        ]

    def test_default_threshold_is_top_decile_or_floor(self, records) -> None:
        assert high_value_threshold(records) == 80_000
        assert [deal.id for deal in identify_high_value_deals(records)] == ["b"]

    def test_explicit_threshold_sorted_by_value(self, records) -> None:
        deals = identify_high_value_deals(records, 60_000)

        assert [deal.id for deal in deals] == ["b", "d", "a"]
        assert deals[0].owner_id == "bob"
        assert deals[0].stage == "won"

    def test_floor_applies_to_small_pipelines(self, make_record) -> None:
        records = [make_record(str(value), value=value) for value in (1_000, 2_000)]

        assert high_value_threshold(records) == 50_000
        assert identify_high_value_deals(records) == []

    def test_no_values(self, make_record) -> None:
        assert high_value_threshold([make_record()]) is None
        assert identify_high_value_deals([make_record()]) == []


# ---------------------------------------------------------------------------
# Velocity and win rate
# ---------------------------------------------------------------------------


def test_deal_velocity_counts_by_creation_day(make_record) -> None:
    records = [
        make_record("1", status="lead", created_at=utc(2024, 1, 2), updated_at=utc(2024, 3, 1)),
        make_record("2", status="won", created_at=utc(2024, 1, 3)),
    ]

    assert compute_deal_velocity(records) == compute_stage_distribution(records, "created_at")


def test_win_rate_trend_by_month(make_record) -> None:
    records = [
        make_record("1", status="Closed Won", created_at=utc(2024, 2, 3)),
        make_record("2", status="Closed Won", created_at=utc(2024, 1, 5)),
        make_record("3", status="Closed Lost", created_at=utc(2024, 1, 9)),
        make_record("4", status="proposal", created_at=utc(2024, 1, 30)),
    ]

    january, february = compute_win_rate_trend(records)

    assert (january.month, january.total, january.won) == ("2024-01", 3, 1)
    assert january.win_rate == pytest.approx(100 / 3)
    assert (february.month, february.win_rate) == ("2024-02", 100)


# ---------------------------------------------------------------------------
# Dashboard filters
# ---------------------------------------------------------------------------


class TestRecordFilters:
    @pytest.fixture()
    def records(self, make_record):
        return [
            make_record("a", owner_id="alice", status="prospecting", value=100, created_at=utc(2024, 1, 5)),
            make_record(
                "b",
                owner_id="bob",
                status="negotiation",
                created_at=utc(2024, 1, 20),
                closed_at=utc(2024, 2, 1),
            ),
            make_record(
                "c",
                owner_id="carol",
                status="Closed Won",
                value=5000,
                created_at=utc(2024, 2, 10),
                closed_at=utc(2024, 2, 20),
            ),
        ]

    @pytest.mark.parametrize(
        ("record_filter", "expected"),
        [
            (None, ["a", "b", "c"]),
            (RecordFilter(), ["a", "b", "c"]),
            (RecordFilter(owners=("alice", "carol")), ["a", "c"]),
            (RecordFilter(stages=("negotiation",)), ["b"]),
            (RecordFilter(min_value=1), ["a", "c"]),
            (RecordFilter(max_value=0), ["b"]),
            (RecordFilter(date_range=DateRange(field="closed_at")), ["b", "c"]),
            (RecordFilter(date_range=DateRange(start=utc(2024, 1, 10), end=utc(2024, 1, 31))), ["b"]),
            (RecordFilter(date_range=DateRange(start=datetime(2024, 2, 1))), ["c"]),
            (RecordFilter(owners=("alice", "bob"), min_value=50, max_value=200), ["a"]),
        ],
    )
    def test_apply_record_filters(self, records, record_filter, expected) -> None:
        assert [record.id for record in apply_record_filters(records, record_filter)] == expected

    def test_rejects_unknown_date_field(self) -> None:
        with pytest.raises(ValueError, match="Date range field"):
            DateRange(field="due_at")

    def test_filter_options(self, records) -> None:
        options = get_filter_options(records)

        assert options.owners == ["alice", "bob", "carol"]
        assert options.stages == ["Closed Won", "negotiation", "prospecting"]
        assert (options.min_value, options.max_value) == (100, 5000)

    def test_filter_options_without_values(self) -> None:
        options = get_filter_options([])
        assert (options.owners, options.stages, options.min_value, options.max_value) == ([], [], 0, 0)


# ---------------------------------------------------------------------------
# Insights
# ---------------------------------------------------------------------------


def _stage(name: str, count: int, drop_off: float | None = None) -> FunnelStageMetrics:
    return FunnelStageMetrics(
        stage=name,
        order=0,
        count=count,
        percentage=0.0,
        conversion_to_next=None if drop_off is None else 100 - drop_off,
        drop_off=drop_off,
        average_time_in_stage=None,
    )


def _ids(insights) -> list[str]:
    return [insight.id for insight in insights]


class TestDropOffInsights:
    def test_primary_and_secondary_bottlenecks(self) -> None:
        stages = [_stage("lead", 100, 60), _stage("demo", 40, 40), _stage("proposal", 24, 28), _stage("won", 17)]

        insights = generate_insights(funnel_stages=stages)

        assert _ids(insights) == ["funnel-dropoff-1", "funnel-dropoff-2", "funnel-dropoff-3"]
        primary = insights[0]
        assert primary.type == InsightType.DROP_OFF
        assert primary.priority == InsightPriority.CRITICAL
        assert primary.description == "60.0% of opportunities are lost between lead and demo"
        assert primary.value == "60.0%"
        assert insights[1].description == "40.0% drop-off at demo -> proposal"
        assert insights[2].priority == InsightPriority.MEDIUM

    def test_at_most_two_secondary_bottlenecks(self) -> None:
        stages = [_stage("a", 100, 70), _stage("b", 30, 40), _stage("c", 18, 35), _stage("d", 12, 30), _stage("e", 8)]
        assert len(generate_insights(funnel_stages=stages)) == 3

    @pytest.mark.parametrize(
        ("drop_off", "priority"),
        [(55, InsightPriority.CRITICAL), (35, InsightPriority.HIGH), (20, InsightPriority.MEDIUM)],
    )
    def test_priority_follows_severity(self, drop_off, priority) -> None:
        (insight,) = generate_insights(funnel_stages=[_stage("a", 10, drop_off), _stage("b", 5)])
        assert insight.priority == priority

    def test_needs_two_stages(self) -> None:
        assert generate_insights(funnel_stages=[_stage("a", 10, 90)]) == []


@pytest.mark.parametrize(
    ("conversion", "expected"),
    [
        (25, ["conversion-excellent"]),
        (20, ["conversion-excellent"]),
        (3, ["conversion-critical"]),
        (7, ["conversion-below-average"]),
        (15, []),
    ],
)
def test_conversion_insights(conversion, expected) -> None:
    assert _ids(generate_insights(overall_conversion=conversion)) == expected


@pytest.mark.parametrize(
    ("average", "median", "expected"),
    [
        (120, 40, ["cycle-time-outliers", "cycle-time-long"]),
        (20, 18, ["cycle-time-fast"]),
        (60, 50, []),
        (60, None, []),
        (60, 0, []),
    ],
)
def test_cycle_time_insights(average, median, expected) -> None:
    assert _ids(generate_insights(average_cycle_time=average, median_cycle_time=median)) == expected


def test_long_tail_description() -> None:
    (insight, _) = generate_insights(average_cycle_time=120, median_cycle_time=40)
    assert insight.value == "+200%"
    assert "(120 days)" in insight.description


class TestPipelineInsights:
    def test_thin_top_of_funnel_and_balanced_pipeline(self) -> None:
        stages = [_stage("lead", 10), _stage("demo", 8), _stage("won", 5)]

        insights = generate_insights(funnel_stages=stages, total_pipeline=100)

        assert _ids(insights) == ["pipeline-low-top", "pipeline-healthy"]
        assert insights[0].value == "10 leads"
        assert insights[1].description == "Pipeline is well-balanced across stages with 100 total opportunities"

    def test_small_unbalanced_pipeline(self) -> None:
        stages = [_stage("lead", 20), _stage("won", 2)]
        assert generate_insights(funnel_stages=stages, total_pipeline=20) == []


class TestOrdering:
    def test_priority_then_confidence(self) -> None:
        insights = generate_insights(
            funnel_stages=[_stage("lead", 100, 30), _stage("won", 70)],
            overall_conversion=3,
            average_cycle_time=20,
            median_cycle_time=20,
        )

        assert _ids(insights) == ["conversion-critical", "funnel-dropoff-1", "cycle-time-fast"]
        assert [insight.priority for insight in insights] == [
            InsightPriority.CRITICAL,
            InsightPriority.MEDIUM,
            InsightPriority.LOW,
        ]

    def test_top_insights(self) -> None:
        insights = generate_insights(
            funnel_stages=[_stage("lead", 100, 60), _stage("demo", 40, 40), _stage("won", 24)],
            overall_conversion=3,
            average_cycle_time=120,
            median_cycle_time=40,
        )

        assert len(insights) == 5
        assert get_top_insights(insights) == insights[:3]
        assert get_top_insights(insights, 1) == insights[:1]
        assert get_top_insights(insights, 0) == []

    def test_format_insight_text(self) -> None:
        (insight,) = generate_insights(overall_conversion=25)
        assert format_insight_text(insight) == (
            "Excellent Conversion Rate: Your 25.0% conversion rate is above industry benchmarks"
        )
