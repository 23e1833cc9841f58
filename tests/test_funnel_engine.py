"""
tests/test_funnel_engine.py

Funnel counts, conversions, transitions and stage inference.
"""

from __future__ import annotations

import pytest

from conftest import utc
from funnel_engine.engine import FunnelEngine, create_funnel_engine, infer_stages_from_records
from funnel_engine.models import FunnelStage
from metric_engine.models import PeriodType
from metric_engine.periods import create_period

DAY_MS = 1000 * 60 * 60 * 24

STAGES = [
    FunnelStage(name="prospecting", order=0),
    FunnelStage(name="qualified", order=1),
    FunnelStage(name="won", order=2, color="#22c55e"),
]


@pytest.fixture()
def records(make_record):
    return [
        make_record("a", status="prospecting"),
        make_record("b", status="qualified"),
        make_record("c", status="won", created_at=utc(2024, 1, 1), closed_at=utc(2024, 1, 11)),
    ]


@pytest.fixture()
def events(make_event):
    return [
        make_event("a", None, "prospecting"),
        make_event("b", "prospecting", "qualified", duration_ms=2 * DAY_MS),
        make_event("c", "prospecting", "qualified", duration_ms=4 * DAY_MS),
        make_event("c", "qualified", "won", duration_ms=DAY_MS),
        make_event("x", "qualified", "won", duration_ms=0),
    ]


class TestCompute:
    def test_cumulative_counts_and_conversions(self, records) -> None:
        funnel = FunnelEngine(records, [], STAGES).compute()

        assert [stage.count for stage in funnel.stages] == [3, 2, 1]
        assert [stage.percentage for stage in funnel.stages] == pytest.approx([100, 200 / 3, 100 / 3])
        assert funnel.overall_conversion == pytest.approx(33.3333, rel=1e-4)
        assert funnel.total_records == 3

        prospecting, qualified, won = funnel.stages
        assert prospecting.conversion_to_next == pytest.approx(200 / 3)
        assert prospecting.drop_off == pytest.approx(33.3333, rel=1e-4)
        assert qualified.conversion_to_next == pytest.approx(50)
        assert won.conversion_to_next is None
        assert won.drop_off is None

    def test_average_cycle_time(self, records) -> None:
        assert FunnelEngine(records, [], STAGES).compute().average_cycle_time == pytest.approx(10)

    def test_time_in_stage_from_events(self, records, events) -> None:
        funnel = FunnelEngine(records, events, STAGES).compute()

        assert funnel.stages[0].average_time_in_stage == pytest.approx(3)
        assert funnel.stages[1].average_time_in_stage == pytest.approx(1)
        assert funnel.stages[2].average_time_in_stage is None

    def test_unknown_status_reaches_no_stage(self, records, make_record) -> None:
        funnel = FunnelEngine([*records, make_record("z", status="archived")], [], STAGES).compute()

        assert [stage.count for stage in funnel.stages] == [3, 2, 1]
        assert funnel.total_records == 4
        assert funnel.stages[0].percentage == pytest.approx(75)

    def test_period_filters_by_creation_date(self, records) -> None:
        period = create_period(PeriodType.DAY, utc(2024, 1, 15))
        funnel = FunnelEngine(records, [], STAGES).compute(period)

        assert funnel.total_records == 2
        assert [stage.count for stage in funnel.stages] == [2, 1, 0]
        assert funnel.stages[1].conversion_to_next == pytest.approx(0)

    def test_empty_stage_has_no_conversion(self, make_record) -> None:
        funnel = FunnelEngine([make_record(status="prospecting")], [], STAGES).compute()

        qualified = funnel.stages[1]
        assert qualified.count == 0
        assert qualified.conversion_to_next is None
        assert qualified.drop_off is None

    def test_no_records_or_stages(self) -> None:
        assert FunnelEngine([], [], STAGES).compute().overall_conversion == 0
        funnel = FunnelEngine([], [], []).compute()
        assert funnel.stages == []
        assert funnel.average_cycle_time is None

    def test_stages_are_sorted_without_touching_input(self, records) -> None:
        shuffled = [STAGES[2], STAGES[0], STAGES[1]]

        engine = create_funnel_engine(records, [], shuffled)

        assert [stage.name for stage in engine.stages] == ["prospecting", "qualified", "won"]
        assert [stage.name for stage in shuffled] == ["won", "prospecting", "qualified"]


class TestTransitions:
    def test_counts_moves_most_frequent_first(self, records, events) -> None:
        transitions = FunnelEngine(records, events, STAGES).get_transitions()

        assert [(item.from_stage, item.to_stage, item.count) for item in transitions] == [
            ("prospecting", "qualified", 2),
            ("qualified", "won", 2),
        ]
        assert transitions[0].percentage == pytest.approx(50)
        assert transitions[0].average_duration == pytest.approx(3)
        assert transitions[1].average_duration == pytest.approx(1)

    def test_period_filters_event_timestamps(self, records, make_event) -> None:
        events = [
            make_event("a", "prospecting", "qualified", timestamp=utc(2024, 1, 5)),
            make_event("b", "prospecting", "qualified", timestamp=utc(2024, 2, 5)),
        ]
        january = create_period(PeriodType.MONTH, utc(2024, 1, 1))

        (transition,) = FunnelEngine(records, events, STAGES).get_transitions(january)

        assert transition.count == 1
        assert transition.percentage == pytest.approx(100)
        assert transition.average_duration is None

    def test_no_events(self, records) -> None:
        assert FunnelEngine(records, [], STAGES).get_transitions() == []


class TestStageMembership:
    def test_conversion_rate_between_stages(self, records) -> None:
        engine = FunnelEngine(records, [], STAGES)

        assert engine.get_conversion_rate("prospecting", "won") == pytest.approx(100 / 3)
        assert engine.get_conversion_rate("qualified", "won") == pytest.approx(50)
        assert engine.get_conversion_rate("missing", "won") == 0

    def test_has_reached_stage(self, records) -> None:
        engine = FunnelEngine(records, [], STAGES)

        assert engine.has_reached_stage(records[2], "prospecting") is True
        assert engine.has_reached_stage(records[0], "won") is False
        assert engine.has_reached_stage(records[0], "missing") is False


def test_infer_stages_in_first_seen_order(make_record) -> None:
    records = [make_record("1", status="B"), make_record("2", status="A"), make_record("3", status="B"), make_record("4", status="C")]

    stages = infer_stages_from_records(records)

    assert [(stage.name, stage.order) for stage in stages] == [("B", 0), ("A", 1), ("C", 2)]
