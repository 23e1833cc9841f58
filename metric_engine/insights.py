"""
metric_engine/insights.py

Rule-based insights derived from funnel and cycle-time figures.

Each rule family looks at one signal (funnel drop-off, overall conversion,
cycle time, pipeline shape) and emits zero or more insights. Results are
ordered by priority, then by confidence.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Sequence

from funnel_engine.models import FunnelStageMetrics

DEFAULT_TOP_INSIGHTS = 3

CRITICAL_DROP_OFF = 50.0
HIGH_DROP_OFF = 30.0
SECONDARY_DROP_OFF = 25.0
MAX_SECONDARY_DROP_OFFS = 2

EXCELLENT_CONVERSION = 20.0
AVERAGE_CONVERSION = 10.0
POOR_CONVERSION = 5.0

OUTLIER_CYCLE_SPREAD_PERCENT = 50.0
LONG_CYCLE_DAYS = 90.0
FAST_CYCLE_DAYS = 30.0

TOP_OF_FUNNEL_SHARE = 0.3
BALANCED_STAGE_RATIO = 0.4
HEALTHY_PIPELINE_SIZE = 50


class InsightType(str, Enum):
    DROP_OFF = "drop-off"
    TREND = "trend"
    ANOMALY = "anomaly"
    OPPORTUNITY = "opportunity"
    PERFORMANCE = "performance"


class InsightPriority(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class InsightImpact(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


_PRIORITY_RANK = {
    InsightPriority.CRITICAL: 0,
    InsightPriority.HIGH: 1,
    InsightPriority.MEDIUM: 2,
    InsightPriority.LOW: 3,
}


@dataclass(frozen=True)
class Insight:
    id: str
    type: InsightType
    priority: InsightPriority
    title: str
    description: str
    value: str
    confidence: int
    recommendation: str | None = None
    impact: InsightImpact | None = None


def _drop_off_insights(stages: Sequence[FunnelStageMetrics]) -> list[Insight]:
    insights: list[Insight] = []
    max_drop_off = 0.0
    worst_stage = ""
    next_stage = ""
    for index, stage in enumerate(stages[:-1]):
        if stage.drop_off is not None and stage.drop_off > max_drop_off:
            max_drop_off = stage.drop_off
            worst_stage = stage.stage
            next_stage = stages[index + 1].stage

    if max_drop_off > 0:
        if max_drop_off > CRITICAL_DROP_OFF:
            priority = InsightPriority.CRITICAL
        elif max_drop_off > HIGH_DROP_OFF:
            priority = InsightPriority.HIGH
        else:
            priority = InsightPriority.MEDIUM
        insights.append(
            Insight(
                id="funnel-dropoff-1",
                type=InsightType.DROP_OFF,
                priority=priority,
                title="Significant Drop-off Detected",
                description=(
                    f"{max_drop_off:.1f}% of opportunities are lost between {worst_stage} and {next_stage}"
                ),
                value=f"{max_drop_off:.1f}%",
                recommendation=(
                    f"Focus on improving the transition from {worst_stage} to {next_stage}. "
                    "Consider: (1) Streamlining the process, (2) Providing better resources, "
                    "(3) Training team members on this stage."
                ),
                impact=InsightImpact.NEGATIVE,
                confidence=90,
            )
        )

    secondary = [
        (stage, stages[index + 1].stage if index + 1 < len(stages) else "next")
        for index, stage in enumerate(stages)
        if SECONDARY_DROP_OFF < (stage.drop_off or 0) < max_drop_off
    ][:MAX_SECONDARY_DROP_OFFS]
    for position, (stage, following) in enumerate(secondary, start=2):
        drop_off = stage.drop_off or 0
        insights.append(
            Insight(
                id=f"funnel-dropoff-{position}",
                type=InsightType.DROP_OFF,
                priority=InsightPriority.MEDIUM,
                title="Secondary Bottleneck",
                description=f"{drop_off:.1f}% drop-off at {stage.stage} -> {following}",
                value=f"{drop_off:.1f}%",
                recommendation="Address this bottleneck after resolving the primary drop-off",
                impact=InsightImpact.NEGATIVE,
                confidence=75,
            )
        )
    return insights


def _conversion_insights(conversion_rate: float) -> list[Insight]:
    value = f"{conversion_rate:.1f}%"
    if conversion_rate >= EXCELLENT_CONVERSION:
        return [
            Insight(
                id="conversion-excellent",
                type=InsightType.PERFORMANCE,
                priority=InsightPriority.LOW,
                title="Excellent Conversion Rate",
                description=f"Your {value} conversion rate is above industry benchmarks",
                value=value,
                recommendation="Maintain current practices and document what's working well",
                impact=InsightImpact.POSITIVE,
                confidence=85,
            )
        ]
    if conversion_rate < POOR_CONVERSION:
        return [
            Insight(
                id="conversion-critical",
                type=InsightType.OPPORTUNITY,
                priority=InsightPriority.CRITICAL,
                title="Low Conversion Rate",
                description=f"{value} conversion rate indicates significant room for improvement",
                value=value,
                recommendation=(
                    "Review your entire funnel for bottlenecks. Consider: (1) Better lead qualification, "
                    "(2) Improved follow-up processes, (3) Enhanced value proposition"
                ),
                impact=InsightImpact.NEGATIVE,
                confidence=90,
            )
        ]
    if conversion_rate < AVERAGE_CONVERSION:
        return [
            Insight(
                id="conversion-below-average",
                type=InsightType.OPPORTUNITY,
                priority=InsightPriority.HIGH,
                title="Below-Average Conversion",
                description=f"{value} conversion rate is below industry average",
                value=value,
                recommendation="Focus on the largest drop-off points and improve those stages first",
                impact=InsightImpact.NEGATIVE,
                confidence=80,
            )
        ]
    return []


def _cycle_time_insights(average_days: float, median_days: float) -> list[Insight]:
    insights: list[Insight] = []
    spread_percent = (average_days - median_days) / median_days * 100
    if spread_percent > OUTLIER_CYCLE_SPREAD_PERCENT:
        insights.append(
            Insight(
                id="cycle-time-outliers",
                type=InsightType.ANOMALY,
                priority=InsightPriority.HIGH,
                title="Long-Tail Deals Detected",
                description=(
                    f"Average cycle time ({round(average_days)} days) is much higher than median "
                    f"({round(median_days)} days), indicating some deals take significantly longer"
                ),
                value=f"+{spread_percent:.0f}%",
                recommendation=(
                    "Investigate deals taking longer than average. Look for: (1) Complex decision-making "
                    "processes, (2) Multiple stakeholders, (3) Missing information or resources"
                ),
                impact=InsightImpact.NEGATIVE,
                confidence=85,
            )
        )

    days = round(average_days)
    if average_days > LONG_CYCLE_DAYS:
        insights.append(
            Insight(
                id="cycle-time-long",
                type=InsightType.OPPORTUNITY,
                priority=InsightPriority.MEDIUM,
                title="Long Sales Cycle",
                description=f"Average cycle time of {days} days may indicate inefficiencies",
                value=f"{days} days",
                recommendation=(
                    "Look for ways to accelerate the process: (1) Automate repetitive tasks, "
                    "(2) Improve response times, (3) Streamline approval processes"
                ),
                impact=InsightImpact.NEGATIVE,
                confidence=75,
            )
        )
    elif average_days < FAST_CYCLE_DAYS:
        insights.append(
            Insight(
                id="cycle-time-fast",
                type=InsightType.PERFORMANCE,
                priority=InsightPriority.LOW,
                title="Fast Sales Cycle",
                description=f"Your {days}-day average cycle time is efficient",
                value=f"{days} days",
                recommendation=(
                    "Maintain velocity while ensuring quality. Document your process for new team members"
                ),
                impact=InsightImpact.POSITIVE,
                confidence=80,
            )
        )
    return insights


def _pipeline_insights(total_pipeline: float, stages: Sequence[FunnelStageMetrics]) -> list[Insight]:
    insights: list[Insight] = []
    counts = [stage.count for stage in stages]
    first_count = counts[0] if counts else 0

    if first_count < total_pipeline * TOP_OF_FUNNEL_SHARE:
        insights.append(
            Insight(
                id="pipeline-low-top",
                type=InsightType.OPPORTUNITY,
                priority=InsightPriority.HIGH,
                title="Insufficient Pipeline",
                description=(
                    f"Only {first_count} opportunities in early stages - may need more lead generation"
                ),
                value=f"{first_count} leads",
                recommendation="Increase lead generation efforts to fill the top of the funnel",
                impact=InsightImpact.NEGATIVE,
                confidence=75,
            )
        )

    balanced = all(counts[index] >= counts[index - 1] * BALANCED_STAGE_RATIO for index in range(1, len(counts)))
    if balanced and total_pipeline > HEALTHY_PIPELINE_SIZE:
        total = f"{total_pipeline:g}"
        insights.append(
            Insight(
                id="pipeline-healthy",
                type=InsightType.PERFORMANCE,
                priority=InsightPriority.LOW,
                title="Healthy Pipeline",
                description=f"Pipeline is well-balanced across stages with {total} total opportunities",
                value=f"{total} deals",
                recommendation="Continue current lead generation and nurturing practices",
                impact=InsightImpact.POSITIVE,
                confidence=80,
            )
        )
    return insights


def generate_insights(
    *,
    funnel_stages: Sequence[FunnelStageMetrics] = (),
    overall_conversion: float | None = None,
    total_pipeline: float | None = None,
    average_cycle_time: float | None = None,
    median_cycle_time: float | None = None,
) -> list[Insight]:
    """
    Run every rule family whose inputs are present.

    Drop-off rules need at least two stages. Cycle-time rules need non-zero
    average and median. Pipeline rules need a non-zero pipeline size.
    """

    insights: list[Insight] = []
    if len(funnel_stages) > 1:
        insights.extend(_drop_off_insights(funnel_stages))
    if overall_conversion is not None:
        insights.extend(_conversion_insights(overall_conversion))
    if average_cycle_time and median_cycle_time:
        insights.extend(_cycle_time_insights(average_cycle_time, median_cycle_time))
    if total_pipeline and funnel_stages:
        insights.extend(_pipeline_insights(total_pipeline, funnel_stages))

    insights.sort(key=lambda insight: (_PRIORITY_RANK[insight.priority], -insight.confidence))
    return insights


def get_top_insights(insights: Sequence[Insight], limit: int = DEFAULT_TOP_INSIGHTS) -> list[Insight]:
    return list(insights[: max(limit, 0)])


def format_insight_text(insight: Insight) -> str:
    return f"{insight.title}: {insight.description}"
