"""
metric_engine/models.py

Metric definitions and computed metric values.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping

MAX_DECIMALS = 20


class AggregationType(str, Enum):
    COUNT = "count"
    SUM = "sum"
    AVERAGE = "average"
    MIN = "min"
    MAX = "max"
    MEDIAN = "median"
    CONVERSION_RATE = "conversion_rate"
    CYCLE_TIME = "cycle_time"


class FormulaType(str, Enum):
    FIELD = "field"
    EXPRESSION = "expression"
    DERIVED = "derived"


class FilterOperator(str, Enum):
    EQ = "eq"
    NEQ = "neq"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    IN = "in"
    CONTAINS = "contains"


class FormatType(str, Enum):
    NUMBER = "number"
    CURRENCY = "currency"
    PERCENTAGE = "percentage"
    DURATION = "duration"


class PeriodType(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"
    ALL = "all"
    CUSTOM = "custom"


class Trend(str, Enum):
    UP = "up"
    DOWN = "down"
    NEUTRAL = "neutral"


@dataclass(frozen=True)
class MetricFormula:
    """
    What each record contributes to an aggregation.

    ``field`` is a dot path over record attributes (``value``,
    ``metadata.customFields.region``). ``numerator``/``denominator`` are only
    meaningful for ``derived`` formulas.
    """

    type: FormulaType = FormulaType.FIELD
    field: str | None = None
    expression: str | None = None
    numerator: "MetricDefinition | None" = None
    denominator: "MetricDefinition | None" = None

    @property
    def is_ratio(self) -> bool:
        return (
            self.type == FormulaType.DERIVED
            and self.numerator is not None
            and self.denominator is not None
        )


@dataclass(frozen=True)
class MetricFilter:
    field: str
    operator: FilterOperator
    value: Any = None


@dataclass(frozen=True)
class MetricFormat:
    type: FormatType = FormatType.NUMBER
    decimals: int = 0
    currency: str = "USD"
    prefix: str = ""
    suffix: str = ""


@dataclass(frozen=True)
class MetricDefinition:
    id: str
    name: str
    aggregation: AggregationType
    formula: MetricFormula = field(default_factory=MetricFormula)
    format: MetricFormat = field(default_factory=MetricFormat)
    filters: tuple[MetricFilter, ...] = ()
    group_by: tuple[str, ...] = ()
    description: str | None = None
    comparison: bool = True

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "MetricDefinition":
        """
        Build a definition from its camelCase JSON representation.
        """

        formula_payload = payload.get("formula") or {}
        format_payload = payload.get("format") or {}
        numerator = formula_payload.get("numerator")
        denominator = formula_payload.get("denominator")
        decimals = int(format_payload.get("decimals", 0))
        if not 0 <= decimals <= MAX_DECIMALS:
            raise ValueError(f"decimals must be between 0 and {MAX_DECIMALS}, got {decimals}")
        group_by = payload.get("groupBy") or ()
        if isinstance(group_by, str):
            group_by = (group_by,)
        elif not isinstance(group_by, (list, tuple)):
            raise ValueError(f"groupBy must be a field name or a list of field names, got {group_by!r}")
        return cls(
            id=str(payload["id"]),
            name=str(payload.get("name") or payload["id"]),
            description=payload.get("description"),
            aggregation=AggregationType(payload["aggregation"]),
            formula=MetricFormula(
                type=FormulaType(formula_payload.get("type", "field")),
                field=formula_payload.get("field"),
                expression=formula_payload.get("expression"),
                numerator=cls.from_dict(numerator) if numerator else None,
                denominator=cls.from_dict(denominator) if denominator else None,
            ),
            format=MetricFormat(
                type=FormatType(format_payload.get("type", "number")),
                decimals=decimals,
                currency=str(format_payload.get("currency", "USD")),
                prefix=str(format_payload.get("prefix", "")),
                suffix=str(format_payload.get("suffix", "")),
            ),
            filters=tuple(
                MetricFilter(
                    field=str(item["field"]),
                    operator=FilterOperator(item["operator"]),
                    value=item.get("value"),
                )
                for item in payload.get("filters") or ()
            ),
            group_by=tuple(str(item) for item in group_by),
            comparison=bool(payload.get("comparison", True)),
        )


@dataclass(frozen=True)
class Period:
    """
    Inclusive time window ``[start, end]`` in UTC.
    """

    type: PeriodType
    start: datetime
    end: datetime
    label: str

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


@dataclass(frozen=True)
class MetricComparison:
    previous_value: float | None
    delta: float | None
    delta_percent: float | None
    trend: Trend


@dataclass(frozen=True)
class MetricBreakdown:
    group_key: str
    group_label: str
    value: float
    formatted_value: str
    percentage: float


@dataclass(frozen=True)
class MetricValue:
    metric_id: str
    value: float | None
    formatted_value: str
    period: Period
    comparison: MetricComparison | None = None
    breakdown: list[MetricBreakdown] | None = None
