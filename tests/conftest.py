from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable

import pytest

from app.domain.records import Record, RecordMetadata, StageEvent


def utc(year: int, month: int, day: int, hour: int = 0) -> datetime:
    return datetime(year, month, day, hour, tzinfo=timezone.utc)


@pytest.fixture()
def make_record() -> Callable[..., Record]:
    """Factory for records with sensible defaults; override any field by keyword."""

    def _make(
        record_id: str = "r1",
        *,
        owner_id: str = "alice",
        status: str = "prospecting",
        value: float | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
        closed_at: datetime | None = None,
        custom_fields: dict[str, Any] | None = None,
    ) -> Record:
        created = created_at or utc(2024, 1, 15)
        return Record(
            id=record_id,
            external_id=record_id,
            owner_id=owner_id,
            status=status,
            value=value,
            created_at=created,
            updated_at=updated_at or created,
            closed_at=closed_at,
            metadata=RecordMetadata(source="test", source_type="manual", custom_fields=custom_fields or {}),
        )

    return _make


@pytest.fixture()
def make_event() -> Callable[..., StageEvent]:
    def _make(
        record_id: str,
        from_stage: str | None,
        to_stage: str,
        *,
        timestamp: datetime | None = None,
        duration_ms: float | None = None,
    ) -> StageEvent:
        return StageEvent(
            id=f"{record_id}-{to_stage}",
            record_id=record_id,
            from_stage=from_stage,
            to_stage=to_stage,
            timestamp=timestamp or utc(2024, 1, 20),
            duration_in_previous_stage=duration_ms,
        )

    return _make
