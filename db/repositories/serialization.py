"""
JSON-safe (de)serialization of stored datasets.

Datetimes are written as ISO 8601 strings in UTC. Custom field values that
are datetimes are tagged so they round-trip as datetimes.
"""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from typing import Any, Mapping

from app.domain.records import (
    Actor,
    DirectTransform,
    FieldMapping,
    Record,
    RecordMetadata,
    StageEvent,
)
from app.normalization.transforms import ensure_utc
from db.repositories.errors import DatasetSerializationError
from db.repositories.types import DatasetMetadata, StoredDataset

PAYLOAD_VERSION = 1
_DATETIME_TAG = "$datetime"


def _dt(value: datetime | None) -> str | None:
    return ensure_utc(value).isoformat() if value is not None else None


def _parse_dt(value: Any) -> datetime | None:
    if value is None:
        return None
    return ensure_utc(datetime.fromisoformat(str(value)))


def _encode_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return {_DATETIME_TAG: _dt(value)}
    if isinstance(value, Mapping):
        return {str(key): _encode_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_encode_value(item) for item in value]
    return value


def _decode_value(value: Any) -> Any:
    if isinstance(value, Mapping):
        if set(value.keys()) == {_DATETIME_TAG}:
            return _parse_dt(value[_DATETIME_TAG])
        return {key: _decode_value(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_decode_value(item) for item in value]
    return value


def record_to_dict(record: Record) -> dict[str, Any]:
    return {
        "id": record.id,
        "externalId": record.external_id,
        "ownerId": record.owner_id,
        "status": record.status,
        "value": record.value,
        "createdAt": _dt(record.created_at),
        "updatedAt": _dt(record.updated_at),
        "closedAt": _dt(record.closed_at),
        "metadata": {
            "source": record.metadata.source,
            "sourceType": record.metadata.source_type,
            "customFields": _encode_value(record.metadata.custom_fields),
        },
    }


def record_from_dict(payload: Mapping[str, Any]) -> Record:
    metadata = payload.get("metadata") or {}
    return Record(
        id=str(payload["id"]),
        external_id=payload.get("externalId"),
        owner_id=str(payload["ownerId"]),
        status=str(payload["status"]),
        value=payload.get("value"),
        created_at=_parse_dt(payload["createdAt"]),
        updated_at=_parse_dt(payload["updatedAt"]),
        closed_at=_parse_dt(payload.get("closedAt")),
        metadata=RecordMetadata(
            source=str(metadata.get("source", "")),
            source_type=str(metadata.get("sourceType", "")),
            custom_fields=_decode_value(metadata.get("customFields") or {}),
        ),
    )


def stage_event_to_dict(event: StageEvent) -> dict[str, Any]:
    return {
        "id": event.id,
        "recordId": event.record_id,
        "fromStage": event.from_stage,
        "toStage": event.to_stage,
        "timestamp": _dt(event.timestamp),
        "actorId": event.actor_id,
        "durationInPreviousStage": event.duration_in_previous_stage,
    }


def stage_event_from_dict(payload: Mapping[str, Any]) -> StageEvent:
    return StageEvent(
        id=str(payload["id"]),
        record_id=str(payload["recordId"]),
        from_stage=payload.get("fromStage"),
        to_stage=str(payload["toStage"]),
        timestamp=_parse_dt(payload["timestamp"]),
        actor_id=payload.get("actorId"),
        duration_in_previous_stage=payload.get("durationInPreviousStage"),
    )


def actor_to_dict(actor: Actor) -> dict[str, Any]:
    return {
        "id": actor.id,
        "externalId": actor.external_id,
        "name": actor.name,
        "email": actor.email,
        "createdAt": _dt(actor.created_at),
        "metadata": _encode_value(actor.metadata),
    }


def actor_from_dict(payload: Mapping[str, Any]) -> Actor:
    return Actor(
        id=str(payload["id"]),
        external_id=payload.get("externalId"),
        name=str(payload.get("name") or payload["id"]),
        email=payload.get("email"),
        created_at=_parse_dt(payload["createdAt"]),
        metadata=_decode_value(payload.get("metadata") or {}),
    )


def field_mapping_to_dict(mapping: FieldMapping) -> dict[str, Any]:
    transform = mapping.transform
    return {
        "sourceField": mapping.source_field,
        "targetField": mapping.target_field,
        "transform": (
            asdict(transform)
            if transform is not None and not isinstance(transform, DirectTransform)
            else None
        ),
    }


def dataset_to_payload(dataset: StoredDataset) -> dict[str, Any]:
    return {
        "version": PAYLOAD_VERSION,
        "id": dataset.id,
        "createdAt": _dt(dataset.created_at),
        "metadata": {
            "sourceType": dataset.metadata.source_type,
            "rowCount": dataset.metadata.row_count,
            "fieldMappings": [field_mapping_to_dict(mapping) for mapping in dataset.metadata.field_mappings],
        },
        "records": [record_to_dict(record) for record in dataset.records],
        "stageEvents": [stage_event_to_dict(event) for event in dataset.stage_events],
        "actors": [actor_to_dict(actor) for actor in dataset.actors],
    }


def dataset_from_payload(payload: Mapping[str, Any]) -> StoredDataset:
    """
    Rebuild a dataset from :func:`dataset_to_payload` output.

    Raises DatasetSerializationError for missing keys or malformed values.
    """

    try:
        metadata = payload.get("metadata") or {}
        return StoredDataset(
            id=str(payload["id"]),
            created_at=_parse_dt(payload["createdAt"]),
            metadata=DatasetMetadata(
                source_type=str(metadata.get("sourceType", "")),
                row_count=int(metadata.get("rowCount", 0)),
                field_mappings=[FieldMapping.from_dict(item) for item in metadata.get("fieldMappings") or []],
            ),
            records=[record_from_dict(item) for item in payload.get("records") or []],
            stage_events=[stage_event_from_dict(item) for item in payload.get("stageEvents") or []],
            actors=[actor_from_dict(item) for item in payload.get("actors") or []],
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise DatasetSerializationError(f"Stored dataset payload is invalid: {exc}") from exc
