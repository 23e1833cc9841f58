"""
app/validators/mapping_validator.py

Validation for user-supplied field mappings.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from app.domain.records import CORE_TARGET_FIELDS, FieldMapping


@dataclass(frozen=True)
class MappingErrorDetail:
    """
    Structured mapping error detail.
    """

    code: str
    message: str
    target_field: str | None = None
    source_field: str | None = None
    context: dict[str, Any] | None = None


class SchemaMappingError(ValueError):
    """
    Raised when a mapping set cannot be applied safely.
    """

    def __init__(self, *, message: str, errors: Sequence[MappingErrorDetail]) -> None:
        super().__init__(message)
        self.message = message
        self.errors = tuple(errors)

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "errors": [
                {
                    "code": error.code,
                    "message": error.message,
                    "target_field": error.target_field,
                    "source_field": error.source_field,
                    "context": error.context,
                }
                for error in self.errors
            ],
        }


class MappingValidator:
    """
    Validates field mappings before normalization.

    When *source_fields* is given, every mapped source must name a known
    field or a dot path whose first segment is a known field.
    """

    def __init__(self, *, core_fields: Sequence[str] = CORE_TARGET_FIELDS) -> None:
        self._core_fields = frozenset(core_fields)

    def validate(
        self,
        mappings: Sequence[FieldMapping],
        *,
        source_fields: Sequence[str] | None = None,
    ) -> None:
        """
        Validate mappings and raise structured errors if invalid.
        """

        errors: list[MappingErrorDetail] = []
        known_sources = set(source_fields) if source_fields is not None else None
        seen_core_targets: dict[str, str] = {}

        for mapping in mappings:
            source_field = mapping.source_field.strip()
            target_field = mapping.target_field.strip()

            if not source_field:
                errors.append(
                    MappingErrorDetail(
                        code="blank_source_field",
                        message="Mapping has an empty source field.",
                        target_field=target_field or None,
                    )
                )
            elif known_sources is not None and not self._is_known_source(source_field, known_sources):
                errors.append(
                    MappingErrorDetail(
                        code="unknown_source_field",
                        message="Mapped source field does not exist in the data.",
                        target_field=target_field or None,
                        source_field=source_field,
                        context={"source_fields": sorted(known_sources)},
                    )
                )

            if not target_field:
                errors.append(
                    MappingErrorDetail(
                        code="blank_target_field",
                        message="Mapping has an empty target field.",
                        source_field=source_field or None,
                    )
                )
                continue

            if target_field in self._core_fields:
                previous_source = seen_core_targets.get(target_field)
                if previous_source is not None:
                    errors.append(
                        MappingErrorDetail(
                            code="duplicate_target_field",
                            message="Core record field is mapped more than once.",
                            target_field=target_field,
                            source_field=source_field,
                            context={"first_source_field": previous_source},
                        )
                    )
                else:
                    seen_core_targets[target_field] = source_field

        if errors:
            codes = ", ".join(sorted({error.code for error in errors}))
            raise SchemaMappingError(
                message=f"Field mapping validation failed: {codes}.",
                errors=errors,
            )

    @staticmethod
    def _is_known_source(source_field: str, known_sources: set[str]) -> bool:
        if source_field in known_sources:
            return True
        return source_field.split(".", 1)[0] in known_sources
