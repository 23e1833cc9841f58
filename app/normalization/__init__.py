"""
app/normalization package marker.
"""

from app.normalization.normalizer import build_record, normalise, preview
from app.normalization.schema_detection import (
    calculate_confidence,
    calculate_field_stats,
    detect_fields,
    detect_schema,
    infer_type,
    suggest_mappings,
    suggested_field_mappings,
)
from app.normalization.transforms import apply_transform, get_field_value, parse_date, parse_number

__all__ = [
    "apply_transform",
    "build_record",
    "calculate_confidence",
    "calculate_field_stats",
    "detect_fields",
    "detect_schema",
    "get_field_value",
    "infer_type",
    "normalise",
    "parse_date",
    "parse_number",
    "preview",
    "suggest_mappings",
    "suggested_field_mappings",
]
