"""
Model package exports.

Import all SQLAlchemy models here so metadata registration works without
extra imports.
"""

from db.models.stored_dataset import StoredDatasetRow

__all__ = [
    "StoredDatasetRow",
]
