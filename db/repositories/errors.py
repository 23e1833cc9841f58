"""
Repository-layer exceptions for dataset storage flows.
"""

from __future__ import annotations


class DatasetStoreError(RuntimeError):
    """Base exception for dataset store failures."""


class DatasetNotFoundError(DatasetStoreError):
    """Raised when a dataset id is unknown to both cache and backend."""


class DatasetPersistenceError(DatasetStoreError):
    """Raised by storage backends when writing or reading a dataset fails."""


class DatasetSerializationError(DatasetStoreError, ValueError):
    """Raised when a stored payload cannot be decoded back into a dataset."""
