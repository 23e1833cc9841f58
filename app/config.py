"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from db.config import load_env_files

_ALLOWED_STORE_BACKENDS = {"file", "database", "memory"}


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """
    Read a float from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    """
    Read a string from environment variables with fallback.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def _get_optional_str_env(name: str) -> str | None:
    """
    Read an optional string value from environment variables.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None


@dataclass(frozen=True)
class NormalizationSettings:
    """
    Runtime settings for preview and schema detection.
    """

    preview_limit: int = 10
    type_sample_size: int = 100


@dataclass(frozen=True)
class ExternalHTTPSettings:
    """
    Shared HTTP behavior settings for remote source adapters.
    """

    timeout_seconds: float = 15.0
    max_retries: int = 3
    backoff_initial_seconds: float = 0.5
    backoff_multiplier: float = 2.0
    rate_limit_per_second: float = 5.0


@dataclass(frozen=True)
class CRMSettings:
    """
    Generic CRM adapter pagination settings.
    """

    page_size: int = 100
    max_pages: int = 100


@dataclass(frozen=True)
class GoogleSheetsSettings:
    """
    Google Sheets values API settings.
    """

    api_key: str | None = None
    base_url: str = "https://sheets.googleapis.com/v4/spreadsheets"
    default_range: str = "A:ZZ"


@dataclass(frozen=True)
class DatasetStoreSettings:
    """
    Dataset persistence settings.
    """

    backend: str = "file"
    directory: Path = Path(".data/datasets")


@dataclass(frozen=True)
class MetricsSettings:
    """
    Defaults applied when a metric format leaves them unspecified.
    """

    default_currency: str = "USD"


@lru_cache(maxsize=1)
def get_normalization_settings() -> NormalizationSettings:
    """
    Return cached normalization settings from environment variables.
    """

    return NormalizationSettings(
        preview_limit=max(1, _get_int_env("NORMALISE_PREVIEW_LIMIT", 10)),
        type_sample_size=max(1, _get_int_env("NORMALISE_TYPE_SAMPLE_SIZE", 100)),
    )


@lru_cache(maxsize=1)
def get_external_http_settings() -> ExternalHTTPSettings:
    """
    Return shared adapter HTTP settings from environment variables.
    """

    return ExternalHTTPSettings(
        timeout_seconds=max(1.0, _get_float_env("EXTERNAL_HTTP_TIMEOUT_SECONDS", 15.0)),
        max_retries=max(0, _get_int_env("EXTERNAL_HTTP_MAX_RETRIES", 3)),
        backoff_initial_seconds=max(0.1, _get_float_env("EXTERNAL_HTTP_BACKOFF_INITIAL_SECONDS", 0.5)),
        backoff_multiplier=max(1.0, _get_float_env("EXTERNAL_HTTP_BACKOFF_MULTIPLIER", 2.0)),
        rate_limit_per_second=max(0.1, _get_float_env("EXTERNAL_HTTP_RATE_LIMIT_PER_SECOND", 5.0)),
    )


@lru_cache(maxsize=1)
def get_crm_settings() -> CRMSettings:
    """
    Return generic CRM adapter settings from environment variables.
    """

    return CRMSettings(
        page_size=max(1, _get_int_env("CRM_PAGE_SIZE", 100)),
        max_pages=max(1, _get_int_env("CRM_MAX_PAGES", 100)),
    )


@lru_cache(maxsize=1)
def get_google_sheets_settings() -> GoogleSheetsSettings:
    """
    Return Google Sheets adapter settings from environment variables.
    """

    return GoogleSheetsSettings(
        api_key=_get_optional_str_env("GOOGLE_SHEETS_API_KEY"),
        base_url=_get_str_env("GOOGLE_SHEETS_BASE_URL", "https://sheets.googleapis.com/v4/spreadsheets"),
        default_range=_get_str_env("GOOGLE_SHEETS_DEFAULT_RANGE", "A:ZZ"),
    )


@lru_cache(maxsize=1)
def get_dataset_store_settings() -> DatasetStoreSettings:
    """
    Return dataset store settings from environment variables.

    Raises RuntimeError if DATASET_STORE_BACKEND names an unknown backend.
    """

    backend = _get_str_env("DATASET_STORE_BACKEND", "file").lower()
    if backend not in _ALLOWED_STORE_BACKENDS:
        raise RuntimeError(
            f"DATASET_STORE_BACKEND '{backend}' is not valid. "
            f"Allowed values: {sorted(_ALLOWED_STORE_BACKENDS)}."
        )
    return DatasetStoreSettings(
        backend=backend,
        directory=Path(_get_str_env("DATASET_STORE_DIR", ".data/datasets")),
    )


@lru_cache(maxsize=1)
def get_metrics_settings() -> MetricsSettings:
    """
    Return metrics formatting defaults from environment variables.
    """

    return MetricsSettings(
        default_currency=_get_str_env("METRICS_DEFAULT_CURRENCY", "USD").upper(),
    )
