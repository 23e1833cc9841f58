"""
app/adapters/http.py

JSON client shared by the remote source adapters (CRM REST, Google Sheets).

Handles source authentication, page/per_page pagination, rate limiting and
retries. A ``Retry-After`` header on a throttled response overrides the
exponential backoff.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Iterator

import requests

from app.config import ExternalHTTPSettings
from app.logging_utils import log_event

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}
MAX_RETRY_AFTER_SECONDS = 60.0


class ConnectorRequestError(RuntimeError):
    """
    Raised when a remote source cannot be fetched after retries.
    """


@dataclass(frozen=True)
class SourceAuth:
    """
    Credentials for one remote source.

    A bearer token wins over an API key; the key travels as the
    ``api_key_param`` query parameter.
    """

    bearer_token: str | None = None
    api_key: str | None = None
    api_key_param: str = "key"

    def headers(self) -> dict[str, str]:
        if self.bearer_token:
            return {"Authorization": f"Bearer {self.bearer_token}"}
        return {}

    def params(self) -> dict[str, str]:
        if not self.bearer_token and self.api_key:
            return {self.api_key_param: self.api_key}
        return {}


def retry_after_seconds(response: requests.Response | None, now: datetime | None = None) -> float | None:
    """
    Parse ``Retry-After`` as delta-seconds or an HTTP date.

    Returns ``None`` when absent or unparseable; capped at
    ``MAX_RETRY_AFTER_SECONDS``.
    """

    if response is None:
        return None
    raw = response.headers.get("Retry-After")
    if not raw:
        return None
    raw = raw.strip()
    if raw.isdigit():
        seconds = float(raw)
    else:
        try:
            moment = parsedate_to_datetime(raw)
        except (TypeError, ValueError):
            return None
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        seconds = (moment - (now or datetime.now(timezone.utc))).total_seconds()
    return min(max(seconds, 0.0), MAX_RETRY_AFTER_SECONDS)


class HTTPSourceClient:
    """
    GET-only JSON client for one named source.
    """

    def __init__(
        self,
        *,
        source: str,
        http_settings: ExternalHTTPSettings,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.source = source
        self._session = session or requests.Session()
        self._settings = http_settings
        self._sleep = sleep
        self._min_interval = (
            1.0 / http_settings.rate_limit_per_second if http_settings.rate_limit_per_second > 0 else 0.0
        )
        self._last_sent = 0.0

    def get_json(
        self,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        auth: SourceAuth | None = None,
    ) -> Any:
        """
        GET *url* with the source credentials applied and decode the body.
        """

        query = {**(params or {}), **(auth.params() if auth else {})}
        headers = {"Accept": "application/json", **(auth.headers() if auth else {})}
        response = self._get(url, params=query or None, headers=headers)
        try:
            return response.json()
        except ValueError as exc:
            raise ConnectorRequestError(f"{self.source}: response was not valid JSON.") from exc

    def iter_pages(
        self,
        url: str,
        *,
        per_page: int,
        max_pages: int,
        auth: SourceAuth | None = None,
    ) -> Iterator[tuple[int, Any]]:
        """
        Yield ``(page, payload)`` for pages 1..*max_pages*.

        The caller stops iteration once a payload shows the last page.
        """

        for page in range(1, max_pages + 1):
            yield page, self.get_json(url, params={"page": page, "per_page": per_page}, auth=auth)

    def _get(self, url: str, *, params: dict[str, Any] | None, headers: dict[str, str]) -> requests.Response:
        max_retries = self._settings.max_retries
        last_error: Exception | None = None
        for attempt in range(max_retries + 1):
            response: requests.Response | None = None
            self._throttle()
            try:
                response = self._session.request(
                    method="GET",
                    url=url,
                    params=params,
                    headers=headers,
                    timeout=self._settings.timeout_seconds,
                )
            except (requests.Timeout, requests.ConnectionError) as exc:
                last_error = exc
            else:
                if response.status_code not in RETRYABLE_STATUS_CODES:
                    self._raise_for_status(response, url)
                    return response
                last_error = requests.HTTPError(
                    f"Retryable HTTP status code: {response.status_code}",
                    response=response,
                )

            if attempt >= max_retries:
                break
            wait_seconds = self._retry_wait(attempt, response)
            log_event(
                logger,
                logging.WARNING,
                "source_request_retry",
                source=self.source,
                attempt=attempt + 1,
                max_retries=max_retries,
                wait_seconds=round(wait_seconds, 2),
                status=response.status_code if response is not None else None,
                url=url,
            )
            self._sleep(wait_seconds)

        log_event(
            logger,
            logging.ERROR,
            "source_request_exhausted",
            source=self.source,
            url=url,
            error=str(last_error),
        )
        raise ConnectorRequestError(f"{self.source}: request failed after retries.") from last_error

    def _raise_for_status(self, response: requests.Response, url: str) -> None:
        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            log_event(
                logger,
                logging.ERROR,
                "source_request_failed",
                source=self.source,
                status=response.status_code,
                url=url,
            )
            raise ConnectorRequestError(f"{self.source}: API returned {response.status_code}.") from exc

    def _retry_wait(self, attempt: int, response: requests.Response | None) -> float:
        backoff = self._settings.backoff_initial_seconds * (self._settings.backoff_multiplier**attempt)
        if response is not None and response.status_code in (429, 503):
            server_wait = retry_after_seconds(response)
            if server_wait is not None:
                return max(server_wait, backoff)
        return backoff

    def _throttle(self) -> None:
        if self._min_interval <= 0:
            return
        remaining = self._min_interval - (time.monotonic() - self._last_sent)
        if remaining > 0:
            self._sleep(remaining)
        self._last_sent = time.monotonic()
