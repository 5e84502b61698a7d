"""
Relay endpoint rotation for fetching cross-origin listing pages.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from urllib.parse import quote

import requests

from app.scraping.config.models import RelayEndpointConfig
from app.scraping.errors import ProxyExhaustedError, RelayFailure
from app.scraping.logging_utils import log_event

logger = logging.getLogger(__name__)

MIN_CONTENT_LENGTH = 100
DEFAULT_TIMEOUT_SECONDS = 30.0

BROWSER_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Accept-Encoding": "gzip, deflate",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
}


def passthrough(body: str) -> str:
    return body


def json_field(field_name: str) -> Callable[[str], str]:
    """
    Build a transform that unwraps one string field from a JSON envelope.
    """

    def transform(body: str) -> str:
        payload = json.loads(body)
        if not isinstance(payload, dict):
            raise ValueError("relay envelope is not a JSON object")
        value = payload.get(field_name)
        if not isinstance(value, str):
            raise ValueError(f"relay envelope has no string field '{field_name}'")
        return value

    return transform


@dataclass(frozen=True)
class ProxyEndpoint:
    name: str
    url_template: str
    transform: Callable[[str], str] = passthrough

    def build_url(self, target_url: str) -> str:
        return self.url_template.replace("{url}", quote(target_url, safe=""))

    @classmethod
    def from_config(cls, config: RelayEndpointConfig) -> "ProxyEndpoint":
        if config.transform.startswith("json:"):
            transform = json_field(config.transform.split(":", 1)[1])
        else:
            transform = passthrough
        return cls(name=config.name, url_template=config.url_template, transform=transform)


@dataclass(frozen=True)
class EndpointReport:
    working: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


class ProxyRotator:
    """
    Round-robins fetches across relay endpoints with linear backoff between attempts.

    The cursor is instance state: consecutive calls start from the relay after
    the one used last, so a failing relay is not retried first.
    """

    def __init__(
        self,
        endpoints: Sequence[ProxyEndpoint],
        *,
        session: requests.Session | None = None,
        user_agent: str = "Mozilla/5.0",
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        backoff_seconds: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if not endpoints:
            raise ValueError("ProxyRotator requires at least one relay endpoint.")
        self._endpoints = list(endpoints)
        self._session = session or requests.Session()
        self._headers = {"User-Agent": user_agent, **BROWSER_HEADERS}
        self._timeout_seconds = timeout_seconds
        self._backoff_seconds = backoff_seconds
        self._sleep = sleep
        self._cursor = 0

    @property
    def endpoint_names(self) -> list[str]:
        return [endpoint.name for endpoint in self._endpoints]

    @property
    def cursor(self) -> int:
        return self._cursor

    def prefer(self, name: str | None) -> bool:
        """
        Move the cursor to a named relay. Unknown names and "auto" are ignored.
        """

        if not name:
            return False
        normalized = name.strip().lower()
        for index, endpoint in enumerate(self._endpoints):
            if endpoint.name.lower() == normalized:
                self._cursor = index
                return True
        return False

    def fetch(
        self,
        target_url: str,
        *,
        timeout: float | None = None,
        max_retries: int | None = None,
    ) -> str:
        """
        Fetch raw HTML for ``target_url`` through the relays.

        Raises ProxyExhaustedError after ``max_retries`` failed attempts
        (default: one attempt per relay).
        """

        attempts = max(1, max_retries if max_retries is not None else len(self._endpoints))
        effective_timeout = timeout if timeout is not None else self._timeout_seconds
        last_error: RelayFailure | None = None

        for attempt in range(1, attempts + 1):
            endpoint = self._endpoints[self._cursor]
            self._cursor = (self._cursor + 1) % len(self._endpoints)

            try:
                return self._fetch_via(endpoint, target_url, timeout=effective_timeout)
            except RelayFailure as exc:
                last_error = exc
                log_event(
                    logger,
                    logging.WARNING,
                    "relay_attempt_failed",
                    relay=endpoint.name,
                    target_url=target_url,
                    attempt=attempt,
                    max_attempts=attempts,
                    error=exc.message,
                )

            if attempt < attempts:
                self._sleep(self._backoff_seconds * attempt)

        raise ProxyExhaustedError(target_url, attempts, last_error) from last_error

    def test_endpoints(self, sample_url: str, *, timeout: float = 10.0) -> EndpointReport:
        """
        Try every relay once, independent of the rotation cursor.
        """

        report = EndpointReport()
        for endpoint in self._endpoints:
            try:
                self._fetch_via(endpoint, sample_url, timeout=timeout)
                report.working.append(endpoint.name)
            except RelayFailure as exc:
                report.failed.append(endpoint.name)
                log_event(
                    logger,
                    logging.INFO,
                    "relay_check_failed",
                    relay=endpoint.name,
                    sample_url=sample_url,
                    error=exc.message,
                )
        return report

    def _fetch_via(self, endpoint: ProxyEndpoint, target_url: str, *, timeout: float) -> str:
        relay_url = endpoint.build_url(target_url)
        try:
            response = self._session.get(
                relay_url,
                headers=self._headers,
                timeout=timeout,
                allow_redirects=True,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise RelayFailure(endpoint.name, str(exc)) from exc

        try:
            content = endpoint.transform(response.text)
        except (ValueError, TypeError) as exc:
            raise RelayFailure(endpoint.name, f"unreadable relay response: {exc}") from exc

        if not content or len(content) < MIN_CONTENT_LENGTH:
            raise RelayFailure(endpoint.name, "returned empty or invalid content")
        return content


def build_proxy_rotator(
    configs: Sequence[RelayEndpointConfig],
    *,
    session: requests.Session | None = None,
    user_agent: str = "Mozilla/5.0",
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    backoff_seconds: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
) -> ProxyRotator:
    return ProxyRotator(
        [ProxyEndpoint.from_config(config) for config in configs],
        session=session,
        user_agent=user_agent,
        timeout_seconds=timeout_seconds,
        backoff_seconds=backoff_seconds,
        sleep=sleep,
    )
