"""
Page-by-page traversal of one configured listing URL.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from app.domain.scraping import ExtractedCompany, ScrapeSettings
from app.scraping.config.models import ScraperRuntimeSettings
from app.scraping.errors import PageRetryExhausted, ProxyExhaustedError
from app.scraping.extraction.engine import ExtractionEngine
from app.scraping.logging_utils import JobLogRecorder, log_event
from app.scraping.proxy import ProxyRotator

logger = logging.getLogger(__name__)

DEFAULT_MAX_PAGES = 10
DEFAULT_MAX_RECORDS_PER_URL = 500


def build_page_url(seed_url: str, page: int) -> str:
    """
    Return ``seed_url`` with its ``page`` query parameter set to ``page``.

    Other query parameters keep their order and values.
    """

    if page <= 1:
        return seed_url
    parts = urlsplit(seed_url)
    query = [(key, value) for key, value in parse_qsl(parts.query, keep_blank_values=True) if key != "page"]
    query.append(("page", str(page)))
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


class PaginationController:
    """
    Walks listing pages for one seed URL and hands accepted records to a sink.
    """

    def __init__(
        self,
        *,
        rotator: ProxyRotator,
        engine: ExtractionEngine,
        max_pages: int = DEFAULT_MAX_PAGES,
        max_records_per_url: int = DEFAULT_MAX_RECORDS_PER_URL,
        page_retry_delay_seconds: float = 1.0,
        fetch_timeout_seconds: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._rotator = rotator
        self._engine = engine
        self._max_pages = max(1, max_pages)
        self._max_records_per_url = max(1, max_records_per_url)
        self._page_retry_delay_seconds = page_retry_delay_seconds
        self._fetch_timeout_seconds = fetch_timeout_seconds
        self._sleep = sleep

    @classmethod
    def from_runtime_settings(
        cls,
        runtime: ScraperRuntimeSettings,
        *,
        rotator: ProxyRotator,
        engine: ExtractionEngine,
        sleep: Callable[[float], None] = time.sleep,
    ) -> "PaginationController":
        return cls(
            rotator=rotator,
            engine=engine,
            max_pages=runtime.max_pages,
            max_records_per_url=runtime.max_records_per_url,
            page_retry_delay_seconds=runtime.page_retry_delay_seconds,
            fetch_timeout_seconds=runtime.fetch_timeout_seconds,
            sleep=sleep,
        )

    def collect(
        self,
        seed_url: str,
        settings: ScrapeSettings,
        sink: Callable[[ExtractedCompany], None],
        *,
        should_stop: Callable[[], bool] | None = None,
        recorder: JobLogRecorder | None = None,
    ) -> int:
        """
        Collect records for ``seed_url`` and return how many reached the sink.

        Never raises for fetch failures: an exhausted page ends the traversal.
        """

        detail_page = self._engine.is_detail_url(seed_url)
        total = 0
        page = 1
        reason = "max_pages"

        while page <= self._max_pages:
            if should_stop is not None and should_stop():
                reason = "cancelled"
                break

            page_url = build_page_url(seed_url, page)
            try:
                records = self._fetch_records(page_url, seed_url, settings, detail_page=detail_page)
            except PageRetryExhausted as exc:
                reason = "retry_exhausted"
                log_event(
                    logger,
                    logging.WARNING,
                    "page_retry_exhausted",
                    seed_url=seed_url,
                    page_url=page_url,
                    page=page,
                    attempts=exc.attempts,
                    error=str(exc.last_error) if exc.last_error else None,
                )
                if recorder is not None:
                    recorder.warning(
                        f"Failed to fetch page {page} of {seed_url} after {exc.attempts} attempts",
                        event="page_retry_exhausted",
                        page_url=page_url,
                    )
                break

            if not records:
                reason = "end_of_listing"
                break

            for record in records:
                if not record.passes_min_rating(settings.min_rating):
                    continue
                sink(record)
                total += 1
                if total >= self._max_records_per_url:
                    break

            if detail_page:
                reason = "detail_page"
                break
            if total >= self._max_records_per_url:
                reason = "safety_ceiling"
                break
            if page >= self._max_pages:
                reason = "max_pages"
                break

            page += 1
            self._sleep(settings.delay_seconds)

        log_event(
            logger,
            logging.INFO,
            "pagination_finished",
            seed_url=seed_url,
            pages_visited=page,
            records_accepted=total,
            reason=reason,
        )
        return total

    def _fetch_records(
        self,
        page_url: str,
        seed_url: str,
        settings: ScrapeSettings,
        *,
        detail_page: bool,
    ) -> list[ExtractedCompany]:
        attempts = max(1, settings.retry_attempts)
        last_error: ProxyExhaustedError | None = None

        for attempt in range(1, attempts + 1):
            try:
                html = self._rotator.fetch(page_url, timeout=self._fetch_timeout_seconds)
            except ProxyExhaustedError as exc:
                last_error = exc
                log_event(
                    logger,
                    logging.WARNING,
                    "page_fetch_failed",
                    page_url=page_url,
                    attempt=attempt,
                    max_attempts=attempts,
                    error=str(exc),
                )
                if attempt < attempts:
                    self._sleep(self._page_retry_delay_seconds * attempt)
                continue

            if detail_page:
                record = self._engine.extract_detail(html, seed_url)
                return [record] if record is not None else []
            return self._engine.extract_listing(html, seed_url, settings)

        raise PageRetryExhausted(page_url, attempts, last_error)
