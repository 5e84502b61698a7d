"""
tests/test_pagination.py

Pytest unit tests for app/scraping/pagination.py.

Coverage
--------
- Page URL construction keeps other query parameters
- Traversal stops on an empty page, the page ceiling and the record ceiling
- Detail URLs are fetched exactly once
- Retry exhaustion ends the traversal softly and logs a warning
- Cancellation is observed between pages
- min_rating filtering and seed-URL attribution of records
"""

from __future__ import annotations

import logging

import pytest

from app.domain.scraping import ExtractedCompany, LogLevel, ScrapeSettings
from app.scraping.extraction import ExtractionEngine
from app.scraping.logging_utils import JobLogRecorder
from app.scraping.pagination import PaginationController, build_page_url
from app.scraping.proxy import build_proxy_rotator
from app.scraping.storage import InMemoryScrapeStorage
from fakes import (
    RELAY_CONFIGS,
    SEED_URL,
    FakeSession,
    RecordingSleep,
    empty_listing_page,
    listing_page,
    page_url,
)

DETAIL_URL = "https://www.trustpilot.com/review/acme.com"


@pytest.fixture()
def sleep() -> RecordingSleep:
    return RecordingSleep()


def _controller(session: FakeSession, sleep: RecordingSleep, **overrides) -> PaginationController:
    rotator = build_proxy_rotator(RELAY_CONFIGS, session=session, backoff_seconds=1.0, sleep=sleep)
    options = {"max_pages": 10, "max_records_per_url": 500, "page_retry_delay_seconds": 2.0}
    options.update(overrides)
    return PaginationController(
        rotator=rotator,
        engine=ExtractionEngine(review_site_host="trustpilot.com"),
        sleep=sleep,
        **options,
    )


def _two_per_page(pages: int) -> dict[str, str]:
    return {
        page_url(SEED_URL, page): listing_page((f"Company {page}A", None), (f"Company {page}B", None))
        for page in range(1, pages + 1)
    }


def _collect(controller: PaginationController, settings: ScrapeSettings, **kwargs) -> list[ExtractedCompany]:
    records: list[ExtractedCompany] = []
    total = controller.collect(SEED_URL, settings, records.append, **kwargs)
    assert total == len(records)
    return records


# ---------------------------------------------------------------------------
# Page URLs
# ---------------------------------------------------------------------------


class TestBuildPageUrl:
    def test_first_page_is_seed(self) -> None:
        assert build_page_url(SEED_URL, 1) == SEED_URL

    def test_appends_page(self) -> None:
        assert build_page_url("https://www.trustpilot.com/categories/bank", 2) == (
            "https://www.trustpilot.com/categories/bank?page=2"
        )

    def test_replaces_existing_page_and_keeps_other_params(self) -> None:
        assert build_page_url("https://x.test/categories/a?page=3&sort=latest", 4) == (
            "https://x.test/categories/a?sort=latest&page=4"
        )


# ---------------------------------------------------------------------------
# Stop conditions
# ---------------------------------------------------------------------------


class TestTraversal:
    def test_stops_on_empty_page(self, sleep: RecordingSleep) -> None:
        session = FakeSession(
            {
                page_url(SEED_URL, 1): listing_page(("Acme Tools", 4.5), ("Beta Shop", 4.0)),
                page_url(SEED_URL, 2): listing_page(("Gamma Store", 3.8)),
                page_url(SEED_URL, 3): empty_listing_page(),
            }
        )
        records = _collect(_controller(session, sleep), ScrapeSettings(delay_ms=500))

        assert [record.name for record in records] == ["Acme Tools", "Beta Shop", "Gamma Store"]
        assert all(record.source_url == SEED_URL for record in records)
        assert session.targets() == [page_url(SEED_URL, page) for page in (1, 2, 3)]
        assert sleep.calls == [0.5, 0.5]

    def test_page_ceiling(self, sleep: RecordingSleep) -> None:
        session = FakeSession(_two_per_page(3))
        records = _collect(_controller(session, sleep, max_pages=2), ScrapeSettings(delay_ms=0))

        assert len(records) == 4
        assert session.targets() == [page_url(SEED_URL, 1), page_url(SEED_URL, 2)]

    def test_record_ceiling(self, sleep: RecordingSleep) -> None:
        session = FakeSession(_two_per_page(3))
        records = _collect(_controller(session, sleep, max_records_per_url=3), ScrapeSettings(delay_ms=0))

        assert [record.name for record in records] == ["Company 1A", "Company 1B", "Company 2A"]
        assert len(session.targets()) == 2

    def test_min_rating_filter(self, sleep: RecordingSleep) -> None:
        session = FakeSession(
            {
                page_url(SEED_URL, 1): listing_page(("Acme Tools", 4.5), ("Beta Shop", 2.0), ("Gamma Store", None)),
                page_url(SEED_URL, 2): empty_listing_page(),
            }
        )
        records = _collect(_controller(session, sleep), ScrapeSettings(delay_ms=0, min_rating=3.0))

        assert [record.name for record in records] == ["Acme Tools", "Gamma Store"]

    def test_detail_url_fetched_once(self, sleep: RecordingSleep) -> None:
        html = (
            "<html><head><title>Acme</title></head><body>"
            "<h1>Acme Tools</h1><p data-rating-typography='true'>4.4</p>"
            "<p>Trusted by thousands of customers across the country since 1999.</p>"
            "</body></html>"
        )
        session = FakeSession({DETAIL_URL: html})
        controller = _controller(session, sleep, max_pages=5)

        records: list[ExtractedCompany] = []
        total = controller.collect(DETAIL_URL, ScrapeSettings(delay_ms=0), records.append)

        assert total == 1
        assert records[0].name == "Acme Tools"
        assert records[0].domain == "acme.com"
        assert session.targets() == [DETAIL_URL]


class TestFailuresAndCancellation:
    def test_retry_exhaustion_is_soft(self, sleep: RecordingSleep) -> None:
        session = FakeSession({page_url(SEED_URL, 1): listing_page(("Acme Tools", 4.5))})
        storage = InMemoryScrapeStorage()
        recorder = JobLogRecorder(storage=storage, logger=logging.getLogger(__name__))

        records = _collect(
            _controller(session, sleep),
            ScrapeSettings(delay_ms=0, retry_attempts=2),
            recorder=recorder,
        )

        assert [record.name for record in records] == ["Acme Tools"]
        # page delay, relay backoff, page retry delay, relay backoff
        assert sleep.calls == [0.0, 1.0, 2.0, 1.0]
        warnings = [entry for entry in storage.list_logs() if entry.level == LogLevel.WARNING]
        assert len(warnings) == 1
        assert "page 2" in warnings[0].message

    def test_cancel_between_pages(self, sleep: RecordingSleep) -> None:
        session = FakeSession(
            {page_url(SEED_URL, page): listing_page((f"Company {page}", None)) for page in (1, 2, 3)}
        )
        checks = {"count": 0}

        def should_stop() -> bool:
            checks["count"] += 1
            return checks["count"] > 1

        records = _collect(_controller(session, sleep), ScrapeSettings(delay_ms=0), should_stop=should_stop)

        assert [record.name for record in records] == ["Company 1"]
        assert session.targets() == [page_url(SEED_URL, 1)]
