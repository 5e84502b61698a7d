"""
tests/test_storage.py

Contract tests run against both storage implementations: the in-memory
store and the SQLAlchemy store on an in-memory SQLite database.

Coverage
--------
- Job lifecycle: create, partial update, active and latest lookups
- Unknown job ids and unknown fields are rejected
- Companies round-trip with their job id and can be cleared
- Logs are filtered by job and returned oldest first
- Seed URL list add, remove, clear and per-URL status updates
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

import db.models  # noqa: F401 registers tables on Base.metadata
from app.domain.scraping import ExtractedCompany, LogEntry, LogLevel, ScrapeJobStatus, ScrapingUrlStatus
from app.scraping.storage import InMemoryScrapeStorage, JobNotFoundError, SQLAlchemyScrapeStorage, ScrapeStorage
from db.base import Base
from db.session import build_session_factory


@pytest.fixture(params=["memory", "sqlalchemy"])
def storage(request):
    if request.param == "memory":
        yield InMemoryScrapeStorage()
        return

    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    try:
        yield SQLAlchemyScrapeStorage(session_factory=build_session_factory(engine))
    finally:
        engine.dispose()


def _company(name: str, **fields) -> ExtractedCompany:
    return ExtractedCompany(name=name, source_url="https://www.trustpilot.com/categories/bank", **fields)


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------


class TestJobs:
    def test_create_and_update(self, storage: ScrapeStorage) -> None:
        job = storage.create_job(total_urls=2, settings={"review_limit": 5})

        assert job.status == ScrapeJobStatus.PENDING
        assert job.settings == {"review_limit": 5}
        assert storage.get_active_job().id == job.id

        updated = storage.update_job(job.id, status=ScrapeJobStatus.RUNNING, processed_urls=1)
        assert updated.status == ScrapeJobStatus.RUNNING
        assert updated.processed_urls == 1
        assert updated.total_urls == 2

        fetched = storage.get_job(job.id)
        assert fetched is not None
        assert fetched.processed_urls == 1

    def test_finished_job_is_not_active_but_is_latest(self, storage: ScrapeStorage) -> None:
        first = storage.create_job(total_urls=1, settings={})
        storage.update_job(first.id, status=ScrapeJobStatus.COMPLETED)
        second = storage.create_job(total_urls=1, settings={})
        storage.update_job(second.id, status=ScrapeJobStatus.STOPPED)

        assert storage.get_active_job() is None
        assert storage.get_latest_job().id == second.id

    def test_empty_store(self, storage: ScrapeStorage) -> None:
        assert storage.get_active_job() is None
        assert storage.get_latest_job() is None
        assert storage.get_job(uuid.uuid4()) is None

    def test_unknown_job(self, storage: ScrapeStorage) -> None:
        with pytest.raises(JobNotFoundError):
            storage.update_job(uuid.uuid4(), status=ScrapeJobStatus.RUNNING)

    def test_unknown_field(self, storage: ScrapeStorage) -> None:
        job = storage.create_job(total_urls=1, settings={})
        with pytest.raises(ValueError):
            storage.update_job(job.id, colour="blue")


# ---------------------------------------------------------------------------
# Companies and logs
# ---------------------------------------------------------------------------


class TestCompanies:
    def test_round_trip(self, storage: ScrapeStorage) -> None:
        job = storage.create_job(total_urls=1, settings={})
        record = _company(
            "Acme Bank",
            type="Bank",
            domain="acme.com",
            city="Milano",
            phone="+39 02 1234567",
            email="info@acme.com",
            rating=4.5,
            review_count=1234,
            website="https://acme.com",
        )

        stored = storage.add_company(record, job_id=job.id)
        storage.add_company(_company("Beta Bank"))

        companies = storage.list_companies()
        assert [company.record.name for company in companies] == ["Acme Bank", "Beta Bank"]
        assert companies[0].id == stored.id
        assert companies[0].record == record
        assert companies[0].job_id == job.id
        assert companies[1].job_id is None

        storage.clear_companies()
        assert storage.list_companies() == []


class TestLogs:
    def test_filter_and_order(self, storage: ScrapeStorage) -> None:
        job_id = uuid.uuid4()
        base = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
        for message, job, offset in (("second", job_id, 1), ("first", job_id, 0), ("other job", None, 0)):
            storage.add_log(
                LogEntry(level=LogLevel.INFO, message=message, job_id=job, timestamp=base + timedelta(seconds=offset))
            )

        assert [entry.message for entry in storage.list_logs(job_id)] == ["first", "second"]
        assert len(storage.list_logs()) == 3

        storage.clear_logs()
        assert storage.list_logs() == []


# ---------------------------------------------------------------------------
# Seed URLs
# ---------------------------------------------------------------------------


class TestUrls:
    def test_add_remove_clear(self, storage: ScrapeStorage) -> None:
        bank = storage.add_url(url="https://www.trustpilot.com/categories/bank", name="Bank")
        travel = storage.add_url(url="https://www.trustpilot.com/categories/travel", name="Travel")

        assert [item.name for item in storage.list_urls()] == ["Bank", "Travel"]

        storage.remove_url(bank.id)
        assert [item.id for item in storage.list_urls()] == [travel.id]

        storage.remove_url(uuid.uuid4())
        storage.clear_urls()
        assert storage.list_urls() == []

    def test_set_status_by_url(self, storage: ScrapeStorage) -> None:
        bank = storage.add_url(url="https://www.trustpilot.com/categories/bank", name="Bank")
        storage.add_url(url="https://www.trustpilot.com/categories/travel", name="Travel")

        assert storage.set_url_status(bank.url, ScrapingUrlStatus.COMPLETE) == 1
        assert storage.set_url_status("https://www.trustpilot.com/categories/none", ScrapingUrlStatus.ERROR) == 0

        assert {item.name: item.status for item in storage.list_urls()} == {
            "Bank": ScrapingUrlStatus.COMPLETE,
            "Travel": ScrapingUrlStatus.PENDING,
        }
