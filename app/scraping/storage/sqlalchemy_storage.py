"""
SQLAlchemy-backed storage implementation for scraping jobs, companies and logs.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.scraping import (
    ExtractedCompany,
    LogEntry,
    ScrapeJob,
    ScrapingUrl,
    StoredCompany,
)
from app.scraping.storage.base import JobNotFoundError, ScrapeStorage
from db.models.scrape_job import ScrapeJobRecord
from db.models.scrape_log import ScrapeLogRecord
from db.models.scraping_url import ScrapingUrlRecord
from db.repositories.company_repository import CompanyRepository
from db.repositories.scrape_job_repository import ScrapeJobRepository
from db.repositories.scrape_log_repository import ScrapeLogRepository
from db.repositories.scraping_url_repository import ScrapingUrlRepository


class SQLAlchemyScrapeStorage(ScrapeStorage):
    """
    Persist scraping state through repositories; one short session and commit per call.
    """

    def __init__(self, *, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    @contextmanager
    def _unit_of_work(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            raise
        finally:
            session.close()

    def create_job(self, *, total_urls: int, settings: dict[str, Any]) -> ScrapeJob:
        with self._unit_of_work() as session:
            row = ScrapeJobRepository(session).create_job(total_urls=total_urls, settings=dict(settings))
            return _job_to_domain(row)

    def get_job(self, job_id: uuid.UUID) -> ScrapeJob | None:
        with self._unit_of_work() as session:
            row = ScrapeJobRepository(session).get_job(job_id)
            return _job_to_domain(row) if row is not None else None

    def update_job(self, job_id: uuid.UUID, **changes: Any) -> ScrapeJob:
        with self._unit_of_work() as session:
            row = ScrapeJobRepository(session).update_job(job_id, **changes)
            if row is None:
                raise JobNotFoundError(f"Scraping job not found: {job_id}")
            return _job_to_domain(row)

    def get_active_job(self) -> ScrapeJob | None:
        with self._unit_of_work() as session:
            row = ScrapeJobRepository(session).get_active_job()
            return _job_to_domain(row) if row is not None else None

    def get_latest_job(self) -> ScrapeJob | None:
        with self._unit_of_work() as session:
            rows = ScrapeJobRepository(session).list_jobs(limit=1)
            return _job_to_domain(rows[0]) if rows else None

    def add_company(self, record: ExtractedCompany, *, job_id: uuid.UUID | None = None) -> StoredCompany:
        with self._unit_of_work() as session:
            row = CompanyRepository(session).add(record, job_id=job_id)
            return StoredCompany(id=row.id, record=record, created_at=row.created_at, job_id=row.job_id)

    def list_companies(self) -> list[StoredCompany]:
        with self._unit_of_work() as session:
            return [
                StoredCompany(
                    id=row.id,
                    record=CompanyRepository.to_domain(row),
                    created_at=row.created_at,
                    job_id=row.job_id,
                )
                for row in CompanyRepository(session).list_all()
            ]

    def clear_companies(self) -> None:
        with self._unit_of_work() as session:
            CompanyRepository(session).delete_all()

    def add_log(self, entry: LogEntry) -> LogEntry:
        with self._unit_of_work() as session:
            ScrapeLogRepository(session).add(entry)
        return entry

    def list_logs(self, job_id: uuid.UUID | None = None) -> list[LogEntry]:
        with self._unit_of_work() as session:
            return [_log_to_domain(row) for row in ScrapeLogRepository(session).list_logs(job_id=job_id)]

    def clear_logs(self) -> None:
        with self._unit_of_work() as session:
            ScrapeLogRepository(session).delete_all()

    def add_url(self, *, url: str, name: str) -> ScrapingUrl:
        with self._unit_of_work() as session:
            return _url_to_domain(ScrapingUrlRepository(session).add(url=url, name=name))

    def list_urls(self) -> list[ScrapingUrl]:
        with self._unit_of_work() as session:
            return [_url_to_domain(row) for row in ScrapingUrlRepository(session).list_all()]

    def remove_url(self, url_id: uuid.UUID) -> None:
        with self._unit_of_work() as session:
            ScrapingUrlRepository(session).remove(url_id)

    def clear_urls(self) -> None:
        with self._unit_of_work() as session:
            ScrapingUrlRepository(session).delete_all()

    def set_url_status(self, url: str, status: str) -> int:
        with self._unit_of_work() as session:
            return ScrapingUrlRepository(session).set_status(url=url, status=status)


def _job_to_domain(row: ScrapeJobRecord) -> ScrapeJob:
    return ScrapeJob(
        id=row.id,
        status=row.status,
        total_urls=row.total_urls,
        processed_urls=row.processed_urls,
        total_companies=row.total_companies,
        error_count=row.error_count,
        settings=dict(row.settings or {}),
        started_at=row.started_at,
        completed_at=row.completed_at,
        created_at=row.created_at,
    )


def _log_to_domain(row: ScrapeLogRecord) -> LogEntry:
    return LogEntry(level=row.level, message=row.message, job_id=row.job_id, timestamp=row.timestamp)


def _url_to_domain(row: ScrapingUrlRecord) -> ScrapingUrl:
    return ScrapingUrl(id=row.id, url=row.url, name=row.name, status=row.status, created_at=row.created_at)
