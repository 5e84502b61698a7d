"""
Process-local storage implementation used by default and in tests.
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import fields, replace
from datetime import datetime, timezone
from typing import Any

from app.domain.scraping import (
    ExtractedCompany,
    LogEntry,
    ScrapeJob,
    ScrapingUrl,
    StoredCompany,
)
from app.scraping.storage.base import JobNotFoundError, ScrapeStorage

_JOB_FIELDS = frozenset(item.name for item in fields(ScrapeJob)) - {"id"}


class InMemoryScrapeStorage(ScrapeStorage):
    """
    Dict-backed storage. Returned jobs are copies; mutate through update_job.
    """

    def __init__(self) -> None:
        self._jobs: dict[uuid.UUID, ScrapeJob] = {}
        self._companies: list[StoredCompany] = []
        self._logs: list[LogEntry] = []
        self._urls: dict[uuid.UUID, ScrapingUrl] = {}
        self._lock = threading.Lock()

    def create_job(self, *, total_urls: int, settings: dict[str, Any]) -> ScrapeJob:
        job = ScrapeJob(id=uuid.uuid4(), total_urls=total_urls, settings=dict(settings))
        with self._lock:
            self._jobs[job.id] = job
            return replace(job)

    def get_job(self, job_id: uuid.UUID) -> ScrapeJob | None:
        with self._lock:
            job = self._jobs.get(job_id)
            return replace(job) if job is not None else None

    def update_job(self, job_id: uuid.UUID, **changes: Any) -> ScrapeJob:
        unknown = set(changes) - _JOB_FIELDS
        if unknown:
            raise ValueError(f"Unknown job fields: {sorted(unknown)}")

        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise JobNotFoundError(f"Scraping job not found: {job_id}")
            updated = replace(job, **changes)
            self._jobs[job_id] = updated
            return replace(updated)

    def get_active_job(self) -> ScrapeJob | None:
        with self._lock:
            for job in self._jobs.values():
                if job.is_active:
                    return replace(job)
        return None

    def get_latest_job(self) -> ScrapeJob | None:
        with self._lock:
            if not self._jobs:
                return None
            return replace(max(self._jobs.values(), key=lambda job: job.created_at))

    def add_company(self, record: ExtractedCompany, *, job_id: uuid.UUID | None = None) -> StoredCompany:
        stored = StoredCompany(
            id=uuid.uuid4(),
            record=record,
            created_at=datetime.now(timezone.utc),
            job_id=job_id,
        )
        with self._lock:
            self._companies.append(stored)
        return stored

    def list_companies(self) -> list[StoredCompany]:
        with self._lock:
            return list(self._companies)

    def clear_companies(self) -> None:
        with self._lock:
            self._companies.clear()

    def add_log(self, entry: LogEntry) -> LogEntry:
        with self._lock:
            self._logs.append(entry)
        return entry

    def list_logs(self, job_id: uuid.UUID | None = None) -> list[LogEntry]:
        with self._lock:
            logs = list(self._logs)
        if job_id is not None:
            logs = [entry for entry in logs if entry.job_id == job_id]
        return sorted(logs, key=lambda entry: entry.timestamp)

    def clear_logs(self) -> None:
        with self._lock:
            self._logs.clear()

    def add_url(self, *, url: str, name: str) -> ScrapingUrl:
        scraping_url = ScrapingUrl(id=uuid.uuid4(), url=url, name=name)
        with self._lock:
            self._urls[scraping_url.id] = scraping_url
        return scraping_url

    def list_urls(self) -> list[ScrapingUrl]:
        with self._lock:
            return sorted(self._urls.values(), key=lambda item: item.created_at)

    def remove_url(self, url_id: uuid.UUID) -> None:
        with self._lock:
            self._urls.pop(url_id, None)

    def clear_urls(self) -> None:
        with self._lock:
            self._urls.clear()

    def set_url_status(self, url: str, status: str) -> int:
        with self._lock:
            matched = [item for item in self._urls.values() if item.url == url]
            for item in matched:
                self._urls[item.id] = replace(item, status=status)
            return len(matched)
