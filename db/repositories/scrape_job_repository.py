"""
Repository for scrape job lifecycle persistence and active-job lookup.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from app.domain.scraping import ScrapeJobStatus
from db.models.scrape_job import ScrapeJobRecord

_UPDATABLE_FIELDS = frozenset(
    {
        "status",
        "total_urls",
        "processed_urls",
        "total_companies",
        "error_count",
        "settings",
        "started_at",
        "completed_at",
    }
)


class ScrapeJobRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create_job(
        self,
        *,
        total_urls: int,
        settings: dict[str, Any] | None = None,
    ) -> ScrapeJobRecord:
        job = ScrapeJobRecord(
            status=ScrapeJobStatus.PENDING,
            total_urls=total_urls,
            processed_urls=0,
            total_companies=0,
            error_count=0,
            settings=settings,
        )
        self._session.add(job)
        self._session.flush()
        self._session.refresh(job)
        return job

    def get_job(self, job_id: uuid.UUID) -> ScrapeJobRecord | None:
        return self._session.get(ScrapeJobRecord, job_id)

    def update_job(self, job_id: uuid.UUID, **changes: Any) -> ScrapeJobRecord | None:
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown job fields: {sorted(unknown)}")

        job = self.get_job(job_id)
        if job is None:
            return None
        for key, value in changes.items():
            setattr(job, key, value)
        self._session.flush()
        return job

    def get_active_job(self) -> ScrapeJobRecord | None:
        stmt: Select[tuple[ScrapeJobRecord]] = (
            select(ScrapeJobRecord)
            .where(ScrapeJobRecord.status.in_(sorted(ScrapeJobStatus.ACTIVE)))
            .order_by(ScrapeJobRecord.created_at.desc())
            .limit(1)
        )
        return self._session.scalars(stmt).first()

    def list_jobs(self, *, limit: int = 100, status: str | None = None) -> list[ScrapeJobRecord]:
        stmt: Select[tuple[ScrapeJobRecord]] = select(ScrapeJobRecord)
        if status:
            stmt = stmt.where(ScrapeJobRecord.status == status)
        stmt = stmt.order_by(ScrapeJobRecord.created_at.desc()).limit(max(1, limit))
        return list(self._session.scalars(stmt).all())
