"""
Append-only log repository.
"""

from __future__ import annotations

import uuid

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from app.domain.scraping import LogEntry
from db.models.scrape_log import ScrapeLogRecord


class ScrapeLogRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def add(self, entry: LogEntry) -> ScrapeLogRecord:
        row = ScrapeLogRecord(
            level=entry.level,
            message=entry.message,
            timestamp=entry.timestamp,
            job_id=entry.job_id,
        )
        self._session.add(row)
        self._session.flush()
        return row

    def list_logs(self, *, job_id: uuid.UUID | None = None) -> list[ScrapeLogRecord]:
        stmt = select(ScrapeLogRecord)
        if job_id is not None:
            stmt = stmt.where(ScrapeLogRecord.job_id == job_id)
        stmt = stmt.order_by(ScrapeLogRecord.timestamp.asc())
        return list(self._session.scalars(stmt).all())

    def delete_all(self) -> int:
        result = self._session.execute(delete(ScrapeLogRecord))
        return int(result.rowcount or 0)
