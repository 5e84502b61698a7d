"""
Repository for the managed seed URL list.
"""

from __future__ import annotations

import uuid

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from db.models.scraping_url import ScrapingUrlRecord


class ScrapingUrlRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def add(self, *, url: str, name: str) -> ScrapingUrlRecord:
        row = ScrapingUrlRecord(url=url, name=name)
        self._session.add(row)
        self._session.flush()
        return row

    def list_all(self) -> list[ScrapingUrlRecord]:
        stmt = select(ScrapingUrlRecord).order_by(ScrapingUrlRecord.created_at.asc())
        return list(self._session.scalars(stmt).all())

    def remove(self, url_id: uuid.UUID) -> int:
        result = self._session.execute(delete(ScrapingUrlRecord).where(ScrapingUrlRecord.id == url_id))
        return int(result.rowcount or 0)

    def delete_all(self) -> int:
        result = self._session.execute(delete(ScrapingUrlRecord))
        return int(result.rowcount or 0)

    def set_status(self, *, url: str, status: str) -> int:
        result = self._session.execute(
            update(ScrapingUrlRecord).where(ScrapingUrlRecord.url == url).values(status=status)
        )
        return int(result.rowcount or 0)
