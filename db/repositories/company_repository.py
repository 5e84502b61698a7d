"""
Company repository: single-record inserts and ordered reads.
"""

from __future__ import annotations

import uuid

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from app.domain.scraping import ExtractedCompany
from db.models.company import CompanyRecord


class CompanyRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def add(self, record: ExtractedCompany, *, job_id: uuid.UUID | None = None) -> CompanyRecord:
        row = CompanyRecord(
            job_id=job_id,
            name=record.name,
            type=record.type,
            domain=record.domain,
            city=record.city,
            address=record.address,
            phone=record.phone,
            email=record.email,
            rating=record.rating,
            review_count=record.review_count,
            source_url=record.source_url,
            description=record.description,
            website=record.website,
            status=record.status,
        )
        self._session.add(row)
        self._session.flush()
        return row

    def list_all(self, *, job_id: uuid.UUID | None = None) -> list[CompanyRecord]:
        stmt = select(CompanyRecord)
        if job_id is not None:
            stmt = stmt.where(CompanyRecord.job_id == job_id)
        stmt = stmt.order_by(CompanyRecord.created_at.asc())
        return list(self._session.scalars(stmt).all())

    def delete_all(self) -> int:
        result = self._session.execute(delete(CompanyRecord))
        return int(result.rowcount or 0)

    @staticmethod
    def to_domain(row: CompanyRecord) -> ExtractedCompany:
        return ExtractedCompany(
            name=row.name,
            source_url=row.source_url,
            type=row.type,
            domain=row.domain,
            city=row.city,
            address=row.address,
            phone=row.phone,
            email=row.email,
            rating=row.rating,
            review_count=row.review_count,
            description=row.description,
            website=row.website,
            status=row.status,
        )
