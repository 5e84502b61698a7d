"""
db/models/scrape_job.py

Scrape job model tracking progress counters for one scraping run.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.domain.scraping import ScrapeJobStatus
from db.base import Base, CreatedAtMixin, PortableJSON


class ScrapeJobRecord(Base, CreatedAtMixin):
    __tablename__ = "scrape_jobs"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=ScrapeJobStatus.PENDING,
        comment="pending, running, stopped, completed, error",
    )
    total_urls: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    processed_urls: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_companies: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    settings: Mapped[dict[str, Any] | None] = mapped_column(
        PortableJSON,
        nullable=True,
        comment="Scrape settings snapshot taken at job start",
    )
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_scrape_jobs_status", "status"),
        Index("ix_scrape_jobs_created_at", "created_at"),
    )
