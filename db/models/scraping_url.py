"""
db/models/scraping_url.py

Seed URL list managed through the API.
"""

from __future__ import annotations

import uuid

from sqlalchemy import String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.domain.scraping import ScrapingUrlStatus
from db.base import Base, CreatedAtMixin


class ScrapingUrlRecord(Base, CreatedAtMixin):
    __tablename__ = "scraping_urls"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    url: Mapped[str] = mapped_column(Text, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=ScrapingUrlStatus.PENDING,
        comment="pending, processing, complete, error",
    )
