"""
Schemas for scraping control, URL management, company and log endpoints.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from app.domain.scraping import LogEntry, ScrapeJob, ScrapingUrl, StoredCompany


class AddScrapingUrlRequest(BaseModel):
    url: str = Field(min_length=1)


class StartScrapingRequest(BaseModel):
    urls: list[str] = Field(default_factory=list)
    settings: dict[str, Any] | None = None


class ExportRequest(BaseModel):
    format: str = "csv"


class ScrapingUrlResponse(BaseModel):
    id: UUID
    url: str
    name: str
    status: str
    created_at: datetime

    @classmethod
    def from_domain(cls, item: ScrapingUrl) -> "ScrapingUrlResponse":
        return cls(id=item.id, url=item.url, name=item.name, status=item.status, created_at=item.created_at)


class ScrapeJobResponse(BaseModel):
    id: UUID
    status: str
    total_urls: int
    processed_urls: int
    total_companies: int
    error_count: int
    settings: dict[str, Any] = Field(default_factory=dict)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime

    @classmethod
    def from_domain(cls, job: ScrapeJob) -> "ScrapeJobResponse":
        return cls(
            id=job.id,
            status=job.status,
            total_urls=job.total_urls,
            processed_urls=job.processed_urls,
            total_companies=job.total_companies,
            error_count=job.error_count,
            settings=job.settings,
            started_at=job.started_at,
            completed_at=job.completed_at,
            created_at=job.created_at,
        )


class StartScrapingResponse(BaseModel):
    job_id: UUID
    status: str
    message: str


class CompanyResponse(BaseModel):
    id: UUID
    name: str
    type: str | None = None
    domain: str | None = None
    city: str | None = None
    address: str | None = None
    phone: str | None = None
    email: str | None = None
    rating: float | None = None
    review_count: int | None = None
    source_url: str
    description: str | None = None
    website: str | None = None
    status: str
    job_id: UUID | None = None
    created_at: datetime

    @classmethod
    def from_domain(cls, company: StoredCompany) -> "CompanyResponse":
        return cls(
            id=company.id,
            job_id=company.job_id,
            created_at=company.created_at,
            **company.record.to_dict(),
        )


class LogEntryResponse(BaseModel):
    level: str
    message: str
    job_id: UUID | None = None
    timestamp: datetime

    @classmethod
    def from_domain(cls, entry: LogEntry) -> "LogEntryResponse":
        return cls(level=entry.level, message=entry.message, job_id=entry.job_id, timestamp=entry.timestamp)


class MessageResponse(BaseModel):
    success: bool = True
    message: str | None = None


class ProxyTestResponse(BaseModel):
    sample_url: str
    working: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)
