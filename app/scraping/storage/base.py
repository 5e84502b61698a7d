"""
Storage contract consumed by the scraping core.

Every operation is an atomic single-record write or a simple read; the core
never relies on multi-record transactions.
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from typing import Any

from app.domain.scraping import (
    ExtractedCompany,
    LogEntry,
    ScrapeJob,
    ScrapingUrl,
    StoredCompany,
)


class JobNotFoundError(LookupError):
    """Raised when a job id does not resolve to a stored job."""


class ScrapeStorage(ABC):
    """
    Storage abstraction for jobs, companies, logs and the seed URL list.
    """

    @abstractmethod
    def create_job(self, *, total_urls: int, settings: dict[str, Any]) -> ScrapeJob:
        """
        Persist a new pending job and return it.
        """

    @abstractmethod
    def get_job(self, job_id: uuid.UUID) -> ScrapeJob | None:
        ...

    @abstractmethod
    def update_job(self, job_id: uuid.UUID, **changes: Any) -> ScrapeJob:
        """
        Apply a partial update; raises JobNotFoundError for unknown ids.
        """

    @abstractmethod
    def get_active_job(self) -> ScrapeJob | None:
        """
        Return the pending or running job, if any.
        """

    @abstractmethod
    def get_latest_job(self) -> ScrapeJob | None:
        """
        Return the most recently created job regardless of status.
        """

    @abstractmethod
    def add_company(self, record: ExtractedCompany, *, job_id: uuid.UUID | None = None) -> StoredCompany:
        ...

    @abstractmethod
    def list_companies(self) -> list[StoredCompany]:
        ...

    @abstractmethod
    def clear_companies(self) -> None:
        ...

    @abstractmethod
    def add_log(self, entry: LogEntry) -> LogEntry:
        ...

    @abstractmethod
    def list_logs(self, job_id: uuid.UUID | None = None) -> list[LogEntry]:
        ...

    @abstractmethod
    def clear_logs(self) -> None:
        ...

    @abstractmethod
    def add_url(self, *, url: str, name: str) -> ScrapingUrl:
        ...

    @abstractmethod
    def list_urls(self) -> list[ScrapingUrl]:
        ...

    @abstractmethod
    def remove_url(self, url_id: uuid.UUID) -> None:
        ...

    @abstractmethod
    def clear_urls(self) -> None:
        ...

    @abstractmethod
    def set_url_status(self, url: str, status: str) -> int:
        """Set the status of every managed entry for ``url``; returns how many matched."""
