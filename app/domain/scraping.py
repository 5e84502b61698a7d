"""
app/domain/scraping.py

Domain models for review listing scraping jobs.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any


class ScrapeJobStatus:
    PENDING = "pending"
    RUNNING = "running"
    STOPPED = "stopped"
    COMPLETED = "completed"
    ERROR = "error"

    ACTIVE = frozenset({PENDING, RUNNING})


class LogLevel:
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class ScrapingUrlStatus:
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETE = "complete"
    ERROR = "error"


COMPANY_STATUS_COMPLETE = "complete"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _coerce_int(value: Any, default: int) -> int:
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def _coerce_float(value: Any, default: float) -> float:
    if value is None or isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class ScrapeSettings:
    """
    Per-job scrape settings. Immutable once a job starts.

    ``cors_proxy`` is a preference hint only and ``concurrent_requests`` is
    accepted for compatibility but never used to parallelize work.
    """

    review_limit: int = 50
    delay_ms: int = 2000
    min_rating: float = 0.0
    retry_attempts: int = 3
    cors_proxy: str = "auto"
    concurrent_requests: int = 2

    _PAYLOAD_ALIASES = {
        "reviewLimit": "review_limit",
        "delay": "delay_ms",
        "minRating": "min_rating",
        "retryAttempts": "retry_attempts",
        "corsProxy": "cors_proxy",
        "concurrentRequests": "concurrent_requests",
    }

    @classmethod
    def from_payload(cls, payload: dict[str, Any] | None) -> "ScrapeSettings":
        """
        Build settings from a loosely-typed request payload.

        Accepts camelCase keys from the web client as well as snake_case.
        Missing or malformed values fall back to defaults.
        """

        defaults = cls()
        if not payload:
            return defaults

        normalized: dict[str, Any] = {}
        for key, value in payload.items():
            normalized[cls._PAYLOAD_ALIASES.get(key, key)] = value

        cors_proxy = normalized.get("cors_proxy")
        return cls(
            review_limit=_coerce_int(normalized.get("review_limit"), defaults.review_limit),
            delay_ms=max(0, _coerce_int(normalized.get("delay_ms"), defaults.delay_ms)),
            min_rating=min(5.0, max(0.0, _coerce_float(normalized.get("min_rating"), defaults.min_rating))),
            retry_attempts=max(1, _coerce_int(normalized.get("retry_attempts"), defaults.retry_attempts)),
            cors_proxy=str(cors_proxy).strip() if cors_proxy else defaults.cors_proxy,
            concurrent_requests=max(
                1,
                _coerce_int(normalized.get("concurrent_requests"), defaults.concurrent_requests),
            ),
        )

    @property
    def delay_seconds(self) -> float:
        return self.delay_ms / 1000.0

    def to_payload(self) -> dict[str, Any]:
        return {
            "review_limit": self.review_limit,
            "delay_ms": self.delay_ms,
            "min_rating": self.min_rating,
            "retry_attempts": self.retry_attempts,
            "cors_proxy": self.cors_proxy,
            "concurrent_requests": self.concurrent_requests,
        }


@dataclass(frozen=True)
class ExtractedCompany:
    """
    One business record produced by the extraction engine.
    """

    name: str
    source_url: str
    type: str | None = None
    domain: str | None = None
    city: str | None = None
    address: str | None = None
    phone: str | None = None
    email: str | None = None
    rating: float | None = None
    review_count: int | None = None
    description: str | None = None
    website: str | None = None
    status: str = COMPANY_STATUS_COMPLETE

    @property
    def dedupe_key(self) -> str:
        return " ".join(self.name.split()).lower()

    def passes_min_rating(self, min_rating: float) -> bool:
        return self.rating is None or self.rating >= min_rating

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ScrapeJob:
    """
    Mutable job state; owned by the orchestrator while a run is active.
    """

    id: uuid.UUID
    status: str = ScrapeJobStatus.PENDING
    total_urls: int = 0
    processed_urls: int = 0
    total_companies: int = 0
    error_count: int = 0
    settings: dict[str, Any] = field(default_factory=dict)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime = field(default_factory=_utcnow)

    @property
    def is_active(self) -> bool:
        return self.status in ScrapeJobStatus.ACTIVE


@dataclass(frozen=True)
class StoredCompany:
    """
    Persisted company record as read back from storage.
    """

    id: uuid.UUID
    record: ExtractedCompany
    created_at: datetime
    job_id: uuid.UUID | None = None


@dataclass(frozen=True)
class LogEntry:
    level: str
    message: str
    job_id: uuid.UUID | None = None
    timestamp: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True)
class ScrapingUrl:
    id: uuid.UUID
    url: str
    name: str
    status: str = ScrapingUrlStatus.PENDING
    created_at: datetime = field(default_factory=_utcnow)
