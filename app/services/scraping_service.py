"""
app/services/scraping_service.py

Service orchestration for review-site scraping jobs: seed URL management,
job dispatch to a background executor, cancellation and relay diagnostics.
"""

from __future__ import annotations

import logging
import re
import time
import uuid
from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Protocol
from urllib.parse import urlparse

import requests
from fastapi import BackgroundTasks

from app.domain.scraping import (
    LogEntry,
    LogLevel,
    ScrapeJob,
    ScrapeJobStatus,
    ScrapeSettings,
    ScrapingUrl,
    StoredCompany,
)
from app.scraping.config import get_scraper_runtime_settings, load_relay_configs
from app.scraping.config.models import ScraperRuntimeSettings
from app.scraping.errors import JobFatal
from app.scraping.extraction import ExtractionEngine
from app.scraping.logging_utils import log_event
from app.scraping.orchestrator import JobOrchestrator
from app.scraping.pagination import PaginationController
from app.scraping.proxy import EndpointReport, ProxyRotator, build_proxy_rotator
from app.scraping.storage import InMemoryScrapeStorage, SQLAlchemyScrapeStorage, ScrapeStorage

logger = logging.getLogger(__name__)

CUSTOM_URL_NAME = "Custom URL"


class InvalidScrapingUrlError(ValueError):
    """Raised when a seed URL does not point at the configured review site."""


class ScrapeTaskExecutor(Protocol):
    def submit(self, task: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        ...


class FastAPIBackgroundTaskExecutor:
    def __init__(self, background_tasks: BackgroundTasks) -> None:
        self._background_tasks = background_tasks

    def submit(self, task: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        self._background_tasks.add_task(task, *args, **kwargs)


class InlineTaskExecutor:
    """
    Runs submitted tasks immediately on the calling thread.
    """

    def submit(self, task: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        task(*args, **kwargs)


def derive_url_name(url: str) -> str:
    """
    Display name for a seed URL: the category slug, title-cased, or "Custom URL".
    """

    if "/categories/" not in url:
        return CUSTOM_URL_NAME
    slug = url.split("/categories/", 1)[1].split("?", 1)[0].strip("/")
    if not slug:
        return CUSTOM_URL_NAME
    name = slug.replace("_", " & ")
    return re.sub(r"\b\w", lambda match: match.group(0).upper(), name)


class ScrapingService:
    """
    Coordinates seed URLs, job creation, background execution and cancellation.
    """

    def __init__(
        self,
        *,
        storage: ScrapeStorage,
        orchestrator: JobOrchestrator,
        rotator: ProxyRotator,
        review_site_host: str = "trustpilot.com",
    ) -> None:
        self._storage = storage
        self._orchestrator = orchestrator
        self._rotator = rotator
        self._review_site_host = review_site_host.lower()

    @property
    def storage(self) -> ScrapeStorage:
        return self._storage

    @property
    def orchestrator(self) -> JobOrchestrator:
        return self._orchestrator

    @property
    def review_site_host(self) -> str:
        return self._review_site_host

    def is_review_site_url(self, url: str) -> bool:
        try:
            parsed = urlparse(url.strip())
        except ValueError:
            return False
        host = (parsed.hostname or "").lower()
        if parsed.scheme not in {"http", "https"} or not host:
            return False
        return host == self._review_site_host or host.endswith(f".{self._review_site_host}")

    def list_urls(self) -> list[ScrapingUrl]:
        return self._storage.list_urls()

    def add_url(self, url: str) -> ScrapingUrl:
        candidate = (url or "").strip()
        if not self.is_review_site_url(candidate):
            raise InvalidScrapingUrlError(f"Invalid URL: expected a {self._review_site_host} address.")

        name = derive_url_name(candidate)
        scraping_url = self._storage.add_url(url=candidate, name=name)
        self._storage.add_log(LogEntry(level=LogLevel.INFO, message=f"Added URL: {name}"))
        return scraping_url

    def remove_url(self, url_id: uuid.UUID) -> None:
        self._storage.remove_url(url_id)

    def clear_urls(self) -> None:
        self._storage.clear_urls()

    def get_current_job(self) -> ScrapeJob | None:
        return self._storage.get_active_job() or self._storage.get_latest_job()

    def start_job(
        self,
        *,
        urls: Sequence[str],
        settings_payload: dict[str, Any] | None,
        executor: ScrapeTaskExecutor,
    ) -> ScrapeJob:
        """
        Create a pending job and hand its run to ``executor``.

        Raises ValueError when no URLs are given and ConcurrencyConflict when
        another job is active; neither leaves a job behind.
        """

        seed_urls = [url.strip() for url in urls if url and url.strip()]
        if not seed_urls:
            raise ValueError("No URLs provided")

        settings = ScrapeSettings.from_payload(settings_payload)
        job = self._orchestrator.claim(
            lambda: self._storage.create_job(total_urls=len(seed_urls), settings=settings.to_payload())
        )

        self._storage.add_log(
            LogEntry(
                level=LogLevel.INFO,
                message=f"Starting scraping job with {len(seed_urls)} URLs",
                job_id=job.id,
            )
        )
        log_event(logger, logging.INFO, "scrape_job_accepted", job_id=job.id, total_urls=len(seed_urls))
        executor.submit(self._run_job, job.id, seed_urls, settings)
        return job

    def stop_job(self) -> bool:
        """
        Request cancellation of the running job.

        A job left active in storage with no live run (e.g. after a restart)
        is marked stopped directly.
        """

        if self._orchestrator.request_stop():
            self._storage.add_log(
                LogEntry(
                    level=LogLevel.WARNING,
                    message="Scraping stopped by user",
                    job_id=self._orchestrator.running_job_id,
                )
            )
            return True

        stale = self._storage.get_active_job()
        if stale is None:
            return False
        self._storage.update_job(stale.id, status=ScrapeJobStatus.STOPPED, completed_at=datetime.now(timezone.utc))
        self._storage.add_log(
            LogEntry(level=LogLevel.WARNING, message="Scraping stopped by user", job_id=stale.id)
        )
        return True

    def list_companies(self) -> list[StoredCompany]:
        return self._storage.list_companies()

    def clear_companies(self) -> None:
        self._storage.clear_companies()

    def list_logs(self, job_id: uuid.UUID | None = None) -> list[LogEntry]:
        return self._storage.list_logs(job_id=job_id)

    def clear_logs(self) -> None:
        self._storage.clear_logs()

    def test_proxies(self, sample_url: str) -> EndpointReport:
        return self._rotator.test_endpoints(sample_url)

    def _run_job(self, job_id: uuid.UUID, seed_urls: list[str], settings: ScrapeSettings) -> None:
        try:
            self._orchestrator.run(job_id, seed_urls, settings)
        except JobFatal:
            logger.exception("Scrape job failed id=%s", job_id)


def build_storage(runtime: ScraperRuntimeSettings) -> ScrapeStorage:
    if runtime.storage_backend == "sqlalchemy":
        from db.session import SessionLocal

        return SQLAlchemyScrapeStorage(session_factory=SessionLocal)
    return InMemoryScrapeStorage()


def build_scraping_service(
    runtime: ScraperRuntimeSettings,
    *,
    storage: ScrapeStorage | None = None,
    session: requests.Session | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> ScrapingService:
    """
    Wire storage, relays, extraction, pagination and orchestration together.
    """

    resolved_storage = storage or build_storage(runtime)
    rotator = build_proxy_rotator(
        load_relay_configs(config_path=runtime.relays_path),
        session=session,
        user_agent=runtime.user_agent,
        timeout_seconds=runtime.fetch_timeout_seconds,
        backoff_seconds=runtime.relay_backoff_seconds,
        sleep=sleep,
    )
    engine = ExtractionEngine(
        review_site_host=runtime.review_site_host,
        default_record_cap=runtime.default_record_cap,
    )
    controller = PaginationController.from_runtime_settings(runtime, rotator=rotator, engine=engine, sleep=sleep)
    orchestrator = JobOrchestrator(
        storage=resolved_storage,
        controller=controller,
        rotator=rotator,
        sleep=sleep,
    )
    return ScrapingService(
        storage=resolved_storage,
        orchestrator=orchestrator,
        rotator=rotator,
        review_site_host=runtime.review_site_host,
    )


@lru_cache(maxsize=1)
def get_scraping_service() -> ScrapingService:
    """
    Build and cache the process-wide scraping service.
    """

    return build_scraping_service(get_scraper_runtime_settings())
