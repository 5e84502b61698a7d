"""
Scrape job lifecycle: pending -> running -> completed | stopped | error.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from collections.abc import Callable, Sequence
from datetime import datetime, timezone

from app.domain.scraping import ExtractedCompany, ScrapeJob, ScrapeJobStatus, ScrapeSettings, ScrapingUrlStatus
from app.scraping.errors import ConcurrencyConflict, JobFatal
from app.scraping.logging_utils import JobLogRecorder, log_event
from app.scraping.pagination import PaginationController
from app.scraping.proxy import ProxyRotator
from app.scraping.storage.base import ScrapeStorage

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobOrchestrator:
    """
    Runs one scrape job at a time over its configured URLs.

    Stop requests are cooperative: they are observed between URLs and
    between listing pages, never in the middle of a fetch.
    """

    def __init__(
        self,
        *,
        storage: ScrapeStorage,
        controller: PaginationController,
        rotator: ProxyRotator | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._storage = storage
        self._controller = controller
        self._rotator = rotator
        self._sleep = sleep
        self._lock = threading.Lock()
        self._stop_requested = threading.Event()
        self._running_job_id: uuid.UUID | None = None

    @property
    def is_running(self) -> bool:
        return self._running_job_id is not None

    @property
    def running_job_id(self) -> uuid.UUID | None:
        return self._running_job_id

    def ensure_available(self, job_id: uuid.UUID | None = None) -> None:
        """
        Raise ConcurrencyConflict if a job other than ``job_id`` is active.
        """

        if self._running_job_id is not None and self._running_job_id != job_id:
            raise ConcurrencyConflict(self._running_job_id)
        active = self._storage.get_active_job()
        if active is not None and active.id != job_id:
            raise ConcurrencyConflict(active.id)

    def begin(self, job_id: uuid.UUID) -> None:
        """
        Claim the single job slot for ``job_id``.
        """

        with self._lock:
            if self._running_job_id == job_id:
                return
            self.ensure_available(job_id)
            self._running_job_id = job_id
            self._stop_requested.clear()

    def claim(self, create_job: Callable[[], ScrapeJob]) -> ScrapeJob:
        """
        Check the slot, create the job and claim the slot in one step.

        ``create_job`` only runs once the slot is known to be free, so a
        rejected start never writes a job row.
        """

        with self._lock:
            self.ensure_available()
            job = create_job()
            self._running_job_id = job.id
            self._stop_requested.clear()
            return job

    def request_stop(self) -> bool:
        if self._running_job_id is None:
            return False
        self._stop_requested.set()
        log_event(logger, logging.INFO, "scrape_stop_requested", job_id=self._running_job_id)
        return True

    def run(
        self,
        job_id: uuid.UUID,
        seed_urls: Sequence[str],
        settings: ScrapeSettings | None = None,
    ) -> ScrapeJob:
        """
        Execute the job to completion and return its final state.

        Per-URL failures are counted and logged. Anything else marks the job
        as errored and is raised as JobFatal once that state is stored.
        """

        self.begin(job_id)
        settings = settings or ScrapeSettings()
        urls = list(seed_urls)
        recorder = JobLogRecorder(storage=self._storage, logger=logger, job_id=job_id)

        try:
            return self._execute(job_id, urls, settings, recorder)
        except Exception as exc:
            self._mark_failed(job_id, exc, recorder)
            raise JobFatal(job_id, exc) from exc
        finally:
            with self._lock:
                self._running_job_id = None
                self._stop_requested.clear()

    def _execute(
        self,
        job_id: uuid.UUID,
        urls: list[str],
        settings: ScrapeSettings,
        recorder: JobLogRecorder,
    ) -> ScrapeJob:
        self._storage.update_job(
            job_id,
            status=ScrapeJobStatus.RUNNING,
            started_at=_utcnow(),
            total_urls=len(urls),
        )
        if self._rotator is not None:
            self._rotator.prefer(settings.cors_proxy)
        recorder.info("Scraping process initiated", event="scrape_job_started", total_urls=len(urls))

        processed = 0
        total_companies = 0
        error_count = 0
        cancelled = False

        for index, url in enumerate(urls):
            if self._stop_requested.is_set():
                cancelled = True
                recorder.warning("Scraping stopped by user request", event="scrape_job_cancelled")
                break

            recorder.info(f"Processing URL: {url}", event="scrape_url_started", url=url)
            self._storage.set_url_status(url, ScrapingUrlStatus.PROCESSING)
            found = 0

            def sink(record: ExtractedCompany) -> None:
                nonlocal found
                self._storage.add_company(record, job_id=job_id)
                found += 1

            try:
                self._controller.collect(
                    url,
                    settings,
                    sink,
                    should_stop=self._stop_requested.is_set,
                    recorder=recorder,
                )
                recorder.success(
                    f"Found {found} companies from URL",
                    event="scrape_url_completed",
                    url=url,
                    companies=found,
                )
                url_status = ScrapingUrlStatus.COMPLETE
            except Exception as exc:
                error_count += 1
                url_status = ScrapingUrlStatus.ERROR
                recorder.error(
                    f"Failed to process URL {url}: {exc}",
                    event="scrape_url_failed",
                    url=url,
                    error_type=type(exc).__name__,
                )

            self._storage.set_url_status(url, url_status)
            total_companies += found
            processed += 1
            self._storage.update_job(
                job_id,
                processed_urls=processed,
                total_companies=total_companies,
                error_count=error_count,
            )

            if index < len(urls) - 1 and not self._stop_requested.is_set():
                self._sleep(settings.delay_seconds)

        if self._stop_requested.is_set():
            cancelled = True
        status = ScrapeJobStatus.STOPPED if cancelled else ScrapeJobStatus.COMPLETED
        job = self._storage.update_job(job_id, status=status, completed_at=_utcnow())

        summary = (
            f"Scraping {status}. Processed {processed}/{len(urls)} URLs, "
            f"found {total_companies} companies with {error_count} errors."
        )
        if cancelled:
            recorder.warning(summary, event="scrape_job_finished", status=status)
        else:
            recorder.success(summary, event="scrape_job_finished", status=status)
        return job

    def _mark_failed(self, job_id: uuid.UUID, exc: Exception, recorder: JobLogRecorder) -> None:
        try:
            self._storage.update_job(job_id, status=ScrapeJobStatus.ERROR, completed_at=_utcnow())
            recorder.error(f"Scraping failed: {exc}", event="scrape_job_failed", error_type=type(exc).__name__)
        except Exception as persist_exc:
            log_event(
                logger,
                logging.ERROR,
                "scrape_job_failure_not_persisted",
                job_id=job_id,
                error=str(exc),
                persist_error=str(persist_exc),
            )
