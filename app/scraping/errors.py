"""
Exception taxonomy for the scraping pipeline.

Only ``ConcurrencyConflict`` and ``JobFatal`` are meant to escape the job
orchestrator; everything else is caught and logged at the level that owns it.
"""

from __future__ import annotations

import uuid


class ScrapingError(Exception):
    """Base exception for scraping failures."""


class RelayFailure(ScrapingError):
    """Raised when one relay attempt fails."""

    def __init__(self, relay: str, message: str) -> None:
        super().__init__(f"relay={relay} {message}")
        self.relay = relay
        self.message = message


class ProxyExhaustedError(ScrapingError):
    """Raised when every relay attempt within the retry budget failed."""

    def __init__(self, target_url: str, attempts: int, last_error: Exception | None = None) -> None:
        detail = f": {last_error}" if last_error is not None else ""
        super().__init__(f"All relay attempts failed for {target_url} after {attempts} attempt(s){detail}")
        self.target_url = target_url
        self.attempts = attempts
        self.last_error = last_error


class PageRetryExhausted(ScrapingError):
    """Raised when a listing page could not be fetched within its retry ceiling."""

    def __init__(self, page_url: str, attempts: int, last_error: Exception | None = None) -> None:
        detail = f": {last_error}" if last_error is not None else ""
        super().__init__(f"Page {page_url} failed after {attempts} attempt(s){detail}")
        self.page_url = page_url
        self.attempts = attempts
        self.last_error = last_error


class ExtractionAnomaly(ScrapingError):
    """Raised when a candidate container or embedded payload is malformed."""


class ConcurrencyConflict(ScrapingError):
    """Raised when a job start is attempted while another job is active."""

    def __init__(self, active_job_id: uuid.UUID | None = None) -> None:
        suffix = f" (active job {active_job_id})" if active_job_id is not None else ""
        super().__init__(f"Scraping is already in progress{suffix}")
        self.active_job_id = active_job_id


class JobFatal(ScrapingError):
    """Raised when an unexpected error escapes the per-URL boundary."""

    def __init__(self, job_id: uuid.UUID, cause: Exception) -> None:
        super().__init__(f"Scrape job {job_id} failed: {type(cause).__name__}: {cause}")
        self.job_id = job_id
        self.cause = cause
