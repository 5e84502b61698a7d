"""
tests/test_orchestrator.py

Pytest unit tests for app/scraping/orchestrator.py.

The pagination controller is replaced by a scripted stand-in so each test
controls exactly which records each seed URL yields.

Coverage
--------
- Completed run: counters, stored companies, user-visible log trail
- Per-URL failures are counted without aborting the job
- Cooperative cancellation between URLs
- Single active job: conflicts while running and with pending jobs
- Claiming the slot creates the job only when no other job is active
- Managed seed URLs move through processing to complete or error
- Unexpected storage failure marks the job errored and raises JobFatal
- The job slot is released after every outcome
"""

from __future__ import annotations

import uuid
from collections.abc import Callable

import pytest

from app.domain.scraping import ExtractedCompany, LogLevel, ScrapeJobStatus, ScrapeSettings, ScrapingUrlStatus
from app.scraping.errors import ConcurrencyConflict, JobFatal
from app.scraping.orchestrator import JobOrchestrator
from app.scraping.proxy import build_proxy_rotator
from app.scraping.storage import InMemoryScrapeStorage
from fakes import RELAY_CONFIGS, FakeSession, RecordingSleep

URL_A = "https://www.trustpilot.com/categories/bank"
URL_B = "https://www.trustpilot.com/categories/insurance"
URL_C = "https://www.trustpilot.com/categories/travel"


class ScriptedController:
    """
    Stand-in for PaginationController: emits canned names per seed URL,
    raises canned exceptions, and runs an optional hook mid-collection.
    """

    def __init__(
        self,
        script: dict[str, list[str] | Exception],
        *,
        on_collect: Callable[[str], None] | None = None,
    ) -> None:
        self.script = script
        self.on_collect = on_collect
        self.seen: list[str] = []

    def collect(self, seed_url, settings, sink, *, should_stop=None, recorder=None) -> int:
        self.seen.append(seed_url)
        if self.on_collect is not None:
            self.on_collect(seed_url)
        outcome = self.script.get(seed_url, [])
        if isinstance(outcome, Exception):
            raise outcome
        for name in outcome:
            sink(ExtractedCompany(name=name, source_url=seed_url))
        return len(outcome)


class FlakyStorage(InMemoryScrapeStorage):
    """
    Fails the next progress-counter update once, then behaves normally.
    """

    def __init__(self) -> None:
        super().__init__()
        self.fail_next_progress_update = True

    def update_job(self, job_id: uuid.UUID, **changes):
        if "processed_urls" in changes and self.fail_next_progress_update:
            self.fail_next_progress_update = False
            raise RuntimeError("database went away")
        return super().update_job(job_id, **changes)


@pytest.fixture()
def storage() -> InMemoryScrapeStorage:
    return InMemoryScrapeStorage()


@pytest.fixture()
def sleep() -> RecordingSleep:
    return RecordingSleep()


def _messages(storage: InMemoryScrapeStorage, job_id: uuid.UUID) -> list[str]:
    return [entry.message for entry in storage.list_logs(job_id)]


# ---------------------------------------------------------------------------
# Normal runs
# ---------------------------------------------------------------------------


class TestRun:
    def test_completed_job(self, storage: InMemoryScrapeStorage, sleep: RecordingSleep) -> None:
        controller = ScriptedController({URL_A: ["Acme Bank", "Beta Bank"], URL_B: ["Gamma Insurance"]})
        orchestrator = JobOrchestrator(storage=storage, controller=controller, sleep=sleep)
        job = storage.create_job(total_urls=2, settings={})

        final = orchestrator.run(job.id, [URL_A, URL_B], ScrapeSettings(delay_ms=1500))

        assert final.status == ScrapeJobStatus.COMPLETED
        assert final.processed_urls == 2
        assert final.total_companies == 3
        assert final.error_count == 0
        assert final.started_at is not None
        assert final.completed_at is not None
        assert [company.record.name for company in storage.list_companies()] == [
            "Acme Bank",
            "Beta Bank",
            "Gamma Insurance",
        ]
        assert all(company.job_id == job.id for company in storage.list_companies())
        assert sleep.calls == [1.5]
        assert orchestrator.is_running is False

        messages = _messages(storage, job.id)
        assert messages[0] == "Scraping process initiated"
        assert f"Processing URL: {URL_A}" in messages
        assert "Found 2 companies from URL" in messages
        assert messages[-1] == "Scraping completed. Processed 2/2 URLs, found 3 companies with 0 errors."
        assert storage.list_logs(job.id)[-1].level == LogLevel.SUCCESS

    def test_managed_url_status_follows_outcome(self, storage: InMemoryScrapeStorage, sleep: RecordingSleep) -> None:
        storage.add_url(url=URL_A, name="Bank")
        storage.add_url(url=URL_B, name="Insurance")
        statuses_during_collect: list[str] = []

        def record_status(seed_url: str) -> None:
            statuses_during_collect.extend(item.status for item in storage.list_urls() if item.url == seed_url)

        controller = ScriptedController(
            {URL_A: RuntimeError("boom"), URL_B: ["Gamma Insurance"], URL_C: ["Delta Travel"]},
            on_collect=record_status,
        )
        orchestrator = JobOrchestrator(storage=storage, controller=controller, sleep=sleep)
        job = storage.create_job(total_urls=3, settings={})

        orchestrator.run(job.id, [URL_A, URL_B, URL_C], ScrapeSettings(delay_ms=0))

        assert statuses_during_collect == [ScrapingUrlStatus.PROCESSING, ScrapingUrlStatus.PROCESSING]
        assert {item.url: item.status for item in storage.list_urls()} == {
            URL_A: ScrapingUrlStatus.ERROR,
            URL_B: ScrapingUrlStatus.COMPLETE,
        }

    def test_url_failure_is_counted(self, storage: InMemoryScrapeStorage, sleep: RecordingSleep) -> None:
        controller = ScriptedController({URL_A: RuntimeError("boom"), URL_B: ["Gamma Insurance"]})
        orchestrator = JobOrchestrator(storage=storage, controller=controller, sleep=sleep)
        job = storage.create_job(total_urls=2, settings={})

        final = orchestrator.run(job.id, [URL_A, URL_B], ScrapeSettings(delay_ms=0))

        assert final.status == ScrapeJobStatus.COMPLETED
        assert final.processed_urls == 2
        assert final.error_count == 1
        assert final.total_companies == 1
        errors = [entry for entry in storage.list_logs(job.id) if entry.level == LogLevel.ERROR]
        assert [entry.message for entry in errors] == [f"Failed to process URL {URL_A}: boom"]

    def test_preferred_relay_applied(self, storage: InMemoryScrapeStorage, sleep: RecordingSleep) -> None:
        rotator = build_proxy_rotator(RELAY_CONFIGS, session=FakeSession(), sleep=sleep)
        orchestrator = JobOrchestrator(
            storage=storage,
            controller=ScriptedController({}),
            rotator=rotator,
            sleep=sleep,
        )
        job = storage.create_job(total_urls=1, settings={})

        orchestrator.run(job.id, [URL_A], ScrapeSettings(cors_proxy="beta"))

        assert rotator.cursor == 1


# ---------------------------------------------------------------------------
# Cancellation and concurrency
# ---------------------------------------------------------------------------


class TestCancellation:
    def test_stop_between_urls(self, storage: InMemoryScrapeStorage, sleep: RecordingSleep) -> None:
        orchestrator: JobOrchestrator | None = None

        def stop_during_first_url(seed_url: str) -> None:
            if seed_url == URL_A:
                assert orchestrator is not None
                assert orchestrator.request_stop() is True

        controller = ScriptedController(
            {URL_A: ["Acme Bank"], URL_B: ["Gamma Insurance"], URL_C: ["Delta Travel"]},
            on_collect=stop_during_first_url,
        )
        orchestrator = JobOrchestrator(storage=storage, controller=controller, sleep=sleep)
        job = storage.create_job(total_urls=3, settings={})

        final = orchestrator.run(job.id, [URL_A, URL_B, URL_C], ScrapeSettings(delay_ms=1000))

        assert final.status == ScrapeJobStatus.STOPPED
        assert final.processed_urls == 1
        assert final.total_companies == 1
        assert controller.seen == [URL_A]
        assert sleep.calls == []
        messages = _messages(storage, job.id)
        assert "Scraping stopped by user request" in messages
        assert messages[-1] == "Scraping stopped. Processed 1/3 URLs, found 1 companies with 0 errors."

    def test_request_stop_when_idle(self, storage: InMemoryScrapeStorage) -> None:
        orchestrator = JobOrchestrator(storage=storage, controller=ScriptedController({}))
        assert orchestrator.request_stop() is False


class TestConcurrency:
    def test_conflict_while_running(self, storage: InMemoryScrapeStorage, sleep: RecordingSleep) -> None:
        conflicts: list[ConcurrencyConflict] = []
        orchestrator: JobOrchestrator | None = None

        def try_second_start(seed_url: str) -> None:
            assert orchestrator is not None
            try:
                orchestrator.ensure_available()
            except ConcurrencyConflict as exc:
                conflicts.append(exc)

        orchestrator = JobOrchestrator(
            storage=storage,
            controller=ScriptedController({URL_A: ["Acme Bank"]}, on_collect=try_second_start),
            sleep=sleep,
        )
        job = storage.create_job(total_urls=1, settings={})
        orchestrator.run(job.id, [URL_A])

        assert len(conflicts) == 1
        assert conflicts[0].active_job_id == job.id
        orchestrator.ensure_available()

    def test_pending_job_blocks_another(self, storage: InMemoryScrapeStorage) -> None:
        orchestrator = JobOrchestrator(storage=storage, controller=ScriptedController({}))
        first = storage.create_job(total_urls=1, settings={})
        second = storage.create_job(total_urls=1, settings={})

        with pytest.raises(ConcurrencyConflict) as exc_info:
            orchestrator.run(second.id, [URL_A])

        assert exc_info.value.active_job_id == first.id
        assert orchestrator.is_running is False
        assert storage.get_job(second.id).status == ScrapeJobStatus.PENDING

    def test_begin_is_idempotent_for_same_job(self, storage: InMemoryScrapeStorage) -> None:
        orchestrator = JobOrchestrator(storage=storage, controller=ScriptedController({}))
        job = storage.create_job(total_urls=1, settings={})

        orchestrator.begin(job.id)
        orchestrator.begin(job.id)

        assert orchestrator.running_job_id == job.id

    def test_claim_creates_job_and_takes_slot(self, storage: InMemoryScrapeStorage) -> None:
        orchestrator = JobOrchestrator(storage=storage, controller=ScriptedController({}))

        job = orchestrator.claim(lambda: storage.create_job(total_urls=1, settings={}))

        assert orchestrator.running_job_id == job.id
        with pytest.raises(ConcurrencyConflict):
            orchestrator.claim(lambda: storage.create_job(total_urls=1, settings={}))

    def test_rejected_claim_writes_nothing(self, storage: InMemoryScrapeStorage) -> None:
        orchestrator = JobOrchestrator(storage=storage, controller=ScriptedController({}))
        active = storage.create_job(total_urls=1, settings={})
        created: list[uuid.UUID] = []

        def create_job():
            job = storage.create_job(total_urls=1, settings={})
            created.append(job.id)
            return job

        with pytest.raises(ConcurrencyConflict) as exc_info:
            orchestrator.claim(create_job)

        assert exc_info.value.active_job_id == active.id
        assert created == []
        assert storage.get_latest_job().id == active.id
        assert orchestrator.is_running is False


# ---------------------------------------------------------------------------
# Fatal failures
# ---------------------------------------------------------------------------


class TestFatal:
    def test_storage_failure_marks_job_errored(self, sleep: RecordingSleep) -> None:
        storage = FlakyStorage()
        orchestrator = JobOrchestrator(
            storage=storage,
            controller=ScriptedController({URL_A: ["Acme Bank"]}),
            sleep=sleep,
        )
        job = storage.create_job(total_urls=1, settings={})

        with pytest.raises(JobFatal) as exc_info:
            orchestrator.run(job.id, [URL_A])

        assert exc_info.value.job_id == job.id
        assert isinstance(exc_info.value.cause, RuntimeError)
        failed = storage.get_job(job.id)
        assert failed.status == ScrapeJobStatus.ERROR
        assert failed.completed_at is not None
        assert _messages(storage, job.id)[-1] == "Scraping failed: database went away"
        assert orchestrator.is_running is False

        retry = storage.create_job(total_urls=1, settings={})
        final = orchestrator.run(retry.id, [URL_A])
        assert final.status == ScrapeJobStatus.COMPLETED
