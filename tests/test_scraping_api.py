"""
tests/test_scraping_api.py

End-to-end tests for the /api routes with the real service stack wired to
in-memory storage and a fake relay session. Background tasks run inside
the TestClient call, so a started job has finished when the call returns.

Coverage
--------
- Seed URL management and review-site URL validation
- Start: 202 with a pending job, then completed counters and companies
- Start validation (400) and concurrent start (409)
- Stop with and without a running job, including stale active jobs
- Export download headers and empty-data errors
- Log filtering, clearing endpoints and relay probing
- Health endpoint of the assembled application
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.api.routers import scraping_router
from app.scraping.config.models import ScraperRuntimeSettings
from app.scraping.storage import InMemoryScrapeStorage
from app.services.scraping_service import ScrapingService, build_scraping_service, get_scraping_service
from fakes import SEED_URL, FakeSession, RecordingSleep, empty_listing_page, listing_page, page_url

HOME_URL = "https://www.trustpilot.com/"


@pytest.fixture()
def session() -> FakeSession:
    return FakeSession(
        {
            page_url(SEED_URL, 1): listing_page(("Acme Tools", 4.5), ("Beta Shop", None)),
            page_url(SEED_URL, 2): empty_listing_page(),
            HOME_URL: listing_page(("Home Page Company", None)),
        }
    )


@pytest.fixture()
def service(tmp_path: Path, session: FakeSession) -> ScrapingService:
    relays_path = tmp_path / "relays.json"
    relays_path.write_text(
        json.dumps(
            {
                "relays": [
                    {"name": "alpha", "url_template": "https://relay-a.test/{url}"},
                    {"name": "beta", "url_template": "https://relay-b.test/"},
                ]
            }
        ),
        encoding="utf-8",
    )
    runtime = ScraperRuntimeSettings(
        review_site_host="trustpilot.com",
        user_agent="pytest-agent",
        fetch_timeout_seconds=5.0,
        relay_backoff_seconds=0.0,
        page_retry_delay_seconds=0.0,
        max_pages=3,
        max_records_per_url=50,
        default_record_cap=100,
        storage_backend="memory",
        relays_path=str(relays_path),
    )
    return build_scraping_service(
        runtime,
        storage=InMemoryScrapeStorage(),
        session=session,
        sleep=RecordingSleep(),
    )


@pytest.fixture()
def client(service: ScrapingService) -> TestClient:
    application = FastAPI()
    application.include_router(scraping_router)
    application.dependency_overrides[get_scraping_service] = lambda: service
    return TestClient(application)


def _start(client: TestClient, urls: list[str]):
    return client.post("/api/scraping/start", json={"urls": urls, "settings": {"delay": 0, "retryAttempts": 1}})


# ---------------------------------------------------------------------------
# Seed URLs
# ---------------------------------------------------------------------------


class TestScrapingUrls:
    def test_add_list_remove(self, client: TestClient) -> None:
        assert client.get("/api/scraping/urls").json() == []

        response = client.post("/api/scraping/urls", json={"url": SEED_URL})
        assert response.status_code == 200
        body = response.json()
        assert body["name"] == "Electronics & Technology"
        assert body["status"] == "pending"

        custom = client.post("/api/scraping/urls", json={"url": "https://www.trustpilot.com/search?query=shoes"})
        assert custom.json()["name"] == "Custom URL"
        assert len(client.get("/api/scraping/urls").json()) == 2

        assert client.delete(f"/api/scraping/urls/{body['id']}").json()["success"] is True
        assert [item["url"] for item in client.get("/api/scraping/urls").json()] == [
            "https://www.trustpilot.com/search?query=shoes"
        ]

        client.delete("/api/scraping/urls")
        assert client.get("/api/scraping/urls").json() == []

    @pytest.mark.parametrize("url", ["https://example.com/categories/bank", "ftp://www.trustpilot.com/x", "nope"])
    def test_rejects_foreign_urls(self, client: TestClient, url: str) -> None:
        response = client.post("/api/scraping/urls", json={"url": url})
        assert response.status_code == 400

    def test_add_url_is_logged(self, client: TestClient) -> None:
        client.post("/api/scraping/urls", json={"url": SEED_URL})
        messages = [entry["message"] for entry in client.get("/api/logs").json()]
        assert messages == ["Added URL: Electronics & Technology"]

    def test_malformed_id(self, client: TestClient) -> None:
        assert client.delete("/api/scraping/urls/not-a-uuid").status_code == 422


# ---------------------------------------------------------------------------
# Job lifecycle
# ---------------------------------------------------------------------------


class TestScrapingJobs:
    def test_no_job_yet(self, client: TestClient) -> None:
        response = client.get("/api/scraping/current-job")
        assert response.status_code == 200
        assert response.json() is None

    def test_start_runs_job(self, client: TestClient, session: FakeSession) -> None:
        response = _start(client, [SEED_URL])

        assert response.status_code == 202
        body = response.json()
        assert body["status"] == "pending"
        assert body["message"] == "Scraping started successfully"

        job = client.get("/api/scraping/current-job").json()
        assert job["id"] == body["job_id"]
        assert job["status"] == "completed"
        assert job["processed_urls"] == 1
        assert job["total_companies"] == 2
        assert job["settings"]["retry_attempts"] == 1

        companies = client.get("/api/companies").json()
        assert [company["name"] for company in companies] == ["Acme Tools", "Beta Shop"]
        assert companies[0]["rating"] == 4.5
        assert companies[0]["job_id"] == body["job_id"]
        assert session.targets() == [page_url(SEED_URL, 1), page_url(SEED_URL, 2)]

        messages = [entry["message"] for entry in client.get(f"/api/logs/{body['job_id']}").json()]
        assert messages[0] == "Starting scraping job with 1 URLs"
        assert "Found 2 companies from URL" in messages
        assert messages[-1].startswith("Scraping completed.")

    def test_start_requires_urls(self, client: TestClient) -> None:
        response = _start(client, ["  "])
        assert response.status_code == 400
        assert response.json()["detail"] == "No URLs provided"

    def test_start_conflicts_with_active_job(self, client: TestClient, service: ScrapingService) -> None:
        active = service.storage.create_job(total_urls=1, settings={})

        response = _start(client, [SEED_URL])

        assert response.status_code == 409
        assert str(active.id) in response.json()["detail"]
        assert client.get("/api/scraping/current-job").json()["id"] == str(active.id)
        assert service.storage.get_latest_job().id == active.id

    def test_stop_without_job(self, client: TestClient) -> None:
        body = client.post("/api/scraping/stop").json()
        assert body == {"success": False, "message": "No scraping job is running"}

    def test_stop_recovers_stale_job(self, client: TestClient, service: ScrapingService) -> None:
        stale = service.storage.create_job(total_urls=1, settings={})

        body = client.post("/api/scraping/stop").json()

        assert body == {"success": True, "message": "Scraping stopped"}
        assert service.storage.get_job(stale.id).status == "stopped"
        assert _start(client, [SEED_URL]).status_code == 202


# ---------------------------------------------------------------------------
# Companies, logs and export
# ---------------------------------------------------------------------------


class TestCompaniesAndExport:
    def test_export_csv(self, client: TestClient) -> None:
        _start(client, [SEED_URL])

        response = client.post("/api/export", json={"format": "csv"})

        assert response.status_code == 200
        assert response.headers["content-disposition"] == 'attachment; filename="review-site-companies.csv"'
        assert response.headers["content-type"].startswith("text/csv")
        lines = response.text.splitlines()
        assert lines[0].startswith("Company Name,Company Type,Domain")
        assert lines[1].startswith("Acme Tools,")

    def test_export_json(self, client: TestClient) -> None:
        _start(client, [SEED_URL])

        payload = client.post("/api/export", json={"format": "json"}).json()

        assert payload["total_companies"] == 2

    def test_export_errors(self, client: TestClient) -> None:
        empty = client.post("/api/export", json={"format": "csv"})
        assert empty.status_code == 400
        assert empty.json()["detail"] == "No data to export"

        assert client.post("/api/export", json={"format": "xlsx"}).status_code == 400

    def test_clear_companies_and_logs(self, client: TestClient) -> None:
        _start(client, [SEED_URL])

        assert client.delete("/api/companies").json()["success"] is True
        assert client.get("/api/companies").json() == []
        assert client.delete("/api/logs").json()["success"] is True
        assert client.get("/api/logs").json() == []


class TestProxies:
    def test_relay_check_default_sample(self, client: TestClient, session: FakeSession) -> None:
        body = client.get("/api/proxies/test").json()

        assert body == {"sample_url": HOME_URL, "working": ["alpha", "beta"], "failed": []}

    def test_relay_check_failures(self, client: TestClient, session: FakeSession) -> None:
        session.down.add("relay-b.test")

        body = client.get("/api/proxies/test", params={"url": HOME_URL}).json()

        assert body["working"] == ["alpha"]
        assert body["failed"] == ["beta"]


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


class TestApplication:
    def test_health(self, service: ScrapingService) -> None:
        from app.main import create_app

        application = create_app()
        application.dependency_overrides[get_scraping_service] = lambda: service
        client = TestClient(application)

        for path in ("/health", "/api/health"):
            body = client.get(path).json()
            assert body["status"] == "ok"
            assert body["scraping_active"] is False
