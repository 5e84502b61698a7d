"""
tests/test_export_service.py

Pytest unit tests for app/services/export_service.py.

Coverage
--------
- CSV header order, empty cells for missing values, CRLF rows
- JSON envelope: export date, total count, per-company rows
- Format validation happens before the empty-data check
"""

from __future__ import annotations

import csv
import io
import json
import uuid
from datetime import datetime, timezone

import pytest

from app.domain.scraping import ExtractedCompany, StoredCompany
from app.services.export_service import (
    CSV_COLUMNS,
    ExportService,
    NoDataToExportError,
    UnsupportedExportFormatError,
)

JOB_ID = uuid.UUID("6f1c2b9e-0000-4000-8000-000000000001")


@pytest.fixture()
def companies() -> list[StoredCompany]:
    created = datetime(2026, 10, 19, 9, 30, tzinfo=timezone.utc)
    return [
        StoredCompany(
            id=uuid.UUID("6f1c2b9e-0000-4000-8000-0000000000aa"),
            record=ExtractedCompany(
                name="Acme, Tools",
                source_url="https://www.trustpilot.com/categories/tools",
                domain="acme.com",
                city="Milano",
                rating=4.5,
                review_count=1234,
            ),
            created_at=created,
            job_id=JOB_ID,
        ),
        StoredCompany(
            id=uuid.UUID("6f1c2b9e-0000-4000-8000-0000000000bb"),
            record=ExtractedCompany(name="Beta Shop", source_url="https://www.trustpilot.com/categories/tools"),
            created_at=created,
        ),
    ]


@pytest.fixture()
def service() -> ExportService:
    return ExportService()


class TestCsvExport:
    def test_header_and_rows(self, service: ExportService, companies: list[StoredCompany]) -> None:
        document = service.export(companies, "CSV")

        assert document.filename == "review-site-companies.csv"
        assert document.media_type.startswith("text/csv")
        text = document.content.decode("utf-8")
        assert text.endswith("\r\n")

        rows = list(csv.reader(io.StringIO(text)))
        assert rows[0] == [header for header, _ in CSV_COLUMNS]
        assert rows[1][:8] == ["Acme, Tools", "", "acme.com", "Milano", "", "", "4.5", "1234"]
        assert rows[1][-1] == "complete"
        assert rows[2][0] == "Beta Shop"
        assert rows[2][6] == ""


class TestJsonExport:
    def test_envelope(self, service: ExportService, companies: list[StoredCompany]) -> None:
        document = service.export(companies, "json")

        assert document.filename == "review-site-companies.json"
        assert document.media_type == "application/json"
        payload = json.loads(document.content)
        assert payload["total_companies"] == 2
        assert datetime.fromisoformat(payload["export_date"]).tzinfo is not None

        first, second = payload["companies"]
        assert first["name"] == "Acme, Tools"
        assert first["rating"] == 4.5
        assert first["job_id"] == str(JOB_ID)
        assert first["created_at"] == "2026-10-19T09:30:00+00:00"
        assert second["job_id"] is None
        assert second["rating"] is None


class TestValidation:
    def test_empty_data(self, service: ExportService) -> None:
        with pytest.raises(NoDataToExportError, match="No data to export"):
            service.export([], "csv")

    @pytest.mark.parametrize("output_format", ["xlsx", "", "xml"])
    def test_unsupported_format_checked_first(self, service: ExportService, output_format: str) -> None:
        with pytest.raises(UnsupportedExportFormatError):
            service.export([], output_format)
