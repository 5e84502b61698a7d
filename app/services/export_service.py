"""
app/services/export_service.py

Company export as CSV or JSON documents.

The service renders bytes plus download metadata; the router only sets
headers and status codes.
"""

from __future__ import annotations

import csv
import io
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any

from app.domain.scraping import StoredCompany

EXPORT_FILENAME_STEM = "review-site-companies"

CSV_COLUMNS: tuple[tuple[str, str], ...] = (
    ("Company Name", "name"),
    ("Company Type", "type"),
    ("Domain", "domain"),
    ("City", "city"),
    ("Phone", "phone"),
    ("Email", "email"),
    ("Rating", "rating"),
    ("Review Count", "review_count"),
    ("Source URL", "source_url"),
    ("Description", "description"),
    ("Address", "address"),
    ("Website", "website"),
    ("Status", "status"),
)


class UnsupportedExportFormatError(ValueError):
    """Raised when an export format is not one of the supported encodings."""


class NoDataToExportError(ValueError):
    """Raised when an export is requested with no stored companies."""


@dataclass(frozen=True)
class ExportDocument:
    content: bytes
    filename: str
    media_type: str


class ExportService:
    """
    Serialises stored companies into downloadable documents.
    """

    SUPPORTED_FORMATS = frozenset({"csv", "json"})

    def export(self, companies: list[StoredCompany], output_format: str) -> ExportDocument:
        normalized = (output_format or "").strip().lower()
        if normalized not in self.SUPPORTED_FORMATS:
            raise UnsupportedExportFormatError(
                f"Unsupported export format: {output_format!r}. "
                f"Must be one of: {sorted(self.SUPPORTED_FORMATS)}."
            )
        if not companies:
            raise NoDataToExportError("No data to export")

        if normalized == "csv":
            return self._to_csv(companies)
        return self._to_json(companies)

    @staticmethod
    def to_row(company: StoredCompany) -> dict[str, Any]:
        row = company.record.to_dict()
        row["id"] = str(company.id)
        row["job_id"] = str(company.job_id) if company.job_id is not None else None
        row["created_at"] = company.created_at.isoformat()
        return row

    def _to_csv(self, companies: list[StoredCompany]) -> ExportDocument:
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\r\n")
        writer.writerow([header for header, _ in CSV_COLUMNS])
        for company in companies:
            row = self.to_row(company)
            # Missing values export as empty cells.
            writer.writerow(["" if row.get(key) is None else row[key] for _, key in CSV_COLUMNS])

        return ExportDocument(
            content=buffer.getvalue().encode("utf-8"),
            filename=f"{EXPORT_FILENAME_STEM}.csv",
            media_type="text/csv; charset=utf-8",
        )

    def _to_json(self, companies: list[StoredCompany]) -> ExportDocument:
        document = {
            "export_date": datetime.now(timezone.utc).isoformat(),
            "total_companies": len(companies),
            "companies": [self.to_row(company) for company in companies],
        }
        return ExportDocument(
            content=json.dumps(document, indent=2, ensure_ascii=False).encode("utf-8"),
            filename=f"{EXPORT_FILENAME_STEM}.json",
            media_type="application/json",
        )


@lru_cache(maxsize=1)
def get_export_service() -> ExportService:
    return ExportService()
