"""
Run one review-site scrape job from the CLI against the in-memory store.
"""

from __future__ import annotations

import argparse
import json
import logging
import os

from app.domain.scraping import ScrapeSettings
from app.scraping.config import get_scraper_runtime_settings
from app.scraping.storage import InMemoryScrapeStorage
from app.services.export_service import ExportService
from app.services.scraping_service import InlineTaskExecutor, build_scraping_service


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Scrape company listings from review-site URLs.")
    parser.add_argument("urls", nargs="+", help="Listing or detail page URLs on the review site.")
    parser.add_argument("--review-limit", type=int, default=None, help="Max records kept per listing page.")
    parser.add_argument("--delay-ms", type=int, default=None, help="Pause between pages and URLs in ms.")
    parser.add_argument("--min-rating", type=float, default=None, help="Drop records rated below this.")
    parser.add_argument("--retry-attempts", type=int, default=None, help="Fetch attempts per page.")
    parser.add_argument("--proxy", dest="cors_proxy", default=None, help="Preferred relay name.")
    parser.add_argument(
        "--format",
        dest="output_format",
        choices=("summary", "csv", "json"),
        default="summary",
        help="Print the job summary (default) or export the scraped companies.",
    )
    return parser.parse_args()


def main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=getattr(logging, os.getenv("LOG_LEVEL", "WARNING").strip().upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    settings_payload = {
        key: value
        for key, value in {
            "review_limit": args.review_limit,
            "delay_ms": args.delay_ms,
            "min_rating": args.min_rating,
            "retry_attempts": args.retry_attempts,
            "cors_proxy": args.cors_proxy,
        }.items()
        if value is not None
    }

    storage = InMemoryScrapeStorage()
    service = build_scraping_service(get_scraper_runtime_settings(), storage=storage)
    try:
        job = service.start_job(urls=args.urls, settings_payload=settings_payload, executor=InlineTaskExecutor())
    except ValueError as exc:
        print(json.dumps({"error": str(exc)}))
        return 2

    final_job = storage.get_job(job.id)
    if final_job is None:
        print(json.dumps({"error": f"Scraping job not found: {job.id}"}))
        return 1

    if args.output_format != "summary":
        companies = storage.list_companies()
        if not companies:
            print(json.dumps({"error": "No data to export", "status": final_job.status}))
            return 1
        document = ExportService().export(companies, args.output_format)
        print(document.content.decode("utf-8"))
        return 0

    payload = {
        "job_id": str(final_job.id),
        "status": final_job.status,
        "settings": ScrapeSettings.from_payload(final_job.settings).to_payload(),
        "total_urls": final_job.total_urls,
        "processed_urls": final_job.processed_urls,
        "total_companies": final_job.total_companies,
        "error_count": final_job.error_count,
        "logs": [
            {"level": entry.level, "message": entry.message, "timestamp": entry.timestamp.isoformat()}
            for entry in storage.list_logs(job_id=final_job.id)
        ],
    }
    print(json.dumps(payload, indent=2))
    return 0 if final_job.status != "error" else 1


if __name__ == "__main__":
    raise SystemExit(main())
