"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.company import CompanyRecord
from db.models.scrape_job import ScrapeJobRecord
from db.models.scrape_log import ScrapeLogRecord
from db.models.scraping_url import ScrapingUrlRecord

__all__ = [
    "CompanyRecord",
    "ScrapeJobRecord",
    "ScrapeLogRecord",
    "ScrapingUrlRecord",
]
