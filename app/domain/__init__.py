"""
app/domain package marker.
"""

from app.domain.scraping import (
    ExtractedCompany,
    LogEntry,
    LogLevel,
    ScrapeJob,
    ScrapeJobStatus,
    ScrapeSettings,
    ScrapingUrl,
    ScrapingUrlStatus,
    StoredCompany,
)

__all__ = [
    "ExtractedCompany",
    "LogEntry",
    "LogLevel",
    "ScrapeJob",
    "ScrapeJobStatus",
    "ScrapeSettings",
    "ScrapingUrl",
    "ScrapingUrlStatus",
    "StoredCompany",
]
