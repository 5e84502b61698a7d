"""
app/schemas package marker.
"""

from app.schemas.scraping import (
    AddScrapingUrlRequest,
    CompanyResponse,
    ExportRequest,
    LogEntryResponse,
    MessageResponse,
    ProxyTestResponse,
    ScrapeJobResponse,
    ScrapingUrlResponse,
    StartScrapingRequest,
    StartScrapingResponse,
)

__all__ = [
    "AddScrapingUrlRequest",
    "CompanyResponse",
    "ExportRequest",
    "LogEntryResponse",
    "MessageResponse",
    "ProxyTestResponse",
    "ScrapeJobResponse",
    "ScrapingUrlResponse",
    "StartScrapingRequest",
    "StartScrapingResponse",
]
