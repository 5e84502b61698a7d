"""
app/services package marker.
"""

from app.services.export_service import (
    ExportDocument,
    ExportService,
    NoDataToExportError,
    UnsupportedExportFormatError,
    get_export_service,
)
from app.services.scraping_service import (
    FastAPIBackgroundTaskExecutor,
    InlineTaskExecutor,
    InvalidScrapingUrlError,
    ScrapingService,
    build_scraping_service,
    get_scraping_service,
)

__all__ = [
    "ExportDocument",
    "ExportService",
    "NoDataToExportError",
    "UnsupportedExportFormatError",
    "get_export_service",
    "FastAPIBackgroundTaskExecutor",
    "InlineTaskExecutor",
    "InvalidScrapingUrlError",
    "ScrapingService",
    "build_scraping_service",
    "get_scraping_service",
]
