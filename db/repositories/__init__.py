"""
Repository layer exports.
"""

from db.repositories.company_repository import CompanyRepository
from db.repositories.scrape_job_repository import ScrapeJobRepository
from db.repositories.scrape_log_repository import ScrapeLogRepository
from db.repositories.scraping_url_repository import ScrapingUrlRepository

__all__ = [
    "CompanyRepository",
    "ScrapeJobRepository",
    "ScrapeLogRepository",
    "ScrapingUrlRepository",
]
