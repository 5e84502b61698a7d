"""
Storage layer exports.
"""

from app.scraping.storage.base import JobNotFoundError, ScrapeStorage
from app.scraping.storage.memory import InMemoryScrapeStorage
from app.scraping.storage.sqlalchemy_storage import SQLAlchemyScrapeStorage

__all__ = ["InMemoryScrapeStorage", "JobNotFoundError", "SQLAlchemyScrapeStorage", "ScrapeStorage"]
