"""
Extraction layer exports.
"""

from app.scraping.extraction.engine import DEFAULT_RECORD_CAP, ExtractionEngine
from app.scraping.extraction.fields import FieldExtractor, clean_name
from app.scraping.extraction.text_mining import (
    extract_address,
    extract_city,
    extract_domain,
    extract_emails,
    extract_phones,
    is_detail_url,
    is_valid_phone,
    parse_rating,
    parse_review_count,
)

__all__ = [
    "DEFAULT_RECORD_CAP",
    "ExtractionEngine",
    "FieldExtractor",
    "clean_name",
    "extract_address",
    "extract_city",
    "extract_domain",
    "extract_emails",
    "extract_phones",
    "is_detail_url",
    "is_valid_phone",
    "parse_rating",
    "parse_review_count",
]
