"""
Scraping configuration models.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RelayEndpointConfig:
    """
    One relay endpoint as declared in configuration.

    ``transform`` names the response unwrapping rule: ``raw`` passes the body
    through, ``json:<field>`` reads one field from a JSON envelope.
    """

    name: str
    url_template: str
    transform: str = "raw"
    enabled: bool = True


@dataclass(frozen=True)
class ScraperRuntimeSettings:
    """
    Process-wide runtime settings for the scraping pipeline.
    """

    review_site_host: str
    user_agent: str
    fetch_timeout_seconds: float
    relay_backoff_seconds: float
    page_retry_delay_seconds: float
    max_pages: int
    max_records_per_url: int
    default_record_cap: int
    storage_backend: str
    relays_path: str | None = None
