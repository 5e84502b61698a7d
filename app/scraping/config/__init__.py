"""
Config helpers for the scraping pipeline.
"""

from app.scraping.config.loader import DEFAULT_RELAYS, get_scraper_runtime_settings, load_relay_configs
from app.scraping.config.models import RelayEndpointConfig, ScraperRuntimeSettings

__all__ = [
    "DEFAULT_RELAYS",
    "RelayEndpointConfig",
    "ScraperRuntimeSettings",
    "get_scraper_runtime_settings",
    "load_relay_configs",
]
