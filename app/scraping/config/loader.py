"""
Environment + JSON config loader for the scraping pipeline.
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path

from db.config import load_env_files

from app.scraping.config.models import RelayEndpointConfig, ScraperRuntimeSettings

DEFAULT_RELAYS: tuple[RelayEndpointConfig, ...] = (
    RelayEndpointConfig(
        name="allorigins",
        url_template="https://api.allorigins.win/get?url={url}",
        transform="json:contents",
    ),
    RelayEndpointConfig(
        name="cors-anywhere",
        url_template="https://cors-anywhere.herokuapp.com/{url}",
    ),
    RelayEndpointConfig(
        name="thingproxy",
        url_template="https://thingproxy.freeboard.io/fetch/{url}",
    ),
    RelayEndpointConfig(
        name="codetabs",
        url_template="https://api.codetabs.com/v1/proxy?quest={url}",
    ),
)

_STORAGE_BACKENDS = {"memory", "sqlalchemy"}


def _get_int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None:
        return default
    stripped = raw.strip()
    return stripped if stripped else default


def _project_root() -> Path:
    return Path(__file__).resolve().parents[3]


def _resolve_config_path(raw_path: str) -> Path:
    candidate = Path(raw_path)
    if candidate.is_absolute():
        return candidate
    return (_project_root() / candidate).resolve()


@lru_cache(maxsize=1)
def get_scraper_runtime_settings() -> ScraperRuntimeSettings:
    """
    Return cached scraper runtime settings from environment variables.
    """

    load_env_files()
    storage_backend = _get_str_env("SCRAPER_STORAGE_BACKEND", "memory").lower()
    if storage_backend not in _STORAGE_BACKENDS:
        storage_backend = "memory"

    relays_path = os.getenv("SCRAPER_RELAYS_PATH")
    return ScraperRuntimeSettings(
        review_site_host=_get_str_env("SCRAPER_REVIEW_SITE_HOST", "trustpilot.com").lower(),
        user_agent=_get_str_env(
            "SCRAPER_USER_AGENT",
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        ),
        fetch_timeout_seconds=max(1.0, _get_float_env("SCRAPER_FETCH_TIMEOUT_SECONDS", 30.0)),
        relay_backoff_seconds=max(0.0, _get_float_env("SCRAPER_RELAY_BACKOFF_SECONDS", 1.0)),
        page_retry_delay_seconds=max(0.0, _get_float_env("SCRAPER_PAGE_RETRY_DELAY_SECONDS", 1.0)),
        max_pages=max(1, _get_int_env("SCRAPER_MAX_PAGES", 10)),
        max_records_per_url=max(1, _get_int_env("SCRAPER_MAX_RECORDS_PER_URL", 500)),
        default_record_cap=max(1, _get_int_env("SCRAPER_DEFAULT_RECORD_CAP", 100)),
        storage_backend=storage_backend,
        relays_path=str(_resolve_config_path(relays_path.strip())) if relays_path and relays_path.strip() else None,
    )


def load_relay_configs(*, config_path: str | None = None) -> list[RelayEndpointConfig]:
    """
    Load relay endpoints from a JSON file, falling back to the built-in list.
    """

    if not config_path:
        return list(DEFAULT_RELAYS)

    path = _resolve_config_path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Relay config file not found: {path}")

    raw_data = json.loads(path.read_text(encoding="utf-8"))
    relays = raw_data.get("relays", []) if isinstance(raw_data, dict) else raw_data
    if not isinstance(relays, list):
        raise ValueError("Invalid relay config: 'relays' must be a list.")

    parsed: list[RelayEndpointConfig] = []
    for entry in relays:
        if not isinstance(entry, dict):
            continue

        name = str(entry.get("name", "")).strip()
        url_template = str(entry.get("url_template", "")).strip()
        if not name or not url_template:
            continue
        if "{url}" not in url_template:
            url_template = f"{url_template}{{url}}"

        transform = str(entry.get("transform", "raw")).strip().lower() or "raw"
        if transform != "raw" and not transform.startswith("json:"):
            raise ValueError(f"Invalid transform '{transform}' for relay '{name}'.")

        config = RelayEndpointConfig(
            name=name,
            url_template=url_template,
            transform=transform,
            enabled=_optional_bool(entry.get("enabled"), True),
        )
        if config.enabled:
            parsed.append(config)

    if not parsed:
        raise ValueError(f"Relay config file {path} declares no enabled relays.")
    return parsed


def _optional_bool(value: object, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "on"}:
            return True
        if normalized in {"0", "false", "no", "off"}:
            return False
    return default
