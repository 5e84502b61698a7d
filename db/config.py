"""
db/config.py

Database URL resolution for the SQL storage backend and Alembic.
"""

from __future__ import annotations

import os
from pathlib import Path

ENV_FILES = (".env", ".env.local")

# Checked in order; the cloud URL only counts when ENVIRONMENT is cloud-like.
DATABASE_URL_ENV_VARS = ("DATABASE_URL", "CLOUD_DATABASE_URL", "LOCAL_DATABASE_URL")
CLOUD_ENVIRONMENTS = frozenset({"prod", "production", "staging", "cloud"})

_DRIVER_PREFIXES = {
    "postgres://": "postgresql+psycopg://",
    "postgresql://": "postgresql+psycopg://",
}


def load_env_files(project_root: Path | None = None) -> None:
    """
    Copy KEY=VALUE lines from the project's env files into os.environ.

    Variables already present in the process environment win.
    """

    root = project_root or Path(__file__).resolve().parents[1]
    for filename in ENV_FILES:
        env_path = root / filename
        if not env_path.is_file():
            continue

        for raw_line in env_path.read_text(encoding="utf-8").splitlines():
            line = raw_line.strip()
            if line.startswith("export "):
                line = line[len("export "):].lstrip()
            if not line or line.startswith("#") or "=" not in line:
                continue

            key, value = line.split("=", 1)
            key = key.strip()
            if key:
                os.environ.setdefault(key, value.strip().strip('"').strip("'"))


def normalize_postgres_url(url: str) -> str:
    """Rewrite bare postgres URLs to the psycopg 3 driver form."""
    for prefix, replacement in _DRIVER_PREFIXES.items():
        if url.startswith(prefix):
            return replacement + url[len(prefix):]
    return url


def is_postgres_url(url: str) -> bool:
    return url.startswith("postgresql")


def configured_database_url() -> str | None:
    """
    Return the first usable database URL from the environment, or None.

    The ENVIRONMENT variable decides whether CLOUD_DATABASE_URL is eligible.
    """

    environment = os.getenv("ENVIRONMENT", "local").strip().lower()
    for name in DATABASE_URL_ENV_VARS:
        if name == "CLOUD_DATABASE_URL" and environment not in CLOUD_ENVIRONMENTS:
            continue
        value = os.getenv(name, "").strip()
        if value:
            return normalize_postgres_url(value)
    return None


def resolve_database_url() -> str:
    load_env_files()
    url = configured_database_url()
    if url is None:
        raise RuntimeError(
            "No database URL configured for the scraper store. Set DATABASE_URL, "
            "or LOCAL_DATABASE_URL / CLOUD_DATABASE_URL."
        )
    return url
