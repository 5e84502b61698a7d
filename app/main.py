from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI

from app.scraping.config import get_scraper_runtime_settings
from app.services.scraping_service import ScrapingService, get_scraping_service


def _validate_env() -> None:
    """
    Validate environment variables needed by the configured storage backend.

    Raises RuntimeError listing every problem so the operator can fix them in
    one restart cycle.
    """

    from db.config import configured_database_url, load_env_files

    load_env_files()

    errors: list[str] = []
    runtime = get_scraper_runtime_settings()
    if runtime.storage_backend == "sqlalchemy" and configured_database_url() is None:
        errors.append(
            "SCRAPER_STORAGE_BACKEND=sqlalchemy but no database URL is configured. "
            "Set DATABASE_URL, CLOUD_DATABASE_URL or LOCAL_DATABASE_URL."
        )

    if runtime.relays_path and not os.path.exists(runtime.relays_path):
        errors.append(f"SCRAPER_RELAYS_PATH points at a missing file: {runtime.relays_path}")

    if errors:
        raise RuntimeError(
            "Startup validation failed, missing or invalid environment variables:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )


def _configure_logging() -> None:
    """
    Configure root logging once for the API process.
    """

    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _check_db() -> None:
    """Open a session and run SELECT 1. Raises RuntimeError if the DB is unreachable."""
    from sqlalchemy import text

    from db.session import SessionLocal

    try:
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
        finally:
            db.close()
    except Exception as exc:
        raise RuntimeError("Database unavailable.") from exc


def _check_schema() -> None:
    """
    Every table registered on Base.metadata must exist in the database.

    Does NOT auto-migrate: missing tables abort startup.
    """
    from sqlalchemy import inspect as sa_inspect

    import db.models  # noqa: F401 registers ORM models on Base.metadata
    from db.base import Base
    from db.session import get_engine

    inspector = sa_inspect(get_engine())
    actual: set[str] = set(inspector.get_table_names())
    expected: set[str] = set(Base.metadata.tables.keys())
    missing = expected - actual

    if missing:
        logging.getLogger(__name__).critical(
            "Schema mismatch: %d table(s) absent from the database: %s. "
            "Run 'alembic upgrade head' and restart.",
            len(missing),
            ", ".join(sorted(missing)),
        )
        raise RuntimeError(
            f"Schema mismatch: {len(missing)} table(s) missing from the database "
            f"({', '.join(sorted(missing))}). Run migrations and restart."
        )


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Check database connectivity and schema on boot when the SQL backend is selected."""
    log = logging.getLogger(__name__)
    runtime = get_scraper_runtime_settings()
    if runtime.storage_backend == "sqlalchemy":
        _check_db()
        log.info("Database connectivity confirmed")
        _check_schema()
        log.info("Database schema validated")
    log.info("Scraper API ready storage_backend=%s", runtime.storage_backend)
    try:
        yield
    finally:
        service = get_scraping_service()
        if service.orchestrator.request_stop():
            log.info("Requested stop of the running scrape job on shutdown")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """

    _validate_env()
    _configure_logging()

    application = FastAPI(
        title="Review Listing Scraper API",
        version="1.0.0",
        lifespan=_lifespan,
    )

    from app.api.routers import scraping_router

    application.include_router(scraping_router)

    @application.get("/api/health")
    @application.get("/health")
    def healthcheck(service: ScrapingService = Depends(get_scraping_service)) -> dict[str, object]:
        return {
            "status": "ok",
            "storage_backend": get_scraper_runtime_settings().storage_backend,
            "scraping_active": service.orchestrator.is_running,
        }

    return application


app = create_app()
