"""
app/api/routers/scraping.py

Scraping control, seed URL, company, log, export and relay diagnostic endpoints.

All routes live under ``/api``. Validation failures map to 400, a start
request while another job is active maps to 409.
"""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Response, status

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
from app.scraping.errors import ConcurrencyConflict
from app.services.export_service import (
    ExportService,
    NoDataToExportError,
    UnsupportedExportFormatError,
    get_export_service,
)
from app.services.scraping_service import (
    FastAPIBackgroundTaskExecutor,
    InvalidScrapingUrlError,
    ScrapingService,
    get_scraping_service,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["scraping"])


@router.get("/scraping/urls", response_model=list[ScrapingUrlResponse])
def list_scraping_urls(
    service: ScrapingService = Depends(get_scraping_service),
) -> list[ScrapingUrlResponse]:
    return [ScrapingUrlResponse.from_domain(item) for item in service.list_urls()]


@router.post("/scraping/urls", response_model=ScrapingUrlResponse)
def add_scraping_url(
    payload: AddScrapingUrlRequest,
    service: ScrapingService = Depends(get_scraping_service),
) -> ScrapingUrlResponse:
    try:
        scraping_url = service.add_url(payload.url)
    except InvalidScrapingUrlError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return ScrapingUrlResponse.from_domain(scraping_url)


@router.delete("/scraping/urls/{url_id}", response_model=MessageResponse)
def remove_scraping_url(
    url_id: UUID,
    service: ScrapingService = Depends(get_scraping_service),
) -> MessageResponse:
    service.remove_url(url_id)
    return MessageResponse()


@router.delete("/scraping/urls", response_model=MessageResponse)
def clear_scraping_urls(
    service: ScrapingService = Depends(get_scraping_service),
) -> MessageResponse:
    service.clear_urls()
    return MessageResponse()


@router.get("/scraping/current-job", response_model=ScrapeJobResponse | None)
def get_current_job(
    service: ScrapingService = Depends(get_scraping_service),
) -> ScrapeJobResponse | None:
    job = service.get_current_job()
    return ScrapeJobResponse.from_domain(job) if job is not None else None


@router.post(
    "/scraping/start",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=StartScrapingResponse,
)
def start_scraping(
    payload: StartScrapingRequest,
    background_tasks: BackgroundTasks,
    service: ScrapingService = Depends(get_scraping_service),
) -> StartScrapingResponse:
    try:
        job = service.start_job(
            urls=payload.urls,
            settings_payload=payload.settings,
            executor=FastAPIBackgroundTaskExecutor(background_tasks),
        )
    except ConcurrencyConflict as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return StartScrapingResponse(job_id=job.id, status=job.status, message="Scraping started successfully")


@router.post("/scraping/stop", response_model=MessageResponse)
def stop_scraping(
    service: ScrapingService = Depends(get_scraping_service),
) -> MessageResponse:
    stopped = service.stop_job()
    return MessageResponse(
        success=stopped,
        message="Scraping stopped" if stopped else "No scraping job is running",
    )


@router.get("/companies", response_model=list[CompanyResponse])
def list_companies(
    service: ScrapingService = Depends(get_scraping_service),
) -> list[CompanyResponse]:
    return [CompanyResponse.from_domain(company) for company in service.list_companies()]


@router.delete("/companies", response_model=MessageResponse)
def clear_companies(
    service: ScrapingService = Depends(get_scraping_service),
) -> MessageResponse:
    service.clear_companies()
    return MessageResponse()


@router.get("/logs", response_model=list[LogEntryResponse])
def list_logs(
    service: ScrapingService = Depends(get_scraping_service),
) -> list[LogEntryResponse]:
    return [LogEntryResponse.from_domain(entry) for entry in service.list_logs()]


@router.get("/logs/{job_id}", response_model=list[LogEntryResponse])
def list_job_logs(
    job_id: UUID,
    service: ScrapingService = Depends(get_scraping_service),
) -> list[LogEntryResponse]:
    return [LogEntryResponse.from_domain(entry) for entry in service.list_logs(job_id)]


@router.delete("/logs", response_model=MessageResponse)
def clear_logs(
    service: ScrapingService = Depends(get_scraping_service),
) -> MessageResponse:
    service.clear_logs()
    return MessageResponse()


@router.post("/export")
def export_companies(
    payload: ExportRequest,
    service: ScrapingService = Depends(get_scraping_service),
    export_service: ExportService = Depends(get_export_service),
) -> Response:
    try:
        document = export_service.export(service.list_companies(), payload.format)
    except (NoDataToExportError, UnsupportedExportFormatError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    logger.info("Company export format=%r bytes=%d", payload.format, len(document.content))
    return Response(
        content=document.content,
        media_type=document.media_type,
        headers={"Content-Disposition": f'attachment; filename="{document.filename}"'},
    )


@router.get("/proxies/test", response_model=ProxyTestResponse)
def test_proxies(
    url: str | None = Query(default=None, description="Sample page fetched through every relay"),
    service: ScrapingService = Depends(get_scraping_service),
) -> ProxyTestResponse:
    sample_url = url or f"https://www.{service.review_site_host}/"
    report = service.test_proxies(sample_url)
    return ProxyTestResponse(sample_url=sample_url, working=report.working, failed=report.failed)
