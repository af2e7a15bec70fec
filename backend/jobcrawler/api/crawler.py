from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from jobcrawler.config import Settings, settings
from jobcrawler.database import get_db
from jobcrawler.exceptions import SourceLoadError
from jobcrawler.schemas.crawl import CrawlErrorResponse, CrawlReport, SchedulerResponse
from jobcrawler.services.orchestrator import CrawlOrchestrator
from jobcrawler.services.reconciler import JobStore
from jobcrawler.services.scheduler import CrawlScheduler

logger = logging.getLogger(__name__)

router = APIRouter()


def get_settings() -> Settings:
    return settings


def get_orchestrator(
    db: Session = Depends(get_db),
    config: Settings = Depends(get_settings),
) -> CrawlOrchestrator:
    return CrawlOrchestrator(JobStore(db), config)


def _error(message: str) -> JSONResponse:
    return JSONResponse(status_code=500, content=CrawlErrorResponse(error=message).model_dump())


@router.api_route("/run", methods=["GET", "POST"], response_model=CrawlReport)
async def run_crawler(orchestrator: CrawlOrchestrator = Depends(get_orchestrator)):
    try:
        return await orchestrator.run()
    except SourceLoadError as exc:
        logger.error("Job crawler aborted: %s", exc)
        return _error(str(exc))


@router.api_route(
    "/schedule",
    methods=["GET", "POST"],
    response_model=SchedulerResponse,
    response_model_exclude_none=True,
)
async def schedule_crawl(
    orchestrator: CrawlOrchestrator = Depends(get_orchestrator),
    config: Settings = Depends(get_settings),
):
    scheduler = CrawlScheduler(orchestrator.store, orchestrator.run, config)
    try:
        return await scheduler.run()
    except SQLAlchemyError as exc:
        logger.error("Error checking last crawl time: %s", exc)
        return _error("Failed to check last crawl time")
    except SourceLoadError as exc:
        logger.error("Error invoking job crawler: %s", exc)
        return _error("Failed to start job crawler")
