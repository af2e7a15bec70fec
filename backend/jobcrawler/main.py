from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from jobcrawler.api import crawler, jobs
from jobcrawler.bootstrap import create_tables, seed_sources
from jobcrawler.config import settings
from jobcrawler.database import SessionLocal, engine
from jobcrawler.logging_config import configure_logging
from jobcrawler.models import job, job_source  # noqa: F401


app = FastAPI(title=settings.app_name)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)


@app.on_event("startup")
def on_startup() -> None:
    configure_logging(settings.log_level)
    settings.ensure_directories()
    create_tables(engine)
    with SessionLocal() as db:
        seed_sources(db)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


app.include_router(crawler.router, prefix="/api/crawler", tags=["crawler"])
app.include_router(jobs.router, prefix="/api/jobs", tags=["jobs"])
