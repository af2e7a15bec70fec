from __future__ import annotations

import logging

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from jobcrawler.database import Base
from jobcrawler.models.job_source import JobSource

logger = logging.getLogger(__name__)

DEFAULT_SOURCES = (
    ("Naukri", "https://www.naukri.com"),
    ("Indeed", "https://in.indeed.com"),
    ("LinkedIn", "https://www.linkedin.com"),
    ("Foundit", "https://www.foundit.in"),
    ("TimesJobs", "https://www.timesjobs.com"),
)


def create_tables(engine: Engine) -> None:
    Base.metadata.create_all(bind=engine)


def seed_sources(db: Session, sources: tuple[tuple[str, str], ...] = DEFAULT_SOURCES) -> int:
    existing = {name for (name,) in db.query(JobSource.name).all()}
    added = 0
    for name, base_url in sources:
        if name in existing:
            continue
        db.add(JobSource(name=name, base_url=base_url, is_active=True))
        added += 1
    if added:
        db.commit()
        logger.info("Seeded %d job sources", added)
    return added
