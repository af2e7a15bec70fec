from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import func, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from jobcrawler.exceptions import SourceLoadError
from jobcrawler.models.job import Job
from jobcrawler.models.job_source import JobSource
from jobcrawler.schemas.job import NormalizedJob

logger = logging.getLogger(__name__)


@dataclass
class PersistResult:
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0

    @property
    def saved(self) -> int:
        return self.inserted + self.updated


class JobStore:
    """Job and source persistence on top of a SQLAlchemy session.

    Every write commits per row so a failing row never takes the rest of
    the batch with it.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def list_active_sources(self) -> list[JobSource]:
        try:
            return (
                self.db.query(JobSource)
                .filter(JobSource.is_active.is_(True))
                .order_by(JobSource.id)
                .all()
            )
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise SourceLoadError(f"Failed to fetch job sources: {exc}") from exc

    def mark_source_crawled(self, source_id: int, when: datetime | None = None) -> None:
        try:
            self.db.execute(
                update(JobSource)
                .where(JobSource.id == source_id)
                .values(last_crawled_at=when or datetime.utcnow())
            )
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Failed to update last_crawled_at for source %s: %s", source_id, exc)

    def latest_crawl_time(self) -> datetime | None:
        return self.db.query(func.max(JobSource.last_crawled_at)).scalar()

    def insert_ignore(self, jobs: Iterable[NormalizedJob]) -> PersistResult:
        result = PersistResult()
        for job in jobs:
            statement = self._insert_ignore_statement(job)
            try:
                outcome = self.db.execute(statement)
                self.db.commit()
            except SQLAlchemyError as exc:
                self.db.rollback()
                result.failed += 1
                logger.error("Error saving job %s: %s", job.external_id, exc)
                continue
            if outcome.rowcount:
                result.inserted += 1
            else:
                result.skipped += 1
        return result

    def upsert_by_fingerprint(self, jobs: Iterable[NormalizedJob]) -> PersistResult:
        result = PersistResult()
        for job in jobs:
            try:
                existing = (
                    self.db.query(Job)
                    .filter(Job.fingerprint == job.fingerprint)
                    .order_by(Job.id)
                    .first()
                )
                if existing:
                    for key, value in job.mutable_fields().items():
                        setattr(existing, key, value)
                    existing.is_active = True
                    existing.updated_at = datetime.utcnow()
                    self.db.add(existing)
                    self.db.commit()
                    result.updated += 1
                else:
                    self.db.add(Job(**job.to_row()))
                    self.db.commit()
                    result.inserted += 1
            except SQLAlchemyError as exc:
                self.db.rollback()
                result.failed += 1
                logger.error("Error saving job %s: %s", job.external_id, exc)
        return result

    def expire_stale(self, retention_days: int, now: datetime | None = None) -> int:
        cutoff = (now or datetime.utcnow()) - timedelta(days=retention_days)
        try:
            outcome = self.db.execute(
                update(Job)
                .where(Job.created_at < cutoff, Job.is_active.is_(True))
                .values(is_active=False)
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        return outcome.rowcount or 0

    def _insert_ignore_statement(self, job: NormalizedJob):
        dialect = self.db.get_bind().dialect.name
        insert = postgresql_insert if dialect == "postgresql" else sqlite_insert
        return insert(Job).values(**job.to_row()).on_conflict_do_nothing(index_elements=["external_id"])
