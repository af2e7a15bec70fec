from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from jobcrawler.database import get_db
from jobcrawler.models.job import Job
from jobcrawler.schemas.job import JobOut


router = APIRouter()


class StoredJobsResponse(BaseModel):
    total: int
    limit: int
    offset: int
    jobs: list[JobOut]


@router.get("", response_model=StoredJobsResponse)
def list_jobs(
    source: str | None = Query(default=None),
    remote: bool | None = Query(default=None),
    include_inactive: bool = Query(default=False),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
) -> StoredJobsResponse:
    query = db.query(Job)
    if not include_inactive:
        query = query.filter(Job.is_active.is_(True))
    if source:
        query = query.filter(Job.source == source)
    if remote is not None:
        query = query.filter(Job.remote.is_(remote))

    total = query.count()
    rows = query.order_by(Job.posted_at.desc(), Job.id.desc()).offset(offset).limit(limit).all()
    return StoredJobsResponse(
        total=total,
        limit=limit,
        offset=offset,
        jobs=[JobOut.model_validate(row) for row in rows],
    )


@router.get("/{external_id}", response_model=JobOut)
def get_job(external_id: str, db: Session = Depends(get_db)) -> JobOut:
    job = db.query(Job).filter(Job.external_id == external_id).first()
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return JobOut.model_validate(job)
