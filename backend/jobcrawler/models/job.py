from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, Text
from sqlalchemy.types import JSON

from jobcrawler.database import Base


class Job(Base):
    __tablename__ = "jobs"
    __table_args__ = (
        Index("idx_jobs_fingerprint", "fingerprint"),
        Index("idx_jobs_active_created", "is_active", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    external_id = Column(String(255), unique=True, nullable=False)
    fingerprint = Column(String(64), nullable=False)
    title = Column(String(200), nullable=False)
    company = Column(String(200), nullable=False)
    location = Column(String(200))
    description = Column(Text)
    url = Column(String(1000))
    source = Column(String(100), nullable=False)
    skills = Column(JSON)
    experience_required = Column(String(100))
    salary_range = Column(String(100))
    posted_at = Column(DateTime)
    expires_at = Column(DateTime)
    remote = Column(Boolean, default=False, nullable=False)
    type = Column(String(50), default="full-time")
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
