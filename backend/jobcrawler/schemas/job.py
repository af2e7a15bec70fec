from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pydantic import BaseModel


@dataclass
class RawJobRecord:
    """One job section as extracted from a page, before any cleanup."""

    title: str
    description: str = ""
    source_url: str = ""
    company: str | None = None
    location: str | None = None
    experience: str | None = None
    salary: str | None = None
    apply_url: str | None = None
    skills: list[str] = field(default_factory=list)


@dataclass
class NormalizedJob:
    external_id: str
    fingerprint: str
    title: str
    company: str
    location: str
    description: str
    url: str
    source: str
    posted_at: datetime
    expires_at: datetime
    skills: list[str] = field(default_factory=list)
    experience_required: str | None = None
    salary_range: str | None = None
    remote: bool = False
    type: str = "full-time"
    is_active: bool = True

    def to_row(self) -> dict[str, Any]:
        return {
            "external_id": self.external_id,
            "fingerprint": self.fingerprint,
            "title": self.title,
            "company": self.company,
            "location": self.location,
            "description": self.description,
            "url": self.url,
            "source": self.source,
            "skills": list(self.skills),
            "experience_required": self.experience_required,
            "salary_range": self.salary_range,
            "posted_at": self.posted_at,
            "expires_at": self.expires_at,
            "remote": self.remote,
            "type": self.type,
            "is_active": self.is_active,
        }

    def mutable_fields(self) -> dict[str, Any]:
        # posted_at and expires_at are fixed at creation.
        row = self.to_row()
        for key in ("external_id", "fingerprint", "posted_at", "expires_at", "is_active"):
            row.pop(key)
        return row


class JobOut(BaseModel):
    id: int
    external_id: str
    source: str
    title: str
    company: str
    location: str | None = None
    description: str | None = None
    url: str | None = None
    skills: list[str] | None = None
    experience_required: str | None = None
    salary_range: str | None = None
    posted_at: datetime | None = None
    expires_at: datetime | None = None
    remote: bool = False
    type: str | None = None
    is_active: bool = True

    class Config:
        from_attributes = True
