from __future__ import annotations

import hashlib
import html
import re
from datetime import datetime, timedelta

from jobcrawler.schemas.job import NormalizedJob, RawJobRecord

TITLE_LIMIT = 200
COMPANY_LIMIT = 200
LOCATION_LIMIT = 200
DESCRIPTION_LIMIT = 500
SHORT_FIELD_LIMIT = 100
URL_LIMIT = 1000
MAX_SKILLS = 30

DEFAULT_LOCATION = "India"
DEFAULT_JOB_TYPE = "full-time"
EXPIRY_DAYS = 30

TAG_RE = re.compile(r"<[^>]+>")
CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
MARKDOWN_RE = re.compile(r"(\*\*|__|`|^#{1,6}\s+)", re.M)
WHITESPACE_RE = re.compile(r"\s+")
SLUG_RE = re.compile(r"[^a-z0-9]+")


def _clean_once(text: str) -> str:
    text = html.unescape(text)
    text = TAG_RE.sub(" ", text)
    text = MARKDOWN_RE.sub(" ", text)
    text = CONTROL_RE.sub(" ", text)
    return WHITESPACE_RE.sub(" ", text).strip()


def clean_text(value: str | None, limit: int | None = None) -> str:
    """Strip markup and control characters, collapse whitespace, then truncate.

    Applying it twice gives the same result as applying it once.
    """
    if not value:
        return ""
    text = str(value)
    # Stripping one layer can expose another (escaped entities, nested tags), and a
    # cut can leave a partial entity behind. Every pass only shortens or decodes.
    while True:
        cleaned = _clean_once(text)
        if limit is not None and len(cleaned) > limit:
            cleaned = cleaned[:limit].rstrip()
        if cleaned == text:
            return text
        text = cleaned


def infer_remote(location: str | None) -> bool:
    lowered = (location or "").lower()
    return "remote" in lowered or "work from home" in lowered


def infer_job_type(text: str | None) -> str:
    haystack = (text or "").lower()
    if any(token in haystack for token in ("part-time", "part time")):
        return "part-time"
    if any(token in haystack for token in ("internship", "intern ", "trainee")):
        return "internship"
    if any(token in haystack for token in ("contract", "contractor", "freelance")):
        return "contract"
    return DEFAULT_JOB_TYPE


def company_slug(company: str) -> str:
    return SLUG_RE.sub("_", company.lower()).strip("_") or "unknown"


def fingerprint(title: str, company: str) -> str:
    return hashlib.sha256(f"{title}{company}".encode("utf-8")).hexdigest()


def build_external_id(company: str, digest: str, salt: str | None = None) -> str:
    external_id = f"{company_slug(company)}_{digest[:16]}"
    if salt:
        external_id = f"{external_id}_{salt}"
    return external_id[:255]


class JobNormalizer:
    def __init__(self, salt: str | None = None) -> None:
        self.salt = salt

    def normalize(
        self,
        raw: RawJobRecord,
        source_name: str,
        now: datetime | None = None,
    ) -> NormalizedJob | None:
        title = clean_text(raw.title, TITLE_LIMIT)
        if not title:
            return None

        now = now or datetime.utcnow()
        company = clean_text(raw.company, COMPANY_LIMIT) or clean_text(source_name, COMPANY_LIMIT)
        location = clean_text(raw.location, LOCATION_LIMIT) or DEFAULT_LOCATION
        description = clean_text(raw.description, DESCRIPTION_LIMIT)
        skills = [clean_text(skill, SHORT_FIELD_LIMIT) for skill in raw.skills]
        skills = list(dict.fromkeys(skill for skill in skills if skill))[:MAX_SKILLS]
        digest = fingerprint(title, company)

        return NormalizedJob(
            external_id=build_external_id(company, digest, self.salt),
            fingerprint=digest,
            title=title,
            company=company,
            location=location,
            description=description,
            url=(raw.apply_url or raw.source_url or "").strip()[:URL_LIMIT],
            source=source_name,
            skills=skills,
            experience_required=clean_text(raw.experience, SHORT_FIELD_LIMIT) or None,
            salary_range=clean_text(raw.salary, SHORT_FIELD_LIMIT) or None,
            posted_at=now,
            expires_at=now + timedelta(days=EXPIRY_DAYS),
            remote=infer_remote(location),
            type=infer_job_type(f"{title} {raw.description or ''}"),
            is_active=True,
        )
