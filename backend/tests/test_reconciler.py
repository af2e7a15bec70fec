from datetime import datetime, timedelta

import pytest

from jobcrawler.bootstrap import DEFAULT_SOURCES, seed_sources
from jobcrawler.exceptions import SourceLoadError
from jobcrawler.models.job import Job
from jobcrawler.models.job_source import JobSource
from jobcrawler.schemas.job import RawJobRecord
from jobcrawler.services.normalizer import JobNormalizer
from jobcrawler.services.reconciler import JobStore


def _candidate(title="Backend Engineer", company="Acme", salt=None, now=None, **raw_overrides):
    raw = RawJobRecord(
        title=title,
        company=company,
        location=raw_overrides.pop("location", "Bangalore"),
        description=raw_overrides.pop("description", "Python services"),
        source_url="https://www.naukri.com/python-jobs",
        **raw_overrides,
    )
    return JobNormalizer(salt=salt).normalize(raw, "Naukri", now=now)


def _stored_job(external_id: str, created_at: datetime, is_active: bool = True) -> Job:
    return Job(
        external_id=external_id,
        fingerprint="f" * 64,
        title="Old Posting",
        company="Acme",
        source="Naukri",
        created_at=created_at,
        is_active=is_active,
    )


def test_insert_ignore_skips_second_occurrence(db_session):
    store = JobStore(db_session)
    first = _candidate()
    second = _candidate(description="re-discovered later")
    result = store.insert_ignore([first, second])
    assert (result.inserted, result.skipped, result.failed) == (1, 1, 0)
    assert db_session.query(Job).count() == 1
    assert db_session.query(Job).one().description == "Python services"


def test_insert_ignore_with_shared_run_salt_still_dedups(db_session):
    store = JobStore(db_session)
    jobs = [_candidate(salt="1700000000000"), _candidate(salt="1700000000000")]
    result = store.insert_ignore(jobs)
    assert result.inserted == 1
    assert result.skipped == 1


def test_insert_ignore_tolerates_row_failures(db_session):
    store = JobStore(db_session)
    broken = _candidate(title="Broken Row")
    broken.title = None
    result = store.insert_ignore([broken, _candidate(title="Good Row")])
    assert result.failed == 1
    assert result.inserted == 1
    assert [job.title for job in db_session.query(Job).all()] == ["Good Row"]


def test_upsert_by_fingerprint_updates_across_different_salts(db_session):
    store = JobStore(db_session)
    posted = datetime(2026, 1, 1, 8, 0)
    original = _candidate(salt="run-1", now=posted, location="Pune")
    store.upsert_by_fingerprint([original])

    row = db_session.query(Job).one()
    row.is_active = False
    db_session.commit()

    refreshed = _candidate(salt="run-2", now=posted + timedelta(days=5), location="Remote")
    result = store.upsert_by_fingerprint([refreshed])

    assert (result.inserted, result.updated) == (0, 1)
    row = db_session.query(Job).one()
    assert row.is_active is True
    assert row.location == "Remote"
    assert row.remote is True
    assert row.external_id == original.external_id
    assert row.posted_at == posted
    assert row.expires_at == posted + timedelta(days=30)


def test_upsert_by_fingerprint_inserts_new_and_counts_failures(db_session):
    store = JobStore(db_session)
    broken = _candidate(title="Broken Row")
    broken.company = None
    result = store.upsert_by_fingerprint([_candidate(title="Data Analyst"), broken, _candidate(title="QA Engineer")])
    assert (result.inserted, result.updated, result.failed) == (2, 0, 1)
    assert db_session.query(Job).count() == 2


def test_expire_stale_uses_creation_age(db_session):
    now = datetime(2026, 6, 1, 12, 0)
    db_session.add_all(
        [
            _stored_job("old", now - timedelta(days=31)),
            _stored_job("recent", now - timedelta(days=29)),
            _stored_job("old-inactive", now - timedelta(days=40), is_active=False),
        ]
    )
    db_session.commit()

    affected = JobStore(db_session).expire_stale(30, now=now)

    assert affected == 1
    states = {job.external_id: job.is_active for job in db_session.query(Job).all()}
    assert states == {"old": False, "recent": True, "old-inactive": False}


def test_sources_are_listed_in_order_and_marked_crawled(db_session):
    db_session.add_all(
        [
            JobSource(name="Naukri", base_url="https://www.naukri.com"),
            JobSource(name="Paused", base_url="https://paused.example", is_active=False),
            JobSource(name="Indeed", base_url="https://in.indeed.com"),
        ]
    )
    db_session.commit()
    store = JobStore(db_session)

    sources = store.list_active_sources()
    assert [source.name for source in sources] == ["Naukri", "Indeed"]
    assert store.latest_crawl_time() is None

    crawled_at = datetime(2026, 5, 1, 6, 0)
    store.mark_source_crawled(sources[1].id, crawled_at)
    assert store.latest_crawl_time() == crawled_at


def test_source_load_failure_is_fatal(empty_db_session):
    with pytest.raises(SourceLoadError):
        JobStore(empty_db_session).list_active_sources()


def test_seed_sources_is_idempotent(db_session):
    assert seed_sources(db_session) == len(DEFAULT_SOURCES)
    assert seed_sources(db_session) == 0
    names = [source.name for source in JobStore(db_session).list_active_sources()]
    assert names == [name for name, _ in DEFAULT_SOURCES]
