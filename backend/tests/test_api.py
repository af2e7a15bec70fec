from __future__ import annotations

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from jobcrawler.api.crawler import get_orchestrator, get_settings
from jobcrawler.config import Settings
from jobcrawler.database import get_db
from jobcrawler.main import app
from jobcrawler.models.job import Job
from jobcrawler.models.job_source import JobSource
from jobcrawler.schemas.crawl import CrawlReport, CrawlStatsOut, SourceResult
from jobcrawler.services.orchestrator import CrawlOrchestrator
from jobcrawler.services.reconciler import JobStore


class StubOrchestrator:
    def __init__(self, store: JobStore) -> None:
        self.store = store
        self.runs = 0

    async def run(self) -> CrawlReport:
        self.runs += 1
        return CrawlReport(
            success=True,
            total_jobs_found=2,
            results=[
                SourceResult(source="Naukri", jobs_found=2, success=True, stats=CrawlStatsOut(total_requests=1)),
                SourceResult(source="Blocked Portal", success=False, error="robots.txt disallows crawling"),
            ],
            execution_time_ms=15,
            message="Successfully processed 2 job sources",
        )


@pytest.fixture
def client():
    yield TestClient(app)
    app.dependency_overrides.clear()


def _config() -> Settings:
    return Settings(managed_service_credential="", crawl_interval_hours=12)


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_run_returns_camel_case_report(client, db_session):
    stub = StubOrchestrator(JobStore(db_session))
    app.dependency_overrides[get_orchestrator] = lambda: stub

    for method in ("post", "get"):
        response = getattr(client, method)("/api/crawler/run")
        assert response.status_code == 200

    body = response.json()
    assert stub.runs == 2
    assert body["success"] is True
    assert body["totalJobsFound"] == 2
    assert body["executionTimeMs"] == 15
    assert body["results"][0]["jobsFound"] == 2
    assert body["results"][0]["stats"]["totalRequests"] == 1
    assert body["results"][1]["error"] == "robots.txt disallows crawling"


def test_run_source_load_failure_is_500(client, empty_db_session):
    orchestrator = CrawlOrchestrator(JobStore(empty_db_session), _config())
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator

    response = client.post("/api/crawler/run")

    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["error"].startswith("Failed to fetch job sources")


def test_schedule_skips_recent_crawl(client, db_session):
    db_session.add(
        JobSource(
            name="Naukri",
            base_url="https://www.naukri.com",
            last_crawled_at=datetime.utcnow() - timedelta(hours=1),
        )
    )
    db_session.commit()
    stub = StubOrchestrator(JobStore(db_session))
    app.dependency_overrides[get_orchestrator] = lambda: stub
    app.dependency_overrides[get_settings] = _config

    response = client.post("/api/crawler/schedule")

    assert response.status_code == 200
    body = response.json()
    assert stub.runs == 0
    assert body["message"].startswith("Skipped crawl. Last crawl was 1.0 hours ago")
    assert body["nextCrawlIn"].endswith(" hours")
    assert "crawlerResult" not in body


def test_schedule_runs_when_never_crawled(client, db_session):
    db_session.add(JobSource(name="Naukri", base_url="https://www.naukri.com"))
    db_session.commit()
    stub = StubOrchestrator(JobStore(db_session))
    app.dependency_overrides[get_orchestrator] = lambda: stub
    app.dependency_overrides[get_settings] = _config

    body = client.get("/api/crawler/schedule").json()

    assert stub.runs == 1
    assert body["message"] == "Scheduled job crawl completed"
    assert body["crawlerResult"]["totalJobsFound"] == 2
    assert "scheduledAt" in body


def test_schedule_store_failure_is_500(client, empty_db_session):
    stub = StubOrchestrator(JobStore(empty_db_session))
    app.dependency_overrides[get_orchestrator] = lambda: stub
    app.dependency_overrides[get_settings] = _config

    response = client.post("/api/crawler/schedule")

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Failed to check last crawl time"}


def _stored(external_id: str, title: str, **overrides) -> Job:
    values = {
        "external_id": external_id,
        "fingerprint": external_id.ljust(64, "0"),
        "title": title,
        "company": "Acme",
        "location": "Bangalore",
        "source": "Naukri",
        "skills": ["Python"],
        "posted_at": datetime(2026, 3, 1),
    }
    values.update(overrides)
    return Job(**values)


def test_list_and_get_stored_jobs(client, db_session):
    db_session.add_all(
        [
            _stored("acme_1", "Backend Engineer"),
            _stored("acme_2", "Remote SRE", location="Remote", remote=True, posted_at=datetime(2026, 3, 2)),
            _stored("acme_3", "Expired Role", is_active=False),
            _stored("other_1", "Data Analyst", source="Indeed"),
        ]
    )
    db_session.commit()
    app.dependency_overrides[get_db] = lambda: db_session

    body = client.get("/api/jobs", params={"source": "Naukri"}).json()
    assert body["total"] == 2
    assert [job["external_id"] for job in body["jobs"]] == ["acme_2", "acme_1"]

    remote = client.get("/api/jobs", params={"remote": "true"}).json()
    assert [job["title"] for job in remote["jobs"]] == ["Remote SRE"]

    everything = client.get("/api/jobs", params={"include_inactive": "true", "limit": 2}).json()
    assert everything["total"] == 4
    assert len(everything["jobs"]) == 2

    job = client.get("/api/jobs/acme_1").json()
    assert job["title"] == "Backend Engineer"
    assert job["skills"] == ["Python"]
    assert client.get("/api/jobs/missing").status_code == 404
