import asyncio
from datetime import datetime, timedelta

from jobcrawler.config import Settings
from jobcrawler.models.job_source import JobSource
from jobcrawler.schemas.crawl import CrawlReport
from jobcrawler.services.reconciler import JobStore
from jobcrawler.services.scheduler import CrawlScheduler

NOW = datetime(2026, 4, 10, 12, 0)


class FakeCrawl:
    def __init__(self) -> None:
        self.calls = 0

    async def __call__(self) -> CrawlReport:
        self.calls += 1
        return CrawlReport(success=True, total_jobs_found=4, message="Successfully processed 1 job sources")


def _scheduler(db, last_crawled_at):
    db.add(JobSource(name="Naukri", base_url="https://www.naukri.com", last_crawled_at=last_crawled_at))
    db.commit()
    crawl = FakeCrawl()
    return CrawlScheduler(JobStore(db), crawl, Settings(crawl_interval_hours=12)), crawl


def test_recent_crawl_is_skipped(db_session):
    scheduler, crawl = _scheduler(db_session, NOW - timedelta(hours=6))

    response = asyncio.run(scheduler.run(now=NOW))

    assert crawl.calls == 0
    assert response.success is True
    assert response.message == "Skipped crawl. Last crawl was 6.0 hours ago"
    assert response.next_crawl_in == "6.0 hours"
    assert response.crawler_result is None


def test_stale_crawl_triggers_run(db_session):
    scheduler, crawl = _scheduler(db_session, NOW - timedelta(hours=13))

    response = asyncio.run(scheduler.run(now=NOW))

    assert crawl.calls == 1
    assert response.message == "Scheduled job crawl completed"
    assert response.crawler_result["totalJobsFound"] == 4
    assert response.scheduled_at == NOW.isoformat()
    assert response.next_crawl_in is None


def test_never_crawled_counts_as_overdue(db_session):
    scheduler, crawl = _scheduler(db_session, None)

    decision = scheduler.check(now=NOW)
    assert decision.should_run
    assert decision.hours_since == 24.0

    asyncio.run(scheduler.run(now=NOW))
    assert crawl.calls == 1
