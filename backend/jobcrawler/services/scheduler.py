from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime

from jobcrawler.config import Settings, settings as default_settings
from jobcrawler.schemas.crawl import CrawlReport, SchedulerResponse
from jobcrawler.services.reconciler import JobStore

logger = logging.getLogger(__name__)

# Hours assumed to have passed when no source has ever been crawled.
NEVER_CRAWLED_HOURS = 24.0


@dataclass
class SchedulerDecision:
    should_run: bool
    hours_since: float
    next_crawl_in_hours: float


class CrawlScheduler:
    def __init__(
        self,
        store: JobStore,
        run_crawl: Callable[[], Awaitable[CrawlReport]],
        config: Settings | None = None,
    ) -> None:
        self.store = store
        self.run_crawl = run_crawl
        self.settings = config or default_settings

    def check(self, now: datetime | None = None) -> SchedulerDecision:
        now = now or datetime.utcnow()
        last_crawl = self.store.latest_crawl_time()
        if last_crawl is None:
            hours_since = NEVER_CRAWLED_HOURS
        else:
            hours_since = (now - last_crawl).total_seconds() / 3600
        interval = self.settings.crawl_interval_hours
        return SchedulerDecision(
            should_run=hours_since >= interval,
            hours_since=hours_since,
            next_crawl_in_hours=max(0.0, interval - hours_since),
        )

    async def run(self, now: datetime | None = None) -> SchedulerResponse:
        now = now or datetime.utcnow()
        decision = self.check(now)
        if not decision.should_run:
            logger.info("Too soon to crawl. Last crawl was %.1f hours ago", decision.hours_since)
            return SchedulerResponse(
                success=True,
                message=f"Skipped crawl. Last crawl was {decision.hours_since:.1f} hours ago",
                next_crawl_in=f"{decision.next_crawl_in_hours:.1f} hours",
            )

        logger.info("Starting scheduled job crawl")
        report = await self.run_crawl()
        return SchedulerResponse(
            success=report.success,
            message="Scheduled job crawl completed",
            crawler_result=report.model_dump(by_alias=True),
            scheduled_at=now.isoformat(),
        )
