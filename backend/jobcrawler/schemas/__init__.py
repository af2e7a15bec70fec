from jobcrawler.schemas.crawl import (
    CrawlErrorResponse,
    CrawlReport,
    CrawlStats,
    CrawlStatsOut,
    SchedulerResponse,
    SourceResult,
)
from jobcrawler.schemas.job import JobOut, NormalizedJob, RawJobRecord

__all__ = [
    "RawJobRecord",
    "NormalizedJob",
    "JobOut",
    "CrawlStats",
    "CrawlStatsOut",
    "SourceResult",
    "CrawlReport",
    "CrawlErrorResponse",
    "SchedulerResponse",
]
