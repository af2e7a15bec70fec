from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, Field


@dataclass
class CrawlStats:
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    jobs_extracted: int = 0
    duplicates_skipped: int = 0
    jobs_inserted: int = 0
    jobs_updated: int = 0
    persist_failures: int = 0

    def merge(self, other: CrawlStats) -> None:
        for name in self.__dataclass_fields__:
            setattr(self, name, getattr(self, name) + getattr(other, name))

    def to_out(self) -> CrawlStatsOut:
        return CrawlStatsOut(
            total_requests=self.total_requests,
            successful_requests=self.successful_requests,
            failed_requests=self.failed_requests,
            jobs_extracted=self.jobs_extracted,
            duplicates_skipped=self.duplicates_skipped,
            jobs_inserted=self.jobs_inserted,
            jobs_updated=self.jobs_updated,
            persist_failures=self.persist_failures,
        )


class CrawlStatsOut(BaseModel):
    total_requests: int = Field(default=0, alias="totalRequests")
    successful_requests: int = Field(default=0, alias="successfulRequests")
    failed_requests: int = Field(default=0, alias="failedRequests")
    jobs_extracted: int = Field(default=0, alias="jobsExtracted")
    duplicates_skipped: int = Field(default=0, alias="duplicatesSkipped")
    jobs_inserted: int = Field(default=0, alias="jobsInserted")
    jobs_updated: int = Field(default=0, alias="jobsUpdated")
    persist_failures: int = Field(default=0, alias="persistFailures")

    class Config:
        populate_by_name = True


class SourceResult(BaseModel):
    source: str
    jobs_found: int = Field(default=0, alias="jobsFound")
    success: bool
    error: str | None = None
    stats: CrawlStatsOut | None = None

    class Config:
        populate_by_name = True


class CrawlReport(BaseModel):
    success: bool = True
    total_jobs_found: int = Field(default=0, alias="totalJobsFound")
    results: list[SourceResult] = Field(default_factory=list)
    stats: CrawlStatsOut = Field(default_factory=CrawlStatsOut)
    execution_time_ms: int = Field(default=0, alias="executionTimeMs")
    cleanup_count: int = Field(default=0, alias="cleanupCount")
    message: str = ""

    class Config:
        populate_by_name = True


class CrawlErrorResponse(BaseModel):
    success: bool = False
    error: str


class SchedulerResponse(BaseModel):
    success: bool = True
    message: str
    next_crawl_in: str | None = Field(default=None, alias="nextCrawlIn")
    crawler_result: dict[str, Any] | None = Field(default=None, alias="crawlerResult")
    scheduled_at: str | None = Field(default=None, alias="scheduledAt")

    class Config:
        populate_by_name = True
