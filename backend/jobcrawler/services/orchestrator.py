from __future__ import annotations

import asyncio
import enum
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

from jobcrawler.config import Settings, settings as default_settings
from jobcrawler.exceptions import FetchError, ParseError, RobotsDisallowedError
from jobcrawler.schemas.crawl import CrawlReport, CrawlStats, SourceResult
from jobcrawler.schemas.job import NormalizedJob
from jobcrawler.services.fetcher import ContentFetcher
from jobcrawler.services.normalizer import JobNormalizer
from jobcrawler.services.parsers import JobParser, ParserRegistry
from jobcrawler.services.reconciler import JobStore, PersistResult
from jobcrawler.services.robots import PolitenessGate

logger = logging.getLogger(__name__)


class CrawlState(str, enum.Enum):
    IDLE = "idle"
    FETCHING_SOURCES = "fetching_sources"
    CHECK_POLITENESS = "check_politeness"
    FETCHING = "fetching"
    PARSING = "parsing"
    NORMALIZING = "normalizing"
    PERSISTING = "persisting"
    SOURCE_FAILED = "source_failed"
    CLEANUP = "cleanup"
    DONE = "done"


@dataclass(frozen=True)
class SourceRef:
    id: int
    name: str
    base_url: str


class CrawlOrchestrator:
    def __init__(
        self,
        store: JobStore,
        config: Settings | None = None,
        fetcher: ContentFetcher | None = None,
        registry: ParserRegistry | None = None,
        normalizer: JobNormalizer | None = None,
        gate: PolitenessGate | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.store = store
        self.settings = config or default_settings
        self.fetcher = fetcher
        self.registry = registry or ParserRegistry()
        self.normalizer = normalizer
        self.gate = gate
        self.sleep = sleep
        self.state = CrawlState.IDLE

    async def run(self) -> CrawlReport:
        started = time.perf_counter()
        self.state = CrawlState.IDLE
        logger.info("Job crawler started")

        self._transition(CrawlState.FETCHING_SOURCES)
        sources = [
            SourceRef(id=row.id, name=row.name, base_url=row.base_url)
            for row in self.store.list_active_sources()
        ]
        logger.info("Loaded %d active job sources", len(sources))

        fetcher = self.fetcher or ContentFetcher(self.settings)
        try:
            gate = self.gate or PolitenessGate(fetcher, self.settings.crawler_agent_name)
            normalizer = self.normalizer or JobNormalizer(salt=self._run_salt())
            source_stats = [CrawlStats() for _ in sources]
            results = await self._crawl_sources(sources, source_stats, fetcher, gate, normalizer)
        finally:
            if self.fetcher is None:
                await fetcher.aclose()

        self._transition(CrawlState.CLEANUP)
        cleanup_count = self._cleanup()

        total = CrawlStats()
        for stats in source_stats:
            total.merge(stats)
        total_jobs = sum(result.jobs_found for result in results)

        self._transition(CrawlState.DONE)
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            "Job crawler completed: %d jobs across %d sources in %d ms (%d expired)",
            total_jobs,
            len(sources),
            elapsed_ms,
            cleanup_count,
        )
        return CrawlReport(
            success=True,
            total_jobs_found=total_jobs,
            results=results,
            stats=total.to_out(),
            execution_time_ms=elapsed_ms,
            cleanup_count=cleanup_count,
            message=f"Successfully processed {len(sources)} job sources",
        )

    async def _crawl_sources(
        self,
        sources: list[SourceRef],
        source_stats: list[CrawlStats],
        fetcher: ContentFetcher,
        gate: PolitenessGate,
        normalizer: JobNormalizer,
    ) -> list[SourceResult]:
        delay = self.settings.inter_source_delay

        if self.settings.max_concurrent_sources <= 1:
            results: list[SourceResult] = []
            for index, source in enumerate(sources):
                if index:
                    await self.sleep(delay)
                results.append(
                    await self._crawl_source(source, source_stats[index], fetcher, gate, normalizer)
                )
            return results

        semaphore = asyncio.Semaphore(self.settings.max_concurrent_sources)

        async def worker(index: int, source: SourceRef) -> SourceResult:
            async with semaphore:
                result = await self._crawl_source(source, source_stats[index], fetcher, gate, normalizer)
                await self.sleep(delay)
                return result

        return list(await asyncio.gather(*(worker(i, source) for i, source in enumerate(sources))))

    async def _crawl_source(
        self,
        source: SourceRef,
        stats: CrawlStats,
        fetcher: ContentFetcher,
        gate: PolitenessGate,
        normalizer: JobNormalizer,
    ) -> SourceResult:
        logger.info("Processing %s (%s)", source.name, source.base_url)
        try:
            self._transition(CrawlState.CHECK_POLITENESS, source.name)
            if not await gate.is_allowed(source.base_url):
                raise RobotsDisallowedError(source.name, source.base_url)

            parser = self.registry.get(source.name)
            urls = parser.search_urls(source.base_url, self.settings.search_keywords)
            candidates = await self._collect(source, parser, urls, stats, fetcher, normalizer)

            if stats.successful_requests == 0:
                self._transition(CrawlState.SOURCE_FAILED, source.name)
                return SourceResult(
                    source=source.name,
                    jobs_found=0,
                    success=False,
                    error=f"All {stats.total_requests} page requests failed for {source.name}",
                    stats=stats.to_out(),
                )

            self._transition(CrawlState.PERSISTING, source.name)
            persisted = self._persist(candidates)
            stats.jobs_inserted += persisted.inserted
            stats.jobs_updated += persisted.updated
            stats.duplicates_skipped += persisted.skipped
            stats.persist_failures += persisted.failed
            self.store.mark_source_crawled(source.id)

            logger.info(
                "%s: %d saved (%d new, %d updated, %d duplicates, %d failed)",
                source.name,
                persisted.saved,
                persisted.inserted,
                persisted.updated,
                stats.duplicates_skipped,
                persisted.failed,
            )
            return SourceResult(
                source=source.name,
                jobs_found=persisted.saved,
                success=True,
                stats=stats.to_out(),
            )
        except RobotsDisallowedError as exc:
            self._transition(CrawlState.SOURCE_FAILED, source.name)
            return SourceResult(source=source.name, jobs_found=0, success=False, error=str(exc), stats=stats.to_out())
        except Exception as exc:
            self._transition(CrawlState.SOURCE_FAILED, source.name)
            error = f"Error processing {source.name}: {exc}"
            logger.exception(error)
            return SourceResult(source=source.name, jobs_found=0, success=False, error=error, stats=stats.to_out())

    async def _collect(
        self,
        source: SourceRef,
        parser: JobParser,
        urls: list[str],
        stats: CrawlStats,
        fetcher: ContentFetcher,
        normalizer: JobNormalizer,
    ) -> list[NormalizedJob]:
        candidates: dict[str, NormalizedJob] = {}
        for url in urls:
            stats.total_requests += 1
            self._transition(CrawlState.FETCHING, source.name)
            try:
                page = await fetcher.fetch(url)
            except FetchError as exc:
                stats.failed_requests += 1
                logger.warning("%s: %s", source.name, exc)
                continue

            self._transition(CrawlState.PARSING, source.name)
            try:
                records = list(parser.parse(page.content, page.url, page.content_type))
            except Exception as exc:
                stats.failed_requests += 1
                logger.warning("%s", ParseError(source.name, url, str(exc)))
                continue
            stats.successful_requests += 1

            self._transition(CrawlState.NORMALIZING, source.name)
            for record in records:
                job = normalizer.normalize(record, source.name, now=datetime.utcnow())
                if job is None:
                    continue
                stats.jobs_extracted += 1
                if job.external_id in candidates:
                    stats.duplicates_skipped += 1
                    continue
                candidates[job.external_id] = job
        return list(candidates.values())

    def _persist(self, jobs: list[NormalizedJob]) -> PersistResult:
        if self.settings.reconcile_mode == "update":
            return self.store.upsert_by_fingerprint(jobs)
        return self.store.insert_ignore(jobs)

    def _cleanup(self) -> int:
        try:
            count = self.store.expire_stale(self.settings.retention_days)
        except SQLAlchemyError as exc:
            logger.error("Error cleaning up expired jobs: %s", exc)
            return 0
        logger.info("Expired jobs cleanup completed: %d deactivated", count)
        return count

    def _run_salt(self) -> str | None:
        if self.settings.stable_fingerprints:
            return None
        return str(int(time.time() * 1000))

    def _transition(self, state: CrawlState, source: str | None = None) -> None:
        self.state = state
        if source:
            logger.debug("[%s] -> %s", source, state.value)
        else:
            logger.debug("-> %s", state.value)
