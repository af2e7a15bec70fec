from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from typing import Any

import httpx
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from jobcrawler.config import Settings, settings as default_settings
from jobcrawler.exceptions import FetchError, FetchHTTPStatusError, FetchNetworkError, FetchTimeoutError
from jobcrawler.services.parsers import html_to_text, looks_like_html

logger = logging.getLogger(__name__)

USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/122.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/122.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/121.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:123.0) Gecko/20100101 Firefox/123.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_3) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.3 Safari/605.1.15",
]


@dataclass
class FetchResult:
    url: str
    content: str
    content_type: str = "html"
    status_code: int = 200
    via: str = "direct"


@dataclass
class ManagedCrawlResult:
    success: bool
    data: Any = None
    error: str | None = None
    status: int | None = None
    pages: list[dict[str, Any]] = field(default_factory=list)


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, FetchHTTPStatusError):
        return exc.retryable
    return isinstance(exc, (FetchTimeoutError, FetchNetworkError))


def _extract_pages(data: Any) -> list[dict[str, Any]]:
    # The service wraps pages as {"data": [...]} but older responses return the list directly.
    if isinstance(data, dict):
        data = data.get("data", [])
    if not isinstance(data, list):
        return []
    return [page for page in data if isinstance(page, dict)]


class ManagedCrawlClient:
    """Client for an external managed crawling service (Firecrawl-compatible)."""

    def __init__(self, client: httpx.AsyncClient, api_url: str, credential: str) -> None:
        self.client = client
        self.api_url = api_url
        self.credential = credential

    async def crawl(
        self,
        url: str,
        limit: int = 100,
        formats: list[str] | None = None,
        timeout: float | None = None,
    ) -> ManagedCrawlResult:
        payload = {
            "url": url,
            "limit": limit,
            "scrapeOptions": {"formats": formats or ["markdown", "html"]},
        }
        try:
            response = await self.client.post(
                self.api_url,
                json=payload,
                headers={"Authorization": f"Bearer {self.credential}"},
                timeout=timeout,
            )
        except httpx.HTTPError as exc:
            logger.warning("Managed crawl request for %s failed: %s", url, exc)
            return ManagedCrawlResult(success=False, error=str(exc) or type(exc).__name__)

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.status_code >= 400:
            error = body.get("error") if isinstance(body, dict) else None
            return ManagedCrawlResult(
                success=False,
                error=str(error or "Managed crawl error"),
                status=response.status_code,
            )

        if isinstance(body, dict) and body.get("success") is False:
            return ManagedCrawlResult(
                success=False,
                error=str(body.get("error") or "Managed crawl error"),
                status=response.status_code,
            )

        data = body.get("data", body) if isinstance(body, dict) else body
        return ManagedCrawlResult(
            success=True,
            data=data,
            status=response.status_code,
            pages=_extract_pages(data),
        )


class ContentFetcher:
    def __init__(
        self,
        config: Settings | None = None,
        client: httpx.AsyncClient | None = None,
        user_agents: list[str] | None = None,
        backoff_multiplier: float = 1.0,
    ) -> None:
        self.settings = config or default_settings
        self.user_agents = list(user_agents or USER_AGENTS)
        self._ua_cycle = itertools.cycle(self.user_agents)
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=self.settings.fetch_timeout, follow_redirects=True)
        self.backoff_multiplier = backoff_multiplier
        self.managed: ManagedCrawlClient | None = None
        if self.settings.managed_service_enabled:
            self.managed = ManagedCrawlClient(
                self.client,
                self.settings.managed_service_url,
                self.settings.managed_service_credential.strip(),
            )

    async def __aenter__(self) -> ContentFetcher:
        return self

    async def __aexit__(self, *_exc: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    def next_user_agent(self) -> str:
        return next(self._ua_cycle)

    async def fetch(self, url: str, timeout: float | None = None) -> FetchResult:
        timeout = timeout or self.settings.fetch_timeout
        if self.managed is not None:
            result = await self.managed.crawl(url, limit=self.settings.managed_crawl_limit, timeout=timeout)
            if result.success:
                return self._from_managed(url, result)
            logger.info("Managed crawl unavailable for %s (%s); falling back to direct fetch", url, result.error)
        return await self._fetch_with_retry(url, timeout)

    async def fetch_text(self, url: str, timeout: float | None = None) -> str | None:
        """Single direct GET; returns None instead of raising."""
        try:
            return await self._get(url, timeout or self.settings.fetch_timeout)
        except FetchError as exc:
            logger.debug("fetch_text failed for %s: %s", url, exc)
            return None

    async def _fetch_with_retry(self, url: str, timeout: float) -> FetchResult:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(max(1, self.settings.retry_count)),
            wait=wait_exponential(multiplier=self.backoff_multiplier, min=0, max=8),
            retry=retry_if_exception(_is_retryable),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                attempt_number = attempt.retry_state.attempt_number
                if attempt_number > 1:
                    logger.info("Retrying %s (attempt %d)", url, attempt_number)
                content = await self._get(url, timeout)
        content_type = "html" if looks_like_html(content) else "markdown"
        return FetchResult(url=url, content=content, content_type=content_type)

    async def _get(self, url: str, timeout: float) -> str:
        try:
            response = await self.client.get(
                url,
                headers={"User-Agent": self.next_user_agent()},
                timeout=timeout,
            )
        except httpx.TimeoutException as exc:
            raise FetchTimeoutError(url) from exc
        except httpx.HTTPError as exc:
            raise FetchNetworkError(url, type(exc).__name__) from exc

        if response.status_code < 200 or response.status_code >= 300:
            raise FetchHTTPStatusError(url, response.status_code)
        return response.text

    def _from_managed(self, url: str, result: ManagedCrawlResult) -> FetchResult:
        pages: list[tuple[str, str]] = []
        for page in result.pages:
            text = page.get("markdown") or page.get("content")
            if text:
                pages.append(("markdown", str(text)))
            elif page.get("html"):
                pages.append(("html", str(page["html"])))

        # Markup is kept only when every page came back as HTML; otherwise the
        # HTML pages are reduced to text so the joined content is all markdown.
        if pages and all(kind == "html" for kind, _ in pages):
            content_type = "html"
            chunks = [body for _, body in pages]
        else:
            content_type = "markdown"
            chunks = [body if kind == "markdown" else html_to_text(body) for kind, body in pages]
        return FetchResult(
            url=url,
            content="\n\n".join(chunk for chunk in chunks if chunk),
            content_type=content_type,
            status_code=result.status or 200,
            via="managed",
        )
