from __future__ import annotations


class CrawlerError(Exception):
    """Base class for every error raised by the crawler."""


class SourceLoadError(CrawlerError):
    """The active source list could not be loaded. Fatal to the run."""


class RobotsDisallowedError(CrawlerError):
    def __init__(self, source: str, base_url: str) -> None:
        super().__init__(f"robots.txt disallows crawling {source} ({base_url})")
        self.source = source
        self.base_url = base_url


class FetchError(CrawlerError):
    def __init__(self, url: str, message: str) -> None:
        super().__init__(f"{message}: {url}")
        self.url = url


class FetchTimeoutError(FetchError):
    def __init__(self, url: str) -> None:
        super().__init__(url, "Timed out fetching")


class FetchNetworkError(FetchError):
    def __init__(self, url: str, reason: str = "") -> None:
        super().__init__(url, f"Network error ({reason})" if reason else "Network error")


class FetchHTTPStatusError(FetchError):
    def __init__(self, url: str, status_code: int) -> None:
        super().__init__(url, f"HTTP {status_code}")
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return self.status_code == 429 or self.status_code >= 500


class ParseError(CrawlerError):
    def __init__(self, source: str, url: str, reason: str) -> None:
        super().__init__(f"Failed to parse {source} page {url}: {reason}")
        self.source = source
        self.url = url
