from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import unquote

RECONCILE_MODES = ("ignore", "update")


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: str) -> list[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


@dataclass
class Settings:
    app_name: str = "Job Crawler"
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./db/jobs.db")
    fetch_timeout: float = float(os.getenv("FETCH_TIMEOUT_SECONDS", "15"))
    retry_count: int = int(os.getenv("FETCH_RETRY_COUNT", "3"))
    inter_source_delay: float = float(os.getenv("INTER_SOURCE_DELAY_SECONDS", "2.0"))
    managed_service_credential: str = os.getenv("FIRECRAWL_API_KEY", "")
    managed_service_url: str = os.getenv("FIRECRAWL_API_URL", "https://api.firecrawl.dev/v1/crawl")
    managed_crawl_limit: int = int(os.getenv("FIRECRAWL_CRAWL_LIMIT", "100"))
    retention_days: int = int(os.getenv("JOB_RETENTION_DAYS", "30"))
    crawl_interval_hours: float = float(os.getenv("CRAWL_INTERVAL_HOURS", "12"))
    crawler_agent_name: str = os.getenv("CRAWLER_AGENT_NAME", "JobCrawlerBot")
    reconcile_mode: str = os.getenv("RECONCILE_MODE", "ignore")
    stable_fingerprints: bool = _env_flag("STABLE_FINGERPRINTS", "true")
    max_concurrent_sources: int = max(1, int(os.getenv("MAX_CONCURRENT_SOURCES", "1")))
    search_keywords: list[str] = field(
        default_factory=lambda: _env_list("SEARCH_KEYWORDS", "software engineer,data scientist,developer")
    )
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    def __post_init__(self) -> None:
        self.reconcile_mode = self.reconcile_mode.strip().lower()
        if self.reconcile_mode not in RECONCILE_MODES:
            raise ValueError(
                f"Unsupported reconcile_mode {self.reconcile_mode!r}; expected one of {', '.join(RECONCILE_MODES)}"
            )

    @property
    def managed_service_enabled(self) -> bool:
        return bool(self.managed_service_credential and self.managed_service_credential.strip())

    def ensure_directories(self) -> None:
        self._ensure_sqlite_directory()

    def _ensure_sqlite_directory(self) -> None:
        if not self.database_url.startswith("sqlite:///"):
            return
        raw_path = self.database_url.replace("sqlite:///", "", 1)
        if not raw_path or raw_path == ":memory:":
            return
        db_path = Path(unquote(raw_path))
        if not db_path.is_absolute():
            db_path = Path(".") / db_path
        db_path.parent.mkdir(parents=True, exist_ok=True)


settings = Settings()
