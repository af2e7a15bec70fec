from __future__ import annotations

import logging
from urllib.parse import urlparse

from jobcrawler.services.fetcher import ContentFetcher

logger = logging.getLogger(__name__)

# An empty Disallow value is an explicit allow-all.
ROOT_RULES = ("/", "/*", "/$")


def robots_origin(base_url: str) -> str:
    parsed = urlparse(base_url if "://" in base_url else f"https://{base_url}")
    return f"{parsed.scheme or 'https'}://{parsed.netloc}"


def parse_robots(text: str, agent_name: str) -> bool:
    """Return False when a group for `*` or `agent_name` disallows the root path.

    Only a root disallow blocks a source; narrower paths do not.
    """
    agent = agent_name.strip().lower()
    group_agents: list[str] = []
    in_agent_run = False

    for raw_line in text.splitlines():
        line = raw_line.split("#", 1)[0].strip()
        if not line or ":" not in line:
            continue
        key, value = line.split(":", 1)
        key = key.strip().lower()
        value = value.strip()

        if key == "user-agent":
            if not in_agent_run:
                group_agents = []
            group_agents.append(value.lower())
            in_agent_run = True
            continue

        in_agent_run = False
        if key != "disallow":
            continue
        applies = any(name in ("*", agent) for name in group_agents)
        if applies and value in ROOT_RULES:
            return False

    return True


class PolitenessGate:
    """robots.txt check, cached per origin for the lifetime of one run."""

    def __init__(self, fetcher: ContentFetcher, agent_name: str) -> None:
        self.fetcher = fetcher
        self.agent_name = agent_name
        self._cache: dict[str, bool] = {}

    async def is_allowed(self, base_url: str) -> bool:
        origin = robots_origin(base_url)
        if origin in self._cache:
            return self._cache[origin]

        text = await self.fetcher.fetch_text(f"{origin}/robots.txt")
        if not text or not text.strip():
            logger.debug("No robots.txt for %s; allowing", origin)
            allowed = True
        else:
            allowed = parse_robots(text, self.agent_name)

        if not allowed:
            logger.warning("robots.txt at %s disallows %s", origin, self.agent_name)
        self._cache[origin] = allowed
        return allowed
