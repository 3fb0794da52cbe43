"""
robots.txt rules per origin, fetched once and shared by all callers.
"""

import asyncio
import logging
import math
from typing import Dict, Iterable, List, Optional, Tuple
from urllib.robotparser import RobotFileParser

from .fetcher import NETWORK_ERRORS, WebFetcher
from .normalizer import get_origin


RULE_FIELDS = ('allow', 'disallow', 'crawl-delay', 'request-rate')


def parse_crawl_delays(lines: Iterable[str]) -> List[Tuple[List[str], Optional[float]]]:
    """
    Read ``Crawl-delay`` per user-agent group, keeping fractional seconds.

    Returns ``(agents, seconds)`` pairs in file order. Agent names are
    lowercased; a group without a usable delay has ``None``.
    """
    groups: List[Tuple[List[str], Optional[float]]] = []
    agents: List[str] = []
    delay: Optional[float] = None
    in_rules = False

    for raw in lines:
        line = raw.split('#', 1)[0].strip()
        if not line:
            if in_rules:
                groups.append((agents, delay))
                agents, delay, in_rules = [], None, False
            continue
        if ':' not in line:
            continue

        key, value = line.split(':', 1)
        key, value = key.strip().lower(), value.strip()
        if key == 'user-agent':
            if in_rules:
                groups.append((agents, delay))
                agents, delay, in_rules = [], None, False
            agents.append(value.lower())
        elif key in RULE_FIELDS and agents:
            in_rules = True
            if key == 'crawl-delay':
                try:
                    seconds = float(value)
                except ValueError:
                    continue
                if math.isfinite(seconds):
                    delay = seconds

    if agents and in_rules:
        groups.append((agents, delay))
    return groups


class RobotsRules(RobotFileParser):
    """RobotFileParser that also honors fractional ``Crawl-delay`` values."""

    def __init__(self, url: str = ''):
        super().__init__(url)
        self.delay_groups: List[Tuple[List[str], Optional[float]]] = []

    def parse(self, lines):
        lines = list(lines)
        super().parse(lines)
        self.delay_groups = parse_crawl_delays(lines)

    def crawl_delay(self, useragent):
        delay = super().crawl_delay(useragent)
        if delay is not None:
            return delay

        # Same group selection as RobotFileParser: first named match, then '*'
        name = useragent.split('/')[0].lower()
        fallback = None
        for agents, seconds in self.delay_groups:
            if '*' in agents:
                if fallback is None:
                    fallback = (seconds,)
                continue
            if any(agent in name for agent in agents):
                return seconds
        return fallback[0] if fallback else None

class RobotsGovernor:
    """
    Fetches, parses and caches robots.txt rules per origin.

    The cache holds the in-flight task for an origin as soon as the first
    lookup starts, so concurrent lookups share a single robots.txt request.
    A missing, empty or unreachable robots.txt resolves to no rules, which
    allows everything.
    """

    def __init__(self, fetcher: WebFetcher, user_agent: Optional[str] = None):
        self.fetcher = fetcher
        self.user_agent = user_agent or fetcher.user_agent
        self.logger = logging.getLogger(__name__)
        self._cache: Dict[str, asyncio.Task] = {}
        self.fetch_count = 0

    async def rules_for(self, url: str) -> Optional[RobotsRules]:
        """Return the parsed rules for the URL's origin, or None for no rules."""
        origin = get_origin(url)
        task = self._cache.get(origin)
        if task is None:
            task = asyncio.ensure_future(self._load(origin))
            self._cache[origin] = task
        return await asyncio.shield(task)

    async def _load(self, origin: str) -> Optional[RobotsRules]:
        robots_url = f"{origin}/robots.txt"
        self.fetch_count += 1
        try:
            result = await self.fetcher.get(robots_url, {'User-Agent': self.user_agent})
        except NETWORK_ERRORS as e:
            self.logger.warning(f"[robots] {origin} -> {type(e).__name__}: {e} (no rules)")
            return None
        except Exception as e:
            self.logger.warning(f"[robots] {origin} -> unexpected error {e!r} (no rules)")
            return None

        if not result.ok:
            self.logger.info(f"[robots] {origin} -> {result.status_code} {result.reason or ''} (no rules)")
            return None

        text = result.text()
        if not text.strip():
            self.logger.debug(f"[robots] {origin} -> empty robots.txt (no rules)")
            return None

        parser = RobotsRules(robots_url)
        parser.parse(text.splitlines())
        self.logger.debug(f"[robots] loaded rules for {origin}")
        return parser

    async def is_allowed(self, url: str, user_agent: Optional[str] = None) -> bool:
        """Check if URL can be fetched according to robots.txt."""
        rules = await self.rules_for(url)
        if rules is None:
            return True
        return rules.can_fetch(user_agent or self.user_agent, url)

    async def crawl_delay(self, url: str, user_agent: Optional[str] = None) -> Optional[int]:
        """Return the origin's Crawl-delay in milliseconds, or None if unset."""
        rules = await self.rules_for(url)
        if rules is None:
            return None
        seconds = rules.crawl_delay(user_agent or self.user_agent)
        if seconds is None:
            return None
        return max(0, round(float(seconds) * 1000))

    async def sitemaps(self, url: str) -> List[str]:
        """Return the Sitemap directives declared for the URL's origin."""
        rules = await self.rules_for(url)
        if rules is None:
            return []
        return list(rules.site_maps() or [])
