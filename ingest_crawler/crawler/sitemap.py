"""
Seed discovery from XML and HTML sitemaps.
"""

import re
import logging
from typing import Iterable, List, Optional

from bs4 import BeautifulSoup

from ..exceptions import BodyTooLarge
from .fetcher import NETWORK_ERRORS, WebFetcher
from .normalizer import get_origin
from .parser import extract_links
from .robots import RobotsGovernor


FALLBACK_SITEMAP_PATHS = ('/sitemap.xml', '/sitemap_index.xml')

ASSET_URL_PATTERN = re.compile(
    r'\.(png|jpe?g|gif|svg|webp|ico|css|js|pdf|zip|mp3|mp4|woff2?|ttf)(\?|$)',
    re.IGNORECASE
)


def looks_like_html(url: str) -> bool:
    """Check that a URL does not point at a common static asset."""
    return not ASSET_URL_PATTERN.search(url)


def _dedupe(urls: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(urls))


class SitemapDiscoverer:
    """
    Collects candidate seed URLs from an origin's sitemaps.

    Sitemap locations come from robots.txt ``Sitemap:`` lines plus the
    conventional fallback paths. A sitemap index is followed one level.
    Unreachable or unparsable sitemaps contribute no URLs.
    """

    def __init__(self, fetcher: WebFetcher, robots: Optional[RobotsGovernor] = None):
        self.fetcher = fetcher
        self.robots = robots or RobotsGovernor(fetcher)
        self.logger = logging.getLogger(__name__)

    async def discover(self, origin: str) -> List[str]:
        """Return page URLs listed in the origin's sitemaps."""
        origin = get_origin(origin)
        candidates = await self.robots.sitemaps(origin)
        candidates.extend(f"{origin}{path}" for path in FALLBACK_SITEMAP_PATHS)

        urls: List[str] = []
        for sitemap_url in _dedupe(candidates):
            urls.extend(await self.urls_from_sitemap(sitemap_url))

        urls = _dedupe(urls)
        self.logger.info(f"[sitemap] {origin}: {len(urls)} URL(s) from {len(candidates)} sitemap candidate(s)")
        return urls

    async def urls_from_sitemap(self, sitemap_url: str, depth: int = 0) -> List[str]:
        """Fetch one sitemap or sitemap index and return its ``<loc>`` URLs."""
        xml = await self._fetch_text(sitemap_url)
        if xml is None:
            return []

        soup = BeautifulSoup(xml, 'xml')
        locs = [loc.get_text(strip=True) for loc in soup.find_all('loc')]
        locs = [loc for loc in locs if loc]

        if soup.find('sitemapindex') is not None:
            if depth >= 1:
                return []
            nested: List[str] = []
            for child in locs:
                nested.extend(await self.urls_from_sitemap(child, depth + 1))
            return nested

        return locs

    async def discover_html_sitemap(self, page_url: str) -> List[str]:
        """Return same-origin page links from an HTML sitemap page."""
        html = await self._fetch_text(page_url)
        if html is None:
            return []

        origin = get_origin(page_url)
        links = []
        for link in extract_links(html, page_url):
            if link.startswith(f"{origin}/") and looks_like_html(link):
                links.append(link)
        return _dedupe(links)

    async def _fetch_text(self, url: str) -> Optional[str]:
        try:
            result = await self.fetcher.get(url)
        except (BodyTooLarge, *NETWORK_ERRORS) as e:
            self.logger.debug(f"[sitemap] {url} -> {type(e).__name__}: {e}")
            return None

        if not result.ok:
            self.logger.debug(f"[sitemap] {url} -> HTTP {result.status_code}")
            return None
        return result.text()
