"""
Web crawler core components.
"""

from .normalizer import normalize_url, get_origin, HOST_ALIASES
from .parser import extract_links
from .fetcher import WebFetcher, FetchResult
from .robots import RobotsGovernor
from .politeness import PolitenessScheduler
from .frontier import (
    FrontierCrawler, CrawlOptions, CrawlJob, CrawledPage, CrawlError, CrawlResult, crawl
)
from .sitemap import SitemapDiscoverer

__all__ = [
    'normalize_url', 'get_origin', 'HOST_ALIASES',
    'extract_links',
    'WebFetcher', 'FetchResult',
    'RobotsGovernor', 'PolitenessScheduler',
    'FrontierCrawler', 'CrawlOptions', 'CrawlJob', 'CrawledPage', 'CrawlError', 'CrawlResult', 'crawl',
    'SitemapDiscoverer'
]
