"""
Breadth-first frontier traversal.

Pops jobs in FIFO order, consults robots.txt and per-origin pacing, fetches
with retry, hands each HTML page to the caller's handler and enqueues newly
discovered links.
"""

import inspect
import logging
import re
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Deque, Iterable, List, Mapping, Optional, Pattern, Sequence, Set, Union

from ..exceptions import InvalidUrl
from .fetcher import DEFAULT_BACKOFF_MS, DEFAULT_MAX_RETRIES, FetchResult, WebFetcher
from .normalizer import HOST_ALIASES, get_origin, is_http_url, normalize_url
from .parser import extract_links
from .politeness import PolitenessScheduler
from .robots import RobotsGovernor


DEFAULT_USER_AGENT = 'IngestCrawler/1.0'
HTML_CONTENT_TYPES = re.compile(r'^\s*(text/html|application/xhtml\+xml)\b', re.IGNORECASE)


@dataclass(frozen=True)
class CrawlJob:
    """A URL waiting in the frontier."""
    url: str
    depth: int
    seed_origin: str


@dataclass
class CrawledPage:
    """A successfully fetched page handed to the page handler."""
    url: str
    body: str
    response: FetchResult
    depth: int


@dataclass
class CrawlError:
    """A per-job failure recorded during a crawl."""
    url: str
    error: str


@dataclass
class CrawlResult:
    """Aggregate outcome of a crawl run."""
    visited: int = 0
    discovered: int = 0
    errors: List[CrawlError] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'visited': self.visited,
            'discovered': self.discovered,
            'errors': [{'url': e.url, 'error': e.error} for e in self.errors]
        }


PageHandler = Callable[[CrawledPage], Union[Awaitable[None], None]]


@dataclass
class CrawlOptions:
    """Options controlling a crawl run."""
    user_agent: str = DEFAULT_USER_AGENT
    max_pages: int = 200
    max_depth: int = 3
    same_origin_only: bool = True
    respect_robots: bool = True
    min_delay_ms: int = 0
    url_filter: Optional[Callable[[str], bool]] = None
    exclude_patterns: Sequence[Pattern] = ()
    allowed_content_types: Pattern = HTML_CONTENT_TYPES
    log: Optional[Callable[[str], None]] = None
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_backoff_ms: int = DEFAULT_BACKOFF_MS
    host_aliases: Mapping[str, str] = field(default_factory=lambda: dict(HOST_ALIASES))


def describe_exception(exc: BaseException) -> str:
    """Format an exception as ``<Class>: <message> [cause: <cause>]``."""
    message = str(exc) or repr(exc)
    description = f"{type(exc).__name__}: {message}"

    cause = exc.__cause__
    if cause is not None:
        cause_text = getattr(cause, 'errno', None) or str(cause) or type(cause).__name__
        description += f" [cause: {cause_text}]"
    return description


class FrontierCrawler:
    """
    Crawls one or more seed sites breadth-first.

    Robots rules and pacing state belong to this instance, so separate
    crawler instances never share them.
    """

    def __init__(self, fetcher: WebFetcher, options: Optional[CrawlOptions] = None,
                 robots: Optional[RobotsGovernor] = None,
                 scheduler: Optional[PolitenessScheduler] = None,
                 metrics=None):
        self.options = options or CrawlOptions()
        self.fetcher = fetcher
        self.robots = robots or RobotsGovernor(fetcher, self.options.user_agent)
        self.scheduler = scheduler or PolitenessScheduler(self.options.min_delay_ms)
        self.metrics = metrics
        self.logger = logging.getLogger(__name__)

    def _log(self, message: str, level: int = logging.INFO):
        self.logger.log(level, message)
        if self.options.log:
            self.options.log(message)

    def _normalize(self, url: str) -> str:
        return normalize_url(url, self.options.host_aliases)

    def _seed_jobs(self, seeds: Union[str, Iterable[str]]) -> List[CrawlJob]:
        """Normalize seeds; any malformed seed fails the whole run."""
        seed_list = [seeds] if isinstance(seeds, str) else list(seeds)
        jobs = []
        for seed in seed_list:
            url = self._normalize(seed)
            jobs.append(CrawlJob(url=url, depth=0, seed_origin=get_origin(url)))
        return jobs

    async def crawl(self, seeds: Union[str, Iterable[str]], on_page: PageHandler) -> CrawlResult:
        """
        Run a breadth-first crawl from the given seeds.

        Args:
            seeds: Seed URL or URLs
            on_page: Handler awaited for each fetched page

        Returns:
            CrawlResult with visit and discovery counts and per-job errors

        Raises:
            InvalidUrl: if a seed is not an absolute URL
        """
        result = CrawlResult()
        queue: Deque[CrawlJob] = deque()
        visited_urls: Set[str] = set()

        for job in self._seed_jobs(seeds):
            if job.url in visited_urls:
                continue
            visited_urls.add(job.url)
            queue.append(job)
            result.discovered += 1

        self._log(f"[start] {len(queue)} seed(s), max_pages={self.options.max_pages}, "
                  f"max_depth={self.options.max_depth}")

        while queue and result.visited < self.options.max_pages:
            job = queue.popleft()
            if self.metrics:
                self.metrics.set_queue_size(len(queue))
            try:
                await self._process(job, on_page, queue, visited_urls, result)
            except Exception as e:
                description = describe_exception(e)
                result.errors.append(CrawlError(url=job.url, error=description))
                self._log(f"[error] {job.url} -> {description}", logging.WARNING)
                if self.metrics:
                    self.metrics.record_error(type(e).__name__)

        self._log(f"[done] visited={result.visited} discovered={result.discovered} "
                  f"errors={len(result.errors)}")
        return result

    async def _process(self, job: CrawlJob, on_page: PageHandler, queue: Deque[CrawlJob],
                       visited_urls: Set[str], result: CrawlResult):
        options = self.options
        origin = get_origin(job.url)

        crawl_delay_ms = None
        if options.respect_robots:
            if not await self.robots.is_allowed(job.url, options.user_agent):
                self._log(f"[skip robots] {job.url}", logging.DEBUG)
                if self.metrics:
                    self.metrics.record_skip('robots')
                return
            crawl_delay_ms = await self.robots.crawl_delay(job.url, options.user_agent)

        await self.scheduler.wait_for(origin, crawl_delay_ms)

        response = await self.fetcher.fetch_with_retry(
            job.url,
            max_retries=options.max_retries,
            backoff_ms=options.retry_backoff_ms
        )
        self.scheduler.record_request(origin)

        if not response.ok:
            result.errors.append(CrawlError(url=job.url, error=f"HTTP {response.status_code}"))
            self._log(f"[error] {job.url} -> {response.status_code} {response.reason or ''}".rstrip(),
                      logging.WARNING)
            if self.metrics:
                self.metrics.record_error(f"http_{response.status_code}")
            return

        content_type = response.content_type
        if not options.allowed_content_types.search(content_type):
            self._log(f"[skip content-type] {job.url} ({content_type})", logging.DEBUG)
            if self.metrics:
                self.metrics.record_skip('content_type')
            return

        body = response.text()
        result.visited += 1
        if self.metrics:
            self.metrics.record_visit()

        page = CrawledPage(url=job.url, body=body, response=response, depth=job.depth)
        try:
            outcome = on_page(page)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            description = f"handler failed: {describe_exception(e)}"
            result.errors.append(CrawlError(url=job.url, error=description))
            self.logger.exception(f"[error] {job.url} -> {description}")
            if self.options.log:
                self.options.log(f"[error] {job.url} -> {description}")
            if self.metrics:
                self.metrics.record_error('handler')
            return

        if job.depth < options.max_depth:
            base = response.final_url or job.url
            self._enqueue_links(job, extract_links(body, base), queue, visited_urls, result)

    def _enqueue_links(self, job: CrawlJob, links: List[str], queue: Deque[CrawlJob],
                       visited_urls: Set[str], result: CrawlResult):
        options = self.options
        added = 0

        for link in links:
            if not is_http_url(link):
                continue
            try:
                # Alias rewriting can move a link across origins, so check both forms
                if options.same_origin_only and get_origin(link) != job.seed_origin:
                    continue
                normalized = self._normalize(link)
                if options.same_origin_only and get_origin(normalized) != job.seed_origin:
                    continue
            except InvalidUrl as e:
                result.errors.append(CrawlError(url=link, error=describe_exception(e)))
                self._log(f"[error] {link} -> {e}", logging.DEBUG)
                continue

            if options.url_filter and not options.url_filter(normalized):
                continue
            if any(pattern.search(normalized) for pattern in options.exclude_patterns):
                continue

            if normalized not in visited_urls:
                visited_urls.add(normalized)
                queue.append(CrawlJob(url=normalized, depth=job.depth + 1, seed_origin=job.seed_origin))
                result.discovered += 1
                added += 1

        if self.metrics and added:
            self.metrics.record_discovered(added)
        self.logger.debug(f"Queued {added} new URLs from {job.url}")


async def crawl(seeds: Union[str, Iterable[str]], on_page: PageHandler,
                options: Optional[CrawlOptions] = None, request_timeout: int = 30,
                metrics=None, **fetcher_kwargs: Any) -> CrawlResult:
    """
    Crawl from ``seeds`` with a fetcher session scoped to this run.

    Extra keyword arguments are passed to :class:`WebFetcher`.
    """
    options = options or CrawlOptions()
    async with WebFetcher(
        user_agent=options.user_agent,
        request_timeout=request_timeout,
        metrics=metrics,
        **fetcher_kwargs
    ) as fetcher:
        crawler = FrontierCrawler(fetcher, options, metrics=metrics)
        return await crawler.crawl(seeds, on_page)
