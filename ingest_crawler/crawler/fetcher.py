"""
Web page fetcher with bounded retry and backoff on transient failures.
"""

import asyncio
import re
import aiohttp
import logging
import time
from typing import Awaitable, Callable, Mapping, Optional
from dataclasses import dataclass, field
from aiohttp import ClientSession, ClientTimeout, ClientError

from ..exceptions import BodyTooLarge


DEFAULT_ACCEPT = 'text/html,application/xhtml+xml;q=0.9,*/*;q=0.1'
DEFAULT_ACCEPT_LANGUAGE = 'en-CA,en;q=0.9'
DEFAULT_MAX_RETRIES = 2
DEFAULT_BACKOFF_MS = 600

# Exceptions treated as transient network failures
NETWORK_ERRORS = (ClientError, asyncio.TimeoutError)

_RETRY_AFTER_SECONDS = re.compile(r'^\s*(\d+)')


@dataclass
class FetchResult:
    """Result of a fetch operation."""
    url: str
    status_code: int
    final_url: Optional[str] = None
    reason: Optional[str] = None
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b''
    encoding: Optional[str] = None
    fetch_time: float = 0.0
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def content_type(self) -> str:
        return self.headers.get('Content-Type', '') or ''

    def text(self) -> str:
        """Decode the body using the response charset with common fallbacks."""
        encodings = [self.encoding] if self.encoding else []
        for encoding in encodings + ['utf-8', 'cp1252']:
            try:
                return self.body.decode(encoding)
            except (UnicodeDecodeError, LookupError):
                continue

        return self.body.decode('utf-8', errors='ignore')


def parse_retry_after(value: Optional[str]) -> int:
    """Parse a Retry-After header given in whole seconds; anything else is 0."""
    if not value:
        return 0
    match = _RETRY_AFTER_SECONDS.match(value)
    return int(match.group(1)) if match else 0


def is_retriable_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


class WebFetcher:
    """
    Fetches web pages over a shared aiohttp session.

    HTTP-level failures (429, 5xx) are returned as results once retries are
    exhausted; network-level failures are re-raised.
    """

    def __init__(self, user_agent: str, request_timeout: int = 30,
                 max_body_bytes: int = 10 * 1024 * 1024,
                 accept: str = DEFAULT_ACCEPT,
                 accept_language: str = DEFAULT_ACCEPT_LANGUAGE,
                 session: Optional[ClientSession] = None,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
                 metrics=None):
        self.user_agent = user_agent
        self.request_timeout = request_timeout
        self.max_body_bytes = max_body_bytes
        self.accept = accept
        self.accept_language = accept_language
        self.metrics = metrics

        self.logger = logging.getLogger(__name__)
        self._sleep = sleep

        # Session management
        self.session: Optional[ClientSession] = session
        self._owns_session = session is None

        # Statistics
        self.stats = {
            'total_requests': 0,
            'network_failures': 0,
            'retries': 0,
            'total_bytes_downloaded': 0
        }

    async def __aenter__(self):
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    @property
    def default_headers(self) -> dict:
        return {
            'User-Agent': self.user_agent,
            'Accept': self.accept,
            'Accept-Language': self.accept_language,
        }

    async def start(self):
        """Initialize the fetcher session."""
        if self.session is None:
            self.session = aiohttp.ClientSession(
                timeout=ClientTimeout(total=self.request_timeout),
                headers=self.default_headers
            )
            self._owns_session = True
            self.logger.info("WebFetcher session started")

    async def close(self):
        """Close the fetcher session if this fetcher created it."""
        if self.session and self._owns_session:
            await self.session.close()
            self.session = None
            self.logger.info("WebFetcher session closed")

    async def get(self, url: str, headers: Optional[Mapping[str, str]] = None) -> FetchResult:
        """
        Issue a single GET request, following redirects.

        Raises:
            aiohttp.ClientError, asyncio.TimeoutError: on network failure
            BodyTooLarge: if the body exceeds ``max_body_bytes``
        """
        if self.session is None:
            await self.start()

        request_headers = self.default_headers
        if headers:
            request_headers.update(headers)

        start_time = time.monotonic()
        self.stats['total_requests'] += 1

        async with self.session.get(url, headers=request_headers, allow_redirects=True) as response:
            body = await self._read_body(response)
            self.stats['total_bytes_downloaded'] += len(body)

            result = FetchResult(
                url=url,
                status_code=response.status,
                final_url=str(response.url),
                reason=response.reason,
                headers=response.headers,
                body=body,
                encoding=response.charset,
                fetch_time=time.monotonic() - start_time
            )

        self.logger.debug(f"Fetched {url}: {result.status_code} ({len(body)} bytes)")
        if self.metrics:
            self.metrics.observe_fetch(result.fetch_time)
        return result

    async def fetch_with_retry(self, url: str, headers: Optional[Mapping[str, str]] = None,
                               max_retries: int = DEFAULT_MAX_RETRIES,
                               backoff_ms: int = DEFAULT_BACKOFF_MS) -> FetchResult:
        """
        Fetch a URL, retrying 429/5xx responses and network failures.

        Waits ``Retry-After`` seconds when the server supplies a positive
        value, otherwise ``backoff_ms * (attempt + 1)``. Performs at most
        ``max_retries + 1`` requests.

        Returns:
            The first non-retriable response, or the last retriable one
            once retries are exhausted

        Raises:
            The last network error once retries are exhausted
        """
        if max_retries < 0:
            raise ValueError("max_retries must be non-negative")

        for attempt in range(max_retries + 1):
            try:
                result = await self.get(url, headers)
            except NETWORK_ERRORS as e:
                self.stats['network_failures'] += 1
                if attempt == max_retries:
                    raise
                wait_ms = backoff_ms * (attempt + 1)
                self.logger.warning(
                    f"[retry] {url} -> {type(e).__name__}: {e}; waiting {wait_ms} ms "
                    f"(attempt {attempt + 1}/{max_retries + 1})"
                )
                await self._wait(wait_ms, 'network')
                continue

            result.attempts = attempt + 1
            if not is_retriable_status(result.status_code) or attempt == max_retries:
                return result

            retry_after = parse_retry_after(result.headers.get('Retry-After'))
            wait_ms = retry_after * 1000 if retry_after > 0 else backoff_ms * (attempt + 1)
            self.logger.warning(
                f"[retry] {url} -> HTTP {result.status_code}; waiting {wait_ms} ms "
                f"(attempt {attempt + 1}/{max_retries + 1})"
            )
            await self._wait(wait_ms, str(result.status_code))

    async def _wait(self, wait_ms: int, reason: str):
        self.stats['retries'] += 1
        if self.metrics:
            self.metrics.record_retry(reason, wait_ms)
        await self._sleep(wait_ms / 1000)

    async def _read_body(self, response) -> bytes:
        """Read response content in chunks, enforcing the size limit."""
        content_length = response.headers.get('Content-Length')
        if content_length and content_length.isdigit() and int(content_length) > self.max_body_bytes:
            raise BodyTooLarge(f"Content too large ({content_length} bytes): {response.url}")

        content_bytes = b''
        async for chunk in response.content.iter_chunked(8192):
            content_bytes += chunk
            if len(content_bytes) > self.max_body_bytes:
                raise BodyTooLarge(f"Content exceeded {self.max_body_bytes} bytes: {response.url}")

        return content_bytes

    def get_stats(self) -> dict:
        """Get fetcher statistics."""
        return self.stats.copy()
