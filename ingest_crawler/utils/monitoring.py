"""
Monitoring and metrics collection for the crawler.
"""

import logging
import time
from typing import Any, Dict, Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, start_http_server


class MetricsCollector:
    """Collects crawl metrics on a private Prometheus registry."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.logger = logging.getLogger(__name__)
        self.registry = registry or CollectorRegistry()
        self.start_time = time.time()

        self.pages_visited = Counter(
            'crawler_pages_visited_total',
            'Total number of pages handed to the page handler',
            registry=self.registry
        )
        self.links_discovered = Counter(
            'crawler_links_discovered_total',
            'Total number of URLs added to the frontier from links',
            registry=self.registry
        )
        self.errors = Counter(
            'crawler_errors_total',
            'Total number of per-job crawl errors',
            ['error_type'],
            registry=self.registry
        )
        self.skips = Counter(
            'crawler_skips_total',
            'Jobs skipped without error',
            ['reason'],
            registry=self.registry
        )
        self.retries = Counter(
            'crawler_retries_total',
            'Retry waits performed by the fetcher',
            ['reason'],
            registry=self.registry
        )
        self.retry_wait_seconds = Counter(
            'crawler_retry_wait_seconds_total',
            'Total time spent waiting between retries',
            registry=self.registry
        )
        self.fetch_seconds = Histogram(
            'crawler_fetch_seconds',
            'Response time for HTTP requests',
            registry=self.registry
        )
        self.queue_size = Gauge(
            'crawler_queue_size',
            'Number of URLs in the frontier',
            registry=self.registry
        )

    def start_server(self, port: int):
        """Start Prometheus metrics HTTP server."""
        start_http_server(port, registry=self.registry)
        self.logger.info(f"Prometheus metrics server started on port {port}")

    def record_visit(self):
        self.pages_visited.inc()

    def record_discovered(self, count: int = 1):
        self.links_discovered.inc(count)

    def record_error(self, error_type: str):
        self.errors.labels(error_type=error_type).inc()

    def record_skip(self, reason: str):
        self.skips.labels(reason=reason).inc()

    def record_retry(self, reason: str, wait_ms: int):
        self.retries.labels(reason=reason).inc()
        self.retry_wait_seconds.inc(wait_ms / 1000)

    def observe_fetch(self, seconds: float):
        self.fetch_seconds.observe(seconds)

    def set_queue_size(self, size: int):
        self.queue_size.set(size)

    def value(self, name: str, labels: Optional[Dict[str, str]] = None) -> float:
        """Read a sample value from the registry (0.0 if never recorded)."""
        sample = self.registry.get_sample_value(name, labels or {})
        return sample or 0.0

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of the main counters."""
        runtime = time.time() - self.start_time
        visited = self.value('crawler_pages_visited_total')
        return {
            'runtime_seconds': runtime,
            'pages_visited': visited,
            'links_discovered': self.value('crawler_links_discovered_total'),
            'pages_per_minute': visited / (runtime / 60) if runtime > 0 else 0,
        }
