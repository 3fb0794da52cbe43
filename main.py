#!/usr/bin/env python3
"""
Main entry point for the crawler.
"""

import asyncio
import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from ingest_crawler import __version__
from ingest_crawler.crawler import (
    CrawlResult, FrontierCrawler, RobotsGovernor, SitemapDiscoverer, WebFetcher, get_origin
)
from ingest_crawler.exceptions import CrawlerError
from ingest_crawler.storage import FilePageStore
from ingest_crawler.utils.config import Config, load_config, validate_config
from ingest_crawler.utils.logger import log_system_info, progress_sink, setup_logging
from ingest_crawler.utils.monitoring import MetricsCollector


class CrawlerApp:
    """Main application class for the crawler."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self._crawl_task: Optional[asyncio.Task] = None
        self.seeds: List[str] = []
        self.result: Optional[CrawlResult] = None

    def setup_signal_handlers(self):
        """Cancel the running crawl on SIGINT/SIGTERM."""
        loop = asyncio.get_running_loop()

        def request_shutdown(signum):
            self.logger.info(f"Received signal {signum}, stopping crawl...")
            if self._crawl_task and not self._crawl_task.done():
                self._crawl_task.cancel()

        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, request_shutdown, signum)
            except (NotImplementedError, RuntimeError):
                # Windows loops and non-main threads cannot install handlers
                pass

    async def collect_seeds(self, config: Config, robots: RobotsGovernor) -> List[str]:
        """Combine configured seeds with sitemap discoveries."""
        seeds = list(config.crawler.seed_urls)
        if not (config.crawler.discover_sitemaps or config.crawler.html_sitemaps):
            return seeds

        options = config.crawler.to_options()
        discoverer = SitemapDiscoverer(robots.fetcher, robots)
        seed_origins = {get_origin(seed) for seed in seeds}

        discovered: List[str] = []
        if config.crawler.discover_sitemaps:
            for origin in sorted(seed_origins):
                discovered.extend(await discoverer.discover(origin))
        for page_url in config.crawler.html_sitemaps:
            discovered.extend(await discoverer.discover_html_sitemap(page_url))

        for url in discovered:
            try:
                origin = get_origin(url)
            except CrawlerError:
                continue
            if options.same_origin_only and origin not in seed_origins:
                continue
            if options.url_filter and not options.url_filter(url):
                continue
            seeds.append(url)

        seeds = list(dict.fromkeys(seeds))
        self.logger.info(f"Total seeds after sitemap discovery: {len(seeds)}")
        return seeds

    async def run(self, config: Config, dry_run: bool = False) -> int:
        """Run the crawler."""
        self.setup_signal_handlers()

        self.logger.info("=== CRAWLER STARTING ===")
        self.logger.info(f"Seed URLs: {config.crawler.seed_urls}")
        self.logger.info(f"Max pages: {config.crawler.max_pages}, max depth: {config.crawler.max_depth}")
        self.logger.info(f"Minimum delay: {config.crawler.min_delay_ms} ms")

        metrics = MetricsCollector()
        if config.monitoring.metrics_enabled:
            metrics.start_server(config.monitoring.prometheus_port)

        store = None
        if config.storage.enabled and not dry_run:
            store = FilePageStore(config.storage.data_directory)
            store.initialize()

        async def on_page(page):
            self.logger.info(f"  [depth {page.depth}] {page.url} ({len(page.body):,} chars)")
            if store:
                await store.handle_page(page)

        options = config.crawler.to_options(log=progress_sink(config.logging))

        try:
            async with WebFetcher(
                user_agent=config.crawler.user_agent,
                request_timeout=config.crawler.request_timeout,
                max_body_bytes=config.crawler.max_body_bytes,
                metrics=metrics
            ) as fetcher:
                robots = RobotsGovernor(fetcher, config.crawler.user_agent)
                self.seeds = await self.collect_seeds(config, robots)
                if dry_run:
                    self.logger.info(f"DRY RUN: {len(self.seeds)} seed(s) resolved, not crawling")
                    for seed in self.seeds:
                        self.logger.info(f"  {seed}")
                    return 0

                crawler = FrontierCrawler(fetcher, options, robots=robots, metrics=metrics)
                self._crawl_task = asyncio.create_task(crawler.crawl(self.seeds, on_page))
                try:
                    self.result = await self._crawl_task
                except asyncio.CancelledError:
                    self.logger.info("Crawl cancelled")
                    return 1
        finally:
            if store:
                store.close()
            self.logger.info("=== CRAWLER FINISHED ===")

        self.report(self.result, metrics.get_summary())
        return 0

    def report(self, result: CrawlResult, summary: Dict[str, Any]):
        """Log the crawl summary and per-URL errors."""
        self.logger.info(
            f"Done. Visited: {result.visited}, Discovered: {result.discovered}, "
            f"Errors: {len(result.errors)}"
        )
        self.logger.info(
            f"Runtime: {summary['runtime_seconds']:.1f}s, "
            f"{summary['pages_per_minute']:.1f} pages/min"
        )
        for error in result.errors:
            self.logger.warning(f"  {error.url}: {error.error}")


def apply_overrides(config: Config, args: argparse.Namespace) -> Config:
    """Apply command-line overrides and re-validate the result."""
    if args.seeds:
        config.crawler.seed_urls = args.seeds
    if args.max_pages is not None:
        config.crawler.max_pages = args.max_pages
    if args.max_depth is not None:
        config.crawler.max_depth = args.max_depth
    validate_config(config)
    return config


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Polite breadth-first web crawler",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py                            # Run with default config.yaml
  python main.py --config my_config.yaml   # Run with custom config
  python main.py --max-pages 50            # Limit to 50 pages
  python main.py --seed https://example.com/ --max-depth 1
  python main.py --dry-run                 # Resolve seeds only
        """
    )

    parser.add_argument('--config', default='config.yaml',
                        help='Path to configuration file (default: config.yaml)')
    parser.add_argument('--seed', action='append', dest='seeds',
                        help='Seed URL (repeatable, replaces configured seeds)')
    parser.add_argument('--max-pages', type=int, help='Maximum number of pages to fetch')
    parser.add_argument('--max-depth', type=int, help='Maximum link-following depth')
    parser.add_argument('--dry-run', action='store_true',
                        help='Load configuration and resolve seeds without crawling')
    parser.add_argument('--version', action='version', version=f'Ingest Crawler {__version__}')

    args = parser.parse_args(argv)

    if not Path(args.config).exists():
        print(f"Error: Configuration file '{args.config}' not found.")
        print("Please create a config.yaml file or specify a different path with --config")
        return 1

    try:
        config = apply_overrides(load_config(args.config), args)
    except CrawlerError as e:
        print(f"Error: {e}")
        return 1

    if not config.crawler.seed_urls:
        print("Error: at least one seed URL is required (config or --seed)")
        return 1

    setup_logging(config.logging)
    log_system_info(config)

    app = CrawlerApp()
    try:
        return asyncio.run(app.run(config, dry_run=args.dry_run))
    except CrawlerError as e:
        logging.getLogger(__name__).error(f"Fatal error: {e}")
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 1


if __name__ == '__main__':
    sys.exit(main())
