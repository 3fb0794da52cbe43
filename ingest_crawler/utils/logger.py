"""
Logging setup for the crawler.

Everything goes through the root logger: console, a rotating log file and
an errors-only file beside it. Crawl progress lines (the ``log`` sink of
:class:`CrawlOptions`) get their own logger and, optionally, their own file.
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, Optional

from .config import Config, LoggingConfig


PROGRESS_LOGGER = 'ingest_crawler.progress'
NOISY_LOGGERS = ('aiohttp.access', 'aiohttp.client')


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            'timestamp': datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'location': f"{record.module}:{record.lineno}",
        }
        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


class NoisyLoggerFilter(logging.Filter):
    """Drops records from chatty library loggers."""

    def __init__(self, prefixes: Iterable[str] = NOISY_LOGGERS):
        super().__init__()
        self.prefixes = tuple(prefixes)

    def filter(self, record: logging.LogRecord) -> bool:
        return not record.name.startswith(self.prefixes)


def _formatter(config: LoggingConfig) -> logging.Formatter:
    if config.json:
        return JSONFormatter()
    return logging.Formatter(config.format)


def _rotating(path: Path, level: int, max_mb: int, backups: int) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=max_mb * 1024 * 1024,
        backupCount=backups,
        encoding='utf-8'
    )
    handler.setLevel(level)
    return handler


def setup_logging(config: LoggingConfig, quiet_libraries: bool = True) -> logging.Logger:
    """
    Configure the root logger from the ``logging`` config section.

    Returns:
        The root logger
    """
    log_file = Path(config.file)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(config.level.upper())

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(logging.INFO)

    handlers = [
        console,
        _rotating(log_file, logging.DEBUG, max_mb=50, backups=5),
        _rotating(log_file.parent / 'errors.log', logging.ERROR, max_mb=10, backups=3),
    ]
    formatter = _formatter(config)
    for handler in handlers:
        handler.setFormatter(formatter)
        if quiet_libraries:
            handler.addFilter(NoisyLoggerFilter())
        root_logger.addHandler(handler)

    if quiet_libraries:
        for name in ('aiohttp', 'asyncio'):
            logging.getLogger(name).setLevel(logging.WARNING)

    root_logger.info(f"Logging initialized (level={config.level}, file={log_file})")
    return root_logger


def progress_sink(config: LoggingConfig) -> Optional[Callable[[str], None]]:
    """
    Build the crawl progress callback for ``CrawlOptions.log``.

    Progress lines are written as plain text to ``config.progress_file``
    and do not propagate to the root handlers. Returns None when no
    progress file is configured.
    """
    if not config.progress_file:
        return None

    path = Path(config.progress_file)
    path.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(PROGRESS_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.INFO)
    logger.propagate = False

    handler = logging.FileHandler(path, encoding='utf-8')
    handler.setFormatter(logging.Formatter('%(asctime)s %(message)s'))
    logger.addHandler(handler)
    return logger.info


def log_system_info(config: Optional[Config] = None):
    """Log host details and, when given, the effective crawl settings."""
    import platform
    import psutil

    logger = logging.getLogger(__name__)
    logger.info(f"Platform: {platform.platform()}, Python {sys.version.split()[0]}")
    logger.info(f"CPU cores: {psutil.cpu_count()}, memory: {psutil.virtual_memory().total / 1024**3:.1f} GB")

    if config is not None:
        crawler = config.crawler
        logger.info(f"User agent: {crawler.user_agent}; robots.txt respected: {crawler.respect_robots_txt}")
        logger.info(f"Page store: {config.storage.data_directory if config.storage.enabled else 'disabled'}")
