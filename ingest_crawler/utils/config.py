"""
Configuration management for the crawler.
"""

import re
import yaml
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field, fields

from ..crawler.frontier import DEFAULT_USER_AGENT, HTML_CONTENT_TYPES, CrawlOptions
from ..crawler.normalizer import HOST_ALIASES
from ..crawler.sitemap import looks_like_html
from ..exceptions import ConfigError


@dataclass
class CrawlerConfig:
    """Configuration for crawler behavior."""
    seed_urls: List[str] = field(default_factory=list)
    user_agent: str = DEFAULT_USER_AGENT
    max_pages: int = 200
    max_depth: int = 3
    same_origin_only: bool = True
    respect_robots_txt: bool = True
    min_delay_ms: int = 0
    exclude_patterns: List[str] = field(default_factory=list)
    allowed_content_types: str = HTML_CONTENT_TYPES.pattern
    skip_asset_urls: bool = True
    max_retries: int = 2
    retry_backoff_ms: int = 600
    request_timeout: int = 30
    max_body_bytes: int = 10 * 1024 * 1024
    host_aliases: Dict[str, str] = field(default_factory=lambda: dict(HOST_ALIASES))
    discover_sitemaps: bool = False
    html_sitemaps: List[str] = field(default_factory=list)

    def to_options(self, log=None) -> CrawlOptions:
        """Build crawl options, compiling the configured patterns."""
        return CrawlOptions(
            user_agent=self.user_agent,
            max_pages=self.max_pages,
            max_depth=self.max_depth,
            same_origin_only=self.same_origin_only,
            respect_robots=self.respect_robots_txt,
            min_delay_ms=self.min_delay_ms,
            url_filter=looks_like_html if self.skip_asset_urls else None,
            exclude_patterns=[re.compile(p, re.IGNORECASE) for p in self.exclude_patterns],
            allowed_content_types=re.compile(self.allowed_content_types, re.IGNORECASE),
            log=log,
            max_retries=self.max_retries,
            retry_backoff_ms=self.retry_backoff_ms,
            host_aliases={k.lower(): v.lower() for k, v in self.host_aliases.items()},
        )


@dataclass
class StorageConfig:
    """Configuration for the page store."""
    enabled: bool = True
    data_directory: str = 'data'


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = 'INFO'
    file: str = 'logs/crawler.log'
    format: str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    json: bool = False
    progress_file: Optional[str] = 'logs/progress.log'


@dataclass
class MonitoringConfig:
    """Configuration for monitoring."""
    prometheus_port: int = 8000
    metrics_enabled: bool = False


@dataclass
class Config:
    """Main configuration class."""
    crawler: CrawlerConfig
    storage: StorageConfig
    logging: LoggingConfig
    monitoring: MonitoringConfig


def _section(cls, data: Optional[Dict[str, Any]], name: str):
    data = data or {}
    if not isinstance(data, dict):
        raise ConfigError(f"Section '{name}' must be a mapping")
    known = {f.name for f in fields(cls)}
    unknown = set(data) - known
    if unknown:
        raise ConfigError(f"Unknown keys in section '{name}': {', '.join(sorted(unknown))}")
    return cls(**data)


class ConfigManager:
    """Manages configuration loading and validation."""

    def __init__(self, config_path: str = "config.yaml"):
        self.config_path = Path(config_path)
        self._config: Optional[Config] = None

    def load_config(self) -> Config:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        with open(self.config_path, 'r') as file:
            try:
                config_data = yaml.safe_load(file) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {self.config_path}: {e}") from e

        self._config = parse_config(config_data)
        return self._config

    @property
    def config(self) -> Config:
        """Get the loaded configuration."""
        if not self._config:
            raise ConfigError("Configuration not loaded. Call load_config() first.")
        return self._config


def parse_config(config_data: Dict[str, Any]) -> Config:
    """Build and validate a Config from parsed YAML data."""
    if not isinstance(config_data, dict):
        raise ConfigError("Configuration root must be a mapping")

    config = Config(
        crawler=_section(CrawlerConfig, config_data.get('crawler'), 'crawler'),
        storage=_section(StorageConfig, config_data.get('storage'), 'storage'),
        logging=_section(LoggingConfig, config_data.get('logging'), 'logging'),
        monitoring=_section(MonitoringConfig, config_data.get('monitoring'), 'monitoring'),
    )
    validate_config(config)
    return config


def validate_config(config: Config):
    """Validate configuration values."""
    crawler = config.crawler

    if crawler.max_pages < 1:
        raise ConfigError("max_pages must be at least 1")

    if crawler.max_depth < 0:
        raise ConfigError("max_depth must be non-negative")

    if crawler.min_delay_ms < 0:
        raise ConfigError("min_delay_ms must be non-negative")

    if crawler.max_retries < 0:
        raise ConfigError("max_retries must be non-negative")

    if crawler.retry_backoff_ms < 0:
        raise ConfigError("retry_backoff_ms must be non-negative")

    for pattern in crawler.exclude_patterns + [crawler.allowed_content_types]:
        try:
            re.compile(pattern)
        except re.error as e:
            raise ConfigError(f"Invalid pattern {pattern!r}: {e}") from e

    if not isinstance(getattr(logging, config.logging.level.upper(), None), int):
        raise ConfigError(f"Unknown log level: {config.logging.level}")

    logging.getLogger(__name__).debug("Configuration validation passed")


def load_config(config_path: str = "config.yaml") -> Config:
    """Load configuration from file."""
    return ConfigManager(config_path).load_config()
