"""
Exceptions raised by the crawler.
"""


class CrawlerError(Exception):
    """Base exception for crawler failures."""
    pass


class InvalidUrl(CrawlerError, ValueError):
    """Raised when a string cannot be parsed as an absolute URL."""
    pass


class BodyTooLarge(CrawlerError):
    """Raised when a response body exceeds the configured size limit."""
    pass


class ConfigError(CrawlerError, ValueError):
    """Raised when configuration values are missing or invalid."""
    pass


class StorageError(CrawlerError):
    """Custom exception for page store operations."""
    pass
