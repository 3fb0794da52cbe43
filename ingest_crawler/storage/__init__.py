"""
Storage layer for crawled pages.
"""

from .page_store import FilePageStore

__all__ = ['FilePageStore']
