"""
Ingest Crawler

A polite breadth-first web crawler that hands fetched pages to a handler.
"""

__version__ = "1.0.0"
__description__ = "Polite breadth-first web crawler with robots.txt support and per-origin pacing"
