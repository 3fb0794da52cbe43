"""
File-based store for crawled pages.
"""

import hashlib
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from bs4 import BeautifulSoup

from ..crawler.frontier import CrawledPage
from ..exceptions import StorageError


class FilePageStore:
    """
    Writes each crawled page as a JSON document under ``data_directory``.

    Documents are sharded by the first two hex characters of the URL's
    sha256; ``index/url_index.json`` maps URLs to their document paths.
    """

    def __init__(self, data_directory: str):
        self.data_directory = Path(data_directory)
        self.logger = logging.getLogger(__name__)
        self.index: Dict[str, Dict[str, Any]] = {}
        self.stats = {
            'total_stored': 0,
            'total_size_bytes': 0
        }

    @property
    def index_file(self) -> Path:
        return self.data_directory / 'index' / 'url_index.json'

    @property
    def stats_file(self) -> Path:
        return self.data_directory / 'stats.json'

    def initialize(self):
        """Create the directory structure and load any existing index."""
        try:
            (self.data_directory / 'content').mkdir(parents=True, exist_ok=True)
            self.index_file.parent.mkdir(parents=True, exist_ok=True)

            if self.index_file.exists():
                with open(self.index_file, 'r', encoding='utf-8') as f:
                    self.index = json.load(f)

            if self.stats_file.exists():
                with open(self.stats_file, 'r', encoding='utf-8') as f:
                    self.stats.update(json.load(f))
        except (OSError, ValueError) as e:
            raise StorageError(f"Failed to initialize page store: {e}") from e

        self.logger.info(f"Page store initialized at {self.data_directory}")

    def _get_file_path(self, url: str) -> Path:
        url_hash = hashlib.sha256(url.encode('utf-8')).hexdigest()
        return self.data_directory / 'content' / url_hash[:2] / f"{url_hash}.json"

    @staticmethod
    def _extract_title(html: str) -> Optional[str]:
        soup = BeautifulSoup(html, 'lxml')
        og_title = soup.find('meta', attrs={'property': 'og:title'})
        if og_title and og_title.get('content'):
            return og_title['content'].strip()
        if soup.title and soup.title.string:
            return soup.title.string.strip()
        return None

    async def handle_page(self, page: CrawledPage):
        """Page handler storing every crawled page."""
        self.store_page(page)

    def store_page(self, page: CrawledPage) -> Path:
        """Write a crawled page to disk and update the index."""
        file_path = self._get_file_path(page.url)
        response = page.response
        data = {
            'url': page.url,
            'final_url': response.final_url,
            'depth': page.depth,
            'status_code': response.status_code,
            'content_type': response.content_type,
            'title': self._extract_title(page.body),
            'fetched_at': datetime.now(timezone.utc).isoformat(),
            'html': page.body,
        }

        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(file_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
        except OSError as e:
            raise StorageError(f"Error storing page {page.url}: {e}") from e

        self.stats['total_stored'] += 1
        self.stats['total_size_bytes'] += file_path.stat().st_size
        self.index[page.url] = {
            'file_path': str(file_path.relative_to(self.data_directory)),
            'stored_at': data['fetched_at'],
            'title': data['title'],
        }

        self.logger.debug(f"Stored {page.url} to {file_path}")
        return file_path

    def get_page(self, url: str) -> Optional[Dict[str, Any]]:
        """Load a stored page document, or None if it was never stored."""
        file_path = self._get_file_path(url)
        if not file_path.exists():
            return None
        with open(file_path, 'r', encoding='utf-8') as f:
            return json.load(f)

    def close(self):
        """Persist the URL index and statistics."""
        try:
            with open(self.index_file, 'w', encoding='utf-8') as f:
                json.dump(self.index, f, indent=2)
            with open(self.stats_file, 'w', encoding='utf-8') as f:
                json.dump(self.stats, f, indent=2)
        except OSError as e:
            raise StorageError(f"Failed to save page store index: {e}") from e

        self.logger.info(f"Page store closed ({self.stats['total_stored']} pages stored)")
