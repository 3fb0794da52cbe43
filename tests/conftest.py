"""Shared fixtures: a local aiohttp site and a fetcher that never really sleeps."""

import logging
from typing import Dict, List, Optional

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from ingest_crawler.crawler.fetcher import WebFetcher


class RecordingSleep:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float):
        self.calls.append(seconds)


class FakeSite:
    """Serves canned responses by path and records every request."""

    def __init__(self):
        self.routes: Dict[str, object] = {}
        self.hits: List[str] = []
        self.base_url = ''

    def url(self, path: str = '/') -> str:
        return f"{self.base_url}{path}"

    def add(self, path: str, body='', status: int = 200,
            content_type: str = 'text/html', headers: Optional[dict] = None):
        self.routes[path] = (status, body, content_type, headers or {})

    def add_handler(self, path: str, handler):
        self.routes[path] = handler

    def count(self, path: str) -> int:
        return self.hits.count(path)

    async def dispatch(self, request: web.Request) -> web.StreamResponse:
        self.hits.append(request.path_qs)
        route = self.routes.get(request.path_qs, self.routes.get(request.path))
        if route is None:
            return web.Response(status=404, text='not found')
        if callable(route):
            return await route(request)

        status, body, content_type, headers = route
        if isinstance(body, bytes):
            return web.Response(status=status, body=body, content_type=content_type, headers=headers)
        return web.Response(status=status, text=body, content_type=content_type, headers=headers)


@pytest.fixture
def sleeps():
    return RecordingSleep()


@pytest_asyncio.fixture
async def site():
    fake = FakeSite()
    app = web.Application()
    app.router.add_route('GET', '/{tail:.*}', fake.dispatch)
    server = TestServer(app)
    await server.start_server()
    fake.base_url = f"http://{server.host}:{server.port}"
    yield fake
    await server.close()


@pytest_asyncio.fixture
async def fetcher(sleeps):
    async with WebFetcher('TestBot/1.0', request_timeout=5, sleep=sleeps) as web_fetcher:
        yield web_fetcher


@pytest.fixture
def restore_root_logging():
    """Undo setup_logging/progress_sink changes made during a test."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)

    progress = logging.getLogger('ingest_crawler.progress')
    for handler in list(progress.handlers):
        progress.removeHandler(handler)
        handler.close()
