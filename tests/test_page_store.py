import json

import pytest

from ingest_crawler.crawler.fetcher import FetchResult
from ingest_crawler.crawler.frontier import CrawledPage
from ingest_crawler.storage.page_store import FilePageStore


def make_page(url='https://a.test/page', body='<html><head><title> Page Title </title></head></html>'):
    response = FetchResult(
        url=url,
        status_code=200,
        final_url=url,
        headers={'Content-Type': 'text/html; charset=utf-8'},
        body=body.encode('utf-8'),
        encoding='utf-8'
    )
    return CrawledPage(url=url, body=body, response=response, depth=1)


@pytest.mark.asyncio
async def test_handle_page_stores_document(tmp_path):
    store = FilePageStore(str(tmp_path))
    store.initialize()

    await store.handle_page(make_page())

    document = store.get_page('https://a.test/page')
    assert document['title'] == 'Page Title'
    assert document['depth'] == 1
    assert document['status_code'] == 200
    assert document['content_type'] == 'text/html; charset=utf-8'
    assert store.stats['total_stored'] == 1


def test_og_title_preferred(tmp_path):
    store = FilePageStore(str(tmp_path))
    store.initialize()
    body = '<head><meta property="og:title" content="Social"><title>Plain</title></head>'

    store.store_page(make_page(body=body))

    assert store.get_page('https://a.test/page')['title'] == 'Social'


def test_unknown_page_returns_none(tmp_path):
    store = FilePageStore(str(tmp_path))
    store.initialize()
    assert store.get_page('https://a.test/never') is None


def test_index_persisted_and_reloaded(tmp_path):
    store = FilePageStore(str(tmp_path))
    store.initialize()
    store.store_page(make_page())
    store.close()

    index = json.loads((tmp_path / 'index' / 'url_index.json').read_text(encoding='utf-8'))
    assert index['https://a.test/page']['title'] == 'Page Title'

    reopened = FilePageStore(str(tmp_path))
    reopened.initialize()
    assert 'https://a.test/page' in reopened.index
    assert reopened.stats['total_stored'] == 1
