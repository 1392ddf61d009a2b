import json

import pytest
import requests

from deal_collection.config import PipelineConfig
from deal_collection.crawling.fetcher import PoliteFetcher

class FakeResponse:
    def __init__(self, text="", status_code=200, content_type="text/html; charset=utf-8"):
        self.text = text
        self.status_code = status_code
        self.headers = {'content-type': content_type}

class FakeSession:
    """Serves canned responses by URL and records every request made"""

    def __init__(self, pages=None):
        self.pages = dict(pages or {})
        self.headers = {}
        self.requested = []
        self.closed = False

    def get(self, url, timeout=None, allow_redirects=True):
        self.requested.append(url)
        if url not in self.pages:
            raise requests.ConnectionError(f"no route to {url}")
        page = self.pages[url]
        if isinstance(page, FakeResponse):
            return page
        return FakeResponse(page)

    def close(self):
        self.closed = True

@pytest.fixture
def config(tmp_path):
    return PipelineConfig(delay_between_requests=0, max_workers=2, data_dir=str(tmp_path / "data"))

@pytest.fixture
def make_fetcher(config):
    def _make(pages=None):
        return PoliteFetcher(config, session=FakeSession(pages))
    return _make

@pytest.fixture
def write_dataset(tmp_path):
    def _write(venues, name="deals.json"):
        path = tmp_path / name
        path.write_text(json.dumps(venues, indent=2), encoding='utf-8')
        return path
    return _write

def robots_response(text):
    return FakeResponse(text, content_type="text/plain")
