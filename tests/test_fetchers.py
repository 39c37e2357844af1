import asyncio

import pytest
import requests

from shelfscan_core.exceptions import FetchError
from shelfscan_core.fetchers import RequestsPageFetcher


class _Response:

    def __init__(self, url, text, status=200):
        self.url = url
        self.text = text
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status} error")


class _Session:

    def __init__(self, response):
        self.response = response
        self.calls = []

    def get(self, url, headers=None, timeout=None):
        self.calls.append((url, headers, timeout))
        return self.response


class TestRequestsPageFetcher:

    def test_fetch_returns_body_as_final_html(self):
        session = _Session(_Response("https://x.example/c?page=1", "<main>ok</main>"))
        fetcher = RequestsPageFetcher(timeout_s=3, user_agent="shelfscan-test", session=session)
        page = asyncio.run(fetcher.fetch("https://x.example/c"))
        assert page.url == "https://x.example/c?page=1"
        assert page.html == page.final_html == "<main>ok</main>"
        assert session.calls == [("https://x.example/c", {"User-Agent": "shelfscan-test"}, 3)]

    def test_http_error_becomes_fetch_error(self):
        fetcher = RequestsPageFetcher(session=_Session(_Response("https://x.example/c", "", status=503)))
        with pytest.raises(FetchError):
            asyncio.run(fetcher.fetch("https://x.example/c"))
