"""
全ページ集約のテスト
"""

import asyncio
import json
from urllib.parse import parse_qs, urlsplit

import httpx

from nara_bid.core.models import SyncWindow
from nara_bid.ingest.aggregator import fetch_all, fetch_bid_notices, pages_to_fetch
from nara_bid.ingest.nara_client import NaraClient
from tests.conftest import API_URL, FakeNaraAPI, raw_item

WINDOW = SyncWindow(start_date="2025-03-01", end_date="2025-03-15")


def run_fetch_all(api: FakeNaraAPI, **kwargs):
    async def go():
        async with NaraClient(base_url=API_URL, page_size=50, transport=api.transport()) as client:
            return await fetch_all(client, WINDOW, "test-service-key", **kwargs)

    return asyncio.run(go())


def test_pages_to_fetch():
    assert pages_to_fetch(0, 50) == 1
    assert pages_to_fetch(50, 50) == 1
    assert pages_to_fetch(51, 50) == 2
    assert pages_to_fetch(120, 50) == 3
    assert pages_to_fetch(5000, 50) == 40
    assert pages_to_fetch(5000, 50, page_cap=10) == 10


def test_120_records_take_three_pages():
    api = FakeNaraAPI(total_count=120)
    result = run_fetch_all(api, apply_default_filter=False)

    assert sorted(api.requested_pages) == [1, 2, 3]
    assert result.error is None
    assert result.total_count == 120
    assert result.scanned_count == 120
    assert len(result.records) == 120
    # ページ順で結合される
    assert [r.bid_ntce_no for r in result.all_records] == [f"R{i:05d}" for i in range(120)]


def test_single_page_does_not_fetch_more():
    api = FakeNaraAPI(total_count=30)
    result = run_fetch_all(api)
    assert api.requested_pages == [1]
    assert result.scanned_count == 30


def test_page_count_is_capped():
    api = FakeNaraAPI(total_count=5000)
    result = run_fetch_all(api, apply_default_filter=False, concurrency=5)
    assert len(api.requested_pages) == 40
    assert max(api.requested_pages) == 40
    assert result.scanned_count == 40 * 50
    assert result.total_count == 5000


def test_failed_later_page_is_dropped():
    api = FakeNaraAPI(total_count=120, failing_pages={2})
    result = run_fetch_all(api, apply_default_filter=False)
    assert result.error is None
    assert result.scanned_count == 70
    assert "R00050" not in {r.bid_ntce_no for r in result.all_records}


def test_failed_first_page_is_fatal():
    api = FakeNaraAPI(total_count=120, failing_pages={1})
    result = run_fetch_all(api)
    assert api.requested_pages == [1]
    assert result.error is not None
    assert result.records == []
    assert result.debug_url.startswith(API_URL)
    assert "test-servi..." in result.debug_url


def test_default_keyword_filter():
    titles = ["리더십 교육 용역", "도로 포장 공사", "HRD 컨설팅", "청사 청소 용역"]
    api = FakeNaraAPI(total_count=4, item_factory=lambda i: raw_item(f"R{i}", title=titles[i]))
    result = run_fetch_all(api)
    assert result.scanned_count == 4
    assert [r.bid_ntce_nm for r in result.records] == ["리더십 교육 용역", "HRD 컨설팅"]


def test_explicit_keyword_overrides_default_filter():
    titles = ["리더십 교육 용역", "도로 포장 공사"]
    api = FakeNaraAPI(total_count=2, item_factory=lambda i: raw_item(f"R{i}", title=titles[i]))
    result = run_fetch_all(api, keyword="도로")
    assert [r.bid_ntce_nm for r in result.records] == ["도로 포장 공사"]


def test_fetch_bid_notices_encodes_key():
    api = FakeNaraAPI(total_count=1)

    async def go():
        async with NaraClient(base_url=API_URL, transport=api.transport()) as client:
            return await fetch_bid_notices(WINDOW, "a+b/c=", client=client)

    result = asyncio.run(go())
    assert result.error is None
    assert "serviceKey=a%2Bb%2Fc%3D&" in api.requested_urls[0]


def test_malformed_later_page_is_dropped():
    api = FakeNaraAPI(total_count=150)

    def handler(request: httpx.Request) -> httpx.Response:
        if "pageNo=2&" in str(request.url):
            api.requested_pages.append(2)
            return httpx.Response(200, text=json.dumps({"response": {"header": "oops"}}))
        return api.handler(request)

    async def go():
        transport = httpx.MockTransport(handler)
        async with NaraClient(base_url=API_URL, page_size=50, transport=transport) as client:
            return await fetch_all(client, WINDOW, "test-service-key", apply_default_filter=False)

    result = asyncio.run(go())

    assert sorted(api.requested_pages) == [1, 2, 3]
    assert result.error is None
    assert result.scanned_count == 100
    numbers = [r.bid_ntce_no for r in result.all_records]
    assert numbers == [f"R{i:05d}" for i in range(50)] + [f"R{i:05d}" for i in range(100, 150)]


class InFlightTransport(httpx.AsyncBaseTransport):
    """同時に処理中のリクエスト数を記録するトランスポート"""

    def __init__(self, api: FakeNaraAPI):
        self.api = api
        self.in_flight = 0
        self.max_in_flight = 0
        self.first_page_done = False
        self.started_before_first_page: list[int] = []

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        page_no = int(parse_qs(urlsplit(str(request.url)).query)["pageNo"][0])
        if page_no != 1 and not self.first_page_done:
            self.started_before_first_page.append(page_no)

        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0.01)
            response = self.api.handler(request)
        finally:
            self.in_flight -= 1

        if page_no == 1:
            self.first_page_done = True
        return httpx.Response(response.status_code, content=response.content)


def test_later_pages_run_concurrently_within_limit():
    api = FakeNaraAPI(total_count=500)
    transport = InFlightTransport(api)

    async def go():
        async with NaraClient(base_url=API_URL, page_size=50, transport=transport) as client:
            return await fetch_all(client, WINDOW, "test-service-key", apply_default_filter=False, concurrency=3)

    result = asyncio.run(go())

    assert result.scanned_count == 500
    assert sorted(api.requested_pages) == list(range(1, 11))
    assert transport.started_before_first_page == []
    assert 1 < transport.max_in_flight <= 3
