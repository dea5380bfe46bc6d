"""
共通フィクスチャ
"""

import json
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from nara_bid.core.database import SQLiteBidStore
from nara_bid.core.models import BidRecord

API_URL = "https://api.test/getDataSetOpnStdBidPblancInfo"


def make_record(
    bid_ntce_no: str,
    bid_ntce_ord: str = "00",
    bid_ntce_nm: str = "2025년 리더십 교육 용역",
    bid_ntce_dt: str = "202503010900",
    **fields,
) -> BidRecord:
    return BidRecord(
        bid_ntce_no=bid_ntce_no,
        bid_ntce_ord=bid_ntce_ord,
        bid_ntce_nm=bid_ntce_nm,
        bid_ntce_dt=bid_ntce_dt,
        **fields,
    )


def api_envelope(items, total_count: int, result_code: str = "00", result_msg: str = "NORMAL SERVICE.") -> dict:
    """入札公告APIのレスポンス形式"""
    return {
        "response": {
            "header": {"resultCode": result_code, "resultMsg": result_msg},
            "body": {
                "items": items,
                "totalCount": total_count,
                "numOfRows": 50,
                "pageNo": 1,
            },
        }
    }


def raw_item(no: str, title: str = "교육 운영 용역", dt: str = "202503010900", region: str = "서울특별시") -> dict:
    return {
        "bidNtceNo": no,
        "bidNtceOrd": "00",
        "bidNtceNm": title,
        "bidNtceDt": dt,
        "ntceInsttNm": "서울특별시교육청",
        "prtcptPsblRgnNm": region,
        "bidNtceUrl": "https://www.g2b.go.kr/link?bidno=" + no + "^bidseq=00",
    }


class FakeNaraAPI:
    """
    入札公告APIの偽実装

    total_count 件の公告を page_size 件ずつ返す。failing_pages のページは500を返す。
    """

    def __init__(self, total_count: int, page_size: int = 50, failing_pages=(), item_factory=None):
        self.total_count = total_count
        self.page_size = page_size
        self.failing_pages = set(failing_pages)
        self.item_factory = item_factory or (lambda i: raw_item(f"R{i:05d}"))
        self.requested_pages: list[int] = []
        self.requested_urls: list[str] = []

    def page_items(self, page_no: int) -> list[dict]:
        start = (page_no - 1) * self.page_size
        end = min(start + self.page_size, self.total_count)
        return [self.item_factory(i) for i in range(start, end)]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requested_urls.append(str(request.url))
        query = parse_qs(urlsplit(str(request.url)).query)
        page_no = int(query["pageNo"][0])
        self.requested_pages.append(page_no)
        if page_no in self.failing_pages:
            return httpx.Response(500, text="Internal Server Error")
        body = api_envelope({"item": self.page_items(page_no)}, self.total_count)
        return httpx.Response(200, text=json.dumps(body, ensure_ascii=False))

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def store(tmp_path):
    return SQLiteBidStore(tmp_path / "bids.db")


@pytest.fixture
def record_factory():
    return make_record
