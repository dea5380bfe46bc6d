"""
入札公告APIクライアントのテスト
"""

import asyncio
import json
from datetime import date

import httpx
import pytest

from nara_bid.core.models import SyncWindow
from nara_bid.ingest.nara_client import (
    NaraAPIError,
    NaraClient,
    mask_service_key,
    parse_payload,
    prepare_service_key,
)
from tests.conftest import API_URL, api_envelope, raw_item

WINDOW = SyncWindow(start_date="2025-03-01", end_date="2025-03-15")
SERVICE_KEY = "ABCDEFGHIJKLMNOP%2Bsecret"


def run_fetch(handler, page_no: int = 1):
    async def go():
        async with NaraClient(base_url=API_URL, transport=httpx.MockTransport(handler)) as client:
            return await client.fetch_page(page_no, WINDOW, SERVICE_KEY)

    return asyncio.run(go())


class TestParsePayload:
    def test_item_list(self):
        text = json.dumps(api_envelope({"item": [raw_item("1"), raw_item("2")]}, 2))
        items, total = parse_payload(text)
        assert len(items) == 2
        assert total == 2

    def test_total_count_as_string(self):
        text = json.dumps(api_envelope({"item": raw_item("1")}, "120"))
        items, total = parse_payload(text)
        assert len(items) == 1
        assert total == 120

    def test_xml_error_message_is_extracted(self):
        xml = (
            "<OpenAPI_ServiceResponse><cmmMsgHeader>"
            "<errMsg>SERVICE ERROR</errMsg>"
            "<returnAuthMsg>SERVICE_KEY_IS_NOT_REGISTERED_ERROR</returnAuthMsg>"
            "</cmmMsgHeader></OpenAPI_ServiceResponse>"
        )
        with pytest.raises(NaraAPIError, match="SERVICE ERROR"):
            parse_payload(xml)

    def test_xml_without_message(self):
        with pytest.raises(NaraAPIError, match="XML"):
            parse_payload("<html><body>gateway</body></html>")

    def test_invalid_json(self):
        with pytest.raises(NaraAPIError, match="JSONパース失敗"):
            parse_payload("{not json")

    def test_result_code_error(self):
        text = json.dumps(api_envelope([], 0, result_code="03", result_msg="NODATA_ERROR"))
        with pytest.raises(NaraAPIError, match="03 NODATA_ERROR"):
            parse_payload(text)

    def test_non_mapping_header_is_an_api_error(self):
        with pytest.raises(NaraAPIError, match="APIコードエラー"):
            parse_payload(json.dumps({"response": {"header": "oops"}}))

    def test_non_mapping_body_has_no_items(self):
        text = json.dumps({"response": {"header": {"resultCode": "00"}, "body": "oops"}})
        assert parse_payload(text) == ([], 0)


class TestServiceKey:
    def test_encode_toggle(self):
        assert prepare_service_key(" a+b/c= ") == "a%2Bb%2Fc%3D"
        assert prepare_service_key(" a%2Bb ", encode=False) == "a%2Bb"

    def test_mask(self):
        assert mask_service_key("0123456789abcdef") == "0123456789..."
        assert mask_service_key("short") == "short"


def test_build_url_keeps_parameter_order():
    client = NaraClient(base_url=API_URL, page_size=50)
    url = client.build_url(3, WINDOW, SERVICE_KEY)
    assert url == (
        f"{API_URL}?serviceKey={SERVICE_KEY}&pageNo=3&numOfRows=50&type=json"
        "&bidNtceBgnDt=202503010000&bidNtceEndDt=202503152359"
    )


def test_fetch_page_success():
    def handler(request):
        return httpx.Response(200, text=json.dumps(api_envelope({"item": [raw_item("1")]}, 1)))

    result = run_fetch(handler)
    assert result.error is None
    assert result.total_count == 1
    assert result.records[0].bid_ntce_url.endswith("bidno=1&bidseq=00")
    assert "ABCDEFGHIJ..." in result.url
    assert "secret" not in result.url


def test_fetch_page_http_status_error():
    result = run_fetch(lambda request: httpx.Response(503, text="unavailable"))
    assert result.records == []
    assert "503" in result.error


def test_fetch_page_transport_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    result = run_fetch(handler)
    assert result.error.startswith("ネットワークエラー")


def test_fetch_page_xml_body():
    result = run_fetch(lambda request: httpx.Response(200, text="<errMsg>LIMITED NUMBER OF SERVICE REQUESTS</errMsg>"))
    assert "LIMITED NUMBER" in result.error


def test_check_connection():
    def handler(request):
        assert "numOfRows=1" in str(request.url)
        return httpx.Response(200, text=json.dumps(api_envelope({"item": [raw_item("1", title="HRD 연수")]}, 321)))

    async def go():
        async with NaraClient(base_url=API_URL, transport=httpx.MockTransport(handler)) as client:
            return await client.check_connection(SERVICE_KEY, today=date(2025, 3, 15))

    check = asyncio.run(go())
    assert check.success
    assert "321" in check.message
    assert "HRD 연수" in check.message


def test_check_connection_xml_failure():
    async def go():
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<OpenAPI_ServiceResponse/>"))
        async with NaraClient(base_url=API_URL, transport=transport) as client:
            return await client.check_connection(SERVICE_KEY, today=date(2025, 3, 15))

    check = asyncio.run(go())
    assert not check.success
    assert "キー認証失敗" in check.message
