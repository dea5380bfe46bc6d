"""
入札公告APIクライアント

公共データポータル（data.go.kr）の入札公告情報APIから1ページずつデータを取得する。
ページ単位の失敗は例外にせず、エラー文字列として呼び出し元に返す。
"""

import json
import logging
import re
from datetime import date
from urllib.parse import quote

import httpx

from nara_bid.core.config import settings
from nara_bid.core.models import ConnectionCheck, PageResult, SyncWindow
from nara_bid.ingest.normalizer import extract_items, normalize_bids

logger = logging.getLogger(__name__)

XML_ERROR_PATTERNS = (
    re.compile(r"<errMsg>(.*?)</errMsg>", re.DOTALL),
    re.compile(r"<returnAuthMsg>(.*?)</returnAuthMsg>", re.DOTALL),
)


class NaraAPIError(Exception):
    """入札公告API エラー"""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def prepare_service_key(raw_key: str, encode: bool = True) -> str:
    """
    サービスキーを前処理

    data.go.kr はエンコード済みキーとデコード済みキーの両方を発行する。
    エンコード済みキーを再度エンコードすると認証に失敗するため、エンコードは呼び出し側で切り替える。
    """
    key = raw_key.strip()
    return quote(key, safe="") if encode else key


def mask_service_key(service_key: str) -> str:
    """デバッグURL用に先頭10文字以外を伏せる"""
    return f"{service_key[:10]}..." if len(service_key) > 10 else service_key


def _coerce_int(value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def parse_payload(text: str) -> tuple[list, int]:
    """
    レスポンス本文をパース

    Returns:
        (raw_items, total_count)

    Raises:
        NaraAPIError: XML応答、JSONパース失敗、resultCode が "00" 以外の場合
    """
    stripped = text.strip()
    if stripped.startswith("<"):
        for pattern in XML_ERROR_PATTERNS:
            match = pattern.search(stripped)
            if match:
                raise NaraAPIError(f"APIエラー: {match.group(1).strip()}")
        raise NaraAPIError("APIがJSONではなくXMLを返しました")

    try:
        data = json.loads(stripped)
    except ValueError as e:
        raise NaraAPIError("JSONパース失敗") from e

    response = data.get("response") if isinstance(data, dict) else None
    response = response if isinstance(response, dict) else {}
    header = response.get("header")
    header = header if isinstance(header, dict) else {}
    body = response.get("body")
    body = body if isinstance(body, dict) else {}

    result_code = header.get("resultCode")
    if result_code != "00":
        result_msg = header.get("resultMsg") or ""
        raise NaraAPIError(f"APIコードエラー: {result_code} {result_msg}".rstrip())

    return extract_items(body.get("items")), _coerce_int(body.get("totalCount"))


class NaraClient:
    """入札公告APIクライアント"""

    def __init__(
        self,
        base_url: str = settings.nara_api_url,
        page_size: int = settings.nara_page_size,
        timeout: float = settings.nara_request_timeout,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url
        self.page_size = page_size
        self.timeout = timeout
        self._client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def __aenter__(self) -> "NaraClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self._client.aclose()

    def build_url(
        self,
        page_no: int,
        window: SyncWindow,
        service_key: str,
        num_of_rows: int | None = None,
    ) -> str:
        """
        リクエストURLを構築

        サービスキーはエンコード有無を呼び出し側で決めるため、クエリ文字列は手で組み立てる。
        """
        params = [
            f"serviceKey={service_key}",
            f"pageNo={page_no}",
            f"numOfRows={num_of_rows or self.page_size}",
            "type=json",
            f"bidNtceBgnDt={window.api_start()}",
            f"bidNtceEndDt={window.api_end()}",
        ]
        return f"{self.base_url}?{'&'.join(params)}"

    def debug_url(self, page_no: int, window: SyncWindow, service_key: str) -> str:
        """ユーザーがブラウザで再現するためのURL（キーは伏せる）"""
        return self.build_url(page_no, window, mask_service_key(service_key))

    async def _get_text(self, url: str) -> str:
        try:
            response = await self._client.get(url)
        except httpx.HTTPError as e:
            raise NaraAPIError(f"ネットワークエラー: {e}") from e

        logger.debug(f"API response: status={response.status_code}")

        if not response.is_success:
            raise NaraAPIError(
                f"ネットワークエラー: {response.status_code}",
                status_code=response.status_code,
            )
        return response.text

    async def fetch_page(self, page_no: int, window: SyncWindow, service_key: str) -> PageResult:
        """
        1ページ取得

        失敗してもエラーを PageResult.error に入れて返す。
        致命的かどうか（1ページ目か以降か）は呼び出し側が判断する。
        """
        url = self.build_url(page_no, window, service_key)
        debug_url = self.debug_url(page_no, window, service_key)
        logger.info(f"[API] {page_no}ページ目を取得中")

        try:
            text = await self._get_text(url)
            raw_items, total_count = parse_payload(text)
        except NaraAPIError as e:
            logger.warning(f"[API] {page_no}ページ目の取得に失敗: {e}")
            return PageResult(page_no=page_no, error=str(e), url=debug_url)

        return PageResult(
            page_no=page_no,
            records=normalize_bids(raw_items),
            total_count=total_count,
            url=debug_url,
        )

    async def check_connection(self, service_key: str, today: date | None = None) -> ConnectionCheck:
        """
        接続テスト

        直近30日を1件だけ取得し、総件数と先頭の公告名を返す。
        """
        window = SyncWindow.last_days(30, today)
        url = self.build_url(1, window, service_key, num_of_rows=1)
        try:
            text = await self._get_text(url)
            raw_items, total_count = parse_payload(text)
        except NaraAPIError as e:
            if e.status_code is None and "XML" in str(e):
                return ConnectionCheck(success=False, message=f"{e}（キー認証失敗の可能性が高い）")
            return ConnectionCheck(success=False, message=str(e))

        sample = "データなし"
        if raw_items:
            first = raw_items[0] if isinstance(raw_items[0], dict) else {}
            sample = first.get("bidNtceNm") or "項目名なし"
        return ConnectionCheck(
            success=True,
            message=f"接続成功（全{total_count}件、先頭: {sample}）",
        )


async def check_api_connection(api_key: str, encode_key: bool = True) -> ConnectionCheck:
    """サービスキーとエンコード設定でAPIに接続できるか確認"""
    async with NaraClient() as client:
        return await client.check_connection(prepare_service_key(api_key, encode_key))
