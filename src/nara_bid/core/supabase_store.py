"""
Supabaseストア

リモートの `bids` テーブル（bidNtceNo, bidNtceOrd で一意）に対するストア実装。
定期同期ジョブと対話的な同期が同じテーブルを共有する。
"""

import logging
from datetime import date
from typing import Any, Iterable

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from nara_bid.core.config import Settings, settings
from nara_bid.core.models import BidKey, BidRecord, ConnectionCheck
from nara_bid.core.store import StoreError, dedupe_by_key, retention_cutoff

logger = logging.getLogger(__name__)

ON_CONFLICT = "bidNtceNo,bidNtceOrd"

# 一時的な通信エラーのみ再試行する
transient_retry = retry(
    retry=retry_if_exception_type(httpx.TransportError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
    reraise=True,
)


class SupabaseBidStore:
    """Supabase（PostgREST）による入札公告ストア"""

    def __init__(self, client: Client, table: str = "bids"):
        self.client = client
        self.table = table

    @classmethod
    def from_settings(cls, source: Settings | None = None) -> "SupabaseBidStore":
        source = source or settings
        if not source.supabase_url or not source.supabase_key:
            raise StoreError("SUPABASE_URL と SUPABASE_KEY を設定してください", operation="connect")
        return cls(create_client(source.supabase_url, source.supabase_key), source.supabase_table)

    @transient_retry
    def _execute(self, query: Any) -> Any:
        return query.execute()

    def _query(self):
        return self.client.table(self.table)

    def upsert(self, records: Iterable[BidRecord]) -> int:
        """公告をupsert（同一バッチ内の重複キーは後勝ちで1件にまとめる）"""
        unique = dedupe_by_key(records)
        if not unique:
            return 0
        # isPinned は送らない（既存行のピン留めを保持する）
        rows = [record.model_dump(by_alias=True, exclude={"is_pinned"}) for record in unique]
        try:
            self._execute(self._query().upsert(rows, on_conflict=ON_CONFLICT))
        except (APIError, httpx.HTTPError) as e:
            logger.error(f"[Supabase] 公告の保存に失敗: {e}")
            raise StoreError(f"保存に失敗しました: {e}", operation="upsert") from e
        logger.info(f"[Supabase] {len(unique)}件を保存しました")
        return len(unique)

    def get_all(self) -> list[BidRecord]:
        """全件取得（ピン留め優先、公告日時の降順）"""
        try:
            response = self._execute(
                self._query()
                .select("*")
                .order("isPinned", desc=True)
                .order("bidNtceDt", desc=True)
            )
        except (APIError, httpx.HTTPError) as e:
            logger.error(f"[Supabase] 公告の取得に失敗: {e}")
            return []
        return [BidRecord.model_validate(row) for row in response.data or []]

    def get_latest(self) -> BidRecord | None:
        try:
            response = self._execute(
                self._query().select("*").order("bidNtceDt", desc=True).limit(1)
            )
        except (APIError, httpx.HTTPError) as e:
            logger.error(f"[Supabase] 最新公告の取得に失敗: {e}")
            return None
        rows = response.data or []
        return BidRecord.model_validate(rows[0]) if rows else None

    def clear(self) -> None:
        """全件削除（bidNtceNo が空でない行すべて）"""
        try:
            self._execute(self._query().delete().neq("bidNtceNo", ""))
        except (APIError, httpx.HTTPError) as e:
            logger.error(f"[Supabase] 全件削除に失敗: {e}")
            raise StoreError(f"削除に失敗しました: {e}", operation="clear") from e

    def cleanup_older_than(self, days: int, today: date | None = None) -> int:
        """
        保持期限より古い公告を削除

        PostgRESTは削除件数を返さないため、削除を実行した場合は -1 を返す。
        """
        if days <= 0:
            return 0
        cutoff = retention_cutoff(days, today)
        logger.info(f"[Supabase] {cutoff} より古い公告を削除 ({days}日)")
        try:
            self._execute(self._query().delete().lt("bidNtceDt", cutoff))
        except (APIError, httpx.HTTPError) as e:
            logger.error(f"[Supabase] 古い公告の削除に失敗: {e}")
            raise StoreError(f"古い公告の削除に失敗しました: {e}", operation="cleanup") from e
        return -1

    def toggle_pin(self, key: BidKey, pinned: bool) -> None:
        try:
            self._execute(
                self._query()
                .update({"isPinned": pinned})
                .match({"bidNtceNo": key.bid_ntce_no, "bidNtceOrd": key.bid_ntce_ord})
            )
        except (APIError, httpx.HTTPError) as e:
            logger.error(f"[Supabase] ピン留め更新に失敗: {e}")
            raise StoreError(f"ピン留めの更新に失敗しました: {e}", operation="toggle_pin") from e

    def count(self) -> int:
        try:
            response = self._execute(self._query().select("*", count="exact", head=True))
        except (APIError, httpx.HTTPError) as e:
            logger.error(f"[Supabase] 件数取得に失敗: {e}")
            return 0
        return response.count or 0

    def check_connection(self) -> ConnectionCheck:
        """接続テスト"""
        try:
            response = self._execute(self._query().select("*", count="exact", head=True))
        except APIError as e:
            return ConnectionCheck(success=False, message=f"DBエラー: {e.message} (コード: {e.code})")
        except httpx.HTTPError as e:
            return ConnectionCheck(success=False, message=f"通信エラー: {e}")
        return ConnectionCheck(
            success=True,
            message=f"接続成功（現在 {response.count or 0}件の公告が保存されています）",
        )
