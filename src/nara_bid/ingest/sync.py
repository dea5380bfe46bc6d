"""
同期オーケストレータ

取得期間を決め、集約・保存・保持期限による削除を順に実行する。
表示用の一覧は取得結果ではなく常にストアから読み直す。
"""

import logging
from datetime import date
from typing import Awaitable, Callable

from nara_bid.core.models import (
    AggregateResult,
    BidKey,
    BidRecord,
    SyncConfig,
    SyncResult,
    SyncStatus,
    SyncWindow,
    local_today,
    parse_db_date,
)
from nara_bid.core.store import BidStore, StoreError
from nara_bid.ingest.aggregator import fetch_bid_notices
from nara_bid.ingest.filters import filter_by_title

logger = logging.getLogger(__name__)

Fetcher = Callable[..., Awaitable[AggregateResult]]

MISSING_KEY_MESSAGE = "サービスキーが必要です"


class SyncOrchestrator:
    """
    入札公告の同期を管理する

    - update_latest: 最新公告の日付から今日までを再取得（増分更新）
    - full_reset: ストアを空にして設定期間を取り直す（要確認）
    - search: キーワードで検索し、取得した全件を保存して該当分だけを返す

    状態は idle → fetching → success/error と遷移し、呼び出しが終わると idle に戻る。
    """

    def __init__(
        self,
        store: BidStore,
        config: SyncConfig,
        fetcher: Fetcher = fetch_bid_notices,
    ):
        self.store = store
        self.config = config
        self.fetcher = fetcher
        self.status: SyncStatus = "idle"
        self.records: list[BidRecord] = []
        self.last_result: SyncResult | None = None

    def refresh(self) -> list[BidRecord]:
        """ストアから一覧を読み直す"""
        self.records = self.store.get_all()
        return self.records

    def set_pin(self, key: BidKey, pinned: bool) -> list[BidRecord]:
        """ピン留めを切り替えて一覧を読み直す"""
        self.store.toggle_pin(key, pinned)
        return self.refresh()

    def incremental_window(self, today: date | None = None) -> SyncWindow:
        """
        増分更新の取得期間

        開始日は保存済み最新公告の公告日（その日を含む）。同日の追加・訂正を拾うため翌日にはしない。
        ストアが空なら設定の開始日を使う。終了日は常に今日。
        """
        today = today or local_today()
        latest = self.store.get_latest()
        start = parse_db_date(latest.bid_ntce_dt) if latest else ""
        if start:
            logger.info(f"最新公告の日付: {start}")
        else:
            start = self.config.configured_window(today).start_date
            logger.info(f"保存済みデータなし。{start} から取得します")
        return SyncWindow(start_date=start, end_date=today.isoformat())

    async def update_latest(self, today: date | None = None) -> SyncResult:
        """増分更新"""
        if not self.config.service_key:
            return self._finish(SyncResult(status="error", error=MISSING_KEY_MESSAGE, message=MISSING_KEY_MESSAGE))

        window = self.incremental_window(today)
        logger.info(f"{window.start_date} から {window.end_date} までを確認中...")
        return await self._run(window, today, reset=False)

    async def full_reset(self, confirmed: bool, today: date | None = None) -> SyncResult:
        """
        全件再収集

        confirmed が False なら何もしない。ストアの削除は取得より先に行うため、
        取得に失敗した場合ストアは空のまま残る。
        """
        if not confirmed:
            return SyncResult(status="idle", message="キャンセルしました")

        if not self.config.service_key:
            return self._finish(SyncResult(status="error", error=MISSING_KEY_MESSAGE, message=MISSING_KEY_MESSAGE))

        self.status = "fetching"
        try:
            self.store.clear()
        except StoreError as e:
            return self._finish(SyncResult(status="error", error=str(e), message="既存データの削除に失敗しました"))
        self.records = []

        window = self.config.configured_window(today)
        logger.info(f"既存データを削除しました。{window.start_date} 〜 {window.end_date} を再収集します")
        return await self._run(window, today, reset=True)

    async def _run(self, window: SyncWindow, today: date | None, reset: bool) -> SyncResult:
        self.status = "fetching"
        try:
            return await self._sync(window, today, reset)
        finally:
            self.status = "idle"

    async def _sync(self, window: SyncWindow, today: date | None, reset: bool) -> SyncResult:
        result = await self.fetcher(
            window,
            self.config.service_key,
            encode_key=self.config.encode_key,
            keyword=self.config.keyword,
            page_cap=self.config.page_cap,
            keywords=self.config.default_keywords,
        )

        if result.error:
            logger.error(f"取得エラー: {result.error} ({result.debug_url})")
            return self._finish(SyncResult(
                status="error",
                error=result.error,
                message=f"取得に失敗しました: {result.error}",
                debug_url=result.debug_url,
                scanned_count=result.scanned_count,
            ))

        fetched = result.records
        if not fetched:
            message = "該当期間のデータはありません" if reset else "新しい公告はありません（最新の状態です）"
            return self._finish(SyncResult(
                status="success",
                message=message,
                debug_url=result.debug_url,
                scanned_count=result.scanned_count,
                records=self.refresh(),
            ))

        to_save = fetched
        if self.config.save_only_filtered:
            to_save = filter_by_title(fetched, default_keywords=self.config.default_keywords)

        try:
            saved = self.store.upsert(to_save) if to_save else 0
            self.store.cleanup_older_than(self.config.retention_days, today)
        except StoreError as e:
            return self._finish(SyncResult(
                status="error",
                error=str(e),
                message=f"保存に失敗しました: {e}",
                debug_url=result.debug_url,
                scanned_count=result.scanned_count,
            ))

        if not saved:
            message = "取得した公告のうち条件に合うものはありません"
        elif reset:
            message = f"全件収集完了: {saved}件を保存しました"
        else:
            message = f"更新完了: {len(fetched)}件スキャン、{saved}件保存"

        return self._finish(SyncResult(
            status="success",
            message=message,
            debug_url=result.debug_url,
            scanned_count=result.scanned_count,
            saved_count=saved,
            records=self.refresh(),
        ))

    async def search(self, keyword: str = "", today: date | None = None) -> SyncResult:
        """
        キーワード検索

        設定期間を取得し、絞り込み前の全件を保存したうえで、該当する公告だけを結果として返す。
        既存のピン留めは保持し、結果ではピン留めを先頭に並べる。
        """
        if not self.config.service_key:
            return self._finish(SyncResult(status="error", error=MISSING_KEY_MESSAGE, message=MISSING_KEY_MESSAGE))

        window = self.config.configured_window(today)
        self.status = "fetching"
        try:
            result = await self.fetcher(
                window,
                self.config.service_key,
                encode_key=self.config.encode_key,
                keyword=keyword,
                page_cap=self.config.page_cap,
                keywords=self.config.default_keywords,
            )
            if result.error:
                return self._finish(SyncResult(
                    status="error",
                    error=result.error,
                    message=f"検索に失敗しました: {result.error}",
                    debug_url=result.debug_url,
                ))

            try:
                saved = self.store.upsert(result.all_records)
            except StoreError as e:
                return self._finish(SyncResult(
                    status="error",
                    error=str(e),
                    message=f"保存に失敗しました: {e}",
                    debug_url=result.debug_url,
                    scanned_count=result.scanned_count,
                ))

            pinned = {r.key for r in self.store.get_all() if r.is_pinned}
            matched = [r.model_copy(update={"is_pinned": r.key in pinned}) for r in result.records]
            matched.sort(key=lambda r: not r.is_pinned)
            return self._finish(SyncResult(
                status="success",
                message=f"検索完了: {result.scanned_count}件スキャン、{len(matched)}件該当",
                debug_url=result.debug_url,
                scanned_count=result.scanned_count,
                saved_count=saved,
                records=matched,
            ))
        finally:
            self.status = "idle"

    def _finish(self, result: SyncResult) -> SyncResult:
        # 終端状態は result.status に残し、オーケストレータ自身は idle に戻す
        logger.info(f"同期終了: {result.status} {result.message}")
        self.last_result = result
        self.status = "idle"
        return result
