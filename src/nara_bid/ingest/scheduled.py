"""
定期同期ジョブ

サーバー側で1日1回程度実行する増分同期。対話的な同期と同じストア・同じ複合キーで
upsert するため、両者が同じテーブルを更新しても整合が崩れない。
既定キーワードによる絞り込みは行わず、参加可能地域のみで絞り込む。
"""

import logging
from datetime import date, timedelta

from nara_bid.core.models import SyncResult, SyncWindow, local_today, parse_db_date
from nara_bid.core.store import BidStore, StoreError
from nara_bid.ingest.aggregator import fetch_bid_notices
from nara_bid.ingest.filters import filter_by_region
from nara_bid.ingest.nara_client import NaraClient

logger = logging.getLogger(__name__)

DEFAULT_REGION = "서울"


async def run_scheduled_sync(
    store: BidStore,
    service_key: str,
    region: str = DEFAULT_REGION,
    encode_key: bool = True,
    lookback_days: int = 30,
    page_cap: int = 10,
    today: date | None = None,
    client: NaraClient | None = None,
) -> SyncResult:
    """
    定期同期を実行

    Args:
        store: 保存先ストア
        service_key: サービスキー
        region: 参加可能地域フィルタ
        encode_key: サービスキーをURLエンコードするか
        lookback_days: ストアが空の場合に遡る日数
        page_cap: 取得ページ数の上限
        today: 基準日（テスト用）
        client: APIクライアント（省略時は生成）
    """
    today = today or local_today()
    logger.info("定期同期を開始します")

    latest = store.get_latest()
    start = parse_db_date(latest.bid_ntce_dt) if latest else ""
    if start:
        logger.info(f"最終公告日から再開: {start}")
    else:
        start = (today - timedelta(days=lookback_days)).isoformat()
    window = SyncWindow(start_date=start, end_date=today.isoformat())

    result = await fetch_bid_notices(
        window,
        service_key,
        encode_key=encode_key,
        page_cap=page_cap,
        apply_default_filter=False,
        client=client,
    )
    if result.error:
        logger.error(f"定期同期の取得に失敗: {result.error}")
        return SyncResult(
            status="error",
            error=result.error,
            message=f"取得に失敗しました: {result.error}",
            debug_url=result.debug_url,
        )

    matched = filter_by_region(result.records, region)
    logger.info(f"{result.scanned_count}件中 {len(matched)}件が地域「{region}」に該当")

    if not matched:
        return SyncResult(
            status="success",
            message="本日の新しい公告はありません",
            scanned_count=result.scanned_count,
        )

    try:
        saved = store.upsert(matched)
    except StoreError as e:
        return SyncResult(
            status="error",
            error=str(e),
            message=f"保存に失敗しました: {e}",
            scanned_count=result.scanned_count,
        )

    logger.info(f"定期同期完了: {saved}件")
    return SyncResult(
        status="success",
        message=f"定期同期完了: {saved}件を保存しました",
        scanned_count=result.scanned_count,
        saved_count=saved,
    )
