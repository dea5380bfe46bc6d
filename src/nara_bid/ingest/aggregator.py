"""
全ページ集約

1ページ目で総件数を確認し、残りのページを並列に取得して結合する。
"""

import asyncio
import logging
import math
from typing import Sequence

from nara_bid.core.config import DEFAULT_KEYWORDS, settings
from nara_bid.core.models import AggregateResult, PageResult, SyncWindow
from nara_bid.ingest.filters import filter_by_title
from nara_bid.ingest.nara_client import NaraClient, prepare_service_key

logger = logging.getLogger(__name__)

MAX_PAGES_TO_FETCH = 40


def pages_to_fetch(total_count: int, page_size: int, page_cap: int = MAX_PAGES_TO_FETCH) -> int:
    """取得するページ数（ceil(total / page_size) を page_cap で打ち切り）"""
    if total_count <= 0:
        return 1
    return max(1, min(math.ceil(total_count / page_size), page_cap))


async def _gather_pages(
    client: NaraClient,
    page_numbers: range,
    window: SyncWindow,
    service_key: str,
    concurrency: int,
) -> list[PageResult]:
    if concurrency <= 0:
        return await asyncio.gather(
            *(client.fetch_page(n, window, service_key) for n in page_numbers)
        )

    semaphore = asyncio.Semaphore(concurrency)

    async def fetch(page_no: int) -> PageResult:
        async with semaphore:
            return await client.fetch_page(page_no, window, service_key)

    return await asyncio.gather(*(fetch(n) for n in page_numbers))


async def fetch_all(
    client: NaraClient,
    window: SyncWindow,
    service_key: str,
    keyword: str = "",
    page_cap: int = MAX_PAGES_TO_FETCH,
    apply_default_filter: bool = True,
    keywords: Sequence[str] = DEFAULT_KEYWORDS,
    concurrency: int | None = None,
) -> AggregateResult:
    """
    全ページを取得して結合

    Args:
        client: APIクライアント
        window: 公告期間
        service_key: 前処理済みサービスキー
        keyword: 件名キーワード（指定時はこれで絞り込む）
        page_cap: 取得ページ数の上限
        apply_default_filter: keyword 未指定時に既定キーワードで絞り込むか
        keywords: 既定キーワード
        concurrency: 並列数の上限（0で無制限、None で設定値）

    Returns:
        AggregateResult: 1ページ目が失敗した場合は error と debug_url のみ
    """
    concurrency = settings.nara_max_concurrency if concurrency is None else concurrency

    first = await client.fetch_page(1, window, service_key)
    debug_url = first.url or client.debug_url(1, window, service_key)

    if first.error:
        return AggregateResult(error=first.error, debug_url=debug_url, pages_fetched=1)

    all_records = list(first.records)
    total_count = first.total_count
    page_count = 1

    if total_count > client.page_size:
        page_count = pages_to_fetch(total_count, client.page_size, page_cap)
        logger.info(f"総件数 {total_count}件、{page_count}ページを取得します")

        results = await _gather_pages(
            client, range(2, page_count + 1), window, service_key, concurrency
        )
        # 失敗したページはそのページ分が欠けるだけにする
        for result in results:
            if result.error:
                continue
            all_records.extend(result.records)

        failed = [r.page_no for r in results if r.error]
        if failed:
            logger.warning(f"取得に失敗したページ: {failed}")

    filtered = filter_by_title(
        all_records,
        keyword=keyword,
        default_keywords=keywords if apply_default_filter else None,
    )

    logger.info(f"取得完了: スキャン {len(all_records)}件、該当 {len(filtered)}件")

    return AggregateResult(
        records=filtered,
        all_records=all_records,
        scanned_count=len(all_records),
        total_count=total_count,
        pages_fetched=page_count,
        debug_url=debug_url,
    )


async def fetch_bid_notices(
    window: SyncWindow,
    api_key: str,
    encode_key: bool = True,
    keyword: str = "",
    page_cap: int = MAX_PAGES_TO_FETCH,
    apply_default_filter: bool = True,
    keywords: Sequence[str] = DEFAULT_KEYWORDS,
    client: NaraClient | None = None,
) -> AggregateResult:
    """
    キーの前処理からクライアント生成までをまとめた取得エントリポイント

    client を渡した場合はそのクライアントを使い、閉じない。
    """
    service_key = prepare_service_key(api_key, encode_key)
    kwargs = dict(
        window=window,
        service_key=service_key,
        keyword=keyword,
        page_cap=page_cap,
        apply_default_filter=apply_default_filter,
        keywords=keywords,
    )
    if client is not None:
        return await fetch_all(client, **kwargs)

    async with NaraClient() as owned:
        return await fetch_all(owned, **kwargs)
