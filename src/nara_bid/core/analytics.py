"""
集計モジュール

保存済み公告の機関別件数、状態別分布、日別件数を集計する。
"""

from collections import Counter
from typing import Iterable

from pydantic import BaseModel, Field

from nara_bid.core.models import BidRecord, parse_db_date

OTHER_LABEL = "기타"


class BidSummary(BaseModel):
    """公告の集計結果"""

    total: int = 0
    top_institutions: list[tuple[str, int]] = Field(default_factory=list)
    status_counts: list[tuple[str, int]] = Field(default_factory=list)
    daily_counts: list[tuple[str, int]] = Field(default_factory=list)


def _ranked(counter: Counter) -> list[tuple[str, int]]:
    # 件数の降順、同数なら名前順
    return sorted(counter.items(), key=lambda item: (-item[1], item[0]))


def summarize_bids(records: Iterable[BidRecord], top_n: int = 5) -> BidSummary:
    """
    公告を集計

    - top_institutions: 公告機関別の件数上位 top_n
    - status_counts: 公告状態別の件数（状態が空なら 기타）
    - daily_counts: 公告日（YYYY-MM-DD）別の件数、日付の昇順。公告日時が無いものは数えない
    """
    records = list(records)
    institutions = Counter((r.ntce_instt_nm or "").strip() or OTHER_LABEL for r in records)
    statuses = Counter((r.bid_ntce_sttus_nm or "").strip() or OTHER_LABEL for r in records)
    days = Counter(day for day in (parse_db_date(r.bid_ntce_dt) for r in records) if day)

    return BidSummary(
        total=len(records),
        top_institutions=_ranked(institutions)[:top_n],
        status_counts=_ranked(statuses),
        daily_counts=sorted(days.items()),
    )
