"""
公告フィルタ

件名キーワードと参加可能地域による絞り込み。
"""

from typing import Iterable, Sequence

from nara_bid.core.config import DEFAULT_KEYWORDS
from nara_bid.core.models import BidRecord


def matches_any_keyword(record: BidRecord, keywords: Sequence[str] = DEFAULT_KEYWORDS) -> bool:
    """件名にいずれかのキーワードを含むか"""
    title = record.bid_ntce_nm or ""
    return any(keyword in title for keyword in keywords)


def filter_by_title(
    records: Iterable[BidRecord],
    keyword: str = "",
    default_keywords: Sequence[str] | None = DEFAULT_KEYWORDS,
) -> list[BidRecord]:
    """
    件名で絞り込む

    keyword が指定されればその部分一致、無ければ default_keywords のいずれか。
    default_keywords が None なら絞り込まない。
    """
    if keyword:
        return [r for r in records if keyword in (r.bid_ntce_nm or "")]
    if default_keywords is None:
        return list(records)
    return [r for r in records if matches_any_keyword(r, default_keywords)]


def filter_by_region(records: Iterable[BidRecord], region: str) -> list[BidRecord]:
    """参加可能地域名に region を含む公告のみ"""
    return [r for r in records if region in (r.prtcpt_psbl_rgn_nm or "")]
