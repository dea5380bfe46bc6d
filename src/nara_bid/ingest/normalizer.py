"""
正規化モジュール

入札公告APIの生データ（フィールド名の揺れを含む）を共通スキーマ（BidRecord）に変換する。
どんな入力でも例外を出さず、欠損値は空文字に落とす。
"""

import logging
from collections.abc import Mapping
from typing import Any, Iterable

from nara_bid.core.models import BidRecord

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "공고명 없음"
DEFAULT_ORDER = "00"


def _text(raw: Mapping, *names: str) -> str:
    """最初に値が入っているフィールドを文字列で返す"""
    for name in names:
        value = raw.get(name)
        if value is None or value == "":
            continue
        if isinstance(value, (str, int, float)) and not isinstance(value, bool):
            return str(value)
    return ""


def _compact(value: str) -> str:
    """区切り文字を除いて YYYYMMDDHHMM に揃える"""
    for sep in ("-", ":", " ", "."):
        value = value.replace(sep, "")
    return value[:12]


def _combine(date_part: str, time_part: str, default_time: str) -> str:
    """日付部と時刻部から YYYYMMDDHHMM を合成"""
    if not date_part:
        return ""
    return _compact(f"{date_part}{time_part or default_time}")


def repair_url(url: str) -> str:
    """クエリ文字列で & の代わりに ^ が使われたURLを修復"""
    return url.replace("^", "&") if "^" in url else url


def normalize_bid(raw: Any) -> BidRecord:
    """
    生データを正規化してBidRecordに変換

    - 公告日時は bidNtceDt を優先し、無ければ bidNtceDate + bidNtceBgn/bidBeginTm から合成
    - 需要機関は dminsttNm / dmndInsttNm のどちらでも受け付ける
    - URL中の ^ は & に置き換える
    """
    if not isinstance(raw, Mapping):
        raw = {}

    notice_dt = _compact(_text(raw, "bidNtceDt")) or _combine(
        _text(raw, "bidNtceDate"),
        _text(raw, "bidNtceBgn", "bidBeginTm"),
        "00:00",
    )
    begin_dt = _compact(_text(raw, "bidNtceBgnDt")) or _combine(
        _text(raw, "bidBeginDate"), _text(raw, "bidBeginTm"), "0000"
    )
    end_dt = _compact(_text(raw, "bidNtceEndDt")) or _combine(
        _text(raw, "bidClseDate"), _text(raw, "bidClseTm"), "0000"
    )

    return BidRecord(
        bid_ntce_no=_text(raw, "bidNtceNo"),
        bid_ntce_ord=_text(raw, "bidNtceOrd") or DEFAULT_ORDER,
        bid_ntce_nm=_text(raw, "bidNtceNm") or DEFAULT_TITLE,
        bid_ntce_dt=notice_dt,
        ntce_instt_nm=_text(raw, "ntceInsttNm"),
        dminstt_nm=_text(raw, "dminsttNm", "dmndInsttNm"),
        bid_ntce_bgn_dt=begin_dt,
        bid_ntce_end_dt=end_dt,
        prtcpt_psbl_rgn_nm=_text(raw, "prtcptPsblRgnNm"),
        bidprc_psbl_indstryty_nm=_text(raw, "bidprcPsblIndstrytyNm"),
        bid_ntce_url=repair_url(_text(raw, "bidNtceUrl")),
        bid_ntce_sttus_nm=_text(raw, "bidNtceSttusNm"),
        bsns_div_nm=_text(raw, "bsnsDivNm"),
        presmpt_prce=_text(raw, "presmptPrce", "asignBdgtAmt") or None,
    )


def normalize_bids(raws: Iterable[Any]) -> list[BidRecord]:
    """複数の生データを正規化"""
    return [normalize_bid(raw) for raw in raws]


def extract_items(items: Any) -> list[Any]:
    """
    body.items から生データのリストを取り出す

    items は配列、{"item": [...]}、{"item": {...}} のいずれかで返ってくる。
    """
    if not items:
        return []
    if isinstance(items, list):
        return items
    if isinstance(items, Mapping):
        inner = items.get("item")
        if isinstance(inner, list):
            return inner
        if inner:
            return [inner]
    return []
