"""
データモデル定義

入札公告の共通スキーマ、同期ウィンドウ、取得・同期結果のモデルを定義する。
"""

from datetime import date, datetime, timedelta
from typing import Literal, NamedTuple
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, Field, field_validator

from nara_bid.core.config import DEFAULT_KEYWORDS, Settings, settings


# =============================================================================
# 日付ユーティリティ
# =============================================================================


def local_today(tz_name: str | None = None) -> date:
    """設定タイムゾーンでの今日の日付"""
    return datetime.now(ZoneInfo(tz_name or settings.timezone)).date()


def format_date_for_api(date_str: str, is_end: bool = False) -> str:
    """
    YYYY-MM-DD を API用の YYYYMMDDHHMM に変換

    開始日は 0000、終了日は 2359 を付ける。形式が不正な場合は空文字を返す。
    """
    if not date_str:
        return ""
    parts = date_str.split("-")
    if len(parts) != 3:
        return ""
    year, month, day = parts
    time_part = "2359" if is_end else "0000"
    return f"{year}{month}{day}{time_part}"


def parse_db_date(value: str | None) -> str:
    """YYYYMMDD... を YYYY-MM-DD に変換（8文字未満なら空文字）"""
    if not value or len(value) < 8:
        return ""
    return f"{value[0:4]}-{value[4:6]}-{value[6:8]}"


# =============================================================================
# 入札公告モデル
# =============================================================================


class BidKey(NamedTuple):
    """公告番号と公告次数の複合キー"""

    bid_ntce_no: str
    bid_ntce_ord: str


class BidRecord(BaseModel):
    """正規化された入札公告モデル"""

    model_config = ConfigDict(populate_by_name=True)

    bid_ntce_no: str = Field(default="", alias="bidNtceNo")
    bid_ntce_ord: str = Field(default="00", alias="bidNtceOrd")
    bid_ntce_nm: str = Field(default="", alias="bidNtceNm")
    bid_ntce_dt: str = Field(default="", alias="bidNtceDt")
    ntce_instt_nm: str = Field(default="", alias="ntceInsttNm")
    dminstt_nm: str = Field(default="", alias="dminsttNm")
    bid_ntce_bgn_dt: str = Field(default="", alias="bidNtceBgnDt")
    bid_ntce_end_dt: str = Field(default="", alias="bidNtceEndDt")
    prtcpt_psbl_rgn_nm: str = Field(default="", alias="prtcptPsblRgnNm")
    bidprc_psbl_indstryty_nm: str = Field(default="", alias="bidprcPsblIndstrytyNm")
    bid_ntce_url: str = Field(default="", alias="bidNtceUrl")
    bid_ntce_sttus_nm: str = Field(default="", alias="bidNtceSttusNm")
    bsns_div_nm: str = Field(default="", alias="bsnsDivNm")
    presmpt_prce: str | None = Field(default=None, alias="presmptPrce")
    is_pinned: bool = Field(default=False, alias="isPinned")

    @field_validator("*", mode="before")
    @classmethod
    def _coerce_scalar(cls, value, info):
        # リモートDBは数値や NULL を返すことがある
        if info.field_name == "is_pinned":
            return bool(value)
        if value is None:
            return None if info.field_name == "presmpt_prce" else ""
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @property
    def key(self) -> BidKey:
        return BidKey(self.bid_ntce_no, self.bid_ntce_ord)

    @property
    def notice_date(self) -> str:
        """公告日（YYYY-MM-DD）"""
        return parse_db_date(self.bid_ntce_dt)


# =============================================================================
# 同期ウィンドウ・設定
# =============================================================================


class SyncWindow(BaseModel):
    """取得対象の公告期間（YYYY-MM-DD）"""

    start_date: str
    end_date: str

    def api_start(self) -> str:
        return format_date_for_api(self.start_date)

    def api_end(self) -> str:
        return format_date_for_api(self.end_date, is_end=True)

    @classmethod
    def last_days(cls, days: int, today: date | None = None) -> "SyncWindow":
        """今日を終端とする直近 days 日間"""
        today = today or local_today()
        start = today - timedelta(days=days)
        return cls(start_date=start.isoformat(), end_date=today.isoformat())


class SyncConfig(BaseModel):
    """同期オーケストレータに渡す不変の設定"""

    model_config = ConfigDict(frozen=True)

    service_key: str = ""
    encode_key: bool = True
    start_date: str = ""
    end_date: str = ""
    retention_days: int = 0
    save_only_filtered: bool = False
    keyword: str = ""
    page_cap: int = 40
    default_keywords: tuple[str, ...] = DEFAULT_KEYWORDS

    @field_validator("start_date", "end_date")
    @classmethod
    def _check_date(cls, value: str) -> str:
        if value:
            datetime.strptime(value, "%Y-%m-%d")
        return value

    @classmethod
    def from_settings(cls, source: Settings | None = None) -> "SyncConfig":
        """環境変数ベースの設定から生成"""
        source = source or settings
        return cls(
            service_key=source.nara_service_key,
            encode_key=source.nara_encode_key,
            start_date=source.sync_start_date,
            end_date=source.sync_end_date,
            retention_days=source.sync_retention_days,
            save_only_filtered=source.sync_save_only_filtered,
            page_cap=source.nara_max_pages,
            default_keywords=tuple(source.nara_default_keywords),
        )

    def configured_window(self, today: date | None = None) -> SyncWindow:
        """
        設定された取得期間

        開始日が未設定なら30日前、終了日が未設定なら今日とする。
        """
        today = today or local_today()
        start = self.start_date or (today - timedelta(days=30)).isoformat()
        end = self.end_date or today.isoformat()
        return SyncWindow(start_date=start, end_date=end)


# =============================================================================
# 取得・同期結果モデル
# =============================================================================


SyncStatus = Literal["idle", "fetching", "success", "error"]


class PageResult(BaseModel):
    """1ページ分の取得結果"""

    page_no: int
    records: list[BidRecord] = Field(default_factory=list)
    total_count: int = 0
    error: str | None = None
    url: str | None = None


class AggregateResult(BaseModel):
    """全ページ集約結果"""

    records: list[BidRecord] = Field(default_factory=list)
    all_records: list[BidRecord] = Field(default_factory=list)
    scanned_count: int = 0
    total_count: int = 0
    pages_fetched: int = 0
    error: str | None = None
    debug_url: str | None = None


class SyncResult(BaseModel):
    """同期実行結果"""

    status: SyncStatus
    message: str = ""
    error: str | None = None
    debug_url: str | None = None
    scanned_count: int = 0
    saved_count: int = 0
    records: list[BidRecord] = Field(default_factory=list)


class ConnectionCheck(BaseModel):
    """接続テスト結果"""

    success: bool
    message: str
