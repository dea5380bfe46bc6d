"""
コアモジュール

設定、モデル定義、入札公告ストアを提供する。
"""

from nara_bid.core.analytics import BidSummary, summarize_bids
from nara_bid.core.config import DEFAULT_KEYWORDS, settings
from nara_bid.core.database import SQLiteBidStore, get_connection, get_db_path, init_db
from nara_bid.core.models import (
    AggregateResult,
    BidKey,
    BidRecord,
    ConnectionCheck,
    PageResult,
    SyncConfig,
    SyncResult,
    SyncWindow,
    format_date_for_api,
    local_today,
    parse_db_date,
)
from nara_bid.core.store import BidStore, StoreError, create_store, dedupe_by_key, retention_cutoff

__all__ = [
    "BidSummary",
    "summarize_bids",
    "settings",
    "DEFAULT_KEYWORDS",
    "get_connection",
    "get_db_path",
    "init_db",
    "SQLiteBidStore",
    "BidStore",
    "StoreError",
    "create_store",
    "dedupe_by_key",
    "retention_cutoff",
    "BidKey",
    "BidRecord",
    "SyncWindow",
    "SyncConfig",
    "PageResult",
    "AggregateResult",
    "SyncResult",
    "ConnectionCheck",
    "format_date_for_api",
    "parse_db_date",
    "local_today",
]
