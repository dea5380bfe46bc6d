"""
ストアアダプタ共通定義

SQLite・Supabase の両バックエンドが満たすインターフェースと共通処理を提供する。
"""

from datetime import date, timedelta
from typing import Iterable, Protocol

from nara_bid.core.config import Settings, settings
from nara_bid.core.models import BidKey, BidRecord, ConnectionCheck, local_today


class StoreError(Exception):
    """ストア書き込みエラー"""

    def __init__(self, message: str, operation: str | None = None):
        super().__init__(message)
        self.operation = operation


class BidStore(Protocol):
    """入札公告ストア"""

    def upsert(self, records: Iterable[BidRecord]) -> int: ...

    def get_all(self) -> list[BidRecord]: ...

    def get_latest(self) -> BidRecord | None: ...

    def clear(self) -> None: ...

    def cleanup_older_than(self, days: int, today: date | None = None) -> int: ...

    def toggle_pin(self, key: BidKey, pinned: bool) -> None: ...

    def count(self) -> int: ...

    def check_connection(self) -> ConnectionCheck: ...


def dedupe_by_key(records: Iterable[BidRecord]) -> list[BidRecord]:
    """
    複合キーで重複を除去

    同一キーが複数ある場合は後勝ち。一括upsertで同じ行に2回衝突しないようにする。
    """
    unique: dict[BidKey, BidRecord] = {}
    for record in records:
        unique[record.key] = record
    return list(unique.values())


def retention_cutoff(days: int, today: date | None = None) -> str:
    """保持期限（today - days の YYYYMMDD0000）"""
    today = today or local_today()
    cutoff = today - timedelta(days=days)
    return f"{cutoff.strftime('%Y%m%d')}0000"


def create_store(source: Settings | None = None) -> BidStore:
    """設定に応じてストアを生成"""
    source = source or settings
    if source.store_backend == "supabase":
        from nara_bid.core.supabase_store import SupabaseBidStore

        return SupabaseBidStore.from_settings(source)

    from nara_bid.core.database import SQLiteBidStore, get_db_path

    return SQLiteBidStore(get_db_path(source.database_url))
