"""
データベース管理モジュール

SQLiteデータベースの初期化と入札公告ストア（ローカル）の操作を提供する。
"""

import logging
import sqlite3
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import Generator, Iterable

from nara_bid.core.config import settings
from nara_bid.core.models import BidKey, BidRecord, ConnectionCheck
from nara_bid.core.store import StoreError, dedupe_by_key, retention_cutoff

logger = logging.getLogger(__name__)


# =============================================================================
# DDL（テーブル定義）
# =============================================================================

DDL_STATEMENTS = """
-- bids: 入札公告（公告番号+公告次数で一意）
CREATE TABLE IF NOT EXISTS bids (
    bid_ntce_no TEXT NOT NULL,
    bid_ntce_ord TEXT NOT NULL,
    bid_ntce_nm TEXT NOT NULL DEFAULT '',
    bid_ntce_dt TEXT NOT NULL DEFAULT '',
    ntce_instt_nm TEXT NOT NULL DEFAULT '',
    dminstt_nm TEXT NOT NULL DEFAULT '',
    bid_ntce_bgn_dt TEXT NOT NULL DEFAULT '',
    bid_ntce_end_dt TEXT NOT NULL DEFAULT '',
    prtcpt_psbl_rgn_nm TEXT NOT NULL DEFAULT '',
    bidprc_psbl_indstryty_nm TEXT NOT NULL DEFAULT '',
    bid_ntce_url TEXT NOT NULL DEFAULT '',
    bid_ntce_sttus_nm TEXT NOT NULL DEFAULT '',
    bsns_div_nm TEXT NOT NULL DEFAULT '',
    presmpt_prce TEXT,
    is_pinned INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (bid_ntce_no, bid_ntce_ord)
);

CREATE INDEX IF NOT EXISTS idx_bids_bid_ntce_dt ON bids(bid_ntce_dt);
CREATE INDEX IF NOT EXISTS idx_bids_bid_ntce_nm ON bids(bid_ntce_nm);
"""

# upsert で上書きする列（is_pinned はユーザー操作でのみ変更する）
DATA_COLUMNS = [
    "bid_ntce_no",
    "bid_ntce_ord",
    "bid_ntce_nm",
    "bid_ntce_dt",
    "ntce_instt_nm",
    "dminstt_nm",
    "bid_ntce_bgn_dt",
    "bid_ntce_end_dt",
    "prtcpt_psbl_rgn_nm",
    "bidprc_psbl_indstryty_nm",
    "bid_ntce_url",
    "bid_ntce_sttus_nm",
    "bsns_div_nm",
    "presmpt_prce",
]

UPSERT_SQL = f"""
    INSERT INTO bids ({", ".join(DATA_COLUMNS)}, is_pinned)
    VALUES ({", ".join("?" for _ in DATA_COLUMNS)}, ?)
    ON CONFLICT (bid_ntce_no, bid_ntce_ord) DO UPDATE SET
        {", ".join(f"{col} = excluded.{col}" for col in DATA_COLUMNS[2:])}
"""  # noqa: S608


# =============================================================================
# データベース接続
# =============================================================================


def get_db_path(url: str | None = None) -> Path:
    """データベースファイルのパスを取得"""
    url = url or settings.database_url
    if url.startswith("sqlite:///"):
        path = Path(url.replace("sqlite:///", ""))
        path.parent.mkdir(parents=True, exist_ok=True)
        return path
    raise ValueError(f"Unsupported database URL: {url}")


@contextmanager
def get_connection(db_path: Path | str | None = None) -> Generator[sqlite3.Connection, None, None]:
    """データベース接続を取得（コンテキストマネージャ）"""
    conn = sqlite3.connect(db_path or get_db_path())
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


def init_db(db_path: Path | str | None = None) -> None:
    """データベースを初期化（テーブル作成）"""
    with get_connection(db_path) as conn:
        conn.executescript(DDL_STATEMENTS)
        conn.commit()


def _row_to_record(row: sqlite3.Row) -> BidRecord:
    data = {col: row[col] for col in DATA_COLUMNS}
    data["is_pinned"] = bool(row["is_pinned"])
    return BidRecord(**data)


# =============================================================================
# ストア実装
# =============================================================================


class SQLiteBidStore:
    """
    SQLiteによる入札公告ストア

    書き込み系の失敗は StoreError として呼び出し元に伝播し、
    読み取り系の失敗はログを残して空の結果を返す。
    """

    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)
        init_db(self.db_path)

    def upsert(self, records: Iterable[BidRecord]) -> int:
        """公告をupsert（複合キーで重複除去してから挿入または上書き）"""
        unique = dedupe_by_key(records)
        if not unique:
            return 0
        rows = [
            tuple(getattr(record, col) for col in DATA_COLUMNS) + (int(record.is_pinned),)
            for record in unique
        ]
        try:
            with get_connection(self.db_path) as conn:
                conn.executemany(UPSERT_SQL, rows)
                conn.commit()
        except sqlite3.Error as e:
            logger.error(f"[DB] 公告の保存に失敗: {e}")
            raise StoreError(f"保存に失敗しました: {e}", operation="upsert") from e
        logger.info(f"[DB] {len(unique)}件を保存しました")
        return len(unique)

    def get_all(self) -> list[BidRecord]:
        """全件取得（ピン留め優先、公告日時の降順）"""
        try:
            with get_connection(self.db_path) as conn:
                cursor = conn.execute(
                    "SELECT * FROM bids ORDER BY is_pinned DESC, bid_ntce_dt DESC"
                )
                return [_row_to_record(row) for row in cursor.fetchall()]
        except sqlite3.Error as e:
            logger.error(f"[DB] 公告の取得に失敗: {e}")
            return []

    def get_latest(self) -> BidRecord | None:
        """公告日時が最も新しい1件"""
        try:
            with get_connection(self.db_path) as conn:
                cursor = conn.execute(
                    "SELECT * FROM bids ORDER BY bid_ntce_dt DESC LIMIT 1"
                )
                row = cursor.fetchone()
                return _row_to_record(row) if row else None
        except sqlite3.Error as e:
            logger.error(f"[DB] 最新公告の取得に失敗: {e}")
            return None

    def clear(self) -> None:
        """全件削除"""
        try:
            with get_connection(self.db_path) as conn:
                conn.execute("DELETE FROM bids")
                conn.commit()
        except sqlite3.Error as e:
            logger.error(f"[DB] 全件削除に失敗: {e}")
            raise StoreError(f"削除に失敗しました: {e}", operation="clear") from e

    def cleanup_older_than(self, days: int, today: date | None = None) -> int:
        """
        保持期限より古い公告を削除

        days が0以下の場合は無制限保持とみなし何もしない。

        Returns:
            削除件数
        """
        if days <= 0:
            return 0
        cutoff = retention_cutoff(days, today)
        logger.info(f"[DB] {cutoff} より古い公告を削除 ({days}日)")
        try:
            with get_connection(self.db_path) as conn:
                cursor = conn.execute("DELETE FROM bids WHERE bid_ntce_dt < ?", (cutoff,))
                conn.commit()
                return cursor.rowcount
        except sqlite3.Error as e:
            logger.error(f"[DB] 古い公告の削除に失敗: {e}")
            raise StoreError(f"古い公告の削除に失敗しました: {e}", operation="cleanup") from e

    def toggle_pin(self, key: BidKey, pinned: bool) -> None:
        """ピン留め状態を更新（他の列には触れない）"""
        try:
            with get_connection(self.db_path) as conn:
                conn.execute(
                    "UPDATE bids SET is_pinned = ? WHERE bid_ntce_no = ? AND bid_ntce_ord = ?",
                    (int(pinned), key.bid_ntce_no, key.bid_ntce_ord),
                )
                conn.commit()
        except sqlite3.Error as e:
            logger.error(f"[DB] ピン留め更新に失敗: {e}")
            raise StoreError(f"ピン留めの更新に失敗しました: {e}", operation="toggle_pin") from e

    def count(self) -> int:
        try:
            with get_connection(self.db_path) as conn:
                return conn.execute("SELECT COUNT(*) FROM bids").fetchone()[0]
        except sqlite3.Error as e:
            logger.error(f"[DB] 件数取得に失敗: {e}")
            return 0

    def check_connection(self) -> ConnectionCheck:
        """接続テスト"""
        try:
            with get_connection(self.db_path) as conn:
                count = conn.execute("SELECT COUNT(*) FROM bids").fetchone()[0]
        except sqlite3.Error as e:
            return ConnectionCheck(success=False, message=f"DBエラー: {e}")
        return ConnectionCheck(
            success=True,
            message=f"接続成功（現在 {count}件の公告が保存されています）",
        )

    def stats(self) -> dict:
        """データベースの統計情報を取得"""
        with get_connection(self.db_path) as conn:
            total = conn.execute("SELECT COUNT(*) FROM bids").fetchone()[0]
            pinned = conn.execute("SELECT COUNT(*) FROM bids WHERE is_pinned = 1").fetchone()[0]
            oldest, newest = conn.execute(
                "SELECT MIN(bid_ntce_dt), MAX(bid_ntce_dt) FROM bids"
            ).fetchone()
        return {
            "bids": total,
            "pinned": pinned,
            "oldest": oldest or "-",
            "newest": newest or "-",
        }
