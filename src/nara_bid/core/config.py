"""
設定管理モジュール

環境変数と設定ファイルからの設定読み込みを管理する。
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# 教育・コンサルティング系の既定キーワード（件名に対する部分一致）
DEFAULT_KEYWORDS: tuple[str, ...] = (
    "교육",
    "강의",
    "컨설팅",
    "HRD",
    "연수",
    "워크숍",
    "세미나",
    "진로",
    "취업",
    "캠프",
)


class Settings(BaseSettings):
    """アプリケーション設定"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # データベース
    database_url: str = Field(
        default="sqlite:///data/nara_bid.db",
        description="データベース接続URL",
    )
    store_backend: Literal["sqlite", "supabase"] = Field(
        default="sqlite",
        description="保存先（sqlite / supabase）",
    )

    # ログ
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="ログレベル",
    )

    # 나라장터 API設定
    nara_api_url: str = Field(
        default="https://apis.data.go.kr/1230000/ao/PubDataOpnStdService/getDataSetOpnStdBidPblancInfo",
        description="入札公告APIエンドポイント",
    )
    nara_service_key: str = Field(
        default="",
        description="data.go.kr サービスキー",
    )
    nara_encode_key: bool = Field(
        default=True,
        description="サービスキーをURLエンコードするか（エンコード済みキーの場合はFalse）",
    )
    nara_page_size: int = Field(
        default=50,
        description="1ページあたりの取得件数",
    )
    nara_max_pages: int = Field(
        default=40,
        description="1回の取得で読むページ数の上限",
    )
    nara_max_concurrency: int = Field(
        default=10,
        description="並列ページ取得数の上限（0で無制限）",
    )
    nara_request_timeout: float = Field(
        default=30.0,
        description="リクエストタイムアウト（秒）",
    )
    nara_default_keywords: list[str] = Field(
        default_factory=lambda: list(DEFAULT_KEYWORDS),
        description="キーワード未指定時に適用する既定フィルタ（環境変数ではJSON配列）",
    )

    # 同期設定
    sync_start_date: str = Field(
        default="",
        description="既定の取得開始日（YYYY-MM-DD、空なら30日前）",
    )
    sync_end_date: str = Field(
        default="",
        description="既定の取得終了日（YYYY-MM-DD、空なら今日）",
    )
    sync_retention_days: int = Field(
        default=0,
        description="保持日数（0以下で無制限）",
    )
    sync_save_only_filtered: bool = Field(
        default=False,
        description="関連キーワードに一致する公告のみ保存",
    )
    sync_config_path: str = Field(
        default="config/sync.yml",
        description="永続化された同期設定ファイル",
    )

    # Supabase設定
    supabase_url: str | None = Field(default=None)
    supabase_key: str | None = Field(default=None)
    supabase_table: str = Field(default="bids")

    # タイムゾーン
    timezone: str = Field(
        default="Asia/Seoul",
        description="「今日」の判定に使うタイムゾーン",
    )

    @property
    def data_dir(self) -> Path:
        """データディレクトリのパス"""
        return Path("data")

    @property
    def config_dir(self) -> Path:
        """設定ディレクトリのパス"""
        return Path("config")


# グローバル設定インスタンス
settings = Settings()
