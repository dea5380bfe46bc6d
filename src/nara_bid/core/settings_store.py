"""
同期設定の永続化

サービスキー、取得期間、保持日数などの同期設定をYAMLファイルに保存・読み込みする。
"""

import logging
from datetime import date
from pathlib import Path

import yaml

from nara_bid.core.config import Settings, settings
from nara_bid.core.models import SyncConfig

logger = logging.getLogger(__name__)


def load_sync_config(path: Path | str | None = None, source: Settings | None = None) -> SyncConfig:
    """
    sync.yml を読み込む

    ファイルが無い場合は環境変数ベースの設定を返す。
    ファイルの値は環境変数の値を上書きする。
    """
    source = source or settings
    path = Path(path or source.sync_config_path)
    base = SyncConfig.from_settings(source)
    if not path.exists():
        return base

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    # 引用符なしの日付はYAMLで date になる
    data = {k: v.isoformat() if isinstance(v, date) else v for k, v in data.items()}

    logger.debug(f"同期設定を読み込みました: {path}")
    return SyncConfig.model_validate({**base.model_dump(), **data})


def save_sync_config(config: SyncConfig, path: Path | str | None = None) -> Path:
    """同期設定を sync.yml に保存"""
    path = Path(path or settings.sync_config_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = config.model_dump()
    data["default_keywords"] = list(config.default_keywords)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(data, f, allow_unicode=True, sort_keys=False)
    logger.debug(f"同期設定を保存しました: {path}")
    return path


def update_sync_config(updates: dict, path: Path | str | None = None) -> SyncConfig:
    """既存の設定に updates を反映して保存"""
    current = load_sync_config(path)
    config = SyncConfig.model_validate({**current.model_dump(), **updates})
    save_sync_config(config, path)
    return config
