"""
同期設定の永続化のテスト
"""

import pytest
import yaml
from pydantic import ValidationError

from nara_bid.core.config import Settings
from nara_bid.core.models import SyncConfig
from nara_bid.core.settings_store import load_sync_config, save_sync_config, update_sync_config


def test_missing_file_uses_environment_settings(tmp_path):
    source = Settings(nara_service_key="env-key", sync_retention_days=7)
    config = load_sync_config(tmp_path / "sync.yml", source=source)
    assert config.service_key == "env-key"
    assert config.retention_days == 7


def test_file_values_override_environment(tmp_path):
    path = tmp_path / "sync.yml"
    path.write_text(yaml.safe_dump({"retention_days": 30, "keyword": "코딩"}, allow_unicode=True), encoding="utf-8")

    config = load_sync_config(path, source=Settings(nara_service_key="env-key"))

    assert config.retention_days == 30
    assert config.keyword == "코딩"
    assert config.service_key == "env-key"


def test_save_then_load(tmp_path):
    path = tmp_path / "nested" / "sync.yml"
    config = SyncConfig(service_key="k", start_date="2025-01-01", default_keywords=("교육", "연수"))

    save_sync_config(config, path)

    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    assert data["default_keywords"] == ["교육", "연수"]
    assert load_sync_config(path) == config


def test_update_merges_into_existing_file(tmp_path):
    path = tmp_path / "sync.yml"
    save_sync_config(SyncConfig(service_key="k", retention_days=10), path)

    updated = update_sync_config({"save_only_filtered": True}, path)

    assert updated.service_key == "k"
    assert updated.retention_days == 10
    assert updated.save_only_filtered is True
    assert load_sync_config(path).save_only_filtered is True


def test_malformed_date_is_rejected(tmp_path):
    with pytest.raises(ValidationError):
        SyncConfig(start_date="2025/01/01")
    with pytest.raises(ValidationError):
        update_sync_config({"end_date": "20250101"}, tmp_path / "sync.yml")


def test_configured_window_defaults():
    from datetime import date

    window = SyncConfig().configured_window(today=date(2025, 3, 31))
    assert (window.start_date, window.end_date) == ("2025-03-01", "2025-03-31")


def test_unquoted_yaml_dates_are_loaded_as_strings(tmp_path):
    path = tmp_path / "sync.yml"
    path.write_text("service_key: k\nstart_date: 2025-01-01\nend_date: 2025-02-28\n", encoding="utf-8")

    config = load_sync_config(path, source=Settings())

    assert config.start_date == "2025-01-01"
    assert config.end_date == "2025-02-28"
    assert update_sync_config({"retention_days": 5}, path).start_date == "2025-01-01"
