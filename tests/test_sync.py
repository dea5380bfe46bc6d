"""
同期オーケストレータのテスト
"""

import asyncio
from datetime import date

import pytest

from nara_bid.core.models import AggregateResult, SyncConfig
from nara_bid.core.store import StoreError
from nara_bid.ingest.sync import SyncOrchestrator
from tests.conftest import make_record

TODAY = date(2025, 3, 15)


class FakeFetcher:
    """fetch_bid_notices の代わりに呼び出しを記録して固定の結果を返す"""

    def __init__(self, result: AggregateResult):
        self.result = result
        self.calls = []

    async def __call__(self, window, service_key, **kwargs):
        self.calls.append((window, service_key, kwargs))
        return self.result


def fetched(*records):
    return AggregateResult(
        records=list(records),
        all_records=list(records),
        scanned_count=len(records),
        total_count=len(records),
        debug_url="https://api.test/?serviceKey=key...",
    )


def config(**overrides):
    values = dict(service_key="key", start_date="2025-01-01", end_date="2025-03-15")
    values.update(overrides)
    return SyncConfig(**values)


def test_incremental_window_starts_at_latest_notice_date(store):
    store.upsert([make_record("A", bid_ntce_dt="202503100930")])
    fetcher = FakeFetcher(fetched())
    orchestrator = SyncOrchestrator(store, config(), fetcher=fetcher)

    asyncio.run(orchestrator.update_latest(today=TODAY))

    window, service_key, kwargs = fetcher.calls[0]
    assert (window.start_date, window.end_date) == ("2025-03-10", "2025-03-15")
    assert service_key == "key"
    assert kwargs["encode_key"] is True


def test_incremental_window_when_latest_is_today(store):
    store.upsert([make_record("A", bid_ntce_dt="202503150800")])
    orchestrator = SyncOrchestrator(store, config(), fetcher=FakeFetcher(fetched()))
    window = orchestrator.incremental_window(today=TODAY)
    assert (window.start_date, window.end_date) == ("2025-03-15", "2025-03-15")


def test_incremental_window_falls_back_to_configured_start(store):
    orchestrator = SyncOrchestrator(store, config(), fetcher=FakeFetcher(fetched()))
    window = orchestrator.incremental_window(today=TODAY)
    assert (window.start_date, window.end_date) == ("2025-01-01", "2025-03-15")


def test_update_latest_saves_and_refreshes(store):
    fetcher = FakeFetcher(fetched(make_record("A"), make_record("B"), make_record("A", bid_ntce_nm="정정")))
    orchestrator = SyncOrchestrator(store, config(), fetcher=fetcher)

    result = asyncio.run(orchestrator.update_latest(today=TODAY))

    assert result.status == "success"
    assert result.saved_count == 2
    assert result.scanned_count == 3
    assert {r.bid_ntce_no for r in result.records} == {"A", "B"}
    assert orchestrator.records == result.records
    assert orchestrator.status == "idle"
    assert orchestrator.last_result is result


def test_update_latest_applies_retention(store):
    store.upsert([make_record("OLD", bid_ntce_dt="202501010000")])
    fetcher = FakeFetcher(fetched(make_record("NEW", bid_ntce_dt="202503140900")))
    orchestrator = SyncOrchestrator(store, config(retention_days=30), fetcher=fetcher)

    result = asyncio.run(orchestrator.update_latest(today=TODAY))

    assert [r.bid_ntce_no for r in result.records] == ["NEW"]


def test_save_only_filtered(store):
    fetcher = FakeFetcher(fetched(
        make_record("EDU", bid_ntce_nm="청소년 진로 캠프"),
        make_record("ROAD", bid_ntce_nm="도로 포장 공사"),
    ))
    orchestrator = SyncOrchestrator(store, config(save_only_filtered=True), fetcher=fetcher)

    result = asyncio.run(orchestrator.update_latest(today=TODAY))

    assert result.saved_count == 1
    assert [r.bid_ntce_no for r in store.get_all()] == ["EDU"]


def test_nothing_new(store):
    store.upsert([make_record("A")])
    orchestrator = SyncOrchestrator(store, config(), fetcher=FakeFetcher(fetched()))
    result = asyncio.run(orchestrator.update_latest(today=TODAY))
    assert result.status == "success"
    assert result.saved_count == 0
    assert len(result.records) == 1


def test_missing_service_key(store):
    fetcher = FakeFetcher(fetched(make_record("A")))
    orchestrator = SyncOrchestrator(store, config(service_key=""), fetcher=fetcher)

    result = asyncio.run(orchestrator.update_latest(today=TODAY))

    assert result.status == "error"
    assert result.error == "サービスキーが必要です"
    assert fetcher.calls == []


def test_fetch_error_keeps_existing_data(store):
    store.upsert([make_record("A")])
    failure = AggregateResult(error="ネットワークエラー: 503", debug_url="https://api.test/?serviceKey=key...")
    orchestrator = SyncOrchestrator(store, config(), fetcher=FakeFetcher(failure))

    result = asyncio.run(orchestrator.update_latest(today=TODAY))

    assert result.status == "error"
    assert result.debug_url == "https://api.test/?serviceKey=key..."
    assert store.count() == 1
    assert orchestrator.status == "idle"


def test_full_reset_requires_confirmation(store):
    store.upsert([make_record("A")])
    fetcher = FakeFetcher(fetched(make_record("B")))
    orchestrator = SyncOrchestrator(store, config(), fetcher=fetcher)

    result = asyncio.run(orchestrator.full_reset(confirmed=False, today=TODAY))

    assert result.status == "idle"
    assert fetcher.calls == []
    assert store.count() == 1


def test_full_reset_replaces_data_over_configured_window(store):
    store.upsert([make_record("A")])
    fetcher = FakeFetcher(fetched(make_record("B"), make_record("C")))
    orchestrator = SyncOrchestrator(store, config(), fetcher=fetcher)

    result = asyncio.run(orchestrator.full_reset(confirmed=True, today=TODAY))

    window = fetcher.calls[0][0]
    assert (window.start_date, window.end_date) == ("2025-01-01", "2025-03-15")
    assert result.status == "success"
    assert {r.bid_ntce_no for r in store.get_all()} == {"B", "C"}


def test_full_reset_with_failing_fetch_leaves_store_empty(store):
    store.upsert([make_record("A"), make_record("B")])
    orchestrator = SyncOrchestrator(store, config(), fetcher=FakeFetcher(AggregateResult(error="JSONパース失敗")))

    result = asyncio.run(orchestrator.full_reset(confirmed=True, today=TODAY))

    assert result.status == "error"
    assert store.count() == 0


class FailingStore:
    """upsert だけ失敗するストア"""

    def __init__(self, inner):
        self.inner = inner

    def __getattr__(self, name):
        return getattr(self.inner, name)

    def upsert(self, records):
        raise StoreError("disk full", operation="upsert")


def test_store_error_becomes_error_result(store):
    orchestrator = SyncOrchestrator(FailingStore(store), config(), fetcher=FakeFetcher(fetched(make_record("A"))))

    result = asyncio.run(orchestrator.update_latest(today=TODAY))

    assert result.status == "error"
    assert result.message.startswith("保存に失敗しました")
    assert result.error == "disk full"


def test_set_pin_refreshes_view(store):
    store.upsert([make_record("A", bid_ntce_dt="202501010000"), make_record("B", bid_ntce_dt="202503010000")])
    orchestrator = SyncOrchestrator(store, config(), fetcher=FakeFetcher(fetched()))
    records = orchestrator.set_pin(make_record("A").key, True)
    assert [r.bid_ntce_no for r in records] == ["A", "B"]


class RaisingFetcher:
    async def __call__(self, window, service_key, **kwargs):
        raise RuntimeError("unexpected")


def test_status_returns_to_idle_after_unexpected_error(store):
    orchestrator = SyncOrchestrator(store, config(), fetcher=RaisingFetcher())

    with pytest.raises(RuntimeError):
        asyncio.run(orchestrator.update_latest(today=TODAY))

    assert orchestrator.status == "idle"


def search_result(matched, scanned):
    return AggregateResult(
        records=list(matched),
        all_records=list(scanned),
        scanned_count=len(scanned),
        total_count=len(scanned),
        debug_url="https://api.test/?serviceKey=key...",
    )


def test_search_saves_everything_and_returns_matches(store):
    road = make_record("A", bid_ntce_nm="도로 포장 공사")
    camp = make_record("B", bid_ntce_nm="진로 캠프 운영")
    fetcher = FakeFetcher(search_result([road], [road, camp]))
    orchestrator = SyncOrchestrator(store, config(), fetcher=fetcher)

    result = asyncio.run(orchestrator.search("도로", today=TODAY))

    assert result.status == "success"
    assert result.message == "検索完了: 2件スキャン、1件該当"
    assert [r.bid_ntce_no for r in result.records] == ["A"]
    assert store.count() == 2
    window, _, kwargs = fetcher.calls[0]
    assert (window.start_date, window.end_date) == ("2025-01-01", "2025-03-15")
    assert kwargs["keyword"] == "도로"
    assert orchestrator.status == "idle"


def test_search_keeps_pins_and_lists_them_first(store):
    store.upsert([make_record("A"), make_record("B")])
    store.toggle_pin(make_record("B").key, True)
    found = [make_record("A"), make_record("B")]
    orchestrator = SyncOrchestrator(store, config(), fetcher=FakeFetcher(search_result(found, found)))

    result = asyncio.run(orchestrator.search("교육", today=TODAY))

    assert [(r.bid_ntce_no, r.is_pinned) for r in result.records] == [("B", True), ("A", False)]
    assert {r.bid_ntce_no for r in store.get_all() if r.is_pinned} == {"B"}


def test_search_without_service_key(store):
    fetcher = FakeFetcher(search_result([], []))
    orchestrator = SyncOrchestrator(store, config(service_key=""), fetcher=fetcher)

    result = asyncio.run(orchestrator.search("교육", today=TODAY))

    assert result.status == "error"
    assert fetcher.calls == []
