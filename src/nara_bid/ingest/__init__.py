"""
収集（Ingest）モジュール

入札公告APIからデータを取得し、正規化してストアと同期する。
"""

from nara_bid.ingest.aggregator import fetch_all, fetch_bid_notices, pages_to_fetch
from nara_bid.ingest.filters import filter_by_region, filter_by_title, matches_any_keyword
from nara_bid.ingest.nara_client import (
    NaraAPIError,
    NaraClient,
    check_api_connection,
    mask_service_key,
    parse_payload,
    prepare_service_key,
)
from nara_bid.ingest.normalizer import extract_items, normalize_bid, normalize_bids, repair_url
from nara_bid.ingest.scheduled import run_scheduled_sync
from nara_bid.ingest.sync import SyncOrchestrator

__all__ = [
    "NaraClient",
    "NaraAPIError",
    "check_api_connection",
    "prepare_service_key",
    "mask_service_key",
    "parse_payload",
    "normalize_bid",
    "normalize_bids",
    "extract_items",
    "repair_url",
    "filter_by_title",
    "filter_by_region",
    "matches_any_keyword",
    "fetch_all",
    "fetch_bid_notices",
    "pages_to_fetch",
    "SyncOrchestrator",
    "run_scheduled_sync",
]
