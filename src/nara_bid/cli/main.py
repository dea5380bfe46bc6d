"""
CLI メインモジュール

nara-bid コマンドのエントリーポイント。
"""

import asyncio
import csv
import io
import json
import logging
import sys
from pathlib import Path

import click
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from nara_bid.core import BidKey, BidStore, SyncResult, create_store, settings, summarize_bids
from nara_bid.core.models import SyncConfig
from nara_bid.core.settings_store import load_sync_config, update_sync_config
from nara_bid.ingest import SyncOrchestrator, check_api_connection, run_scheduled_sync
from nara_bid.ingest.scheduled import DEFAULT_REGION
from nara_bid.proposal import ProposalWizard, is_education_bid

console = Console()

EXPORT_COLUMNS = [
    "bid_ntce_no",
    "bid_ntce_ord",
    "bid_ntce_nm",
    "bid_ntce_dt",
    "ntce_instt_nm",
    "dminstt_nm",
    "bid_ntce_bgn_dt",
    "bid_ntce_end_dt",
    "prtcpt_psbl_rgn_nm",
    "bid_ntce_url",
    "presmpt_prce",
    "is_pinned",
]


def setup_logging(level: str = "INFO") -> None:
    """ログ設定"""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _store(ctx: click.Context) -> BidStore:
    source = settings
    if ctx.obj.get("database_url"):
        source = settings.model_copy(update={"database_url": ctx.obj["database_url"]})
    return create_store(source)


def _sync_config(ctx: click.Context) -> SyncConfig:
    return load_sync_config(ctx.obj.get("config_path"))


def _print_sync_result(result: SyncResult) -> None:
    if result.status == "error":
        console.print(f"[red]エラー:[/red] {result.message}")
        if result.debug_url:
            console.print(f"[dim]確認用URL: {result.debug_url}[/dim]")
        return

    console.print(f"[green]✓[/green] {result.message}")
    if result.scanned_count:
        console.print(f"  取得: {result.scanned_count}件 / 保存: {result.saved_count}件")


@click.group()
@click.option("--debug", is_flag=True, help="デバッグモードを有効化")
@click.option("--database-url", envvar="DATABASE_URL", default=None, help="データベースURL")
@click.option(
    "--config-path",
    type=click.Path(path_type=Path),
    default=None,
    help="同期設定ファイル（既定: config/sync.yml）",
)
@click.pass_context
def cli(ctx: click.Context, debug: bool, database_url: str | None, config_path: Path | None) -> None:
    """入札公告同期・提案書作成 CLI"""
    ctx.ensure_object(dict)
    ctx.obj["database_url"] = database_url
    ctx.obj["config_path"] = config_path
    log_level = "DEBUG" if debug else settings.log_level
    setup_logging(log_level)


# =============================================================================
# db コマンドグループ
# =============================================================================


@cli.group()
def db() -> None:
    """データベース管理"""
    pass


@db.command("init")
@click.pass_context
def db_init(ctx: click.Context) -> None:
    """データベースを初期化"""
    try:
        _store(ctx)
        console.print("[green]✓[/green] データベースを初期化しました")
    except Exception as e:
        console.print(f"[red]エラー:[/red] {e}")
        sys.exit(1)


@db.command("stats")
@click.pass_context
def db_stats(ctx: click.Context) -> None:
    """データベースの統計情報を表示"""
    try:
        store = _store(ctx)
        stats = store.stats() if hasattr(store, "stats") else {"bids": store.count()}
        table = Table(title="データベース統計")
        table.add_column("項目", style="cyan")
        table.add_column("値", justify="right", style="green")

        for name, value in stats.items():
            table.add_row(name, str(value))

        console.print(table)
    except Exception as e:
        console.print(f"[red]エラー:[/red] {e}")
        console.print("[yellow]ヒント:[/yellow] `nara-bid db init` を実行してください")
        sys.exit(1)


# =============================================================================
# sync コマンドグループ
# =============================================================================


@cli.group()
def sync() -> None:
    """入札公告の同期"""
    pass


@sync.command("update")
@click.pass_context
def sync_update(ctx: click.Context) -> None:
    """最新公告の日付から今日までを取得（増分更新）"""
    try:
        orchestrator = SyncOrchestrator(_store(ctx), _sync_config(ctx))
        result = asyncio.run(orchestrator.update_latest())
    except Exception as e:
        console.print(f"[red]エラー:[/red] {e}")
        sys.exit(1)

    _print_sync_result(result)
    if result.status == "error":
        sys.exit(1)


@sync.command("reset")
@click.confirmation_option(prompt="全データを削除して取り直します。よろしいですか?")
@click.pass_context
def sync_reset(ctx: click.Context) -> None:
    """ストアを空にして設定期間を取り直す"""
    try:
        orchestrator = SyncOrchestrator(_store(ctx), _sync_config(ctx))
        result = asyncio.run(orchestrator.full_reset(confirmed=True))
    except Exception as e:
        console.print(f"[red]エラー:[/red] {e}")
        sys.exit(1)

    _print_sync_result(result)
    if result.status == "error":
        sys.exit(1)


@sync.command("search")
@click.option("--keyword", "-k", default="", help="公告名キーワード（未指定なら既定キーワード）")
@click.option("--limit", "-n", default=20, help="表示件数")
@click.pass_context
def sync_search(ctx: click.Context, keyword: str, limit: int) -> None:
    """設定期間をキーワードで検索（取得した全件を保存）"""
    try:
        orchestrator = SyncOrchestrator(_store(ctx), _sync_config(ctx))
        result = asyncio.run(orchestrator.search(keyword))
    except Exception as e:
        console.print(f"[red]エラー:[/red] {e}")
        sys.exit(1)

    _print_sync_result(result)
    if result.status == "error":
        sys.exit(1)

    table = Table()
    table.add_column("", width=2)
    table.add_column("公告番号", style="cyan")
    table.add_column("公告名")
    table.add_column("公告日", justify="right")
    for r in result.records[:limit]:
        table.add_row(
            "★" if r.is_pinned else "",
            f"{r.bid_ntce_no}-{r.bid_ntce_ord}",
            r.bid_ntce_nm,
            r.notice_date or "-",
        )
    console.print(table)


@sync.command("scheduled")
@click.option("--region", default=DEFAULT_REGION, help="参加可能地域")
@click.option("--lookback-days", default=30, help="ストアが空の場合に遡る日数")
@click.option("--pages", default=10, help="取得ページ数の上限")
@click.pass_context
def sync_scheduled(ctx: click.Context, region: str, lookback_days: int, pages: int) -> None:
    """定期同期（地域で絞り込んで保存）"""
    try:
        config = _sync_config(ctx)
        if not config.service_key:
            raise click.UsageError("サービスキーが設定されていません（NARA_SERVICE_KEY）")
        result = asyncio.run(run_scheduled_sync(
            _store(ctx),
            config.service_key,
            region=region,
            encode_key=config.encode_key,
            lookback_days=lookback_days,
            page_cap=pages,
        ))
    except Exception as e:
        console.print(f"[red]エラー:[/red] {e}")
        sys.exit(1)

    _print_sync_result(result)
    if result.status == "error":
        sys.exit(1)


# =============================================================================
# bids コマンドグループ
# =============================================================================


@cli.group()
def bids() -> None:
    """保存済み公告の操作"""
    pass


@bids.command("list")
@click.option("--keyword", "-k", default="", help="公告名キーワード")
@click.option("--education", is_flag=True, help="教育系の公告のみ")
@click.option("--limit", "-n", default=20, help="表示件数")
@click.option("--json", "output_json", is_flag=True, help="JSON形式で出力")
@click.pass_context
def bids_list(ctx: click.Context, keyword: str, education: bool, limit: int, output_json: bool) -> None:
    """公告一覧を表示（ピン留め優先、新しい順）"""
    try:
        records = _store(ctx).get_all()
        if keyword:
            records = [r for r in records if keyword in r.bid_ntce_nm]
        if education:
            records = [r for r in records if is_education_bid(r)]
        total = len(records)
        records = records[:limit]

        if output_json:
            data = {
                "total": total,
                "items": [r.model_dump(mode="json", by_alias=True) for r in records],
            }
            console.print_json(json.dumps(data, ensure_ascii=False))
            return

        console.print(f"[dim]{total}件中 {len(records)}件を表示[/dim]\n")
        table = Table()
        table.add_column("", width=2)
        table.add_column("公告番号", style="cyan")
        table.add_column("公告名")
        table.add_column("公告機関")
        table.add_column("公告日", justify="right")
        for r in records:
            table.add_row(
                "★" if r.is_pinned else "",
                f"{r.bid_ntce_no}-{r.bid_ntce_ord}",
                r.bid_ntce_nm,
                r.ntce_instt_nm,
                r.notice_date or "-",
            )
        console.print(table)
    except Exception as e:
        console.print(f"[red]エラー:[/red] {e}")
        sys.exit(1)


@bids.command("stats")
@click.option("--top", default=5, help="公告機関の表示件数")
@click.pass_context
def bids_stats(ctx: click.Context, top: int) -> None:
    """公告機関・公告状態・公告日ごとの件数を表示"""
    try:
        summary = summarize_bids(_store(ctx).get_all(), top_n=top)
        if not summary.total:
            console.print("[dim]保存済みの公告がありません[/dim]")
            return

        sections = [
            ("公告機関 上位", "公告機関", summary.top_institutions),
            ("公告状態", "状態", summary.status_counts),
            ("日別公告数", "公告日", summary.daily_counts),
        ]
        for title, label, rows in sections:
            table = Table(title=title)
            table.add_column(label, style="cyan")
            table.add_column("件数", justify="right", style="green")
            for name, count in rows:
                table.add_row(name, str(count))
            console.print(table)
    except Exception as e:
        console.print(f"[red]エラー:[/red] {e}")
        sys.exit(1)


@bids.command("pin")
@click.argument("bid_ntce_no")
@click.argument("bid_ntce_ord", default="00")
@click.pass_context
def bids_pin(ctx: click.Context, bid_ntce_no: str, bid_ntce_ord: str) -> None:
    """公告をピン留め"""
    try:
        _store(ctx).toggle_pin(BidKey(bid_ntce_no, bid_ntce_ord), True)
        console.print(f"[green]✓[/green] ピン留めしました: {bid_ntce_no}-{bid_ntce_ord}")
    except Exception as e:
        console.print(f"[red]エラー:[/red] {e}")
        sys.exit(1)


@bids.command("unpin")
@click.argument("bid_ntce_no")
@click.argument("bid_ntce_ord", default="00")
@click.pass_context
def bids_unpin(ctx: click.Context, bid_ntce_no: str, bid_ntce_ord: str) -> None:
    """ピン留めを解除"""
    try:
        _store(ctx).toggle_pin(BidKey(bid_ntce_no, bid_ntce_ord), False)
        console.print(f"[green]✓[/green] ピン留めを解除しました: {bid_ntce_no}-{bid_ntce_ord}")
    except Exception as e:
        console.print(f"[red]エラー:[/red] {e}")
        sys.exit(1)


@bids.command("cleanup")
@click.option("--days", type=int, default=None, help="保持日数（既定は同期設定の値）")
@click.pass_context
def bids_cleanup(ctx: click.Context, days: int | None) -> None:
    """保持期限より古い公告を削除"""
    try:
        days = days if days is not None else _sync_config(ctx).retention_days
        if days <= 0:
            console.print("[dim]保持日数が0のため削除しません[/dim]")
            return
        deleted = _store(ctx).cleanup_older_than(days)
        if deleted < 0:
            console.print(f"[green]✓[/green] {days}日より古い公告を削除しました")
        else:
            console.print(f"[green]✓[/green] {deleted}件を削除しました（{days}日より古い公告）")
    except Exception as e:
        console.print(f"[red]エラー:[/red] {e}")
        sys.exit(1)


@bids.command("export")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["csv", "json"]),
    default="csv",
    help="出力形式",
)
@click.option("--output", "-o", type=click.Path(path_type=Path), help="出力ファイル")
@click.pass_context
def bids_export(ctx: click.Context, output_format: str, output: Path | None) -> None:
    """保存済み公告をエクスポート"""
    try:
        records = _store(ctx).get_all()

        if output_format == "json":
            data = [r.model_dump(mode="json", by_alias=True) for r in records]
            content = json.dumps(data, ensure_ascii=False, indent=2)
        else:
            buffer = io.StringIO()
            writer = csv.writer(buffer)
            writer.writerow(EXPORT_COLUMNS)
            for r in records:
                row = r.model_dump()
                writer.writerow(["" if row[col] is None else row[col] for col in EXPORT_COLUMNS])
            content = buffer.getvalue()

        if output:
            output.write_text(content, encoding="utf-8")
            console.print(f"[green]✓[/green] {output} に保存しました ({len(records)}件)")
        else:
            click.echo(content)
    except Exception as e:
        console.print(f"[red]エラー:[/red] {e}")
        sys.exit(1)


# =============================================================================
# api コマンドグループ
# =============================================================================


@cli.group()
def api() -> None:
    """入札公告APIの確認"""
    pass


@api.command("test")
@click.option("--key", default=None, help="サービスキー（既定は同期設定の値）")
@click.option("--encode/--no-encode", default=None, help="サービスキーをURLエンコードするか")
@click.pass_context
def api_test(ctx: click.Context, key: str | None, encode: bool | None) -> None:
    """APIとデータベースの接続テスト"""
    try:
        config = _sync_config(ctx)
        key = key or config.service_key
        encode = config.encode_key if encode is None else encode

        db_check = _store(ctx).check_connection()
        mark = "[green]✓[/green]" if db_check.success else "[red]✗[/red]"
        console.print(f"{mark} DB: {db_check.message}")

        if not key:
            console.print("[red]✗[/red] API: サービスキーが設定されていません")
            sys.exit(1)

        api_check = asyncio.run(check_api_connection(key, encode))
        mark = "[green]✓[/green]" if api_check.success else "[red]✗[/red]"
        console.print(f"{mark} API: {api_check.message}")
        if not (db_check.success and api_check.success):
            sys.exit(1)
    except Exception as e:
        console.print(f"[red]エラー:[/red] {e}")
        sys.exit(1)


# =============================================================================
# config コマンドグループ
# =============================================================================


@cli.group("config")
def config_group() -> None:
    """同期設定の管理"""
    pass


@config_group.command("show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """現在の同期設定を表示"""
    try:
        config = _sync_config(ctx)
        table = Table(title="同期設定")
        table.add_column("キー", style="cyan")
        table.add_column("値")
        for name, value in config.model_dump().items():
            if name == "service_key" and value:
                value = f"{value[:10]}..."
            elif isinstance(value, tuple):
                value = ", ".join(value)
            table.add_row(name, str(value))
        console.print(table)
    except Exception as e:
        console.print(f"[red]エラー:[/red] {e}")
        sys.exit(1)


def _parse_config_value(key: str, raw: str):
    if key not in SyncConfig.model_fields:
        raise click.BadParameter(f"不明な設定キー: {key}")
    annotation = SyncConfig.model_fields[key].annotation
    if annotation is str:
        return raw
    if key == "default_keywords":
        return [k.strip() for k in raw.split(",") if k.strip()]
    return yaml.safe_load(raw)


@config_group.command("set")
@click.argument("key")
@click.argument("value")
@click.pass_context
def config_set(ctx: click.Context, key: str, value: str) -> None:
    """同期設定を変更（例: config set retention_days 30）"""
    try:
        update_sync_config({key: _parse_config_value(key, value)}, ctx.obj.get("config_path"))
        console.print(f"[green]✓[/green] {key} を更新しました")
    except Exception as e:
        console.print(f"[red]エラー:[/red] {e}")
        sys.exit(1)


# =============================================================================
# proposal コマンドグループ
# =============================================================================


@cli.group()
def proposal() -> None:
    """提案書ウィザード"""
    pass


@proposal.command("draft")
@click.argument("bid_ntce_no")
@click.argument("bid_ntce_ord", default="00")
@click.option("--strategy", "strategy_id", default=None, help="戦略ID（既定は評価が最も高い戦略）")
@click.pass_context
def proposal_draft(ctx: click.Context, bid_ntce_no: str, bid_ntce_ord: str, strategy_id: str | None) -> None:
    """保存済みの公告から提案書の草案を作成"""
    try:
        key = BidKey(bid_ntce_no, bid_ntce_ord)
        bid = next((r for r in _store(ctx).get_all() if r.key == key), None)
        if bid is None:
            raise click.ClickException(f"公告が見つかりません: {bid_ntce_no}-{bid_ntce_ord}")

        wizard = ProposalWizard()
        result = asyncio.run(wizard.run_from_bid(bid, strategy_id))

        console.print(f"[bold cyan]{result.analysis.program_name}[/bold cyan]")
        console.print(f"  発注機関: {result.analysis.client_name}")
        console.print(f"  戦略: {result.strategy.title}")
        console.print()

        for slide in result.slides:
            console.print(f"[bold]#{slide.id} {slide.title}[/bold] [dim]({slide.type})[/dim]")
            console.print(slide.content)
            console.print()

        assessment = result.assessment
        table = Table(title="品質評価")
        table.add_column("項目", style="cyan")
        table.add_column("スコア", justify="right", style="green")
        table.add_row("要件充足", str(assessment.compliance_score))
        table.add_row("講師専門性", str(assessment.instructor_expertise_score))
        table.add_row("業種適合", str(assessment.industry_match_score))
        table.add_section()
        table.add_row("[bold]総合[/bold]", str(assessment.total_score))
        console.print(table)
        console.print(assessment.overall_comment)
    except Exception as e:
        console.print(f"[red]エラー:[/red] {e}")
        sys.exit(1)


# =============================================================================
# エントリーポイント
# =============================================================================


def main() -> None:
    """CLIエントリーポイント"""
    cli()


if __name__ == "__main__":
    main()
