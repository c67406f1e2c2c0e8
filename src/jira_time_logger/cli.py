#!/usr/bin/env python3
"""
Jira Time Logger CLI

使用 Typer + Rich 提供碼錶與工時登記的命令列介面
"""

import asyncio
import logging
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from .activity import ActivityEntry, LOG_ERROR, LOG_WARN
from .clock import Clock, ROUND_MINUTE
from .config import Config
from .context import AppContext
from .duration import format_duration, is_valid_phrase, parse_issue_key
from .errors import ConfigError, ValidationError
from .jira_api import IssueTypeFilter, JiraClient

app = typer.Typer(
    name="jtl",
    help="把經過時間登記成 Jira worklog",
    no_args_is_help=True,
)
console = Console()

_LEVEL_STYLES = {
    LOG_ERROR: "red",
    LOG_WARN: "yellow",
}


def configure_logging(verbose: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def print_activity(entry: ActivityEntry):
    """把 activity log 印到終端機"""
    style = _LEVEL_STYLES.get(entry.level, "green")
    console.print(f"[{style}]{entry.level}[/{style}]: {entry.message}", highlight=False)


def confirm_new_day() -> bool:
    return Confirm.ask("看起來已經是新的一天，要一併重設已登記總時數嗎？", default=False)


def load_context() -> AppContext:
    """載入配置並建立 AppContext，尚未設定時結束程式"""
    try:
        config = Config.load()
    except ConfigError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(1)

    if not config.ready():
        console.print("[yellow]⚠ 尚未設定 Jira 連線，請先執行 [bold]jtl setup[/bold][/yellow]")
        raise typer.Exit(1)

    context = AppContext.create(config, confirm_new_day=confirm_new_day)
    context.activity.subscribe(print_activity)
    return context


def check_subtask_type(context: AppContext, subtask: Optional[str]):
    """確認 sub-task 類型存在於 Jira 的類型清單中"""
    if not subtask:
        return
    types = asyncio.run(context.logger.load_subtask_types())
    if types is None:
        raise typer.Exit(1)
    if subtask not in types.values():
        console.print(f"[red]✗ 未知的 sub-task 類型: {subtask}[/red]")
        console.print(f"可用類型: {', '.join(sorted(types.values()))}")
        raise typer.Exit(1)


def show_summary(context: AppContext, issue: str) -> str:
    """顯示 issue 摘要並回傳大寫的 issue key"""
    try:
        issue_key = parse_issue_key(issue)
    except ValidationError as e:
        context.logger.alert_user(str(e))
        raise typer.Exit(1)
    summary = asyncio.run(context.logger.lookup_summary(issue_key))
    console.print(f"[cyan]{issue_key}[/cyan] {summary}")
    return issue_key


def show_totals(context: AppContext):
    console.print(
        f"已登記: [bold]{format_duration(context.logger.logged_total)}[/bold]  "
        f"今日合計: [bold]{format_duration(context.logger.day_grand_total())}[/bold]"
    )


async def run_clock(clock: Clock):
    """啟動碼錶直到被中斷"""
    clock.start()
    await clock.wait()


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="顯示除錯訊息")):
    """
    Jira Time Logger - 碼錶計時並登記 Jira worklog

    使用方式:
      jtl setup                   # 配置 Jira
      jtl track ABC-123           # 計時，Ctrl+C 停止後登記
      jtl log "1h 30m" ABC-123    # 登記手動輸入的時間
    """
    configure_logging(verbose)


@app.command()
def setup():
    """配置 Jira 連接資訊"""
    console.print(Panel.fit(
        "[bold]Jira 連接配置[/bold]",
        title="⚙️",
    ))

    try:
        config = Config.load()
    except ConfigError as e:
        console.print(f"[yellow]⚠ 無法讀取現有配置，改用預設值: {e}[/yellow]")
        config = Config()

    config.url_base = Prompt.ask("Jira URL", default=config.url_base or None) or ""
    config.url_api = Prompt.ask("API 路徑", default=config.url_api) or config.url_api
    config.username = Prompt.ask("使用者名稱", default=config.username or None) or ""
    new_password = Prompt.ask("密碼（直接 Enter 保留原設定）", password=True, default="")
    if new_password:
        config.password = new_password
    config.main_task_close_transition = Prompt.ask(
        "主 issue 的關閉 transition", default=config.main_task_close_transition
    )
    config.sub_task_close_transition = Prompt.ask(
        "Sub-task 的關閉 transition", default=config.sub_task_close_transition
    )
    config.set("subTaskTypeExclusions", Prompt.ask(
        "排除的 sub-task 類型（以逗號分隔）",
        default=", ".join(config.sub_task_type_exclusions),
    ))

    errors = config.validate_credentials()
    if errors:
        for error in errors:
            console.print(f"[red]✗ {error}[/red]")
        raise typer.Exit(1)

    config.save()
    console.print("\n[green]✓ 配置已保存[/green]")

    console.print("\n測試連接...")
    if JiraClient.from_config(config).test_connection():
        console.print("[green]✓ 連線成功[/green]")
    else:
        console.print("[red]✗ 無法連線到 Jira，請確認 URL 與帳號密碼[/red]")
        raise typer.Exit(1)


@app.command()
def test():
    """測試 Jira 連線"""
    context = load_context()
    if context.jira.test_connection():
        console.print(f"[green]✓ Connected to {context.config.url_base}[/green]")
    else:
        console.print(f"[red]✗ Connection to {context.config.url_base} failed[/red]")
        raise typer.Exit(1)


@app.command()
def types(
    all_types: bool = typer.Option(False, "--all", "-a", help="列出所有類型"),
    subtasks: bool = typer.Option(False, "--subtasks", "-s", help="只列出 sub-task 類型"),
):
    """列出 Jira issue 類型"""
    context = load_context()
    if all_types:
        mode = IssueTypeFilter.ALL
    elif subtasks:
        mode = IssueTypeFilter.SUBTASKS_ONLY
    else:
        mode = IssueTypeFilter.NO_SUBTASKS

    issue_types = context.jira.fetch_issue_types(mode)
    if issue_types is None:
        context.logger.alert_user("Could not load issue types from JIRA!")
        raise typer.Exit(1)

    table = Table(title="Issue 類型")
    table.add_column("ID", style="dim")
    table.add_column("名稱", style="cyan")
    for type_id, name in issue_types.items():
        table.add_row(type_id, name)
    console.print(table)


@app.command()
def summary(issue: str = typer.Argument(..., help="Issue key (e.g. ABC-123)")):
    """顯示 issue 摘要"""
    context = load_context()
    show_summary(context, issue)


@app.command()
def log(
    time: str = typer.Argument(..., help="Jira 時間片語 (e.g. \"1h 30m\")"),
    issue: str = typer.Argument(..., help="Issue key (e.g. ABC-123)"),
    subtask: Optional[str] = typer.Option(None, "--subtask", "-t", help="登記到指定類型的 sub-task"),
    close: bool = typer.Option(False, "--close", "-c", help="登記後 resolve / close"),
    description: str = typer.Option("", "--description", "-d", help="工作描述"),
):
    """登記手動輸入的時間"""
    context = load_context()
    # 格式錯誤時不送出任何請求
    if not is_valid_phrase(time):
        context.logger.alert_user(f"'{time}' does not appear to be a valid JIRA time phrase")
        raise typer.Exit(1)
    issue_key = show_summary(context, issue)
    check_subtask_type(context, subtask)

    success = asyncio.run(context.logger.submit(
        issue_key, subtask=subtask, close=close, description=description, manual_time=time,
    ))
    if not success:
        raise typer.Exit(1)
    show_totals(context)


@app.command()
def track(
    issue: str = typer.Argument(..., help="Issue key (e.g. ABC-123)"),
    subtask: Optional[str] = typer.Option(None, "--subtask", "-t", help="登記到指定類型的 sub-task"),
    close: bool = typer.Option(False, "--close", "-c", help="登記後 resolve / close"),
    description: str = typer.Option("", "--description", "-d", help="工作描述"),
):
    """啟動碼錶，按 Ctrl+C 停止後登記經過時間"""
    context = load_context()
    issue_key = show_summary(context, issue)
    check_subtask_type(context, subtask)

    clock = context.clock
    clock.on_minute(lambda t: console.print(f"[cyan]⏱ {format_duration(t)}[/cyan]"))
    console.print("[dim]計時中，按 Ctrl+C 停止...[/dim]")
    try:
        asyncio.run(run_clock(clock))
    except KeyboardInterrupt:
        pass

    elapsed = clock.get_time(ROUND_MINUTE)
    if elapsed.is_zero():
        console.print("[yellow]沒有可登記的時間[/yellow]")
        return

    if not Confirm.ask(f"登記 {format_duration(elapsed)} 到 {issue_key}？", default=True):
        return

    success = asyncio.run(context.logger.submit(
        issue_key, subtask=subtask, close=close, description=description,
    ))
    if not success:
        raise typer.Exit(1)
    show_totals(context)


if __name__ == "__main__":
    app()
