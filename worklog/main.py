#!/usr/bin/env python3
import typer
from rich import print
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from pathlib import Path
from typing import Optional

from worklog.storage import (
    WorklogError,
    end_last_task,
    ensure_todays_entry,
    find_unfinished_task,
    read_todays_tasks,
    start_new_task,
    task_start_at,
)
from worklog import utils
from worklog.utils import (
    clock,
    duration_minutes,
    format_duration,
    parse_clock,
    percent,
    smart_ljust,
    smart_truncate,
)

app = typer.Typer()

console = Console()
err_console = Console(stderr=True)


def fail(message: str):
    err_console.print(f"[red]ERROR: {escape(message)}[/red]", highlight=False, soft_wrap=True)
    raise typer.Exit(1)


def resolve_time(at: Optional[str]):
    """--at 给定的时间点，默认现在；不能晚于现在"""
    now = utils.now_local()
    if at is None:
        return now
    at_time = parse_clock(at, now)
    if at_time is None:
        fail(f"时间格式错误: {at}，应为 HH:MM")
    if at_time > now:
        fail("时间不能晚于现在")
    return at_time


def check_not_before_start(worklog, end_at):
    """结束时间不能早于未完成任务的开始时间"""
    offset = find_unfinished_task(worklog.contents, worklog.todays_header)
    if offset is not None and clock(end_at) < task_start_at(worklog.contents, offset):
        fail("结束时间不能早于开始时间")


@app.command("today")
def today(
    log_directory: Path = typer.Argument(..., help="日志根目录"),
):
    """打开本周的日志文件 (没有今天的标题就先加上)"""
    try:
        with ensure_todays_entry(log_directory, utils.now_local()) as worklog:
            path = worklog.path
    except WorklogError as e:
        fail(str(e))

    try:
        status = typer.launch(str(path), wait=True)
    except OSError as e:
        fail(f"无法打开 '{path}': {e}")
    if status != 0:
        fail(f"打开 '{path}' 失败，退出码 {status}")


@app.command("start-task")
def start_task(
    log_directory: Path = typer.Argument(..., help="日志根目录"),
    at: Optional[str] = typer.Option(None, "--at", help="开始时间 hh:mm"),
):
    """结束上一个未完成的任务，并开始一个新任务"""
    start_at = resolve_time(at)
    try:
        with ensure_todays_entry(log_directory, start_at) as worklog:
            check_not_before_start(worklog, start_at)
            worklog = end_last_task(worklog, start_at)
            start_new_task(worklog, start_at)
    except WorklogError as e:
        fail(str(e))

    if worklog.ended_at is not None:
        print(f"[green]已结束上一个任务:[/green] {task_start_at(worklog.contents, worklog.ended_at)} - {clock(start_at)}")
    print(f"[green]已开始任务:[/green] {clock(start_at)}")


@app.command("end-task")
def end_task(
    log_directory: Path = typer.Argument(..., help="日志根目录"),
    at: Optional[str] = typer.Option(None, "--at", help="结束时间 hh:mm"),
):
    """结束今天最后一个未完成的任务"""
    end_at = resolve_time(at)
    try:
        with ensure_todays_entry(log_directory, end_at) as worklog:
            check_not_before_start(worklog, end_at)
            worklog = end_last_task(worklog, end_at)
    except WorklogError as e:
        fail(str(e))

    if worklog.ended_at is None:
        print("[yellow]今天没有正在进行中的任务[/yellow]")
        return
    print(f"[green]已结束当前任务:[/green] {task_start_at(worklog.contents, worklog.ended_at)} - {clock(end_at)}")


@app.command("curr")
def curr(
    log_directory: Path = typer.Argument(..., help="日志根目录"),
):
    """查看当前正在进行的任务"""
    now = utils.now_local()
    try:
        tasks = read_todays_tasks(log_directory, now)
    except WorklogError as e:
        fail(str(e))

    for task in reversed(tasks):
        if task["end"] is None:
            dur_min = duration_minutes(task["start"], clock(now))
            description = escape(task["note"]) or f"{task['start']} 开始的任务"
            print(f"[green]正在进行:[/green] {description}，已持续 {format_duration(dur_min)}")
            return
    print("[yellow]当前没有正在进行的任务[/yellow]")


@app.command("ls")
def view_tasks(
    log_directory: Path = typer.Argument(..., help="日志根目录"),
):
    """今天的任务表格"""
    now = utils.now_local()
    try:
        tasks = read_todays_tasks(log_directory, now)
    except WorklogError as e:
        fail(str(e))

    if not tasks:
        print("[yellow]当天没有任务记录[/yellow]")
        return

    durations = [duration_minutes(t["start"], t["end"] or clock(now)) for t in tasks]
    total_minutes = sum(durations)
    top_minutes = max(durations)

    table = Table(show_header=True, header_style="bold blue")
    table.add_column("No.", width=3)
    table.add_column("Task", width=50)
    table.add_column("Start", width=6)
    table.add_column("End", width=6)
    table.add_column("Duration", width=8)
    table.add_column(format_duration(total_minutes), width=18)

    for idx, (task, dur_min) in enumerate(zip(tasks, durations), 1):
        description = escape(smart_ljust(smart_truncate(task["note"], 50), 50))
        end_str = "[yellow]进行中[/yellow]" if task["end"] is None else task["end"]

        if top_minutes and total_minutes:
            bar_len = max(1, int(dur_min / top_minutes * 10))
            share = percent(dur_min / total_minutes)
        else:
            bar_len = 1
            share = percent(0)
        bar = '[green]' + "▄" * bar_len + '[/]' + "▁" * (10 - bar_len) + f" {share}"

        table.add_row(str(idx), description, task["start"], end_str, format_duration(dur_min), bar)

    console.print(table)


if __name__ == "__main__":
    app()
