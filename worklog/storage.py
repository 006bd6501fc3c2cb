import os
import re
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import BinaryIO, List, Optional

from worklog.utils import clock, smart_ljust, weekday

EXTENSION = '.worklog'
PLACEHOLDER = b'__:__'
HEADER_RULE = '=' * 20
# 'HH:MM - ' 的宽度；占位符前第 TASK_PREFIX_WIDTH + 1 个字节必须是换行
TASK_PREFIX_WIDTH = len('00:00 - ')

CLOCK = rb"(?:[01]\d|2[0-3]):[0-5]\d"
TASK_LINE = re.compile(rb"^(" + CLOCK + rb") - (" + CLOCK + rb"|__:__)([^\n]*)$", re.MULTILINE)


class WorklogError(Exception):
    """读写工作日志失败，由命令行入口统一处理"""

    def __init__(self, message: str, path: Optional[Path] = None, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.path = path
        self.cause = cause

    def __str__(self):
        text = self.message
        if self.path is not None:
            text = f"{text} '{self.path}'"
        if self.cause is not None:
            text = f"{text}: {self.cause}"
        return text


class Worklog:
    """本周日志文件的句柄：路径、读写打开的文件、内容快照、今天的标题"""

    def __init__(self, path: Path, file: BinaryIO, contents: bytes, todays_header: str):
        self.path = path
        self.file = file
        self.contents = contents
        self.todays_header = todays_header
        # end_last_task 回写过的占位符偏移
        self.ended_at = None

    def close(self):
        self.file.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


def week_start(day: date) -> date:
    """本周起始日：今天或之前最近的周日"""
    days_since_sunday = (day.weekday() + 1) % 7  # 0=Monday, 6=Sunday
    return day - timedelta(days=days_since_sunday)

def worklog_path(directory: Path, now: datetime) -> Path:
    start = week_start(now.date())
    month_dir = Path(directory) / start.strftime('%Y-%m (%B %Y)')
    return month_dir / f"{start.strftime('%Y-%m-%d')}{EXTENSION}"

def todays_header(now: datetime) -> str:
    return f"{smart_ljust(weekday(now), 10)}{now.strftime('%Y-%m-%d')}\n{HEADER_RULE}"


def ensure_log_directory(directory: Path) -> Path:
    directory = Path(directory)
    if not directory.exists():
        raise WorklogError("日志目录不存在", directory)
    return directory

def _read_all(file: BinaryIO, path: Path) -> bytes:
    try:
        file.seek(0)
        return file.read()
    except OSError as e:
        raise WorklogError("无法读取文件", path, e)

def _append(file: BinaryIO, path: Path, data: bytes, what: str):
    try:
        file.seek(0, os.SEEK_END)
        file.write(data)
        file.flush()
    except OSError as e:
        raise WorklogError(f"无法写入{what}", path, e)


def ensure_todays_entry(directory: Path, now: datetime) -> Worklog:
    """定位本周日志文件，必要时创建，并保证今天的标题存在"""
    directory = ensure_log_directory(directory)
    path = worklog_path(directory, now)

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise WorklogError("无法创建月份目录", path.parent, e)

    try:
        # 'r+b' 不会创建文件
        if not path.exists():
            path.touch()
        file = open(path, 'r+b')
    except OSError as e:
        raise WorklogError("无法打开文件", path, e)

    try:
        contents = _read_all(file, path)
        header = todays_header(now)
        if header.encode() not in contents:
            _append(file, path, f"{header}\n\n".encode(), "今天的标题")
            contents = _read_all(file, path)
    except WorklogError:
        file.close()
        raise

    return Worklog(path, file, contents, header)


def start_new_task(worklog: Worklog, now: datetime):
    """追加一行新任务 'HH:MM - __:__'，和前面的内容之间空一行"""
    output = b''
    if not worklog.contents.endswith(b'\n\n'):
        if not worklog.contents.endswith(b'\n'):
            output += b'\n'
        output += b'\n'

    output += clock(now).encode() + b' - ' + PLACEHOLDER + b'\n'
    _append(worklog.file, worklog.path, output, "新任务")


def find_unfinished_task(contents: bytes, header: str) -> Optional[int]:
    """今天最后一个未结束任务占位符的字节偏移，没有则返回 None"""
    header_offset = contents.rfind(header.encode())
    if header_offset < 0:
        raise WorklogError("文件中找不到今天的标题")

    end = len(contents)
    while True:
        offset = contents.rfind(PLACEHOLDER, 0, end)
        if offset < 0 or offset <= header_offset:
            return None

        # 占位符不在 'HH:MM - ' 之后的行里，只是正文里的文字
        line_start = offset - TASK_PREFIX_WIDTH - 1
        if line_start < 0 or contents[line_start:line_start + 1] != b'\n':
            end = offset
            continue

        return offset


def task_start_at(contents: bytes, offset: int) -> str:
    """占位符所在任务行的开始时间"""
    start = offset - TASK_PREFIX_WIDTH
    return contents[start:start + 5].decode()


def end_last_task(worklog: Worklog, now: datetime) -> Worklog:
    """把今天最后一个 '__:__' 原地改成结束时间，内容快照不会刷新"""
    offset = find_unfinished_task(worklog.contents, worklog.todays_header)
    if offset is None:
        return worklog

    try:
        worklog.file.seek(offset)
        worklog.file.write(clock(now).encode())
        worklog.file.flush()
    except OSError as e:
        raise WorklogError("无法写入结束时间", worklog.path, e)
    worklog.ended_at = offset
    return worklog


def read_todays_tasks(directory: Path, now: datetime) -> List[dict]:
    """只读地解析今天的任务行，不创建任何文件"""
    directory = ensure_log_directory(directory)
    path = worklog_path(directory, now)
    if not path.exists():
        return []

    try:
        with open(path, 'rb') as f:
            contents = f.read()
    except OSError as e:
        raise WorklogError("无法读取文件", path, e)

    header = todays_header(now).encode()
    header_offset = contents.rfind(header)
    if header_offset < 0:
        return []

    section_start = header_offset + len(header)
    # 下一天的标题之后不算今天
    next_rule = contents.find(b'\n' + HEADER_RULE.encode(), section_start)
    section_end = len(contents)
    if next_rule >= 0:
        section_end = contents.rfind(b'\n', section_start, next_rule) + 1

    tasks = []
    for match in TASK_LINE.finditer(contents, section_start, section_end):
        end = match.group(2)
        tasks.append({
            "start": match.group(1).decode(),
            "end": None if end == PLACEHOLDER else end.decode(),
            "note": match.group(3).decode('utf-8', errors='replace').strip(),
            "offset": match.start(2),
        })
    return tasks
