from datetime import datetime, timedelta
from typing import Optional

from wcwidth import wcswidth


def now_local() -> datetime:
    return datetime.now().replace(second=0, microsecond=0)

def clock(dt: datetime) -> str:
    """24小时制 HH:MM，固定5个字符"""
    return dt.strftime('%H:%M')

def weekday(dt: datetime) -> str:
    """返回完整的星期几名称，如 'Monday'"""
    return dt.strftime('%A')

def parse_clock(text: str, now: datetime) -> Optional[datetime]:
    """把 HH:MM 解析为今天的时间点，格式不对返回 None"""
    parts = text.strip().split(':')
    if len(parts) != 2 or not all(len(p) == 2 and p.isdigit() for p in parts):
        return None
    hour, minute = int(parts[0]), int(parts[1])
    if hour > 23 or minute > 59:
        return None
    return now.replace(hour=hour, minute=minute, second=0, microsecond=0)

def duration_minutes(start: str, end: str) -> int:
    """两个 HH:MM 之间的分钟数，跨过午夜按第二天算"""
    start_dt = datetime.strptime(start, '%H:%M')
    end_dt = datetime.strptime(end, '%H:%M')
    if end_dt < start_dt:
        end_dt += timedelta(days=1)
    return int((end_dt - start_dt).total_seconds() / 60)

def format_duration(minutes):
    hours = int(minutes) // 60
    mins = int(minutes) % 60
    return f"{hours}h{mins:02d}m"

def smart_ljust(text, width):
    pad_len = width - wcswidth(text)
    return text + ' ' * max(0, pad_len)

def smart_truncate(text, max_width):
    """根据显示宽度智能截断，末尾加..."""
    text = text.replace('\n', '')
    text = text.replace('\r', '')
    if wcswidth(text) <= max_width:
        return text

    truncated = ''
    current_width = 0

    for char in text:
        char_width = wcswidth(char)
        if current_width + char_width > max_width - 3:  # 留出3列给...
            break
        truncated += char
        current_width += char_width

    return truncated + '...'

def percent(floatValue):
    """格式化百分比，保留两位小数"""
    return f"{floatValue:.2%}"
