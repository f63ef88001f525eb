from datetime import date, datetime, time, timedelta, timezone, tzinfo

__all__ = ["now_utc", "now_local", "local_clock_to_datetime", "to_epoch", "format_hhmm", "format_local_short", "day_after"]


def now_utc() -> datetime:
    """获取当前 UTC 时间"""
    return datetime.now(timezone.utc)


def now_local(tz: tzinfo) -> datetime:
    return now_utc().astimezone(tz)


def local_clock_to_datetime(day: date, hour: int, minute: int, tz: tzinfo) -> datetime:
    """把某一天的本地钟点时间 (HH:MM) 解析成带时区的时间点"""
    return datetime.combine(day, time(hour, minute), tzinfo=tz)


def to_epoch(value: datetime | int | float) -> int:
    """带时区的 datetime 或 epoch 秒 -> epoch 秒

    naive datetime 没有明确的时间点, 直接拒绝。
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            raise ValueError(f"需要带时区的 datetime: {value!r}")
        return int(value.timestamp())
    return int(value)


def format_hhmm(hour: int, minute: int) -> str:
    return f"{hour:02d}:{minute:02d}"


def format_local_short(when: datetime, today: date) -> str:
    """当天只显示 HH:MM, 其他日期显示 DD.MM HH:MM"""
    if when.date() == today:
        return when.strftime("%H:%M")
    return when.strftime("%d.%m %H:%M")


def day_after(day: date) -> date:
    return day + timedelta(days=1)
