"""把提醒渲染成发给用户的文本 (HTML 模式，用户输入的任务描述一律转义)"""

import html
from datetime import datetime, tzinfo

from eslatma.config import messages
from eslatma.datamodel import Reminder
from eslatma.utils import format_local_short


def render_created(reminder: Reminder, tz: tzinfo, tomorrow: bool = False) -> str:
    template = messages.CREATED_TOMORROW if tomorrow else messages.CREATED
    return template.format(
        time=reminder.fire_at_local(tz).strftime("%H:%M"),
        task=html.escape(reminder.task),
    )


def render_pending(reminders: list[Reminder], tz: tzinfo, now: datetime) -> str:
    if not reminders:
        return messages.PENDING_EMPTY

    today = now.astimezone(tz).date()
    lines = [
        messages.PENDING_LINE.format(
            time=format_local_short(r.fire_at_local(tz), today),
            task=html.escape(r.task),
            id=r.id,
        )
        for r in reminders
    ]
    return messages.PENDING_HEADER + "".join(lines)


def render_delivery(reminder: Reminder, tz: tzinfo) -> str:
    return messages.DELIVERY.format(
        task=html.escape(reminder.task),
        time=reminder.fire_at_local(tz).strftime("%H:%M"),
    )


__all__ = ["render_created", "render_pending", "render_delivery"]
