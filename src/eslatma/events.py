"""事件总线模块，定义了事件总线类 Bus 及事件名集合 E

提醒引擎在状态变化时发出事件 (创建、投递、取消、投递失败、打开确认)，
统计等旁路逻辑订阅这些事件，不直接耦合到存储和调度器里。
事件处理器可以是同步函数 (立即执行) 或协程函数 (由 pyee 调度到当前事件循环)。
"""

from __future__ import annotations

from typing import Any, Callable

from pyee.asyncio import AsyncIOEventEmitter

from eslatma.logger import logger

Handler = Callable[..., Any]


# 事件名集中定义
class E:
    REMINDER_CREATED = "reminder.created"
    REMINDER_DELIVERED = "reminder.delivered"
    REMINDER_CANCELLED = "reminder.cancelled"
    REMINDER_DELIVERY_FAILED = "reminder.delivery_failed"
    CONFIRMATION_OPENED = "confirmation.opened"


class Bus(AsyncIOEventEmitter):
    def on(self, event: str) -> Callable[[Handler], Handler]:
        """注册事件处理器装饰器"""
        def decorator(handler: Handler) -> Handler:
            logger.debug(f"注册事件处理器: {event} -> {handler.__name__}")
            super(Bus, self).on(event, handler)
            return handler

        return decorator


bus = Bus()

__all__ = ["bus", "Bus", "E"]
