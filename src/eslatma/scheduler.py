"""
提醒投递调度器 (轮询模式)

每隔 poll_interval 秒查询一次到期提醒，先发送、后删除:
- 发送成功后进程崩溃 (尚未删除) -> 重启后会再发一次，用户最多收到重复提醒，不会漏发；
- 发送失败 -> 记录日志，提醒保留在库中，按指数退避在后续轮询中重试，绝不因失败而删除；
- 进程启动后立即执行第一轮轮询，停机期间到期的提醒会马上补发。

同一用户的提醒按 fire_at 升序投递；某条发送失败时，本轮跳过该用户后面的提醒以保持顺序。
"""

import asyncio
import time
from datetime import datetime
from itertools import groupby

from eslatma.channels.base import MessageSink
from eslatma.core.context import AppContext
from eslatma.core.render import render_delivery
from eslatma.datamodel import Reminder
from eslatma.errors import DeliveryFailed
from eslatma.events import E, bus
from eslatma.logger import logger

MAX_RETRY_BACKOFF_SECONDS = 3600.0


class DeliveryScheduler:
    def __init__(self, ctx: AppContext, sink: MessageSink, poll_interval: float = 20.0) -> None:
        self.ctx = ctx
        self.sink = sink
        self.poll_interval = poll_interval
        self._running = False
        self._last_poll_at_epoch: float | None = None
        self._last_delivered = 0
        # reminder_id -> (连续失败次数, 下次允许重试的 epoch 秒)
        self._failures: dict[int, tuple[int, float]] = {}

    def get_status(self) -> dict[str, object]:
        return {
            "running": self._running,
            "poll_interval_seconds": self.poll_interval,
            "last_poll_at_epoch": self._last_poll_at_epoch,
            "last_delivered": self._last_delivered,
            "retrying": len(self._failures),
        }

    def _backoff_seconds(self, failures: int) -> float:
        return min(self.poll_interval * 2 ** (failures - 1), MAX_RETRY_BACKOFF_SECONDS)

    def _record_failure(self, reminder: Reminder, now_epoch: float, error: Exception) -> None:
        failures = self._failures.get(reminder.id, (0, 0.0))[0] + 1
        retry_at = now_epoch + self._backoff_seconds(failures)
        self._failures[reminder.id] = (failures, retry_at)
        logger.warning(
            f"提醒投递失败, 保留等待重试: id={reminder.id}, owner={reminder.owner}, "
            f"failures={failures}, retry_in={retry_at - now_epoch:.0f}s, error={error}"
        )

    def _in_backoff(self, reminder: Reminder, now_epoch: float) -> bool:
        failure = self._failures.get(reminder.id)
        return failure is not None and failure[1] > now_epoch

    async def _deliver(self, reminder: Reminder) -> None:
        await self.sink.send(reminder.owner, render_delivery(reminder, self.ctx.tz))
        # 只有发送成功才删除
        await self.ctx.store.delete(reminder.id)
        self._failures.pop(reminder.id, None)
        logger.info(f"提醒已投递: id={reminder.id}, owner={reminder.owner}")
        bus.emit(E.REMINDER_DELIVERED, reminder_id=reminder.id, owner=reminder.owner)

    async def poll_once(self, now: datetime | None = None) -> int:
        """执行一轮投递，返回成功投递的数量"""
        now = now or self.ctx.now()
        now_epoch = now.timestamp()
        self._last_poll_at_epoch = time.time()

        self.ctx.confirmations.purge_expired(now)

        due = await self.ctx.store.list_due(now)
        if due:
            logger.debug(f"本轮到期提醒: {len(due)} 条")

        delivered = 0
        by_owner = sorted(due, key=lambda r: (r.owner, r.fire_at, r.id))
        for owner, reminders in groupby(by_owner, key=lambda r: r.owner):
            for reminder in reminders:
                if self._in_backoff(reminder, now_epoch):
                    break
                try:
                    await self._deliver(reminder)
                except Exception as e:
                    if not isinstance(e, DeliveryFailed):
                        logger.error(f"提醒投递时发生预期外的错误: id={reminder.id}, error={e}", exc_info=e)
                    self._record_failure(reminder, now_epoch, e)
                    bus.emit(E.REMINDER_DELIVERY_FAILED, reminder_id=reminder.id, owner=owner)
                    break
                delivered += 1

        # 已经被用户取消的提醒不再需要退避记录
        due_ids = {r.id for r in due}
        for reminder_id in [i for i in self._failures if i not in due_ids]:
            del self._failures[reminder_id]

        self._last_delivered = delivered
        return delivered

    async def run(self, shutdown_event: asyncio.Event) -> None:
        self._running = True
        logger.info(f"提醒调度器已启动, 轮询间隔 {self.poll_interval}s, 库中待投递提醒 {await self.ctx.store.count()} 条")
        try:
            while not shutdown_event.is_set():
                try:
                    await self.poll_once()
                except Exception as e:
                    logger.error(f"提醒调度器本轮执行失败: {e}", exc_info=e)

                try:
                    await asyncio.wait_for(shutdown_event.wait(), timeout=self.poll_interval)
                except asyncio.TimeoutError:
                    pass
        finally:
            self._running = False
            logger.info("提醒调度器已关闭")


__all__ = ["DeliveryScheduler", "MAX_RETRY_BACKOFF_SECONDS"]
