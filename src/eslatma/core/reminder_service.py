"""提醒对话流程

    收到消息 -> 提取时间
        时间今天还没到 -> 提取任务 -> 写入存储
        时间今天已过   -> 打开待确认项 (此时不提取任务，避免为可能被拒绝的提醒调用 LLM)
    用户回复 Ha  -> 明天同一时间，提取任务 (命令词/LLM 分支照常生效) -> 写入存储
    用户回复 Yo'q -> 清除待确认项，无其他副作用

与具体聊天平台无关，Telegram 层只负责渲染返回值。
"""

from dataclasses import dataclass
from datetime import datetime

from eslatma.core.context import AppContext
from eslatma.core.extractor import find_time
from eslatma.datamodel import PendingConfirmation, Reminder
from eslatma.events import E, bus
from eslatma.logger import logger
from eslatma.utils import day_after, local_clock_to_datetime, to_epoch


@dataclass(frozen=True)
class ReminderScheduled:
    reminder: Reminder
    tomorrow: bool = False


@dataclass(frozen=True)
class ConfirmationRequested:
    pending: PendingConfirmation


# SQLite INTEGER 上限，超出的 id 不可能存在
MAX_REMINDER_ID = 2**63 - 1


class ReminderService:
    def __init__(self, ctx: AppContext) -> None:
        self.ctx = ctx

    async def _schedule(self, owner: int, text: str, fire_at, tomorrow: bool) -> ReminderScheduled:
        task, used_llm = await self.ctx.extractor.derive_task(text)
        fire_at_epoch = to_epoch(fire_at)
        reminder_id = await self.ctx.store.create(owner, task, fire_at_epoch)
        logger.info(
            f"用户 {owner} 新建提醒: id={reminder_id}, fire_at={fire_at.isoformat()}, used_llm={used_llm}"
        )
        return ReminderScheduled(
            reminder=Reminder(id=reminder_id, owner=owner, task=task, fire_at=fire_at_epoch),
            tomorrow=tomorrow,
        )

    async def handle_text(self, owner: int, text: str) -> ReminderScheduled | ConfirmationRequested:
        """处理一条用户消息；消息中没有时间时抛出 NoTimeFound，且不写入任何数据"""
        text = text.strip()
        hour, minute = find_time(text)

        now = self.ctx.now()
        fire_at = local_clock_to_datetime(now.date(), hour, minute, self.ctx.tz)
        # 当前这一分钟仍算今天
        if fire_at < now.replace(second=0, microsecond=0):
            pending = self.ctx.confirmations.open(owner, hour, minute, text, now)
            logger.info(f"用户 {owner} 给出的时间 {hour:02d}:{minute:02d} 已过, 等待确认是否改到明天")
            return ConfirmationRequested(pending=pending)

        return await self._schedule(owner, text, fire_at, tomorrow=False)

    async def resolve_confirmation(self, owner: int, token: str | None, accepted: bool) -> ReminderScheduled | None:
        """处理 Ha/Yo'q 回复

        accepted=True 时在明天同一时间创建新提醒并返回；False 时只清除待确认项，返回 None。
        没有匹配的待确认项时抛出 StaleConfirmation (调用方应当作无害的重复点击处理)。
        """
        now = self.ctx.now()
        pending = self.ctx.confirmations.resolve(owner, token, now)
        if not accepted:
            logger.info(f"用户 {owner} 拒绝将提醒改到明天")
            return None

        # "明天" 以提示发出的当天为基准
        asked_on = datetime.fromtimestamp(pending.created_at, self.ctx.tz).date()
        fire_at = local_clock_to_datetime(day_after(asked_on), pending.hour, pending.minute, self.ctx.tz)
        return await self._schedule(owner, pending.text, fire_at, tomorrow=True)

    async def list_pending(self, owner: int) -> list[Reminder]:
        return await self.ctx.store.list_pending(owner)

    async def cancel(self, owner: int, reminder_id: int) -> bool:
        """取消用户自己的一条提醒，重复取消或 id 不存在时返回 False"""
        if not 0 < reminder_id <= MAX_REMINDER_ID:
            return False
        deleted = await self.ctx.store.delete(reminder_id, owner=owner)
        if deleted:
            logger.info(f"用户 {owner} 取消提醒: id={reminder_id}")
            bus.emit(E.REMINDER_CANCELLED, reminder_id=reminder_id, owner=owner)
        return deleted


__all__ = ["ReminderService", "ReminderScheduled", "ConfirmationRequested"]
