"""
提醒存储。fire_at 以 epoch 秒 (UTC) 保存，只在创建时写入，没有更新操作:
需要改时间的提醒一律删除后重新创建。
"""

import asyncio
from datetime import datetime

import aiosqlite

from eslatma.datamodel import Reminder
from eslatma.errors import StorageUnavailable
from eslatma.events import E, bus
from eslatma.logger import logger
from eslatma.utils import to_epoch

_COLUMNS = "id, owner, task, fire_at"


def _row_to_reminder(row) -> Reminder:
    return Reminder(id=row[0], owner=row[1], task=row[2], fire_at=row[3])


class ReminderStore:
    """对单个 aiosqlite 连接的串行化封装，读写都在同一把锁下执行"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self.conn: aiosqlite.Connection | None = conn
        self._lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        return self.conn is not None

    def _ensure_conn(self) -> aiosqlite.Connection:
        if self.conn is None:
            raise StorageUnavailable("数据库连接已关闭")
        return self.conn

    async def close(self) -> None:
        if self.conn is not None:
            await self.conn.close()
            self.conn = None

    async def create(self, owner: int, task: str, fire_at: datetime | int) -> int:
        """创建提醒，返回新分配的 id"""
        conn = self._ensure_conn()
        fire_at_epoch = to_epoch(fire_at)
        async with self._lock:
            async with conn.execute(
                "INSERT INTO reminders (owner, task, fire_at) VALUES (?, ?, ?)",
                (owner, task, fire_at_epoch),
            ) as cursor:
                reminder_id = cursor.lastrowid
            await conn.commit()

        logger.debug(f"创建提醒: id={reminder_id}, owner={owner}, task={task!r}, fire_at={fire_at_epoch}")
        bus.emit(E.REMINDER_CREATED, reminder_id=reminder_id, owner=owner)
        return reminder_id

    async def get(self, reminder_id: int) -> Reminder | None:
        conn = self._ensure_conn()
        async with self._lock:
            async with conn.execute(
                f"SELECT {_COLUMNS} FROM reminders WHERE id = ?", (reminder_id,)
            ) as cursor:
                row = await cursor.fetchone()
        return _row_to_reminder(row) if row else None

    async def list_due(self, now: datetime | int) -> list[Reminder]:
        """所有用户中 fire_at <= now 的提醒，按 fire_at 升序"""
        conn = self._ensure_conn()
        async with self._lock:
            async with conn.execute(
                f"SELECT {_COLUMNS} FROM reminders WHERE fire_at <= ? ORDER BY fire_at, id",
                (to_epoch(now),),
            ) as cursor:
                rows = await cursor.fetchall()
        return [_row_to_reminder(row) for row in rows]

    async def list_pending(self, owner: int) -> list[Reminder]:
        """某个用户的全部提醒，按 fire_at 升序"""
        conn = self._ensure_conn()
        async with self._lock:
            async with conn.execute(
                f"SELECT {_COLUMNS} FROM reminders WHERE owner = ? ORDER BY fire_at, id",
                (owner,),
            ) as cursor:
                rows = await cursor.fetchall()
        return [_row_to_reminder(row) for row in rows]

    async def count(self) -> int:
        conn = self._ensure_conn()
        async with self._lock:
            async with conn.execute("SELECT COUNT(1) FROM reminders") as cursor:
                row = await cursor.fetchone()
        return row[0] if row else 0

    async def delete(self, reminder_id: int, owner: int | None = None) -> bool:
        """删除提醒，幂等: 不存在的 id 不报错，返回是否真的删除了一行

        指定 owner 时只删除属于该用户的提醒。
        """
        conn = self._ensure_conn()
        async with self._lock:
            if owner is None:
                cursor = await conn.execute("DELETE FROM reminders WHERE id = ?", (reminder_id,))
            else:
                cursor = await conn.execute(
                    "DELETE FROM reminders WHERE id = ? AND owner = ?", (reminder_id, owner)
                )
            deleted = cursor.rowcount > 0
            await cursor.close()
            await conn.commit()

        if deleted:
            logger.debug(f"删除提醒: id={reminder_id}")
        return deleted


__all__ = ["ReminderStore"]
