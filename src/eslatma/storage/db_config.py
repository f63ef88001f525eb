import os

import aiosqlite

from eslatma.errors import StorageUnavailable
from eslatma.logger import logger

_SCHEMA_V1 = """
CREATE TABLE IF NOT EXISTS reminders (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    owner INTEGER NOT NULL,
    task TEXT NOT NULL,
    fire_at INTEGER NOT NULL,
    created_at_utc TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);
CREATE INDEX IF NOT EXISTS idx_reminders_fire_at ON reminders (fire_at);
CREATE INDEX IF NOT EXISTS idx_reminders_owner_fire_at ON reminders (owner, fire_at);
"""

SCHEMA_VERSION = 1


async def _migrate(conn: aiosqlite.Connection) -> None:
    async with conn.execute("PRAGMA user_version") as cursor:
        row = await cursor.fetchone()
        user_version = row[0]

    if user_version < 1:
        logger.info("初始化数据库表结构 v1")
        await conn.executescript(_SCHEMA_V1)
        await conn.execute("PRAGMA user_version = 1")

    # 数据库升级逻辑可以在这里继续添加
    await conn.commit()


async def init_db(db_path: str) -> aiosqlite.Connection:
    """打开数据库并执行迁移，失败时抛出 StorageUnavailable (启动阶段视为致命错误)"""
    db_dir = os.path.dirname(db_path)
    if db_dir and not os.path.exists(db_dir):
        os.makedirs(db_dir, exist_ok=True)

    conn: aiosqlite.Connection | None = None
    try:
        conn = await aiosqlite.connect(db_path)
        await conn.execute("PRAGMA journal_mode = WAL")
        await _migrate(conn)
    except (aiosqlite.Error, OSError) as e:
        if conn is not None:
            await conn.close()
        raise StorageUnavailable(f"无法打开数据库 {db_path}: {e}") from e

    logger.info(f"数据库已就绪: {db_path} (schema v{SCHEMA_VERSION})")
    return conn


__all__ = ["init_db", "SCHEMA_VERSION"]
