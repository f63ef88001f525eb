from eslatma.logger import logger, setup_logging
from eslatma.config.settings import *
setup_logging(
    log_level=LOG_LEVEL,
    log_file=LOG_FILE,
    console_level="INFO",
)

import asyncio
import signal
import time
from zoneinfo import ZoneInfo

from eslatma.admin.http_server import main_loop as http_main
from eslatma.admin.schemas import RuntimeControl
from eslatma.channels.telegram_polling import TelegramSink, build_application
from eslatma.channels.telegram_polling import main as telegram_main
from eslatma.core.context import AppContext
from eslatma.core.extractor import TaskExtractor
from eslatma.errors import StorageUnavailable
from eslatma.llm.base import LLMClient
from eslatma.scheduler import DeliveryScheduler
from eslatma.storage.confirmation import ConfirmationRegister
from eslatma.storage.db_config import init_db
from eslatma.storage.reminder import ReminderStore


def _create_llm_client() -> LLMClient | None:
    """根据配置创建 LLM 客户端实例，LLM_PROVIDER=none 时不使用 LLM"""
    if LLM_PROVIDER == "gemini":
        from eslatma.llm.gemini_client import GeminiClient

        return GeminiClient(model=LLM_MODEL)

    if LLM_PROVIDER == "openai":
        from eslatma.llm.openai_client import OpenAIClient

        return OpenAIClient(model=LLM_MODEL)

    if LLM_PROVIDER == "none":
        return None

    raise ValueError(f"不支持的 LLM_PROVIDER: {LLM_PROVIDER}")


async def main() -> None:
    shutdown_event = asyncio.Event()

    def signal_handler() -> None:
        logger.info("收到中断信号,正在依次关闭组件...")
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, signal_handler)
        except NotImplementedError:  # Windows
            signal.signal(sig, lambda *_: signal_handler())

    try:
        conn = await init_db(DB_PATH)
    except StorageUnavailable as e:
        logger.critical(f"数据库不可用, 无法保证提醒能被保存, 退出: {e}")
        raise SystemExit(1) from e

    store = ReminderStore(conn)
    ctx = AppContext(
        tz=ZoneInfo(BOT_TIMEZONE),
        store=store,
        confirmations=ConfirmationRegister(ttl_seconds=CONFIRMATION_TTL_SECONDS),
        extractor=TaskExtractor(_create_llm_client(), llm_timeout_seconds=LLM_TIMEOUT_SECONDS),
    )

    app = build_application(TELEGRAM_BOT_TOKEN, ctx)
    try:
        await app.initialize()
        scheduler = DeliveryScheduler(ctx, TelegramSink(app.bot), poll_interval=POLL_INTERVAL_SECONDS)

        tasks = [
            scheduler.run(shutdown_event),
            telegram_main(app, shutdown_event),
        ]

        if ENABLE_HTTP_SERVER:
            control = RuntimeControl(ctx=ctx, scheduler=scheduler, started_at=time.time())
            tasks.append(http_main(control, shutdown_event, HTTP_HOST, HTTP_PORT))
        else:
            logger.warning("健康检查 HTTP 服务已禁用")

        await asyncio.gather(*tasks)
    finally:
        logger.info("关闭 Eslatma...")
        shutdown_event.set()

        logger.info("关闭数据库连接...")
        await store.close()
        logger.info("Eslatma 已关闭")


def run() -> None:
    validate_settings()
    logger.info("启动 Eslatma...")
    asyncio.run(main())


if __name__ == "__main__":
    run()
