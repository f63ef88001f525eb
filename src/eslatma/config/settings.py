import os
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from eslatma.logger import logger

load_dotenv()

__all__ = [
    "TELEGRAM_BOT_TOKEN",
    "LLM_PROVIDER", "GEMINI_API_KEY", "GEMINI_BASE_URL", "OPENAI_API_KEY", "OPENAI_BASE_URL",
    "LLM_MODEL", "LLM_TIMEOUT_SECONDS",
    "BOT_TIMEZONE", "DB_PATH", "POLL_INTERVAL_SECONDS", "CONFIRMATION_TTL_SECONDS",
    "ENABLE_HTTP_SERVER", "HTTP_HOST", "HTTP_PORT",
    "LOG_FILE", "LOG_LEVEL",
    "validate_settings",
]


def _parse_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on", "y")


def _parse_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"{name} 非法: {raw!r}, 已回退到 {default}")
        return default


def _parse_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"{name} 非法: {raw!r}, 已回退到 {default}")
        return default


# Telegram Bot (兼容旧部署使用的 TELEGRAM_APITOKEN)
TELEGRAM_BOT_TOKEN = os.getenv("TELEGRAM_BOT_TOKEN") or os.getenv("TELEGRAM_APITOKEN", "")


# LLM 设置, 仅在消息中包含命令词时用于提取任务描述
LLM_PROVIDER = os.getenv("LLM_PROVIDER", "gemini").strip().lower()
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
GEMINI_BASE_URL = os.getenv("GEMINI_BASE_URL")
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
LLM_MODEL = os.getenv("LLM_MODEL", "gemini-flash-latest" if LLM_PROVIDER == "gemini" else "gpt-5-nano")
LLM_TIMEOUT_SECONDS = _parse_float("LLM_TIMEOUT_SECONDS", 10.0)


# 提醒引擎
BOT_TIMEZONE = os.getenv("BOT_TIMEZONE", "Asia/Tashkent")
DB_PATH = os.getenv("DB_PATH", "data/reminders.db")
POLL_INTERVAL_SECONDS = _parse_float("POLL_INTERVAL_SECONDS", 20.0)
CONFIRMATION_TTL_SECONDS = _parse_int("CONFIRMATION_TTL_SECONDS", 15 * 60)


# 健康检查 HTTP 服务 (托管平台用来探活), 端口沿用平台注入的 PORT
ENABLE_HTTP_SERVER = _parse_bool("ENABLE_HTTP_SERVER", True)
HTTP_HOST = os.getenv("HTTP_HOST", "0.0.0.0")
HTTP_PORT = _parse_int("PORT", 10000)


LOG_FILE = os.getenv("LOG_FILE", "logs/eslatma.log")
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")


def validate_settings() -> None:
    """启动前检查必需配置，缺失时直接退出进程

    放在函数里而不是导入时执行，单元测试导入本模块不需要真实的 token。
    """
    fatal = False

    if TELEGRAM_BOT_TOKEN == "":
        logger.critical("TELEGRAM_BOT_TOKEN 未设置")
        fatal = True

    if LLM_PROVIDER not in ("gemini", "openai", "none"):
        logger.critical(f"LLM_PROVIDER 非法: {LLM_PROVIDER}, 仅支持 gemini / openai / none")
        fatal = True
    elif LLM_PROVIDER == "gemini" and not GEMINI_API_KEY:
        logger.critical("当前 LLM_PROVIDER=gemini, 但 GEMINI_API_KEY 未设置")
        fatal = True
    elif LLM_PROVIDER == "openai" and not OPENAI_API_KEY:
        logger.critical("当前 LLM_PROVIDER=openai, 但 OPENAI_API_KEY 未设置")
        fatal = True
    elif LLM_PROVIDER == "none":
        logger.warning("LLM 已禁用, 任务描述只使用规则提取")

    try:
        ZoneInfo(BOT_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError):
        logger.critical(f"BOT_TIMEZONE 非法: {BOT_TIMEZONE}")
        fatal = True

    if POLL_INTERVAL_SECONDS <= 0:
        logger.critical(f"POLL_INTERVAL_SECONDS 必须大于 0, 当前为 {POLL_INTERVAL_SECONDS}")
        fatal = True

    if fatal:
        raise SystemExit(1)
