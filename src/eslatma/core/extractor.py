"""从用户消息中提取提醒时间和任务描述

规则提取 (默认):
    "12:00 da darsim bor" -> 12:00, "darsim bor"
    去掉时间、填充词 "soat" 和独立的后置词 "da"，再合并空白。

LLM 提取:
    只有消息里出现命令词 (eslat / ayt / yubor / bildir / xabar) 时才调用 LLM，
    要求其返回 {"task": "..."}。LLM 调用有超时、不重试，任何失败都回退到规则提取。
"""

import asyncio
import json
import re
import time

from eslatma.config.prompts import TASK_EXTRACTION_INSTRUCTION, TASK_EXTRACTION_PROMPT
from eslatma.datamodel import ExtractionResult
from eslatma.errors import ExtractionDegraded, NoTimeFound
from eslatma.llm.base import LLMClient
from eslatma.logger import logger
from eslatma.metrics import runtime_metrics

TIME_PATTERN = re.compile(r"(\d{1,2})[:.](\d{2})", re.IGNORECASE)
FILLER_PATTERN = re.compile(r"soat", re.IGNORECASE)
POSTPOSITION_PATTERN = re.compile(r"\bda\b", re.IGNORECASE)
_JSON_OBJECT_PATTERN = re.compile(r"\{.*\}", re.DOTALL)

COMMAND_WORDS = ("eslat", "ayt", "yubor", "bildir", "xabar")
DEFAULT_TASK = "Eslatma vaqti keldi"
MAX_TASK_LENGTH = 200


def find_time(text: str) -> tuple[int, int]:
    """返回第一个合法的钟点时间 (hour, minute)，像 25:70 这样的匹配会被跳过"""
    for match in TIME_PATTERN.finditer(text):
        hour, minute = int(match.group(1)), int(match.group(2))
        if hour <= 23 and minute <= 59:
            return hour, minute
    raise NoTimeFound(text)


def has_command_keyword(text: str) -> bool:
    lowered = text.lower()
    return any(word in lowered for word in COMMAND_WORDS)


def clean_task(text: str) -> str:
    task = TIME_PATTERN.sub("", text)
    task = FILLER_PATTERN.sub("", task)
    task = POSTPOSITION_PATTERN.sub("", task)
    return " ".join(task.split())


def _finalize(task: str) -> str:
    task = " ".join(task.split())[:MAX_TASK_LENGTH].strip()
    return task or DEFAULT_TASK


def parse_task_json(raw: str) -> str:
    """解析 LLM 输出中的 {"task": "..."}，兼容 ```json 代码块包裹"""
    if not raw or not raw.strip():
        raise ExtractionDegraded("LLM 返回空文本")

    cleaned = raw.strip().strip("`").strip()
    if cleaned.lower().startswith("json"):
        cleaned = cleaned[4:].strip()

    match = _JSON_OBJECT_PATTERN.search(cleaned)
    if match is None:
        raise ExtractionDegraded(f"LLM 返回的不是 JSON: {raw!r}")

    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ExtractionDegraded(f"LLM 返回的 JSON 无法解析: {raw!r}") from e

    task = data.get("task") if isinstance(data, dict) else None
    if not isinstance(task, str) or not task.strip():
        raise ExtractionDegraded(f"LLM 返回的 JSON 缺少 task 字段: {raw!r}")
    return task.strip()


class TaskExtractor:
    def __init__(self, llm_client: LLMClient | None = None, llm_timeout_seconds: float = 10.0) -> None:
        self.llm_client = llm_client
        self.llm_timeout_seconds = llm_timeout_seconds

    async def _ask_llm(self, text: str) -> str:
        start_time = time.perf_counter()
        llm_call_error = False
        try:
            raw = await asyncio.wait_for(
                self.llm_client.generate_response(
                    [{"role": "user", "content": TASK_EXTRACTION_PROMPT.format(text=text)}],
                    append_inst=TASK_EXTRACTION_INSTRUCTION,
                ),
                timeout=self.llm_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            llm_call_error = True
            raise ExtractionDegraded(f"LLM 请求超时 ({self.llm_timeout_seconds}s)") from e
        except Exception as e:
            llm_call_error = True
            raise ExtractionDegraded(f"LLM 请求失败: {e}") from e
        finally:
            latency_seconds = time.perf_counter() - start_time
            runtime_metrics.record_llm_call(latency_ms=latency_seconds * 1000, error=llm_call_error)
            logger.debug(f"LLM API 响应时间: {latency_seconds:.2f} 秒")

        return parse_task_json(raw)

    async def derive_task(self, text: str) -> tuple[str, bool]:
        """提取任务描述，返回 (task, 是否使用了 LLM)"""
        if self.llm_client is not None and has_command_keyword(text):
            try:
                return _finalize(await self._ask_llm(text)), True
            except ExtractionDegraded as e:
                runtime_metrics.record_llm_fallback()
                logger.warning(f"LLM 提取任务失败，回退到规则提取: {e}")

        return _finalize(clean_task(text)), False

    async def extract(self, text: str) -> ExtractionResult:
        hour, minute = find_time(text)
        task, used_llm = await self.derive_task(text)
        return ExtractionResult(hour=hour, minute=minute, task=task, used_llm=used_llm)


__all__ = [
    "TaskExtractor",
    "find_time", "has_command_keyword", "clean_task", "parse_task_json",
    "COMMAND_WORDS", "DEFAULT_TASK", "MAX_TASK_LENGTH",
]
