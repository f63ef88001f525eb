from dataclasses import dataclass
from datetime import datetime, tzinfo

__all__ = [
    "Reminder",
    "PendingConfirmation",
    "ExtractionResult",
]


# ----------------- Reminder 数据模型 ----------------
@dataclass(frozen=True)
class Reminder:
    id: int
    owner: int  # Telegram chat_id
    task: str
    fire_at: int  # epoch 秒 (UTC), 创建后不再修改; 改时间 = 删除 + 新建

    def fire_at_local(self, tz: tzinfo) -> datetime:
        return datetime.fromtimestamp(self.fire_at, tz)


# ----------------- 待确认 (时间已过, 是否改到明天) ----------------
@dataclass(frozen=True)
class PendingConfirmation:
    owner: int
    hour: int
    minute: int
    text: str  # 原始消息, 任务描述等用户确认后再提取
    token: str  # 对应确认按钮, 用于识别旧按钮
    created_at: float  # epoch 秒


# ----------------- 提取结果 ----------------
@dataclass(frozen=True)
class ExtractionResult:
    hour: int
    minute: int
    task: str
    used_llm: bool = False
