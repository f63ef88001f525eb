"""错误类型

处理原则:
- 单条消息相关的错误都在 Telegram handler 边界被捕获，转成给用户的道歉/提示，不会让进程崩溃；
- 只有启动时数据库不可用 (StorageUnavailable) 才允许终止进程。
"""

__all__ = [
    "EslatmaError",
    "NoTimeFound",
    "ExtractionDegraded",
    "StorageUnavailable",
    "DeliveryFailed",
    "StaleConfirmation",
]


class EslatmaError(Exception):
    pass


class NoTimeFound(EslatmaError):
    """用户消息里没有可识别的时间 (HH:MM / H.MM)，需要提示用户补充时间"""

    def __init__(self, text: str) -> None:
        super().__init__(f"消息中没有找到时间: {text!r}")
        self.text = text


class ExtractionDegraded(EslatmaError):
    """LLM 提取任务失败，调用方应回退到规则提取，不向用户暴露"""


class StorageUnavailable(EslatmaError):
    """数据库无法打开或已关闭"""


class DeliveryFailed(EslatmaError):
    """消息通道发送失败，提醒保留在库中等待下一次投递"""

    def __init__(self, owner: int, reason: str) -> None:
        super().__init__(f"向 {owner} 发送消息失败: {reason}")
        self.owner = owner
        self.reason = reason


class StaleConfirmation(EslatmaError):
    """收到的 Ha/Yo'q 回复没有对应的待确认状态 (重复点击、已过期或已被新的确认覆盖)"""

    def __init__(self, owner: int, token: str | None = None) -> None:
        super().__init__(f"用户 {owner} 没有匹配的待确认提醒 (token={token})")
        self.owner = owner
        self.token = token
