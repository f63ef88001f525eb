from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from typing import Callable

from eslatma.core.extractor import TaskExtractor
from eslatma.storage.confirmation import ConfirmationRegister
from eslatma.storage.reminder import ReminderStore
from eslatma.utils import now_local


@dataclass
class AppContext:
    """启动时构造一次，显式传给需要存储/待确认状态的组件，不使用模块级全局变量"""

    tz: tzinfo
    store: ReminderStore
    confirmations: ConfirmationRegister
    extractor: TaskExtractor
    clock: Callable[[], datetime] | None = field(default=None)

    def now(self) -> datetime:
        """当前时间 (固定时区)；测试里可以通过 clock 注入"""
        if self.clock is not None:
            return self.clock().astimezone(self.tz)
        return now_local(self.tz)


__all__ = ["AppContext"]
