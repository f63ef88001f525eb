"""
待确认状态: 用户给出的时间今天已经过去时，询问是否改到明天。

每个用户最多一个待确认项 (新的覆盖旧的)，只保存在内存里，进程重启后丢失也无妨,
用户重新发一次消息即可。状态机:
    NONE --open()--> AWAITING_DECISION --resolve()--> NONE
超过 ttl_seconds 未回复的待确认项视为不存在。
"""

import secrets
from datetime import datetime

from eslatma.datamodel import PendingConfirmation
from eslatma.errors import StaleConfirmation
from eslatma.events import E, bus
from eslatma.logger import logger


class ConfirmationRegister:
    def __init__(self, ttl_seconds: float) -> None:
        self.ttl_seconds = ttl_seconds
        self._slots: dict[int, PendingConfirmation] = {}

    def __len__(self) -> int:
        return len(self._slots)

    def _is_expired(self, pending: PendingConfirmation, now: datetime) -> bool:
        return now.timestamp() - pending.created_at > self.ttl_seconds

    def open(self, owner: int, hour: int, minute: int, text: str, now: datetime) -> PendingConfirmation:
        pending = PendingConfirmation(
            owner=owner,
            hour=hour,
            minute=minute,
            text=text,
            token=secrets.token_hex(4),
            created_at=now.timestamp(),
        )
        if owner in self._slots:
            logger.debug(f"用户 {owner} 的旧待确认项被覆盖")
        self._slots[owner] = pending
        logger.debug(f"用户 {owner} 进入待确认状态: {hour:02d}:{minute:02d}, token={pending.token}")
        bus.emit(E.CONFIRMATION_OPENED, owner=owner)
        return pending

    def get(self, owner: int, now: datetime) -> PendingConfirmation | None:
        pending = self._slots.get(owner)
        if pending is None:
            return None
        if self._is_expired(pending, now):
            del self._slots[owner]
            logger.debug(f"用户 {owner} 的待确认项已过期")
            return None
        return pending

    def resolve(self, owner: int, token: str | None, now: datetime) -> PendingConfirmation:
        """取出并清除待确认项

        没有待确认项、已过期、或按钮 token 与当前待确认项不符 (旧消息上的按钮) 时抛出 StaleConfirmation,
        此时不会影响当前待确认项。token 为 None 时不校验。
        """
        pending = self.get(owner, now)
        if pending is None:
            raise StaleConfirmation(owner, token)
        if token is not None and token != pending.token:
            raise StaleConfirmation(owner, token)
        del self._slots[owner]
        return pending

    def purge_expired(self, now: datetime) -> int:
        expired = [owner for owner, pending in self._slots.items() if self._is_expired(pending, now)]
        for owner in expired:
            del self._slots[owner]
        if expired:
            logger.debug(f"清理过期待确认项: {len(expired)} 个")
        return len(expired)


__all__ = ["ConfirmationRegister"]
