from abc import ABC, abstractmethod

__all__ = ["MessageSink"]


class MessageSink(ABC):
    """提醒投递通道

    send 失败时应抛出 DeliveryFailed，调度器会保留提醒并稍后重试。
    """

    @abstractmethod
    async def send(self, owner: int, text: str) -> None:
        pass
