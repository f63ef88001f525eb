from abc import ABC, abstractmethod
from typing import List, Literal, TypedDict

__all__ = ["LLMClient", "LLMMessage"]


class LLMMessage(TypedDict):
    role: Literal["system", "user", "assistant"]
    content: str


class LLMClient(ABC):
    """文本补全接口: 输入消息上下文，返回模型的原始文本输出

    实现不做自动重试，失败直接抛出，由调用方决定如何降级。
    """

    model: str

    @abstractmethod
    async def generate_response(
        self,
        context: List[LLMMessage],
        append_inst: str | None = None,
    ) -> str:
        pass
