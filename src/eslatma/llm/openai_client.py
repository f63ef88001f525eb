from typing import Any, List

from openai import AsyncOpenAI

from eslatma.config.settings import LLM_MODEL, OPENAI_API_KEY, OPENAI_BASE_URL
from eslatma.llm.base import LLMClient, LLMMessage
from eslatma.logger import logger


class OpenAIClient(LLMClient):
    def __init__(
        self,
        api_key: str | None = OPENAI_API_KEY,
        base_url: str = OPENAI_BASE_URL,
        model: str = LLM_MODEL,
        inst: str = "",
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url
        self.model = model
        self.inst = inst
        # 重试与超时由调用方控制
        self.client = AsyncOpenAI(
            api_key=self.api_key,
            base_url=self.base_url,
            max_retries=0,
        )

    def _convert_context_to_openai(self, context: List[LLMMessage]) -> List[Any]:
        role_dict = {
            "system": "developer",
            "user": "user",
            "assistant": "assistant",
        }

        converted: List[Any] = []
        for item in context:
            role = item.get("role")
            if role in role_dict:
                converted.append({
                    "role": role_dict[role],
                    "content": item.get("content", ""),
                })

        return converted

    async def generate_response(
        self,
        context: List[LLMMessage],
        append_inst: str | None = None,
    ) -> str:
        logger.trace(f"LLM请求发起 BaseUrl:{self.base_url}; Model:{self.model}; Context:{context}")
        response = await self.client.responses.create(
            model=self.model,
            instructions=self.inst + (append_inst or ""),
            input=self._convert_context_to_openai(context),
        )
        logger.trace(f"LLM请求收到响应: {response}")
        return response.output_text or ""


__all__ = ["OpenAIClient"]
