import asyncio
from typing import Any, Dict, List, Tuple

from google import genai
from google.genai import types

from eslatma.config.settings import GEMINI_API_KEY, GEMINI_BASE_URL, LLM_MODEL
from eslatma.llm.base import LLMClient, LLMMessage
from eslatma.logger import logger


class GeminiClient(LLMClient):
    RATE_LIMIT_SIGNALS = ("429", "rate limit", "resource_exhausted", "quota")

    def __init__(self, base_url: str | None = GEMINI_BASE_URL, api_key: str | None = GEMINI_API_KEY, model: str = LLM_MODEL, inst: str = "") -> None:
        self.model = model
        self.inst = inst
        self.client = genai.Client(api_key=api_key, http_options={"base_url": base_url} if base_url else None)

    @staticmethod
    def _text_message(role: str, text: str) -> Dict[str, Any]:
        return {
            "role": role,
            "parts": [{"text": text}],
        }

    @classmethod
    def is_rate_limited(cls, error: Exception) -> bool:
        msg = str(error).lower()
        return any(s in msg for s in cls.RATE_LIMIT_SIGNALS)

    def _convert_context_to_gemini(self, context: List[LLMMessage]) -> Tuple[List[Dict[str, Any]], str]:
        converted: List[Dict[str, Any]] = []
        system_parts: List[str] = []

        for item in context:
            role = item.get("role")
            content = item.get("content", "")
            if role == "system":
                system_parts.append(content)
            elif role == "user":
                converted.append(self._text_message("user", content))

        return converted, "\n\n".join(p for p in system_parts if p.strip())

    def _extract_text(self, response: Any) -> str:
        text = getattr(response, "text", None)
        if isinstance(text, str) and text.strip():
            return text

        candidates = getattr(response, "candidates", None) or []
        if not candidates:
            return ""
        content = getattr(candidates[0], "content", None)
        parts = list(getattr(content, "parts", None) or [])

        text_parts: List[str] = []
        for part in parts:
            part_text = getattr(part, "text", None)
            if isinstance(part_text, str) and part_text.strip():
                text_parts.append(part_text)
        return "\n".join(text_parts).strip()

    async def _generate_once(self, request_context: List[Any], config: types.GenerateContentConfig) -> Any:
        return await asyncio.to_thread(
            self.client.models.generate_content,
            model=self.model,
            contents=request_context,
            config=config,
        )

    async def generate_response(
        self,
        context: List[LLMMessage],
        append_inst: str | None = None,
    ) -> str:
        request_context, system_from_context = self._convert_context_to_gemini(context)
        system_instruction = self.inst + (append_inst or "")
        if system_from_context:
            system_instruction = f"{system_instruction}\n\n{system_from_context}" if system_instruction else system_from_context

        config = types.GenerateContentConfig(
            system_instruction=system_instruction or None,
            response_mime_type="application/json",
        )

        logger.trace(f"Gemini请求发起 Model:{self.model}; Context:{request_context}")
        try:
            response = await self._generate_once(request_context, config)
        except Exception as e:
            if self.is_rate_limited(e):
                logger.warning(f"Gemini 请求被限流: {e}")
            raise
        logger.trace(f"Gemini请求收到响应: {response}")

        return self._extract_text(response)


__all__ = ["GeminiClient"]
