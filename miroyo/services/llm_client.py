"""
Gemini 调用客户端

aiohttp.ClientSession 在客户端生命周期内复用。
API key 通过 x-goog-api-key 头传递, 不出现在 URL 与错误信息中。
"""

import asyncio
import logging
import random
from typing import Any, Dict, Optional

import aiohttp

from miroyo.config.settings import settings

logger = logging.getLogger(__name__)


class LLMCallError(RuntimeError):
    def __init__(self, message: str, *, status: Optional[int] = None, retryable: bool = False):
        super().__init__(message)
        self.status = status
        self.retryable = retryable


class GeminiClient:
    """Gemini generateContent 后端 (JSON 输出模式)"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.api_key = (settings.llm.gemini_api_key if api_key is None else api_key).strip()
        self.base_url = (base_url or settings.llm.gemini_base_url).rstrip("/")
        self.model = model or settings.llm.gemini_model
        self._timeout_seconds = timeout_seconds or settings.llm.timeout_seconds
        self._retry_max = max(1, settings.llm.retry_max_attempts)
        self._retry_delay = max(0.0, settings.llm.retry_base_delay_seconds)
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(limit=20, keepalive_timeout=30)
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=None),
                connector=connector,
            )
        return self._session

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    def _headers(self) -> Dict[str, str]:
        return {
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json",
        }

    @staticmethod
    def _extract_text(data: Dict[str, Any]) -> str:
        candidates = data.get("candidates") or []
        if not candidates or not isinstance(candidates[0], dict):
            return ""
        parts = (candidates[0].get("content") or {}).get("parts") or []
        return "".join(
            p["text"] for p in parts
            if isinstance(p, dict) and isinstance(p.get("text"), str)
        )

    async def _generate_once(self, payload: Dict[str, Any]) -> str:
        timeout = aiohttp.ClientTimeout(total=self._timeout_seconds)
        session = await self._get_session()
        async with session.post(
            f"{self.base_url}/models/{self.model}:generateContent",
            json=payload, timeout=timeout, headers=self._headers(),
        ) as resp:
            if resp.status >= 400:
                detail = await resp.text()
                raise LLMCallError(
                    f"gemini error status={resp.status}: {detail[:300]}",
                    status=resp.status,
                    retryable=resp.status >= 500,
                )
            data = await resp.json(content_type=None)
            if not isinstance(data, dict):
                return ""
            return self._extract_text(data)

    async def generate_json(
        self,
        text: str,
        system_instruction: str,
        temperature: Optional[float] = None,
        max_output_tokens: Optional[int] = None,
    ) -> str:
        """生成 JSON 文本, 5xx 按配置重试"""
        if not self.api_key:
            raise LLMCallError("gemini api key missing", retryable=False)
        payload = {
            "contents": [{"role": "user", "parts": [{"text": text}]}],
            "systemInstruction": {"parts": [{"text": system_instruction}]},
            "generationConfig": {
                "responseMimeType": "application/json",
                "temperature": settings.llm.temperature if temperature is None else temperature,
                "maxOutputTokens": max_output_tokens or settings.llm.max_output_tokens,
            },
        }
        for attempt in range(1, self._retry_max + 1):
            try:
                return await self._generate_once(payload)
            except LLMCallError as e:
                if e.retryable and attempt < self._retry_max:
                    delay = self._retry_delay * (2 ** (attempt - 1)) + random.uniform(0, 0.3)
                    logger.warning("Gemini call failed (status=%s), retry %d", e.status, attempt)
                    await asyncio.sleep(delay)
                    continue
                raise
        raise LLMCallError("gemini generation failed", retryable=False)

    async def health_check(self) -> Dict:
        if not self.api_key:
            return {"status": "unhealthy", "error": "missing GEMINI_API_KEY"}
        return {"status": "healthy", "backend": "gemini", "model": self.model}
