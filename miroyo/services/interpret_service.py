"""
成果解析管线 - 请求校验 / 来源检查 / 限流 / 调用模型 / 结果规范化

所有失败都在 handle() 边界转换为固定的 (status, {"error": kind}),
上游错误原文与请求文本不会返回给客户端, 也不会写入日志。
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Union

from miroyo.api import guards
from miroyo.config.settings import settings
from miroyo.context.prompt_templates import INTERPRET_SYSTEM_PROMPT
from miroyo.models.result import Result, normalize_result
from miroyo.observability import metrics as obs
from miroyo.services.llm_client import GeminiClient
from miroyo.services.rate_limiter import RateLimitStore

logger = logging.getLogger(__name__)


class InterpretError(Exception):
    kind = "server_error"
    status_code = 500


class ClientInputError(InterpretError):
    kind = "bad_request"
    status_code = 400


class UnsupportedMediaTypeError(ClientInputError):
    kind = "unsupported_media_type"
    status_code = 415


class MethodNotAllowedError(ClientInputError):
    kind = "method_not_allowed"
    status_code = 405


class AuthorizationError(InterpretError):
    kind = "forbidden"
    status_code = 403


class RateLimitError(InterpretError):
    kind = "rate_limit"
    status_code = 429


class UpstreamTimeoutError(InterpretError):
    kind = "timeout"
    status_code = 504


class ServerMisconfigurationError(InterpretError):
    kind = "server_error"
    status_code = 500


class UpstreamFailureError(InterpretError):
    kind = "server_error"
    status_code = 500


@dataclass
class InterpretRequest:
    method: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Union[bytes, str, None] = None

    def __post_init__(self):
        self.headers = {str(k).lower(): v for k, v in dict(self.headers).items()}


@dataclass
class InterpretOutcome:
    status_code: int
    body: Dict[str, Any]

    @property
    def ok(self) -> bool:
        return self.status_code == 200


def parse_model_output(text: Optional[str]) -> Any:
    """Model text to JSON; truncated or malformed output becomes {}."""
    if not isinstance(text, str) or not text.strip():
        return {}
    try:
        return json.loads(text)
    except (json.JSONDecodeError, RecursionError):
        logger.info("Model output is not valid JSON, using defaults")
        return {}


def is_upstream_rate_limited(error: BaseException) -> bool:
    status = getattr(error, "status", None)
    if status == 429:
        return True
    return "429" in str(error)


class InterpretService:
    """单个成果解析请求的完整处理流程"""

    def __init__(
        self,
        llm_client: GeminiClient,
        rate_limiter: RateLimitStore,
        max_input_length: Optional[int] = None,
        model_timeout_seconds: Optional[float] = None,
    ):
        self._llm = llm_client
        self._rate_limiter = rate_limiter
        self._max_input_length = max_input_length or settings.interpret.max_input_length
        self._timeout = model_timeout_seconds or settings.interpret.model_timeout_seconds

    @property
    def rate_limiter(self) -> RateLimitStore:
        return self._rate_limiter

    async def handle(self, request: InterpretRequest) -> InterpretOutcome:
        try:
            result = await self.interpret(request)
        except InterpretError as e:
            obs.record_interpret(e.kind)
            return InterpretOutcome(status_code=e.status_code, body={"error": e.kind})
        except Exception:
            logger.exception("Unexpected interpret failure")
            obs.record_interpret(InterpretError.kind)
            return InterpretOutcome(status_code=InterpretError.status_code, body={"error": InterpretError.kind})
        obs.record_interpret("ok")
        return InterpretOutcome(status_code=200, body=result.to_wire())

    async def interpret(self, request: InterpretRequest) -> Result:
        """Validate, rate-limit, call the model and normalize; raises InterpretError."""
        headers = request.headers

        if request.method.upper() != "POST":
            raise MethodNotAllowedError()

        content_type = headers.get("content-type")
        if not isinstance(content_type, str) or "application/json" not in content_type:
            raise UnsupportedMediaTypeError()

        if guards.is_forbidden(headers):
            raise AuthorizationError()

        if not self._llm.configured:
            logger.error("GEMINI_API_KEY is not configured")
            raise ServerMisconfigurationError()

        identity = guards.get_client_identity(headers)
        if not await self._rate_limiter.check_and_increment(identity):
            raise RateLimitError()

        text = self._extract_text(request.body)
        raw_output = await self._call_model(text)
        return normalize_result(parse_model_output(raw_output))

    def _extract_text(self, body: Union[bytes, str, None]) -> str:
        if body is None:
            raise ClientInputError()
        try:
            payload = json.loads(body)
        except (UnicodeDecodeError, json.JSONDecodeError, RecursionError):
            raise ClientInputError()
        if not isinstance(payload, dict):
            raise ClientInputError()

        text = payload.get("text")
        text = text.strip() if isinstance(text, str) else ""
        if not text or len(text) > self._max_input_length:
            raise ClientInputError()
        return text

    async def _call_model(self, text: str) -> str:
        start = time.perf_counter()
        try:
            output = await asyncio.wait_for(
                self._llm.generate_json(
                    text,
                    system_instruction=INTERPRET_SYSTEM_PROMPT,
                    temperature=settings.llm.temperature,
                    max_output_tokens=settings.llm.max_output_tokens,
                ),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            obs.record_upstream("timeout", time.perf_counter() - start)
            logger.warning("Gemini call timed out after %.1fs", self._timeout)
            raise UpstreamTimeoutError()
        except Exception as e:
            if is_upstream_rate_limited(e):
                obs.record_upstream("rate_limit", time.perf_counter() - start)
                raise RateLimitError() from e
            obs.record_upstream("error", time.perf_counter() - start)
            logger.error(
                "Gemini API error: status=%s message=%s",
                getattr(e, "status", None), str(e)[:300],
            )
            raise UpstreamFailureError() from e
        obs.record_upstream("ok", time.perf_counter() - start)
        return output
