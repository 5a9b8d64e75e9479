"""
Test fixtures
"""

import json
import pytest
from typing import Dict
from unittest.mock import AsyncMock, MagicMock

from miroyo.models.result import Result, normalize_result
from miroyo.services.interpret_service import InterpretRequest, InterpretService
from miroyo.services.rate_limiter import MemoryRateLimitStore


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def model_output() -> Dict:
    return {
        "period": "day",
        "periodLabel": "今日",
        "achievements": [
            {"content": "ジョギング", "value": 5, "unit": "km", "frequency": ""},
        ],
        "djComment": "Yo! 今日5kmも走ったってマジかよ、Respect!",
        "djTrivia": "5kmってことは東京タワー15本分を横に並べた距離だぜ、Crazy!",
    }


@pytest.fixture
def sample_result(model_output) -> Result:
    return normalize_result(model_output)


@pytest.fixture
def mock_llm(model_output):
    llm = MagicMock()
    llm.configured = True
    llm.generate_json = AsyncMock(return_value=json.dumps(model_output, ensure_ascii=False))
    return llm


@pytest.fixture
def rate_limiter(clock) -> MemoryRateLimitStore:
    return MemoryRateLimitStore(limit=20, window_seconds=60, clock=clock)


@pytest.fixture
def service(mock_llm, rate_limiter) -> InterpretService:
    return InterpretService(llm_client=mock_llm, rate_limiter=rate_limiter)


def make_request(
    text: str = "今日5km走った",
    method: str = "POST",
    headers: Dict[str, str] = None,
    body=None,
) -> InterpretRequest:
    base_headers = {
        "Content-Type": "application/json",
        "Host": "miroyo.example",
        "X-Forwarded-For": "203.0.113.7, 10.0.0.1",
    }
    base_headers.update(headers or {})
    if body is None:
        body = json.dumps({"text": text}, ensure_ascii=False).encode("utf-8")
    return InterpretRequest(method=method, headers=base_headers, body=body)


@pytest.fixture
def request_factory():
    return make_request
