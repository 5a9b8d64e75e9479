"""
固定窗口限流 - 按客户端标识计数

窗口从该标识的第一次请求开始计时, 窗口内最多 limit 次。
memory 后端为进程内计数: 多 worker / 多实例部署时每个进程各自计数,
实际上限为 limit * 进程数。需要全局上限时使用 redis 后端。
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from redis import asyncio as redis_asyncio

from miroyo.config.settings import settings

logger = logging.getLogger(__name__)


class RateLimitStore(ABC):
    """限流状态存储抽象"""

    @abstractmethod
    async def check_and_increment(self, key: str) -> bool:
        """Count one request for key; False when the window is already full."""
        ...

    async def close(self):
        pass


@dataclass
class RateWindow:
    count: int
    reset_at: float


class MemoryRateLimitStore(RateLimitStore):
    """进程内固定窗口计数, 每个标识一把锁"""

    def __init__(
        self,
        limit: Optional[int] = None,
        window_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._limit = settings.rate_limit.requests if limit is None else limit
        self._window = settings.rate_limit.window_seconds if window_seconds is None else window_seconds
        self._clock = clock
        self._windows: Dict[str, RateWindow] = {}
        self._key_locks: Dict[str, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._windows)

    def _get_key_lock(self, key: str) -> asyncio.Lock:
        lock = self._key_locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._key_locks[key] = lock
        return lock

    def _evict_expired(self, now: float, current_key: str) -> None:
        expired = [k for k, w in self._windows.items() if w.reset_at <= now]
        for k in expired:
            del self._windows[k]
        # locks follow windows; a lock held during an earlier sweep is dropped on a later one
        stale = [
            k for k, lock in self._key_locks.items()
            if k != current_key and k not in self._windows and not lock.locked()
        ]
        for k in stale:
            del self._key_locks[k]

    async def check_and_increment(self, key: str) -> bool:
        async with self._get_key_lock(key):
            now = self._clock()
            self._evict_expired(now, key)

            window = self._windows.get(key)
            if window is None:
                self._windows[key] = RateWindow(count=1, reset_at=now + self._window)
                return True
            if window.count >= self._limit:
                return False
            window.count += 1
            return True


class RedisRateLimitStore(RateLimitStore):
    """Redis 共享计数, 跨实例生效; 过期由 key TTL 负责"""

    _CHECK_AND_INCREMENT_SCRIPT = """
local key = KEYS[1]
local limit = tonumber(ARGV[1])
local window_ms = tonumber(ARGV[2])
local current = tonumber(redis.call('GET', key) or '0')
if current >= limit then
  return 0
end
local count = redis.call('INCR', key)
if count == 1 then
  redis.call('PEXPIRE', key, window_ms)
end
return 1
"""

    def __init__(
        self,
        client,
        limit: Optional[int] = None,
        window_seconds: Optional[float] = None,
        key_prefix: Optional[str] = None,
    ):
        self._redis = client
        self._limit = settings.rate_limit.requests if limit is None else limit
        self._window = settings.rate_limit.window_seconds if window_seconds is None else window_seconds
        self._prefix = str(key_prefix or settings.rate_limit.redis_key_prefix).strip(":")

    def _key(self, key: str) -> str:
        return f"{self._prefix}:{key}"

    async def check_and_increment(self, key: str) -> bool:
        try:
            allowed = await self._redis.eval(
                self._CHECK_AND_INCREMENT_SCRIPT,
                1,
                self._key(key),
                int(self._limit),
                max(1, int(self._window * 1000)),
            )
        except Exception as e:
            logger.warning("redis rate limit check failed, allowing request: %s", e)
            return True
        return int(allowed) == 1

    async def close(self):
        await self._redis.aclose()


async def build_rate_limit_store() -> RateLimitStore:
    """按配置创建限流存储, redis 不可达时回退到 memory"""
    backend = settings.rate_limit.backend
    if backend != "redis":
        logger.info("Rate limit backend: memory")
        return MemoryRateLimitStore()

    client = redis_asyncio.from_url(settings.rate_limit.redis_url, decode_responses=True)
    try:
        await client.ping()
    except Exception as e:
        logger.warning("redis unreachable, fallback to memory rate limit: %s", e)
        await client.aclose()
        return MemoryRateLimitStore()
    logger.info("Rate limit backend: redis")
    return RedisRateLimitStore(client)
