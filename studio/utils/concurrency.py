# studio/utils/concurrency.py
# Concurrency primitives for the preview lifecycle:
# settle-all fan-out, single-flight guards, timeout decorator

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from functools import wraps
from typing import Any, AsyncIterator, Awaitable, Callable, Generic, Iterable, List, Optional, TypeVar

from redis.asyncio import Redis
from redis.exceptions import LockError

logger = logging.getLogger(__name__)

K = TypeVar("K")
T = TypeVar("T")


@dataclass
class Settled(Generic[K, T]):
    """Outcome of one operation in a settle-all batch."""
    key: K
    value: Optional[T] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def settle_all(
    keys: Iterable[K],
    func: Callable[[K], Awaitable[T]],
) -> List[Settled[K, T]]:
    """
    Run func(key) for every key concurrently and wait for all of them.

    Every outcome is captured: a failing operation never cancels its siblings,
    and the batch only returns once all operations have settled. Results keep
    the order of `keys`.
    """
    keys = list(keys)
    if not keys:
        return []
    results = await asyncio.gather(*(func(k) for k in keys), return_exceptions=True)
    settled: List[Settled[K, T]] = []
    for key, result in zip(keys, results):
        if isinstance(result, BaseException):
            settled.append(Settled(key=key, error=result))
        else:
            settled.append(Settled(key=key, value=result))
    return settled


class SingleFlight:
    """
    Non-blocking try-acquire guard: at most one holder at a time,
    and contenders are turned away instead of queued.

    Usage:
        async with guard.try_acquire() as acquired:
            if not acquired:
                return  # someone else is running
            ...
    """

    def __init__(self, name: str):
        self.name = name
        self._lock = asyncio.Lock()

    @property
    def in_flight(self) -> bool:
        return self._lock.locked()

    @asynccontextmanager
    async def try_acquire(self) -> AsyncIterator[bool]:
        if self._lock.locked():
            logger.info(f"Single-flight '{self.name}' busy; skipping")
            yield False
            return
        # acquire() on a free lock completes without suspending
        async with self._lock:
            yield True


class RedisSingleFlight:
    """
    SingleFlight shared by every process that talks to the same Redis.

    Backed by a non-blocking redis-py lock with an expiry, so a holder that
    crashed mid-run releases the guard after ``ttl`` seconds.
    """

    def __init__(self, redis: Redis, name: str, ttl: float):
        self.name = name
        self._redis = redis
        self._ttl = ttl
        self._held = False

    @property
    def in_flight(self) -> bool:
        """Whether this process currently holds the guard."""
        return self._held

    async def is_held(self) -> bool:
        """Whether any process currently holds the guard."""
        return bool(await self._redis.exists(self.name))

    @asynccontextmanager
    async def try_acquire(self) -> AsyncIterator[bool]:
        # one Lock object per attempt: its token must not be shared between holders
        lock = self._redis.lock(self.name, timeout=self._ttl, blocking=False, thread_local=False)
        if not await lock.acquire():
            logger.info(f"Single-flight '{self.name}' held elsewhere; skipping")
            yield False
            return
        self._held = True
        try:
            yield True
        finally:
            self._held = False
            try:
                await lock.release()
            except LockError as e:
                logger.warning(f"Single-flight '{self.name}' expired before release: {e}")


def with_timeout(seconds: float):
    """
    Decorator to add timeout to async functions.

    Usage:
        @with_timeout(10.0)
        async def slow_operation():
            ...
    """
    def decorator(func: Callable[..., Awaitable[Any]]):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await asyncio.wait_for(
                    func(*args, **kwargs),
                    timeout=seconds
                )
            except asyncio.TimeoutError:
                logger.error(f"Timeout ({seconds}s) exceeded for {func.__name__}")
                raise

        return wrapper
    return decorator
