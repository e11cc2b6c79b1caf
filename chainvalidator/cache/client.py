"""
Verdict caches for expensive custom rules.

Custom rules that call out to a datastore (uniqueness checks, lookups) can be
wrapped with cached_rule() so repeated values within the cache TTL reuse the
earlier verdict. The cache is injected into the executor and reaches rules
through ``context.cache``; nothing is cached globally.

Backends:
- InMemoryValidationCache: process-local dict with TTL, guarded by a lock
- RedisValidationCache: shared cache on redis-py with JSON serialization

Redis failures never fail a validation run: a failed read is a cache miss
and a failed write is skipped, both logged as warnings. cached_rule() runs
cache reads and writes on a small thread pool so a slow backend never blocks
the event loop or holds a run past its deadline.
"""

import asyncio
import json
import threading
import time
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from functools import wraps
from typing import Any, Callable, Dict, Optional, Tuple

import redis
import structlog
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..engine.exceptions import DELIBERATE_FAILURES, InvalidValue, failure_message
from ..engine.rules import maybe_await
from ..monitoring.metrics import validation_metrics
from ..utils.validators import to_string

logger = structlog.get_logger("chainvalidator.cache")

DEFAULT_TTL = 300
DEFAULT_SOCKET_TIMEOUT = 1.0

_io_pool = ThreadPoolExecutor(max_workers=10, thread_name_prefix='chainvalidator-cache')


class ValidationCache(ABC):
    """Key/value cache for rule verdicts. ``get`` returns None on a miss."""

    @abstractmethod
    def get(self, key: str) -> Any:
        ...

    @abstractmethod
    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...


class InMemoryValidationCache(ValidationCache):
    """
    Process-local TTL cache.

    Args:
        default_ttl: Entry lifetime in seconds
        max_entries: Oldest entries are evicted beyond this size
        clock: Monotonic clock, injectable for tests
    """

    def __init__(
        self,
        default_ttl: int = DEFAULT_TTL,
        max_entries: int = 10000,
        clock: Callable[[], float] = time.monotonic
    ) -> None:
        self._default_ttl = default_ttl
        self._max_entries = max_entries
        self._clock = clock
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at <= self._clock():
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        expires_at = self._clock() + (ttl if ttl is not None else self._default_ttl)
        with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = (expires_at, value)
            while len(self._entries) > self._max_entries:
                # dicts keep insertion order, so the first key is the oldest
                del self._entries[next(iter(self._entries))]

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class RedisValidationCache(ValidationCache):
    """
    Redis-backed verdict cache.

    Connection and timeout errors are retried with tenacity before the
    operation is given up; any remaining RedisError degrades to a miss.
    """

    def __init__(
        self,
        client: Optional[redis.Redis] = None,
        url: Optional[str] = None,
        default_ttl: int = DEFAULT_TTL,
        key_prefix: str = 'chainvalidator:',
        socket_timeout: float = DEFAULT_SOCKET_TIMEOUT
    ) -> None:
        if client is None:
            client = redis.Redis.from_url(
                url or 'redis://localhost:6379/0',
                decode_responses=True,
                socket_timeout=socket_timeout,
                socket_connect_timeout=socket_timeout
            )
        self._client = client
        self._default_ttl = default_ttl
        self._key_prefix = key_prefix

        logger.info("Redis validation cache initialized",
                    default_ttl=default_ttl,
                    key_prefix=key_prefix)

    def _format_key(self, key: str) -> str:
        return f"{self._key_prefix}{key}"

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.05, max=0.5),
        retry=retry_if_exception_type((RedisConnectionError, RedisTimeoutError)),
        reraise=True
    )
    def _get_raw(self, key: str) -> Any:
        return self._client.get(self._format_key(key))

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.05, max=0.5),
        retry=retry_if_exception_type((RedisConnectionError, RedisTimeoutError)),
        reraise=True
    )
    def _set_raw(self, key: str, payload: str, ttl: int) -> None:
        self._client.setex(self._format_key(key), ttl, payload)

    def get(self, key: str) -> Any:
        try:
            raw = self._get_raw(key)
        except redis.RedisError as e:
            logger.warning("Redis cache read failed, treating as miss", key=key, error=str(e))
            return None
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode('utf-8')
        try:
            return json.loads(raw)
        except ValueError as e:
            logger.warning("Redis cache entry is not valid JSON", key=key, error=str(e))
            return None

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        payload = json.dumps(value, default=str, ensure_ascii=False)
        try:
            self._set_raw(key, payload, ttl if ttl is not None else self._default_ttl)
        except redis.RedisError as e:
            logger.warning("Redis cache write failed", key=key, error=str(e))

    def delete(self, key: str) -> None:
        try:
            self._client.delete(self._format_key(key))
        except redis.RedisError as e:
            logger.warning("Redis cache delete failed", key=key, error=str(e))


async def _offload(func: Callable, *args: Any) -> Any:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(_io_pool, func, *args)


def default_cache_key(rule_name: str, value: Any) -> str:
    """Key of a cached verdict; the value type keeps `1` and `'1'` apart."""
    return f"rule:{rule_name}:{type(value).__name__}:{to_string(value)}"


def cached_rule(
    func: Optional[Callable] = None,
    *,
    key: Optional[Callable[[Any, Any], str]] = None,
    ttl: Optional[int] = None,
    name: Optional[str] = None
) -> Callable:
    """
    Cache the verdict of a custom rule in ``context.cache``.

    Passing verdicts and deliberate failures (with their message) are cached;
    unexpected errors are not, so an unreachable datastore is retried on the
    next run. Without an injected cache the rule runs uncached.

    Example:
        @cached_rule(ttl=60)
        async def username_available(value, context):
            if await users.exists(username=value):
                raise InvalidValue("Username already taken")
            return True

        check('username').custom(username_available)
    """
    def decorator(rule_func: Callable) -> Callable:
        rule_name = name or getattr(rule_func, '__qualname__', 'custom')

        @wraps(rule_func)
        async def wrapper(value: Any, context: Any) -> Any:
            cache = getattr(context, 'cache', None)
            if cache is None:
                return await maybe_await(rule_func(value, context))

            metrics = getattr(context, 'metrics', None) or validation_metrics
            cache_key = key(value, context) if key else default_cache_key(rule_name, value)
            cached = await _offload(cache.get, cache_key)
            metrics.record_cache(cached is not None)
            if cached is not None:
                logger.debug("Cached rule verdict used", rule=rule_name)
                if cached.get('valid'):
                    return True
                if cached.get('message'):
                    raise InvalidValue(cached['message'])
                return False

            try:
                result = await maybe_await(rule_func(value, context))
            except DELIBERATE_FAILURES as e:
                await _offload(cache.set, cache_key, {'valid': False, 'message': failure_message(e)}, ttl)
                raise

            valid = result is not False
            await _offload(cache.set, cache_key, {'valid': valid, 'message': None}, ttl)
            return result

        return wrapper

    if func is not None:
        return decorator(func)
    return decorator


__all__ = [
    'ValidationCache',
    'InMemoryValidationCache',
    'RedisValidationCache',
    'cached_rule',
    'default_cache_key',
    'DEFAULT_TTL',
]
