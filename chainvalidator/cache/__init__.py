"""Verdict caches injected into the chain executor."""

from .client import (
    DEFAULT_TTL,
    InMemoryValidationCache,
    RedisValidationCache,
    ValidationCache,
    cached_rule,
    default_cache_key,
)

__all__ = [
    'DEFAULT_TTL',
    'InMemoryValidationCache',
    'RedisValidationCache',
    'ValidationCache',
    'cached_rule',
    'default_cache_key',
]
