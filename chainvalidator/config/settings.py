"""
Validation engine configuration classes.

Environment-specific settings (Development, Testing, Production) loaded from
environment variables via python-dotenv. ChainExecutor.from_config() and
create_validation_cache() build runtime objects from a config class:

    config = get_config('production')
    executor = ChainExecutor.from_config(config, cache=create_validation_cache(config))

Environment variables:
    VALIDATION_ENV                 development | testing | production
    VALIDATION_DEFAULT_MESSAGE     Message of failures without any other message
    VALIDATION_FAULT_MESSAGE       Message of failures caused by faulting custom rules
    VALIDATION_RUN_TIMEOUT         Run deadline in seconds (empty disables it)
    VALIDATION_COMMIT_POLICY       always | on_success
    VALIDATION_REPORT_VALUE        sanitized | original
    VALIDATION_CACHE_BACKEND       none | memory | redis
    VALIDATION_CACHE_TTL           Verdict cache TTL in seconds
    REDIS_URL                      Redis connection URL for the redis backend
    REDIS_SOCKET_TIMEOUT           Redis socket and connect timeout in seconds
    LOG_LEVEL / LOG_FORMAT         Structured logging settings
"""

import os
from typing import Any, Dict, List, Optional, Type

import structlog
from dotenv import load_dotenv

logger = structlog.get_logger("chainvalidator.config")

# Load environment variables from .env file
load_dotenv()


def _optional_float(name: str, default: Optional[str] = None) -> Optional[float]:
    raw = os.getenv(name, default)
    if raw is None or raw.strip() == '':
        return None
    return float(raw)


class BaseConfig:
    """
    Base configuration shared by every environment.

    Values are read once, when the module is imported.
    """

    VALIDATION_ENV = os.getenv('VALIDATION_ENV', 'development')

    # Messages
    VALIDATION_DEFAULT_MESSAGE = os.getenv('VALIDATION_DEFAULT_MESSAGE', 'Invalid value')
    VALIDATION_FAULT_MESSAGE = os.getenv('VALIDATION_FAULT_MESSAGE', 'Value could not be validated')

    # Executor behavior
    VALIDATION_RUN_TIMEOUT = _optional_float('VALIDATION_RUN_TIMEOUT', '10')
    VALIDATION_COMMIT_POLICY = os.getenv('VALIDATION_COMMIT_POLICY', 'always').lower()
    VALIDATION_REPORT_VALUE = os.getenv('VALIDATION_REPORT_VALUE', 'sanitized').lower()

    # Verdict cache
    VALIDATION_CACHE_BACKEND = os.getenv('VALIDATION_CACHE_BACKEND', 'memory').lower()
    VALIDATION_CACHE_TTL = int(os.getenv('VALIDATION_CACHE_TTL', '300'))
    REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')
    REDIS_SOCKET_TIMEOUT = float(os.getenv('REDIS_SOCKET_TIMEOUT', '1.0'))

    # Logging
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()
    LOG_FORMAT = os.getenv('LOG_FORMAT', 'json').lower()

    # Flask integration
    VALIDATION_ABORT_ON_ERROR = os.getenv('VALIDATION_ABORT_ON_ERROR', 'false').lower() == 'true'

    @classmethod
    def as_dict(cls) -> Dict[str, Any]:
        """Return the settings of this config class as a plain dict."""
        return {
            name: getattr(cls, name)
            for name in dir(cls)
            if name.isupper()
        }


class DevelopmentConfig(BaseConfig):
    """Development configuration with console logs and verbose output."""

    VALIDATION_ENV = 'development'
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'DEBUG').upper()
    LOG_FORMAT = os.getenv('LOG_FORMAT', 'console').lower()


class TestingConfig(BaseConfig):
    """
    Testing configuration.

    No verdict cache, no Redis and a short run deadline so hanging custom
    rules fail tests quickly.
    """

    VALIDATION_ENV = 'testing'
    VALIDATION_RUN_TIMEOUT = 2.0
    VALIDATION_CACHE_BACKEND = 'none'
    LOG_LEVEL = 'WARNING'
    LOG_FORMAT = 'console'


class ProductionConfig(BaseConfig):
    """Production configuration with JSON logs and a shared Redis cache."""

    VALIDATION_ENV = 'production'
    VALIDATION_CACHE_BACKEND = os.getenv('VALIDATION_CACHE_BACKEND', 'redis').lower()
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()
    LOG_FORMAT = 'json'


config_map: Dict[str, Type[BaseConfig]] = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,

    # Aliases for convenience
    'dev': DevelopmentConfig,
    'test': TestingConfig,
    'prod': ProductionConfig,
}


def get_config(environment: Optional[str] = None) -> Type[BaseConfig]:
    """
    Get configuration class for the specified environment.

    Args:
        environment: Target environment name (defaults to VALIDATION_ENV)

    Returns:
        Configuration class for the specified environment

    Raises:
        ValueError: If environment is not supported
    """
    if environment is None:
        environment = os.getenv('VALIDATION_ENV', 'development')

    environment = environment.lower()

    if environment not in config_map:
        raise ValueError(
            f"Unsupported environment '{environment}'. "
            f"Supported environments: {list(config_map.keys())}"
        )

    config_class = config_map[environment]
    logger.debug("Configuration class selected",
                 environment=environment,
                 config_class=config_class.__name__)
    return config_class


def validate_configuration(config: Any) -> List[str]:
    """
    Validate configuration settings and return list of issues.

    Returns:
        List of validation error messages (empty if valid)
    """
    issues = []

    if config.VALIDATION_COMMIT_POLICY not in ('always', 'on_success'):
        issues.append("VALIDATION_COMMIT_POLICY must be 'always' or 'on_success'")

    if config.VALIDATION_REPORT_VALUE not in ('sanitized', 'original'):
        issues.append("VALIDATION_REPORT_VALUE must be 'sanitized' or 'original'")

    if config.VALIDATION_CACHE_BACKEND not in ('none', 'memory', 'redis'):
        issues.append("VALIDATION_CACHE_BACKEND must be 'none', 'memory' or 'redis'")

    if config.VALIDATION_RUN_TIMEOUT is not None and config.VALIDATION_RUN_TIMEOUT <= 0:
        issues.append("VALIDATION_RUN_TIMEOUT must be positive")

    if config.VALIDATION_CACHE_TTL <= 0:
        issues.append("VALIDATION_CACHE_TTL must be positive")

    if config.VALIDATION_CACHE_BACKEND == 'redis' and not config.REDIS_URL:
        issues.append("REDIS_URL is required for the redis cache backend")

    if config.LOG_FORMAT not in ('json', 'console'):
        issues.append("LOG_FORMAT must be 'json' or 'console'")

    logger.debug("Configuration validation completed",
                 config_class=getattr(config, '__name__', type(config).__name__),
                 issues_found=len(issues))
    return issues


def create_validation_cache(config: Any) -> Any:
    """
    Build the verdict cache selected by VALIDATION_CACHE_BACKEND.

    Returns:
        An InMemoryValidationCache, a RedisValidationCache or None
    """
    from ..cache.client import InMemoryValidationCache, RedisValidationCache

    backend = config.VALIDATION_CACHE_BACKEND
    if backend == 'memory':
        return InMemoryValidationCache(default_ttl=config.VALIDATION_CACHE_TTL)
    if backend == 'redis':
        return RedisValidationCache(
            url=config.REDIS_URL,
            default_ttl=config.VALIDATION_CACHE_TTL,
            socket_timeout=config.REDIS_SOCKET_TIMEOUT
        )
    return None


__all__ = [
    'BaseConfig',
    'DevelopmentConfig',
    'TestingConfig',
    'ProductionConfig',
    'config_map',
    'get_config',
    'validate_configuration',
    'create_validation_cache',
]
