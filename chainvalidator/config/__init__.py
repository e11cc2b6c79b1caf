"""Environment-specific configuration for the validation engine."""

from .settings import (
    BaseConfig,
    DevelopmentConfig,
    ProductionConfig,
    TestingConfig,
    config_map,
    create_validation_cache,
    get_config,
    validate_configuration,
)

__all__ = [
    'BaseConfig',
    'DevelopmentConfig',
    'ProductionConfig',
    'TestingConfig',
    'config_map',
    'create_validation_cache',
    'get_config',
    'validate_configuration',
]
