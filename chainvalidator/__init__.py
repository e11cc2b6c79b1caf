"""
chainvalidator
==============

Declarative validation and sanitization chains for web request input.

Chains are built fluently or compiled from schemas, run concurrently by the
ChainExecutor (sync and async custom rules alike) and reported as an
ErrorReport instead of raising on the first failure:

    from chainvalidator import ChainExecutor, check, compile_schema

    report = ChainExecutor().run([
        check('email').trim().is_email(),
        check('items.*.price').is_float(min=0),
    ], document)

    chains = compile_schema({'age': {'optional': True, 'isInt': True}})
"""

from .cache import InMemoryValidationCache, RedisValidationCache, ValidationCache, cached_rule
from .config import get_config
from .engine import (
    WILDCARD,
    ChainBuilder,
    ChainExecutor,
    CommitPolicy,
    CompilationError,
    CustomRuleFault,
    ErrorReport,
    FieldPath,
    InvalidValue,
    LocatedValue,
    OptionalPolicy,
    PathSyntaxError,
    ReportValue,
    RequestValidationError,
    Rule,
    RuleKind,
    RunTimeoutError,
    ValidationChain,
    ValidationContext,
    ValidationEngineError,
    ValidationOutcome,
    aggregate,
    body,
    check,
    compile_schema,
    cookies,
    headers,
    locate,
    params,
    query,
    rule_registry,
)
from .monitoring import setup_structured_logging
from .utils.decorators import (
    init_validation,
    matched_data,
    register_error_handlers,
    validate_request,
    validation_result,
)

__version__ = '1.0.0'

__all__ = [
    # Building chains
    'check',
    'body',
    'query',
    'params',
    'headers',
    'cookies',
    'compile_schema',
    'rule_registry',
    'ChainBuilder',
    'ValidationChain',
    'OptionalPolicy',
    'Rule',
    'RuleKind',
    'FieldPath',
    'LocatedValue',
    'WILDCARD',
    'locate',
    # Running chains
    'ChainExecutor',
    'CommitPolicy',
    'ReportValue',
    'ValidationContext',
    'ErrorReport',
    'ValidationOutcome',
    'aggregate',
    # Errors
    'ValidationEngineError',
    'CompilationError',
    'PathSyntaxError',
    'CustomRuleFault',
    'InvalidValue',
    'RunTimeoutError',
    'RequestValidationError',
    # Caching
    'ValidationCache',
    'InMemoryValidationCache',
    'RedisValidationCache',
    'cached_rule',
    # Flask
    'validate_request',
    'validation_result',
    'matched_data',
    'register_error_handlers',
    'init_validation',
    # Ambient
    'get_config',
    'setup_structured_logging',
]
