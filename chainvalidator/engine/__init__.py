"""
Validation chain engine.

Components:
    paths     Field path parsing, document traversal and write-back
    rules     Tagged rule model (validator, sanitizer, custom, guard, ...)
    registry  Named rule definitions with marshmallow option checking
    chain     Immutable ValidationChain and the fluent ChainBuilder
    context   Per-invocation context handed to custom rules
    schema    Schema compiler producing chains from declarative mappings
    executor  Async chain executor with deferred commits and deadlines
    results   Outcomes, ErrorReport and aggregation
"""

from .chain import (
    REQUEST_LOCATIONS,
    ChainBuilder,
    OptionalPolicy,
    ValidationChain,
    body,
    check,
    cookies,
    headers,
    is_empty_value,
    params,
    query,
)
from .context import ValidationContext
from .exceptions import (
    DELIBERATE_FAILURES,
    CompilationError,
    CustomRuleFault,
    ErrorSeverity,
    InvalidValue,
    PathSyntaxError,
    RequestValidationError,
    RunTimeoutError,
    ValidationEngineError,
)
from .executor import ChainExecutor, CommitPolicy, ReportValue
from .paths import WILDCARD, FieldPath, LocatedValue, assign, locate, read
from .registry import RuleDefinition, RuleRegistry, rule_registry
from .results import ChainEvaluation, ErrorReport, ValidationOutcome, ValueEvaluation, aggregate
from .rules import Rule, RuleKind
from .schema import compile_schema

__all__ = [
    # Chains
    'REQUEST_LOCATIONS',
    'ChainBuilder',
    'OptionalPolicy',
    'ValidationChain',
    'body',
    'check',
    'cookies',
    'headers',
    'is_empty_value',
    'params',
    'query',
    'ValidationContext',
    # Exceptions
    'DELIBERATE_FAILURES',
    'CompilationError',
    'CustomRuleFault',
    'ErrorSeverity',
    'InvalidValue',
    'PathSyntaxError',
    'RequestValidationError',
    'RunTimeoutError',
    'ValidationEngineError',
    # Execution
    'ChainExecutor',
    'CommitPolicy',
    'ReportValue',
    # Paths
    'WILDCARD',
    'FieldPath',
    'LocatedValue',
    'assign',
    'locate',
    'read',
    # Rules
    'RuleDefinition',
    'RuleRegistry',
    'rule_registry',
    'Rule',
    'RuleKind',
    # Results
    'ChainEvaluation',
    'ErrorReport',
    'ValidationOutcome',
    'ValueEvaluation',
    'aggregate',
    # Schemas
    'compile_schema',
]
