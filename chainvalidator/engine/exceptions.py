"""
Exception hierarchy for the validation chain engine.

Every exception raised by the engine derives from ValidationEngineError, which
carries a stable error code, a severity level and a filtered context mapping,
and emits a structured log entry when constructed. Per-field validation
failures are NOT exceptions: they are collected as data in the ErrorReport.

Classes:
    ValidationEngineError: Base class for all engine exceptions
    CompilationError: Malformed schema, path or rule parameters
    PathSyntaxError: Field path string could not be parsed
    RunTimeoutError: A validation run exceeded its deadline
    CustomRuleFault: Infrastructure failure inside a caller-supplied rule
    RequestValidationError: Raised on demand when a report contains failures
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

import structlog
from marshmallow import ValidationError as MarshmallowValidationError

logger = structlog.get_logger("chainvalidator.exceptions")


class ErrorSeverity(Enum):
    """Severity levels used to pick the log level of an engine exception."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ValidationEngineError(Exception):
    """
    Base exception class for all validation engine failures.

    Attributes:
        message (str): Human-readable error message
        error_code (str): Stable identifier for programmatic handling
        http_status_code (int): Status code used when rendered as a response
        severity (ErrorSeverity): Severity level for log routing
        context (Dict[str, Any]): Additional error context (long values truncated)
        cause (Optional[Exception]): Original exception, if any
        timestamp (datetime): Time the error was raised
    """

    def __init__(
        self,
        message: str,
        error_code: str,
        http_status_code: int = 500,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ) -> None:
        super().__init__(message)

        self.message = message
        self.error_code = error_code
        self.http_status_code = http_status_code
        self.severity = severity
        self.context = self._filter_context(context or {})
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        self._log_exception()

    def _filter_context(self, context: Dict[str, Any]) -> Dict[str, Any]:
        """Truncate oversized context values so they stay log friendly."""
        filtered_context = {}
        for key, value in context.items():
            if isinstance(value, str) and len(value) > 200:
                filtered_context[key] = value[:200] + "... [TRUNCATED]"
            elif isinstance(value, (list, tuple)) and len(value) > 20:
                filtered_context[key] = list(value[:20])
            else:
                filtered_context[key] = value
        return filtered_context

    def _log_exception(self) -> None:
        """Emit a structured log entry with a level matching the severity."""
        log_data = {
            'event_type': 'validation_engine_exception',
            'exception_class': self.__class__.__name__,
            'error_code': self.error_code,
            'severity': self.severity.value,
            'context': self.context,
        }
        if self.cause is not None:
            log_data['cause_type'] = type(self.cause).__name__
            log_data['cause_message'] = str(self.cause)

        if self.severity in (ErrorSeverity.CRITICAL, ErrorSeverity.HIGH):
            logger.error(self.message, **log_data)
        elif self.severity == ErrorSeverity.MEDIUM:
            logger.warning(self.message, **log_data)
        else:
            logger.info(self.message, **log_data)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for JSON serialization.

        Returns:
            Dictionary representation safe for client exposure
        """
        return {
            'error': {
                'message': self.message,
                'code': self.error_code,
                'severity': self.severity.value,
                'timestamp': self.timestamp.isoformat(),
                'context': self.context,
            }
        }


class CompilationError(ValidationEngineError):
    """
    Raised when a schema, field path or rule definition is malformed.

    Compilation errors surface synchronously at build/compile time and are
    fatal to the whole schema: no partial chain set is ever returned.

    Example:
        try:
            chains = compile_schema({'bad..path': {'isInt': True}})
        except CompilationError as e:
            logger.error("Schema rejected", error=e.to_dict())
    """

    def __init__(
        self,
        message: str,
        error_code: str = "SCHEMA_COMPILATION_FAILED",
        field: Optional[str] = None,
        rule_name: Optional[str] = None,
        details: Optional[Any] = None,
        **kwargs
    ) -> None:
        kwargs.setdefault('severity', ErrorSeverity.HIGH)
        context = kwargs.pop('context', {})
        if field is not None:
            context['field'] = field
        if rule_name is not None:
            context['rule'] = rule_name
        if details is not None:
            context['details'] = details

        super().__init__(message, error_code, context=context, **kwargs)

        self.field = field
        self.rule_name = rule_name
        self.details = details


class PathSyntaxError(CompilationError):
    """Raised when a field path string is empty or malformed."""

    def __init__(self, message: str, path: Any = None, **kwargs) -> None:
        kwargs.setdefault('error_code', "INVALID_FIELD_PATH")
        super().__init__(message, field=path if isinstance(path, str) else repr(path), **kwargs)
        self.path = path


class RunTimeoutError(ValidationEngineError):
    """
    Raised when a validation run exceeds its deadline.

    The run fails wholesale: no partial report is produced and no sanitized
    value is committed to the input document.
    """

    def __init__(self, timeout: float, chain_count: int, **kwargs) -> None:
        kwargs.setdefault('severity', ErrorSeverity.HIGH)
        kwargs.setdefault('http_status_code', 503)
        super().__init__(
            f"Validation run exceeded deadline of {timeout} seconds",
            "VALIDATION_RUN_TIMEOUT",
            context={'timeout_seconds': timeout, 'chain_count': chain_count},
            **kwargs
        )
        self.timeout = timeout
        self.chain_count = chain_count


class CustomRuleFault(ValidationEngineError):
    """
    A caller-supplied rule failed for a reason other than an invalid value.

    The executor never lets this propagate: it is constructed (and therefore
    logged) at the rule invocation boundary and converted into a failed
    outcome so that infrastructure errors fail closed.
    """

    def __init__(self, rule_name: str, path: str, cause: Exception, **kwargs) -> None:
        kwargs.setdefault('severity', ErrorSeverity.HIGH)
        super().__init__(
            f"Custom rule '{rule_name}' raised an unexpected error",
            "CUSTOM_RULE_FAULT",
            context={'rule': rule_name, 'path': path},
            cause=cause,
            **kwargs
        )
        self.rule_name = rule_name
        self.path = path


# Exceptions a custom rule raises on purpose to reject a value
DELIBERATE_FAILURES: tuple = (ValueError, MarshmallowValidationError)


def failure_message(error: Exception) -> Optional[str]:
    """Extract the message carried by a deliberate failure exception."""
    if isinstance(error, MarshmallowValidationError):
        messages = error.messages
        if isinstance(messages, (list, tuple)):
            return '; '.join(str(message) for message in messages) or None
        return str(messages) or None
    return str(error) or None


class InvalidValue(ValueError):
    """
    Deliberate failure signal for custom rules.

    Raising it (or any ValueError / marshmallow ValidationError) from a custom
    rule records a failed outcome whose message is the exception message.
    Unlike the engine exceptions it is not logged: an invalid value is data.

    Example:
        async def email_not_in_use(value, context):
            if await users.exists(email=value):
                raise InvalidValue("E-mail already in use")
            return True
    """


class RequestValidationError(ValidationEngineError):
    """
    Raised by ErrorReport.raise_for_errors() when validation failed.

    Carries the full outcome list so error handlers can render it.
    """

    def __init__(self, outcomes: List[Any], message: str = "Request validation failed", **kwargs) -> None:
        kwargs.setdefault('severity', ErrorSeverity.LOW)
        kwargs.setdefault('http_status_code', 400)
        super().__init__(
            message,
            "REQUEST_VALIDATION_FAILED",
            context={'error_count': len(outcomes)},
            **kwargs
        )
        self.outcomes = list(outcomes)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data['errors'] = [outcome.to_dict() for outcome in self.outcomes]
        return data


__all__ = [
    'ErrorSeverity',
    'ValidationEngineError',
    'CompilationError',
    'PathSyntaxError',
    'RunTimeoutError',
    'CustomRuleFault',
    'InvalidValue',
    'DELIBERATE_FAILURES',
    'failure_message',
    'RequestValidationError',
]
