"""
Rule model for validation chains.

A chain is an ordered tuple of Rule values. Each Rule is tagged with a
RuleKind so the executor can dispatch on it without inspecting callables:

    VALIDATOR    judges the working value, ``func(value, *args, **options) -> bool``
    SANITIZER    replaces the working value, ``func(value, *args, **options)``
                 (contextual sanitizers receive ``(value, context)`` instead)
    CUSTOM       caller predicate, ``func(value, context) -> bool | awaitable``
    CONDITIONAL  guard; the rest of the chain runs only when it passes
    NEGATION     inverts the verdict of the next validator/custom rule
    BAIL         stops the chain for a value once a failure is recorded
"""

import inspect
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple, Union

import structlog

from .exceptions import CompilationError

logger = structlog.get_logger("chainvalidator.rules")

Message = Union[None, str, Callable[[Any, Any], Any]]


def render_message(message: Message, value: Any, context: Any, source: str = 'chain') -> Optional[str]:
    """
    Render a static or callable message for a failing value.

    Returns:
        The message string, or None if there is no message or the message
        callable raised
    """
    if message is None:
        return None
    if not callable(message):
        return str(message)
    try:
        return str(message(value, context))
    except Exception as e:
        logger.warning("Message callable raised",
                       source=source,
                       error=str(e))
        return None


async def maybe_await(result: Any) -> Any:
    """Await ``result`` if a rule callable returned an awaitable."""
    if inspect.isawaitable(result):
        return await result
    return result


class RuleKind(Enum):
    """Tag of a chain rule."""
    VALIDATOR = "validator"
    SANITIZER = "sanitizer"
    CUSTOM = "custom"
    CONDITIONAL = "conditional"
    NEGATION = "negation"
    BAIL = "bail"


JUDGING_KINDS = frozenset({RuleKind.VALIDATOR, RuleKind.CUSTOM})


@dataclass(frozen=True, eq=False)
class Rule:
    """
    Single step of a validation chain.

    Attributes:
        kind: Rule tag
        name: Rule name used in outcomes and logs (``is_int``, ``custom``)
        func: Callable implementing the rule, if any
        args: Bound positional options
        options: Bound keyword options
        message: Static message or ``callable(value, context)``
        contextual: Sanitizer receives ``(value, context)`` instead of options
        guard: Guard chain for CONDITIONAL rules built from another chain
    """

    kind: RuleKind
    name: str
    func: Optional[Callable] = None
    args: Tuple[Any, ...] = ()
    options: Dict[str, Any] = field(default_factory=dict)
    message: Message = None
    contextual: bool = False
    guard: Any = None

    @property
    def judges(self) -> bool:
        return self.kind in JUDGING_KINDS

    def with_message(self, message: Message) -> 'Rule':
        """Return a copy of this rule carrying a custom message."""
        return replace(self, message=message)

    def render_message(self, value: Any, context: Any) -> Optional[str]:
        return render_message(self.message, value, context, self.name)

    def __repr__(self) -> str:
        return f"Rule(kind={self.kind.value}, name={self.name!r})"


def negation() -> Rule:
    return Rule(RuleKind.NEGATION, 'not')


def bail() -> Rule:
    return Rule(RuleKind.BAIL, 'bail')


def custom(func: Callable, message: Message = None) -> Rule:
    if not callable(func):
        raise CompilationError("custom rule requires a callable", rule_name="custom")
    return Rule(RuleKind.CUSTOM, 'custom', func=func, message=message)


def custom_sanitizer(func: Callable) -> Rule:
    if not callable(func):
        raise CompilationError("custom_sanitizer rule requires a callable", rule_name="custom_sanitizer")
    return Rule(RuleKind.SANITIZER, 'custom_sanitizer', func=func, contextual=True)


def conditional(predicate: Any) -> Rule:
    """
    Build a guard rule.

    Args:
        predicate: ``callable(value, context)`` returning a truthy value (or an
            awaitable of one), or a chain/builder that must record no failure
    """
    if hasattr(predicate, 'build'):
        predicate = predicate.build()
    if callable(predicate):
        return Rule(RuleKind.CONDITIONAL, 'if', func=predicate)
    if hasattr(predicate, 'rules') and hasattr(predicate, 'path'):
        return Rule(RuleKind.CONDITIONAL, 'if', guard=predicate)
    raise CompilationError("if guard requires a callable or a validation chain", rule_name="if")


__all__ = [
    'RuleKind',
    'Rule',
    'Message',
    'render_message',
    'maybe_await',
    'JUDGING_KINDS',
    'negation',
    'bail',
    'custom',
    'custom_sanitizer',
    'conditional',
]
