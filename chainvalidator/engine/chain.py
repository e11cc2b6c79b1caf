"""
Validation chains and the fluent chain builder.

A ValidationChain is an immutable value: one field path, an ordered tuple of
tagged rules and a few control modifiers. Chains are normally produced by the
ChainBuilder returned from check()/body()/query()/..., or compiled from a
schema by compile_schema():

    chain = (
        body('user.email')
        .trim()
        .not_empty().bail()
        .is_email().with_message('Invalid e-mail')
        .normalize_email()
        .build()
    )

Any rule registered in the rule registry is available as a builder method.
Modifiers whose names clash with Python keywords carry a trailing underscore
(``not_()``, ``if_()``).
"""

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable, List, Optional, Tuple, Union

from marshmallow import missing

from . import rules as rule_factories
from .exceptions import CompilationError
from .paths import FieldPath, LocatedValue, locate
from .registry import RuleRegistry, rule_registry
from .rules import Message, Rule

REQUEST_LOCATIONS = ('body', 'query', 'params', 'headers', 'cookies')


class OptionalPolicy(Enum):
    """Emptiness policy of the ``optional`` modifier (escalating)."""
    UNDEFINED = "undefined"
    NULL = "null"
    FALSY = "falsy"

    @classmethod
    def coerce(cls, value: Any) -> Optional['OptionalPolicy']:
        """
        Normalize the accepted spellings of an optional policy.

        ``True`` means UNDEFINED, ``False``/``None`` disables the modifier and
        strings map to the matching member (``'null'``, ``'falsy'``). The
        legacy flags ``{'nullable': True}`` and ``{'checkFalsy': True}`` are
        also understood.
        """
        if value is None or value is False:
            return None
        if value is True:
            return cls.UNDEFINED
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.lower())
            except ValueError:
                pass
        if isinstance(value, Mapping):
            if 'values' in value:
                return cls.coerce(value['values'])
            if value.get('checkFalsy') or value.get('check_falsy'):
                return cls.FALSY
            if value.get('nullable'):
                return cls.NULL
            return cls.UNDEFINED
        raise CompilationError(f"Invalid optional policy: {value!r}", rule_name='optional')


def is_empty_value(value: Any, policy: OptionalPolicy) -> bool:
    """Check whether a value counts as empty under an optional policy."""
    if value is missing:
        return True
    if policy is OptionalPolicy.NULL:
        return value is None
    if policy is OptionalPolicy.FALSY:
        return value is None or not value
    return False


@dataclass(frozen=True)
class ValidationChain:
    """
    Immutable validation chain.

    Attributes:
        path: Field path the chain targets
        rules: Rules in declaration order
        locations: Document locations to read from (empty for a plain document)
        optional: Optional policy, or None when the field is required
        stop_on_first_error: Stop evaluating a value after its first failure
        message: Chain default message used when a failing rule has none
    """

    path: FieldPath
    rules: Tuple[Rule, ...] = ()
    locations: Tuple[str, ...] = ()
    optional: Optional[OptionalPolicy] = None
    stop_on_first_error: bool = False
    message: Message = None

    def locate(self, document: Any) -> List[LocatedValue]:
        """
        Resolve the chain's path against a document.

        With several locations, present values from every location are
        returned; when the field is absent everywhere, the absent entry of the
        first location is returned so presence rules still fire.
        """
        if not self.locations:
            return locate(document, self.path)

        per_location = []
        for location in self.locations:
            source = document.get(location, missing) if isinstance(document, Mapping) else missing
            per_location.append(locate(source, self.path, location))

        present = [located for results in per_location for located in results if not located.absent]
        if present:
            return present
        return per_location[0]

    def build(self) -> 'ValidationChain':
        return self

    def __repr__(self) -> str:
        return f"ValidationChain(path={self.path.raw!r}, rules={[rule.name for rule in self.rules]})"


class ChainBuilder:
    """
    Fluent builder producing an immutable ValidationChain.

    Registered rules are exposed through attribute access, so
    ``check('age').is_int(min=0)`` looks up ``is_int`` in the registry and
    binds its options immediately; invalid options raise CompilationError at
    build time, not at request time.
    """

    def __init__(
        self,
        path: Union[str, FieldPath],
        locations: Iterable[str] = (),
        registry: Optional[RuleRegistry] = None
    ) -> None:
        self._path = FieldPath.parse(path)
        self._locations = tuple(locations)
        self._registry = registry or rule_registry
        self._rules: List[Rule] = []
        self._optional: Optional[OptionalPolicy] = None
        self._stop_on_first_error = False
        self._message: Message = None

    def __getattr__(self, name: str) -> Callable[..., 'ChainBuilder']:
        if name.startswith('_') or name not in self._registry:
            raise AttributeError(f"'{type(self).__name__}' has no rule or attribute '{name}'")
        definition = self._registry.get(name)

        def add_rule(*args: Any, message: Message = None, **kwargs: Any) -> 'ChainBuilder':
            return self._append(definition.bind(args, kwargs, message))

        add_rule.__name__ = definition.name
        return add_rule

    def _append(self, rule: Rule) -> 'ChainBuilder':
        self._rules.append(rule)
        return self

    def not_(self) -> 'ChainBuilder':
        """Invert the verdict of the next validator or custom rule."""
        return self._append(rule_factories.negation())

    def bail(self) -> 'ChainBuilder':
        """Stop this chain for a value if any rule so far has failed."""
        return self._append(rule_factories.bail())

    def if_(self, predicate: Any) -> 'ChainBuilder':
        """Run the remaining rules only when the predicate or guard chain passes."""
        return self._append(rule_factories.conditional(predicate))

    def optional(self, values: Any = True) -> 'ChainBuilder':
        """Skip the chain when the value is empty under the given policy."""
        self._optional = OptionalPolicy.coerce(values)
        return self

    def custom(self, func: Callable, message: Message = None) -> 'ChainBuilder':
        return self._append(rule_factories.custom(func, message=message))

    def custom_sanitizer(self, func: Callable) -> 'ChainBuilder':
        return self._append(rule_factories.custom_sanitizer(func))

    def stop_on_first_error(self, enabled: bool = True) -> 'ChainBuilder':
        self._stop_on_first_error = enabled
        return self

    def with_message(self, message: Message) -> 'ChainBuilder':
        """
        Set the message of the most recent validator or custom rule.

        Before any judging rule has been added, the message becomes the
        chain default message instead.
        """
        for index in range(len(self._rules) - 1, -1, -1):
            if self._rules[index].judges:
                self._rules[index] = self._rules[index].with_message(message)
                return self
        self._message = message
        return self

    def build(self) -> ValidationChain:
        return ValidationChain(
            path=self._path,
            rules=tuple(self._rules),
            locations=self._locations,
            optional=self._optional,
            stop_on_first_error=self._stop_on_first_error,
            message=self._message,
        )

    def __repr__(self) -> str:
        return f"ChainBuilder(path={self._path.raw!r}, rules={len(self._rules)})"


def check(path: str, locations: Iterable[str] = (), registry: Optional[RuleRegistry] = None) -> ChainBuilder:
    """
    Start a chain for a field.

    Without locations the path is resolved against the whole document. With
    locations (``check('id', ['params', 'query'])``) the document is treated
    as a mapping of location name to source tree.
    """
    if isinstance(locations, str):
        locations = (locations,)
    return ChainBuilder(path, locations, registry)


def body(path: str) -> ChainBuilder:
    return ChainBuilder(path, ('body',))


def query(path: str) -> ChainBuilder:
    return ChainBuilder(path, ('query',))


def params(path: str) -> ChainBuilder:
    return ChainBuilder(path, ('params',))


def headers(path: str) -> ChainBuilder:
    # header names are stored lower-cased
    return ChainBuilder(path.lower(), ('headers',))


def cookies(path: str) -> ChainBuilder:
    return ChainBuilder(path, ('cookies',))


__all__ = [
    'REQUEST_LOCATIONS',
    'OptionalPolicy',
    'is_empty_value',
    'ValidationChain',
    'ChainBuilder',
    'check',
    'body',
    'query',
    'params',
    'headers',
    'cookies',
]
