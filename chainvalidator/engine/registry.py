"""
Rule registry: named rule definitions and option type checking.

The registry maps rule names to RuleDefinition entries. A definition knows
its kind, implementation, positional parameter names and an optional
marshmallow schema used to type-check options when a rule is bound, so the
fluent builder and the schema compiler reject bad parameters the same way:

    rule_registry.get('isLength').bind(kwargs={'min': 8})
    rule_registry.get('is_length').bind(kwargs={'min': 'eight'})  # CompilationError

Rule names are accepted in snake_case or camelCase (``is_length`` /
``isLength``). Applications register their own reusable rules with
``rule_registry.register(...)``.
"""

import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional, Sequence, Tuple, Type

import structlog
from marshmallow import Schema, ValidationError, fields, validate, validates_schema

from . import rules as rule_factories
from .exceptions import CompilationError
from .rules import Message, Rule, RuleKind
from ..utils import sanitizers, validators

logger = structlog.get_logger("chainvalidator.registry")

_CAMEL_BOUNDARY_RE = re.compile(r'(?<=[a-z0-9])([A-Z])')


def normalize_rule_name(name: str) -> str:
    """Convert ``isLength`` style names to ``is_length``."""
    return _CAMEL_BOUNDARY_RE.sub(r'_\1', name).lower()


# ============================================================================
# OPTION SCHEMAS
# ============================================================================

class CallableField(fields.Field):
    """Field accepting any callable (custom validators and sanitizers)."""

    default_error_messages = {'invalid': 'Not a callable.'}

    def _deserialize(self, value: Any, attr: Optional[str], data: Any, **kwargs) -> Callable:
        if not callable(value):
            raise self.make_error('invalid')
        return value


class BoundedOptionsSchema(Schema):
    """Numeric min/max options where min must not exceed max."""

    @validates_schema
    def validate_bounds(self, data, **kwargs):
        minimum = data.get('min')
        maximum = data.get('max')
        if minimum is not None and maximum is not None and minimum > maximum:
            raise ValidationError({'min': ['min must not be greater than max']})


class LengthOptionsSchema(BoundedOptionsSchema):
    min = fields.Integer(strict=True, validate=validate.Range(min=0))
    max = fields.Integer(strict=True, validate=validate.Range(min=0), allow_none=True)


class IntOptionsSchema(BoundedOptionsSchema):
    min = fields.Integer(strict=True, allow_none=True)
    max = fields.Integer(strict=True, allow_none=True)
    allow_leading_zeroes = fields.Boolean()


class FloatOptionsSchema(BoundedOptionsSchema):
    min = fields.Float(allow_none=True)
    max = fields.Float(allow_none=True)


class ArrayOptionsSchema(BoundedOptionsSchema):
    min = fields.Integer(strict=True, validate=validate.Range(min=0), allow_none=True)
    max = fields.Integer(strict=True, validate=validate.Range(min=0), allow_none=True)


class PresenceOptionsSchema(Schema):
    values = fields.String(validate=validate.OneOf(['undefined', 'null', 'falsy']))


class WhitespaceOptionsSchema(Schema):
    ignore_whitespace = fields.Boolean()


class StrictOptionsSchema(Schema):
    strict = fields.Boolean()


class LooseOptionsSchema(Schema):
    loose = fields.Boolean()


class NumericOptionsSchema(Schema):
    no_symbols = fields.Boolean()


class MatchesOptionsSchema(Schema):
    pattern = fields.String(required=True)
    flags = fields.String(allow_none=True, validate=validate.Regexp(r'^[imsx]*$'))

    @validates_schema
    def validate_pattern(self, data, **kwargs):
        try:
            re.compile(data.get('pattern', ''), validators.compile_flags(data.get('flags')))
        except (re.error, ValueError) as e:
            raise ValidationError({'pattern': [f'Invalid regular expression: {e}']})


class InOptionsSchema(Schema):
    values = fields.List(fields.Raw(allow_none=True), required=True)


class EqualsOptionsSchema(Schema):
    comparison = fields.Raw(required=True, allow_none=True)


class ContainsOptionsSchema(Schema):
    seed = fields.String(required=True)
    ignore_case = fields.Boolean()
    min_occurrences = fields.Integer(strict=True, validate=validate.Range(min=1))


class EmailOptionsSchema(Schema):
    allow_smtputf8 = fields.Boolean()


class URLOptionsSchema(Schema):
    require_tld = fields.Boolean()
    protocols = fields.List(fields.String())


class UUIDOptionsSchema(Schema):
    version = fields.Integer(strict=True, allow_none=True, validate=validate.OneOf([1, 3, 4, 5]))


class PhoneOptionsSchema(Schema):
    region = fields.String(allow_none=True, validate=validate.Length(equal=2))
    strict_mode = fields.Boolean()


class PasswordOptionsSchema(Schema):
    min_length = fields.Integer(strict=True, validate=validate.Range(min=1))
    min_lowercase = fields.Integer(strict=True, validate=validate.Range(min=0))
    min_uppercase = fields.Integer(strict=True, validate=validate.Range(min=0))
    min_numbers = fields.Integer(strict=True, validate=validate.Range(min=0))
    min_symbols = fields.Integer(strict=True, validate=validate.Range(min=0))


class CharsOptionsSchema(Schema):
    chars = fields.String(allow_none=True)


class RequiredCharsOptionsSchema(Schema):
    chars = fields.String(required=True)


class RadixOptionsSchema(Schema):
    radix = fields.Integer(strict=True, validate=validate.Range(min=2, max=36))


class DefaultOptionsSchema(Schema):
    default_value = fields.Raw(required=True, allow_none=True)


class CallableOptionsSchema(Schema):
    func = CallableField(required=True)


class GuardOptionsSchema(Schema):
    predicate = fields.Raw(required=True)


# ============================================================================
# RULE DEFINITIONS
# ============================================================================

@dataclass(frozen=True)
class RuleDefinition:
    """
    Named, reusable rule.

    Attributes:
        name: Canonical snake_case rule name
        kind: Rule kind produced when bound
        func: Implementation (validator predicate or sanitizer)
        params: Positional parameter names, in order
        options_schema: marshmallow schema checking bound options
    """

    name: str
    kind: RuleKind
    func: Optional[Callable] = None
    params: Tuple[str, ...] = ()
    options_schema: Optional[Type[Schema]] = None

    def check_options(self, args: Sequence[Any] = (), kwargs: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Merge positional and keyword options and type-check them.

        Raises:
            CompilationError: On surplus positional options, duplicated
                options, unknown option names or invalid option values
        """
        options = dict(kwargs or {})
        if len(args) > len(self.params):
            raise CompilationError(
                f"Rule '{self.name}' accepts at most {len(self.params)} positional option(s)",
                error_code="INVALID_RULE_OPTIONS",
                rule_name=self.name
            )
        for param, arg in zip(self.params, args):
            if param in options:
                raise CompilationError(
                    f"Rule '{self.name}' got option '{param}' twice",
                    error_code="INVALID_RULE_OPTIONS",
                    rule_name=self.name
                )
            options[param] = arg

        if self.options_schema is None:
            if options:
                raise CompilationError(
                    f"Rule '{self.name}' does not accept options",
                    error_code="INVALID_RULE_OPTIONS",
                    rule_name=self.name,
                    details=sorted(options)
                )
            return options

        try:
            return self.options_schema().load(options)
        except ValidationError as e:
            raise CompilationError(
                f"Invalid options for rule '{self.name}'",
                error_code="INVALID_RULE_OPTIONS",
                rule_name=self.name,
                details=e.messages,
                cause=e
            )

    def bind(
        self,
        args: Sequence[Any] = (),
        kwargs: Optional[Dict[str, Any]] = None,
        message: Message = None
    ) -> Rule:
        """Create a Rule from this definition with checked options."""
        options = self.check_options(args, kwargs)

        if self.kind is RuleKind.CUSTOM:
            return rule_factories.custom(options['func'], message=message)
        if self.kind is RuleKind.SANITIZER and self.name == 'custom_sanitizer':
            return rule_factories.custom_sanitizer(options['func'])
        if self.kind is RuleKind.CONDITIONAL:
            return rule_factories.conditional(options['predicate'])
        if self.kind is RuleKind.BAIL:
            return rule_factories.bail()
        if self.kind is RuleKind.NEGATION:
            return rule_factories.negation()

        return Rule(self.kind, self.name, func=self.func, options=options, message=message)


class RuleRegistry:
    """
    Registry of named rule definitions.

    Example:
        def is_even(value):
            return is_int(value) and int(value) % 2 == 0

        rule_registry.register('is_even', is_even)
        check('count').is_even()
        compile_schema({'count': {'isEven': True}})
    """

    def __init__(self) -> None:
        self._definitions: Dict[str, RuleDefinition] = {}
        self._register_defaults()

    def register(
        self,
        name: str,
        func: Optional[Callable],
        kind: RuleKind = RuleKind.VALIDATOR,
        params: Iterable[str] = (),
        options_schema: Optional[Type[Schema]] = None,
        replace: bool = False
    ) -> RuleDefinition:
        """
        Register a named rule.

        Args:
            name: Rule name (snake_case or camelCase)
            func: Validator predicate or sanitizer implementation
            kind: VALIDATOR or SANITIZER for user rules
            params: Positional parameter names accepted by the rule
            options_schema: marshmallow schema for option type checking
            replace: Allow overriding an existing definition

        Returns:
            The registered definition
        """
        canonical = normalize_rule_name(name)
        if canonical in self._definitions and not replace:
            raise CompilationError(
                f"Rule '{canonical}' is already registered",
                error_code="DUPLICATE_RULE",
                rule_name=canonical
            )

        definition = self._add(canonical, func, kind, params, options_schema)

        logger.debug("Validation rule registered",
                     rule_name=canonical,
                     kind=kind.value,
                     has_options_schema=options_schema is not None)
        return definition

    def _add(
        self,
        name: str,
        func: Optional[Callable],
        kind: RuleKind,
        params: Iterable[str] = (),
        options_schema: Optional[Type[Schema]] = None
    ) -> RuleDefinition:
        definition = RuleDefinition(
            name=name,
            kind=kind,
            func=func,
            params=tuple(params),
            options_schema=options_schema
        )
        self._definitions[name] = definition
        return definition

    def get(self, name: str) -> RuleDefinition:
        """
        Look up a rule definition.

        Raises:
            CompilationError: If no rule with this name exists
        """
        definition = self._definitions.get(normalize_rule_name(name))
        if definition is None:
            raise CompilationError(
                f"Unknown validation rule: {name}",
                error_code="UNKNOWN_RULE",
                rule_name=name
            )
        return definition

    def __contains__(self, name: str) -> bool:
        return normalize_rule_name(name) in self._definitions

    def names(self) -> Tuple[str, ...]:
        return tuple(self._definitions)

    def _register_defaults(self) -> None:
        """Register the built-in validators, sanitizers and modifiers."""
        validator_definitions = [
            ('exists', validators.exists, ('values',), PresenceOptionsSchema),
            ('not_empty', validators.not_empty, ('ignore_whitespace',), WhitespaceOptionsSchema),
            ('is_empty', validators.is_empty, ('ignore_whitespace',), WhitespaceOptionsSchema),
            ('is_string', validators.is_string, (), None),
            ('is_array', validators.is_array, ('min', 'max'), ArrayOptionsSchema),
            ('is_object', validators.is_object, ('strict',), StrictOptionsSchema),
            ('is_boolean', validators.is_boolean, ('loose',), LooseOptionsSchema),
            ('is_int', validators.is_int, ('min', 'max'), IntOptionsSchema),
            ('is_float', validators.is_float, ('min', 'max'), FloatOptionsSchema),
            ('is_numeric', validators.is_numeric, ('no_symbols',), NumericOptionsSchema),
            ('is_length', validators.is_length, ('min', 'max'), LengthOptionsSchema),
            ('matches', validators.matches, ('pattern', 'flags'), MatchesOptionsSchema),
            ('is_in', validators.is_in, ('values',), InOptionsSchema),
            ('equals', validators.equals, ('comparison',), EqualsOptionsSchema),
            ('contains', validators.contains, ('seed',), ContainsOptionsSchema),
            ('is_alpha', validators.is_alpha, (), None),
            ('is_alphanumeric', validators.is_alphanumeric, (), None),
            ('is_json', validators.is_json, (), None),
            ('is_email', validators.is_email, (), EmailOptionsSchema),
            ('is_url', validators.is_url, (), URLOptionsSchema),
            ('is_uuid', validators.is_uuid, ('version',), UUIDOptionsSchema),
            ('is_iso8601', validators.is_iso8601, ('strict',), StrictOptionsSchema),
            ('is_mobile_phone', validators.is_mobile_phone, ('region',), PhoneOptionsSchema),
            ('is_strong_password', validators.is_strong_password, (), PasswordOptionsSchema),
        ]
        for name, func, params, options_schema in validator_definitions:
            self._add(name, func, RuleKind.VALIDATOR, params, options_schema)

        sanitizer_definitions = [
            ('trim', sanitizers.trim, ('chars',), CharsOptionsSchema),
            ('ltrim', sanitizers.ltrim, ('chars',), CharsOptionsSchema),
            ('rtrim', sanitizers.rtrim, ('chars',), CharsOptionsSchema),
            ('escape', sanitizers.escape, (), None),
            ('strip_html', sanitizers.strip_html, (), None),
            ('to_int', sanitizers.to_int, ('radix',), RadixOptionsSchema),
            ('to_float', sanitizers.to_float, (), None),
            ('to_boolean', sanitizers.to_boolean, ('strict',), StrictOptionsSchema),
            ('to_lower_case', sanitizers.to_lower_case, (), None),
            ('to_upper_case', sanitizers.to_upper_case, (), None),
            ('normalize_email', sanitizers.normalize_email, (), None),
            ('to_date', sanitizers.to_date, (), None),
            ('default', sanitizers.default, ('default_value',), DefaultOptionsSchema),
            ('blacklist', sanitizers.blacklist, ('chars',), RequiredCharsOptionsSchema),
            ('whitelist', sanitizers.whitelist, ('chars',), RequiredCharsOptionsSchema),
        ]
        for name, func, params, options_schema in sanitizer_definitions:
            self._add(name, func, RuleKind.SANITIZER, params, options_schema)

        # Modifiers and caller-supplied callables
        self._add('custom', None, RuleKind.CUSTOM, ('func',), CallableOptionsSchema)
        self._add('custom_sanitizer', None, RuleKind.SANITIZER, ('func',), CallableOptionsSchema)
        self._add('if', None, RuleKind.CONDITIONAL, ('predicate',), GuardOptionsSchema)
        self._add('bail', None, RuleKind.BAIL)
        self._add('not', None, RuleKind.NEGATION)


# Global registry used by the builder and the schema compiler
rule_registry = RuleRegistry()


__all__ = [
    'normalize_rule_name',
    'RuleDefinition',
    'RuleRegistry',
    'rule_registry',
    'CallableField',
]
