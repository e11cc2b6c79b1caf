"""
Schema compiler.

A schema is a mapping of field path to field spec. Each field spec holds a
few field-level keys and any number of rule keys; compile_schema() turns it
into one ValidationChain per path, in key order:

    schema = {
        'email': {
            'in': ['body'],
            'errorMessage': 'Invalid e-mail',
            'trim': True,
            'isEmail': {'bail': True},
            'normalizeEmail': True,
        },
        'age': {
            'optional': {'options': {'nullable': True}},
            'isInt': {'options': {'min': 0, 'max': 150}, 'errorMessage': 'Bad age'},
        },
        'items.*.price': {'isFloat': {'options': {'min': 0}}},
    }
    chains = compile_schema(schema)

Field-level keys: ``in`` (locations), ``errorMessage`` (chain default
message), ``optional`` and ``if``. Every other key names a registered rule
(camelCase or snake_case). A rule spec is ``True``/``{}`` (default options),
``False``/``None`` (rule disabled) or a mapping with ``options``,
``errorMessage``, ``negated`` and ``bail``.

Compilation is all-or-nothing: any malformed path, unknown rule or invalid
option raises CompilationError and no chain is returned.
"""

from collections.abc import Mapping
from typing import Any, Dict, Iterable, List, Optional, Tuple

import structlog

from . import rules as rule_factories
from .chain import OptionalPolicy, ValidationChain
from .exceptions import CompilationError
from .paths import FieldPath
from .registry import RuleDefinition, RuleRegistry, rule_registry
from .rules import JUDGING_KINDS, Rule

logger = structlog.get_logger("chainvalidator.schema")

LOCATION_KEYS = ('in',)
MESSAGE_KEYS = ('errorMessage', 'error_message')
OPTIONAL_KEYS = ('optional',)
GUARD_KEYS = ('if',)
FIELD_KEYS = frozenset(LOCATION_KEYS + MESSAGE_KEYS + OPTIONAL_KEYS + GUARD_KEYS)

RULE_SPEC_KEYS = frozenset({'options', 'errorMessage', 'error_message', 'negated', 'bail'})


def _split_options(options: Any) -> Tuple[Tuple[Any, ...], Dict[str, Any]]:
    """Turn an ``options`` value into (positional, keyword) options."""
    if options is None:
        return (), {}
    if isinstance(options, Mapping):
        return (), dict(options)
    if isinstance(options, (list, tuple)):
        return tuple(options), {}
    return (options,), {}


def _message_of(spec: Mapping) -> Any:
    for key in MESSAGE_KEYS:
        if key in spec:
            return spec[key]
    return None


def _compile_locations(value: Any, path: str) -> Tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    if isinstance(value, (list, tuple)) and value and all(isinstance(item, str) for item in value):
        return tuple(value)
    raise CompilationError(
        "'in' must be a location name or a non-empty list of location names",
        field=path
    )


def _compile_optional(value: Any, path: str) -> Optional[OptionalPolicy]:
    if isinstance(value, Mapping) and 'options' in value:
        value = value['options']
    try:
        return OptionalPolicy.coerce(value)
    except CompilationError as e:
        raise CompilationError(e.message, field=path, rule_name='optional', cause=e)


def _compile_guard(value: Any, path: str) -> Rule:
    if isinstance(value, Mapping) and 'options' in value:
        value = value['options']
    try:
        return rule_factories.conditional(value)
    except CompilationError as e:
        raise CompilationError(e.message, field=path, rule_name='if', cause=e)


def _compile_rule(definition: RuleDefinition, spec: Any, path: str) -> List[Rule]:
    """Compile one rule key into its rules (negation and bail markers included)."""
    if spec is True:
        spec = {}
    elif callable(spec):
        # custom / custom_sanitizer given the function directly
        spec = {'options': spec}

    if not isinstance(spec, Mapping):
        raise CompilationError(
            f"Rule spec for '{definition.name}' must be True, False, None or a mapping",
            field=path,
            rule_name=definition.name,
            details=repr(spec)
        )

    unknown = set(spec) - RULE_SPEC_KEYS
    if unknown:
        raise CompilationError(
            f"Unknown keys in rule spec for '{definition.name}'",
            field=path,
            rule_name=definition.name,
            details=sorted(unknown)
        )

    negated = bool(spec.get('negated', False))
    if negated and definition.kind not in JUDGING_KINDS:
        raise CompilationError(
            f"Rule '{definition.name}' cannot be negated",
            field=path,
            rule_name=definition.name
        )

    args, kwargs = _split_options(spec.get('options'))
    try:
        rule = definition.bind(args, kwargs, _message_of(spec))
    except CompilationError as e:
        raise CompilationError(
            e.message,
            error_code=e.error_code,
            field=path,
            rule_name=definition.name,
            details=e.details,
            cause=e
        )

    compiled = [rule_factories.negation(), rule] if negated else [rule]
    if spec.get('bail'):
        compiled.append(rule_factories.bail())
    return compiled


def compile_field(
    path: str,
    field_spec: Mapping,
    locations: Iterable[str] = (),
    registry: Optional[RuleRegistry] = None
) -> ValidationChain:
    """Compile a single field definition into a ValidationChain."""
    registry = registry or rule_registry
    field_path = FieldPath.parse(path)

    if not isinstance(field_spec, Mapping):
        raise CompilationError("Field spec must be a mapping of rule names to rule specs", field=path)

    chain_locations = tuple(locations)
    message = None
    optional = None
    guards: List[Rule] = []
    compiled_rules: List[Rule] = []

    for key, spec in field_spec.items():
        if key in LOCATION_KEYS:
            chain_locations = _compile_locations(spec, path)
        elif key in MESSAGE_KEYS:
            message = spec
        elif key in OPTIONAL_KEYS:
            optional = _compile_optional(spec, path)
        elif key in GUARD_KEYS:
            guards.append(_compile_guard(spec, path))
        elif spec is False or spec is None:
            # disabled rules must still name a known rule
            registry.get(key)
        else:
            compiled_rules.extend(_compile_rule(registry.get(key), spec, path))

    return ValidationChain(
        path=field_path,
        rules=tuple(guards + compiled_rules),
        locations=chain_locations,
        optional=optional,
        message=message,
    )


def compile_schema(
    schema: Mapping,
    locations: Optional[Iterable[str]] = None,
    registry: Optional[RuleRegistry] = None
) -> List[ValidationChain]:
    """
    Compile a schema into validation chains.

    Args:
        schema: Mapping of field path to field spec
        locations: Default locations for fields without an ``in`` key
        registry: Rule registry to resolve rule names against

    Returns:
        One chain per schema key, in key order

    Raises:
        CompilationError: If any path, rule name or rule option is invalid
    """
    if not isinstance(schema, Mapping):
        raise CompilationError("Schema must be a mapping of field paths to field specs")

    default_locations = tuple(locations or ())
    chains = [
        compile_field(path, field_spec, default_locations, registry)
        for path, field_spec in schema.items()
    ]

    logger.debug("Validation schema compiled",
                 field_count=len(chains),
                 rule_count=sum(len(chain.rules) for chain in chains))
    return chains


__all__ = ['compile_schema', 'compile_field', 'FIELD_KEYS']
