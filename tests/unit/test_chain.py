"""
Tests for the fluent chain builder, chain values and the rule model.
"""

import pytest
from marshmallow import missing

from chainvalidator.engine.chain import (
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
from chainvalidator.engine.exceptions import CompilationError, PathSyntaxError
from chainvalidator.engine.registry import RuleRegistry
from chainvalidator.engine.rules import RuleKind, render_message
from chainvalidator.engine.rules import conditional, custom


class TestChainBuilder:
    """Building chains fluently."""

    def test_build_preserves_rule_order(self):
        """Test that rules keep declaration order and kinds."""
        chain = check('email').trim().not_empty().bail().is_email().normalize_email().build()

        assert isinstance(chain, ValidationChain)
        assert [rule.name for rule in chain.rules] == [
            'trim', 'not_empty', 'bail', 'is_email', 'normalize_email'
        ]
        assert [rule.kind for rule in chain.rules] == [
            RuleKind.SANITIZER, RuleKind.VALIDATOR, RuleKind.BAIL,
            RuleKind.VALIDATOR, RuleKind.SANITIZER,
        ]

    def test_camel_case_methods(self):
        chain = check('age').isInt(min=0).toInt().build()

        assert [rule.name for rule in chain.rules] == ['is_int', 'to_int']

    def test_invalid_path_fails_at_build_time(self):
        with pytest.raises(PathSyntaxError):
            check('a..b')

    def test_invalid_options_fail_at_build_time(self):
        with pytest.raises(CompilationError):
            check('age').is_int(min='zero')

    def test_unknown_rule_is_attribute_error(self):
        builder = check('age')

        with pytest.raises(AttributeError):
            builder.is_credit_card()
        with pytest.raises(AttributeError):
            builder._private

    def test_rule_message_keyword(self):
        chain = check('age').is_int(message='Not a number').build()

        assert chain.rules[0].message == 'Not a number'

    def test_with_message_targets_last_judging_rule(self):
        """Test that with_message skips trailing sanitizers."""
        chain = check('email').is_email().trim().with_message('Bad e-mail').build()

        assert chain.rules[0].message == 'Bad e-mail'
        assert chain.rules[1].message is None
        assert chain.message is None

    def test_with_message_before_any_rule_sets_chain_default(self):
        chain = check('email').with_message('Bad input').trim().is_email().build()

        assert chain.message == 'Bad input'
        assert chain.rules[1].message is None

    def test_modifiers(self):
        """Test negation, guards, optional and stop_on_first_error."""
        chain = (
            check('name')
            .optional(values='null')
            .if_(lambda value, context: True)
            .not_().is_empty()
            .custom(lambda value, context: True, message='custom failed')
            .custom_sanitizer(lambda value, context: value)
            .stop_on_first_error()
            .build()
        )

        assert chain.optional is OptionalPolicy.NULL
        assert chain.stop_on_first_error
        assert [rule.kind for rule in chain.rules] == [
            RuleKind.CONDITIONAL, RuleKind.NEGATION, RuleKind.VALIDATOR,
            RuleKind.CUSTOM, RuleKind.SANITIZER,
        ]
        assert chain.rules[3].message == 'custom failed'

    def test_guard_chain_is_built(self):
        guard = check('type').equals('company')

        chain = check('vat_id').if_(guard).not_empty().build()

        assert chain.rules[0].guard == guard.build()

    def test_custom_requires_callable(self):
        with pytest.raises(CompilationError):
            check('x').custom('not callable')

    def test_chain_is_immutable(self):
        chain = check('x').trim().build()

        with pytest.raises(AttributeError):
            chain.rules = ()

    def test_builder_uses_given_registry(self):
        """Test that rules registered on a custom registry become methods."""
        registry = RuleRegistry()
        registry.register('is_even', lambda value: int(value) % 2 == 0)

        chain = check('n', registry=registry).is_even().build()

        assert chain.rules[0].name == 'is_even'
        assert not hasattr(check('n'), 'is_even')

    def test_builder_repr(self):
        assert repr(check('a').trim()) == "ChainBuilder(path='a', rules=1)"


class TestLocationEntryPoints:
    """check() and the location helpers."""

    def test_location_helpers(self):
        assert body('a').build().locations == ('body',)
        assert query('a').build().locations == ('query',)
        assert params('a').build().locations == ('params',)
        assert cookies('a').build().locations == ('cookies',)

    def test_headers_are_lower_cased(self):
        chain = headers('X-Api-Key').build()

        assert chain.locations == ('headers',)
        assert chain.path.segments == ('x-api-key',)

    def test_check_locations(self):
        assert check('id').build().locations == ()
        assert check('id', 'params').build().locations == ('params',)
        assert check('id', ['params', 'query']).build().locations == ('params', 'query')


class TestChainLocate:
    """Locating a chain's values in a document."""

    def test_plain_document(self):
        located = check('a.b').build().locate({'a': {'b': 1}})

        assert [(item.path_string, item.value, item.location) for item in located] == [('a.b', 1, None)]

    def test_first_present_location(self):
        """Test that values present in any location are returned."""
        chain = check('id', ['params', 'query']).build()

        located = chain.locate({'params': {}, 'query': {'id': '7'}})

        assert len(located) == 1
        assert located[0].location == 'query'
        assert located[0].value == '7'

    def test_present_in_several_locations(self):
        chain = check('id', ['params', 'query']).build()

        located = chain.locate({'params': {'id': '1'}, 'query': {'id': '2'}})

        assert [(item.location, item.value) for item in located] == [('params', '1'), ('query', '2')]

    def test_absent_everywhere(self):
        """Test that an absent field reports the first location."""
        chain = check('id', ['params', 'query']).build()

        located = chain.locate({})

        assert len(located) == 1
        assert located[0].absent
        assert located[0].location == 'params'


class TestOptionalPolicy:
    """Optional policy spellings and emptiness."""

    @pytest.mark.parametrize('raw, expected', [
        (True, OptionalPolicy.UNDEFINED),
        (False, None),
        (None, None),
        ('null', OptionalPolicy.NULL),
        ('FALSY', OptionalPolicy.FALSY),
        (OptionalPolicy.NULL, OptionalPolicy.NULL),
        ({'nullable': True}, OptionalPolicy.NULL),
        ({'checkFalsy': True}, OptionalPolicy.FALSY),
        ({'check_falsy': True}, OptionalPolicy.FALSY),
        ({'values': 'null'}, OptionalPolicy.NULL),
        ({}, OptionalPolicy.UNDEFINED),
    ])
    def test_coerce(self, raw, expected):
        assert OptionalPolicy.coerce(raw) is expected

    @pytest.mark.parametrize('raw', ['sometimes', 42])
    def test_coerce_invalid(self, raw):
        with pytest.raises(CompilationError):
            OptionalPolicy.coerce(raw)

    def test_is_empty_value(self):
        """Test the escalating emptiness policies."""
        assert is_empty_value(missing, OptionalPolicy.UNDEFINED)
        assert not is_empty_value(None, OptionalPolicy.UNDEFINED)
        assert is_empty_value(None, OptionalPolicy.NULL)
        assert not is_empty_value('', OptionalPolicy.NULL)
        assert is_empty_value('', OptionalPolicy.FALSY)
        assert is_empty_value(0, OptionalPolicy.FALSY)
        assert not is_empty_value('x', OptionalPolicy.FALSY)


class TestRuleModel:
    """Rule factories and message rendering."""

    def test_render_static_message(self):
        assert render_message('Bad', 1, None) == 'Bad'
        assert render_message(None, 1, None) is None

    def test_render_callable_message(self):
        assert render_message(lambda value, context: f'{value} is bad', 3, None) == '3 is bad'

    def test_raising_message_callable_renders_nothing(self):
        def broken(value, context):
            raise KeyError('locale')

        assert render_message(broken, 1, None) is None

    def test_conditional_rejects_other_values(self):
        with pytest.raises(CompilationError):
            conditional('always')

    def test_custom_factory(self):
        rule = custom(lambda value, context: True, message='m')

        assert rule.kind is RuleKind.CUSTOM
        assert rule.judges
        assert rule.with_message('n').message == 'n'
