"""
Tests for the built-in validators and sanitizers.

The built-ins are plain functions, so they are exercised directly here; their
use inside chains is covered by the executor tests.
"""

import math
from datetime import datetime

import pytest
from marshmallow import missing

from chainvalidator.utils import sanitizers, validators


class TestPresenceValidators:
    """exists, not_empty and is_empty."""

    def test_exists_policies(self):
        """Test the escalating presence policies of exists."""
        assert not validators.exists(missing)
        assert validators.exists(None)
        assert not validators.exists(None, values='null')
        assert validators.exists('', values='null')
        assert not validators.exists('', values='falsy')
        assert validators.exists('x', values='falsy')

    def test_not_empty(self):
        """Test emptiness on the string form of a value."""
        assert validators.not_empty('a')
        assert validators.not_empty(0)
        assert not validators.not_empty('')
        assert not validators.not_empty(None)
        assert not validators.not_empty(missing)
        assert validators.not_empty('  ')
        assert not validators.not_empty('  ', ignore_whitespace=True)

    def test_is_empty(self):
        """Test that is_empty mirrors not_empty."""
        assert validators.is_empty('')
        assert not validators.is_empty('x')


class TestTypeValidators:
    """Type checks."""

    def test_is_string(self):
        assert validators.is_string('x')
        assert not validators.is_string(1)

    def test_is_array(self):
        """Test array checks with length bounds."""
        assert validators.is_array([1, 2])
        assert not validators.is_array('12')
        assert not validators.is_array([1, 2], min=3)
        assert validators.is_array([], max=0)

    def test_is_object(self):
        assert validators.is_object({'a': 1})
        assert not validators.is_object([])
        assert validators.is_object([], strict=False)

    def test_is_boolean(self):
        """Test strict and loose boolean strings."""
        assert validators.is_boolean(True)
        assert validators.is_boolean('false')
        assert validators.is_boolean('1')
        assert not validators.is_boolean('yes')
        assert validators.is_boolean('YES', loose=True)


class TestNumericValidators:
    """is_int, is_float and is_numeric."""

    @pytest.mark.parametrize('value, expected', [
        ('42', True),
        (42, True),
        ('-7', True),
        ('+3', True),
        ('012', True),
        ('4.2', False),
        ('abc', False),
        ('', False),
        (None, False),
        (True, False),
    ])
    def test_is_int(self, value, expected):
        assert validators.is_int(value) is expected

    def test_is_int_bounds(self):
        """Test inclusive integer bounds."""
        assert validators.is_int('5', min=5, max=5)
        assert not validators.is_int('4', min=5)
        assert not validators.is_int('6', max=5)

    def test_is_int_leading_zeroes(self):
        assert not validators.is_int('012', allow_leading_zeroes=False)
        assert validators.is_int('0', allow_leading_zeroes=False)

    def test_is_float(self):
        """Test float syntax and bounds."""
        assert validators.is_float('10.5')
        assert validators.is_float('1e3')
        assert validators.is_float('.5')
        assert not validators.is_float('nan')
        assert not validators.is_float('1.2.3')
        assert not validators.is_float('-3', min=0)

    def test_is_numeric(self):
        assert validators.is_numeric('-1.5')
        assert not validators.is_numeric('-1', no_symbols=True)
        assert validators.is_numeric('123', no_symbols=True)


class TestStringValidators:
    """String shape validators."""

    def test_is_length(self):
        """Test inclusive length bounds."""
        assert validators.is_length('abc', min=2, max=3)
        assert not validators.is_length('abcd', min=2, max=3)
        assert not validators.is_length('a', min=2)
        assert validators.is_length(None)

    def test_matches_with_flags(self):
        assert validators.matches('ABC', '^abc$', 'i')
        assert not validators.matches('ABC', '^abc$')

    def test_unsupported_regex_flag(self):
        with pytest.raises(ValueError):
            validators.compile_flags('q')

    def test_is_in_compares_string_forms(self):
        assert validators.is_in('2', [1, 2])
        assert not validators.is_in('3', [1, 2])

    def test_equals_and_contains(self):
        assert validators.equals(5, '5')
        assert validators.contains('Hello', 'hell', ignore_case=True)
        assert not validators.contains('Hello', 'l', min_occurrences=3)

    def test_alpha_and_alphanumeric(self):
        assert validators.is_alpha('abc')
        assert not validators.is_alpha('ab1')
        assert validators.is_alphanumeric('ab1')
        assert not validators.is_alphanumeric('ab-1')

    def test_is_json(self):
        assert validators.is_json('{"a": 1}')
        assert not validators.is_json('{')


class TestFormatValidators:
    """Email, URL, UUID, date, phone and password validators."""

    def test_is_email(self):
        """Test email syntax validation without deliverability checks."""
        assert validators.is_email('user@example.com')
        assert not validators.is_email('not-an-email')
        assert not validators.is_email('')
        assert not validators.is_email(missing)

    def test_is_url(self):
        """Test URL scheme, host and TLD checks."""
        assert validators.is_url('https://example.com/path?q=1')
        assert validators.is_url('http://localhost:8080')
        assert not validators.is_url('example.com')
        assert not validators.is_url('http://intranet')
        assert validators.is_url('http://intranet', require_tld=False)
        assert not validators.is_url('mailto:user@example.com')
        assert not validators.is_url('https://exa mple.com')

    def test_is_uuid(self):
        """Test UUID format and version checks."""
        value = '123e4567-e89b-12d3-a456-426614174000'

        assert validators.is_uuid(value)
        assert validators.is_uuid(value, version=1)
        assert not validators.is_uuid(value, version=4)
        assert not validators.is_uuid('123e4567e89b12d3a456426614174000')
        assert not validators.is_uuid('not-a-uuid')

    def test_is_iso8601(self):
        assert validators.is_iso8601('2024-01-15')
        assert validators.is_iso8601('2024-01-15T10:30:00Z')
        assert not validators.is_iso8601('15/01/2024')
        assert not validators.is_iso8601('')
        assert not validators.is_iso8601('2024-01', strict=True)

    def test_is_mobile_phone(self):
        """Test mobile numbers against fixed-line numbers."""
        assert validators.is_mobile_phone('+447400123456')
        assert validators.is_mobile_phone('07400123456', region='GB')
        assert not validators.is_mobile_phone('+441212345678')
        assert not validators.is_mobile_phone('07400123456', strict_mode=True)
        assert not validators.is_mobile_phone('12')

    def test_is_strong_password(self):
        """Test password strength requirements."""
        assert validators.is_strong_password('Sup3r$ecret')
        assert not validators.is_strong_password('password')
        assert not validators.is_strong_password('Sh0r$t')
        assert validators.is_strong_password('Sh0r$t', min_length=6)
        assert validators.is_strong_password('alllowercase', min_uppercase=0, min_numbers=0, min_symbols=0)


class TestSanitizers:
    """Built-in sanitizers."""

    def test_trim_variants(self):
        assert sanitizers.trim('  a  ') == 'a'
        assert sanitizers.trim('xxaxx', 'x') == 'a'
        assert sanitizers.ltrim('  a  ') == 'a  '
        assert sanitizers.rtrim('  a  ') == '  a'
        assert sanitizers.trim(5) == '5'

    def test_absent_values_pass_through(self):
        """Test that sanitizers other than default leave absent values alone."""
        for sanitizer in (sanitizers.trim, sanitizers.escape, sanitizers.to_int,
                          sanitizers.to_boolean, sanitizers.normalize_email):
            assert sanitizer(missing) is missing

    def test_escape(self):
        assert sanitizers.escape('<b>hi</b>') == '&lt;b&gt;hi&lt;/b&gt;'
        assert sanitizers.escape('Tom & Jerry') == 'Tom &amp; Jerry'

    def test_strip_html(self):
        assert sanitizers.strip_html('<p>Hello <b>world</b></p>') == 'Hello world'

    def test_to_int(self):
        """Test integer conversion with prefixes and radix."""
        assert sanitizers.to_int('42') == 42
        assert sanitizers.to_int(' -7 ') == -7
        assert sanitizers.to_int('42abc') == 42
        assert sanitizers.to_int('abc') is None
        assert sanitizers.to_int('ff', radix=16) == 255
        assert sanitizers.to_int(3.9) == 3
        assert sanitizers.to_int(True) == 1

    def test_to_float(self):
        assert sanitizers.to_float('1.5') == 1.5
        assert math.isnan(sanitizers.to_float('x'))

    def test_to_boolean(self):
        """Test loose and strict boolean conversion."""
        assert sanitizers.to_boolean('false') is False
        assert sanitizers.to_boolean('0') is False
        assert sanitizers.to_boolean('') is False
        assert sanitizers.to_boolean('yes') is True
        assert sanitizers.to_boolean('yes', strict=True) is False
        assert sanitizers.to_boolean('TRUE', strict=True) is True

    def test_case_conversion(self):
        assert sanitizers.to_lower_case('AbC') == 'abc'
        assert sanitizers.to_upper_case('AbC') == 'ABC'

    def test_normalize_email(self):
        assert sanitizers.normalize_email('User@Example.COM') == 'user@example.com'
        assert sanitizers.normalize_email('  user@example.com ') == 'user@example.com'
        assert sanitizers.normalize_email('nope') == 'nope'

    def test_to_date(self):
        assert sanitizers.to_date('2024-01-15') == datetime(2024, 1, 15)
        assert sanitizers.to_date('xyz') is None
        assert sanitizers.to_date('') is None

    def test_default(self):
        """Test that only absent, None and empty strings are replaced."""
        assert sanitizers.default(missing, 'x') == 'x'
        assert sanitizers.default(None, 'x') == 'x'
        assert sanitizers.default('', 'x') == 'x'
        assert sanitizers.default(0, 'x') == 0
        assert sanitizers.default('v', 'x') == 'v'

    def test_blacklist_and_whitelist(self):
        assert sanitizers.blacklist('a-b-c', '-') == 'abc'
        assert sanitizers.whitelist('a1b2', '0123456789') == '12'
