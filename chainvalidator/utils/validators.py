"""
Built-in validator predicates for validation chains.

Every validator has the signature ``validator(value, *options) -> bool`` and
never mutates its input. String validators coerce the value with to_string()
first, so ``None`` and absent values behave like the empty string and numbers
are checked by their string representation.

Key Features:
- Email validation using email-validator (no deliverability lookups)
- Mobile phone validation using phonenumbers
- ISO 8601 date validation using python-dateutil
- Password strength checks sharing the application's password patterns
"""

import json
import math
import re
import uuid
from collections.abc import Mapping
from typing import Any, Iterable, Optional, Union
from urllib.parse import urlparse

import phonenumbers
import structlog
from dateutil import parser as dateutil_parser
from email_validator import EmailNotValidError, validate_email
from marshmallow import missing
from phonenumbers import NumberParseException

logger = structlog.get_logger("chainvalidator.validators")

# Integer pattern; leading zeroes are rejected unless explicitly allowed
INT_REGEX = re.compile(r'^[-+]?(?:0|[1-9]\d*)$')
INT_LEADING_ZEROES_REGEX = re.compile(r'^[-+]?\d+$')
FLOAT_REGEX = re.compile(r'^[-+]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?$')
NUMERIC_REGEX = re.compile(r'^[-+]?\d*\.?\d+$')
ALPHA_REGEX = re.compile(r'^[A-Za-z]+$')
ALPHANUMERIC_REGEX = re.compile(r'^[A-Za-z0-9]+$')

PASSWORD_PATTERNS = {
    'lowercase': re.compile(r'[a-z]'),
    'uppercase': re.compile(r'[A-Z]'),
    'numbers': re.compile(r'\d'),
    'symbols': re.compile(r'[^A-Za-z0-9]'),
}

BOOLEAN_STRINGS = frozenset({'true', 'false', '1', '0'})
LOOSE_BOOLEAN_STRINGS = BOOLEAN_STRINGS | frozenset({'yes', 'no'})

REGEX_FLAGS = {
    'i': re.IGNORECASE,
    'm': re.MULTILINE,
    's': re.DOTALL,
    'x': re.VERBOSE,
}


def to_string(value: Any) -> str:
    """Coerce a document value to the string form validators operate on."""
    if value is missing or value is None:
        return ''
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, str):
        return value
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, default=str)
    return str(value)


def compile_flags(flags: Optional[str]) -> int:
    """Translate a flag string such as ``'im'`` into ``re`` flags."""
    compiled = 0
    for flag in flags or '':
        if flag not in REGEX_FLAGS:
            raise ValueError(f"Unsupported regex flag: {flag}")
        compiled |= REGEX_FLAGS[flag]
    return compiled


def _within(number: Union[int, float], min: Optional[float], max: Optional[float]) -> bool:
    if min is not None and number < min:
        return False
    if max is not None and number > max:
        return False
    return True


# ============================================================================
# PRESENCE AND TYPE VALIDATORS
# ============================================================================

def exists(value: Any, values: str = 'undefined') -> bool:
    """
    Check that a value is present.

    Args:
        value: Located value
        values: ``undefined`` (absent fails), ``null`` (absent or None fails)
            or ``falsy`` (any falsy value fails)
    """
    if values == 'falsy':
        return value is not missing and bool(value)
    if values == 'null':
        return value is not missing and value is not None
    return value is not missing


def not_empty(value: Any, ignore_whitespace: bool = False) -> bool:
    text = to_string(value)
    if ignore_whitespace:
        text = text.strip()
    return len(text) > 0


def is_empty(value: Any, ignore_whitespace: bool = False) -> bool:
    return not not_empty(value, ignore_whitespace=ignore_whitespace)


def is_string(value: Any) -> bool:
    return isinstance(value, str)


def is_array(value: Any, min: Optional[int] = None, max: Optional[int] = None) -> bool:
    if not isinstance(value, (list, tuple)):
        return False
    return _within(len(value), min, max)


def is_object(value: Any, strict: bool = True) -> bool:
    if isinstance(value, Mapping):
        return True
    return not strict and isinstance(value, (list, tuple))


def is_boolean(value: Any, loose: bool = False) -> bool:
    if isinstance(value, bool):
        return True
    allowed = LOOSE_BOOLEAN_STRINGS if loose else BOOLEAN_STRINGS
    text = to_string(value)
    return (text.lower() if loose else text) in allowed


# ============================================================================
# NUMERIC VALIDATORS
# ============================================================================

def is_int(
    value: Any,
    min: Optional[int] = None,
    max: Optional[int] = None,
    allow_leading_zeroes: bool = True
) -> bool:
    if isinstance(value, bool):
        return False
    text = to_string(value)
    pattern = INT_LEADING_ZEROES_REGEX if allow_leading_zeroes else INT_REGEX
    if not pattern.match(text):
        return False
    return _within(int(text), min, max)


def is_float(value: Any, min: Optional[float] = None, max: Optional[float] = None) -> bool:
    if isinstance(value, bool):
        return False
    text = to_string(value)
    if not FLOAT_REGEX.match(text):
        return False
    number = float(text)
    if math.isnan(number):
        return False
    return _within(number, min, max)


def is_numeric(value: Any, no_symbols: bool = False) -> bool:
    text = to_string(value)
    if no_symbols:
        return text.isdigit()
    return bool(NUMERIC_REGEX.match(text))


# ============================================================================
# STRING VALIDATORS
# ============================================================================

def is_length(value: Any, min: int = 0, max: Optional[int] = None) -> bool:
    """Check the string length of a value against inclusive bounds."""
    return _within(len(to_string(value)), min, max)


def matches(value: Any, pattern: str, flags: Optional[str] = None) -> bool:
    return re.search(pattern, to_string(value), compile_flags(flags)) is not None


def is_in(value: Any, values: Iterable[Any]) -> bool:
    text = to_string(value)
    return any(to_string(candidate) == text for candidate in values)


def equals(value: Any, comparison: Any) -> bool:
    return to_string(value) == to_string(comparison)


def contains(value: Any, seed: str, ignore_case: bool = False, min_occurrences: int = 1) -> bool:
    text = to_string(value)
    if ignore_case:
        text, seed = text.lower(), seed.lower()
    return text.count(seed) >= min_occurrences


def is_alpha(value: Any) -> bool:
    return bool(ALPHA_REGEX.match(to_string(value)))


def is_alphanumeric(value: Any) -> bool:
    return bool(ALPHANUMERIC_REGEX.match(to_string(value)))


def is_json(value: Any) -> bool:
    text = to_string(value)
    try:
        json.loads(text)
    except ValueError:
        return False
    return True


def is_email(value: Any, allow_smtputf8: bool = True) -> bool:
    """Validate email syntax with email-validator (no DNS lookups)."""
    text = to_string(value)
    if not text:
        return False
    try:
        validate_email(text, check_deliverability=False, allow_smtputf8=allow_smtputf8)
    except EmailNotValidError as e:
        logger.debug("Email validation failed", error=str(e))
        return False
    return True


def is_url(value: Any, require_tld: bool = True, protocols: Optional[Iterable[str]] = None) -> bool:
    text = to_string(value)
    if not text or any(char.isspace() for char in text):
        return False
    allowed_protocols = set(protocols or ('http', 'https', 'ftp'))
    parsed = urlparse(text)
    if parsed.scheme not in allowed_protocols or not parsed.hostname:
        return False
    if require_tld and '.' not in parsed.hostname and parsed.hostname != 'localhost':
        return False
    return True


def is_uuid(value: Any, version: Optional[int] = None) -> bool:
    text = to_string(value)
    try:
        parsed = uuid.UUID(text)
    except ValueError:
        return False
    if str(parsed) != text.lower():
        return False
    return version is None or parsed.version == version


def is_iso8601(value: Any, strict: bool = False) -> bool:
    text = to_string(value)
    if not text:
        return False
    try:
        dateutil_parser.isoparse(text)
    except (ValueError, OverflowError):
        return False
    if strict and 'T' not in text and len(text) != 10:
        return False
    return True


def is_mobile_phone(value: Any, region: Optional[str] = None, strict_mode: bool = False) -> bool:
    """
    Validate a mobile phone number with phonenumbers.

    Args:
        value: Phone number text
        region: ISO 3166 region used for numbers without a country code
        strict_mode: Require a leading ``+`` country code
    """
    text = to_string(value)
    if strict_mode and not text.startswith('+'):
        return False
    try:
        number = phonenumbers.parse(text, region)
    except NumberParseException:
        return False
    if not phonenumbers.is_valid_number(number):
        return False
    number_type = phonenumbers.number_type(number)
    return number_type in (
        phonenumbers.PhoneNumberType.MOBILE,
        phonenumbers.PhoneNumberType.FIXED_LINE_OR_MOBILE,
    )


def is_strong_password(
    value: Any,
    min_length: int = 8,
    min_lowercase: int = 1,
    min_uppercase: int = 1,
    min_numbers: int = 1,
    min_symbols: int = 1
) -> bool:
    text = to_string(value)
    if len(text) < min_length:
        return False
    requirements = {
        'lowercase': min_lowercase,
        'uppercase': min_uppercase,
        'numbers': min_numbers,
        'symbols': min_symbols,
    }
    for pattern_name, minimum in requirements.items():
        if len(PASSWORD_PATTERNS[pattern_name].findall(text)) < minimum:
            return False
    return True


__all__ = [
    'to_string',
    'compile_flags',
    'exists',
    'not_empty',
    'is_empty',
    'is_string',
    'is_array',
    'is_object',
    'is_boolean',
    'is_int',
    'is_float',
    'is_numeric',
    'is_length',
    'matches',
    'is_in',
    'equals',
    'contains',
    'is_alpha',
    'is_alphanumeric',
    'is_json',
    'is_email',
    'is_url',
    'is_uuid',
    'is_iso8601',
    'is_mobile_phone',
    'is_strong_password',
]
