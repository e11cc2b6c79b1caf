"""
Built-in sanitizers for validation chains.

Every sanitizer has the signature ``sanitizer(value, *options) -> new value``
and always succeeds. Absent values (``marshmallow.missing``) pass through
untouched except for ``default``, so sanitizers never invent fields that were
not submitted.

Features:
- Whitespace trimming and character allow/deny lists
- HTML escaping and tag stripping using bleach
- Type conversion (int, float, boolean, date)
- Email normalization using email-validator
"""

import math
import re
from typing import Any, Optional

import bleach
import structlog
from dateutil import parser as dateutil_parser
from email_validator import EmailNotValidError, validate_email
from marshmallow import missing

from .validators import to_string

logger = structlog.get_logger("chainvalidator.sanitizers")

FALSE_STRINGS = frozenset({'0', 'false', ''})


def _skip(value: Any) -> bool:
    return value is missing


def trim(value: Any, chars: Optional[str] = None) -> Any:
    if _skip(value):
        return value
    return to_string(value).strip(chars)


def ltrim(value: Any, chars: Optional[str] = None) -> Any:
    if _skip(value):
        return value
    return to_string(value).lstrip(chars)


def rtrim(value: Any, chars: Optional[str] = None) -> Any:
    if _skip(value):
        return value
    return to_string(value).rstrip(chars)


def escape(value: Any) -> Any:
    """Escape markup so the value renders as text (bleach, no tags allowed)."""
    if _skip(value):
        return value
    return bleach.clean(to_string(value), tags=set(), attributes={}, strip=False)


def strip_html(value: Any) -> Any:
    """Remove all markup, keeping the text content."""
    if _skip(value):
        return value
    return bleach.clean(to_string(value), tags=set(), attributes={}, strip=True, strip_comments=True)


def to_int(value: Any, radix: int = 10) -> Any:
    """Convert to int; unparseable input becomes None."""
    if _skip(value):
        return value
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    digits = r'\d+' if radix == 10 else r'[0-9a-zA-Z]+'
    match = re.match(r'^\s*[-+]?' + digits, to_string(value))
    if not match:
        return None
    try:
        return int(match.group(0), radix)
    except ValueError:
        return None


def to_float(value: Any) -> Any:
    """Convert to float; unparseable input becomes NaN."""
    if _skip(value):
        return value
    try:
        return float(to_string(value))
    except ValueError:
        return float('nan')


def to_boolean(value: Any, strict: bool = False) -> Any:
    """
    Convert to bool.

    Non-strict: everything except ``'0'``, ``'false'`` and ``''`` is True.
    Strict: only ``'1'`` and ``'true'`` are True.
    """
    if _skip(value):
        return value
    text = to_string(value).lower()
    if strict:
        return text in ('1', 'true')
    return text not in FALSE_STRINGS


def to_lower_case(value: Any) -> Any:
    if _skip(value):
        return value
    return to_string(value).lower()


def to_upper_case(value: Any) -> Any:
    if _skip(value):
        return value
    return to_string(value).upper()


def normalize_email(value: Any) -> Any:
    """Normalize an email address; invalid addresses are returned unchanged."""
    if _skip(value):
        return value
    text = to_string(value).strip()
    try:
        validated = validate_email(text, check_deliverability=False)
    except EmailNotValidError as e:
        logger.debug("Email normalization skipped", error=str(e))
        return value
    return validated.normalized.lower()


def to_date(value: Any) -> Any:
    """Parse a date/time string with dateutil; unparseable input becomes None."""
    if _skip(value):
        return value
    text = to_string(value)
    if not text:
        return None
    try:
        return dateutil_parser.parse(text)
    except (ValueError, OverflowError):
        return None


def default(value: Any, default_value: Any) -> Any:
    """Replace absent, None or empty-string values with a default."""
    if value is missing or value is None or value == '':
        return default_value
    return value


def blacklist(value: Any, chars: str) -> Any:
    if _skip(value):
        return value
    return ''.join(char for char in to_string(value) if char not in chars)


def whitelist(value: Any, chars: str) -> Any:
    if _skip(value):
        return value
    return ''.join(char for char in to_string(value) if char in chars)


__all__ = [
    'trim',
    'ltrim',
    'rtrim',
    'escape',
    'strip_html',
    'to_int',
    'to_float',
    'to_boolean',
    'to_lower_case',
    'to_upper_case',
    'normalize_email',
    'to_date',
    'default',
    'blacklist',
    'whitelist',
]
