"""
Built-in rules and framework integration.

- validators: predicates registered as validator rules
- sanitizers: transforms registered as sanitizer rules
- decorators: Flask request validation (import chainvalidator.utils.decorators)
"""

from . import sanitizers, validators

__all__ = ['sanitizers', 'validators']
