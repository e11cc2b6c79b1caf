"""
Per-invocation context handed to custom rules, guards and message functions.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from marshmallow import missing

from .paths import FieldPath, LocatedValue, read


@dataclass(frozen=True)
class ValidationContext:
    """
    Context of one rule invocation.

    Attributes:
        document: Full input document. Rules must treat it as read-only
        located: The LocatedValue being validated
        metadata: Caller-supplied metadata (``locale``, request ids, ...)
        cache: Injected ValidationCache, if any
        metrics: Metrics collector of the running executor

    Example:
        def matches_password(value, context):
            return value == context.lookup('password')
    """

    document: Any
    located: LocatedValue
    metadata: Dict[str, Any] = field(default_factory=dict)
    cache: Any = None
    metrics: Any = None

    @property
    def path(self) -> str:
        return self.located.path_string

    @property
    def location(self) -> Optional[str]:
        return self.located.location

    @property
    def locale(self) -> Optional[str]:
        return self.metadata.get('locale')

    def lookup(self, path: str, location: Optional[str] = None, default: Any = None) -> Any:
        """
        Read a sibling field for cross-field comparisons.

        Args:
            path: Concrete field path (no wildcards)
            location: Location to read from; defaults to the location of the
                value being validated
            default: Returned when the field is absent
        """
        segments = FieldPath.parse(path).segments
        source = self.document
        location = location if location is not None else self.location
        if location is not None:
            source = self.document.get(location, missing) if isinstance(self.document, Mapping) else missing
        value = read(source, segments)
        return default if value is missing else value


__all__ = ['ValidationContext']
