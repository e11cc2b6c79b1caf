"""
Field path parsing and document traversal.

A FieldPath is an ordered tuple of segments: a string key, an integer index,
or the WILDCARD marker that matches every element of a list. Paths are parsed
from dot, bracket and wildcard notation:

    user.email            -> ('user', 'email')
    items.0.price         -> ('items', 0, 'price')
    items[0].price        -> ('items', 0, 'price')
    items.*.price         -> ('items', WILDCARD, 'price')
    meta["x.y"]           -> ('meta', 'x.y')
    codes.007             -> ('codes', '007')

Locating a path against a document never mutates it. Sanitized values are
written back with assign().
"""

import re
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple, Union

from marshmallow import missing

from .exceptions import PathSyntaxError


class _Wildcard:
    """Marker segment matching every index of a list."""

    def __repr__(self) -> str:
        return 'WILDCARD'

    def __str__(self) -> str:
        return '*'


WILDCARD = _Wildcard()

Segment = Union[str, int, _Wildcard]

_TOKEN_RE = re.compile(
    r"""
      (?P<bracket>\[(?P<inner>[^\[\]]*)\])
    | (?P<dot>\.)
    | (?P<name>[^.\[\]]+)
    """,
    re.VERBOSE
)
_INDEX_RE = re.compile(r'^(0|[1-9]\d*)$')
_DIGITS_RE = re.compile(r'^\d+$')
_QUOTED_RE = re.compile(r'''^(['"])(?P<key>.*)\1$''')


def _name_segment(name: str) -> Segment:
    if name == '*':
        return WILDCARD
    if _INDEX_RE.match(name):
        return int(name)
    # leading zeros keep the literal key text
    return name


def _bracket_segment(inner: str, path: str) -> Segment:
    inner = inner.strip()
    if inner == '*':
        return WILDCARD
    if _INDEX_RE.match(inner):
        return int(inner)
    if _DIGITS_RE.match(inner):
        return inner
    quoted = _QUOTED_RE.match(inner)
    if quoted and quoted.group('key'):
        return quoted.group('key')
    raise PathSyntaxError(f"Invalid bracket segment '[{inner}]' in field path", path=path)


def format_path(segments: Tuple[Segment, ...]) -> str:
    """Render concrete segments as a dotted path string (``items.0.price``)."""
    return '.'.join(str(segment) for segment in segments)


@dataclass(frozen=True)
class FieldPath:
    """Parsed field path."""

    segments: Tuple[Segment, ...]
    raw: str

    @classmethod
    def parse(cls, path: str) -> 'FieldPath':
        """
        Parse a dot/bracket/wildcard path string.

        Args:
            path: Path string such as ``items[*].price``

        Returns:
            FieldPath with parsed segments

        Raises:
            PathSyntaxError: If the path is empty, has empty segments
                (``a..b``, ``.a``, ``a.``) or unbalanced brackets
        """
        if isinstance(path, FieldPath):
            return path
        if not isinstance(path, str) or not path.strip():
            raise PathSyntaxError("Field path must be a non-empty string", path=path)

        segments: List[Segment] = []
        after_dot = False
        position = 0

        while position < len(path):
            match = _TOKEN_RE.match(path, position)
            if match is None:
                raise PathSyntaxError(
                    f"Unbalanced bracket at position {position} in field path", path=path
                )

            if match.group('dot'):
                if not segments or after_dot:
                    raise PathSyntaxError("Empty segment in field path", path=path)
                after_dot = True
            elif match.group('bracket') is not None:
                if after_dot:
                    raise PathSyntaxError("Bracket segment cannot follow a dot", path=path)
                segments.append(_bracket_segment(match.group('inner'), path))
            else:
                if segments and not after_dot:
                    raise PathSyntaxError("Missing dot between path segments", path=path)
                segments.append(_name_segment(match.group('name')))
                after_dot = False

            position = match.end()

        if after_dot:
            raise PathSyntaxError("Field path cannot end with a dot", path=path)

        return cls(tuple(segments), path)

    @property
    def has_wildcard(self) -> bool:
        return any(segment is WILDCARD for segment in self.segments)

    def __str__(self) -> str:
        return self.raw


@dataclass(frozen=True)
class LocatedValue:
    """A concrete (path, value) pair produced by locating a FieldPath."""

    path: Tuple[Segment, ...]
    value: Any
    location: Optional[str] = None

    @property
    def absent(self) -> bool:
        return self.value is missing

    @property
    def path_string(self) -> str:
        return format_path(self.path)

    @property
    def document_path(self) -> Tuple[Segment, ...]:
        """Path including the location key, used to address the full document."""
        if self.location is None:
            return self.path
        return (self.location,) + self.path


def _is_sequence(node: Any) -> bool:
    return isinstance(node, (list, tuple))


def _sequence_index(segment: Segment) -> Optional[int]:
    if isinstance(segment, int):
        return segment
    if isinstance(segment, str) and _DIGITS_RE.match(segment):
        return int(segment)
    return None


def _child(node: Any, segment: Segment) -> Any:
    if isinstance(node, Mapping):
        if segment in node:
            return node[segment]
        if isinstance(segment, int) and str(segment) in node:
            return node[str(segment)]
        return missing
    index = _sequence_index(segment)
    if _is_sequence(node) and index is not None and index < len(node):
        return node[index]
    return missing


def _literal_prefix(segments: Tuple[Segment, ...]) -> Tuple[Segment, ...]:
    prefix = []
    for segment in segments:
        if segment is WILDCARD:
            break
        prefix.append(segment)
    return tuple(prefix)


def _descend(
    node: Any,
    remaining: Tuple[Segment, ...],
    resolved: Tuple[Segment, ...],
    results: List[LocatedValue],
    location: Optional[str]
) -> None:
    if not remaining:
        results.append(LocatedValue(resolved, node, location))
        return

    segment, rest = remaining[0], remaining[1:]

    if segment is WILDCARD:
        # Wildcards only expand over lists; anything else matches nothing
        if _is_sequence(node):
            for index, item in enumerate(node):
                _descend(item, rest, resolved + (index,), results, location)
        return

    child = _child(node, segment)
    if child is missing:
        results.append(LocatedValue(resolved + (segment,) + _literal_prefix(rest), missing, location))
        return

    _descend(child, rest, resolved + (segment,), results, location)


def locate(document: Any, field_path: FieldPath, location: Optional[str] = None) -> List[LocatedValue]:
    """
    Resolve a field path against a document.

    Args:
        document: Nested mapping/list structure to read from
        field_path: Parsed field path
        location: Location name recorded on each result (e.g. ``body``)

    Returns:
        Located values in document order. A missing segment yields a single
        absent entry so that presence rules can still fire; a wildcard over a
        non-list yields nothing.
    """
    if isinstance(field_path, str):
        field_path = FieldPath.parse(field_path)
    results: List[LocatedValue] = []
    _descend(document, field_path.segments, (), results, location)
    return results


def _container_for(segment: Segment) -> Any:
    return [] if isinstance(segment, int) else {}


def _assign_child(node: Any, segment: Segment, value: Any) -> bool:
    if isinstance(node, MutableMapping):
        if isinstance(segment, int) and segment not in node and str(segment) in node:
            segment = str(segment)
        node[segment] = value
        return True
    index = _sequence_index(segment)
    if isinstance(node, list) and index is not None and index >= 0:
        if index >= len(node):
            node.extend([None] * (index + 1 - len(node)))
        node[index] = value
        return True
    return False


def assign(document: Any, segments: Tuple[Segment, ...], value: Any) -> bool:
    """
    Write a value at a concrete path, creating missing containers.

    Missing intermediate containers are created as dicts (or lists when the
    following segment is an index). Wildcard segments are not accepted.

    Returns:
        True when the value was written, False when the path cannot hold it
        (for example a key below a scalar or a tuple)
    """
    if not segments:
        return False

    node = document
    for segment, following in zip(segments, segments[1:]):
        if segment is WILDCARD:
            return False
        child = _child(node, segment)
        if child is missing or child is None:
            child = _container_for(following)
            if not _assign_child(node, segment, child):
                return False
        node = child

    last = segments[-1]
    if last is WILDCARD:
        return False
    return _assign_child(node, last, value)


def read(document: Any, segments: Tuple[Segment, ...]) -> Any:
    """Read the value at a concrete path, returning ``missing`` if absent."""
    node = document
    for segment in segments:
        node = _child(node, segment)
        if node is missing:
            return missing
    return node


__all__ = [
    'WILDCARD',
    'FieldPath',
    'LocatedValue',
    'format_path',
    'locate',
    'assign',
    'read',
]
