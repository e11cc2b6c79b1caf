"""
Validation outcomes and the aggregated error report.

The executor produces one ChainEvaluation per chain, each holding one
ValueEvaluation per located value. aggregate() flattens them into an
ErrorReport ordered by chain declaration, then located value, then rule, so
the report is deterministic regardless of how the chains were scheduled.
"""

import copy
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from marshmallow import missing

from .exceptions import RequestValidationError
from .paths import LocatedValue, assign, read
from .rules import RuleKind


@dataclass(frozen=True)
class ValidationOutcome:
    """
    One failed rule for one located value.

    Attributes:
        path: Resolved field path (``items.0.price``)
        location: Document location the value was read from, if any
        value: Attempted value (sanitized or original, as configured)
        message: Rendered failure message
        rule: Name of the failing rule
        kind: Kind of the failing rule
    """

    path: str
    location: Optional[str]
    value: Any
    message: str
    rule: str
    kind: RuleKind

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'type': 'field',
            'path': self.path,
            'location': self.location,
            'message': self.message,
            'rule': self.rule,
            'kind': self.kind.value,
        }
        if self.value is not missing:
            data['value'] = self.value
        return data


@dataclass(frozen=True)
class ValueEvaluation:
    """
    Evaluation of one chain against one located value.

    Attributes:
        located: The located value as read from the document
        outcomes: Failed outcomes in rule order
        value: Working value after sanitization
        sanitized: At least one sanitizer ran
        skipped: The optional modifier or a guard skipped the value
    """

    located: LocatedValue
    outcomes: Tuple[ValidationOutcome, ...] = ()
    value: Any = missing
    sanitized: bool = False
    skipped: bool = False

    @property
    def passed(self) -> bool:
        return not self.outcomes


@dataclass(frozen=True)
class ChainEvaluation:
    """Evaluation of one chain: one ValueEvaluation per located value."""

    chain: Any
    values: Tuple[ValueEvaluation, ...] = ()

    @property
    def outcomes(self) -> Tuple[ValidationOutcome, ...]:
        return tuple(outcome for value in self.values for outcome in value.outcomes)


@dataclass(frozen=True)
class ErrorReport:
    """
    Immutable result of one validation run.

    Example:
        report = executor.run(chains, document)
        if not report.is_empty():
            return jsonify(report.to_dict()), 400
        data = report.matched_data()
    """

    outcomes: Tuple[ValidationOutcome, ...] = ()
    evaluations: Tuple[ChainEvaluation, ...] = field(default=(), repr=False)
    document: Any = field(default=None, repr=False, compare=False)

    def is_empty(self) -> bool:
        return not self.outcomes

    def __len__(self) -> int:
        return len(self.outcomes)

    def __iter__(self):
        return iter(self.outcomes)

    def as_list(self) -> List[ValidationOutcome]:
        return list(self.outcomes)

    def grouped_by_path(self) -> Dict[str, List[str]]:
        """Map each failing path to its messages, in outcome order (duplicates kept)."""
        grouped: Dict[str, List[str]] = OrderedDict()
        for outcome in self.outcomes:
            grouped.setdefault(outcome.path, []).append(outcome.message)
        return dict(grouped)

    def mapped(self) -> Dict[str, ValidationOutcome]:
        """Map each failing path to its first outcome."""
        mapped: Dict[str, ValidationOutcome] = {}
        for outcome in self.outcomes:
            mapped.setdefault(outcome.path, outcome)
        return mapped

    def to_dict(self) -> Dict[str, Any]:
        return {
            'valid': self.is_empty(),
            'errors': [outcome.to_dict() for outcome in self.outcomes],
        }

    def raise_for_errors(self, message: str = "Request validation failed") -> None:
        """
        Raise RequestValidationError if any outcome was recorded.

        Raises:
            RequestValidationError: Carrying every outcome of the report
        """
        if self.outcomes:
            raise RequestValidationError(self.outcomes, message=message)

    def matched_data(self, include_optionals: bool = False) -> Dict[str, Any]:
        """
        Collect the validated fields from the (sanitized) document.

        Only values of chains that passed are included. Values skipped by the
        optional modifier or a guard are left out unless ``include_optionals``
        is set.
        Absent values are never included.
        """
        data: Dict[str, Any] = {}
        failed_paths = {(outcome.location, outcome.path) for outcome in self.outcomes}

        for evaluation in self.evaluations:
            for value in evaluation.values:
                located = value.located
                if (located.location, located.path_string) in failed_paths:
                    continue
                if value.skipped and not include_optionals:
                    continue
                current = read(self.document, located.document_path)
                if current is missing:
                    continue
                assign(data, located.document_path, copy.deepcopy(current))
        return data


def aggregate(evaluations: Iterable[ChainEvaluation], document: Any = None) -> ErrorReport:
    """
    Merge chain evaluations into an ErrorReport.

    Args:
        evaluations: Chain evaluations in chain declaration order
        document: The validated document, used by matched_data()
    """
    evaluations = tuple(evaluations)
    outcomes = tuple(outcome for evaluation in evaluations for outcome in evaluation.outcomes)
    return ErrorReport(outcomes=outcomes, evaluations=evaluations, document=document)


__all__ = [
    'ValidationOutcome',
    'ValueEvaluation',
    'ChainEvaluation',
    'ErrorReport',
    'aggregate',
]
