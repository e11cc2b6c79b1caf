"""
Chain executor.

Runs validation chains against an input document and aggregates the outcomes
into an ErrorReport. Every chain, and every located value of a chain, is
evaluated as its own asyncio task; rules of one located value run strictly in
declaration order and suspend only at awaited custom rules, guards and custom
sanitizers.

Sanitized values are committed back to the document after all chains have
finished, in chain declaration order, so chains never observe each other's
sanitization and the last declared chain wins on overlapping paths. When the
run deadline expires, in-flight tasks are cancelled, nothing is committed and
RunTimeoutError is raised.

Example:
    executor = ChainExecutor()
    report = executor.run([
        check('email').trim().is_email(),
        check('password').is_length(min=8),
    ], document)
"""

import asyncio
from collections.abc import Mapping
from dataclasses import replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

import structlog

from ..monitoring.metrics import ValidationMetricsCollector, validation_metrics
from .chain import ChainBuilder, ValidationChain, is_empty_value
from .context import ValidationContext
from .exceptions import DELIBERATE_FAILURES, CustomRuleFault, RunTimeoutError, failure_message
from .paths import LocatedValue, assign
from .results import ChainEvaluation, ErrorReport, ValidationOutcome, ValueEvaluation, aggregate
from .rules import Rule, RuleKind, maybe_await, render_message
from .schema import compile_schema

logger = structlog.get_logger("chainvalidator.executor")

DEFAULT_MESSAGE = "Invalid value"
DEFAULT_FAULT_MESSAGE = "Value could not be validated"

ChainLike = Union[ValidationChain, ChainBuilder]


class CommitPolicy(Enum):
    """When sanitized values are written back to the document."""
    ALWAYS = "always"
    ON_SUCCESS = "on_success"


class ReportValue(Enum):
    """Which value an outcome reports."""
    SANITIZED = "sanitized"
    ORIGINAL = "original"


class _Verdict:
    """Result of one judging or guard rule invocation."""

    __slots__ = ('passed', 'message', 'fault')

    def __init__(self, passed: bool, message: Optional[str] = None, fault: bool = False):
        self.passed = passed
        self.message = message
        self.fault = fault


class ChainExecutor:
    """
    Evaluates validation chains and produces ErrorReports.

    Attributes:
        default_message: Message used when neither the rule, a deliberate
            exception nor the chain provides one
        fault_message: Message of outcomes produced by faulting custom rules
            that carry no message of their own
        commit_policy: When sanitized values are committed to the document
        report_value: Whether outcomes report the sanitized or original value
        timeout: Default run deadline in seconds (None disables it)
        cache: ValidationCache made available to rules via the context
        metrics: Prometheus collector receiving run statistics
    """

    def __init__(
        self,
        default_message: str = DEFAULT_MESSAGE,
        fault_message: str = DEFAULT_FAULT_MESSAGE,
        commit_policy: CommitPolicy = CommitPolicy.ALWAYS,
        report_value: ReportValue = ReportValue.SANITIZED,
        timeout: Optional[float] = None,
        cache: Any = None,
        metrics: Optional[ValidationMetricsCollector] = None
    ) -> None:
        self.default_message = default_message
        self.fault_message = fault_message
        self.commit_policy = CommitPolicy(commit_policy)
        self.report_value = ReportValue(report_value)
        self.timeout = timeout
        self.cache = cache
        self.metrics = metrics or validation_metrics

    @classmethod
    def from_config(cls, config: Any, cache: Any = None, **overrides: Any) -> 'ChainExecutor':
        """
        Build an executor from a configuration class or object.

        Reads VALIDATION_DEFAULT_MESSAGE, VALIDATION_FAULT_MESSAGE,
        VALIDATION_COMMIT_POLICY, VALIDATION_REPORT_VALUE and
        VALIDATION_RUN_TIMEOUT.
        """
        settings = dict(
            default_message=getattr(config, 'VALIDATION_DEFAULT_MESSAGE', DEFAULT_MESSAGE),
            fault_message=getattr(config, 'VALIDATION_FAULT_MESSAGE', DEFAULT_FAULT_MESSAGE),
            commit_policy=CommitPolicy(getattr(config, 'VALIDATION_COMMIT_POLICY', 'always')),
            report_value=ReportValue(getattr(config, 'VALIDATION_REPORT_VALUE', 'sanitized')),
            timeout=getattr(config, 'VALIDATION_RUN_TIMEOUT', None),
            cache=cache,
        )
        settings.update(overrides)
        return cls(**settings)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def run(
        self,
        chains: Union[Iterable[ChainLike], Mapping],
        document: Any,
        metadata: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None
    ) -> ErrorReport:
        """
        Validate a document synchronously.

        Args:
            chains: Chains, builders or a schema mapping
            document: Input document; sanitized values are written into it
            metadata: Caller metadata exposed to rules (``locale``, ``timeout``)
            timeout: Run deadline in seconds, overriding the executor default

        Returns:
            ErrorReport of the run

        Raises:
            RunTimeoutError: If the deadline expires before all chains finish
        """
        return asyncio.run(self.run_async(chains, document, metadata, timeout))

    async def run_async(
        self,
        chains: Union[Iterable[ChainLike], Mapping],
        document: Any,
        metadata: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None
    ) -> ErrorReport:
        """Coroutine form of run()."""
        resolved_chains = self._resolve_chains(chains)
        metadata = dict(metadata or {})
        deadline = self._deadline(timeout, metadata)

        with self.metrics.time_run() as run_state:
            pending = asyncio.gather(*(
                self.evaluate(chain, document, metadata) for chain in resolved_chains
            ))
            try:
                if deadline is None:
                    evaluations = await pending
                else:
                    evaluations = await asyncio.wait_for(pending, deadline)
            except asyncio.TimeoutError:
                run_state['status'] = 'timeout'
                raise RunTimeoutError(deadline, len(resolved_chains)) from None

            self._commit(evaluations, document)
            report = aggregate(evaluations, document)
            run_state['status'] = 'valid' if report.is_empty() else 'invalid'

        for outcome in report.outcomes:
            self.metrics.record_outcome(outcome.rule, outcome.kind.value)

        logger.info("Validation run completed",
                    chain_count=len(resolved_chains),
                    error_count=len(report.outcomes),
                    valid=report.is_empty())
        return report

    async def evaluate(
        self,
        chain: ChainLike,
        document: Any,
        metadata: Optional[Dict[str, Any]] = None
    ) -> ChainEvaluation:
        """
        Evaluate one chain against every value it locates.

        Nothing is committed to the document; the returned evaluation carries
        each located value, its outcomes and its sanitized working value.
        """
        chain = chain.build()
        metadata = metadata if metadata is not None else {}
        located_values = chain.locate(document)
        values = await asyncio.gather(*(
            self._evaluate_value(chain, located, document, metadata) for located in located_values
        ))
        return ChainEvaluation(chain=chain, values=tuple(values))

    # ------------------------------------------------------------------
    # Evaluation of a single located value
    # ------------------------------------------------------------------

    async def _evaluate_value(
        self,
        chain: ValidationChain,
        located: LocatedValue,
        document: Any,
        metadata: Dict[str, Any]
    ) -> ValueEvaluation:
        value = located.value

        if chain.optional is not None and is_empty_value(value, chain.optional):
            logger.debug("Optional value skipped", path=located.path_string)
            return ValueEvaluation(located, (), value, sanitized=False, skipped=True)

        context = ValidationContext(document, located, metadata, self.cache, self.metrics)
        outcomes: List[ValidationOutcome] = []
        sanitized = False
        negate = False

        for rule in chain.rules:
            if rule.kind is RuleKind.NEGATION:
                negate = True
                continue

            if rule.kind is RuleKind.BAIL:
                if outcomes:
                    break
                continue

            if rule.kind is RuleKind.CONDITIONAL:
                verdict = await self._check_guard(chain, rule, value, context, metadata)
                if verdict.fault:
                    outcomes.append(self._outcome(chain, rule, located, value, context, verdict))
                    break
                if not verdict.passed:
                    logger.debug("Guard skipped value", path=located.path_string)
                    return ValueEvaluation(located, tuple(outcomes), value, sanitized, skipped=not outcomes)
                continue

            if rule.kind is RuleKind.SANITIZER:
                try:
                    value = await self._sanitize(rule, value, context)
                except Exception as e:
                    self._fault(rule, located, e)
                    outcomes.append(self._outcome(chain, rule, located, value, context,
                                                  _Verdict(False, fault=True)))
                    break
                sanitized = True
                continue

            verdict = await self._judge(rule, value, context, negate)
            negate = False
            if not verdict.passed:
                outcomes.append(self._outcome(chain, rule, located, value, context, verdict))
                if chain.stop_on_first_error:
                    break

        return ValueEvaluation(located, tuple(outcomes), value, sanitized)

    async def _sanitize(self, rule: Rule, value: Any, context: ValidationContext) -> Any:
        if rule.contextual:
            return await maybe_await(rule.func(value, context))
        return await maybe_await(rule.func(value, *rule.args, **rule.options))

    async def _judge(self, rule: Rule, value: Any, context: ValidationContext, negate: bool) -> _Verdict:
        if rule.kind is RuleKind.VALIDATOR:
            try:
                verdict = bool(await maybe_await(rule.func(value, *rule.args, **rule.options)))
            except Exception as e:
                # raising counts as a failed check, so a preceding negation flips it
                logger.debug("Validator raised", rule=rule.name, error=str(e))
                return _Verdict(negate)
            return _Verdict(verdict != negate)

        try:
            result = await maybe_await(rule.func(value, context))
        except DELIBERATE_FAILURES as e:
            if negate:
                return _Verdict(True)
            return _Verdict(False, failure_message(e))
        except Exception as e:
            self._fault(rule, context.located, e)
            return _Verdict(False, fault=True)

        failed = result is False
        return _Verdict(failed == negate)

    async def _check_guard(
        self,
        chain: ValidationChain,
        rule: Rule,
        value: Any,
        context: ValidationContext,
        metadata: Dict[str, Any]
    ) -> _Verdict:
        try:
            if rule.guard is not None:
                guard = rule.guard
                if not guard.locations and chain.locations:
                    # guard chains read from the guarded chain's locations
                    guard = replace(guard, locations=chain.locations)
                evaluation = await self.evaluate(guard, context.document, metadata)
                return _Verdict(not evaluation.outcomes)
            return _Verdict(bool(await maybe_await(rule.func(value, context))))
        except Exception as e:
            self._fault(rule, context.located, e)
            return _Verdict(False, fault=True)

    def _fault(self, rule: Rule, located: LocatedValue, error: Exception) -> CustomRuleFault:
        self.metrics.record_fault(rule.name)
        return CustomRuleFault(rule.name, located.path_string, error)

    def _outcome(
        self,
        chain: ValidationChain,
        rule: Rule,
        located: LocatedValue,
        value: Any,
        context: ValidationContext,
        verdict: _Verdict
    ) -> ValidationOutcome:
        reported = value if self.report_value is ReportValue.SANITIZED else located.value
        message = (
            rule.render_message(reported, context)
            or (self.fault_message if verdict.fault else None)
            or verdict.message
            or render_message(chain.message, reported, context)
            or self.default_message
        )
        return ValidationOutcome(
            path=located.path_string,
            location=located.location,
            value=reported,
            message=message,
            rule=rule.name,
            kind=rule.kind,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _resolve_chains(self, chains: Union[Iterable[ChainLike], Mapping]) -> List[ValidationChain]:
        if isinstance(chains, Mapping):
            return compile_schema(chains)
        return [chain.build() for chain in chains]

    def _deadline(self, timeout: Optional[float], metadata: Dict[str, Any]) -> Optional[float]:
        if timeout is not None:
            return timeout
        if metadata.get('timeout') is not None:
            return metadata['timeout']
        return self.timeout

    def _commit(self, evaluations: Sequence[ChainEvaluation], document: Any) -> None:
        """Write sanitized values back in chain declaration order."""
        for evaluation in evaluations:
            for value in evaluation.values:
                if not self._should_commit(evaluation.chain, value):
                    continue
                if not assign(document, value.located.document_path, value.value):
                    logger.warning("Sanitized value could not be committed",
                                   path=value.located.path_string,
                                   location=value.located.location)

    def _should_commit(self, chain: ValidationChain, value: ValueEvaluation) -> bool:
        if not value.sanitized or value.value is value.located.value:
            return False
        if value.located.absent and chain.path.has_wildcard:
            return False
        if self.commit_policy is CommitPolicy.ON_SUCCESS and not value.passed:
            return False
        return True


__all__ = [
    'ChainExecutor',
    'CommitPolicy',
    'ReportValue',
    'DEFAULT_MESSAGE',
    'DEFAULT_FAULT_MESSAGE',
]
