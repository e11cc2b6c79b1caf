"""
Flask integration for validation chains.

The validate_request decorator builds an input document from the current
request, runs the chains and stores the ErrorReport on ``flask.g`` before the
view runs. Sanitized values are written into that document, never into the
request itself; use matched_data() to read them.

    @app.route('/users', methods=['POST'])
    @validate_request(
        body('email').trim().is_email().normalize_email(),
        body('password').is_strong_password(),
    )
    def create_user():
        report = validation_result()
        if not report.is_empty():
            return jsonify(report.to_dict()), 400
        data = matched_data()
        ...

Document layout: ``{'body', 'query', 'params', 'headers', 'cookies'}``.
Header names are lower-cased. Chains built without locations (``check()``)
are looked up in every location.
"""

import functools
import inspect
from collections.abc import Mapping
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional, TypeVar

import structlog
from flask import Flask, Response, current_app, g, jsonify, request

from ..engine.chain import REQUEST_LOCATIONS, ValidationChain
from ..engine.exceptions import RequestValidationError, ValidationEngineError
from ..engine.executor import ChainExecutor
from ..engine.results import ErrorReport
from ..engine.schema import compile_schema

logger = structlog.get_logger("chainvalidator.flask")

F = TypeVar('F', bound=Callable[..., Any])

EXTENSION_KEY = 'chainvalidator'


def build_request_document() -> Dict[str, Any]:
    """Build the validation document of the current request."""
    body = request.get_json(silent=True)
    if body is None:
        body = request.form.to_dict(flat=True) if request.form else {}

    query = {
        key: values[0] if len(values) == 1 else values
        for key, values in request.args.to_dict(flat=False).items()
    }

    return {
        'body': body,
        'query': query,
        'params': dict(request.view_args or {}),
        'headers': {key.lower(): value for key, value in request.headers.items()},
        'cookies': request.cookies.to_dict(),
    }


def _prepare_chains(chains_or_schema: tuple) -> List[ValidationChain]:
    if len(chains_or_schema) == 1 and isinstance(chains_or_schema[0], Mapping):
        return compile_schema(chains_or_schema[0], locations=REQUEST_LOCATIONS)

    prepared = []
    for chain in chains_or_schema:
        chain = chain.build()
        if not chain.locations:
            chain = replace(chain, locations=REQUEST_LOCATIONS)
        prepared.append(chain)
    return prepared


def _executor_for(explicit: Optional[ChainExecutor]) -> ChainExecutor:
    if explicit is not None:
        return explicit
    executor = current_app.extensions.get(EXTENSION_KEY)
    if executor is None:
        executor = ChainExecutor()
        current_app.extensions[EXTENSION_KEY] = executor
    return executor


def _store_report(report: ErrorReport, document: Dict[str, Any], abort_on_error: bool, view_name: str) -> None:
    g.validation_report = report
    g.validation_document = document

    if not report.is_empty():
        logger.info("Request validation failed",
                    view=view_name,
                    error_count=len(report),
                    paths=list(report.grouped_by_path()))
        if abort_on_error:
            report.raise_for_errors()


def validate_request(
    *chains_or_schema: Any,
    executor: Optional[ChainExecutor] = None,
    abort_on_error: Optional[bool] = None,
    metadata: Optional[Callable[[], Dict[str, Any]]] = None
) -> Callable[[F], F]:
    """
    Decorator validating the current request with chains or a schema.

    Args:
        *chains_or_schema: Chains/builders, or a single schema mapping
        executor: Executor to use (defaults to the app's executor)
        abort_on_error: Raise RequestValidationError on failures instead of
            calling the view (defaults to VALIDATION_ABORT_ON_ERROR)
        metadata: Callable returning per-request metadata for rules

    Raises:
        CompilationError: At decoration time, if a schema is malformed
    """
    chains = _prepare_chains(chains_or_schema)

    def decorator(func: F) -> F:
        view_name = f"{func.__module__}.{func.__qualname__}"

        def _should_abort() -> bool:
            if abort_on_error is not None:
                return abort_on_error
            return bool(current_app.config.get('VALIDATION_ABORT_ON_ERROR', False))

        def _metadata() -> Dict[str, Any]:
            base = {'locale': request.accept_languages.best}
            if metadata is not None:
                base.update(metadata())
            return base

        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                document = build_request_document()
                report = await _executor_for(executor).run_async(chains, document, _metadata())
                _store_report(report, document, _should_abort(), view_name)
                return await func(*args, **kwargs)

            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            document = build_request_document()
            report = _executor_for(executor).run(chains, document, _metadata())
            _store_report(report, document, _should_abort(), view_name)
            return func(*args, **kwargs)

        return wrapper

    return decorator


def validation_result() -> ErrorReport:
    """Return the ErrorReport stored by validate_request for this request."""
    report = getattr(g, 'validation_report', None)
    if report is None:
        return ErrorReport()
    return report


def matched_data(include_optionals: bool = False) -> Dict[str, Any]:
    """Return the validated, sanitized fields of this request by location."""
    return validation_result().matched_data(include_optionals=include_optionals)


def register_error_handlers(app: Flask) -> None:
    """Render engine exceptions as JSON responses."""

    @app.errorhandler(RequestValidationError)
    def handle_request_validation_error(error: RequestValidationError) -> Response:
        return jsonify(error.to_dict()), error.http_status_code

    @app.errorhandler(ValidationEngineError)
    def handle_validation_engine_error(error: ValidationEngineError) -> Response:
        return jsonify(error.to_dict()), error.http_status_code


def init_validation(app: Flask, executor: Optional[ChainExecutor] = None) -> ChainExecutor:
    """
    Attach an executor to a Flask app and register the error handlers.

    Without an explicit executor one is built from the app config (the
    VALIDATION_* keys of chainvalidator.config.settings).
    """
    if executor is None:
        executor = ChainExecutor.from_config(_ConfigView(app.config))
    app.extensions[EXTENSION_KEY] = executor
    register_error_handlers(app)

    logger.info("Request validation initialized",
                app_name=app.name,
                commit_policy=executor.commit_policy.value,
                timeout=executor.timeout)
    return executor


class _ConfigView:
    """Attribute access over a Flask config mapping."""

    def __init__(self, config: Mapping) -> None:
        self._config = config

    def __getattr__(self, name: str) -> Any:
        try:
            return self._config[name]
        except KeyError:
            raise AttributeError(name) from None


__all__ = [
    'build_request_document',
    'validate_request',
    'validation_result',
    'matched_data',
    'register_error_handlers',
    'init_validation',
]
