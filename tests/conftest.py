"""
Shared pytest fixtures for the chainvalidator test suite.

Every executor built here reports to an isolated Prometheus registry so tests
can assert on metric values without seeing each other's samples.
"""

import copy

import pytest
from flask import Flask
from prometheus_client import CollectorRegistry

from chainvalidator.cache.client import InMemoryValidationCache
from chainvalidator.engine.executor import ChainExecutor
from chainvalidator.monitoring.metrics import ValidationMetricsCollector
from chainvalidator.utils.decorators import init_validation


@pytest.fixture
def metrics_registry():
    """Fresh Prometheus registry."""
    return CollectorRegistry()


@pytest.fixture
def metrics(metrics_registry):
    """Metrics collector bound to the fresh registry."""
    return ValidationMetricsCollector(registry=metrics_registry)


@pytest.fixture
def executor(metrics):
    """Executor with default policies and isolated metrics."""
    return ChainExecutor(metrics=metrics)


@pytest.fixture
def cache():
    """In-memory verdict cache."""
    return InMemoryValidationCache(default_ttl=60)


@pytest.fixture
def cached_executor(metrics, cache):
    """Executor with an injected verdict cache."""
    return ChainExecutor(metrics=metrics, cache=cache)


@pytest.fixture
def signup_document():
    """Typical sign-up request body."""
    return {
        'email': '  Jane.Doe@Example.com ',
        'password': 'Sup3r$ecret',
        'password_confirmation': 'Sup3r$ecret',
        'age': '34',
        'items': [
            {'sku': 'A-1', 'price': '10.5'},
            {'sku': 'B-2', 'price': '-3'},
        ],
    }


@pytest.fixture
def pristine(signup_document):
    """Deep copy of the sign-up document taken before any run."""
    return copy.deepcopy(signup_document)


@pytest.fixture
def app(executor):
    """Flask application with request validation initialized."""
    flask_app = Flask(__name__)
    flask_app.config['TESTING'] = True
    init_validation(flask_app, executor)
    return flask_app


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()
