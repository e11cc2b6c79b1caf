"""
Tests for the Prometheus metrics collector and logging setup.
"""

import logging

import pytest
import structlog
from prometheus_client.parser import text_string_to_metric_families

from chainvalidator.monitoring.logging import get_logger, setup_structured_logging


class TestValidationMetricsCollector:
    """Counters and histograms of validation runs."""

    def test_time_run_records_status(self, metrics, metrics_registry):
        with metrics.time_run() as state:
            state['status'] = 'valid'

        assert metrics_registry.get_sample_value('chainvalidator_runs_total', {'status': 'valid'}) == 1.0

    def test_time_run_records_errors(self, metrics, metrics_registry):
        """Test that a block raising without a status counts as an error."""
        with pytest.raises(RuntimeError):
            with metrics.time_run():
                raise RuntimeError('boom')

        assert metrics_registry.get_sample_value('chainvalidator_runs_total', {'status': 'error'}) == 1.0

    def test_cache_and_fault_counters(self, metrics, metrics_registry):
        metrics.record_cache(True)
        metrics.record_cache(False)
        metrics.record_cache(False)
        metrics.record_fault('custom')

        assert metrics_registry.get_sample_value('chainvalidator_cache_requests_total', {'result': 'hit'}) == 1.0
        assert metrics_registry.get_sample_value('chainvalidator_cache_requests_total', {'result': 'miss'}) == 2.0
        assert metrics_registry.get_sample_value(
            'chainvalidator_custom_rule_faults_total', {'rule': 'custom'}
        ) == 1.0

    def test_export(self, metrics):
        """Test that the exposition output parses back to the recorded sample."""
        metrics.record_outcome('is_int', 'validator')

        exported = metrics.export().decode('utf-8')

        samples = [
            (sample.labels, sample.value)
            for family in text_string_to_metric_families(exported)
            for sample in family.samples
            if sample.name == 'chainvalidator_outcomes_total'
        ]
        assert samples == [({'rule': 'is_int', 'kind': 'validator'}, 1.0)]


@pytest.fixture
def restore_logging():
    """Undo global logging configuration made by a test."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()


class TestStructuredLogging:
    """structlog configuration."""

    def test_setup_sets_root_level(self, restore_logging):
        logger = setup_structured_logging(level='warning', log_format='console', colors=False)

        assert logging.getLogger().level == logging.WARNING
        assert logger is not None

    def test_get_logger(self):
        assert get_logger('chainvalidator.tests') is not None
