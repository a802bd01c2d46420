"""
Unit Tests for Utilities
========================

Test Coverage:
- DiagnosticReport recording, merging and serialization
- Logging setup, temporary levels and timing decorator
- Parameter and signal validation

Author: EEG-ERP Analysis Team
Date: 2024
"""

import logging

import pytest
import numpy as np

from erpscope.core.exceptions import InvalidTimeWindowError, SignalShapeError
from erpscope.utils import (
    DiagnosticReport,
    setup_logging,
    setup_logging_from_config,
    set_level,
    log_execution_time,
    LogLevel,
    ProgressLogger,
    check_range,
    check_positive,
    check_probability,
    check_choice,
    validate_signal,
    validate_time_window,
)


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


class TestDiagnosticReport:
    """Test cases for the diagnostic sink."""

    def test_messages(self, caplog):
        """Test that messages are stored and optionally logged."""
        report = DiagnosticReport()
        logger = logging.getLogger('erpscope.test')

        with caplog.at_level(logging.INFO, logger='erpscope.test'):
            report.add_info("detected bracket", logger)
            report.add_warning("no grouping fields", logger)
            report.add_error("provider failed")

        assert report.info == ["detected bracket"]
        assert report.has_warnings
        assert report.has_errors
        assert "no grouping fields" in caplog.text
        assert "provider failed" not in caplog.text

    def test_events(self):
        """Test structured facts by name."""
        report = DiagnosticReport()
        report.record('group_epoched', label='A', num_epochs=3)
        report.record('group_epoched', label='B', num_epochs=0)
        report.record('epoching_completed', total_epochs=3)

        assert [e['label'] for e in report.get_events('group_epoched')] == ['A', 'B']
        assert report.get_events('missing') == []

    def test_merge(self):
        """Test combining two reports."""
        first, second = DiagnosticReport(), DiagnosticReport()
        first.add_warning("w1")
        second.add_warning("w2")
        second.record('x', value=1)

        first.merge(second)
        first.merge(first)

        assert first.warnings == ["w1", "w2"]
        assert len(first.events) == 1

    def test_clear(self):
        report = DiagnosticReport()
        report.add_warning("w")
        report.clear()

        assert not report.has_warnings

    def test_summary_and_dict(self):
        """Test the text summary and dictionary form."""
        report = DiagnosticReport()
        report.add_warning("rejected override 'cnd'")

        assert "Warnings: 1" in report.summary()
        assert "rejected override 'cnd'" in report.summary()
        assert report.to_dict()['warnings'] == ["rejected override 'cnd'"]


class TestLogging:
    """Test cases for logging helpers."""

    def test_setup_logging(self, restore_root_logger, tmp_path):
        """Test console and file handlers."""
        log_file = tmp_path / 'logs' / 'run.log'

        setup_logging(level='DEBUG', log_file=str(log_file), use_colors=False)
        logging.getLogger('erpscope.test').debug("written to file")

        assert restore_root_logger.level == logging.DEBUG
        assert len(restore_root_logger.handlers) == 2
        for handler in restore_root_logger.handlers:
            handler.flush()
        assert "written to file" in log_file.read_text()

    def test_setup_from_config(self, restore_root_logger):
        """Test the 'logging' configuration section."""
        setup_logging_from_config(console=False)

        assert restore_root_logger.level == logging.INFO
        assert restore_root_logger.handlers == []

    def test_set_level(self):
        """Test setting one logger's level."""
        set_level('ERROR', 'erpscope.events')

        assert logging.getLogger('erpscope.events').level == logging.ERROR
        logging.getLogger('erpscope.events').setLevel(logging.NOTSET)

    def test_log_level_context(self):
        """Test that the level is restored on exit."""
        logger = logging.getLogger('erpscope.epoching')
        before = logger.level

        with LogLevel('DEBUG', 'erpscope.epoching'):
            assert logger.level == logging.DEBUG

        assert logger.level == before

    def test_execution_time(self, caplog):
        """Test the timing decorator."""
        @log_execution_time(level=logging.INFO)
        def work(x):
            return x * 2

        with caplog.at_level(logging.INFO):
            assert work(21) == 42

        assert "executed in" in caplog.text

    def test_progress_logger(self, caplog):
        """Test progress messages."""
        logger = logging.getLogger('erpscope.test.progress')

        with caplog.at_level(logging.DEBUG, logger='erpscope.test.progress'):
            progress = ProgressLogger(total=4, desc="Epoching", logger=logger)
            for _ in range(4):
                progress.update()
            progress.finish()

        assert progress.current == 4
        assert "Epoching: 4/4" in caplog.text
        assert "Complete" in caplog.text


class TestValidation:
    """Test cases for validation helpers."""

    def test_check_range(self):
        check_range(0.5, 0.0, 1.0)
        with pytest.raises(ValueError):
            check_range(1.5, 0.0, 1.0, name='cardinality')
        with pytest.raises(ValueError):
            check_range(0.0, min_val=0.0, inclusive=False)

    def test_check_positive(self):
        check_positive(0, allow_zero=True)
        with pytest.raises(ValueError):
            check_positive(0)

    def test_check_probability(self):
        with pytest.raises(ValueError):
            check_probability(-0.1)

    def test_check_choice(self):
        check_choice('auto', ('auto', 'always', 'never'))
        with pytest.raises(ValueError, match="sometimes"):
            check_choice('sometimes', ('auto', 'always', 'never'), 'ai.mode')

    def test_validate_signal(self):
        """Test signal shape and rate checks."""
        data = validate_signal([[1, 2, 3], [4, 5, 6]], 250)

        assert data.dtype == float
        with pytest.raises(SignalShapeError):
            validate_signal(np.zeros((3, 0)), 250)
        with pytest.raises(SignalShapeError):
            validate_signal(np.zeros((2, 10)), float('nan'))

    @pytest.mark.parametrize("window", [(0.5, 0.1), (0.1, 0.1), (0.0, float('inf')), (0.1,)])
    def test_invalid_time_window(self, window):
        with pytest.raises(InvalidTimeWindowError):
            validate_time_window(window)

    def test_time_window(self):
        assert validate_time_window([-0.2, 0.8]) == (-0.2, 0.8)
