"""
Utilities Module
================

This module provides common utility functions for erpscope.

Available Modules:
-----------------
- logging: Centralized logging configuration
- diagnostics: Caller-owned DiagnosticReport sink
- validation: Parameter and signal validation

Example Usage:
    ```python
    from erpscope.utils import setup_logging, DiagnosticReport

    setup_logging(level='INFO', log_file='logs/erpscope.log')
    report = DiagnosticReport()
    ```

Author: EEG-ERP Analysis Team
Date: 2024
"""

# =============================================================================
# Logging Utilities
# =============================================================================
from erpscope.utils.logging import (
    setup_logging,
    setup_logging_from_config,
    get_logger,
    set_level,
    log_execution_time,
    LogLevel,
    ProgressLogger
)

# =============================================================================
# Diagnostics
# =============================================================================
from erpscope.utils.diagnostics import DiagnosticReport

# =============================================================================
# Validation Utilities
# =============================================================================
from erpscope.utils.validation import (
    check_range,
    check_positive,
    check_probability,
    check_choice,
    validate_signal,
    validate_time_window
)

__all__ = [
    # Logging
    'setup_logging',
    'setup_logging_from_config',
    'get_logger',
    'set_level',
    'log_execution_time',
    'LogLevel',
    'ProgressLogger',

    # Diagnostics
    'DiagnosticReport',

    # Validation
    'check_range',
    'check_positive',
    'check_probability',
    'check_choice',
    'validate_signal',
    'validate_time_window'
]
