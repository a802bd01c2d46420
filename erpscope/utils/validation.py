"""
Validation Utilities
====================

This module provides validation helpers for caller-supplied parameters.

Caller mistakes that cannot be recovered (a reversed epoch window, a signal
that is not channels x samples) are raised here as erpscope exceptions;
everything recoverable is left to the components, which log and continue.

Validation Categories:
---------------------
1. Numeric Validation: check_range, check_positive, check_probability
2. Signal Validation: validate_signal, validate_time_window
3. Choice Validation: check_choice

Example Usage:
    ```python
    from erpscope.utils.validation import validate_signal, validate_time_window

    signals = validate_signal(recording.signals, recording.sampling_rate)
    t_start, t_end = validate_time_window((-0.2, 0.8))
    ```

Author: EEG-ERP Analysis Team
Date: 2024
"""

from typing import Optional, Any, Union, Tuple, Sequence
import math
import numpy as np
import logging

from erpscope.core.exceptions import InvalidTimeWindowError, SignalShapeError

logger = logging.getLogger(__name__)


# =============================================================================
# NUMERIC VALIDATION
# =============================================================================

def check_range(value: Union[int, float],
                min_val: Optional[Union[int, float]] = None,
                max_val: Optional[Union[int, float]] = None,
                name: str = 'value',
                inclusive: bool = True) -> None:
    """
    Check if value is within range.

    Args:
        value: Value to check
        min_val: Minimum allowed value (or None for no minimum)
        max_val: Maximum allowed value (or None for no maximum)
        name: Name of the value
        inclusive: Whether range is inclusive

    Raises:
        ValueError: If value is out of range

    Example:
        >>> check_range(threshold, min_val=0.0, max_val=1.0, name='condition_max_cardinality')
    """
    if min_val is not None:
        if inclusive and value < min_val:
            raise ValueError(f"'{name}' must be >= {min_val}, got {value}")
        elif not inclusive and value <= min_val:
            raise ValueError(f"'{name}' must be > {min_val}, got {value}")

    if max_val is not None:
        if inclusive and value > max_val:
            raise ValueError(f"'{name}' must be <= {max_val}, got {value}")
        elif not inclusive and value >= max_val:
            raise ValueError(f"'{name}' must be < {max_val}, got {value}")


def check_positive(value: Union[int, float],
                   name: str = 'value',
                   allow_zero: bool = False) -> None:
    """Check that a value is positive (or non-negative with allow_zero)."""
    if allow_zero:
        if value < 0:
            raise ValueError(f"'{name}' must be non-negative, got {value}")
    elif value <= 0:
        raise ValueError(f"'{name}' must be positive, got {value}")


def check_probability(value: float, name: str = 'value') -> None:
    """Check that a value lies in [0, 1]."""
    check_range(value, 0.0, 1.0, name)


def check_choice(value: Any, choices: Sequence[Any], name: str = 'value') -> None:
    """Check that a value is one of the allowed choices."""
    if value not in choices:
        raise ValueError(f"'{name}' must be one of {list(choices)}, got {value!r}")


# =============================================================================
# SIGNAL VALIDATION
# =============================================================================

def validate_signal(signals: Any, sampling_rate: float) -> np.ndarray:
    """
    Validate a cleaned signal matrix for epoching.

    Args:
        signals: Array-like of shape (n_channels, n_samples)
        sampling_rate: Sampling frequency in Hz

    Returns:
        np.ndarray: The signal as a float array (no copy when already float)

    Raises:
        SignalShapeError: If the signal is not 2D, is empty, or the rate is invalid
    """
    array = np.asarray(signals, dtype=float)

    if array.ndim != 2:
        raise SignalShapeError(f"signals must be 2D (channels, samples), got {array.ndim}D",
                               array.shape)
    if array.shape[0] == 0 or array.shape[1] == 0:
        raise SignalShapeError("signals must have at least one channel and one sample",
                               array.shape)
    if sampling_rate is None or not math.isfinite(sampling_rate) or sampling_rate <= 0:
        raise SignalShapeError(f"sampling_rate must be positive, got {sampling_rate}")

    return array


def validate_time_window(window: Sequence[float]) -> Tuple[float, float]:
    """
    Validate an epoch window in seconds relative to onset.

    Args:
        window: (t_start, t_end)

    Returns:
        Tuple of floats (t_start, t_end)

    Raises:
        InvalidTimeWindowError: If the window is malformed
    """
    try:
        t_start, t_end = (float(t) for t in window)
    except (TypeError, ValueError) as e:
        raise InvalidTimeWindowError(float('nan'), float('nan'),
                                     f"Expected two numbers, got {window!r}") from e

    if not (math.isfinite(t_start) and math.isfinite(t_end)):
        raise InvalidTimeWindowError(t_start, t_end, "Window bounds must be finite.")
    if t_start >= t_end:
        raise InvalidTimeWindowError(t_start, t_end)

    return t_start, t_end
