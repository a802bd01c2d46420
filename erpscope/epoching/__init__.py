"""
Epoching Module
===============

Epoching & Averaging Engine: per-condition ERPs and epoch quality metrics.

Example Usage:
    ```python
    from erpscope.epoching import EpochingEngine

    summaries = EpochingEngine().epoch_recording(recording, selection)
    ```

Author: EEG-ERP Analysis Team
Date: 2024
"""

from erpscope.epoching.engine import (
    EpochingEngine,
    epoch_conditions,
    compute_epoch_metrics,
    compute_trial_snr_db,
    window_offsets,
    seconds_to_samples,
    normalize_groups
)

__all__ = [
    'EpochingEngine',
    'epoch_conditions',
    'compute_epoch_metrics',
    'compute_trial_snr_db',
    'window_offsets',
    'seconds_to_samples',
    'normalize_groups',
]
