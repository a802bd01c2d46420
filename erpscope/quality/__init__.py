"""
Quality Module
==============

Recording-level quality assessment of the cleaned signal.

Example Usage:
    ```python
    from erpscope.quality import RecordingQualityChecker

    report = RecordingQualityChecker().assess(recording)
    print(report.summary())
    ```

Author: EEG-ERP Analysis Team
Date: 2024
"""

from erpscope.quality.recording_quality import (
    RecordingQualityChecker,
    QualityReport,
    FREQUENCY_BANDS
)

__all__ = [
    'RecordingQualityChecker',
    'QualityReport',
    'FREQUENCY_BANDS',
]
