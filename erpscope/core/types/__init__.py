"""
Core Types Module
=================

This module exports all core data types of the ERP analysis engine.

Available Types:
---------------
- RawEvent: One timestamped event marker
- EventFormat, DetectedStructure: Structure Detector output
- FieldClass, FieldStatistic, DiscoveryResult: Field Discovery output
- ConditionGroup, SelectionResult: Selector/Grouper output
- EEGData, ChannelLocation: Cleaned recording and channel table
- EpochMetrics, EpochSummary: Epoching & Averaging output

Example Usage:
    ```python
    from erpscope.core.types import RawEvent, EEGData

    events = [RawEvent('[cond: A, obs: 1]', latency=500)]
    recording = EEGData(signals=signals, sampling_rate=250, events=events)
    ```

Author: EEG-ERP Analysis Team
Date: 2024
"""

from erpscope.core.types.events import (
    BASIC_EVENT_FIELDS,
    RawEvent,
    EventFormat,
    DetectedStructure,
    FieldClass,
    FieldStatistic,
    DiscoveryResult,
    ConditionGroup,
    SelectionResult
)

from erpscope.core.types.eeg_data import (
    ChannelLocation,
    EEGData,
    EpochMetrics,
    EpochSummary
)

__all__ = [
    'BASIC_EVENT_FIELDS',
    'RawEvent',
    'EventFormat',
    'DetectedStructure',
    'FieldClass',
    'FieldStatistic',
    'DiscoveryResult',
    'ConditionGroup',
    'SelectionResult',
    'ChannelLocation',
    'EEGData',
    'EpochMetrics',
    'EpochSummary'
]
