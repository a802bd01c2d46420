"""
Event Structure Types
=====================

This module defines the data model of the event-structure discovery engine.

Data Types:
----------
1. RawEvent: One timestamped marker as handed over by the import layer
2. EventFormat: Textual encodings the Structure Detector recognises
3. DetectedStructure: Output of the Structure Detector
4. FieldClass: Classification of a discovered field
5. FieldStatistic: Per-field cardinality statistics
6. DiscoveryResult: Output of the Field Discovery Engine
7. ConditionGroup: Events sharing one condition label
8. SelectionResult: Output of the Selector/Grouper

Design Principles:
-----------------
- Raw events are immutable once read from the source
- Analysis results are created once per run and only read afterwards
- Every result serialises to plain, JSON-safe data via `to_dict()`

Example Usage:
    ```python
    from erpscope.core.types import RawEvent, EventFormat

    event = RawEvent(label='[code: G23, word: y, obs: 12]', latency=1250)
    timed = RawEvent.from_seconds('DIN1', 4.2, sampling_rate=250.0)
    ```

Author: EEG-ERP Analysis Team
Date: 2024
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, List, Optional, Any, Tuple, Mapping


# Attribute names that belong to the event record itself, not to its payload
BASIC_EVENT_FIELDS = ('type', 'latency', 'duration', 'urevent', 'epoch')


class EventFormat(str, Enum):
    """Textual encodings of an event stream, in tie-break priority order."""
    BRACKET = 'bracket'
    FIELDS = 'fields'
    DELIMITER = 'delimiter'
    SIMPLE = 'simple'
    UNKNOWN = 'unknown'


class FieldClass(str, Enum):
    """Role of a discovered field."""
    CONDITION = 'condition'
    TRIAL_SPECIFIC = 'trial-specific'
    METADATA = 'metadata'
    OPTIONAL = 'optional'


@dataclass(frozen=True)
class RawEvent:
    """
    A single event marker.

    Attributes:
        label: Free-form label, possibly carrying an encoded sub-schema
        latency: Onset as a sample index into the recording
        attributes: Named attributes already separated by the importer
        duration: Event duration in samples (optional)
    """
    label: str
    latency: float = 0
    attributes: Mapping[str, Any] = field(default_factory=dict)
    duration: float = 0

    def __post_init__(self):
        object.__setattr__(self, 'label', '' if self.label is None else str(self.label))
        object.__setattr__(self, 'attributes', MappingProxyType(dict(self.attributes or {})))

    @classmethod
    def from_seconds(cls,
                     label: str,
                     time_sec: float,
                     sampling_rate: float,
                     attributes: Optional[Mapping[str, Any]] = None) -> 'RawEvent':
        """Create an event whose onset is given in seconds."""
        return cls(label=label,
                   latency=time_sec * sampling_rate,
                   attributes=attributes or {})

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'RawEvent':
        """
        Create an event from an importer record.

        The label is taken from the first non-empty of 'type', 'code',
        'label' or 'value'. Every key other than 'type', 'latency' and
        'duration' becomes an attribute.

        Args:
            data: Record such as {'type': 'DIN1', 'latency': 512, 'cel#': '3'}

        Returns:
            RawEvent
        """
        label = ''
        for key in ('type', 'code', 'label', 'value'):
            value = data.get(key)
            if value is not None and str(value) != '':
                label = str(value)
                break

        attributes = {
            k: v for k, v in data.items()
            if k not in ('type', 'latency', 'duration')
        }
        return cls(label=label,
                   latency=data.get('latency', 0) or 0,
                   attributes=attributes,
                   duration=data.get('duration', 0) or 0)

    @property
    def sample(self) -> int:
        """Onset rounded to the nearest sample index, halves away from zero."""
        x = float(self.latency)
        return int(math.copysign(math.floor(abs(x) + 0.5), x))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            'label': self.label,
            'latency': self.latency,
            'attributes': {k: _plain(v) for k, v in self.attributes.items()},
            'duration': self.duration
        }

    def __repr__(self) -> str:
        return f"RawEvent(label='{self.label}', latency={self.latency})"


@dataclass(frozen=True)
class DetectedStructure:
    """
    Encoding detected for an event stream.

    Attributes:
        format: Winning encoding
        confidence: Fraction of sampled events matching the winner
        event_pattern: Common event-type token, if one dominates
        sample_event: First sampled label in bracket form, if any
        num_events: Total number of events in the stream
        match_ratios: Fraction of sampled events matching each encoding
    """
    format: EventFormat
    confidence: float
    event_pattern: Optional[str] = None
    sample_event: Optional[str] = None
    num_events: int = 0
    match_ratios: Dict[str, float] = field(default_factory=dict)

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be within [0, 1], got {self.confidence}")

    @classmethod
    def unknown(cls, num_events: int = 0) -> 'DetectedStructure':
        """Structure for a stream with no recognisable encoding."""
        return cls(format=EventFormat.UNKNOWN, confidence=0.0, num_events=num_events)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'format': self.format.value,
            'confidence': self.confidence,
            'event_pattern': self.event_pattern,
            'sample_event': self.sample_event,
            'num_events': self.num_events,
            'match_ratios': dict(self.match_ratios)
        }


@dataclass(frozen=True)
class FieldStatistic:
    """
    Statistics for one discovered field.

    Attributes:
        name: Field name
        unique_values: Distinct observed values (sorted)
        num_unique: Number of distinct values
        cardinality: num_unique divided by the number of observations
        sample_values: First few observed values, in stream order
        classification: Role assigned by the discovery rules
        n_observations: Number of sampled events carrying the field
    """
    name: str
    unique_values: Tuple[str, ...]
    num_unique: int
    cardinality: float
    sample_values: Tuple[str, ...]
    classification: FieldClass
    n_observations: int = 0

    def __post_init__(self):
        if self.num_unique != len(self.unique_values):
            raise ValueError(
                f"num_unique ({self.num_unique}) does not match "
                f"{len(self.unique_values)} unique values for '{self.name}'"
            )
        if not 0.0 <= self.cardinality <= 1.0:
            raise ValueError(
                f"cardinality must be within [0, 1], got {self.cardinality} for '{self.name}'"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'unique_values': list(self.unique_values),
            'num_unique': self.num_unique,
            'cardinality': self.cardinality,
            'sample_values': list(self.sample_values),
            'classification': self.classification.value,
            'n_observations': self.n_observations
        }


@dataclass
class DiscoveryResult:
    """
    Schema discovered in an event stream.

    Attributes:
        fields: Field names in first-appearance order
        field_stats: Statistics per field
        grouping_fields: Fields used to build condition labels, priority order
        exclude_fields: Fields never used for grouping
        practice_patterns: Substrings identifying practice events
        value_mappings: Suggested raw value -> canonical value per field
        confidence: Confidence in the grouping decision
        method: 'heuristic' or 'ai'
        ai_reasoning: Explanation returned by the AI collaborator
    """
    fields: List[str]
    field_stats: Dict[str, FieldStatistic]
    grouping_fields: List[str] = field(default_factory=list)
    exclude_fields: List[str] = field(default_factory=list)
    practice_patterns: List[str] = field(default_factory=list)
    value_mappings: Dict[str, Dict[str, str]] = field(default_factory=dict)
    confidence: float = 0.5
    method: str = 'heuristic'
    ai_reasoning: str = ''

    def __post_init__(self):
        overlap = set(self.grouping_fields) & set(self.exclude_fields)
        if overlap:
            raise ValueError(f"Fields both grouped and excluded: {sorted(overlap)}")

        unknown = [f for f in self.grouping_fields if f not in self.fields]
        if unknown:
            raise ValueError(f"Grouping fields not discovered: {unknown}")

    @classmethod
    def empty(cls, practice_patterns: Optional[List[str]] = None) -> 'DiscoveryResult':
        """Result for a stream with no discoverable fields."""
        return cls(fields=[], field_stats={},
                   practice_patterns=list(practice_patterns or []),
                   confidence=0.0)

    def fields_by_class(self, classification: FieldClass) -> List[str]:
        """Get field names with a given classification."""
        return [name for name in self.fields
                if self.field_stats[name].classification == classification]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'fields': list(self.fields),
            'field_stats': {k: v.to_dict() for k, v in self.field_stats.items()},
            'grouping_fields': list(self.grouping_fields),
            'exclude_fields': list(self.exclude_fields),
            'practice_patterns': list(self.practice_patterns),
            'value_mappings': {k: dict(v) for k, v in self.value_mappings.items()},
            'confidence': self.confidence,
            'method': self.method,
            'ai_reasoning': self.ai_reasoning
        }

    def __repr__(self) -> str:
        return (
            f"DiscoveryResult(fields={len(self.fields)}, "
            f"grouping={self.grouping_fields}, "
            f"confidence={self.confidence:.2f}, method='{self.method}')"
        )


@dataclass
class ConditionGroup:
    """
    Events sharing one condition label.

    Attributes:
        label: Condition label
        member_event_indices: Indices into the full event stream
        is_practice: True when every member is a practice event
    """
    label: str
    member_event_indices: List[int] = field(default_factory=list)
    is_practice: bool = False

    @property
    def count(self) -> int:
        """Number of member events."""
        return len(self.member_event_indices)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'label': self.label,
            'member_event_indices': list(self.member_event_indices),
            'is_practice': self.is_practice,
            'count': self.count
        }


@dataclass
class SelectionResult:
    """
    Output of the Selector/Grouper.

    Attributes:
        groups: Selected groups, most common first
        grouping_fields: Fields actually used to build labels
        rejected_overrides: Requested override fields that were not discovered
        excluded_groups: Groups dropped as practice or by the allow-list
        n_unlabeled: Events for which no label could be built
    """
    groups: List[ConditionGroup]
    grouping_fields: List[str] = field(default_factory=list)
    rejected_overrides: List[str] = field(default_factory=list)
    excluded_groups: List[ConditionGroup] = field(default_factory=list)
    n_unlabeled: int = 0

    @property
    def labels(self) -> List[str]:
        """Selected condition labels in result order."""
        return [g.label for g in self.groups]

    @property
    def counts(self) -> Dict[str, int]:
        """Member count per selected label."""
        return {g.label: g.count for g in self.groups}

    @property
    def n_groups(self) -> int:
        return len(self.groups)

    def get_group(self, label: str) -> Optional[ConditionGroup]:
        """Find a selected group by label."""
        for group in self.groups:
            if group.label == label:
                return group
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'groups': [g.to_dict() for g in self.groups],
            'grouping_fields': list(self.grouping_fields),
            'rejected_overrides': list(self.rejected_overrides),
            'excluded_groups': [g.to_dict() for g in self.excluded_groups],
            'n_unlabeled': self.n_unlabeled
        }

    def __repr__(self) -> str:
        return (
            f"SelectionResult(groups={self.n_groups}, "
            f"grouping={self.grouping_fields}, "
            f"excluded={len(self.excluded_groups)})"
        )


def _plain(value: Any) -> Any:
    """Convert attribute values to JSON-safe scalars."""
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if hasattr(value, 'item'):
        try:
            return value.item()
        except (ValueError, TypeError):
            pass
    return str(value)
