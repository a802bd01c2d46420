"""
Universal Event Parser
======================

Turns one event into its condition label, given the detected structure and
the discovered schema.

Label Construction:
------------------
1. Extract the event's fields with the extractor for the detected encoding
2. For each grouping field, in priority order:
   - missing field                      -> no label
   - apply the field's value mapping, if any
   - placeholder value ('?', '0', ...)  -> no label
3. Escape the separator inside values and join them with it

Escaping makes labels injective: two events whose mapped grouping values
differ never share a label, even when a value contains the separator.
With no grouping fields every event gets the catch-all label.

Example Usage:
    ```python
    from erpscope.events import UniversalParser

    parser = UniversalParser(structure, discovery)
    parser.parse_event(RawEvent('[code: G23, word: y, obs: 12]'))
    # 'G23_word'
    ```

Author: EEG-ERP Analysis Team
Date: 2024
"""

from typing import Dict, List, Optional, Any, Sequence
import logging

from erpscope.core.config import resolve_section
from erpscope.core.types.events import RawEvent, DetectedStructure, DiscoveryResult
from erpscope.core.interfaces.i_field_extractor import IFieldExtractor
from erpscope.events.extractors import get_extractor, extractor_config
from erpscope.events.patterns import is_placeholder

logger = logging.getLogger(__name__)

ESCAPE_CHAR = '\\'


def escape_value(value: str, separator: str) -> str:
    """Backslash-escape the escape character and the separator."""
    escaped = value.replace(ESCAPE_CHAR, ESCAPE_CHAR * 2)
    if separator:
        escaped = escaped.replace(separator, ESCAPE_CHAR + separator)
    return escaped


def build_label(values: Sequence[str], separator: str = '_') -> str:
    """
    Join grouping values into a condition label.

    Example:
        >>> build_label(['G23', 'word'])
        'G23_word'
        >>> build_label(['a_b', 'c'])
        'a\\\\_b_c'
    """
    return separator.join(escape_value(v, separator) for v in values)


class UniversalParser:
    """
    Builds condition labels for events.

    Args:
        structure: Detected structure (selects the extractor)
        discovery: Discovered schema (grouping fields and value mappings)
        config: Overrides for the 'selection' section (separator,
            catch_all_label)
        grouping_fields: Use these instead of discovery.grouping_fields
        value_mappings: Use these instead of discovery.value_mappings
        apply_value_mappings: Set False to keep raw values
    """

    def __init__(self,
                 structure: DetectedStructure,
                 discovery: DiscoveryResult,
                 config: Optional[Dict[str, Any]] = None,
                 grouping_fields: Optional[Sequence[str]] = None,
                 value_mappings: Optional[Dict[str, Dict[str, str]]] = None,
                 apply_value_mappings: bool = True):
        self._config = resolve_section('selection', config)
        self.structure = structure
        self.discovery = discovery

        self.grouping_fields: List[str] = list(
            discovery.grouping_fields if grouping_fields is None else grouping_fields
        )
        if not apply_value_mappings:
            self.value_mappings: Dict[str, Dict[str, str]] = {}
        elif value_mappings is not None:
            self.value_mappings = {k: dict(v) for k, v in value_mappings.items()}
        else:
            self.value_mappings = {k: dict(v) for k, v in discovery.value_mappings.items()}

        self.separator: str = self._config.get('separator', '_')
        self.catch_all_label: str = self._config.get('catch_all_label', 'all_events')
        self._extractor: IFieldExtractor = get_extractor(structure.format, extractor_config())

    def extract_fields(self, event: RawEvent) -> Dict[str, str]:
        """Fields of one event under the detected encoding."""
        return self._extractor.extract(event)

    def parse_event(self, event: RawEvent) -> Optional[str]:
        """
        Condition label of one event.

        Args:
            event: Event to label

        Returns:
            The label, or None when a grouping field is missing or holds a
            placeholder
        """
        if not self.grouping_fields:
            return self.catch_all_label
        return self.label_from_fields(self.extract_fields(event))

    def label_from_fields(self, fields: Dict[str, str]) -> Optional[str]:
        """Condition label from already extracted fields."""
        if not self.grouping_fields:
            return self.catch_all_label

        values = []
        for name in self.grouping_fields:
            value = fields.get(name)
            if value is None:
                return None
            value = self.value_mappings.get(name, {}).get(value, value)
            if is_placeholder(value):
                return None
            values.append(value)

        return build_label(values, self.separator)

    def parse_events(self, events: Sequence[RawEvent]) -> List[Optional[str]]:
        """Labels for a whole stream, aligned with it."""
        return [self.parse_event(event) for event in events]

    def __repr__(self) -> str:
        return (
            f"UniversalParser(format='{self.structure.format.value}', "
            f"grouping={self.grouping_fields})"
        )


def parse_event(event: RawEvent,
                structure: DetectedStructure,
                discovery: DiscoveryResult,
                config: Optional[Dict[str, Any]] = None) -> Optional[str]:
    """Label a single event without keeping a parser around."""
    return UniversalParser(structure, discovery, config).parse_event(event)
