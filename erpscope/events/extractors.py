"""
Event Field Extractors
======================

One IFieldExtractor implementation per event encoding, plus the fallback
used when no encoding could be detected.

Extractors:
----------
- BracketFieldExtractor:   '[code: G23, word: y, obs: 12]'
- AttributeFieldExtractor: attributes separated by the importer
- DelimiterFieldExtractor: 'Stim_G23_word' -> field1, field2, field3
- SimpleFieldExtractor:    'DIN1' -> a single atomic 'type' field
- FallbackFieldExtractor:  bracket first, then attributes

Extractors never raise on malformed events; an event without fields under
an encoding yields an empty dict.

Example Usage:
    ```python
    from erpscope.events.extractors import get_extractor
    from erpscope.core.types import EventFormat

    extractor = get_extractor(EventFormat.BRACKET)
    extractor.extract(RawEvent('[code: G23, word: y]'))
    # {'code': 'G23', 'word': 'y'}
    ```

Author: EEG-ERP Analysis Team
Date: 2024
"""

from typing import Dict, Optional, Any, Union
import logging
import math
import numbers
import re

from erpscope.core.config import resolve_section
from erpscope.core.interfaces.i_field_extractor import IFieldExtractor
from erpscope.core.types.events import RawEvent, EventFormat, BASIC_EVENT_FIELDS
from erpscope.core.exceptions import EventFormatError

logger = logging.getLogger(__name__)

_KEY_CLEAN_RE = re.compile(r'[^a-zA-Z0-9]')


def format_value(value: Any) -> Optional[str]:
    """
    Render an attribute value as a field string.

    Integral numbers lose their trailing '.0' so that 3 and 3.0 group
    together. Unsupported values (None, containers) yield None.
    """
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode('utf-8', errors='replace').strip()
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, bool):
        return '1' if value else '0'
    if isinstance(value, numbers.Integral):
        return str(int(value))
    if isinstance(value, numbers.Real):
        value = float(value)
        if math.isfinite(value) and value.is_integer():
            return str(int(value))
        return f"{value:.15g}"
    if hasattr(value, 'item') and getattr(value, 'size', None) == 1:
        return format_value(value.item())
    return None


# =============================================================================
# BRACKET
# =============================================================================

class BracketFieldExtractor(IFieldExtractor):
    """
    Parses '[key: value, key: value]' labels.

    Only the first bracket pair is read. Keys are reduced to their
    alphanumeric characters; pairs without a colon or with an empty key
    are skipped. Text outside the brackets is ignored.
    """

    @property
    def name(self) -> str:
        return EventFormat.BRACKET.value

    def extract(self, event: RawEvent) -> Dict[str, str]:
        label = event.label
        start = label.find('[')
        if start < 0:
            return {}
        end = label.find(']', start + 1)
        if end < 0:
            return {}

        fields: Dict[str, str] = {}
        for pair in label[start + 1:end].split(','):
            key, sep, value = pair.partition(':')
            if not sep:
                continue
            key = _KEY_CLEAN_RE.sub('', key)
            if key:
                fields[key] = value.strip()
        return fields


# =============================================================================
# ATTRIBUTES
# =============================================================================

class AttributeFieldExtractor(IFieldExtractor):
    """
    Reads attributes the importer already separated out.

    Record-level attributes (type, latency, duration, urevent, epoch) are
    not payload and are skipped.

    Config:
        min_attributes: Payload attributes needed for matches() (default 1)
    """

    @property
    def name(self) -> str:
        return EventFormat.FIELDS.value

    def extract(self, event: RawEvent) -> Dict[str, str]:
        fields: Dict[str, str] = {}
        for key, value in event.attributes.items():
            key = str(key)
            if key in BASIC_EVENT_FIELDS:
                continue
            text = format_value(value)
            if text is not None:
                fields[key] = text
        return fields

    def matches(self, event: RawEvent) -> bool:
        return len(self.extract(event)) >= int(self._config.get('min_attributes', 1))


# =============================================================================
# DELIMITER
# =============================================================================

class DelimiterFieldExtractor(IFieldExtractor):
    """
    Splits labels like 'Stim_G23_word' into positional fields.

    Splits on '_' when present, otherwise on '-'. Fields are named
    field1..fieldN. A label with fewer than two tokens has no fields.
    """

    @property
    def name(self) -> str:
        return EventFormat.DELIMITER.value

    def extract(self, event: RawEvent) -> Dict[str, str]:
        label = event.label.strip()
        if '_' in label:
            parts = label.split('_')
        elif '-' in label:
            parts = label.split('-')
        else:
            return {}

        if len(parts) < 2:
            return {}
        return {f"field{i + 1}": part.strip() for i, part in enumerate(parts)}


# =============================================================================
# SIMPLE
# =============================================================================

class SimpleFieldExtractor(IFieldExtractor):
    """
    Treats the whole label as one atomic code in a field named 'type'.

    Config:
        simple_max_length: Longest label matches() accepts (default 10)
    """

    @property
    def name(self) -> str:
        return EventFormat.SIMPLE.value

    def extract(self, event: RawEvent) -> Dict[str, str]:
        label = event.label.strip()
        return {'type': label} if label else {}

    def matches(self, event: RawEvent) -> bool:
        label = event.label.strip()
        if not label or len(label) > int(self._config.get('simple_max_length', 10)):
            return False
        return not any(c in label for c in '_-[]')


# =============================================================================
# FALLBACK
# =============================================================================

class FallbackFieldExtractor(IFieldExtractor):
    """Used for unknown structure: bracket parsing, then attributes."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config)
        self._bracket = BracketFieldExtractor(config)
        self._attributes = AttributeFieldExtractor(config)

    @property
    def name(self) -> str:
        return EventFormat.UNKNOWN.value

    def initialize(self, config: Dict[str, Any]) -> None:
        super().initialize(config)
        self._bracket.initialize(config)
        self._attributes.initialize(config)

    def extract(self, event: RawEvent) -> Dict[str, str]:
        return self._bracket.extract(event) or self._attributes.extract(event)


# =============================================================================
# REGISTRATION
# =============================================================================

DEFAULT_EXTRACTORS = {
    EventFormat.BRACKET.value: (BracketFieldExtractor, "'[key: value, ...]' labels"),
    EventFormat.FIELDS.value: (AttributeFieldExtractor, "Importer-separated attributes"),
    EventFormat.DELIMITER.value: (DelimiterFieldExtractor, "'_' or '-' separated labels"),
    EventFormat.SIMPLE.value: (SimpleFieldExtractor, "Atomic event codes"),
    EventFormat.UNKNOWN.value: (FallbackFieldExtractor, "Bracket, then attributes"),
}


def extractor_config(structure_config: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Extractor settings taken from the 'structure' configuration section."""
    cfg = resolve_section('structure', structure_config)
    return {
        'min_attributes': cfg.get('min_attributes', 1),
        'simple_max_length': cfg.get('simple_max_length', 10),
    }


def get_extractor(fmt: Union[EventFormat, str],
                  config: Optional[Dict[str, Any]] = None) -> IFieldExtractor:
    """
    Get the field extractor for an encoding from the component registry.

    Args:
        fmt: EventFormat or its string value
        config: Extractor configuration

    Returns:
        IFieldExtractor

    Raises:
        EventFormatError: If the format name is not an EventFormat
    """
    from erpscope.core.registry import get_registry

    try:
        fmt = EventFormat(fmt)
    except ValueError as e:
        raise EventFormatError(str(fmt), [f.value for f in EventFormat]) from e

    return get_registry().create('field_extractor', fmt.value, config)
