"""
Structure Detector
==================

Classifies an event stream into one of the known textual encodings.

Detection Algorithm:
-------------------
Up to `structure.sample_size` events, evenly spaced over the whole stream,
are tested against four non-exclusive patterns:

- bracket:   the label holds '[key: value, ...]' with at least one pair
- fields:    the importer separated out at least `min_attributes` payload
             attributes
- delimiter: the label splits into two or more tokens on '_' or '-' and the
             event has neither bracket nor attribute structure
- simple:    a short label (<= `simple_max_length`) with no '_', '-', '['
             or ']'

The encoding with the most matches wins, ties going to the earlier one in
the order above. Confidence is the winner's match count over the sample
size. When nothing matches, the result is `unknown` with confidence 0;
detection never raises.

Example Usage:
    ```python
    from erpscope.events import StructureDetector

    structure = StructureDetector().detect(events)
    print(structure.format, structure.confidence)
    ```

Author: EEG-ERP Analysis Team
Date: 2024
"""

from typing import Dict, List, Optional, Any, Sequence
import logging
import re
import numpy as np

from erpscope.core.config import resolve_section
from erpscope.core.types.events import RawEvent, EventFormat, DetectedStructure
from erpscope.events.extractors import get_extractor, extractor_config
from erpscope.utils.diagnostics import DiagnosticReport

logger = logging.getLogger(__name__)

# Tie-break order
FORMAT_PRIORITY = (
    EventFormat.BRACKET,
    EventFormat.FIELDS,
    EventFormat.DELIMITER,
    EventFormat.SIMPLE,
)

COMMON_EVENT_FIELDS = ('type', 'code', 'label', 'labels', 'name', 'description', 'value')

_PREFIX_SPLIT_RE = re.compile(r'[_\s\[]')


def sample_indices(n_total: int, sample_size: int) -> List[int]:
    """
    Evenly spaced indices across a stream of n_total items.

    Deterministic and duplicate-free; always includes the first and the
    last item when more than one is sampled.

    Example:
        >>> sample_indices(10, 4)
        [0, 3, 6, 9]
    """
    if n_total <= 0 or sample_size <= 0:
        return []
    k = min(int(sample_size), n_total)
    if k == 1:
        return [0]
    positions = np.floor(np.linspace(0, n_total - 1, k) + 0.5).astype(int)
    return list(dict.fromkeys(positions.tolist()))


class StructureDetector:
    """
    Detects the event encoding of a stream.

    Config keys (section 'structure'):
        sample_size: Events sampled (default 100)
        simple_max_length: Longest atomic code (default 10)
        min_attributes: Payload attributes for the fields encoding (default 1)
        pattern_min_confidence: Confidence needed before searching for an
            event pattern (default 0.3)
        pattern_keywords: Keywords tried when no common prefix exists
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self._config = resolve_section('structure', config)

        settings = extractor_config(self._config)
        self._bracket = get_extractor(EventFormat.BRACKET, settings)
        self._fields = get_extractor(EventFormat.FIELDS, settings)
        self._delimiter = get_extractor(EventFormat.DELIMITER, settings)
        self._simple = get_extractor(EventFormat.SIMPLE, settings)

    def classify_event(self, event: RawEvent) -> Dict[EventFormat, bool]:
        """Which of the four patterns one event matches."""
        bracket = self._bracket.matches(event)
        fields = self._fields.matches(event)
        has_brackets = '[' in event.label or ']' in event.label
        delimiter = (not bracket and not fields and not has_brackets
                     and self._delimiter.matches(event))

        return {
            EventFormat.BRACKET: bracket,
            EventFormat.FIELDS: fields,
            EventFormat.DELIMITER: delimiter,
            EventFormat.SIMPLE: self._simple.matches(event),
        }

    def detect(self,
               events: Sequence[RawEvent],
               report: Optional[DiagnosticReport] = None) -> DetectedStructure:
        """
        Detect the encoding of an event stream.

        Args:
            events: Full event stream
            report: Optional diagnostic sink

        Returns:
            DetectedStructure
        """
        n_events = len(events)
        if n_events == 0:
            self._warn("No events to analyse; structure is unknown", report)
            return DetectedStructure.unknown(0)

        indices = sample_indices(n_events, self._config.get('sample_size', 100))
        counts = {fmt: 0 for fmt in FORMAT_PRIORITY}
        sample_event = None

        for i in indices:
            flags = self.classify_event(events[i])
            for fmt, matched in flags.items():
                if matched:
                    counts[fmt] += 1
            if sample_event is None and flags[EventFormat.BRACKET]:
                sample_event = events[i].label

        n_sampled = len(indices)
        ratios = {fmt.value: counts[fmt] / n_sampled for fmt in FORMAT_PRIORITY}

        for fmt in FORMAT_PRIORITY:
            logger.debug(f"  {fmt.value:<10} {ratios[fmt.value]:6.1%} ({counts[fmt]}/{n_sampled})")

        # max() keeps the first maximum, which is the tie-break order
        winner = max(FORMAT_PRIORITY, key=lambda fmt: counts[fmt])

        if counts[winner] == 0:
            self._warn(
                f"No known encoding matched {n_sampled} sampled events; "
                f"falling back to bracket/attribute parsing",
                report
            )
            structure = DetectedStructure(
                format=EventFormat.UNKNOWN, confidence=0.0,
                num_events=n_events, match_ratios=ratios
            )
        else:
            confidence = counts[winner] / n_sampled
            pattern = None
            if confidence > self._config.get('pattern_min_confidence', 0.3):
                pattern = self.detect_event_pattern([events[i].label for i in indices])

            structure = DetectedStructure(
                format=winner,
                confidence=confidence,
                event_pattern=pattern,
                sample_event=sample_event,
                num_events=n_events,
                match_ratios=ratios
            )

        logger.info(
            f"Detected event structure: {structure.format.value} "
            f"({structure.confidence:.0%} of {n_sampled} sampled events)"
            + (f", pattern '{structure.event_pattern}'" if structure.event_pattern else "")
        )
        if report is not None:
            report.record('structure_detected', **structure.to_dict())

        return structure

    def detect_event_pattern(self, labels: Sequence[str]) -> Optional[str]:
        """
        Find a token shared by most labels.

        First tries the leading token of the first label (text before the
        first '_', whitespace or '['), accepted when more than half of the
        labels start with it. Otherwise the first configured keyword that
        more than half of the labels contain. Both comparisons ignore case.

        Args:
            labels: Sampled labels

        Returns:
            The pattern, or None
        """
        if not labels:
            return None

        n = len(labels)
        lowered = [label.lower() for label in labels]

        candidate = _PREFIX_SPLIT_RE.split(labels[0], maxsplit=1)[0]
        if candidate:
            matches = sum(1 for label in lowered if label.startswith(candidate.lower()))
            if matches / n > 0.5:
                return candidate

        for keyword in self._config.get('pattern_keywords', []):
            matches = sum(1 for label in lowered if keyword.lower() in label)
            if matches / n > 0.5:
                return keyword

        return None

    @staticmethod
    def _warn(message: str, report: Optional[DiagnosticReport]) -> None:
        if report is not None:
            report.add_warning(message, logger)
        else:
            logger.warning(message)


def detect_structure(events: Sequence[RawEvent],
                     config: Optional[Dict[str, Any]] = None,
                     report: Optional[DiagnosticReport] = None) -> DetectedStructure:
    """Convenience wrapper around StructureDetector.detect()."""
    return StructureDetector(config).detect(events, report)


def list_available_fields(events: Sequence[RawEvent]) -> List[str]:
    """
    Report which common event attributes carry data.

    Checks 'type', 'code', 'label', 'labels', 'name', 'description' and
    'value'. 'type' counts as present when any event has a non-empty
    label, since importers put the event type there.

    Args:
        events: Event stream

    Returns:
        Field names with at least one non-empty value, in the order above
    """
    available = []
    for name in COMMON_EVENT_FIELDS:
        for event in events:
            value = event.attributes.get(name)
            if name == 'type' and value is None:
                value = event.label
            if value is not None and str(value).strip() != '':
                available.append(name)
                break

    logger.info(f"Found {len(available)} event fields with data: {', '.join(available)}")
    return available
