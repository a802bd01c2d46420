"""
Field Discovery Engine
======================

Discovers the latent field schema of an event stream and decides which
fields define experimental conditions.

Discovery Pipeline:
------------------
1. Sample up to `discovery.sample_size` events, evenly spaced over the stream
2. Extract fields with the extractor matching the detected structure
3. Compute per-field statistics (unique values, cardinality)
4. Classify each field:
   a. Cardinality rule: low cardinality with 2..20 values is a condition,
      high cardinality (or > 50 values) is trial-specific, else optional
   b. Metadata names are forced to metadata (final)
   c. Trial/response/latency names are forced to trial-specific
   d. Condition/stimulus/task names with cardinality < 0.5 and at least
      two values are forced to condition, even when step c matched
   e. For atomic codes the 'type' field is always the condition
5. Collect practice patterns from practice-named fields
6. Rank condition candidates and cap them (2 when the top two are both
   high priority, otherwise at most 3)
7. Suggest value mappings for boolean-coded grouping fields
8. Optionally consult an AI classifier and merge its suggestion

Individual malformed events are skipped; discovery never raises for them.

Example Usage:
    ```python
    from erpscope.events import StructureDetector, FieldDiscoveryEngine

    structure = StructureDetector().detect(events)
    discovery = FieldDiscoveryEngine().discover(events, structure)

    print(discovery.grouping_fields)   # ['code', 'word']
    print(discovery.value_mappings)    # {'word': {'y': 'word', 'n': 'nonword'}}
    ```

Author: EEG-ERP Analysis Team
Date: 2024
"""

from typing import Dict, List, Optional, Any, Sequence, Tuple, TYPE_CHECKING
from collections import OrderedDict
from dataclasses import replace
import logging

from erpscope.core.config import resolve_section
from erpscope.core.types.events import (
    RawEvent, EventFormat, DetectedStructure,
    FieldClass, FieldStatistic, DiscoveryResult
)
from erpscope.events.extractors import get_extractor, extractor_config
from erpscope.events.patterns import (
    METADATA_PATTERNS, TRIAL_PATTERNS, CONDITION_PATTERNS,
    PRACTICE_FIELD_PATTERNS, LEXICAL_STATUS_PATTERNS, VERB_STATUS_PATTERNS,
    POSITIVE_FLAGS, NEGATIVE_FLAGS,
    matches_any, contains_any, base_priority
)
from erpscope.events.structure import sample_indices
from erpscope.utils.diagnostics import DiagnosticReport
from erpscope.utils.logging import log_execution_time
from erpscope.utils.validation import check_choice, check_probability, check_range

if TYPE_CHECKING:
    from erpscope.events.ai_classifier import AIFieldClassifier, AISuggestion

logger = logging.getLogger(__name__)

AI_MODES = ('auto', 'always', 'never')

# Placeholders other than '0', which is a legitimate boolean value
_MISSING_VALUES = ('', '?', 'na', 'n/a', 'nan')


# =============================================================================
# PURE HELPERS
# =============================================================================

def prioritize_grouping_fields(candidates: Sequence[str],
                               field_stats: Dict[str, FieldStatistic],
                               max_fields: int = 3,
                               high_priority_threshold: float = 120) -> List[str]:
    """
    Rank condition candidates and cap the list.

    Priority is the lexical table value of the name plus (1 - cardinality) * 10.
    Candidates are sorted alphabetically, then stably by priority descending.
    If the top two both exceed the threshold only those two are kept,
    otherwise at most `max_fields`.

    Args:
        candidates: Condition field names
        field_stats: Statistics per field
        max_fields: Cap on the result length
        high_priority_threshold: Priority above which two fields suffice

    Returns:
        Ranked, capped field names
    """
    if not candidates:
        return []

    priorities = {name: float(base_priority(name)) for name in candidates}
    for name in candidates:
        if name in field_stats:
            priorities[name] += (1.0 - field_stats[name].cardinality) * 10

    ranked = sorted(sorted(set(candidates)), key=lambda name: -priorities[name])

    if (len(ranked) > 2
            and priorities[ranked[0]] > high_priority_threshold
            and priorities[ranked[1]] > high_priority_threshold):
        ranked = ranked[:2]

    return ranked[:max(1, int(max_fields))]


def detect_value_mappings(field_name: str,
                          unique_values: Sequence[str]) -> Dict[str, str]:
    """
    Suggest canonical names for boolean-coded values.

    Applies only when every present value is y/n (any case) or 0/1. For
    y/n the vocabulary follows the field name: lexical-status names map
    to word/nonword, verb names to verb/nonverb, others to yes/no. 1/0
    map to yes/no.

    Args:
        field_name: Field name
        unique_values: Distinct observed values

    Returns:
        raw value -> canonical value (empty when not boolean-coded)
    """
    present = [v for v in unique_values if v.strip().lower() not in _MISSING_VALUES]
    if not present:
        return {}

    lowered = {v.strip().lower() for v in present}

    if lowered <= {'y', 'n'}:
        if contains_any(field_name, LEXICAL_STATUS_PATTERNS):
            yes, no = 'word', 'nonword'
        elif contains_any(field_name, VERB_STATUS_PATTERNS):
            yes, no = 'verb', 'nonverb'
        else:
            yes, no = 'yes', 'no'
        return {v: (yes if v.strip().lower() == 'y' else no) for v in present}

    if lowered <= {'0', '1'}:
        return {v: ('yes' if v.strip() == '1' else 'no') for v in present}

    return {}


def practice_patterns_from_field(field_name: str,
                                 unique_values: Sequence[str]) -> List[str]:
    """
    Turn the values of a practice-named field into practice patterns.

    Negative flags and placeholders are skipped. Values of three or more
    characters become substring patterns; shorter values (flags such as
    'y' or '1') become 'field=value' patterns that match the field exactly.
    """
    patterns = []
    for value in unique_values:
        text = value.strip()
        lower = text.lower()
        if lower in _MISSING_VALUES or lower in NEGATIVE_FLAGS:
            continue
        if len(text) >= 3 and lower not in POSITIVE_FLAGS:
            patterns.append(text)
        else:
            patterns.append(f"{field_name}={text}")
    return patterns


def heuristic_confidence(n_candidates: int, n_excluded: int) -> float:
    """
    Confidence of a heuristic classification.

    0.5 base, +0.2 with any grouping candidate, +0.2 for 2-3 candidates or
    -0.1 for more than 3, +0.1 when any field is excluded; clipped to [0, 1].
    """
    confidence = 0.5
    if n_candidates > 0:
        confidence += 0.2
    if 2 <= n_candidates <= 3:
        confidence += 0.2
    elif n_candidates > 3:
        confidence -= 0.1
    if n_excluded > 0:
        confidence += 0.1
    return round(max(0.0, min(1.0, confidence)), 6)


# =============================================================================
# ENGINE
# =============================================================================

class FieldDiscoveryEngine:
    """
    Field Discovery Engine.

    Config keys (section 'discovery'):
        sample_size, condition_max_cardinality, trial_min_cardinality,
        condition_min_unique, condition_max_unique, trial_max_unique,
        override_max_cardinality, max_grouping_fields,
        high_priority_threshold, n_sample_values, default_practice_patterns

    AI config keys (section 'ai'):
        mode ('auto' | 'always' | 'never'), min_confidence, n_event_samples

    Example:
        >>> engine = FieldDiscoveryEngine({'max_grouping_fields': 2})
        >>> discovery = engine.discover(events, structure)
    """

    def __init__(self,
                 config: Optional[Dict[str, Any]] = None,
                 ai_classifier: Optional['AIFieldClassifier'] = None,
                 ai_config: Optional[Dict[str, Any]] = None):
        self._config = resolve_section('discovery', config)
        self._ai_config = resolve_section('ai', ai_config)
        self._ai_classifier = ai_classifier

        check_choice(self._ai_config.get('mode', 'auto'), AI_MODES, 'ai.mode')
        for key in ('condition_max_cardinality', 'trial_min_cardinality',
                    'override_max_cardinality'):
            if key in self._config:
                check_probability(self._config[key], key)
        check_range(self._config.get('max_grouping_fields', 3), min_val=1,
                    name='max_grouping_fields')

    # =========================================================================
    # CLASSIFICATION
    # =========================================================================

    def classify_field(self,
                       name: str,
                       num_unique: int,
                       cardinality: float,
                       fmt: Optional[EventFormat] = None) -> FieldClass:
        """
        Classify one field from its statistics and name.

        Args:
            name: Field name
            num_unique: Distinct observed values
            cardinality: num_unique / observations
            fmt: Detected encoding (atomic codes get special treatment)

        Returns:
            FieldClass
        """
        cfg = self._config
        min_unique = cfg.get('condition_min_unique', 2)

        if (cardinality < cfg.get('condition_max_cardinality', 0.3)
                and min_unique <= num_unique <= cfg.get('condition_max_unique', 20)):
            classification = FieldClass.CONDITION
        elif (cardinality > cfg.get('trial_min_cardinality', 0.7)
              or num_unique > cfg.get('trial_max_unique', 50)):
            classification = FieldClass.TRIAL_SPECIFIC
        else:
            classification = FieldClass.OPTIONAL

        if matches_any(name, METADATA_PATTERNS):
            return FieldClass.METADATA

        if matches_any(name, TRIAL_PATTERNS):
            classification = FieldClass.TRIAL_SPECIFIC
        if (matches_any(name, CONDITION_PATTERNS)
                and cardinality < cfg.get('override_max_cardinality', 0.5)
                and num_unique >= min_unique):
            classification = FieldClass.CONDITION

        # One group per atomic code, however many distinct codes there are
        if fmt == EventFormat.SIMPLE and name == 'type':
            classification = FieldClass.CONDITION

        return classification

    # =========================================================================
    # DISCOVERY
    # =========================================================================

    @log_execution_time()
    def discover(self,
                 events: Sequence[RawEvent],
                 structure: DetectedStructure,
                 report: Optional[DiagnosticReport] = None) -> DiscoveryResult:
        """
        Discover and classify the fields of an event stream.

        Args:
            events: Full event stream
            structure: Output of the Structure Detector
            report: Optional diagnostic sink

        Returns:
            DiscoveryResult
        """
        observations, sampled_events = self._collect(events, structure, report)
        default_patterns = list(self._config.get('default_practice_patterns', []))

        if not observations:
            result = DiscoveryResult.empty(sorted(set(default_patterns)))
            result.confidence = heuristic_confidence(0, 0)
            message = "No event fields discovered; all events will form a single group"
            if report is not None:
                report.add_warning(message, logger)
                report.record('discovery_completed', **self._summary(result))
            else:
                logger.warning(message)
            return result

        field_stats: Dict[str, FieldStatistic] = OrderedDict()
        candidates: List[str] = []
        practice: List[str] = []
        n_sample_values = int(self._config.get('n_sample_values', 5))

        for name, values in observations.items():
            unique_values = tuple(sorted(set(values)))
            num_unique = len(unique_values)
            cardinality = num_unique / len(values)
            classification = self.classify_field(name, num_unique, cardinality, structure.format)

            field_stats[name] = FieldStatistic(
                name=name,
                unique_values=unique_values,
                num_unique=num_unique,
                cardinality=cardinality,
                sample_values=tuple(values[:n_sample_values]),
                classification=classification,
                n_observations=len(values)
            )
            logger.debug(
                f"  {name:<20} {num_unique:>6} unique {cardinality:8.2%}  {classification.value}"
            )

            if classification == FieldClass.CONDITION:
                candidates.append(name)

            if (classification != FieldClass.METADATA
                    and matches_any(name, PRACTICE_FIELD_PATTERNS)):
                practice.extend(practice_patterns_from_field(name, unique_values))

        exclude_fields = [
            name for name, stat in field_stats.items()
            if stat.classification in (FieldClass.TRIAL_SPECIFIC, FieldClass.METADATA)
        ]

        grouping_fields = prioritize_grouping_fields(
            candidates, field_stats,
            max_fields=self._config.get('max_grouping_fields', 3),
            high_priority_threshold=self._config.get('high_priority_threshold', 120)
        )

        value_mappings = {}
        for name in grouping_fields:
            mapping = detect_value_mappings(name, field_stats[name].unique_values)
            if mapping:
                value_mappings[name] = mapping

        result = DiscoveryResult(
            fields=list(field_stats.keys()),
            field_stats=dict(field_stats),
            grouping_fields=grouping_fields,
            exclude_fields=exclude_fields,
            practice_patterns=sorted(set(practice + default_patterns)),
            value_mappings=value_mappings,
            confidence=heuristic_confidence(len(candidates), len(exclude_fields)),
            method='heuristic'
        )

        if len(candidates) > len(grouping_fields):
            logger.debug(
                f"Grouping candidates capped from {len(candidates)} to "
                f"{len(grouping_fields)}: {grouping_fields}"
            )
        if not grouping_fields:
            message = "No grouping fields discovered; all events will form a single group"
            if report is not None:
                report.add_warning(message, logger)
            else:
                logger.warning(message)

        if self._should_use_ai(result.confidence, len(candidates)):
            result = self._consult_ai(result, structure, sampled_events, report)

        logger.info(
            f"Field discovery: {len(result.fields)} fields, "
            f"group by {result.grouping_fields or '[]'}, "
            f"exclude {len(result.exclude_fields)}, "
            f"confidence {result.confidence:.0%} ({result.method})"
        )
        if report is not None:
            report.record('discovery_completed', **self._summary(result))

        return result

    def _collect(self,
                 events: Sequence[RawEvent],
                 structure: DetectedStructure,
                 report: Optional[DiagnosticReport]
                 ) -> Tuple['OrderedDict[str, List[str]]', List[RawEvent]]:
        """Extract fields from the sampled events."""
        extractor = get_extractor(structure.format, extractor_config())
        indices = sample_indices(len(events), self._config.get('sample_size', 500))
        n_ai_samples = int(self._ai_config.get('n_event_samples', 30))

        observations: 'OrderedDict[str, List[str]]' = OrderedDict()
        sampled_events: List[RawEvent] = []
        n_skipped = 0

        for i in indices:
            event = events[i]
            try:
                fields = extractor.extract(event)
            except (ValueError, TypeError, AttributeError, KeyError) as e:
                n_skipped += 1
                logger.debug(f"Skipping malformed event {i}: {e}")
                continue

            if len(sampled_events) < n_ai_samples:
                sampled_events.append(event)

            for name, value in fields.items():
                observations.setdefault(name, []).append(value)

        if n_skipped and report is not None:
            report.record('events_skipped', stage='discovery', count=n_skipped)

        return observations, sampled_events

    # =========================================================================
    # AI INTEGRATION
    # =========================================================================

    def _should_use_ai(self, confidence: float, n_candidates: int) -> bool:
        mode = self._ai_config.get('mode', 'auto')
        if mode == 'never':
            return False
        if mode == 'always':
            wanted = True
        else:
            wanted = (confidence < self._ai_config.get('min_confidence', 0.7)
                      or n_candidates > self._config.get('max_grouping_fields', 3))

        if wanted and self._ai_classifier is None:
            logger.debug("AI classification requested but no classifier configured")
            return False
        return wanted

    def _consult_ai(self,
                    result: DiscoveryResult,
                    structure: DetectedStructure,
                    sampled_events: List[RawEvent],
                    report: Optional[DiagnosticReport]) -> DiscoveryResult:
        suggestion = self._ai_classifier.suggest(result, structure, sampled_events, report)
        if suggestion is None:
            return result
        return self.merge_ai_suggestion(result, suggestion, report)

    def merge_ai_suggestion(self,
                            result: DiscoveryResult,
                            suggestion: 'AISuggestion',
                            report: Optional[DiagnosticReport] = None) -> DiscoveryResult:
        """
        Merge a validated AI suggestion into a heuristic result.

        Practice patterns are always added. The rest is accepted when the
        mode is 'always' or the AI confidence is at least the heuristic one:
        grouping fields are replaced (capped), exclude fields are united,
        value mappings are merged per field.

        Args:
            result: Heuristic DiscoveryResult
            suggestion: Suggestion whose field names are known to be valid
            report: Optional diagnostic sink

        Returns:
            New DiscoveryResult
        """
        practice = sorted(set(result.practice_patterns) | set(suggestion.practice_patterns))
        mode = self._ai_config.get('mode', 'auto')

        if mode != 'always' and suggestion.confidence < result.confidence:
            message = (
                f"AI confidence ({suggestion.confidence:.0%}) lower than heuristic "
                f"({result.confidence:.0%}); keeping heuristic grouping"
            )
            if report is not None:
                report.add_info(message, logger)
            else:
                logger.info(message)
            return replace(result, practice_patterns=practice,
                           ai_reasoning=suggestion.reasoning)

        known = set(result.fields)
        max_fields = max(1, int(self._config.get('max_grouping_fields', 3)))
        grouping = [f for f in suggestion.grouping_fields if f in known][:max_fields]

        exclude = [f for f in result.exclude_fields if f not in grouping]
        for name in suggestion.exclude_fields:
            if name in known and name not in grouping and name not in exclude:
                exclude.append(name)

        mappings = {k: dict(v) for k, v in result.value_mappings.items()}
        for name in grouping:
            if name not in mappings:
                detected = detect_value_mappings(name, result.field_stats[name].unique_values)
                if detected:
                    mappings[name] = detected
        for name, mapping in suggestion.value_mappings.items():
            if name in known:
                mappings[name] = dict(mapping)

        merged = replace(
            result,
            grouping_fields=grouping,
            exclude_fields=exclude,
            practice_patterns=practice,
            value_mappings=mappings,
            confidence=suggestion.confidence,
            method='ai',
            ai_reasoning=suggestion.reasoning
        )

        message = f"Using AI grouping {grouping} (confidence {suggestion.confidence:.0%})"
        if report is not None:
            report.add_info(message, logger)
            report.record('ai_merged', grouping_fields=list(grouping),
                          confidence=suggestion.confidence)
        else:
            logger.info(message)

        return merged

    @staticmethod
    def _summary(result: DiscoveryResult) -> Dict[str, Any]:
        return {
            'fields': list(result.fields),
            'grouping_fields': list(result.grouping_fields),
            'exclude_fields': list(result.exclude_fields),
            'confidence': result.confidence,
            'method': result.method
        }

    def get_params(self) -> Dict[str, Any]:
        """Get effective configuration."""
        return {'discovery': dict(self._config), 'ai': dict(self._ai_config)}


def discover_fields(events: Sequence[RawEvent],
                    structure: DetectedStructure,
                    config: Optional[Dict[str, Any]] = None,
                    report: Optional[DiagnosticReport] = None) -> DiscoveryResult:
    """Convenience wrapper around FieldDiscoveryEngine.discover() without AI."""
    return FieldDiscoveryEngine(config, ai_config={'mode': 'never'}).discover(
        events, structure, report
    )
