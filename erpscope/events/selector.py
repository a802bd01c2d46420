"""
Condition Selector
==================

Partitions an event stream into condition groups.

Selection Steps:
---------------
1. Resolve the grouping fields (caller override or discovered fields)
2. Label every event with the Universal Parser; unlabeled events are counted
3. Partition the labeled events by label
4. Unless practice is included, drop practice events; groups made only of
   practice events move to `excluded_groups`
5. Apply the caller's allow-list (substring match on the label)
6. Order groups by member count (descending), ties by first appearance

Groups with a single member are kept. Groups below `low_count_threshold`
members are reported as a warning so a fragmented grouping is visible.

Practice Matching:
-----------------
A practice pattern 'field=value' matches when the event's field equals the
value (ignoring case). Any other pattern matches when it is contained in the
condition label or in one of the event's field values (ignoring case).

Example Usage:
    ```python
    from erpscope.events import ConditionSelector

    selection = ConditionSelector().select(events, structure, discovery)
    for group in selection.groups:
        print(group.label, group.count)

    # Caller overrides
    selection = ConditionSelector().select(
        events, structure, discovery,
        grouping_fields=['code'],
        allowed_conditions=['G23'],
        include_practice=True
    )
    ```

Author: EEG-ERP Analysis Team
Date: 2024
"""

from typing import Dict, List, Optional, Any, Sequence, Tuple
from collections import OrderedDict
import logging

from erpscope.core.config import resolve_section
from erpscope.core.exceptions import InvalidOverrideError
from erpscope.core.types.events import (
    RawEvent, DetectedStructure, DiscoveryResult,
    ConditionGroup, SelectionResult
)
from erpscope.events.parser import UniversalParser
from erpscope.utils.diagnostics import DiagnosticReport

logger = logging.getLogger(__name__)


class PracticeMatcher:
    """
    Decides whether one event is a practice event.

    Args:
        patterns: Practice patterns ('field=value' or substrings)
    """

    def __init__(self, patterns: Sequence[str]):
        self.equality: List[Tuple[str, str]] = []
        self.substrings: List[str] = []

        for pattern in patterns:
            if not pattern:
                continue
            name, sep, value = pattern.partition('=')
            if sep and name:
                self.equality.append((name, value.strip().lower()))
            else:
                self.substrings.append(pattern.lower())

    def __bool__(self) -> bool:
        return bool(self.equality or self.substrings)

    def matches(self, fields: Dict[str, str], label: Optional[str] = None) -> bool:
        """
        Args:
            fields: Extracted fields of the event
            label: Condition label of the event

        Returns:
            True if any pattern matches
        """
        for name, value in self.equality:
            observed = fields.get(name)
            if observed is not None and observed.strip().lower() == value:
                return True

        if self.substrings:
            texts = [v.lower() for v in fields.values()]
            if label:
                texts.append(label.lower())
            for pattern in self.substrings:
                if any(pattern in text for text in texts):
                    return True

        return False


class ConditionSelector:
    """
    Selector/Grouper.

    Config keys (section 'selection'):
        separator: Label separator (default '_')
        exclude_practice: Drop practice events by default (default True)
        catch_all_label: Label used when no grouping fields exist
        low_count_threshold: Member count below which a group is flagged
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self._config = resolve_section('selection', config)

    def resolve_grouping_fields(self,
                                discovery: DiscoveryResult,
                                requested: Optional[Sequence[str]],
                                strict: bool = False,
                                report: Optional[DiagnosticReport] = None
                                ) -> Tuple[List[str], List[str]]:
        """
        Validate a grouping-field override against the discovered fields.

        Args:
            discovery: Discovery result
            requested: Override, or None for the discovered grouping
            strict: Raise instead of reporting unknown fields
            report: Optional diagnostic sink

        Returns:
            (fields to use, rejected fields)

        Raises:
            InvalidOverrideError: In strict mode, if any field is unknown
        """
        if requested is None:
            return list(discovery.grouping_fields), []

        known = set(discovery.fields)
        valid = list(OrderedDict.fromkeys(f for f in requested if f in known))
        rejected = list(OrderedDict.fromkeys(f for f in requested if f not in known))

        if rejected:
            if strict:
                raise InvalidOverrideError(rejected, list(discovery.fields))

            fallback = valid if valid else list(discovery.grouping_fields)
            message = (
                f"Grouping-field override(s) not found: {rejected}; "
                f"grouping by {fallback or 'a single catch-all group'}"
            )
            if report is not None:
                report.add_warning(message, logger)
                report.record('override_rejected', rejected=list(rejected),
                              available=list(discovery.fields))
            else:
                logger.warning(message)
            return fallback, rejected

        return valid, []

    def select(self,
               events: Sequence[RawEvent],
               structure: DetectedStructure,
               discovery: DiscoveryResult,
               grouping_fields: Optional[Sequence[str]] = None,
               allowed_conditions: Optional[Sequence[str]] = None,
               include_practice: Optional[bool] = None,
               value_mappings: Optional[Dict[str, Dict[str, str]]] = None,
               apply_value_mappings: bool = True,
               use_event_pattern: bool = False,
               strict: bool = False,
               report: Optional[DiagnosticReport] = None) -> SelectionResult:
        """
        Group an event stream into conditions.

        Args:
            events: Full event stream
            structure: Detected structure
            discovery: Discovery result
            grouping_fields: Override for discovery.grouping_fields
            allowed_conditions: Keep only labels containing one of these
            include_practice: Keep practice events (default from config)
            value_mappings: Override for discovery.value_mappings
            apply_value_mappings: Set False to label with raw values
            use_event_pattern: Only consider events containing the detected
                event pattern
            strict: Raise InvalidOverrideError for unknown override fields
            report: Optional diagnostic sink

        Returns:
            SelectionResult
        """
        fields_used, rejected = self.resolve_grouping_fields(
            discovery, grouping_fields, strict, report
        )
        if include_practice is None:
            include_practice = not self._config.get('exclude_practice', True)

        parser = UniversalParser(
            structure, discovery, self._config,
            grouping_fields=fields_used,
            value_mappings=value_mappings,
            apply_value_mappings=apply_value_mappings
        )
        practice = PracticeMatcher(discovery.practice_patterns)

        pattern = structure.event_pattern.lower() if (
            use_event_pattern and structure.event_pattern) else None

        members: 'OrderedDict[str, List[int]]' = OrderedDict()
        practice_flags: Dict[str, List[bool]] = {}
        n_unlabeled = 0
        n_filtered = 0

        for index, event in enumerate(events):
            if pattern is not None and pattern not in event.label.lower():
                n_filtered += 1
                continue

            try:
                fields = parser.extract_fields(event)
            except (ValueError, TypeError, AttributeError, KeyError) as e:
                logger.debug(f"Skipping malformed event {index}: {e}")
                n_unlabeled += 1
                continue

            label = parser.label_from_fields(fields)
            if label is None:
                n_unlabeled += 1
                continue

            members.setdefault(label, []).append(index)
            practice_flags.setdefault(label, []).append(
                bool(practice) and practice.matches(fields, label)
            )

        groups, excluded, n_practice_events = self._partition(
            members, practice_flags, include_practice
        )

        if allowed_conditions:
            allowed = [c.lower() for c in allowed_conditions if c]
            kept = []
            for group in groups:
                if any(a in group.label.lower() for a in allowed):
                    kept.append(group)
                else:
                    excluded.append(group)
            groups = kept

        # Stable: ties keep first-appearance order
        groups.sort(key=lambda g: -g.count)

        result = SelectionResult(
            groups=groups,
            grouping_fields=list(fields_used),
            rejected_overrides=rejected,
            excluded_groups=excluded,
            n_unlabeled=n_unlabeled
        )

        self._report(result, n_practice_events, n_filtered, report)
        return result

    @staticmethod
    def _partition(members: 'OrderedDict[str, List[int]]',
                   practice_flags: Dict[str, List[bool]],
                   include_practice: bool
                   ) -> Tuple[List[ConditionGroup], List[ConditionGroup], int]:
        groups: List[ConditionGroup] = []
        excluded: List[ConditionGroup] = []
        n_practice_events = 0

        for label, indices in members.items():
            flags = practice_flags[label]
            all_practice = all(flags)

            if include_practice:
                groups.append(ConditionGroup(label, list(indices), is_practice=all_practice))
                continue

            if all_practice:
                excluded.append(ConditionGroup(label, list(indices), is_practice=True))
                n_practice_events += len(indices)
                continue

            kept = [i for i, is_practice in zip(indices, flags) if not is_practice]
            n_practice_events += len(indices) - len(kept)
            groups.append(ConditionGroup(label, kept))

        return groups, excluded, n_practice_events

    def _report(self,
                result: SelectionResult,
                n_practice_events: int,
                n_filtered: int,
                report: Optional[DiagnosticReport]) -> None:
        total = sum(g.count for g in result.groups)
        logger.info(
            f"Selected {result.n_groups} condition groups ({total} events) "
            f"grouped by {result.grouping_fields or '[]'}"
        )
        for group in result.groups:
            logger.debug(f"  {group.label:<30} n={group.count}")

        if n_practice_events:
            logger.info(f"Excluded {n_practice_events} practice events")
        if result.n_unlabeled:
            logger.info(f"{result.n_unlabeled} events had no usable label")

        threshold = int(self._config.get('low_count_threshold', 10))
        low = [g.label for g in result.groups if g.count < threshold]
        if low:
            message = f"{len(low)} condition group(s) have fewer than {threshold} events: {low}"
            if report is not None:
                report.add_warning(message, logger)
            else:
                logger.warning(message)

        if report is not None:
            report.record(
                'selection_completed',
                counts=result.counts,
                grouping_fields=list(result.grouping_fields),
                n_unlabeled=result.n_unlabeled,
                n_practice_events=n_practice_events,
                n_filtered=n_filtered,
                excluded=[g.label for g in result.excluded_groups]
            )


def select_conditions(events: Sequence[RawEvent],
                      structure: DetectedStructure,
                      discovery: DiscoveryResult,
                      config: Optional[Dict[str, Any]] = None,
                      report: Optional[DiagnosticReport] = None,
                      **overrides) -> SelectionResult:
    """Convenience wrapper around ConditionSelector.select()."""
    return ConditionSelector(config).select(
        events, structure, discovery, report=report, **overrides
    )
