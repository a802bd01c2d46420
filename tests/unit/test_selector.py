"""
Unit Tests for the Condition Selector
=====================================

Test Coverage:
- PracticeMatcher
- Grouping-field overrides (lenient and strict)
- Practice exclusion and inclusion
- Allow-list filtering, event-pattern filtering, ordering
- End-to-end grouping of bracketed, trial-numbered, all-unique and
  atomic-code streams

Author: EEG-ERP Analysis Team
Date: 2024
"""

import pytest

from erpscope.core.exceptions import InvalidOverrideError
from erpscope.core.types.events import RawEvent, EventFormat, DetectedStructure, DiscoveryResult
from erpscope.events.discovery import discover_fields
from erpscope.events.parser import UniversalParser
from erpscope.events.selector import ConditionSelector, PracticeMatcher, select_conditions
from erpscope.events.structure import detect_structure
from erpscope.utils.diagnostics import DiagnosticReport


BRACKET = DetectedStructure(EventFormat.BRACKET, 1.0)


def analyse(events, **overrides):
    """Detect, discover and select with a fresh report."""
    report = DiagnosticReport()
    structure = detect_structure(events, report=report)
    discovery = discover_fields(events, structure, report=report)
    selection = ConditionSelector().select(events, structure, discovery, report=report, **overrides)
    return selection, discovery, report


class TestPracticeMatcher:
    """Test cases for practice-event matching."""

    def test_equality_pattern(self):
        """Test 'field=value' patterns."""
        matcher = PracticeMatcher(['prac=y'])

        assert matcher.matches({'prac': 'Y'})
        assert not matcher.matches({'prac': 'yes'})
        assert not matcher.matches({'other': 'y'})

    def test_substring_in_label(self):
        """Test case-insensitive label matching."""
        matcher = PracticeMatcher(['Prac'])

        assert matcher.matches({}, 'word_PRACTICE')
        assert not matcher.matches({}, 'word_G23')

    def test_substring_in_field_value(self):
        """Test matching against any field value."""
        matcher = PracticeMatcher(['PracSlow'])

        assert matcher.matches({'block': 'pracslow', 'code': 'G23'}, 'G23')

    def test_field_names_not_matched(self):
        """Test that field names alone never mark practice."""
        assert not PracticeMatcher(['prac']).matches({'prac': 'n'}, 'G23')

    def test_empty(self):
        """Test that no patterns match nothing."""
        matcher = PracticeMatcher([''])

        assert not matcher
        assert not matcher.matches({'a': 'Prac'}, 'Prac')


class TestGroupingOverrides:
    """Test cases for caller grouping-field overrides."""

    @pytest.fixture
    def discovery(self):
        return DiscoveryResult(fields=['code', 'word', 'obs'], field_stats={},
                               grouping_fields=['code', 'word'], exclude_fields=['obs'])

    def test_unknown_field_falls_back(self, discovery):
        """Test that an unknown override keeps the discovered grouping."""
        report = DiagnosticReport()
        fields, rejected = ConditionSelector().resolve_grouping_fields(
            discovery, ['nope'], report=report
        )

        assert fields == ['code', 'word']
        assert rejected == ['nope']
        assert report.has_warnings
        assert report.get_events('override_rejected')[0]['available'] == ['code', 'word', 'obs']

    def test_partial_override(self, discovery):
        """Test that the valid subset of an override is used."""
        fields, rejected = ConditionSelector().resolve_grouping_fields(discovery, ['word', 'nope'])

        assert fields == ['word']
        assert rejected == ['nope']

    def test_strict(self, discovery):
        """Test that strict mode raises."""
        with pytest.raises(InvalidOverrideError) as exc_info:
            ConditionSelector().resolve_grouping_fields(discovery, ['nope'], strict=True)

        assert exc_info.value.rejected == ['nope']
        assert 'obs' in exc_info.value.available

    def test_excluded_field_allowed(self, discovery):
        """Test that the caller may group by any discovered field."""
        fields, rejected = ConditionSelector().resolve_grouping_fields(discovery, ['obs'])

        assert fields == ['obs']
        assert rejected == []

    def test_duplicates_removed(self, discovery):
        """Test that repeated override fields are used once."""
        fields, _ = ConditionSelector().resolve_grouping_fields(discovery, ['word', 'word'])

        assert fields == ['word']

    def test_no_override(self, discovery):
        """Test the discovered grouping by default."""
        assert ConditionSelector().resolve_grouping_fields(discovery, None) == (['code', 'word'], [])


class TestSelect:
    """Test cases for grouping an event stream."""

    def test_bracket_stream(self, bracket_events):
        """Test grouping by two condition fields."""
        selection, discovery, report = analyse(bracket_events)

        assert 1 < selection.n_groups <= 16
        assert all(g.count > 1 for g in selection.groups)
        assert sum(g.count for g in selection.groups) == 261
        assert set(selection.grouping_fields) == {'code', 'word'}
        assert all(('word' in label) for label in selection.labels)
        assert selection.n_unlabeled == 0
        assert not report.has_warnings

    def test_member_indices_consistent(self, bracket_events):
        """Test that every member carries its group's label."""
        selection, discovery, _ = analyse(bracket_events)
        parser = UniversalParser(detect_structure(bracket_events), discovery)

        for group in selection.groups:
            assert {parser.parse_event(bracket_events[i]) for i in group.member_event_indices} \
                == {group.label}

    def test_ordered_by_count(self, bracket_events):
        """Test that larger groups come first."""
        selection, _, _ = analyse(bracket_events)
        counts = [g.count for g in selection.groups]

        assert counts == sorted(counts, reverse=True)

    def test_ties_keep_first_appearance(self):
        """Test deterministic order among equal counts."""
        events = [RawEvent(f"[cond: {c}]") for c in 'BAAB']
        discovery = DiscoveryResult(fields=['cond'], field_stats={}, grouping_fields=['cond'])

        selection = ConditionSelector().select(events, BRACKET, discovery)
        assert selection.labels == ['B', 'A']

    def test_trial_numbered_stream(self):
        """Test that trial counters never split conditions."""
        events = [
            RawEvent(f"[cond: {'AB'[i % 2]}, trial: {i % 5 + 1}, obs: {min(i, 95)}]")
            for i in range(100)
        ]

        selection, _, _ = analyse(events)
        assert sorted(selection.labels) == ['A', 'B']
        assert selection.counts == {'A': 50, 'B': 50}

    def test_all_unique_stream(self, unique_events):
        """Test that a stream without conditions forms one catch-all group."""
        selection, _, report = analyse(unique_events)

        assert selection.labels == ['all_events']
        assert selection.groups[0].count == 120
        assert selection.grouping_fields == []
        assert report.has_warnings

    def test_atomic_codes(self, simple_events):
        """Test one group per distinct code."""
        selection, _, _ = analyse(simple_events)

        assert sorted(selection.labels) == ['DIN1', 'DIN2', 'DIN3']
        assert set(selection.counts.values()) == {30}

    def test_many_atomic_codes(self):
        """Test one group per code for more than 50 distinct codes."""
        events = [RawEvent(f"S{i % 60}", 100 + i * 50) for i in range(120)]

        selection, discovery, _ = analyse(events)

        assert discovery.grouping_fields == ['type']
        assert selection.n_groups == 60
        assert set(selection.counts.values()) == {2}

    def test_unique_atomic_codes(self):
        """Test that codes seen once each still form their own groups."""
        events = [RawEvent(f"E{i}", 100 + i * 50) for i in range(80)]

        selection, _, _ = analyse(events)

        assert sorted(selection.labels) == sorted(f"E{i}" for i in range(80))

    def test_condition_named_trial_field(self):
        """Test grouping on a field named after both trials and conditions."""
        events = [
            RawEvent(f"[TrialCondition: {'ABCD'[i % 4]}, obs: {i}]", 100 + i * 50)
            for i in range(200)
        ]

        selection, _, _ = analyse(events)

        assert selection.grouping_fields == ['TrialCondition']
        assert selection.counts == {'A': 50, 'B': 50, 'C': 50, 'D': 50}

    def test_single_atomic_code(self):
        """Test that a stream of one repeated code yields one group."""
        events = [RawEvent('DIN1', 100 + i) for i in range(25)]

        selection, _, _ = analyse(events)
        assert selection.labels == ['DIN1']

    def test_single_member_group_kept(self):
        """Test that a group of one is kept and flagged."""
        events = [RawEvent('[cond: A]')] * 20 + [RawEvent('[cond: B]')]
        discovery = DiscoveryResult(fields=['cond'], field_stats={}, grouping_fields=['cond'])
        report = DiagnosticReport()

        selection = ConditionSelector().select(events, BRACKET, discovery, report=report)

        assert selection.counts == {'A': 20, 'B': 1}
        assert any('fewer than' in w for w in report.warnings)

    def test_empty_grouping_override(self, bracket_events):
        """Test that an explicit empty grouping means a single group."""
        selection, _, _ = analyse(bracket_events, grouping_fields=[])

        assert selection.labels == ['all_events']
        assert selection.groups[0].count == 261

    def test_rejected_override_reported(self, bracket_events):
        """Test that unknown override fields are listed in the result."""
        selection, _, report = analyse(bracket_events, grouping_fields=['condition'])

        assert selection.rejected_overrides == ['condition']
        assert set(selection.grouping_fields) == {'code', 'word'}
        assert report.has_warnings

    def test_allowed_conditions(self, bracket_events):
        """Test the allow-list keeps labels containing a term."""
        selection, _, _ = analyse(bracket_events, allowed_conditions=['G23'])

        assert len(selection.groups) == 4
        assert all('g23' in label.lower() for label in selection.labels)
        assert len(selection.excluded_groups) == 12

    def test_unlabeled_events_counted(self):
        """Test events lacking a grouping field."""
        events = [RawEvent('[cond: A]'), RawEvent('[other: 1]'), RawEvent('[cond: ?]')]
        discovery = DiscoveryResult(fields=['cond', 'other'], field_stats={},
                                    grouping_fields=['cond'])

        selection = ConditionSelector().select(events, BRACKET, discovery)

        assert selection.labels == ['A']
        assert selection.n_unlabeled == 2

    def test_event_pattern_filter(self):
        """Test restricting selection to events containing the pattern."""
        structure = DetectedStructure(EventFormat.SIMPLE, 1.0, event_pattern='DIN')
        discovery = DiscoveryResult(fields=['type'], field_stats={}, grouping_fields=['type'])
        events = [RawEvent('DIN1')] * 5 + [RawEvent('S1')] * 3
        report = DiagnosticReport()

        assert ConditionSelector().select(events, structure, discovery).n_groups == 2

        selection = ConditionSelector().select(events, structure, discovery,
                                               use_event_pattern=True, report=report)
        assert selection.labels == ['DIN1']
        assert report.get_events('selection_completed')[0]['n_filtered'] == 3

    def test_wrapper(self, bracket_events):
        """Test the convenience wrapper with overrides."""
        structure = detect_structure(bracket_events)
        discovery = discover_fields(bracket_events, structure)

        selection = select_conditions(bracket_events, structure, discovery,
                                      {'separator': '-'}, grouping_fields=['code', 'word'])

        assert 'G23-word' in selection.labels


class TestPracticeExclusion:
    """Test cases for practice handling."""

    def test_practice_groups_excluded(self, bracket_stream):
        """Test that groups of practice events move to excluded_groups."""
        events = bracket_stream(practice=16)

        selection, _, _ = analyse(events)

        assert len(selection.excluded_groups) == 2
        assert all(g.is_practice for g in selection.excluded_groups)
        assert all('Prac' in g.label for g in selection.excluded_groups)
        practice_indices = set(range(16))
        for group in selection.groups:
            assert not practice_indices & set(group.member_event_indices)

    def test_include_practice_round_trip(self, bracket_stream):
        """Test that including practice adds exactly the practice groups."""
        events = bracket_stream(practice=16)

        excluded, _, _ = analyse(events)
        included, _, _ = analyse(events, include_practice=True)

        assert included.n_groups - excluded.n_groups == len(excluded.excluded_groups)
        assert set(excluded.labels) < set(included.labels)
        practice_labels = {g.label for g in excluded.excluded_groups}
        assert all(included.get_group(label).is_practice for label in practice_labels)
        assert sum(g.count for g in included.groups) == len(events)

    def test_practice_config_default(self, bracket_stream):
        """Test the exclude_practice configuration switch."""
        events = bracket_stream(practice=16)
        structure = detect_structure(events)
        discovery = discover_fields(events, structure)

        selection = ConditionSelector({'exclude_practice': False}).select(events, structure, discovery)
        assert selection.excluded_groups == []

    def test_mixed_group_loses_practice_members(self):
        """Test that practice events are removed from mixed groups."""
        events = [RawEvent(f"[cond: A, prac: {'y' if i < 3 else 'n'}]") for i in range(10)]
        discovery = DiscoveryResult(fields=['cond', 'prac'], field_stats={},
                                    grouping_fields=['cond'], practice_patterns=['prac=y'])
        report = DiagnosticReport()

        selection = ConditionSelector().select(events, BRACKET, discovery, report=report)

        assert selection.groups[0].member_event_indices == list(range(3, 10))
        assert report.get_events('selection_completed')[0]['n_practice_events'] == 3

    def test_practice_value_in_other_field(self):
        """Test that a practice value in a non-grouping field marks the event."""
        events = [RawEvent('[cond: A, block: PracSlow]')] * 4 + [RawEvent('[cond: A, block: main]')] * 6
        discovery = DiscoveryResult(fields=['cond', 'block'], field_stats={},
                                    grouping_fields=['cond'], practice_patterns=['PracSlow'])

        selection = ConditionSelector().select(events, BRACKET, discovery)

        assert selection.counts == {'A': 6}
