"""
Unit Tests for the Field Discovery Engine
=========================================

This module contains unit tests for field classification, grouping-field
ranking and the discovery pipeline.

Test Coverage:
- FieldDiscoveryEngine.classify_field
- prioritize_grouping_fields
- detect_value_mappings
- practice_patterns_from_field
- heuristic_confidence
- End-to-end discovery on bracketed, atomic and trial-numbered streams

Author: EEG-ERP Analysis Team
Date: 2024
"""

import pytest

from erpscope.core.config import get_config
from erpscope.core.interfaces import IFieldExtractor
from erpscope.core.registry import get_registry
from erpscope.core.types.events import (
    RawEvent, EventFormat, DetectedStructure, FieldClass, FieldStatistic
)
from erpscope.events.discovery import (
    FieldDiscoveryEngine,
    discover_fields,
    prioritize_grouping_fields,
    detect_value_mappings,
    practice_patterns_from_field,
    heuristic_confidence,
)
from erpscope.events.structure import detect_structure
from erpscope.utils.diagnostics import DiagnosticReport


def stat(name, num_unique, cardinality=0.05):
    values = tuple(f"v{i}" for i in range(num_unique))
    return FieldStatistic(name, values, num_unique, cardinality, values[:5],
                          FieldClass.CONDITION)


def trial_numbered_events():
    """Condition 'cond', low-cardinality 'trial' counter, near-unique 'obs'."""
    return [
        RawEvent(f"[cond: {'AB'[i % 2]}, trial: {i % 5 + 1}, obs: {min(i, 95)}]", 100 + i * 50)
        for i in range(100)
    ]


class TestClassifyField:
    """Test cases for single-field classification."""

    @pytest.fixture
    def engine(self):
        return FieldDiscoveryEngine(ai_config={'mode': 'never'})

    @pytest.mark.parametrize("name, num_unique, cardinality, expected", [
        ('code', 8, 0.03, FieldClass.CONDITION),
        ('obs', 96, 0.96, FieldClass.TRIAL_SPECIFIC),
        ('response', 40, 0.4, FieldClass.TRIAL_SPECIFIC),
        ('trialnum', 5, 0.05, FieldClass.TRIAL_SPECIFIC),
        ('mffkey_RT', 3, 0.03, FieldClass.TRIAL_SPECIFIC),
        ('age', 3, 0.01, FieldClass.METADATA),
        ('subject', 2, 0.01, FieldClass.METADATA),
        ('description', 5, 0.05, FieldClass.METADATA),
        ('condition', 30, 0.4, FieldClass.CONDITION),
        ('condition', 30, 0.6, FieldClass.OPTIONAL),
        ('stim', 1, 0.01, FieldClass.OPTIONAL),
        ('seconds', 40, 0.4, FieldClass.OPTIONAL),
        ('start', 3, 0.03, FieldClass.CONDITION),
        ('value', 60, 0.6, FieldClass.TRIAL_SPECIFIC),
        ('TrialCondition', 4, 0.05, FieldClass.CONDITION),
        ('stim_rt', 3, 0.03, FieldClass.CONDITION),
        ('TrialCondition', 40, 0.8, FieldClass.TRIAL_SPECIFIC),
    ])
    def test_rules(self, engine, name, num_unique, cardinality, expected):
        """Test cardinality rules and lexical overrides."""
        assert engine.classify_field(name, num_unique, cardinality) == expected

    def test_simple_type_single_value(self, engine):
        """Test that one atomic code still forms a condition."""
        assert engine.classify_field('type', 1, 0.01, EventFormat.SIMPLE) == FieldClass.CONDITION

    def test_simple_type_many_codes(self, engine):
        """Test that atomic codes form conditions at any cardinality."""
        assert engine.classify_field('type', 60, 0.5, EventFormat.SIMPLE) == FieldClass.CONDITION
        assert engine.classify_field('type', 100, 1.0, EventFormat.SIMPLE) == FieldClass.CONDITION

    def test_type_outside_simple_format(self, engine):
        """Test that 'type' is not promoted for other encodings."""
        assert engine.classify_field('type', 1, 0.01, EventFormat.BRACKET) == FieldClass.OPTIONAL

    def test_thresholds_configurable(self):
        """Test that cut-offs come from the configuration."""
        engine = FieldDiscoveryEngine({'condition_max_cardinality': 0.5},
                                      ai_config={'mode': 'never'})

        assert engine.classify_field('block', 4, 0.4) == FieldClass.CONDITION

    def test_invalid_ai_mode(self):
        """Test that an unknown AI mode is rejected."""
        with pytest.raises(ValueError):
            FieldDiscoveryEngine(ai_config={'mode': 'sometimes'})


class TestPrioritizeGroupingFields:
    """Test cases for ranking and capping grouping candidates."""

    def test_two_high_priority_fields(self):
        """Test that two vendor condition fields suffice."""
        names = ['mffkey_verb', 'mffkey_code', 'mffkey_cond']
        stats = {n: stat(n, 4) for n in names}

        assert prioritize_grouping_fields(names, stats) == ['mffkey_cond', 'mffkey_code']

    def test_cap_at_three(self):
        """Test that at most max_fields are kept."""
        names = ['task', 'verb', 'code', 'cond']
        stats = {n: stat(n, 4) for n in names}

        assert prioritize_grouping_fields(names, stats) == ['cond', 'code', 'verb']
        assert prioritize_grouping_fields(names, stats, max_fields=1) == ['cond']

    def test_cardinality_bonus(self):
        """Test that lower cardinality ranks higher within a table row."""
        stats = {'code': stat('code', 8, 0.2), 'word': stat('word', 2, 0.01)}

        assert prioritize_grouping_fields(['code', 'word'], stats) == ['word', 'code']

    def test_ties_alphabetical(self):
        """Test deterministic ordering of equal priorities."""
        stats = {'zeta': stat('zeta', 3), 'alpha': stat('alpha', 3)}

        assert prioritize_grouping_fields(['zeta', 'alpha'], stats) == ['alpha', 'zeta']

    def test_empty(self):
        """Test that no candidates yield no fields."""
        assert prioritize_grouping_fields([], {}) == []


class TestValueMappings:
    """Test cases for boolean-coded value mappings."""

    def test_lexical(self):
        """Test word/nonword mapping."""
        assert detect_value_mappings('word', ['n', 'y']) == {'n': 'nonword', 'y': 'word'}

    def test_verb(self):
        """Test verb/nonverb mapping, case preserved in keys."""
        assert detect_value_mappings('verbstatus', ['N', 'Y']) == {'N': 'nonverb', 'Y': 'verb'}

    def test_generic_yes_no(self):
        """Test the generic vocabulary and placeholder tolerance."""
        assert detect_value_mappings('flag', ['?', 'n', 'y']) == {'n': 'no', 'y': 'yes'}
        assert detect_value_mappings('flag', ['0', '1']) == {'0': 'no', '1': 'yes'}

    def test_not_boolean(self):
        """Test that other value sets get no mapping."""
        assert detect_value_mappings('code', ['G23', 'y']) == {}
        assert detect_value_mappings('flag', ['?']) == {}


class TestPracticePatterns:
    """Test cases for practice patterns from field values."""

    def test_flag_values(self):
        """Test that short flags become field equality patterns."""
        assert practice_patterns_from_field('prac', ['?', 'n', 'y']) == ['prac=y']
        assert practice_patterns_from_field('practice', ['0', '1']) == ['practice=1']
        assert practice_patterns_from_field('prac', ['yes']) == ['prac=yes']

    def test_text_values(self):
        """Test that descriptive values become substrings."""
        assert practice_patterns_from_field('training', ['PracSlow', 'none']) == ['PracSlow']


class TestHeuristicConfidence:
    """Test cases for the heuristic confidence score."""

    @pytest.mark.parametrize("n_candidates, n_excluded, expected", [
        (0, 0, 0.5),
        (1, 0, 0.7),
        (1, 2, 0.8),
        (2, 1, 1.0),
        (4, 0, 0.6),
        (4, 1, 0.7),
    ])
    def test_values(self, n_candidates, n_excluded, expected):
        """Test the scoring rules."""
        assert heuristic_confidence(n_candidates, n_excluded) == pytest.approx(expected)


class TestDiscovery:
    """Test cases for the discovery pipeline."""

    def test_bracket_stream(self, bracket_events):
        """Test two condition fields and two trial fields."""
        structure = detect_structure(bracket_events)
        report = DiagnosticReport()

        result = discover_fields(bracket_events, structure, report=report)

        assert result.fields == ['code', 'word', 'obs', 'rt']
        assert set(result.grouping_fields) == {'code', 'word'}
        assert set(result.exclude_fields) == {'obs', 'rt'}
        assert result.value_mappings == {'word': {'n': 'nonword', 'y': 'word'}}
        assert result.confidence == pytest.approx(1.0)
        assert result.method == 'heuristic'
        assert 'Prac' in result.practice_patterns
        assert result.practice_patterns == sorted(result.practice_patterns)
        assert report.get_events('discovery_completed')

    def test_field_statistics(self, bracket_events):
        """Test per-field statistics."""
        result = discover_fields(bracket_events, detect_structure(bracket_events))
        code = result.field_stats['code']

        assert code.num_unique == 8
        assert code.n_observations == 261
        assert code.cardinality == pytest.approx(8 / 261)
        assert code.sample_values[:2] == ('G23', 'SG23')

    def test_sample_size(self, bracket_events):
        """Test that only sample_size events are inspected."""
        result = discover_fields(bracket_events, detect_structure(bracket_events),
                                 {'sample_size': 50})

        assert result.field_stats['code'].n_observations == 50

    def test_trial_named_fields_excluded(self):
        """Test that trial counters are excluded regardless of cardinality."""
        events = trial_numbered_events()

        result = discover_fields(events, detect_structure(events))

        assert result.grouping_fields == ['cond']
        assert 'trial' in result.exclude_fields
        assert 'obs' in result.exclude_fields
        assert result.field_stats['obs'].cardinality == pytest.approx(0.96)

    def test_all_unique(self, unique_events):
        """Test that a stream without conditions has no grouping fields."""
        report = DiagnosticReport()

        result = discover_fields(unique_events, detect_structure(unique_events), report=report)

        assert result.grouping_fields == []
        assert set(result.exclude_fields) == {'item', 'onset'}
        assert report.has_warnings

    def test_simple_codes(self, simple_events):
        """Test that atomic codes group by 'type'."""
        result = discover_fields(simple_events, detect_structure(simple_events))

        assert result.fields == ['type']
        assert result.grouping_fields == ['type']

    def test_many_simple_codes(self):
        """Test that more than 50 distinct atomic codes still group by 'type'."""
        events = [RawEvent(f"S{i % 60}", 100 + i * 50) for i in range(120)]

        result = discover_fields(events, detect_structure(events))

        assert result.field_stats['type'].num_unique == 60
        assert result.grouping_fields == ['type']
        assert result.exclude_fields == []

    def test_condition_name_beats_trial_name(self):
        """Test that a low-cardinality condition-named field is grouped on."""
        events = [
            RawEvent(f"[TrialCondition: {'ABCD'[i % 4]}, obs: {i}]", 100 + i * 50)
            for i in range(200)
        ]

        result = discover_fields(events, detect_structure(events))

        assert result.field_stats['TrialCondition'].classification == FieldClass.CONDITION
        assert result.grouping_fields == ['TrialCondition']
        assert result.exclude_fields == ['obs']

    def test_confidence_counts_uncapped_candidates(self):
        """Test that confidence reflects candidates found before the cap."""
        events = [
            RawEvent(
                f"[cond: {'AB'[i % 2]}, stim: {'xy'[(i // 2) % 2]}, "
                f"task: {'pq'[(i // 4) % 2]}, block: {(i // 8) % 2 + 1}]",
                100 + i * 50
            )
            for i in range(100)
        ]

        result = discover_fields(events, detect_structure(events))

        assert len(result.fields_by_class(FieldClass.CONDITION)) == 4
        assert len(result.grouping_fields) == 3
        assert result.confidence == pytest.approx(0.6)

    def test_extractor_uses_structure_config(self, attribute_events):
        """Test that extraction sees the configured structure settings."""
        seen = []

        class RecordingExtractor(IFieldExtractor):
            @property
            def name(self):
                return 'fields'

            def extract(self, event):
                return {'cond': event.attributes['cond']}

            def initialize(self, config):
                super().initialize(config)
                seen.append(dict(config))

        get_config().set('structure.min_attributes', 2)
        get_registry().register('field_extractor', 'fields', RecordingExtractor)

        result = discover_fields(attribute_events, DetectedStructure(EventFormat.FIELDS, 1.0))

        assert result.grouping_fields == ['cond']
        assert seen[0]['min_attributes'] == 2

    def test_max_grouping_fields(self, bracket_events):
        """Test the configurable grouping cap."""
        result = discover_fields(bracket_events, detect_structure(bracket_events),
                                 {'max_grouping_fields': 1})

        assert result.grouping_fields == ['word']

    def test_no_fields(self):
        """Test a stream whose events carry no fields."""
        report = DiagnosticReport()
        structure = DetectedStructure(EventFormat.BRACKET, 1.0, num_events=3)
        events = [RawEvent('DIN1'), RawEvent('DIN2'), RawEvent('DIN3')]

        result = discover_fields(events, structure, report=report)

        assert result.fields == []
        assert result.grouping_fields == []
        assert result.confidence == 0.5
        assert report.has_warnings

    def test_practice_field(self):
        """Test that practice-named fields contribute patterns."""
        events = [
            RawEvent(f"[cond: {'AB'[i % 2]}, prac: {'y' if i < 10 else 'n'}]")
            for i in range(60)
        ]

        result = discover_fields(events, detect_structure(events))

        assert 'prac=y' in result.practice_patterns

    def test_malformed_events_skipped(self):
        """Test that extractor failures on single events are tolerated."""
        class FragileExtractor(IFieldExtractor):
            @property
            def name(self):
                return 'bracket'

            def extract(self, event):
                if 'bad' in event.label:
                    raise ValueError("unparseable")
                return {'cond': event.label[-1]}

        get_registry().register('field_extractor', 'bracket', FragileExtractor)
        events = [RawEvent(f"[x{'AB'[i % 2]}") for i in range(40)] + [RawEvent('[bad')] * 5
        report = DiagnosticReport()

        result = discover_fields(events, DetectedStructure(EventFormat.BRACKET, 1.0), report=report)

        assert result.grouping_fields == ['cond']
        assert report.get_events('events_skipped')[0]['count'] == 5

    def test_deterministic(self, bracket_events, bracket_stream):
        """Test that identical input gives identical output."""
        structure = detect_structure(bracket_events)

        first = discover_fields(bracket_events, structure).to_dict()
        second = discover_fields(bracket_stream(), structure).to_dict()

        assert first == second

    def test_get_params(self):
        """Test effective configuration access."""
        params = FieldDiscoveryEngine({'max_grouping_fields': 2}).get_params()

        assert params['discovery']['max_grouping_fields'] == 2
        assert params['ai']['mode'] == 'auto'
