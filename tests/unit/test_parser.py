"""
Unit Tests for the Universal Parser
===================================

Test Coverage:
- Label construction from grouping fields
- Value mappings and placeholders
- Separator escaping (label injectivity)
- Catch-all label

Author: EEG-ERP Analysis Team
Date: 2024
"""

import pytest

from erpscope.core.types.events import RawEvent, EventFormat, DetectedStructure, DiscoveryResult
from erpscope.events.parser import UniversalParser, build_label, escape_value, parse_event


BRACKET = DetectedStructure(EventFormat.BRACKET, 1.0)


@pytest.fixture
def discovery():
    return DiscoveryResult(
        fields=['code', 'word', 'obs'],
        field_stats={},
        grouping_fields=['code', 'word'],
        exclude_fields=['obs'],
        value_mappings={'word': {'y': 'word', 'n': 'nonword'}}
    )


class TestBuildLabel:
    """Test cases for label joining and escaping."""

    def test_join(self):
        """Test plain values."""
        assert build_label(['G23', 'word']) == 'G23_word'

    def test_separator_escaped(self):
        """Test that separators inside values are escaped."""
        assert build_label(['a_b', 'c']) == 'a\\_b_c'
        assert escape_value('a|b', '|') == 'a\\|b'

    def test_injective_on_separator(self):
        """Test that shifting a separator between values changes the label."""
        assert build_label(['x_y', 'z']) != build_label(['x', 'y_z'])

    def test_injective_on_escape_char(self):
        """Test that literal backslashes cannot forge an escape."""
        assert build_label(['a\\', '_b']) != build_label(['a', '\\_b'])
        assert build_label(['a\\', 'b']) != build_label(['a\\_b'])

    def test_single_value(self):
        """Test a single grouping field."""
        assert build_label(['DIN1']) == 'DIN1'


class TestUniversalParser:
    """Test cases for event labelling."""

    def test_mapped_label(self, discovery):
        """Test grouping values in priority order with mappings applied."""
        parser = UniversalParser(BRACKET, discovery)

        assert parser.parse_event(RawEvent('[code: G23, word: y, obs: 12]')) == 'G23_word'
        assert parser.parse_event(RawEvent('[code: SG23, word: n, obs: 13]')) == 'SG23_nonword'

    def test_trial_fields_ignored(self, discovery):
        """Test that excluded fields never reach the label."""
        parser = UniversalParser(BRACKET, discovery)

        first = parser.parse_event(RawEvent('[code: G23, word: y, obs: 1]'))
        second = parser.parse_event(RawEvent('[code: G23, word: y, obs: 2]'))
        assert first == second

    def test_missing_field(self, discovery):
        """Test that an event without a grouping field has no label."""
        parser = UniversalParser(BRACKET, discovery)

        assert parser.parse_event(RawEvent('[code: G23, obs: 1]')) is None
        assert parser.parse_event(RawEvent('DIN1')) is None

    @pytest.mark.parametrize("word", ['?', 'NA', '', 'nan'])
    def test_placeholder(self, discovery, word):
        """Test that placeholder values yield no label."""
        parser = UniversalParser(BRACKET, discovery)

        assert parser.parse_event(RawEvent(f"[code: G23, word: {word}]")) is None

    def test_mapping_before_placeholder(self):
        """Test that a mapped '0' is a real value."""
        discovery = DiscoveryResult(
            fields=['flag'], field_stats={}, grouping_fields=['flag'],
            value_mappings={'flag': {'0': 'no', '1': 'yes'}}
        )
        parser = UniversalParser(BRACKET, discovery)

        assert parser.parse_event(RawEvent('[flag: 0]')) == 'no'
        assert UniversalParser(BRACKET, discovery, apply_value_mappings=False) \
            .parse_event(RawEvent('[flag: 0]')) is None

    def test_raw_values(self, discovery):
        """Test disabling value mappings."""
        parser = UniversalParser(BRACKET, discovery, apply_value_mappings=False)

        assert parser.parse_event(RawEvent('[code: G23, word: y]')) == 'G23_y'

    def test_mapping_override(self, discovery):
        """Test caller-supplied value mappings."""
        parser = UniversalParser(BRACKET, discovery,
                                 value_mappings={'word': {'y': 'W', 'n': 'NW'}})

        assert parser.parse_event(RawEvent('[code: G23, word: n]')) == 'G23_NW'

    def test_grouping_override(self, discovery):
        """Test caller-supplied grouping fields."""
        parser = UniversalParser(BRACKET, discovery, grouping_fields=['word'])

        assert parser.parse_event(RawEvent('[code: G23, word: y]')) == 'word'

    def test_catch_all(self, discovery):
        """Test that no grouping fields put every event in one group."""
        parser = UniversalParser(BRACKET, discovery, grouping_fields=[])

        assert parser.parse_event(RawEvent('anything')) == 'all_events'
        assert parser.label_from_fields({}) == 'all_events'

    def test_custom_separator(self, discovery):
        """Test the separator from the selection config."""
        parser = UniversalParser(BRACKET, discovery, {'separator': '|'})

        assert parser.parse_event(RawEvent('[code: G|23, word: y]')) == 'G\\|23|word'

    def test_value_with_separator(self, discovery):
        """Test that values containing '_' stay distinguishable."""
        parser = UniversalParser(BRACKET, discovery, apply_value_mappings=False)

        a = parser.parse_event(RawEvent('[code: G_1, word: y]'))
        b = parser.parse_event(RawEvent('[code: G, word: 1_y]'))
        assert a != b

    def test_parse_events(self, discovery):
        """Test that labels align with the stream."""
        events = [RawEvent('[code: G23, word: y]'), RawEvent('junk'), RawEvent('[code: G31, word: n]')]

        labels = UniversalParser(BRACKET, discovery).parse_events(events)
        assert labels == ['G23_word', None, 'G31_nonword']

    def test_delimiter_structure(self):
        """Test positional fields."""
        structure = DetectedStructure(EventFormat.DELIMITER, 1.0)
        discovery = DiscoveryResult(fields=['field1', 'field2', 'field3'], field_stats={},
                                    grouping_fields=['field2', 'field3'])

        assert parse_event(RawEvent('Stim_G23_word'), structure, discovery) == 'G23_word'
