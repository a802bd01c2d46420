"""
Unit Tests for the Component Registry
=====================================

Test Coverage:
- Lazy registration of the built-in extractors and providers
- Custom component registration and the decorator
- Error handling for unknown components and categories

Author: EEG-ERP Analysis Team
Date: 2024
"""

import pytest

from erpscope.core.registry import ComponentRegistry, get_registry, registered
from erpscope.core.interfaces import IFieldExtractor
from erpscope.core.exceptions import ComponentNotFoundError, RegistrationError, EventFormatError
from erpscope.core.types.events import RawEvent, EventFormat
from erpscope.events.extractors import (
    BracketFieldExtractor, DelimiterFieldExtractor, get_extractor
)
from erpscope.events.ai_classifier import FunctionLLMProvider


class PipeFieldExtractor(IFieldExtractor):
    """Splits 'a|b' labels; used to test custom registration."""

    @property
    def name(self) -> str:
        return 'pipe'

    def extract(self, event):
        parts = event.label.split('|')
        if len(parts) < 2:
            return {}
        return {f"part{i + 1}": p for i, p in enumerate(parts)}


class TestBuiltins:
    """Test cases for the built-in components."""

    def test_extractors_registered_on_first_use(self):
        """Test that create() registers defaults lazily."""
        extractor = get_registry().create('field_extractor', 'bracket')

        assert isinstance(extractor, BracketFieldExtractor)
        for fmt in EventFormat:
            assert get_registry().has('field_extractor', fmt.value)

    def test_config_reaches_extractor(self):
        """Test that create() initializes with the config."""
        extractor = get_registry().create('field_extractor', 'simple', {'simple_max_length': 3})

        assert extractor.get_params()['simple_max_length'] == 3
        assert not extractor.matches(RawEvent('DIN1'))

    def test_function_provider_factory(self):
        """Test creating the callable-backed LLM provider."""
        provider = get_registry().create('llm_provider', 'function', fn=lambda p: 'ok')

        assert isinstance(provider, FunctionLLMProvider)
        assert provider.is_loaded
        assert provider.generate('prompt') == 'ok'

    def test_defaults_survive_reset(self):
        """Test that lookups keep working after reset()."""
        get_registry().create('field_extractor', 'delimiter')
        ComponentRegistry.reset()

        assert isinstance(get_registry().create('field_extractor', 'delimiter'),
                          DelimiterFieldExtractor)

    def test_summary_lists_components(self):
        """Test the text summary."""
        registry = get_registry().register_defaults()

        summary = registry.summary()
        assert 'field_extractor' in summary
        assert 'bracket' in summary


class TestCustomComponents:
    """Test cases for user-registered components."""

    def test_register_and_create(self):
        """Test registering a new extractor."""
        registry = get_registry()
        registry.register('field_extractor', 'pipe', PipeFieldExtractor)

        extractor = registry.create('field_extractor', 'pipe')
        assert extractor.extract(RawEvent('a|b')) == {'part1': 'a', 'part2': 'b'}

    def test_custom_extractor_replaces_builtin(self):
        """Test that a custom extractor registered first wins over the default."""
        get_registry().register('field_extractor', 'delimiter', PipeFieldExtractor)

        assert isinstance(get_extractor(EventFormat.DELIMITER), PipeFieldExtractor)

    def test_duplicate_registration_rejected(self):
        """Test that re-registering requires overwrite=True."""
        registry = get_registry()
        registry.register('field_extractor', 'pipe', PipeFieldExtractor)

        with pytest.raises(RegistrationError):
            registry.register('field_extractor', 'pipe', PipeFieldExtractor)

        registry.register('field_extractor', 'pipe', PipeFieldExtractor, overwrite=True)

    def test_invalid_category(self):
        """Test that unknown categories are rejected."""
        with pytest.raises(RegistrationError):
            get_registry().register('widget', 'pipe', PipeFieldExtractor)

    def test_decorator(self):
        """Test the @registered decorator."""
        @registered('field_extractor', 'pipe2')
        class Pipe2(PipeFieldExtractor):
            pass

        assert get_registry().get('field_extractor', 'pipe2') is Pipe2

    def test_unregister(self):
        """Test removing a component."""
        registry = get_registry()
        registry.register('field_extractor', 'pipe', PipeFieldExtractor)
        registry.unregister('field_extractor', 'pipe')

        assert not registry.has('field_extractor', 'pipe')


class TestErrors:
    """Test cases for lookup failures."""

    def test_unknown_component(self):
        """Test that unknown names raise ComponentNotFoundError."""
        with pytest.raises(ComponentNotFoundError):
            get_registry().create('field_extractor', 'xml')

    def test_unknown_format(self):
        """Test that get_extractor rejects non-EventFormat names."""
        with pytest.raises(EventFormatError) as exc_info:
            get_extractor('xml')

        assert 'bracket' in exc_info.value.available
