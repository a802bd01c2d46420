"""
Events Module
=============

Universal event-structure discovery: from an unknown event stream to a
small set of experimental-condition groups.

Components:
----------
- StructureDetector: Detects the textual encoding of the stream
- Field extractors: One strategy per encoding (bracket, fields,
  delimiter, simple) plus a fallback
- FieldDiscoveryEngine: Discovers and classifies embedded fields
- UniversalParser: Builds the condition label of one event
- ConditionSelector: Groups the stream into conditions
- AIFieldClassifier: Optional AI collaborator for discovery

Example Usage:
    ```python
    from erpscope.events import (
        StructureDetector, FieldDiscoveryEngine, ConditionSelector
    )

    structure = StructureDetector().detect(events)
    discovery = FieldDiscoveryEngine().discover(events, structure)
    selection = ConditionSelector().select(events, structure, discovery)

    print(selection.counts)   # {'G23_word': 38, 'SG23_nonword': 35, ...}
    ```

Author: EEG-ERP Analysis Team
Date: 2024
"""

from erpscope.events.extractors import (
    BracketFieldExtractor,
    AttributeFieldExtractor,
    DelimiterFieldExtractor,
    SimpleFieldExtractor,
    FallbackFieldExtractor,
    get_extractor,
    extractor_config,
    format_value
)
from erpscope.events.structure import (
    StructureDetector,
    detect_structure,
    list_available_fields,
    sample_indices
)
from erpscope.events.discovery import (
    FieldDiscoveryEngine,
    discover_fields,
    prioritize_grouping_fields,
    detect_value_mappings,
    heuristic_confidence
)
from erpscope.events.parser import UniversalParser, parse_event, build_label
from erpscope.events.selector import ConditionSelector, PracticeMatcher, select_conditions
from erpscope.events.ai_classifier import (
    AIFieldClassifier,
    AISuggestion,
    FunctionLLMProvider
)

__all__ = [
    # Extractors
    'BracketFieldExtractor',
    'AttributeFieldExtractor',
    'DelimiterFieldExtractor',
    'SimpleFieldExtractor',
    'FallbackFieldExtractor',
    'get_extractor',
    'extractor_config',
    'format_value',

    # Structure
    'StructureDetector',
    'detect_structure',
    'list_available_fields',
    'sample_indices',

    # Discovery
    'FieldDiscoveryEngine',
    'discover_fields',
    'prioritize_grouping_fields',
    'detect_value_mappings',
    'heuristic_confidence',

    # Parsing and selection
    'UniversalParser',
    'parse_event',
    'build_label',
    'ConditionSelector',
    'PracticeMatcher',
    'select_conditions',

    # AI
    'AIFieldClassifier',
    'AISuggestion',
    'FunctionLLMProvider',
]
