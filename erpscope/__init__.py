"""
erpscope
========

Universal EEG event-structure discovery and ERP averaging.

Given a cleaned recording and an event stream of unknown format, erpscope
detects how the event labels are encoded, discovers the fields embedded in
them, decides which fields define experimental conditions, groups the
events accordingly and averages each condition into an ERP.

Features:
---------
- Structure detection for bracket, attribute, delimiter and atomic codes
- Cardinality- and name-based field classification
- Deterministic, injective condition labels
- Practice-trial exclusion and caller overrides
- Optional AI-assisted classification with timeout and heuristic fallback
- Epoching, averaging and epoch quality metrics
- Recording quality assessment

Quick Start:
-----------
```python
import erpscope

# Setup logging
erpscope.setup_logging(level='INFO')

recording = erpscope.EEGData(signals, sampling_rate=250, events=events)
result = erpscope.ERPAnalysisPipeline().run(recording)
print(result.summary())
```

Project Structure:
-----------------
erpscope/
├── core/               # Interfaces, types, config, registry, exceptions
├── events/             # Structure detection, discovery, parsing, selection
├── epoching/           # Epoching & averaging
├── quality/            # Recording quality assessment
├── pipeline.py         # End-to-end orchestration
└── utils/              # Logging, diagnostics, validation

Author: EEG-ERP Analysis Team
Date: 2024
"""

# Version
__version__ = '1.0.0'

# Core module
from erpscope import core
from erpscope import utils

# Convenience imports
from erpscope.core import (
    # Configuration
    get_config,
    load_config,
    ConfigManager,

    # Registry
    get_registry,
    ComponentRegistry,

    # Types
    RawEvent,
    EEGData,
    EventFormat,
    DiscoveryResult,
    SelectionResult,
    EpochSummary,
)

from erpscope.events import (
    StructureDetector,
    FieldDiscoveryEngine,
    UniversalParser,
    ConditionSelector,
    AIFieldClassifier,
    FunctionLLMProvider,
)
from erpscope.epoching import EpochingEngine
from erpscope.quality import RecordingQualityChecker
from erpscope.pipeline import ERPAnalysisPipeline, AnalysisResult

from erpscope.utils import (
    setup_logging,
    get_logger,
    DiagnosticReport,
)

__all__ = [
    # Modules
    'core',
    'utils',

    # Configuration
    'get_config',
    'load_config',
    'ConfigManager',

    # Registry
    'get_registry',
    'ComponentRegistry',

    # Types
    'RawEvent',
    'EEGData',
    'EventFormat',
    'DiscoveryResult',
    'SelectionResult',
    'EpochSummary',

    # Analysis
    'StructureDetector',
    'FieldDiscoveryEngine',
    'UniversalParser',
    'ConditionSelector',
    'AIFieldClassifier',
    'FunctionLLMProvider',
    'EpochingEngine',
    'RecordingQualityChecker',
    'ERPAnalysisPipeline',
    'AnalysisResult',

    # Logging and diagnostics
    'setup_logging',
    'get_logger',
    'DiagnosticReport',

    # Version
    '__version__',
]
