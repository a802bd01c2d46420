"""
Core Module
===========

This is the core module of erpscope, containing:
- Abstract interfaces (field extractors, LLM providers)
- Data types for events, discovery results and ERP summaries
- Configuration management
- Component registry for plugin architecture
- Custom exceptions

Quick Start:
-----------
```python
from erpscope.core import (
    # Data Types
    RawEvent, EEGData, EventFormat,

    # Configuration
    ConfigManager, get_config,

    # Registry
    ComponentRegistry, get_registry,

    # Exceptions
    InvalidTimeWindowError, InvalidOverrideError
)

# Get configuration
config = get_config()
print(config.get('discovery.max_grouping_fields'))  # 3

# Get a field extractor from the registry
registry = get_registry()
extractor = registry.create('field_extractor', 'bracket')
```

Author: EEG-ERP Analysis Team
Date: 2024
"""

# =============================================================================
# Interfaces
# =============================================================================
from erpscope.core.interfaces import (
    IFieldExtractor,
    ILLMProvider,
    LLMProviderType,
)

# =============================================================================
# Data Types
# =============================================================================
from erpscope.core.types import (
    RawEvent,
    EventFormat,
    DetectedStructure,
    FieldClass,
    FieldStatistic,
    DiscoveryResult,
    ConditionGroup,
    SelectionResult,
    ChannelLocation,
    EEGData,
    EpochMetrics,
    EpochSummary
)

# =============================================================================
# Configuration & Registry
# =============================================================================
from erpscope.core.config import (
    ConfigManager,
    get_config,
    load_config,
    resolve_section
)

from erpscope.core.registry import (
    ComponentRegistry,
    get_registry,
    register,
    create,
    registered
)

# =============================================================================
# Exceptions
# =============================================================================
from erpscope.core.exceptions import (
    # Base
    ERPScopeError,

    # Events
    EventError,
    EventFormatError,
    InvalidOverrideError,

    # Epoching
    EpochingError,
    InvalidTimeWindowError,
    SignalShapeError,

    # LLM
    LLMError,
    LLMNotLoadedError,
    GenerationError,
    AIResponseError,

    # Configuration
    ConfigurationError,
    ConfigNotFoundError,
    ConfigValidationError,

    # Component
    ComponentError,
    ComponentNotFoundError,
    RegistrationError,
)

# =============================================================================
# Module Exports
# =============================================================================
__all__ = [
    # Interfaces
    'IFieldExtractor',
    'ILLMProvider',
    'LLMProviderType',

    # Data Types
    'RawEvent',
    'EventFormat',
    'DetectedStructure',
    'FieldClass',
    'FieldStatistic',
    'DiscoveryResult',
    'ConditionGroup',
    'SelectionResult',
    'ChannelLocation',
    'EEGData',
    'EpochMetrics',
    'EpochSummary',

    # Configuration
    'ConfigManager',
    'get_config',
    'load_config',
    'resolve_section',

    # Registry
    'ComponentRegistry',
    'get_registry',
    'register',
    'create',
    'registered',

    # All Exceptions
    'ERPScopeError',
    'EventError',
    'EventFormatError',
    'InvalidOverrideError',
    'EpochingError',
    'InvalidTimeWindowError',
    'SignalShapeError',
    'LLMError',
    'LLMNotLoadedError',
    'GenerationError',
    'AIResponseError',
    'ConfigurationError',
    'ConfigNotFoundError',
    'ConfigValidationError',
    'ComponentError',
    'ComponentNotFoundError',
    'RegistrationError',
]
