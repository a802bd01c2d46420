"""
Core Interfaces Module
======================

This module exports the abstract interfaces of the ERP analysis engine.

Available Interfaces:
--------------------
- IFieldExtractor: Per-encoding event field extraction strategy
- ILLMProvider: Optional AI collaborator for field classification

Example Usage:
    ```python
    from erpscope.core.interfaces import IFieldExtractor

    class MyExtractor(IFieldExtractor):
        # Implement name and extract()
        ...

    registry.register('field_extractor', 'custom', MyExtractor)
    ```

Author: EEG-ERP Analysis Team
Date: 2024
"""

from erpscope.core.interfaces.i_field_extractor import IFieldExtractor
from erpscope.core.interfaces.i_llm_provider import ILLMProvider, LLMProviderType

__all__ = [
    'IFieldExtractor',
    'ILLMProvider',
    'LLMProviderType',
]
