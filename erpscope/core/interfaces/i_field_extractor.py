"""
IFieldExtractor Interface
=========================

This module defines the abstract interface for per-encoding field extractors.

A field extractor turns one raw event into an ordered mapping of field name
to string value. There is one implementation per event encoding:

- bracket:   '[code: G23, word: y]'        -> {'code': 'G23', 'word': 'y'}
- fields:    attributes from the importer  -> {'cond': 'A', 'obs': '3'}
- delimiter: 'Stim_A_12'                   -> {'field1': 'Stim', 'field2': 'A', ...}
- simple:    'DIN1'                        -> {'type': 'DIN1'}

The extractor for a run is chosen once from the detected structure and
reused for every event, by the Field Discovery Engine and the Universal
Parser alike, so both always see the same fields.

Example Usage:
    ```python
    from erpscope.core.registry import get_registry

    extractor = get_registry().create('field_extractor', 'bracket')
    fields = extractor.extract(event)
    ```

Author: EEG-ERP Analysis Team
Date: 2024
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional, Any

from erpscope.core.types.events import RawEvent


class IFieldExtractor(ABC):
    """
    Abstract interface for event field extractors.

    Implementations must never raise on a malformed event; an event that
    carries no fields under this encoding yields an empty dict.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self._config: Dict[str, Any] = dict(config or {})

    @property
    @abstractmethod
    def name(self) -> str:
        """
        Encoding handled by this extractor.

        Returns:
            str: An EventFormat value (e.g., "bracket")
        """
        pass

    @abstractmethod
    def extract(self, event: RawEvent) -> Dict[str, str]:
        """
        Extract the fields embedded in one event.

        Args:
            event: Raw event

        Returns:
            Dict[str, str]: Field name -> value, in encounter order
        """
        pass

    def initialize(self, config: Dict[str, Any]) -> None:
        """Update extractor parameters."""
        self._config.update(config)

    def matches(self, event: RawEvent) -> bool:
        """Whether the event carries this encoding."""
        return bool(self.extract(event))

    def get_params(self) -> Dict[str, Any]:
        """Get extractor parameters."""
        return dict(self._config)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}')"
