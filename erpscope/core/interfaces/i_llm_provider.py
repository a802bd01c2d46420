"""
ILLMProvider Interface
======================

This module defines the abstract interface for the optional AI collaborator
used by the Field Discovery Engine.

The provider is responsible for one thing: turning a prompt into text. The
AI field classifier (erpscope.events.ai_classifier) builds the prompt from
the discovered field statistics, calls the provider on a worker thread with
a timeout, and validates whatever comes back. A provider may be a local
model, a remote API client, or a plain function in tests.

Design Principles:
-----------------
- Provider-agnostic interface (swap backends without code changes)
- The core treats every provider as slow and fallible
- No provider is required; heuristics alone are a complete analysis

Example Usage:
    ```python
    class MyApiProvider(ILLMProvider):
        ...

    provider = MyApiProvider()
    provider.initialize({'api_key': key, 'max_tokens': 4096})

    classifier = AIFieldClassifier(provider)
    ```

Author: EEG-ERP Analysis Team
Date: 2024
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional, Any


class ILLMProvider(ABC):
    """
    Prompt in, text out.

    Implementations may block; the caller bounds every generate() call with
    its own timeout and treats exceptions as "no suggestion".
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider kind, one of the LLMProviderType values for the built-ins."""

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Model identifier shown in logs."""

    @property
    @abstractmethod
    def is_loaded(self) -> bool:
        """True once generate() can be called."""

    @abstractmethod
    def initialize(self, config: Dict[str, Any]) -> None:
        """
        Apply provider settings (model, credentials, defaults for
        max_tokens / temperature).

        Raises:
            LLMNotLoadedError: If the backend cannot be reached
        """

    @abstractmethod
    def generate(self,
                 prompt: str,
                 max_tokens: Optional[int] = None,
                 temperature: Optional[float] = None,
                 **kwargs) -> str:
        """
        Complete a prompt.

        Args:
            prompt: Full prompt text
            max_tokens: Output limit for this call
            temperature: Sampling temperature for this call
            **kwargs: Backend-specific options

        Returns:
            str: The reply text

        Raises:
            LLMNotLoadedError: If called before the provider is ready
            GenerationError: If the backend fails
        """

    def get_params(self) -> Dict[str, Any]:
        return {'name': self.name, 'model_name': self.model_name}

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(name='{self.name}', "
            f"model='{self.model_name}', loaded={self.is_loaded})"
        )


class LLMProviderType:
    """Names under which providers are registered."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    LOCAL = "local"
    FUNCTION = "function"
