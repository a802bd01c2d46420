"""
Custom Exceptions
=================

This module defines all custom exceptions for the ERP analysis engine.

Exception Hierarchy:
-------------------
ERPScopeError (Base)
├── EventError
│   ├── EventFormatError
│   └── InvalidOverrideError
├── EpochingError
│   ├── InvalidTimeWindowError
│   └── SignalShapeError
├── LLMError
│   ├── LLMNotLoadedError
│   ├── GenerationError
│   └── AIResponseError
├── ConfigurationError
│   ├── ConfigNotFoundError
│   └── ConfigValidationError
└── ComponentError
    ├── ComponentNotFoundError
    └── RegistrationError

Recoverable conditions (a malformed single event, a stream with no detectable
structure, an out-of-bounds epoch window, a failed AI call) are never raised;
they are logged and recorded on a DiagnosticReport. The exceptions below are
reserved for caller mistakes.

Example Usage:
    ```python
    from erpscope.core.exceptions import InvalidTimeWindowError

    try:
        summaries = engine.epoch(recording, events, groups, (0.5, 0.1))
    except InvalidTimeWindowError as e:
        logger.error(f"Bad window: {e}")
    ```

Author: EEG-ERP Analysis Team
Date: 2024
"""


# =============================================================================
# BASE EXCEPTION
# =============================================================================

class ERPScopeError(Exception):
    """
    Base exception for all erpscope errors.

    Provides consistent error message formatting.

    Attributes:
        message: Error message
        details: Additional error details
        suggestion: Suggestion for fixing the error
    """

    def __init__(self,
                 message: str,
                 details: str = '',
                 suggestion: str = ''):
        self.message = message
        self.details = details
        self.suggestion = suggestion

        full_message = message
        if details:
            full_message += f"\nDetails: {details}"
        if suggestion:
            full_message += f"\nSuggestion: {suggestion}"

        super().__init__(full_message)


# =============================================================================
# EVENT ERRORS
# =============================================================================

class EventError(ERPScopeError):
    """Base exception for event-structure errors."""
    pass


class EventFormatError(EventError):
    """Raised when an unsupported event format is requested."""

    def __init__(self,
                 requested: str,
                 available: list = None):
        message = f"Unsupported event format '{requested}'"
        details = f"Available formats: {available}" if available else ""
        suggestion = "Use one of the EventFormat values."

        super().__init__(message, details, suggestion)
        self.requested = requested
        self.available = available


class InvalidOverrideError(EventError):
    """Raised (strict mode only) when grouping-field overrides are unknown."""

    def __init__(self,
                 rejected: list,
                 available: list = None):
        message = f"Grouping-field override(s) not found: {rejected}"
        details = f"Discovered fields: {available}" if available else ""
        suggestion = "Check the field names against the discovery table."

        super().__init__(message, details, suggestion)
        self.rejected = list(rejected)
        self.available = list(available or [])


# =============================================================================
# EPOCHING ERRORS
# =============================================================================

class EpochingError(ERPScopeError):
    """Base exception for epoching errors."""
    pass


class InvalidTimeWindowError(EpochingError):
    """Raised when an epoch time window is invalid."""

    def __init__(self,
                 t_start: float,
                 t_end: float,
                 reason: str = ''):
        message = f"Invalid epoch window [{t_start}, {t_end}]"
        details = reason or "tStart must be strictly less than tEnd."
        suggestion = "Use a window such as (-0.2, 0.8) seconds."

        super().__init__(message, details, suggestion)
        self.t_start = t_start
        self.t_end = t_end


class SignalShapeError(EpochingError):
    """Raised when the cleaned signal cannot be epoched."""

    def __init__(self,
                 reason: str,
                 shape: tuple = None):
        message = "Invalid signal for epoching"
        details = reason
        if shape is not None:
            details += f" (shape={shape})"
        suggestion = "Pass a 2D (channels, samples) array with a positive sampling rate."

        super().__init__(message, details, suggestion)


# =============================================================================
# LLM ERRORS
# =============================================================================

class LLMError(ERPScopeError):
    """Base exception for LLM-related errors."""
    pass


class LLMNotLoadedError(LLMError):
    """Raised when an LLM provider is used before initialization."""

    def __init__(self, provider: str = 'LLM'):
        message = f"{provider} provider has not been initialized"
        details = "The provider must be initialized before generating text."
        suggestion = "Call initialize() with the provider configuration."

        super().__init__(message, details, suggestion)


class GenerationError(LLMError):
    """Raised when text generation fails."""

    def __init__(self,
                 reason: str = '',
                 prompt_length: int = None):
        message = "Text generation failed"
        details = reason
        if prompt_length:
            details += f" (Prompt length: {prompt_length} characters)"
        suggestion = "Check provider availability and generation parameters."

        super().__init__(message, details, suggestion)


class AIResponseError(LLMError):
    """Raised when an AI classification reply cannot be used."""

    def __init__(self,
                 reason: str,
                 raw_response: str = ''):
        message = "AI classification response rejected"
        details = reason
        suggestion = "The heuristic classification is used instead."

        super().__init__(message, details, suggestion)
        self.raw_response = raw_response


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================

class ConfigurationError(ERPScopeError):
    """Base exception for configuration errors."""
    pass


class ConfigNotFoundError(ConfigurationError):
    """Raised when configuration file is not found."""

    def __init__(self, path: str):
        message = f"Configuration file not found: '{path}'"
        details = "The specified configuration file does not exist."
        suggestion = "Check the file path or create the configuration file."

        super().__init__(message, details, suggestion)
        self.path = path


class ConfigValidationError(ConfigurationError):
    """Raised when configuration validation fails."""

    def __init__(self,
                 key: str,
                 expected: str,
                 actual: str = ''):
        message = f"Invalid configuration value for '{key}'"
        details = f"Expected: {expected}"
        if actual:
            details += f", Got: {actual}"
        suggestion = "Update the configuration with a valid value."

        super().__init__(message, details, suggestion)
        self.key = key


# =============================================================================
# COMPONENT ERRORS
# =============================================================================

class ComponentError(ERPScopeError):
    """Base exception for component registry errors."""
    pass


class ComponentNotFoundError(ComponentError):
    """Raised when a component is not found in registry."""

    def __init__(self,
                 category: str,
                 name: str,
                 available: list = None):
        message = f"Component '{name}' not found in category '{category}'"
        details = f"Available components: {available}" if available else ""
        suggestion = "Register the component or use an existing one."

        super().__init__(message, details, suggestion)
        self.category = category
        self.name = name
        self.available = available


class RegistrationError(ComponentError):
    """Raised when component registration fails."""

    def __init__(self,
                 category: str,
                 name: str,
                 reason: str = ''):
        message = f"Failed to register component '{name}' in '{category}'"
        details = reason
        suggestion = "Check component class and registration parameters."

        super().__init__(message, details, suggestion)


# =============================================================================
# EXPORTS
# =============================================================================

__all__ = [
    # Base
    'ERPScopeError',

    # Events
    'EventError',
    'EventFormatError',
    'InvalidOverrideError',

    # Epoching
    'EpochingError',
    'InvalidTimeWindowError',
    'SignalShapeError',

    # LLM
    'LLMError',
    'LLMNotLoadedError',
    'GenerationError',
    'AIResponseError',

    # Configuration
    'ConfigurationError',
    'ConfigNotFoundError',
    'ConfigValidationError',

    # Component
    'ComponentError',
    'ComponentNotFoundError',
    'RegistrationError',
]
