"""
Component Registry
==================

Pluggable components of erpscope, looked up by category and name.

The Field Discovery Engine and the Universal Parser both ask the registry
for the field extractor of the detected encoding (name = EventFormat value),
so a lab with its own marker convention can register an extractor under an
existing format name, or under a new name, without touching either stage.

Categories:
----------
- field_extractor: IFieldExtractor classes (bracket, fields, delimiter,
  simple, unknown)
- llm_provider: ILLMProvider classes or factories for the AI collaborator

Built-ins are registered the first time a missing name is requested, so a
custom component registered beforehand under the same name takes precedence.

Example Usage:
    ```python
    from erpscope.core.registry import get_registry

    registry = get_registry()
    registry.register('field_extractor', 'pipe', PipeExtractor)

    extractor = registry.create('field_extractor', 'bracket')
    print(registry.list('field_extractor'))
    ```

Author: EEG-ERP Analysis Team
Date: 2024
"""

from typing import Dict, List, Optional, Any, Type, Callable, Union
from dataclasses import dataclass, field
import logging
import threading

from erpscope.core.exceptions import ComponentNotFoundError, RegistrationError

logger = logging.getLogger(__name__)

CATEGORIES = ('field_extractor', 'llm_provider')


@dataclass
class _Entry:
    """One registration: a class, a factory(config, **kwargs) or a ready instance."""
    component: Any
    kind: str
    metadata: Dict[str, Any] = field(default_factory=dict)


class ComponentRegistry:
    """
    Process-wide component registry (singleton).

    A registered class is instantiated with the keyword arguments given to
    create() and then initialize(config)'d; a factory is called as
    factory(config, **kwargs); anything else is returned as is.
    """

    _instance: Optional['ComponentRegistry'] = None
    _lock = threading.Lock()

    def __new__(cls) -> 'ComponentRegistry':
        with cls._lock:
            if cls._instance is None:
                instance = super().__new__(cls)
                instance._entries = {category: {} for category in CATEGORIES}
                instance._defaults_registered = False
                cls._instance = instance
        return cls._instance

    @classmethod
    def get_instance(cls) -> 'ComponentRegistry':
        return cls()

    @classmethod
    def reset(cls) -> None:
        """Drop every registration; built-ins come back on the next create()."""
        with cls._lock:
            cls._instance = None
        logger.debug("ComponentRegistry reset")

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def _category(self, category: str, name: str) -> Dict[str, _Entry]:
        if category not in self._entries:
            raise RegistrationError(
                category, name, f"Invalid category. Valid categories: {list(CATEGORIES)}"
            )
        return self._entries[category]

    def register(self,
                 category: str,
                 name: str,
                 component: Union[Type, Any],
                 metadata: Optional[Dict[str, Any]] = None,
                 overwrite: bool = False) -> 'ComponentRegistry':
        """
        Register a class or an instance.

        Args:
            category: One of CATEGORIES
            name: Name within the category (for extractors, the format value)
            component: Class to instantiate, or an instance to hand out
            metadata: Optional description etc.
            overwrite: Replace an existing registration

        Returns:
            Self for method chaining

        Raises:
            RegistrationError: Unknown category, or name taken without overwrite
        """
        entries = self._category(category, name)
        if name in entries and not overwrite:
            raise RegistrationError(category, name, "Already registered. Use overwrite=True to replace.")

        kind = 'class' if isinstance(component, type) else 'instance'
        entries[name] = _Entry(component, kind, {
            'name': name,
            'category': category,
            'type': kind,
            'class_name': getattr(component, '__name__', type(component).__name__),
            **(metadata or {})
        })
        logger.debug(f"Registered {category}/{name} ({kind})")
        return self

    def register_factory(self,
                         category: str,
                         name: str,
                         factory: Callable[..., Any],
                         metadata: Optional[Dict[str, Any]] = None) -> 'ComponentRegistry':
        """Register factory(config, **kwargs) under a name, replacing any entry."""
        self._category(category, name)[name] = _Entry(factory, 'factory', {
            'name': name, 'category': category, 'type': 'factory', **(metadata or {})
        })
        logger.debug(f"Registered factory {category}/{name}")
        return self

    def unregister(self, category: str, name: str) -> 'ComponentRegistry':
        if self._entries.get(category, {}).pop(name, None) is not None:
            logger.debug(f"Unregistered {category}/{name}")
        return self

    def register_defaults(self) -> 'ComponentRegistry':
        """Register the built-in extractors and providers under free names."""
        from erpscope.events.extractors import DEFAULT_EXTRACTORS
        from erpscope.events.ai_classifier import FunctionLLMProvider

        for name, (cls, description) in DEFAULT_EXTRACTORS.items():
            if not self.has('field_extractor', name):
                self.register('field_extractor', name, cls, {'description': description})

        if not self.has('llm_provider', 'function'):
            self.register_factory(
                'llm_provider', 'function',
                lambda config, **kwargs: FunctionLLMProvider(config=config, **kwargs),
                {'description': 'Wraps a plain callable prompt -> text'}
            )

        self._defaults_registered = True
        return self

    # =========================================================================
    # CREATION AND LOOKUP
    # =========================================================================

    def create(self,
               category: str,
               name: str,
               config: Optional[Dict[str, Any]] = None,
               **kwargs) -> Any:
        """
        Build a component.

        Args:
            category: Component category
            name: Component name
            config: Passed to initialize() (classes) or the factory
            **kwargs: Constructor / factory keyword arguments

        Returns:
            Component instance

        Raises:
            ComponentNotFoundError: If nothing is registered under the name
            RegistrationError: If construction fails

        Example:
            >>> extractor = get_registry().create('field_extractor', 'delimiter')
        """
        if not self.has(category, name) and not self._defaults_registered:
            self.register_defaults()
        entry = self._lookup(category, name)

        try:
            if entry.kind == 'factory':
                instance = entry.component(config or {}, **kwargs)
            elif entry.kind == 'class':
                instance = entry.component(**kwargs)
                if config and hasattr(instance, 'initialize'):
                    instance.initialize(config)
            else:
                instance = entry.component
        except (TypeError, ValueError) as e:
            raise RegistrationError(category, name, f"Instantiation failed: {e}") from e

        logger.debug(f"Created {category}/{name}")
        return instance

    def _lookup(self, category: str, name: str) -> _Entry:
        entry = self._entries.get(category, {}).get(name)
        if entry is None:
            raise ComponentNotFoundError(category, name, self.list(category))
        return entry

    def get(self, category: str, name: str) -> Any:
        """The registered class, factory or instance (not a new instance)."""
        return self._lookup(category, name).component

    def has(self, category: str, name: str) -> bool:
        return name in self._entries.get(category, {})

    def list(self, category: Optional[str] = None) -> Union[List[str], Dict[str, List[str]]]:
        """Names in one category, or {category: names} for all non-empty ones."""
        if category:
            return list(self._entries.get(category, {}))
        return {cat: list(entries) for cat, entries in self._entries.items() if entries}

    def get_metadata(self, category: str, name: str) -> Dict[str, Any]:
        entry = self._entries.get(category, {}).get(name)
        return dict(entry.metadata) if entry else {}

    def get_categories(self) -> List[str]:
        return list(CATEGORIES)

    def summary(self) -> str:
        lines = ["Component Registry", "=" * 40]
        for category, entries in self._entries.items():
            if not entries:
                continue
            lines.append(f"\n{category}:")
            for name in sorted(entries):
                description = entries[name].metadata.get('description', '')
                lines.append(f"  - {name}: {description[:50]}")
        return "\n".join(lines)

    def __repr__(self) -> str:
        total = sum(len(e) for e in self._entries.values())
        return f"ComponentRegistry(components={total})"


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def get_registry() -> ComponentRegistry:
    """The process-wide ComponentRegistry."""
    return ComponentRegistry.get_instance()


def register(category: str, name: str, component: Union[Type, Any], **kwargs) -> None:
    """Register a component with the global registry."""
    get_registry().register(category, name, component, **kwargs)


def create(category: str, name: str, config: Optional[Dict[str, Any]] = None, **kwargs) -> Any:
    """Create a component from the global registry."""
    return get_registry().create(category, name, config, **kwargs)


def registered(category: str,
               name: Optional[str] = None,
               metadata: Optional[Dict[str, Any]] = None):
    """
    Class decorator registering the class (name defaults to the lowercased
    class name).

    Example:
        >>> @registered('field_extractor', 'pipe')
        ... class PipeExtractor(IFieldExtractor):
        ...     ...
    """
    def decorator(cls):
        get_registry().register(category, name or cls.__name__.lower(), cls, metadata)
        return cls

    return decorator
