"""
Configuration Manager
=====================

Central configuration for erpscope.

Every threshold the event-structure engine relies on (cardinality cut-offs,
grouping-field cap, priority threshold, AI timeout, artifact threshold) is a
configuration value with a documented default, so it can be tuned for an
experimental design that differs from the one the defaults were chosen on.

Precedence (lowest first):
-------------------------
1. DEFAULT_CONFIG below
2. Files loaded with `load()` (YAML or JSON), deep-merged
3. Runtime `set()` calls
4. The `config` dict handed to a single component (see `resolve_section`)

Example Usage:
    ```python
    from erpscope.core.config import get_config, resolve_section

    config = get_config().load('configs/default.yaml')
    config.set('epoching.time_window', [-0.1, 0.6])

    # What a FieldDiscoveryEngine({'max_grouping_fields': 2}) sees
    discovery_cfg = resolve_section('discovery', {'max_grouping_fields': 2})
    ```

Author: EEG-ERP Analysis Team
Date: 2024
"""

from typing import Dict, List, Optional, Any, Union, Callable, Tuple
from pathlib import Path
from copy import deepcopy
import json
import logging
import threading

import yaml

from erpscope.core.exceptions import ConfigNotFoundError, ConfigValidationError

logger = logging.getLogger(__name__)


DEFAULT_CONFIG: Dict[str, Any] = {
    # Structure Detector
    'structure': {
        'sample_size': 100,
        'simple_max_length': 10,
        'min_attributes': 1,
        'pattern_min_confidence': 0.3,
        'pattern_keywords': ['EVNT', 'TRSP', 'STIM', 'Stimulus', 'Trigger', 'DIN', 'Event'],
    },

    # Field Discovery Engine
    'discovery': {
        'sample_size': 500,
        'condition_max_cardinality': 0.3,
        'trial_min_cardinality': 0.7,
        'condition_min_unique': 2,
        'condition_max_unique': 20,
        'trial_max_unique': 50,
        'override_max_cardinality': 0.5,
        'max_grouping_fields': 3,
        'high_priority_threshold': 120,
        'n_sample_values': 5,
        'default_practice_patterns': [
            'Prac', 'PracSlow', 'Practice', 'Training', 'practice', 'training',
            'a_Practice', 's_Practice', 'w_Practice', 's1_Practice',
            '1_Practice', '2_Practice', '3_Practice',
        ],
    },

    # AI collaborator: 'auto' asks only when the heuristics are unsure
    'ai': {
        'mode': 'auto',
        'timeout_sec': 30.0,
        'min_confidence': 0.7,
        'max_tokens': 4096,
        'temperature': 0.3,
        'n_event_samples': 30,
    },

    # Selector / Grouper
    'selection': {
        'separator': '_',
        'exclude_practice': True,
        'catch_all_label': 'all_events',
        'low_count_threshold': 10,
    },

    # Epoching & Averaging Engine
    'epoching': {
        'time_window': [-0.2, 0.8],
        'baseline_correction': True,
        'artifact_threshold_uv': 100.0,
        'n_jobs': 1,
    },

    'quality': {
        'line_freq': 50.0,
        'artifact_threshold_uv': 100.0,
        'flatline_threshold_uv': 0.5,
    },

    'logging': {
        'level': 'INFO',
        'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        'file': None,
    },
}

_YAML_SUFFIXES = ('.yaml', '.yml')


def _read_file(path: Path) -> Dict[str, Any]:
    suffix = path.suffix.lower()
    with open(path, 'r', encoding='utf-8') as f:
        if suffix in _YAML_SUFFIXES:
            return yaml.safe_load(f) or {}
        if suffix == '.json':
            return json.load(f)
    raise ValueError(f"Unsupported config format: {path.suffix}")


def _write_file(path: Path, data: Dict[str, Any]) -> None:
    suffix = path.suffix.lower()
    if suffix not in _YAML_SUFFIXES and suffix != '.json':
        raise ValueError(f"Unsupported config format: {path.suffix}")
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        if suffix == '.json':
            json.dump(data, f, indent=2)
        else:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)


class ConfigManager:
    """
    Process-wide configuration (singleton).

    `ConfigManager()` always returns the same instance; `reset()` drops it so
    the next access starts again from DEFAULT_CONFIG (used by the tests).
    """

    _instance: Optional['ConfigManager'] = None
    _lock = threading.Lock()

    def __new__(cls) -> 'ConfigManager':
        with cls._lock:
            if cls._instance is None:
                instance = super().__new__(cls)
                instance._values = deepcopy(DEFAULT_CONFIG)
                instance._sources = {}
                instance._files = []
                cls._instance = instance
                logger.debug("ConfigManager created with defaults")
        return cls._instance

    @classmethod
    def get_instance(cls) -> 'ConfigManager':
        return cls()

    @classmethod
    def reset(cls) -> None:
        """Forget all loaded files and runtime changes."""
        with cls._lock:
            cls._instance = None
        logger.debug("ConfigManager reset")

    # =========================================================================
    # FILES
    # =========================================================================

    def load(self, path: Union[str, Path], merge: bool = True) -> 'ConfigManager':
        """
        Load a YAML or JSON file.

        Args:
            path: Configuration file
            merge: Deep-merge into the current values (default) instead of
                replacing them

        Returns:
            Self, for chaining

        Raises:
            ConfigNotFoundError: If the file does not exist
            ValueError: If the suffix is not .yaml, .yml or .json
        """
        path = Path(path)
        if not path.is_file():
            raise ConfigNotFoundError(str(path))

        data = _read_file(path)
        if not merge:
            self._values = {}
            self._sources = {}
        self._merge(self._values, data, str(path))

        self._files.append(str(path))
        logger.info(f"Loaded configuration from {path}")
        return self

    def _merge(self, target: Dict[str, Any], data: Dict[str, Any], source: str,
               prefix: str = '') -> None:
        for key, value in data.items():
            dotted = f"{prefix}{key}"
            if isinstance(value, dict) and isinstance(target.get(key), dict):
                self._merge(target[key], value, source, dotted + '.')
            else:
                target[key] = deepcopy(value)
                self._sources[dotted] = source

    def save(self, path: Union[str, Path], sections: Optional[List[str]] = None) -> None:
        """Write the current values (or only some sections) to YAML or JSON."""
        data = {s: self.get_section(s) for s in sections} if sections else deepcopy(self._values)
        _write_file(Path(path), data)
        logger.info(f"Saved configuration to {path}")

    # =========================================================================
    # ACCESS
    # =========================================================================

    def get(self, key: str, default: Any = None) -> Any:
        """
        Dot-notation lookup.

        Example:
            >>> get_config().get('discovery.max_grouping_fields')
            3
        """
        node: Any = self._values
        for part in key.split('.'):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def get_int(self, key: str, default: int = 0) -> int:
        value = self.get(key)
        return default if value is None else int(value)

    def get_float(self, key: str, default: float = 0.0) -> float:
        value = self.get(key)
        return default if value is None else float(value)

    def get_bool(self, key: str, default: bool = False) -> bool:
        """Booleans, with 'true'/'yes'/'1'/'on' strings accepted."""
        value = self.get(key)
        if value is None:
            return default
        if isinstance(value, str):
            return value.strip().lower() in ('true', 'yes', '1', 'on')
        return bool(value)

    def get_list(self, key: str, default: Optional[List] = None) -> List:
        """The value as a list; scalars are wrapped."""
        value = self.get(key)
        if value is None:
            return list(default or [])
        return value if isinstance(value, list) else [value]

    def get_section(self, key: str) -> Dict[str, Any]:
        """A deep copy of one section ({} if missing)."""
        value = self.get(key)
        return deepcopy(value) if isinstance(value, dict) else {}

    def get_source(self, key: str) -> str:
        """File (or 'runtime') a dotted key was last set from; 'default' otherwise."""
        return self._sources.get(key, 'default')

    def set(self, key: str, value: Any, source: str = 'runtime') -> 'ConfigManager':
        """
        Set one value by dotted key, creating sections as needed.

        Example:
            >>> get_config().set('discovery.high_priority_threshold', 130)
        """
        *parents, leaf = key.split('.')
        node = self._values
        for part in parents:
            node = node.setdefault(part, {})
        node[leaf] = value
        self._sources[key] = source
        logger.debug(f"Set {key} = {value!r}")
        return self

    # =========================================================================
    # VALIDATION
    # =========================================================================

    def validate(self) -> List[str]:
        """
        Check the thresholds for consistency.

        Returns:
            One message per problem, each starting with the offending key
        """
        return [f"{key} {message}" for key, message in self._problems()]

    def _problems(self) -> List[Tuple[str, str]]:
        problems = []
        for key, check, message in _RULES:
            value = self.get(key)
            try:
                ok = check(value)
            except (TypeError, ValueError, IndexError):
                ok = False
            if not ok:
                problems.append((key, f"{message}, got {value!r}"))

        cond_max = self.get('discovery.condition_max_cardinality')
        trial_min = self.get('discovery.trial_min_cardinality')
        if _is_fraction(cond_max) and _is_fraction(trial_min) and cond_max > trial_min:
            problems.append((
                'discovery.condition_max_cardinality',
                "must not exceed discovery.trial_min_cardinality"
            ))
        return problems

    def assert_valid(self) -> None:
        """
        Raises:
            ConfigValidationError: For the first inconsistent value
        """
        problems = self._problems()
        if problems:
            key, message = problems[0]
            raise ConfigValidationError(key, message, repr(self.get(key)))

    def summary(self) -> str:
        lines = [
            "Configuration",
            "=" * 40,
            f"Files: {', '.join(self._files) or '(defaults only)'}",
            f"Cardinality cut-offs: {self.get('discovery.condition_max_cardinality')} / "
            f"{self.get('discovery.trial_min_cardinality')}",
            f"Grouping-field cap: {self.get('discovery.max_grouping_fields')}",
            f"AI mode: {self.get('ai.mode')}",
            f"Epoch window: {self.get('epoching.time_window')}",
        ]
        return "\n".join(lines)

    def __contains__(self, key: str) -> bool:
        """'discovery.sample_size' in config"""
        return self.get(key) is not None

    def __repr__(self) -> str:
        return f"ConfigManager(files={self._files})"


def _is_fraction(value: Any) -> bool:
    return isinstance(value, (int, float)) and 0 <= value <= 1


_RULES: List[Tuple[str, Callable[[Any], bool], str]] = [
    ('discovery.condition_max_cardinality', _is_fraction, "must be within [0, 1]"),
    ('discovery.trial_min_cardinality', _is_fraction, "must be within [0, 1]"),
    ('discovery.max_grouping_fields', lambda v: int(v) >= 1, "must be >= 1"),
    ('ai.mode', lambda v: v in ('auto', 'always', 'never'), "must be auto, always or never"),
    ('epoching.time_window', lambda v: len(v) == 2 and v[0] < v[1],
     "must be [start, end] with start < end"),
]


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def get_config() -> ConfigManager:
    """The process-wide ConfigManager."""
    return ConfigManager.get_instance()


def load_config(path: Union[str, Path]) -> ConfigManager:
    """Load a file into the process-wide ConfigManager."""
    return get_config().load(path)


def resolve_section(section: str,
                    overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Layer per-component overrides over a global configuration section.

    Args:
        section: Section name (e.g., 'discovery')
        overrides: Values that take precedence for this component only

    Returns:
        Merged configuration dictionary
    """
    merged = get_config().get_section(section)
    if overrides:
        merged.update(overrides)
    return merged
