"""
AI Field Classifier
===================

Optional AI collaborator for the Field Discovery Engine.

The classifier serialises the discovered field statistics, the detected
structure and a few raw sample events into a prompt, sends it to an
ILLMProvider on a worker thread bounded by `ai.timeout_sec`, and validates
the JSON reply. Every failure (provider not ready, exception, timeout,
malformed or inconsistent reply) is logged and reported, and the caller
keeps its heuristic classification: `suggest()` never raises.

Expected Reply:
--------------
    {
        "grouping_fields": ["code", "word"],
        "exclude_fields": ["obs", "rt"],
        "field_classifications": {"code": "condition", "obs": "trial-specific"},
        "practice_patterns": ["Prac"],
        "value_mappings": {"word": {"y": "word", "n": "nonword"}},
        "confidence": 0.9,
        "reasoning": "..."
    }

The first three keys are required. A reply naming a field that was not
discovered is rejected as a whole.

Example Usage:
    ```python
    from erpscope.events.ai_classifier import AIFieldClassifier, FunctionLLMProvider

    provider = FunctionLLMProvider(fn=my_model_call)
    engine = FieldDiscoveryEngine(ai_classifier=AIFieldClassifier(provider))
    discovery = engine.discover(events, structure)
    print(discovery.method, discovery.ai_reasoning)
    ```

Author: EEG-ERP Analysis Team
Date: 2024
"""

from typing import Dict, List, Optional, Any, Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from dataclasses import dataclass, field
import json
import logging
import re

from erpscope.core.config import resolve_section
from erpscope.core.exceptions import (
    LLMError, LLMNotLoadedError, GenerationError, AIResponseError
)
from erpscope.core.interfaces.i_llm_provider import ILLMProvider, LLMProviderType
from erpscope.core.types.events import (
    RawEvent, DetectedStructure, DiscoveryResult, FieldClass
)
from erpscope.utils.diagnostics import DiagnosticReport

logger = logging.getLogger(__name__)

REQUIRED_KEYS = ('grouping_fields', 'exclude_fields', 'field_classifications')

_FENCE_OPEN_RE = re.compile(r'^```\w*\s*')
_FENCE_CLOSE_RE = re.compile(r'\s*```$')

PROMPT_TEMPLATE = """You are an expert EEG data analyst. Classify the fields embedded in the event markers of an EEG recording.

Each field is one of:
- condition: shared by many trials, encodes an experimental manipulation (group by it)
- trial-specific: nearly unique per trial, e.g. trial number or reaction time (exclude)
- metadata: import or device bookkeeping (exclude)
- optional: neither clearly

Choose at most {max_grouping_fields} grouping fields; crossing more fields fragments the averages.

DETECTED STRUCTURE
{structure}

FIELD STATISTICS
{field_table}

SAMPLE EVENTS (JSON)
{samples}

Respond ONLY with a JSON object with these keys:
"grouping_fields" (list), "exclude_fields" (list), "field_classifications" (object field -> class),
"practice_patterns" (list of substrings marking practice trials), "value_mappings" (object field -> object raw -> canonical),
"confidence" (0-1), "reasoning" (string).
"""


# =============================================================================
# FUNCTION PROVIDER
# =============================================================================

class FunctionLLMProvider(ILLMProvider):
    """
    LLM provider wrapping a plain callable ``fn(prompt) -> str``.

    Lets any client library (or a test stub) act as the AI collaborator.

    Example:
        >>> provider = FunctionLLMProvider(fn=lambda prompt: '{"grouping_fields": []}')
        >>> provider.generate('...')
    """

    def __init__(self,
                 config: Optional[Dict[str, Any]] = None,
                 fn: Optional[Callable[[str], str]] = None,
                 model_name: str = 'callable'):
        self._config: Dict[str, Any] = dict(config or {})
        self._fn = fn if fn is not None else self._config.get('fn')
        self._model_name = model_name

    @property
    def name(self) -> str:
        return LLMProviderType.FUNCTION

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def is_loaded(self) -> bool:
        return callable(self._fn)

    def initialize(self, config: Dict[str, Any]) -> None:
        self._config.update(config)
        if 'fn' in config:
            self._fn = config['fn']

    def generate(self,
                 prompt: str,
                 max_tokens: Optional[int] = None,
                 temperature: Optional[float] = None,
                 **kwargs) -> str:
        if not self.is_loaded:
            raise LLMNotLoadedError(self.name)

        response = self._fn(prompt)
        if not isinstance(response, str):
            raise GenerationError(
                f"callable returned {type(response).__name__}, expected str",
                len(prompt)
            )
        return response


# =============================================================================
# SUGGESTION
# =============================================================================

@dataclass
class AISuggestion:
    """
    Validated reply of the AI collaborator.

    Attributes:
        grouping_fields: Suggested grouping fields (all discovered)
        exclude_fields: Suggested excluded fields (all discovered)
        field_classifications: Field -> class name
        practice_patterns: Substrings marking practice events
        value_mappings: Field -> raw value -> canonical value
        confidence: Self-reported confidence in [0, 1]
        reasoning: Free-text explanation
    """
    grouping_fields: List[str]
    exclude_fields: List[str]
    field_classifications: Dict[str, str] = field(default_factory=dict)
    practice_patterns: List[str] = field(default_factory=list)
    value_mappings: Dict[str, Dict[str, str]] = field(default_factory=dict)
    confidence: float = 0.0
    reasoning: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'grouping_fields': list(self.grouping_fields),
            'exclude_fields': list(self.exclude_fields),
            'field_classifications': dict(self.field_classifications),
            'practice_patterns': list(self.practice_patterns),
            'value_mappings': {k: dict(v) for k, v in self.value_mappings.items()},
            'confidence': self.confidence,
            'reasoning': self.reasoning
        }


# =============================================================================
# CLASSIFIER
# =============================================================================

class AIFieldClassifier:
    """
    Builds the prompt, calls the provider and validates the reply.

    Config keys (section 'ai'):
        timeout_sec: Upper bound on one provider call (default 30)
        max_tokens: Passed to the provider (default 4096)
        temperature: Passed to the provider (default 0.3)
        n_event_samples: Raw events included in the prompt (default 30)

    Args:
        provider: ILLMProvider to consult
        config: Overrides for the 'ai' section
    """

    def __init__(self,
                 provider: ILLMProvider,
                 config: Optional[Dict[str, Any]] = None):
        self._provider = provider
        self._config = resolve_section('ai', config)
        self._max_grouping_fields = resolve_section('discovery').get('max_grouping_fields', 3)

    @property
    def provider(self) -> ILLMProvider:
        return self._provider

    # =========================================================================
    # PROMPT
    # =========================================================================

    def build_prompt(self,
                     discovery: DiscoveryResult,
                     structure: DetectedStructure,
                     sample_events: Sequence[RawEvent]) -> str:
        """
        Serialise the discovery state into a prompt.

        Args:
            discovery: Heuristic discovery result
            structure: Detected structure
            sample_events: Raw events to show (capped at n_event_samples)

        Returns:
            Prompt text
        """
        rows = []
        for name in discovery.fields:
            stat = discovery.field_stats[name]
            samples = ', '.join(stat.sample_values)
            rows.append(
                f"- {name}: {stat.num_unique} unique, cardinality {stat.cardinality:.1%}, "
                f"heuristic class {stat.classification.value}, samples [{samples}]"
            )

        n_samples = int(self._config.get('n_event_samples', 30))
        samples = [event.to_dict() for event in list(sample_events)[:n_samples]]

        structure_text = (
            f"format: {structure.format.value}, confidence: {structure.confidence:.0%}, "
            f"event pattern: {structure.event_pattern or 'none'}, "
            f"events: {structure.num_events}"
        )

        return PROMPT_TEMPLATE.format(
            max_grouping_fields=self._max_grouping_fields,
            structure=structure_text,
            field_table="\n".join(rows) if rows else "(no fields)",
            samples=json.dumps(samples, indent=1, default=str)
        )

    # =========================================================================
    # RESPONSE
    # =========================================================================

    @staticmethod
    def strip_code_fences(text: str) -> str:
        """Remove a surrounding markdown code fence, if any."""
        text = text.strip()
        if text.startswith('```'):
            text = _FENCE_OPEN_RE.sub('', text, count=1)
            text = _FENCE_CLOSE_RE.sub('', text, count=1)
        return text.strip()

    def parse_response(self, text: str, discovery: DiscoveryResult) -> AISuggestion:
        """
        Parse and validate a provider reply.

        Args:
            text: Raw reply
            discovery: Discovery result the reply refers to

        Returns:
            AISuggestion

        Raises:
            AIResponseError: If the reply is not usable
        """
        try:
            data = json.loads(self.strip_code_fences(text))
        except (json.JSONDecodeError, TypeError) as e:
            raise AIResponseError(f"invalid JSON: {e}", text) from e

        if not isinstance(data, dict):
            raise AIResponseError("reply is not a JSON object", text)

        missing = [key for key in REQUIRED_KEYS if key not in data]
        if missing:
            raise AIResponseError(f"missing required keys {missing}", text)

        grouping = _string_list(data['grouping_fields'], 'grouping_fields', text)
        exclude = _string_list(data['exclude_fields'], 'exclude_fields', text)

        classifications = data['field_classifications']
        if not isinstance(classifications, dict):
            raise AIResponseError("field_classifications is not an object", text)
        classifications = {str(k): _class_name(v) for k, v in classifications.items()}

        known = set(discovery.fields)
        unknown = sorted({f for f in grouping + exclude if f not in known})
        if unknown:
            raise AIResponseError(f"unknown field names {unknown}", text)

        practice = data.get('practice_patterns', data.get('practice_trial_patterns', []))
        practice = [p for p in _string_list(practice or [], 'practice_patterns', text) if p]

        mappings = {}
        raw_mappings = data.get('value_mappings') or {}
        if not isinstance(raw_mappings, dict):
            raise AIResponseError("value_mappings is not an object", text)
        for name, mapping in raw_mappings.items():
            if name in known and isinstance(mapping, dict):
                mappings[name] = {str(k): str(v) for k, v in mapping.items()}

        try:
            confidence = float(data.get('confidence', 0.0))
        except (TypeError, ValueError) as e:
            raise AIResponseError(f"confidence is not a number: {e}", text) from e
        confidence = max(0.0, min(1.0, confidence))

        reasoning = data.get('reasoning', data.get('overall_assessment', ''))

        return AISuggestion(
            grouping_fields=list(dict.fromkeys(grouping)),
            exclude_fields=list(dict.fromkeys(exclude)),
            field_classifications=classifications,
            practice_patterns=practice,
            value_mappings=mappings,
            confidence=confidence,
            reasoning=str(reasoning or '')
        )

    # =========================================================================
    # CALL
    # =========================================================================

    def generate(self, prompt: str) -> str:
        """
        Call the provider on a worker thread, bounded by `timeout_sec`.

        Raises:
            LLMNotLoadedError: If the provider is not ready
            GenerationError: On timeout
        """
        if not self._provider.is_loaded:
            raise LLMNotLoadedError(self._provider.name)

        timeout = float(self._config.get('timeout_sec', 30.0))
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='erpscope-ai')
        try:
            future = executor.submit(
                self._provider.generate,
                prompt,
                max_tokens=self._config.get('max_tokens', 4096),
                temperature=self._config.get('temperature', 0.3)
            )
            try:
                return future.result(timeout=timeout)
            except FuturesTimeoutError as e:
                raise GenerationError(f"no reply within {timeout:g}s", len(prompt)) from e
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def suggest(self,
                discovery: DiscoveryResult,
                structure: DetectedStructure,
                sample_events: Sequence[RawEvent],
                report: Optional[DiagnosticReport] = None) -> Optional[AISuggestion]:
        """
        Ask the provider for a classification.

        Args:
            discovery: Heuristic discovery result
            structure: Detected structure
            sample_events: Raw sample events for context
            report: Optional diagnostic sink

        Returns:
            Validated AISuggestion, or None when the heuristic result
            should be kept
        """
        logger.info(f"Consulting AI provider '{self._provider.name}' for field classification")
        prompt = self.build_prompt(discovery, structure, sample_events)

        try:
            suggestion = self.parse_response(self.generate(prompt), discovery)
        except LLMError as e:
            self._fallback(str(e), report)
            return None
        except Exception as e:  # provider implementations raise their own errors
            self._fallback(f"{type(e).__name__}: {e}", report)
            return None

        logger.info(
            f"AI suggests grouping by {suggestion.grouping_fields} "
            f"(confidence {suggestion.confidence:.0%})"
        )
        if report is not None:
            report.record('ai_suggestion', **suggestion.to_dict())
        return suggestion

    @staticmethod
    def _fallback(reason: str, report: Optional[DiagnosticReport]) -> None:
        message = f"AI classification failed ({reason}); using heuristic classification"
        if report is not None:
            report.add_warning(message, logger)
            report.record('ai_fallback', reason=reason)
        else:
            logger.warning(message)

    def __repr__(self) -> str:
        return f"AIFieldClassifier(provider={self._provider!r})"


def _string_list(value: Any, key: str, raw: str) -> List[str]:
    if isinstance(value, str):
        return [value]
    if not isinstance(value, (list, tuple)):
        raise AIResponseError(f"{key} is not a list", raw)
    return [str(v) for v in value]


def _class_name(value: Any) -> str:
    text = str(value).strip().lower().replace('_', '-').replace(' ', '-')
    valid = {c.value for c in FieldClass}
    return text if text in valid else FieldClass.OPTIONAL.value
