"""
ERP Analysis Pipeline
=====================

One-call orchestration of the event-structure discovery and ERP averaging
stages.

Pipeline Execution Flow:
    events -> StructureDetector -> FieldDiscoveryEngine (+ optional AI)
           -> ConditionSelector -> EpochingEngine -> EpochSummary per condition

The stages are also usable one by one; the pipeline only wires them
together, passes the caller's overrides through and collects every stage's
output and diagnostics in an AnalysisResult for the presentation layer.

Usage Example:
    ```python
    from erpscope import ERPAnalysisPipeline

    pipeline = ERPAnalysisPipeline()
    result = pipeline.run(recording, time_window=(-0.2, 0.8))

    print(result.summary())
    for summary in result.summaries:
        print(summary.event_type, summary.avg_erp.shape)

    # Regroup with an explicit grouping and keep practice trials
    result = pipeline.run(recording, grouping_fields=['code'], include_practice=True)
    ```

Author: EEG-ERP Analysis Team
Date: 2024
"""

from typing import Dict, List, Optional, Any, Sequence
from dataclasses import dataclass, field
import logging

from erpscope.core.types.events import (
    RawEvent, DetectedStructure, DiscoveryResult, SelectionResult
)
from erpscope.core.types.eeg_data import EEGData, EpochSummary
from erpscope.core.interfaces.i_llm_provider import ILLMProvider
from erpscope.events.structure import StructureDetector
from erpscope.events.discovery import FieldDiscoveryEngine
from erpscope.events.selector import ConditionSelector
from erpscope.events.ai_classifier import AIFieldClassifier
from erpscope.epoching.engine import EpochingEngine
from erpscope.quality.recording_quality import RecordingQualityChecker, QualityReport
from erpscope.utils.diagnostics import DiagnosticReport

logger = logging.getLogger(__name__)


@dataclass
class AnalysisResult:
    """
    Everything one analysis run produced.

    Attributes:
        structure: Detected event structure
        discovery: Discovered field schema
        selection: Condition groups
        summaries: One EpochSummary per selected group
        diagnostics: Run diagnostics
        quality: Recording quality report, when requested
    """
    structure: DetectedStructure
    discovery: DiscoveryResult
    selection: SelectionResult
    summaries: List[EpochSummary] = field(default_factory=list)
    diagnostics: DiagnosticReport = field(default_factory=DiagnosticReport)
    quality: Optional[QualityReport] = None

    def get_summary(self, label: str) -> Optional[EpochSummary]:
        """EpochSummary of one condition label."""
        for summary in self.summaries:
            if summary.event_type == label:
                return summary
        return None

    def summary(self) -> str:
        """Text table of the analysis for display."""
        lines = [
            "ERP Analysis",
            "=" * 60,
            f"Structure: {self.structure.format.value} "
            f"({self.structure.confidence:.0%} confidence)",
            f"Grouping:  {self.selection.grouping_fields or '[] (single group)'} "
            f"via {self.discovery.method} ({self.discovery.confidence:.0%} confidence)",
        ]
        if self.selection.rejected_overrides:
            lines.append(f"Rejected overrides: {self.selection.rejected_overrides}")

        lines.append("")
        lines.append(f"{'Condition':<30} {'Events':>7} {'Epochs':>7} {'Good':>6} {'SNR dB':>8}")
        lines.append("-" * 60)

        by_label = {s.event_type: s for s in self.summaries}
        for group in self.selection.groups:
            s = by_label.get(group.label)
            if s is None:
                lines.append(f"{group.label:<30} {group.count:>7}")
                continue
            lines.append(
                f"{group.label:<30} {group.count:>7} {s.num_epochs:>7} "
                f"{s.metrics.good_epochs:>6} {s.metrics.mean_snr_db:>8.1f}"
            )

        if self.selection.excluded_groups:
            excluded = ', '.join(g.label for g in self.selection.excluded_groups)
            lines.append(f"\nExcluded: {excluded}")
        if self.quality is not None:
            lines.append("")
            lines.append(self.quality.summary())
        if self.diagnostics.has_warnings:
            lines.append(f"\nWarnings: {len(self.diagnostics.warnings)}")
            lines.extend(f"  - {w}" for w in self.diagnostics.warnings)

        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'structure': self.structure.to_dict(),
            'discovery': self.discovery.to_dict(),
            'selection': self.selection.to_dict(),
            'summaries': [s.to_dict() for s in self.summaries],
            'diagnostics': self.diagnostics.to_dict(),
            'quality': self.quality.to_dict() if self.quality is not None else None
        }


class ERPAnalysisPipeline:
    """
    Wires the analysis stages together.

    Args:
        config: Per-section overrides, e.g.
            {'discovery': {'max_grouping_fields': 2}, 'epoching': {'n_jobs': 4}}
        ai_provider: Optional ILLMProvider for AI-assisted discovery

    Example:
        >>> pipeline = ERPAnalysisPipeline({'ai': {'mode': 'never'}})
        >>> result = pipeline.run(recording)
    """

    def __init__(self,
                 config: Optional[Dict[str, Dict[str, Any]]] = None,
                 ai_provider: Optional[ILLMProvider] = None):
        self._config = {k: dict(v) for k, v in (config or {}).items()}

        ai_classifier = None
        if ai_provider is not None:
            ai_classifier = AIFieldClassifier(ai_provider, self._config.get('ai'))

        self.detector = StructureDetector(self._config.get('structure'))
        self.discovery_engine = FieldDiscoveryEngine(
            self._config.get('discovery'),
            ai_classifier=ai_classifier,
            ai_config=self._config.get('ai')
        )
        self.selector = ConditionSelector(self._config.get('selection'))
        self.epoching = EpochingEngine(self._config.get('epoching'))

        logger.debug("ERPAnalysisPipeline instantiated")

    def analyze_events(self,
                       events: Sequence[RawEvent],
                       report: Optional[DiagnosticReport] = None,
                       **selection_overrides):
        """
        Run the event stages only (no signal needed).

        Args:
            events: Event stream
            report: Optional diagnostic sink
            **selection_overrides: Passed to ConditionSelector.select()

        Returns:
            Tuple of (structure, discovery, selection)
        """
        structure = self.detector.detect(events, report)
        discovery = self.discovery_engine.discover(events, structure, report)
        selection = self.selector.select(
            events, structure, discovery, report=report, **selection_overrides
        )
        return structure, discovery, selection

    def run(self,
            recording: EEGData,
            events: Optional[Sequence[RawEvent]] = None,
            time_window: Optional[Sequence[float]] = None,
            assess_quality: bool = False,
            report: Optional[DiagnosticReport] = None,
            **selection_overrides) -> AnalysisResult:
        """
        Full analysis of a cleaned recording.

        Args:
            recording: Cleaned recording
            events: Event stream (default: recording.events)
            time_window: Epoch window override (seconds)
            assess_quality: Also run the RecordingQualityChecker
            report: Diagnostic sink (a new one is created if None)
            **selection_overrides: grouping_fields, allowed_conditions,
                include_practice, value_mappings, apply_value_mappings,
                use_event_pattern, strict

        Returns:
            AnalysisResult
        """
        report = report if report is not None else DiagnosticReport()
        events = list(recording.events if events is None else events)

        logger.info(
            f"Analysing {len(events)} events, {recording.n_channels} channels, "
            f"{recording.duration_seconds:.1f}s"
        )

        structure, discovery, selection = self.analyze_events(
            events, report, **selection_overrides
        )

        summaries = self.epoching.epoch(
            recording.signals, recording.sampling_rate, events, selection,
            time_window=time_window,
            channel_names=recording.channel_names,
            report=report
        )

        quality = None
        if assess_quality:
            quality = RecordingQualityChecker(self._config.get('quality')).assess(recording)

        return AnalysisResult(
            structure=structure,
            discovery=discovery,
            selection=selection,
            summaries=summaries,
            diagnostics=report,
            quality=quality
        )
