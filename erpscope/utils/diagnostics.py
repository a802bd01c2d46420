"""
Diagnostic Report
=================

Caller-owned sink for the diagnostics of one analysis run.

Components log through their module loggers as usual; anything a caller may
want to display or check programmatically (detection ratios, rejected
overrides, AI fallbacks, per-group epoch counts) is additionally recorded
on the DiagnosticReport passed into the component. The report holds no
global state, so concurrent runs and parallel group processing each write
to their own report.

Usage Example:
    ```python
    from erpscope.utils.diagnostics import DiagnosticReport

    report = DiagnosticReport()
    structure = StructureDetector().detect(events, report=report)

    for warning in report.warnings:
        print(f"Warning: {warning}")
    print(report.get_events('structure_detected'))
    ```

Author: EEG-ERP Analysis Team
Date: 2024
"""

from typing import Dict, List, Any, Optional
import logging
import threading


class DiagnosticReport:
    """
    Container for run diagnostics.

    Attributes:
        info (List[str]): Informational messages
        warnings (List[str]): Degraded-but-recovered situations
        errors (List[str]): Failures that were recovered locally
        events (List[Dict]): Structured facts, each with a 'name' key
    """

    def __init__(self):
        self.info: List[str] = []
        self.warnings: List[str] = []
        self.errors: List[str] = []
        self.events: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def add_info(self, message: str, logger: Optional[logging.Logger] = None) -> None:
        """Record an informational message (and log it at INFO)."""
        with self._lock:
            self.info.append(message)
        if logger is not None:
            logger.info(message)

    def add_warning(self, message: str, logger: Optional[logging.Logger] = None) -> None:
        """Record a warning (and log it at WARNING)."""
        with self._lock:
            self.warnings.append(message)
        if logger is not None:
            logger.warning(message)

    def add_error(self, message: str, logger: Optional[logging.Logger] = None) -> None:
        """Record a recovered error (and log it at ERROR)."""
        with self._lock:
            self.errors.append(message)
        if logger is not None:
            logger.error(message)

    def record(self, name: str, **data: Any) -> None:
        """Record a structured fact."""
        with self._lock:
            self.events.append({'name': name, **data})

    def get_events(self, name: str) -> List[Dict[str, Any]]:
        """All structured facts recorded under a name."""
        with self._lock:
            return [e for e in self.events if e['name'] == name]

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def merge(self, other: 'DiagnosticReport') -> None:
        """Append another report's contents to this one."""
        if other is self:
            return
        with self._lock:
            self.info.extend(other.info)
            self.warnings.extend(other.warnings)
            self.errors.extend(other.errors)
            self.events.extend(other.events)

    def clear(self) -> None:
        with self._lock:
            self.info.clear()
            self.warnings.clear()
            self.errors.clear()
            self.events.clear()

    def summary(self) -> str:
        """Human-readable summary."""
        lines = [
            "Diagnostic Report",
            "=" * 40,
            f"Info: {len(self.info)}, Warnings: {len(self.warnings)}, "
            f"Errors: {len(self.errors)}, Events: {len(self.events)}"
        ]
        if self.warnings:
            lines.append("\nWarnings:")
            lines.extend(f"  - {w}" for w in self.warnings)
        if self.errors:
            lines.append("\nErrors:")
            lines.extend(f"  - {e}" for e in self.errors)
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            return {
                'info': list(self.info),
                'warnings': list(self.warnings),
                'errors': list(self.errors),
                'events': [dict(e) for e in self.events]
            }

    def __repr__(self) -> str:
        return (
            f"DiagnosticReport(warnings={len(self.warnings)}, "
            f"errors={len(self.errors)}, events={len(self.events)})"
        )
