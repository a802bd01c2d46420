"""
Epoching & Averaging Engine
===========================

Cuts fixed windows around the events of each condition group out of the
cleaned continuous signal and averages them into ERPs.

Per Group:
---------
1. Window of each member: [onset + round(t_start * fs), onset + round(t_end * fs)],
   both ends inclusive
2. Windows leaving the recording are dropped and counted
3. Baseline correction: each channel minus its mean over the pre-onset
   samples of the window (when the window starts before onset)
4. avg_erp / std_erp across trials
5. Metrics:
   - mean_snr_db: per trial 10*log10(mean power after onset / mean power
     before onset), averaged over the finite trial values
   - mean_p2p_amplitude: per trial max - min per channel, averaged over
     channels, then over trials
   - good_epochs: trials whose absolute amplitude never exceeds
     `artifact_threshold_uv`

A group without a single in-bounds window yields an empty summary
(num_epochs = 0, NaN waveforms) instead of being dropped, and the batch
continues with the next group. Groups are independent, so `n_jobs > 1`
processes them on a thread pool with identical results.

Example Usage:
    ```python
    from erpscope.epoching import EpochingEngine

    engine = EpochingEngine({'time_window': [-0.2, 0.8]})
    summaries = engine.epoch_recording(recording, selection.groups)

    for summary in summaries:
        print(summary.event_type, summary.num_epochs, summary.metrics.mean_snr_db)
    ```

Author: EEG-ERP Analysis Team
Date: 2024
"""

from typing import Dict, List, Optional, Any, Sequence, Tuple, Union, Mapping
from concurrent.futures import ThreadPoolExecutor
import logging
import numpy as np

from erpscope.core.config import resolve_section
from erpscope.core.types.events import RawEvent, ConditionGroup, SelectionResult
from erpscope.core.types.eeg_data import EEGData, EpochMetrics, EpochSummary
from erpscope.utils.diagnostics import DiagnosticReport
from erpscope.utils.logging import ProgressLogger
from erpscope.utils.validation import validate_signal, validate_time_window, check_positive

logger = logging.getLogger(__name__)

GroupsLike = Union[SelectionResult, Sequence[ConditionGroup], Mapping[str, Sequence[int]]]


def seconds_to_samples(t: float, sampling_rate: float) -> int:
    """Offset in samples, rounding halves away from zero."""
    x = t * sampling_rate
    return int(np.sign(x) * np.floor(abs(x) + 0.5))


def window_offsets(time_window: Sequence[float], sampling_rate: float) -> np.ndarray:
    """
    Sample offsets of an epoch relative to onset, both ends included.

    Example:
        >>> window_offsets((-0.1, 0.2), 10)
        array([-1,  0,  1,  2])
    """
    t_start, t_end = validate_time_window(time_window)
    return np.arange(seconds_to_samples(t_start, sampling_rate),
                     seconds_to_samples(t_end, sampling_rate) + 1)


def normalize_groups(groups: GroupsLike) -> List[ConditionGroup]:
    """Accept a SelectionResult, a list of groups or a label -> indices mapping."""
    if isinstance(groups, SelectionResult):
        return list(groups.groups)
    if isinstance(groups, Mapping):
        return [ConditionGroup(str(label), [int(i) for i in indices])
                for label, indices in groups.items()]
    return list(groups)


# =============================================================================
# METRICS
# =============================================================================

def compute_trial_snr_db(epochs: np.ndarray, times: np.ndarray) -> np.ndarray:
    """
    Per-trial SNR in dB.

    Args:
        epochs: Shape (n_trials, n_channels, n_times)
        times: Time of each sample relative to onset

    Returns:
        Shape (n_trials,); NaN when the window has no pre-onset or no
        post-onset samples
    """
    pre = times < 0
    post = times >= 0
    if not pre.any() or not post.any():
        return np.full(epochs.shape[0], np.nan)

    signal_power = np.mean(epochs[:, :, post] ** 2, axis=(1, 2))
    noise_power = np.mean(epochs[:, :, pre] ** 2, axis=(1, 2))
    with np.errstate(divide='ignore', invalid='ignore'):
        return 10.0 * np.log10(signal_power / noise_power)


def compute_epoch_metrics(epochs: np.ndarray,
                          times: np.ndarray,
                          artifact_threshold_uv: float = 100.0,
                          num_out_of_bounds: int = 0) -> EpochMetrics:
    """
    Group-level quality metrics.

    Args:
        epochs: Shape (n_trials, n_channels, n_times)
        times: Time of each sample relative to onset
        artifact_threshold_uv: Largest absolute amplitude of a good trial
        num_out_of_bounds: Dropped windows, passed through

    Returns:
        EpochMetrics
    """
    n_trials = epochs.shape[0]
    if n_trials == 0:
        return EpochMetrics(
            mean_snr_db=float('nan'), mean_p2p_amplitude=float('nan'),
            good_epochs=0, num_epochs=0, bad_epochs=0,
            num_out_of_bounds=num_out_of_bounds, rejection_rate=0.0
        )

    snr = compute_trial_snr_db(epochs, times)
    finite = snr[np.isfinite(snr)]
    mean_snr = float(finite.mean()) if finite.size else float('nan')

    p2p = (epochs.max(axis=2) - epochs.min(axis=2)).mean(axis=1)

    peak = np.abs(epochs).max(axis=(1, 2))
    good = int(np.count_nonzero(peak <= artifact_threshold_uv))
    bad = n_trials - good

    return EpochMetrics(
        mean_snr_db=mean_snr,
        mean_p2p_amplitude=float(p2p.mean()),
        good_epochs=good,
        num_epochs=n_trials,
        bad_epochs=bad,
        num_out_of_bounds=num_out_of_bounds,
        rejection_rate=bad / n_trials
    )


# =============================================================================
# ENGINE
# =============================================================================

class EpochingEngine:
    """
    Epoching & Averaging Engine.

    Config keys (section 'epoching'):
        time_window: [t_start, t_end] seconds relative to onset
        baseline_correction: Subtract the pre-onset mean (default True)
        artifact_threshold_uv: Good-trial amplitude limit (default 100)
        n_jobs: Groups processed in parallel (default 1)
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self._config = resolve_section('epoching', config)
        self.time_window: Tuple[float, float] = validate_time_window(
            self._config.get('time_window', [-0.2, 0.8])
        )
        self.baseline_correction = bool(self._config.get('baseline_correction', True))
        self.artifact_threshold_uv = float(self._config.get('artifact_threshold_uv', 100.0))
        check_positive(self.artifact_threshold_uv, 'artifact_threshold_uv')
        self.n_jobs = max(1, int(self._config.get('n_jobs', 1) or 1))

    def epoch_recording(self,
                        recording: EEGData,
                        groups: GroupsLike,
                        time_window: Optional[Sequence[float]] = None,
                        report: Optional[DiagnosticReport] = None) -> List[EpochSummary]:
        """Epoch an EEGData recording using its own events."""
        return self.epoch(
            recording.signals, recording.sampling_rate, recording.events, groups,
            time_window=time_window,
            channel_names=recording.channel_names,
            report=report
        )

    def epoch(self,
              signals: np.ndarray,
              sampling_rate: float,
              events: Sequence[RawEvent],
              groups: GroupsLike,
              time_window: Optional[Sequence[float]] = None,
              channel_names: Optional[List[str]] = None,
              report: Optional[DiagnosticReport] = None) -> List[EpochSummary]:
        """
        Epoch and average every condition group.

        Args:
            signals: Cleaned signal, shape (n_channels, n_samples), microvolts
            sampling_rate: Sampling frequency in Hz
            events: Event stream the group indices refer to
            groups: Condition groups
            time_window: Override of the configured window
            channel_names: Names for the channel axis
            report: Optional diagnostic sink

        Returns:
            One EpochSummary per group, in group order

        Raises:
            SignalShapeError: If the signal or sampling rate is invalid
            InvalidTimeWindowError: If the window is invalid
        """
        data = validate_signal(signals, sampling_rate)
        offsets = window_offsets(time_window or self.time_window, sampling_rate)
        times = offsets / float(sampling_rate)
        names = list(channel_names) if channel_names else [
            f"Ch{i + 1}" for i in range(data.shape[0])
        ]
        group_list = normalize_groups(groups)

        logger.info(
            f"Epoching {len(group_list)} conditions, window "
            f"[{times[0]:.3f}, {times[-1]:.3f}]s ({len(offsets)} samples)"
        )

        def run(group: ConditionGroup) -> EpochSummary:
            return self._epoch_group(data, events, group, offsets, times, names, report)

        progress = ProgressLogger(total=len(group_list), desc="Epoching", logger=logger)
        if self.n_jobs > 1 and len(group_list) > 1:
            with ThreadPoolExecutor(max_workers=self.n_jobs) as executor:
                summaries = []
                for summary in executor.map(run, group_list):
                    summaries.append(summary)
                    progress.update()
        else:
            summaries = []
            for group in group_list:
                summaries.append(run(group))
                progress.update()
        progress.finish()

        total = sum(s.num_epochs for s in summaries)
        average = total / len(summaries) if summaries else 0.0
        logger.info(
            f"Epoching complete: {total} epochs over {len(summaries)} conditions "
            f"({average:.1f} per condition)"
        )
        if report is not None:
            report.record('epoching_completed', total_epochs=total,
                          n_conditions=len(summaries),
                          counts={s.event_type: s.num_epochs for s in summaries})

        return summaries

    def _epoch_group(self,
                     data: np.ndarray,
                     events: Sequence[RawEvent],
                     group: ConditionGroup,
                     offsets: np.ndarray,
                     times: np.ndarray,
                     channel_names: List[str],
                     report: Optional[DiagnosticReport]) -> EpochSummary:
        n_samples = data.shape[1]
        first, last = int(offsets[0]), int(offsets[-1])

        onsets = []
        n_out_of_bounds = 0
        for index in group.member_event_indices:
            if not 0 <= index < len(events):
                n_out_of_bounds += 1
                continue
            onset = events[index].sample
            if onset + first < 0 or onset + last >= n_samples:
                n_out_of_bounds += 1
                continue
            onsets.append(onset)

        if onsets:
            window_index = np.asarray(onsets)[:, None] + offsets[None, :]
            # (channels, trials, times) -> (trials, channels, times)
            epochs = np.transpose(data[:, window_index], (1, 0, 2))

            if self.baseline_correction and (times < 0).any():
                baseline = epochs[:, :, times < 0].mean(axis=2, keepdims=True)
                epochs = epochs - baseline

            avg_erp = epochs.mean(axis=0)
            std_erp = epochs.std(axis=0)
        else:
            epochs = np.empty((0, data.shape[0], len(offsets)))
            avg_erp = np.full((data.shape[0], len(offsets)), np.nan)
            std_erp = np.full((data.shape[0], len(offsets)), np.nan)

            message = (
                f"Condition '{group.label}': no in-bounds epochs "
                f"({n_out_of_bounds} of {group.count} windows outside the recording)"
            )
            if report is not None:
                report.add_warning(message, logger)
            else:
                logger.warning(message)

        metrics = compute_epoch_metrics(
            epochs, times, self.artifact_threshold_uv, n_out_of_bounds
        )

        logger.debug(
            f"  {group.label:<30} epochs={metrics.num_epochs} "
            f"good={metrics.good_epochs} out_of_bounds={n_out_of_bounds}"
        )
        if report is not None:
            report.record('group_epoched', label=group.label, **metrics.to_dict())

        return EpochSummary(
            event_type=group.label,
            num_epochs=metrics.num_epochs,
            time_vector=times.copy(),
            avg_erp=avg_erp,
            std_erp=std_erp,
            metrics=metrics,
            channel_names=list(channel_names)
        )

    def get_params(self) -> Dict[str, Any]:
        return {
            'time_window': list(self.time_window),
            'baseline_correction': self.baseline_correction,
            'artifact_threshold_uv': self.artifact_threshold_uv,
            'n_jobs': self.n_jobs
        }


def epoch_conditions(recording: EEGData,
                     groups: GroupsLike,
                     time_window: Optional[Sequence[float]] = None,
                     config: Optional[Dict[str, Any]] = None,
                     report: Optional[DiagnosticReport] = None) -> List[EpochSummary]:
    """Convenience wrapper around EpochingEngine.epoch_recording()."""
    return EpochingEngine(config).epoch_recording(recording, groups, time_window, report)
