"""
Recording Quality Checker
=========================

Quality assessment of a cleaned continuous EEG recording, shown next to the
ERP results so a reader can judge how far the averages can be trusted.

Quality Score (0-100):
---------------------
1. Channel score (0-25): share of usable (non-flatline) channels, relative
   to the channel count before cleaning when known
   (>95% = 25, >90% = 20, >80% = 15, else 10)
2. Artifact score (0-30): share of samples above the artifact threshold
   (<10% = 30, <20% = 25, <30% = 20, else 10)
3. Signal score (0-25): variance-based SNR proxy of the demeaned signal
   (>20 dB = 25, >15 dB = 20, >10 dB = 15, else 10)
4. Spectral score (0-20): 20, -5 for line noise above 10% of total power,
   +2 (capped) for relative alpha above 0.2, -3 for relative gamma above 0.3

Levels: Excellent (>= 75), Good (>= 60), Fair (>= 45), Poor.

Usage Example:
    ```python
    from erpscope.quality import RecordingQualityChecker

    checker = RecordingQualityChecker({'line_freq': 60.0})
    report = checker.assess(recording)
    print(f"{report.total_score} ({report.quality_level})")
    for line in report.recommendations:
        print(f"  - {line}")
    ```

Author: EEG-ERP Analysis Team
Date: 2024
"""

from typing import Dict, List, Any, Optional, Union, Tuple
from dataclasses import dataclass, field
import logging
import numpy as np
from scipy import signal as scipy_signal
from scipy import stats as scipy_stats

from erpscope.core.config import resolve_section
from erpscope.core.types.eeg_data import EEGData
from erpscope.utils.validation import validate_signal

logger = logging.getLogger(__name__)

FREQUENCY_BANDS: Dict[str, Tuple[float, float]] = {
    'delta': (0.5, 4.0),
    'theta': (4.0, 8.0),
    'alpha': (8.0, 13.0),
    'beta': (13.0, 30.0),
    'gamma': (30.0, 50.0),
}

QUALITY_LEVELS = (
    (75, 'Excellent'),
    (60, 'Good'),
    (45, 'Fair'),
)


@dataclass
class QualityReport:
    """
    Result of a recording quality assessment.

    Attributes:
        total_score: Combined score, 0-100
        quality_level: 'Excellent', 'Good', 'Fair' or 'Poor'
        is_clean: True for Excellent and Good
        scores: Component scores (channel, artifact, signal, spectral)
        snr_db: Variance-based SNR proxy in dB
        kurtosis: Kurtosis of all samples (Pearson, 3 for Gaussian)
        artifact_ratio: Share of samples above the artifact threshold
        line_noise_ratio: Line-frequency power over total power
        band_powers: Absolute mean PSD per band
        relative_band_powers: Band power over total power
        flatline_channels: Names of channels with negligible variance
        channel_quality: Per-channel quality in [0, 1]
        recommendations: Human-readable advice
    """
    total_score: int
    quality_level: str
    is_clean: bool
    scores: Dict[str, int] = field(default_factory=dict)
    snr_db: float = float('nan')
    kurtosis: float = float('nan')
    artifact_ratio: float = 0.0
    line_noise_ratio: float = 0.0
    band_powers: Dict[str, float] = field(default_factory=dict)
    relative_band_powers: Dict[str, float] = field(default_factory=dict)
    flatline_channels: List[str] = field(default_factory=list)
    channel_quality: Dict[str, float] = field(default_factory=dict)
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_score': self.total_score,
            'quality_level': self.quality_level,
            'is_clean': self.is_clean,
            'scores': dict(self.scores),
            'snr_db': _finite_or_none(self.snr_db),
            'kurtosis': _finite_or_none(self.kurtosis),
            'artifact_ratio': self.artifact_ratio,
            'line_noise_ratio': self.line_noise_ratio,
            'band_powers': dict(self.band_powers),
            'relative_band_powers': dict(self.relative_band_powers),
            'flatline_channels': list(self.flatline_channels),
            'channel_quality': dict(self.channel_quality),
            'recommendations': list(self.recommendations)
        }

    def summary(self) -> str:
        lines = [
            f"Recording quality: {self.total_score}/100 ({self.quality_level})",
            "  " + ", ".join(f"{k}={v}" for k, v in self.scores.items()),
            f"  SNR {self.snr_db:.1f} dB, artifacts {self.artifact_ratio:.1%}, "
            f"line noise {self.line_noise_ratio:.1%}"
        ]
        lines.extend(f"  - {r}" for r in self.recommendations)
        return "\n".join(lines)


class RecordingQualityChecker:
    """
    Signal quality assessment for a cleaned recording.

    Config keys (section 'quality'):
        line_freq: Power line frequency in Hz (default 50)
        artifact_threshold_uv: Artifact amplitude threshold (default 100)
        flatline_threshold_uv: Standard deviation below which a channel is
            flat (default 0.5)

    The signal is only read, never modified.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self._config = resolve_section('quality', config)
        self._line_freq = float(self._config.get('line_freq', 50.0))
        self._artifact_threshold = float(self._config.get('artifact_threshold_uv', 100.0))
        self._flatline_threshold = float(self._config.get('flatline_threshold_uv', 0.5))

    # =========================================================================
    # MAIN QUALITY ASSESSMENT
    # =========================================================================

    def assess(self,
               data: Union[EEGData, np.ndarray],
               sampling_rate: Optional[float] = None,
               channel_names: Optional[List[str]] = None,
               original_n_channels: Optional[int] = None) -> QualityReport:
        """
        Assess a recording.

        Args:
            data: EEGData, or a (channels, samples) array with sampling_rate
            sampling_rate: Required when data is an array
            channel_names: Names for an array input
            original_n_channels: Channel count before bad-channel removal

        Returns:
            QualityReport
        """
        if isinstance(data, EEGData):
            signals = validate_signal(data.signals, data.sampling_rate)
            sampling_rate = data.sampling_rate
            channel_names = data.channel_names
        else:
            signals = validate_signal(data, sampling_rate)
            channel_names = list(channel_names) if channel_names else [
                f"Ch{i + 1}" for i in range(signals.shape[0])
            ]

        n_channels = signals.shape[0]
        original_n_channels = original_n_channels or n_channels

        flatline_idx = self.detect_flatline_channels(signals)
        artifact_ratio = self.compute_artifact_ratio(signals)
        snr_db = self.compute_snr_proxy(signals)
        kurt = float(scipy_stats.kurtosis(signals, axis=None, fisher=False)) \
            if signals.size > 4 else float('nan')
        band_powers, relative, line_ratio = self.compute_spectrum(signals, sampling_rate)

        retention = (n_channels - len(flatline_idx)) / original_n_channels
        scores = {
            'channel': _step_score(retention, ((0.95, 25), (0.90, 20), (0.80, 15)), 10),
            # Lower is better: negate so the same step helper applies
            'artifact': _step_score(-artifact_ratio, ((-0.10, 30), (-0.20, 25), (-0.30, 20)), 10),
            'signal': _step_score(snr_db, ((20, 25), (15, 20), (10, 15)), 10),
            'spectral': self._spectral_score(relative, line_ratio)
        }
        total = int(max(0, min(100, round(sum(scores.values())))))
        level = next((name for threshold, name in QUALITY_LEVELS if total >= threshold), 'Poor')
        is_clean = level in ('Excellent', 'Good')

        flatline_names = [channel_names[i] for i in flatline_idx]
        report = QualityReport(
            total_score=total,
            quality_level=level,
            is_clean=is_clean,
            scores=scores,
            snr_db=snr_db,
            kurtosis=kurt,
            artifact_ratio=artifact_ratio,
            line_noise_ratio=line_ratio,
            band_powers=band_powers,
            relative_band_powers=relative,
            flatline_channels=flatline_names,
            channel_quality=dict(zip(channel_names,
                                     self.compute_channel_quality(signals).tolist())),
            recommendations=self._generate_recommendations(
                is_clean, artifact_ratio, line_ratio, snr_db, flatline_names
            )
        )

        logger.info(
            f"Recording quality: {total}/100 ({level}), SNR={snr_db:.1f}dB, "
            f"artifacts={artifact_ratio:.1%}"
        )
        return report

    # =========================================================================
    # INDIVIDUAL QUALITY METRICS
    # =========================================================================

    def compute_snr_proxy(self, signals: np.ndarray) -> float:
        """
        Variance of the demeaned signal in dB.

        Returns:
            float: 10*log10(variance); -inf for a constant signal
        """
        demeaned = signals - signals.mean(axis=1, keepdims=True)
        variance = float(np.var(demeaned))
        if variance <= 0:
            return float('-inf')
        return float(10 * np.log10(variance))

    def compute_spectrum(self,
                         signals: np.ndarray,
                         sampling_rate: float
                         ) -> Tuple[Dict[str, float], Dict[str, float], float]:
        """
        Band powers and line-noise ratio from the channel-averaged Welch PSD.

        Returns:
            (absolute band powers, relative band powers, line-noise ratio)
        """
        nperseg = int(min(signals.shape[1], max(8, round(2 * sampling_rate))))
        freqs, psd = scipy_signal.welch(signals, fs=sampling_rate, nperseg=nperseg, axis=1)
        psd_mean = np.mean(psd, axis=0)
        total_power = float(np.sum(psd_mean))

        band_powers = {}
        relative = {}
        for band, (low, high) in FREQUENCY_BANDS.items():
            mask = (freqs >= low) & (freqs <= high)
            power = float(np.mean(psd_mean[mask])) if mask.any() else 0.0
            band_powers[band] = power
            relative[band] = power / total_power if total_power > 0 else 0.0

        line_mask = (freqs >= self._line_freq - 2) & (freqs <= self._line_freq + 2)
        line_power = float(np.mean(psd_mean[line_mask])) if line_mask.any() else 0.0
        line_ratio = line_power / total_power if total_power > 0 else 0.0

        return band_powers, relative, line_ratio

    def compute_artifact_ratio(self, signals: np.ndarray) -> float:
        """Proportion of samples exceeding the artifact threshold."""
        if signals.size == 0:
            return 0.0
        return float(np.mean(np.abs(signals) > self._artifact_threshold))

    def detect_flatline_channels(self, signals: np.ndarray) -> List[int]:
        """Indices of channels whose standard deviation is below the flatline threshold."""
        return [int(i) for i in np.flatnonzero(np.std(signals, axis=1) < self._flatline_threshold)]

    def compute_channel_quality(self, signals: np.ndarray) -> np.ndarray:
        """
        Per-channel quality in [0, 1].

        Combines the artifact ratio (40%), a standard-deviation score (40%)
        and an excess-kurtosis score (20%).
        """
        n_channels = signals.shape[0]
        quality = np.ones(n_channels)

        for ch in range(n_channels):
            ch_signal = signals[ch]
            artifact_ratio = np.mean(np.abs(ch_signal) > self._artifact_threshold)

            std = np.std(ch_signal)
            std_score = 1.0
            if std < self._flatline_threshold:
                std_score = 0.1
            elif std > self._artifact_threshold * 2:
                std_score = 0.5

            kurt = scipy_stats.kurtosis(ch_signal) if len(ch_signal) > 4 and std > 0 else 0.0
            kurtosis_score = 1.0 - min(abs(kurt) / 10, 0.5)

            quality[ch] = (1 - artifact_ratio) * 0.4 + std_score * 0.4 + kurtosis_score * 0.2

        return quality

    # =========================================================================
    # HELPER METHODS
    # =========================================================================

    @staticmethod
    def _spectral_score(relative: Dict[str, float], line_ratio: float) -> int:
        score = 20
        if line_ratio > 0.1:
            score -= 5
        if relative.get('alpha', 0.0) > 0.2:
            score = min(20, score + 2)
        if relative.get('gamma', 0.0) > 0.3:
            score -= 3
        return max(0, score)

    def _generate_recommendations(self,
                                  is_clean: bool,
                                  artifact_ratio: float,
                                  line_ratio: float,
                                  snr_db: float,
                                  flatline_channels: List[str]) -> List[str]:
        recommendations = []

        if not is_clean:
            recommendations.append("Recording quality insufficient for reliable analysis.")

        if flatline_channels:
            recommendations.append(
                f"Flatline detected in channels {flatline_channels}. "
                "Check electrode connections or exclude these channels."
            )
        if artifact_ratio > 0.1:
            recommendations.append(
                f"High artifact contamination ({artifact_ratio:.1%}). "
                "Consider artifact rejection or ICA cleaning."
            )
        if line_ratio > 0.05:
            recommendations.append(
                f"Line noise at {self._line_freq:g} Hz. "
                "Apply a notch filter before averaging."
            )
        if snr_db < 12:
            recommendations.append(
                "Low signal-to-noise ratio. Consider checking electrode impedances."
            )

        if not recommendations:
            recommendations.append("Data quality acceptable for ERP analysis.")

        return recommendations

    def __repr__(self) -> str:
        return (
            f"RecordingQualityChecker(line_freq={self._line_freq}, "
            f"artifact_threshold={self._artifact_threshold})"
        )


def _step_score(value: float,
                steps: Tuple[Tuple[float, int], ...],
                default: int) -> int:
    """Score of the first threshold the value exceeds."""
    for threshold, score in steps:
        if value > threshold:
            return score
    return default


def _finite_or_none(value: float) -> Optional[float]:
    return float(value) if np.isfinite(value) else None
