"""
EEG Data Types
==============

This module defines the signal-side data types consumed and produced by the
ERP analysis core.

Data Types:
----------
1. ChannelLocation: One row of the channel/location table
2. EEGData: Cleaned continuous recording handed over by preprocessing
3. EpochMetrics: Group-level quality metrics of an epoched condition
4. EpochSummary: Average/standard-deviation ERP for one condition

Design Principles:
-----------------
- The cleaned signal is read-only input; nothing here mutates it
- Numpy-backed for performance
- Summaries serialise to plain data for the reporting layer

Example Usage:
    ```python
    from erpscope.core.types import EEGData

    recording = EEGData(
        signals=signals,  # Shape: (n_channels, n_samples), microvolts
        sampling_rate=250,
        channel_names=['Fz', 'Cz', 'Pz'],
        events=events     # List of RawEvent
    )

    print(f"Duration: {recording.duration_seconds:.1f}s")
    ```

Author: EEG-ERP Analysis Team
Date: 2024
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any, Tuple, Union
import math
import numpy as np

from erpscope.core.exceptions import SignalShapeError
from erpscope.core.types.events import RawEvent


@dataclass(frozen=True)
class ChannelLocation:
    """
    Position of one electrode.

    Only used by downstream visualisation; the analysis core ignores it.

    Attributes:
        label: Channel label
        x, y, z: Cartesian position (optional)
        theta, radius: Polar 2D projection (optional)
    """
    label: str
    x: Optional[float] = None
    y: Optional[float] = None
    z: Optional[float] = None
    theta: Optional[float] = None
    radius: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'label': self.label,
            'x': self.x, 'y': self.y, 'z': self.z,
            'theta': self.theta, 'radius': self.radius
        }


@dataclass
class EEGData:
    """
    Cleaned continuous EEG recording.

    Attributes:
        signals: Signal data in microvolts, shape (n_channels, n_samples)
        sampling_rate: Sampling frequency in Hz
        channel_names: List of channel names
        events: Event markers of the recording
        channel_locations: Optional channel/location table
        source_file: Where the recording came from
        metadata: Additional metadata
    """
    signals: np.ndarray  # Shape: (n_channels, n_samples)
    sampling_rate: float
    channel_names: List[str] = field(default_factory=list)
    events: List[RawEvent] = field(default_factory=list)
    channel_locations: List[ChannelLocation] = field(default_factory=list)
    source_file: str = ''
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Validate data after initialization."""
        self.signals = np.asarray(self.signals)

        if self.signals.ndim != 2:
            raise SignalShapeError(
                f"signals must be 2D (channels, samples), got {self.signals.ndim}D",
                self.signals.shape
            )

        if not (self.sampling_rate and math.isfinite(self.sampling_rate)
                and self.sampling_rate > 0):
            raise SignalShapeError(f"sampling_rate must be positive, got {self.sampling_rate}")

        if self.channel_names and len(self.channel_names) != self.n_channels:
            raise SignalShapeError(
                f"Number of channel names ({len(self.channel_names)}) "
                f"doesn't match number of channels ({self.n_channels})",
                self.signals.shape
            )

        if not self.channel_names:
            self.channel_names = [f"Ch{i+1}" for i in range(self.n_channels)]

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def n_channels(self) -> int:
        """Number of channels."""
        return self.signals.shape[0]

    @property
    def n_samples(self) -> int:
        """Number of samples."""
        return self.signals.shape[1]

    @property
    def duration_seconds(self) -> float:
        """Total duration in seconds."""
        return self.n_samples / self.sampling_rate

    @property
    def n_events(self) -> int:
        """Number of events."""
        return len(self.events)

    @property
    def shape(self) -> Tuple[int, int]:
        """Signal shape (n_channels, n_samples)."""
        return self.signals.shape

    # =========================================================================
    # DATA ACCESS METHODS
    # =========================================================================

    def get_channel(self, channel: Union[int, str]) -> np.ndarray:
        """
        Get data for a specific channel.

        Args:
            channel: Channel index or name

        Returns:
            np.ndarray: Channel data, shape (n_samples,)
        """
        if isinstance(channel, str):
            if channel not in self.channel_names:
                raise ValueError(f"Channel '{channel}' not found in {self.channel_names}")
            idx = self.channel_names.index(channel)
        else:
            idx = channel

        return self.signals[idx]

    def get_time_axis(self) -> np.ndarray:
        """Get time axis in seconds."""
        return np.arange(self.n_samples) / self.sampling_rate

    def get_info(self) -> Dict[str, Any]:
        """Get summary information."""
        return {
            'n_channels': self.n_channels,
            'n_samples': self.n_samples,
            'sampling_rate': self.sampling_rate,
            'duration_seconds': self.duration_seconds,
            'n_events': self.n_events,
            'channel_names': list(self.channel_names),
            'source_file': self.source_file
        }

    def __repr__(self) -> str:
        return (
            f"EEGData("
            f"shape={self.shape}, "
            f"sr={self.sampling_rate}Hz, "
            f"duration={self.duration_seconds:.1f}s, "
            f"events={self.n_events})"
        )


@dataclass(frozen=True)
class EpochMetrics:
    """
    Quality metrics of one epoched condition.

    Attributes:
        mean_snr_db: Mean per-trial post/pre-onset power ratio in dB
        mean_p2p_amplitude: Mean per-trial peak-to-peak amplitude (uV)
        good_epochs: Trials whose absolute amplitude stays within the threshold
        num_epochs: Trials with an in-bounds window
        bad_epochs: num_epochs - good_epochs
        num_out_of_bounds: Member events whose window left the recording
        rejection_rate: bad_epochs / num_epochs (0 when there are no epochs)
    """
    mean_snr_db: float
    mean_p2p_amplitude: float
    good_epochs: int
    num_epochs: int
    bad_epochs: int = 0
    num_out_of_bounds: int = 0
    rejection_rate: float = 0.0

    def __post_init__(self):
        if self.good_epochs > self.num_epochs:
            raise ValueError(
                f"good_epochs ({self.good_epochs}) exceeds num_epochs ({self.num_epochs})"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'mean_snr_db': _finite_or_none(self.mean_snr_db),
            'mean_p2p_amplitude': _finite_or_none(self.mean_p2p_amplitude),
            'good_epochs': self.good_epochs,
            'num_epochs': self.num_epochs,
            'bad_epochs': self.bad_epochs,
            'num_out_of_bounds': self.num_out_of_bounds,
            'rejection_rate': self.rejection_rate
        }


@dataclass
class EpochSummary:
    """
    Averaged ERP of one condition group.

    Attributes:
        event_type: Condition label
        num_epochs: Trials that contributed to the average
        time_vector: Sample times relative to onset, seconds
        avg_erp: Mean across trials, shape (n_channels, n_times)
        std_erp: Standard deviation across trials, same shape
        metrics: Group-level quality metrics
        channel_names: Channel names matching the first axis
    """
    event_type: str
    num_epochs: int
    time_vector: np.ndarray
    avg_erp: np.ndarray
    std_erp: np.ndarray
    metrics: EpochMetrics
    channel_names: List[str] = field(default_factory=list)

    def __post_init__(self):
        if self.avg_erp.shape != self.std_erp.shape:
            raise ValueError(
                f"avg_erp {self.avg_erp.shape} and std_erp {self.std_erp.shape} differ in shape"
            )
        if self.avg_erp.shape[-1] != len(self.time_vector):
            raise ValueError(
                f"ERP has {self.avg_erp.shape[-1]} samples but time_vector has {len(self.time_vector)}"
            )

    @property
    def is_empty(self) -> bool:
        """True when no trial survived the bounds check."""
        return self.num_epochs == 0

    def get_channel_erp(self, channel: Union[int, str]) -> np.ndarray:
        """Average waveform of one channel."""
        if isinstance(channel, str):
            channel = self.channel_names.index(channel)
        return self.avg_erp[channel]

    def peak(self,
             channel: Union[int, str],
             t_start: float = 0.0,
             t_end: Optional[float] = None,
             polarity: str = 'positive') -> Tuple[float, float]:
        """
        Find the peak of the average waveform within a latency range.

        Args:
            channel: Channel index or name
            t_start: Start of the search range (seconds)
            t_end: End of the search range (seconds, default: end of epoch)
            polarity: 'positive' or 'negative'

        Returns:
            Tuple of (latency_sec, amplitude)
        """
        if self.is_empty:
            return float('nan'), float('nan')

        wave = self.get_channel_erp(channel)
        t_end = self.time_vector[-1] if t_end is None else t_end
        mask = (self.time_vector >= t_start) & (self.time_vector <= t_end)
        if not mask.any():
            return float('nan'), float('nan')

        segment = wave[mask]
        idx = int(np.argmax(segment) if polarity == 'positive' else np.argmin(segment))
        return float(self.time_vector[mask][idx]), float(segment[idx])

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (NaN becomes None)."""
        return {
            'event_type': self.event_type,
            'num_epochs': self.num_epochs,
            'time_vector': self.time_vector.tolist(),
            'avg_erp': _nan_to_none(self.avg_erp),
            'std_erp': _nan_to_none(self.std_erp),
            'metrics': self.metrics.to_dict(),
            'channel_names': list(self.channel_names)
        }

    def __repr__(self) -> str:
        return (
            f"EpochSummary('{self.event_type}', epochs={self.num_epochs}, "
            f"good={self.metrics.good_epochs}, shape={self.avg_erp.shape})"
        )


def _finite_or_none(value: float) -> Optional[float]:
    return float(value) if np.isfinite(value) else None


def _nan_to_none(array: np.ndarray) -> List:
    return np.where(np.isfinite(array), array, None).tolist()
