"""
ConnectivitySettings - Input Data and Run Parameters
====================================================

Holds the trials of one connectivity computation together with the run-wide
parameters (sampling rate, FFT length, tapering and frequency band), and
caches per-trial intermediate results so that repeated calculations on a
growing or sliding set of trials only process the new trials.
"""

import logging

import numpy as np

from .accumulator import IntermediateSumData
from .exceptions import DegenerateInput, InvalidTrialShape
from .spectral import calculate_frequency_bins
from .tapers import WINDOW_TYPES, TaperSet

# Canonical EEG frequency bands, range in Hz
FREQUENCY_BANDS = {
    'delta': (1, 4),
    'theta': (4, 8),
    'alpha': (8, 13),
    'beta': (13, 30),
    'gamma': (30, 70),
}


class TrialData:
    """
    One trial plus its cached CSD contribution.

    :param data: ndarray (n_channels, n_samples)
    :param trial_id: int, identifier unique within the owning settings object
    """

    def __init__(self, data: np.ndarray, trial_id: int):
        self.data = data
        self.trial_id = trial_id
        self.csd = None
        self.imag_sign = None

    @property
    def is_computed(self) -> bool:
        return self.csd is not None

    def clear(self):
        self.csd = None
        self.imag_sign = None


class ConnectivitySettings:
    """
    Trials and parameters for a connectivity computation.

    Parameters
    ----------
    data : np.ndarray or sequence of np.ndarray
        Either a 3-D array (n_trials, n_channels, n_samples) or a sequence of
        2-D (n_channels, n_samples) trials. May be empty.
    sampling_frequency : float
        Sampling frequency in Hz.
    nfft : int, optional
        FFT length. Defaults to the number of samples per trial.
    window_type : str, default='hanning'
        Taper type: 'ones', 'hanning', 'dpss' or 'multitaper'.
    n_tapers : int, optional
        Maximum number of DPSS tapers.
    bandwidth : float, default=4.0
        Half time-bandwidth product of the DPSS tapers.
    frequency_band : tuple or str, optional
        If given, each edge carries the mean over this band ((fmin, fmax) in Hz
        or a key of FREQUENCY_BANDS) instead of the full per-bin vector.
    connectivity_methods : sequence of str, default=('PLI',)
        Metrics run by ``calculate_connectivity``.
    channel_names : sequence of str, optional
        Node labels. Defaults to the channel indices.
    node_positions : array-like, optional
        (n_channels, 3) sensor positions attached to the network nodes.
    n_jobs : int, default=1
        Worker processes for the trial loop. -1 uses every CPU.
    show_progress : bool, default=False
        Show a tqdm progress bar over trials.

    Raises
    ------
    InvalidTrialShape
        If the trials do not share one (n_channels, n_samples) shape.
    ValueError
        If a parameter is out of range.
    """

    def __init__(self, data, sampling_frequency: float, nfft: int = None,
                 window_type: str = 'hanning', n_tapers: int = None, bandwidth: float = 4.0,
                 frequency_band=None, connectivity_methods=('PLI',), channel_names=None,
                 node_positions=None, n_jobs: int = 1, show_progress: bool = False):
        if sampling_frequency <= 0:
            raise ValueError("sampling_frequency must be positive")
        if n_jobs == 0 or n_jobs < -1:
            raise ValueError("n_jobs must be a positive integer or -1")

        self.sampling_frequency = float(sampling_frequency)
        self.connectivity_methods = list(connectivity_methods)
        self.n_jobs = n_jobs
        self.show_progress = show_progress

        self.trials = []
        self.intermediate_sum = None
        self._next_trial_id = 0
        self._n_channels = None
        self._n_samples = None
        self._taper_set = None

        for trial in self._split_trials(data):
            self.append(trial)

        self._nfft = None
        self._window_type = None
        self.window_type = window_type
        self._n_tapers = n_tapers
        self._bandwidth = bandwidth
        if nfft is not None:
            self.nfft = nfft
        self.frequency_band = frequency_band

        self.channel_names = list(channel_names) if channel_names is not None else None
        if self.channel_names is not None and self._n_channels is not None \
                and len(self.channel_names) != self._n_channels:
            raise ValueError(f"Got {len(self.channel_names)} channel names for {self._n_channels} channels")
        self.node_positions = None if node_positions is None else np.asarray(node_positions, dtype=np.float64)
        if self.node_positions is not None and self._n_channels is not None \
                and self.node_positions.shape != (self._n_channels, 3):
            raise ValueError(f"node_positions must have shape ({self._n_channels}, 3), "
                             f"got {self.node_positions.shape}")

    @classmethod
    def from_epochs(cls, epochs, picks=None, **kwargs):
        """
        Build settings from an ``mne.Epochs`` object.

        Trial data, sampling frequency, channel names and sensor positions are
        taken from the epochs; remaining keyword arguments are passed through.

        :param epochs: mne.Epochs (or EpochsArray)
        :param picks: channels to use, anything accepted by ``Epochs.pick``
        :return: ConnectivitySettings
        """
        if picks is not None:
            epochs = epochs.copy().pick(picks)
        data = epochs.get_data(copy=True)
        positions = np.array([ch['loc'][:3] for ch in epochs.info['chs']], dtype=np.float64)
        kwargs.setdefault('channel_names', epochs.ch_names)
        kwargs.setdefault('node_positions', np.nan_to_num(positions))
        return cls(data, epochs.info['sfreq'], **kwargs)

    @staticmethod
    def _split_trials(data):
        if data is None:
            return []
        if isinstance(data, np.ndarray):
            if data.ndim == 2:
                return [data]
            if data.ndim != 3:
                raise InvalidTrialShape(
                    f"data must be 3D (n_trials, n_channels, n_samples), got shape {data.shape}")
            return list(data)
        return list(data)

    # ------------------------------------------------------------------
    # Trial management
    # ------------------------------------------------------------------

    def append(self, trial: np.ndarray):
        """
        Add one (n_channels, n_samples) trial.

        :raises InvalidTrialShape: if the trial disagrees with the existing trials
        """
        trial = np.asarray(trial, dtype=np.float64)
        if trial.ndim != 2:
            raise InvalidTrialShape(f"Trial must be 2D (n_channels, n_samples), got shape {trial.shape}")
        if self._n_channels is None:
            self._n_channels, self._n_samples = trial.shape
        elif trial.shape != (self._n_channels, self._n_samples):
            raise InvalidTrialShape(
                f"Trial has shape {trial.shape}, expected ({self._n_channels}, {self._n_samples})")
        self.trials.append(TrialData(trial, self._next_trial_id))
        self._next_trial_id += 1

    def remove_first(self, n: int = 1):
        """
        Drop the ``n`` oldest trials.

        Their cached contributions are subtracted from the cached sums, so the
        next calculation does not need to revisit the remaining trials.
        """
        if n < 0:
            raise ValueError("n must not be negative")
        removed, self.trials = self.trials[:n], self.trials[n:]
        if self.intermediate_sum is None:
            return
        cached_ids = self.intermediate_sum.trial_ids
        if all(trial.is_computed and trial.trial_id in cached_ids for trial in removed):
            for trial in removed:
                self.intermediate_sum.subtract(trial.csd, trial.imag_sign, trial.trial_id)
        else:
            self.intermediate_sum = None
        logger = logging.getLogger('connectivity_kit')
        logger.debug(f"Removed {len(removed)} trials, {len(self.trials)} remaining")

    def clear_intermediate_data(self):
        """Forget every cached per-trial result and the cached sums."""
        for trial in self.trials:
            trial.clear()
        self.intermediate_sum = None
        self._taper_set = None

    def set_intermediate_sum(self, intermediate: IntermediateSumData):
        self.intermediate_sum = intermediate

    # ------------------------------------------------------------------
    # Parameters
    # ------------------------------------------------------------------

    @property
    def nfft(self) -> int:
        if self._nfft is not None:
            return self._nfft
        return self._n_samples

    @nfft.setter
    def nfft(self, value: int):
        if value is None or int(value) < 1:
            raise ValueError(f"nfft must be at least 1, got {value}")
        changed = int(value) != self.nfft
        self._nfft = int(value)
        if changed:
            self.clear_intermediate_data()

    @property
    def window_type(self) -> str:
        return self._window_type

    @window_type.setter
    def window_type(self, value: str):
        if value.lower() not in WINDOW_TYPES:
            raise ValueError(f"Unknown window type '{value}'. Choose one of {WINDOW_TYPES}")
        value = value.lower()
        if value != self._window_type:
            self._window_type = value
            self.clear_intermediate_data()

    def set_taper_configuration(self, n_tapers: int = None, bandwidth: float = 4.0):
        self._n_tapers = n_tapers
        self._bandwidth = bandwidth
        self.clear_intermediate_data()

    @property
    def frequency_band(self):
        return self._frequency_band

    @frequency_band.setter
    def frequency_band(self, value):
        if isinstance(value, str):
            if value.lower() not in FREQUENCY_BANDS:
                raise ValueError(f"Unknown frequency band '{value}'. Choose one of {list(FREQUENCY_BANDS)}")
            value = FREQUENCY_BANDS[value.lower()]
        if value is not None:
            fmin, fmax = value
            if fmin > fmax:
                raise ValueError(f"Frequency band lower edge {fmin} exceeds upper edge {fmax}")
            value = (float(fmin), float(fmax))
        self._frequency_band = value

    def get_taper_set(self) -> TaperSet:
        """TaperSet for the current trial length and taper configuration (built once, then reused)."""
        if self._n_samples is None:
            raise DegenerateInput("No trials available to derive the taper length from")
        if self._taper_set is None:
            self._taper_set = TaperSet(self._n_samples, self._window_type,
                                       n_tapers=self._n_tapers, bandwidth=self._bandwidth)
        return self._taper_set

    @property
    def n_trials(self) -> int:
        return len(self.trials)

    @property
    def n_channels(self) -> int:
        return self._n_channels or 0

    @property
    def n_samples(self) -> int:
        return self._n_samples or 0

    @property
    def n_freqs(self) -> int:
        return self.nfft // 2 + 1

    @property
    def frequencies(self) -> np.ndarray:
        return calculate_frequency_bins(self.sampling_frequency, self.nfft)

    def get_band_bins(self):
        """
        Bin indices of the configured frequency band, or None for per-bin output.

        :raises ValueError: if the band contains no bins
        """
        if self._frequency_band is None:
            return None
        fmin, fmax = self._frequency_band
        freqs = self.frequencies
        bins = np.where((freqs >= fmin) & (freqs <= fmax))[0]
        if bins.size == 0:
            raise ValueError(f"Frequency band {fmin}-{fmax} Hz contains no bins for "
                             f"nfft={self.nfft}, sfreq={self.sampling_frequency}")
        return bins

    def __repr__(self):
        return (f"ConnectivitySettings(n_trials={self.n_trials}, n_channels={self.n_channels}, "
                f"n_samples={self.n_samples}, sfreq={self.sampling_frequency}, nfft={self.nfft})")
