"""
TaperSet - Precomputed Tapering Windows
=======================================

Windows applied to every trial before the Fourier transform, together with
their normalisation eigenvalues. A TaperSet is built once per computation and
shared read-only by all trial tasks.

Supported window types:
- 'ones': rectangular window (no tapering), eigenvalue 1
- 'hanning': single Hann window, eigenvalue 1
- 'dpss' / 'multitaper': discrete prolate spheroidal sequences (Slepian tapers)
"""

import logging

import numpy as np
from scipy.signal.windows import hann
from mne.time_frequency import dpss_windows

WINDOW_TYPES = ('ones', 'hanning', 'dpss', 'multitaper')


class TaperSet:
    """
    Ordered sequence of (window, eigenvalue) pairs for one signal length.

    Parameters
    ----------
    n_samples : int
        Length of each window in samples. Must match the trial length.
    window_type : str, default='hanning'
        One of 'ones', 'hanning', 'dpss' or 'multitaper' ('multitaper' is an
        alias of 'dpss').
    n_tapers : int, optional
        Maximum number of DPSS tapers. If None, ``int(2 * bandwidth)`` tapers are
        requested. Ignored for single-window types.
    bandwidth : float, default=4.0
        Half time-bandwidth product (NW) of the DPSS tapers.

    Attributes
    ----------
    windows : np.ndarray
        Read-only array of shape (n_tapers, n_samples).
    eigenvalues : np.ndarray
        Read-only array of shape (n_tapers,).

    Raises
    ------
    ValueError
        If the window type is unknown or a parameter is out of range.
    """

    def __init__(self, n_samples: int, window_type: str = 'hanning',
                 n_tapers: int = None, bandwidth: float = 4.0):
        if n_samples <= 0:
            raise ValueError(f"n_samples must be positive, got {n_samples}")
        window_type = window_type.lower()
        if window_type not in WINDOW_TYPES:
            raise ValueError(f"Unknown window type '{window_type}'. Choose one of {WINDOW_TYPES}")
        if n_tapers is not None and n_tapers < 1:
            raise ValueError("n_tapers must be at least 1")

        self.n_samples = int(n_samples)
        self.window_type = window_type
        self.bandwidth = float(bandwidth)

        if window_type == 'ones':
            windows = np.ones((1, self.n_samples))
            eigenvalues = np.ones(1)
        elif window_type == 'hanning':
            windows = hann(self.n_samples)[np.newaxis, :]
            eigenvalues = np.ones(1)
        else:
            windows, eigenvalues = self._generate_dpss(n_tapers)

        windows = np.ascontiguousarray(windows, dtype=np.float64)
        eigenvalues = np.asarray(eigenvalues, dtype=np.float64)
        windows.flags.writeable = False
        eigenvalues.flags.writeable = False
        self.windows = windows
        self.eigenvalues = eigenvalues

    def _generate_dpss(self, n_tapers):
        if self.bandwidth <= 0 or 2 * self.bandwidth > self.n_samples:
            raise ValueError(f"bandwidth must be in (0, n_samples / 2], got {self.bandwidth}")
        k_max = n_tapers if n_tapers is not None else max(1, int(2 * self.bandwidth))

        windows, eigenvalues = dpss_windows(self.n_samples, self.bandwidth, k_max, low_bias=True)
        if len(eigenvalues) < k_max:
            logger = logging.getLogger('connectivity_kit')
            logger.debug(f"Kept {len(eigenvalues)} of {k_max} DPSS tapers with eigenvalue > 0.9")
        return np.atleast_2d(windows), np.atleast_1d(eigenvalues)

    @property
    def n_tapers(self) -> int:
        return self.windows.shape[0]

    @property
    def weights(self) -> np.ndarray:
        """Per-taper spectral weights, ``sqrt(eigenvalue)``."""
        return np.sqrt(self.eigenvalues)

    def __len__(self):
        return self.n_tapers

    def __iter__(self):
        return iter(zip(self.windows, self.eigenvalues))

    def __repr__(self):
        return (f"TaperSet(n_samples={self.n_samples}, window_type='{self.window_type}', "
                f"n_tapers={self.n_tapers})")
