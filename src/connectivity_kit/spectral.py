"""
Per-trial spectral estimation.

Turns one trial's (n_channels, n_samples) matrix into tapered spectra and the
taper-averaged cross-spectral density (CSD) matrices for every frequency bin.
Everything here is a pure function of its inputs, so it can run in worker
processes without synchronisation.
"""

import numpy as np
from scipy.fft import rfft, rfftfreq

from .exceptions import InvalidTrialShape


def calculate_frequency_bins(sfreq: float, nfft: int) -> np.ndarray:
    """
    Physical frequency (Hz) of each non-negative FFT bin.

    :param sfreq: float, sampling frequency
    :param nfft: int, FFT length
    :return: ndarray of length nfft // 2 + 1
    """
    return rfftfreq(nfft, d=1.0 / sfreq)


def compute_tapered_spectra(data: np.ndarray, windows: np.ndarray, weights: np.ndarray,
                            nfft: int) -> np.ndarray:
    """
    Tapered, weighted one-sided spectra of every channel.

    :param data: ndarray (n_channels, n_samples)
    :param windows: ndarray (n_tapers, n_samples)
    :param weights: ndarray (n_tapers,), spectral weight of each taper
    :param nfft: int, FFT length (zero-pad or truncate)
    :return: complex ndarray (n_channels, n_tapers, nfft // 2 + 1)
    """
    tapered = data[:, np.newaxis, :] * windows[np.newaxis, :, :]
    spectra = rfft(tapered, n=nfft, axis=-1)
    return spectra * weights[np.newaxis, :, np.newaxis]


def compute_csd(tapered_spectra: np.ndarray, weights: np.ndarray, nfft: int) -> np.ndarray:
    """
    Dense taper-averaged cross-spectral density of one trial.

    ``csd[f, i, j] = sum_k X[i, k, f] * conj(X[j, k, f]) / (sum_k w_k**2 / 2)``,
    with the DC bin (and the Nyquist bin for even nfft) halved because only the
    non-negative half of the spectrum is kept.

    :param tapered_spectra: complex ndarray (n_channels, n_tapers, n_freqs)
    :param weights: ndarray (n_tapers,)
    :param nfft: int, FFT length used to produce the spectra
    :return: complex ndarray (n_freqs, n_channels, n_channels)
    """
    denom = np.sum(weights ** 2) / 2.0
    csd = np.einsum('ikf,jkf->fij', tapered_spectra, tapered_spectra.conj()) / denom

    csd[0] /= 2.0
    if nfft % 2 == 0:
        csd[-1] /= 2.0
    return csd


def imag_sign(csd: np.ndarray) -> np.ndarray:
    """
    Sign of the imaginary part of each CSD entry.

    Imaginary parts below floating-point resolution relative to the entry's
    magnitude count as zero, so in-phase channels give exactly 0 instead of
    rounding noise of random sign.
    """
    eps = np.finfo(np.float64).eps
    signs = np.sign(csd.imag)
    signs[np.abs(csd.imag) <= 1e3 * eps * np.abs(csd)] = 0.0
    return signs


class TrialSpectralEstimator:
    """
    Spectral estimator for trials of one computation.

    Holds the run-wide shape and taper configuration; every call operates on a
    single trial and has no side effects.

    Parameters
    ----------
    n_channels : int
        Expected number of rows of each trial.
    n_samples : int
        Expected number of columns of each trial.
    taper_set : TaperSet
        Windows of length n_samples, shared read-only.
    nfft : int
        FFT length.
    """

    def __init__(self, n_channels: int, n_samples: int, taper_set, nfft: int):
        if taper_set.n_samples != n_samples:
            raise InvalidTrialShape(
                f"Taper length {taper_set.n_samples} does not match trial length {n_samples}")
        self.n_channels = n_channels
        self.n_samples = n_samples
        self.taper_set = taper_set
        self.nfft = nfft
        self.n_freqs = nfft // 2 + 1

    def check_shape(self, data: np.ndarray):
        if data.ndim != 2 or data.shape != (self.n_channels, self.n_samples):
            raise InvalidTrialShape(
                f"Trial has shape {data.shape}, expected ({self.n_channels}, {self.n_samples})")

    def estimate(self, data: np.ndarray) -> np.ndarray:
        """Tapered spectra of shape (n_channels, n_tapers, n_freqs)."""
        data = np.asarray(data, dtype=np.float64)
        self.check_shape(data)
        return compute_tapered_spectra(data, self.taper_set.windows, self.taper_set.weights, self.nfft)

    def compute_csd(self, data: np.ndarray):
        """
        CSD matrices and the sign of their imaginary parts for one trial.

        :param data: ndarray (n_channels, n_samples)
        :return: (csd, imag_sign), both of shape (n_freqs, n_channels, n_channels)
        """
        spectra = self.estimate(data)
        csd = compute_csd(spectra, self.taper_set.weights, self.nfft)
        return csd, imag_sign(csd)


def _compute_trial(trial_index, data, n_channels, n_samples, taper_set, nfft):
    """Worker entry point: one trial in, its index and CSD contribution out."""
    estimator = TrialSpectralEstimator(n_channels, n_samples, taper_set, nfft)
    csd, signs = estimator.compute_csd(data)
    return trial_index, csd, signs
