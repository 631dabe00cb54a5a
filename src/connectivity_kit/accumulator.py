"""
Cross-spectral accumulation across trials.

CsdAccumulator keeps the running sums of the CSD matrices and of the sign of
their imaginary parts. Each trial's contribution is added under a lock, so the
accumulator may be fed from several threads (e.g. pool callbacks) at once.
"""

import threading

import numpy as np

from .exceptions import InternalInvariantViolation


class IntermediateSumData:
    """
    Snapshot of accumulated sums, cached between calculations.

    :param csd_sum: complex ndarray (n_freqs, n_channels, n_channels)
    :param imag_sign_sum: ndarray (n_freqs, n_channels, n_channels)
    :param n_trials: int, number of trials contained in the sums
    :param trial_ids: iterable of int, ids of the trials in the sums (optional)
    :param n_nonzero: int, how many of those trials have a non-zero CSD;
        defaults to n_trials
    """

    def __init__(self, csd_sum: np.ndarray, imag_sign_sum: np.ndarray, n_trials: int,
                 trial_ids=None, n_nonzero: int = None):
        self.csd_sum = csd_sum
        self.imag_sign_sum = imag_sign_sum
        self.n_trials = n_trials
        self.trial_ids = set(trial_ids) if trial_ids is not None else set()
        self.n_nonzero = n_trials if n_nonzero is None else n_nonzero

    @property
    def shape(self):
        return self.csd_sum.shape

    def subtract(self, csd: np.ndarray, imag_sign: np.ndarray, trial_id: int = None):
        """
        Remove one trial's contribution (used when trials leave a sliding window).

        The CSD sum keeps floating-point residue after subtraction, so whether
        any non-zero trial remains is tracked by ``n_nonzero`` instead.
        """
        if csd.shape != self.csd_sum.shape or imag_sign.shape != self.imag_sign_sum.shape:
            raise InternalInvariantViolation(
                f"Cannot subtract contribution of shape {csd.shape} from sums of shape {self.csd_sum.shape}")
        if self.n_trials <= 0:
            raise InternalInvariantViolation("Cannot subtract a trial from empty sums")
        if trial_id is not None:
            if trial_id not in self.trial_ids:
                raise InternalInvariantViolation(f"Trial {trial_id} is not part of the cached sums")
            self.trial_ids.discard(trial_id)
        self.csd_sum = self.csd_sum - csd
        self.imag_sign_sum = self.imag_sign_sum - imag_sign
        self.n_trials -= 1
        if np.any(csd):
            self.n_nonzero -= 1

    def copy(self):
        return IntermediateSumData(self.csd_sum.copy(), self.imag_sign_sum.copy(), self.n_trials,
                                   self.trial_ids, self.n_nonzero)


class CsdAccumulator:
    """
    Thread-safe running sums of per-trial CSD and imaginary-sign matrices.

    Parameters
    ----------
    n_channels : int
        Number of channels (rows and columns of each matrix).
    n_freqs : int
        Number of frequency bins.
    """

    def __init__(self, n_channels: int, n_freqs: int):
        self.n_channels = n_channels
        self.n_freqs = n_freqs
        self.csd_sum = np.zeros((n_freqs, n_channels, n_channels), dtype=np.complex128)
        self.imag_sign_sum = np.zeros((n_freqs, n_channels, n_channels), dtype=np.float64)
        self.n_trials = 0
        self.n_nonzero = 0
        self._trial_indices = set()
        self._lock = threading.Lock()

    @property
    def shape(self):
        return (self.n_freqs, self.n_channels, self.n_channels)

    def _check_shape(self, csd, imag_sign):
        if csd.shape != self.shape or imag_sign.shape != self.shape:
            raise InternalInvariantViolation(
                f"Contribution of shape {csd.shape}/{imag_sign.shape} does not match "
                f"accumulator shape {self.shape}")

    def accumulate(self, trial_index: int, csd: np.ndarray, imag_sign: np.ndarray):
        """
        Add one trial's CSD and imaginary-sign matrices to the running sums.

        The whole contribution is added inside one critical section. Each trial
        index may contribute only once.

        :param trial_index: int, index of the trial within the computation
        :param csd: complex ndarray (n_freqs, n_channels, n_channels)
        :param imag_sign: ndarray (n_freqs, n_channels, n_channels)
        """
        self._check_shape(csd, imag_sign)
        nonzero = bool(np.any(csd))
        with self._lock:
            if trial_index in self._trial_indices:
                raise InternalInvariantViolation(f"Trial {trial_index} was already accumulated")
            self.csd_sum += csd
            self.imag_sign_sum += imag_sign
            self._trial_indices.add(trial_index)
            self.n_trials += 1
            self.n_nonzero += int(nonzero)

    def merge(self, other: "CsdAccumulator"):
        """
        Fold the sums of another accumulator into this one.

        For callers that accumulate per-worker partial sums and combine them at
        the end; trial ids of both sides must be disjoint.
        """
        if other.shape != self.shape:
            raise InternalInvariantViolation(
                f"Cannot merge accumulator of shape {other.shape} into {self.shape}")
        with self._lock:
            overlap = self._trial_indices & other._trial_indices
            if overlap:
                raise InternalInvariantViolation(f"Trials {sorted(overlap)} were accumulated twice")
            self.csd_sum += other.csd_sum
            self.imag_sign_sum += other.imag_sign_sum
            self._trial_indices |= other._trial_indices
            self.n_trials += other.n_trials
            self.n_nonzero += other.n_nonzero

    def load(self, intermediate: IntermediateSumData):
        """
        Seed an empty accumulator with previously cached sums.

        The cached trial ids are restored, so accumulating one of those trials
        again is rejected like any other duplicate.
        """
        if intermediate.shape != self.shape:
            raise InternalInvariantViolation(
                f"Cached sums of shape {intermediate.shape} do not match accumulator shape {self.shape}")
        with self._lock:
            if self.n_trials:
                raise InternalInvariantViolation("Cached sums can only be loaded into an empty accumulator")
            self.csd_sum = intermediate.csd_sum.astype(np.complex128, copy=True)
            self.imag_sign_sum = intermediate.imag_sign_sum.astype(np.float64, copy=True)
            self.n_trials = intermediate.n_trials
            self.n_nonzero = intermediate.n_nonzero
            self._trial_indices = set(intermediate.trial_ids)

    def has_trial(self, trial_index: int) -> bool:
        """Whether the trial already contributed, directly, by merge or via loaded sums."""
        with self._lock:
            return trial_index in self._trial_indices

    def result(self) -> IntermediateSumData:
        """Copy of the current sums."""
        with self._lock:
            return IntermediateSumData(self.csd_sum.copy(), self.imag_sign_sum.copy(), self.n_trials,
                                       self._trial_indices, self.n_nonzero)
