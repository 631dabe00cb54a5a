"""
PhaseLagIndex - Phase Lag Index Connectivity
============================================

Computes the Phase Lag Index (PLI) between every pair of channels:

    PLI(i, j, f) = | mean over trials of sign(Im(C_ij(f))) |

where C_ij(f) is the taper-averaged cross-spectral density of one trial.
PLI ignores zero-lag coupling (volume conduction) because an in-phase
cross-spectrum has no imaginary part.

Pipeline:
1. Validate every trial before any work is scheduled.
2. Compute the CSD of each pending trial, inline or on a process pool.
3. Merge each finished trial into a CsdAccumulator.
4. Reduce the accumulated imaginary-sign sums into a Network.

Per-trial results and the accumulated sums are cached on the settings object
only after the whole calculation succeeded.
"""

import logging
import os
import time
from multiprocessing import Pool

import numpy as np
from tqdm import tqdm

from .abstract_metric import ConnectivityMetric
from .accumulator import CsdAccumulator
from .exceptions import DegenerateInput, InternalInvariantViolation, InvalidTrialShape
from .network import Network, NetworkEdge, NetworkNode
from .spectral import _compute_trial


def _compute_trial_task(task):
    return _compute_trial(*task)


class PliReducer:
    """
    Turns accumulated imaginary-sign sums into PLI edges.

    Parameters
    ----------
    band_bins : array-like of int, optional
        Frequency bins to average each edge over. If None, every edge keeps the
        full per-bin PLI vector.
    """

    def __init__(self, band_bins=None):
        self.band_bins = None if band_bins is None else np.asarray(band_bins, dtype=int)

    def reduce(self, csd_sum: np.ndarray, imag_sign_sum: np.ndarray, n_trials: int,
               network: Network = None, n_nonzero_trials: int = None) -> Network:
        """
        Compute PLI for every channel pair and add one edge per pair to the network.

        :param csd_sum: complex ndarray (n_freqs, n_channels, n_channels)
        :param imag_sign_sum: ndarray (n_freqs, n_channels, n_channels)
        :param n_trials: int, number of trials in the sums
        :param network: Network to populate; a new one is created if None
        :param n_nonzero_trials: int, trials with a non-zero CSD, if known. Takes
            precedence over inspecting csd_sum, which may hold residue from
            subtracted trials.
        :return: the populated Network
        :raises DegenerateInput: no trials, no channels, or an all-zero spectrum
        """
        logger = logging.getLogger('connectivity_kit')

        if n_trials <= 0:
            raise DegenerateInput("PLI needs at least one trial")
        if csd_sum.ndim != 3 or csd_sum.shape[1] != csd_sum.shape[2]:
            raise InternalInvariantViolation(f"CSD sums have invalid shape {csd_sum.shape}")
        if imag_sign_sum.shape != csd_sum.shape:
            raise InternalInvariantViolation(
                f"Imaginary-sign sums {imag_sign_sum.shape} do not match CSD sums {csd_sum.shape}")

        n_freqs, n_channels, _ = csd_sum.shape
        if n_channels == 0:
            raise DegenerateInput("PLI needs at least one channel")
        all_zero = not np.any(csd_sum) if n_nonzero_trials is None else n_nonzero_trials <= 0
        if all_zero:
            raise DegenerateInput("Cross-spectral density is zero at every frequency bin")
        if self.band_bins is not None and (self.band_bins.size == 0 or self.band_bins.max() >= n_freqs
                                           or self.band_bins.min() < 0):
            raise InternalInvariantViolation(
                f"Band bins {self.band_bins.tolist()} outside of 0..{n_freqs - 1}")

        auto_power = np.real(np.diagonal(csd_sum, axis1=1, axis2=2)).sum(axis=0)
        flat = np.where(auto_power == 0)[0]
        if flat.size:
            logger.warning(f"⚠ Channels {flat.tolist()} have zero power, their PLI is 0")

        pli = np.abs(imag_sign_sum / n_trials)
        if not np.all(np.isfinite(pli)):
            raise InternalInvariantViolation("Non-finite PLI values")

        if network is None:
            network = Network('PLI')
        if not network.nodes:
            for i in range(n_channels):
                network.add_node(NetworkNode(i))
        elif len(network.nodes) != n_channels:
            raise InternalInvariantViolation(
                f"Network has {len(network.nodes)} nodes for {n_channels} channels")

        for i in range(n_channels):
            for j in range(i + 1, n_channels):
                weights = pli[:, i, j]
                if self.band_bins is not None:
                    weights = np.mean(weights[self.band_bins])
                network.add_edge(NetworkEdge(i, j, weights))

        network.n_trials = n_trials
        return network


class PhaseLagIndex(ConnectivityMetric):
    """
    Phase Lag Index connectivity metric.

    Examples
    --------
    >>> settings = ConnectivitySettings(data, 250.0, window_type='hanning')
    >>> network = PhaseLagIndex().calculate(settings)
    >>> network.get_full_connectivity_matrix().shape
    (n_channels, n_channels)
    """

    name = 'PLI'

    def calculate(self, settings) -> Network:
        """
        Calculate PLI between all channel pairs of the settings' trials.

        Parameters
        ----------
        settings : ConnectivitySettings
            Trials and run parameters. Per-trial results and cached sums are
            updated on success.

        Returns
        -------
        Network
            One node per channel and one edge per channel pair, carrying the
            per-bin PLI vector or, if a frequency band is configured, its mean.

        Raises
        ------
        DegenerateInput
            If there are no trials or channels, a trial holds NaN or infinite
            samples, or every spectrum is zero.
        InvalidTrialShape
            If any trial disagrees with the run configuration.
        """
        analysis_start_time = time.time()
        logger = logging.getLogger('connectivity_kit')

        self._validate(settings)
        n_channels = settings.n_channels
        n_samples = settings.n_samples
        nfft = settings.nfft
        n_freqs = settings.n_freqs
        band_bins = settings.get_band_bins()
        taper_set = settings.get_taper_set()

        logger.info(f"→ PLI on {settings.n_trials} trials, {n_channels} channels, "
                    f"{n_samples} samples (nfft={nfft}, {taper_set.n_tapers} x '{taper_set.window_type}' taper)")

        accumulator = CsdAccumulator(n_channels, n_freqs)
        cached = [trial for trial in settings.trials if trial.is_computed]
        pending = [trial for trial in settings.trials if not trial.is_computed]

        intermediate = settings.intermediate_sum
        if intermediate is not None and intermediate.shape == accumulator.shape \
                and intermediate.trial_ids == {trial.trial_id for trial in cached}:
            accumulator.load(intermediate)
            logger.debug(f"Reusing cached sums of {len(cached)} trials")
        else:
            for trial in cached:
                accumulator.accumulate(trial.trial_id, trial.csd, trial.imag_sign)

        computed = self._accumulate_trials(pending, settings, taper_set, accumulator)

        sums = accumulator.result()
        if sums.n_trials != settings.n_trials:
            raise InternalInvariantViolation(
                f"Accumulated {sums.n_trials} trials, expected {settings.n_trials}")

        network = self._create_network(settings)
        PliReducer(band_bins).reduce(sums.csd_sum, sums.imag_sign_sum, sums.n_trials, network,
                                     n_nonzero_trials=sums.n_nonzero)

        for trial in pending:
            trial.csd, trial.imag_sign = computed[trial.trial_id]
        settings.set_intermediate_sum(sums)

        logger.info(f"✔ PLI network with {len(network.edges)} edges computed in "
                    f"{time.time() - analysis_start_time:.2f}s ({len(pending)} new trials)")
        return network

    @staticmethod
    def _validate(settings):
        if settings.n_trials == 0:
            raise DegenerateInput("No trials to compute PLI from")
        if settings.n_channels == 0:
            raise DegenerateInput("Trials contain no channels")
        if settings.n_samples == 0:
            raise DegenerateInput("Trials contain no samples")
        expected = (settings.n_channels, settings.n_samples)
        for index, trial in enumerate(settings.trials):
            if trial.data.shape != expected:
                raise InvalidTrialShape(f"Trial {index} has shape {trial.data.shape}, expected {expected}")
            if not np.all(np.isfinite(trial.data)):
                raise DegenerateInput(f"Trial {index} contains NaN or infinite samples")

    @staticmethod
    def _accumulate_trials(pending, settings, taper_set, accumulator):
        """
        Compute the CSD of every pending trial and merge it into the accumulator.

        Trials run inline for n_jobs == 1 and on a process pool otherwise. The
        pool is joined before this returns.

        :return: dict mapping trial_id to (csd, imag_sign)
        """
        computed = {}
        if not pending:
            return computed

        tasks = [(trial.trial_id, trial.data, settings.n_channels, settings.n_samples, taper_set, settings.nfft)
                 for trial in pending]
        n_jobs = os.cpu_count() if settings.n_jobs == -1 else settings.n_jobs
        n_workers = max(1, min(n_jobs, len(tasks)))
        progress = dict(total=len(tasks), desc='PLI trials', disable=not settings.show_progress)

        if n_workers == 1:
            results = tqdm(map(_compute_trial_task, tasks), **progress)
            for trial_id, csd, imag_sign in results:
                accumulator.accumulate(trial_id, csd, imag_sign)
                computed[trial_id] = (csd, imag_sign)
            return computed

        with Pool(processes=n_workers) as pool:
            for trial_id, csd, imag_sign in tqdm(pool.imap(_compute_trial_task, tasks), **progress):
                accumulator.accumulate(trial_id, csd, imag_sign)
                computed[trial_id] = (csd, imag_sign)
            pool.close()
            pool.join()
        return computed

    @staticmethod
    def _create_network(settings) -> Network:
        network = Network(PhaseLagIndex.name, settings.sampling_frequency, settings.nfft)
        for i in range(settings.n_channels):
            label = settings.channel_names[i] if settings.channel_names is not None else None
            position = settings.node_positions[i] if settings.node_positions is not None else None
            network.add_node(NetworkNode(i, position=position, label=label))
        if settings.frequency_band is not None:
            network.set_frequency_range(*settings.frequency_band)
        return network
