"""Shared fixtures and synthetic data for the connectivity_kit tests."""

import numpy as np
import pytest


def make_phase_lag_trials(phases, n_samples=8, k=2):
    """
    Two-channel trials of a bin-aligned cosine at bin ``k``.

    Channel 1 lags channel 0 by ``phases[t]`` in trial ``t``, so the imaginary
    part of C_01 at bin ``k`` has the sign of ``sin(phases[t])``.
    """
    n = np.arange(n_samples)
    trials = []
    for phi in phases:
        x0 = np.cos(2 * np.pi * k * n / n_samples)
        x1 = np.cos(2 * np.pi * k * n / n_samples - phi)
        trials.append(np.vstack([x0, x1]))
    return np.array(trials)


@pytest.fixture
def rng():
    return np.random.default_rng(42)


@pytest.fixture
def random_data(rng):
    """(n_trials, n_channels, n_samples) noise with a lagged 10 Hz component."""
    n_trials, n_channels, n_samples, sfreq = 12, 4, 128, 128.0
    t = np.arange(n_samples) / sfreq
    data = rng.standard_normal((n_trials, n_channels, n_samples))
    for trial in range(n_trials):
        phase = rng.uniform(0, 2 * np.pi)
        data[trial, 0] += np.sin(2 * np.pi * 10 * t + phase)
        data[trial, 1] += np.sin(2 * np.pi * 10 * t + phase - np.pi / 4)
    return data
