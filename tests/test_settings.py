import mne
import numpy as np
import pytest

from connectivity_kit import FREQUENCY_BANDS, ConnectivitySettings, InvalidTrialShape, PhaseLagIndex


def test_shape_and_defaults(rng):
    settings = ConnectivitySettings(rng.standard_normal((5, 3, 100)), 250.0)
    assert settings.n_trials == 5
    assert settings.n_channels == 3
    assert settings.n_samples == 100
    assert settings.nfft == 100
    assert settings.n_freqs == 51
    assert settings.window_type == 'hanning'
    assert settings.connectivity_methods == ['PLI']
    assert settings.frequencies[-1] == pytest.approx(125.0)


def test_accepts_sequence_of_trials(rng):
    trials = [rng.standard_normal((2, 32)) for _ in range(3)]
    settings = ConnectivitySettings(trials, 32.0)
    assert settings.n_trials == 3
    assert [trial.trial_id for trial in settings.trials] == [0, 1, 2]


def test_mismatched_trials_are_rejected(rng):
    with pytest.raises(InvalidTrialShape):
        ConnectivitySettings([rng.standard_normal((2, 32)), rng.standard_normal((3, 32))], 32.0)

    settings = ConnectivitySettings(rng.standard_normal((2, 2, 32)), 32.0)
    with pytest.raises(InvalidTrialShape):
        settings.append(rng.standard_normal((2, 31)))
    with pytest.raises(InvalidTrialShape):
        settings.append(rng.standard_normal(32))
    assert settings.n_trials == 2


def test_frequency_band_presets_and_bins(rng):
    settings = ConnectivitySettings(rng.standard_normal((2, 2, 128)), 128.0, frequency_band='Theta')
    assert settings.frequency_band == (float(FREQUENCY_BANDS['theta'][0]), float(FREQUENCY_BANDS['theta'][1]))
    assert np.array_equal(settings.get_band_bins(), [4, 5, 6, 7, 8])

    settings.frequency_band = None
    assert settings.get_band_bins() is None


@pytest.mark.parametrize("kwargs", [
    dict(sampling_frequency=0.0),
    dict(sampling_frequency=100.0, nfft=0),
    dict(sampling_frequency=100.0, window_type='kaiser'),
    dict(sampling_frequency=100.0, frequency_band='omega'),
    dict(sampling_frequency=100.0, frequency_band=(30, 10)),
    dict(sampling_frequency=100.0, n_jobs=0),
    dict(sampling_frequency=100.0, channel_names=['a', 'b', 'c']),
    dict(sampling_frequency=100.0, node_positions=np.zeros((2, 2))),
])
def test_invalid_parameters_raise(rng, kwargs):
    with pytest.raises(ValueError):
        ConnectivitySettings(rng.standard_normal((2, 2, 64)), **kwargs)


def test_empty_band_raises_on_use(rng):
    settings = ConnectivitySettings(rng.standard_normal((2, 2, 16)), 16.0, frequency_band=(2.2, 2.8))
    with pytest.raises(ValueError):
        settings.get_band_bins()


def test_taper_set_is_built_once_and_reset_on_change(rng):
    settings = ConnectivitySettings(rng.standard_normal((2, 2, 64)), 64.0, window_type='dpss', bandwidth=2.0)
    tapers = settings.get_taper_set()
    assert settings.get_taper_set() is tapers
    assert tapers.n_samples == 64

    settings.set_taper_configuration(n_tapers=1, bandwidth=2.0)
    assert settings.get_taper_set() is not tapers
    assert settings.get_taper_set().n_tapers == 1

    settings.window_type = 'ones'
    assert settings.get_taper_set().window_type == 'ones'


def test_remove_first_without_cache(rng):
    settings = ConnectivitySettings(rng.standard_normal((5, 2, 16)), 16.0)
    settings.remove_first(2)
    assert settings.n_trials == 3
    assert settings.trials[0].trial_id == 2
    assert settings.intermediate_sum is None


def test_remove_first_drops_cache_when_trials_were_not_computed(rng):
    data = rng.standard_normal((5, 2, 16))
    settings = ConnectivitySettings(data[:3], 16.0)
    PhaseLagIndex().calculate(settings)
    settings.append(data[3])
    settings.append(data[4])
    settings.trials = settings.trials[3:] + settings.trials[:3]
    settings.remove_first(1)
    assert settings.intermediate_sum is None


def test_from_epochs_copies_data_and_metadata(rng):
    data = rng.standard_normal((4, 3, 50))
    info = mne.create_info(['Fz', 'Cz', 'Pz'], sfreq=100.0, ch_types='eeg')
    epochs = mne.EpochsArray(data, info, verbose=False)

    settings = ConnectivitySettings.from_epochs(epochs, window_type='ones')
    assert settings.n_trials == 4
    assert settings.sampling_frequency == 100.0
    assert settings.channel_names == ['Fz', 'Cz', 'Pz']
    assert settings.node_positions.shape == (3, 3)
    assert np.all(np.isfinite(settings.node_positions))
    assert np.allclose(settings.trials[1].data, data[1])

    network = PhaseLagIndex().calculate(settings)
    assert [node.label for node in network.nodes] == ['Fz', 'Cz', 'Pz']


def test_from_epochs_with_picks(rng):
    info = mne.create_info(['Fz', 'Cz', 'Pz'], sfreq=100.0, ch_types='eeg')
    epochs = mne.EpochsArray(rng.standard_normal((2, 3, 50)), info, verbose=False)
    settings = ConnectivitySettings.from_epochs(epochs, picks=['Fz', 'Pz'])
    assert settings.n_channels == 2
    assert settings.channel_names == ['Fz', 'Pz']
