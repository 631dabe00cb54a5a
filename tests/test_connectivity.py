import logging

import numpy as np
import pytest

import connectivity_kit
from connectivity_kit import (ConnectivityMetric, ConnectivitySettings, Network, PhaseLagIndex,
                              calculate_connectivity, get_metric, list_metrics)


@pytest.fixture
def restore_logger():
    logger = logging.getLogger('connectivity_kit')
    level, handlers, propagate = logger.level, list(logger.handlers), logger.propagate
    yield logger
    logger.setLevel(level)
    logger.handlers = handlers
    logger.propagate = propagate


def test_registry_lists_pli():
    assert list_metrics() == ['PLI']


def test_get_metric_is_case_insensitive():
    metric = get_metric('pli')
    assert isinstance(metric, PhaseLagIndex)
    assert isinstance(metric, ConnectivityMetric)


def test_unknown_metric_raises():
    with pytest.raises(ValueError):
        get_metric('coherence')


def test_metric_interface_is_abstract():
    with pytest.raises(TypeError):
        ConnectivityMetric()


def test_calculate_connectivity_uses_settings_methods(random_data):
    settings = ConnectivitySettings(random_data, 128.0, frequency_band='alpha')
    networks = calculate_connectivity(settings)
    assert list(networks) == ['PLI']
    network = networks['PLI']
    assert isinstance(network, Network)
    matrix = network.get_full_connectivity_matrix()
    assert matrix.shape == (4, 4)
    assert np.all((matrix >= 0) & (matrix <= 1))


def test_calculate_connectivity_rejects_empty_method_list(random_data):
    settings = ConnectivitySettings(random_data, 128.0, connectivity_methods=())
    with pytest.raises(ValueError):
        calculate_connectivity(settings)


def test_set_log_level_installs_single_handler(restore_logger):
    restore_logger.handlers = []
    connectivity_kit.set_log_level('DEBUG')
    connectivity_kit.set_log_level('WARNING')
    assert restore_logger.level == logging.WARNING
    assert len(restore_logger.handlers) == 1
    assert restore_logger.propagate is False


def test_set_log_level_accepts_numbers_and_rejects_unknown_names(restore_logger):
    logger = connectivity_kit.set_log_level(logging.DEBUG)
    assert logger is restore_logger
    assert logger.level == logging.DEBUG
    with pytest.raises(ValueError):
        connectivity_kit.set_log_level('LOUD')
