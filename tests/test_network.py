import networkx as nx
import numpy as np
import pytest

from connectivity_kit import InternalInvariantViolation, Network, NetworkEdge, NetworkNode


def _network(n_nodes=3, sfreq=8.0, nfft=8):
    network = Network('PLI', sfreq, nfft)
    for i in range(n_nodes):
        network.add_node(NetworkNode(i, position=[i, 0.0, 0.0], label=f"ch{i}"))
    return network


def test_edges_are_undirected():
    network = _network()
    network.add_edge(NetworkEdge(2, 0, [0.1, 0.2, 0.3, 0.4, 0.5]))
    edge = network.get_edge(0, 2)
    assert (edge.start, edge.end) == (0, 2)
    assert network.get_edge(2, 0) is edge
    assert network.get_edge_weight(2, 0) == pytest.approx(0.3)
    assert network.get_edge_weight(0, 1) == 0.0


def test_self_and_duplicate_edges_are_rejected():
    network = _network()
    with pytest.raises(InternalInvariantViolation):
        NetworkEdge(1, 1, [0.5])
    network.add_edge(NetworkEdge(0, 1, [0.5]))
    with pytest.raises(InternalInvariantViolation):
        network.add_edge(NetworkEdge(1, 0, [0.7]))
    with pytest.raises(InternalInvariantViolation):
        network.add_edge(NetworkEdge(0, 5, [0.7]))


def test_full_matrix_is_symmetric_with_zero_diagonal():
    network = _network()
    network.add_edge(NetworkEdge(0, 1, [0.5]))
    network.add_edge(NetworkEdge(1, 2, [0.25]))
    matrix = network.get_full_connectivity_matrix()
    assert np.array_equal(matrix, matrix.T)
    assert np.all(np.diag(matrix) == 0)
    assert matrix[0, 1] == 0.5
    assert matrix[2, 1] == 0.25


def test_frequency_range_selects_bins_for_per_bin_edges():
    network = _network()
    # freqs for sfreq=8, nfft=8: 0, 1, 2, 3, 4 Hz
    network.add_edge(NetworkEdge(0, 1, [0.0, 1.0, 0.5, 0.0, 0.0]))
    network.set_frequency_range(1.0, 2.0)
    assert np.array_equal(network.get_frequency_bins(), [1, 2])
    assert network.get_edge_weight(0, 1) == pytest.approx(0.75)

    with pytest.raises(ValueError):
        network.set_frequency_range(2.2, 2.8)
    with pytest.raises(ValueError):
        network.set_frequency_range(3.0, 1.0)


def test_threshold_degrees_and_strengths():
    network = _network()
    network.add_edge(NetworkEdge(0, 1, [0.9]))
    network.add_edge(NetworkEdge(0, 2, [0.2]))
    network.add_edge(NetworkEdge(1, 2, [0.6]))
    network.set_threshold(0.5)

    assert len(network.get_thresholded_edges()) == 2
    assert np.array_equal(network.get_node_degrees(), [2, 2, 2])
    assert np.array_equal(network.get_node_degrees(thresholded=True), [1, 2, 1])
    assert np.allclose(network.get_node_strengths(), [1.1, 1.5, 0.8])
    assert network.get_thresholded_connectivity_matrix()[0, 2] == 0.0
    assert network.get_min_max_weights() == (0.2, 0.9)


def test_normalize_scales_largest_weight_to_one():
    network = _network()
    network.add_edge(NetworkEdge(0, 1, [0.4]))
    network.add_edge(NetworkEdge(1, 2, [0.2]))
    network.normalize()
    assert network.get_edge_weight(0, 1) == pytest.approx(1.0)
    assert network.get_edge_weight(1, 2) == pytest.approx(0.5)


def test_to_networkx_keeps_labels_and_weights():
    network = _network()
    network.add_edge(NetworkEdge(0, 1, [0.4]))
    graph = network.to_networkx()
    assert isinstance(graph, nx.Graph)
    assert graph.number_of_nodes() == 3
    assert graph.nodes[1]['label'] == 'ch1'
    assert graph[0][1]['weight'] == pytest.approx(0.4)


def test_empty_network():
    assert Network().is_empty()
    assert Network().get_min_max_weights() == (0.0, 0.0)
