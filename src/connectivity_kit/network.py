"""
Network - Connectivity Graph Representation
===========================================

Weighted, undirected graph returned by every connectivity metric:
one node per channel, one edge per unordered channel pair.

Edges store either the full per-frequency-bin weight vector or a single
band-collapsed value. For per-bin edges the scalar weight is the mean over the
network's active frequency bins, selected with ``set_frequency_range``.
"""

import numpy as np
import networkx as nx

from .exceptions import InternalInvariantViolation
from .spectral import calculate_frequency_bins


class NetworkNode:
    """
    One channel of the recording.

    :param node_id: int, channel index
    :param position: array-like of 3 floats, sensor position (optional)
    :param label: str, channel name (optional)
    """

    def __init__(self, node_id: int, position=None, label: str = None):
        self.node_id = int(node_id)
        self.position = np.zeros(3) if position is None else np.asarray(position, dtype=np.float64)
        self.label = label if label is not None else str(node_id)

    def __repr__(self):
        return f"NetworkNode(node_id={self.node_id}, label='{self.label}')"


class NetworkEdge:
    """
    Undirected connection between two channels.

    :param start: int, id of the first node (start < end after normalisation)
    :param end: int, id of the second node
    :param weights: array-like, per-bin weights or a single collapsed weight
    """

    def __init__(self, start: int, end: int, weights):
        start, end = int(start), int(end)
        if start == end:
            raise InternalInvariantViolation(f"Self connection on node {start} is not allowed")
        self.start, self.end = min(start, end), max(start, end)
        self.weights = np.atleast_1d(np.asarray(weights, dtype=np.float64))

    @property
    def is_collapsed(self) -> bool:
        return self.weights.size == 1

    def get_weight(self, freq_bins=None) -> float:
        """
        Scalar edge weight.

        :param freq_bins: array of bin indices to average over; None uses every bin
        :return: float
        """
        if self.is_collapsed or freq_bins is None:
            return float(np.mean(self.weights))
        return float(np.mean(self.weights[freq_bins]))

    def __repr__(self):
        return f"NetworkEdge({self.start}, {self.end}, n_weights={self.weights.size})"


class Network:
    """
    Connectivity graph produced by a connectivity metric.

    Parameters
    ----------
    connectivity_method : str
        Name of the metric that produced the network (e.g. 'PLI').
    sampling_frequency : float, optional
        Sampling frequency of the source data in Hz; needed to map Hz to bins.
    nfft : int, optional
        FFT length used by the metric.
    """

    def __init__(self, connectivity_method: str = '', sampling_frequency: float = None,
                 nfft: int = None):
        self.connectivity_method = connectivity_method
        self.sampling_frequency = sampling_frequency
        self.nfft = nfft
        self.n_trials = 0
        self.nodes = []
        self.edges = []
        self.threshold = 0.0
        self.frequency_range = None
        self._freq_bins = None
        self._edge_lookup = {}

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def add_node(self, node: NetworkNode):
        if node.node_id != len(self.nodes):
            raise InternalInvariantViolation(
                f"Node ids must be consecutive, expected {len(self.nodes)} got {node.node_id}")
        self.nodes.append(node)

    def add_edge(self, edge: NetworkEdge):
        """Insert an edge; every channel pair may be written only once."""
        if edge.end >= len(self.nodes):
            raise InternalInvariantViolation(
                f"Edge ({edge.start}, {edge.end}) refers to a node that does not exist")
        key = (edge.start, edge.end)
        if key in self._edge_lookup:
            raise InternalInvariantViolation(f"Edge {key} was already added")
        self._edge_lookup[key] = edge
        self.edges.append(edge)

    # ------------------------------------------------------------------
    # Frequency selection
    # ------------------------------------------------------------------

    def frequencies(self) -> np.ndarray:
        if self.sampling_frequency is None or self.nfft is None:
            raise ValueError("sampling_frequency and nfft must be set to map frequencies to bins")
        return calculate_frequency_bins(self.sampling_frequency, self.nfft)

    def set_frequency_range(self, fmin: float, fmax: float):
        """
        Restrict scalar edge weights to the bins whose frequency lies in [fmin, fmax].

        :param fmin: float, lower bound in Hz
        :param fmax: float, upper bound in Hz
        """
        if fmin > fmax:
            raise ValueError(f"fmin ({fmin}) must not exceed fmax ({fmax})")
        freqs = self.frequencies()
        bins = np.where((freqs >= fmin) & (freqs <= fmax))[0]
        if bins.size == 0:
            raise ValueError(f"No frequency bins between {fmin} and {fmax} Hz")
        self.frequency_range = (float(fmin), float(fmax))
        self._freq_bins = bins

    def get_frequency_bins(self):
        """Bin indices used for scalar weights, or None for all bins."""
        return self._freq_bins

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_empty(self) -> bool:
        return not self.nodes and not self.edges

    def get_edge(self, i: int, j: int) -> NetworkEdge:
        return self._edge_lookup.get((min(i, j), max(i, j)))

    def get_edge_weight(self, i: int, j: int) -> float:
        edge = self.get_edge(i, j)
        if edge is None:
            return 0.0
        return edge.get_weight(self._freq_bins)

    def get_full_connectivity_matrix(self) -> np.ndarray:
        """Symmetric (n_nodes, n_nodes) weight matrix with a zero diagonal."""
        n = len(self.nodes)
        matrix = np.zeros((n, n))
        for edge in self.edges:
            w = edge.get_weight(self._freq_bins)
            matrix[edge.start, edge.end] = w
            matrix[edge.end, edge.start] = w
        return matrix

    def get_min_max_weights(self):
        if not self.edges:
            return 0.0, 0.0
        weights = [edge.get_weight(self._freq_bins) for edge in self.edges]
        return min(weights), max(weights)

    def set_threshold(self, threshold: float):
        self.threshold = float(threshold)

    def get_thresholded_edges(self):
        """Edges whose scalar weight is at least the current threshold."""
        return [edge for edge in self.edges if edge.get_weight(self._freq_bins) >= self.threshold]

    def get_thresholded_connectivity_matrix(self) -> np.ndarray:
        matrix = self.get_full_connectivity_matrix()
        matrix[matrix < self.threshold] = 0.0
        return matrix

    def get_node_degrees(self, thresholded: bool = False) -> np.ndarray:
        """Number of edges touching each node."""
        edges = self.get_thresholded_edges() if thresholded else self.edges
        degrees = np.zeros(len(self.nodes), dtype=int)
        for edge in edges:
            degrees[edge.start] += 1
            degrees[edge.end] += 1
        return degrees

    def get_node_strengths(self, thresholded: bool = False) -> np.ndarray:
        """Sum of edge weights touching each node."""
        matrix = self.get_thresholded_connectivity_matrix() if thresholded else self.get_full_connectivity_matrix()
        return matrix.sum(axis=1)

    def normalize(self):
        """Scale every edge so that the largest scalar weight becomes 1."""
        _, max_weight = self.get_min_max_weights()
        if max_weight == 0:
            return
        for edge in self.edges:
            edge.weights = edge.weights / max_weight

    def to_networkx(self, thresholded: bool = False) -> nx.Graph:
        """
        Convert to a ``networkx.Graph`` with node labels/positions and a ``weight`` attribute per edge.
        """
        graph = nx.Graph(connectivity_method=self.connectivity_method,
                         frequency_range=self.frequency_range)
        for node in self.nodes:
            graph.add_node(node.node_id, label=node.label, position=tuple(node.position))
        edges = self.get_thresholded_edges() if thresholded else self.edges
        for edge in edges:
            graph.add_edge(edge.start, edge.end, weight=edge.get_weight(self._freq_bins))
        return graph

    def __repr__(self):
        return (f"Network(method='{self.connectivity_method}', n_nodes={len(self.nodes)}, "
                f"n_edges={len(self.edges)})")
