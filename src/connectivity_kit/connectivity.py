"""
Metric registry and dispatch.

Every metric is one ConnectivityMetric variant registered under its method
name; ``calculate_connectivity`` runs the requested methods on one settings
object.
"""

import logging
from typing import Dict, Iterable

from .abstract_metric import ConnectivityMetric
from .network import Network
from .phase_lag_index import PhaseLagIndex

METRIC_REGISTRY: Dict[str, type] = {
    "PLI": PhaseLagIndex,
}

METRIC_DESCRIPTIONS: Dict[str, str] = {
    "PLI": "Phase Lag Index (consistency of the sign of the cross-spectrum imaginary part across trials)",
}


def list_metrics():
    """Names of all registered connectivity methods."""
    return list(METRIC_REGISTRY.keys())


def get_metric(name: str) -> ConnectivityMetric:
    """
    Instantiate a registered metric by method name (case-insensitive).

    :raises ValueError: if the method is not registered
    """
    key = name.upper()
    if key not in METRIC_REGISTRY:
        raise ValueError(f"Unknown connectivity method '{name}'. Available: {list_metrics()}")
    return METRIC_REGISTRY[key]()


def calculate_connectivity(settings, methods: Iterable[str] = None) -> Dict[str, Network]:
    """
    Run one or more connectivity metrics on the same settings.

    :param settings: ConnectivitySettings
    :param methods: method names; defaults to ``settings.connectivity_methods``
    :return: dict mapping each method name to its Network
    """
    logger = logging.getLogger('connectivity_kit')
    methods = list(methods) if methods is not None else list(settings.connectivity_methods)
    if not methods:
        raise ValueError("No connectivity methods requested")

    metrics = [get_metric(name) for name in methods]
    networks = {}
    for metric in metrics:
        logger.info(f"→ Calculating {metric.name}")
        networks[metric.name] = metric.calculate(settings)
    return networks
