__version__ = "1.0.0"

import logging

from .exceptions import ConnectivityError, InvalidTrialShape, DegenerateInput, InternalInvariantViolation
from .tapers import TaperSet
from .spectral import TrialSpectralEstimator, calculate_frequency_bins
from .accumulator import CsdAccumulator, IntermediateSumData
from .network import Network, NetworkNode, NetworkEdge
from .settings import ConnectivitySettings, TrialData, FREQUENCY_BANDS
from .abstract_metric import ConnectivityMetric
from .phase_lag_index import PhaseLagIndex, PliReducer
from .connectivity import METRIC_REGISTRY, calculate_connectivity, get_metric, list_metrics

LOG_FORMAT = '%(message)s'


def set_log_level(level='INFO', fmt: str = LOG_FORMAT):
    """
    Route connectivity_kit log records to stderr at the given level.

    INFO reports the start and duration of every calculation, WARNING flags
    channels without power, DEBUG adds cache reuse and trial removal.

    Parameters
    ----------
    level : str or int
        Level name ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL') or number.
    fmt : str, optional
        Format of the stream handler installed on the first call.

    Returns
    -------
    logging.Logger
        The package logger.

    Examples
    --------
    >>> import connectivity_kit
    >>> connectivity_kit.set_log_level('WARNING')
    """
    if isinstance(level, str):
        name = level.upper()
        if name not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            raise ValueError(f"Unknown log level '{level}'")
        level = getattr(logging, name)

    logger = logging.getLogger('connectivity_kit')
    logger.setLevel(level)

    # one handler only, repeated calls just change the level
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt))
        logger.addHandler(handler)
        logger.propagate = False
    return logger

__all__ = ["ConnectivitySettings",
           "TrialData",
           "FREQUENCY_BANDS",
           "TaperSet",
           "TrialSpectralEstimator",
           "calculate_frequency_bins",
           "CsdAccumulator",
           "IntermediateSumData",
           "Network",
           "NetworkNode",
           "NetworkEdge",
           "ConnectivityMetric",
           "PhaseLagIndex",
           "PliReducer",
           "METRIC_REGISTRY",
           "calculate_connectivity",
           "get_metric",
           "list_metrics",
           "ConnectivityError",
           "InvalidTrialShape",
           "DegenerateInput",
           "InternalInvariantViolation",
           "set_log_level"]
