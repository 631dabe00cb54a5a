"""
Exception types raised by the connectivity pipeline.

Input problems derive from ``ValueError`` so that callers which already guard
against bad arguments keep working; programming errors derive from
``RuntimeError`` and are not meant to be caught and retried.
"""


class ConnectivityError(Exception):
    """Base class for all connectivity_kit errors."""


class InvalidTrialShape(ConnectivityError, ValueError):
    """A trial's channel or sample count disagrees with the run configuration."""


class DegenerateInput(ConnectivityError, ValueError):
    """No trials, no channels, or an all-zero spectrum."""


class InternalInvariantViolation(ConnectivityError, RuntimeError):
    """Accumulator/graph bookkeeping is inconsistent (bin count mismatch, double contribution, ...)."""
