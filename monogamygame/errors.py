"""Exception types raised by the monogamy-game lower-bound engine."""

from __future__ import annotations


class ConfigError(ValueError):
    """Inconsistent measurement data or invalid tuning parameters."""


class SolverError(RuntimeError):
    """A single SDP solve did not return a usable optimal solution."""


class NumericalDegeneracy(ArithmeticError):
    """Strategy extraction hit a singular or near-singular reduced operator."""
