"""Tuning parameters for the alternating SDP procedure."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import Any, Mapping

import numpy as np

from .errors import ConfigError


_TIME_LIMIT_OPTION = {
    "CLARABEL": "time_limit",
    "SCS": "time_limit_secs",
}


@dataclass(frozen=True)
class SeesawSettings:
    """Validated configuration for ``monogamy_game_value_lower_bound``.

    ``i_max + 1`` outer passes of ``j_max`` random restarts each are run; every
    restart alternates the two SDPs until the Bob-step value improves by at
    most ``tol`` or ``max_iterations`` full iterations have been done.

    ``psd_atol`` and ``completeness_atol`` bound how far a solver solution may
    be from a valid one before it is rejected; accepted strategies are then
    projected onto exact measurements, so they only need to cover solver noise.
    """

    i_max: int = 0
    j_max: int = 4
    tol: float = 1e-6
    max_iterations: int = 200
    solver: str = "CLARABEL"
    solver_options: Mapping[str, Any] = field(default_factory=dict)
    time_limit: float | None = None
    accept_inaccurate: bool = True
    psd_atol: float = 1e-5
    completeness_atol: float = 1e-4
    degeneracy_atol: float = 1e-9
    workers: int = 1
    seed: int | np.random.SeedSequence | None = None
    verbose: bool = False

    def __post_init__(self) -> None:
        _require_int(self.i_max, "i_max", minimum=0)
        _require_int(self.j_max, "j_max", minimum=1)
        _require_int(self.max_iterations, "max_iterations", minimum=1)
        _require_int(self.workers, "workers", minimum=1)
        for name in ("tol", "psd_atol", "completeness_atol", "degeneracy_atol"):
            value = getattr(self, name)
            if (
                isinstance(value, bool)
                or not isinstance(value, (int, float))
                or not np.isfinite(value)
                or value < 0
            ):
                raise ConfigError(f"{name} must be a finite nonnegative number.")
        if self.tol <= 0:
            raise ConfigError("tol must be strictly positive.")
        if self.time_limit is not None and (
            isinstance(self.time_limit, bool)
            or not isinstance(self.time_limit, (int, float))
            or self.time_limit <= 0
        ):
            raise ConfigError("time_limit must be a positive number of seconds or None.")
        if not isinstance(self.solver, str) or not self.solver.strip():
            raise ConfigError("solver must be a non-empty cvxpy solver name.")
        if not isinstance(self.solver_options, Mapping):
            raise ConfigError("solver_options must be a mapping.")
        if self.seed is not None and not isinstance(
            self.seed, (int, np.integer, np.random.SeedSequence)
        ):
            raise ConfigError("seed must be an integer, a numpy SeedSequence, or None.")
        object.__setattr__(self, "solver", self.solver.strip().upper())
        object.__setattr__(self, "solver_options", dict(self.solver_options))
        if self.time_limit is not None and self.solver not in {"MOSEK", *_TIME_LIMIT_OPTION}:
            raise ConfigError(f"time_limit is not supported for solver {self.solver!r}.")

    @classmethod
    def from_kwargs(cls, **kwargs: Any) -> "SeesawSettings":
        """Build settings from keyword arguments, rejecting unknown names."""
        cls._reject_unknown(kwargs)
        return cls(**kwargs)

    def updated(self, **kwargs: Any) -> "SeesawSettings":
        """Return a copy with the given fields replaced and re-validated."""
        if not kwargs:
            return self
        self._reject_unknown(kwargs)
        return replace(self, **kwargs)

    @classmethod
    def _reject_unknown(cls, kwargs: Mapping[str, Any]) -> None:
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(kwargs) - known)
        if unknown:
            raise ConfigError(f"Unknown setting(s): {', '.join(unknown)}.")

    @property
    def num_restarts(self) -> int:
        return (self.i_max + 1) * self.j_max

    def restart_seeds(self) -> list[np.random.SeedSequence]:
        """One independent child seed per restart, in restart order."""
        root = self.seed if isinstance(self.seed, np.random.SeedSequence) else np.random.SeedSequence(self.seed)
        return root.spawn(self.num_restarts)

    def solve_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for ``cvxpy.Problem.solve``."""
        kwargs: dict[str, Any] = {"solver": self.solver, "verbose": bool(self.verbose)}
        kwargs.update(self.solver_options)
        if self.time_limit is None:
            return kwargs
        if self.solver == "MOSEK":
            mosek_params = dict(kwargs.get("mosek_params", {}))
            mosek_params["MSK_DPAR_OPTIMIZER_MAX_TIME"] = float(self.time_limit)
            kwargs["mosek_params"] = mosek_params
        else:
            kwargs[_TIME_LIMIT_OPTION[self.solver]] = float(self.time_limit)
        return kwargs


def _require_int(value: object, name: str, *, minimum: int) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        raise ConfigError(f"{name} must be an integer.")
    if int(value) < minimum:
        raise ConfigError(f"{name} must be at least {minimum}.")
