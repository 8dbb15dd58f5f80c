"""The two SDPs of the alternating procedure, posed and solved with cvxpy.

Alice step (Bob's measurement fixed)::

    maximize   sum_{x,a} Re Tr(W[x, a]^dagger rho[x, a])
    subject to rho[x, a] >= 0,  sum_a rho[x, a] = tau for every x,  Tr(tau) = 1

Bob step (joint operators fixed)::

    maximize   sum_{y,b} Re Tr(V[y, b] B[y, b])
    subject to B[y, b] >= 0,  sum_b B[y, b] = I for every y

``W`` and ``V`` are built in ``game`` from the game tensor and the fixed
operators, so both problems share the objective
``(1/X) Re sum Tr((K[x,y,a,b] ⊗ B[y,b])^dagger rho[x,a])``.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging

import cvxpy
import numpy as np

from .errors import SolverError
from .game import alice_objective_coefficients, bob_objective_coefficients
from .linalg_utils import hermitian_part, min_hermitian_eigenvalue
from .settings import SeesawSettings

logger = logging.getLogger(__name__)


@dataclass
class AliceStep:
    """Optimal joint operators for a fixed Bob measurement."""

    rho: np.ndarray
    tau: np.ndarray
    win: float
    status: str


@dataclass
class BobStep:
    """Optimal Bob measurement for fixed joint operators."""

    bob: np.ndarray
    win: float
    status: str


def optimize_alice(
    K: np.ndarray,
    bob: np.ndarray,
    settings: SeesawSettings | None = None,
) -> AliceStep:
    """Fix Bob's measurement and optimize over the joint operators ``rho`` and ``tau``."""
    cfg = settings if settings is not None else SeesawSettings()
    X, _, A, _, d, _ = K.shape
    joint_dim = d * d
    W = alice_objective_coefficients(K, bob)

    # cvxpy variables are at most 2D, so index them by (x, a).
    rho = {
        (x, a): cvxpy.Variable((joint_dim, joint_dim), hermitian=True)
        for x, a in np.ndindex(X, A)
    }
    tau = cvxpy.Variable((joint_dim, joint_dim), hermitian=True)

    win = 0
    for (x, a), rho_xa in rho.items():
        if np.any(W[x, a]):
            win += cvxpy.real(cvxpy.trace(W[x, a].conj().T @ rho_xa))

    # tau >= 0 follows from the marginal constraints.
    constraints = [cvxpy.real(cvxpy.trace(tau)) == 1]
    for x in range(X):
        constraints.append(sum(rho[x, a] for a in range(A)) == tau)
        constraints.extend(rho[x, a] >> 0 for a in range(A))

    problem = cvxpy.Problem(cvxpy.Maximize(win), constraints)
    value, status = _solve(problem, cfg, context="Alice-step SDP")

    rho_value = np.empty((X, A, joint_dim, joint_dim), dtype=complex)
    for (x, a), rho_xa in rho.items():
        rho_value[x, a] = _variable_value(rho_xa, name=f"rho[{x}, {a}]")
    tau_value = _variable_value(tau, name="tau")

    _check_psd(rho_value, cfg.psd_atol, context="Alice-step SDP", name="rho")
    _check_psd(tau_value, cfg.psd_atol, context="Alice-step SDP", name="tau")
    return AliceStep(rho=rho_value, tau=tau_value, win=value, status=status)


def optimize_bob(
    K: np.ndarray,
    rho: np.ndarray,
    settings: SeesawSettings | None = None,
) -> BobStep:
    """Fix the joint operators and optimize over Bob's measurement."""
    cfg = settings if settings is not None else SeesawSettings()
    X, _, A, _, d, _ = K.shape
    V = bob_objective_coefficients(K, rho)

    bob = {(y, b): cvxpy.Variable((d, d), hermitian=True) for y, b in np.ndindex(X, A)}

    win = 0
    for (y, b), bob_yb in bob.items():
        if np.any(V[y, b]):
            win += cvxpy.real(cvxpy.trace(V[y, b] @ bob_yb))

    identity = np.eye(d)
    constraints = []
    for y in range(X):
        constraints.append(sum(bob[y, b] for b in range(A)) == identity)
        constraints.extend(bob[y, b] >> 0 for b in range(A))

    problem = cvxpy.Problem(cvxpy.Maximize(win), constraints)
    value, status = _solve(problem, cfg, context="Bob-step SDP")

    bob_value = np.empty((X, A, d, d), dtype=complex)
    for (y, b), bob_yb in bob.items():
        bob_value[y, b] = _variable_value(bob_yb, name=f"B[{y}, {b}]")

    _check_psd(bob_value, cfg.psd_atol, context="Bob-step SDP", name="B")
    residual = np.linalg.norm(bob_value.sum(axis=1) - identity, axis=(1, 2))
    if np.max(residual) > cfg.completeness_atol:
        raise SolverError(
            f"Bob-step SDP returned an incomplete measurement "
            f"(Frobenius residual {np.max(residual):.3e})."
        )
    return BobStep(bob=bob_value, win=value, status=status)


def _solve(problem: cvxpy.Problem, settings: SeesawSettings, context: str) -> tuple[float, str]:
    """Solve ``problem`` and return ``(optimal value, status)`` or raise ``SolverError``."""
    acceptable = {cvxpy.OPTIMAL}
    if settings.accept_inaccurate:
        acceptable.add(cvxpy.OPTIMAL_INACCURATE)
    try:
        problem.solve(**settings.solve_kwargs())
    except cvxpy.error.SolverError as exc:
        raise SolverError(f"{context}: solver {settings.solver} failed: {exc}") from exc

    status = str(problem.status)
    if status not in acceptable or problem.value is None or not np.isfinite(problem.value):
        raise SolverError(
            f"{context}: solver {settings.solver} did not return an optimal solution "
            f"(status={status}, value={problem.value})."
        )
    logger.debug("%s solved: status=%s value=%.9f", context, status, problem.value)
    return float(problem.value), status


def _variable_value(variable: cvxpy.Variable, name: str) -> np.ndarray:
    value = variable.value
    if value is None:
        raise SolverError(f"Solver returned no value for {name}.")
    return hermitian_part(np.asarray(value, dtype=complex))


def _check_psd(matrices: np.ndarray, atol: float, context: str, name: str) -> None:
    smallest = min_hermitian_eigenvalue(matrices)
    if smallest < -float(atol):
        raise SolverError(
            f"{context}: {name} is not positive semidefinite "
            f"(smallest eigenvalue {smallest:.3e} < -{atol:g})."
        )
