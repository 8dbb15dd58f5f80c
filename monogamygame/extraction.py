"""Recover the players' local measurements from optimal SDP solutions."""

from __future__ import annotations

import numpy as np

from .errors import ConfigError, NumericalDegeneracy
from .linalg_utils import (
    hermitian_part,
    inverse_sqrtm_hermitian,
    min_hermitian_eigenvalue,
    partial_trace,
)
from .measurement import MeasurementSet


def complete_measurement(
    operators: np.ndarray,
    atol: float = 1e-4,
    degeneracy_atol: float = 1e-9,
) -> np.ndarray:
    """Project nearly valid measurement operators onto an exact measurement.

    ``operators`` has shape ``(X, A, d, d)``. Operators more than ``atol`` away
    from positivity or completeness raise ``NumericalDegeneracy``. Otherwise
    negative eigenvalues are clipped and every input is renormalized as
    ``S_x^(-1/2) M[x, a] S_x^(-1/2)`` with ``S_x = sum_a M[x, a]``.
    """
    ops = hermitian_part(operators)
    if ops.ndim != 4 or ops.shape[-2] != ops.shape[-1]:
        raise ConfigError("operators must have shape (X, A, d, d).")
    d = ops.shape[-1]

    residuals = np.linalg.norm(ops.sum(axis=1) - np.eye(d), axis=(1, 2))
    if np.max(residuals) > atol:
        raise NumericalDegeneracy(
            f"operators do not sum to the identity (Frobenius residual {np.max(residuals):.3e})."
        )
    smallest = min_hermitian_eigenvalue(ops)
    if smallest < -atol:
        raise NumericalDegeneracy(
            f"operators are not positive semidefinite (smallest eigenvalue {smallest:.3e})."
        )

    eigenvalues, eigenvectors = np.linalg.eigh(ops)
    clipped = (eigenvectors * np.clip(eigenvalues, 0.0, None)[..., np.newaxis, :]) @ np.swapaxes(
        eigenvectors.conj(), -2, -1
    )
    completed = np.empty_like(clipped)
    for x in range(ops.shape[0]):
        root = inverse_sqrtm_hermitian(clipped[x].sum(axis=0), atol=degeneracy_atol)
        completed[x] = root @ clipped[x] @ root
    return hermitian_part(completed)


def extract_alice_strategy(
    rho: np.ndarray,
    tau: np.ndarray,
    dim: int,
    degeneracy_atol: float = 1e-9,
    completeness_atol: float = 1e-4,
) -> MeasurementSet:
    """Return ``A[x, a] = pur^(-1/2) Tr_2(rho[x, a]) pur^(-1/2)`` with ``pur = Tr_2(tau)``.

    ``rho`` has shape ``(X, A, d*d, d*d)`` and ``tau`` shape ``(d*d, d*d)``;
    the second tensor factor (Bob's system) is traced out. Raises
    ``NumericalDegeneracy`` when ``pur`` is singular to ``degeneracy_atol`` or
    the resulting operators are further than ``completeness_atol`` from a
    measurement. The returned operators are projected onto an exact one.
    """
    rho_arr = np.asarray(rho, dtype=complex)
    d = int(dim)
    if rho_arr.ndim != 4 or rho_arr.shape[-2:] != (d * d, d * d):
        raise ConfigError(f"rho must have shape (X, A, {d * d}, {d * d}).")
    if np.shape(tau) != (d * d, d * d):
        raise ConfigError(f"tau must have shape ({d * d}, {d * d}).")

    pur = partial_trace(tau, (d, d), axis=1)
    pur_inv_sqrt = inverse_sqrtm_hermitian(pur, atol=degeneracy_atol)

    X, A = rho_arr.shape[:2]
    alice = np.empty((X, A, d, d), dtype=complex)
    for x, a in np.ndindex(X, A):
        reduced = partial_trace(rho_arr[x, a], (d, d), axis=1)
        alice[x, a] = pur_inv_sqrt @ reduced @ pur_inv_sqrt

    try:
        completed = complete_measurement(
            alice, atol=completeness_atol, degeneracy_atol=degeneracy_atol
        )
        return MeasurementSet(completed, atol=completeness_atol)
    except (ConfigError, NumericalDegeneracy) as exc:
        raise NumericalDegeneracy(f"Extracted strategy is not a valid measurement: {exc}") from exc
