"""Shared linear-algebra helpers used across the monogamy-game modules."""

from __future__ import annotations

from functools import reduce
from typing import Iterator, Sequence

import numpy as np
from scipy.stats import unitary_group

from .errors import ConfigError, NumericalDegeneracy


class MixedRadixCounter:
    """Odometer over digits with per-digit radix.

    The last digit is the least significant and advances fastest, so iterating
    a counter with radices ``(r_1, ..., r_n)`` visits digit tuples in the same
    order as ``np.ndindex(r_1, ..., r_n)``.
    """

    def __init__(self, radices: Sequence[int]) -> None:
        radix_tuple = tuple(int(r) for r in radices)
        if not radix_tuple:
            raise ConfigError("radices must contain at least one digit.")
        if any(r <= 0 for r in radix_tuple):
            raise ConfigError("radices must be strictly positive.")
        self.radices = radix_tuple
        self.digits = [0] * len(radix_tuple)

    def __len__(self) -> int:
        return int(np.prod(self.radices))

    def __iter__(self) -> Iterator[tuple[int, ...]]:
        self.reset()
        for _ in range(len(self)):
            yield tuple(self.digits)
            self.increment()

    def reset(self) -> None:
        self.digits = [0] * len(self.radices)

    def increment(self) -> bool:
        """Advance by one; return ``True`` when the counter wrapped to all zeros."""
        for position in range(len(self.radices) - 1, -1, -1):
            self.digits[position] += 1
            if self.digits[position] < self.radices[position]:
                return False
            self.digits[position] = 0
        return True


def tensor_product(operators: Sequence[np.ndarray]) -> np.ndarray:
    """Return ``operators[0] ⊗ operators[1] ⊗ ...`` in the given order."""
    mats = [np.asarray(op, dtype=complex) for op in operators]
    if not mats:
        raise ValueError("operators must be non-empty.")
    return reduce(np.kron, mats)


def hermitian_part(matrix: np.ndarray) -> np.ndarray:
    """Return ``(M + M^dagger) / 2``."""
    mat = np.asarray(matrix, dtype=complex)
    return 0.5 * (mat + np.swapaxes(mat.conj(), -2, -1))


def min_hermitian_eigenvalue(matrix: np.ndarray) -> float:
    """Smallest eigenvalue of the Hermitian part of ``matrix`` (or of a stack of matrices)."""
    eigenvalues = np.linalg.eigvalsh(hermitian_part(matrix))
    return float(np.min(eigenvalues))


def partial_trace(matrix: np.ndarray, dims: Sequence[int], axis: int = 1) -> np.ndarray:
    """Trace out subsystem ``axis`` of a bipartite operator with factor dimensions ``dims``.

    ``axis=1`` traces the second tensor factor and returns an operator on the
    first; ``axis=0`` does the converse.
    """
    d_first, d_second = (int(d) for d in dims)
    mat = np.asarray(matrix, dtype=complex)
    total = d_first * d_second
    if mat.shape != (total, total):
        raise ValueError(f"matrix must have shape ({total}, {total}) for dims {tuple(dims)}.")
    blocks = mat.reshape(d_first, d_second, d_first, d_second)
    if axis == 1:
        return np.einsum("ijkj->ik", blocks)
    if axis == 0:
        return np.einsum("ijil->jl", blocks)
    raise ValueError("axis must be 0 or 1 for a bipartite operator.")


def inverse_sqrtm_hermitian(matrix: np.ndarray, atol: float = 1e-9) -> np.ndarray:
    """Return ``M^(-1/2)`` for a positive definite Hermitian ``M``.

    Raises ``NumericalDegeneracy`` when the smallest eigenvalue is below ``atol``.
    """
    eigenvalues, eigenvectors = np.linalg.eigh(hermitian_part(matrix))
    smallest = float(np.min(eigenvalues))
    if not np.all(np.isfinite(eigenvalues)) or smallest <= float(atol):
        raise NumericalDegeneracy(
            f"Operator is singular to tolerance {atol:g} (smallest eigenvalue {smallest:.3e}); "
            "inverse square root is undefined."
        )
    return (eigenvectors / np.sqrt(eigenvalues)) @ eigenvectors.conj().T


def random_unitary(dim: int, rng: np.random.Generator | None = None) -> np.ndarray:
    """Sample a ``dim x dim`` unitary from the Haar measure."""
    dim_int = int(dim)
    if dim_int <= 0:
        raise ValueError("dim must be positive.")
    if dim_int == 1:
        phase = (rng if rng is not None else np.random.default_rng()).uniform(0.0, 2.0 * np.pi)
        return np.array([[np.exp(1j * phase)]], dtype=complex)
    return np.asarray(unitary_group.rvs(dim_int, random_state=rng), dtype=complex)
