"""Measurement containers for the referee and the two players.

Data conventions used in this module:
- A measurement set is stored as one complex array of shape ``(X, A, d, d)``
  holding the operator for input ``x`` and outcome ``a``.
- Every input carries the same number of outcomes ``A``.
- Completeness: ``sum_a M[x, a] = I_d`` for every ``x``.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np
import sympy as sp

from .errors import ConfigError
from .linalg_utils import MixedRadixCounter, hermitian_part, tensor_product


class MeasurementSet:
    """Validated ``(input, output) -> operator`` mapping with completeness per input."""

    num_inputs: int
    num_outputs: int
    dim: int
    atol: float

    def __init__(self, operators: object, atol: float = 1e-9) -> None:
        self.atol = float(atol)
        if self.atol < 0.0:
            raise ConfigError("atol must be nonnegative.")
        arr = self._coerce_operator_array(operators)
        self.num_inputs, self.num_outputs, self.dim, _ = arr.shape
        self._operators = arr
        self._operators.setflags(write=False)
        self.sanity_check()

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}("
            f"num_inputs={self.num_inputs}, num_outputs={self.num_outputs}, dim={self.dim})"
        )

    def __len__(self) -> int:
        return self.num_inputs

    def __getitem__(self, x: int) -> tuple[np.ndarray, ...]:
        return tuple(self._operators[x, a] for a in range(self.num_outputs))

    @property
    def operators(self) -> np.ndarray:
        """Read-only operator array, shape ``(X, A, d, d)``."""
        return self._operators

    def operator(self, x: int, a: int) -> np.ndarray:
        """Return the operator for input ``x`` and outcome ``a``."""
        if not 0 <= x < self.num_inputs:
            raise IndexError(f"x must be in 0..{self.num_inputs - 1}.")
        if not 0 <= a < self.num_outputs:
            raise IndexError(f"a must be in 0..{self.num_outputs - 1}.")
        return self._operators[x, a]

    def completeness_residuals(self) -> np.ndarray:
        """Frobenius distance of ``sum_a M[x, a]`` from the identity, shape ``(X,)``."""
        sums = self._operators.sum(axis=1)
        identity = np.eye(self.dim, dtype=complex)
        return np.linalg.norm(sums - identity[np.newaxis, :, :], axis=(1, 2))

    def sanity_check(self) -> None:
        """Check Hermiticity, positivity and completeness to ``atol``."""
        ops = self._operators
        if not np.allclose(ops, np.swapaxes(ops.conj(), -2, -1), atol=self.atol, rtol=0.0):
            raise ConfigError("Measurement operators must be Hermitian.")
        min_eigs = np.linalg.eigvalsh(hermitian_part(ops)).min(axis=-1)
        bad = np.argwhere(min_eigs < -self.atol)
        if bad.size:
            x, a = (int(i) for i in bad[0])
            raise ConfigError(
                f"Operator ({x}, {a}) is not positive semidefinite "
                f"(smallest eigenvalue {min_eigs[x, a]:.3e})."
            )
        residuals = self.completeness_residuals()
        worst = int(np.argmax(residuals))
        if residuals[worst] > self.atol:
            raise ConfigError(
                f"Operators for input {worst} do not sum to the identity "
                f"(Frobenius residual {residuals[worst]:.3e})."
            )

    @staticmethod
    def _coerce_operator_array(operators: object) -> np.ndarray:
        if isinstance(operators, MeasurementSet):
            return operators.operators.copy()

        dense: np.ndarray | None = None
        try:
            dense = np.array(operators, dtype=complex)
        except (TypeError, ValueError):
            dense = None
        if dense is not None and dense.ndim == 4:
            if dense.shape[0] == 0 or dense.shape[1] == 0:
                raise ConfigError("Measurement must have at least one input and one outcome.")
            if dense.shape[-2] != dense.shape[-1] or dense.shape[-1] == 0:
                raise ConfigError("Measurement operators must be non-empty square matrices.")
            return dense

        if not isinstance(operators, (list, tuple, np.ndarray)):
            raise ConfigError("Measurement must be a nested sequence R[x][a] of square matrices.")
        settings = list(operators)
        if not settings:
            raise ConfigError("Measurement must have at least one input.")

        rows: list[list[np.ndarray]] = []
        for x, setting in enumerate(settings):
            if not isinstance(setting, (list, tuple, np.ndarray)) or len(setting) == 0:
                raise ConfigError(f"Measurement input {x} has no outcomes.")
            row: list[np.ndarray] = []
            for a, matrix in enumerate(setting):
                mat = np.asarray(matrix, dtype=complex)
                if mat.ndim != 2 or mat.shape[0] != mat.shape[1] or mat.shape[0] == 0:
                    raise ConfigError(f"Operator ({x}, {a}) is not a square matrix.")
                row.append(mat)
            rows.append(row)

        num_outputs = len(rows[0])
        d = rows[0][0].shape[0]
        for x, row in enumerate(rows):
            if len(row) != num_outputs:
                raise ConfigError(
                    f"Measurement input {x} has {len(row)} outcomes, expected {num_outputs}."
                )
            for a, mat in enumerate(row):
                if mat.shape != (d, d):
                    raise ConfigError(
                        f"Operator ({x}, {a}) has shape {mat.shape}, expected {(d, d)}."
                    )
        return np.stack([np.stack(row, axis=0) for row in rows], axis=0)

    @staticmethod
    def projector(ket: object) -> np.ndarray:
        """Return the rank-1 projector ``|psi><psi|`` as a complex array."""
        if isinstance(ket, sp.MatrixBase):
            vec = np.asarray(ket.evalf(), dtype=complex).reshape(-1)
        else:
            vec = np.asarray(ket, dtype=complex).reshape(-1)
        return np.outer(vec, vec.conj())


class ReferenceMeasurement(MeasurementSet):
    """The referee's measurement ``R[x][a]`` for a monogamy-of-entanglement game."""

    @classmethod
    def from_kets(cls, bases: Sequence[Sequence[object]], atol: float = 1e-9) -> "ReferenceMeasurement":
        """Build a projective referee measurement from one orthonormal basis per input."""
        return cls([[cls.projector(ket) for ket in basis] for basis in bases], atol=atol)

    @staticmethod
    def xz_plane_ket(theta: object) -> object:
        """Return real-amplitude qubit ket in the X-Z Bloch plane."""
        theta_sym = sp.sympify(theta)
        return sp.Matrix([sp.cos(theta_sym / 2), sp.sin(theta_sym / 2)])

    @classmethod
    def from_xz_plane_angles(
        cls,
        angles: Sequence[object],
        atol: float = 1e-9,
    ) -> "ReferenceMeasurement":
        """Qubit referee measuring along each Bloch angle in the X-Z plane.

        Input ``x`` is the basis ``{|theta_x>, |theta_x + pi>}``; kets are built
        exactly with SymPy before numeric conversion.
        """
        if len(angles) == 0:
            raise ConfigError("angles must be non-empty.")
        bases = [
            (cls.xz_plane_ket(theta), cls.xz_plane_ket(sp.sympify(theta) + sp.pi))
            for theta in angles
        ]
        return cls.from_kets(bases, atol=atol)

    @classmethod
    def bb84(cls, atol: float = 1e-9) -> "ReferenceMeasurement":
        """Computational and Hadamard bases on one qubit."""
        return cls.from_xz_plane_angles([0, sp.pi / 2], atol=atol)

    def tensor_power(self, reps: int) -> "ReferenceMeasurement":
        """Return the ``reps``-fold parallel repetition of this measurement.

        Input ``i`` of the result corresponds to the digit tuple
        ``(i_1, ..., i_reps)`` in odometer order (last digit fastest), and the
        operator for ``(i, j)`` is ``R[i_1][j_1] ⊗ ... ⊗ R[i_reps][j_reps]``.
        """
        reps_int = _validate_reps(reps)
        if reps_int == 1:
            return self

        input_counter = MixedRadixCounter([self.num_inputs] * reps_int)
        output_counter = MixedRadixCounter([self.num_outputs] * reps_int)
        rows: list[list[np.ndarray]] = []
        for i_digits in input_counter:
            row: list[np.ndarray] = []
            for j_digits in output_counter:
                row.append(
                    tensor_product(
                        [self._operators[i, j] for i, j in zip(i_digits, j_digits)]
                    )
                )
            rows.append(row)
        # Completeness errors compound across copies.
        return ReferenceMeasurement(rows, atol=self.atol * reps_int * self.dim ** (reps_int - 1))


def _validate_reps(reps: object) -> int:
    if isinstance(reps, bool) or not isinstance(reps, (int, np.integer)):
        raise ConfigError("reps must be an integer.")
    if int(reps) < 1:
        raise ConfigError("reps must be at least 1.")
    return int(reps)
