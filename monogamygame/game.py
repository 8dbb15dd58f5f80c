"""Monogamy-of-entanglement game built from a referee measurement.

Array conventions:
- Game tensor ``K`` has shape ``(X, X, A, A, d, d)`` with
  ``K[x, y, a, b] = R[x][a]`` when ``x == y`` and ``a == b`` and zero otherwise.
- Bob's measurement ``B`` has shape ``(X, A, d, d)``.
- Joint operators ``rho`` have shape ``(X, A, d*d, d*d)`` on referee ⊗ Bob.
"""

from __future__ import annotations

from functools import cached_property

import numpy as np

from .errors import ConfigError
from .measurement import MeasurementSet, ReferenceMeasurement


def tensor_power(reference: object, reps: int) -> ReferenceMeasurement:
    """Return the ``reps``-fold parallel repetition of a referee measurement."""
    if not isinstance(reference, ReferenceMeasurement):
        reference = ReferenceMeasurement(reference)
    return reference.tensor_power(reps)


def game_tensor(reference: MeasurementSet) -> np.ndarray:
    """Embed referee operators on the diagonal ``x == y``, ``a == b`` of a 6-index array."""
    X, A, d = reference.num_inputs, reference.num_outputs, reference.dim
    K = np.zeros((X, X, A, A, d, d), dtype=complex)
    for x in range(X):
        for a in range(A):
            K[x, x, a, a] = reference.operator(x, a)
    return K


def alice_objective_coefficients(K: np.ndarray, bob: np.ndarray) -> np.ndarray:
    """Coefficients ``W[x, a]`` with ``win = sum_{x,a} Re Tr(W[x, a]^dagger rho[x, a])``.

    ``W[x, a] = (1/X) sum_{y,b} K[x, y, a, b] ⊗ B[y, b]``.
    """
    X, _, A, _, d, _ = K.shape
    W = np.einsum("xyabij,ybkl->xaikjl", K, np.asarray(bob, dtype=complex))
    return W.reshape(X, A, d * d, d * d) / X


def bob_objective_coefficients(K: np.ndarray, rho: np.ndarray) -> np.ndarray:
    """Coefficients ``V[y, b]`` with ``win = sum_{y,b} Re Tr(V[y, b] B[y, b])``.

    ``V[y, b] = (1/X) sum_{x,a} Tr_referee[(K[x, y, a, b]^dagger ⊗ I) rho[x, a]]``.
    """
    X, _, A, _, d, _ = K.shape
    rho_blocks = np.asarray(rho, dtype=complex).reshape(X, A, d, d, d, d)
    V = np.einsum("xyabmi,xamkil->ybkl", K.conj(), rho_blocks)
    return V / X


def winning_probability(K: np.ndarray, rho: np.ndarray, bob: np.ndarray) -> float:
    """Evaluate the bilinear game objective for numeric ``rho`` and ``B``."""
    W = alice_objective_coefficients(K, bob)
    return float(np.real(np.einsum("xaij,xaij->", W.conj(), np.asarray(rho, dtype=complex))))


class MonogamyGame:
    """Monogamy-of-entanglement game, optionally repeated in parallel ``reps`` times."""

    base_reference: ReferenceMeasurement
    reference: ReferenceMeasurement
    reps: int

    def __init__(self, reference: object, reps: int = 1) -> None:
        if isinstance(reference, ReferenceMeasurement):
            self.base_reference = reference
        else:
            self.base_reference = ReferenceMeasurement(reference)
        self.reference = self.base_reference.tensor_power(reps)
        self.reps = int(reps)

    def __repr__(self) -> str:
        return (
            "MonogamyGame("
            f"num_inputs={self.num_inputs}, num_outputs={self.num_outputs}, "
            f"dim={self.dim}, reps={self.reps})"
        )

    @property
    def num_inputs(self) -> int:
        return self.reference.num_inputs

    @property
    def num_outputs(self) -> int:
        return self.reference.num_outputs

    @property
    def dim(self) -> int:
        return self.reference.dim

    @cached_property
    def game_tensor(self) -> np.ndarray:
        """Read-only game tensor ``K``, shape ``(X, X, A, A, d, d)``."""
        K = game_tensor(self.reference)
        K.setflags(write=False)
        return K

    def winning_probability(self, rho: np.ndarray, bob: object) -> float:
        """Objective value of joint operators ``rho`` against Bob's measurement."""
        bob_ops = bob.operators if isinstance(bob, MeasurementSet) else np.asarray(bob, dtype=complex)
        expected = (self.num_inputs, self.num_outputs, self.dim, self.dim)
        if bob_ops.shape != expected:
            raise ConfigError(f"Bob's measurement must have shape {expected}.")
        return winning_probability(self.game_tensor, rho, bob_ops)

    def quantum_value_lower_bound(self, level: int = 1, **settings: object):
        """Run the alternating SDP procedure; see ``monogamy_game_value_lower_bound``."""
        from .seesaw import run_seesaw

        return run_seesaw(self, level=level, **settings)
