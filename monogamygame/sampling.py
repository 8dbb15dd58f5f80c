"""Random projective measurements used to seed each restart."""

from __future__ import annotations

import numpy as np

from .errors import ConfigError
from .linalg_utils import random_unitary


def random_projective_measurement(
    num_inputs: int,
    num_outputs: int,
    dim: int,
    rng: np.random.Generator | None = None,
) -> np.ndarray:
    """Sample ``B[y, b]`` from the columns of an independent Haar unitary per input.

    Returns shape ``(num_inputs, num_outputs, dim, dim)``. The ``dim`` columns
    of each unitary are split into ``num_outputs`` contiguous groups and outcome
    ``b`` is the projector onto group ``b``; with ``num_outputs == dim`` this is
    ``B[y, b] = u_b u_b^dagger``. Groups left empty give zero operators.
    """
    if num_inputs < 1 or num_outputs < 1 or dim < 1:
        raise ConfigError("num_inputs, num_outputs and dim must be positive.")
    generator = rng if rng is not None else np.random.default_rng()
    column_groups = np.array_split(np.arange(dim), num_outputs)

    B = np.zeros((num_inputs, num_outputs, dim, dim), dtype=complex)
    for y in range(num_inputs):
        U = random_unitary(dim, rng=generator)
        for b, columns in enumerate(column_groups):
            if columns.size == 0:
                continue
            block = U[:, columns]
            B[y, b] = block @ block.conj().T
    return B
