"""Public package API for monogamy-of-entanglement game lower bounds."""

import logging

from .errors import ConfigError, NumericalDegeneracy, SolverError
from .extraction import complete_measurement, extract_alice_strategy
from .game import (
    MonogamyGame,
    alice_objective_coefficients,
    bob_objective_coefficients,
    game_tensor,
    tensor_power,
    winning_probability,
)
from .linalg_utils import (
    MixedRadixCounter,
    inverse_sqrtm_hermitian,
    partial_trace,
    random_unitary,
    tensor_product,
)
from .measurement import MeasurementSet, ReferenceMeasurement
from .sampling import random_projective_measurement
from .sdp import AliceStep, BobStep, optimize_alice, optimize_bob
from .seesaw import (
    BestResultAccumulator,
    LowerBoundResult,
    RestartRecord,
    SeesawRun,
    alternating_projection,
    monogamy_game_value_lower_bound,
    run_seesaw,
)
from .settings import SeesawSettings


logging.getLogger(__name__).addHandler(logging.NullHandler())


__all__ = [
    "ConfigError",
    "SolverError",
    "NumericalDegeneracy",
    "MeasurementSet",
    "ReferenceMeasurement",
    "MonogamyGame",
    "SeesawSettings",
    "LowerBoundResult",
    "RestartRecord",
    "SeesawRun",
    "BestResultAccumulator",
    "AliceStep",
    "BobStep",
    "monogamy_game_value_lower_bound",
    "run_seesaw",
    "alternating_projection",
    "optimize_alice",
    "optimize_bob",
    "extract_alice_strategy",
    "complete_measurement",
    "random_projective_measurement",
    "tensor_power",
    "game_tensor",
    "alice_objective_coefficients",
    "bob_objective_coefficients",
    "winning_probability",
    "MixedRadixCounter",
    "tensor_product",
    "partial_trace",
    "inverse_sqrtm_hermitian",
    "random_unitary",
]
