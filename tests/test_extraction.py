import unittest

import numpy as np

from monogamygame.errors import ConfigError, NumericalDegeneracy
from monogamygame.extraction import complete_measurement, extract_alice_strategy


def _ket(*amplitudes: float) -> np.ndarray:
    vec = np.asarray(amplitudes, dtype=complex)
    return vec / np.linalg.norm(vec)


class ExtractAliceStrategyTests(unittest.TestCase):
    def test_classical_correlations_give_computational_measurement(self) -> None:
        rho = np.zeros((2, 2, 4, 4), dtype=complex)
        for x, a in np.ndindex(2, 2):
            rho[x, a, 3 * a, 3 * a] = 0.5
        tau = rho[0].sum(axis=0)

        alice = extract_alice_strategy(rho, tau, dim=2)
        self.assertEqual((alice.num_inputs, alice.num_outputs, alice.dim), (2, 2, 2))
        np.testing.assert_allclose(alice.operator(0, 0), np.diag([1.0, 0.0]), atol=1e-12)
        np.testing.assert_allclose(alice.operator(1, 1), np.diag([0.0, 1.0]), atol=1e-12)
        np.testing.assert_allclose(alice.completeness_residuals(), 0.0, atol=1e-12)

    def test_hadamard_correlations_give_hadamard_measurement(self) -> None:
        plus, minus = _ket(1.0, 1.0), _ket(1.0, -1.0)
        rho = np.zeros((1, 2, 4, 4), dtype=complex)
        for a, ket in enumerate((plus, minus)):
            joint = np.kron(ket, ket)
            rho[0, a] = 0.5 * np.outer(joint, joint.conj())
        tau = rho[0].sum(axis=0)

        alice = extract_alice_strategy(rho, tau, dim=2)
        np.testing.assert_allclose(alice.operator(0, 0), np.outer(plus, plus.conj()), atol=1e-12)
        np.testing.assert_allclose(alice.operator(0, 1), np.outer(minus, minus.conj()), atol=1e-12)

    def test_solver_noise_is_projected_away(self) -> None:
        rho = np.zeros((2, 2, 4, 4), dtype=complex)
        for x, a in np.ndindex(2, 2):
            rho[x, a, 3 * a, 3 * a] = 0.5
        tau = rho[0].sum(axis=0)
        rho[1, 0, 0, 0] += 2e-6
        rho[1, 1, 1, 1] -= 1e-7

        alice = extract_alice_strategy(rho, tau, dim=2)
        np.testing.assert_allclose(alice.completeness_residuals(), 0.0, atol=1e-12)
        self.assertGreaterEqual(float(np.linalg.eigvalsh(alice.operators).min()), -1e-12)
        np.testing.assert_allclose(alice.operator(1, 0), np.diag([1.0, 0.0]), atol=1e-5)

    def test_singular_reduced_state_raises(self) -> None:
        tau = np.zeros((4, 4), dtype=complex)
        tau[0, 0] = 1.0
        rho = np.zeros((1, 2, 4, 4), dtype=complex)
        rho[0, 0] = tau
        with self.assertRaisesRegex(NumericalDegeneracy, "singular"):
            extract_alice_strategy(rho, tau, dim=2)

    def test_inconsistent_marginals_raise(self) -> None:
        tau = np.eye(4, dtype=complex) / 4
        rho = np.zeros((1, 2, 4, 4), dtype=complex)
        rho[0, 0] = tau
        rho[0, 1] = tau
        with self.assertRaisesRegex(NumericalDegeneracy, "not a valid measurement"):
            extract_alice_strategy(rho, tau, dim=2)

    def test_shape_mismatch_raises(self) -> None:
        with self.assertRaises(ConfigError):
            extract_alice_strategy(np.zeros((1, 2, 4, 4)), np.eye(9) / 9, dim=2)
        with self.assertRaises(ConfigError):
            extract_alice_strategy(np.zeros((2, 4, 4)), np.eye(4) / 4, dim=2)


class CompleteMeasurementTests(unittest.TestCase):
    def test_nearly_complete_operators_become_exact(self) -> None:
        rng = np.random.default_rng(11)
        noise = rng.normal(scale=1e-7, size=(2, 2, 2, 2))
        noise = noise + np.swapaxes(noise, -2, -1)
        operators = np.stack([np.stack([np.diag([1.0, 0.0]), np.diag([0.0, 1.0])])] * 2) + noise

        completed = complete_measurement(operators, atol=1e-4)
        np.testing.assert_allclose(completed.sum(axis=1), np.stack([np.eye(2)] * 2), atol=1e-12)
        self.assertGreaterEqual(float(np.linalg.eigvalsh(completed).min()), -1e-12)
        np.testing.assert_allclose(completed, operators, atol=1e-5)

    def test_far_from_complete_raises(self) -> None:
        operators = np.stack([np.eye(2), np.eye(2)])[np.newaxis] / 4
        with self.assertRaisesRegex(NumericalDegeneracy, "do not sum to the identity"):
            complete_measurement(operators, atol=1e-4)

    def test_negative_operator_raises(self) -> None:
        operators = np.stack([np.diag([1.0 + 1e-2, 0.0]), np.diag([-1e-2, 1.0])])[np.newaxis]
        with self.assertRaisesRegex(NumericalDegeneracy, "positive semidefinite"):
            complete_measurement(operators, atol=1e-4)


if __name__ == "__main__":
    unittest.main()
