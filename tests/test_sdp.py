import unittest
from unittest.mock import PropertyMock, patch

import cvxpy
import numpy as np

from monogamygame.errors import SolverError
from monogamygame.game import MonogamyGame
from monogamygame.measurement import ReferenceMeasurement
from monogamygame.sampling import random_projective_measurement
from monogamygame.sdp import _check_psd, _solve, optimize_alice, optimize_bob
from monogamygame.settings import SeesawSettings


ZERO = np.diag([1.0, 0.0])
ONE = np.diag([0.0, 1.0])


class AliceStepTests(unittest.TestCase):
    def test_computational_game_with_computational_bob(self) -> None:
        game = MonogamyGame([[ZERO, ONE], [ZERO, ONE]])
        bob = np.stack([np.stack([ZERO, ONE])] * 2).astype(complex)

        step = optimize_alice(game.game_tensor, bob)
        self.assertIn(step.status, (cvxpy.OPTIMAL, cvxpy.OPTIMAL_INACCURATE))
        self.assertAlmostEqual(step.win, 1.0, places=5)
        self.assertEqual(step.rho.shape, (2, 2, 4, 4))
        self.assertAlmostEqual(float(np.trace(step.tau).real), 1.0, places=6)
        for x in range(2):
            np.testing.assert_allclose(step.rho[x].sum(axis=0), step.tau, atol=1e-5)
        self.assertAlmostEqual(game.winning_probability(step.rho, bob), step.win, places=5)


class BobStepTests(unittest.TestCase):
    def test_bob_step_returns_complete_measurement(self) -> None:
        game = MonogamyGame([[ZERO, ONE], [ZERO, ONE]])
        rho = np.zeros((2, 2, 4, 4), dtype=complex)
        for x, a in np.ndindex(2, 2):
            rho[x, a, 3 * a, 3 * a] = 0.5

        step = optimize_bob(game.game_tensor, rho)
        self.assertAlmostEqual(step.win, 1.0, places=5)
        np.testing.assert_allclose(step.bob.sum(axis=1), np.stack([np.eye(2)] * 2), atol=1e-5)
        np.testing.assert_allclose(step.bob[0, 0], ZERO, atol=1e-5)


class BlockCoordinateAscentTests(unittest.TestCase):
    def test_half_steps_do_not_decrease_value(self) -> None:
        game = MonogamyGame(ReferenceMeasurement.bb84())
        K = game.game_tensor
        bob = random_projective_measurement(2, 2, 2, rng=np.random.default_rng(17))

        values = []
        for _ in range(3):
            alice_step = optimize_alice(K, bob)
            bob_step = optimize_bob(K, alice_step.rho)
            bob = bob_step.bob
            values.extend([alice_step.win, bob_step.win])

        self.assertTrue(all(b >= a - 1e-4 for a, b in zip(values, values[1:])), values)
        self.assertLessEqual(values[-1], 1.0 + 1e-4)


class SolverFailureTests(unittest.TestCase):
    def setUp(self) -> None:
        self.game = MonogamyGame(ReferenceMeasurement.bb84())
        self.bob = random_projective_measurement(2, 2, 2, rng=np.random.default_rng(0))

    def test_solver_exception_is_wrapped(self) -> None:
        with patch.object(
            cvxpy.Problem,
            "solve",
            side_effect=cvxpy.error.SolverError("numerical trouble"),
        ):
            with self.assertRaisesRegex(SolverError, "numerical trouble"):
                optimize_alice(self.game.game_tensor, self.bob)

    def test_infeasible_status_raises(self) -> None:
        with patch.object(cvxpy.Problem, "solve", return_value=None):
            with patch.object(
                cvxpy.Problem,
                "status",
                new_callable=PropertyMock,
                return_value=cvxpy.INFEASIBLE,
            ):
                with self.assertRaisesRegex(SolverError, "infeasible"):
                    optimize_alice(self.game.game_tensor, self.bob)

    def test_inaccurate_status_rejected_when_disabled(self) -> None:
        settings = SeesawSettings(accept_inaccurate=False)
        with patch.object(cvxpy.Problem, "solve", return_value=None):
            with patch.object(
                cvxpy.Problem,
                "status",
                new_callable=PropertyMock,
                return_value=cvxpy.OPTIMAL_INACCURATE,
            ):
                with self.assertRaisesRegex(SolverError, "optimal_inaccurate"):
                    optimize_bob(
                        self.game.game_tensor, np.zeros((2, 2, 4, 4), dtype=complex), settings
                    )

    def test_inaccurate_status_accepted_by_default(self) -> None:
        problem = cvxpy.Problem(cvxpy.Maximize(cvxpy.Variable()))
        with patch.object(cvxpy.Problem, "solve", return_value=None):
            with patch.object(
                cvxpy.Problem,
                "status",
                new_callable=PropertyMock,
                return_value=cvxpy.OPTIMAL_INACCURATE,
            ), patch.object(cvxpy.Problem, "value", new_callable=PropertyMock, return_value=0.75):
                value, status = _solve(problem, SeesawSettings(), context="test")
        self.assertEqual((value, status), (0.75, cvxpy.OPTIMAL_INACCURATE))

    def test_solver_options_are_forwarded(self) -> None:
        settings = SeesawSettings(solver="SCS", time_limit=3.0, solver_options={"eps": 1e-7})
        with patch.object(
            cvxpy.Problem,
            "solve",
            side_effect=cvxpy.error.SolverError("stop"),
        ) as mock_solve:
            with self.assertRaises(SolverError):
                optimize_alice(self.game.game_tensor, self.bob, settings)
        mock_solve.assert_called_once_with(
            solver="SCS",
            verbose=False,
            eps=1e-7,
            time_limit_secs=3.0,
        )

    def test_negative_eigenvalue_is_rejected(self) -> None:
        with self.assertRaisesRegex(SolverError, "positive semidefinite"):
            _check_psd(np.diag([1.0, -1e-3]), 1e-6, context="test", name="B")
        _check_psd(np.diag([1.0, -1e-9]), 1e-6, context="test", name="B")


if __name__ == "__main__":
    unittest.main()
