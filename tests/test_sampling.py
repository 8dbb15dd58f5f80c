import unittest

import numpy as np

from monogamygame.errors import ConfigError
from monogamygame.sampling import random_projective_measurement


class RandomProjectiveMeasurementTests(unittest.TestCase):
    def test_rank_one_projective_measurement(self) -> None:
        B = random_projective_measurement(3, 2, 2, rng=np.random.default_rng(1))
        self.assertEqual(B.shape, (3, 2, 2, 2))
        for y in range(3):
            np.testing.assert_allclose(B[y].sum(axis=0), np.eye(2), atol=1e-12)
            for b in range(2):
                np.testing.assert_allclose(B[y, b] @ B[y, b], B[y, b], atol=1e-12)
                self.assertAlmostEqual(float(np.trace(B[y, b]).real), 1.0)
            np.testing.assert_allclose(B[y, 0] @ B[y, 1], 0.0, atol=1e-12)

    def test_inputs_are_sampled_independently(self) -> None:
        B = random_projective_measurement(2, 2, 2, rng=np.random.default_rng(2))
        self.assertFalse(np.allclose(B[0], B[1]))

    def test_seeded_sampling_is_reproducible(self) -> None:
        first = random_projective_measurement(2, 2, 2, rng=np.random.default_rng(9))
        second = random_projective_measurement(2, 2, 2, rng=np.random.default_rng(9))
        np.testing.assert_allclose(first, second)

    def test_fewer_outcomes_than_dimension(self) -> None:
        B = random_projective_measurement(1, 2, 4, rng=np.random.default_rng(4))
        np.testing.assert_allclose(B[0].sum(axis=0), np.eye(4), atol=1e-12)
        self.assertEqual([int(round(np.trace(B[0, b]).real)) for b in range(2)], [2, 2])

    def test_more_outcomes_than_dimension(self) -> None:
        B = random_projective_measurement(1, 3, 2, rng=np.random.default_rng(4))
        np.testing.assert_allclose(B[0].sum(axis=0), np.eye(2), atol=1e-12)
        self.assertFalse(np.any(B[0, 2]))

    def test_invalid_sizes_raise(self) -> None:
        with self.assertRaises(ConfigError):
            random_projective_measurement(0, 2, 2)


if __name__ == "__main__":
    unittest.main()
