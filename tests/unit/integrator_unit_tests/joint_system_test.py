"""
Unit Tests for the augmented (y, z) system

Tests JointDrift and JointDiffusion:
- Drift of the original block equals the model velocity field
- Linearized block uses the Jacobian along the frozen trajectory
- Loading matrix structure [εI; I] and its fast application
- Dimension and parameter validation
"""

import numpy as np
import pytest

from stochval.numerical_integration.deterministic import integrate
from stochval.numerical_integration.stochastic import JointDiffusion, JointDrift


@pytest.fixture
def logistic_trajectory(logistic_model):
    return integrate(logistic_model.drift, [0.2], 0.0, 1.0, 1e-2)


class TestJointDrift:
    def test_blocks(self, logistic_model, logistic_trajectory):
        drift = JointDrift(logistic_model, logistic_trajectory)
        X = np.array([[0.3, 0.5], [1.0, -2.0]])
        t = 0.5
        out = drift(X, t)

        np.testing.assert_allclose(out[:1], logistic_model.drift(X[:1], t))
        w_t = logistic_trajectory(t)
        slope = 1.0 - 2.0 * w_t[0]
        np.testing.assert_allclose(out[1:], slope * X[1:])

    def test_linearization_is_state_independent(self, logistic_model, logistic_trajectory):
        drift = JointDrift(logistic_model, logistic_trajectory)
        X1 = np.array([[0.1], [1.0]])
        X2 = np.array([[0.9], [1.0]])
        np.testing.assert_allclose(drift(X1, 0.3)[1:], drift(X2, 0.3)[1:])

    def test_single_state(self, planar_linear_model):
        traj = integrate(planar_linear_model.drift, [1.0, 0.0], 0.0, 1.0, 0.1)
        drift = JointDrift(planar_linear_model, traj)
        x = np.array([1.0, 2.0, 3.0, 4.0])
        out = drift(x, 0.0)
        np.testing.assert_allclose(out[:2], planar_linear_model.A @ x[:2])
        np.testing.assert_allclose(out[2:], planar_linear_model.A @ x[2:])
        assert drift.nx == 4

    def test_dimension_mismatch(self, planar_linear_model, logistic_trajectory):
        with pytest.raises(ValueError, match="does not match"):
            JointDrift(planar_linear_model, logistic_trajectory)

    def test_exposes_trajectory(self, logistic_model, logistic_trajectory):
        drift = JointDrift(logistic_model, logistic_trajectory)
        assert drift.trajectory is logistic_trajectory
        assert drift.model is logistic_model


class TestJointDiffusion:
    def test_matrix_structure(self):
        G = JointDiffusion(0.1, 2)(None, 0.0)
        expected = np.array(
            [[0.1, 0.0], [0.0, 0.1], [1.0, 0.0], [0.0, 1.0]]
        )
        np.testing.assert_allclose(G, expected)

    def test_apply_matches_matrix_product(self, rng):
        diffusion = JointDiffusion(0.05, 3)
        dW = rng.standard_normal((3, 10))
        np.testing.assert_allclose(diffusion.apply(dW), diffusion(None, 0.0) @ dW)

    def test_dimensions(self):
        diffusion = JointDiffusion(0.5, 2)
        assert diffusion.nx == 4
        assert diffusion.nw == 2

    def test_matrix_read_only(self):
        G = JointDiffusion(0.1, 1)(None, 0.0)
        with pytest.raises(ValueError):
            G[0, 0] = 1.0

    @pytest.mark.parametrize("epsilon", [0.0, -0.1])
    def test_nonpositive_epsilon(self, epsilon):
        with pytest.raises(ValueError, match="epsilon must be positive"):
            JointDiffusion(epsilon, 1)

    def test_invalid_dimension(self):
        with pytest.raises(ValueError):
            JointDiffusion(0.1, 0)
