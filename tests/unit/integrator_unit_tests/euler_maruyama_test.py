"""
Unit Tests for EulerMaruyamaIntegrator and simulate

Covers:
- Shared-noise coupling of the original and linearized blocks
- Terminal variance of the Ornstein-Uhlenbeck ensemble
- Reproducibility from seeds and independence of spawned streams
- Work buffer reuse without aliasing
- Divergence detection and statistics
"""

import numpy as np
import pytest

from stochval.exceptions import NumericalDivergenceError
from stochval.numerical_integration.deterministic import integrate
from stochval.numerical_integration.stochastic import (
    EulerMaruyamaIntegrator,
    JointDiffusion,
    JointDrift,
    simulate,
    spawn_generators,
)


def run_joint(model, x0, epsilon, n=1000, T=1.0, dt=1e-2, rng=0, out=None):
    d = model.d
    traj = integrate(model.drift, x0, 0.0, T, dt)
    batch = simulate(
        JointDrift(model, traj),
        JointDiffusion(epsilon, d),
        N=n,
        dim=2 * d,
        x0=np.concatenate([np.asarray(x0, dtype=float), np.zeros(d)]),
        t0=0.0,
        T=T,
        dt=dt,
        rng=rng,
        out=out,
    )
    return traj, batch


# ============================================================================
# Coupling
# ============================================================================


class TestSharedNoiseCoupling:
    def test_linear_field_is_exactly_linearized(self, ou_model):
        traj, batch = run_joint(ou_model, [1.0], 0.1)
        y, z = batch[:1], batch[1:]
        np.testing.assert_allclose(y - traj.w[:, None], 0.1 * z, atol=1e-12)

    def test_nonlinear_error_is_second_order(self, logistic_model):
        errors = {}
        for eps in (0.1, 0.01):
            traj, batch = run_joint(logistic_model, [0.2], eps, n=2000, rng=5)
            y, z = batch[:1], batch[1:]
            errors[eps] = np.mean(np.abs(y - traj.w[:, None] - eps * z))
        # O(ε²): a tenfold smaller ε shrinks the error roughly a hundredfold
        assert errors[0.01] < errors[0.1] / 20

    def test_batch_shape(self, planar_linear_model):
        _, batch = run_joint(planar_linear_model, [1.0, -1.0], 0.05, n=300)
        assert batch.shape == (4, 300)


class TestEnsembleStatistics:
    def test_ou_terminal_variance(self, ou_model):
        _, batch = run_joint(ou_model, [1.0], 0.1, n=4000, rng=11)
        z = batch[1]
        assert abs(np.mean(z)) < 0.05
        assert abs(np.var(z, ddof=1) - ou_model.deviation_variance(1.0)) < 0.05


# ============================================================================
# Randomness and buffers
# ============================================================================


class TestReproducibility:
    def test_same_seed_same_batch(self, ou_model):
        _, a = run_joint(ou_model, [1.0], 0.1, n=50, rng=3)
        _, b = run_joint(ou_model, [1.0], 0.1, n=50, rng=3)
        np.testing.assert_array_equal(a, b)

    def test_spawned_streams_differ(self, ou_model):
        rngs = spawn_generators(3, 2)
        _, a = run_joint(ou_model, [1.0], 0.1, n=50, rng=rngs[0])
        _, b = run_joint(ou_model, [1.0], 0.1, n=50, rng=rngs[1])
        assert not np.allclose(a, b)

    def test_spawning_is_deterministic(self):
        first = [g.standard_normal(3) for g in spawn_generators(42, 2)]
        second = [g.standard_normal(3) for g in spawn_generators(42, 2)]
        for a, b in zip(first, second):
            np.testing.assert_array_equal(a, b)


class TestWorkBuffer:
    def test_result_is_not_the_buffer(self, ou_model):
        buffer = np.empty((2, 40))
        _, batch = run_joint(ou_model, [1.0], 0.1, n=40, out=buffer)
        assert not np.shares_memory(batch, buffer)
        snapshot = batch.copy()
        run_joint(ou_model, [1.0], 0.5, n=40, rng=99, out=buffer)
        np.testing.assert_array_equal(batch, snapshot)

    def test_buffer_shape_checked(self, ou_model):
        with pytest.raises(ValueError, match="Output buffer"):
            run_joint(ou_model, [1.0], 0.1, n=40, out=np.empty((2, 41)))


# ============================================================================
# Integrator object
# ============================================================================


class TestEulerMaruyamaIntegrator:
    def test_divergence_detected(self):
        integrator = EulerMaruyamaIntegrator(
            lambda x, t: x**3, lambda x, t: np.ones((1, 1)), nx=1, nw=1, dt=0.1
        )
        with np.errstate(over="ignore", invalid="ignore"):
            with pytest.raises(NumericalDivergenceError) as excinfo:
                integrator.integrate([10.0], 0.0, 5.0, n_samples=4, rng=0)
        assert excinfo.value.step >= 1
        assert 0.0 < excinfo.value.time <= 5.0

    def test_divergence_unchecked(self):
        integrator = EulerMaruyamaIntegrator(
            lambda x, t: x**3,
            lambda x, t: np.ones((1, 1)),
            nx=1,
            nw=1,
            dt=0.1,
            check_finite=False,
        )
        with np.errstate(over="ignore", invalid="ignore"):
            batch = integrator.integrate([10.0], 0.0, 5.0, n_samples=4, rng=0)
        assert not np.all(np.isfinite(batch))

    def test_diffusion_shape_checked(self):
        integrator = EulerMaruyamaIntegrator(
            lambda x, t: -x, lambda x, t: np.ones((2, 2)), nx=1, nw=1, dt=0.1
        )
        with pytest.raises(ValueError, match="Diffusion must return shape"):
            integrator.integrate([1.0], 0.0, 1.0, n_samples=3, rng=0)

    def test_x0_shape_checked(self):
        integrator = EulerMaruyamaIntegrator(
            lambda x, t: -x, JointDiffusion(0.1, 1), nx=2, nw=1, dt=0.1
        )
        with pytest.raises(ValueError, match="x0 must have shape"):
            integrator.integrate([1.0], 0.0, 1.0, n_samples=3)

    def test_zero_diffusion_is_deterministic_euler(self):
        integrator = EulerMaruyamaIntegrator(
            lambda x, t: -x, lambda x, t: np.zeros((1, 1)), nx=1, nw=1, dt=0.01
        )
        batch = integrator.integrate([1.0], 0.0, 1.0, n_samples=5, rng=0)
        np.testing.assert_allclose(batch, 0.99**100)

    def test_stats(self):
        integrator = EulerMaruyamaIntegrator(
            lambda x, t: -x, JointDiffusion(0.1, 1), nx=2, nw=1, dt=0.25
        )
        integrator.integrate([1.0, 0.0], 0.0, 1.0, n_samples=10, rng=0)
        stats = integrator.get_stats()
        assert stats["total_steps"] == 4
        assert stats["total_fev"] == 4
        assert stats["total_gev"] == 4
        assert stats["total_trajectories"] == 10
        assert stats["avg_fev_per_step"] == 1.0
        integrator.reset_stats()
        assert integrator.get_stats()["total_steps"] == 0

    def test_invalid_sample_count(self):
        integrator = EulerMaruyamaIntegrator(
            lambda x, t: -x, JointDiffusion(0.1, 1), nx=2, nw=1, dt=0.1
        )
        with pytest.raises(ValueError, match="n_samples"):
            integrator.integrate([1.0, 0.0], 0.0, 1.0, n_samples=0)

    def test_string_representations(self):
        integrator = EulerMaruyamaIntegrator(
            lambda x, t: -x, JointDiffusion(0.1, 1), nx=2, nw=1, dt=0.1
        )
        assert "Euler-Maruyama" in str(integrator)
        assert "dt=0.1" in repr(integrator)
