"""
Unit Tests for ConvergenceValidator

Tests the end-to-end validation driver:
1. Result structure and bookkeeping
2. Ornstein-Uhlenbeck: exact linearization, matching sensitivities
3. Logistic growth: recovered convergence exponents
4. Isolation of per-ε failures and regression failures
5. Scenario-level divergence
6. Cache reuse across runs, on-disk persistence, regeneration of corrupt
   entries and random streams independent of the ε order
7. Configuration errors before any work
"""

import numpy as np
import pytest

from stochval.exceptions import (
    CacheInconsistencyError,
    ConfigurationError,
    NumericalDivergenceError,
)
from stochval.storage import MemoryStore, NpzDirectoryStore, RealizationCache
from stochval.systems import Model
from stochval.validation import (
    ConvergenceValidator,
    ValidationConfig,
    convergence_validation,
    scenario_name,
)


class FlakyCache(RealizationCache):
    """Cache that fails one ε with a chosen error."""

    def __init__(self, failing_epsilon, error):
        super().__init__(MemoryStore())
        self.failing_epsilon = failing_epsilon
        self.error = error

    def get_or_compute(self, key, compute_fn, expected_shape=None, metadata=None):
        if metadata["epsilon"] == self.failing_epsilon:
            raise self.error
        return super().get_or_compute(key, compute_fn, expected_shape, metadata)


@pytest.fixture
def ou_result(ou_model, small_config, memory_cache):
    validator = ConvergenceValidator(ou_model, small_config, cache=memory_cache, quiet=True)
    return validator.validate_scenario([1.0])


# ============================================================================
# Structure
# ============================================================================


class TestResultStructure:
    def test_scenario_name(self, ou_model):
        assert scenario_name(ou_model, [1.0]) == "OrnsteinUhlenbeck_[1.0]"
        assert scenario_name(ou_model, np.array([1, 2])) == "OrnsteinUhlenbeck_[1.0,2.0]"

    def test_bookkeeping(self, ou_result, small_config):
        assert ou_result["name"] == "OrnsteinUhlenbeck_[1.0]"
        assert ou_result["epsilons"] == [0.1, 0.05, 0.01]
        assert ou_result["rs"] == [1.0, 2.0]
        assert ou_result["failures"] == {}
        assert len(ou_result["convergence"]) == 6
        assert len(ou_result["sensitivity"]) == 3
        assert ou_result["sensitivity_difference"].shape == (3,)
        assert ou_result["w_abs_diff"].shape == (3,)
        assert set(ou_result["estimates"]) == {0.1, 0.05, 0.01}

    def test_convergence_records_match_estimates(self, ou_result):
        eps, r, y_err, z_err = ou_result["convergence"][1]
        est = ou_result["estimates"][eps]
        assert r == 2.0
        assert y_err == est["y_moments"][1]
        assert z_err == est["z_moments"][1]

    def test_samples_kept(self, ou_result, small_config):
        sample = ou_result["samples"][0.05]
        assert sample["y"].shape == (1, small_config.n_samples)
        assert sample["z_epsilon"].shape == (1, small_config.n_samples)
        assert sample["z_limit"].shape == (1, small_config.n_samples)

    def test_limit_pool(self, ou_result, small_config):
        assert ou_result["limit_samples"].shape == (1, 3 * small_config.n_samples)
        assert ou_result["limit_second_moment"].shape == (1, 1)

    def test_samples_dropped(self, ou_model, small_config, memory_cache):
        small_config.keep_samples = False
        validator = ConvergenceValidator(ou_model, small_config, cache=memory_cache, quiet=True)
        assert validator.validate_scenario([1.0])["samples"] == {}

    def test_x0_shape_checked(self, ou_model, small_config, memory_cache):
        validator = ConvergenceValidator(ou_model, small_config, cache=memory_cache, quiet=True)
        with pytest.raises(ValueError, match="x0 must have shape"):
            validator.validate_scenario([1.0, 2.0])


# ============================================================================
# Concrete scenarios
# ============================================================================


class TestOrnsteinUhlenbeck:
    def test_linearization_is_exact(self, ou_result):
        for eps in ou_result["epsilons"]:
            est = ou_result["estimates"][eps]
            assert np.all(est["y_moments"] < 1e-10)
            assert np.all(est["z_moments"] < 1e-8)

    def test_sensitivity_matches_theory(self, ou_result, ou_model):
        assert ou_result["theoretical_sensitivity"] == pytest.approx(
            ou_model.deviation_variance(1.0), abs=0.01
        )
        for eps, empirical, theory in ou_result["sensitivity"]:
            assert abs(empirical - theory) < 0.1

    def test_terminal_state(self, ou_result):
        np.testing.assert_allclose(ou_result["w"], [0.99**100], rtol=1e-10)

    def test_deviation_shrinks_with_epsilon(self, ou_result):
        assert np.all(np.diff(ou_result["w_abs_diff"]) < 0)

    def test_reference_parameters_are_at_round_off(self, ou_model):
        # dt=1e-4, N=10000: the linearized error is exactly zero up to round-off,
        # so its log-log slope carries no information
        config = ValidationConfig(
            n_samples=10000, T=1.0, dt=1e-4, epsilons=[0.1, 0.01], rs=[2], seed=7
        )
        validator = ConvergenceValidator(
            ou_model, config, cache=RealizationCache(MemoryStore()), quiet=True
        )
        result = validator.validate_scenario([1.0])

        assert result["failures"] == {}
        for eps in result["epsilons"]:
            assert result["estimates"][eps]["z_moments"][0] < 1e-20
            assert result["estimates"][eps]["y_moments"][0] < 1e-20
        assert result["theoretical_sensitivity"] == pytest.approx(
            ou_model.deviation_variance(1.0), abs=1e-3
        )
        for _, empirical, theory in result["sensitivity"]:
            assert abs(empirical - theory) < 0.03


class TestLogisticGrowth:
    @pytest.fixture
    def result(self, logistic_model):
        config = ValidationConfig(
            n_samples=2000,
            T=1.0,
            dt=1e-3,
            epsilons=[0.1, 0.05, 0.01],
            rs=[1, 2],
            seed=2024,
            log_base=10.0,
        )
        validator = ConvergenceValidator(
            logistic_model, config, cache=RealizationCache(MemoryStore()), quiet=True
        )
        return validator.validate_scenario([0.2])

    def test_z_error_decreases(self, result):
        z_errors = [result["estimates"][eps]["z_moments"][1] for eps in result["epsilons"]]
        assert z_errors[0] > z_errors[1] > z_errors[2]

    def test_z_error_exponent(self, result):
        assert 1.5 <= result["slopes"][2.0]["z"]["slope"] <= 2.5
        assert 0.75 <= result["slopes"][1.0]["z"]["slope"] <= 1.25

    def test_y_error_exponent(self, result):
        assert 3.5 <= result["slopes"][2.0]["y"]["slope"] <= 4.5

    def test_fit_uses_configured_base(self, result):
        fit = result["slopes"][1.0]["y"]
        assert fit["base"] == 10.0
        np.testing.assert_allclose(fit["log_epsilons"], np.log10([0.1, 0.05, 0.01]))

    def test_sensitivity_converges(self, result):
        differences = result["sensitivity_difference"]
        assert differences[-1] < 0.15 * result["theoretical_sensitivity"]

    def test_deviation_does_not_grow_as_dt_shrinks(self, logistic_model):
        deviations, standard_errors = [], []
        for dt in (1e-1, 1e-2, 1e-3):
            config = ValidationConfig(
                n_samples=4000, T=1.0, dt=dt, epsilons=[0.1], rs=[1], seed=5
            )
            validator = ConvergenceValidator(
                logistic_model, config, cache=RealizationCache(MemoryStore()), quiet=True
            )
            result = validator.validate_scenario([0.2])

            abs_diff = np.abs(result["samples"][0.1]["y"] - result["w"][:, None]).ravel()
            assert result["w_abs_diff"][0] == pytest.approx(np.mean(abs_diff), rel=1e-12)
            deviations.append(result["w_abs_diff"][0])
            standard_errors.append(abs_diff.std(ddof=1) / np.sqrt(abs_diff.size))

        for i in range(len(deviations) - 1):
            tolerance = max(
                0.02 * deviations[i], 3.0 * np.hypot(standard_errors[i], standard_errors[i + 1])
            )
            assert deviations[i + 1] <= deviations[i] + tolerance


# ============================================================================
# Failure isolation
# ============================================================================


class TestFailureIsolation:
    def test_cache_inconsistency_skips_one_epsilon(self, ou_model, small_config):
        cache = FlakyCache(0.05, CacheInconsistencyError("k", (2, 500), (2, 400)))
        validator = ConvergenceValidator(ou_model, small_config, cache=cache, quiet=True)
        result = validator.validate_scenario([1.0])

        assert result["epsilons"] == [0.1, 0.01]
        assert set(result["failures"]) == {0.05}
        assert "(2, 400)" in result["failures"][0.05]
        assert 0.05 not in result["estimates"]
        assert result["limit_samples"].shape == (1, 2 * small_config.n_samples)

    def test_divergence_skips_one_epsilon(self, ou_model, small_config):
        error = NumericalDivergenceError("Non-finite state", time=0.5, step=50)
        validator = ConvergenceValidator(
            ou_model, small_config, cache=FlakyCache(0.1, error), quiet=True
        )
        result = validator.validate_scenario([1.0])

        assert result["epsilons"] == [0.05, 0.01]
        assert "epsilon=0.1" in result["failures"][0.1]
        assert "scenario=OrnsteinUhlenbeck_[1.0]" in result["failures"][0.1]

    def test_regression_failure_recorded(self, ou_model, small_config, memory_cache):
        small_config.epsilons = [0.1]
        validator = ConvergenceValidator(ou_model, small_config, cache=memory_cache, quiet=True)
        result = validator.validate_scenario([1.0])

        assert result["slopes"] == {1.0: {}, 2.0: {}}
        assert set(result["regression_failures"]) == {"y_r=1", "z_r=1", "y_r=2", "z_r=2"}
        assert result["estimates"][0.1]["sensitivity"] > 0

    def test_deterministic_divergence_aborts_scenario(self, small_config, memory_cache):
        model = Model("blowup", 1, lambda x, t: x**2, lambda x, t: 2.0 * x.reshape(1, 1))
        validator = ConvergenceValidator(model, small_config, cache=memory_cache, quiet=True)
        with np.errstate(over="ignore", invalid="ignore"):
            with pytest.raises(NumericalDivergenceError, match="scenario=blowup_"):
                validator.validate_scenario([1e100])

    def test_run_continues_after_scenario_failure(self, small_config, memory_cache):
        model = Model("blowup", 1, lambda x, t: x**2, lambda x, t: 2.0 * x.reshape(1, 1))
        validator = ConvergenceValidator(model, small_config, cache=memory_cache, quiet=True)
        with np.errstate(over="ignore", invalid="ignore"):
            results = validator.run([[1e100], [-0.5]])

        assert list(results) == ["blowup_[-0.5]"]
        assert "blowup_[1e+100]" in validator.failures


# ============================================================================
# Caching and configuration
# ============================================================================


class TestCaching:
    def test_second_run_reloads_identical_batches(self, ou_model, small_config, memory_cache):
        validator = ConvergenceValidator(ou_model, small_config, cache=memory_cache, quiet=True)
        first = validator.validate_scenario([1.0])
        second = validator.validate_scenario([1.0])

        assert memory_cache.get_stats()["hits"] == 3
        assert memory_cache.get_stats()["misses"] == 3
        for eps in first["epsilons"]:
            np.testing.assert_array_equal(
                first["estimates"][eps]["z_moments"], second["estimates"][eps]["z_moments"]
            )

    def test_seed_reproducible_without_cache(self, ou_model, small_config):
        results = []
        for _ in range(2):
            cache = RealizationCache(MemoryStore(), attempt_reload=False)
            validator = ConvergenceValidator(ou_model, small_config, cache=cache, quiet=True)
            results.append(validator.validate_scenario([1.0]))
        assert results[0]["sensitivity"] == results[1]["sensitivity"]

    def test_streams_differ_across_epsilons(self, ou_result):
        z_a = ou_result["samples"][0.1]["z_limit"]
        z_b = ou_result["samples"][0.05]["z_limit"]
        assert not np.allclose(z_a, z_b)

    def test_default_store_writes_npz(self, ou_model, small_config):
        validator = ConvergenceValidator(ou_model, small_config, quiet=True)
        validator.validate_scenario([1.0])
        store = NpzDirectoryStore(small_config.data_dir)
        assert len(list(store.keys())) == 3

    def test_corrupt_entry_is_regenerated(self, ou_model, small_config):
        first = ConvergenceValidator(ou_model, small_config, quiet=True).validate_scenario([1.0])

        store = NpzDirectoryStore(small_config.data_dir)
        key = RealizationCache.make_key(
            scenario_name(ou_model, [1.0]), [1.0], 0.01, n_samples=500, d=1, t0=0.0, T=1.0, dt=1e-2
        )
        path = store.path_for(key)
        raw = path.read_bytes()
        path.write_bytes(raw[: len(raw) // 2])

        validator = ConvergenceValidator(ou_model, small_config, quiet=True)
        second = validator.validate_scenario([1.0])

        assert second["failures"] == {}
        assert second["epsilons"] == [0.1, 0.05, 0.01]
        assert validator.cache.get_stats() == {"hits": 2, "misses": 1, "writes": 1}
        np.testing.assert_array_equal(
            second["samples"][0.01]["y"], first["samples"][0.01]["y"]
        )
        assert store.load(key)[0].shape == (2, 500)

    def test_results_independent_of_epsilon_order(self, ou_model, small_config, ou_result):
        options = {**small_config.to_dict(), "epsilons": [0.01, 0.1]}
        config = ValidationConfig.from_dict(options)
        validator = ConvergenceValidator(
            ou_model, config, cache=RealizationCache(MemoryStore()), quiet=True
        )
        with pytest.warns(UserWarning, match="decreasing"):
            reordered = validator.validate_scenario([1.0])

        for eps in (0.1, 0.01):
            np.testing.assert_array_equal(
                reordered["samples"][eps]["y"], ou_result["samples"][eps]["y"]
            )
            np.testing.assert_array_equal(
                reordered["samples"][eps]["z_limit"], ou_result["samples"][eps]["z_limit"]
            )

    def test_mismatched_stored_entry_is_reported(self, ou_model, small_config):
        store = MemoryStore()
        name = scenario_name(ou_model, [1.0])
        key = RealizationCache.make_key(
            name, [1.0], 0.01, n_samples=500, d=1, t0=0.0, T=1.0, dt=1e-2
        )
        store.save(key, np.zeros((2, 10)))
        validator = ConvergenceValidator(
            ou_model, small_config, cache=RealizationCache(store), quiet=True
        )
        result = validator.validate_scenario([1.0])
        assert set(result["failures"]) == {0.01}
        assert result["epsilons"] == [0.1, 0.05]


class TestConfiguration:
    def test_invalid_config_fails_before_work(self, ou_model, memory_cache):
        config = ValidationConfig(n_samples=1, epsilons=[0.1])
        validator = ConvergenceValidator(ou_model, config, cache=memory_cache, quiet=True)
        with pytest.raises(ConfigurationError):
            validator.run([[1.0]])
        assert memory_cache.get_stats()["misses"] == 0

    def test_empty_initial_conditions(self, ou_model, small_config, memory_cache):
        validator = ConvergenceValidator(ou_model, small_config, cache=memory_cache, quiet=True)
        with pytest.raises(ValueError, match="initial condition"):
            validator.run([])

    def test_custom_covariance_function(self, ou_model, small_config, memory_cache):
        validator = ConvergenceValidator(
            ou_model,
            small_config,
            cache=memory_cache,
            covariance_fn=lambda *args, **kwargs: np.array([[2.0]]),
            quiet=True,
        )
        result = validator.validate_scenario([1.0])
        assert result["theoretical_sensitivity"] == 2.0

    def test_bounds_reported(self, small_config, memory_cache):
        model = Model(
            "decay",
            1,
            lambda x, t: -x,
            lambda x, t: -np.eye(1),
            K=3.0,
            bound=lambda r, d, T, K, *args: K * r * T,
        )
        validator = ConvergenceValidator(model, small_config, cache=memory_cache, quiet=True)
        result = validator.validate_scenario([1.0])
        assert result["bounds"] == {1.0: 3.0, 2.0: 6.0}

    def test_functional_entry_point(self, ou_model, tmp_path):
        results = convergence_validation(
            ou_model,
            [[1.0], [2.0]],
            t0=0.0,
            T=0.5,
            N=100,
            quiet=True,
            cache=RealizationCache(MemoryStore()),
            dt=0.05,
            epsilons=[0.1, 0.01],
            rs=[2],
            seed=0,
        )
        assert sorted(results) == ["OrnsteinUhlenbeck_[1.0]", "OrnsteinUhlenbeck_[2.0]"]
