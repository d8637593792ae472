# Copyright (C) 2025 Gil Benezer
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

"""
Validation Driver - Small-Noise Convergence Study

For every initial condition:

1. Solve the deterministic limit once (w = x(T)) and the theoretical
   deviation covariance Σ along it.
2. For every ε: reload or simulate the joint (y, z) batch, then estimate
   moments, covariances and the empirical stochastic sensitivity.
3. Fit log-log power laws of the y- and z-error moments for every r.

Failures are confined to the unit they occur in. A divergent simulation
or an inconsistent cache entry at one ε is recorded and the remaining ε
values still run; a degenerate regression is recorded per series. An
unreadable cache entry is not a failure: it is simulated again and
overwritten. Only a divergent deterministic trajectory aborts the whole
scenario, and the remaining scenarios still run.

Examples
--------
>>> from stochval.systems import OrnsteinUhlenbeck
>>> config = ValidationConfig(n_samples=2000, T=1.0, dt=1e-3, epsilons=[0.1, 0.01], seed=1)
>>> validator = ConvergenceValidator(OrnsteinUhlenbeck(), config, cache=RealizationCache())
>>> result = validator.validate_scenario([1.0])
>>> result["sensitivity"][0]
(0.1, 0.43..., 0.43...)
"""

from typing import Callable, Dict, List, Optional, Sequence

import numpy as np
from loguru import logger
from tqdm import tqdm

from stochval.analysis.covariance import deviation_covariance, stochastic_sensitivity
from stochval.analysis.moments import estimate, second_moment, split_batch
from stochval.analysis.regression import fit_loglog
from stochval.exceptions import NumericalDivergenceError, StochvalError
from stochval.numerical_integration.deterministic import DeterministicTrajectory, EulerIntegrator
from stochval.numerical_integration.stochastic import (
    JointDiffusion,
    JointDrift,
    keyed_generator,
    simulate,
)
from stochval.storage import NpzDirectoryStore, RealizationCache
from stochval.systems.model import ModelBase
from stochval.types import ArrayLike, MomentEstimate, SampleSet, ScenarioResult
from stochval.validation.config import ValidationConfig

CovarianceFunction = Callable[..., np.ndarray]


def scenario_name(model: ModelBase, x0: ArrayLike) -> str:
    """Readable scenario identifier, e.g. 'OrnsteinUhlenbeck_[1.0]'."""
    values = np.atleast_1d(np.asarray(x0, dtype=float)).tolist()
    return f"{model.name}_{values}".replace(" ", "")


class ConvergenceValidator:
    """
    Runs the small-noise convergence validation for one model.

    Parameters
    ----------
    model : ModelBase
        Deterministic vector field and its Jacobian
    config : ValidationConfig
        Run configuration
    cache : Optional[RealizationCache]
        Realization cache; defaults to an on-disk cache in config.data_dir
    covariance_fn : Optional[Callable]
        covariance_fn(model, x0, t0, T, dt, trajectory=...) -> Σ. Defaults
        to ``deviation_covariance``.
    quiet : bool
        Suppress progress output

    Attributes
    ----------
    failures : Dict[str, str]
        Scenario name -> message for scenarios that could not run at all
    """

    def __init__(
        self,
        model: ModelBase,
        config: Optional[ValidationConfig] = None,
        cache: Optional[RealizationCache] = None,
        covariance_fn: Optional[CovarianceFunction] = None,
        quiet: bool = False,
    ):
        self.model = model
        self.config = config if config is not None else ValidationConfig()
        if cache is None:
            cache = RealizationCache(
                NpzDirectoryStore(self.config.data_dir),
                attempt_reload=self.config.attempt_reload,
                save_on_generation=self.config.save_on_generation,
            )
        self.cache = cache
        self.covariance_fn = covariance_fn or deviation_covariance
        self.quiet = quiet
        self.failures: Dict[str, str] = {}

    # ========================================================================
    # Public API
    # ========================================================================

    def run(self, x0s: Sequence[ArrayLike]) -> Dict[str, ScenarioResult]:
        """
        Validate every initial condition in x0s.

        Returns
        -------
        dict
            Scenario name -> ScenarioResult, for scenarios that completed.
            Scenarios that aborted (for example a divergent deterministic
            trajectory) are listed in ``self.failures``.

        Raises
        ------
        ConfigurationError
            Before any work, if the configuration is invalid
        """
        self.config.validate()
        if len(x0s) == 0:
            raise ValueError("At least one initial condition is required")

        results: Dict[str, ScenarioResult] = {}
        for x0 in x0s:
            name = scenario_name(self.model, x0)
            try:
                results[name] = self.validate_scenario(x0)
            except StochvalError as err:
                self.failures[name] = str(err)
                logger.error(f"Scenario {name} aborted: {err}")
        return results

    def validate_scenario(self, x0: ArrayLike) -> ScenarioResult:
        """
        Full validation for one initial condition.

        Raises
        ------
        ConfigurationError
            If the configuration is invalid
        NumericalDivergenceError
            If the deterministic trajectory diverges
        """
        config = self.config
        config.validate()

        model = self.model
        d = model.d
        x0 = np.atleast_1d(np.asarray(x0, dtype=float))
        if x0.shape != (d,):
            raise ValueError(f"x0 must have shape ({d},), got {x0.shape}")

        name = scenario_name(model, x0)
        self._info(f"Validation for {name}...")

        self._info("Solving for deterministic trajectory...")
        try:
            trajectory = EulerIntegrator(config.dt).integrate(model.drift, x0, config.t0, config.T)
        except NumericalDivergenceError as err:
            raise err.with_context(scenario=name) from err
        w = trajectory.w

        sigma = np.atleast_2d(
            self.covariance_fn(model, x0, config.t0, config.T, config.dt, trajectory=trajectory)
        )
        theory_s2 = stochastic_sensitivity(sigma)
        self._info(f"Theoretical stochastic sensitivity S² = {theory_s2:.6g}")

        estimates, failures, limit_pool, samples = self._epsilon_sweep(name, x0, trajectory)

        completed = [float(e) for e in config.epsilons if float(e) in estimates]
        result = ScenarioResult(
            name=name,
            x0=x0,
            epsilons=completed,
            rs=[float(r) for r in config.rs],
            w=np.array(w),
            theoretical_covariance=sigma,
            theoretical_sensitivity=theory_s2,
            estimates=estimates,
            convergence=[],
            sensitivity=[],
            sensitivity_difference=np.array([abs(estimates[e]["sensitivity"] - theory_s2) for e in completed]),
            w_abs_diff=np.array([estimates[e]["w_abs_diff"] for e in completed]),
            z_mean_diff=np.array([estimates[e]["z_mean_diff"] for e in completed]),
            slopes={},
            bounds={},
            samples=samples,
            limit_samples=np.hstack(limit_pool) if limit_pool else np.empty((d, 0)),
            limit_second_moment=None,
            failures=failures,
            regression_failures={},
        )

        for eps in completed:
            est = estimates[eps]
            for j, r in enumerate(est["rs"]):
                result["convergence"].append(
                    (eps, r, float(est["y_moments"][j]), float(est["z_moments"][j]))
                )
            result["sensitivity"].append((eps, est["sensitivity"], theory_s2))

        if result["limit_samples"].shape[1] > 0:
            result["limit_second_moment"] = second_moment(result["limit_samples"])
            self._info(f"Pooled {result['limit_samples'].shape[1]} realisations of the limiting SDE")

        self._fit_power_laws(result)

        for r in result["rs"]:
            bound = model.sensitivity_bound(r, d, config.T - config.t0, model.K, 1)
            if bound is not None:
                result["bounds"][r] = float(bound)

        return result

    # ========================================================================
    # Steps
    # ========================================================================

    def _epsilon_sweep(self, name: str, x0: np.ndarray, trajectory: DeterministicTrajectory):
        config = self.config
        d = self.model.d
        n = int(config.n_samples)

        drift = JointDrift(self.model, trajectory)
        x0_aug = np.concatenate([x0, np.zeros(d)])
        # Work buffer; simulate() always hands back a copy
        buffer = np.empty((2 * d, n))

        estimates: Dict[float, MomentEstimate] = {}
        failures: Dict[float, str] = {}
        limit_pool: List[np.ndarray] = []
        samples: Dict[float, SampleSet] = {}

        params = {
            "n_samples": n,
            "d": d,
            "t0": float(config.t0),
            "T": float(config.T),
            "dt": float(config.dt),
        }

        self._info("Generating realisations for values of ε...")
        for eps in tqdm(config.epsilons, desc=name, disable=self.quiet):
            eps = float(eps)
            key = RealizationCache.make_key(name, x0, eps, **params)
            metadata = {"scenario": name, "epsilon": eps, "x0": x0, **params}

            # One stream per (scenario, ε), independent of the sweep order
            rng = keyed_generator(config.seed, name, repr(eps))

            def compute(eps=eps, rng=rng):
                return simulate(
                    drift,
                    JointDiffusion(eps, d),
                    N=n,
                    dim=2 * d,
                    x0=x0_aug,
                    t0=config.t0,
                    T=config.T,
                    dt=config.dt,
                    noise_dim=d,
                    rng=rng,
                    out=buffer,
                )

            try:
                batch = self.cache.get_or_compute(
                    key, compute, expected_shape=(2 * d, n), metadata=metadata
                )
                est = estimate(batch, trajectory.w, eps, config.rs, p=config.p)
            except (StochvalError, ValueError) as err:
                if isinstance(err, NumericalDivergenceError):
                    err = err.with_context(scenario=name, epsilon=eps)
                failures[eps] = str(err)
                logger.error(f"{name}: ε={eps} failed: {err}")
                continue

            estimates[eps] = est
            y, z_limit = split_batch(batch, d)
            limit_pool.append(np.array(z_limit))
            if config.keep_samples:
                samples[eps] = SampleSet(
                    y=np.array(y),
                    z_epsilon=(y - trajectory.w[:, None]) / eps,
                    z_limit=np.array(z_limit),
                )

        return estimates, failures, limit_pool, samples

    def _fit_power_laws(self, result: ScenarioResult):
        config = self.config
        eps = result["epsilons"]
        for j, r in enumerate(result["rs"]):
            fits = {}
            for series in ("y", "z"):
                values = [result["estimates"][e][f"{series}_moments"][j] for e in eps]
                label = f"{series}_r={r:g}"
                try:
                    fits[series] = fit_loglog(
                        eps, values, intercept=config.intercept, base=config.log_base
                    )
                except StochvalError as err:
                    result["regression_failures"][label] = str(err)
                    logger.warning(f"{result['name']}: regression for {label} failed: {err}")
                    continue
                self._info(
                    f"Γ_{series}^({r:g}) ~ ε^{fits[series]['slope']:.2f}"
                )
            result["slopes"][r] = fits

    def _info(self, message: str):
        if not self.quiet:
            logger.info(message)


def convergence_validation(
    model: ModelBase,
    x0s: Sequence[ArrayLike],
    t0: float,
    T: float,
    N: int,
    quiet: bool = False,
    attempt_reload: bool = True,
    save_on_generation: bool = True,
    cache: Optional[RealizationCache] = None,
    **config_options,
) -> Dict[str, ScenarioResult]:
    """
    One-call validation over a list of initial conditions.

    Parameters
    ----------
    model : ModelBase
        Model under study
    x0s : Sequence[array_like]
        Initial conditions
    t0, T : float
        Time interval
    N : int
        Samples per ε
    quiet, attempt_reload, save_on_generation
        See ``ConvergenceValidator`` and ``ValidationConfig``
    cache : Optional[RealizationCache]
        Overrides the on-disk default
    **config_options
        Further ``ValidationConfig`` fields (dt, epsilons, rs, p, seed, ...)

    Returns
    -------
    dict
        Scenario name -> ScenarioResult
    """
    config = ValidationConfig(
        n_samples=N,
        t0=t0,
        T=T,
        attempt_reload=attempt_reload,
        save_on_generation=save_on_generation,
        **config_options,
    )
    validator = ConvergenceValidator(model, config, cache=cache, quiet=quiet)
    return validator.run(x0s)
