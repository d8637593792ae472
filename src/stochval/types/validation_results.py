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
Validation Result Types

TypedDict containers handed from the estimator, regression and driver to
the (external) reporting layer. All are plain dictionaries at runtime.

Usage
-----
>>> result: ScenarioResult = validator.validate_scenario(x0)
>>> for eps, r, y_err, z_err in result["convergence"]:
...     print(eps, r, y_err, z_err)
>>> result["slopes"][2]["z"]["slope"]
"""

from typing import Dict, List, Optional, Tuple

import numpy as np
from typing_extensions import TypedDict


class MomentEstimate(TypedDict):
    """
    Statistics of one realization batch at one ε.

    Attributes
    ----------
    epsilon : float
        Noise intensity of the batch
    rs : List[float]
        Exponents the moments were taken for
    w_abs_diff : float
        mean ‖y − w‖ (diagnostic)
    z_mean_diff : float
        mean ‖z_ε‖ (diagnostic)
    w_moments : np.ndarray
        mean ‖y − w‖^r for every r, shape (len(rs),)
    y_moments : np.ndarray
        mean ‖y − w − ε·z‖^r for every r, shape (len(rs),)
    z_moments : np.ndarray
        mean ‖z_ε − z‖^r for every r, shape (len(rs),)
    y_mean : np.ndarray
        Sample mean of y, shape (d,)
    y_covariance : np.ndarray
        (N−1)-normalized sample covariance of y, shape (d, d)
    z_mean : np.ndarray
        Sample mean of z_ε, shape (d,)
    z_covariance : np.ndarray
        (N−1)-normalized sample covariance of z_ε, shape (d, d)
    sensitivity : float
        Largest eigenvalue of z_covariance (empirical S²)
    """

    epsilon: float
    rs: List[float]
    w_abs_diff: float
    z_mean_diff: float
    w_moments: np.ndarray
    y_moments: np.ndarray
    z_moments: np.ndarray
    y_mean: np.ndarray
    y_covariance: np.ndarray
    z_mean: np.ndarray
    z_covariance: np.ndarray
    sensitivity: float


class PowerLawFit(TypedDict):
    """
    Least-squares line through (log ε, log statistic).

    Attributes
    ----------
    log_epsilons : np.ndarray
        Regressors, shape (n,)
    log_values : np.ndarray
        Responses, shape (n,)
    fitted : np.ndarray
        Fitted line evaluated at log_epsilons, shape (n,)
    slope : float
        Empirical convergence exponent
    intercept : float
        Fitted intercept (0.0 when fitted without one)
    base : float
        Logarithm base used for both axes
    """

    log_epsilons: np.ndarray
    log_values: np.ndarray
    fitted: np.ndarray
    slope: float
    intercept: float
    base: float


ConvergenceRecord = Tuple[float, float, float, float]
"""(ε, r, y_error_moment, z_error_moment)."""

SensitivityPair = Tuple[float, float, float]
"""(ε, empirical S², theoretical S²)."""


class SampleSet(TypedDict):
    """Raw arrays of one ε kept for visualization."""

    y: np.ndarray
    z_epsilon: np.ndarray
    z_limit: np.ndarray


class ScenarioResult(TypedDict):
    """
    Everything produced for one (model, initial condition) scenario.

    Attributes
    ----------
    name : str
        Scenario name, "{model}_{x0}"
    x0 : np.ndarray
        Initial condition
    epsilons : List[float]
        ε values that completed, in evaluation order
    rs : List[float]
        Moment exponents
    w : np.ndarray
        Deterministic terminal state
    theoretical_covariance : np.ndarray
        Σ used for the theoretical S²
    theoretical_sensitivity : float
        Largest eigenvalue of Σ
    estimates : Dict[float, MomentEstimate]
        Estimator output per completed ε
    convergence : List[ConvergenceRecord]
        Ordered (ε, r, y_error, z_error) tuples
    sensitivity : List[SensitivityPair]
        Ordered (ε, empirical, theoretical) tuples
    sensitivity_difference : np.ndarray
        |S²_empirical − S²_theory| per completed ε
    w_abs_diff : np.ndarray
        Diagnostic mean ‖y − w‖ per completed ε
    z_mean_diff : np.ndarray
        Diagnostic mean ‖z_ε‖ per completed ε
    slopes : Dict[float, Dict[str, PowerLawFit]]
        Fits per r, keyed "y" and "z" (missing when degenerate)
    bounds : Dict[float, float]
        Model bound constant per r, empty if the model provides none
    samples : Dict[float, SampleSet]
        Per-ε raw arrays (empty unless samples are kept)
    limit_samples : np.ndarray
        Pooled linearized-process samples, shape (d, N·n_completed)
    limit_second_moment : np.ndarray
        (1/M) Σ z zᵀ over the pool, shape (d, d)
    failures : Dict[float, str]
        ε → message for units that did not complete
    regression_failures : Dict[str, str]
        Series label → message for degenerate fits
    """

    name: str
    x0: np.ndarray
    epsilons: List[float]
    rs: List[float]
    w: np.ndarray
    theoretical_covariance: np.ndarray
    theoretical_sensitivity: float
    estimates: Dict[float, MomentEstimate]
    convergence: List[ConvergenceRecord]
    sensitivity: List[SensitivityPair]
    sensitivity_difference: np.ndarray
    w_abs_diff: np.ndarray
    z_mean_diff: np.ndarray
    slopes: Dict[float, Dict[str, PowerLawFit]]
    bounds: Dict[float, float]
    samples: Dict[float, SampleSet]
    limit_samples: np.ndarray
    limit_second_moment: Optional[np.ndarray]
    failures: Dict[float, str]
    regression_failures: Dict[str, str]
