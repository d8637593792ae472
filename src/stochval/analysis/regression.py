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
Power-Law Regression

If a statistic behaves like Γ(ε) ≈ C·ε^α, then

    log Γ = log C + α·log ε

and the least-squares slope of log Γ against log ε estimates the
convergence exponent α.
"""

from typing import Sequence

import numpy as np

from stochval.exceptions import RegressionDegeneracyError
from stochval.types import PowerLawFit


def fit_loglog(
    epsilons: Sequence[float],
    values: Sequence[float],
    intercept: bool = True,
    base: float = np.e,
) -> PowerLawFit:
    """
    Ordinary least squares of log(values) on log(epsilons).

    Parameters
    ----------
    epsilons : Sequence[float]
        Noise intensities (> 0)
    values : Sequence[float]
        Statistic at each ε (> 0)
    intercept : bool
        Fit an intercept term (default). Without one the line passes
        through the origin of the log-log plane.
    base : float
        Logarithm base for both axes (e for natural log, 10 for plots)

    Returns
    -------
    PowerLawFit
        Fitted line aligned with the inputs, slope and intercept

    Raises
    ------
    RegressionDegeneracyError
        Fewer than 2 points, mismatched lengths, any non-finite log value
        (for example a statistic of exactly zero), or all ε equal

    Examples
    --------
    >>> eps = np.array([0.1, 0.01, 0.001])
    >>> fit = fit_loglog(eps, 3.0 * eps**2)
    >>> round(fit["slope"], 6), round(fit["intercept"], 6)
    (2.0, 1.098612)
    """
    eps = np.asarray(epsilons, dtype=float).ravel()
    vals = np.asarray(values, dtype=float).ravel()

    if eps.shape != vals.shape:
        raise RegressionDegeneracyError(
            f"epsilons and values differ in length ({eps.size} vs {vals.size})"
        )
    if eps.size < 2:
        raise RegressionDegeneracyError(f"At least 2 points are needed, got {eps.size}")
    if not base > 0 or base == 1:
        raise ValueError(f"Logarithm base must be positive and not 1, got {base}")

    with np.errstate(divide="ignore", invalid="ignore"):
        log_base = np.log(base)
        x = np.log(eps) / log_base
        y = np.log(vals) / log_base

    bad = ~(np.isfinite(x) & np.isfinite(y))
    if np.any(bad):
        raise RegressionDegeneracyError(
            f"Non-finite log values at epsilon={eps[bad].tolist()} "
            f"(statistic={vals[bad].tolist()})"
        )
    if np.ptp(x) == 0:
        raise RegressionDegeneracyError("All epsilon values are equal; slope is undefined")

    if intercept:
        X = np.column_stack([np.ones_like(x), x])
    else:
        X = x[:, None]

    coefs, *_ = np.linalg.lstsq(X, y, rcond=None)
    fitted = X @ coefs

    if intercept:
        c0, slope = float(coefs[0]), float(coefs[1])
    else:
        c0, slope = 0.0, float(coefs[0])

    return PowerLawFit(
        log_epsilons=x,
        log_values=y,
        fitted=fitted,
        slope=slope,
        intercept=c0,
        base=float(base),
    )
