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
Theoretical Deviation Covariance

The linearized process dz = ∇u(w(t), t) z dt + dW, z(t0) = 0 is Gaussian
with covariance Σ(t) solving the matrix Lyapunov equation

    dΣ/dt = A(t) Σ + Σ A(t)ᵀ + I,    Σ(t0) = 0,    A(t) = ∇u(w(t), t)

Σ(T) is the asymptotic covariance of the scaled deviation z_ε as ε → 0,
and its largest eigenvalue is the theoretical stochastic sensitivity S².

The equation is advanced with the same fixed-step explicit scheme as the
trajectory, on the trajectory's own grid.
"""

from typing import Optional

import numpy as np

from stochval.analysis.moments import largest_eigenvalue
from stochval.exceptions import NumericalDivergenceError
from stochval.numerical_integration.deterministic import DeterministicTrajectory, EulerIntegrator
from stochval.systems.model import ModelBase
from stochval.types import ArrayLike


def lyapunov_covariance(model: ModelBase, trajectory: DeterministicTrajectory) -> np.ndarray:
    """
    Σ(T) along an already computed trajectory.

    Parameters
    ----------
    model : ModelBase
        Supplies the Jacobian
    trajectory : DeterministicTrajectory
        Limit trajectory; its grid is reused

    Returns
    -------
    np.ndarray
        Σ(T), shape (d, d), symmetric
    """
    d = model.d
    identity = np.eye(d)
    sigma = np.zeros((d, d))
    t = trajectory.t

    for n in range(t.shape[0] - 1):
        h = t[n + 1] - t[n]
        A = model.jacobian(trajectory.states[n], t[n])
        sigma = sigma + h * (A @ sigma + sigma @ A.T + identity)
        if not np.all(np.isfinite(sigma)):
            raise NumericalDivergenceError(
                f"Deviation covariance became non-finite at t={t[n + 1]:.6g}",
                time=float(t[n + 1]),
                step=n + 1,
            )

    return 0.5 * (sigma + sigma.T)


def deviation_covariance(
    model: ModelBase,
    x0: ArrayLike,
    t0: float,
    T: float,
    dt: float,
    trajectory: Optional[DeterministicTrajectory] = None,
) -> np.ndarray:
    """
    Σ(T) for the model started at x0.

    Solves the deterministic trajectory first unless one is supplied.

    Examples
    --------
    >>> from stochval.systems import OrnsteinUhlenbeck
    >>> S = deviation_covariance(OrnsteinUhlenbeck(), [1.0], 0.0, 1.0, 1e-4)
    >>> round(float(S[0, 0]), 3)
    0.432
    """
    if trajectory is None:
        trajectory = EulerIntegrator(dt).integrate(model.drift, x0, t0, T)
    return lyapunov_covariance(model, trajectory)


def stochastic_sensitivity(sigma: np.ndarray) -> float:
    """Theoretical S²: the largest eigenvalue of Σ."""
    return largest_eigenvalue(sigma)
