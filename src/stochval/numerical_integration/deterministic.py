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
Deterministic Integrator - Fixed-Step Explicit Euler

Solves the unperturbed ODE

    dx/dt = f(x, t),    x(t0) = x0

with x_{n+1} = x_n + Δt_n · f(x_n, t_n) on the grid from
``fixed_step_grid``. The result is a ``DeterministicTrajectory``: a linear
interpolant over [t0, T] that also exposes the terminal value w = x(T).

The trajectory is computed once per scenario and is read-only afterwards.
It is both the source of the limit point w and the frozen coefficient
field ∇u(x(t), t) of the linearized process.
"""

from typing import Any, Dict

import numpy as np
from scipy.interpolate import interp1d

from stochval.exceptions import NumericalDivergenceError
from stochval.numerical_integration.time_grid import fixed_step_grid
from stochval.types import ArrayLike, DriftFunction, StateVector, TimePoints


class DeterministicTrajectory:
    """
    Immutable solution of the deterministic limit.

    Attributes
    ----------
    t : np.ndarray
        Time grid (n_points,)
    states : np.ndarray
        Solution on the grid (n_points, d)
    w : np.ndarray
        Terminal state x(T), shape (d,)

    Examples
    --------
    >>> traj = EulerIntegrator(dt=0.01).integrate(lambda x, t: -x, [1.0], 0.0, 1.0)
    >>> traj(0.5).shape
    (1,)
    >>> traj.w
    array([0.36603234])
    """

    def __init__(self, t: TimePoints, states: np.ndarray):
        t = np.array(t, dtype=float)
        states = np.array(states, dtype=float)
        if states.ndim != 2 or states.shape[0] != t.shape[0]:
            raise ValueError(
                f"states must have shape (len(t), d), got {states.shape} for {t.shape[0]} points"
            )
        t.setflags(write=False)
        states.setflags(write=False)
        self._t = t
        self._states = states
        self._interpolant = interp1d(t, states, kind="linear", axis=0, assume_sorted=True)

    @property
    def t(self) -> TimePoints:
        return self._t

    @property
    def states(self) -> np.ndarray:
        return self._states

    @property
    def t0(self) -> float:
        return float(self._t[0])

    @property
    def T(self) -> float:
        return float(self._t[-1])

    @property
    def d(self) -> int:
        return self._states.shape[1]

    @property
    def w(self) -> StateVector:
        """Terminal value x(T)."""
        return self._states[-1]

    def __call__(self, t: float) -> StateVector:
        """
        Evaluate the linear interpolant at t ∈ [t0, T].

        Raises
        ------
        ValueError
            If t lies outside [t0, T]
        """
        return np.asarray(self._interpolant(t))

    def __len__(self) -> int:
        return self._t.shape[0]

    def __repr__(self) -> str:
        return (
            f"DeterministicTrajectory(t0={self.t0}, T={self.T}, "
            f"d={self.d}, n_points={len(self)})"
        )


class EulerIntegrator:
    """
    Fixed-step explicit Euler solver for the deterministic limit.

    Parameters
    ----------
    dt : float
        Step size (must be > 0)

    Examples
    --------
    >>> integrator = EulerIntegrator(dt=1e-3)
    >>> traj = integrator.integrate(model.drift, x0, 0.0, 1.0)
    >>> w = traj.w
    """

    def __init__(self, dt: float):
        if dt <= 0:
            raise ValueError(f"Time step dt must be positive, got {dt}")
        self.dt = dt
        self._stats = {"total_steps": 0, "total_fev": 0}

    @property
    def name(self) -> str:
        return "Euler (fixed step)"

    def integrate(
        self,
        drift: DriftFunction,
        x0: ArrayLike,
        t0: float,
        T: float,
    ) -> DeterministicTrajectory:
        """
        Integrate dx/dt = drift(x, t) from t0 to T.

        Parameters
        ----------
        drift : Callable[[np.ndarray, float], np.ndarray]
            Velocity field
        x0 : array_like
            Initial state (d,)
        t0, T : float
            Integration interval

        Returns
        -------
        DeterministicTrajectory

        Raises
        ------
        NumericalDivergenceError
            If the drift or the state becomes non-finite; the error reports
            the time of the offending evaluation
        """
        x = np.atleast_1d(np.array(x0, dtype=float))
        if x.ndim != 1:
            raise ValueError(f"x0 must be a vector, got shape {x.shape}")
        if not np.all(np.isfinite(x)):
            raise NumericalDivergenceError("Initial state is not finite", time=t0, step=0)

        grid = fixed_step_grid(t0, T, self.dt)
        steps = np.diff(grid)
        states = np.empty((grid.shape[0], x.shape[0]))
        states[0] = x

        for n, (t_n, h) in enumerate(zip(grid[:-1], steps)):
            dxdt = np.asarray(drift(states[n], t_n), dtype=float)
            self._stats["total_fev"] += 1
            if not np.all(np.isfinite(dxdt)):
                raise NumericalDivergenceError(
                    f"Drift evaluation is not finite at t={t_n:.6g}", time=float(t_n), step=n
                )
            states[n + 1] = states[n] + h * dxdt
            if not np.all(np.isfinite(states[n + 1])):
                raise NumericalDivergenceError(
                    f"State became non-finite at t={grid[n + 1]:.6g}",
                    time=float(grid[n + 1]),
                    step=n + 1,
                )

        self._stats["total_steps"] += steps.shape[0]
        return DeterministicTrajectory(grid, states)

    def get_stats(self) -> Dict[str, Any]:
        return dict(self._stats)

    def reset_stats(self):
        self._stats["total_steps"] = 0
        self._stats["total_fev"] = 0

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(dt={self.dt})"


def integrate(
    drift: DriftFunction, x0: ArrayLike, t0: float, T: float, dt: float
) -> DeterministicTrajectory:
    """Shorthand for ``EulerIntegrator(dt).integrate(drift, x0, t0, T)``."""
    return EulerIntegrator(dt).integrate(drift, x0, t0, T)
