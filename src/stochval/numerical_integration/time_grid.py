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

"""Fixed-step time grids shared by the deterministic and stochastic integrators."""

import numpy as np

from stochval.types import TimePoints

# Relative slack when deciding whether (T - t0) / dt is an integer
_GRID_RTOL = 1e-9


def validate_time_span(t0: float, T: float, dt: float) -> None:
    """
    Check a fixed-step integration interval.

    Raises
    ------
    ValueError
        If dt <= 0, T <= t0 or any bound is non-finite
    """
    if not (np.isfinite(t0) and np.isfinite(T) and np.isfinite(dt)):
        raise ValueError(f"Time bounds must be finite, got t0={t0}, T={T}, dt={dt}")
    if dt <= 0:
        raise ValueError(f"Time step dt must be positive, got {dt}")
    if T <= t0:
        raise ValueError(f"Final time T must exceed t0, got t0={t0}, T={T}")


def fixed_step_grid(t0: float, T: float, dt: float) -> TimePoints:
    """
    Build the grid t0, t0 + dt, ..., T.

    The last interval is shortened when (T - t0) is not a multiple of dt,
    so the grid always ends exactly at T.

    Parameters
    ----------
    t0 : float
        Initial time
    T : float
        Final time (> t0)
    dt : float
        Nominal step (> 0)

    Returns
    -------
    np.ndarray
        Time points (n_steps + 1,)

    Examples
    --------
    >>> fixed_step_grid(0.0, 1.0, 0.25)
    array([0.  , 0.25, 0.5 , 0.75, 1.  ])
    >>> fixed_step_grid(0.0, 1.0, 0.4)
    array([0. , 0.4, 0.8, 1. ])
    """
    validate_time_span(t0, T, dt)

    ratio = (T - t0) / dt
    n_steps = int(np.ceil(ratio - _GRID_RTOL * max(1.0, ratio)))
    n_steps = max(n_steps, 1)

    grid = t0 + dt * np.arange(n_steps + 1, dtype=float)
    grid[-1] = T
    return grid
