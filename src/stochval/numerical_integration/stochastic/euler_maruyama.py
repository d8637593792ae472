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
Euler-Maruyama Integrator - Terminal-State Monte Carlo Ensembles

Explicit Euler-Maruyama scheme on a fixed grid:

    X_{n+1} = X_n + f(X_n, t_n)·Δt_n + G(X_n, t_n)·ΔW_n,   ΔW_n ~ N(0, Δt_n·I)

All N samples are advanced together as the columns of a (nx, N) array.
At every step a single (nw, N) block of standard normals is drawn, one
independent column per sample, and mapped through G. For the joint system
this means the same increment drives the original and linearized halves
of each sample.

Only terminal states are kept: the result is the (nx, N) realization
batch. Intermediate states are never stored.
"""

from typing import Callable, Optional, Union

import numpy as np

from stochval.numerical_integration.stochastic.joint_system import JointDiffusion
from stochval.numerical_integration.stochastic.sde_integrator_base import (
    SDEIntegratorBase,
    SeedLike,
    make_generator,
)
from stochval.numerical_integration.time_grid import fixed_step_grid
from stochval.types import ArrayLike, RealizationBatch

DiffusionLike = Union[JointDiffusion, Callable[[np.ndarray, float], np.ndarray]]


class EulerMaruyamaIntegrator(SDEIntegratorBase):
    """
    Fixed-step Euler-Maruyama for additive-loading SDEs.

    Parameters
    ----------
    drift : Callable[[np.ndarray, float], np.ndarray]
        f(X, t), evaluated column-wise on a (nx, N) batch
    diffusion : JointDiffusion or Callable
        Either an object with ``apply(dW)`` or a callable returning the
        (nx, nw) loading matrix, shared by all samples at a given step
    nx : int
        State dimension
    nw : int
        Number of independent Wiener processes
    dt : float
        Step size (> 0)
    check_finite : bool
        Abort on the first non-finite state

    Examples
    --------
    >>> integrator = EulerMaruyamaIntegrator(
    ...     JointDrift(model, trajectory), JointDiffusion(0.1, model.d),
    ...     nx=2 * model.d, nw=model.d, dt=1e-3,
    ... )
    >>> batch = integrator.integrate(x0_aug, 0.0, 1.0, n_samples=1000, rng=7)
    >>> batch.shape
    (2, 1000)
    """

    def __init__(
        self,
        drift: Callable[[np.ndarray, float], np.ndarray],
        diffusion: DiffusionLike,
        nx: int,
        nw: int,
        dt: float,
        check_finite: bool = True,
    ):
        super().__init__(dt, check_finite=check_finite)
        if nx < 1 or nw < 1:
            raise ValueError(f"nx and nw must be >= 1, got nx={nx}, nw={nw}")
        self.drift = drift
        self.diffusion = diffusion
        self.nx = int(nx)
        self.nw = int(nw)

    @property
    def name(self) -> str:
        return "Euler-Maruyama (fixed step)"

    def _load(self, x: np.ndarray, t: float, dW: np.ndarray) -> np.ndarray:
        self._stats["total_gev"] += 1
        if hasattr(self.diffusion, "apply"):
            return self.diffusion.apply(dW)
        G = np.asarray(self.diffusion(x, t), dtype=float)
        if G.shape != (self.nx, self.nw):
            raise ValueError(
                f"Diffusion must return shape ({self.nx}, {self.nw}), got {G.shape}"
            )
        return G @ dW

    def step(self, x: np.ndarray, t: float, dt: float, dW: np.ndarray) -> np.ndarray:
        self._stats["total_fev"] += 1
        return x + np.asarray(self.drift(x, t)) * dt + self._load(x, t, dW)

    def integrate(
        self,
        x0: ArrayLike,
        t0: float,
        T: float,
        n_samples: int,
        rng: SeedLike = None,
        out: Optional[np.ndarray] = None,
    ) -> RealizationBatch:
        """
        Simulate n_samples independent paths and return their terminal states.

        Parameters
        ----------
        x0 : array_like
            Common initial state (nx,)
        t0, T : float
            Integration interval
        n_samples : int
            Number of independent sample paths (N >= 1)
        rng : int, SeedSequence, Generator or None
            Random stream owned by this call
        out : Optional[np.ndarray]
            Pre-allocated (nx, N) work buffer. It is overwritten with the
            terminal states; the returned array is always a separate copy,
            so the buffer can be reused by the next call.

        Returns
        -------
        np.ndarray
            Terminal states, shape (nx, n_samples)

        Raises
        ------
        NumericalDivergenceError
            On the first non-finite state (when check_finite is set)
        """
        if int(n_samples) < 1:
            raise ValueError(f"n_samples must be positive, got {n_samples}")
        n_samples = int(n_samples)

        x0 = np.atleast_1d(np.asarray(x0, dtype=float))
        if x0.shape != (self.nx,):
            raise ValueError(f"x0 must have shape ({self.nx},), got {x0.shape}")

        if out is None:
            out = np.empty((self.nx, n_samples))
        elif out.shape != (self.nx, n_samples):
            raise ValueError(
                f"Output buffer must have shape ({self.nx}, {n_samples}), got {out.shape}"
            )

        rng = make_generator(rng)
        grid = fixed_step_grid(t0, T, self.dt)

        out[:] = x0[:, None]
        for n in range(grid.shape[0] - 1):
            t_n = grid[n]
            h = grid[n + 1] - t_n
            dW = self._generate_noise(rng, h, (self.nw, n_samples))
            out[:] = self.step(out, t_n, h, dW)
            self._check_state(out, grid[n + 1], n + 1)

        self._stats["total_steps"] += grid.shape[0] - 1
        self._stats["total_trajectories"] += n_samples
        return out.copy()


def simulate(
    drift: Callable[[np.ndarray, float], np.ndarray],
    diffusion: DiffusionLike,
    N: int,
    dim: int,
    x0: ArrayLike,
    t0: float,
    T: float,
    dt: float,
    noise_dim: Optional[int] = None,
    rng: SeedLike = None,
    out: Optional[np.ndarray] = None,
) -> RealizationBatch:
    """
    Terminal states of N Euler-Maruyama sample paths.

    Parameters
    ----------
    drift, diffusion
        Augmented drift and loading (see ``JointDrift``, ``JointDiffusion``)
    N : int
        Number of samples
    dim : int
        Augmented state dimension (2d for the joint system)
    x0 : array_like
        Initial augmented state (dim,)
    t0, T, dt : float
        Time interval and fixed step
    noise_dim : Optional[int]
        Wiener dimension; defaults to ``diffusion.nw`` or dim // 2
    rng : seed or Generator
        Random stream for this call
    out : Optional[np.ndarray]
        Reusable (dim, N) work buffer

    Returns
    -------
    np.ndarray
        Realization batch (dim, N), never aliased with ``out``
    """
    if noise_dim is None:
        noise_dim = getattr(diffusion, "nw", max(1, dim // 2))
    integrator = EulerMaruyamaIntegrator(drift, diffusion, nx=dim, nw=noise_dim, dt=dt)
    return integrator.integrate(x0, t0, T, N, rng=rng, out=out)
