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
SDE Integrator Base - Abstract Interface for Fixed-Step Stochastic Integration

Provides the pieces every fixed-step SDE scheme needs:
- Random-stream handling (explicit ``numpy.random.Generator`` objects)
- Brownian increment generation
- Divergence checks on the integrated state
- Step and evaluation statistics

Mathematical Form
-----------------
Itô SDE: dx = f(x, t)dt + g(x, t)dW

where:
    f: Drift function (nx,)
    g: Diffusion loading matrix (nx × nw)
    dW: Wiener process increments (nw independent)

Random Streams
--------------
No global RNG state is touched. Every call to ``integrate`` receives (or
creates) its own Generator, so independent units of work can run in any
order, or concurrently, without sharing mutable random state.
"""

import zlib
from abc import ABC, abstractmethod
from typing import Any, Dict, Tuple, Union

import numpy as np

from stochval.exceptions import NumericalDivergenceError

SeedLike = Union[None, int, np.random.SeedSequence, np.random.Generator]


def make_generator(seed: SeedLike = None) -> np.random.Generator:
    """
    Normalize a seed into a Generator.

    Parameters
    ----------
    seed : None, int, SeedSequence or Generator
        A Generator is returned unchanged; anything else seeds a new PCG64

    Returns
    -------
    np.random.Generator
    """
    if isinstance(seed, np.random.Generator):
        return seed
    return np.random.default_rng(seed)


def spawn_generators(seed: SeedLike, n: int) -> list:
    """
    Create n statistically independent Generators from one root seed.

    Uses ``SeedSequence.spawn`` so the child streams do not overlap.

    Examples
    --------
    >>> rngs = spawn_generators(42, 3)
    >>> len(rngs)
    3
    """
    if n < 0:
        raise ValueError(f"n must be non-negative, got {n}")
    if isinstance(seed, np.random.Generator):
        seed = np.random.SeedSequence(seed.integers(0, 2**63 - 1, size=4).tolist())
    if not isinstance(seed, np.random.SeedSequence):
        seed = np.random.SeedSequence(seed)
    return [np.random.default_rng(s) for s in seed.spawn(n)]


def keyed_generator(seed: Union[None, int], *labels: str) -> np.random.Generator:
    """
    Generator whose stream is determined by a root seed and a label path.

    Each label is hashed into the SeedSequence spawn key, so the stream for
    a given (seed, labels) does not depend on how many other streams were
    drawn or in which order.

    Examples
    --------
    >>> a = keyed_generator(42, "OU_[1.0]", repr(0.1))
    >>> b = keyed_generator(42, "OU_[1.0]", repr(0.1))
    >>> a.random() == b.random()
    True
    """
    spawn_key = tuple(zlib.crc32(str(label).encode()) for label in labels)
    return np.random.default_rng(np.random.SeedSequence(seed, spawn_key=spawn_key))


class SDEIntegratorBase(ABC):
    """
    Abstract base class for fixed-step SDE integrators.

    Subclasses implement ``step`` (one update given a Brownian increment)
    and ``integrate`` (a full ensemble run).

    Parameters
    ----------
    dt : float
        Nominal time step (must be > 0)
    check_finite : bool
        Abort with NumericalDivergenceError on the first non-finite state
    """

    def __init__(self, dt: float, check_finite: bool = True):
        if dt <= 0:
            raise ValueError(f"Time step dt must be positive, got {dt}")
        self.dt = dt
        self.check_finite = check_finite

        self._stats = {
            "total_steps": 0,
            "total_fev": 0,  # Drift evaluations
            "total_gev": 0,  # Diffusion evaluations
            "total_trajectories": 0,
        }

    # ========================================================================
    # Abstract Methods - Must be Implemented by Subclasses
    # ========================================================================

    @abstractmethod
    def step(self, x: np.ndarray, t: float, dt: float, dW: np.ndarray) -> np.ndarray:
        """
        Advance the state by one step: x(t) → x(t + dt).

        Parameters
        ----------
        x : np.ndarray
            Current state (nx,) or batch (nx, N)
        t : float
            Current time
        dt : float
            Step size
        dW : np.ndarray
            Brownian increment (nw,) or batch (nw, N)

        Returns
        -------
        np.ndarray
            Next state, same shape as x
        """

    @abstractmethod
    def integrate(self, *args, **kwargs):
        """Integrate an ensemble of sample paths."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Integrator name for display and logging."""

    # ========================================================================
    # Noise Generation
    # ========================================================================

    @staticmethod
    def _generate_noise(
        rng: np.random.Generator, dt: float, shape: Tuple[int, ...]
    ) -> np.ndarray:
        """
        Draw Brownian increments dW ~ N(0, dt·I).

        Parameters
        ----------
        rng : np.random.Generator
            Stream owned by the calling unit of work
        dt : float
            Step size
        shape : tuple
            (nw,) or (nw, N)
        """
        return rng.standard_normal(shape) * np.sqrt(dt)

    # ========================================================================
    # Common Utilities
    # ========================================================================

    def _check_state(self, x: np.ndarray, t: float, step: int):
        """Raise NumericalDivergenceError if x holds any non-finite value."""
        if self.check_finite and not np.all(np.isfinite(x)):
            n_bad = int(np.count_nonzero(~np.all(np.isfinite(x), axis=0))) if x.ndim == 2 else 1
            raise NumericalDivergenceError(
                f"Non-finite state in {n_bad} sample(s) at t={t:.6g}",
                time=float(t),
                step=step,
            )

    def get_stats(self) -> Dict[str, Any]:
        """
        Get integration statistics.

        Returns
        -------
        dict
            total_steps, total_fev, total_gev, total_trajectories and the
            average drift/diffusion evaluations per step
        """
        steps = max(1, self._stats["total_steps"])
        return {
            **self._stats,
            "avg_fev_per_step": self._stats["total_fev"] / steps,
            "avg_gev_per_step": self._stats["total_gev"] / steps,
        }

    def reset_stats(self):
        """Reset integration statistics to zero."""
        for key in self._stats:
            self._stats[key] = 0

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(dt={self.dt}, check_finite={self.check_finite})"

    def __str__(self) -> str:
        return f"{self.name} (dt={self.dt})"
