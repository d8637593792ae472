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
Joint System - Original Process Coupled to Its Linearization

The augmented state X = (y, z) ∈ ℝ^{2d} evolves as

    dy = u(y, t) dt              + ε dW
    dz = ∇u(w(t), t) z dt        +   dW

where w(t) is the deterministic trajectory. Both halves are driven by the
same d-dimensional Wiener increment: the diffusion loading matrix is

    G = [ ε·I_d ]
        [   I_d ]     shape (2d, d)

so the linearized process follows the un-scaled noise while y follows the
ε-scaled noise. Independent noise in the two halves would make the
deviation statistics meaningless.
"""

import numpy as np

from stochval.numerical_integration.deterministic import DeterministicTrajectory
from stochval.systems.model import ModelBase


class JointDrift:
    """
    Drift of the augmented system.

    Holds an immutable reference to the deterministic trajectory; the
    Jacobian of the linearized half is evaluated along it.

    Parameters
    ----------
    model : ModelBase
        Provides ``drift`` and ``jacobian``
    trajectory : DeterministicTrajectory
        Fully computed limit trajectory

    Examples
    --------
    >>> drift = JointDrift(model, trajectory)
    >>> X = np.zeros((2 * model.d, 100))
    >>> drift(X, 0.0).shape
    (2, 100)
    """

    def __init__(self, model: ModelBase, trajectory: DeterministicTrajectory):
        if trajectory.d != model.d:
            raise ValueError(
                f"Trajectory dimension {trajectory.d} does not match model dimension {model.d}"
            )
        self._model = model
        self._trajectory = trajectory
        self.d = model.d

    @property
    def model(self) -> ModelBase:
        return self._model

    @property
    def trajectory(self) -> DeterministicTrajectory:
        return self._trajectory

    @property
    def nx(self) -> int:
        return 2 * self.d

    def linearization(self, t: float) -> np.ndarray:
        """∇u(w(t), t), shape (d, d)."""
        return self._model.jacobian(self._trajectory(t), t)

    def __call__(self, x: np.ndarray, t: float) -> np.ndarray:
        """
        Evaluate the augmented drift.

        Parameters
        ----------
        x : np.ndarray
            Augmented state (2d,) or batch (2d, N)
        t : float
            Time

        Returns
        -------
        np.ndarray
            Same shape as x
        """
        d = self.d
        out = np.empty_like(x, dtype=float)
        out[:d] = self._model.drift(x[:d], t)
        out[d:] = self.linearization(t) @ x[d:]
        return out


class JointDiffusion:
    """
    Additive loading matrix [ε·I; I] of the augmented system.

    Parameters
    ----------
    epsilon : float
        Noise intensity of the original process (> 0)
    d : int
        State dimension of the original process
    """

    def __init__(self, epsilon: float, d: int):
        if not epsilon > 0:
            raise ValueError(f"epsilon must be positive, got {epsilon}")
        if d < 1:
            raise ValueError(f"d must be >= 1, got {d}")
        self.epsilon = float(epsilon)
        self.d = int(d)
        self._matrix = np.vstack([self.epsilon * np.eye(self.d), np.eye(self.d)])
        self._matrix.setflags(write=False)

    @property
    def nx(self) -> int:
        return 2 * self.d

    @property
    def nw(self) -> int:
        return self.d

    def __call__(self, x: np.ndarray, t: float) -> np.ndarray:
        """Loading matrix G (2d, d); independent of state and time."""
        return self._matrix

    def apply(self, dW: np.ndarray) -> np.ndarray:
        """
        Map increments into the augmented state: G @ dW.

        Equivalent to stacking ε·dW on top of dW, which is what is computed.
        """
        return np.concatenate([self.epsilon * dW, dW], axis=0)

    def __repr__(self) -> str:
        return f"JointDiffusion(epsilon={self.epsilon}, d={self.d})"
