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
Ornstein-Uhlenbeck Limit - Linear Mean-Reverting Vector Field
==============================================================

The velocity field u(x) = -α·x. With additive noise of intensity ε the
perturbed process

    dy = -α·y dt + ε dW

is the Ornstein-Uhlenbeck process. Because the field is linear, the
linearized process reproduces the scaled deviation exactly:

    y(t) - w(t) = ε·z(t)

so the z-error moments sit at round-off level for every ε. This makes the
model the reference case for checking the shared-noise coupling.

Stationary and transient statistics
-----------------------------------
Starting from a deterministic point, the deviation covariance solves
dΣ/dt = -2α·Σ + 1, Σ(0) = 0, hence

    Σ(T) = (1 - exp(-2αT)) / (2α)
"""

import warnings

import numpy as np
import sympy as sp

from stochval.systems.model import SymbolicModel


class OrnsteinUhlenbeck(SymbolicModel):
    """
    Scalar linear decay u(x) = -α·x.

    Parameters
    ----------
    alpha : float, default=1.0
        Mean reversion rate. α ≤ 0 is allowed but warned about.

    Examples
    --------
    >>> model = OrnsteinUhlenbeck(alpha=1.0)
    >>> model.drift(np.array([1.0]), 0.0)
    array([-1.])
    >>> model.deviation_variance(1.0)
    0.43233235838169365
    """

    def define_model(self, alpha: float = 1.0):
        if alpha <= 0:
            warnings.warn(
                f"alpha={alpha} <= 0 gives a non-reverting limit; "
                f"deviations will not stay bounded.",
                UserWarning,
            )

        x = sp.symbols("x", real=True)
        alpha_sym = sp.symbols("alpha", real=True)

        self.state_vars = [x]
        self._f_sym = sp.Matrix([[-alpha_sym * x]])
        self.parameters = {alpha_sym: alpha}
        self.alpha = float(alpha)

    def deviation_variance(self, T: float, t0: float = 0.0) -> float:
        """
        Closed-form Σ(T) of the linearized process.

        Returns
        -------
        float
            (1 - exp(-2α(T - t0))) / (2α), or T - t0 when α = 0
        """
        span = T - t0
        if self.alpha == 0:
            return span
        return float((1.0 - np.exp(-2.0 * self.alpha * span)) / (2.0 * self.alpha))
