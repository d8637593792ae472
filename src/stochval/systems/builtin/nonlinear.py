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
Nonlinear vector fields for convergence studies.

For nonlinear fields the linearized process only captures the first-order
term of the deviation, so z_ε - z = O(ε) and the z-error moments decay as
a power of ε that the regression can recover.
"""

import sympy as sp

from stochval.systems.model import SymbolicModel


class LogisticGrowth(SymbolicModel):
    """
    Logistic growth u(x) = ρ·x·(1 - x/κ).

    Parameters
    ----------
    rho : float, default=1.0
        Growth rate
    kappa : float, default=1.0
        Carrying capacity (must be nonzero)
    """

    def define_model(self, rho: float = 1.0, kappa: float = 1.0):
        if kappa == 0:
            raise ValueError("kappa must be nonzero")

        x = sp.symbols("x", real=True)
        rho_sym, kappa_sym = sp.symbols("rho kappa", real=True)

        self.state_vars = [x]
        self._f_sym = sp.Matrix([[rho_sym * x * (1 - x / kappa_sym)]])
        self.parameters = {rho_sym: rho, kappa_sym: kappa}


class VanDerPolOscillator(SymbolicModel):
    """
    Van der Pol oscillator written as a first-order system.

        dx1/dt = x2
        dx2/dt = μ·(1 - x1²)·x2 - x1

    Parameters
    ----------
    mu : float, default=1.0
        Nonlinear damping strength
    """

    def define_model(self, mu: float = 1.0):
        x1, x2 = sp.symbols("x1 x2", real=True)
        mu_sym = sp.symbols("mu", real=True)

        self.state_vars = [x1, x2]
        self._f_sym = sp.Matrix([[x2], [mu_sym * (1 - x1**2) * x2 - x1]])
        self.parameters = {mu_sym: mu}


class RotatingShear(SymbolicModel):
    """
    Time-dependent planar shear flow.

        dx1/dt = -x2 + a·sin(t)·x1
        dx2/dt =  x1 - b·x2

    Exercises explicit time dependence of the Jacobian.

    Parameters
    ----------
    a : float, default=0.5
        Amplitude of the oscillating stretch
    b : float, default=0.5
        Damping of the second component
    """

    def define_model(self, a: float = 0.5, b: float = 0.5):
        x1, x2 = sp.symbols("x1 x2", real=True)
        t = sp.symbols("t", real=True)
        a_sym, b_sym = sp.symbols("a b", real=True)

        self.state_vars = [x1, x2]
        self.time_var = t
        self._f_sym = sp.Matrix([[-x2 + a_sym * sp.sin(t) * x1], [x1 - b_sym * x2]])
        self.parameters = {a_sym: a, b_sym: b}
