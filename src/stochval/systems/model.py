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
Model Interface - Deterministic Vector Fields and Their Linearization

A model describes the unperturbed ODE whose small-noise limit is studied:

    dx/dt = u(x, t)                       (deterministic limit)
    dy    = u(y, t) dt + ε dW             (perturbed process)
    dz    = ∇u(w(t), t) z dt + dW         (linearized process)

Two implementations are provided:

- Model: wraps plain NumPy callables for the velocity field and Jacobian
- SymbolicModel: the velocity field is declared with SymPy in
  ``define_model`` and the Jacobian is derived symbolically

Both evaluate the velocity field column-wise, so ``drift`` accepts either
a single state (d,) or a batch (d, N).
"""

from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional

import numpy as np
import sympy as sp

from stochval.types import DriftFunction, JacobianFunction, StateMatrix, StateVector


class ModelBase(ABC):
    """
    Abstract model interface consumed by the validation engine.

    Attributes
    ----------
    name : str
        Model name, used in scenario names and cache keys
    d : int
        State dimension
    K : float
        Model constant passed to ``sensitivity_bound``
    """

    name: str = "model"
    d: int = 1
    K: float = 1.0

    @abstractmethod
    def drift(self, x: StateVector, t: float) -> StateVector:
        """
        Evaluate the velocity field u(x, t).

        Parameters
        ----------
        x : np.ndarray
            State (d,) or batch of states (d, N)
        t : float
            Time

        Returns
        -------
        np.ndarray
            dx/dt with the same shape as x
        """

    @abstractmethod
    def jacobian(self, x: StateVector, t: float) -> StateMatrix:
        """
        Evaluate ∇u(x, t) at a single state.

        Returns
        -------
        np.ndarray
            Jacobian matrix (d, d)
        """

    def sensitivity_bound(self, r: float, d: int, T: float, K: float, *args) -> Optional[float]:
        """
        Theoretical bound constant for the r-th moment, if the model has one.

        Returns None by default; models with a known bound override this.
        """
        return None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r}, d={self.d})"


class Model(ModelBase):
    """
    Model backed by NumPy callables.

    Parameters
    ----------
    name : str
        Model name
    d : int
        State dimension (must be >= 1)
    drift : Callable
        u(x, t), must broadcast over trailing sample axis
    jacobian : Callable
        ∇u(x, t) -> (d, d)
    K : float
        Model constant for the bound function
    bound : Optional[Callable]
        sensitivity_bound(r, d, T, K, ...) implementation

    Examples
    --------
    >>> model = Model("decay", 1, lambda x, t: -x, lambda x, t: -np.eye(1))
    >>> model.drift(np.array([2.0]), 0.0)
    array([-2.])
    """

    def __init__(
        self,
        name: str,
        d: int,
        drift: DriftFunction,
        jacobian: JacobianFunction,
        K: float = 1.0,
        bound: Optional[Callable[..., float]] = None,
    ):
        if int(d) < 1:
            raise ValueError(f"State dimension d must be >= 1, got {d}")
        if not callable(drift) or not callable(jacobian):
            raise TypeError("drift and jacobian must be callable")
        self.name = name
        self.d = int(d)
        self.K = float(K)
        self._drift = drift
        self._jacobian = jacobian
        self._bound = bound

    def drift(self, x: StateVector, t: float) -> StateVector:
        return np.asarray(self._drift(x, t), dtype=float)

    def jacobian(self, x: StateVector, t: float) -> StateMatrix:
        return np.asarray(self._jacobian(x, t), dtype=float).reshape(self.d, self.d)

    def sensitivity_bound(self, r: float, d: int, T: float, K: float, *args) -> Optional[float]:
        if self._bound is None:
            return None
        return float(self._bound(r, d, T, K, *args))


class SymbolicModel(ModelBase):
    """
    Model whose velocity field is declared symbolically.

    Subclasses implement ``define_model`` and set:

    - ``self.state_vars``: list of SymPy symbols (length d)
    - ``self._f_sym``: SymPy Matrix (d, 1) with the velocity field
    - ``self.parameters``: dict mapping parameter symbols to values
    - ``self.time_var`` (optional): symbol for explicit time dependence

    The Jacobian is derived with ``Matrix.jacobian`` and both expressions are
    compiled component-wise with ``sympy.lambdify`` so that constant entries
    broadcast against batched states.

    Examples
    --------
    >>> class Decay(SymbolicModel):
    ...     def define_model(self, rate=1.0):
    ...         x = sp.symbols("x", real=True)
    ...         k = sp.symbols("k", positive=True)
    ...         self.state_vars = [x]
    ...         self._f_sym = sp.Matrix([-k * x])
    ...         self.parameters = {k: rate}
    >>> Decay(rate=2.0).jacobian(np.array([1.0]), 0.0)
    array([[-2.]])
    """

    def __init__(self, *args, name: Optional[str] = None, K: float = 1.0, **kwargs):
        self.state_vars: List[sp.Symbol] = []
        self.time_var: Optional[sp.Symbol] = None
        self.parameters: Dict[sp.Symbol, float] = {}
        self._f_sym: Optional[sp.Matrix] = None

        self.define_model(*args, **kwargs)

        if not self.state_vars:
            raise ValueError(f"{self.__class__.__name__}.define_model must set state_vars")
        if self._f_sym is None:
            raise ValueError(f"{self.__class__.__name__}.define_model must set _f_sym")

        self._f_sym = sp.Matrix(self._f_sym).reshape(len(self.state_vars), 1)
        self.d = len(self.state_vars)
        self.name = name or self.__class__.__name__
        self.K = float(K)

        if self.time_var is None:
            self.time_var = sp.Symbol("t", real=True)

        self._jac_sym = self._f_sym.jacobian(sp.Matrix(self.state_vars))

        args = list(self.state_vars) + [self.time_var]
        f_num = self.substitute_parameters(self._f_sym)
        jac_num = self.substitute_parameters(self._jac_sym)
        self._f_funcs = [sp.lambdify(args, f_num[i, 0], modules="numpy") for i in range(self.d)]
        self._jac_funcs = [
            [sp.lambdify(args, jac_num[i, j], modules="numpy") for j in range(self.d)]
            for i in range(self.d)
        ]

    @abstractmethod
    def define_model(self, *args, **kwargs):
        """Declare state symbols, velocity field and parameter values."""

    def substitute_parameters(self, expr: sp.Matrix) -> sp.Matrix:
        """Replace parameter symbols with their numerical values."""
        return expr.subs(self.parameters)

    @property
    def velocity_expr(self) -> sp.Matrix:
        """Symbolic velocity field (d, 1)."""
        return self._f_sym

    @property
    def jacobian_expr(self) -> sp.Matrix:
        """Symbolic Jacobian (d, d)."""
        return self._jac_sym

    def drift(self, x: StateVector, t: float) -> StateVector:
        x = np.asarray(x, dtype=float)
        components = [x[i] for i in range(self.d)]
        out = np.empty_like(x)
        for i, func in enumerate(self._f_funcs):
            out[i] = np.broadcast_to(func(*components, t), x.shape[1:])
        return out

    def jacobian(self, x: StateVector, t: float) -> StateMatrix:
        x = np.asarray(x, dtype=float).reshape(self.d)
        components = list(x)
        jac = np.empty((self.d, self.d))
        for i in range(self.d):
            for j in range(self.d):
                jac[i, j] = self._jac_funcs[i][j](*components, t)
        return jac
