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

"""Constant-coefficient linear field u(x) = A·x without symbolic overhead."""

import numpy as np

from stochval.systems.model import Model


class LinearSystem(Model):
    """
    Linear vector field u(x) = A·x in any dimension.

    Parameters
    ----------
    A : array_like
        Square system matrix (d, d)
    name : str
        Model name

    Examples
    --------
    >>> model = LinearSystem([[-1.0, 0.5], [0.0, -2.0]])
    >>> model.d
    2
    """

    def __init__(self, A, name: str = "LinearSystem", K: float = 1.0):
        A = np.atleast_2d(np.asarray(A, dtype=float))
        if A.shape[0] != A.shape[1]:
            raise ValueError(f"A must be square, got shape {A.shape}")
        self.A = A
        super().__init__(
            name=name,
            d=A.shape[0],
            drift=lambda x, t: self.A @ x,
            jacobian=lambda x, t: self.A,
            K=K,
        )
