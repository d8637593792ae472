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
Core Array Types

Basic aliases used throughout the package. Everything numerical is a NumPy
array; the aliases only document the expected shapes.

Shape Conventions
-----------------
- State vector: (d,)
- Batch of states: (d, N), one column per sample
- Augmented batch: (2d, N), original process on top, linearized below
- Trajectory on a grid: (n_points, d)
"""

from typing import Callable, Sequence, Union

import numpy as np

ArrayLike = Union[np.ndarray, Sequence[float], float]

StateVector = np.ndarray
"""State x ∈ ℝ^d, shape (d,) or a batch (d, N)."""

StateMatrix = np.ndarray
"""Square matrix acting on states, shape (d, d)."""

RealizationBatch = np.ndarray
"""
Terminal augmented states of N samples, shape (2d, N).

Rows 0..d-1 hold the original process y, rows d..2d-1 hold the
linearized process z driven by the same noise path.
"""

TimePoints = np.ndarray
"""Strictly increasing time grid, shape (n_points,)."""

DriftFunction = Callable[[np.ndarray, float], np.ndarray]
"""f(x, t) -> dx/dt, evaluated column-wise for batched x."""

JacobianFunction = Callable[[np.ndarray, float], np.ndarray]
"""∇u(x, t) -> (d, d) matrix at a single state."""
