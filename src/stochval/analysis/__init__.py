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

"""Moment estimation, theoretical covariance and power-law regression."""

from .covariance import deviation_covariance, lyapunov_covariance, stochastic_sensitivity
from .moments import (
    estimate,
    largest_eigenvalue,
    pnorm,
    sample_mean_covariance,
    scaled_deviation,
    second_moment,
    split_batch,
)
from .regression import fit_loglog

__all__ = [
    "deviation_covariance",
    "estimate",
    "fit_loglog",
    "largest_eigenvalue",
    "lyapunov_covariance",
    "pnorm",
    "sample_mean_covariance",
    "scaled_deviation",
    "second_moment",
    "split_batch",
    "stochastic_sensitivity",
]
