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
Type definitions for the stochastic convergence validation engine.

1. Core Types
   - ArrayLike, StateVector, StateMatrix, RealizationBatch, TimePoints
   - DriftFunction, JacobianFunction

2. Validation Results
   - MomentEstimate, PowerLawFit, SampleSet, ScenarioResult
   - ConvergenceRecord, SensitivityPair
"""

from .core import (
    ArrayLike,
    DriftFunction,
    JacobianFunction,
    RealizationBatch,
    StateMatrix,
    StateVector,
    TimePoints,
)
from .validation_results import (
    ConvergenceRecord,
    MomentEstimate,
    PowerLawFit,
    SampleSet,
    ScenarioResult,
    SensitivityPair,
)

__all__ = [
    # Core
    "ArrayLike",
    "DriftFunction",
    "JacobianFunction",
    "RealizationBatch",
    "StateMatrix",
    "StateVector",
    "TimePoints",
    # Results
    "ConvergenceRecord",
    "MomentEstimate",
    "PowerLawFit",
    "SampleSet",
    "ScenarioResult",
    "SensitivityPair",
]
