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

"""Fixed-step deterministic and stochastic integrators."""

from .deterministic import DeterministicTrajectory, EulerIntegrator, integrate
from .stochastic import (
    EulerMaruyamaIntegrator,
    JointDiffusion,
    JointDrift,
    SDEIntegratorBase,
    keyed_generator,
    make_generator,
    simulate,
    spawn_generators,
)
from .time_grid import fixed_step_grid, validate_time_span

__all__ = [
    "DeterministicTrajectory",
    "EulerIntegrator",
    "EulerMaruyamaIntegrator",
    "JointDiffusion",
    "JointDrift",
    "SDEIntegratorBase",
    "fixed_step_grid",
    "integrate",
    "keyed_generator",
    "make_generator",
    "simulate",
    "spawn_generators",
    "validate_time_span",
]
