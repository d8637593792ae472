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
Stochastic Integration

Fixed-step explicit schemes for the joint (original ⊕ linearized) system.

Examples
--------
>>> from stochval.numerical_integration.stochastic import (
...     EulerMaruyamaIntegrator, JointDiffusion, JointDrift,
... )
>>> integrator = EulerMaruyamaIntegrator(
...     JointDrift(model, trajectory), JointDiffusion(eps, model.d),
...     nx=2 * model.d, nw=model.d, dt=1e-4,
... )
>>> batch = integrator.integrate(np.concatenate([x0, np.zeros(model.d)]), 0.0, 1.0, 1000)
"""

from .euler_maruyama import EulerMaruyamaIntegrator, simulate
from .joint_system import JointDiffusion, JointDrift
from .sde_integrator_base import (
    SDEIntegratorBase,
    SeedLike,
    keyed_generator,
    make_generator,
    spawn_generators,
)

__all__ = [
    "EulerMaruyamaIntegrator",
    "JointDiffusion",
    "JointDrift",
    "SDEIntegratorBase",
    "SeedLike",
    "keyed_generator",
    "make_generator",
    "simulate",
    "spawn_generators",
]
