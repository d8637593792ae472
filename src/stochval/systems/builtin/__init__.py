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
Builtin Models

Linear:
    - OrnsteinUhlenbeck: u(x) = -α·x (exact linearization)
    - LinearSystem: u(x) = A·x, any dimension

Nonlinear:
    - LogisticGrowth: u(x) = ρ·x·(1 - x/κ)
    - VanDerPolOscillator: 2-D limit cycle
    - RotatingShear: 2-D, explicitly time-dependent
"""

from .linear import LinearSystem
from .nonlinear import LogisticGrowth, RotatingShear, VanDerPolOscillator
from .ornstein_uhlenbeck import OrnsteinUhlenbeck

# Alias
OU = OrnsteinUhlenbeck

__all__ = [
    "LinearSystem",
    "LogisticGrowth",
    "OrnsteinUhlenbeck",
    "OU",
    "RotatingShear",
    "VanDerPolOscillator",
]
