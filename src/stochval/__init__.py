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
stochval: Monte Carlo Validation of Small-Noise Convergence

Checks, by simulation, how a randomly perturbed dynamical system deviates
from its deterministic limit as the noise intensity ε shrinks: empirical
convergence exponents of the linearization error and the empirical
stochastic sensitivity against its theoretical value.
"""

from . import analysis, numerical_integration, storage, systems, types, validation
from .analysis import deviation_covariance, estimate, fit_loglog, stochastic_sensitivity
from .exceptions import (
    CacheInconsistencyError,
    ConfigurationError,
    CorruptCacheEntryError,
    NumericalDivergenceError,
    RegressionDegeneracyError,
    StochvalError,
)
from .numerical_integration import (
    DeterministicTrajectory,
    EulerIntegrator,
    EulerMaruyamaIntegrator,
    JointDiffusion,
    JointDrift,
    integrate,
    simulate,
)
from .storage import MemoryStore, NpzDirectoryStore, RealizationCache
from .systems import (
    LinearSystem,
    LogisticGrowth,
    Model,
    ModelBase,
    OrnsteinUhlenbeck,
    RotatingShear,
    SymbolicModel,
    VanDerPolOscillator,
)
from .validation import ConvergenceValidator, ValidationConfig, convergence_validation

__version__ = "0.1.0"

__all__ = [
    # Submodules
    "analysis",
    "numerical_integration",
    "storage",
    "systems",
    "types",
    "validation",
    # Errors
    "CacheInconsistencyError",
    "ConfigurationError",
    "CorruptCacheEntryError",
    "NumericalDivergenceError",
    "RegressionDegeneracyError",
    "StochvalError",
    # Models
    "LinearSystem",
    "LogisticGrowth",
    "Model",
    "ModelBase",
    "OrnsteinUhlenbeck",
    "RotatingShear",
    "SymbolicModel",
    "VanDerPolOscillator",
    # Integration
    "DeterministicTrajectory",
    "EulerIntegrator",
    "EulerMaruyamaIntegrator",
    "JointDiffusion",
    "JointDrift",
    "integrate",
    "simulate",
    # Cache
    "MemoryStore",
    "NpzDirectoryStore",
    "RealizationCache",
    # Analysis
    "deviation_covariance",
    "estimate",
    "fit_loglog",
    "stochastic_sensitivity",
    # Driver
    "ConvergenceValidator",
    "ValidationConfig",
    "convergence_validation",
]
