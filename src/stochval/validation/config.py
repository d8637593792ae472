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
Validation Configuration

Everything a validation run can be tuned with, checked once up front so
that misconfiguration fails before any simulation work begins.
"""

import json
import numbers
import warnings
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, Union

import numpy as np

from stochval.exceptions import ConfigurationError

DEFAULT_EPSILONS = (0.5, 0.1, 0.05, 0.01, 0.005, 0.001, 0.0005, 0.0001)
DEFAULT_RS = (1, 2, 3, 4)


class ValidationConfig:
    """
    Configuration surface of a convergence validation run.

    Parameters
    ----------
    n_samples : int
        Sample paths per ε (N >= 2)
    t0, T : float
        Time interval, T > t0
    dt : float
        Fixed step shared by all integrators. Must be small enough to
        resolve the smallest ε.
    epsilons : Sequence[float]
        Noise intensities, strictly positive, ideally decreasing
    rs : Sequence[float]
        Moment exponents, non-empty and positive
    p : float
        Norm order for the column-wise norms (>= 1)
    attempt_reload : bool
        Reuse stored realizations when present
    save_on_generation : bool
        Persist freshly simulated realizations
    data_dir : str
        Directory of the default on-disk store
    seed : Optional[int]
        Root seed; one independent stream is spawned per (scenario, ε)
    keep_samples : bool
        Keep raw per-ε sample arrays in the result
    intercept : bool
        Fit power laws with an intercept
    log_base : float
        Logarithm base of the reported fits

    Examples
    --------
    >>> config = ValidationConfig(n_samples=1000, T=1.0, dt=1e-4, epsilons=[0.1, 0.01])
    >>> config.validate()
    >>> ValidationConfig.from_dict({"n_samples": 500, "T": 2.0})
    """

    def __init__(
        self,
        n_samples: int = 10000,
        t0: float = 0.0,
        T: float = 1.0,
        dt: float = 1e-6,
        epsilons: Sequence[float] = DEFAULT_EPSILONS,
        rs: Sequence[float] = DEFAULT_RS,
        p: float = 2,
        attempt_reload: bool = True,
        save_on_generation: bool = True,
        data_dir: Union[str, Path] = "data",
        seed: Optional[int] = None,
        keep_samples: bool = True,
        intercept: bool = True,
        log_base: float = 10.0,
    ):
        self.n_samples = n_samples
        self.t0 = t0
        self.T = T
        self.dt = dt
        self.epsilons = list(epsilons)
        self.rs = list(rs)
        self.p = p
        self.attempt_reload = attempt_reload
        self.save_on_generation = save_on_generation
        self.data_dir = data_dir
        self.seed = seed
        self.keep_samples = keep_samples
        self.intercept = intercept
        self.log_base = log_base

    # ========================================================================
    # Construction
    # ========================================================================

    @classmethod
    def field_names(cls) -> list:
        return [
            "n_samples", "t0", "T", "dt", "epsilons", "rs", "p", "attempt_reload",
            "save_on_generation", "data_dir", "seed", "keep_samples", "intercept", "log_base",
        ]

    @classmethod
    def from_dict(cls, values: Mapping[str, Any]) -> "ValidationConfig":
        """
        Build a config from a plain mapping.

        Raises
        ------
        ConfigurationError
            If the mapping has keys that are not configuration fields
        """
        unknown = sorted(set(values) - set(cls.field_names()))
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {unknown}")
        return cls(**dict(values))

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> "ValidationConfig":
        """Load a config from a JSON file holding a single object."""
        with open(path, "r", encoding="utf-8") as handle:
            values = json.load(handle)
        if not isinstance(values, dict):
            raise ConfigurationError(f"{path} must contain a JSON object")
        return cls.from_dict(values)

    def to_dict(self) -> Dict[str, Any]:
        values = {name: getattr(self, name) for name in self.field_names()}
        values["data_dir"] = str(values["data_dir"])
        return values

    # ========================================================================
    # Validation
    # ========================================================================

    def validate(self) -> None:
        """
        Reject unusable configurations.

        Raises
        ------
        ConfigurationError
            Empty or non-positive ε list, N < 2, empty or non-positive
            exponent list, dt <= 0, T <= t0, p < 1
        """
        if not self.epsilons:
            raise ConfigurationError("epsilons must contain at least one value")
        eps = np.asarray(self.epsilons, dtype=float)
        if not np.all(np.isfinite(eps)) or np.any(eps <= 0):
            raise ConfigurationError(f"epsilons must be finite and strictly positive, got {self.epsilons}")
        if len(set(eps.tolist())) != eps.size:
            raise ConfigurationError(f"epsilons must be distinct, got {self.epsilons}")
        if eps.size > 1 and np.any(np.diff(eps) > 0):
            warnings.warn(
                "epsilons are not in decreasing order; results are reported in the given order",
                UserWarning,
                stacklevel=2,
            )

        if not isinstance(self.n_samples, numbers.Integral) or isinstance(self.n_samples, bool):
            raise ConfigurationError(f"n_samples must be an integer, got {self.n_samples!r}")
        if self.n_samples < 2:
            raise ConfigurationError(
                f"n_samples must be at least 2 for a sample covariance, got {self.n_samples}"
            )

        if not self.rs:
            raise ConfigurationError("rs must contain at least one exponent")
        rs = np.asarray(self.rs, dtype=float)
        if not np.all(np.isfinite(rs)) or np.any(rs <= 0):
            raise ConfigurationError(f"exponents must be finite and positive, got {self.rs}")

        if not (np.isfinite(self.dt) and self.dt > 0):
            raise ConfigurationError(f"dt must be positive, got {self.dt}")
        if not (np.isfinite(self.t0) and np.isfinite(self.T)) or self.T <= self.t0:
            raise ConfigurationError(f"T must exceed t0, got t0={self.t0}, T={self.T}")
        if not self.p >= 1:
            raise ConfigurationError(f"Norm order p must be >= 1, got {self.p}")
        if not self.log_base > 0 or self.log_base == 1:
            raise ConfigurationError(f"log_base must be positive and not 1, got {self.log_base}")

    def __repr__(self) -> str:
        return (
            f"ValidationConfig(n_samples={self.n_samples}, t0={self.t0}, T={self.T}, "
            f"dt={self.dt}, epsilons={self.epsilons}, rs={self.rs}, p={self.p})"
        )
