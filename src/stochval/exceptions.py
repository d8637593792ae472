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
Exceptions raised by the validation engine.

Failures are scoped to the smallest unit that can be retried on its own:
one scenario at one ε. The driver catches the unit-scoped errors below,
records them and carries on with the other units.
"""

from typing import Any, Dict, Optional, Tuple


class StochvalError(Exception):
    """Base class for all package errors."""


class ConfigurationError(StochvalError, ValueError):
    """Invalid run configuration, raised before any simulation starts."""


class NumericalDivergenceError(StochvalError, FloatingPointError):
    """
    Non-finite state produced during fixed-step integration.

    Attributes
    ----------
    time : float
        Time at which the non-finite value appeared
    step : int
        Step index on the integration grid
    context : dict
        Scenario parameters (name, ε, ...) for the report
    """

    def __init__(
        self,
        message: str,
        time: float,
        step: int,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.base_message = message
        self.time = time
        self.step = step
        self.context = dict(context or {})
        details = ", ".join(f"{k}={v}" for k, v in self.context.items())
        if details:
            message = f"{message} ({details})"
        super().__init__(message)

    def with_context(self, **context) -> "NumericalDivergenceError":
        """Return a copy carrying additional scenario parameters."""
        merged = {**self.context, **context}
        return NumericalDivergenceError(self.base_message, self.time, self.step, merged)


class CacheInconsistencyError(StochvalError):
    """
    Persisted batch does not match the parameters it was requested with.

    Attributes
    ----------
    key : str
        Cache key of the offending entry
    expected_shape : tuple
        (2d, N) the caller asked for
    actual_shape : tuple
        Shape found in storage
    """

    def __init__(
        self,
        key: str,
        expected_shape: Tuple[int, ...],
        actual_shape: Tuple[int, ...],
        detail: str = "",
    ):
        self.key = key
        self.expected_shape = tuple(expected_shape)
        self.actual_shape = tuple(actual_shape)
        message = (
            f"Cached realizations for '{key}' have shape {self.actual_shape}, "
            f"expected {self.expected_shape}"
        )
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class CorruptCacheEntryError(CacheInconsistencyError):
    """
    Persisted entry exists but cannot be read back.

    The cache treats this as a miss and regenerates the batch, unlike the
    parent error, which signals a readable entry with the wrong contents.
    """

    def __init__(self, key: str, detail: str):
        self.key = key
        self.expected_shape = ()
        self.actual_shape = ()
        StochvalError.__init__(self, f"Cached realizations for '{key}' are unreadable: {detail}")


class RegressionDegeneracyError(StochvalError, ValueError):
    """Too few or non-finite log-domain points for a power-law fit."""
