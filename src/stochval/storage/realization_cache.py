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
Realization Cache - Reload-or-Regenerate for Realization Batches

Maps a (scenario, initial condition, ε) key to a previously simulated
batch. If an entry exists and reloading is enabled, it is returned
verbatim; otherwise the supplied compute function runs and, if enabled,
its result is persisted.

Keys
----
``make_key`` produces ``"{scenario}_{ε}_{hash}"``, where the hash covers
the initial condition and every simulation parameter (N, d, t0, T, dt).
The same parameters are stored next to the array and compared on load,
so an entry generated under different settings is never returned
silently.

Concurrency
-----------
Entries live indefinitely; there is no eviction. Access to a single key
is serialized with a per-key lock, so a read never observes a write in
progress. Distinct keys proceed independently. Locks are kept for the
lifetime of the cache, one per key ever requested, which is bounded by
the number of (scenario, ε) units of a run.

An entry that exists but cannot be read (truncated or foreign file) is
logged, regenerated and overwritten. A readable entry whose shape or
parameters disagree with the request is an error.

Examples
--------
>>> cache = RealizationCache(MemoryStore())
>>> key = RealizationCache.make_key("OU_[1.0]", [1.0], 0.1, n_samples=100, d=1, dt=1e-3)
>>> batch = cache.get_or_compute(key, lambda: simulate_batch(), expected_shape=(2, 100))
>>> again = cache.get_or_compute(key, lambda: simulate_batch())  # reloaded, not recomputed
"""

import hashlib
import threading
from typing import Any, Callable, Dict, Optional, Tuple

import numpy as np
from loguru import logger

from stochval.exceptions import CacheInconsistencyError, CorruptCacheEntryError
from stochval.storage.backends import Metadata, MemoryStore, RealizationStore
from stochval.types import ArrayLike, RealizationBatch


class RealizationCache:
    """
    Reload-or-regenerate cache over an injectable storage backend.

    Parameters
    ----------
    store : Optional[RealizationStore]
        Storage backend (MemoryStore if None)
    attempt_reload : bool
        Return stored entries when present
    save_on_generation : bool
        Persist freshly computed batches
    """

    def __init__(
        self,
        store: Optional[RealizationStore] = None,
        attempt_reload: bool = True,
        save_on_generation: bool = True,
    ):
        self.store = store if store is not None else MemoryStore()
        self.attempt_reload = attempt_reload
        self.save_on_generation = save_on_generation

        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

        self._stats = {
            "hits": 0,
            "misses": 0,
            "writes": 0,
        }

    # ========================================================================
    # Key Generation
    # ========================================================================

    @staticmethod
    def make_key(scenario: str, x0: ArrayLike, epsilon: float, **params: Any) -> str:
        """
        Deterministic cache key for one (scenario, x0, ε) unit.

        Parameters
        ----------
        scenario : str
            Scenario name
        x0 : array_like
            Initial condition
        epsilon : float
            Noise intensity
        **params
            Simulation parameters (n_samples, d, t0, T, dt, ...)

        Returns
        -------
        str
            "{scenario}_{epsilon}_{hash8}"
        """
        x0_np = np.atleast_1d(np.asarray(x0, dtype=float))
        parts = [x0_np.tobytes()]
        for name in sorted(params):
            parts.append(f"{name}={params[name]!r}".encode())
        digest = hashlib.md5(b"|".join(parts)).hexdigest()[:8]
        return f"{scenario}_{epsilon!r}_{digest}"

    # ========================================================================
    # Main API
    # ========================================================================

    def get_or_compute(
        self,
        key: str,
        compute_fn: Callable[[], RealizationBatch],
        expected_shape: Optional[Tuple[int, int]] = None,
        metadata: Optional[Metadata] = None,
    ) -> RealizationBatch:
        """
        Load the batch stored under key, or compute and persist it.

        Parameters
        ----------
        key : str
            Cache key (see ``make_key``)
        compute_fn : Callable[[], np.ndarray]
            Produces the batch when no usable entry exists
        expected_shape : Optional[tuple]
            (2d, N); checked on load and on compute
        metadata : Optional[dict]
            Simulation parameters stored with the batch and compared
            against a stored entry on load

        Returns
        -------
        np.ndarray
            The realization batch

        Raises
        ------
        CacheInconsistencyError
            If a readable stored entry has the wrong shape or mismatching
            parameters. Unreadable entries are regenerated instead.
        ValueError
            If compute_fn returns a batch of the wrong shape
        """
        with self._lock_for(key):
            if self.attempt_reload:
                entry = self._load(key)
                if entry is not None:
                    data, stored_meta = entry
                    self._validate_loaded(key, data, stored_meta, expected_shape, metadata)
                    self._count("hits")
                    logger.debug(f"Reloaded realizations for '{key}' from {self.store!r}")
                    return data

            self._count("misses")
            data = np.asarray(compute_fn())
            if expected_shape is not None and data.shape != tuple(expected_shape):
                raise ValueError(
                    f"compute_fn returned shape {data.shape} for '{key}', "
                    f"expected {tuple(expected_shape)}"
                )

            if self.save_on_generation:
                self.store.save(key, data, metadata)
                self._count("writes")
                logger.debug(f"Saved realizations for '{key}' to {self.store!r}")

            return data

    def is_cached(self, key: str) -> bool:
        """Whether an entry exists for key."""
        with self._lock_for(key):
            return key in self.store

    def invalidate(self, key: str) -> bool:
        """Remove the stored entry for key; True if one existed."""
        with self._lock_for(key):
            return self.store.delete(key)

    def get_stats(self) -> Dict[str, int]:
        with self._locks_guard:
            return dict(self._stats)

    def reset_stats(self):
        with self._locks_guard:
            for name in self._stats:
                self._stats[name] = 0

    # ========================================================================
    # Internals
    # ========================================================================

    def _lock_for(self, key: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def _count(self, name: str):
        with self._locks_guard:
            self._stats[name] += 1

    def _load(self, key: str) -> Optional[Tuple[np.ndarray, Metadata]]:
        try:
            return self.store.load(key)
        except CorruptCacheEntryError as err:
            logger.warning(f"Regenerating unreadable cache entry: {err}")
            return None

    @staticmethod
    def _validate_loaded(
        key: str,
        data: np.ndarray,
        stored_meta: Metadata,
        expected_shape: Optional[Tuple[int, int]],
        metadata: Optional[Metadata],
    ):
        if expected_shape is not None and data.shape != tuple(expected_shape):
            raise CacheInconsistencyError(key, expected_shape, data.shape)

        mismatched = [
            name
            for name, value in (metadata or {}).items()
            if name in stored_meta and not np.array_equal(np.asarray(stored_meta[name]), np.asarray(value))
        ]
        if mismatched:
            detail = ", ".join(
                f"{name}: stored {stored_meta[name]!r} vs requested {metadata[name]!r}"
                for name in mismatched
            )
            raise CacheInconsistencyError(
                key, expected_shape or data.shape, data.shape, detail=f"parameter mismatch ({detail})"
            )

    def __repr__(self) -> str:
        return (
            f"RealizationCache(store={self.store!r}, attempt_reload={self.attempt_reload}, "
            f"save_on_generation={self.save_on_generation})"
        )
