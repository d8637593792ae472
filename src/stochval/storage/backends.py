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
Storage Backends for Realization Batches

Generic key → (array, metadata) stores. Loading an absent key is not an
error: ``load`` returns None, which the cache reads as "compute". An
entry that exists but cannot be read raises CorruptCacheEntryError, which
the cache also reads as "compute" and then overwrites.

- MemoryStore: process-local dictionary, used in tests
- NpzDirectoryStore: one ``.npz`` file per key in a directory
"""

import os
import re
import tempfile
import zipfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Tuple, Union

import numpy as np

from stochval.exceptions import CorruptCacheEntryError

Metadata = Dict[str, Any]

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.+\-\[\],=]")


class RealizationStore(ABC):
    """Abstract key-value store for realization batches."""

    @abstractmethod
    def load(self, key: str) -> Optional[Tuple[np.ndarray, Metadata]]:
        """Return (data, metadata) for key, or None if absent.

        Raises CorruptCacheEntryError if an entry exists but cannot be read.
        """

    @abstractmethod
    def save(self, key: str, data: np.ndarray, metadata: Optional[Metadata] = None):
        """Persist data under key, replacing any existing entry."""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove key; return True if something was removed."""

    @abstractmethod
    def keys(self) -> Iterator[str]:
        """Iterate over stored keys."""

    def __contains__(self, key: str) -> bool:
        return key in set(self.keys())


class MemoryStore(RealizationStore):
    """
    In-memory store.

    Arrays are copied on save and on load, so callers never share buffers
    with the store.

    Examples
    --------
    >>> store = MemoryStore()
    >>> store.save("a", np.ones((2, 3)))
    >>> store.load("a")[0].shape
    (2, 3)
    >>> store.load("missing") is None
    True
    """

    def __init__(self):
        self._data: Dict[str, Tuple[np.ndarray, Metadata]] = {}

    def load(self, key: str) -> Optional[Tuple[np.ndarray, Metadata]]:
        entry = self._data.get(key)
        if entry is None:
            return None
        data, metadata = entry
        return data.copy(), dict(metadata)

    def save(self, key: str, data: np.ndarray, metadata: Optional[Metadata] = None):
        self._data[key] = (np.array(data, copy=True), dict(metadata or {}))

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def keys(self) -> Iterator[str]:
        return iter(list(self._data))

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"MemoryStore(entries={len(self._data)})"


class NpzDirectoryStore(RealizationStore):
    """
    Durable store writing one NumPy ``.npz`` archive per key.

    The array is stored under ``"data"``; metadata entries are stored as
    ``"meta_<name>"`` arrays. Writes go to a temporary file in the same
    directory and are moved into place with ``os.replace``, so a reader
    sees either the previous complete file or the new one.

    Keys are mapped to file names by replacing characters outside
    [A-Za-z0-9_.+-[],=] with "_"; ``keys`` yields these file-safe names.

    Parameters
    ----------
    directory : str or Path
        Target directory, created on first save

    Examples
    --------
    >>> store = NpzDirectoryStore("data")
    >>> store.save("OU_[1.0]_0.1", batch, {"n_samples": 1000})
    >>> data, meta = store.load("OU_[1.0]_0.1")
    """

    suffix = ".npz"

    def __init__(self, directory: Union[str, Path] = "data"):
        self.directory = Path(directory)

    def path_for(self, key: str) -> Path:
        """File path of key; unsafe characters are replaced by '_'."""
        return self.directory / f"{_UNSAFE_CHARS.sub('_', key)}{self.suffix}"

    def load(self, key: str) -> Optional[Tuple[np.ndarray, Metadata]]:
        path = self.path_for(key)
        if not path.is_file():
            return None
        try:
            with np.load(path, allow_pickle=False) as archive:
                data = np.array(archive["data"])
                metadata = {
                    name[len("meta_"):]: _unwrap(archive[name])
                    for name in archive.files
                    if name.startswith("meta_")
                }
        except (OSError, EOFError, ValueError, KeyError, zipfile.BadZipFile) as err:
            raise CorruptCacheEntryError(key, f"{path}: {err}") from err
        return data, metadata

    def save(self, key: str, data: np.ndarray, metadata: Optional[Metadata] = None):
        self.directory.mkdir(parents=True, exist_ok=True)
        payload = {"data": np.asarray(data)}
        for name, value in (metadata or {}).items():
            payload[f"meta_{name}"] = np.asarray(value)

        fd, tmp_name = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as handle:
                np.savez(handle, **payload)
            os.replace(tmp_name, self.path_for(key))
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def delete(self, key: str) -> bool:
        path = self.path_for(key)
        if path.is_file():
            path.unlink()
            return True
        return False

    def keys(self) -> Iterator[str]:
        if not self.directory.is_dir():
            return iter(())
        return iter(sorted(p.stem for p in self.directory.glob(f"*{self.suffix}")))

    def __contains__(self, key: str) -> bool:
        return self.path_for(key).is_file()

    def __repr__(self) -> str:
        return f"NpzDirectoryStore(directory={str(self.directory)!r})"


def _unwrap(value: np.ndarray) -> Any:
    """Turn 0-d arrays back into Python scalars."""
    if value.ndim == 0:
        return value.item()
    return value
