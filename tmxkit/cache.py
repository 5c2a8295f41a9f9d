"""
Copyright (C) 2012-2023, Leif Theden <leif.theden@gmail.com>

This file is part of tmxkit.

tmxkit is free software: you can redistribute it and/or modify
it under the terms of the GNU Lesser General Public License as
published by the Free Software Foundation, either version 3 of the
License, or (at your option) any later version.

tmxkit is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
GNU Lesser General Public License for more details.

You should have received a copy of the GNU Lesser General Public
License along with tmxkit.  If not, see <https://www.gnu.org/licenses/>.
"""
from __future__ import annotations

import logging
import os
import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import TYPE_CHECKING, Callable, Dict, Optional, Union

if TYPE_CHECKING:
    from .tileset import Tileset

logger = logging.getLogger(__name__)

ResourcePath = Union[str, "os.PathLike[str]"]


class ResourceCache(ABC):
    """Stores shared tilesets by the path they were loaded from.

    A cache can be passed to any number of map loads; an external tileset
    is parsed once per cache and shared by every map that references it.

    """

    @abstractmethod
    def get_tileset(self, path: ResourcePath) -> Optional[Tileset]:
        """Return the tileset loaded from `path`, or None."""

    @abstractmethod
    def get_or_try_insert_tileset_with(
        self, path: ResourcePath, producer: Callable[[], Tileset]
    ) -> Tileset:
        """Return the tileset for `path`, calling `producer` to load it if missing.

        `producer` is called at most once per path.  If it raises, nothing is
        stored and the exception propagates.

        """


class DefaultResourceCache(ResourceCache):
    """Dictionary backed cache, safe to share between threads.

    Loads of the same new path are serialized with a per-path lock, so a
    second thread waits for the first load instead of repeating it.  A
    path's lock is dropped as soon as no thread holds or waits for it.

    """

    def __init__(self) -> None:
        self.tilesets: Dict[str, Tileset] = dict()
        self._locks = defaultdict(threading.Lock)
        self._lock_users = defaultdict(int)
        self._locks_guard = threading.Lock()

    def __len__(self) -> int:
        return len(self.tilesets)

    def __contains__(self, path: ResourcePath) -> bool:
        return os.fspath(path) in self.tilesets

    def get_tileset(self, path: ResourcePath) -> Optional[Tileset]:
        return self.tilesets.get(os.fspath(path))

    def get_or_try_insert_tileset_with(
        self, path: ResourcePath, producer: Callable[[], Tileset]
    ) -> Tileset:
        key = os.fspath(path)
        tileset = self.tilesets.get(key)
        if tileset is not None:
            logger.debug("tileset cache hit: %s", key)
            return tileset

        with self._locks_guard:
            lock = self._locks[key]
            self._lock_users[key] += 1

        try:
            with lock:
                tileset = self.tilesets.get(key)
                if tileset is None:
                    logger.debug("tileset cache miss: %s", key)
                    tileset = producer()
                    self.tilesets[key] = tileset
                return tileset
        finally:
            # a lock lives only while some thread holds or waits for it
            with self._locks_guard:
                self._lock_users[key] -= 1
                if not self._lock_users[key]:
                    del self._lock_users[key]
                    del self._locks[key]
