# lru_cache.py -- Simple LRU cache for gitcenter
# Copyright (C) 2026 The gitcenter authors
#
# SPDX-License-Identifier: Apache-2.0 OR GPL-2.0-or-later
# gitcenter is dual-licensed under the Apache License, Version 2.0 and the GNU
# General Public License as published by the Free Software Foundation; version 2.0
# or (at your option) any later version. You can redistribute it and/or
# modify it under the terms of either of these two licenses.
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# You should have received a copy of the licenses; if not, see
# <http://www.gnu.org/licenses/> for a copy of the GNU General Public License
# and <http://www.apache.org/licenses/LICENSE-2.0> for a copy of the Apache
# License, Version 2.0.
#

"""A simple least-recently-used (LRU) cache."""

from collections.abc import Iterator
from typing import Callable, Generic, Optional, TypeVar

K = TypeVar("K")
V = TypeVar("V")

_null_key = object()


class _LRUNode(Generic[K, V]):
    """This maintains the linked-list which is the lru internals."""

    __slots__ = ("cleanup", "key", "next_key", "prev", "value")

    prev: Optional["_LRUNode[K, V]"]
    next_key: object

    def __init__(
        self, key: K, value: V, cleanup: Optional[Callable[[K, V], None]] = None
    ) -> None:
        self.prev = None
        self.next_key = _null_key
        self.key = key
        self.value = value
        self.cleanup = cleanup

    def __repr__(self) -> str:
        if self.prev is None:
            prev_key = None
        else:
            prev_key = self.prev.key
        return f"{self.__class__.__name__}({self.key!r} n:{self.next_key!r} p:{prev_key!r})"

    def run_cleanup(self) -> None:
        if self.cleanup is not None:
            self.cleanup(self.key, self.value)
        self.cleanup = None
        del self.value


class LRUCache(Generic[K, V]):
    """A class which manages a cache of entries, removing unused ones."""

    _least_recently_used: Optional[_LRUNode[K, V]]
    _most_recently_used: Optional[_LRUNode[K, V]]

    def __init__(
        self, max_cache: int = 100, after_cleanup_count: Optional[int] = None
    ) -> None:
        """Initialize an LRUCache.

        Args:
          max_cache: Maximum number of entries to keep.
          after_cleanup_count: Number of entries left after a cleanup pass;
            defaults to 80% of max_cache.
        """
        self._cache: dict[K, _LRUNode[K, V]] = {}
        # The "HEAD" of the lru linked list
        self._most_recently_used = None
        # The "TAIL" of the lru linked list
        self._least_recently_used = None
        self._update_max_cache(max_cache, after_cleanup_count)

    def __contains__(self, key: K) -> bool:
        return key in self._cache

    def __getitem__(self, key: K) -> V:
        cache = self._cache
        node = cache[key]
        # Inlined from _record_access to decrease the overhead of __getitem__
        mru = self._most_recently_used
        if node is mru:
            return node.value
        node_prev = node.prev
        next_key = node.next_key
        if next_key is _null_key:
            self._least_recently_used = node_prev
        else:
            node_next = cache[next_key]  # type: ignore[index]
            node_next.prev = node_prev
        assert node_prev is not None
        node_prev.next_key = next_key
        assert mru is not None
        node.next_key = mru.key
        mru.prev = node
        self._most_recently_used = node
        node.prev = None
        return node.value

    def __len__(self) -> int:
        return len(self._cache)

    def add(
        self, key: K, value: V, cleanup: Optional[Callable[[K, V], None]] = None
    ) -> None:
        """Add a new value to the cache.

        Also, if the entry is ever removed from the cache, call
        cleanup(key, value).

        Args:
          key: The key to store it under
          value: The object to store
          cleanup: None or a function taking (key, value) to indicate
                        'value' should be cleaned up.
        """
        if key is _null_key:
            raise ValueError("cannot use _null_key as a key")
        if key in self._cache:
            node = self._cache[key]
            node.run_cleanup()
            node.value = value
            node.cleanup = cleanup
        else:
            node = _LRUNode(key, value, cleanup=cleanup)
            self._cache[key] = node
        self._record_access(node)

        if len(self._cache) > self._max_cache:
            self.cleanup()

    def cache_size(self) -> int:
        """Get the number of entries we will cache."""
        return self._max_cache

    def get(self, key: K, default: Optional[V] = None) -> Optional[V]:
        """Return the value stored under key, or default when absent."""
        node = self._cache.get(key, None)
        if node is None:
            return default
        self._record_access(node)
        return node.value

    def keys(self) -> Iterator[K]:
        """Get the list of keys currently cached.

        Note that values returned here may not be available by the time you
        request them later. This is simply meant as a peak into the current
        state.
        """
        return iter(list(self._cache.keys()))

    def cleanup(self) -> None:
        """Clear the cache until it shrinks to the requested size.

        This does not completely wipe the cache, just makes sure it is under
        the after_cleanup_count.
        """
        while len(self._cache) > self._after_cleanup_count:
            self._remove_lru()

    def __setitem__(self, key: K, value: V) -> None:
        """Add a value to the cache, there will be no cleanup function."""
        self.add(key, value, cleanup=None)

    def _record_access(self, node: _LRUNode[K, V]) -> None:
        """Record that key was accessed."""
        if self._most_recently_used is None:
            self._most_recently_used = node
            self._least_recently_used = node
            return
        elif node is self._most_recently_used:
            return
        if node is self._least_recently_used:
            self._least_recently_used = node.prev
        if node.prev is not None:
            node.prev.next_key = node.next_key
        if node.next_key is not _null_key:
            node_next = self._cache[node.next_key]  # type: ignore[index]
            node_next.prev = node.prev
        node.next_key = self._most_recently_used.key
        self._most_recently_used.prev = node
        self._most_recently_used = node
        node.prev = None

    def _remove_node(self, node: _LRUNode[K, V]) -> None:
        if node is self._least_recently_used:
            self._least_recently_used = node.prev
        self._cache.pop(node.key)
        if self._least_recently_used is None:
            self._most_recently_used = None
        node.run_cleanup()
        if node.prev is not None:
            node.prev.next_key = node.next_key
        if node.next_key is not _null_key:
            node_next = self._cache[node.next_key]  # type: ignore[index]
            node_next.prev = node.prev
        node.prev = None
        node.next_key = _null_key

    def _remove_lru(self) -> None:
        """Remove one entry from the lru, and handle consequences."""
        assert self._least_recently_used is not None
        self._remove_node(self._least_recently_used)

    def clear(self) -> None:
        """Clear out all of the cache."""
        while self._cache:
            self._remove_lru()

    def resize(self, max_cache: int, after_cleanup_count: Optional[int] = None) -> None:
        """Change the number of entries that will be cached."""
        self._update_max_cache(max_cache, after_cleanup_count=after_cleanup_count)

    def _update_max_cache(
        self, max_cache: int, after_cleanup_count: Optional[int] = None
    ) -> None:
        if max_cache < 1:
            raise ValueError(f"max_cache must be positive, got {max_cache}")
        self._max_cache = max_cache
        if after_cleanup_count is None:
            self._after_cleanup_count = max(1, self._max_cache * 8 // 10)
        else:
            self._after_cleanup_count = min(after_cleanup_count, self._max_cache)
        self.cleanup()
