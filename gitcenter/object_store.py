# object_store.py -- Object store for git objects
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

"""Git object store interfaces and implementation."""

import stat
import zlib
from collections.abc import AsyncIterator, Iterable
from typing import NamedTuple, Optional, Union

from .backend import StorageBackend
from .config import ConfigDict
from .errors import (
    NotBlobError,
    NotCommitError,
    NotFound,
    NotTagError,
    NotTreeError,
    ObjectFormatException,
    ObjectMissing,
    PathNotFound,
    WrongObjectException,
)
from .log_utils import getLogger
from .lru_cache import LRUCache
from .objects import (
    KIND_SUBMODULE,
    Blob,
    Commit,
    ObjectID,
    ShaFile,
    Tag,
    Tree,
    TreeEntry,
    hex_to_filename,
    mode_kind,
    parse_object_envelope,
    valid_hexsha,
)
from .pack import PackStore

logger = getLogger(__name__)

DEFAULT_CACHE_SIZE = 1000

OBJECTDIR = "objects"


class BaseObjectStore:
    """Object store interface.

    Every method that may touch storage is a coroutine.
    """

    async def get_raw(self, sha: ObjectID) -> tuple[bytes, bytes]:
        """Obtain the raw payload of an object.

        Args:
          sha: sha for the object.
        Returns: tuple with type name and object payload.
        """
        raise NotImplementedError(self.get_raw)

    async def read(self, sha: ObjectID) -> ShaFile:
        """Obtain an object by SHA1."""
        type_name, payload = await self.get_raw(sha)
        return ShaFile.from_raw_string(type_name, payload)

    async def contains(self, sha: ObjectID) -> bool:
        """Check if a particular object is present by SHA1."""
        raise NotImplementedError(self.contains)

    async def add_object(self, obj: ShaFile) -> ObjectID:
        """Add a single object to this object store.

        Returns: id of the object
        """
        raise NotImplementedError(self.add_object)

    async def add_objects(self, objects: Iterable[ShaFile]) -> list[ObjectID]:
        """Add a set of objects to this object store."""
        return [await self.add_object(obj) for obj in objects]

    async def write(self, type_name: bytes, payload: bytes) -> ObjectID:
        """Encode and store an object given its type name and payload.

        Returns: id of the stored object
        """
        return await self.add_object(ShaFile.from_raw_string(type_name, payload))

    async def _read_typed(
        self, sha: ObjectID, cls: type[ShaFile], error: type[WrongObjectException]
    ) -> ShaFile:
        obj = await self.read(sha)
        if not isinstance(obj, cls):
            raise error(sha)
        return obj

    async def read_commit(self, sha: ObjectID) -> Commit:
        """Read an object that must be a commit.

        Raises:
          NotCommitError: if the object is of another type
        """
        obj = await self._read_typed(sha, Commit, NotCommitError)
        assert isinstance(obj, Commit)
        return obj

    async def read_tree(self, sha: ObjectID) -> Tree:
        """Read an object that must be a tree.

        Raises:
          NotTreeError: if the object is of another type
        """
        obj = await self._read_typed(sha, Tree, NotTreeError)
        assert isinstance(obj, Tree)
        return obj

    async def read_blob(self, sha: ObjectID) -> Blob:
        """Read an object that must be a blob.

        Raises:
          NotBlobError: if the object is of another type
        """
        obj = await self._read_typed(sha, Blob, NotBlobError)
        assert isinstance(obj, Blob)
        return obj

    async def read_tag(self, sha: ObjectID) -> Tag:
        """Read an object that must be a tag.

        Raises:
          NotTagError: if the object is of another type
        """
        obj = await self._read_typed(sha, Tag, NotTagError)
        assert isinstance(obj, Tag)
        return obj

    async def peel_sha(self, sha: ObjectID) -> tuple[ShaFile, ShaFile]:
        """Peel all tags from a SHA.

        Returns: tuple of the object named by sha and the object found after
            following all tags (the same object if sha is not a tag).
        """
        return await peel_sha(self, sha)

    async def lookup_path(
        self, root_sha: ObjectID, path: Union[bytes, str]
    ) -> "TreeLookupResult":
        """Look up a path below a tree; see tree_lookup_path."""
        return await tree_lookup_path(self, root_sha, path)

    async def iter_tree_contents(
        self, tree_id: Optional[ObjectID], include_trees: bool = False
    ) -> AsyncIterator[TreeEntry]:
        """Iterate the contents of a tree and all subtrees."""
        async for entry in iter_tree_contents(self, tree_id, include_trees=include_trees):
            yield entry


class MemoryObjectStore(BaseObjectStore):
    """Object store that keeps all objects in memory."""

    def __init__(self) -> None:
        self._data: dict[ObjectID, ShaFile] = {}

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self):  # type: ignore[no-untyped-def]
        return iter(list(self._data))

    async def contains(self, sha: ObjectID) -> bool:
        return sha in self._data

    async def get_raw(self, sha: ObjectID) -> tuple[bytes, bytes]:
        obj = await self.read(sha)
        return obj.type_name, obj.as_raw_string()

    async def read(self, sha: ObjectID) -> ShaFile:
        try:
            return self._data[sha]
        except KeyError as exc:
            raise ObjectMissing(sha) from exc

    async def add_object(self, obj: ShaFile) -> ObjectID:
        sha = obj.id
        if sha not in self._data:
            self._data[sha] = obj.copy()
        return sha


class LooseObjectStore(BaseObjectStore):
    """Object store keeping loose objects in a storage backend.

    Each object lives at ``objects/<2 hex>/<38 hex>`` as the zlib-compressed
    ``"<type> <length>\\0<payload>"`` envelope. Decoded objects are kept in a
    bounded LRU cache owned by the store; since objects are immutable, cached
    entries never go stale. Objects returned by read() are shared with the
    cache and must be treated as read-only.
    """

    def __init__(
        self,
        backend: StorageBackend,
        cache_size: int = DEFAULT_CACHE_SIZE,
        compression_level: int = -1,
        packs: Optional[PackStore] = None,
        path: str = OBJECTDIR,
    ) -> None:
        """Open an object store.

        Args:
          backend: Storage to read objects from and write them to
          cache_size: Maximum number of decoded objects kept in memory
          compression_level: zlib compression level for new loose objects
          packs: Optional lookup for objects that are not stored loose
          path: Directory of the objects, relative to the backend root
        """
        self.backend = backend
        self.path = path
        self.compression_level = compression_level
        self.packs = packs
        self._cache: LRUCache[ObjectID, ShaFile] = LRUCache(cache_size)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}({self.backend!r})>"

    @classmethod
    def from_config(
        cls,
        backend: StorageBackend,
        config: ConfigDict,
        packs: Optional[PackStore] = None,
    ) -> "LooseObjectStore":
        """Create a store using repository configuration.

        Honours ``core.loosecompression`` (falling back to
        ``core.compression``) and ``gitcenter.objectcachesize``.
        """
        try:
            compression_level = config.get_int((b"core",), b"loosecompression")
        except KeyError:
            try:
                compression_level = config.get_int((b"core",), b"compression")
            except KeyError:
                compression_level = -1
        try:
            cache_size = config.get_int((b"gitcenter",), b"objectcachesize")
        except KeyError:
            cache_size = DEFAULT_CACHE_SIZE
        return cls(
            backend,
            cache_size=cache_size,
            compression_level=compression_level,
            packs=packs,
        )

    def _loose_path(self, sha: ObjectID) -> str:
        if not valid_hexsha(sha):
            raise ValueError(f"Invalid object id {sha!r}")
        return hex_to_filename(self.path, sha)

    async def _get_loose_object(self, sha: ObjectID) -> Optional[tuple[bytes, bytes]]:
        try:
            compressed = await self.backend.read_file(self._loose_path(sha))
        except NotFound:
            return None
        try:
            data = zlib.decompress(compressed)
        except zlib.error as exc:
            raise ObjectFormatException(
                f"Corrupt loose object {sha.decode('ascii')}: {exc}"
            ) from exc
        return parse_object_envelope(data)

    async def get_raw(self, sha: ObjectID) -> tuple[bytes, bytes]:
        """Obtain the raw payload of an object.

        Loose objects are tried first, then the packed lookup if one is
        configured.

        Raises:
          ObjectMissing: if the object is neither loose nor packed
          ObjectFormatException: if the stored data is corrupt
        """
        if not valid_hexsha(sha):
            raise ObjectMissing(sha)
        ret = await self._get_loose_object(sha)
        if ret is not None:
            return ret
        if self.packs is not None:
            return await self.packs.get_raw(sha)
        raise ObjectMissing(sha)

    async def read(self, sha: ObjectID) -> ShaFile:
        """Obtain an object by SHA1, going through the cache."""
        obj = self._cache.get(sha)
        if obj is not None:
            return obj
        logger.debug("cache miss for %s", sha.decode("ascii"))
        type_name, payload = await self.get_raw(sha)
        obj = ShaFile.from_raw_string(type_name, payload)
        self._cache[sha] = obj
        return obj

    async def contains(self, sha: ObjectID) -> bool:
        if sha in self._cache:
            return True
        if await self.backend.exists(self._loose_path(sha)):
            return True
        if self.packs is not None:
            return await self.packs.contains(sha)
        return False

    async def add_object(self, obj: ShaFile) -> ObjectID:
        """Add a single object to this object store.

        Storing an object that is already present is a no-op.

        Returns: id of the object
        """
        sha = obj.id
        if sha in self._cache:
            return sha
        path = self._loose_path(sha)
        if not await self.backend.exists(path):
            data = zlib.compress(obj.as_legacy_object(), self.compression_level)
            logger.debug("writing %s object %s", obj.type_name.decode("ascii"), sha.decode("ascii"))
            await self.backend.write_file(path, data)
        self._cache[sha] = obj.copy()
        return sha

    def cache_info(self) -> tuple[int, int]:
        """Return the number of cached objects and the cache bound."""
        return len(self._cache), self._cache.cache_size()

    def clear_cache(self) -> None:
        self._cache.clear()


class TreeLookupResult(NamedTuple):
    """Result of looking up a path in a tree.

    ``kind`` is the type name of the object found (``"blob"``, ``"tree"``,
    ``"commit"`` or ``"tag"``), or ``"submodule"`` for a submodule link,
    whose commit lives in another repository and has no content here.
    ``content`` is the blob data for blobs, the list of entries for trees
    and the decoded object otherwise. ``mode`` is None for the root object.
    """

    kind: str
    mode: Optional[int]
    id: ObjectID
    content: Union[bytes, list[TreeEntry], ShaFile, None]


def _lookup_result(obj: ShaFile, mode: Optional[int]) -> TreeLookupResult:
    content: Union[bytes, list[TreeEntry], ShaFile]
    if isinstance(obj, Blob):
        content = obj.data
    elif isinstance(obj, Tree):
        content = obj.items()
    else:
        content = obj
    return TreeLookupResult(obj.type_name.decode("ascii"), mode, obj.id, content)


async def tree_lookup_path(
    store: BaseObjectStore, root_sha: ObjectID, path: Union[bytes, str]
) -> TreeLookupResult:
    """Look up an object in a Git tree.

    Args:
      store: Object store to read trees from
      root_sha: SHA1 of the root tree
      path: Slash-separated path; empty segments are ignored
    Returns: A TreeLookupResult for the object at path. An empty path
        returns the root object itself, whatever its type.
    Raises:
      NotTreeError: if the root or an intermediate object is not a tree
      PathNotFound: if a path segment does not exist
    """
    if isinstance(path, str):
        path = path.encode("utf-8")
    segments = [p for p in path.split(b"/") if p]
    if not segments:
        return _lookup_result(await store.read(root_sha), None)
    sha = root_sha
    mode = None
    tree = await store.read(sha)
    for i, segment in enumerate(segments):
        if not isinstance(tree, Tree):
            raise NotTreeError(sha)
        try:
            mode, sha = tree[segment]
        except KeyError as exc:
            raise PathNotFound(tree.id, segment) from exc
        if i == len(segments) - 1:
            break
        # blobs and submodule links cannot be descended into
        if not stat.S_ISDIR(mode):
            raise NotTreeError(sha)
        tree = await store.read(sha)
    assert mode is not None
    if mode_kind(f"{mode:o}".encode("ascii")) == KIND_SUBMODULE:
        return TreeLookupResult(KIND_SUBMODULE, mode, sha, None)
    return _lookup_result(await store.read(sha), mode)


async def iter_tree_contents(
    store: BaseObjectStore, tree_id: Optional[ObjectID], *, include_trees: bool = False
) -> AsyncIterator[TreeEntry]:
    """Iterate the contents of a tree and all subtrees.

    Iteration is depth-first pre-order, as in e.g. os.walk.

    Args:
      store: Object store to get trees from
      tree_id: SHA1 of the tree.
      include_trees: If True, include tree objects in the iteration.

    Yields: TreeEntry namedtuples for all the objects in a tree, with names
        relative to the root tree.
    """
    if tree_id is None:
        return
    todo = [TreeEntry(b"", stat.S_IFDIR, tree_id)]
    while todo:
        entry = todo.pop()
        if stat.S_ISDIR(entry.mode):
            extra = []
            tree = await store.read_tree(entry.sha)
            for subentry in tree.iteritems(name_order=True):
                extra.append(subentry.in_path(entry.name))
            todo.extend(reversed(extra))
        if not stat.S_ISDIR(entry.mode) or (include_trees and entry.name):
            yield entry


async def peel_sha(store: BaseObjectStore, sha: ObjectID) -> tuple[ShaFile, ShaFile]:
    """Peel all tags from a SHA.

    Args:
      store: Object store to get objects from
      sha: The object SHA to peel.
    Returns: The object sha refers to, and the object found after peeling
        all intermediate tags; if the original object is not a tag, both are
        the same object.
    """
    unpeeled = obj = await store.read(sha)
    while isinstance(obj, Tag):
        _obj_class, sha = obj.object
        obj = await store.read(sha)
    return unpeeled, obj
