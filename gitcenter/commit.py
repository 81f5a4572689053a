# commit.py -- Building trees and commits from a set of file edits
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

"""Building trees and commits from a set of file edits.

Edits map a slash-separated path to one of:

* ``bytes`` (or ``str``, stored UTF-8 encoded): new file contents, stored
  as a blob with the default file mode or the mode of the file it replaces;
* a ``Blob``;
* a ``(mode, sha)`` tuple naming an existing object;
* ``None``: remove the path.

Only the directories on the path of an edit are read and rewritten; every
other subtree is carried over by id.
"""

import stat
from collections.abc import Mapping
from typing import Optional, Union

from .errors import ConflictError
from .log_utils import getLogger
from .object_store import BaseObjectStore
from .objects import (
    DEFAULT_FILE_MODE,
    KIND_BLOB,
    Blob,
    Commit,
    ObjectID,
    Tree,
    mode_kind,
)
from .refs import RefsContainer

logger = getLogger(__name__)

TreeEdit = Union[bytes, str, Blob, tuple[int, ObjectID], None]
TreeEdits = Mapping[Union[str, bytes], TreeEdit]

# The tree with no entries
EMPTY_TREE_ID = b"4b825dc642cb6eb9a060e54bf8d69288fbee4904"


def _split_path(path: Union[str, bytes]) -> list[bytes]:
    if isinstance(path, str):
        path = path.encode("utf-8")
    segments = [p for p in path.split(b"/") if p]
    if not segments:
        raise ValueError(f"Empty path in tree edits: {path!r}")
    for segment in segments:
        if segment in (b".", b".."):
            raise ValueError(f"Invalid path segment in {path!r}")
    return segments


def _nest_edits(edits: TreeEdits) -> dict:
    """Turn a flat path mapping into nested dictionaries, one per directory."""
    nested: dict = {}
    for path, value in edits.items():
        *dirnames, basename = _split_path(path)
        node = nested
        for dirname in dirnames:
            child = node.setdefault(dirname, {})
            if not isinstance(child, dict):
                raise ValueError(f"Conflicting edits for {path!r}")
            node = child
        if isinstance(node.get(basename), dict):
            raise ValueError(f"Conflicting edits for {path!r}")
        node[basename] = value
    return nested


async def _apply_changes(
    store: BaseObjectStore, tree_id: Optional[ObjectID], changes: dict
) -> Optional[ObjectID]:
    """Apply nested changes to a tree.

    Returns: id of the new tree, or None if it ended up empty
    """
    tree = Tree()
    if tree_id is not None:
        base = await store.read_tree(tree_id)
        for name, mode, sha in base.iteritems():
            tree[name] = (mode, sha)
    for name, change in changes.items():
        existing = tree[name] if name in tree else None
        if isinstance(change, dict):
            subtree_id = None
            if existing is not None and stat.S_ISDIR(existing[0]):
                subtree_id = existing[1]
            new_id = await _apply_changes(store, subtree_id, change)
            if new_id is None:
                if existing is not None:
                    del tree[name]
            else:
                tree[name] = (stat.S_IFDIR, new_id)
        elif change is None:
            if existing is not None:
                del tree[name]
        elif isinstance(change, tuple):
            tree[name] = change
        else:
            if isinstance(change, str):
                change = change.encode("utf-8")
            blob = change if isinstance(change, Blob) else Blob.from_string(change)
            mode = DEFAULT_FILE_MODE
            if existing is not None and mode_kind(b"%o" % existing[0]) == KIND_BLOB:
                mode = existing[0]
            tree[name] = (mode, await store.add_object(blob))
    if not tree:
        return None
    return await store.add_object(tree)


async def build_tree(
    store: BaseObjectStore, base_tree_id: Optional[ObjectID], edits: TreeEdits
) -> ObjectID:
    """Apply a set of edits to a tree, writing all new objects.

    Directories left without entries are removed.

    Args:
      store: Object store to read the base tree from and write to
      base_tree_id: Tree to start from, or None to start from scratch
      edits: Mapping of paths to edits
    Returns: id of the resulting tree
    """
    if not edits:
        if base_tree_id is not None:
            return base_tree_id
        return await store.add_object(Tree())
    tree_id = await _apply_changes(store, base_tree_id, _nest_edits(edits))
    if tree_id is None:
        tree_id = await store.add_object(Tree())
    return tree_id


class CommitWriter:
    """Create commits and publish them on refs."""

    def __init__(self, object_store: BaseObjectStore, refs: RefsContainer) -> None:
        self.object_store = object_store
        self.refs = refs

    async def commit(
        self,
        tree_edits: TreeEdits,
        parents: list[ObjectID],
        author: str,
        committer: Optional[str] = None,
        message: str = "",
        base_tree: Optional[ObjectID] = None,
    ) -> ObjectID:
        """Write a new commit. No ref is touched.

        Args:
          tree_edits: Edits to apply to the base tree
          parents: Parent commit ids (empty for a root commit)
          author: Author identity, e.g. "Jane <jane@example.com> 1700000000 +0000"
          committer: Committer identity; defaults to the author
          message: Commit message
          base_tree: Tree the edits apply to; defaults to the tree of the
            first parent, or the empty tree for a root commit
        Returns: id of the new commit
        """
        if base_tree is None and parents:
            base_tree = (await self.object_store.read_commit(parents[0])).tree
        c = Commit()
        c.tree = await build_tree(self.object_store, base_tree, tree_edits)
        c.parents = list(parents)
        c.author = author
        c.committer = committer if committer is not None else author
        c.message = message
        sha = await self.object_store.add_object(c)
        logger.debug("created commit %s", sha.decode("ascii"))
        return sha

    async def publish(
        self, ref_name: bytes, new_sha: ObjectID, expected_parent: Optional[ObjectID]
    ) -> None:
        """Point a ref at a new commit if it still has the expected value.

        Args:
          ref_name: Ref to update; symbolic refs are followed
          new_sha: Commit to point the ref at
          expected_parent: Value the ref must currently have, or None if the
            ref must not exist yet
        Raises:
          ConflictError: if the ref has moved; it is left unchanged
        """
        if not await self.refs.set_if_equals(ref_name, expected_parent, new_sha):
            _, actual = await self.refs.follow(ref_name)
            raise ConflictError(ref_name, expected_parent, actual)
        logger.debug(
            "published %s on %s", new_sha.decode("ascii"), ref_name.decode("utf-8")
        )

    async def commit_and_publish(
        self,
        ref_name: bytes,
        tree_edits: TreeEdits,
        author: str,
        committer: Optional[str] = None,
        message: str = "",
    ) -> ObjectID:
        """Commit on top of the current value of a ref and publish the result.

        Raises:
          ConflictError: if the ref moved between reading and publishing
        """
        _, current = await self.refs.follow(ref_name)
        parents = [current] if current else []
        sha = await self.commit(
            tree_edits, parents, author, committer=committer, message=message
        )
        await self.publish(ref_name, sha, current)
        return sha
