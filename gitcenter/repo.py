# repo.py -- For dealing with git repositories.
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

"""Repository access.

A site stores its repository below a subdirectory named by the site's
``content.json`` manifest, e.g. ``{"git": "repo.git"}``. Everything else
(objects, refs, config) is read from and written to that subdirectory
through a StorageBackend.
"""

import json
import time
from typing import Optional, Union

from .backend import StorageBackend, SubdirBackend
from .commit import EMPTY_TREE_ID, CommitWriter, TreeEdits
from .config import ConfigFile, default_repository_config
from .errors import (
    ConflictError,
    NotBlobError,
    NotCommitError,
    NotFound,
    NotGitRepository,
    RefMissing,
    UnsupportedRepository,
)
from .log_utils import getLogger
from .object_store import (
    BaseObjectStore,
    LooseObjectStore,
    TreeLookupResult,
    tree_lookup_path,
)
from .objects import Commit, ObjectID, Tree, format_identity
from .pack import PACK_DIRECTORY, PackStore
from .refs import (
    HEADREF,
    LOCAL_BRANCH_PREFIX,
    SYMREF,
    RefsContainer,
    extract_branch_name,
    local_branch_name,
    parse_symref_value,
)

logger = getLogger(__name__)

MANIFEST = "content.json"
CONFIG = "config"
DESCRIPTION = "description"
DEFAULT_DESCRIPTION = b"Git Center repository"
DEFAULT_BRANCH = b"master"
INITIAL_COMMIT_MESSAGE = "Initial commit"


def make_author(
    name: str,
    email: str,
    timestamp: Optional[int] = None,
    timezone: Optional[int] = None,
) -> str:
    """Build an identity for a commit made now.

    Args:
      name: Person name
      email: E-mail address
      timestamp: Seconds since the epoch; defaults to the current time
      timezone: Offset to UTC in seconds; defaults to the local timezone
    """
    if timestamp is None:
        timestamp = int(time.time())
    if timezone is None:
        local = time.localtime(timestamp)
        timezone = local.tm_gmtoff - local.tm_gmtoff % 60
    return format_identity(name, email, timestamp, timezone)


async def read_manifest(site_backend: StorageBackend) -> dict:
    """Read the manifest of a site.

    Raises:
      NotGitRepository: if the manifest is missing or not a JSON object
    """
    try:
        contents = await site_backend.read_file(MANIFEST)
    except NotFound as exc:
        raise NotGitRepository(f"No {MANIFEST} found") from exc
    try:
        manifest = json.loads(contents)
    except ValueError as exc:
        raise NotGitRepository(f"Invalid {MANIFEST}: {exc}") from exc
    if not isinstance(manifest, dict):
        raise NotGitRepository(f"Invalid {MANIFEST}: not an object")
    return manifest


class Repository:
    """A git repository in a StorageBackend.

    Attributes:
      backend: Storage rooted at the repository directory
      object_store: Store for the repository's objects
      refs: Container for the repository's refs
    """

    def __init__(
        self,
        backend: StorageBackend,
        object_store: Optional[BaseObjectStore] = None,
        refs: Optional[RefsContainer] = None,
    ) -> None:
        self.backend = backend
        if object_store is None:
            object_store = LooseObjectStore(
                backend, packs=PackStore(backend, PACK_DIRECTORY)
            )
        self.object_store = object_store
        if refs is None:
            refs = RefsContainer(backend)
        self.refs = refs
        self.writer = CommitWriter(self.object_store, self.refs)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} for {self.backend!r}>"

    @classmethod
    async def open(
        cls, site_backend: StorageBackend, address: Optional[str] = None
    ) -> "Repository":
        """Open the repository named by a site's manifest.

        Args:
          site_backend: Storage holding the site
          address: Optional site directory below site_backend
        Raises:
          NotGitRepository: if the manifest is missing or invalid
          UnsupportedRepository: if the manifest names a Mercurial repository
        """
        if address:
            site_backend = SubdirBackend(site_backend, address)
        manifest = await read_manifest(site_backend)
        subdir = manifest.get("git")
        if not subdir:
            if manifest.get("hg"):
                raise UnsupportedRepository("hg")
            raise NotGitRepository("Repository type not supported")
        if not isinstance(subdir, str):
            raise NotGitRepository(f"Invalid git directory in {MANIFEST}")
        backend = SubdirBackend(site_backend, subdir)
        return await cls.from_backend(backend)

    @classmethod
    async def from_backend(cls, backend: StorageBackend) -> "Repository":
        """Open a repository rooted at backend, honouring its config."""
        config = await read_config(backend)
        object_store = LooseObjectStore.from_config(
            backend, config, packs=PackStore(backend, PACK_DIRECTORY)
        )
        return cls(backend, object_store=object_store)

    @classmethod
    async def init(
        cls,
        backend: StorageBackend,
        name: str,
        email: str,
        branch: bytes = DEFAULT_BRANCH,
        timestamp: Optional[int] = None,
        timezone: Optional[int] = None,
    ) -> "Repository":
        """Create a new repository.

        Writes HEAD, the description and the config, then an initial commit
        with an empty tree on branch.

        Raises:
          ConflictError: if the branch already exists; nothing is written
        """
        refs = RefsContainer(backend)
        branch_ref = local_branch_name(branch)
        existing = await refs.read_ref(branch_ref)
        if existing:
            raise ConflictError(branch_ref, None, existing)
        await refs.set_symbolic_ref(HEADREF, branch_ref)
        await backend.write_file(DESCRIPTION, DEFAULT_DESCRIPTION)
        await backend.write_file(CONFIG, default_repository_config().as_bytes())
        repo = cls(backend, refs=refs)
        author = make_author(name, email, timestamp, timezone)
        tree_id = await repo.object_store.add_object(Tree())
        assert tree_id == EMPTY_TREE_ID
        sha = await repo.writer.commit(
            {}, [], author, message=INITIAL_COMMIT_MESSAGE, base_tree=tree_id
        )
        await repo.writer.publish(branch_ref, sha, None)
        logger.info("initialized repository in %r", backend)
        return repo

    async def get_config(self) -> ConfigFile:
        return await read_config(self.backend)

    async def get_description(self) -> Optional[bytes]:
        try:
            return await self.backend.read_file(DESCRIPTION)
        except NotFound:
            return None

    async def get_head(self) -> bytes:
        """Return what HEAD points at.

        Returns: the branch name for a symbolic ref to a branch, the full
            target name for any other symbolic ref, or the commit id itself
            when HEAD is detached
        Raises:
          RefMissing: if there is no HEAD
        """
        contents = await self.refs.read_ref(HEADREF)
        if not contents:
            raise RefMissing(HEADREF)
        if not contents.startswith(SYMREF):
            return contents
        target = parse_symref_value(contents)
        try:
            return extract_branch_name(target)
        except ValueError:
            return target

    async def get_branches(self) -> list[bytes]:
        """Return the names of all refs, sorted."""
        return sorted(await self.refs.allkeys())

    async def read_branch_commit(self, name: bytes) -> Commit:
        """Read the commit a branch, tag or SHA1 names.

        Tags are peeled to the commit they point at.

        Raises:
          RefMissing: if the name does not resolve
          NotCommitError: if the name resolves to something other than a commit
        """
        sha = await self.refs.resolve(name)
        _, obj = await self.object_store.peel_sha(sha)
        if not isinstance(obj, Commit):
            raise NotCommitError(obj.id)
        return obj

    async def get_files(
        self, branch: bytes, path: Union[bytes, str] = b""
    ) -> TreeLookupResult:
        """Look up a path in the tree of a branch."""
        commit = await self.read_branch_commit(branch)
        return await tree_lookup_path(self.object_store, commit.tree, path)

    async def get_file(self, branch: bytes, path: Union[bytes, str]) -> bytes:
        """Return the contents of a file on a branch.

        Raises:
          NotBlobError: if the path names a directory or a submodule
          PathNotFound: if the path does not exist
        """
        result = await self.get_files(branch, path)
        if result.kind != "blob":
            raise NotBlobError(result.id)
        assert isinstance(result.content, bytes)
        return result.content

    async def save_file(
        self,
        path: Union[bytes, str],
        content: bytes,
        branch: bytes,
        message: str,
        author: str,
    ) -> ObjectID:
        """Commit new contents for a single file on top of a branch.

        Raises:
          ConflictError: if the branch moved while the commit was written
        """
        return await self.commit_files({path: content}, branch, message, author)

    async def commit_files(
        self, edits: TreeEdits, branch: bytes, message: str, author: str
    ) -> ObjectID:
        """Commit a set of edits on top of a branch and publish it."""
        ref = local_branch_name(branch)
        sha = await self.writer.commit_and_publish(ref, edits, author, message=message)
        logger.info(
            "committed %s on %s",
            sha.decode("ascii"),
            ref[len(LOCAL_BRANCH_PREFIX) :].decode("utf-8"),
        )
        return sha


async def read_config(backend: StorageBackend) -> ConfigFile:
    """Read the config of a repository; a missing config reads as empty."""
    try:
        contents = await backend.read_file(CONFIG)
    except NotFound:
        return ConfigFile()
    return ConfigFile.from_bytes(contents)
