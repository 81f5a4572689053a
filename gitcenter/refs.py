# refs.py -- For dealing with git refs
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

"""Ref handling.

Refs live in the storage backend next to the objects: ``HEAD``, loose refs
under ``refs/`` and the ``packed-refs`` table. Nothing is cached, since other
writers may update the remote store at any time.
"""

from collections.abc import Iterator, Mapping
from io import BytesIO
from typing import IO, Optional

from .backend import StorageBackend
from .errors import (
    NotFound,
    PackedRefsException,
    RefFormatError,
    RefMissing,
    ResolutionError,
)
from .log_utils import getLogger
from .objects import ObjectID, valid_hexsha

logger = getLogger(__name__)

Ref = bytes

HEADREF = b"HEAD"
SYMREF = b"ref: "
LOCAL_BRANCH_PREFIX = b"refs/heads/"
LOCAL_TAG_PREFIX = b"refs/tags/"
PEELED_TAG_SUFFIX = b"^{}"
BAD_REF_CHARS = set(b"\177 ~^:?*[")
PACKED_REFS = "packed-refs"
PACKED_REFS_HEADER = b"# pack-refs with: peeled"

# Longest chain of symbolic refs that is followed
MAX_SYMREF_DEPTH = 10


class SymrefLoop(ResolutionError):
    """There is a loop between one or more symrefs."""

    def __init__(self, ref: bytes, depth: int) -> None:
        self.ref = ref
        self.depth = depth
        ResolutionError.__init__(
            self,
            f"Symbolic ref loop or chain too long at {ref.decode('utf-8', 'replace')} "
            f"(depth {depth})",
        )


class BrokenRef(ResolutionError):
    """A chain of refs ends in something that is not an object id."""

    def __init__(self, ref: bytes, contents: bytes) -> None:
        self.ref = ref
        self.contents = contents
        ResolutionError.__init__(
            self,
            f"{ref.decode('utf-8', 'replace')} does not point at an object id: "
            f"{contents!r}",
        )


def parse_symref_value(contents: bytes) -> bytes:
    """Parse a symref value.

    Args:
      contents: Contents to parse
    Returns: Destination
    """
    if contents.startswith(SYMREF):
        return contents[len(SYMREF) :].rstrip(b"\r\n")
    raise ValueError(contents)


def check_ref_format(refname: Ref) -> bool:
    """Check if a refname is correctly formatted.

    Implements all the same rules as git-check-ref-format[1].

    [1]
    http://www.kernel.org/pub/software/scm/git/docs/git-check-ref-format.html

    Args:
      refname: The refname to check
    Returns: True if refname is valid, False otherwise
    """
    # These could be combined into one big expression, but are listed
    # separately to parallel [1].
    if b"/." in refname or refname.startswith(b"."):
        return False
    if b"/" not in refname:
        return False
    if b".." in refname:
        return False
    for c in refname:
        if c < 0o40 or c in BAD_REF_CHARS:
            return False
    if refname[-1] in b"/.":
        return False
    if refname.endswith(b".lock"):
        return False
    if b"@{" in refname:
        return False
    if b"\\" in refname:
        return False
    return True


def _split_ref_line(line: bytes) -> tuple[bytes, bytes]:
    """Split a single ref line into a tuple of SHA1 and name."""
    fields = line.rstrip(b"\n\r").split(b" ")
    if len(fields) != 2:
        raise PackedRefsException(f"invalid ref line {line!r}")
    sha, name = fields
    if not valid_hexsha(sha):
        raise PackedRefsException(f"Invalid hex sha {sha!r}")
    if not check_ref_format(name):
        raise PackedRefsException(f"invalid ref name {name!r}")
    return (sha, name)


def read_packed_refs(f: IO[bytes]) -> Iterator[tuple[bytes, bytes]]:
    """Read a packed refs file without peeled values.

    Args:
      f: file-like object to read from
    Returns: Iterator over tuples with SHA1s and ref names.
    """
    for line in f:
        if line.startswith(b"#"):
            # Comment
            continue
        if not line.strip():
            continue
        if line.startswith(b"^"):
            raise PackedRefsException("found peeled ref in packed-refs without peeled")
        yield _split_ref_line(line)


def read_packed_refs_with_peeled(
    f: IO[bytes],
) -> Iterator[tuple[bytes, bytes, Optional[bytes]]]:
    """Read a packed refs file including peeled refs.

    Yields tuples with SHA1s, ref names, and peeled SHA1s (or None). Comment
    lines, including the "# pack-refs with:" header, are skipped.

    Args:
      f: file-like object to read from
    """
    last = None
    for line in f:
        if line.startswith(b"#"):
            continue
        line = line.rstrip(b"\r\n")
        if not line:
            continue
        if line.startswith(b"^"):
            if not last:
                raise PackedRefsException("unexpected peeled ref line")
            if not valid_hexsha(line[1:]):
                raise PackedRefsException(f"Invalid hex sha {line[1:]!r}")
            sha, name = _split_ref_line(last)
            last = None
            yield (sha, name, line[1:])
        else:
            if last:
                sha, name = _split_ref_line(last)
                yield (sha, name, None)
            last = line
    if last:
        sha, name = _split_ref_line(last)
        yield (sha, name, None)


def write_packed_refs(
    f: IO[bytes],
    packed_refs: Mapping[bytes, bytes],
    peeled_refs: Optional[Mapping[bytes, bytes]] = None,
) -> None:
    """Write a packed refs file.

    Args:
      f: empty file-like object to write to
      packed_refs: dict of refname to sha of packed refs to write
      peeled_refs: dict of refname to peeled value of sha
    """
    if peeled_refs is None:
        peeled_refs = {}
    else:
        f.write(PACKED_REFS_HEADER + b"\n")
    for refname in sorted(packed_refs.keys()):
        f.write(packed_refs[refname] + b" " + refname + b"\n")
        if refname in peeled_refs:
            f.write(b"^" + peeled_refs[refname] + b"\n")


def local_branch_name(name: bytes) -> bytes:
    """Build a full branch ref from a short name.

    Examples:
      >>> local_branch_name(b"master")
      b'refs/heads/master'
      >>> local_branch_name(b"refs/heads/master")
      b'refs/heads/master'
    """
    if name.startswith(LOCAL_BRANCH_PREFIX):
        return name
    return LOCAL_BRANCH_PREFIX + name


def local_tag_name(name: bytes) -> bytes:
    """Build a full tag ref from a short name.

    Examples:
      >>> local_tag_name(b"v1.0")
      b'refs/tags/v1.0'
    """
    if name.startswith(LOCAL_TAG_PREFIX):
        return name
    return LOCAL_TAG_PREFIX + name


def extract_branch_name(ref: bytes) -> bytes:
    """Extract branch name from a full branch ref.

    Raises:
      ValueError: If ref is not a local branch

    Examples:
      >>> extract_branch_name(b"refs/heads/feature/foo")
      b'feature/foo'
    """
    if not ref.startswith(LOCAL_BRANCH_PREFIX):
        raise ValueError(f"Not a local branch ref: {ref!r}")
    return ref[len(LOCAL_BRANCH_PREFIX) :]


def extract_tag_name(ref: bytes) -> bytes:
    """Extract tag name from a full tag ref.

    Raises:
      ValueError: If ref is not a local tag
    """
    if not ref.startswith(LOCAL_TAG_PREFIX):
        raise ValueError(f"Not a local tag ref: {ref!r}")
    return ref[len(LOCAL_TAG_PREFIX) :]


class RefsContainer:
    """Refs stored in a StorageBackend."""

    def __init__(self, backend: StorageBackend) -> None:
        self.backend = backend

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.backend!r})"

    def _check_refname(self, name: bytes) -> None:
        """Ensure a refname is valid and lives in refs or is HEAD.

        HEAD is not a valid refname according to git-check-ref-format, but this
        class needs to be able to touch HEAD. Also, check_ref_format expects
        refnames without the leading 'refs/', but this class requires that
        so it cannot touch anything outside the refs dir (or HEAD).

        Raises:
          RefFormatError: if a refname is not HEAD or is otherwise not valid.
        """
        if name == HEADREF:
            return
        if not name.startswith(b"refs/") or not check_ref_format(name[5:]):
            raise RefFormatError(name)

    def refpath(self, name: bytes) -> str:
        """Return the backend path for a ref."""
        return name.decode("utf-8")

    async def get_packed_refs_with_peeled(
        self,
    ) -> tuple[dict[Ref, ObjectID], dict[Ref, ObjectID]]:
        """Read the packed refs table.

        Returns: tuple of dictionaries mapping ref names to SHA1s, and ref
            names to peeled SHA1s for those refs that have one. Both are
            empty when there is no packed refs table.
        """
        try:
            contents = await self.backend.read_file(PACKED_REFS)
        except NotFound:
            return {}, {}
        packed: dict[Ref, ObjectID] = {}
        peeled: dict[Ref, ObjectID] = {}
        for sha, name, peeled_sha in read_packed_refs_with_peeled(BytesIO(contents)):
            packed[name] = sha
            if peeled_sha:
                peeled[name] = peeled_sha
        return packed, peeled

    async def get_packed_refs(self) -> dict[Ref, ObjectID]:
        """Get contents of the packed-refs table.

        Returns: Dictionary mapping ref names to SHA1s
        """
        return (await self.get_packed_refs_with_peeled())[0]

    async def get_peeled(self, name: bytes) -> Optional[ObjectID]:
        """Return the cached peeled value of a ref, if available.

        Args:
          name: Name of the ref to peel
        Returns: The peeled value of the ref. If the ref is known not point to
            a tag, this will be the SHA the ref refers to. If the ref may point
            to a tag, but no cached information is available, None is returned.
        """
        packed, peeled = await self.get_packed_refs_with_peeled()
        if name in peeled:
            return peeled[name]
        if name in packed and await self.read_loose_ref(name) is None:
            return packed[name]
        return None

    async def _write_packed_refs(
        self, packed: Mapping[Ref, ObjectID], peeled: Mapping[Ref, ObjectID]
    ) -> None:
        f = BytesIO()
        write_packed_refs(f, packed, peeled)
        await self.backend.write_file(PACKED_REFS, f.getvalue())

    async def add_packed_refs(self, new_refs: Mapping[Ref, Optional[ObjectID]]) -> None:
        """Add the given refs as packed refs.

        Args:
          new_refs: A mapping of ref names to targets; if a target is None that
            means remove the ref
        """
        if not new_refs:
            return
        packed, peeled = await self.get_packed_refs_with_peeled()
        for name, sha in new_refs.items():
            if sha is None:
                packed.pop(name, None)
            else:
                self._check_refname(name)
                packed[name] = sha
            peeled.pop(name, None)
        await self._write_packed_refs(packed, peeled)

    async def read_loose_ref(self, name: bytes) -> Optional[bytes]:
        """Read a loose reference and return its contents.

        If the reference is symbolic, only the first line is returned;
        otherwise only the first 40 bytes.

        Args:
          name: the refname to read
        Returns: The contents of the ref file, or None if it does not exist.
        """
        try:
            contents = await self.backend.read_file(self.refpath(name))
        except NotFound:
            return None
        if contents.startswith(SYMREF):
            return contents.splitlines()[0].rstrip(b"\r\n")
        return contents[:40]

    async def read_ref(self, refname: bytes) -> Optional[bytes]:
        """Read a reference without following any references.

        Args:
          refname: The name of the reference
        Returns: The contents of the ref file, or None if it does
            not exist.
        """
        contents = await self.read_loose_ref(refname)
        if not contents:
            contents = (await self.get_packed_refs()).get(refname, None)
        return contents

    async def resolve_symbolic(self, name: bytes) -> bytes:
        """Follow one level of symbolic reference.

        Returns: the name the symbolic ref points at, or name itself if it
            is a direct ref (or does not exist).
        """
        contents = await self.read_ref(name)
        if contents is not None and contents.startswith(SYMREF):
            return parse_symref_value(contents)
        return name

    async def follow(self, name: bytes) -> tuple[list[bytes], Optional[bytes]]:
        """Follow a reference name.

        Returns: a tuple of (refnames, sha), wheres refnames are the names of
            references in the chain
        Raises:
          SymrefLoop: if a ref is visited twice or the chain is longer than
            MAX_SYMREF_DEPTH
        """
        contents: Optional[bytes] = SYMREF + name
        depth = 0
        refnames: list[bytes] = []
        while contents and contents.startswith(SYMREF):
            refname = parse_symref_value(contents)
            if refname in refnames:
                raise SymrefLoop(refname, depth)
            refnames.append(refname)
            contents = await self.read_ref(refname)
            if not contents:
                break
            depth += 1
            if depth > MAX_SYMREF_DEPTH:
                raise SymrefLoop(name, depth)
        return refnames, contents

    async def resolve_ref(self, name: Optional[bytes] = None) -> ObjectID:
        """Get the SHA1 for a reference name.

        This method follows all symbolic references. An empty name resolves
        HEAD.

        Raises:
          RefMissing: if the ref (or the end of its chain) does not exist
          SymrefLoop: if the chain of symbolic refs does not terminate
          BrokenRef: if the chain ends in something other than a hex SHA1
        """
        if not name:
            name = HEADREF
        refnames, sha = await self.follow(name)
        if sha is None:
            raise RefMissing(name)
        if not valid_hexsha(sha):
            raise BrokenRef(refnames[-1], sha)
        return sha

    async def resolve(self, name: Optional[bytes] = None) -> ObjectID:
        """Resolve a branch name, tag name or full SHA1 to an object id.

        A full hex SHA1 is returned unchanged without touching storage. Other
        names are tried as loose ``refs/heads/<name>``, then loose
        ``refs/tags/<name>``, then looked up in the packed refs table (as a
        branch, a tag, or an exact ref name). An empty name resolves HEAD.

        Raises:
          RefMissing: if no ref matches
        """
        if not name:
            return await self.resolve_ref(HEADREF)
        if valid_hexsha(name):
            return name
        for candidate in (local_branch_name(name), local_tag_name(name)):
            contents = await self.read_loose_ref(candidate)
            if contents:
                return await self.resolve_ref(candidate)
        if name == HEADREF:
            return await self.resolve_ref(HEADREF)
        packed = await self.get_packed_refs()
        for candidate in (local_branch_name(name), local_tag_name(name), name):
            if candidate in packed:
                return packed[candidate]
        raise RefMissing(name)

    async def contains(self, refname: bytes) -> bool:
        """Check if a reference exists."""
        if await self.read_ref(refname):
            return True
        return False

    async def _iter_loose_refs(self, base: str = "refs/") -> list[bytes]:
        """Return the names of all loose refs below base."""
        names = []
        todo = [base]
        while todo:
            directory = todo.pop()
            for entry in await self.backend.list_directory(directory):
                path = directory + entry
                if entry.endswith("/"):
                    todo.append(path)
                elif not entry.endswith(".lock"):
                    names.append(path.encode("utf-8"))
        return names

    async def allkeys(self) -> set[Ref]:
        """All refs present in this container, loose and packed.

        HEAD is not included. Missing sources count as empty.
        """
        allkeys = set(await self._iter_loose_refs())
        allkeys.update(await self.get_packed_refs())
        return allkeys

    async def keys(self, base: Optional[bytes] = None) -> set[bytes]:
        """Refs present in this container.

        Args:
          base: An optional base to return refs under.
        Returns: An unsorted set of valid refs in this container, including
            packed refs. With a base, names are relative to it.
        """
        keys = await self.allkeys()
        if base is None:
            return keys
        if not base.endswith(b"/"):
            base += b"/"
        return {key[len(base) :] for key in keys if key.startswith(base)}

    async def as_dict(self, base: Optional[bytes] = None) -> dict[Ref, ObjectID]:
        """Return the contents of this container as a dictionary.

        Loose refs take precedence over packed refs of the same name. Refs
        that cannot be resolved are left out.
        """
        ret = {}
        keys = await self.keys(base)
        if base is None:
            prefix = b""
        else:
            prefix = base.rstrip(b"/") + b"/"
        for key in keys:
            try:
                ret[key] = await self.resolve_ref(prefix + key)
            except (ResolutionError, RefMissing):
                continue  # Unable to resolve
        return ret

    async def get_symrefs(self) -> dict[bytes, bytes]:
        """Get a dict with all symrefs in this container, including HEAD.

        Returns: Dictionary mapping source ref to target ref
        """
        ret = {}
        for src in [HEADREF, *sorted(await self.allkeys())]:
            contents = await self.read_loose_ref(src)
            if contents is not None and contents.startswith(SYMREF):
                ret[src] = parse_symref_value(contents)
        return ret

    async def update(self, name: bytes, sha: ObjectID) -> None:
        """Unconditionally point a ref at an object.

        The literal SHA1 is written at the ref's own path, without following
        symbolic refs and without checking the previous value. Ordinary
        writers should use set_if_equals instead.
        """
        self._check_refname(name)
        if not valid_hexsha(sha):
            raise ValueError(f"Invalid object id {sha!r}")
        logger.debug("setting %s to %s", name.decode("utf-8"), sha.decode("ascii"))
        await self.backend.write_file(self.refpath(name), sha + b"\n")

    force_update = update

    async def set_symbolic_ref(self, name: bytes, other: bytes) -> None:
        """Make a ref point at another ref.

        Args:
          name: Name of the ref to set
          other: Name of the ref to point at
        """
        self._check_refname(name)
        self._check_refname(other)
        logger.debug("setting %s to ref %s", name.decode("utf-8"), other.decode("utf-8"))
        await self.backend.write_file(self.refpath(name), SYMREF + other + b"\n")

    async def set_if_equals(
        self, name: bytes, old_ref: Optional[bytes], new_ref: bytes
    ) -> bool:
        """Set a refname to new_ref only if it currently equals old_ref.

        Symbolic references are followed and the ref at the end of the chain
        is updated. The check and the write are two separate backend calls,
        so this only guards against writers that use it too.

        Args:
          name: The refname to set.
          old_ref: The old sha the refname must refer to, or None if the ref
            must not exist yet.
          new_ref: The new sha the refname will refer to.
        Returns: True if the set was successful, False otherwise.
        """
        realnames, current = await self.follow(name)
        realname = realnames[-1]
        self._check_refname(realname)
        if current != old_ref:
            return False
        await self.update(realname, new_ref)
        return True

    async def add_if_new(self, name: bytes, ref: bytes) -> bool:
        """Add a new reference only if it does not already exist."""
        return await self.set_if_equals(name, None, ref)

    async def remove(self, name: bytes) -> bool:
        """Remove a ref, loose and packed.

        Returns: True if a ref was removed
        """
        self._check_refname(name)
        removed = True
        try:
            await self.backend.delete_file(self.refpath(name))
        except NotFound:
            removed = False
        packed, peeled = await self.get_packed_refs_with_peeled()
        if name in packed:
            del packed[name]
            peeled.pop(name, None)
            await self._write_packed_refs(packed, peeled)
            removed = True
        return removed

    async def remove_if_equals(self, name: bytes, old_ref: Optional[bytes]) -> bool:
        """Remove a refname only if it currently equals old_ref.

        Args:
          name: The refname to delete.
          old_ref: The old sha the refname must refer to, or None to
            delete unconditionally.
        Returns: True if the delete was successful, False otherwise.
        """
        if old_ref is not None:
            _, current = await self.follow(name)
            if current != old_ref:
                return False
        return await self.remove(name)
