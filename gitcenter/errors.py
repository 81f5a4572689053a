# errors.py -- errors for gitcenter
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

"""gitcenter-related exception classes."""

from typing import Optional, Union


def _display(value: Union[bytes, str]) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", "replace")
    return value


class NotFound(Exception):
    """Something (an object, a ref, a path or a file) does not exist."""

    def __init__(self, name: Union[bytes, str], *args: object) -> None:
        """Initialize a NotFound exception.

        Args:
          name: Identifier of the missing thing.
          *args: Additional positional arguments.
        """
        self.name = name
        Exception.__init__(self, f"{_display(name)} not found", *args)


class ObjectMissing(NotFound):
    """Indicates that a requested object is missing."""

    def __init__(self, sha: bytes, *args: object) -> None:
        """Initialize an ObjectMissing exception.

        Args:
          sha: The SHA of the missing object.
          *args: Additional positional arguments.
        """
        self.sha = sha
        self.name = sha
        Exception.__init__(self, f"{_display(sha)} is not in the object store", *args)


class RefMissing(NotFound):
    """Indicates that a ref (or branch, or tag) could not be found."""

    def __init__(self, name: bytes, *args: object) -> None:
        self.name = name
        Exception.__init__(self, f"Unknown ref: {_display(name)}", *args)


class PathNotFound(NotFound):
    """A path segment does not exist in a tree."""

    def __init__(self, tree: bytes, path: bytes) -> None:
        """Initialize a PathNotFound exception.

        Args:
          tree: SHA of the tree that was searched.
          path: The missing path segment.
        """
        self.tree = tree
        self.name = path
        self.path = path
        Exception.__init__(
            self, f"Tree {_display(tree)} has no object named {_display(path)}"
        )


class WrongObjectException(TypeError):
    """Baseclass for all the _ is not a _ exceptions on objects.

    Do not instantiate directly.

    Subclasses should define a type_name attribute that indicates what
    was expected if they were raised.
    """

    type_name: str

    def __init__(self, sha: bytes, *args: object) -> None:
        """Initialize a WrongObjectException.

        Args:
          sha: The SHA of the object that was not of the expected type.
          *args: Additional positional arguments.
        """
        self.sha = sha
        TypeError.__init__(self, f"{_display(sha)} is not a {self.type_name}")


class NotCommitError(WrongObjectException):
    """Indicates that the sha requested does not point to a commit."""

    type_name = "commit"


class NotTreeError(WrongObjectException):
    """Indicates that the sha requested does not point to a tree."""

    type_name = "tree"


class NotTagError(WrongObjectException):
    """Indicates that the sha requested does not point to a tag."""

    type_name = "tag"


class NotBlobError(WrongObjectException):
    """Indicates that the sha requested does not point to a blob."""

    type_name = "blob"


class FormatError(Exception):
    """Base class for exceptions relating to reading git file formats."""


class ObjectFormatException(FormatError):
    """Indicates an error parsing an object."""


class PackedRefsException(FormatError):
    """Indicates an error parsing a packed-refs file."""


class ApplyDeltaError(FormatError):
    """Indicates that applying a delta failed."""


class RefFormatError(ValueError):
    """Indicates an invalid ref name."""

    def __init__(self, name: bytes) -> None:
        self.name = name
        ValueError.__init__(self, f"Invalid ref name: {_display(name)}")


class ResolutionError(Exception):
    """A reference could not be resolved to an object id."""


class ConflictError(Exception):
    """A compare-and-set ref update lost the race against another writer."""

    def __init__(
        self, ref: bytes, expected: Optional[bytes], actual: Optional[bytes]
    ) -> None:
        """Initialize a ConflictError.

        Args:
          ref: Name of the ref that was being updated.
          expected: Value the caller expected the ref to have.
          actual: Value the ref actually had.
        """
        self.ref = ref
        self.expected = expected
        self.actual = actual
        Exception.__init__(
            self,
            f"{_display(ref)} was expected to be at "
            f"{_display(expected or b'(unset)')} but is at "
            f"{_display(actual or b'(unset)')}",
        )


class BackendError(Exception):
    """An opaque failure reported by the storage backend."""

    def __init__(self, path: str, *args: object) -> None:
        self.path = path
        Exception.__init__(self, path, *args)


class NotGitRepository(Exception):
    """Indicates that no Git repository was found."""


class UnsupportedRepository(NotGitRepository):
    """The repository manifest names a backend this engine does not support."""

    def __init__(self, kind: str) -> None:
        self.kind = kind
        NotGitRepository.__init__(self, f"Repository type not supported: {kind}")
