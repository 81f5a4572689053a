# file.py -- Safe access to repository files on local disk
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

"""Atomic replacement of files on local disk.

Files are never written in place. New contents go to ``<name>.lock``, which
is created exclusively so that a second writer fails instead of interleaving,
and the lock file is renamed over ``<name>`` once it is complete. This is the
same protocol git itself uses, so a repository directory can be shared with
git.
"""

__all__ = [
    "FileLocked",
    "LockedFile",
    "ensure_dir_exists",
    "write_locked",
]

import os
import warnings
from types import TracebackType
from typing import IO, Optional, Union

PathType = Union[str, "os.PathLike[str]"]

LOCK_SUFFIX = ".lock"


def ensure_dir_exists(dirname: PathType) -> None:
    """Ensure a directory exists, creating if necessary."""
    os.makedirs(dirname, exist_ok=True)


class FileLocked(Exception):
    """File is already locked."""

    def __init__(self, filename: str, lockfilename: str) -> None:
        self.filename = filename
        self.lockfilename = lockfilename
        super().__init__(filename, lockfilename)


class LockedFile:
    """Write-only file that replaces its target when committed.

    Use as a context manager: leaving the block normally commits the new
    contents, leaving it with an exception discards them. Either way the
    lock is released.
    """

    _file: IO[bytes]

    def __init__(self, filename: PathType, mask: int = 0o644, fsync: bool = True) -> None:
        """Take the lock for filename.

        Raises:
          FileLocked: if another writer holds the lock
        """
        self.filename = os.fspath(filename)
        self.lockfilename = self.filename + LOCK_SUFFIX
        self._fsync = fsync
        flags = os.O_WRONLY | os.O_CREAT | os.O_EXCL | getattr(os, "O_BINARY", 0)
        try:
            fd = os.open(self.lockfilename, flags, mask)
        except FileExistsError as exc:
            raise FileLocked(self.filename, self.lockfilename) from exc
        self._file = os.fdopen(fd, "wb")
        self._closed = False

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.filename!r})"

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, data: bytes) -> int:
        return self._file.write(data)

    def discard(self) -> None:
        """Drop the new contents and release the lock.

        Does nothing if the file was already committed or discarded.
        """
        if self._closed:
            return
        self._closed = True
        self._file.close()
        try:
            os.remove(self.lockfilename)
        except FileNotFoundError:
            pass

    def commit(self) -> None:
        """Move the new contents into place and release the lock.

        Raises:
          OSError: if the target could not be replaced; the lock file is
            removed and the target left as it was
        """
        if self._closed:
            return
        try:
            self._file.flush()
            if self._fsync:
                os.fsync(self._file.fileno())
            self._file.close()
            os.replace(self.lockfilename, self.filename)
        except BaseException:
            self.discard()
            raise
        self._closed = True

    def __enter__(self) -> "LockedFile":
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        if exc_type is None:
            self.commit()
        else:
            self.discard()

    def __del__(self) -> None:
        if not getattr(self, "_closed", True):
            warnings.warn(f"unclosed {self!r}", ResourceWarning, stacklevel=2)
            self.discard()


def write_locked(
    filename: PathType, data: bytes, mask: int = 0o644, fsync: bool = True
) -> None:
    """Replace the contents of filename, creating parent directories.

    Raises:
      FileLocked: if another writer holds the lock on filename
    """
    ensure_dir_exists(os.path.dirname(os.fspath(filename)) or os.curdir)
    with LockedFile(filename, mask=mask, fsync=fsync) as f:
        f.write(data)
