# backend.py -- Asynchronous storage backends for repository files
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

"""Asynchronous storage backends.

Every piece of repository data (objects, refs, config) is read and written
through a StorageBackend, addressed by a relative, slash-separated path such
as ``objects/ce/013625030ba8dba906f756967f9e9ca394464a``. Backends never
retry; a transient failure surfaces as BackendError and retry policy is left
to the caller.
"""

__all__ = [
    "DiskBackend",
    "MemoryBackend",
    "StorageBackend",
    "SubdirBackend",
    "normalize_path",
]

import asyncio
import os
import posixpath
from typing import Optional

from .errors import BackendError, NotFound
from .file import FileLocked, write_locked
from .log_utils import getLogger

logger = getLogger(__name__)


def normalize_path(path: str) -> str:
    """Normalize a backend path.

    Leading and trailing slashes and empty segments are dropped.

    Raises:
      ValueError: if the path tries to escape the backend root
    """
    segments = [s for s in path.split("/") if s and s != "."]
    if ".." in segments:
        raise ValueError(f"Path escapes backend root: {path!r}")
    return "/".join(segments)


class StorageBackend:
    """Asynchronous key-path byte store."""

    async def read_file(self, path: str) -> bytes:
        """Read the contents of a file.

        Raises:
          NotFound: if there is no file at path
          BackendError: on any other failure
        """
        raise NotImplementedError(self.read_file)

    async def write_file(self, path: str, data: bytes) -> None:
        """Write data to path, replacing any existing contents.

        Parent directories are created as needed.
        """
        raise NotImplementedError(self.write_file)

    async def delete_file(self, path: str) -> None:
        """Delete the file at path.

        Raises:
          NotFound: if there is no file at path
        """
        raise NotImplementedError(self.delete_file)

    async def list_directory(self, path: str) -> list[str]:
        """List the entries of a directory.

        Subdirectories are returned with a trailing slash. A missing directory
        is reported as empty rather than as an error.

        Returns: sorted list of entry names
        """
        raise NotImplementedError(self.list_directory)

    async def exists(self, path: str) -> bool:
        """Check whether a file exists at path."""
        try:
            await self.read_file(path)
        except NotFound:
            return False
        return True


class MemoryBackend(StorageBackend):
    """Dictionary-backed storage, mostly useful for tests."""

    def __init__(self, files: Optional[dict[str, bytes]] = None) -> None:
        self._files: dict[str, bytes] = {}
        for path, data in (files or {}).items():
            self._files[normalize_path(path)] = data

    def __repr__(self) -> str:
        return f"{type(self).__name__}({len(self._files)} files)"

    async def read_file(self, path: str) -> bytes:
        try:
            return self._files[normalize_path(path)]
        except KeyError as exc:
            raise NotFound(path) from exc

    async def write_file(self, path: str, data: bytes) -> None:
        self._files[normalize_path(path)] = bytes(data)

    async def delete_file(self, path: str) -> None:
        try:
            del self._files[normalize_path(path)]
        except KeyError as exc:
            raise NotFound(path) from exc

    async def list_directory(self, path: str) -> list[str]:
        path = normalize_path(path)
        prefix = path + "/" if path else ""
        names = set()
        for key in self._files:
            if not key.startswith(prefix):
                continue
            rest = key[len(prefix) :]
            if "/" in rest:
                names.add(rest.split("/", 1)[0] + "/")
            else:
                names.add(rest)
        return sorted(names)

    async def exists(self, path: str) -> bool:
        return normalize_path(path) in self._files


class DiskBackend(StorageBackend):
    """Storage in a directory on the local filesystem.

    Writes go through the git lock-file protocol, so readers never observe a
    partially written file. Blocking I/O runs in a worker thread.
    """

    def __init__(self, root: str, fsync: bool = True) -> None:
        self.root = os.path.abspath(root)
        self._fsync = fsync

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.root!r})"

    def _local_path(self, path: str) -> str:
        path = normalize_path(path)
        if not path:
            return self.root
        return os.path.join(self.root, *path.split("/"))

    def _read(self, path: str) -> bytes:
        try:
            with open(self._local_path(path), "rb") as f:
                return f.read()
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError) as exc:
            raise NotFound(path) from exc
        except OSError as exc:
            raise BackendError(path, exc) from exc

    def _write(self, path: str, data: bytes) -> None:
        try:
            write_locked(self._local_path(path), data, fsync=self._fsync)
        except FileLocked as exc:
            raise BackendError(path, f"{exc.lockfilename} is locked") from exc
        except OSError as exc:
            raise BackendError(path, exc) from exc

    def _delete(self, path: str) -> None:
        try:
            os.remove(self._local_path(path))
        except FileNotFoundError as exc:
            raise NotFound(path) from exc
        except OSError as exc:
            raise BackendError(path, exc) from exc

    def _list(self, path: str) -> list[str]:
        local_path = self._local_path(path)
        try:
            entries = os.listdir(local_path)
        except (FileNotFoundError, NotADirectoryError):
            return []
        except OSError as exc:
            raise BackendError(path, exc) from exc
        names = []
        for entry in entries:
            if entry.endswith(".lock"):
                continue
            if os.path.isdir(os.path.join(local_path, entry)):
                names.append(entry + "/")
            else:
                names.append(entry)
        return sorted(names)

    async def read_file(self, path: str) -> bytes:
        return await asyncio.to_thread(self._read, path)

    async def write_file(self, path: str, data: bytes) -> None:
        logger.debug("writing %s", path)
        await asyncio.to_thread(self._write, path, data)

    async def delete_file(self, path: str) -> None:
        logger.debug("deleting %s", path)
        await asyncio.to_thread(self._delete, path)

    async def list_directory(self, path: str) -> list[str]:
        return await asyncio.to_thread(self._list, path)

    async def exists(self, path: str) -> bool:
        return await asyncio.to_thread(os.path.isfile, self._local_path(path))


class SubdirBackend(StorageBackend):
    """View of another backend rooted at a subdirectory."""

    def __init__(self, backend: StorageBackend, subdir: str) -> None:
        self.backend = backend
        self.subdir = normalize_path(subdir)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.backend!r}, {self.subdir!r})"

    def _path(self, path: str) -> str:
        return posixpath.join(self.subdir, normalize_path(path))

    async def read_file(self, path: str) -> bytes:
        try:
            return await self.backend.read_file(self._path(path))
        except NotFound as exc:
            raise NotFound(path) from exc

    async def write_file(self, path: str, data: bytes) -> None:
        await self.backend.write_file(self._path(path), data)

    async def delete_file(self, path: str) -> None:
        try:
            await self.backend.delete_file(self._path(path))
        except NotFound as exc:
            raise NotFound(path) from exc

    async def list_directory(self, path: str) -> list[str]:
        return await self.backend.list_directory(self._path(path))

    async def exists(self, path: str) -> bool:
        return await self.backend.exists(self._path(path))
