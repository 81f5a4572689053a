# pack.py -- Read-only access to git pack files in remote storage
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

"""Classes for reading packed objects.

A pack is stored as two files under ``objects/pack/``: ``pack-<sha>.idx``,
a version 2 index mapping object ids to offsets, and ``pack-<sha>.pack``,
the compressed object data. Packs are consulted only for objects that are
not available as loose objects; gitcenter never writes or repacks them.

The index of every pack is fetched on first use, the (larger) pack data only
when an object is actually found in it.
"""

import struct
import zlib
from collections.abc import Iterator
from io import BytesIO
from typing import Callable, Optional, Union

from .backend import StorageBackend
from .errors import ApplyDeltaError, FormatError, ObjectMissing
from .log_utils import getLogger
from .objects import ObjectID, RawObjectID, hex_to_sha, object_class, sha_to_hex

logger = getLogger(__name__)

OFS_DELTA = 6
REF_DELTA = 7

DELTA_TYPES = (OFS_DELTA, REF_DELTA)

PACK_DIRECTORY = "objects/pack"

_INDEX_V2_MAGIC = b"\377tOc"


def take_msb_bytes(read: Callable[[int], bytes]) -> list[int]:
    """Read bytes marked with most significant bit.

    Args:
      read: Read function
    Returns: List of the bytes read, as integers
    """
    ret: list[int] = []
    while len(ret) == 0 or ret[-1] & 0x80:
        b = read(1)
        if not b:
            raise FormatError("Truncated variable length integer")
        ret.append(ord(b[:1]))
    return ret


def bisect_find_sha(
    start: int, end: int, sha: bytes, unpack_name: Callable[[int], bytes]
) -> Optional[int]:
    """Find a SHA in a data blob with sorted SHAs.

    Args:
      start: Start index of range to search
      end: End index of range to search
      sha: Sha to find
      unpack_name: Callback to retrieve SHA by index
    Returns: Index of the SHA, or None if it wasn't found
    """
    assert start <= end
    while start <= end:
        i = (start + end) // 2
        file_sha = unpack_name(i)
        if file_sha < sha:
            start = i + 1
        elif file_sha > sha:
            end = i - 1
        else:
            return i
    return None


class PackIndex:
    """Version 2 pack index, held in memory."""

    def __init__(self, contents: bytes) -> None:
        """Parse a version 2 pack index.

        Args:
          contents: Raw contents of the index file
        Raises:
          FormatError: if the contents are not a version 2 index
        """
        self._contents = contents
        if contents[:4] != _INDEX_V2_MAGIC:
            raise FormatError("Not a v2 pack index file")
        (self.version,) = struct.unpack_from(">L", contents, 4)
        if self.version != 2:
            raise FormatError(f"Unsupported pack index version {self.version}")
        self._fan_out_table = self._read_fan_out_table(8)
        self._name_table_offset = 8 + 0x100 * 4
        self._crc32_table_offset = self._name_table_offset + 20 * len(self)
        self._pack_offset_table_offset = self._crc32_table_offset + 4 * len(self)
        self._pack_offset_largetable_offset = self._pack_offset_table_offset + 4 * len(
            self
        )
        if len(contents) < self._pack_offset_largetable_offset + 40:
            raise FormatError("Truncated pack index")

    def _read_fan_out_table(self, start_offset: int) -> list[int]:
        if len(self._contents) < start_offset + 0x100 * 4:
            raise FormatError("Truncated pack index")
        return list(struct.unpack_from(">256L", self._contents, start_offset))

    def __len__(self) -> int:
        """Return the number of entries in this pack index."""
        return self._fan_out_table[-1]

    def __iter__(self) -> Iterator[ObjectID]:
        """Iterate over the hex SHAs in this pack index."""
        for i in range(len(self)):
            yield sha_to_hex(self._unpack_name(i))

    def __contains__(self, sha: Union[ObjectID, RawObjectID]) -> bool:
        try:
            self.object_offset(sha)
        except KeyError:
            return False
        return True

    def _unpack_name(self, i: int) -> bytes:
        offset = self._name_table_offset + i * 20
        return self._contents[offset : offset + 20]

    def _unpack_offset(self, i: int) -> int:
        offset = self._pack_offset_table_offset + i * 4
        offset_val = int(struct.unpack_from(">L", self._contents, offset)[0])
        if offset_val & (2**31):
            offset = self._pack_offset_largetable_offset + (offset_val & (2**31 - 1)) * 8
            offset_val = int(struct.unpack_from(">Q", self._contents, offset)[0])
        return offset_val

    def get_pack_checksum(self) -> bytes:
        """Return the SHA1 checksum stored for the corresponding packfile.

        Returns: 20-byte binary digest
        """
        return bytes(self._contents[-40:-20])

    def object_offset(self, sha: Union[ObjectID, RawObjectID]) -> int:
        """Return the offset in to the corresponding packfile for the object.

        Raises:
          KeyError: if the pack does not contain the object
        """
        if len(sha) == 40:
            sha = hex_to_sha(sha)
        idx = sha[0]
        if idx == 0:
            start = 0
        else:
            start = self._fan_out_table[idx - 1]
        end = self._fan_out_table[idx] - 1
        if end < start:
            raise KeyError(sha)
        i = bisect_find_sha(start, end, sha, self._unpack_name)
        if i is None:
            raise KeyError(sha)
        return self._unpack_offset(i)


def read_pack_header(read: Callable[[int], bytes]) -> tuple[int, int]:
    """Read the header of a pack file.

    Args:
      read: Read function
    Returns: Tuple of (pack version, number of objects).
    """
    header = read(12)
    if len(header) < 12:
        raise FormatError("file too short to contain pack")
    if header[:4] != b"PACK":
        raise FormatError(f"Invalid pack header {header!r}")
    (version,) = struct.unpack_from(">L", header, 4)
    if version not in (2, 3):
        raise FormatError(f"Version was {version}")
    (num_objects,) = struct.unpack_from(">L", header, 8)
    return (version, num_objects)


def unpack_object(
    read: Callable[[int], bytes], data: bytes, offset: int
) -> tuple[int, Union[int, bytes, None], bytes]:
    """Unpack the object that starts at offset.

    Args:
      read: Read function positioned at offset
      data: The complete pack data
      offset: Offset of the object header
    Returns: Tuple of (type number, delta base, inflated data). The delta
        base is the absolute offset of the base for OFS_DELTA, the binary
        sha of the base for REF_DELTA and None otherwise.
    """
    raw = take_msb_bytes(read)
    type_num = (raw[0] >> 4) & 0x07
    size = raw[0] & 0x0F
    for i, byte in enumerate(raw[1:]):
        size += (byte & 0x7F) << ((i * 7) + 4)
    header_length = len(raw)

    delta_base: Union[int, bytes, None]
    if type_num == OFS_DELTA:
        raw = take_msb_bytes(read)
        header_length += len(raw)
        delta_base_offset = raw[0] & 0x7F
        for byte in raw[1:]:
            delta_base_offset += 1
            delta_base_offset <<= 7
            delta_base_offset += byte & 0x7F
        delta_base = offset - delta_base_offset
    elif type_num == REF_DELTA:
        delta_base = read(20)
        if len(delta_base) != 20:
            raise FormatError("Truncated delta base")
        header_length += 20
    else:
        delta_base = None

    decomp_obj = zlib.decompressobj()
    try:
        inflated = decomp_obj.decompress(data[offset + header_length :])
    except zlib.error as exc:
        raise FormatError(f"Corrupt object at offset {offset}: {exc}") from exc
    if not decomp_obj.eof:
        raise FormatError(f"Truncated object at offset {offset}")
    if len(inflated) != size:
        raise FormatError("decompressed data does not match expected size")
    return type_num, delta_base, inflated


def apply_delta(src_buf: bytes, delta: bytes) -> bytes:
    """Based on the similar function in git's patch-delta.c.

    Args:
      src_buf: Source buffer
      delta: Delta instructions
    """
    out = []
    index = 0
    delta_length = len(delta)

    def get_delta_header_size(delta: bytes, index: int) -> tuple[int, int]:
        size = 0
        i = 0
        while index < delta_length:
            cmd = delta[index]
            index += 1
            size |= (cmd & ~0x80) << i
            i += 7
            if not cmd & 0x80:
                break
        return size, index

    src_size, index = get_delta_header_size(delta, index)
    dest_size, index = get_delta_header_size(delta, index)
    if src_size != len(src_buf):
        raise ApplyDeltaError(
            f"Unexpected source buffer size: {src_size} vs {len(src_buf)}"
        )
    while index < delta_length:
        cmd = delta[index]
        index += 1
        if cmd & 0x80:
            cp_off = 0
            for i in range(4):
                if cmd & (1 << i):
                    cp_off |= delta[index] << (i * 8)
                    index += 1
            cp_size = 0
            # Version 3 packs can contain copy sizes larger than 64K.
            for i in range(3):
                if cmd & (1 << (4 + i)):
                    cp_size |= delta[index] << (i * 8)
                    index += 1
            if cp_size == 0:
                cp_size = 0x10000
            if cp_off + cp_size > src_size or cp_size > dest_size:
                raise ApplyDeltaError("Copy operation outside of source buffer")
            out.append(src_buf[cp_off : cp_off + cp_size])
        elif cmd != 0:
            out.append(delta[index : index + cmd])
            index += cmd
        else:
            raise ApplyDeltaError("Invalid opcode 0")

    result = b"".join(out)
    if dest_size != len(result):
        raise ApplyDeltaError("dest size incorrect")
    return result


class Pack:
    """A pack file together with its index."""

    def __init__(self, name: str, index: PackIndex, data: Optional[bytes] = None) -> None:
        self.name = name
        self.index = index
        self._data = data

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name!r})"

    def __contains__(self, sha: Union[ObjectID, RawObjectID]) -> bool:
        return sha in self.index

    def __len__(self) -> int:
        return len(self.index)

    @property
    def data_loaded(self) -> bool:
        return self._data is not None

    def set_data(self, data: bytes) -> None:
        """Attach the raw pack data, checking its header."""
        read_pack_header(BytesIO(data).read)
        if data[-20:] != self.index.get_pack_checksum():
            raise FormatError(f"Pack checksum mismatch for {self.name}")
        self._data = data

    def _object_at(self, offset: int) -> tuple[int, Union[int, bytes, None], bytes]:
        assert self._data is not None
        f = BytesIO(self._data)
        f.seek(offset)
        return unpack_object(f.read, self._data, offset)

    def get_raw(self, sha: Union[ObjectID, RawObjectID]) -> tuple[bytes, bytes]:
        """Return the type name and payload of an object in this pack.

        Delta chains are resolved within the pack.

        Raises:
          KeyError: if the object (or a delta base) is not in this pack
          FormatError: if the pack data is corrupt
        """
        if self._data is None:
            raise ValueError(f"Data for {self.name} has not been loaded")
        offset = self.index.object_offset(sha)
        type_num, base, data = self._object_at(offset)
        delta_stack = []
        seen = {offset}
        while type_num in DELTA_TYPES:
            delta_stack.append(data)
            if type_num == OFS_DELTA:
                assert isinstance(base, int)
                offset = base
            else:
                assert isinstance(base, bytes)
                offset = self.index.object_offset(base)
            if offset in seen:
                raise FormatError(f"Delta cycle in {self.name}")
            seen.add(offset)
            type_num, base, data = self._object_at(offset)
        for delta in reversed(delta_stack):
            data = apply_delta(data, delta)
        cls = object_class(type_num)
        if cls is None:
            raise FormatError(f"Unknown object type {type_num}")
        return cls.type_name, data


class PackStore:
    """Lookup of packed objects through a storage backend.

    The pack directory is listed on the first lookup only. Packs added
    later are picked up by ``rescan()`` (or ``packs()``), so a lookup miss
    costs no extra round trip to the backend.
    """

    def __init__(self, backend: StorageBackend, path: str = PACK_DIRECTORY) -> None:
        self.backend = backend
        self.path = path
        self._packs: dict[str, Pack] = {}
        self._scanned = False

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.backend!r})"

    async def rescan(self) -> list[Pack]:
        """Load the indexes of packs that appeared since the last scan.

        Returns: the newly found packs
        """
        names = await self.backend.list_directory(self.path)
        self._scanned = True
        new_packs = []
        for name in names:
            if not (name.startswith("pack-") and name.endswith(".idx")):
                continue
            basename = name[: -len(".idx")]
            if basename in self._packs or basename + ".pack" not in names:
                continue
            contents = await self.backend.read_file(f"{self.path}/{name}")
            pack = Pack(basename, PackIndex(contents))
            logger.debug("loaded index for %s (%d objects)", basename, len(pack))
            self._packs[basename] = pack
            new_packs.append(pack)
        return new_packs

    async def _find_pack(self, sha: ObjectID) -> Optional[Pack]:
        if not self._scanned:
            await self.rescan()
        for pack in self._packs.values():
            if sha in pack:
                return pack
        return None

    async def contains(self, sha: ObjectID) -> bool:
        """Check whether some pack holds the object."""
        return await self._find_pack(sha) is not None

    async def get_raw(self, sha: ObjectID) -> tuple[bytes, bytes]:
        """Obtain the type name and payload of a packed object.

        Raises:
          ObjectMissing: if no pack holds the object
        """
        pack = await self._find_pack(sha)
        if pack is None:
            raise ObjectMissing(sha)
        if not pack.data_loaded:
            pack.set_data(await self.backend.read_file(f"{self.path}/{pack.name}.pack"))
        try:
            return pack.get_raw(sha)
        except KeyError as exc:
            # REF_DELTA against an object outside this pack
            raise ObjectMissing(sha) from exc

    async def packs(self) -> list[Pack]:
        """Return all known packs, rescanning the pack directory."""
        await self.rescan()
        return list(self._packs.values())
