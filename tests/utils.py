# utils.py -- Test utilities for gitcenter
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

"""Utility functions common to gitcenter tests."""

import struct
import zlib
from collections.abc import Sequence
from hashlib import sha1
from typing import Optional, Union

from gitcenter.objects import Commit, ShaFile, hex_to_sha
from gitcenter.pack import OFS_DELTA, REF_DELTA

# Plain files are very frequently used in tests, so let the mode be very short.
F = 0o100644  # Shorthand mode for Files.

DEFAULT_IDENTITY = "Test Author <test@nodomain.com> 1262304000 +0000"


def make_commit(**attrs: object) -> Commit:
    """Make a Commit object with a default set of members.

    Args:
      attrs: dict of attributes to overwrite from the default values.
    Returns: A newly initialized Commit object.
    """
    all_attrs = {
        "author": DEFAULT_IDENTITY,
        "committer": DEFAULT_IDENTITY,
        "message": "Test message.\n",
        "parents": [],
        "tree": b"0" * 40,
    }
    all_attrs.update(attrs)
    commit = Commit()
    for name, value in all_attrs.items():
        setattr(commit, name, value)
    return commit


def _encode_varint(size: int) -> bytes:
    ret = bytearray()
    c = size & 0x7F
    size >>= 7
    while size:
        ret.append(c | 0x80)
        c = size & 0x7F
        size >>= 7
    ret.append(c)
    return bytes(ret)


def make_delta(base: bytes, target: bytes) -> bytes:
    """Create a delta that copies the common prefix of base and target."""
    prefix = 0
    while (
        prefix < min(len(base), len(target), 0xFFFF)
        and base[prefix] == target[prefix]
    ):
        prefix += 1
    out = bytearray(_encode_varint(len(base)) + _encode_varint(len(target)))
    if prefix:
        # Copy from offset 0, with a two byte size
        out.append(0x80 | 0x10 | 0x20)
        out += struct.pack("<H", prefix)
    rest = target[prefix:]
    for i in range(0, len(rest), 0x7F):
        chunk = rest[i : i + 0x7F]
        out.append(len(chunk))
        out += chunk
    return bytes(out)


def _pack_object_header(type_num: int, size: int) -> bytes:
    c = (type_num << 4) | (size & 0x0F)
    size >>= 4
    ret = bytearray()
    while size:
        ret.append(c | 0x80)
        c = size & 0x7F
        size >>= 7
    ret.append(c)
    return bytes(ret)


def _ofs_delta_offset(delta_base_offset: int) -> bytes:
    ret = bytearray([delta_base_offset & 0x7F])
    delta_base_offset >>= 7
    while delta_base_offset:
        delta_base_offset -= 1
        ret.insert(0, 0x80 | (delta_base_offset & 0x7F))
        delta_base_offset >>= 7
    return bytes(ret)


PackEntry = Union[ShaFile, tuple[int, Union[int, bytes], bytes, bytes]]


def build_pack(entries: Sequence[PackEntry]) -> tuple[bytes, bytes]:
    """Build the contents of a pack and its version 2 index.

    Args:
      entries: Objects to pack. Each entry is either a ShaFile, stored in
        full, or a tuple (delta_type, base, delta, sha) where base is the
        position of the base entry for OFS_DELTA or the binary sha of the
        base for REF_DELTA, and sha is the hex id of the resulting object.
    Returns: tuple of (pack data, index data)
    """
    data = bytearray(b"PACK" + struct.pack(">LL", 2, len(entries)))
    offsets: list[int] = []
    index_entries: list[tuple[bytes, int, int]] = []
    for entry in entries:
        offset = len(data)
        offsets.append(offset)
        if isinstance(entry, ShaFile):
            raw = entry.as_raw_string()
            record = _pack_object_header(entry.type_num, len(raw)) + zlib.compress(raw)
            sha = entry.id
        else:
            type_num, base, delta, sha = entry
            record = _pack_object_header(type_num, len(delta))
            if type_num == OFS_DELTA:
                assert isinstance(base, int)
                record += _ofs_delta_offset(offset - offsets[base])
            else:
                assert type_num == REF_DELTA and isinstance(base, bytes)
                record += base
            record += zlib.compress(delta)
        data += record
        index_entries.append((hex_to_sha(sha), offset, zlib.crc32(record)))
    pack_checksum = sha1(data).digest()
    data += pack_checksum
    return bytes(data), build_index(index_entries, pack_checksum)


def build_index(
    entries: Sequence[tuple[bytes, int, int]], pack_checksum: bytes
) -> bytes:
    """Write a version 2 pack index.

    Args:
      entries: (binary sha, offset, crc32) tuples
      pack_checksum: Binary checksum of the pack data
    """
    entries = sorted(entries)
    out = bytearray(b"\377tOc" + struct.pack(">L", 2))
    fan_out = [0] * 256
    for name, _offset, _crc in entries:
        fan_out[name[0]] += 1
    total = 0
    for i in range(256):
        total += fan_out[i]
        out += struct.pack(">L", total)
    for name, _offset, _crc in entries:
        out += name
    for _name, _offset, crc in entries:
        out += struct.pack(">L", crc & 0xFFFFFFFF)
    for _name, offset, _crc in entries:
        out += struct.pack(">L", offset)
    out += pack_checksum
    out += sha1(out).digest()
    return bytes(out)


def pack_name(pack_data: bytes, prefix: Optional[str] = None) -> str:
    """Return the conventional base name for a pack."""
    name = "pack-" + sha1(pack_data[:-20]).hexdigest()
    if prefix:
        name = prefix + "/" + name
    return name
