# objects.py -- Access to base git objects
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

"""Access to base git objects.

Objects are encoded in the canonical git layout: a ``"<type> <length>\\0"``
header followed by the type-specific payload. The id of an object is the
SHA-1 of that byte sequence, rendered as 40 lowercase hex characters.

Decoded objects keep the payload they were read from, so re-encoding an
object that has not been modified reproduces exactly the same bytes (and
therefore the same id), even for legacy objects that do not follow the
canonical formatting rules.
"""

import binascii
import codecs
import posixpath
import stat
from collections.abc import Iterable, Iterator
from hashlib import sha1
from io import BytesIO
from typing import NamedTuple, Optional, Union

from .errors import ObjectFormatException

ObjectID = bytes
RawObjectID = bytes

# Header fields for commits
_TREE_HEADER = b"tree"
_PARENT_HEADER = b"parent"
_AUTHOR_HEADER = b"author"
_COMMITTER_HEADER = b"committer"
_ENCODING_HEADER = b"encoding"

# Header fields for objects
_OBJECT_HEADER = b"object"
_TYPE_HEADER = b"type"
_TAG_HEADER = b"tag"
_TAGGER_HEADER = b"tagger"

S_IFGITLINK = 0o160000

# Mode prefixes recognised in tree entries
_BLOB_MODE_PREFIX = b"100"
_GITLINK_MODE_PREFIX = b"160"
_TREE_MODE_PREFIXES = (b"40", b"040")

KIND_BLOB = "blob"
KIND_TREE = "tree"
KIND_SUBMODULE = "submodule"

DEFAULT_FILE_MODE = 0o100644
DEFAULT_ENCODING = "utf-8"


def sha_to_hex(sha: RawObjectID) -> ObjectID:
    """Takes a string and returns the hex of the sha within."""
    hexsha = binascii.hexlify(sha)
    assert len(hexsha) == 40, f"Incorrect length of sha1 string: {hexsha!r}"
    return hexsha


def hex_to_sha(hex: Union[bytes, str]) -> RawObjectID:
    """Takes a hex sha and returns a binary sha."""
    assert len(hex) == 40, f"Incorrect length of hexsha: {hex!r}"
    try:
        return binascii.unhexlify(hex)
    except TypeError as exc:
        if not isinstance(hex, bytes):
            raise
        raise ValueError(exc.args[0]) from exc


def valid_hexsha(hex: Union[bytes, str]) -> bool:
    """Check whether hex is a full, lowercase hexadecimal object id."""
    if len(hex) != 40:
        return False
    if isinstance(hex, str):
        try:
            hex = hex.encode("ascii")
        except UnicodeEncodeError:
            return False
    return all(c in b"0123456789abcdef" for c in hex)


def hex_to_filename(path: str, hex: Union[bytes, str]) -> str:
    """Takes a hex sha and returns its loose object path under path."""
    if isinstance(hex, bytes):
        hex = hex.decode("ascii")
    return posixpath.join(path, hex[:2], hex[2:]) if path else f"{hex[:2]}/{hex[2:]}"


def object_header(type_name: bytes, length: int) -> bytes:
    """Return an object header for the given type and content length."""
    return type_name + b" " + str(length).encode("ascii") + b"\0"


def mode_kind(mode: bytes) -> str:
    """Map the textual mode of a tree entry to the kind of object it names.

    Args:
      mode: Octal mode as found in a serialized tree (e.g. b"100644")
    Returns: one of KIND_BLOB, KIND_SUBMODULE or KIND_TREE
    Raises:
      ObjectFormatException: if the mode has no recognised prefix
    """
    if mode.startswith(_BLOB_MODE_PREFIX):
        return KIND_BLOB
    if mode.startswith(_GITLINK_MODE_PREFIX):
        return KIND_SUBMODULE
    if mode.startswith(_TREE_MODE_PREFIXES):
        return KIND_TREE
    raise ObjectFormatException(f"Invalid mode {mode!r}")


def _kind_for_mode(mode: int) -> str:
    return mode_kind(f"{mode:04o}".encode("ascii"))


def check_hexsha(hex: Union[bytes, str], error_msg: str) -> None:
    """Check if a string is a valid hex sha string.

    Args:
      hex: Hex string to check
      error_msg: Error message to use in exception
    Raises:
      ObjectFormatException: Raised when the string is not valid
    """
    if not valid_hexsha(hex):
        raise ObjectFormatException(f"{error_msg} {hex!r}")


def parse_timezone(text: bytes) -> tuple[int, bool]:
    """Parse a timezone text fragment (e.g. '+0100').

    Args:
      text: Text to parse.
    Returns: Tuple with timezone as seconds difference to UTC
        and a boolean indicating whether this was a UTC timezone
        prefixed with a negative sign (-0000).
    """
    # cgit parses the first character as the sign, and the rest
    #  as an integer (using strtol), which could also be negative.
    #  We do the same for compatibility. See #697828.
    if text[0] not in b"+-":
        raise ValueError("Timezone must start with + or - ({})".format(text))
    sign = text[:1]
    offset = int(text[1:])
    if sign == b"-":
        offset = -offset
    unnecessary_negative_timezone = offset >= 0 and sign == b"-"
    signum = ((offset < 0) and -1) or 1
    offset = abs(offset)
    hours = int(offset / 100)
    minutes = offset % 100
    return (
        signum * (hours * 3600 + minutes * 60),
        unnecessary_negative_timezone,
    )


def format_timezone(offset: int, unnecessary_negative_timezone: bool = False) -> bytes:
    """Format a timezone for Git serialization.

    Args:
      offset: Timezone offset as seconds difference to UTC
      unnecessary_negative_timezone: Whether to use a minus sign for
        UTC or positive timezones (-0000 and --700 rather than +0000 / +0700).
    """
    if offset % 60 != 0:
        raise ValueError("Unable to handle non-minute offset.")
    if offset < 0 or unnecessary_negative_timezone:
        sign = "-"
        offset = -offset
    else:
        sign = "+"
    return ("%c%02d%02d" % (sign, offset / 3600, (offset / 60) % 60)).encode("ascii")  # noqa: UP031


def format_identity(
    name: str, email: str, timestamp: int, timezone: int = 0
) -> str:
    """Build an author/committer/tagger line value.

    Args:
      name: Person name
      email: E-mail address
      timestamp: Seconds since the epoch
      timezone: Offset to UTC in seconds
    Returns: identity string such as ``"Jane <jane@example.com> 1700000000 +0100"``
    """
    return f"{name} <{email}> {timestamp} {format_timezone(timezone).decode('ascii')}"


def parse_identity(identity: str) -> tuple[str, Optional[int], Optional[int]]:
    """Split an identity line value into person, timestamp and timezone.

    Identities without a trailing time stamp (as found in some old tags) are
    returned with None for the timestamp and timezone.
    """
    sep = identity.rfind("> ")
    if sep == -1:
        return identity, None, None
    person = identity[: sep + 1]
    try:
        timetext, timezonetext = identity[sep + 2 :].rsplit(" ", 1)
        timestamp = int(timetext)
        timezone = parse_timezone(timezonetext.encode("ascii"))[0]
    except (ValueError, UnicodeEncodeError):
        return identity, None, None
    return person, timestamp, timezone


def _text_codec(encoding: Optional[bytes]) -> str:
    if not encoding:
        return DEFAULT_ENCODING
    try:
        return codecs.lookup(encoding.decode("ascii")).name
    except (LookupError, UnicodeDecodeError):
        return DEFAULT_ENCODING


def _decode_text(value: bytes, codec: str = DEFAULT_ENCODING) -> str:
    # surrogateescape keeps undecodable bytes, so _encode_text gives them back
    return value.decode(codec, "surrogateescape")


def _encode_text(value: Union[str, bytes], codec: str = DEFAULT_ENCODING) -> bytes:
    if isinstance(value, bytes):
        return value
    return value.encode(codec, "surrogateescape")


def serializable_property(name: str, docstring: Optional[str] = None) -> property:
    """A property that helps tracking whether serialization is necessary."""

    def set(obj: "ShaFile", value: object) -> None:
        setattr(obj, "_" + name, value)
        obj._needs_serialization = True

    def get(obj: "ShaFile") -> object:
        return getattr(obj, "_" + name)

    return property(get, set, doc=docstring)


def object_class(type: Union[bytes, int]) -> Optional[type["ShaFile"]]:
    """Get the object class corresponding to the given type.

    Args:
      type: Either a type name string or a numeric type.
    Returns: The ShaFile subclass corresponding to the given type, or None if
        type is not a valid type name/number.
    """
    return _TYPE_MAP.get(type, None)


def parse_object_envelope(data: bytes) -> tuple[bytes, bytes]:
    """Split an uncompressed loose object into type name and payload.

    Args:
      data: ``b"<type> <length>\\0<payload>"``
    Returns: tuple of (type_name, payload)
    Raises:
      ObjectFormatException: if the header is malformed or the length field
        does not match the payload
    """
    header_end = data.find(b"\0")
    if header_end == -1:
        raise ObjectFormatException("Invalid object header, no \\0")
    header = data[:header_end]
    payload = data[header_end + 1 :]
    parts = header.split(b" ")
    if len(parts) != 2:
        raise ObjectFormatException(f"Invalid object header {header!r}")
    type_name, size_text = parts
    if object_class(type_name) is None:
        raise ObjectFormatException(f"Not a known type: {type_name!r}")
    if (
        not size_text
        or not size_text.isdigit()
        or (size_text.startswith(b"0") and size_text != b"0")
    ):
        raise ObjectFormatException(f"Size is not in canonical format: {size_text!r}")
    if int(size_text) != len(payload):
        raise ObjectFormatException(
            f"Length mismatch: header says {int(size_text)}, payload has {len(payload)}"
        )
    return type_name, payload


def _parse_message(
    chunks: Iterable[bytes],
) -> Iterator[Union[tuple[None, None], tuple[Optional[bytes], bytes]]]:
    """Parse a message with a list of fields and a body.

    Args:
      chunks: the raw chunks of the tag or commit object.
    Returns: iterator of tuples of (field, value), one per header line, in the
        order read from the text, possibly including duplicates. Includes a
        field named None for the freeform tag/commit text.
    """
    f = BytesIO(b"".join(chunks))
    k = None
    v = b""
    eof = False

    def _strip_last_newline(value: bytes) -> bytes:
        """Strip the last newline from value."""
        if value and value.endswith(b"\n"):
            return value[:-1]
        return value

    # Parse the headers
    #
    # Headers can contain newlines. The next line is indented with a space.
    # We store the latest key as 'k', and the accumulated value as 'v'.
    for line in f:
        if line.startswith(b" "):
            # Indented continuation of the previous line
            v += line[1:]
        else:
            if k is not None:
                # We parsed a new header, return its value
                yield (k, _strip_last_newline(v))
            if line == b"\n":
                # Empty line indicates end of headers
                break
            try:
                (k, v) = line.split(b" ", 1)
            except ValueError as exc:
                raise ObjectFormatException(f"Malformed header line {line!r}") from exc

    else:
        # We reached end of file before the headers ended. We still need to
        # return the previous header, then we need to return a None field for
        # the text.
        eof = True
        if k is not None:
            yield (k, _strip_last_newline(v))
        yield (None, None)

    if not eof:
        # We didn't reach the end of file while parsing headers. We can return
        # the rest of the file as a message.
        yield (None, f.read())


def _format_message(
    headers: Iterable[tuple[bytes, bytes]], body: Optional[bytes]
) -> Iterator[bytes]:
    for field, value in headers:
        lines = value.split(b"\n")
        yield field + b" " + lines[0] + b"\n"
        for line in lines[1:]:
            yield b" " + line + b"\n"
    yield b"\n"  # There must be a new line after the headers
    if body:
        yield body


class ShaFile:
    """A git SHA file."""

    type_name: bytes
    type_num: int
    _needs_serialization: bool
    _chunked_text: Optional[list[bytes]]
    _sha: Optional[ObjectID]

    def __init__(self) -> None:
        """Initialize a ShaFile."""
        self._sha = None
        self._chunked_text = None
        self._needs_serialization = True

    def _deserialize(self, chunks: list[bytes]) -> None:
        raise NotImplementedError(self._deserialize)

    def _serialize(self) -> list[bytes]:
        raise NotImplementedError(self._serialize)

    def check(self) -> None:
        """Check this object for internal consistency.

        Raises:
          ObjectFormatException: if the object is malformed in some way
        """

    @staticmethod
    def from_raw_string(
        type_name: Union[bytes, int], string: bytes, sha: Optional[ObjectID] = None
    ) -> "ShaFile":
        """Creates an object of the indicated type from the raw string given.

        Args:
          type_name: The type name (or numeric type) of the object.
          string: The raw uncompressed payload.
          sha: Optional known sha for the object
        """
        cls = object_class(type_name)
        if cls is None:
            raise ObjectFormatException(f"Not a known type: {type_name!r}")
        obj = cls()
        obj.set_raw_string(string, sha)
        return obj

    def set_raw_string(self, text: bytes, sha: Optional[ObjectID] = None) -> None:
        """Set the contents of this object from a serialized string."""
        if not isinstance(text, bytes):
            raise TypeError(f"Expected bytes for text, got {text!r}")
        self.set_raw_chunks([text], sha)

    def set_raw_chunks(self, chunks: list[bytes], sha: Optional[ObjectID] = None) -> None:
        """Set the contents of this object from a list of chunks."""
        self._deserialize(chunks)
        self.check()
        self._chunked_text = chunks
        self._sha = sha
        self._needs_serialization = False

    def as_raw_chunks(self) -> list[bytes]:
        """Return chunks with serialization of the object.

        Returns: List of strings, not necessarily one per line
        """
        if self._needs_serialization:
            self._sha = None
            self._chunked_text = self._serialize()
            self._needs_serialization = False
        assert self._chunked_text is not None
        return self._chunked_text

    def as_raw_string(self) -> bytes:
        """Return raw string with serialization of the object.

        Returns: String object
        """
        return b"".join(self.as_raw_chunks())

    def raw_length(self) -> int:
        """Returns the length of the raw string of this object."""
        return sum(map(len, self.as_raw_chunks()))

    def _header(self) -> bytes:
        return object_header(self.type_name, self.raw_length())

    def as_legacy_object(self) -> bytes:
        """Return the uncompressed loose object form (header and payload)."""
        return self._header() + self.as_raw_string()

    def sha(self):  # type: ignore[no-untyped-def]
        """The SHA1 object that is the name of this object."""
        ret = sha1()
        ret.update(self._header())
        for chunk in self.as_raw_chunks():
            ret.update(chunk)
        return ret

    @property
    def id(self) -> ObjectID:
        """The hex SHA of this object."""
        if self._sha is None or self._needs_serialization:
            self._sha = self.sha().hexdigest().encode("ascii")
        return self._sha

    def copy(self) -> "ShaFile":
        """Create a new copy of this SHA1 object from its raw string."""
        return ShaFile.from_raw_string(self.type_name, self.as_raw_string(), self.id)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.id!r}>"

    def __ne__(self, other: object) -> bool:
        """Check whether this object does not match the other."""
        return not isinstance(other, ShaFile) or self.id != other.id

    def __eq__(self, other: object) -> bool:
        """Return True if the SHAs of the two objects match."""
        return isinstance(other, ShaFile) and self.id == other.id

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, ShaFile):
            raise TypeError
        return self.id < other.id

    def __le__(self, other: object) -> bool:
        if not isinstance(other, ShaFile):
            raise TypeError
        return self.id <= other.id

    def __hash__(self) -> int:
        return hash(self.id)


class Blob(ShaFile):
    """A Git Blob object."""

    type_name = b"blob"
    type_num = 3

    def __init__(self) -> None:
        super().__init__()
        self._chunked_text = []
        self._needs_serialization = False

    def _get_data(self) -> bytes:
        return self.as_raw_string()

    def _set_data(self, data: bytes) -> None:
        self.set_raw_string(data)

    data = property(
        _get_data, _set_data, doc="The text contained within the blob object."
    )

    def _deserialize(self, chunks: list[bytes]) -> None:
        self._chunked_text = chunks

    def _serialize(self) -> list[bytes]:
        assert self._chunked_text is not None
        return self._chunked_text

    @classmethod
    def from_string(cls, string: bytes) -> "Blob":
        """Create a blob from a string."""
        blob = cls()
        blob.set_raw_string(string)
        return blob


class TreeEntry(NamedTuple):
    """Named tuple encapsulating a single tree entry."""

    name: bytes
    mode: int
    sha: ObjectID

    @property
    def kind(self) -> str:
        """Kind of object this entry refers to (blob, tree or submodule)."""
        return _kind_for_mode(self.mode)

    def in_path(self, path: bytes) -> "TreeEntry":
        """Return a copy of this entry with the given path prepended."""
        if not isinstance(path, bytes):
            raise TypeError(f"Expected bytes for path, got {path!r}")
        return TreeEntry(posixpath.join(path, self.name), self.mode, self.sha)


def key_entry(entry: tuple[bytes, tuple[int, ObjectID]]) -> bytes:
    """Sort key for tree entry.

    Directories sort as if their name had a trailing slash, so the file
    "foo" comes before the directory "foo" which comes before "foo.c".

    Args:
      entry: (name, value) tuple
    """
    (name, (mode, _sha)) = entry
    if stat.S_ISDIR(mode):
        name += b"/"
    return name


def key_entry_name_order(entry: tuple[bytes, tuple[int, ObjectID]]) -> bytes:
    """Sort key for tree entry in name order."""
    return entry[0]


def sorted_tree_items(
    entries: dict[bytes, tuple[int, ObjectID]], name_order: bool = False
) -> Iterator[TreeEntry]:
    """Iterate over a tree entries dictionary.

    Args:
      name_order: If True, iterate entries in order of their name. If
        False, iterate entries in tree order, that is, treat subtree entries as
        having '/' appended.
      entries: Dictionary mapping names to (mode, sha) tuples
    Returns: Iterator over (name, mode, hexsha)
    """
    key_func = key_entry_name_order if name_order else key_entry
    for name, entry in sorted(entries.items(), key=key_func):
        mode, hexsha = entry
        # Stricter type checks than normal to mirror checks in the Rust version.
        mode = int(mode)
        if not isinstance(hexsha, bytes):
            raise TypeError(f"Expected bytes for SHA, got {hexsha!r}")
        yield TreeEntry(name, mode, hexsha)


def parse_tree(text: bytes, strict: bool = True) -> Iterator[tuple[bytes, int, ObjectID]]:
    """Parse a tree text.

    Args:
      text: Serialized text to parse
      strict: Also reject unsorted and duplicate entries
    Returns: iterator of tuples of (name, mode, sha)

    Raises:
      ObjectFormatException: if the object was malformed in some way
    """
    count = 0
    length = len(text)
    last: Optional[bytes] = None
    seen: set[bytes] = set()
    while count < length:
        mode_end = text.find(b" ", count)
        if mode_end == -1:
            raise ObjectFormatException("Truncated tree entry: no mode terminator")
        mode_text = text[count:mode_end]
        mode_kind(mode_text)
        try:
            mode = int(mode_text, 8)
        except ValueError as exc:
            raise ObjectFormatException(f"Invalid mode {mode_text!r}") from exc
        name_end = text.find(b"\0", mode_end)
        if name_end == -1:
            raise ObjectFormatException("Truncated tree entry: no name terminator")
        name = text[mode_end + 1 : name_end]
        if not name or b"/" in name:
            raise ObjectFormatException(f"Invalid tree entry name {name!r}")
        count = name_end + 21
        sha = text[name_end + 1 : count]
        if len(sha) != 20:
            raise ObjectFormatException("Sha has invalid length")
        if strict:
            if name in seen:
                raise ObjectFormatException(f"Duplicate entry {name!r}")
            key = key_entry((name, (mode, b"")))
            if last is not None and key < last:
                raise ObjectFormatException("Entries are not in sorted order")
            last = key
            seen.add(name)
        yield (name, mode, sha_to_hex(sha))


def serialize_tree(items: Iterable[tuple[bytes, int, ObjectID]]) -> Iterator[bytes]:
    """Serialize the items in a tree to a text.

    Args:
      items: Sorted iterable over (name, mode, sha) tuples
    Returns: Serialized tree text as chunks
    """
    for name, mode, hexsha in items:
        yield (f"{mode:04o}".encode("ascii") + b" " + name + b"\0" + hex_to_sha(hexsha))


def pretty_format_tree_entry(
    name: bytes, mode: int, hexsha: ObjectID, encoding: str = "utf-8"
) -> str:
    """Pretty format tree entry.

    Args:
      name: Name of the directory entry
      mode: Mode of entry
      hexsha: Hexsha of the referenced object
      encoding: Character encoding for the name
    Returns: string describing the tree entry
    """
    kind = _kind_for_mode(mode)
    if kind == KIND_SUBMODULE:
        kind = "commit"
    return "{:04o} {} {}\t{}\n".format(
        mode,
        kind,
        hexsha.decode("ascii"),
        name.decode(encoding, "replace"),
    )


class Tree(ShaFile):
    """A Git tree object."""

    type_name = b"tree"
    type_num = 2

    def __init__(self) -> None:
        super().__init__()
        self._entries: dict[bytes, tuple[int, ObjectID]] = {}

    def __contains__(self, name: bytes) -> bool:
        return name in self._entries

    def __getitem__(self, name: bytes) -> tuple[int, ObjectID]:
        return self._entries[name]

    def __setitem__(self, name: bytes, value: tuple[int, ObjectID]) -> None:
        """Set a tree entry by name.

        Args:
          name: The name of the entry, as a string.
          value: A tuple of (mode, hexsha), where mode is the mode of the
            entry as an integral type and hexsha is the hex SHA of the entry as
            a string.
        """
        mode, hexsha = value
        if not isinstance(name, bytes) or not name or b"/" in name:
            raise ValueError(f"Invalid tree entry name {name!r}")
        _kind_for_mode(mode)
        self._entries[name] = (mode, hexsha)
        self._needs_serialization = True

    def __delitem__(self, name: bytes) -> None:
        del self._entries[name]
        self._needs_serialization = True

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[bytes]:
        return iter(self._entries)

    def add(self, name: bytes, mode: int, hexsha: ObjectID) -> None:
        """Add an entry to the tree.

        Args:
          mode: The mode of the entry as an integral type. Not all
            possible modes are supported by git; see check() for details.
          name: The name of the entry, as a string.
          hexsha: The hex SHA of the entry as a string.
        """
        self[name] = (mode, hexsha)

    def iteritems(self, name_order: bool = False) -> Iterator[TreeEntry]:
        """Iterate over entries.

        Args:
          name_order: If True, iterate in name order instead of tree
            order.
        Returns: Iterator over (name, mode, sha) tuples
        """
        return sorted_tree_items(self._entries, name_order)

    def items(self) -> list[TreeEntry]:
        """Return the sorted entries in this tree.

        Returns: List with (name, mode, sha) tuples
        """
        return list(self.iteritems())

    def _deserialize(self, chunks: list[bytes]) -> None:
        """Grab the entries in the tree."""
        parsed_entries = parse_tree(b"".join(chunks))
        self._entries = {n: (m, s) for n, m, s in parsed_entries}

    def _serialize(self) -> list[bytes]:
        return list(serialize_tree(self.iteritems()))

    def as_pretty_string(self) -> str:
        """Return a human-readable listing of the tree, like git ls-tree."""
        text: list[str] = []
        for name, mode, hexsha in self.iteritems():
            text.append(pretty_format_tree_entry(name, mode, hexsha))
        return "".join(text)


class Commit(ShaFile):
    """A git commit object."""

    type_name = b"commit"
    type_num = 1

    def __init__(self) -> None:
        super().__init__()
        self._tree: Optional[ObjectID] = None
        self._parents: list[ObjectID] = []
        self._author: Optional[str] = None
        self._committer: Optional[str] = None
        self._encoding: Optional[bytes] = None
        self._extra: list[tuple[bytes, bytes]] = []
        self._message = ""

    def _codec(self) -> str:
        return _text_codec(self._encoding)

    def _deserialize(self, chunks: list[bytes]) -> None:
        self._tree = None
        self._parents = []
        self._extra = []
        self._author = None
        self._committer = None
        self._encoding = None
        raw: dict[bytes, bytes] = {}
        message = b""
        for field, value in _parse_message(chunks):
            if field == _TREE_HEADER:
                if self._tree is not None:
                    raise ObjectFormatException("multiple tree fields")
                self._tree = value
            elif field == _PARENT_HEADER:
                assert value is not None
                self._parents.append(value)
            elif field in (_AUTHOR_HEADER, _COMMITTER_HEADER):
                if field in raw:
                    raise ObjectFormatException(f"multiple {field.decode()} fields")
                assert value is not None
                raw[field] = value
            elif field == _ENCODING_HEADER:
                self._encoding = value
            elif field is None:
                message = value or b""
            else:
                assert value is not None
                self._extra.append((field, value))
        codec = self._codec()
        if _AUTHOR_HEADER in raw:
            self._author = _decode_text(raw[_AUTHOR_HEADER], codec)
        if _COMMITTER_HEADER in raw:
            self._committer = _decode_text(raw[_COMMITTER_HEADER], codec)
        self._message = _decode_text(message, codec)

    def check(self) -> None:
        """Check this object for internal consistency.

        Raises:
          ObjectFormatException: if the object is malformed in some way
        """
        if self._tree is None:
            raise ObjectFormatException("missing tree")
        check_hexsha(self._tree, "invalid tree sha")
        for parent in self._parents:
            check_hexsha(parent, "invalid parent sha")
        if self._author is None:
            raise ObjectFormatException("missing author")
        if self._committer is None:
            raise ObjectFormatException("missing committer")

    def _serialize(self) -> list[bytes]:
        codec = self._codec()
        headers: list[tuple[bytes, bytes]] = []
        if self._tree is None:
            raise ObjectFormatException("missing tree")
        headers.append((_TREE_HEADER, self._tree))
        for p in self._parents:
            headers.append((_PARENT_HEADER, p))
        headers.append((_AUTHOR_HEADER, _encode_text(self._author or "", codec)))
        headers.append((_COMMITTER_HEADER, _encode_text(self._committer or "", codec)))
        if self._encoding:
            headers.append((_ENCODING_HEADER, self._encoding))
        for field, value in self._extra:
            headers.append((field, value))
        return list(_format_message(headers, _encode_text(self._message, codec)))

    tree = serializable_property("tree", "Tree that is the state of this commit")

    def _get_parents(self) -> list[ObjectID]:
        """Return a list of parents of this commit."""
        return self._parents

    def _set_parents(self, value: list[ObjectID]) -> None:
        """Set a list of parents of this commit."""
        self._needs_serialization = True
        self._parents = list(value)

    parents = property(
        _get_parents,
        _set_parents,
        doc="Parents of this commit, by their SHA1.",
    )

    @property
    def extra(self) -> list[tuple[bytes, bytes]]:
        """Return extra settings of this commit."""
        return self._extra

    author = serializable_property(
        "author", "The identity of the author of the commit"
    )

    committer = serializable_property(
        "committer", "The identity of the committer of the commit"
    )

    message = serializable_property("message", "The commit message")

    encoding = serializable_property("encoding", "Encoding of the commit message.")

    @property
    def commit_time(self) -> Optional[int]:
        """The timestamp of the commit, as seconds since the epoch."""
        return parse_identity(self._committer or "")[1]

    @property
    def author_time(self) -> Optional[int]:
        """The timestamp the commit was written, as seconds since the epoch."""
        return parse_identity(self._author or "")[1]


class Tag(ShaFile):
    """A Git Tag object."""

    type_name = b"tag"
    type_num = 4

    def __init__(self) -> None:
        super().__init__()
        self._object_class: Optional[type[ShaFile]] = None
        self._object_sha: Optional[ObjectID] = None
        self._name: Optional[bytes] = None
        self._tagger: Optional[str] = None
        self._message = ""
        self._extra: list[tuple[bytes, bytes]] = []

    def check(self) -> None:
        """Check this object for internal consistency.

        Raises:
          ObjectFormatException: if the object is malformed in some way
        """
        if self._object_sha is None:
            raise ObjectFormatException("missing object sha")
        check_hexsha(self._object_sha, "invalid object sha")
        if self._object_class is None:
            raise ObjectFormatException("missing type")
        if self._name is None:
            raise ObjectFormatException("missing tag name")

    def _serialize(self) -> list[bytes]:
        headers: list[tuple[bytes, bytes]] = []
        if self._object_sha is None or self._object_class is None:
            raise ObjectFormatException("missing object")
        headers.append((_OBJECT_HEADER, self._object_sha))
        headers.append((_TYPE_HEADER, self._object_class.type_name))
        headers.append((_TAG_HEADER, self._name or b""))
        if self._tagger:
            headers.append((_TAGGER_HEADER, _encode_text(self._tagger)))
        for field, value in self._extra:
            headers.append((field, value))
        return list(_format_message(headers, _encode_text(self._message)))

    def _deserialize(self, chunks: list[bytes]) -> None:
        """Grab the metadata attached to the tag."""
        self._tagger = None
        self._object_sha = None
        self._object_class = None
        self._name = None
        self._extra = []
        self._message = ""
        for field, value in _parse_message(chunks):
            if field == _OBJECT_HEADER:
                self._object_sha = value
            elif field == _TYPE_HEADER:
                assert value is not None
                obj_class = object_class(value)
                if not obj_class:
                    raise ObjectFormatException(f"Not a known type: {value!r}")
                self._object_class = obj_class
            elif field == _TAG_HEADER:
                self._name = value
            elif field == _TAGGER_HEADER:
                assert value is not None
                self._tagger = _decode_text(value)
            elif field is None:
                self._message = _decode_text(value or b"")
            else:
                assert value is not None
                self._extra.append((field, value))

    def _get_object(self) -> tuple[type[ShaFile], ObjectID]:
        """Get the object pointed to by this tag.

        Returns: tuple of (object class, sha).
        """
        assert self._object_class is not None and self._object_sha is not None
        return (self._object_class, self._object_sha)

    def _set_object(self, value: tuple[type[ShaFile], ObjectID]) -> None:
        (self._object_class, self._object_sha) = value
        self._needs_serialization = True

    object = property(_get_object, _set_object)

    name = serializable_property("name", "The name of this tag")
    tagger = serializable_property(
        "tagger", "Returns the name of the person who created this tag"
    )
    message = serializable_property("message", "the message attached to this tag")

    @property
    def tag_time(self) -> Optional[int]:
        """The creation timestamp of the tag, as seconds since the epoch."""
        return parse_identity(self._tagger or "")[1]


OBJECT_CLASSES = (
    Commit,
    Tree,
    Blob,
    Tag,
)

_TYPE_MAP: dict[Union[bytes, int], type[ShaFile]] = {}

for cls in OBJECT_CLASSES:
    _TYPE_MAP[cls.type_name] = cls
    _TYPE_MAP[cls.type_num] = cls


def encode(obj: ShaFile) -> tuple[bytes, ObjectID]:
    """Encode an object in its canonical loose form.

    Returns: tuple of (uncompressed header and payload, hex object id)
    """
    return obj.as_legacy_object(), obj.id


def decode(type_name: Optional[bytes], data: bytes) -> ShaFile:
    """Decode an uncompressed loose object.

    Args:
      type_name: Expected object type, or None to accept any type
      data: Header and payload, as produced by encode()
    Returns: A ShaFile subclass instance
    Raises:
      ObjectFormatException: if the data is malformed or of another type
    """
    actual_type, payload = parse_object_envelope(data)
    if type_name is not None and actual_type != type_name:
        raise ObjectFormatException(
            f"Expected {type_name!r} object, found {actual_type!r}"
        )
    return ShaFile.from_raw_string(actual_type, payload)
