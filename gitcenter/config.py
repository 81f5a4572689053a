# config.py - Reading and writing Git config files
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

"""Reading and writing Git configuration files.

Only the repository's own ``config`` file is used; there is no system or
global configuration on a remote store, and include directives are not
followed.

Settings read by gitcenter:

* ``core.loosecompression`` (or ``core.compression``): zlib level for new
  loose objects
* ``gitcenter.objectcachesize``: number of decoded objects kept in memory
"""

from collections.abc import Iterator
from io import BytesIO
from typing import IO, Optional, Union

Section = tuple[bytes, ...]
Name = bytes
Value = bytes

SectionLike = Union[bytes, str, tuple[Union[bytes, str], ...]]
NameLike = Union[bytes, str]
ValueLike = Union[bytes, str]

_TRUE_VALUES = (b"true", b"yes", b"on", b"1")
_FALSE_VALUES = (b"false", b"no", b"off", b"0", b"")


def _section_key(section: Section) -> Section:
    # Section names are case-insensitive, subsection names are not
    return (section[0].lower(), *section[1:])


class ConfigDict:
    """Git configuration stored in a dictionary."""

    def __init__(self, encoding: str = "utf-8") -> None:
        self.encoding = encoding
        # lowered section -> (section, {lowered name: (name, value)})
        self._values: dict[Section, tuple[Section, dict[Name, tuple[Name, Value]]]] = {}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.as_bytes()!r})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, ConfigDict) and other.as_bytes() == self.as_bytes()

    def _check_section_and_name(
        self, section: SectionLike, name: NameLike
    ) -> tuple[Section, Name]:
        if not isinstance(section, tuple):
            section = (section,)

        checked_section = tuple(
            [
                subsection.encode(self.encoding)
                if not isinstance(subsection, bytes)
                else subsection
                for subsection in section
            ]
        )

        if not isinstance(name, bytes):
            name = name.encode(self.encoding)

        return checked_section, name

    def _section(self, section: Section) -> dict[Name, tuple[Name, Value]]:
        key = _section_key(section)
        if key not in self._values:
            self._values[key] = (section, {})
        return self._values[key][1]

    def get(self, section: SectionLike, name: NameLike) -> Value:
        """Retrieve the contents of a configuration setting.

        Args:
          section: Tuple with section name and optional subsection name
          name: Variable name
        Returns:
          Contents of the setting
        Raises:
          KeyError: if the value is not set
        """
        section, name = self._check_section_and_name(section, name)
        return self._values[_section_key(section)][1][name.lower()][1]

    def get_boolean(
        self, section: SectionLike, name: NameLike, default: Optional[bool] = None
    ) -> Optional[bool]:
        """Retrieve a configuration setting as boolean.

        Args:
          section: Tuple with section name and optional subsection name
          name: Name of the setting
          default: Default value if setting is not found
        Returns:
          Contents of the setting
        """
        try:
            value = self.get(section, name)
        except KeyError:
            return default
        if value.lower() in _TRUE_VALUES:
            return True
        elif value.lower() in _FALSE_VALUES:
            return False
        raise ValueError(f"not a valid boolean string: {value!r}")

    def get_int(self, section: SectionLike, name: NameLike) -> int:
        """Retrieve a configuration setting as an integer.

        The k, m and g suffixes are understood, as in git.

        Raises:
          KeyError: if the value is not set
          ValueError: if the value is not an integer
        """
        value = self.get(section, name).strip()
        factor = 1
        suffix = value[-1:].lower()
        if suffix in (b"k", b"m", b"g"):
            factor = {b"k": 1024, b"m": 1024**2, b"g": 1024**3}[suffix]
            value = value[:-1]
        try:
            return int(value) * factor
        except ValueError as exc:
            raise ValueError(f"not a valid integer: {value!r}") from exc

    def set(
        self, section: SectionLike, name: NameLike, value: Union[ValueLike, bool, int]
    ) -> None:
        """Set a configuration value.

        Args:
          section: Tuple with section name and optional subsection name
          name: Name of the configuration value
          value: value of the setting
        """
        section, name = self._check_section_and_name(section, name)
        if isinstance(value, bool):
            value = b"true" if value else b"false"
        elif isinstance(value, int):
            value = str(value).encode("ascii")
        if not isinstance(value, bytes):
            value = value.encode(self.encoding)
        self._section(section)[name.lower()] = (name, value)

    def remove(self, section: SectionLike, name: NameLike) -> None:
        """Remove a configuration setting.

        Raises:
          KeyError: If the section or name doesn't exist
        """
        section, name = self._check_section_and_name(section, name)
        del self._values[_section_key(section)][1][name.lower()]

    def items(self, section: SectionLike) -> Iterator[tuple[Name, Value]]:
        """Iterate over the configuration pairs for a specific section."""
        section, _ = self._check_section_and_name(section, b"")
        entry = self._values.get(_section_key(section))
        if entry is None:
            return iter([])
        return iter(list(entry[1].values()))

    def sections(self) -> Iterator[Section]:
        """Iterate over the sections."""
        return iter([section for section, _ in self._values.values()])

    def has_section(self, name: SectionLike) -> bool:
        section, _ = self._check_section_and_name(name, b"")
        return _section_key(section) in self._values

    def write_to_file(self, f: IO[bytes]) -> None:
        """Write configuration to a file-like object."""
        for section, values in self._values.values():
            try:
                section_name, subsection_name = section
            except ValueError:
                (section_name,) = section
                subsection_name = None
            if subsection_name is None:
                f.write(b"[" + section_name + b"]\n")
            else:
                f.write(b"[" + section_name + b' "' + subsection_name + b'"]\n')
            for key, value in values.values():
                f.write(b"\t" + key + b" = " + _format_string(value) + b"\n")

    def as_bytes(self) -> bytes:
        """Serialize the configuration in git config file format."""
        f = BytesIO()
        self.write_to_file(f)
        return f.getvalue()


def _format_string(value: bytes) -> bytes:
    if (
        value.startswith((b" ", b"\t"))
        or value.endswith((b" ", b"\t"))
        or b"#" in value
        or b";" in value
    ):
        return b'"' + _escape_value(value) + b'"'
    else:
        return _escape_value(value)


_ESCAPE_TABLE = {
    ord(b"\\"): ord(b"\\"),
    ord(b'"'): ord(b'"'),
    ord(b"n"): ord(b"\n"),
    ord(b"t"): ord(b"\t"),
    ord(b"b"): ord(b"\b"),
}
_COMMENT_CHARS = [ord(b"#"), ord(b";")]
_WHITESPACE_CHARS = [ord(b"\t"), ord(b" ")]


def _parse_string(value: bytes) -> bytes:
    value_array = bytearray(value.strip())
    ret = bytearray()
    whitespace = bytearray()
    in_quotes = False
    i = 0
    while i < len(value_array):
        c = value_array[i]
        if c == ord(b"\\"):
            i += 1
            if i >= len(value_array):
                raise ValueError("escape character at end of value")
            try:
                v = _ESCAPE_TABLE[value_array[i]]
            except KeyError as exc:
                raise ValueError(
                    f"escape character followed by unknown character {value_array[i]!r}"
                ) from exc
            if whitespace:
                ret.extend(whitespace)
                whitespace = bytearray()
            ret.append(v)
        elif c == ord(b'"'):
            in_quotes = not in_quotes
        elif c in _COMMENT_CHARS and not in_quotes:
            # the rest of the line is a comment
            break
        elif c in _WHITESPACE_CHARS:
            whitespace.append(c)
        else:
            if whitespace:
                ret.extend(whitespace)
                whitespace = bytearray()
            ret.append(c)
        i += 1

    if in_quotes:
        raise ValueError("missing end quote")

    return bytes(ret)


def _escape_value(value: bytes) -> bytes:
    """Escape a value."""
    value = value.replace(b"\\", b"\\\\")
    value = value.replace(b"\n", b"\\n")
    value = value.replace(b"\t", b"\\t")
    value = value.replace(b'"', b'\\"')
    return value


def _check_variable_name(name: bytes) -> bool:
    for i in range(len(name)):
        c = name[i : i + 1]
        if not c.isalnum() and c != b"-":
            return False
    return True


def _check_section_name(name: bytes) -> bool:
    for i in range(len(name)):
        c = name[i : i + 1]
        if not c.isalnum() and c not in (b"-", b"."):
            return False
    return True


def _strip_comments(line: bytes) -> bytes:
    comment_bytes = {ord(b"#"), ord(b";")}
    quote = ord(b'"')
    string_open = False
    for i, character in enumerate(bytearray(line)):
        # Comment characters outside balanced quotes denote comment start
        if character == quote:
            string_open = not string_open
        elif not string_open and character in comment_bytes:
            return line[:i]
    return line


def _parse_section_header_line(line: bytes) -> tuple[Section, bytes]:
    # Parse section header ("[bla]")
    line = _strip_comments(line).rstrip()
    in_quotes = False
    escaped = False
    for i, c in enumerate(line):
        if escaped:
            escaped = False
            continue
        if c == ord(b'"'):
            in_quotes = not in_quotes
        if c == ord(b"\\"):
            escaped = True
        if c == ord(b"]") and not in_quotes:
            last = i
            break
    else:
        raise ValueError("expected trailing ]")
    pts = line[1:last].split(b" ", 1)
    line = line[last + 1 :]
    section: Section
    if len(pts) == 2:
        if pts[1][:1] == b'"' and pts[1][-1:] == b'"':
            pts[1] = pts[1][1:-1]
        else:
            raise ValueError(f"Invalid subsection {pts[1]!r}")
        if not _check_section_name(pts[0]):
            raise ValueError(f"invalid section name {pts[0]!r}")
        section = (pts[0], pts[1])
    else:
        if not _check_section_name(pts[0]):
            raise ValueError(f"invalid section name {pts[0]!r}")
        pts = pts[0].split(b".", 1)
        if len(pts) == 2:
            section = (pts[0], pts[1])
        else:
            section = (pts[0],)
    return section, line


class ConfigFile(ConfigDict):
    """A Git configuration file, like the ``config`` of a repository."""

    @classmethod
    def from_file(cls, f: IO[bytes]) -> "ConfigFile":
        """Read configuration from a file-like object.

        Raises:
          ValueError: if the file is not valid git config syntax
        """
        ret = cls()
        section: Optional[Section] = None
        setting = None
        continuation = None
        for lineno, line in enumerate(f.readlines()):
            if lineno == 0 and line.startswith(b"\xef\xbb\xbf"):
                line = line[3:]
            line = line.lstrip()
            if setting is None:
                if len(line) > 0 and line[:1] == b"[":
                    section, line = _parse_section_header_line(line)
                    ret._section(section)
                if _strip_comments(line).strip() == b"":
                    continue
                if section is None:
                    raise ValueError(f"setting {line!r} without section")
                try:
                    setting, value = line.split(b"=", 1)
                except ValueError:
                    setting = line
                    value = b"true"
                setting = setting.strip()
                if not _check_variable_name(setting):
                    raise ValueError(f"invalid variable name {setting!r}")
                if value.endswith(b"\\\n"):
                    continuation = value[:-2]
                elif value.endswith(b"\\\r\n"):
                    continuation = value[:-3]
                else:
                    continuation = None
                    ret.set(section, setting, _parse_string(value))
                    setting = None
            else:  # continuation line
                assert continuation is not None and section is not None
                if line.endswith(b"\\\n"):
                    continuation += line[:-2]
                elif line.endswith(b"\\\r\n"):
                    continuation += line[:-3]
                else:
                    continuation += line
                    ret.set(section, setting, _parse_string(continuation))
                    continuation = None
                    setting = None
        return ret

    @classmethod
    def from_bytes(cls, data: bytes) -> "ConfigFile":
        """Parse a configuration from its serialized form."""
        return cls.from_file(BytesIO(data))


def default_repository_config() -> ConfigFile:
    """Return the configuration written for new repositories."""
    config = ConfigFile()
    config.set((b"core",), b"repositoryformatversion", b"0")
    config.set((b"core",), b"filemode", False)
    config.set((b"core",), b"bare", True)
    config.set((b"core",), b"symlinks", False)
    config.set((b"core",), b"ignorecase", True)
    config.set((b"receive",), b"advertisePushOptions", True)
    config.set((b"receive",), b"denyDeleteCurrent", b"warn")
    return config
