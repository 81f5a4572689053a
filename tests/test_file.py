# test_file.py -- Test for git files
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

"""Tests for gitcenter.file."""

import os

from gitcenter.file import FileLocked, LockedFile, ensure_dir_exists, write_locked

from . import TestCase


class LockedFileTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self._tempdir = self.mkdtemp()
        self.foo = self.path("foo")
        with open(self.foo, "wb") as f:
            f.write(b"foo contents")

    def path(self, filename: str) -> str:
        return os.path.join(self._tempdir, filename)

    def read_foo(self) -> bytes:
        with open(self.foo, "rb") as f:
            return f.read()

    def test_commit(self) -> None:
        f = LockedFile(self.foo, fsync=False)
        self.assertFalse(f.closed)
        self.assertTrue(os.path.exists(self.foo + ".lock"))
        f.write(b"new stuff")
        # the target is untouched until the commit
        self.assertEqual(b"foo contents", self.read_foo())
        f.commit()
        self.assertTrue(f.closed)
        self.assertFalse(os.path.exists(self.foo + ".lock"))
        self.assertEqual(b"new stuff", self.read_foo())

    def test_new_file(self) -> None:
        bar = self.path("bar")
        with LockedFile(bar) as f:
            f.write(b"bar contents")
        with open(bar, "rb") as f:
            self.assertEqual(b"bar contents", f.read())

    def test_locked_twice(self) -> None:
        f1 = LockedFile(self.foo)
        f1.write(b"new")
        with self.assertRaises(FileLocked) as cm:
            LockedFile(self.foo)
        self.assertEqual(self.foo + ".lock", cm.exception.lockfilename)
        f1.write(b" contents")
        f1.commit()
        self.assertEqual(b"new contents", self.read_foo())

    def test_discard(self) -> None:
        f = LockedFile(self.foo)
        f.write(b"new contents")
        f.discard()
        self.assertTrue(f.closed)
        self.assertFalse(os.path.exists(self.foo + ".lock"))
        self.assertEqual(b"foo contents", self.read_foo())

    def test_discard_and_commit_idempotent(self) -> None:
        f = LockedFile(self.foo)
        f.discard()
        f.commit()
        self.assertEqual(b"foo contents", self.read_foo())

        f = LockedFile(self.foo)
        f.commit()
        f.discard()
        self.assertEqual(b"", self.read_foo())

    def test_discard_lock_removed(self) -> None:
        f = LockedFile(self.foo)
        os.remove(self.foo + ".lock")
        f.discard()
        self.assertTrue(f.closed)

    def test_exception_in_context_discards(self) -> None:
        with self.assertRaises(RuntimeError):
            with LockedFile(self.foo) as f:
                f.write(b"partial")
                raise RuntimeError
        self.assertEqual(b"foo contents", self.read_foo())
        self.assertFalse(os.path.exists(self.foo + ".lock"))

    def test_write_locked(self) -> None:
        target = self.path(os.path.join("a", "b", "c"))
        write_locked(target, b"deep", fsync=False)
        with open(target, "rb") as f:
            self.assertEqual(b"deep", f.read())
        write_locked(target, b"deeper", fsync=False)
        with open(target, "rb") as f:
            self.assertEqual(b"deeper", f.read())
        self.assertEqual(["c"], os.listdir(os.path.dirname(target)))

    def test_write_locked_held(self) -> None:
        with LockedFile(self.foo):
            self.assertRaises(FileLocked, write_locked, self.foo, b"other")
        self.assertEqual(b"", self.read_foo())

    def test_ensure_dir_exists(self) -> None:
        path = self.path(os.path.join("a", "b"))
        ensure_dir_exists(path)
        ensure_dir_exists(path)
        self.assertTrue(os.path.isdir(path))
