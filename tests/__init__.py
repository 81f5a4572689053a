# __init__.py -- The tests for gitcenter
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

"""Tests for gitcenter."""

__all__ = [
    "AsyncTestCase",
    "TestCase",
]

import os
import shutil
import tempfile
import unittest


class TestCase(unittest.TestCase):
    """Base class for gitcenter tests.

    Isolates the tests from the user's environment.
    """

    def setUp(self) -> None:
        super().setUp()
        self.overrideEnv("GITCENTER_TRACE", None)

    def overrideEnv(self, name: str, value: "str | None") -> None:
        def restore() -> None:
            if oldval is not None:
                os.environ[name] = oldval
            else:
                os.environ.pop(name, None)

        oldval = os.environ.get(name)
        if value is not None:
            os.environ[name] = value
        else:
            os.environ.pop(name, None)
        self.addCleanup(restore)

    def mkdtemp(self) -> str:
        path = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, path)
        return path


class AsyncTestCase(unittest.IsolatedAsyncioTestCase, TestCase):
    """Base class for tests of the asynchronous APIs."""


def test_suite() -> unittest.TestSuite:
    names = [
        "aiohttp_backend",
        "backend",
        "cli",
        "commit",
        "config",
        "file",
        "log_utils",
        "lru_cache",
        "object_store",
        "objects",
        "pack",
        "refs",
        "repository",
    ]
    module_names = ["tests.test_" + name for name in names]
    loader = unittest.TestLoader()
    return loader.loadTestsFromNames(module_names)
