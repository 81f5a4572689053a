# test_repository.py -- tests for repo.py
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

"""Tests for the repository facade."""

import json

from gitcenter.backend import MemoryBackend, SubdirBackend
from gitcenter.commit import EMPTY_TREE_ID
from gitcenter.errors import (
    ConflictError,
    NotBlobError,
    NotCommitError,
    NotGitRepository,
    PathNotFound,
    RefMissing,
    UnsupportedRepository,
)
from gitcenter.objects import Blob, Commit, Tag
from gitcenter.repo import (
    DEFAULT_DESCRIPTION,
    INITIAL_COMMIT_MESSAGE,
    Repository,
    make_author,
    read_config,
    read_manifest,
)

from . import AsyncTestCase, TestCase
from .utils import DEFAULT_IDENTITY

SITE = "1MaiL5gfBM1cyb4a8e3iiL8L5gXmoAJu27"


class MakeAuthorTests(TestCase):
    def test_explicit(self) -> None:
        self.assertEqual(
            "Jane Doe <jane@example.com> 1700000000 +0100",
            make_author("Jane Doe", "jane@example.com", 1700000000, 3600),
        )

    def test_negative_timezone(self) -> None:
        self.assertEqual(
            "Jane Doe <jane@example.com> 1700000000 -0530",
            make_author("Jane Doe", "jane@example.com", 1700000000, -19800),
        )

    def test_defaults(self) -> None:
        author = make_author("Jane Doe", "jane@example.com")
        self.assertTrue(author.startswith("Jane Doe <jane@example.com> "))
        timestamp, timezone = author.rsplit(" ", 2)[1:]
        self.assertGreater(int(timestamp), 1700000000)
        self.assertRegex(timezone, r"^[+-]\d{4}$")


class InitTests(AsyncTestCase):
    async def asyncSetUp(self) -> None:
        self.backend = MemoryBackend()
        self.repo = await Repository.init(
            self.backend, "Jane Doe", "jane@example.com", timestamp=1700000000, timezone=0
        )

    async def test_head(self) -> None:
        self.assertEqual(b"ref: refs/heads/master\n", await self.backend.read_file("HEAD"))
        self.assertEqual(b"master", await self.repo.get_head())

    async def test_description(self) -> None:
        self.assertEqual(b"Git Center repository", DEFAULT_DESCRIPTION)
        self.assertEqual(DEFAULT_DESCRIPTION, await self.repo.get_description())

    async def test_config(self) -> None:
        self.assertEqual(
            b"[core]\n"
            b"\trepositoryformatversion = 0\n"
            b"\tfilemode = false\n"
            b"\tbare = true\n"
            b"\tsymlinks = false\n"
            b"\tignorecase = true\n"
            b"[receive]\n"
            b"\tadvertisePushOptions = true\n"
            b"\tdenyDeleteCurrent = warn\n",
            await self.backend.read_file("config"),
        )
        config = await self.repo.get_config()
        self.assertTrue(config.get_boolean("core", "bare"))

    async def test_initial_commit(self) -> None:
        commit = await self.repo.read_branch_commit(b"master")
        self.assertEqual(EMPTY_TREE_ID, commit.tree)
        self.assertEqual([], commit.parents)
        self.assertEqual(INITIAL_COMMIT_MESSAGE, commit.message)
        self.assertEqual("Jane Doe <jane@example.com> 1700000000 +0000", commit.author)
        self.assertEqual(commit.author, commit.committer)
        self.assertTrue(await self.backend.exists("objects/4b/825dc642cb6eb9a060e54bf8d69288fbee4904"))

    async def test_branches(self) -> None:
        self.assertEqual([b"refs/heads/master"], await self.repo.get_branches())

    async def test_other_branch(self) -> None:
        backend = MemoryBackend()
        repo = await Repository.init(backend, "Jane", "jane@example.com", branch=b"main")
        self.assertEqual(b"ref: refs/heads/main\n", await backend.read_file("HEAD"))
        self.assertEqual(b"main", await repo.get_head())

    async def test_init_twice_keeps_branch(self) -> None:
        head = await self.repo.refs.resolve(b"master")
        with self.assertRaises(ConflictError):
            await Repository.init(self.backend, "Jane", "jane@example.com")
        self.assertEqual(head, await self.repo.refs.resolve(b"master"))

    async def test_init_twice_writes_nothing(self) -> None:
        await self.backend.write_file("description", b"custom")
        await self.backend.write_file("config", b"[core]\n\tbare = true\n")
        await self.backend.write_file("HEAD", b"ref: refs/heads/other\n")
        with self.assertRaises(ConflictError) as cm:
            await Repository.init(self.backend, "Jane", "jane@example.com")
        self.assertEqual(b"refs/heads/master", cm.exception.ref)
        self.assertEqual(b"custom", await self.backend.read_file("description"))
        self.assertEqual(b"[core]\n\tbare = true\n", await self.backend.read_file("config"))
        self.assertEqual(b"ref: refs/heads/other\n", await self.backend.read_file("HEAD"))


class FileTests(AsyncTestCase):
    async def asyncSetUp(self) -> None:
        self.backend = MemoryBackend()
        self.repo = await Repository.init(self.backend, "Jane", "jane@example.com")

    async def test_save_and_get_file(self) -> None:
        initial = await self.repo.refs.resolve(b"master")
        sha = await self.repo.save_file(
            "README.md", b"Git Center", b"master", "Add readme", DEFAULT_IDENTITY
        )
        self.assertEqual(sha, await self.repo.refs.resolve(b"master"))
        commit = await self.repo.read_branch_commit(b"master")
        self.assertEqual([initial], commit.parents)
        self.assertEqual("Add readme", commit.message)
        self.assertEqual(b"Git Center", await self.repo.get_file(b"master", "README.md"))

    async def test_get_files(self) -> None:
        await self.repo.commit_files(
            {"docs/index.md": b"index", "README.md": b"readme"},
            b"master",
            "Add files",
            DEFAULT_IDENTITY,
        )
        result = await self.repo.get_files(b"master")
        self.assertEqual("tree", result.kind)
        self.assertEqual([b"README.md", b"docs"], [e.name for e in result.content])
        result = await self.repo.get_files(b"master", "docs")
        self.assertEqual([b"index.md"], [e.name for e in result.content])

    async def test_get_file_errors(self) -> None:
        await self.repo.save_file(
            "docs/index.md", b"index", b"master", "Add docs", DEFAULT_IDENTITY
        )
        with self.assertRaises(NotBlobError):
            await self.repo.get_file(b"master", "docs")
        with self.assertRaises(PathNotFound):
            await self.repo.get_file(b"master", "docs/missing.md")
        with self.assertRaises(RefMissing):
            await self.repo.get_file(b"nobranch", "docs/index.md")

    async def test_save_file_new_branch(self) -> None:
        sha = await self.repo.save_file(
            "a.txt", b"a", b"feature", "Start feature", DEFAULT_IDENTITY
        )
        commit = await self.repo.read_branch_commit(b"feature")
        self.assertEqual(sha, commit.id)
        self.assertEqual([], commit.parents)
        self.assertEqual(
            [b"refs/heads/feature", b"refs/heads/master"], await self.repo.get_branches()
        )

    async def test_read_branch_commit_peels_tags(self) -> None:
        head = await self.repo.refs.resolve(b"master")
        tag = Tag()
        tag.object = (Commit, head)
        tag.name = b"v1.0"
        tag.tagger = DEFAULT_IDENTITY
        tag.message = "Version 1.0\n"
        await self.repo.object_store.add_object(tag)
        await self.repo.refs.update(b"refs/tags/v1.0", tag.id)
        self.assertEqual(head, (await self.repo.read_branch_commit(b"v1.0")).id)

    async def test_read_branch_commit_not_commit(self) -> None:
        blob_id = await self.repo.object_store.add_object(Blob.from_string(b"data"))
        await self.repo.refs.update(b"refs/tags/blob", blob_id)
        with self.assertRaises(NotCommitError):
            await self.repo.read_branch_commit(b"blob")

    async def test_get_head_detached(self) -> None:
        head = await self.repo.refs.resolve(b"master")
        await self.repo.refs.update(b"HEAD", head)
        self.assertEqual(head, await self.repo.get_head())

    async def test_get_head_not_a_branch(self) -> None:
        await self.repo.refs.set_symbolic_ref(b"HEAD", b"refs/tags/v1.0")
        self.assertEqual(b"refs/tags/v1.0", await self.repo.get_head())

    async def test_get_head_missing(self) -> None:
        await self.backend.delete_file("HEAD")
        with self.assertRaises(RefMissing):
            await self.repo.get_head()


class OpenTests(AsyncTestCase):
    async def asyncSetUp(self) -> None:
        self.site = MemoryBackend()
        await self.site.write_file(f"{SITE}/content.json", json.dumps({"git": "repo.git"}).encode())
        await Repository.init(
            SubdirBackend(self.site, f"{SITE}/repo.git"), "Jane", "jane@example.com"
        )

    async def test_open_with_address(self) -> None:
        repo = await Repository.open(self.site, SITE)
        self.assertEqual(b"master", await repo.get_head())
        self.assertEqual("tree", (await repo.get_files(b"master")).kind)

    async def test_open_site_backend(self) -> None:
        repo = await Repository.open(SubdirBackend(self.site, SITE))
        await repo.save_file("index.html", b"<p>hi</p>", b"master", "Add page", DEFAULT_IDENTITY)
        compressed_objects = await self.site.list_directory(f"{SITE}/repo.git/objects")
        self.assertGreater(len(compressed_objects), 1)

    async def test_missing_manifest(self) -> None:
        with self.assertRaises(NotGitRepository):
            await Repository.open(self.site, "1OtherSite")

    async def test_invalid_manifest(self) -> None:
        await self.site.write_file("bad/content.json", b"{not json")
        with self.assertRaises(NotGitRepository):
            await Repository.open(self.site, "bad")
        await self.site.write_file("list/content.json", b"[]")
        with self.assertRaises(NotGitRepository):
            await read_manifest(SubdirBackend(self.site, "list"))

    async def test_mercurial(self) -> None:
        await self.site.write_file("hg/content.json", b'{"hg": "repo.hg"}')
        with self.assertRaises(UnsupportedRepository) as cm:
            await Repository.open(self.site, "hg")
        self.assertEqual("hg", cm.exception.kind)

    async def test_no_repository(self) -> None:
        await self.site.write_file("plain/content.json", b'{"title": "My site"}')
        with self.assertRaises(NotGitRepository):
            await Repository.open(self.site, "plain")

    async def test_from_backend_uses_config(self) -> None:
        backend = SubdirBackend(self.site, f"{SITE}/repo.git")
        await backend.write_file(
            "config", b"[core]\n\tcompression = 0\n[gitcenter]\n\tobjectcachesize = 7\n"
        )
        repo = await Repository.from_backend(backend)
        self.assertEqual(0, repo.object_store.compression_level)
        self.assertEqual(7, repo.object_store.cache_info()[1])

    async def test_read_config_missing(self) -> None:
        config = await read_config(MemoryBackend())
        self.assertEqual([], list(config.sections()))
