# test_cli.py -- tests for the gitcenter command-line interface
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

"""Tests for gitcenter.cli."""

import io
import json
import os
import sys
from unittest.mock import patch

from gitcenter import cli
from gitcenter.commit import EMPTY_TREE_ID
from gitcenter.objects import Blob

from . import TestCase


class MockStream:
    """Text stream that also exposes a binary buffer, like sys.stdout."""

    def __init__(self, data: bytes = b"") -> None:
        self.buffer = io.BytesIO(data)

    def write(self, data: str) -> int:
        return self.buffer.write(data.encode("utf-8"))

    def flush(self) -> None:
        pass

    def getvalue(self) -> str:
        return self.buffer.getvalue().decode("utf-8")


class GitcenterCliTestCase(TestCase):
    """Base class for CLI tests."""

    def setUp(self) -> None:
        super().setUp()
        self.test_dir = self.mkdtemp()
        self.repo_path = os.path.join(self.test_dir, "repo")
        patcher = patch.object(cli, "default_logging_config")
        patcher.start()
        self.addCleanup(patcher.stop)

    def _run_cli(self, *args: str, stdin: bytes = b"") -> tuple[object, str, str]:
        """Run CLI command and capture output."""
        old_stdin, old_stdout, old_stderr = sys.stdin, sys.stdout, sys.stderr
        sys.stdin = MockStream(stdin)  # type: ignore[assignment]
        sys.stdout = MockStream()  # type: ignore[assignment]
        sys.stderr = MockStream()  # type: ignore[assignment]
        try:
            result = cli.main(list(args))
            return result, sys.stdout.getvalue(), sys.stderr.getvalue()  # type: ignore[attr-defined]
        finally:
            sys.stdin, sys.stdout, sys.stderr = old_stdin, old_stdout, old_stderr

    def _init(self, path: "str | None" = None) -> str:
        result, stdout, _ = self._run_cli(
            "init", "--name", "Jane Doe", "--email", "jane@example.com",
            path or self.repo_path,
        )
        self.assertIsNone(result)
        return stdout.splitlines()[-1]

    def _commit_file(self, path: str, content: bytes, *extra: str) -> str:
        source = os.path.join(self.test_dir, "source")
        with open(source, "wb") as f:
            f.write(content)
        result, stdout, stderr = self._run_cli(
            "commit-file", "--repo", self.repo_path, "-m", f"Update {path}",
            "--name", "Jane Doe", "--email", "jane@example.com", *extra, path, source,
        )
        self.assertIsNone(result, stderr)
        return stdout.strip()


class MainTests(GitcenterCliTestCase):
    def test_no_args(self) -> None:
        result, stdout, _ = self._run_cli()
        self.assertEqual(1, result)
        self.assertIn("usage: gitcenter", stdout)
        self.assertIn("commit-file", stdout)

    def test_unknown_command(self) -> None:
        with self.assertLogs(level="CRITICAL"):
            result, _, _ = self._run_cli("frobnicate")
        self.assertEqual(1, result)

    def test_not_a_repository(self) -> None:
        result, stdout, stderr = self._run_cli("rev-parse", "--repo", self.test_dir)
        self.assertEqual(1, result)
        self.assertEqual("", stdout)
        self.assertTrue(stderr.startswith("error: No git repository found"))


class InitCommandTest(GitcenterCliTestCase):
    def test_init(self) -> None:
        result, stdout, _ = self._run_cli(
            "init", "--name", "Jane Doe", "--email", "jane@example.com", self.repo_path
        )
        self.assertIsNone(result)
        lines = stdout.splitlines()
        self.assertEqual(f"Initialized repository in {self.repo_path}", lines[0])
        self.assertEqual(40, len(lines[1]))
        with open(os.path.join(self.repo_path, "HEAD"), "rb") as f:
            self.assertEqual(b"ref: refs/heads/master\n", f.read())
        self.assertTrue(os.path.isfile(os.path.join(self.repo_path, "config")))
        self.assertTrue(os.path.isfile(os.path.join(self.repo_path, "refs", "heads", "master")))

    def test_init_branch(self) -> None:
        self._run_cli(
            "init", "--name", "Jane", "--email", "j@example.com", "--branch", "main",
            self.repo_path,
        )
        with open(os.path.join(self.repo_path, "HEAD"), "rb") as f:
            self.assertEqual(b"ref: refs/heads/main\n", f.read())

    def test_init_existing(self) -> None:
        self._init()
        result, _, stderr = self._run_cli(
            "init", "--name", "Jane", "--email", "j@example.com", self.repo_path
        )
        self.assertEqual(1, result)
        self.assertIn("error:", stderr)


class RevParseCommandTest(GitcenterCliTestCase):
    def test_head(self) -> None:
        sha = self._init()
        result, stdout, _ = self._run_cli("rev-parse", "--repo", self.repo_path)
        self.assertIsNone(result)
        self.assertEqual(sha, stdout.strip())

    def test_branch(self) -> None:
        sha = self._init()
        _, stdout, _ = self._run_cli("rev-parse", "--repo", self.repo_path, "master")
        self.assertEqual(sha, stdout.strip())

    def test_missing(self) -> None:
        self._init()
        result, _, stderr = self._run_cli("rev-parse", "--repo", self.repo_path, "nothere")
        self.assertEqual(1, result)
        self.assertIn("nothere", stderr)


class CatFileCommandTest(GitcenterCliTestCase):
    def test_type_and_size(self) -> None:
        self._init()
        _, stdout, _ = self._run_cli("cat-file", "--repo", self.repo_path, "-t", "master")
        self.assertEqual("commit\n", stdout)
        _, stdout, _ = self._run_cli(
            "cat-file", "--repo", self.repo_path, "-s", EMPTY_TREE_ID.decode("ascii")
        )
        self.assertEqual("0\n", stdout)

    def test_pretty_commit(self) -> None:
        self._init()
        _, stdout, _ = self._run_cli("cat-file", "--repo", self.repo_path, "-p", "HEAD")
        self.assertTrue(stdout.startswith(f"tree {EMPTY_TREE_ID.decode('ascii')}\n"))
        self.assertIn("author Jane Doe <jane@example.com> ", stdout)
        self.assertTrue(stdout.endswith("\n\nInitial commit"))

    def test_pretty_blob(self) -> None:
        self._init()
        self._commit_file("README.md", b"Git Center\n")
        blob_id = Blob.from_string(b"Git Center\n").id.decode("ascii")
        _, stdout, _ = self._run_cli("cat-file", "--repo", self.repo_path, "-p", blob_id)
        self.assertEqual("Git Center\n", stdout)

    def test_pretty_tree(self) -> None:
        self._init()
        self._commit_file("README.md", b"Git Center\n")
        blob_id = Blob.from_string(b"Git Center\n").id.decode("ascii")
        _, stdout, _ = self._run_cli("cat-file", "--repo", self.repo_path, "-p", "HEAD")
        tree_id = stdout.split("\n", 1)[0].split(" ")[1]
        _, stdout, _ = self._run_cli("cat-file", "--repo", self.repo_path, "-p", tree_id)
        self.assertEqual(f"100644 blob {blob_id}\tREADME.md\n", stdout)

    def test_requires_mode(self) -> None:
        self._init()
        with self.assertRaises(SystemExit):
            self._run_cli("cat-file", "--repo", self.repo_path, "HEAD")


class CommitFileCommandTest(GitcenterCliTestCase):
    def test_commit_file(self) -> None:
        first = self._init()
        sha = self._commit_file("docs/index.md", b"# Docs\n")
        self.assertEqual(40, len(sha))
        self.assertNotEqual(first, sha)
        _, stdout, _ = self._run_cli("rev-parse", "--repo", self.repo_path, "master")
        self.assertEqual(sha, stdout.strip())
        _, stdout, _ = self._run_cli("cat-file", "--repo", self.repo_path, "-p", sha)
        self.assertIn(f"parent {first}\n", stdout)
        self.assertTrue(stdout.endswith("\n\nUpdate docs/index.md"))

    def test_commit_from_stdin(self) -> None:
        self._init()
        result, stdout, _ = self._run_cli(
            "commit-file", "--repo", self.repo_path, "-m", "From stdin",
            "--name", "Jane", "--email", "j@example.com", "notes.txt",
            stdin=b"piped\n",
        )
        self.assertIsNone(result)
        _, stdout, _ = self._run_cli(
            "ls-tree", "--repo", self.repo_path, "--name-only", "master"
        )
        self.assertEqual("notes.txt\n", stdout)

    def test_commit_to_other_branch(self) -> None:
        first = self._init()
        sha = self._commit_file("a.txt", b"a\n", "--branch", "feature")
        _, stdout, _ = self._run_cli("rev-parse", "--repo", self.repo_path, "master")
        self.assertEqual(first, stdout.strip())
        _, stdout, _ = self._run_cli("rev-parse", "--repo", self.repo_path, "feature")
        self.assertEqual(sha, stdout.strip())

    def test_commit_detached_head(self) -> None:
        first = self._init()
        with open(os.path.join(self.repo_path, "HEAD"), "wb") as f:
            f.write(first.encode("ascii") + b"\n")
        result, _, stderr = self._run_cli(
            "commit-file", "--repo", self.repo_path, "-m", "Detached",
            "--name", "Jane", "--email", "j@example.com", "notes.txt",
            stdin=b"piped\n",
        )
        self.assertEqual(1, result)
        self.assertIn("detached", stderr)


class LsTreeCommandTest(GitcenterCliTestCase):
    def setUp(self) -> None:
        super().setUp()
        self._init()
        self._commit_file("README.md", b"readme\n")
        self._commit_file("docs/api/ref.md", b"reference\n")
        self.readme_id = Blob.from_string(b"readme\n").id.decode("ascii")
        self.ref_id = Blob.from_string(b"reference\n").id.decode("ascii")

    def test_root(self) -> None:
        result, stdout, _ = self._run_cli("ls-tree", "--repo", self.repo_path)
        self.assertIsNone(result)
        lines = stdout.splitlines()
        self.assertEqual(f"100644 blob {self.readme_id}\tREADME.md", lines[0])
        self.assertTrue(lines[1].startswith("40000 tree "))
        self.assertTrue(lines[1].endswith("\tdocs"))

    def test_recursive(self) -> None:
        _, stdout, _ = self._run_cli("ls-tree", "--repo", self.repo_path, "-r")
        self.assertEqual(
            f"100644 blob {self.readme_id}\tREADME.md\n"
            f"100644 blob {self.ref_id}\tdocs/api/ref.md\n",
            stdout,
        )

    def test_path(self) -> None:
        _, stdout, _ = self._run_cli(
            "ls-tree", "--repo", self.repo_path, "--name-only", "HEAD", "docs"
        )
        self.assertEqual("docs/api\n", stdout)
        _, stdout, _ = self._run_cli(
            "ls-tree", "--repo", self.repo_path, "-r", "--name-only", "HEAD", "docs/"
        )
        self.assertEqual("docs/api/ref.md\n", stdout)

    def test_file_path(self) -> None:
        result, _, stderr = self._run_cli(
            "ls-tree", "--repo", self.repo_path, "HEAD", "README.md"
        )
        self.assertEqual(1, result)
        self.assertIn("error:", stderr)

    def test_missing_path(self) -> None:
        result, _, stderr = self._run_cli(
            "ls-tree", "--repo", self.repo_path, "HEAD", "nothere"
        )
        self.assertEqual(1, result)
        self.assertIn("error:", stderr)


class ShowRefCommandTest(GitcenterCliTestCase):
    def test_show_ref(self) -> None:
        sha = self._init()
        result, stdout, _ = self._run_cli("show-ref", "--repo", self.repo_path)
        self.assertEqual(0, result)
        self.assertEqual(f"{sha} refs/heads/master\n", stdout)

    def test_head(self) -> None:
        sha = self._init()
        _, stdout, _ = self._run_cli("show-ref", "--repo", self.repo_path, "--head")
        self.assertEqual(f"{sha} HEAD\n{sha} refs/heads/master\n", stdout)

    def test_no_tags(self) -> None:
        self._init()
        result, stdout, _ = self._run_cli("show-ref", "--repo", self.repo_path, "--tags")
        self.assertEqual(1, result)
        self.assertEqual("", stdout)

    def test_tags_and_branches(self) -> None:
        sha = self._init()
        tags_dir = os.path.join(self.repo_path, "refs", "tags")
        os.makedirs(tags_dir, exist_ok=True)
        with open(os.path.join(tags_dir, "v1.0"), "wb") as f:
            f.write(sha.encode("ascii") + b"\n")
        _, stdout, _ = self._run_cli("show-ref", "--repo", self.repo_path, "--branches")
        self.assertEqual(f"{sha} refs/heads/master\n", stdout)
        _, stdout, _ = self._run_cli("show-ref", "--repo", self.repo_path, "--tags", "-d")
        self.assertEqual(f"{sha} refs/tags/v1.0\n", stdout)


class SiteCommandTest(GitcenterCliTestCase):
    def test_site_directory(self) -> None:
        site = os.path.join(self.test_dir, "site")
        sha = self._init(os.path.join(site, "repo.git"))
        with open(os.path.join(site, "content.json"), "w") as f:
            json.dump({"title": "My site", "git": "repo.git"}, f)
        result, stdout, _ = self._run_cli("rev-parse", "--repo", site)
        self.assertIsNone(result)
        self.assertEqual(sha, stdout.strip())

    def test_mercurial_site(self) -> None:
        site = os.path.join(self.test_dir, "site")
        os.makedirs(site)
        with open(os.path.join(site, "content.json"), "w") as f:
            json.dump({"hg": "repo.hg"}, f)
        result, _, stderr = self._run_cli("rev-parse", "--repo", site)
        self.assertEqual(1, result)
        self.assertIn("not supported: hg", stderr)
