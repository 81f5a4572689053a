# cli.py -- Command-line interface to gitcenter
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

"""Simple command-line interface to gitcenter.

Commands work on a repository in a local directory, either the repository
directory itself or a site directory with a ``content.json`` manifest.
"""

import argparse
import asyncio
import logging
import os
import sys
from collections.abc import Sequence
from typing import Optional

from .backend import DiskBackend
from .errors import (
    BackendError,
    ConflictError,
    FormatError,
    NotFound,
    NotGitRepository,
    NotTreeError,
    ResolutionError,
    WrongObjectException,
)
from .log_utils import default_logging_config
from .object_store import iter_tree_contents, tree_lookup_path
from .objects import Commit, Tree, pretty_format_tree_entry, valid_hexsha
from .refs import (
    HEADREF,
    LOCAL_BRANCH_PREFIX,
    LOCAL_TAG_PREFIX,
    PEELED_TAG_SUFFIX,
)
from .repo import MANIFEST, Repository, make_author

# Errors reported to the user as a message rather than a traceback
USER_ERRORS = (
    BackendError,
    ConflictError,
    FormatError,
    NotFound,
    NotGitRepository,
    ResolutionError,
    WrongObjectException,
)


def _write_bytes(data: bytes) -> None:
    sys.stdout.flush()
    sys.stdout.buffer.write(data)
    sys.stdout.buffer.flush()


async def open_repository(path: str) -> Repository:
    """Open the repository in a local directory.

    Raises:
      NotGitRepository: if there is no repository at path
    """
    backend = DiskBackend(path)
    if await backend.exists(MANIFEST):
        return await Repository.open(backend)
    if not await backend.exists(HEADREF.decode("ascii")):
        raise NotGitRepository(f"No git repository found at {path}")
    return await Repository.from_backend(backend)


class Command:
    """A gitcenter subcommand."""

    name: str

    def run(self, args: Sequence[str]) -> Optional[int]:
        """Run the command."""
        parser = argparse.ArgumentParser(prog=f"gitcenter {self.name}")
        self.add_arguments(parser)
        parsed_args = parser.parse_args(args)
        try:
            return asyncio.run(self.run_async(parsed_args))
        except USER_ERRORS as exc:
            sys.stderr.write(f"error: {exc}\n")
            return 1

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument(
            "--repo", default=os.curdir, help="Repository or site directory"
        )

    async def run_async(self, args: argparse.Namespace) -> Optional[int]:
        raise NotImplementedError(self.run_async)


class cmd_init(Command):
    """Create a new repository with an initial commit."""

    name = "init"

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--name", required=True, help="Author name")
        parser.add_argument("--email", required=True, help="Author e-mail")
        parser.add_argument("--branch", default="master", help="Initial branch")
        parser.add_argument("path", nargs="?", default=os.curdir, help="Repository path")

    async def run_async(self, args: argparse.Namespace) -> Optional[int]:
        repo = await Repository.init(
            DiskBackend(args.path),
            args.name,
            args.email,
            branch=args.branch.encode("utf-8"),
        )
        head = await repo.refs.resolve_ref(HEADREF)
        print(f"Initialized repository in {os.path.abspath(args.path)}")
        print(head.decode("ascii"))
        return None


class cmd_cat_file(Command):
    """Show the contents, type or size of an object."""

    name = "cat-file"

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        super().add_arguments(parser)
        group = parser.add_mutually_exclusive_group(required=True)
        group.add_argument("-t", dest="show_type", action="store_true", help="Show type")
        group.add_argument("-s", dest="show_size", action="store_true", help="Show size")
        group.add_argument("-p", dest="pretty", action="store_true", help="Pretty-print")
        parser.add_argument("object", help="Object name, branch or tag")

    async def run_async(self, args: argparse.Namespace) -> Optional[int]:
        repo = await open_repository(args.repo)
        sha = await repo.refs.resolve(args.object.encode("utf-8"))
        obj = await repo.object_store.read(sha)
        if args.show_type:
            print(obj.type_name.decode("ascii"))
        elif args.show_size:
            print(obj.raw_length())
        elif isinstance(obj, Tree):
            sys.stdout.write(obj.as_pretty_string())
        else:
            _write_bytes(obj.as_raw_string())
        return None


class cmd_ls_tree(Command):
    """List the contents of a tree object."""

    name = "ls-tree"

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        super().add_arguments(parser)
        parser.add_argument(
            "-r",
            "--recursive",
            action="store_true",
            help="Recursively list tree contents.",
        )
        parser.add_argument("--name-only", action="store_true", help="Only display name.")
        parser.add_argument("treeish", nargs="?", default="HEAD", help="Tree-ish to list")
        parser.add_argument("path", nargs="?", default="", help="Directory to list")

    async def run_async(self, args: argparse.Namespace) -> Optional[int]:
        repo = await open_repository(args.repo)
        sha = await repo.refs.resolve(args.treeish.encode("utf-8"))
        _, obj = await repo.object_store.peel_sha(sha)
        tree_id = obj.tree if isinstance(obj, Commit) else obj.id
        result = await tree_lookup_path(repo.object_store, tree_id, args.path)
        if result.kind != "tree":
            raise NotTreeError(result.id)
        prefix = args.path.strip("/").encode("utf-8")
        if args.recursive:
            entries = [
                entry.in_path(prefix) if prefix else entry
                async for entry in iter_tree_contents(repo.object_store, result.id)
            ]
        else:
            entries = [entry.in_path(prefix) if prefix else entry for entry in result.content]
        for name, mode, entry_sha in entries:
            if args.name_only:
                print(name.decode("utf-8", "replace"))
            else:
                sys.stdout.write(pretty_format_tree_entry(name, mode, entry_sha))
        return None


class cmd_show_ref(Command):
    """List references in a repository."""

    name = "show-ref"

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        super().add_arguments(parser)
        parser.add_argument("--head", action="store_true", help="Show the HEAD reference")
        parser.add_argument("--branches", action="store_true", help="Limit to local branches")
        parser.add_argument("--tags", action="store_true", help="Limit to local tags")
        parser.add_argument(
            "-d",
            "--dereference",
            action="store_true",
            help="Dereference tags into object IDs",
        )

    async def run_async(self, args: argparse.Namespace) -> Optional[int]:
        repo = await open_repository(args.repo)
        refs = await repo.refs.as_dict()
        if args.head:
            refs[HEADREF] = await repo.refs.resolve_ref(HEADREF)
        prefixes = []
        if args.branches:
            prefixes.append(LOCAL_BRANCH_PREFIX)
        if args.tags:
            prefixes.append(LOCAL_TAG_PREFIX)
        shown = 0
        for name in sorted(refs):
            if prefixes and not name.startswith(tuple(prefixes)):
                continue
            sha = refs[name]
            print(f"{sha.decode('ascii')} {name.decode('utf-8', 'replace')}")
            shown += 1
            if args.dereference and name.startswith(LOCAL_TAG_PREFIX):
                _, peeled = await repo.object_store.peel_sha(sha)
                if peeled.id != sha:
                    print(
                        f"{peeled.id.decode('ascii')} "
                        f"{(name + PEELED_TAG_SUFFIX).decode('utf-8', 'replace')}"
                    )
        return 0 if shown else 1


class cmd_rev_parse(Command):
    """Resolve a branch, tag or SHA1 to an object id."""

    name = "rev-parse"

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        super().add_arguments(parser)
        parser.add_argument("name", nargs="?", default="HEAD", help="Name to resolve")

    async def run_async(self, args: argparse.Namespace) -> Optional[int]:
        repo = await open_repository(args.repo)
        sha = await repo.refs.resolve(args.name.encode("utf-8"))
        print(sha.decode("ascii"))
        return None


class cmd_commit_file(Command):
    """Commit new contents for a file on a branch."""

    name = "commit-file"

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        super().add_arguments(parser)
        parser.add_argument("--branch", default=None, help="Branch to commit to")
        parser.add_argument("-m", "--message", required=True, help="Commit message")
        parser.add_argument("--name", required=True, help="Author name")
        parser.add_argument("--email", required=True, help="Author e-mail")
        parser.add_argument("path", help="Path of the file in the repository")
        parser.add_argument(
            "source", nargs="?", default="-", help="Local file with the new contents"
        )

    async def run_async(self, args: argparse.Namespace) -> Optional[int]:
        repo = await open_repository(args.repo)
        if args.source == "-":
            content = sys.stdin.buffer.read()
        else:
            with open(args.source, "rb") as f:
                content = f.read()
        if args.branch is None:
            branch = await repo.get_head()
            if valid_hexsha(branch):
                sys.stderr.write("error: HEAD is detached; pass --branch\n")
                return 1
        else:
            branch = args.branch.encode("utf-8")
        sha = await repo.save_file(
            args.path,
            content,
            branch,
            args.message,
            make_author(args.name, args.email),
        )
        print(sha.decode("ascii"))
        return None


commands = {
    cls.name: cls
    for cls in (
        cmd_cat_file,
        cmd_commit_file,
        cmd_init,
        cmd_ls_tree,
        cmd_rev_parse,
        cmd_show_ref,
    )
}


def main(argv: Optional[Sequence[str]] = None) -> Optional[int]:
    """Main entry point for the gitcenter CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code or None
    """
    if argv is None:
        argv = sys.argv[1:]

    if not argv or argv[0] in ("-h", "--help"):
        print("usage: gitcenter <command> [options] [args]")
        print(f"Available commands: {', '.join(sorted(commands))}")
        return 1

    default_logging_config()

    cmd = argv[0]
    try:
        cmd_kls = commands[cmd]
    except KeyError:
        logging.fatal("No such subcommand: %s", cmd)
        return 1
    return cmd_kls().run(argv[1:])


def _main() -> None:
    sys.exit(main())


if __name__ == "__main__":
    _main()
