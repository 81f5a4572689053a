# aiohttp_backend.py -- Storage backend over HTTP, client and server
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

"""aiohttp client/server support for remote storage.

The protocol is deliberately small:

* ``GET /<path>`` returns the file contents, or 404.
* ``PUT /<path>`` stores the request body.
* ``DELETE /<path>`` removes the file, or 404.
* ``GET /<path>/`` returns a JSON list of directory entry names; names of
  subdirectories end in a slash.
"""

import json
from types import TracebackType
from typing import Optional
from urllib.parse import quote

import aiohttp
from aiohttp import web

from . import log_utils
from .backend import StorageBackend, normalize_path
from .errors import BackendError, NotFound

logger = log_utils.getLogger(__name__)

BACKEND_KEY = web.AppKey("backend", StorageBackend)

DIRECTORY_CONTENT_TYPE = "application/json"
FILE_CONTENT_TYPE = "application/octet-stream"


class HTTPBackend(StorageBackend):
    """Storage backend talking to a remote file server over HTTP."""

    def __init__(
        self, base_url: str, session: Optional[aiohttp.ClientSession] = None
    ) -> None:
        """Create a new HTTPBackend.

        Args:
          base_url: URL under which the files are served
          session: Optional client session; one is created on first use
            (and closed by close()) when not given
        """
        self.base_url = base_url.rstrip("/") + "/"
        self._session = session
        self._owns_session = session is None

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.base_url!r})"

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession()
        return self._session

    def _url(self, path: str, directory: bool = False) -> str:
        path = normalize_path(path)
        url = self.base_url + quote(path)
        if directory and path:
            url += "/"
        return url

    async def close(self) -> None:
        """Close the client session if this backend created it."""
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> "HTTPBackend":
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        path: str,
        data: Optional[bytes] = None,
        directory: bool = False,
    ) -> bytes:
        url = self._url(path, directory)
        try:
            async with self._get_session().request(method, url, data=data) as resp:
                if resp.status == 404:
                    raise NotFound(path)
                if resp.status >= 400:
                    raise BackendError(path, f"HTTP {resp.status} for {method} {url}")
                return await resp.read()
        except aiohttp.ClientError as exc:
            raise BackendError(path, exc) from exc

    async def read_file(self, path: str) -> bytes:
        return await self._request("GET", path)

    async def write_file(self, path: str, data: bytes) -> None:
        logger.debug("uploading %s", path)
        await self._request("PUT", path, data=data)

    async def delete_file(self, path: str) -> None:
        logger.debug("deleting %s", path)
        await self._request("DELETE", path)

    async def list_directory(self, path: str) -> list[str]:
        try:
            body = await self._request("GET", path, directory=True)
        except NotFound:
            return []
        try:
            names = json.loads(body)
        except ValueError as exc:
            raise BackendError(path, f"Invalid directory listing: {exc}") from exc
        if not isinstance(names, list):
            raise BackendError(path, "Invalid directory listing")
        return sorted(str(name) for name in names)


async def get_path(request: web.Request) -> web.Response:
    """Handle a request for a file or a directory listing.

    Args:
      request: aiohttp request object
    Returns: Response with the file contents or a JSON listing
    """
    path = request.match_info["path"]
    backend = request.app[BACKEND_KEY]
    if not path or path.endswith("/"):
        names = await backend.list_directory(path)
        return web.Response(
            status=200,
            content_type=DIRECTORY_CONTENT_TYPE,
            text=json.dumps(names),
        )
    logger.info("Sending file %s", path)
    try:
        data = await backend.read_file(path)
    except NotFound:
        raise web.HTTPNotFound(text="File not found")
    return web.Response(status=200, content_type=FILE_CONTENT_TYPE, body=data)


async def put_path(request: web.Request) -> web.Response:
    """Handle a file upload.

    Args:
      request: aiohttp request object
    Returns: Empty response
    """
    path = request.match_info["path"]
    if not path or path.endswith("/"):
        raise web.HTTPMethodNotAllowed("PUT", ["GET"])
    data = await request.read()
    logger.info("Storing file %s (%d bytes)", path, len(data))
    await request.app[BACKEND_KEY].write_file(path, data)
    return web.Response(status=204)


async def delete_path(request: web.Request) -> web.Response:
    """Handle a file removal.

    Args:
      request: aiohttp request object
    Returns: Empty response
    """
    path = request.match_info["path"]
    logger.info("Removing file %s", path)
    try:
        await request.app[BACKEND_KEY].delete_file(path)
    except NotFound:
        raise web.HTTPNotFound(text="File not found")
    return web.Response(status=204)


@web.middleware
async def backend_errors(request: web.Request, handler):  # type: ignore[no-untyped-def]
    """Translate storage failures into HTTP errors."""
    try:
        return await handler(request)
    except ValueError as exc:
        raise web.HTTPBadRequest(text=str(exc))
    except BackendError as exc:
        logger.warning("Backend failure for %s: %s", exc.path, exc)
        raise web.HTTPInternalServerError(text="Storage failure")


def create_storage_app(backend: StorageBackend) -> web.Application:
    """Create an aiohttp application serving the files of a backend.

    Args:
      backend: Backend whose files to serve
    Returns: Configured aiohttp Application
    """
    app = web.Application(middlewares=[backend_errors])
    app[BACKEND_KEY] = backend
    app.router.add_get("/{path:.*}", get_path)
    app.router.add_put("/{path:.*}", put_path)
    app.router.add_delete("/{path:.*}", delete_path)
    return app


def main(argv: Optional[list[str]] = None) -> None:
    """Entry point for serving a local directory over HTTP."""
    import argparse

    from .backend import DiskBackend

    parser = argparse.ArgumentParser()
    parser.add_argument(
        "-l",
        "--listen_address",
        dest="listen_address",
        default="localhost",
        help="Binding IP address.",
    )
    parser.add_argument(
        "-p",
        "--port",
        dest="port",
        type=int,
        default=8000,
        help="Port to listen on.",
    )
    parser.add_argument("root", type=str, default=".", nargs="?")
    args = parser.parse_args(argv)

    log_utils.default_logging_config()
    app = create_storage_app(DiskBackend(args.root))
    logger.info(
        "Listening for HTTP connections on %s:%d",
        args.listen_address,
        args.port,
    )
    web.run_app(app, host=args.listen_address, port=args.port)


if __name__ == "__main__":
    main()
