"""Repository access façade.

Every node is addressed by a public URL, ``http://host:4502/content/site``.
Reads and writes go through the JCR remoting servlet under
:data:`~jcr_mcp_server.core.constants.CRX_ROOT`, which renders nodes as JSON
(with ``":name"`` type hints and ``{}`` placeholders for child nodes) and
accepts Sling POST servlet form fields.

All methods are coroutines; the blocking transport runs in worker threads
through :func:`run_sync_limited`.
"""

import logging
import mimetypes
import posixpath
from collections.abc import Iterable, Mapping
from enum import IntFlag
from typing import Any
from urllib.parse import urlsplit

import requests

from .async_utils import run_sync_limited
from .client import JcrClient, get_host_from_url, make_url, split_url
from .constants import CRX_ROOT, NODE_TYPE
from .errors import JcrError, OperationError
from .writer import PropertyWriter, SaveOptions, change_paths, is_child_node

logger = logging.getLogger(__name__)

_FETCH_FILTER = 1
_FETCH_FILTER_CHILDREN = 2
_FETCH_RECURSIVE = 4

# Depth that reaches property definitions under jcr:system/jcr:nodeTypes
NODE_TYPES_DEPTH = 4


class FetchMode(IntFlag):
    """What :meth:`JcrRepository.fetch_node` returns.

    ``PROPERTY`` keeps only properties, ``CHILDREN`` only child nodes (one
    level), ``RECURSIVE`` fetches to the requested depth, and
    ``RECURSIVE_CHILDREN`` returns the tree of child nodes without any
    property.
    """

    NORMAL = 0
    PROPERTY = _FETCH_FILTER
    CHILDREN = _FETCH_FILTER | _FETCH_FILTER_CHILDREN
    RECURSIVE = _FETCH_RECURSIVE
    RECURSIVE_CHILDREN = _FETCH_FILTER | _FETCH_FILTER_CHILDREN | _FETCH_RECURSIVE


def _clean(data: dict[str, Any], keep_children: bool, recursive: bool) -> None:
    for key in list(data):
        if is_child_node(data[key]) != keep_children:
            del data[key]
        elif keep_children and recursive:
            _clean(data[key], True, True)


class JcrRepository:
    def __init__(self, client: JcrClient):
        self.client = client

    def crx_url(self, url: str, suffix: str = "") -> str:
        """Map a node URL to its JCR remoting servlet URL."""
        host, path = split_url(url)
        return f"{host}{CRX_ROOT}{path}{suffix}"

    # -- reads ------------------------------------------------------------

    async def fetch_node(
        self, url: str, mode: FetchMode = FetchMode.NORMAL, depth: int = -1
    ) -> dict[str, Any]:
        """Fetch a node as a property tree.

        Args:
            url: Node URL.
            mode: Filter applied to the result.
            depth: Levels of descendants to include; only honoured with a
                ``RECURSIVE`` mode (``-1`` lets the server decide). Other
                modes fetch the node alone (immediate children appear as
                ``{}``) or one level deeper for ``CHILDREN``.

        Raises:
            FetchError: If the server rejects the request (404 when the node
                does not exist).
        """
        if not mode & _FETCH_RECURSIVE:
            depth = (mode & _FETCH_FILTER_CHILDREN) >> 1
        suffix = ".json" if depth < 0 else f".{depth}.json"
        data = await run_sync_limited(
            self.client.fetch_json, self.crx_url(url, suffix)
        )
        if mode & _FETCH_FILTER:
            _clean(
                data,
                bool(mode & _FETCH_FILTER_CHILDREN),
                bool(mode & _FETCH_RECURSIVE),
            )
        return data

    async def fetch_properties(self, url: str) -> dict[str, Any]:
        return await self.fetch_node(url, FetchMode.PROPERTY)

    async def fetch_child_nodes(self, url: str) -> dict[str, Any]:
        return await self.fetch_node(url, FetchMode.CHILDREN)

    async def exists_node(self, url: str) -> bool:
        try:
            await run_sync_limited(
                self.client.fetch, self.crx_url(url, ".json"), method="HEAD"
            )
        except (JcrError, requests.RequestException):
            return False
        return True

    async def fetch_node_types(self, host: str) -> dict[str, Any]:
        """Fetch the node type definitions registered on *host*."""
        return await self.fetch_node(
            make_url(host, "/jcr:system/jcr:nodeTypes"),
            FetchMode.RECURSIVE,
            NODE_TYPES_DEPTH,
        )

    async def execute_query(
        self, host: str, predicates: Mapping[str, Any]
    ) -> list[dict[str, Any]]:
        """Run a QueryBuilder query and return its hits.

        Args:
            host: Repository base URL.
            predicates: QueryBuilder predicates, e.g. ``{"path": "/content",
                "type": "cq:Page", "p.limit": 10}``.
        """
        params = {
            k: str(v).lower() if isinstance(v, bool) else str(v)
            for k, v in predicates.items()
        }
        data = await run_sync_limited(
            self.client.fetch_json,
            make_url(host, "/bin/querybuilder.json"),
            params=params,
        )
        return list(data.get("hits") or [])

    # -- writes -----------------------------------------------------------

    async def post(
        self, url: str, fields: Mapping[str, Any] | Iterable[tuple[str, Any]]
    ) -> Any:
        """Post Sling form fields to the node at *url*."""
        return await run_sync_limited(
            self.client.post, self.crx_url(url), fields
        )

    async def save_properties(
        self,
        url: str,
        properties: Mapping[str, Any],
        options: SaveOptions | None = None,
    ) -> list[str]:
        """Bring the node at *url* and its descendants in line with
        *properties*, writing only what differs.

        Returns:
            Paths reported as changed by the server.

        Raises:
            OperationError: If any request fails. Changes already applied
                stay applied.
        """
        return await PropertyWriter(self).reconcile(url, properties, options)

    async def save_file(
        self, url: str, data: bytes, mime_type: str | None = None
    ) -> None:
        """Create or replace the ``nt:file`` node at *url* with *data*."""
        parent, name = posixpath.split(url.rstrip("/"))
        mime_type = (
            mime_type
            or mimetypes.guess_type(name)[0]
            or "application/octet-stream"
        )
        try:
            response = await run_sync_limited(
                self.client.post,
                self.crx_url(parent),
                [("*@TypeHint", NODE_TYPE.nt_file)],
                files=[("*", (name, data, mime_type))],
            )
            if not change_paths(response):
                raise OperationError("server reported no changes")
        except (JcrError, requests.RequestException) as e:
            message = f"Unable to update {url}: {e}"
            logger.error(message)
            raise OperationError(message) from e
        logger.info("Updated %s", url)

    async def delete_node(self, url: str) -> None:
        try:
            response = await self.post(url, {":operation": "delete"})
            if not change_paths(response):
                raise OperationError("server reported no changes")
        except (JcrError, requests.RequestException) as e:
            message = f"Unable to delete {url}: {e}"
            logger.error(message)
            raise OperationError(message) from e
        logger.info("Deleted %s", url)

    async def move_node(self, src_url: str, dst_url: str) -> None:
        """Move (rename) a node within one repository.

        Raises:
            OperationError: If the destination is on another server or the
                move is rejected.
        """
        src, dst = urlsplit(src_url), urlsplit(dst_url)
        if src.scheme != dst.scheme or src.netloc != dst.netloc:
            message = "Destination is on different server than source"
            logger.error(message)
            raise OperationError(message)
        host = get_host_from_url(src_url)
        try:
            await run_sync_limited(
                self.client.post,
                f"{host}{CRX_ROOT}",
                {":diff": f">{src.path} : {dst.path}"},
            )
        except (JcrError, requests.RequestException) as e:
            message = f"Unable to move {src.path} to {dst.path}: {e}"
            logger.error(message)
            raise OperationError(message) from e
        logger.info("Moved %s to %s", src.path, dst.path)

    async def _replicate(self, url: str, command: str) -> None:
        host, path = split_url(url)
        try:
            await run_sync_limited(
                self.client.post,
                make_url(host, "/bin/replicate.json"),
                {"cmd": command, "path": path},
            )
        except (JcrError, requests.RequestException) as e:
            message = f"Unable to {command} {url}: {e}"
            logger.error(message)
            raise OperationError(message) from e
        logger.info("Replication %s requested for %s", command, url)

    async def publish_node(self, url: str) -> None:
        """Activate the node at *url* through the replication servlet."""
        await self._replicate(url, "activate")

    async def unpublish_node(self, url: str) -> None:
        await self._replicate(url, "deactivate")

