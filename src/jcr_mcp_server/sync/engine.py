"""Push local content changes to every configured repository host.

One local change (a created, modified or deleted file under the content
root) is applied to each host independently:

- a changed ``.content.xml`` is parsed and its property tree reconciled
  with the node, deleting properties the file no longer lists;
- a deleted ``.content.xml`` is ignored (the node is not removed);
- a deleted file removes the remote ``nt:file`` node, only when remote
  deletion is enabled;
- any other changed file is uploaded as ``nt:file``, unless the remote
  node exists and is something else (e.g. a folder).

A failure on one host is logged and reported; it never stops the others.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import requests

from jcr_mcp_server.core.async_utils import gather_limited, run_sync
from jcr_mcp_server.core.client import make_url
from jcr_mcp_server.core.constants import NODE_TYPE, PROP
from jcr_mcp_server.core.content_xml import ContentXmlError, parse_content_xml
from jcr_mcp_server.core.errors import JcrError
from jcr_mcp_server.core.repo import JcrRepository
from jcr_mcp_server.core.writer import SaveOptions
from jcr_mcp_server.file_handler import read_binary_file, read_file_with_encoding
from jcr_mcp_server.sync.mapper import PathMapper, is_content_file
from jcr_mcp_server.sync.models import SyncAction, SyncReport, SyncResult

logger = logging.getLogger(__name__)

HostAction = Callable[[str], Awaitable[SyncResult]]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SyncEngine:
    """Apply local content changes to a set of hosts.

    Args:
        repository: Repository façade used for every host.
        hosts: Repository base URLs.
        mapper: Maps local paths to repository paths.
        delete_remote_files: Propagate local file deletions.
    """

    def __init__(
        self,
        repository: JcrRepository,
        hosts: Sequence[str],
        mapper: PathMapper,
        delete_remote_files: bool = False,
    ) -> None:
        self.repository = repository
        self.hosts = list(hosts)
        self.mapper = mapper
        self.delete_remote_files = delete_remote_files

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    async def push(self, local_path: Path, deleted: bool = False) -> SyncReport:
        """Apply one local change to every host.

        Args:
            local_path: Absolute path of the changed file.
            deleted: Whether the file was deleted.

        Returns:
            A ``SyncReport`` with one result per host; no results when the
            file is outside the content root.
        """
        started_at = _now()
        remote_path = self.mapper.to_remote_path(local_path)
        if remote_path is None:
            logger.debug("Ignoring %s: outside content root", local_path)
            return SyncReport(
                local_path=str(local_path),
                deleted=deleted,
                started_at=started_at,
                completed_at=_now(),
            )

        if is_content_file(local_path):
            if deleted:
                results = self._skip_all(remote_path, "content file deleted")
            else:
                results = await self._push_content_file(local_path, remote_path)
        elif deleted:
            if self.delete_remote_files:
                results = await self._for_each_host(
                    remote_path,
                    lambda host: self._delete_file(host, remote_path),
                )
            else:
                results = self._skip_all(remote_path, "remote deletion disabled")
        elif local_path.is_file():
            data = await run_sync(read_binary_file, local_path)
            results = await self._for_each_host(
                remote_path,
                lambda host: self._upload_file(host, remote_path, data),
            )
        else:
            results = self._skip_all(remote_path, "not a file")

        return SyncReport(
            local_path=str(local_path),
            remote_path=remote_path,
            deleted=deleted,
            results=results,
            started_at=started_at,
            completed_at=_now(),
        )

    # ------------------------------------------------------------------
    # Per-host actions
    # ------------------------------------------------------------------

    async def _push_content_file(
        self, local_path: Path, remote_path: str
    ) -> list[SyncResult]:
        content, _ = await run_sync(read_file_with_encoding, local_path)
        try:
            properties = parse_content_xml(content)
        except ContentXmlError as e:
            logger.error("Cannot parse %s: %s", local_path, e)
            return [
                SyncResult(
                    host=host,
                    remote_path=remote_path,
                    action=SyncAction.UPDATE_PROPERTIES,
                    success=False,
                    error=str(e),
                )
                for host in self.hosts
            ]
        return await self._for_each_host(
            remote_path,
            lambda host: self._update_properties(host, remote_path, properties),
        )

    async def _update_properties(
        self, host: str, remote_path: str, properties: dict[str, Any]
    ) -> SyncResult:
        url = make_url(host, remote_path)
        logger.info("sync: Updating properties of %s", url)
        changes = await self.repository.save_properties(
            url, properties, SaveOptions(delete_props=True)
        )
        return SyncResult(
            host=host,
            remote_path=remote_path,
            action=SyncAction.UPDATE_PROPERTIES,
            changes=changes,
        )

    async def _delete_file(self, host: str, remote_path: str) -> SyncResult:
        url = make_url(host, remote_path)
        node = await self._fetch_node_or_none(url)
        if not node or node.get(PROP.jcr_primary_type) != NODE_TYPE.nt_file:
            return self._skip(host, remote_path, "remote node is not a file")
        logger.info("sync: Deleting %s", url)
        await self.repository.delete_node(url)
        return SyncResult(
            host=host, remote_path=remote_path, action=SyncAction.DELETE_REMOTE
        )

    async def _upload_file(
        self, host: str, remote_path: str, data: bytes
    ) -> SyncResult:
        url = make_url(host, remote_path)
        node = await self._fetch_node_or_none(url)
        if node and node.get(PROP.jcr_primary_type) != NODE_TYPE.nt_file:
            return self._skip(host, remote_path, "remote node is not a file")
        logger.info("sync: Updating %s", url)
        await self.repository.save_file(url, data)
        return SyncResult(
            host=host, remote_path=remote_path, action=SyncAction.UPLOAD_FILE
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _fetch_node_or_none(self, url: str) -> dict[str, Any] | None:
        try:
            return await self.repository.fetch_node(url)
        except (JcrError, requests.RequestException):
            return None

    async def _run_for_host(
        self, host: str, remote_path: str, action: HostAction
    ) -> SyncResult:
        try:
            return await action(host)
        except (JcrError, requests.RequestException, ValueError) as e:
            logger.error("sync: %s failed: %s", host, e)
            return SyncResult(
                host=host,
                remote_path=remote_path,
                action=SyncAction.SKIP,
                success=False,
                error=str(e),
            )

    async def _for_each_host(
        self, remote_path: str, action: HostAction
    ) -> list[SyncResult]:
        return await gather_limited(
            [self._run_for_host(host, remote_path, action) for host in self.hosts]
        )

    def _skip(self, host: str, remote_path: str, reason: str) -> SyncResult:
        return SyncResult(
            host=host,
            remote_path=remote_path,
            action=SyncAction.SKIP,
            reason=reason,
        )

    def _skip_all(self, remote_path: str, reason: str) -> list[SyncResult]:
        return [self._skip(host, remote_path, reason) for host in self.hosts]
