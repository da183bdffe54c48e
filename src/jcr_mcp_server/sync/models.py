"""Pydantic models for workspace sync.

- ``SyncAction``: what was done on one host.
- ``SyncResult``: outcome of pushing one local file to one host.
- ``SyncReport``: all host results for one local change.

All models are frozen.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class SyncAction(str, Enum):
    """Possible outcomes of pushing a local file to one host."""

    SKIP = "skip"
    UPDATE_PROPERTIES = "update_properties"
    UPLOAD_FILE = "upload_file"
    DELETE_REMOTE = "delete_remote"


class SyncResult(BaseModel):
    """Result of pushing one local file to one host.

    Attributes:
        host: Repository base URL.
        remote_path: Repository path of the affected node.
        action: Action that was performed (or attempted).
        success: Whether the action succeeded.
        changes: Paths the server reported as changed.
        reason: Why the file was skipped, if it was.
        error: Error message if the action failed.
    """

    host: str
    remote_path: str
    action: SyncAction
    success: bool = True
    changes: list[str] = []
    reason: str | None = None
    error: str | None = None

    model_config = {"frozen": True}


class SyncReport(BaseModel):
    """Aggregate report for one local change pushed to every host.

    Attributes:
        local_path: Absolute path of the local file.
        remote_path: Repository path it maps to, or None when the file is
            outside the content root.
        deleted: Whether the local file was deleted.
        results: One result per host.
        started_at: ISO 8601 timestamp when the push started.
        completed_at: ISO 8601 timestamp when the push completed.
    """

    local_path: str
    remote_path: str | None = None
    deleted: bool = False
    results: list[SyncResult] = []
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    def _with_action(self, action: SyncAction) -> list[SyncResult]:
        return [r for r in self.results if r.action == action and r.success]

    @property
    def updated(self) -> list[SyncResult]:
        """Hosts whose node properties were reconciled."""
        return self._with_action(SyncAction.UPDATE_PROPERTIES)

    @property
    def uploaded(self) -> list[SyncResult]:
        """Hosts that received the file."""
        return self._with_action(SyncAction.UPLOAD_FILE)

    @property
    def deleted_remote(self) -> list[SyncResult]:
        """Hosts where the remote file was deleted."""
        return self._with_action(SyncAction.DELETE_REMOTE)

    @property
    def skipped(self) -> list[SyncResult]:
        return self._with_action(SyncAction.SKIP)

    @property
    def errors(self) -> list[SyncResult]:
        """Results that failed."""
        return [r for r in self.results if not r.success]

    @property
    def ok(self) -> bool:
        return not self.errors
