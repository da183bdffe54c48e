"""Sync report formatting functions.

- ``format_sync_report`` -- human-readable summary of one pushed change.
- ``report_to_json`` -- structured dict for MCP tool output.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import SyncReport


def format_sync_report(report: SyncReport) -> str:
    """Format a sync report as human-readable text.

    Sections are only included when they contain at least one result.
    """
    lines: list[str] = []

    verb = "Deleted" if report.deleted else "Changed"
    if report.remote_path is None:
        lines.append(f"{verb} {report.local_path}: outside content root, ignored")
        return "\n".join(lines)

    lines.append(f"{verb} {report.local_path} -> {report.remote_path}")
    lines.append(f"Started: {report.started_at}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines.append("")

    lines.append(
        f"{len(report.results)} hosts: "
        f"{len(report.updated)} updated, {len(report.uploaded)} uploaded, "
        f"{len(report.deleted_remote)} deleted, "
        f"{len(report.skipped)} skipped, {len(report.errors)} errors"
    )
    lines.append("")

    if report.updated:
        lines.append("Properties updated:")
        for r in report.updated:
            suffix = f" ({len(r.changes)} changes)" if r.changes else " (unchanged)"
            lines.append(f"  {r.host}{suffix}")
        lines.append("")

    if report.uploaded:
        lines.append("Uploaded:")
        for r in report.uploaded:
            lines.append(f"  {r.host}")
        lines.append("")

    if report.deleted_remote:
        lines.append("Deleted:")
        for r in report.deleted_remote:
            lines.append(f"  {r.host}")
        lines.append("")

    if report.skipped:
        lines.append("Skipped:")
        for r in report.skipped:
            lines.append(f"  {r.host}: {r.reason}")
        lines.append("")

    if report.errors:
        lines.append("Errors:")
        for r in report.errors:
            lines.append(f"  {r.host}: {r.error}")
        lines.append("")

    return "\n".join(lines).rstrip()


def report_to_json(report: SyncReport) -> dict:
    """Convert a sync report to a dict suitable for ``structuredContent``."""
    results_list = []
    for r in report.results:
        entry: dict = {
            "host": r.host,
            "remote_path": r.remote_path,
            "action": r.action.value,
            "success": r.success,
        }
        if r.changes:
            entry["changes"] = list(r.changes)
        if r.reason:
            entry["reason"] = r.reason
        if r.error:
            entry["error"] = r.error
        results_list.append(entry)

    return {
        "local_path": report.local_path,
        "remote_path": report.remote_path,
        "deleted": report.deleted,
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "counts": {
            "total": len(report.results),
            "updated": len(report.updated),
            "uploaded": len(report.uploaded),
            "deleted": len(report.deleted_remote),
            "skipped": len(report.skipped),
            "errors": len(report.errors),
        },
        "results": results_list,
    }
