"""Push local content package changes to repository hosts.

A local ``jcr_root`` tree mirrors the repository: ``.content.xml`` files
carry node properties, any other file is an ``nt:file`` node. Each change
is pushed to every configured host independently.

Modules:

- ``engine``    -- ``SyncEngine``: applies one local change to all hosts.
- ``mapper``    -- ``PathMapper``: local path to repository path mapping.
- ``models``    -- ``SyncAction``, ``SyncResult``, ``SyncReport``.
- ``reporter``  -- Human-readable and JSON report formatting.

Usage example
-------------
::

    from pathlib import Path
    from jcr_mcp_server.sync import PathMapper, SyncEngine, format_sync_report

    engine = SyncEngine(
        repository=repository,       # JcrRepository instance
        hosts=["http://localhost:4502"],
        mapper=PathMapper(Path("ui.content/src/main/content/jcr_root")),
    )
    report = await engine.push(Path(".../jcr_root/content/site/.content.xml"))
    print(format_sync_report(report))
"""

from .engine import SyncEngine
from .mapper import PathMapper, find_content_root
from .models import SyncAction, SyncReport, SyncResult
from .reporter import format_sync_report, report_to_json

__all__ = [
    "PathMapper",
    "SyncAction",
    "SyncEngine",
    "SyncReport",
    "SyncResult",
    "find_content_root",
    "format_sync_report",
    "report_to_json",
]
