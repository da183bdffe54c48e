"""Mapping between a local FileVault content tree and repository paths.

A content tree mirrors the repository under a ``jcr_root`` directory:

- ``jcr_root/content/site/.content.xml`` holds the properties of
  ``/content/site``;
- ``jcr_root/apps/site/_cq_dialog/.content.xml`` holds ``/apps/site/cq:dialog``;
- any other file is an ``nt:file`` node of the same name.
"""

from __future__ import annotations

from pathlib import Path, PurePosixPath

from jcr_mcp_server.core.content_xml import filesystem_to_jcr, jcr_to_filesystem

CONTENT_FILE_NAME = ".content.xml"

# Conventional locations of jcr_root inside a content package project
JCR_ROOT_SOURCE_DIRECTORIES = (
    "jcr_root",
    "src/main/jcr_root",
    "src/main/content/jcr_root",
    "src/content/jcr_root",
)


def find_content_root(project_dir: Path) -> Path | None:
    """Locate the ``jcr_root`` directory of a content package project."""
    for candidate in JCR_ROOT_SOURCE_DIRECTORIES:
        path = project_dir / candidate
        if path.is_dir():
            return path.resolve()
    return None


def is_content_file(path: Path | PurePosixPath) -> bool:
    return path.name == CONTENT_FILE_NAME


class PathMapper:
    """Map local paths under a content root to repository paths and back.

    Args:
        jcr_root: Local directory that mirrors the repository root.
    """

    def __init__(self, jcr_root: Path) -> None:
        self.jcr_root = jcr_root.resolve()

    def to_remote_path(self, local_path: Path) -> str | None:
        """Repository path of the node described by *local_path*.

        Returns:
            Absolute repository path, or ``None`` when *local_path* is not
            under the content root.
        """
        try:
            relative = local_path.resolve().relative_to(self.jcr_root)
        except ValueError:
            return None
        rel = PurePosixPath(relative.as_posix())
        if is_content_file(rel):
            rel = rel.parent
        path = filesystem_to_jcr(rel.as_posix())
        if path in ("", "."):
            return "/"
        return "/" + path

    def to_local_path(self, remote_path: str, content_file: bool = False) -> Path:
        """Local path for *remote_path*.

        Args:
            remote_path: Absolute repository path.
            content_file: Return the node's ``.content.xml`` instead of a
                file named after the node.
        """
        relative = jcr_to_filesystem(remote_path.strip("/"))
        path = self.jcr_root / relative if relative else self.jcr_root
        if content_file:
            path = path / CONTENT_FILE_NAME
        return path
