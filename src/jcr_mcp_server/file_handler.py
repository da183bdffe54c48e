"""File handler module: path validation and encoding-aware read/write.

Provides the local file I/O used by the content tools and the sync engine.
All sync functions are pure (no side effects besides file I/O).
Async wrappers compose validation + I/O via run_sync().
"""

from pathlib import Path

from charset_normalizer import from_bytes

from jcr_mcp_server.core.async_utils import run_sync

# =============================================================================
# Path Validation
# =============================================================================


def validate_file_path(path_str: str) -> Path:
    """Validate and resolve an input file path.

    Args:
        path_str: Absolute path string to an existing file.

    Returns:
        Resolved Path object pointing to the real file.

    Raises:
        ValueError: If path is relative, doesn't exist, or is not a file.
    """
    path = Path(path_str)
    if not path.is_absolute():
        raise ValueError(f"Path must be absolute: {path_str}")
    resolved = path.resolve()
    if not resolved.exists():
        raise ValueError(f"File not found: {path_str}")
    if not resolved.is_file():
        raise ValueError(f"Path is not a file: {path_str}")
    return resolved


def validate_output_path(
    path_str: str, base_dir: str | None = None
) -> Path:
    """Validate an output file path (the file need not exist).

    Args:
        path_str: Absolute path string for the output file.
        base_dir: Optional base directory; output must be under this directory.

    Returns:
        Resolved Path object for the output file.

    Raises:
        ValueError: If path is relative or outside base_dir.
    """
    path = Path(path_str)
    if not path.is_absolute():
        raise ValueError(f"Path must be absolute: {path_str}")
    resolved = path.resolve()
    if base_dir is not None:
        base_resolved = Path(base_dir).resolve()
        if not resolved.is_relative_to(base_resolved):
            raise ValueError(
                f"Output path is outside base directory: {resolved} not under {base_resolved}"
            )
    return resolved


# =============================================================================
# File Read/Write
# =============================================================================


def read_file_with_encoding(path: Path) -> tuple[str, str]:
    """Read a text file with automatic encoding detection.

    A UTF-8 byte order mark is honoured; otherwise charset-normalizer picks
    the encoding. Defaults to UTF-8 for empty files or when detection fails.

    Returns:
        Tuple of (content_string, detected_encoding).
    """
    raw = path.read_bytes()
    if not raw:
        return ("", "utf-8")
    if raw.startswith(b"\xef\xbb\xbf"):
        return (raw[3:].decode("utf-8", errors="replace"), "utf-8")

    result = from_bytes(raw).best()
    if result is None:
        encoding = "utf-8"
        content = raw.decode(encoding, errors="replace")
    else:
        encoding = result.encoding
        # ascii is a strict subset of utf-8
        if encoding == "ascii":
            encoding = "utf-8"
        content = str(result)
    return (content, encoding)


def read_binary_file(path: Path) -> bytes:
    return path.read_bytes()


def write_file(
    path: Path, content: str | bytes, encoding: str = "utf-8"
) -> int:
    """Write content to a file, creating parent directories as needed.

    Returns:
        Number of bytes written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    encoded = content.encode(encoding) if isinstance(content, str) else content
    path.write_bytes(encoded)
    return len(encoded)


# =============================================================================
# Async Wrappers
# =============================================================================


async def write_file_async(
    path_str: str,
    content: str | bytes,
    encoding: str = "utf-8",
    base_dir: str | None = None,
) -> tuple[Path, int]:
    """Async wrapper: validate output path, write file.

    Returns:
        Tuple of (resolved_path, bytes_written).

    Raises:
        ValueError: If output path validation fails.
    """
    resolved = await run_sync(validate_output_path, path_str, base_dir)
    count = await run_sync(write_file, resolved, content, encoding)
    return (resolved, count)
