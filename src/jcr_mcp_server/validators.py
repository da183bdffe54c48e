"""
Input validation functions for JCR MCP Server.

Provides validation for repository paths, host URLs and property names
to ensure they meet requirements before any request is sent.
"""

from urllib.parse import urlsplit

# ---------------------------------------------------------------------------
# Error message formatting helpers
# ---------------------------------------------------------------------------


def format_validation_error(field_name: str, reason: str) -> str:
    """
    Generate consistent error message for validation failures.

    Args:
        field_name: Human-readable field name (e.g., "Path")
        reason: Description of validation failure (e.g., "cannot be empty")

    Returns:
        Formatted error message string
    """
    return f"{field_name} {reason}"


def validate_jcr_path(path: str) -> tuple[bool, str]:
    """
    Validate an absolute repository path such as ``/content/site``.

    Returns:
        Tuple of (is_valid, error_message).
        Returns (True, "") if valid, (False, reason) if invalid.

    Validation rules:
        - Cannot be empty or whitespace-only
        - Must start with '/'
        - Cannot contain '..' segments
        - Cannot have empty path segments (e.g., '/content//site')
    """
    if not path or not path.strip():
        return (False, format_validation_error("Path", "cannot be empty"))

    if not path.startswith("/"):
        return (False, format_validation_error("Path", "must start with '/'"))

    if ".." in path.split("/"):
        return (False, format_validation_error("Path", "cannot contain '..'"))

    if "//" in path:
        return (
            False,
            format_validation_error("Path", "cannot have empty path segments"),
        )

    return (True, "")


def validate_host_url(url: str) -> tuple[bool, str]:
    """
    Validate a repository host URL such as ``http://localhost:4502``.

    Validation rules:
        - Scheme must be http or https
        - Must name a host
        - Cannot carry a path, query or fragment
    """
    parts = urlsplit(url.strip())
    if parts.scheme not in ("http", "https"):
        return (
            False,
            format_validation_error("Host URL", "must use http or https"),
        )
    if not parts.hostname:
        return (False, format_validation_error("Host URL", "must name a host"))
    if parts.path.strip("/") or parts.query or parts.fragment:
        return (
            False,
            format_validation_error("Host URL", "cannot contain a path"),
        )
    return (True, "")


def validate_property_name(name: str) -> tuple[bool, str]:
    """
    Validate a property name used in a write.

    Names starting with ':' are type hints and '/' would address another
    node.
    """
    if not name or not name.strip():
        return (
            False,
            format_validation_error("Property name", "cannot be empty"),
        )
    if name.startswith(":"):
        return (
            False,
            format_validation_error("Property name", "cannot start with ':'"),
        )
    if "/" in name:
        return (
            False,
            format_validation_error("Property name", "cannot contain '/'"),
        )
    return (True, "")
