"""Configuration for the JCR MCP server.

Reads repository connection settings from CLI args, environment variables,
.env files, and YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    JCR_HOSTS: Comma-separated repository base URLs (default: http://localhost:4502)
    JCR_USERNAME: Repository username
    JCR_PASSWORD: Repository password
    JCR_ACCESS_TOKEN: Bearer token used instead of username/password (optional)
    JCR_INSECURE: Skip SSL verification (optional, default: false)
    JCR_MAX_PARALLEL_REQUESTS: Max parallel HTTP requests (optional, default: 4)
    JCR_CONTENT_ROOT: Local jcr_root directory for file sync (optional)
    JCR_DELETE_REMOTE_FILES: Delete remote files when local ones are deleted (optional, default: false)
    JCR_VERBOSE_LOGGING: Log response bodies of failed requests (optional, default: false)
"""

import logging
import os
from dataclasses import dataclass, field
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

DEFAULT_HOST = "http://localhost:4502"

# Local author and publish instances ship with admin/admin.
LOCAL_DEFAULT_HOSTS = frozenset({"localhost:4502", "localhost:4503"})


@dataclass
class Config:
    hosts: list[str]
    username: str
    password: str
    access_token: str | None = None
    insecure: bool = False
    debug: bool = False
    max_parallel_requests: int = 4
    content_root: str | None = None
    delete_remote_files: bool = False
    verbose_logging: bool = False
    proxies: dict[str, str] = field(default_factory=dict)


def _is_local_default_host(host: str) -> bool:
    return urlparse(host).netloc in LOCAL_DEFAULT_HOSTS


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If a host URL is malformed or credentials are missing.
    """
    if not config.hosts:
        raise ValueError(
            "No repository hosts configured. Set JCR_HOSTS environment variable."
        )

    normalized: list[str] = []
    for host in config.hosts:
        host = host.strip()
        if not host.startswith(("http://", "https://")):
            raise ValueError(
                f"Invalid host URL '{host}': must start with http:// or https://"
            )
        parsed = urlparse(host)
        if not parsed.hostname:
            raise ValueError(
                f"Invalid host URL '{host}': URL must include a hostname"
            )
        if parsed.path not in ("", "/"):
            raise ValueError(
                f"Invalid host URL '{host}': must not contain a path"
            )
        normalized.append(host.removesuffix("/"))
    config.hosts = normalized

    if not config.access_token:
        if not config.username.strip():
            raise ValueError(
                "Repository username cannot be empty. Set JCR_USERNAME environment variable."
            )
        if not config.password.strip():
            raise ValueError(
                "Repository password cannot be empty. Set JCR_PASSWORD environment variable."
            )

    if config.insecure:
        logger.warning(
            "WARNING: SSL verification disabled (insecure=True). Use only for development."
        )


def _parse_hosts(value: str | list[str] | None) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [h.strip() for h in value if h and h.strip()]


def load_config(
    hosts: str | list[str] | None = None,
    username: str | None = None,
    password: str | None = None,
    insecure: bool = False,
    debug: bool = False,
    content_root: str | None = None,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    When no credentials are configured and every host is a local author or
    publish instance (``localhost:4502``/``localhost:4503``), the stock
    ``admin``/``admin`` credentials are used.

    Args:
        hosts: Override host list (comma-separated string or list).
        username: Override username.
        password: Override password.
        insecure: Skip SSL verification (CLI flag).
        debug: Enable debug logging (CLI flag).
        content_root: Override local content root directory.
        yaml_fallbacks: Dict of values from the YAML config ``jcr`` section
            merged with the ``sync`` section.

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If credentials are missing for a non-local host or a
            value is out of range.
    """
    fb = yaml_fallbacks or {}

    # --- Hosts: CLI > env > YAML > default ---

    final_hosts = (
        _parse_hosts(hosts)
        or _parse_hosts(os.getenv("JCR_HOSTS"))
        or _parse_hosts(fb.get("hosts"))
        or [DEFAULT_HOST]
    )

    # --- Credentials: CLI > env > YAML > local default ---

    access_token = os.getenv("JCR_ACCESS_TOKEN") or fb.get("access_token")
    jcr_username = username or os.getenv("JCR_USERNAME") or fb.get("username")
    jcr_password = password or os.getenv("JCR_PASSWORD") or fb.get("password")
    if not access_token and not (jcr_username and jcr_password):
        if all(_is_local_default_host(h) for h in final_hosts):
            jcr_username = jcr_username or "admin"
            jcr_password = jcr_password or "admin"
        else:
            raise ValueError(
                "Repository credentials not found. Set JCR_USERNAME and "
                "JCR_PASSWORD (or JCR_ACCESS_TOKEN) environment variables, "
                "pass --username/--password CLI arguments, or add them to config.yml."
            )
    jcr_username = (jcr_username or "").strip()
    jcr_password = (jcr_password or "").strip()

    # --- Boolean fields: CLI > env > YAML > default ---

    def get_bool_env(key: str) -> bool | None:
        """Return True/False from env var, or None if unset."""
        val = os.getenv(key)
        if val is None:
            return None
        return val.lower() in ("true", "1", "yes", "on")

    def resolve_bool(cli_value: bool, env_key: str, fb_key: str) -> bool:
        if cli_value:
            return True
        env_value = get_bool_env(env_key)
        if env_value is not None:
            return env_value
        return bool(fb.get(fb_key, False))

    final_insecure = resolve_bool(insecure, "JCR_INSECURE", "insecure")
    final_debug = resolve_bool(debug, "JCR_DEBUG", "debug")
    final_delete_remote = resolve_bool(
        False, "JCR_DELETE_REMOTE_FILES", "delete_remote_files"
    )
    final_verbose = resolve_bool(
        False, "JCR_VERBOSE_LOGGING", "verbose_logging"
    )

    # --- Numeric fields: env > YAML > default ---

    max_parallel_raw = os.getenv("JCR_MAX_PARALLEL_REQUESTS")
    if max_parallel_raw is not None:
        try:
            final_max_parallel = int(max_parallel_raw)
        except ValueError:
            raise ValueError(
                f"Invalid JCR_MAX_PARALLEL_REQUESTS '{max_parallel_raw}': must be a number between 1 and 100"
            ) from None
        if not (1 <= final_max_parallel <= 100):
            raise ValueError(
                f"Invalid JCR_MAX_PARALLEL_REQUESTS '{max_parallel_raw}': must be a number between 1 and 100"
            )
    elif "max_parallel_requests" in fb:
        final_max_parallel = int(fb["max_parallel_requests"])
    else:
        final_max_parallel = 4

    final_content_root = (
        content_root or os.getenv("JCR_CONTENT_ROOT") or fb.get("content_root")
    )

    config = Config(
        hosts=final_hosts,
        username=jcr_username,
        password=jcr_password,
        access_token=access_token,
        insecure=final_insecure,
        debug=final_debug,
        max_parallel_requests=final_max_parallel,
        content_root=final_content_root,
        delete_remote_files=final_delete_remote,
        verbose_logging=final_verbose,
        proxies=dict(fb.get("proxies") or {}),
    )

    validate_config(config)

    return config
