"""
Hierarchical YAML configuration loader for jcr_mcp_server.

Finds config files by convention, resolves ``!include`` directives and
``${VAR:-default}`` references, and merges the files section by section.

Usage:
    from jcr_mcp_server.config_loader import load_hierarchical_config

    raw = load_hierarchical_config()
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

PROJECT_CONFIG_DIR = ".jcr_mcp"
CONFIG_ENV_VAR = "JCR_MCP_CONFIG"

# ---------------------------------------------------------------------------
# Env var interpolation
# ---------------------------------------------------------------------------

# ${VAR} or ${VAR:-default}
_ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+?)(?::-(.*?))?\}")


def interpolate_env_vars(value: str) -> str:
    """Substitute ``${VAR}`` and ``${VAR:-default}`` references.

    An unset or empty variable yields its default, or ``""`` without one.
    A ``${`` with no closing brace is left as is.
    """

    def _replace(match: re.Match) -> str:
        env_val = os.environ.get(match.group(1))
        if env_val:
            return env_val
        return match.group(2) or ""

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _interpolate_recursive(obj: Any) -> Any:
    match obj:
        case str():
            return interpolate_env_vars(obj)
        case dict():
            return {k: _interpolate_recursive(v) for k, v in obj.items()}
        case list():
            return [_interpolate_recursive(item) for item in obj]
        case _:
            return obj


# ---------------------------------------------------------------------------
# YAML !include support
# ---------------------------------------------------------------------------


class ConfigLoader(yaml.SafeLoader):
    """SafeLoader with an ``!include`` tag.

    A subclass keeps the global ``yaml.SafeLoader`` untouched. Each loader
    carries the chain of files being loaded to detect include cycles.
    """

    include_chain: tuple[Path, ...] = ()


def _include_constructor(
    loader: ConfigLoader, node: yaml.ScalarNode
) -> Any:
    target = Path(loader.construct_scalar(node)).expanduser()
    source = Path(loader.name).resolve()
    if not target.is_absolute():
        target = source.parent / target
    target = target.resolve()

    if target in loader.include_chain:
        chain = " -> ".join(str(p) for p in (*loader.include_chain, target))
        raise ValueError(f"Circular include detected: {chain}")
    if not target.exists():
        raise FileNotFoundError(
            f"Include file not found: {target} (referenced from {source})"
        )
    return load_yaml_file(target, loader.include_chain)


ConfigLoader.add_constructor("!include", _include_constructor)


def load_yaml_file(path: Path, include_chain: tuple[Path, ...] = ()) -> Any:
    """Load one YAML file, resolving ``!include`` relative to it."""
    path = path.resolve()
    with open(path, "r", encoding="utf-8") as fh:
        loader = ConfigLoader(fh)
        loader.include_chain = (*include_chain, path)
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def discover_config_files() -> list[Path]:
    """Return existing config files, highest precedence first.

    Search order:
        1. ``JCR_MCP_CONFIG`` env var (explicit single path)
        2. ``.jcr_mcp/config.yml`` in CWD (project-level)
        3. ``.jcr_mcp/config.yaml`` in CWD
        4. ``~/.config/jcr_mcp/config.yml`` (XDG global)
    """
    candidates: list[Path] = []

    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        candidates.append(Path(env_path).expanduser().resolve())

    project_dir = Path.cwd() / PROJECT_CONFIG_DIR
    candidates.append(project_dir / "config.yml")
    candidates.append(project_dir / "config.yaml")
    candidates.append(Path.home() / ".config" / "jcr_mcp" / "config.yml")

    return [p for p in candidates if p.exists()]


# ---------------------------------------------------------------------------
# Bootstrapping
# ---------------------------------------------------------------------------

_STARTER_CONFIG = """\
# jcr-mcp-server configuration
#
# Connection settings can also be set via environment variables:
#   JCR_HOSTS, JCR_USERNAME, JCR_PASSWORD, JCR_ACCESS_TOKEN, JCR_INSECURE
#
# jcr:
#   hosts:
#     - http://localhost:4502
#     - http://localhost:4503
#   username: admin
#   password: ${JCR_PASSWORD:-admin}
#   insecure: false
#   max_parallel_requests: 4
#   verbose_logging: false
#   proxies:
#     "*.corp.example.com": http://proxy.example.com:3128
#
# Workspace sync of FileVault content files:
#
# sync:
#   content_root: ./ui.apps/src/main/content/jcr_root
#   delete_remote_files: false
#
# logging:
#   level: INFO
#   file: null
"""


def resolve_config_path() -> Path:
    """Return the active config file, or the project-level default path
    (``CWD/.jcr_mcp/config.yml``) when none exists. Never creates it."""
    existing = discover_config_files()
    if existing:
        return existing[0]
    return Path.cwd() / PROJECT_CONFIG_DIR / "config.yml"


def ensure_config(target: Path | None = None) -> Path:
    """Return the active config file, writing a commented starter file first
    if none exists.

    Args:
        target: Where to create the starter file. Defaults to
            ``resolve_config_path()``.
    """
    existing = discover_config_files()
    if existing:
        logger.debug("Config file already exists: %s", existing[0])
        return existing[0]

    config_path = target or resolve_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(_STARTER_CONFIG, encoding="utf-8")
    logger.info("Created starter config: %s", config_path)
    return config_path


# ---------------------------------------------------------------------------
# Hierarchical merge
# ---------------------------------------------------------------------------


def _merge_sections(base: dict[str, Any], overlay: dict[str, Any]) -> None:
    for key, value in overlay.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = {**base[key], **value}
        else:
            base[key] = value


def load_hierarchical_config() -> dict[str, Any]:
    """Load and merge all discovered config files.

    Files are applied from lowest to highest precedence. Within each
    top-level section (``jcr``, ``sync``, ``logging``) keys from a
    higher-precedence file win, so a project file can override the host
    list while credentials still come from the global file.

    Env var references are resolved after merging. Returns ``{}`` when no
    config file exists.
    """
    paths = discover_config_files()
    if not paths:
        logger.debug("No config files found, using zero-config defaults")
        return {}

    merged: dict[str, Any] = {}
    for path in reversed(paths):
        logger.debug("Loading config: %s", path)
        try:
            data = load_yaml_file(path)
        except Exception:
            logger.exception("Failed to load config file %s", path)
            raise

        if isinstance(data, dict):
            _merge_sections(merged, data)
        elif data is not None:
            logger.warning(
                "Config file %s has non-dict root (%s), skipping",
                path,
                type(data).__name__,
            )

    return _interpolate_recursive(merged)
