"""
Config file discovery and loading for notion_github_sync.

Finds YAML config files by convention, merges them with "project wins"
semantics, and interpolates ``${VAR}`` references from the environment
so tokens can stay out of the file.

Usage:
    from notion_github_sync.config_loader import load_hierarchical_config

    raw = load_hierarchical_config()
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigurationInvalid

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "NOTION_GITHUB_SYNC_CONFIG"
CONFIG_DIR_NAME = ".notion_github_sync"

# Matches ${VAR} and ${VAR:-default}
_ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+?)(?::-(.*?))?\}")


def interpolate_env_vars(value: str) -> str:
    """Replace ``${VAR}`` and ``${VAR:-default}`` patterns with env values.

    ``${VAR:-default}`` uses *default* when VAR is unset or empty; a bare
    ``${VAR}`` that is unset becomes the empty string.
    """

    def _replace(match: re.Match) -> str:
        env_val = os.environ.get(match.group(1))
        if env_val:
            return env_val
        return match.group(2) or ""

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _interpolate_recursive(obj: Any) -> Any:
    if isinstance(obj, str):
        return interpolate_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _interpolate_recursive(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_interpolate_recursive(item) for item in obj]
    return obj


def discover_config_files() -> list[Path]:
    """Return existing config file paths in precedence order (highest first).

    Search order:
        1. ``NOTION_GITHUB_SYNC_CONFIG`` env var (explicit single path)
        2. ``.notion_github_sync/config.yml`` in CWD (project-level)
        3. ``~/.config/notion_github_sync/config.yml`` (XDG global)

    Only paths that exist on disk are returned.
    """
    candidates: list[Path] = []

    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        candidates.append(Path(env_path).expanduser().resolve())

    candidates.append(Path.cwd() / CONFIG_DIR_NAME / "config.yml")
    candidates.append(
        Path.home() / ".config" / "notion_github_sync" / "config.yml"
    )

    return [p for p in candidates if p.exists()]


def load_hierarchical_config() -> dict[str, Any]:
    """Load and merge all discovered config files.

    Files are loaded from lowest precedence to highest; each file's
    top-level sections **replace** (not deep-merge) earlier ones.

    Returns an empty dict when no config files exist.

    Raises:
        ConfigurationInvalid: If a discovered file cannot be read.
        yaml.YAMLError: If a file is not valid YAML.
    """
    paths = discover_config_files()

    if not paths:
        logger.debug("No config files found; using environment only")
        return {}

    merged: dict[str, Any] = {}
    for path in reversed(paths):
        logger.debug("Loading config: %s", path)
        try:
            with open(path, encoding="utf-8") as fh:
                data = yaml.safe_load(fh)
        except OSError as exc:
            raise ConfigurationInvalid(
                f"Cannot read config file {path}: {exc.strerror or exc}"
            ) from exc
        except yaml.YAMLError:
            logger.exception("Failed to parse config file %s", path)
            raise

        if isinstance(data, dict):
            merged.update(data)
        elif data is not None:
            logger.warning(
                "Config file %s has non-dict root (%s); skipping",
                path,
                type(data).__name__,
            )

    return _interpolate_recursive(merged)
