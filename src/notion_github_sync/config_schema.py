"""Pydantic schema for the YAML configuration file.

The YAML file is optional; every section has defaults so an empty or
missing file is valid.  Values found here are used only as fallbacks
beneath CLI args and environment variables (see ``config.load_config``).

Usage:
    from notion_github_sync.config_schema import build_config, to_fallbacks

    raw = load_hierarchical_config()
    unified = build_config(raw)
    config = load_config(yaml_fallbacks=to_fallbacks(unified))
"""

from __future__ import annotations

from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class NotionConfig(BaseModel):
    """Tracker (Notion) connection settings."""

    token: str | None = Field(default=None, description="Integration token")
    projects_ds: str | None = Field(
        default=None, description="Projects database URL or id"
    )
    actions_ds: str | None = Field(
        default=None, description="Actions database URL or id"
    )

    model_config = {"frozen": True}


class GitHubConfig(BaseModel):
    """Board (GitHub Projects) connection settings."""

    token: str | None = Field(default=None, description="GitHub token")
    org: str | None = Field(default=None, description="Organization login")
    repo: str | None = Field(
        default=None, description="Default destination repository"
    )

    model_config = {"frozen": True}


class RunConfig(BaseModel):
    """Run options."""

    dry_run: bool | None = Field(
        default=None, description="Suppress every write when true"
    )
    request_timeout: float | None = Field(
        default=None,
        ge=1,
        le=300,
        description="Per-request timeout in seconds (1-300)",
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


class UnifiedConfig(BaseModel):
    """Top-level configuration file model."""

    notion: NotionConfig = Field(default_factory=NotionConfig)
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    sync: RunConfig = Field(default_factory=RunConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the merged YAML dict.

    Missing sections get defaults.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)


def to_fallbacks(unified: UnifiedConfig) -> dict:
    """Flatten a ``UnifiedConfig`` into the fallback dict ``load_config`` reads.

    Unset values are omitted so they never shadow built-in defaults.
    """
    flat = {
        "notion_token": unified.notion.token,
        "notion_projects_ds": unified.notion.projects_ds,
        "notion_actions_ds": unified.notion.actions_ds,
        "github_token": unified.github.token,
        "github_org": unified.github.org,
        "github_repo": unified.github.repo,
        "dry_run": unified.sync.dry_run,
        "request_timeout": unified.sync.request_timeout,
    }
    return {k: v for k, v in flat.items() if v is not None}
