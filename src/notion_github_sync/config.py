"""Run configuration for the Notion <-> GitHub sync.

Reads store credentials and run options from CLI args, environment
variables, .env files, and YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    NOTION_TOKEN: Notion integration token (required)
    NOTION_PROJECTS_DS: Projects database URL or id (required)
    NOTION_ACTIONS_DS: Actions database URL or id (required)
    GITHUB_TOKEN: GitHub token with project and repo scopes (required)
    GITHUB_ORG: GitHub organization login (required)
    DRY_RUN: "true" or "false" (optional, default: true)
    GITHUB_REPO: Default destination repository (optional, default: chittyreception)
    SYNC_REQUEST_TIMEOUT: Per-request timeout in seconds (optional, default: 30)
"""

import logging
import os
import re
from dataclasses import dataclass

from .errors import ConfigurationInvalid

logger = logging.getLogger(__name__)

DEFAULT_REPOSITORY = "chittyreception"
DEFAULT_TIMEOUT = 30.0

# Notion data-source URLs look like https://www.notion.so/<ws>/ds/<32 hex>?db=...
_DS_URL_PATTERN = re.compile(r"ds/([a-f0-9]{32})", re.IGNORECASE)
_TRAILING_ID_PATTERN = re.compile(r"([a-f0-9]{32})(?:[?#].*)?$", re.IGNORECASE)
_DASHED_ID_PATTERN = re.compile(
    r"^[a-f0-9]{8}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{12}$",
    re.IGNORECASE,
)


@dataclass
class Config:
    notion_token: str
    notion_projects_db: str
    notion_actions_db: str
    github_token: str
    github_org: str
    repository: str = DEFAULT_REPOSITORY
    dry_run: bool = True
    request_timeout: float = DEFAULT_TIMEOUT
    debug: bool = False


def extract_database_id(value: str) -> str:
    """Return the dashed Notion database id contained in *value*.

    Accepts a data-source URL (``.../ds/<id>...``), any Notion URL ending
    in a 32-character hex id, a bare 32-character id, or an already
    dashed UUID.

    Raises:
        ConfigurationInvalid: If no id can be found.
    """
    text = value.strip()
    if _DASHED_ID_PATTERN.match(text):
        return text.lower()

    match = _DS_URL_PATTERN.search(text)
    if match is None:
        path = text.split("?", 1)[0].rstrip("/")
        match = _TRAILING_ID_PATTERN.search(path)
    if match is None:
        raise ConfigurationInvalid(
            f"Could not extract database ID from '{value}'"
        )
    raw = match.group(1).lower()
    return f"{raw[:8]}-{raw[8:12]}-{raw[12:16]}-{raw[16:20]}-{raw[20:]}"


def parse_dry_run(value: str) -> bool:
    """Parse a DRY_RUN value.  Only ``true`` and ``false`` are accepted."""
    normalized = value.strip().lower()
    if normalized == "true":
        return True
    if normalized == "false":
        return False
    raise ConfigurationInvalid(
        f"Invalid DRY_RUN '{value}': must be 'true' or 'false'"
    )


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ConfigurationInvalid if invalid.

    Normalizes database locators to dashed ids in place.

    Args:
        config: Config instance to validate.

    Raises:
        ConfigurationInvalid: If a credential is empty, a database locator
            is malformed, or the timeout is out of range.
    """
    for attr, env_name in (
        ("notion_token", "NOTION_TOKEN"),
        ("github_token", "GITHUB_TOKEN"),
        ("github_org", "GITHUB_ORG"),
    ):
        if not getattr(config, attr).strip():
            raise ConfigurationInvalid(
                f"{env_name} cannot be empty. Set the {env_name} environment variable."
            )

    config.notion_projects_db = extract_database_id(config.notion_projects_db)
    config.notion_actions_db = extract_database_id(config.notion_actions_db)

    config.repository = config.repository.strip()
    if not config.repository:
        raise ConfigurationInvalid("Destination repository cannot be empty")
    if "/" in config.repository:
        # Accept "org/repo" when the org matches
        owner, _, name = config.repository.partition("/")
        if owner != config.github_org:
            raise ConfigurationInvalid(
                f"Repository '{config.repository}' is not owned by "
                f"GITHUB_ORG '{config.github_org}'"
            )
        config.repository = name

    if not (1 <= config.request_timeout <= 300):
        raise ConfigurationInvalid(
            f"Invalid request timeout {config.request_timeout}: "
            "must be between 1 and 300 seconds"
        )

    if not config.dry_run:
        logger.warning("DRY_RUN=false: changes will be written to both stores")


def load_config(
    repository: str | None = None,
    dry_run: bool | None = None,
    timeout: float | None = None,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        repository: Destination repository (positional CLI argument).
        dry_run: ``--dry-run`` / ``--live`` CLI flag, ``None`` when absent.
        timeout: ``--timeout`` CLI value in seconds.
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Flat dict produced by
            ``config_schema.to_fallbacks()``.

    Returns:
        Validated Config instance.

    Raises:
        ConfigurationInvalid: If required config is missing or malformed
            after checking all sources.
    """
    fb = yaml_fallbacks or {}

    def required(env_name: str, key: str) -> str:
        value = os.getenv(env_name) or fb.get(key)
        if not value:
            raise ConfigurationInvalid(
                f"{env_name} not found. Set the {env_name} environment "
                f"variable or add '{key}' to config.yml."
            )
        return str(value).strip()

    notion_token = required("NOTION_TOKEN", "notion_token")
    projects_db = required("NOTION_PROJECTS_DS", "notion_projects_ds")
    actions_db = required("NOTION_ACTIONS_DS", "notion_actions_ds")
    github_token = required("GITHUB_TOKEN", "github_token")
    github_org = required("GITHUB_ORG", "github_org")

    final_repository = (
        repository
        or os.getenv("GITHUB_REPO")
        or fb.get("github_repo")
        or DEFAULT_REPOSITORY
    )

    # --- DRY_RUN: CLI > env > YAML > default (true) ---

    if dry_run is not None:
        final_dry_run = dry_run
    else:
        env_dry_run = os.getenv("DRY_RUN")
        if env_dry_run is not None and env_dry_run != "":
            final_dry_run = parse_dry_run(env_dry_run)
        elif "dry_run" in fb:
            final_dry_run = bool(fb["dry_run"])
        else:
            final_dry_run = True

    # --- Timeout: CLI > env > YAML > default ---

    if timeout is not None:
        final_timeout = float(timeout)
    else:
        timeout_raw = os.getenv("SYNC_REQUEST_TIMEOUT")
        if timeout_raw is not None:
            try:
                final_timeout = float(timeout_raw)
            except ValueError:
                raise ConfigurationInvalid(
                    f"Invalid SYNC_REQUEST_TIMEOUT '{timeout_raw}': must be a number of seconds"
                ) from None
        elif "request_timeout" in fb:
            final_timeout = float(fb["request_timeout"])
        else:
            final_timeout = DEFAULT_TIMEOUT

    config = Config(
        notion_token=notion_token,
        notion_projects_db=projects_db,
        notion_actions_db=actions_db,
        github_token=github_token,
        github_org=github_org,
        repository=final_repository,
        dry_run=final_dry_run,
        request_timeout=final_timeout,
        debug=debug,
    )

    validate_config(config)

    return config
