"""Shared pytest fixtures for notion-github-sync tests."""

import pytest

from notion_github_sync.config import Config

from fakes import Clock, FakeStore

_ENV_VARS = (
    "NOTION_TOKEN",
    "NOTION_PROJECTS_DS",
    "NOTION_ACTIONS_DS",
    "GITHUB_TOKEN",
    "GITHUB_ORG",
    "GITHUB_REPO",
    "DRY_RUN",
    "SYNC_REQUEST_TIMEOUT",
    "LOG_LEVEL",
    "LOG_FILE",
    "NOTION_GITHUB_SYNC_CONFIG",
)

PROJECTS_DB = "0123456789abcdef0123456789abcdef"
ACTIONS_DB = "fedcba9876543210fedcba9876543210"


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that require live Notion and GitHub credentials",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "live: mark test as requiring live Notion and GitHub credentials",
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every variable the sync reads so tests start from nothing."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def sync_env(clean_env):
    """A complete, valid set of required environment variables."""
    clean_env.setenv("NOTION_TOKEN", "secret_notion")
    clean_env.setenv(
        "NOTION_PROJECTS_DS", f"https://www.notion.so/acme/ds/{PROJECTS_DB}"
    )
    clean_env.setenv("NOTION_ACTIONS_DS", ACTIONS_DB)
    clean_env.setenv("GITHUB_TOKEN", "ghp_test")
    clean_env.setenv("GITHUB_ORG", "acme")
    return clean_env


@pytest.fixture
def mock_config():
    """A validated-looking Config instance for testing."""
    return Config(
        notion_token="secret_notion",
        notion_projects_db="01234567-89ab-cdef-0123-456789abcdef",
        notion_actions_db="fedcba98-7654-3210-fedc-ba9876543210",
        github_token="ghp_test",
        github_org="acme",
    )


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def tracker(clock):
    """Tracker-role fake store (stamps the checkpoint)."""
    return FakeStore(
        "tracker", clock, stamps_checkpoint=True, default_status="Not Started"
    )


@pytest.fixture
def board(clock):
    """Board-role fake store (no checkpoint)."""
    return FakeStore("board", clock)
