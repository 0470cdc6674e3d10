"""Command-line entry point for one Notion <-> GitHub sync pass."""

from __future__ import annotations

import argparse
import json
import logging
import sys

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from . import __version__
from .adapters import BoardAdapter, TrackerAdapter
from .config import Config, load_config
from .config_loader import load_hierarchical_config
from .config_schema import build_config, to_fallbacks
from .core import GitHubClient, NotionClient
from .errors import ConfigurationInvalid
from .logger import setup_logging
from .sync import RunController, RunState, format_sync_report, report_to_json

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="notion-github-sync",
        description="Reconcile Notion projects and actions with GitHub Projects and issues",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Preview what would change (the default; nothing is written)
  notion-github-sync

  # Apply changes, creating new issues in another repository
  notion-github-sync chittyops --live

  # Machine-readable report on stdout, diagnostics on stderr
  notion-github-sync --json > report.json

Credentials are read from NOTION_TOKEN, NOTION_PROJECTS_DS,
NOTION_ACTIONS_DS, GITHUB_TOKEN and GITHUB_ORG (environment, .env, or
config.yml).  Exit status is 0 when the pass completes, even with
conflicts or per-entity errors, and 1 when it cannot run.
        """,
    )
    parser.add_argument(
        "repository",
        nargs="?",
        help="Destination repository for new issues "
        "(overrides GITHUB_REPO; default: chittyreception)",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--dry-run",
        dest="dry_run",
        action="store_const",
        const=True,
        default=None,
        help="Report what would change without writing (overrides DRY_RUN)",
    )
    mode.add_argument(
        "--live",
        dest="dry_run",
        action="store_const",
        const=False,
        help="Write changes to both stores (overrides DRY_RUN)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        help="Per-request timeout in seconds, 1-300 "
        "(overrides SYNC_REQUEST_TIMEOUT; default: 30)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the report as JSON instead of text",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--log-file",
        help="Also write diagnostics to this file (overrides LOG_FILE)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"notion-github-sync version {__version__}",
    )
    return parser


def build_controller(config: Config) -> RunController:
    """Wire the transports and adapters for *config* into a controller."""
    notion = NotionClient(config.notion_token, timeout=config.request_timeout)
    github = GitHubClient(
        config.github_token, config.github_org, timeout=config.request_timeout
    )
    return RunController(
        tracker=TrackerAdapter(
            notion, config.notion_projects_db, config.notion_actions_db
        ),
        board=BoardAdapter(github, repository=config.repository),
        repository=config.repository,
        dry_run=config.dry_run,
    )


def main(argv: list[str] | None = None) -> int:
    """Run one sync pass and return the process exit status."""
    args = build_parser().parse_args(argv)

    load_dotenv()

    try:
        unified = build_config(load_hierarchical_config())
        config = load_config(
            repository=args.repository,
            dry_run=args.dry_run,
            timeout=args.timeout,
            debug=args.debug,
            yaml_fallbacks=to_fallbacks(unified),
        )
    except (ConfigurationInvalid, ValidationError, yaml.YAMLError) as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1

    setup_logging(
        debug=config.debug,
        log_file=args.log_file or unified.logging.file,
        level=unified.logging.level,
    )

    controller = build_controller(config)
    try:
        report = controller.run()
    except Exception:
        logger.exception("Sync aborted by an unexpected error")
        return 1

    if args.json:
        print(json.dumps(report_to_json(report), indent=2))
    else:
        print(format_sync_report(report))

    return 1 if report.state == RunState.FAILED else 0


def run() -> None:
    """Console script entry point."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
