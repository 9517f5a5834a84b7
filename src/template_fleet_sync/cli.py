r"""Command line entry point for syncing template repositories.

The sync, for every template in the registry:
1. Creates the remote repository, or adopts it if it already exists
2. Re-grants admin to the maintainer teams and marks it as a template
3. Materializes the template into a fresh workspace and refreshes its lock file
4. Appends the provenance block to the README
5. Force-pushes a single snapshot commit over the default branch

Environment variables:
    TEMPLATE_FLEET_SYNC_GITHUB_TOKEN - GitHub token (falls back to GITHUB_TOKEN)
    TEMPLATE_FLEET_SYNC_OWNER - Owning organization (default: shuttle-hq)
    TEMPLATE_FLEET_SYNC_TEMPLATES_ROOT - Local checkout of the template monorepo
    TEMPLATE_FLEET_SYNC_REGISTRY_PATH - Registry file (default: templates.toml in the templates root)
    TEMPLATE_FLEET_SYNC_CONCURRENCY - Number of templates synced at once (default: 1)
    TEMPLATE_FLEET_SYNC_DRY_RUN - Set to 'true' to skip all remote changes
    TEMPLATE_FLEET_SYNC_VERBOSE_LOGGING - Set to 'true' for verbose logging

Examples:
    # Sync every template in the registry
    template-fleet-sync sync-all

    # Preview what would happen, from a name|path listing on stdin
    some-command --list-template-repos | template-fleet-sync sync-all --registry - --dry-run

    # Sync two templates with two workers
    template-fleet-sync sync-all --only hello-world-axum todo-api --concurrency 2

    # Sync a single template
    template-fleet-sync sync-one todo-api templates/todo-api

Exit codes:
    0 - every template synced
    1 - at least one template failed (see the summary)
    2 - the run itself could not be carried out (e.g. unreadable registry)
"""

from __future__ import annotations

import argparse
import json
import signal
import sys
from typing import Any

from loguru import logger

from template_fleet_sync.errors import FleetSyncError, RegistryError
from template_fleet_sync.logging_config import configure_cli_logger
from template_fleet_sync.registry import TemplateEntry, load_registry, select_entries
from template_fleet_sync.sync.batch import BatchDriver, FleetSyncReport
from template_fleet_sync.sync.config import FleetSyncSettings, fleet_sync_settings
from template_fleet_sync.sync.orchestrator import SyncOrchestrator

EXIT_OK = 0
EXIT_ENTRY_FAILURES = 1
EXIT_FATAL = 2


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for all subcommands."""
    parser = argparse.ArgumentParser(
        prog="template-fleet-sync",
        description="Sync standalone template repositories from the template monorepo",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        help="Materialize and commit locally, but never change or push to the remote",
    )
    common.add_argument(
        "--json",
        action="store_true",
        default=False,
        help="Print the report as JSON instead of a text summary",
    )
    common.add_argument(
        "--verbose",
        action="store_true",
        default=False,
        help="Enable debug logging",
    )
    common.add_argument(
        "--templates-root",
        type=str,
        default=None,
        help="Local checkout of the template monorepo (default: from env or current directory)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    sync_all = subparsers.add_parser("sync-all", parents=[common], help="Sync every template in the registry")
    sync_all.add_argument(
        "--registry",
        type=str,
        default=None,
        help="Registry file (.toml or name|path listing), or '-' for a listing on stdin",
    )
    sync_all.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Number of templates synced at the same time (default: 1)",
    )
    sync_all.add_argument(
        "--only",
        nargs="+",
        default=None,
        metavar="NAME",
        help="Only sync these templates, in registry order",
    )
    sync_all.add_argument(
        "--keep-going-exit-zero",
        action="store_true",
        default=False,
        help="Exit with 0 even if some templates failed",
    )

    sync_one = subparsers.add_parser("sync-one", parents=[common], help="Sync a single template")
    sync_one.add_argument("name", help="Template name, also the remote repository name")
    sync_one.add_argument("path", help="Template path relative to the template monorepo")

    list_parser = subparsers.add_parser("list", help="Print the registry as name|path lines")
    list_parser.add_argument("--registry", type=str, default=None, help="Registry file, or '-' for stdin")
    list_parser.add_argument("--templates-root", type=str, default=None, help=argparse.SUPPRESS)

    return parser


def settings_from_args(args: argparse.Namespace, base: FleetSyncSettings | None = None) -> FleetSyncSettings:
    """Return a copy of the settings with command line overrides applied."""
    updates: dict[str, Any] = {}

    if getattr(args, "dry_run", False):
        updates["dry_run"] = True
    if getattr(args, "verbose", False):
        updates["verbose_logging"] = True
    if getattr(args, "templates_root", None):
        updates["templates_root"] = args.templates_root
    if getattr(args, "registry", None):
        updates["registry_path"] = args.registry
    if getattr(args, "concurrency", None) is not None:
        updates["concurrency"] = max(1, args.concurrency)

    return (base or fleet_sync_settings).model_copy(update=updates)


def print_report(report: FleetSyncReport, *, as_json: bool) -> None:
    """Print the fleet report to stdout."""
    if as_json:
        print(json.dumps(report.to_dict(), indent=2))
        return

    logger.info("=" * 80)
    logger.info("Template Sync Summary")
    logger.info("=" * 80)
    for line in report.summary().splitlines():
        logger.info(line)


def install_cancel_handlers(driver: BatchDriver) -> dict[int, Any]:
    """Stop starting new templates on SIGINT/SIGTERM; in-flight templates are finished.

    Returns:
        The previous handlers, keyed by signal number.
    """

    def _signal_handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        signal_name = "SIGINT" if signum == signal.SIGINT else "SIGTERM"
        logger.info(f"\n{signal_name} received. Finishing the current template before stopping...")
        driver.cancel()

    previous = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        previous[signum] = signal.signal(signum, _signal_handler)
    return previous


def run_batch(
    entries: list[TemplateEntry],
    settings: FleetSyncSettings,
    *,
    orchestrator: SyncOrchestrator | None = None,
    install_signal_handlers: bool = True,
) -> FleetSyncReport:
    """Sync `entries` with the given settings and return the report."""
    orchestrator = orchestrator or SyncOrchestrator.from_settings(settings)
    driver = BatchDriver(orchestrator.sync, concurrency=settings.concurrency)
    if not install_signal_handlers:
        return driver.run(entries)

    previous_handlers = install_cancel_handlers(driver)
    try:
        return driver.run(entries)
    finally:
        for signum, handler in previous_handlers.items():
            signal.signal(signum, handler)


def _exit_code(report: FleetSyncReport, *, ignore_failures: bool) -> int:
    if report.all_succeeded or ignore_failures:
        return EXIT_OK
    return EXIT_ENTRY_FAILURES


def _log_header(settings: FleetSyncSettings) -> None:
    logger.info("=" * 80)
    logger.info("Template Repository Sync")
    logger.info("=" * 80)
    logger.info(f"Owner: {settings.owner}")
    logger.info(f"Maintainer teams: {', '.join(settings.maintainer_teams) or '(none)'}")
    logger.info(f"Default branch: {settings.default_branch}")
    if settings.dry_run:
        logger.info("Mode: DRY RUN (no remote changes)")
    logger.info("=" * 80)


def command_sync_all(args: argparse.Namespace, settings: FleetSyncSettings) -> int:
    try:
        source = "-" if settings.registry_path == "-" else settings.resolve_registry_path()
        entries = select_entries(load_registry(source), args.only)
    except RegistryError as e:
        logger.error(f"Cannot read template registry: {e.describe()}")
        return EXIT_FATAL

    if not entries:
        logger.warning("Template registry is empty, nothing to sync")
        print_report(FleetSyncReport(), as_json=args.json)
        return EXIT_OK

    _log_header(settings)

    try:
        report = run_batch(entries, settings)
    except FleetSyncError as e:
        logger.error(f"Sync run aborted: {e.describe()}")
        return EXIT_FATAL

    print_report(report, as_json=args.json)
    return _exit_code(report, ignore_failures=args.keep_going_exit_zero)


def command_sync_one(args: argparse.Namespace, settings: FleetSyncSettings) -> int:
    try:
        entry = TemplateEntry(name=args.name, source_path=args.path)
    except ValueError as e:
        logger.error(f"Invalid template: {e}")
        return EXIT_FATAL

    _log_header(settings)

    try:
        report = run_batch([entry], settings, install_signal_handlers=False)
    except FleetSyncError as e:
        logger.error(f"Sync run aborted: {e.describe()}")
        return EXIT_FATAL

    print_report(report, as_json=args.json)
    return _exit_code(report, ignore_failures=False)


def command_list(args: argparse.Namespace, settings: FleetSyncSettings) -> int:
    try:
        source = "-" if settings.registry_path == "-" else settings.resolve_registry_path()
        entries = load_registry(source)
    except RegistryError as e:
        logger.error(f"Cannot read template registry: {e.describe()}")
        return EXIT_FATAL

    for entry in entries:
        print(entry.to_listing_line())
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    """Enter the template sync command line.

    Returns:
        Exit code (0 for success, 1 if any template failed, 2 for a fatal error).
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = settings_from_args(args)
    configure_cli_logger(
        verbose=settings.verbose_logging,
        to_stderr=getattr(args, "json", False) or args.command == "list",
    )

    if args.command == "sync-all":
        return command_sync_all(args, settings)
    if args.command == "sync-one":
        return command_sync_one(args, settings)
    return command_list(args, settings)


if __name__ == "__main__":
    sys.exit(main())
