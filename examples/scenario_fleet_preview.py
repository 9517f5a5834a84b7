"""Fleet Preview Example.

This example demonstrates how to drive a template sync from Python instead of the
command line: load the registry, preview the whole fleet in dry-run mode, then sync
a single template for real.

Run it from a checkout of the template monorepo, with a GitHub token in
TEMPLATE_FLEET_SYNC_GITHUB_TOKEN (or GITHUB_TOKEN) for the real sync.
"""

from template_fleet_sync import configure_logger, load_registry
from template_fleet_sync.sync import BatchDriver, FleetSyncReport, FleetSyncSettings, SyncOrchestrator, SyncResult


def example_1_preview_fleet(settings: FleetSyncSettings) -> FleetSyncReport:
    """Preview every registry entry without touching any remote.

    Each template is still materialized, annotated and committed locally, so a broken
    template shows up here exactly as it would in a real run.
    """
    print("=" * 70)
    print("Example 1: Dry-run the whole fleet")
    print("=" * 70)

    preview_settings = settings.model_copy(update={"dry_run": True})
    entries = load_registry(preview_settings.resolve_registry_path())

    orchestrator = SyncOrchestrator.from_settings(preview_settings)
    report = BatchDriver(orchestrator.sync, concurrency=preview_settings.concurrency).run(entries)

    print(report.summary())
    for result in report.results:
        if result.workspace:
            print(f"  {result.name}: inspect {result.workspace}")
    print()
    return report


def example_2_sync_one(settings: FleetSyncSettings, name: str) -> SyncResult:
    """Sync a single registry entry for real and inspect its result."""
    print("=" * 70)
    print(f"Example 2: Sync '{name}'")
    print("=" * 70)

    entries = [entry for entry in load_registry(settings.resolve_registry_path()) if entry.name == name]
    if not entries:
        raise SystemExit(f"'{name}' is not in the registry")

    result = SyncOrchestrator.from_settings(settings).sync(entries[0])

    if result.failure is None:
        print(f"Published {result.commit_sha} to {result.repository_url}")
    else:
        print(f"Stopped before '{result.failure.stage}': {result.failure.message}")
    print()
    return result


def main() -> None:
    configure_logger("INFO")
    settings = FleetSyncSettings()

    report = example_1_preview_fleet(settings)
    if report.successes:
        example_2_sync_one(settings, report.successes[0].name)


if __name__ == "__main__":
    main()
