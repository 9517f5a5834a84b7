"""Batch driver: sync every registry entry and collect a fleet report."""

from __future__ import annotations

import threading
from collections.abc import Callable, Sequence
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from template_fleet_sync.meta_consts import ErrorKind, SyncStage
from template_fleet_sync.registry import TemplateEntry
from template_fleet_sync.sync.orchestrator import SyncFailure, SyncResult


@dataclass
class FleetSyncReport:
    """Results of one batch run, in registry order."""

    results: list[SyncResult] = field(default_factory=list)

    cancelled: bool = False
    """True if the run was interrupted before every entry was attempted."""

    skipped: list[str] = field(default_factory=list)
    """Entries never started because the run was cancelled."""

    @property
    def successes(self) -> list[SyncResult]:
        return [result for result in self.results if result.succeeded]

    @property
    def failures(self) -> list[SyncResult]:
        return [result for result in self.results if not result.succeeded]

    @property
    def all_succeeded(self) -> bool:
        """Return True if every attempted entry succeeded and nothing was skipped."""
        return not self.failures and not self.skipped

    def summary(self) -> str:
        """Return a human-readable summary of the run."""
        lines = [
            f"Templates processed: {len(self.results)}",
            f"Successful: {len(self.successes)}",
            f"Failed: {len(self.failures)}",
        ]
        if self.cancelled:
            lines.append(f"Cancelled: {len(self.skipped)} template(s) not started")

        width = max((len(result.name) for result in self.results), default=0)
        for result in self.results:
            if result.failure is None:
                detail = "created" if result.created else "adopted" if result.created is False else ""
                lines.append(f"  ✓ {result.name:<{width}}  success {detail}".rstrip())
            else:
                lines.append(f"  ✗ {result.name:<{width}}  {result.failure.describe()}")
                if result.workspace:
                    lines.append(f"    {'':<{width}}  workspace: {result.workspace}")

        for name in self.skipped:
            lines.append(f"  - {name:<{width}}  skipped")

        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable representation of the report."""
        return {
            "results": [result.to_dict() for result in self.results],
            "succeeded": len(self.successes),
            "failed": len(self.failures),
            "cancelled": self.cancelled,
            "skipped": list(self.skipped),
        }


SyncFunction = Callable[[TemplateEntry], SyncResult]


class BatchDriver:
    """Run a sync function over registry entries, isolating failures between entries.

    With `concurrency == 1` entries run one after another. With a larger value a bounded
    worker pool is used; each entry still gets its own workspace, and the report keeps
    registry order. Cancellation is cooperative: an entry that has started is always
    finished, so a repository is never left half-published.
    """

    def __init__(
        self,
        sync: SyncFunction,
        *,
        concurrency: int = 1,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self.sync = sync
        self.concurrency = max(1, concurrency)
        self.cancel_event = cancel_event or threading.Event()

    def cancel(self) -> None:
        """Request that no further entries are started."""
        if not self.cancel_event.is_set():
            logger.warning("Cancellation requested; finishing in-flight template(s) before stopping")
        self.cancel_event.set()

    def _run_one(self, entry: TemplateEntry) -> SyncResult:
        try:
            return self.sync(entry)
        except Exception as e:
            logger.exception(f"Unhandled error while syncing {entry.name}")
            return SyncResult(
                name=entry.name,
                stage_reached=SyncStage.pending,
                failure=SyncFailure(stage=SyncStage.pending, kind=ErrorKind.unknown, message=str(e), cause=e),
            )

    def _run_sequential(self, entries: Sequence[TemplateEntry]) -> dict[int, SyncResult]:
        results: dict[int, SyncResult] = {}
        for index, entry in enumerate(entries):
            if self.cancel_event.is_set():
                break
            logger.info(f"[{index + 1}/{len(entries)}] {entry.name}")
            results[index] = self._run_one(entry)
        return results

    def _run_pool(self, entries: Sequence[TemplateEntry]) -> dict[int, SyncResult]:
        results: dict[int, SyncResult] = {}
        pending: dict[Future[SyncResult], int] = {}
        next_index = 0

        with ThreadPoolExecutor(max_workers=self.concurrency, thread_name_prefix="template-sync") as executor:
            while next_index < len(entries) or pending:
                while (
                    next_index < len(entries) and len(pending) < self.concurrency and not self.cancel_event.is_set()
                ):
                    entry = entries[next_index]
                    logger.info(f"[{next_index + 1}/{len(entries)}] {entry.name}")
                    pending[executor.submit(self._run_one, entry)] = next_index
                    next_index += 1

                if not pending:
                    break

                done, _ = wait(pending, return_when=FIRST_COMPLETED)
                for future in done:
                    results[pending.pop(future)] = future.result()

        return results

    def run(self, entries: Sequence[TemplateEntry]) -> FleetSyncReport:
        """Sync every entry and return the fleet report.

        A failed entry never stops the batch. Entries not started because of cancellation
        are listed in `FleetSyncReport.skipped`.
        """
        logger.info(f"Syncing {len(entries)} template(s) with concurrency {self.concurrency}")

        if self.concurrency == 1:
            results = self._run_sequential(entries)
        else:
            results = self._run_pool(entries)

        report = FleetSyncReport(
            results=[results[index] for index in sorted(results)],
            cancelled=len(results) < len(entries),
            skipped=[entry.name for index, entry in enumerate(entries) if index not in results],
        )

        if report.cancelled:
            logger.warning(f"Batch cancelled after {len(report.results)} of {len(entries)} template(s)")

        return report
