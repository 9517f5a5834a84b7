"""Single-entry sync: provision, materialize, annotate and publish one template repository."""

from __future__ import annotations

import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from loguru import logger

from template_fleet_sync.errors import FleetSyncError
from template_fleet_sync.meta_consts import ErrorKind, SyncStage
from template_fleet_sync.registry import TemplateEntry
from template_fleet_sync.sync.annotator import ProvenanceAnnotator
from template_fleet_sync.sync.config import FleetSyncSettings
from template_fleet_sync.sync.hosting import GitHubHostingProvider, HostingProvider, RateLimitedHostingProvider
from template_fleet_sync.sync.materializer import TemplateMaterializer
from template_fleet_sync.sync.provisioner import RepositoryProvisioner
from template_fleet_sync.sync.publisher import WorkspacePublisher


@dataclass(frozen=True)
class SyncFailure:
    """Why and where a sync stopped."""

    stage: SyncStage
    """The stage that could not be reached."""

    kind: ErrorKind
    message: str

    cause: BaseException | None = field(default=None, compare=False, repr=False)
    """The underlying exception, if any."""

    def describe(self) -> str:
        """Return a one-line description of the failure."""
        return f"{self.stage} failed [{self.kind}]: {self.message}"


@dataclass(frozen=True)
class SyncResult:
    """The outcome of syncing one template entry. Never mutated after creation."""

    name: str
    stage_reached: SyncStage
    """The last stage completed successfully."""

    failure: SyncFailure | None = None
    created: bool | None = None
    """True if the remote repository was created by this sync, False if adopted."""

    repository_url: str | None = None
    commit_sha: str | None = None
    workspace: Path | None = None
    """The workspace left on disk, if it was kept."""

    duration_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        """Return True if the entry reached the published stage."""
        return self.failure is None

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable representation of the result."""
        return {
            "name": self.name,
            "outcome": "success" if self.succeeded else "failure",
            "stage_reached": str(self.stage_reached),
            "failed_stage": str(self.failure.stage) if self.failure else None,
            "error_kind": str(self.failure.kind) if self.failure else None,
            "error": self.failure.message if self.failure else None,
            "created": self.created,
            "repository_url": self.repository_url,
            "commit_sha": self.commit_sha,
            "workspace": str(self.workspace) if self.workspace else None,
            "duration_seconds": round(self.duration_seconds, 3),
        }


class SyncOrchestrator:
    """Run the sync stages for one entry in strict order and report a `SyncResult`.

    Stages progress `pending -> provisioned -> materialized -> annotated -> published`.
    The first failing stage ends the sync; nothing already done remotely is rolled back,
    since every stage is safe to repeat on the next run. No retries happen here.
    """

    def __init__(
        self,
        *,
        settings: FleetSyncSettings,
        provisioner: RepositoryProvisioner,
        materializer: TemplateMaterializer,
        annotator: ProvenanceAnnotator,
        publisher: WorkspacePublisher,
    ) -> None:
        self.settings = settings
        self.provisioner = provisioner
        self.materializer = materializer
        self.annotator = annotator
        self.publisher = publisher

    @classmethod
    def from_settings(cls, settings: FleetSyncSettings) -> SyncOrchestrator:
        """Build an orchestrator talking to GitHub, sharing one rate-limited call budget."""
        provider = RateLimitedHostingProvider(
            GitHubHostingProvider(settings),
            max_concurrent_calls=settings.api_rate_limit,
        )
        return cls.from_provider(provider, settings)

    @classmethod
    def from_provider(cls, provider: HostingProvider, settings: FleetSyncSettings) -> SyncOrchestrator:
        """Build an orchestrator with the default stage implementations around `provider`."""
        return cls(
            settings=settings,
            provisioner=RepositoryProvisioner(provider, settings),
            materializer=TemplateMaterializer(settings),
            annotator=ProvenanceAnnotator(settings),
            publisher=WorkspacePublisher(provider, settings),
        )

    def _finish_workspace(self, workspace: Path | None, *, failed: bool) -> Path | None:
        """Remove or keep the workspace. Returns the path if it was kept."""
        if workspace is None or not workspace.exists():
            return None

        keep = self.settings.dry_run or (failed and self.settings.keep_failed_workspaces)
        if keep:
            logger.info(f"Workspace kept for inspection: {workspace}")
            return workspace

        try:
            shutil.rmtree(workspace)
            logger.debug(f"Removed workspace {workspace}")
        except OSError as e:
            logger.warning(f"Failed to clean up workspace {workspace}: {e}")
            return workspace
        return None

    def sync(self, entry: TemplateEntry) -> SyncResult:
        """Sync one template entry. Never raises for stage failures.

        Args:
            entry: The registry entry to sync.

        Returns:
            The result of the sync, successful or not.
        """
        dry_run = self.settings.dry_run
        started = time.monotonic()
        stage = SyncStage.pending
        workspace: Path | None = None
        created: bool | None = None
        repository_url: str | None = None
        commit_sha: str | None = None

        logger.info(f"Syncing {entry.name} from {entry.source_path}")

        try:
            state = self.provisioner.provision(entry.name, dry_run=dry_run)
            created = state.created
            repository_url = state.url
            stage = SyncStage.provisioned

            workspace = self.materializer.materialize(entry.source_path, entry.name)
            stage = SyncStage.materialized

            self.annotator.annotate(workspace, entry.name, entry.source_path)
            stage = SyncStage.annotated

            commit_sha = self.publisher.publish(workspace, entry.name, dry_run=dry_run)
            stage = SyncStage.published
        except FleetSyncError as e:
            failed_stage = e.stage or stage.next_stage() or stage
            failure = SyncFailure(stage=failed_stage, kind=e.kind, message=e.message, cause=e)
        except Exception as e:
            failed_stage = stage.next_stage() or stage
            failure = SyncFailure(stage=failed_stage, kind=ErrorKind.unknown, message=str(e), cause=e)
        else:
            failure = None

        if failure is not None and workspace is None:
            workspace = getattr(failure.cause, "workspace", None)

        kept_workspace = self._finish_workspace(workspace, failed=failure is not None)
        duration = time.monotonic() - started

        if failure is None:
            logger.success(f"✓ {entry.name}: published {commit_sha[:12] if commit_sha else ''} in {duration:.1f}s")
        else:
            logger.error(f"✗ {entry.name}: {failure.describe()}")

        return SyncResult(
            name=entry.name,
            stage_reached=stage,
            failure=failure,
            created=created,
            repository_url=repository_url,
            commit_sha=commit_sha,
            workspace=kept_workspace,
            duration_seconds=duration,
        )
