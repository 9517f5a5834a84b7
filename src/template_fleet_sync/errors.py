"""Error types raised while syncing template repositories.

Every stage of a sync raises exactly one error type, tagged with the stage it failed to
reach and a broad `ErrorKind`. The orchestrator turns these into failed `SyncResult`s;
only `RegistryError` is allowed to stop a whole batch.
"""

from __future__ import annotations

from pathlib import Path

from template_fleet_sync.meta_consts import ErrorKind, MaterializeStep, SyncStage


class FleetSyncError(Exception):
    """Base class for all errors raised by template-fleet-sync."""

    stage: SyncStage | None = None

    def __init__(
        self,
        message: str,
        *,
        kind: ErrorKind = ErrorKind.unknown,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.cause = cause

    def describe(self) -> str:
        """Return a one-line description including the error kind."""
        return f"[{self.kind}] {self.message}"


class ProvisionError(FleetSyncError):
    """Creating, adopting or configuring the remote repository failed."""

    stage = SyncStage.provisioned


class MaterializeError(FleetSyncError):
    """Instantiating the template or locking its dependencies failed."""

    stage = SyncStage.materialized

    def __init__(
        self,
        message: str,
        *,
        step: MaterializeStep,
        kind: ErrorKind = ErrorKind.unknown,
        cause: BaseException | None = None,
        workspace: Path | None = None,
    ) -> None:
        super().__init__(message, kind=kind, cause=cause)
        self.step = step
        self.workspace = workspace

    def describe(self) -> str:
        return f"[{self.kind}] {self.step}: {self.message}"


class AnnotationError(FleetSyncError):
    """The provenance block could not be appended to the workspace documentation."""

    stage = SyncStage.annotated


class PublishError(FleetSyncError):
    """Committing the workspace or force-pushing it to the remote failed."""

    stage = SyncStage.published


class RegistryError(FleetSyncError):
    """The template registry could not be read or is invalid. Fatal for a batch."""


__all__ = [
    "AnnotationError",
    "FleetSyncError",
    "MaterializeError",
    "ProvisionError",
    "PublishError",
    "RegistryError",
]
