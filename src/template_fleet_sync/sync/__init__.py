"""Synchronization of fleet template repositories from the template monorepo."""

from template_fleet_sync.sync.annotator import ProvenanceAnnotator
from template_fleet_sync.sync.batch import BatchDriver, FleetSyncReport
from template_fleet_sync.sync.config import FleetSyncSettings, fleet_sync_settings
from template_fleet_sync.sync.hosting import GitHubHostingProvider, HostingProvider, RateLimitedHostingProvider
from template_fleet_sync.sync.materializer import TemplateMaterializer
from template_fleet_sync.sync.orchestrator import SyncFailure, SyncOrchestrator, SyncResult
from template_fleet_sync.sync.provisioner import RepositoryProvisioner, RepositoryState
from template_fleet_sync.sync.publisher import WorkspacePublisher

__all__ = [
    "BatchDriver",
    "FleetSyncReport",
    "FleetSyncSettings",
    "GitHubHostingProvider",
    "HostingProvider",
    "ProvenanceAnnotator",
    "RateLimitedHostingProvider",
    "RepositoryProvisioner",
    "RepositoryState",
    "SyncFailure",
    "SyncOrchestrator",
    "SyncResult",
    "TemplateMaterializer",
    "WorkspacePublisher",
    "fleet_sync_settings",
]
