"""Create-or-adopt provisioning of fleet repositories."""

from __future__ import annotations

from dataclasses import dataclass, field

from loguru import logger

from template_fleet_sync.errors import FleetSyncError, ProvisionError
from template_fleet_sync.meta_consts import ErrorKind, TeamRole
from template_fleet_sync.sync.config import FleetSyncSettings
from template_fleet_sync.sync.hosting import HostingProvider


@dataclass(frozen=True)
class RepositoryState:
    """The state of a remote repository as asserted by the last provisioning run."""

    name: str
    exists: bool
    is_template: bool
    permissions: frozenset[tuple[str, TeamRole]] = field(default_factory=frozenset)
    """(team, role) pairs that were granted."""

    created: bool = False
    """True if the repository was created by this run rather than adopted."""

    url: str | None = None


class RepositoryProvisioner:
    """Ensure a fleet repository exists, is public, is a template and is administered by the maintainer teams.

    Every call re-asserts the full desired state. Nothing is read back or cached, so a
    permission revoked by hand, or a template flag switched off, is repaired on the next run.
    """

    def __init__(self, provider: HostingProvider, settings: FleetSyncSettings) -> None:
        self.provider = provider
        self.settings = settings

    def provision(self, name: str, *, dry_run: bool = False) -> RepositoryState:
        """Create or adopt the repository `name` and re-apply permissions and the template flag.

        Args:
            name: The repository name under the fleet's owning organization.
            dry_run: Log the intended calls instead of making them.

        Returns:
            The asserted repository state.

        Raises:
            ProvisionError: If any provider call fails for a reason other than "already exists".
        """
        owner = self.settings.owner
        required_permissions = frozenset((team, TeamRole.admin) for team in self.settings.maintainer_teams)

        if dry_run:
            logger.info(f"[DRY RUN] Would create or adopt {owner}/{name} (public)")
            for team in self.settings.maintainer_teams:
                logger.info(f"[DRY RUN] Would grant {TeamRole.admin} on {owner}/{name} to team '{team}'")
            logger.info(f"[DRY RUN] Would set is_template=true on {owner}/{name}")
            return RepositoryState(
                name=name,
                exists=True,
                is_template=True,
                permissions=required_permissions,
                url=self.provider.display_url(owner, name),
            )

        try:
            created = self.provider.create_repository(owner, name, public=True)

            for team in self.settings.maintainer_teams:
                self.provider.grant_team_permission(owner, name, team, TeamRole.admin)

            self.provider.set_template_flag(owner, name, True)
        except ProvisionError:
            raise
        except FleetSyncError as e:
            raise ProvisionError(e.message, kind=e.kind, cause=e) from e
        except Exception as e:
            raise ProvisionError(
                f"Unexpected error while provisioning {owner}/{name}: {e}",
                kind=ErrorKind.unknown,
                cause=e,
            ) from e

        logger.debug(f"Provisioned {owner}/{name} ({'created' if created else 'adopted'})")
        return RepositoryState(
            name=name,
            exists=True,
            is_template=True,
            permissions=required_permissions,
            created=created,
            url=self.provider.display_url(owner, name),
        )
