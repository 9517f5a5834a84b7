"""Hosting provider access: the small set of repository operations the sync needs.

`HostingProvider` is the capability the provisioner and publisher depend on.
`GitHubHostingProvider` binds it to the GitHub REST API through PyGithub, and
`RateLimitedHostingProvider` shares one call budget between concurrent workers.
"""

from __future__ import annotations

import threading
from typing import Any, Protocol

import requests
from github import Auth, Github, GithubException, RateLimitExceededException
from loguru import logger

from template_fleet_sync.errors import ProvisionError
from template_fleet_sync.meta_consts import ErrorKind, TeamRole
from template_fleet_sync.sync.config import FleetSyncSettings


class HostingProvider(Protocol):
    """The repository operations consumed from the hosting provider."""

    def create_repository(self, owner: str, name: str, *, public: bool = True) -> bool:
        """Create `owner/name`. Return True if created, False if it already existed."""
        ...

    def grant_team_permission(self, owner: str, name: str, team: str, role: TeamRole) -> None:
        """Grant `team` the `role` permission on `owner/name`."""
        ...

    def set_template_flag(self, owner: str, name: str, value: bool = True) -> None:
        """Set the "is template" flag of `owner/name`."""
        ...

    def push_url(self, owner: str, name: str) -> str:
        """Return the canonical address the workspace remote should point at."""
        ...

    def authenticated_push_url(self, owner: str, name: str) -> str:
        """Return the address used for the push itself (may carry credentials)."""
        ...

    def display_url(self, owner: str, name: str) -> str:
        """Return the browser URL of `owner/name`."""
        ...


def is_already_exists_error(exc: GithubException) -> bool:
    """Check whether a repository creation failure means the name is already taken.

    GitHub answers with HTTP 422 and a structured validation error on the `name` field of
    the `Repository` resource. Other problems with the name (an invalid one, for example)
    use the same resource and field, so the error code must match as well. Callers still
    confirm the repository exists before adopting it.
    """
    if exc.status != 422 or not isinstance(exc.data, dict):
        return False

    errors = exc.data.get("errors") or []
    for error in errors:
        if not isinstance(error, dict):
            continue
        if (
            error.get("resource") == "Repository"
            and error.get("field") == "name"
            and error.get("code") == "custom"
            and "already exists" in str(error.get("message", "")).lower()
        ):
            return True
        if error.get("code") == "already_exists":
            return True
    return False


def classify_exception(exc: BaseException) -> ErrorKind:
    """Map a hosting provider failure onto an `ErrorKind`."""
    if isinstance(exc, RateLimitExceededException):
        return ErrorKind.rate_limit

    if isinstance(exc, GithubException):
        message = ""
        if isinstance(exc.data, dict):
            message = str(exc.data.get("message", "")).lower()
        if exc.status == 401:
            return ErrorKind.authorization
        if exc.status in (403, 429) and "rate limit" in message:
            return ErrorKind.rate_limit
        if exc.status == 429:
            return ErrorKind.rate_limit
        if exc.status in (403, 404):
            return ErrorKind.authorization
        if exc.status == 422:
            return ErrorKind.validation
        if exc.status >= 500:
            return ErrorKind.network
        return ErrorKind.unknown

    if isinstance(exc, (requests.exceptions.Timeout, TimeoutError)):
        return ErrorKind.timeout

    if isinstance(exc, (requests.exceptions.ConnectionError, ConnectionError)):
        return ErrorKind.network

    return ErrorKind.unknown


class GitHubHostingProvider:
    """`HostingProvider` backed by the GitHub REST API."""

    def __init__(self, settings: FleetSyncSettings, *, client: Github | None = None) -> None:
        """Initialize the provider.

        Args:
            settings: The sync settings; token, API URL and timeout are read from them.
            client: An already configured PyGithub client, mainly for tests.
        """
        self.settings = settings

        if client is not None:
            self._github_client = client
            return

        # Hosting calls are not retried here; a failure surfaces as a ProvisionError right away
        kwargs: dict[str, Any] = {"timeout": settings.api_timeout, "retry": None}
        if settings.github_api_url:
            kwargs["base_url"] = settings.github_api_url

        if settings.github_token:
            logger.debug("Using GitHub token authentication")
            kwargs["auth"] = Auth.Token(settings.github_token)
        else:
            logger.warning("No GitHub token configured; hosting provider calls are unauthenticated")

        self._github_client = Github(**kwargs)

    def _fail(self, action: str, owner: str, name: str, exc: Exception) -> ProvisionError:
        kind = classify_exception(exc)
        logger.error(f"Failed to {action} for {owner}/{name}: {exc}")
        return ProvisionError(f"Failed to {action} for {owner}/{name}: {exc}", kind=kind, cause=exc)

    def create_repository(self, owner: str, name: str, *, public: bool = True) -> bool:
        try:
            organization = self._github_client.get_organization(owner)
            organization.create_repo(name, private=not public)
        except GithubException as e:
            if is_already_exists_error(e) and self._repository_exists(owner, name):
                logger.info(f"Repository {owner}/{name} already exists, adopting it")
                return False
            raise self._fail("create repository", owner, name, e) from e
        except (requests.exceptions.RequestException, OSError) as e:
            raise self._fail("create repository", owner, name, e) from e

        logger.info(f"Created repository {owner}/{name}")
        return True

    def _repository_exists(self, owner: str, name: str) -> bool:
        try:
            self._github_client.get_repo(f"{owner}/{name}")
        except GithubException as e:
            if e.status == 404:
                logger.warning(f"GitHub reported {owner}/{name} as taken, but it cannot be found")
                return False
            raise self._fail("look up repository", owner, name, e) from e
        except (requests.exceptions.RequestException, OSError) as e:
            raise self._fail("look up repository", owner, name, e) from e
        return True

    def grant_team_permission(self, owner: str, name: str, team: str, role: TeamRole) -> None:
        try:
            organization = self._github_client.get_organization(owner)
            github_team = organization.get_team_by_slug(team)
            updated = github_team.update_team_repository(f"{owner}/{name}", str(role))
        except (GithubException, requests.exceptions.RequestException, OSError) as e:
            raise self._fail(f"grant {role} to team '{team}'", owner, name, e) from e

        # PyGithub reports a rejected permission update (404, 422) as False instead of raising
        if not updated:
            message = f"Failed to grant {role} to team '{team}' for {owner}/{name}: GitHub rejected the update"
            logger.error(message)
            raise ProvisionError(message, kind=ErrorKind.authorization)

        logger.debug(f"Granted {role} on {owner}/{name} to team '{team}'")

    def set_template_flag(self, owner: str, name: str, value: bool = True) -> None:
        try:
            repo = self._github_client.get_repo(f"{owner}/{name}", lazy=True)
            repo.edit(is_template=value)
        except (GithubException, requests.exceptions.RequestException, OSError) as e:
            raise self._fail("set template flag", owner, name, e) from e

        logger.debug(f"Set is_template={value} on {owner}/{name}")

    def push_url(self, owner: str, name: str) -> str:
        if self.settings.push_protocol == "ssh":
            return f"git@{self.settings.github_host}:{owner}/{name}.git"
        return f"https://{self.settings.github_host}/{owner}/{name}.git"

    def authenticated_push_url(self, owner: str, name: str) -> str:
        if self.settings.push_protocol == "https" and self.settings.github_token:
            return f"https://x-access-token:{self.settings.github_token}@{self.settings.github_host}/{owner}/{name}.git"
        return self.push_url(owner, name)

    def display_url(self, owner: str, name: str) -> str:
        return f"https://{self.settings.github_host}/{owner}/{name}"


class RateLimitedHostingProvider:
    """Wrap a `HostingProvider` so that concurrent workers share one call budget.

    Every remote call holds one slot of a shared semaphore for its duration. URL helpers
    are local and bypass the semaphore.
    """

    def __init__(self, provider: HostingProvider, *, max_concurrent_calls: int = 1) -> None:
        self._provider = provider
        self._budget = threading.BoundedSemaphore(max(1, max_concurrent_calls))

    def create_repository(self, owner: str, name: str, *, public: bool = True) -> bool:
        with self._budget:
            return self._provider.create_repository(owner, name, public=public)

    def grant_team_permission(self, owner: str, name: str, team: str, role: TeamRole) -> None:
        with self._budget:
            self._provider.grant_team_permission(owner, name, team, role)

    def set_template_flag(self, owner: str, name: str, value: bool = True) -> None:
        with self._budget:
            self._provider.set_template_flag(owner, name, value)

    def push_url(self, owner: str, name: str) -> str:
        return self._provider.push_url(owner, name)

    def authenticated_push_url(self, owner: str, name: str) -> str:
        return self._provider.authenticated_push_url(owner, name)

    def display_url(self, owner: str, name: str) -> str:
        return self._provider.display_url(owner, name)
