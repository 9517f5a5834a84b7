"""Publish a workspace as the single-commit state of a fleet repository's default branch."""

from __future__ import annotations

from pathlib import Path

from git import GitCommandError, InvalidGitRepositoryError, Repo
from loguru import logger

from template_fleet_sync.errors import PublishError
from template_fleet_sync.meta_consts import ErrorKind
from template_fleet_sync.sync.config import FleetSyncSettings
from template_fleet_sync.sync.hosting import HostingProvider

_AUTHORIZATION_MARKERS = ("permission denied", "authentication failed", "403", "could not read username")
_NETWORK_MARKERS = ("could not resolve host", "connection", "network is unreachable", "early eof")


def classify_git_error(exc: GitCommandError) -> ErrorKind:
    """Map a failed git invocation onto an `ErrorKind` using its stderr."""
    text = f"{exc.stderr or ''} {exc}".lower()
    if "timeout" in text or "did not complete" in text:
        return ErrorKind.timeout
    if any(marker in text for marker in _AUTHORIZATION_MARKERS):
        return ErrorKind.authorization
    if any(marker in text for marker in _NETWORK_MARKERS):
        return ErrorKind.network
    return ErrorKind.tool


class WorkspacePublisher:
    """Commit a workspace as one snapshot and force-push it over the remote default branch."""

    def __init__(self, provider: HostingProvider, settings: FleetSyncSettings) -> None:
        self.provider = provider
        self.settings = settings

    def commit_message(self, name: str) -> str:
        """Return the message of the snapshot commit for `name`."""
        return f"Sync {name} with {self.settings.source_repo} repo"

    def _identity_environment(self) -> dict[str, str]:
        environment: dict[str, str] = {}
        if self.settings.commit_author_name:
            environment["GIT_AUTHOR_NAME"] = self.settings.commit_author_name
            environment["GIT_COMMITTER_NAME"] = self.settings.commit_author_name
        if self.settings.commit_author_email:
            environment["GIT_AUTHOR_EMAIL"] = self.settings.commit_author_email
            environment["GIT_COMMITTER_EMAIL"] = self.settings.commit_author_email
        return environment

    def _redact(self, text: str) -> str:
        if self.settings.github_token:
            return text.replace(self.settings.github_token, "***")
        return text

    def _open_repository(self, workspace: Path) -> Repo:
        """Open the repository left in `workspace` by the materializer, or initialize one.

        A reused repository that already has commits gets a fresh orphan branch, so the
        snapshot commit never has a parent.
        """
        if (workspace / ".git").exists():
            try:
                repo = Repo(workspace)
            except InvalidGitRepositoryError as e:
                raise PublishError(
                    f"{workspace} contains an invalid .git directory", kind=ErrorKind.validation, cause=e
                ) from e

            if repo.head.is_valid():
                orphan_branch = f"{self.settings.default_branch}-snapshot"
                logger.debug(f"Workspace already has history, starting orphan branch {orphan_branch}")
                repo.git.checkout("--orphan", orphan_branch)
            return repo

        logger.debug(f"Initializing git repository in {workspace}")
        return Repo.init(workspace)

    def _point_origin(self, repo: Repo, url: str) -> None:
        if "origin" in [remote.name for remote in repo.remotes]:
            repo.remote("origin").set_url(url)
        else:
            repo.create_remote("origin", url)

    def publish(self, workspace: Path, name: str, *, dry_run: bool = False) -> str:
        """Commit everything in `workspace` and replace the remote default branch with it.

        Args:
            workspace: The materialized and annotated workspace.
            name: The fleet repository name.
            dry_run: Commit locally but skip the push.

        Returns:
            The SHA of the published commit.

        Raises:
            PublishError: If any git operation fails.
        """
        owner = self.settings.owner
        branch = self.settings.default_branch
        origin_url = self.provider.push_url(owner, name)
        push_target = self.provider.authenticated_push_url(owner, name)

        try:
            repo = self._open_repository(workspace)
            try:
                repo.git.add("--all")

                commit_message = self.commit_message(name)
                logger.debug(f"Committing with message: {commit_message}")
                with repo.git.custom_environment(**self._identity_environment()):
                    repo.git.commit("-m", commit_message, "--no-gpg-sign")

                repo.git.branch("-M", branch)
                self._point_origin(repo, origin_url)
                commit_sha = repo.head.commit.hexsha

                if dry_run:
                    logger.info(f"[DRY RUN] Would force-push {commit_sha[:12]} to {origin_url} ({branch})")
                    return commit_sha

                logger.info(f"Force-pushing {name} to {origin_url} ({branch})")
                repo.git.push(
                    "--force",
                    push_target if push_target != origin_url else "origin",
                    f"HEAD:refs/heads/{branch}",
                    kill_after_timeout=self.settings.push_timeout,
                )
            finally:
                repo.close()
        except GitCommandError as e:
            message = self._redact(f"git failed with status {e.status}: {(e.stderr or str(e)).strip()}")
            logger.error(f"Failed to publish {name}: {message}")
            raise PublishError(message, kind=classify_git_error(e), cause=e) from e
        except PublishError:
            raise
        except Exception as e:
            message = self._redact(f"Unexpected error while publishing {name}: {e}")
            logger.error(message)
            raise PublishError(message, kind=ErrorKind.unknown, cause=e) from e

        logger.debug(f"Published {name} at {commit_sha}")
        return commit_sha
