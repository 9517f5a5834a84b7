"""Configuration settings for the template repository sync service."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from loguru import logger
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from template_fleet_sync import (
    SYNC_CONSOLE_TEMPLATE_URL,
    SYNC_DEFAULT_BRANCH,
    SYNC_MAINTAINER_TEAMS,
    SYNC_OWNER,
    SYNC_SOURCE_REPO,
)


class FleetSyncSettings(BaseSettings):
    """Settings for syncing template repositories from the template monorepo."""

    model_config = SettingsConfigDict(
        env_prefix="TEMPLATE_FLEET_SYNC_",
        use_attribute_docstrings=True,
    )

    suppress_meta_warnings: bool = True
    """Suppress configuration warnings, for example, for use in tests."""

    owner: str = SYNC_OWNER
    """The organization that owns every fleet repository."""

    maintainer_teams: list[str] = Field(default_factory=lambda: list(SYNC_MAINTAINER_TEAMS))
    """Team slugs that are granted admin permission on every fleet repository."""

    default_branch: str = SYNC_DEFAULT_BRANCH
    """The branch that is overwritten with each sync snapshot."""

    source_repo: str = SYNC_SOURCE_REPO
    """The template monorepo in 'owner/name' format, linked from the provenance block."""

    source_branch: str = "main"
    """Branch of the template monorepo used for the provenance back-link."""

    templates_root: str | None = None
    """Local checkout of the template monorepo. Source paths are resolved against it. \
If None, the current working directory is used."""

    registry_path: str | None = None
    """Template registry file (`.toml`, or a `name|path` listing). \
If None, `templates.toml` in `templates_root` is used."""

    console_template_url: str = SYNC_CONSOLE_TEMPLATE_URL
    """Call-to-action URL for provisioning the template from the console. `{name}` is substituted."""

    template_heading: str = "Shuttle template"
    """Heading prefix of the provenance block."""

    console_call_to_action: str = "Deploy on Shuttle with just a few clicks!"
    """Link text of the console call-to-action in the provenance block."""

    readme_filename: str = "README.md"
    """Documentation file in the workspace that receives the provenance block."""

    materialize_command: list[str] = Field(
        default_factory=lambda: ["shuttle", "init", "--from", "{source}", "--name", "{name}", "{dest}"]
    )
    """Command that instantiates a template. `{source}`, `{name}` and `{dest}` are substituted."""

    lock_command: list[str] = Field(default_factory=lambda: ["cargo", "update"])
    """Command run inside the workspace to refresh the dependency lock file."""

    github_token: str | None = None
    """GitHub token with admin rights on the owning organization. \
Set via TEMPLATE_FLEET_SYNC_GITHUB_TOKEN or GITHUB_TOKEN environment variable."""

    github_api_url: str | None = None
    """Base URL of the GitHub API, for GitHub Enterprise. If None, uses api.github.com."""

    github_host: str = "github.com"
    """Host used for repository web and push addresses."""

    push_protocol: Literal["ssh", "https"] = "ssh"
    """How the workspace is pushed. 'https' authenticates with the configured token."""

    commit_author_name: str | None = None
    """Author name of sync commits. If None, git's configured identity is used."""

    commit_author_email: str | None = None
    """Author email of sync commits. If None, git's configured identity is used."""

    api_timeout: int = 30
    """Timeout in seconds for hosting provider API requests."""

    materialize_timeout: int = 300
    """Timeout in seconds for the materialize command."""

    lock_timeout: int = 600
    """Timeout in seconds for the dependency lock command."""

    push_timeout: int = 300
    """Timeout in seconds for the force push."""

    workspace_root: str | None = None
    """Parent directory for per-entry workspaces. If None, uses the system temp directory."""

    keep_failed_workspaces: bool = True
    """Leave the workspace of a failed entry on disk for inspection."""

    concurrency: int = 1
    """Number of entries synced at the same time. 1 keeps the sync strictly sequential."""

    api_rate_limit: int = 1
    """Maximum number of hosting provider calls in flight across all workers."""

    dry_run: bool = False
    """If True, materialize and commit locally but never mutate or push to the remote."""

    verbose_logging: bool = False
    """Enable detailed logging for sync operations."""

    @model_validator(mode="after")
    def validate_sync_configuration(self) -> FleetSyncSettings:
        """Validate sync configuration and provide helpful warnings."""
        if self.concurrency < 1:
            logger.warning(f"concurrency is {self.concurrency}, but must be >= 1. Setting to 1.")
            self.concurrency = 1

        if self.api_rate_limit < 1:
            logger.warning(f"api_rate_limit is {self.api_rate_limit}, but must be >= 1. Setting to 1.")
            self.api_rate_limit = 1

        if self.github_token is None:
            self.github_token = os.getenv("GITHUB_TOKEN")

        if not self.suppress_meta_warnings:
            if not self.github_token and not self.dry_run:
                logger.warning(
                    "GitHub token is not configured. "
                    "Repository provisioning will fail without authentication. "
                    "Set TEMPLATE_FLEET_SYNC_GITHUB_TOKEN or GITHUB_TOKEN environment variable."
                )

            if self.push_protocol == "https" and not self.github_token:
                logger.warning("push_protocol is 'https' but no GitHub token is configured; pushes will be anonymous.")

            if not self.maintainer_teams:
                logger.warning("No maintainer teams configured; no team permissions will be granted.")

        if self.verbose_logging:
            logger.info("Verbose logging enabled for sync operations")

        return self

    def resolve_registry_path(self) -> Path:
        """Return the registry file to read when none is given explicitly."""
        if self.registry_path:
            return Path(self.registry_path)
        return Path(self.templates_root or Path.cwd()) / "templates.toml"

    def repository_web_url(self, name: str) -> str:
        """Return the browser URL of a fleet repository."""
        return f"https://{self.github_host}/{self.owner}/{name}"

    def source_web_url(self, source_path: str) -> str:
        """Return the browser URL of a template's source directory in the monorepo."""
        return f"https://{self.github_host}/{self.source_repo}/tree/{self.source_branch}/{source_path}"

    def console_url(self, name: str) -> str:
        """Return the console call-to-action URL for a template."""
        return self.console_template_url.format(name=name)


fleet_sync_settings = FleetSyncSettings()
"""Global instance of template sync settings."""
