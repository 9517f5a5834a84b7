"""Materialize a template into a fresh workspace and lock its dependencies."""

from __future__ import annotations

import subprocess
import tempfile
from collections.abc import Sequence
from pathlib import Path

from loguru import logger

from template_fleet_sync.errors import MaterializeError
from template_fleet_sync.meta_consts import ErrorKind, MaterializeStep
from template_fleet_sync.sync.config import FleetSyncSettings

_STDERR_TAIL_LINES = 20


def render_command(command: Sequence[str], **placeholders: str) -> list[str]:
    """Substitute `{placeholder}` markers in each argument of `command`.

    Only the given placeholder names are replaced; any other braces are left untouched.
    """
    rendered = []
    for argument in command:
        for key, value in placeholders.items():
            argument = argument.replace("{" + key + "}", value)
        rendered.append(argument)
    return rendered


def _tail(output: str | None) -> str:
    if not output:
        return ""
    return "\n".join(output.strip().splitlines()[-_STDERR_TAIL_LINES:])


class TemplateMaterializer:
    """Run the external materializer and dependency locker for one template."""

    def __init__(self, settings: FleetSyncSettings) -> None:
        self.settings = settings

    @property
    def templates_root(self) -> Path:
        """The local checkout of the template monorepo."""
        return Path(self.settings.templates_root or Path.cwd())

    def allocate_workspace(self, name: str) -> Path:
        """Create a fresh, empty, exclusively owned workspace directory for `name`."""
        parent = self.settings.workspace_root
        if parent:
            Path(parent).mkdir(parents=True, exist_ok=True)
        workspace = Path(tempfile.mkdtemp(prefix=f"{name}-", dir=parent))
        logger.debug(f"Allocated workspace {workspace}")
        return workspace

    def _run(
        self,
        command: list[str],
        *,
        cwd: Path,
        timeout: int,
        step: MaterializeStep,
        workspace: Path,
    ) -> None:
        logger.debug(f"Running {step} command in {cwd}: {' '.join(command)}")
        try:
            result = subprocess.run(
                command,
                cwd=cwd,
                check=True,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except FileNotFoundError as e:
            raise MaterializeError(
                f"Command not found: {command[0]}",
                step=step,
                kind=ErrorKind.tool,
                cause=e,
                workspace=workspace,
            ) from e
        except subprocess.TimeoutExpired as e:
            raise MaterializeError(
                f"Command timed out after {timeout} seconds: {' '.join(command)}",
                step=step,
                kind=ErrorKind.timeout,
                cause=e,
                workspace=workspace,
            ) from e
        except subprocess.CalledProcessError as e:
            raise MaterializeError(
                f"Command exited with status {e.returncode}: {' '.join(command)}\n{_tail(e.stderr)}".rstrip(),
                step=step,
                kind=ErrorKind.tool,
                cause=e,
                workspace=workspace,
            ) from e
        except OSError as e:
            raise MaterializeError(
                f"Failed to run {' '.join(command)}: {e}",
                step=step,
                kind=ErrorKind.io,
                cause=e,
                workspace=workspace,
            ) from e

        if result.stdout:
            logger.trace(result.stdout)

    def materialize(self, source_path: str, name: str) -> Path:
        """Instantiate the template at `source_path` as `name` into a new workspace.

        The dependency lock is refreshed right after materialization, so the published
        content pins the versions resolved at sync time.

        Args:
            source_path: Path of the template relative to the template monorepo.
            name: Name passed to the materializer, also the remote repository name.

        Returns:
            The populated workspace directory.

        Raises:
            MaterializeError: If the source is missing, or either command fails.
        """
        source = self.templates_root / source_path
        workspace = self.allocate_workspace(name)

        if not source.is_dir():
            raise MaterializeError(
                f"Template source {source} does not exist",
                step=MaterializeStep.materialize,
                kind=ErrorKind.validation,
                workspace=workspace,
            )

        materialize_command = render_command(
            self.settings.materialize_command,
            source=str(source),
            name=name,
            dest=str(workspace),
        )
        logger.info(f"Materializing {source_path} as {name}")
        self._run(
            materialize_command,
            cwd=self.templates_root,
            timeout=self.settings.materialize_timeout,
            step=MaterializeStep.materialize,
            workspace=workspace,
        )

        if self.settings.lock_command:
            lock_command = render_command(self.settings.lock_command, name=name, dest=str(workspace))
            logger.info(f"Refreshing dependency lock for {name}")
            self._run(
                lock_command,
                cwd=workspace,
                timeout=self.settings.lock_timeout,
                step=MaterializeStep.lock,
                workspace=workspace,
            )

        logger.debug(f"Materialized {name} into {workspace}")
        return workspace
