"""Append the provenance block to a materialized workspace."""

from __future__ import annotations

from pathlib import Path

from loguru import logger

from template_fleet_sync.errors import AnnotationError
from template_fleet_sync.meta_consts import ErrorKind
from template_fleet_sync.sync.config import FleetSyncSettings


class ProvenanceAnnotator:
    """Append a fixed attribution section to the workspace's top-level documentation."""

    def __init__(self, settings: FleetSyncSettings) -> None:
        self.settings = settings

    def render_block(self, name: str, source_path: str) -> str:
        """Return the provenance block for `name`, synced from `source_path`."""
        source_repo_name = self.settings.source_repo.split("/")[-1]
        return (
            "\n\n"
            f"## {self.settings.template_heading}: {name}\n"
            "\n"
            f"This template ([repo]({self.settings.repository_web_url(name)})) is a synced replica from "
            f"[{source_repo_name}]({self.settings.source_web_url(source_path)}).\n"
            "\n"
            f"[{self.settings.console_call_to_action}]({self.settings.console_url(name)})\n"
            "\n"
        )

    def annotate(self, workspace: Path, name: str, source_path: str) -> Path:
        """Append the provenance block to the documentation file in `workspace`.

        Existing content is never modified; the block is only appended.

        Returns:
            The path of the annotated documentation file.

        Raises:
            AnnotationError: If the documentation file is missing or cannot be written.
        """
        readme = workspace / self.settings.readme_filename
        if not readme.is_file():
            raise AnnotationError(f"Documentation file {readme} does not exist", kind=ErrorKind.io)

        try:
            with open(readme, "a", encoding="utf-8") as f:
                f.write(self.render_block(name, source_path))
        except OSError as e:
            raise AnnotationError(f"Failed to append provenance to {readme}: {e}", kind=ErrorKind.io, cause=e) from e

        logger.debug(f"Appended provenance block to {readme}")
        return readme
