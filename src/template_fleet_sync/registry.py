"""The template registry: which templates make up the fleet and where their sources live."""

from __future__ import annotations

import re
import sys
import tomllib
from collections.abc import Iterable
from pathlib import Path, PurePosixPath

from loguru import logger
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from template_fleet_sync.errors import RegistryError
from template_fleet_sync.meta_consts import ErrorKind, RegistryFormat

_REPO_NAME_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,100}$")

LISTING_SEPARATOR = "|"


class TemplateEntry(BaseModel):
    """A single fleet member: the remote repository name and its source path in the monorepo."""

    model_config = ConfigDict(
        frozen=True,
        use_attribute_docstrings=True,
    )

    name: str
    """Unique identity of the entry, also used as the remote repository name."""

    source_path: str
    """Path of the template relative to the root of the template monorepo."""

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        value = value.strip()
        if not _REPO_NAME_PATTERN.match(value) or value in {".", ".."}:
            raise ValueError(f"'{value}' is not a valid repository name")
        return value

    @field_validator("source_path")
    @classmethod
    def validate_source_path(cls, value: str) -> str:
        value = value.strip()
        path = PurePosixPath(value)
        if not value or path.is_absolute():
            raise ValueError(f"source path must be a non-empty relative path, got '{value}'")
        if ".." in path.parts:
            raise ValueError(f"source path must not leave the template monorepo: '{value}'")
        normalized = str(path)
        if normalized == ".":
            raise ValueError("source path must point below the monorepo root")
        return normalized

    def to_listing_line(self) -> str:
        """Render the entry in the `name|path` listing format."""
        return f"{self.name}{LISTING_SEPARATOR}{self.source_path}"


def _build_entry(name: str, source_path: str, *, origin: str) -> TemplateEntry:
    try:
        return TemplateEntry(name=name, source_path=source_path)
    except ValidationError as e:
        raise RegistryError(f"Invalid registry entry at {origin}: {e}", kind=ErrorKind.validation, cause=e) from e


def _check_unique(entries: list[TemplateEntry]) -> list[TemplateEntry]:
    seen: set[str] = set()
    duplicates: list[str] = []
    for entry in entries:
        if entry.name in seen:
            duplicates.append(entry.name)
        seen.add(entry.name)

    if duplicates:
        raise RegistryError(
            f"Duplicate template names in registry: {sorted(set(duplicates))}",
            kind=ErrorKind.validation,
        )
    return entries


def parse_listing(lines: Iterable[str]) -> list[TemplateEntry]:
    """Parse `name|path` lines into template entries, preserving their order.

    Blank lines and lines starting with `#` are ignored.

    Args:
        lines: The raw listing lines.

    Returns:
        The parsed entries in listing order.

    Raises:
        RegistryError: If a line is malformed or a name appears twice.
    """
    entries: list[TemplateEntry] = []
    for line_number, raw_line in enumerate(lines, start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue

        parts = line.split(LISTING_SEPARATOR)
        if len(parts) != 2:
            raise RegistryError(
                f"Malformed registry line {line_number}: expected 'name{LISTING_SEPARATOR}path', got {line!r}",
                kind=ErrorKind.validation,
            )

        name, source_path = parts
        entries.append(_build_entry(name, source_path, origin=f"line {line_number}"))

    return _check_unique(entries)


def parse_toml_registry(content: str) -> list[TemplateEntry]:
    """Parse a TOML registry with one `[templates.<name>]` table per template.

    Each table must hold a `path` key. Tables with `sync = false` are skipped.

    Raises:
        RegistryError: If the document is not valid TOML or an entry is invalid.
    """
    try:
        document = tomllib.loads(content)
    except tomllib.TOMLDecodeError as e:
        raise RegistryError(f"Registry is not valid TOML: {e}", kind=ErrorKind.validation, cause=e) from e

    templates = document.get("templates")
    if not isinstance(templates, dict):
        raise RegistryError("Registry has no [templates] table", kind=ErrorKind.validation)

    entries: list[TemplateEntry] = []
    for name, table in templates.items():
        if not isinstance(table, dict) or "path" not in table:
            raise RegistryError(f"Template '{name}' has no 'path'", kind=ErrorKind.validation)
        if table.get("sync", True) is False:
            logger.debug(f"Skipping template '{name}' (sync = false)")
            continue
        entries.append(_build_entry(name, str(table["path"]), origin=f"[templates.{name}]"))

    return _check_unique(entries)


def detect_registry_format(path: Path) -> RegistryFormat:
    """Return the registry format implied by the file extension."""
    if path.suffix.lower() == ".toml":
        return RegistryFormat.toml
    return RegistryFormat.listing


def load_registry(source: str | Path, *, registry_format: RegistryFormat | None = None) -> list[TemplateEntry]:
    """Load the template registry from a file, or from stdin when `source` is `-`.

    Args:
        source: Path to the registry file, or `-` for stdin (listing format only).
        registry_format: Force a format instead of detecting it from the extension.

    Returns:
        The registry entries, in registry order.

    Raises:
        RegistryError: If the registry cannot be read or is invalid.
    """
    if str(source) == "-":
        logger.debug("Reading template registry listing from stdin")
        if registry_format is RegistryFormat.toml:
            return parse_toml_registry(sys.stdin.read())
        return parse_listing(sys.stdin.read().splitlines())

    path = Path(source)
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise RegistryError(f"Failed to read template registry {path}: {e}", kind=ErrorKind.io, cause=e) from e

    resolved_format = registry_format or detect_registry_format(path)
    logger.debug(f"Loading template registry {path} ({resolved_format})")

    if resolved_format is RegistryFormat.toml:
        entries = parse_toml_registry(content)
    else:
        entries = parse_listing(content.splitlines())

    logger.info(f"Loaded {len(entries)} template(s) from {path}")
    return entries


def select_entries(entries: list[TemplateEntry], names: Iterable[str] | None) -> list[TemplateEntry]:
    """Restrict `entries` to the given names, keeping registry order.

    Raises:
        RegistryError: If a requested name is not in the registry.
    """
    if names is None:
        return entries

    wanted = list(names)
    known = {entry.name for entry in entries}
    unknown = [name for name in wanted if name not in known]
    if unknown:
        raise RegistryError(f"Unknown template(s) requested: {unknown}", kind=ErrorKind.validation)

    return [entry for entry in entries if entry.name in wanted]
