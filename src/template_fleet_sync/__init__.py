"""Keep a fleet of standalone template repositories in sync with a canonical template monorepo."""

from __future__ import annotations

import os

from loguru import logger

from .logging_config import configure_logger, disable_logging, enable_debug_logging

SYNC_OWNER = "shuttle-hq"
"""The organization that owns every repository in the fleet."""

SYNC_MAINTAINER_TEAMS = ["core", "devrel"]
"""Teams that are (re-)granted admin permission on every fleet repository."""

SYNC_DEFAULT_BRANCH = "main"

SYNC_SOURCE_REPO = "shuttle-hq/shuttle-examples"
"""The template monorepo, in 'owner/name' format."""

SYNC_CONSOLE_TEMPLATE_URL = "https://console.shuttle.dev/templates/{name}"

_log_level = os.getenv("TEMPLATE_FLEET_SYNC_LOG_LEVEL")
if _log_level:
    configure_logger(_log_level.upper())  # type: ignore[arg-type]
    logger.debug(f"Log level set from TEMPLATE_FLEET_SYNC_LOG_LEVEL: {_log_level}")

from .meta_consts import ErrorKind, MaterializeStep, RegistryFormat, SyncStage, TeamRole  # noqa: E402
from .registry import TemplateEntry, load_registry, parse_listing  # noqa: E402

__all__ = [
    "SYNC_CONSOLE_TEMPLATE_URL",
    "SYNC_DEFAULT_BRANCH",
    "SYNC_MAINTAINER_TEAMS",
    "SYNC_OWNER",
    "SYNC_SOURCE_REPO",
    "ErrorKind",
    "MaterializeStep",
    "RegistryFormat",
    "SyncStage",
    "TeamRole",
    "TemplateEntry",
    "configure_logger",
    "disable_logging",
    "enable_debug_logging",
    "load_registry",
    "parse_listing",
]
