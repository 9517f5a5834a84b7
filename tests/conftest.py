import os
import sys
from collections.abc import Generator
from pathlib import Path

# Clear settings from the environment BEFORE importing any package modules,
# so the settings singletons never pick up a developer's real token or organization.
_ENV_PREFIX = "TEMPLATE_FLEET_SYNC_"
for _var_name in [name for name in os.environ if name.startswith(_ENV_PREFIX)]:
    del os.environ[_var_name]
os.environ.pop("GITHUB_TOKEN", None)

import pytest
from loguru import logger
from pytest import LogCaptureFixture

from template_fleet_sync.registry import TemplateEntry
from template_fleet_sync.sync.config import FleetSyncSettings
from template_fleet_sync.sync.orchestrator import SyncOrchestrator
from tests.helpers import LOCK_SCRIPT, MATERIALIZE_SCRIPT, FakeHostingProvider, write_template


@pytest.fixture
def caplog(caplog: LogCaptureFixture) -> Generator[LogCaptureFixture, None, None]:
    """Route loguru records into pytest's caplog."""
    handler_id = logger.add(
        caplog.handler,
        format="{message}",
        level=0,
        filter=lambda record: record["level"].no >= caplog.handler.level,
        enqueue=False,
    )
    yield caplog
    logger.remove(handler_id)


@pytest.fixture
def templates_root(tmp_path: Path) -> Path:
    """A local template monorepo holding the `todo-api` template."""
    root = tmp_path / "monorepo"
    write_template(root, "templates/todo-api")
    return root


@pytest.fixture
def remotes_dir(tmp_path: Path) -> Path:
    return tmp_path / "remotes"


@pytest.fixture
def sync_settings(tmp_path: Path, templates_root: Path) -> FleetSyncSettings:
    """Settings that materialize with a local script and never reach the network."""
    return FleetSyncSettings(
        templates_root=str(templates_root),
        workspace_root=str(tmp_path / "workspaces"),
        materialize_command=[sys.executable, "-c", MATERIALIZE_SCRIPT, "{source}", "{dest}", "{name}"],
        lock_command=[sys.executable, "-c", LOCK_SCRIPT],
        commit_author_name="Template Sync",
        commit_author_email="template-sync@example.com",
        github_token=None,
        materialize_timeout=60,
        lock_timeout=60,
        push_timeout=60,
    )


@pytest.fixture
def hosting_provider(remotes_dir: Path) -> FakeHostingProvider:
    return FakeHostingProvider(remotes_dir)


@pytest.fixture
def orchestrator(hosting_provider: FakeHostingProvider, sync_settings: FleetSyncSettings) -> SyncOrchestrator:
    return SyncOrchestrator.from_provider(hosting_provider, sync_settings)


@pytest.fixture
def todo_api_entry() -> TemplateEntry:
    return TemplateEntry(name="todo-api", source_path="templates/todo-api")
