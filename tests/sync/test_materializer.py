"""Tests for TemplateMaterializer."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from template_fleet_sync.errors import MaterializeError
from template_fleet_sync.meta_consts import ErrorKind, MaterializeStep, SyncStage
from template_fleet_sync.sync import FleetSyncSettings, TemplateMaterializer
from template_fleet_sync.sync.materializer import render_command
from tests.helpers import FAILING_SCRIPT


class TestRenderCommand:
    """Test suite for render_command."""

    def test_substitutes_known_placeholders(self) -> None:
        command = ["shuttle", "init", "--from", "{source}", "--name", "{name}", "{dest}"]

        rendered = render_command(command, source="/repo/templates/x", name="x", dest="/tmp/ws")

        assert rendered == ["shuttle", "init", "--from", "/repo/templates/x", "--name", "x", "/tmp/ws"]

    def test_leaves_other_braces_alone(self) -> None:
        assert render_command(["echo", "{other}", "{name}-{name}"], name="x") == ["echo", "{other}", "x-x"]


class TestTemplateMaterializer:
    """Test suite for TemplateMaterializer."""

    def test_materializes_and_locks(self, sync_settings: FleetSyncSettings) -> None:
        materializer = TemplateMaterializer(sync_settings)

        workspace = materializer.materialize("templates/todo-api", "todo-api")

        assert workspace.is_dir()
        assert Path(sync_settings.workspace_root or "") in workspace.parents
        assert workspace.name.startswith("todo-api-")
        assert 'name = "todo-api"' in (workspace / "Cargo.toml").read_text()
        assert (workspace / "src" / "main.rs").exists()
        assert (workspace / "Cargo.lock").read_text() == "# locked at sync time\n"
        assert (workspace / "README.md").read_text() == "# My Template\n"

    def test_each_call_gets_a_fresh_workspace(self, sync_settings: FleetSyncSettings) -> None:
        materializer = TemplateMaterializer(sync_settings)

        first = materializer.materialize("templates/todo-api", "todo-api")
        second = materializer.materialize("templates/todo-api", "todo-api")

        assert first != second

    def test_missing_source(self, sync_settings: FleetSyncSettings) -> None:
        with pytest.raises(MaterializeError) as exc_info:
            TemplateMaterializer(sync_settings).materialize("templates/nope", "nope")

        error = exc_info.value
        assert error.kind == ErrorKind.validation
        assert error.step == MaterializeStep.materialize
        assert error.stage == SyncStage.materialized
        assert error.workspace is not None

    def test_failing_materialize_command(self, sync_settings: FleetSyncSettings) -> None:
        settings = sync_settings.model_copy(update={"materialize_command": [sys.executable, "-c", FAILING_SCRIPT]})

        with pytest.raises(MaterializeError) as exc_info:
            TemplateMaterializer(settings).materialize("templates/todo-api", "todo-api")

        error = exc_info.value
        assert error.kind == ErrorKind.tool
        assert error.step == MaterializeStep.materialize
        assert "status 3" in error.message
        assert "template is broken" in error.message
        assert "materialize" in error.describe()

    def test_failing_lock_command(self, sync_settings: FleetSyncSettings) -> None:
        settings = sync_settings.model_copy(update={"lock_command": [sys.executable, "-c", FAILING_SCRIPT]})

        with pytest.raises(MaterializeError) as exc_info:
            TemplateMaterializer(settings).materialize("templates/todo-api", "todo-api")

        error = exc_info.value
        assert error.step == MaterializeStep.lock
        assert error.workspace is not None
        assert (error.workspace / "Cargo.toml").exists()

    def test_missing_tool(self, sync_settings: FleetSyncSettings) -> None:
        settings = sync_settings.model_copy(update={"materialize_command": ["definitely-not-a-real-tool-xyz"]})

        with pytest.raises(MaterializeError) as exc_info:
            TemplateMaterializer(settings).materialize("templates/todo-api", "todo-api")

        assert exc_info.value.kind == ErrorKind.tool
        assert "definitely-not-a-real-tool-xyz" in exc_info.value.message

    def test_timeout(self, sync_settings: FleetSyncSettings) -> None:
        settings = sync_settings.model_copy(
            update={
                "materialize_command": [sys.executable, "-c", "import time; time.sleep(10)"],
                "materialize_timeout": 1,
            }
        )

        with pytest.raises(MaterializeError) as exc_info:
            TemplateMaterializer(settings).materialize("templates/todo-api", "todo-api")

        assert exc_info.value.kind == ErrorKind.timeout

    def test_lock_step_is_optional(self, sync_settings: FleetSyncSettings) -> None:
        settings = sync_settings.model_copy(update={"lock_command": []})

        workspace = TemplateMaterializer(settings).materialize("templates/todo-api", "todo-api")

        assert not (workspace / "Cargo.lock").exists()
