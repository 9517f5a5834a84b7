"""Tests for loading the template registry."""

from __future__ import annotations

import io
from pathlib import Path

import pytest

from template_fleet_sync import RegistryFormat, TemplateEntry, load_registry, parse_listing
from template_fleet_sync.errors import RegistryError
from template_fleet_sync.meta_consts import ErrorKind
from template_fleet_sync.registry import detect_registry_format, parse_toml_registry, select_entries


class TestTemplateEntry:
    """Test suite for TemplateEntry validation."""

    def test_valid_entry(self) -> None:
        entry = TemplateEntry(name="todo-api", source_path="templates/todo-api/")

        assert entry.name == "todo-api"
        assert entry.source_path == "templates/todo-api"
        assert entry.to_listing_line() == "todo-api|templates/todo-api"

    def test_entry_is_immutable(self) -> None:
        entry = TemplateEntry(name="todo-api", source_path="templates/todo-api")

        with pytest.raises(ValueError):
            entry.name = "other"  # type: ignore[misc]

    @pytest.mark.parametrize("name", ["", "has space", "slash/name", "..", "a" * 101])
    def test_invalid_names_rejected(self, name: str) -> None:
        with pytest.raises(ValueError):
            TemplateEntry(name=name, source_path="templates/x")

    @pytest.mark.parametrize("source_path", ["", "/abs/path", "../outside", "templates/../../etc", "."])
    def test_invalid_source_paths_rejected(self, source_path: str) -> None:
        with pytest.raises(ValueError):
            TemplateEntry(name="ok", source_path=source_path)


class TestParseListing:
    """Test suite for the name|path listing format."""

    def test_preserves_order_and_skips_comments(self) -> None:
        lines = [
            "# generated listing",
            "hello-world-axum|axum/hello-world",
            "",
            "todo-api|templates/todo-api",
            "  postgres-rocket|rocket/postgres  ",
        ]

        entries = parse_listing(lines)

        assert [entry.name for entry in entries] == ["hello-world-axum", "todo-api", "postgres-rocket"]
        assert entries[2].source_path == "rocket/postgres"

    def test_malformed_line(self) -> None:
        with pytest.raises(RegistryError) as exc_info:
            parse_listing(["todo-api templates/todo-api"])

        assert exc_info.value.kind == ErrorKind.validation
        assert "line 1" in str(exc_info.value)

    def test_too_many_fields(self) -> None:
        with pytest.raises(RegistryError):
            parse_listing(["a|b|c"])

    def test_duplicate_names(self) -> None:
        with pytest.raises(RegistryError) as exc_info:
            parse_listing(["todo-api|a", "todo-api|b"])

        assert "todo-api" in str(exc_info.value)

    def test_invalid_entry_reports_line(self) -> None:
        with pytest.raises(RegistryError) as exc_info:
            parse_listing(["ok|templates/ok", "bad name|templates/bad"])

        assert "line 2" in str(exc_info.value)


class TestTomlRegistry:
    """Test suite for the TOML registry format."""

    def test_parse_templates_table(self) -> None:
        content = """
[templates.todo-api]
path = "templates/todo-api"

[templates.hello-world]
path = "axum/hello-world"

[templates.experimental]
path = "experimental/thing"
sync = false
"""
        entries = parse_toml_registry(content)

        assert [entry.name for entry in entries] == ["todo-api", "hello-world"]

    def test_missing_templates_table(self) -> None:
        with pytest.raises(RegistryError):
            parse_toml_registry('[starters.x]\npath = "x"\n')

    def test_missing_path(self) -> None:
        with pytest.raises(RegistryError):
            parse_toml_registry('[templates.x]\ntitle = "no path"\n')

    def test_invalid_toml(self) -> None:
        with pytest.raises(RegistryError) as exc_info:
            parse_toml_registry("[templates")

        assert exc_info.value.kind == ErrorKind.validation


class TestLoadRegistry:
    """Test suite for load_registry."""

    def test_detect_format(self) -> None:
        assert detect_registry_format(Path("templates.toml")) == RegistryFormat.toml
        assert detect_registry_format(Path("templates.txt")) == RegistryFormat.listing
        assert detect_registry_format(Path("listing")) == RegistryFormat.listing

    def test_load_listing_file(self, tmp_path: Path) -> None:
        registry = tmp_path / "templates.txt"
        registry.write_text("todo-api|templates/todo-api\n")

        entries = load_registry(registry)

        assert entries == [TemplateEntry(name="todo-api", source_path="templates/todo-api")]

    def test_load_toml_file(self, tmp_path: Path) -> None:
        registry = tmp_path / "templates.toml"
        registry.write_text('[templates.todo-api]\npath = "templates/todo-api"\n')

        entries = load_registry(registry)

        assert entries == [TemplateEntry(name="todo-api", source_path="templates/todo-api")]

    def test_forced_format(self, tmp_path: Path) -> None:
        registry = tmp_path / "registry"
        registry.write_text('[templates.todo-api]\npath = "templates/todo-api"\n')

        entries = load_registry(registry, registry_format=RegistryFormat.toml)

        assert len(entries) == 1

    def test_unreadable_file(self, tmp_path: Path) -> None:
        with pytest.raises(RegistryError) as exc_info:
            load_registry(tmp_path / "missing.toml")

        assert exc_info.value.kind == ErrorKind.io

    def test_load_from_stdin(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("sys.stdin", io.StringIO("a|templates/a\nb|templates/b\n"))

        entries = load_registry("-")

        assert [entry.name for entry in entries] == ["a", "b"]


class TestSelectEntries:
    """Test suite for select_entries."""

    @pytest.fixture
    def entries(self) -> list[TemplateEntry]:
        return parse_listing(["a|templates/a", "b|templates/b", "c|templates/c"])

    def test_no_filter(self, entries: list[TemplateEntry]) -> None:
        assert select_entries(entries, None) == entries

    def test_keeps_registry_order(self, entries: list[TemplateEntry]) -> None:
        selected = select_entries(entries, ["c", "a"])

        assert [entry.name for entry in selected] == ["a", "c"]

    def test_unknown_name(self, entries: list[TemplateEntry]) -> None:
        with pytest.raises(RegistryError):
            select_entries(entries, ["a", "nope"])
