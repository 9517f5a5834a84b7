from __future__ import annotations

from enum import auto

from strenum import StrEnum


class SyncStage(StrEnum):
    """The states a single template sync moves through, in order."""

    pending = auto()
    provisioned = auto()
    materialized = auto()
    annotated = auto()
    published = auto()

    @classmethod
    def ordered(cls) -> list[SyncStage]:
        """Return the stages in the order they are reached."""
        return [cls.pending, cls.provisioned, cls.materialized, cls.annotated, cls.published]

    def next_stage(self) -> SyncStage | None:
        """Return the stage that follows this one, or None for the terminal stage."""
        stages = SyncStage.ordered()
        index = stages.index(self)
        if index + 1 >= len(stages):
            return None
        return stages[index + 1]


class ErrorKind(StrEnum):
    """Broad classification of what went wrong in a failed stage."""

    network = auto()
    authorization = auto()
    rate_limit = auto()
    timeout = auto()
    validation = auto()
    tool = auto()
    io = auto()
    unknown = auto()


class TeamRole(StrEnum):
    """Repository permission levels a team can hold."""

    pull = auto()
    triage = auto()
    push = auto()
    maintain = auto()
    admin = auto()


class MaterializeStep(StrEnum):
    """The sub-steps of materializing a template into a workspace."""

    materialize = auto()
    lock = auto()


class RegistryFormat(StrEnum):
    """Supported on-disk formats of the template registry."""

    listing = auto()
    """One `name|path` pair per line."""
    toml = auto()
    """`[templates.<name>]` tables holding a `path` key."""
