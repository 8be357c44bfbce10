"""
Task-list loading.

A campaign is described by a YAML file listing the integrations to perform,
in order, plus the view-enablement patterns applied to the workspace before
each integration::

    enable_in_views:
      - "//depot/main/"
      - "//depot/release/"

    tasks:
      - client: merge-template
        title: main to release
        source: //depot/main/...
        target: //depot/release/...
        checks:
          - type: integrated
            source: //depot/dev/...
            target: //depot/main/...
          - type: skip
            message: release branch is frozen

The fingerprint of the raw file bytes is kept next to the parsed tasks;
checkpoints store it so that a resumed campaign can tell whether the file
changed underneath it.
"""

from __future__ import annotations

import hashlib
import re
from pathlib import Path
from typing import Annotated, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from p4_merge_all.exceptions import ConfigurationError


def fingerprint_bytes(data: bytes) -> str:
    """Content hash used to match checkpoints to task-list revisions."""
    return hashlib.md5(data).hexdigest()


class AlreadyIntegratedCheck(BaseModel):
    """Require ``source`` to be fully integrated into ``target``.

    If the integration preview reports pending files the task is skipped.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: Literal["integrated"] = "integrated"
    source: str = Field(..., min_length=1, description="Branch that must already be merged")
    target: str = Field(..., min_length=1, description="Branch it must be merged into")


class UnconditionalSkipCheck(BaseModel):
    """Always skip the task, recording ``message`` in the report."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: Literal["skip"] = "skip"
    message: str = Field(..., description="Reason recorded in the report")


Check = Annotated[AlreadyIntegratedCheck | UnconditionalSkipCheck, Field(discriminator="type")]


class IntegrationTask(BaseModel):
    """One source-to-target integration."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    client: str = Field(..., min_length=1, description="Template client the workspace view is built from")
    title: str = Field(..., min_length=1, description="Short human title used in the report")
    source: str = Field(..., min_length=1, description="Depot path integrated from")
    target: str = Field(..., min_length=1, description="Depot path integrated into")
    checks: tuple[Check, ...] = Field(default=(), description="Preconditions evaluated before integrating")

    @field_validator("client", "title", "source", "target")
    @classmethod
    def strip_whitespace(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class TaskList(BaseModel):
    """Ordered integration tasks plus global workspace view rules.

    Tasks are addressed with 1-based indices throughout the engine and the
    CLI.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str
    fingerprint: str
    enable_in_views: tuple[str, ...] = ()
    tasks: tuple[IntegrationTask, ...] = ()

    @field_validator("enable_in_views")
    @classmethod
    def validate_patterns(cls, patterns: tuple[str, ...]) -> tuple[str, ...]:
        for pattern in patterns:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"invalid enable_in_views pattern {pattern!r}: {e}") from e
        return patterns

    @property
    def enable_patterns(self) -> list[re.Pattern[str]]:
        return [re.compile(pattern) for pattern in self.enable_in_views]

    def __len__(self) -> int:
        return len(self.tasks)

    def get(self, index: int) -> IntegrationTask:
        """Return the task at a 1-based ``index``.

        Raises:
            IndexError: If the index is outside the task list.
        """
        if not 1 <= index <= len(self.tasks):
            raise IndexError(f"Task index {index} is out of range 1..{len(self.tasks)}")
        return self.tasks[index - 1]

    @classmethod
    def from_yaml(cls, path: str | Path) -> TaskList:
        """Load and validate a task list.

        Args:
            path: YAML task-list file

        Returns:
            The parsed TaskList, fingerprinted from the raw file bytes.

        Raises:
            ConfigurationError: If the file is missing, unreadable, not valid
                YAML, or does not match the task-list schema.
        """
        task_file = Path(path)
        if not task_file.exists():
            raise ConfigurationError(f"Task list not found: {task_file}")

        try:
            raw = task_file.read_bytes()
        except OSError as e:
            raise ConfigurationError(f"Cannot read task list: {task_file}") from e

        try:
            data = yaml.safe_load(raw.decode("utf-8"))
        except (yaml.YAMLError, UnicodeDecodeError) as e:
            raise ConfigurationError(f"Invalid YAML in {task_file}: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"{task_file}: task list must be a YAML mapping, not a list or scalar")

        try:
            return cls(
                path=str(task_file),
                fingerprint=fingerprint_bytes(raw),
                enable_in_views=tuple(data.get("enable_in_views") or ()),
                tasks=tuple(data.get("tasks") or ()),
            )
        except ValidationError as e:
            raise ConfigurationError(f"{task_file}: invalid task list:\n{e}") from e
