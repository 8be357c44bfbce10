"""Tests for task-list loading."""

from pathlib import Path

import pytest

from p4_merge_all.config.tasks import (
    AlreadyIntegratedCheck,
    TaskList,
    UnconditionalSkipCheck,
    fingerprint_bytes,
)
from p4_merge_all.exceptions import ConfigurationError

FULL_YAML = """\
enable_in_views:
  - "//depot/main/"

tasks:
  - client: merge-template
    title: dev to main
    source: //depot/dev/...
    target: //depot/main/...
  - client: merge-template
    title: "  main to release  "
    source: //depot/main/...
    target: //depot/release/...
    checks:
      - type: integrated
        source: //depot/dev/...
        target: //depot/main/...
      - type: skip
        message: release branch is frozen
"""


def write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "campaign.yaml"
    path.write_text(text)
    return path


class TestTaskListFromYaml:
    """Tests for TaskList.from_yaml."""

    def test_load_full_task_list(self, tmp_path):
        tasks = TaskList.from_yaml(write(tmp_path, FULL_YAML))

        assert len(tasks) == 2
        assert tasks.enable_in_views == ("//depot/main/",)
        assert tasks.get(1).title == "dev to main"
        assert tasks.get(2).title == "main to release"

    def test_checks_are_discriminated(self, tmp_path):
        task = TaskList.from_yaml(write(tmp_path, FULL_YAML)).get(2)

        assert isinstance(task.checks[0], AlreadyIntegratedCheck)
        assert task.checks[0].source == "//depot/dev/..."
        assert isinstance(task.checks[1], UnconditionalSkipCheck)
        assert task.checks[1].message == "release branch is frozen"

    def test_fingerprint_is_md5_of_raw_bytes(self, tmp_path):
        path = write(tmp_path, FULL_YAML)

        tasks = TaskList.from_yaml(path)

        assert tasks.fingerprint == fingerprint_bytes(path.read_bytes())
        assert len(tasks.fingerprint) == 32

    def test_fingerprint_changes_with_content(self, tmp_path):
        first = TaskList.from_yaml(write(tmp_path, FULL_YAML)).fingerprint
        second = TaskList.from_yaml(write(tmp_path, FULL_YAML + "\n# tweak\n")).fingerprint

        assert first != second

    def test_empty_file_is_empty_task_list(self, tmp_path):
        tasks = TaskList.from_yaml(write(tmp_path, ""))

        assert len(tasks) == 0

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Task list not found"):
            TaskList.from_yaml(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            TaskList.from_yaml(write(tmp_path, "tasks: [unclosed\n"))

    def test_not_a_mapping(self, tmp_path):
        with pytest.raises(ConfigurationError, match="must be a YAML mapping"):
            TaskList.from_yaml(write(tmp_path, "- a\n- b\n"))

    def test_missing_target(self, tmp_path):
        text = "tasks:\n  - client: c\n    title: t\n    source: //a/...\n"

        with pytest.raises(ConfigurationError, match="invalid task list"):
            TaskList.from_yaml(write(tmp_path, text))

    def test_blank_title(self, tmp_path):
        text = "tasks:\n  - client: c\n    title: '   '\n    source: //a/...\n    target: //b/...\n"

        with pytest.raises(ConfigurationError):
            TaskList.from_yaml(write(tmp_path, text))

    def test_unknown_check_type(self, tmp_path):
        text = (
            "tasks:\n  - client: c\n    title: t\n    source: //a/...\n    target: //b/...\n"
            "    checks:\n      - type: maybe\n"
        )

        with pytest.raises(ConfigurationError):
            TaskList.from_yaml(write(tmp_path, text))

    def test_invalid_view_pattern(self, tmp_path):
        with pytest.raises(ConfigurationError, match="invalid enable_in_views pattern"):
            TaskList.from_yaml(write(tmp_path, "enable_in_views:\n  - '//depot/(main'\n"))


class TestTaskListAccess:
    """Tests for 1-based task access."""

    def test_get_out_of_range(self, task_list):
        with pytest.raises(IndexError):
            task_list.get(0)
        with pytest.raises(IndexError):
            task_list.get(len(task_list) + 1)

    def test_enable_patterns_compiled(self, task_list):
        patterns = task_list.enable_patterns

        assert [p.pattern for p in patterns] == ["//depot/main/", "//depot/release/"]
        assert patterns[0].search("//depot/main/... //ws/main/...")
