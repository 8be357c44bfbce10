"""Tests for p4_merge_all.config.settings."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from p4_merge_all.config.settings import MergeAllSettings


class TestMergeAllSettings:
    """Tests for MergeAllSettings."""

    def test_defaults(self, monkeypatch):
        for name in ("P4_EXECUTABLE", "P4_GLOBAL_ARGS", "STATE_FILE", "DEFAULT_CONFIG", "COMMAND_TIMEOUT", "LOG_LEVEL"):
            monkeypatch.delenv(f"P4_MERGE_ALL_{name}", raising=False)

        settings = MergeAllSettings()

        assert settings.p4_executable == "p4"
        assert settings.p4_global_args == []
        assert settings.state_file == "p4.merge.all.status.json"
        assert settings.default_config == "p4.merge.all.yaml"
        assert settings.command_timeout is None
        assert settings.log_level == "INFO"
        assert settings.state_path == Path("p4.merge.all.status.json")

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("P4_MERGE_ALL_P4_EXECUTABLE", "/opt/p4/bin/p4")
        monkeypatch.setenv("P4_MERGE_ALL_P4_GLOBAL_ARGS", '["-p", "ssl:perforce:1666"]')
        monkeypatch.setenv("P4_MERGE_ALL_COMMAND_TIMEOUT", "1800")
        monkeypatch.setenv("P4_MERGE_ALL_STATE_FILE", "/var/tmp/merge.json")

        settings = MergeAllSettings()

        assert settings.p4_executable == "/opt/p4/bin/p4"
        assert settings.p4_global_args == ["-p", "ssl:perforce:1666"]
        assert settings.command_timeout == 1800
        assert settings.state_path == Path("/var/tmp/merge.json")

    def test_non_positive_timeout_rejected(self):
        with pytest.raises(ValidationError):
            MergeAllSettings(command_timeout=0)

    def test_unknown_log_level_rejected(self):
        with pytest.raises(ValidationError):
            MergeAllSettings(log_level="CHATTY")
