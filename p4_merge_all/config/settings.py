"""
Runtime settings using pydantic-settings.

Settings cover how the tool talks to Perforce and where it keeps its
checkpoint. They are read from ``P4_MERGE_ALL_*`` environment variables;
command-line options override them.

Example:
    $ export P4_MERGE_ALL_P4_GLOBAL_ARGS='["-p", "ssl:perforce:1666", "-u", "merger"]'
    $ export P4_MERGE_ALL_COMMAND_TIMEOUT=1800
    $ p4-merge-all go -c campaign.yaml
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class MergeAllSettings(BaseSettings):
    """Settings for a p4-merge-all run."""

    model_config = SettingsConfigDict(
        env_prefix="P4_MERGE_ALL_",
        case_sensitive=False,
    )

    p4_executable: str = Field(default="p4", description="Perforce command-line client")
    p4_global_args: list[str] = Field(
        default_factory=list,
        description="Global options passed before every p4 command (-p, -u, -c, ...)",
    )
    state_file: str = Field(default="p4.merge.all.status.json", description="Checkpoint file path")
    default_config: str = Field(default="p4.merge.all.yaml", description="Task list used by 'go' without -c")
    command_timeout: float | None = Field(
        default=None,
        gt=0,
        description="Seconds before a single p4 command is killed; unset means no limit",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Minimum log level"
    )

    @property
    def state_path(self) -> Path:
        """Checkpoint file as a Path object."""
        return Path(self.state_file)
