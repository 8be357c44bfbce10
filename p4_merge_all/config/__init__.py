"""Configuration for p4-merge-all.

Key Components:
    - MergeAllSettings: Runtime settings (p4 executable, checkpoint path, ...)
    - TaskList: The ordered integration tasks of a campaign
    - IntegrationTask: One source-to-target integration
    - AlreadyIntegratedCheck / UnconditionalSkipCheck: Task preconditions

Example:
    >>> from p4_merge_all.config import TaskList
    >>> tasks = TaskList.from_yaml("campaign.yaml")
    >>> tasks.get(1).title
    'main to release'
"""

from p4_merge_all.config.settings import MergeAllSettings
from p4_merge_all.config.tasks import (
    AlreadyIntegratedCheck,
    Check,
    IntegrationTask,
    TaskList,
    UnconditionalSkipCheck,
)

__all__ = [
    "AlreadyIntegratedCheck",
    "Check",
    "IntegrationTask",
    "MergeAllSettings",
    "TaskList",
    "UnconditionalSkipCheck",
]
