"""Resumable integration engine.

Key Components:
    - CommandExecutor: Runs external commands and classifies their output
    - CheckpointStore: Atomic persistence of the campaign state
    - RollbackHandler: Discards a partially created change
    - TaskPipeline: Stage state machine for a single integration task
    - CampaignDriver: Runs the task list from a fresh start or a checkpoint

Type Definitions:
    - CampaignState: The persisted checkpoint
    - Outcome: Advance | Skipped | NoChanges | Submitted | Paused

Example:
    >>> from p4_merge_all.engine.campaign import CampaignDriver
    >>> driver = CampaignDriver(p4, store)
    >>> result = await driver.resume()
"""

from p4_merge_all.engine.types import (
    Advance,
    CampaignResult,
    CampaignState,
    NoChanges,
    Outcome,
    Paused,
    Skipped,
    Submitted,
)

__all__ = [
    "Advance",
    "CampaignResult",
    "CampaignState",
    "NoChanges",
    "Outcome",
    "Paused",
    "Skipped",
    "Submitted",
]
