"""
Rollback of a partially created integration change.

Used only when the operator asks to restart the current task or to jump to
another task while a change is still pending. All files opened in the change
are reverted, the empty change is deleted, and the checkpoint is reset to
the beginning of the task.
"""

import structlog

from p4_merge_all.engine.checkpoint import CheckpointStore
from p4_merge_all.engine.executor import CHANGE_UNKNOWN, NOT_OPENED
from p4_merge_all.engine.types import CampaignState
from p4_merge_all.exceptions import RollbackError
from p4_merge_all.vcs.perforce import PerforceClient, parse_opened_files

log = structlog.get_logger(__name__)


class RollbackHandler:
    """Discard the pending change recorded in a checkpoint."""

    def __init__(self, p4: PerforceClient, store: CheckpointStore) -> None:
        self.p4 = p4
        self.store = store

    async def rollback(self, state: CampaignState) -> None:
        """Revert and delete ``state.change_id``, then reset the task.

        Does nothing when no change is pending. On success the checkpoint
        is saved with ``change_id = 0`` and stage START.

        Raises:
            RollbackError: If listing, reverting or deleting fails. The
                checkpoint is left untouched so the operator can finish the
                cleanup by hand and retry.
        """
        if not state.has_pending_change:
            log.debug("rollback_not_needed", task_index=state.task_index)
            return

        change = state.change_id
        log.info("rollback_started", change_id=change, stage=str(state.stage))

        opened = await self.p4.opened(change)
        if not opened.ok:
            raise RollbackError(
                "Failed to get a list of files opened in changelist",
                change,
                opened,
                hint=f"You may try to revert and delete changelist {change} manually and retry.",
            )

        files = [] if opened.matched == NOT_OPENED else parse_opened_files(opened.stdout)
        if files:
            reverted = await self.p4.revert(change, files)
            if not reverted.ok:
                raise RollbackError(
                    "Failed to revert pending changelist",
                    change,
                    reverted,
                    hint="You may try to revert all the files in this changelist manually and retry.",
                )
            log.info("rollback_reverted", change_id=change, files=len(files))

        deleted = await self.p4.delete_change(change)
        if not deleted.ok:
            raise RollbackError(
                "Failed to delete pending changelist",
                change,
                deleted,
                hint="You may try to delete it manually and retry.",
            )
        if deleted.matched == CHANGE_UNKNOWN:
            log.warning("rollback_change_already_gone", change_id=change)

        state.reset_task()
        await self.store.save(state)
        log.info("rollback_completed", change_id=change)
