"""
Campaign driver: runs a task list from a fresh start or from a checkpoint.

The driver owns the outer loop over tasks. It positions the checkpoint on
each task, hands the task to the ``TaskPipeline`` and stops either at a
safe-mode pause or after the last task, in which case the checkpoint is
deleted and the accumulated report is returned for printing.

Resume Rules:
    - Tasks before the checkpointed index are complete and only echoed.
    - The checkpointed task resumes at its stored stage.
    - Restarting the current task, or jumping to another index, first rolls
      back any change the checkpoint still owns.
"""

from collections.abc import Callable, Sequence
from pathlib import Path

import click
import structlog

from p4_merge_all.config.tasks import TaskList
from p4_merge_all.engine.checkpoint import CheckpointStore
from p4_merge_all.engine.pipeline import TaskPipeline
from p4_merge_all.engine.rollback import RollbackHandler
from p4_merge_all.engine.types import CampaignResult, CampaignState, Paused
from p4_merge_all.exceptions import CheckpointCorruptError, CheckpointExistsError, ConfigurationError
from p4_merge_all.vcs.perforce import PerforceClient

log = structlog.get_logger(__name__)


def render_report(lines: Sequence[str]) -> str:
    """Final report printed after the last task."""
    text = "All done\n\nHere is what happened:\n"
    if lines:
        text += "\n" + "\n".join(f"  {line}" for line in lines) + "\n"
    return text


class CampaignDriver:
    """Start or resume an integration campaign.

    Attributes:
        p4: Perforce command layer shared by all tasks
        store: Checkpoint store
        safe: Pause after RESOLVE of every task
        echo: Sink for operator-facing progress lines
    """

    def __init__(
        self,
        p4: PerforceClient,
        store: CheckpointStore,
        safe: bool = True,
        echo: Callable[[str], None] = click.echo,
    ) -> None:
        self.p4 = p4
        self.store = store
        self.safe = safe
        self.echo = echo
        self.rollback = RollbackHandler(p4, store)

    async def start(self, config_path: str | Path, restart: bool = False) -> CampaignResult:
        """Begin a new campaign from task 1.

        Args:
            config_path: Task-list YAML file
            restart: Replace an existing checkpoint, rolling back the change
                it still owns

        Raises:
            CheckpointExistsError: If a checkpoint exists and ``restart`` is
                not set.
            ConfigurationError: If the task list cannot be loaded.
            RollbackError: If the previous change cannot be discarded.
            StageError: If a stage fails.
        """
        tasks = TaskList.from_yaml(config_path)

        if self.store.exists():
            if not restart:
                raise CheckpointExistsError(
                    f"State file is present: {self.store.path}", path=str(self.store.path)
                )
            await self._discard_previous()

        state = CampaignState(config_path=tasks.path, config_fingerprint=tasks.fingerprint)
        await self.store.save(state)
        log.info("campaign_started", config=tasks.path, tasks=len(tasks))
        return await self._run(state, tasks)

    async def resume(
        self,
        ignore_fingerprint: bool = False,
        restart_task: bool = False,
        start_index: int | None = None,
    ) -> CampaignResult:
        """Continue the checkpointed campaign.

        Args:
            ignore_fingerprint: Accept a task list that changed since the
                checkpoint was written
            restart_task: Roll back and rerun the current task from START
            start_index: Roll back and jump to this 1-based task index

        Raises:
            CheckpointNotFoundError: If there is no checkpoint.
            FingerprintMismatchError: If the task list changed and
                ``ignore_fingerprint`` is not set.
            ConfigurationError: If the task list cannot be loaded or
                ``start_index`` is out of range.
            RollbackError: If the pending change cannot be discarded.
            StageError: If a stage fails.
        """
        state = await self.store.load()
        tasks = TaskList.from_yaml(state.config_path)
        self.store.validate(state, tasks.fingerprint, ignore_mismatch=ignore_fingerprint)

        if start_index is not None:
            try:
                task = tasks.get(start_index)
            except IndexError:
                raise ConfigurationError(
                    f"Task index {start_index} is out of range: {tasks.path} has {len(tasks)} tasks"
                ) from None
            await self.rollback.rollback(state)
            state.start_task(start_index)
            await self.store.save(state)
            log.info("campaign_jumped", task_index=start_index, title=task.title)
        elif restart_task:
            await self.rollback.rollback(state)
            state.reset_task()
            await self.store.save(state)
            log.info("task_restarted", task_index=state.task_index)
        elif ignore_fingerprint:
            await self.store.save(state)

        log.info("campaign_resumed", task_index=state.task_index, stage=str(state.stage))
        return await self._run(state, tasks)

    async def _discard_previous(self) -> None:
        try:
            previous = await self.store.load()
        except CheckpointCorruptError as e:
            log.warning("previous_checkpoint_unreadable", error=e.message)
            return
        await self.rollback.rollback(previous)

    async def _run(self, state: CampaignState, tasks: TaskList) -> CampaignResult:
        pipeline = TaskPipeline(self.p4, self.store, tasks.enable_patterns, safe=self.safe)

        if state.task_index > len(tasks):
            log.warning("task_index_beyond_task_list", task_index=state.task_index, tasks=len(tasks))
            if state.has_pending_change:
                raise ConfigurationError(
                    f"Task index {state.task_index} is beyond the {len(tasks)} tasks of {tasks.path}"
                    f" but changelist {state.change_id} is still pending."
                    " Run 'continue -r' to discard it or 'continue -i N' to jump to another task"
                )

        for index, task in enumerate(tasks.tasks, start=1):
            if index < state.task_index:
                self.echo(f"Already processed: {task.title}")
                continue
            if index > state.task_index:
                state.start_task(index)
                await self.store.save(state)

            self.echo(f"{task.title}: {task.source} => {task.target}")
            structlog.contextvars.bind_contextvars(task_index=index, title=task.title)
            try:
                outcome = await pipeline.run(state, task)
            finally:
                structlog.contextvars.unbind_contextvars("task_index", "title")

            if isinstance(outcome, Paused):
                return CampaignResult(paused=True, task_index=index, report=list(state.report))

        self.store.delete()
        log.info("campaign_finished", report_lines=len(state.report))
        return CampaignResult(paused=False, task_index=state.task_index, report=list(state.report))
