"""
Task pipeline state machine.

Every integration task runs through the same fixed sequence of stages::

    START -> DESCRIPTION -> CHECK -> UPDATE -> SYNC -> CREATE_CHANGE
          -> INTEGRATE -> RESOLVE -> SUBMIT -> END

Each stage handler performs its external actions and returns an
``Outcome``. The pipeline turns the outcome into a transition:

- ``Advance``: move to the next stage
- ``Skipped`` / ``NoChanges``: record a report line and jump to END
- ``Submitted``: record a report line and move to END
- ``Paused``: safe mode stop after RESOLVE; the task resumes at SUBMIT

After every transition the checkpoint is saved. A stage that fails raises
``StageError``; the checkpoint is then saved with the stage unchanged so a
later ``continue`` re-enters it, and the error propagates to the caller.
Nothing is retried within one process.

Re-entering a Stage:
    Stages before CREATE_CHANGE change nothing on the server and are safe
    to repeat. From CREATE_CHANGE on, the pending change recorded in the
    checkpoint is reused. Whether to blindly re-issue a partially applied
    INTEGRATE or RESOLVE, or to roll the change back and restart the task,
    is left to the operator (``continue`` versus ``continue -r``).
"""

import re
from collections.abc import Awaitable, Callable, Sequence

import structlog

from p4_merge_all.config.tasks import AlreadyIntegratedCheck, IntegrationTask, UnconditionalSkipCheck
from p4_merge_all.engine.checkpoint import CheckpointStore
from p4_merge_all.engine.description import SCAN_LIMIT_BODY, build_description, format_interchanges
from p4_merge_all.engine.executor import ALREADY_INTEGRATED, SCAN_LIMIT, CommandResult
from p4_merge_all.engine.types import (
    Advance,
    CampaignState,
    NoChanges,
    Outcome,
    Paused,
    Skipped,
    Submitted,
)
from p4_merge_all.enums import CommandStatus, Stage
from p4_merge_all.exceptions import StageError
from p4_merge_all.vcs.forms import Form, build_change_form, build_check_spec, build_workspace_spec
from p4_merge_all.vcs.perforce import PerforceClient, parse_created_change

log = structlog.get_logger(__name__)

StageHandler = Callable[[CampaignState, IntegrationTask], Awaitable[Outcome]]

# Integration preview output line for a file that still needs integrating:
# "//depot/rel/a.c#1 - integrate from //depot/main/a.c#3"
PENDING_FILE_MARKER = " from //"


def report_lines(outcome: Outcome, task: IntegrationTask) -> list[str]:
    """Report lines recorded for a terminal outcome."""
    if isinstance(outcome, Skipped):
        return [f"Skipped: {task.title}", f"    {outcome.reason}"]
    if isinstance(outcome, NoChanges):
        return [f"No changes: {task.title}"]
    if isinstance(outcome, Submitted):
        return [f"Latest changes: {task.title}"]
    return []


class TaskPipeline:
    """Drive one integration task from its checkpointed stage to END.

    Attributes:
        p4: Perforce command layer
        store: Checkpoint store saved after every transition
        view_patterns: Enable-in-views patterns for the UPDATE stage
        safe: Pause after RESOLVE for operator review
    """

    def __init__(
        self,
        p4: PerforceClient,
        store: CheckpointStore,
        view_patterns: Sequence[re.Pattern[str]] = (),
        safe: bool = True,
    ) -> None:
        self.p4 = p4
        self.store = store
        self.view_patterns = list(view_patterns)
        self.safe = safe
        self._handlers: dict[Stage, StageHandler] = {
            Stage.START: self._start,
            Stage.DESCRIPTION: self._description,
            Stage.CHECK: self._check,
            Stage.UPDATE: self._update,
            Stage.SYNC: self._sync,
            Stage.CREATE_CHANGE: self._create_change,
            Stage.INTEGRATE: self._integrate,
            Stage.RESOLVE: self._resolve,
            Stage.SUBMIT: self._submit,
        }

    async def run(self, state: CampaignState, task: IntegrationTask) -> Outcome | None:
        """Run ``task`` from ``state.stage`` until END or a safe-mode pause.

        Args:
            state: Campaign state positioned on this task; mutated in place
                and saved after every transition.
            task: The task being integrated.

        Returns:
            The terminal outcome (Skipped, NoChanges, Submitted or Paused),
            or None if the task had already reached END.

        Raises:
            StageError: If a stage fails. The checkpoint has been saved with
                the failing stage.
            CheckpointError: If the checkpoint cannot be written.
        """
        if state.stage.needs_description and state.description is None:
            log.warning("description_missing", stage=str(state.stage))
            state.stage = Stage.DESCRIPTION
            await self.store.save(state)

        outcome: Outcome | None = None
        while state.stage is not Stage.END:
            stage = state.stage
            log.info("stage_started", stage=str(stage))
            try:
                outcome = await self._handlers[stage](state, task)
            except StageError as e:
                e.task_index = state.task_index
                log.error("stage_failed", stage=str(stage), error=e.message)
                await self.store.save(state)
                raise

            if isinstance(outcome, Paused):
                state.stage = Stage.SUBMIT
                await self.store.save(state)
                log.info("task_paused", change_id=outcome.change_id)
                return outcome

            if isinstance(outcome, Advance):
                state.stage = stage.next()
            else:
                state.report.extend(report_lines(outcome, task))
                state.stage = Stage.END
                log.info("task_finished", outcome=type(outcome).__name__)

            if state.stage is Stage.END:
                state.change_id = 0
                state.description = None
            await self.store.save(state)

        return outcome

    def _fail(self, message: str, stage: Stage, result: CommandResult | None = None) -> StageError:
        return StageError(message, stage=str(stage), result=result)

    async def _start(self, state: CampaignState, task: IntegrationTask) -> Outcome:
        return Advance()

    async def _description(self, state: CampaignState, task: IntegrationTask) -> Outcome:
        result = await self.p4.interchanges(task.source, task.target)
        if not result.ok:
            raise self._fail("Unexpected output from p4 interchanges.", Stage.DESCRIPTION, result)

        if result.matched == ALREADY_INTEGRATED:
            log.info("nothing_to_integrate", source=task.source, target=task.target)
            return NoChanges()

        if result.matched == SCAN_LIMIT:
            log.warning("interchanges_scan_limit", source=task.source, target=task.target)
            body = SCAN_LIMIT_BODY
        else:
            body = format_interchanges(result.stdout)

        state.description = build_description(task.title, task.source, task.target, body)
        return Advance()

    async def _check(self, state: CampaignState, task: IntegrationTask) -> Outcome:
        for check in task.checks:
            if isinstance(check, UnconditionalSkipCheck):
                log.info("task_skipped", reason=check.message)
                return Skipped(f"Reason: {check.message}")
            outcome = await self._check_integrated(check)
            if outcome is not None:
                return outcome
        return Advance()

    async def _check_integrated(self, check: AlreadyIntegratedCheck) -> Outcome | None:
        current = await self.p4.get_client_spec()
        if not current.ok:
            raise self._fail("p4 client failed", Stage.CHECK, current)
        try:
            spec = build_check_spec(Form.parse(current.stdout), check.target)
        except ValueError as e:
            raise self._fail(f"Unexpected client spec: {e}", Stage.CHECK, current) from e
        updated = await self.p4.set_client_spec(spec.format())
        if not updated.ok:
            raise self._fail("p4 client failed", Stage.CHECK, updated)

        preview = await self.p4.integrate_preview(check.source, check.target)
        if not preview.ok:
            raise self._fail("Unexpected output from p4 integrate.", Stage.CHECK, preview)
        if preview.matched == ALREADY_INTEGRATED:
            return None
        if PENDING_FILE_MARKER in preview.stdout:
            log.info("task_skipped", unintegrated_source=check.source, unintegrated_target=check.target)
            return Skipped(f"Unintegrated: {check.source} => {check.target}")
        raise self._fail("Unexpected output from p4 integrate.", Stage.CHECK, preview)

    async def _update(self, state: CampaignState, task: IntegrationTask) -> Outcome:
        current = await self.p4.get_client_spec()
        if not current.ok:
            raise self._fail("p4 client failed", Stage.UPDATE, current)
        template = await self.p4.get_client_spec(template=task.client)
        if not template.ok:
            raise self._fail(f"p4 client failed for template client {task.client}", Stage.UPDATE, template)

        spec = build_workspace_spec(Form.parse(current.stdout), Form.parse(template.stdout), self.view_patterns)
        updated = await self.p4.set_client_spec(spec.format())
        if not updated.ok:
            raise self._fail("p4 client failed", Stage.UPDATE, updated)
        return Advance()

    async def _sync(self, state: CampaignState, task: IntegrationTask) -> Outcome:
        result = await self.p4.sync()
        if not result.ok:
            raise self._fail("p4 sync failed", Stage.SYNC, result)
        return Advance()

    async def _create_change(self, state: CampaignState, task: IntegrationTask) -> Outcome:
        template = await self.p4.change_template()
        if not template.ok:
            raise self._fail("Failed to create new changelist", Stage.CREATE_CHANGE, template)

        form = build_change_form(Form.parse(template.stdout), state.description or "")
        result = await self.p4.create_change(form.format())
        change = parse_created_change(result.stdout) if result.ok else None
        if change is None:
            raise self._fail("Failed to create new changelist", Stage.CREATE_CHANGE, result)

        state.change_id = change
        log.info("change_created", change_id=change)
        return Advance()

    async def _integrate(self, state: CampaignState, task: IntegrationTask) -> Outcome:
        result = await self.p4.integrate(state.change_id, task.source, task.target)
        if result.status is not CommandStatus.SUCCESS:
            raise self._fail("p4 integrate failed", Stage.INTEGRATE, result)
        return Advance()

    async def _resolve(self, state: CampaignState, task: IntegrationTask) -> Outcome:
        result = await self.p4.resolve(state.change_id)
        if not result.ok:
            raise self._fail("p4 resolve failed", Stage.RESOLVE, result)
        if self.safe:
            return Paused(state.change_id)
        return Advance()

    async def _submit(self, state: CampaignState, task: IntegrationTask) -> Outcome:
        change = state.change_id
        result = await self.p4.submit(change)
        if result.status is not CommandStatus.SUCCESS:
            raise self._fail("p4 submit failed", Stage.SUBMIT, result)
        log.info("change_submitted", change_id=change)
        return Submitted(change)
