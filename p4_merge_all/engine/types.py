"""Type definitions for campaign state and stage outcomes.

``CampaignState`` is the single source of truth for resuming a campaign. It
is persisted by the checkpoint store after every stage transition, so it
only ever changes at well-defined points of the pipeline.

Example:
    A checkpoint paused in safe mode, waiting for the operator to review
    change 1234 before it is submitted::

        state = CampaignState(
            config_path="campaign.yaml",
            config_fingerprint="9e107d9d372bb6826bd81d3542a419d6",
            task_index=3,
            stage=Stage.SUBMIT,
            change_id=1234,
            report=["Skipped: dev to main", "    Reason: frozen", "Latest changes: main to rel"],
        )
"""

from dataclasses import dataclass, field

from pydantic import BaseModel, Field, model_validator

from p4_merge_all.enums import Stage


class CampaignState(BaseModel):
    """Persisted progress of one campaign.

    Invariant: a non-zero ``change_id`` only exists while ``stage`` is
    between CREATE_CHANGE and SUBMIT.
    """

    config_path: str = Field(..., description="Task list the campaign was started with")
    config_fingerprint: str = Field(..., description="Fingerprint of the task list at campaign start")
    task_index: int = Field(default=0, ge=0, description="1-based index of the current task, 0 before the first")
    stage: Stage = Field(default=Stage.START, description="Stage of the current task to run next")
    change_id: int = Field(default=0, ge=0, description="Pending change owned by the run, 0 for none")
    description: str | None = Field(default=None, description="Generated change description of the current task")
    report: list[str] = Field(default_factory=list, description="Append-only report lines")

    @model_validator(mode="after")
    def check_change_ownership(self) -> "CampaignState":
        if self.change_id and not self.stage.owns_change:
            raise ValueError(f"change {self.change_id} cannot be pending at stage '{self.stage}'")
        return self

    @property
    def has_pending_change(self) -> bool:
        return self.change_id != 0

    def start_task(self, index: int) -> None:
        """Position the campaign at the beginning of task ``index``."""
        self.task_index = index
        self.reset_task()

    def reset_task(self) -> None:
        """Forget all per-task progress; the caller must have rolled back first."""
        self.stage = Stage.START
        self.change_id = 0
        self.description = None


@dataclass(frozen=True)
class Advance:
    """The stage succeeded; continue with the next stage."""


@dataclass(frozen=True)
class Skipped:
    """A precondition decided the task must not be merged."""

    reason: str


@dataclass(frozen=True)
class NoChanges:
    """There is nothing to integrate for the task."""


@dataclass(frozen=True)
class Submitted:
    """The integration change was submitted."""

    change_id: int


@dataclass(frozen=True)
class Paused:
    """Safe mode stopped the run after resolve, before submit."""

    change_id: int


Outcome = Advance | Skipped | NoChanges | Submitted | Paused


@dataclass
class CampaignResult:
    """What a driver run ended with.

    Attributes:
        paused: True when stopped for review in safe mode
        task_index: Task the run stopped at (last task when finished)
        report: Report lines accumulated so far, across all resumes
    """

    paused: bool
    task_index: int
    report: list[str] = field(default_factory=list)
