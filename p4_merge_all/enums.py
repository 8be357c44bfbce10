"""Enumerations for pipeline stages and command outcomes."""

from enum import Enum


class Stage(str, Enum):
    """Stages a single integration task moves through, in pipeline order.

    START only exists so a fresh checkpoint has a well-defined value; it
    advances to DESCRIPTION without side effects. END is terminal for one
    task.
    """

    START = "start"
    DESCRIPTION = "description"
    CHECK = "check"
    UPDATE = "update"
    SYNC = "sync"
    CREATE_CHANGE = "changelist"
    INTEGRATE = "integrate"
    RESOLVE = "resolve"
    SUBMIT = "submit"
    END = "end"

    def __str__(self) -> str:
        return self.value

    @property
    def position(self) -> int:
        """Zero-based position of the stage in the pipeline."""
        return _STAGE_ORDER.index(self)

    def next(self) -> "Stage":
        """Return the stage that follows this one.

        Raises:
            ValueError: If called on END.
        """
        if self is Stage.END:
            raise ValueError("END has no successor")
        return _STAGE_ORDER[self.position + 1]

    @property
    def owns_change(self) -> bool:
        """Whether a pending change may exist while the task is at this stage."""
        return Stage.CREATE_CHANGE.position <= self.position <= Stage.SUBMIT.position

    @property
    def needs_description(self) -> bool:
        """Whether the generated description must be known to run this stage."""
        return Stage.CHECK.position <= self.position <= Stage.CREATE_CHANGE.position


_STAGE_ORDER: tuple[Stage, ...] = tuple(Stage)


class CommandStatus(str, Enum):
    """Classification of one external command invocation.

    - success: zero exit code and nothing on stderr
    - benign_noop: stderr matched a known "nothing to do" message
    - fatal: non-zero exit or unexpected stderr output
    """

    SUCCESS = "success"
    BENIGN_NOOP = "benign_noop"
    FATAL = "fatal"

    def __str__(self) -> str:
        return self.value
