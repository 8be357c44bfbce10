"""Custom exception hierarchy for p4-merge-all.

Every fatal condition the engine can hit is expressed as one of these
exceptions. The CLI catches ``MergeAllError`` at the top level, prints the
message together with any captured command output, and exits non-zero.

Exception Hierarchy:
    MergeAllError (base)
    ├── ConfigurationError
    ├── CheckpointError
    │   ├── CheckpointNotFoundError
    │   ├── CheckpointExistsError
    │   ├── CheckpointCorruptError
    │   └── FingerprintMismatchError
    └── CommandError
        ├── StageError
        └── RollbackError

Example Usage:
    >>> from p4_merge_all.exceptions import ConfigurationError
    >>> try:
    ...     load_task_list(path)
    ... except FileNotFoundError as e:
    ...     raise ConfigurationError(f"Task list not found: {path}") from e
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from p4_merge_all.engine.executor import CommandResult


class MergeAllError(Exception):
    """Base exception for all p4-merge-all errors.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str) -> None:
        """Initialize exception.

        Args:
            message: Error message
        """
        self.message = message
        super().__init__(message)


class ConfigurationError(MergeAllError):
    """Task list or settings could not be loaded.

    Examples:
        - Task list file not found
        - Invalid YAML syntax
        - A task misses its source or target
        - An enable-in-views pattern is not a valid regular expression
    """

    pass


class CheckpointError(MergeAllError):
    """Checkpoint file could not be read, written, or trusted.

    Attributes:
        path: Checkpoint file involved, when known
    """

    def __init__(self, message: str, path: str | None = None) -> None:
        """Initialize exception.

        Args:
            message: Error message
            path: Checkpoint file path
        """
        self.path = path
        super().__init__(message)


class CheckpointNotFoundError(CheckpointError):
    """``continue`` was requested but there is no checkpoint to resume."""

    pass


class CheckpointExistsError(CheckpointError):
    """``go`` was requested while a previous campaign is still checkpointed."""

    pass


class CheckpointCorruptError(CheckpointError):
    """The checkpoint file exists but does not parse as a campaign state."""

    pass


class FingerprintMismatchError(CheckpointError):
    """The task list changed since the checkpoint was written.

    Task indices and branch identities stored in a checkpoint only have a
    meaning relative to the exact task-list revision it was created from.

    Attributes:
        expected: Fingerprint stored in the checkpoint
        actual: Fingerprint of the task list on disk
    """

    def __init__(self, expected: str, actual: str, path: str | None = None) -> None:
        """Initialize exception.

        Args:
            expected: Fingerprint stored in the checkpoint
            actual: Fingerprint of the current task list
            path: Checkpoint file path
        """
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Current task list fingerprint ({actual}) is different from the stored fingerprint ({expected})",
            path=path,
        )


class CommandError(MergeAllError):
    """An external command failed or produced unexpected output.

    Attributes:
        result: The classified command result, if the command ran at all
        hint: Optional instruction for the operator
    """

    def __init__(
        self,
        message: str,
        result: CommandResult | None = None,
        hint: str | None = None,
    ) -> None:
        """Initialize exception.

        Args:
            message: Error message
            result: Captured output of the failing command
            hint: What the operator may do about it
        """
        self.result = result
        self.hint = hint
        super().__init__(message)

    @property
    def output(self) -> str:
        """Captured stdout and stderr of the failing command, if any."""
        if self.result is None:
            return ""
        return self.result.describe()


class StageError(CommandError):
    """A pipeline stage failed.

    The checkpoint is saved with the failing stage so that ``continue``
    re-enters it.

    Attributes:
        stage: Name of the failing stage
        task_index: 1-based index of the task being processed
    """

    def __init__(
        self,
        message: str,
        stage: str,
        result: CommandResult | None = None,
        task_index: int | None = None,
    ) -> None:
        """Initialize exception.

        Args:
            message: Error message
            stage: Failing stage
            result: Captured output of the failing command
            task_index: 1-based index of the current task
        """
        self.stage = stage
        self.task_index = task_index
        super().__init__(message, result=result)


class RollbackError(CommandError):
    """Discarding a partially created change failed.

    This always needs manual intervention: the operator must finish reverting
    or deleting the change by hand before resuming.

    Attributes:
        change_id: The pending change that could not be cleaned up
    """

    def __init__(
        self,
        message: str,
        change_id: int,
        result: CommandResult | None = None,
        hint: str | None = None,
    ) -> None:
        """Initialize exception.

        Args:
            message: Error message
            change_id: Pending change being rolled back
            result: Captured output of the failing command
            hint: Manual cleanup instruction
        """
        self.change_id = change_id
        super().__init__(f"{message}: {change_id}", result=result, hint=hint)
