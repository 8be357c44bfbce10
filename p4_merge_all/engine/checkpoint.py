"""
Checkpoint persistence for resumable campaigns.

The checkpoint is the only artifact a campaign leaves on disk. It is
rewritten after every stage transition and every failure, and deleted when
the last task has finished and the report has been printed.

Checkpoint File Structure:
    A single JSON document::

        {
            "config_path": "campaign.yaml",
            "config_fingerprint": "9e107d9d372bb6826bd81d3542a419d6",
            "task_index": 2,
            "stage": "integrate",
            "change_id": 1234,
            "description": "Latest changes: main to release\\n...",
            "report": ["No changes: dev to main"]
        }

Atomicity:
    Writes go to ``<checkpoint>.tmp`` first and are then renamed over the
    checkpoint. A process killed mid-write leaves the previous checkpoint
    intact.

Example:
    >>> store = CheckpointStore("p4.merge.all.status.json")
    >>> state = await store.load()
    >>> state.stage = Stage.SUBMIT
    >>> await store.save(state)
"""

from pathlib import Path

import aiofiles
import structlog
from pydantic import ValidationError

from p4_merge_all.config.tasks import fingerprint_bytes
from p4_merge_all.engine.types import CampaignState
from p4_merge_all.exceptions import (
    CheckpointCorruptError,
    CheckpointError,
    CheckpointNotFoundError,
    FingerprintMismatchError,
)

log = structlog.get_logger(__name__)


class CheckpointStore:
    """Load, save and delete the campaign checkpoint.

    Attributes:
        path: Location of the checkpoint file.
    """

    def __init__(self, path: str | Path) -> None:
        """Initialize the store.

        Args:
            path: Checkpoint file path. Its parent directory is created on
                the first save if needed.
        """
        self.path = Path(path)

    @property
    def _tmp_path(self) -> Path:
        return self.path.with_name(self.path.name + ".tmp")

    def exists(self) -> bool:
        return self.path.exists()

    async def load(self) -> CampaignState:
        """Read the checkpoint.

        Returns:
            The persisted CampaignState.

        Raises:
            CheckpointNotFoundError: If there is no checkpoint file.
            CheckpointCorruptError: If the file does not hold a valid state.
            CheckpointError: If the file cannot be read.
        """
        if not self.path.exists():
            raise CheckpointNotFoundError(f"Can not read state file: {self.path}", path=str(self.path))

        try:
            async with aiofiles.open(self.path) as f:
                content = await f.read()
        except OSError as e:
            raise CheckpointError(f"Can not read state file: {self.path}: {e}", path=str(self.path)) from e

        try:
            state = CampaignState.model_validate_json(content)
        except ValidationError as e:
            raise CheckpointCorruptError(
                f"State file {self.path} is not a valid checkpoint:\n{e}", path=str(self.path)
            ) from e

        log.debug(
            "checkpoint_loaded",
            path=str(self.path),
            task_index=state.task_index,
            stage=str(state.stage),
            change_id=state.change_id,
        )
        return state

    async def save(self, state: CampaignState) -> None:
        """Atomically replace the checkpoint with ``state``.

        Raises:
            CheckpointError: If the checkpoint cannot be written.
        """
        tmp_path = self._tmp_path
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(tmp_path, "w") as f:
                await f.write(state.model_dump_json(indent=2))
            # Atomic rename - safe on POSIX when same filesystem
            tmp_path.replace(self.path)
        except OSError as e:
            log.error("checkpoint_save_failed", path=str(self.path), error=str(e))
            raise CheckpointError(f"Failed to write state file {self.path}: {e}", path=str(self.path)) from e

        log.debug(
            "checkpoint_saved",
            task_index=state.task_index,
            stage=str(state.stage),
            change_id=state.change_id,
        )

    def delete(self) -> None:
        """Remove the checkpoint, signalling a finished campaign."""
        self.path.unlink(missing_ok=True)
        self._tmp_path.unlink(missing_ok=True)
        log.info("checkpoint_deleted", path=str(self.path))

    @staticmethod
    def fingerprint(definition: str | Path) -> str:
        """Fingerprint a task-list file the same way ``TaskList`` does.

        Raises:
            CheckpointError: If the file cannot be read.
        """
        try:
            return fingerprint_bytes(Path(definition).read_bytes())
        except OSError as e:
            raise CheckpointError(f"Can not read config file: {definition}") from e

    def validate(self, state: CampaignState, fingerprint: str, ignore_mismatch: bool = False) -> None:
        """Check that ``state`` was written for the task list with ``fingerprint``.

        With ``ignore_mismatch`` the state is re-stamped with the new
        fingerprint so later resumes do not trip over the same mismatch.

        Raises:
            FingerprintMismatchError: On mismatch, unless ignored.
        """
        if state.config_fingerprint == fingerprint:
            return
        if not ignore_mismatch:
            raise FingerprintMismatchError(state.config_fingerprint, fingerprint, path=str(self.path))
        log.warning(
            "fingerprint_mismatch_ignored",
            expected=state.config_fingerprint,
            actual=fingerprint,
        )
        state.config_fingerprint = fingerprint
