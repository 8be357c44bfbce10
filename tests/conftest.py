"""Pytest configuration and shared fixtures."""

from collections.abc import Callable
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from p4_merge_all.config.tasks import TaskList
from p4_merge_all.engine.checkpoint import CheckpointStore
from p4_merge_all.engine.executor import ALREADY_INTEGRATED, CommandResult
from p4_merge_all.engine.types import CampaignState
from p4_merge_all.enums import CommandStatus
from p4_merge_all.vcs.perforce import PerforceClient

CLIENT_SPEC = """\
# A Perforce Client Specification.
#
#  Client:      The client name.

Client:\tmerge-ws

Owner:\tmerger

Root:\t/home/merger/ws

Options:\tallwrite noclobber nocompress unlocked nomodtime normdir

SubmitOptions:\tsubmitunchanged

View:
\t//depot/main/... //merge-ws/main/...
\t//depot/release/... //merge-ws/release/...
"""

TEMPLATE_SPEC = """\
Client:\tmerge-ws

Owner:\tmerger

Root:\t/home/merger/ws

Options:\tnoallwrite clobber nocompress unlocked nomodtime normdir

SubmitOptions:\trevertunchanged

View:
\t//depot/main/... //merge-ws/main/...
\t//depot/release/... //merge-ws/release/...
\t//depot/docs/... //merge-ws/docs/...
"""

CHANGE_TEMPLATE = """\
# A Perforce Change Specification.

Change:\tnew

Client:\tmerge-ws

User:\tmerger

Status:\tnew

Description:
\t<enter description here>

Files:
\t//depot/release/a.c\t# edit
"""

INTERCHANGES_OUTPUT = """\
Change 101 on 2024/03/01 by dev@dev-ws

\tFix buffer overrun in parser

Change 102 on 2024/03/02 by dev@dev-ws

\tAdd retry to uploader
"""

TASK_LIST_YAML = """\
enable_in_views:
  - "//depot/main/"
  - "//depot/release/"

tasks:
  - client: merge-template
    title: main to release
    source: //depot/main/...
    target: //depot/release/...
  - client: merge-template
    title: release to hotfix
    source: //depot/release/...
    target: //depot/hotfix/...
"""


@pytest.fixture
def result_factory() -> Callable[..., CommandResult]:
    """Build CommandResult objects with sensible defaults."""

    def make(
        stdout: str = "",
        stderr: str = "",
        returncode: int = 0,
        status: CommandStatus = CommandStatus.SUCCESS,
        matched: str | None = None,
        args: tuple[str, ...] = ("p4",),
    ) -> CommandResult:
        return CommandResult(args, stdout, stderr, returncode, status, matched)

    return make


@pytest.fixture
def fatal_result(result_factory) -> CommandResult:
    """A failed p4 command."""
    return result_factory(
        stderr="Perforce client error:\n\tConnect to server failed",
        returncode=1,
        status=CommandStatus.FATAL,
        args=("p4", "sync", "-q"),
    )


@pytest.fixture
def mock_p4(result_factory) -> AsyncMock:
    """Perforce client whose every command succeeds on a simple history."""
    p4 = AsyncMock(spec=PerforceClient)
    p4.interchanges.return_value = result_factory(stdout=INTERCHANGES_OUTPUT)
    p4.integrate_preview.return_value = result_factory(
        stderr="//depot/release/... - all revision(s) already integrated.",
        returncode=1,
        status=CommandStatus.BENIGN_NOOP,
        matched=ALREADY_INTEGRATED,
    )

    async def get_client_spec(template: str | None = None) -> CommandResult:
        return result_factory(stdout=TEMPLATE_SPEC if template else CLIENT_SPEC)

    p4.get_client_spec.side_effect = get_client_spec
    p4.set_client_spec.return_value = result_factory(stdout="Client merge-ws saved.")
    p4.sync.return_value = result_factory(stdout="")
    p4.change_template.return_value = result_factory(stdout=CHANGE_TEMPLATE)
    p4.create_change.return_value = result_factory(stdout="Change 1234 created.")
    p4.integrate.return_value = result_factory(
        stdout="//depot/release/a.c#1 - integrate from //depot/main/a.c#3"
    )
    p4.resolve.return_value = result_factory(
        stdout="/home/merger/ws/release/a.c - merging //depot/main/a.c#3"
    )
    p4.submit.return_value = result_factory(stdout="Change 1234 submitted.")
    p4.opened.return_value = result_factory(
        stdout="//depot/release/a.c#1 - integrate change 1234 by merger@merge-ws"
    )
    p4.revert.return_value = result_factory(stdout="//depot/release/a.c#1 - was integrate, reverted")
    p4.delete_change.return_value = result_factory(stdout="Change 1234 deleted.")
    return p4


@pytest.fixture
def task_file(tmp_path: Path) -> Path:
    """Task list with two integrations."""
    path = tmp_path / "campaign.yaml"
    path.write_text(TASK_LIST_YAML)
    return path


@pytest.fixture
def task_list(task_file: Path) -> TaskList:
    return TaskList.from_yaml(task_file)


@pytest.fixture
def store(tmp_path: Path) -> CheckpointStore:
    """Checkpoint store writing into a temporary directory."""
    return CheckpointStore(tmp_path / "state" / "p4.merge.all.status.json")


@pytest.fixture
def fresh_state(task_list: TaskList) -> CampaignState:
    """State of a campaign positioned at the start of task 1."""
    return CampaignState(
        config_path=task_list.path,
        config_fingerprint=task_list.fingerprint,
        task_index=1,
    )
