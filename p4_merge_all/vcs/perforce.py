"""
Perforce command layer.

``PerforceClient`` exposes one coroutine per server action the engine
needs. Each returns the ``CommandResult`` produced by the executor, with
the benign patterns that are acceptable for that action already selected;
deciding what a result means for the campaign is left to the caller.

Example:
    >>> p4 = PerforceClient(CommandExecutor(), global_args=("-p", "ssl:perforce:1666"))
    >>> result = await p4.interchanges("//depot/main/...", "//depot/rel/...")
    >>> result.matched
    'already_integrated'
"""

import re
from collections.abc import Sequence

from p4_merge_all.engine.executor import (
    ALREADY_INTEGRATED,
    CHANGE_UNKNOWN,
    NOT_OPENED,
    NOTHING_TO_RESOLVE,
    SCAN_LIMIT,
    UP_TO_DATE,
    CommandExecutor,
    CommandResult,
)

_CREATED_RE = re.compile(r"^Change (?P<change>\d+) created", re.MULTILINE)

# "//depot/a.c#3 - edit change 1234 by user@client"
_OPENED_SUFFIX_RE = re.compile(r" - \w+ (?:default change|change \d+) by [^ @]+@\S+$")
_REVISION_RE = re.compile(r"#(?:\d+|none|head|have)$")


class PerforceClient:
    """Thin async wrapper over the ``p4`` command line.

    Attributes:
        executor: Runs and classifies every command
        executable: Name or path of the ``p4`` binary
        global_args: Global options placed before the command name
            (``-p``, ``-u``, ``-c`` ...)
    """

    def __init__(
        self,
        executor: CommandExecutor,
        executable: str = "p4",
        global_args: Sequence[str] = (),
    ) -> None:
        self.executor = executor
        self.executable = executable
        self.global_args = tuple(global_args)

    async def _p4(
        self,
        *args: str,
        benign: Sequence[str] = (),
        input_text: str | None = None,
    ) -> CommandResult:
        return await self.executor.run(
            self.executable,
            *self.global_args,
            *args,
            benign=benign,
            input_text=input_text,
        )

    async def interchanges(self, source: str, target: str) -> CommandResult:
        """List changes in ``source`` not yet integrated into ``target``."""
        return await self._p4("interchanges", "-l", source, target, benign=(ALREADY_INTEGRATED, SCAN_LIMIT))

    async def integrate_preview(self, source: str, target: str) -> CommandResult:
        """Preview an integration without opening files (``-n``), one file max."""
        return await self._p4("integrate", "-v", "-n", "-m", "1", source, target, benign=(ALREADY_INTEGRATED,))

    async def get_client_spec(self, template: str | None = None) -> CommandResult:
        """Print the current client spec, optionally based on a template client."""
        if template:
            return await self._p4("client", "-o", "-t", template)
        return await self._p4("client", "-o")

    async def set_client_spec(self, spec: str) -> CommandResult:
        return await self._p4("client", "-i", input_text=spec)

    async def sync(self) -> CommandResult:
        return await self._p4("sync", "-q", benign=(UP_TO_DATE,))

    async def change_template(self) -> CommandResult:
        """Print a new changelist form for the current client and user."""
        return await self._p4("change", "-o")

    async def create_change(self, form: str) -> CommandResult:
        return await self._p4("change", "-i", input_text=form)

    async def integrate(self, change: int, source: str, target: str) -> CommandResult:
        return await self._p4("integrate", "-c", str(change), source, target)

    async def resolve(self, change: int) -> CommandResult:
        """Auto-resolve non-conflicting differences (``-as``)."""
        return await self._p4("resolve", "-c", str(change), "-as", benign=(NOTHING_TO_RESOLVE,))

    async def submit(self, change: int) -> CommandResult:
        return await self._p4("submit", "-c", str(change))

    async def opened(self, change: int) -> CommandResult:
        return await self._p4("opened", "-c", str(change), "-s", benign=(NOT_OPENED,))

    async def revert(self, change: int, files: Sequence[str]) -> CommandResult:
        """Revert files in ``change``, deleting files opened for add (``-w``)."""
        return await self._p4("revert", "-w", "-c", str(change), *files)

    async def delete_change(self, change: int) -> CommandResult:
        return await self._p4("change", "-d", str(change), benign=(CHANGE_UNKNOWN,))


def parse_created_change(stdout: str) -> int | None:
    """Extract the change number from ``p4 change -i`` output."""
    match = _CREATED_RE.search(stdout)
    if match is None:
        return None
    return int(match.group("change"))


def parse_opened_files(stdout: str) -> list[str]:
    """Extract depot paths from ``p4 opened -s`` output.

    The action/change/user suffix and the revision specifier are removed,
    since ``p4 revert`` takes plain file paths.
    """
    files = []
    for line in stdout.splitlines():
        line = line.strip()
        if not line:
            continue
        path = _OPENED_SUFFIX_RE.sub("", line)
        files.append(_REVISION_RE.sub("", path))
    return files
