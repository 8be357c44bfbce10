"""
Command execution and outcome classification.

Every external action the engine performs goes through ``CommandExecutor``,
which runs the command, captures its output and classifies it into one of
three outcomes (see ``CommandStatus``):

- ``SUCCESS``: exit code 0 and an empty stderr
- ``BENIGN_NOOP``: stderr matched one of the benign patterns the call site
  asked for, such as "all revision(s) already integrated."
- ``FATAL``: anything else, including a missing executable or a timeout

Benign Patterns:
    All knowledge about harmless server messages lives in
    ``BENIGN_PATTERNS``. Call sites refer to entries by name, so a new
    message variant only needs a new or widened regular expression here.

Example:
    >>> executor = CommandExecutor(timeout=600)
    >>> result = await executor.run(
    ...     "p4", "interchanges", "-l", "//a/...", "//b/...",
    ...     benign=(ALREADY_INTEGRATED, SCAN_LIMIT),
    ... )
    >>> if result.matched == ALREADY_INTEGRATED:
    ...     print("nothing to do")
"""

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path

import structlog

from p4_merge_all.enums import CommandStatus
from p4_merge_all.utils.async_subprocess import run_command

log = structlog.get_logger(__name__)

ALREADY_INTEGRATED = "already_integrated"
SCAN_LIMIT = "scan_limit"
NOT_OPENED = "not_opened"
UP_TO_DATE = "up_to_date"
NOTHING_TO_RESOLVE = "nothing_to_resolve"
CHANGE_UNKNOWN = "change_unknown"

BENIGN_PATTERNS: dict[str, re.Pattern[str]] = {
    ALREADY_INTEGRATED: re.compile(r"all revision\(s\) already integrated", re.IGNORECASE),
    SCAN_LIMIT: re.compile(r"Too many rows scanned|maxscanrows", re.IGNORECASE),
    NOT_OPENED: re.compile(r"file\(s\) not opened (anywhere|on this client)", re.IGNORECASE),
    UP_TO_DATE: re.compile(r"file\(s\) up-to-date", re.IGNORECASE),
    NOTHING_TO_RESOLVE: re.compile(r"no file\(s\) to resolve", re.IGNORECASE),
    CHANGE_UNKNOWN: re.compile(r"Change \d+ unknown", re.IGNORECASE),
}


@dataclass(frozen=True)
class CommandResult:
    """Captured and classified output of one external command.

    Attributes:
        args: Full argument vector that was executed
        stdout: Decoded standard output
        stderr: Decoded standard error
        returncode: Process exit code (127 when the executable is missing,
            -1 on timeout)
        status: Outcome classification
        matched: Name of the benign pattern that matched, if any
    """

    args: tuple[str, ...]
    stdout: str
    stderr: str
    returncode: int
    status: CommandStatus
    matched: str | None = None

    @property
    def ok(self) -> bool:
        """True unless the command was classified as fatal."""
        return self.status is not CommandStatus.FATAL

    @property
    def command_line(self) -> str:
        return " ".join(self.args)

    def describe(self) -> str:
        """Render the command and its output for an operator-facing error."""
        lines = [f"Command: {self.command_line}", f"Exit code: {self.returncode}"]
        if self.stdout.strip():
            lines.append("Output:")
            lines.extend(f"  {line}" for line in self.stdout.rstrip().splitlines())
        if self.stderr.strip():
            lines.append("Error output:")
            lines.extend(f"  {line}" for line in self.stderr.rstrip().splitlines())
        return "\n".join(lines)


class CommandExecutor:
    """Run external commands and classify their outcome.

    Attributes:
        timeout: Per-command timeout in seconds, None for no limit
        cwd: Working directory for every command
        patterns: Benign pattern table in use
    """

    def __init__(
        self,
        timeout: float | None = None,
        cwd: Path | str | None = None,
        patterns: Mapping[str, re.Pattern[str]] | None = None,
    ) -> None:
        """Initialize the executor.

        Args:
            timeout: Per-command timeout in seconds
            cwd: Working directory for every command
            patterns: Additional or overriding benign patterns, merged over
                ``BENIGN_PATTERNS``
        """
        self.timeout = timeout
        self.cwd = cwd
        self.patterns: dict[str, re.Pattern[str]] = dict(BENIGN_PATTERNS)
        if patterns:
            self.patterns.update(patterns)

    def classify(
        self,
        returncode: int,
        stderr: str,
        benign: Iterable[str] = (),
    ) -> tuple[CommandStatus, str | None]:
        """Classify a finished command.

        A benign match wins over a non-zero exit code, since the server
        reports some no-op warnings with exit status 1.

        Args:
            returncode: Process exit code
            stderr: Captured standard error
            benign: Names of the benign patterns acceptable at this call site

        Returns:
            Tuple of (status, matched pattern name or None)

        Raises:
            KeyError: If a pattern name is not in the table.
        """
        if stderr.strip():
            for name in benign:
                if self.patterns[name].search(stderr):
                    return CommandStatus.BENIGN_NOOP, name
            return CommandStatus.FATAL, None
        if returncode != 0:
            return CommandStatus.FATAL, None
        return CommandStatus.SUCCESS, None

    async def run(
        self,
        *args: str,
        benign: Iterable[str] = (),
        input_text: str | None = None,
    ) -> CommandResult:
        """Run one command and classify the result.

        Never raises for command failures; inspect ``CommandResult.status``.

        Args:
            *args: Executable and arguments
            benign: Names of benign patterns acceptable for this action
            input_text: Text fed to the command's stdin

        Returns:
            The classified CommandResult.
        """
        benign = tuple(benign)
        log.debug("command_started", command=" ".join(args))
        try:
            stdout, stderr, returncode = await run_command(
                *args,
                cwd=self.cwd,
                check=False,
                timeout=self.timeout,
                input_text=input_text,
            )
        except TimeoutError:
            log.error("command_timeout", command=" ".join(args), timeout=self.timeout)
            return CommandResult(
                args, "", f"Timed out after {self.timeout} seconds", -1, CommandStatus.FATAL
            )
        except OSError as e:
            log.error("command_not_runnable", command=args[0], error=str(e))
            return CommandResult(args, "", str(e), 127, CommandStatus.FATAL)

        status, matched = self.classify(returncode, stderr, benign)
        log.debug(
            "command_finished",
            command=" ".join(args),
            returncode=returncode,
            status=str(status),
            matched=matched,
        )
        return CommandResult(args, stdout, stderr, returncode, status, matched)
