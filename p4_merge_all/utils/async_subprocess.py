"""Async subprocess utilities.

Runs external commands (mostly ``p4``) without blocking the event loop and
hands back their decoded output.

Key Features:
    - Argument-list execution, no shell interpolation
    - Optional text fed to the command's stdin (``p4 change -i``)
    - Configurable timeout with automatic process cleanup
    - Optional check mode that raises on non-zero exit codes

Example:
    >>> from p4_merge_all.utils.async_subprocess import run_command
    >>> stdout, stderr, code = await run_command("p4", "info", check=False)
    >>> if code == 0:
    ...     print(stdout)
"""

import asyncio
import subprocess
from pathlib import Path


async def run_command(
    *args: str,
    cwd: Path | str | None = None,
    check: bool = True,
    timeout: float | None = None,
    input_text: str | None = None,
) -> tuple[str, str, int]:
    """Run a command asynchronously without shell interpolation.

    Args:
        *args: Command and arguments as separate strings. The first argument
            is the executable.
            Example: "p4", "integrate", "-c", "1234", "//a/...", "//b/..."
        cwd: Working directory for command execution. None keeps the
            current working directory of the parent process.
        check: If True (default), raise CalledProcessError when the command
            returns a non-zero exit code.
        timeout: Maximum seconds to wait for completion. If exceeded, the
            process is killed and TimeoutError is raised. None means wait
            indefinitely.
        input_text: Text written to the command's stdin, UTF-8 encoded.
            When None, stdin is not connected.

    Returns:
        Tuple of (stdout, stderr, return_code). Output is decoded as UTF-8
        with replacement for invalid bytes.

    Raises:
        subprocess.CalledProcessError: If check=True and the command
            returns non-zero.
        TimeoutError: If timeout is exceeded. The process is killed
            before this exception is raised.
        FileNotFoundError: If the executable is not found.
        PermissionError: If the executable cannot be executed.

    Example:
        >>> stdout, stderr, code = await run_command(
        ...     "p4", "change", "-i",
        ...     input_text=form,
        ...     check=False,
        ... )
    """
    process = await asyncio.create_subprocess_exec(
        *args,
        cwd=cwd,
        stdin=asyncio.subprocess.PIPE if input_text is not None else None,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )

    payload = input_text.encode("utf-8") if input_text is not None else None
    try:
        stdout_bytes, stderr_bytes = await asyncio.wait_for(
            process.communicate(payload),
            timeout=timeout,
        )
    except TimeoutError:
        process.kill()
        await process.wait()
        raise

    stdout = (stdout_bytes or b"").decode("utf-8", errors="replace")
    stderr = (stderr_bytes or b"").decode("utf-8", errors="replace")

    if check and process.returncode != 0:
        raise subprocess.CalledProcessError(
            process.returncode,
            args,
            stdout,
            stderr,
        )

    return stdout, stderr, process.returncode or 0
