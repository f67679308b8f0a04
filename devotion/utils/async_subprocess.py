"""Async subprocess utilities.

Provides non-blocking subprocess execution for use in async contexts, so a
git invocation never stalls the event loop.

Example:
    >>> from devotion.utils.async_subprocess import run_command
    >>> stdout, stderr, code = await run_command("git", "status", cwd="/repo")
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
) -> tuple[str, str, int]:
    """Run a command asynchronously without shell interpolation.

    Args:
        *args: Command and arguments as separate strings, e.g.
            ``"git", "push", "-u", "origin", "feature/ABC-1_x"``
        cwd: Working directory. None uses the current directory.
        check: Raise CalledProcessError on a non-zero exit code
        timeout: Maximum seconds to wait; the process is killed when exceeded

    Returns:
        Tuple of (stdout, stderr, return_code), decoded as UTF-8 with
        replacement for invalid bytes

    Raises:
        subprocess.CalledProcessError: If check=True and the command fails.
            Carries stdout and stderr.
        TimeoutError: If timeout is exceeded
        FileNotFoundError: If the executable is not found
    """
    process = await asyncio.create_subprocess_exec(
        *args,
        cwd=cwd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )

    try:
        stdout_bytes, stderr_bytes = await asyncio.wait_for(
            process.communicate(),
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
