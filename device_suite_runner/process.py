"""Helpers for running external commands."""

import asyncio
import logging
from pathlib import Path

log = logging.getLogger(__name__)


class CommandError(RuntimeError):
    """Raised when an external command exits with a non-zero status."""


async def run_command(*args: str, cwd: Path | None = None) -> str:
    """Run a command and return its stripped standard output.

    Raises:
        CommandError: If the command exits with a non-zero status

    """
    log.debug("Running command: %s", " ".join(args))
    process = await asyncio.create_subprocess_exec(
        *args,
        cwd=cwd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    stdout, stderr = await process.communicate()

    if process.returncode != 0:
        raise CommandError(
            f"{' '.join(args)} failed with status {process.returncode}: "
            f"{stderr.decode().strip()}"
        )

    return stdout.decode().strip()


async def command_succeeds(*args: str, cwd: Path | None = None) -> bool:
    """Check if a command exits with status zero."""
    process = await asyncio.create_subprocess_exec(
        *args,
        cwd=cwd,
        stdout=asyncio.subprocess.DEVNULL,
        stderr=asyncio.subprocess.DEVNULL,
    )
    await process.communicate()
    return process.returncode == 0
