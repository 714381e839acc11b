# -*- coding: utf-8 -*-
"""
Reaction handlers: shell commands run when a watched mailbox wakes up.
Commands are opaque strings handed to the system shell, run in configured order.
"""

import subprocess
from dataclasses import dataclass

from loguru import logger


@dataclass(frozen=True)
class CommandResult:
    success: bool
    returncode: int | None
    stdout: str = ""
    stderr: str = ""


def run_command(command):
    """
    Run one command line through `sh -c`, blocking until it exits.

    Args:
        command: Uninterpreted shell command string

    Returns:
        CommandResult; a shell that cannot be spawned is reported as a
        failure with the OS error text in stderr
    """
    try:
        completed = subprocess.run(
            command,
            shell=True,
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
            errors="replace",
        )
    except OSError as e:
        return CommandResult(success=False, returncode=None, stderr=str(e))

    return CommandResult(
        success=completed.returncode == 0,
        returncode=completed.returncode,
        stdout=completed.stdout,
        stderr=completed.stderr,
    )


def run_handlers(name, commands, run_fn=None):
    """
    Run an account's commands in order, stopping at the first failure.

    Args:
        name: Account display name, used in log lines
        commands: Ordered command strings
        run_fn: Optional (command) -> CommandResult
                Defaults to run_command

    Returns:
        True if every command exited successfully
    """
    run_fn = run_fn or run_command

    for command in commands:
        logger.info(f"{name}: running command {command}")
        result = run_fn(command)

        if not result.success:
            logger.error(
                f"{name}: command {command} failed "
                f"(exit status {result.returncode}), stderr: {result.stderr.strip()}"
            )
            return False

        if result.stdout:
            logger.debug(f"{name}: command {command} output:\n{result.stdout.rstrip()}")
        logger.info(f"{name}: command {command} ran successfully")

    return True
