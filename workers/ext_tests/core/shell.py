"""
Shell — run external tools (git, npm, the compiler, project scripts).

Every invocation is synchronous.  Output is captured and logged at DEBUG;
a non-zero exit code raises :class:`CommandFailed` unless ``check=False``.
"""
import logging
import os
import shlex
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Sequence, Union

from ext_tests.errors import CommandFailed

logger = logging.getLogger(__name__)

Command = Union[str, Sequence[str]]


@dataclass
class CommandResult:
    command: str
    stdout: str
    stderr: str
    exit_code: int
    duration_ms: int


def format_command(cmd: Command) -> str:
    if isinstance(cmd, str):
        return cmd
    return " ".join(shlex.quote(str(c)) for c in cmd)


def run_command(
    cmd: Command,
    cwd: Optional[Path] = None,
    timeout: Optional[int] = None,
    env: Optional[Dict[str, str]] = None,
    check: bool = True,
) -> CommandResult:
    """
    Execute *cmd* and return its captured output.

    A string is run through the shell (project-provided compile / test
    commands); a sequence is executed directly.
    """
    cmd_str = format_command(cmd)
    shell = isinstance(cmd, str)
    argv = cmd if shell else [str(c) for c in cmd]
    run_env = None
    if env is not None:
        run_env = dict(os.environ)
        run_env.update(env)

    logger.debug("$ %s (cwd=%s)", cmd_str, cwd or os.getcwd())

    t0 = time.monotonic()
    try:
        result = subprocess.run(
            argv,
            shell=shell,
            cwd=str(cwd) if cwd is not None else None,
            env=run_env,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        logger.error("Command timed out after %ss: %s", timeout, cmd_str)
        raise CommandFailed(cmd_str, -1, f"TIMEOUT after {timeout}s")
    except OSError as e:
        logger.error("Could not start command %s: %s", cmd_str, e)
        raise CommandFailed(cmd_str, -1, str(e)) from e

    duration = int((time.monotonic() - t0) * 1000)

    if result.stdout:
        logger.debug(result.stdout.rstrip())
    if result.stderr:
        logger.debug(result.stderr.rstrip())

    if check and result.returncode != 0:
        raise CommandFailed(cmd_str, result.returncode, result.stderr or result.stdout)

    return CommandResult(
        command=cmd_str,
        stdout=result.stdout,
        stderr=result.stderr,
        exit_code=result.returncode,
        duration_ms=duration,
    )
