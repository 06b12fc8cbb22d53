"""Failure types shared by every stage of an external test run."""
from typing import NoReturn


class ExternalTestFailure(RuntimeError):
    """A fail-fast condition: bad input, a failed command, a version mismatch."""


class CommandFailed(ExternalTestFailure):
    """An external command exited non-zero (or could not be started)."""

    def __init__(self, command: str, exit_code: int, stderr: str = ""):
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr
        tail = "\n".join(stderr.strip().splitlines()[-20:])
        message = f"Command failed with exit code {exit_code}: {command}"
        if tail:
            message += f"\n{tail}"
        super().__init__(message)


def fail(message: str) -> NoReturn:
    raise ExternalTestFailure(message)
