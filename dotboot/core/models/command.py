"""
Command result — what a finished subprocess looks like.

The command runner NEVER raises on a non-zero exit. The exit status and
captured output come back as data, and the caller decides whether to
retry, fall back, or record a failure.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

# Conventional shell codes for outcomes that never reached a normal exit
EXIT_TIMEOUT = 124
EXIT_NOT_FOUND = 127


class CommandResult(BaseModel):
    """Exit status and captured output of one command execution."""

    model_config = ConfigDict(frozen=True)

    command: str
    returncode: int
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """stdout and stderr joined, for failure classification."""
        return "\n".join(part for part in (self.stdout, self.stderr) if part)

    @property
    def error(self) -> str:
        """Human-readable failure detail."""
        text = self.stderr.strip() or self.stdout.strip()
        if text:
            return text.splitlines()[-1]
        return f"exit code {self.returncode}"
