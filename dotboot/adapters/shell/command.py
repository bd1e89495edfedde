"""
Command runner — execute external commands as the target identity.

The SINGLE PLACE where ``subprocess.run`` is called.  Identity
switching, environment setup, timeouts and output capture are
centralised here.

Identity rules:
    - invoking user == target user   → run directly
    - elevated, different target     → ``sudo -u TARGET`` with HOME,
                                       USER and LOGNAME set to the target
    - not elevated, different target → PermissionDenied

Working directories are passed to the child process (``cwd=``); the
parent's own working directory is never changed.
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import time
from collections.abc import Mapping, Sequence
from pathlib import Path

from dotboot.core.errors import PermissionDenied
from dotboot.core.models.command import EXIT_NOT_FOUND, EXIT_TIMEOUT, CommandResult
from dotboot.core.models.context import ExecutionContext, TargetIdentity

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 300
_OUTPUT_TAIL = 4000


class CommandRunner:
    """Run commands for one (context, target) pair.

    ``cmd`` may be an argv list or a shell string; strings run through
    ``sh -c`` so pipelines like ``curl … | bash`` work.
    """

    def __init__(self, context: ExecutionContext, target: TargetIdentity):
        self._context = context
        self._target = target

    @property
    def context(self) -> ExecutionContext:
        return self._context

    @property
    def target(self) -> TargetIdentity:
        return self._target

    @property
    def switches_user(self) -> bool:
        """Whether commands run under a different account than ours."""
        return self._context.acts_for_other(self._target)

    def check_identity(self) -> None:
        """Raise PermissionDenied when acting for the target is impossible."""
        if self.switches_user and not self._context.elevated:
            raise PermissionDenied(
                f"Cannot switch to user '{self._target.user}' without root privileges"
            )

    def run(
        self,
        cmd: Sequence[str] | str,
        *,
        cwd: Path | str | None = None,
        env: Mapping[str, str] | None = None,
        timeout: int = DEFAULT_TIMEOUT,
    ) -> CommandResult:
        """Execute ``cmd`` and capture its outcome.

        Never raises on a non-zero exit.

        Raises:
            PermissionDenied: The target differs from the invoking user
                and the process is not elevated.
        """
        argv = ["sh", "-c", cmd] if isinstance(cmd, str) else list(cmd)
        display = cmd if isinstance(cmd, str) else shlex.join(argv)

        self.check_identity()
        if self.switches_user:
            argv = self._sudo_prefix(env) + argv
            child_env = None
            workdir = str(cwd or self._target.home)
        else:
            child_env = dict(os.environ)
            if env:
                child_env.update(env)
            workdir = str(cwd) if cwd else None

        logger.debug("Executing as %s: %s (cwd=%s)", self._target.user, display, workdir)
        start = time.monotonic()

        try:
            result = subprocess.run(
                argv,
                cwd=workdir,
                env=child_env,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            return CommandResult(
                command=display,
                returncode=EXIT_TIMEOUT,
                stderr=f"Command timed out after {timeout}s",
                duration_ms=_elapsed_ms(start),
            )
        except FileNotFoundError as e:
            return CommandResult(
                command=display,
                returncode=EXIT_NOT_FOUND,
                stderr=f"Command not found: {e.filename or argv[0]}",
                duration_ms=_elapsed_ms(start),
            )
        except OSError as e:
            return CommandResult(
                command=display,
                returncode=1,
                stderr=f"Command execution error: {e}",
                duration_ms=_elapsed_ms(start),
            )

        elapsed = _elapsed_ms(start)
        if result.returncode != 0:
            logger.debug("Command failed with exit code %d: %s", result.returncode, display)

        return CommandResult(
            command=display,
            returncode=result.returncode,
            stdout=(result.stdout or "")[-_OUTPUT_TAIL:],
            stderr=(result.stderr or "")[-_OUTPUT_TAIL:],
            duration_ms=elapsed,
        )

    def _sudo_prefix(self, env: Mapping[str, str] | None) -> list[str]:
        user = self._target.user
        home = str(self._target.home)
        assignments = [f"HOME={home}", f"USER={user}", f"LOGNAME={user}"]
        if env:
            assignments += [f"{key}={value}" for key, value in env.items()]
        return ["sudo", "-n", "-H", "-u", user, "--", "env", *assignments]


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
