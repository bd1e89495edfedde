"""
Execution context detection — "who is running this, and how."

Built ONCE at startup by the install use case and passed explicitly to
everything downstream. There is no module-level state here: the
function reads the process identity and environment and returns a
frozen ``ExecutionContext``.

Design notes:
    - Never fails.  An unreadable identity falls back to getpass, then
      to ``"unknown"``.  Ambiguous CI indicators mean attended.
    - ``--cloud-init`` forces unattended even without CI variables.
"""

from __future__ import annotations

import getpass
import logging
import os
import platform
from collections.abc import Mapping

from dotboot.adapters.system.users import UserDatabase
from dotboot.core.models.context import ExecutionContext

logger = logging.getLogger(__name__)

# Any of these being set marks a CI / automation run
CI_PLATFORM_VARS = ("GITHUB_ACTIONS", "GITLAB_CI")
_TRUTHY = {"true", "1", "yes"}


def is_unattended_env(environ: Mapping[str, str]) -> bool:
    """Whether the environment carries a recognized CI indicator."""
    if environ.get("CI", "").strip().lower() in _TRUTHY:
        return True
    return any(environ.get(var, "").strip() for var in CI_PLATFORM_VARS)


def detect_context(
    cloud_init: bool = False,
    environ: Mapping[str, str] | None = None,
    users: UserDatabase | None = None,
) -> ExecutionContext:
    """Inspect the current process.

    Args:
        cloud_init: The ``--cloud-init`` flag; forces unattended.
        environ: Environment mapping (default: ``os.environ``).
        users: User database (default: the system one).

    Returns:
        Frozen ExecutionContext.
    """
    env = os.environ if environ is None else environ
    users = users or UserDatabase()

    euid = os.geteuid()
    elevated = euid == 0
    invoking_user = _invoking_user(euid, users)

    unattended = cloud_init or is_unattended_env(env)
    if unattended and not cloud_init:
        logger.info("CI/automation environment detected")
    if elevated:
        logger.info("Running as root user")

    sudo_user = env.get("SUDO_USER") or None

    context = ExecutionContext(
        invoking_user=invoking_user,
        elevated=elevated,
        unattended=unattended,
        sudo_user=sudo_user,
        system=platform.system() or "Linux",
    )
    logger.debug("Execution context: %s", context.model_dump())
    return context


def _invoking_user(euid: int, users: UserDatabase) -> str:
    record = users.lookup_uid(euid)
    if record is not None:
        return record.name
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "unknown"
