"""
Target resolver — pick the (user, home) every resource acts against.

User precedence:
    DOTFILES_USER env  >  explicit --user  >  context default

Context default:
    elevated + unattended   → SUDO_USER, else lowest normal uid
    elevated + attended     → root itself
    otherwise               → the invoking user

Home precedence:
    DOTFILES_HOME env  >  explicit --home  >  /root (/var/root on Darwin)
    for root  >  user database
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from dotboot.adapters.system.users import UserDatabase, UserRecord
from dotboot.core.errors import HomeUnavailable, UserNotFound
from dotboot.core.models.context import SUPERUSER, ExecutionContext, TargetIdentity

logger = logging.getLogger(__name__)

ENV_USER = "DOTFILES_USER"
ENV_HOME = "DOTFILES_HOME"

LINUX_MIN_UID = 1000
DARWIN_MIN_UID = 500

LINUX_ROOT_HOME = Path("/root")
DARWIN_ROOT_HOME = Path("/var/root")


def resolve_target(
    context: ExecutionContext,
    explicit_user: str | None = None,
    explicit_home: str | Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    users: UserDatabase | None = None,
) -> TargetIdentity:
    """Resolve and validate the target identity.

    Creates the home directory when it is missing and the process is
    elevated.

    Raises:
        UserNotFound: The resolved user does not exist, or no normal
            user could be found for an unattended root run.
        HomeUnavailable: The home is missing and cannot be created.
    """
    env = os.environ if environ is None else environ
    users = users or UserDatabase()

    user_name = _resolve_user_name(context, explicit_user, env, users)
    record = users.lookup(user_name)
    if record is None:
        raise UserNotFound(f"User '{user_name}' does not exist")

    home = _resolve_home(context, record, explicit_home, env)
    if not home.is_dir():
        _create_home(context, record, home)

    target = TargetIdentity(
        user=record.name,
        home=home,
        uid=record.uid,
        gid=record.gid,
        group=record.group or None,
    )
    logger.info("Target user: %s", target.user)
    logger.info("Target home: %s", target.home)
    logger.info("Script user: %s", context.invoking_user)
    logger.info("Cloud-init mode: %s", context.unattended)
    return target


def min_normal_uid(context: ExecutionContext) -> int:
    """First uid handed to human accounts on this platform."""
    return DARWIN_MIN_UID if context.is_darwin else LINUX_MIN_UID


def superuser_home(context: ExecutionContext) -> Path:
    return DARWIN_ROOT_HOME if context.is_darwin else LINUX_ROOT_HOME


def _resolve_user_name(
    context: ExecutionContext,
    explicit_user: str | None,
    env: Mapping[str, str],
    users: UserDatabase,
) -> str:
    if env.get(ENV_USER):
        return env[ENV_USER]
    if explicit_user:
        return explicit_user

    if context.elevated and context.unattended:
        if context.sudo_user and context.sudo_user != SUPERUSER:
            return context.sudo_user
        primary = users.first_normal_user(min_normal_uid(context))
        if primary is None:
            raise UserNotFound(
                f"Cannot determine target user. Use --user or set {ENV_USER}"
            )
        logger.info("Unattended root run, installing for primary user %s", primary.name)
        return primary.name

    if context.elevated:
        logger.info("Running as root without --user or --cloud-init, installing for root user")
        return SUPERUSER

    return context.invoking_user


def _resolve_home(
    context: ExecutionContext,
    record: UserRecord,
    explicit_home: str | Path | None,
    env: Mapping[str, str],
) -> Path:
    if env.get(ENV_HOME):
        return Path(env[ENV_HOME]).expanduser().absolute()
    if explicit_home:
        return Path(explicit_home).expanduser().absolute()
    if record.name == SUPERUSER:
        return superuser_home(context)
    return record.home


def _create_home(context: ExecutionContext, record: UserRecord, home: Path) -> None:
    logger.warning("Home directory '%s' does not exist, attempting to create it", home)
    if not context.elevated:
        raise HomeUnavailable(
            f"Home directory '{home}' does not exist and cannot be created "
            "without root privileges",
            exit_code=4,
        )
    try:
        home.mkdir(parents=True, exist_ok=True)
        os.chown(home, record.uid, record.gid)
        home.chmod(0o755)
    except OSError as e:
        raise HomeUnavailable(f"Failed to create home directory '{home}': {e}") from e
    logger.info("Created home directory: %s", home)
