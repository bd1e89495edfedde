"""
User database adapter — read-only view of the platform's accounts.

Wraps ``pwd`` / ``grp`` so the target resolver can be exercised against
a simulated database in tests (see ``dotboot.adapters.mock``).
"""

from __future__ import annotations

import grp
import logging
import pwd
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserRecord:
    """One account entry."""

    name: str
    uid: int
    gid: int
    home: Path
    group: str = ""


class UserDatabase:
    """System user database backed by ``pwd`` and ``grp``."""

    def lookup(self, name: str) -> UserRecord | None:
        """Find a user by name, or None if absent."""
        try:
            entry = pwd.getpwnam(name)
        except KeyError:
            return None
        return self._record(entry)

    def lookup_uid(self, uid: int) -> UserRecord | None:
        """Find a user by uid, or None if absent."""
        try:
            entry = pwd.getpwuid(uid)
        except KeyError:
            return None
        return self._record(entry)

    def all_users(self) -> list[UserRecord]:
        """Every account in the database."""
        return [self._record(entry) for entry in pwd.getpwall()]

    def first_normal_user(self, min_uid: int, max_uid: int = 65534) -> UserRecord | None:
        """Lowest-uid account in ``[min_uid, max_uid)``.

        The upper bound excludes ``nobody`` (65534 on Linux).
        """
        candidates = [u for u in self.all_users() if min_uid <= u.uid < max_uid]
        if not candidates:
            return None
        return min(candidates, key=lambda u: u.uid)

    @staticmethod
    def _record(entry: pwd.struct_passwd) -> UserRecord:
        try:
            group = grp.getgrgid(entry.pw_gid).gr_name
        except KeyError:
            logger.debug("No group entry for gid %d (user %s)", entry.pw_gid, entry.pw_name)
            group = str(entry.pw_gid)
        return UserRecord(
            name=entry.pw_name,
            uid=entry.pw_uid,
            gid=entry.pw_gid,
            home=Path(entry.pw_dir),
            group=group,
        )
