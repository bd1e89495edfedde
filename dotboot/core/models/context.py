"""
Execution context and target identity — who runs, and for whom.

Both are built exactly once at startup and passed explicitly into every
component that needs them. They are frozen: nothing mutates them after
resolution.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict

SUPERUSER = "root"


class ExecutionContext(BaseModel):
    """The invoking process as seen at startup.

    ``unattended`` is true for cloud-init / CI runs, where no prompt may
    be shown and network may not be ready yet.
    """

    model_config = ConfigDict(frozen=True)

    invoking_user: str
    elevated: bool = False
    unattended: bool = False
    sudo_user: str | None = None   # recorded sudo invoker (SUDO_USER)
    system: str = "Linux"          # platform.system() value

    @property
    def is_darwin(self) -> bool:
        return self.system == "Darwin"

    def acts_for_other(self, target: TargetIdentity) -> bool:
        """Whether work for ``target`` happens on another user's behalf."""
        return self.invoking_user != target.user


class TargetIdentity(BaseModel):
    """The (user, home) pair all resource operations act against."""

    model_config = ConfigDict(frozen=True)

    user: str
    home: Path
    uid: int | None = None
    gid: int | None = None
    group: str | None = None

    @property
    def is_superuser(self) -> bool:
        return self.user == SUPERUSER

    def to_dict(self) -> dict:
        return {
            "user": self.user,
            "home": str(self.home),
            "uid": self.uid,
            "gid": self.gid,
            "group": self.group,
        }
