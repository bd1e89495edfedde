"""
Adapter base — the protocol contract between the reconciler and resources.

Every resource kind has exactly one adapter. The reconciler only talks
to resources through this protocol: it asks the adapter whether the
destination is present, then tells it to acquire or update, then asks
it to verify.

Command failures come back inside the returned result, never as
exceptions. Local filesystem failures raise ``FilesystemError``; the
reconciler records those as the resource's failed result.
"""

from __future__ import annotations

import logging
import os
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path

from dotboot.adapters.shell.command import CommandRunner
from dotboot.core.models.command import CommandResult
from dotboot.core.models.context import TargetIdentity
from dotboot.core.models.resource import Resource, ResourceKind
from dotboot.core.models.result import ReconciliationResult
from dotboot.core.models.retry import RetryPolicy
from dotboot.core.reliability.retry import with_retry
from dotboot.core.services.ownership import OwnershipFixer

logger = logging.getLogger(__name__)


class Presence(StrEnum):
    """Observed local state of a resource's destination."""

    ABSENT = "absent"
    PRESENT = "present"
    CORRUPT = "corrupt"    # exists but unusable; removed before acquiring


@dataclass
class AdapterContext:
    """Everything an adapter needs to act on one resource.

    This is the adapter's view of the world: who to act as, where the
    local sources live, and how to retry and fix ownership.
    """

    runner: CommandRunner
    target: TargetIdentity
    policy: RetryPolicy
    fixer: OwnershipFixer
    source_dir: Path = field(default_factory=Path.cwd)
    sleep: Callable[[float], None] = time.sleep

    @property
    def home(self) -> Path:
        return self.target.home

    def retry(self, cmd_fn: Callable[[], CommandResult], label: str = "") -> CommandResult:
        """Run a network-dependent attempt under the retry policy."""
        return with_retry(cmd_fn, self.policy, sleep=self.sleep, label=label)

    def fix_ownership(self, path: Path, recursive: bool = False) -> None:
        self.fixer.fix(path, recursive, self.target)


class ResourceAdapter(ABC):
    """Abstract base class for all resource adapters.

    To create a new adapter:
        1. Subclass ResourceAdapter
        2. Implement kind, acquire, update
        3. Override inspect / verify / validate where the defaults
           (destination existence) are not enough
        4. Register it in the AdapterRegistry
    """

    #: Remote adapters run their network commands through the retrier
    remote: bool = False

    #: External tool the adapter shells out to, if any
    tool: str | None = None

    @property
    @abstractmethod
    def kind(self) -> ResourceKind:
        """The resource kind handled by this adapter."""

    def is_available(self) -> bool:
        """Whether the adapter's underlying tool can be found.

        Should be fast and never raise.
        """
        if self.tool is None:
            return True
        from shutil import which

        return which(self.tool) is not None

    def validate(self, resource: Resource, ctx: AdapterContext) -> tuple[bool, str]:
        """Check the declaration is actionable.

        Returns:
            (is_valid, error_message). error_message is empty if valid.
        """
        return True, ""

    def skip_reason(self, resource: Resource, ctx: AdapterContext) -> str | None:
        """A reason to leave the resource alone entirely, or None."""
        return None

    def inspect(self, resource: Resource, ctx: AdapterContext) -> Presence:
        """Observe the destination. Default: it exists or it doesn't."""
        dest = resource.destination(ctx.home)
        return Presence.PRESENT if os.path.lexists(dest) else Presence.ABSENT

    @abstractmethod
    def acquire(self, resource: Resource, ctx: AdapterContext) -> ReconciliationResult:
        """Bring an absent resource into existence (status ``created``)."""

    @abstractmethod
    def update(self, resource: Resource, ctx: AdapterContext) -> ReconciliationResult:
        """Converge a present resource (``updated`` or ``skipped``)."""

    def verify(self, resource: Resource, ctx: AdapterContext) -> list[str]:
        """Problems with a freshly acquired resource (empty when fine)."""
        dest = resource.destination(ctx.home)
        problems = []
        if not dest.exists():
            problems.append(f"{dest} does not exist")
        for sub in resource.verify:
            if not (dest / sub).exists():
                problems.append(f"expected '{sub}' in {dest}")
        return problems

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} kind={self.kind!r}>"
