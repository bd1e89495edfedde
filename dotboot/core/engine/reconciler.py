"""
Resource reconciler — the acquire-or-update loop.

For each declared resource, in order:

    inspect → ABSENT  → ensure parent → acquire → verify → created | failed
            → PRESENT → update                           → updated | skipped | failed
            → CORRUPT → remove, then as ABSENT

Every resource produces exactly one result. Nothing a single resource
does can stop the loop: errors are caught, logged and recorded as that
resource's failure, and the next resource runs.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from dotboot.adapters.base import AdapterContext, Presence, ResourceAdapter
from dotboot.adapters.registry import AdapterRegistry
from dotboot.adapters.shell.command import CommandRunner
from dotboot.adapters.shell.filesystem import ensure_directory, remove_path
from dotboot.core.errors import BootstrapError
from dotboot.core.models.context import TargetIdentity
from dotboot.core.models.resource import Resource
from dotboot.core.models.result import ReconcileStatus, ReconciliationResult
from dotboot.core.models.retry import RetryPolicy
from dotboot.core.services.ownership import OwnershipFixer
from dotboot.core.services.summary import MARKERS

logger = logging.getLogger(__name__)


@dataclass
class ReconcileReport:
    """Results of one reconciliation run, in declaration order."""

    run_id: str = ""
    target: TargetIdentity | None = None
    results: list[ReconciliationResult] = field(default_factory=list)

    def count(self, status: ReconcileStatus) -> int:
        return sum(1 for r in self.results if r.status == status)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def created(self) -> int:
        return self.count(ReconcileStatus.CREATED)

    @property
    def updated(self) -> int:
        return self.count(ReconcileStatus.UPDATED)

    @property
    def skipped(self) -> int:
        return self.count(ReconcileStatus.SKIPPED)

    @property
    def failed(self) -> int:
        return self.count(ReconcileStatus.FAILED)

    @property
    def failed_remote(self) -> list[ReconciliationResult]:
        return [r for r in self.results if r.failed and r.metadata.get("remote")]

    @property
    def failed_local(self) -> list[ReconciliationResult]:
        return [r for r in self.results if r.failed and not r.metadata.get("remote")]

    @property
    def all_ok(self) -> bool:
        return self.failed == 0

    @property
    def status(self) -> str:
        if self.failed == 0:
            return "ok"
        if self.failed < self.total:
            return "partial"
        return "failed"

    def to_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "target": self.target.to_dict() if self.target else None,
            "status": self.status,
            "total": self.total,
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "failed": self.failed,
            "results": [r.model_dump(mode="json") for r in self.results],
        }


class Reconciler:
    """Drives resources to their declared state for one target."""

    def __init__(
        self,
        registry: AdapterRegistry,
        runner: CommandRunner,
        fixer: OwnershipFixer,
        policy: RetryPolicy,
        source_dir: Path | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._registry = registry
        self._runner = runner
        self._fixer = fixer
        self._policy = policy
        self._source_dir = source_dir or Path.cwd()
        self._sleep = sleep

    def reconcile_all(self, resources: Iterable[Resource], target: TargetIdentity) -> ReconcileReport:
        """Reconcile every resource in order and collect the results."""
        report = ReconcileReport(run_id=generate_run_id(), target=target)
        for resource in resources:
            result = self.reconcile(resource, target)
            report.results.append(result)
            logger.info(
                "%s %s → %s%s",
                MARKERS[result.status],
                resource.name,
                result.status,
                f" ({result.detail})" if result.detail else "",
            )
        return report

    def reconcile(self, resource: Resource, target: TargetIdentity) -> ReconciliationResult:
        """Reconcile one resource. Never raises (except KeyboardInterrupt)."""
        start = time.monotonic()
        logger.debug("Reconciling %s (%s)", resource.name, resource.kind)
        try:
            result = self._reconcile(resource, target)
        except BootstrapError as e:
            logger.error("%s failed: %s", resource.name, e)
            result = ReconciliationResult.failure(resource.name, resource.kind, str(e))
        except Exception as e:
            logger.exception("Unexpected error reconciling %s", resource.name)
            result = ReconciliationResult.failure(
                resource.name, resource.kind, f"unexpected error: {e}"
            )

        metadata = {**result.metadata, "remote": resource.remote}
        return result.model_copy(
            update={
                "duration_ms": int((time.monotonic() - start) * 1000),
                "metadata": metadata,
            }
        )

    # ── Internals ───────────────────────────────────────────────

    def _context(self, target: TargetIdentity) -> AdapterContext:
        return AdapterContext(
            runner=self._runner,
            target=target,
            policy=self._policy,
            fixer=self._fixer,
            source_dir=self._source_dir,
            sleep=self._sleep,
        )

    def _reconcile(self, resource: Resource, target: TargetIdentity) -> ReconciliationResult:
        system = self._runner.context.system
        if not resource.applies_to(system):
            return ReconciliationResult.skipped(
                resource.name, resource.kind, f"not used on {system}"
            )

        adapter = self._registry.get(resource.kind)
        if adapter is None:
            return ReconciliationResult.failure(
                resource.name, resource.kind, f"no adapter for kind '{resource.kind}'"
            )
        if not adapter.is_available():
            return ReconciliationResult.failure(
                resource.name, resource.kind, f"'{adapter.tool or adapter.kind}' is not available"
            )

        # In-process adapters write as us; without root they cannot act for another user
        self._runner.check_identity()

        ctx = self._context(target)
        valid, error = adapter.validate(resource, ctx)
        if not valid:
            return ReconciliationResult.failure(resource.name, resource.kind, error)

        reason = adapter.skip_reason(resource, ctx)
        if reason:
            logger.warning("Skipping %s: %s", resource.name, reason)
            return ReconciliationResult.skipped(resource.name, resource.kind, reason)

        dest = resource.destination(target.home)
        presence = adapter.inspect(resource, ctx)
        if presence is Presence.CORRUPT:
            logger.warning("%s is incomplete, removing it before acquiring again", dest)
            remove_path(dest)
            presence = Presence.ABSENT

        if presence is Presence.PRESENT:
            result = adapter.update(resource, ctx)
            if result.status == ReconcileStatus.UPDATED:
                self._fixer.fix(dest, dest.is_dir() and not dest.is_symlink(), target)
            return result

        return self._acquire(adapter, resource, ctx, dest)

    def _acquire(
        self, adapter: ResourceAdapter, resource: Resource, ctx: AdapterContext, dest: Path
    ) -> ReconciliationResult:
        ensure_directory(dest.parent, ctx)
        try:
            result = adapter.acquire(resource, ctx)
            if not result.failed:
                problems = adapter.verify(resource, ctx)
                if problems:
                    logger.error("Verification failed for %s: %s", resource.name, "; ".join(problems))
                    result = ReconciliationResult.failure(
                        resource.name,
                        resource.kind,
                        f"verification failed: {problems[0]}",
                        attempts=result.attempts,
                    )
        except BootstrapError as e:
            result = ReconciliationResult.failure(resource.name, resource.kind, str(e))

        if result.failed:
            self._discard(dest, ctx)
            return result

        if result.status != ReconcileStatus.SKIPPED:
            self._fixer.fix(dest, dest.is_dir() and not dest.is_symlink(), ctx.target)
        return result

    def _discard(self, dest: Path, ctx: AdapterContext) -> None:
        """Remove whatever a failed acquire left at ``dest``."""
        if not dest.exists() and not dest.is_symlink():
            return
        logger.info("Removing partial %s", dest)
        self._fixer.fix(dest, dest.is_dir() and not dest.is_symlink(), ctx.target)
        remove_path(dest)


def generate_run_id() -> str:
    """Generate a unique run ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short = uuid.uuid4().hex[:6]
    return f"run-{now}-{short}"
