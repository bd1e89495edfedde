"""
Install use case — bootstrap the environment for one target user.

This is the top-level orchestrator: it detects the execution context,
resolves the target identity, loads the manifest, reconciles every
resource and hands back the report. The CLI only parses flags, calls
``run_install`` and renders the result.
"""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path

from dotboot.adapters.registry import AdapterRegistry, default_registry
from dotboot.adapters.shell.command import CommandRunner
from dotboot.adapters.system.users import UserDatabase
from dotboot.core.config.loader import load_manifest
from dotboot.core.context import detect_context
from dotboot.core.engine.reconciler import ReconcileReport, Reconciler
from dotboot.core.errors import BootstrapError, NetworkError
from dotboot.core.models.context import ExecutionContext, TargetIdentity
from dotboot.core.models.manifest import Manifest
from dotboot.core.services.ownership import OwnershipFixer
from dotboot.core.services.target import resolve_target

logger = logging.getLogger(__name__)

# Exit code for local (filesystem) failures under --strict
_LOCAL_FAILURE_EXIT = 3

CONNECTIVITY_URL = "https://github.com"
NETWORK_SETTLE_DELAY = 10


@dataclass
class InstallResult:
    """Result of an install run."""

    report: ReconcileReport | None = None
    context: ExecutionContext | None = None
    target: TargetIdentity | None = None
    manifest_path: Path | None = None
    warnings: list[str] | None = None
    error: str | None = None
    exit_code: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None

    def strict_exit_code(self) -> int:
        """Exit code when individual resource failures count.

        Remote failures win over local ones.
        """
        if self.report is None:
            return self.exit_code
        if self.report.failed_remote:
            return NetworkError.exit_code
        if self.report.failed_local:
            return _LOCAL_FAILURE_EXIT
        return self.exit_code

    def to_dict(self) -> dict:
        result: dict = {}
        if self.error:
            result["error"] = self.error
            result["exit_code"] = self.exit_code
            return result

        result["context"] = self.context.model_dump() if self.context else None
        result["target"] = self.target.to_dict() if self.target else None
        result["manifest"] = str(self.manifest_path) if self.manifest_path else "packaged"
        result["warnings"] = self.warnings or []
        if self.report:
            result["report"] = self.report.to_dict()
        return result


def run_install(
    cloud_init: bool = False,
    user: str | None = None,
    home: Path | None = None,
    manifest_path: Path | None = None,
    source_dir: Path | None = None,
    environ: Mapping[str, str] | None = None,
    users: UserDatabase | None = None,
    registry: AdapterRegistry | None = None,
    runner: CommandRunner | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> InstallResult:
    """Reconcile every declared resource for the resolved target.

    Args:
        cloud_init: Force unattended mode.
        user: Explicit target user (``--user``).
        home: Explicit target home (``--home``).
        manifest_path: Manifest file; None uses the packaged one.
        source_dir: Where local sources live (default: cwd).
        environ: Environment mapping (default: ``os.environ``).
        users: User database (default: the system one).
        registry: Pre-configured adapter registry.
        runner: Pre-built command runner (tests).
        sleep: Delay function for retries (tests).

    Returns:
        InstallResult; ``error`` is set when the run could not start.
    """
    env = os.environ if environ is None else environ
    users = users or UserDatabase()
    result = InstallResult(manifest_path=manifest_path)

    # ── Context, manifest and target ─────────────────────────────
    try:
        context = detect_context(cloud_init=cloud_init, environ=env, users=users)
        result.context = context
        logger.info(
            "Starting installation in %s mode",
            "cloud-init" if context.unattended else "manual",
        )

        manifest = load_manifest(manifest_path)

        target = resolve_target(context, user, home, environ=env, users=users)
        result.target = target

        runner = runner or CommandRunner(context, target)
        runner.check_identity()
    except BootstrapError as e:
        logger.error("%s", e)
        result.error = str(e)
        result.exit_code = e.exit_code
        return result

    registry = registry or default_registry()
    source_dir = (source_dir or Path.cwd()).resolve()
    result.warnings = preflight(manifest, registry, context, target, source_dir)
    remote = [r for r in manifest.resources if r.remote and r.applies_to(context.system)]
    if remote and not check_connectivity(runner, context.unattended, sleep):
        message = f"{CONNECTIVITY_URL} is not reachable; {len(remote)} remote resources may fail"
        logger.warning("%s", message)
        result.warnings.append(message)

    # ── Reconcile ────────────────────────────────────────────────
    reconciler = Reconciler(
        registry=registry,
        runner=runner,
        fixer=OwnershipFixer(context),
        policy=manifest.retry.policy(context.unattended),
        source_dir=source_dir,
        sleep=sleep,
    )
    result.report = reconciler.reconcile_all(manifest.resources, target)

    logger.info(
        "Installation finished: %d created, %d updated, %d skipped, %d failed",
        result.report.created,
        result.report.updated,
        result.report.skipped,
        result.report.failed,
    )
    return result


def preflight(
    manifest: Manifest,
    registry: AdapterRegistry,
    context: ExecutionContext,
    target: TargetIdentity,
    source_dir: Path,
) -> list[str]:
    """Log the environment state and warn about missing tools.

    Returns:
        Warning messages (also logged at WARNING).
    """
    status = registry.adapter_status()
    logger.debug("Environment state:")
    logger.debug("  Invoking user: %s (elevated=%s)", context.invoking_user, context.elevated)
    logger.debug("  Target: %s, home %s", target.user, target.home)
    logger.debug("  Home writable: %s", os.access(target.home, os.W_OK))
    logger.debug("  Source directory: %s", source_dir)
    logger.debug("  Platform: %s", context.system)
    logger.debug(
        "  Tools: %s",
        ", ".join(
            f"{s['tool']}={'yes' if s['available'] else 'no'}"
            for s in status.values()
            if s["tool"]
        ) or "none",
    )

    warnings = []
    checked: set[str] = set()
    for resource in manifest.resources:
        if resource.kind in checked or not resource.applies_to(context.system):
            continue
        checked.add(resource.kind)
        entry = status.get(str(resource.kind))
        if entry is None or entry["tool"] is None:
            continue
        if not entry["available"]:
            message = f"'{entry['tool']}' not found; {resource.kind} resources will fail"
            logger.warning("%s", message)
            warnings.append(message)
    return warnings


def check_connectivity(
    runner: CommandRunner,
    unattended: bool,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """Check GitHub is reachable once before any remote resource runs.

    Unattended runs get a second try after a pause: under cloud-init
    the network is often still coming up when the bootstrap starts.

    Returns:
        True when GitHub answered.
    """
    args = [
        "curl", "-fsSL",
        "--connect-timeout", "10",
        "--max-time", "30",
        "-o", os.devnull,
        CONNECTIVITY_URL,
    ]
    logger.info("Checking connectivity to %s", CONNECTIVITY_URL)
    if runner.run(args, cwd=runner.target.home).ok:
        logger.debug("%s reachable", CONNECTIVITY_URL)
        return True
    if not unattended:
        return False

    logger.info("Waiting %ds for the network to settle", NETWORK_SETTLE_DELAY)
    sleep(NETWORK_SETTLE_DELAY)
    if runner.run(args, cwd=runner.target.home).ok:
        logger.info("Network connectivity restored")
        return True
    return False
