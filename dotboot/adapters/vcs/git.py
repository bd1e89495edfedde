"""
Git adapter — clone and update plugin/theme repositories.

Uses the git CLI through the command runner, so clones and pulls run
as the target user. Network steps (clone, fetch, pull) go through the
retrier; local steps (checkout, reset, rev-parse) run once.
"""

from __future__ import annotations

import logging
from pathlib import Path

from dotboot.adapters.base import AdapterContext, Presence, ResourceAdapter
from dotboot.adapters.shell.filesystem import remove_path
from dotboot.core.models.command import CommandResult
from dotboot.core.models.resource import Resource, ResourceKind
from dotboot.core.models.result import ReconciliationResult

logger = logging.getLogger(__name__)

FALLBACK_BRANCH = "main"


class GitAdapter(ResourceAdapter):
    """Git repository resources.

    Resource fields:
        source (str): Clone URL.
        depth (int): Shallow clone depth (optional).
        branch (str): Branch to track (default: the remote's default).
        verify (list[str]): Paths that must exist after cloning.
    """

    remote = True
    tool = "git"

    @property
    def kind(self) -> ResourceKind:
        return ResourceKind.GIT

    def inspect(self, resource: Resource, ctx: AdapterContext) -> Presence:
        dest = resource.destination(ctx.home)
        if (dest / ".git").exists():
            return Presence.PRESENT
        if dest.exists() or dest.is_symlink():
            return Presence.CORRUPT
        return Presence.ABSENT

    # ── Acquire ─────────────────────────────────────────────────

    def acquire(self, resource: Resource, ctx: AdapterContext) -> ReconciliationResult:
        dest = resource.destination(ctx.home)
        args = ["git", "clone", "--quiet"]
        if resource.depth:
            args += ["--depth", str(resource.depth)]
        if resource.branch:
            args += ["--branch", resource.branch]
        args += [str(resource.source), str(dest)]

        def attempt() -> CommandResult:
            # A failed attempt can leave a half-written clone behind
            remove_path(dest)
            return ctx.runner.run(args, cwd=dest.parent)

        result = ctx.retry(attempt, label=f"git clone {resource.name}")
        if not result.ok:
            return ReconciliationResult.failure(
                resource.name,
                self.kind,
                f"clone failed: {result.error}",
                attempts=result.attempts,
            )

        return ReconciliationResult.created(
            resource.name,
            self.kind,
            f"cloned {resource.source}",
            attempts=result.attempts,
        )

    def verify(self, resource: Resource, ctx: AdapterContext) -> list[str]:
        problems = super().verify(resource, ctx)
        dest = resource.destination(ctx.home)
        if not (dest / ".git").is_dir():
            problems.append(f"{dest} has no .git directory")
        elif not any(entry.name != ".git" for entry in dest.iterdir()):
            problems.append(f"{dest} has no checked-out content")
        return problems

    # ── Update ──────────────────────────────────────────────────

    def update(self, resource: Resource, ctx: AdapterContext) -> ReconciliationResult:
        dest = resource.destination(ctx.home)

        fetch = ctx.retry(
            lambda: self._git(ctx, dest, "fetch", "--quiet", "origin"),
            label=f"git fetch {resource.name}",
        )
        if not fetch.ok:
            return self._kept(resource, f"fetch failed: {fetch.error}", fetch.attempts)

        branch = resource.branch or self.default_branch(ctx, dest)
        current = self._git(ctx, dest, "rev-parse", "--abbrev-ref", "HEAD").stdout.strip()

        if current != branch:
            logger.info("%s is on '%s', switching to '%s'", resource.name, current, branch)
            if self._git(ctx, dest, "show-ref", "--verify", "--quiet", f"refs/heads/{branch}").ok:
                checkout = self._git(ctx, dest, "checkout", "--quiet", branch)
            else:
                checkout = self._git(
                    ctx, dest, "checkout", "--quiet", "-b", branch, "--track", f"origin/{branch}"
                )
            if not checkout.ok:
                return self._kept(
                    resource, f"checkout of {branch} failed: {checkout.error}", fetch.attempts
                )

        pull = ctx.retry(
            lambda: self._git(ctx, dest, "pull", "--ff-only", "--quiet", "origin", branch),
            label=f"git pull {resource.name}",
        )
        attempts = fetch.attempts + pull.attempts

        if pull.ok:
            action = f"pulled {branch}"
        else:
            logger.warning("Pull failed for %s, resetting to origin/%s", resource.name, branch)
            reset = self._git(ctx, dest, "reset", "--hard", "--quiet", f"origin/{branch}")
            if not reset.ok:
                logger.warning(
                    "Could not update %s, keeping existing copy: %s", resource.name, reset.error
                )
                return self._kept(resource, f"pull and reset failed: {reset.error}", attempts)
            action = f"reset to origin/{branch}"

        head = self._git(ctx, dest, "rev-parse", "--short", "HEAD").stdout.strip()
        return ReconciliationResult.updated(
            resource.name,
            self.kind,
            f"{action} ({head})" if head else action,
            attempts=attempts,
            metadata={"branch": branch, "head": head},
        )

    def default_branch(self, ctx: AdapterContext, dest: Path) -> str:
        """The remote's default branch.

        Asks the remote first, then the clone's cached ``origin/HEAD``,
        then falls back to ``main``.
        """
        remote = self._git(ctx, dest, "ls-remote", "--symref", "origin", "HEAD")
        if remote.ok:
            for line in remote.stdout.splitlines():
                parts = line.split()
                if len(parts) >= 2 and parts[0] == "ref:":
                    return parts[1].removeprefix("refs/heads/")

        cached = self._git(ctx, dest, "symbolic-ref", "--quiet", "--short", "refs/remotes/origin/HEAD")
        if cached.ok and cached.stdout.strip():
            return cached.stdout.strip().removeprefix("origin/")

        logger.debug("Could not determine default branch of %s, using %s", dest, FALLBACK_BRANCH)
        return FALLBACK_BRANCH

    # ── Helpers ─────────────────────────────────────────────────

    def _kept(self, resource: Resource, reason: str, attempts: int) -> ReconciliationResult:
        return ReconciliationResult.failure(
            resource.name,
            self.kind,
            f"{reason}; kept existing copy",
            attempts=attempts,
        )

    @staticmethod
    def _git(ctx: AdapterContext, cwd: Path, *args: str) -> CommandResult:
        return ctx.runner.run(["git", *args], cwd=cwd)
