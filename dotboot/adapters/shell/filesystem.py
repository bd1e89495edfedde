"""
Filesystem adapters — local resources handled in-process.

Covers plain file copies, directory merges (and bare directories),
symlinks and lines appended to shell config files. None of these touch
the network, so they never go through the retrier; paths they create
are handed back to the target user by the ownership fixer.
"""

from __future__ import annotations

import filecmp
import fnmatch
import logging
import os
import re
import shutil
import time
from pathlib import Path

from dotboot.adapters.base import AdapterContext, Presence, ResourceAdapter
from dotboot.core.errors import FilesystemError
from dotboot.core.models.resource import Resource, ResourceKind, expand_home
from dotboot.core.models.result import ReconciliationResult

logger = logging.getLogger(__name__)

# Markers of credentials a user may have added to a managed file
SENSITIVE_MARKERS = (
    '"token"',
    '"sessionToken"',
    '"authToken"',
    '"apiKey"',
    '"credentials"',
    "helper = !",
    '"github.copilot"',
    '"accessToken"',
    '"personal-access-token"',
)

_SCAN_LIMIT = 1024 * 1024
DIR_MODE = 0o755


# ── Helpers ─────────────────────────────────────────────────────


def contains_credentials(path: Path) -> bool:
    """Whether ``path`` holds any credential marker."""
    try:
        with open(path, "rb") as fh:
            text = fh.read(_SCAN_LIMIT).decode("utf-8", errors="ignore")
    except OSError:
        return False
    return any(marker in text for marker in SENSITIVE_MARKERS)


def backup_file(path: Path) -> Path:
    """Copy ``path`` to ``<path>.backup.<YYYYMMDD_HHMMSS>``."""
    stamp = time.strftime("%Y%m%d_%H%M%S")
    backup = path.with_name(f"{path.name}.backup.{stamp}")
    counter = 1
    while backup.exists():
        backup = path.with_name(f"{path.name}.backup.{stamp}.{counter}")
        counter += 1
    try:
        shutil.copy2(path, backup)
    except OSError as e:
        raise FilesystemError(f"Failed to back up {path}: {e}") from e
    logger.info("Backed up %s to %s", path, backup.name)
    return backup


def ensure_directory(path: Path, ctx: AdapterContext) -> list[Path]:
    """Create ``path`` and any missing parents as the target user.

    Returns:
        The directories that were created, outermost first.
    """
    missing = []
    current = path
    while not current.exists():
        missing.append(current)
        if current.parent == current:
            break
        current = current.parent

    created = []
    for directory in reversed(missing):
        try:
            directory.mkdir(mode=DIR_MODE)
        except FileExistsError:
            continue
        except OSError as e:
            raise FilesystemError(f"Failed to create directory {directory}: {e}") from e
        ctx.fix_ownership(directory)
        created.append(directory)
    if created:
        logger.debug("Created directories: %s", ", ".join(str(d) for d in created))
    return created


def remove_path(path: Path) -> None:
    """Remove a file, symlink or directory tree if it exists."""
    try:
        if path.is_symlink() or path.is_file():
            path.unlink()
        elif path.is_dir():
            shutil.rmtree(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        raise FilesystemError(f"Failed to remove {path}: {e}") from e


def _copy(src: Path, dest: Path) -> None:
    try:
        shutil.copy2(src, dest)
    except OSError as e:
        raise FilesystemError(f"Failed to copy {src} to {dest}: {e}") from e


def is_excluded(relative: str, patterns: list[str]) -> bool:
    """Whether a path relative to the merge root matches an exclude."""
    return any(
        fnmatch.fnmatch(relative, pattern) or fnmatch.fnmatch(relative, f"*/{pattern}")
        for pattern in patterns
    )


# ── File ────────────────────────────────────────────────────────


class FileCopyAdapter(ResourceAdapter):
    """Copy one configuration file into the target home.

    An existing destination is overwritten only after a timestamped
    backup, and never when it carries credentials.
    """

    @property
    def kind(self) -> ResourceKind:
        return ResourceKind.FILE

    def skip_reason(self, resource: Resource, ctx: AdapterContext) -> str | None:
        src = resource.source_path(ctx.source_dir)
        if not src.is_file():
            return f"source file not found: {src}"
        return None

    def acquire(self, resource: Resource, ctx: AdapterContext) -> ReconciliationResult:
        src = resource.source_path(ctx.source_dir)
        dest = resource.destination(ctx.home)
        _copy(src, dest)
        logger.info("Copied %s to %s", src.name, dest)
        return ReconciliationResult.created(resource.name, self.kind, f"copied from {src.name}")

    def update(self, resource: Resource, ctx: AdapterContext) -> ReconciliationResult:
        src = resource.source_path(ctx.source_dir)
        dest = resource.destination(ctx.home)

        if dest.is_dir():
            raise FilesystemError(f"{dest} is a directory, expected a file")
        if contains_credentials(dest):
            logger.warning("%s contains sensitive content, leaving it untouched", dest)
            return ReconciliationResult.skipped(
                resource.name, self.kind, "sensitive content preserved"
            )
        if filecmp.cmp(src, dest, shallow=False):
            return ReconciliationResult.skipped(resource.name, self.kind, "already current")

        detail = "replaced"
        if resource.backup:
            backup = backup_file(dest)
            ctx.fix_ownership(backup)
            detail = f"replaced, backup at {backup.name}"
        _copy(src, dest)
        return ReconciliationResult.updated(resource.name, self.kind, detail)


# ── Directory ───────────────────────────────────────────────────


class DirectoryAdapter(ResourceAdapter):
    """Merge a source directory into the destination, or just create it.

    Merging never deletes destination files and skips the runtime
    folders matched by the resource's exclude patterns.
    """

    @property
    def kind(self) -> ResourceKind:
        return ResourceKind.DIRECTORY

    def skip_reason(self, resource: Resource, ctx: AdapterContext) -> str | None:
        if resource.source is None:
            return None
        src = resource.source_path(ctx.source_dir)
        if not src.is_dir():
            return f"source directory not found: {src}"
        return None

    def acquire(self, resource: Resource, ctx: AdapterContext) -> ReconciliationResult:
        dest = resource.destination(ctx.home)
        try:
            dest.mkdir(mode=DIR_MODE)
        except OSError as e:
            raise FilesystemError(f"Failed to create directory {dest}: {e}") from e

        if resource.source is None:
            return ReconciliationResult.created(resource.name, self.kind, "directory created")

        copied, _, _ = self._merge(resource, ctx)
        return ReconciliationResult.created(resource.name, self.kind, f"{copied} files copied")

    def update(self, resource: Resource, ctx: AdapterContext) -> ReconciliationResult:
        dest = resource.destination(ctx.home)
        if not dest.is_dir():
            raise FilesystemError(f"{dest} exists but is not a directory")
        if resource.source is None:
            return ReconciliationResult.skipped(resource.name, self.kind, "directory exists")

        copied, replaced, preserved = self._merge(resource, ctx)
        note = f", {preserved} sensitive files preserved" if preserved else ""
        if copied or replaced:
            return ReconciliationResult.updated(
                resource.name, self.kind, f"{copied} added, {replaced} replaced{note}"
            )
        return ReconciliationResult.skipped(resource.name, self.kind, f"already current{note}")

    def verify(self, resource: Resource, ctx: AdapterContext) -> list[str]:
        problems = super().verify(resource, ctx)
        dest = resource.destination(ctx.home)
        if dest.exists() and not dest.is_dir():
            problems.append(f"{dest} is not a directory")
        return problems

    def _merge(self, resource: Resource, ctx: AdapterContext) -> tuple[int, int, int]:
        """Copy the source tree over the destination.

        Returns:
            (files added, files replaced, sensitive files preserved)
        """
        src_root = resource.source_path(ctx.source_dir)
        dest_root = resource.destination(ctx.home)
        copied = replaced = preserved = 0

        for src in sorted(src_root.rglob("*")):
            relative = src.relative_to(src_root).as_posix()
            if src.is_dir() or is_excluded(relative, resource.exclude):
                continue

            dest = dest_root / relative
            ensure_directory(dest.parent, ctx)
            if dest.exists():
                if filecmp.cmp(src, dest, shallow=False):
                    continue
                if contains_credentials(dest):
                    logger.warning("Preserving %s (sensitive content)", dest)
                    preserved += 1
                    continue
                if resource.backup:
                    ctx.fix_ownership(backup_file(dest))
                _copy(src, dest)
                replaced += 1
            else:
                _copy(src, dest)
                copied += 1
            ctx.fix_ownership(dest)

        logger.debug(
            "Merged %s into %s: %d added, %d replaced, %d preserved",
            src_root, dest_root, copied, replaced, preserved,
        )
        return copied, replaced, preserved


# ── Symlink ─────────────────────────────────────────────────────


class SymlinkAdapter(ResourceAdapter):
    """Point ``dest`` at the first candidate path that exists."""

    @property
    def kind(self) -> ResourceKind:
        return ResourceKind.SYMLINK

    def link_target(self, resource: Resource, ctx: AdapterContext) -> Path | None:
        assert resource.source is not None
        for candidate in [resource.source, *resource.alternatives]:
            path = expand_home(candidate, ctx.home)
            if path.exists():
                return path
        return None

    def skip_reason(self, resource: Resource, ctx: AdapterContext) -> str | None:
        if self.link_target(resource, ctx) is None:
            return "no link target found"
        return None

    def acquire(self, resource: Resource, ctx: AdapterContext) -> ReconciliationResult:
        target = self.link_target(resource, ctx)
        assert target is not None
        self._link(target, resource.destination(ctx.home))
        return ReconciliationResult.created(resource.name, self.kind, f"-> {target}")

    def update(self, resource: Resource, ctx: AdapterContext) -> ReconciliationResult:
        dest = resource.destination(ctx.home)
        target = self.link_target(resource, ctx)

        if target is None or target == dest:
            return ReconciliationResult.skipped(resource.name, self.kind, "existing path kept")
        if dest.is_symlink() and Path(os.readlink(dest)) == target:
            return ReconciliationResult.skipped(resource.name, self.kind, f"-> {target}")

        remove_path(dest)
        self._link(target, dest)
        return ReconciliationResult.updated(resource.name, self.kind, f"-> {target}")

    @staticmethod
    def _link(target: Path, dest: Path) -> None:
        try:
            os.symlink(target, dest)
        except OSError as e:
            raise FilesystemError(f"Failed to link {dest} to {target}: {e}") from e
        logger.info("Linked %s -> %s", dest, target)


# ── Line ────────────────────────────────────────────────────────


class LineAdapter(ResourceAdapter):
    """Append a line to an existing shell config file.

    A missing config file is left alone: the line is only added to
    files some other resource (or the user) already put in place.
    """

    @property
    def kind(self) -> ResourceKind:
        return ResourceKind.LINE

    def validate(self, resource: Resource, ctx: AdapterContext) -> tuple[bool, str]:
        if resource.pattern:
            try:
                re.compile(resource.pattern)
            except re.error as e:
                return False, f"invalid pattern {resource.pattern!r}: {e}"
        return True, ""

    def inspect(self, resource: Resource, ctx: AdapterContext) -> Presence:
        # The file is never created, so there is nothing to acquire
        return Presence.PRESENT

    def acquire(self, resource: Resource, ctx: AdapterContext) -> ReconciliationResult:
        return self.update(resource, ctx)

    def update(self, resource: Resource, ctx: AdapterContext) -> ReconciliationResult:
        assert resource.line is not None
        dest = resource.destination(ctx.home)
        if not dest.is_file():
            return ReconciliationResult.skipped(resource.name, self.kind, f"{dest.name} not found")

        try:
            text = dest.read_text(errors="replace")
        except OSError as e:
            raise FilesystemError(f"Failed to read {dest}: {e}") from e

        pattern = resource.pattern or re.escape(resource.line)
        if re.search(pattern, text, re.MULTILINE):
            return ReconciliationResult.skipped(resource.name, self.kind, "already present")

        try:
            with open(dest, "a") as fh:
                if text and not text.endswith("\n"):
                    fh.write("\n")
                fh.write(resource.line + "\n")
        except OSError as e:
            raise FilesystemError(f"Failed to append to {dest}: {e}") from e

        logger.info("Added line to %s: %s", dest, resource.line)
        return ReconciliationResult.updated(resource.name, self.kind, f"added to {dest.name}")
