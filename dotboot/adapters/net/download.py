"""
Download adapters — files fetched with curl, and remote install scripts.

Downloads are fetched as the target user with ``curl -fsSL``. When a
resource names an archive ``member``, the archive is fetched into a
staging directory under ``~/.cache/dotboot``, unpacked there, and only
the member is moved to the destination. Plain files land in
``<name>.part`` beside the destination and replace it only once
complete.

Installers run a shell command (usually ``curl … | sh``) that is
expected to produce ``dest``; the destination is their presence guard.
"""

from __future__ import annotations

import logging
import os
import shutil
import tarfile
from pathlib import Path
from urllib.parse import urlparse

from dotboot.adapters.base import AdapterContext, Presence, ResourceAdapter
from dotboot.adapters.shell.filesystem import ensure_directory, remove_path
from dotboot.core.errors import FilesystemError
from dotboot.core.models.command import CommandResult
from dotboot.core.models.resource import Resource, ResourceKind
from dotboot.core.models.result import ReconciliationResult

logger = logging.getLogger(__name__)

STAGING_DIR = ".cache/dotboot"
EXECUTABLE_MODE = 0o755
PARTIAL_SUFFIX = ".part"


class DownloadAdapter(ResourceAdapter):
    """Single files and archive members fetched over HTTP(S).

    Resource fields:
        source (str): URL to fetch.
        member (str): Path inside a tar archive to install (optional).
        mode (int): Permission bits for the installed file (optional;
            archive members default to 0755).
        refresh (bool): Fetch again even when ``dest`` exists.
    """

    remote = True
    tool = "curl"

    @property
    def kind(self) -> ResourceKind:
        return ResourceKind.DOWNLOAD

    def acquire(self, resource: Resource, ctx: AdapterContext) -> ReconciliationResult:
        result = self._fetch(resource, ctx)
        if result is not None:
            return result
        return ReconciliationResult.created(
            resource.name, self.kind, f"downloaded {self._filename(resource)}"
        )

    def update(self, resource: Resource, ctx: AdapterContext) -> ReconciliationResult:
        if not resource.refresh:
            return ReconciliationResult.skipped(resource.name, self.kind, "already installed")
        result = self._fetch(resource, ctx)
        if result is not None:
            return result
        return ReconciliationResult.updated(
            resource.name, self.kind, f"refreshed {self._filename(resource)}"
        )

    def _fetch(self, resource: Resource, ctx: AdapterContext) -> ReconciliationResult | None:
        """Fetch into place. Returns a failure result, or None on success."""
        dest = resource.destination(ctx.home)
        if resource.member:
            return self._fetch_member(resource, ctx, dest)

        # Fetched beside dest and moved over it only once complete
        partial = dest.with_name(f"{dest.name}{PARTIAL_SUFFIX}")
        try:
            result = self._curl(resource, ctx, partial)
            if not result.ok:
                return self._failed(resource, result)
            try:
                os.replace(partial, dest)
            except OSError as e:
                raise FilesystemError(f"Failed to move download into {dest}: {e}") from e
        finally:
            remove_path(partial)
        if resource.mode is not None:
            _chmod(dest, resource.mode)
        return None

    def _fetch_member(
        self, resource: Resource, ctx: AdapterContext, dest: Path
    ) -> ReconciliationResult | None:
        staging = ctx.home / STAGING_DIR / resource.name
        remove_path(staging)
        ensure_directory(staging, ctx)
        try:
            archive = staging / self._filename(resource)
            result = self._curl(resource, ctx, archive)
            if not result.ok:
                return self._failed(resource, result)

            unpacked = staging / "unpacked"
            try:
                with tarfile.open(archive, "r:*") as tar:
                    tar.extractall(unpacked, filter="data")
            except (tarfile.TarError, OSError) as e:
                raise FilesystemError(f"Failed to unpack {archive.name}: {e}") from e

            member = unpacked / resource.member
            if not member.is_file():
                return ReconciliationResult.failure(
                    resource.name,
                    self.kind,
                    f"'{resource.member}' not found in {archive.name}",
                    attempts=result.attempts,
                )

            remove_path(dest)
            try:
                shutil.move(member, dest)
            except OSError as e:
                raise FilesystemError(f"Failed to install {member.name} to {dest}: {e}") from e
            _chmod(dest, resource.mode if resource.mode is not None else EXECUTABLE_MODE)
            logger.info("Installed %s from %s", dest, archive.name)
            return None
        finally:
            shutil.rmtree(staging, ignore_errors=True)

    def _curl(self, resource: Resource, ctx: AdapterContext, output: Path) -> CommandResult:
        args = ["curl", "-fsSL", str(resource.source), "-o", str(output)]
        return ctx.retry(
            lambda: ctx.runner.run(args, cwd=output.parent),
            label=f"download {resource.name}",
        )

    def _failed(self, resource: Resource, result: CommandResult) -> ReconciliationResult:
        return ReconciliationResult.failure(
            resource.name,
            self.kind,
            f"download failed: {result.error}",
            attempts=result.attempts,
        )

    @staticmethod
    def _filename(resource: Resource) -> str:
        path = urlparse(str(resource.source)).path
        return os.path.basename(path) or resource.name


class InstallerAdapter(ResourceAdapter):
    """Remote install scripts guarded by the file they produce.

    ``command`` may reference ``{home}`` and ``{dest}``; it runs through
    ``sh -c`` as the target user from the target home.
    """

    remote = True
    tool = "curl"

    @property
    def kind(self) -> ResourceKind:
        return ResourceKind.INSTALLER

    def inspect(self, resource: Resource, ctx: AdapterContext) -> Presence:
        """A destination missing any of its verify markers is a broken install.

        Later resources may create directories inside ``dest`` even when
        the installer itself failed; those must not count as installed.
        """
        dest = resource.destination(ctx.home)
        if not os.path.lexists(dest):
            return Presence.ABSENT
        missing = [sub for sub in resource.verify if not (dest / sub).exists()]
        if missing:
            logger.warning("%s exists but lacks %s", dest, ", ".join(missing))
            return Presence.CORRUPT
        return Presence.PRESENT

    def acquire(self, resource: Resource, ctx: AdapterContext) -> ReconciliationResult:
        result = self._install(resource, ctx)
        if not result.ok:
            return ReconciliationResult.failure(
                resource.name,
                self.kind,
                f"installer failed: {result.error}",
                attempts=result.attempts,
            )
        return ReconciliationResult.created(
            resource.name, self.kind, "installed", attempts=result.attempts
        )

    def update(self, resource: Resource, ctx: AdapterContext) -> ReconciliationResult:
        if not resource.refresh:
            return ReconciliationResult.skipped(resource.name, self.kind, "already installed")

        result = self._install(resource, ctx, clean=False)
        if not result.ok:
            return ReconciliationResult.failure(
                resource.name,
                self.kind,
                f"installer failed: {result.error}; kept existing install",
                attempts=result.attempts,
            )
        return ReconciliationResult.updated(
            resource.name, self.kind, "reinstalled", attempts=result.attempts
        )

    def _install(self, resource: Resource, ctx: AdapterContext, clean: bool = True) -> CommandResult:
        assert resource.command is not None
        command = resource.interpolate(resource.command, ctx.home)
        dest = resource.destination(ctx.home)

        def attempt() -> CommandResult:
            # Installers usually refuse to run over their own partial output
            if clean:
                remove_path(dest)
            return ctx.runner.run(command, cwd=ctx.home)

        return ctx.retry(attempt, label=f"install {resource.name}")


def _chmod(path: Path, mode: int) -> None:
    try:
        os.chmod(path, mode)
    except OSError as e:
        raise FilesystemError(f"Failed to set mode {oct(mode)} on {path}: {e}") from e
