"""
Ownership fixer — hand files created as root back to the target user.

Only acts when the process is elevated AND working on behalf of a
different user; in every other case the files already belong to the
right account and ``fix`` is a no-op.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotboot.core.errors import FilesystemError
from dotboot.core.models.context import ExecutionContext, TargetIdentity

logger = logging.getLogger(__name__)


class OwnershipFixer:
    """Sets owner:group of paths to the target identity."""

    def __init__(self, context: ExecutionContext):
        self._context = context

    def applies_to(self, target: TargetIdentity) -> bool:
        """Whether ownership needs correcting for ``target`` at all."""
        return self._context.elevated and self._context.acts_for_other(target)

    def fix(self, path: Path, recursive: bool, target: TargetIdentity) -> int:
        """Chown ``path`` (and descendants when ``recursive``).

        Symlinks are chowned themselves, never followed.

        Returns:
            Number of paths changed (0 when not applicable).

        Raises:
            FilesystemError: A chown failed.
        """
        if not self.applies_to(target):
            return 0
        if target.uid is None or target.gid is None:
            raise FilesystemError(f"No uid/gid known for target user '{target.user}'")
        if not os.path.lexists(path):
            return 0

        changed = 0
        try:
            os.chown(path, target.uid, target.gid, follow_symlinks=False)
            changed += 1
            if recursive and path.is_dir() and not path.is_symlink():
                for root, dirs, files in os.walk(path):
                    for name in dirs + files:
                        os.chown(os.path.join(root, name), target.uid, target.gid, follow_symlinks=False)
                        changed += 1
        except OSError as e:
            raise FilesystemError(f"Failed to set ownership of {path}: {e}") from e

        logger.debug("Set ownership %s:%s on %s (%d paths)", target.user, target.group, path, changed)
        return changed
