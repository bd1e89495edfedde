"""
Error taxonomy — typed failures with process exit codes.

Exit codes:
    1  configuration / usage error, unresolvable target user
    2  network error (only surfaced under ``--strict``)
    3  filesystem error
    4  permission error

Only failures raised before the reconciliation loop starts (context,
target, manifest) terminate the run. Inside the loop every error is
caught and recorded as that resource's failed result.
"""

from __future__ import annotations


class BootstrapError(Exception):
    """Base class for all dotboot errors."""

    exit_code: int = 1

    def __init__(self, message: str, *, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigError(BootstrapError):
    """Invalid CLI usage, manifest or environment configuration."""

    exit_code = 1


class UserNotFound(ConfigError):
    """The resolved target user does not exist on this system."""


class NetworkError(BootstrapError):
    """A remote operation failed after all retries."""

    exit_code = 2


class FilesystemError(BootstrapError):
    """A copy, mkdir, move or remove failed."""

    exit_code = 3


class HomeUnavailable(FilesystemError):
    """The target home directory is missing and cannot be created."""


class PermissionDenied(BootstrapError):
    """The operation needs privilege escalation that is not available."""

    exit_code = 4
