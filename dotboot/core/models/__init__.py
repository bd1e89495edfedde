"""
Domain models — Pydantic types for the bootstrapper.

All models are re-exported here for convenient access:

    from dotboot.core.models import Resource, ReconciliationResult, TargetIdentity
"""

from dotboot.core.models.command import CommandResult
from dotboot.core.models.context import ExecutionContext, TargetIdentity
from dotboot.core.models.manifest import Manifest
from dotboot.core.models.resource import REMOTE_KINDS, Resource, ResourceKind
from dotboot.core.models.result import ReconcileStatus, ReconciliationResult
from dotboot.core.models.retry import RetryPolicy, RetrySettings

__all__ = [
    "REMOTE_KINDS",
    # command.py
    "CommandResult",
    # context.py
    "ExecutionContext",
    # manifest.py
    "Manifest",
    "ReconcileStatus",
    "ReconciliationResult",
    # resource.py
    "Resource",
    "ResourceKind",
    # retry.py
    "RetryPolicy",
    "RetrySettings",
    "TargetIdentity",
]
