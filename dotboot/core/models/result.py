"""
Reconciliation results — one per resource per run.

Results are the contract between the reconciler and the summary
reporter. They are created through the factory classmethods and never
mutated after being recorded.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from dotboot.core.models.resource import ResourceKind


class ReconcileStatus(StrEnum):
    """Outcome of reconciling one resource."""

    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"    # already current
    FAILED = "failed"


class ReconciliationResult(BaseModel):
    """Outcome of one resource's reconciliation."""

    model_config = ConfigDict(frozen=True)

    name: str
    kind: ResourceKind
    status: ReconcileStatus
    detail: str = ""
    attempts: int = 0
    duration_ms: int = 0
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status != ReconcileStatus.FAILED

    @property
    def failed(self) -> bool:
        return self.status == ReconcileStatus.FAILED

    @classmethod
    def created(cls, name: str, kind: ResourceKind, detail: str = "", **kwargs: Any) -> ReconciliationResult:
        return cls(name=name, kind=kind, status=ReconcileStatus.CREATED, detail=detail, **kwargs)

    @classmethod
    def updated(cls, name: str, kind: ResourceKind, detail: str = "", **kwargs: Any) -> ReconciliationResult:
        return cls(name=name, kind=kind, status=ReconcileStatus.UPDATED, detail=detail, **kwargs)

    @classmethod
    def skipped(cls, name: str, kind: ResourceKind, detail: str = "", **kwargs: Any) -> ReconciliationResult:
        return cls(name=name, kind=kind, status=ReconcileStatus.SKIPPED, detail=detail, **kwargs)

    @classmethod
    def failure(cls, name: str, kind: ResourceKind, detail: str, **kwargs: Any) -> ReconciliationResult:
        return cls(name=name, kind=kind, status=ReconcileStatus.FAILED, detail=detail, **kwargs)
