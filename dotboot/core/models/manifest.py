"""
Manifest model — the declared resource list plus run settings.

Loaded from ``resources.yml``. If a resource isn't declared here, the
bootstrapper doesn't touch it.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator

from dotboot.core.models.resource import Resource
from dotboot.core.models.retry import RetrySettings


class Manifest(BaseModel):
    """Root of the resource manifest."""

    version: int = 1
    retry: RetrySettings = Field(default_factory=RetrySettings)
    resources: list[Resource] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_names(self) -> Manifest:
        seen: set[str] = set()
        dupes: list[str] = []
        for res in self.resources:
            if res.name in seen:
                dupes.append(res.name)
            seen.add(res.name)
        if dupes:
            raise ValueError(f"duplicate resource names: {', '.join(sorted(set(dupes)))}")
        return self

    def get_resource(self, name: str) -> Resource | None:
        """Look up a resource by name."""
        for res in self.resources:
            if res.name == name:
                return res
        return None
