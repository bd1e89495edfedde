"""
Adapter registry — one adapter per resource kind.

The reconciler never instantiates adapters itself; it looks them up
here. Tests register mock adapters in place of the real ones.
"""

from __future__ import annotations

import logging
from typing import Any

from dotboot.adapters.base import ResourceAdapter
from dotboot.core.models.resource import ResourceKind

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """Central registry of resource adapters keyed by kind."""

    def __init__(self) -> None:
        self._adapters: dict[ResourceKind, ResourceAdapter] = {}

    def register(self, adapter: ResourceAdapter) -> None:
        """Register an adapter, replacing any previous one for its kind."""
        kind = adapter.kind
        if kind in self._adapters:
            logger.debug("Overwriting existing adapter for kind: %s", kind)
        self._adapters[kind] = adapter
        logger.debug("Registered adapter: %s", adapter)

    def get(self, kind: ResourceKind) -> ResourceAdapter | None:
        """Look up the adapter for a kind."""
        return self._adapters.get(kind)

    def adapter_status(self) -> dict[str, dict[str, Any]]:
        """Availability of every registered adapter's tool."""
        status = {}
        for kind, adapter in self._adapters.items():
            try:
                available = adapter.is_available()
            except Exception:
                available = False
            status[str(kind)] = {
                "kind": str(kind),
                "tool": adapter.tool,
                "available": available,
                "type": adapter.__class__.__name__,
            }
        return status


def default_registry() -> AdapterRegistry:
    """Registry with the built-in adapter for every resource kind."""
    from dotboot.adapters.net.download import DownloadAdapter, InstallerAdapter
    from dotboot.adapters.shell.filesystem import (
        DirectoryAdapter,
        FileCopyAdapter,
        LineAdapter,
        SymlinkAdapter,
    )
    from dotboot.adapters.vcs.git import GitAdapter

    registry = AdapterRegistry()
    registry.register(FileCopyAdapter())
    registry.register(DirectoryAdapter())
    registry.register(GitAdapter())
    registry.register(DownloadAdapter())
    registry.register(SymlinkAdapter())
    registry.register(InstallerAdapter())
    registry.register(LineAdapter())
    return registry
