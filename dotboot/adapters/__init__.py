"""Adapters — bindings to the filesystem, git, curl and the user database.

Public re-exports for convenient access.
"""

from dotboot.adapters.base import AdapterContext, Presence, ResourceAdapter
from dotboot.adapters.mock import MockAdapter, MockCommandRunner, StaticUserDatabase
from dotboot.adapters.registry import AdapterRegistry, default_registry

__all__ = [
    "AdapterContext",
    "AdapterRegistry",
    "MockAdapter",
    "MockCommandRunner",
    "Presence",
    "ResourceAdapter",
    "StaticUserDatabase",
    "default_registry",
]
