"""
Resource model — one declarative thing to reconcile.

Resources are static data loaded from the manifest. The only runtime
derivation is interpolating the destination against the resolved home
directory.
"""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ResourceKind(StrEnum):
    """Supported resource kinds."""

    FILE = "file"              # plain file copy
    DIRECTORY = "directory"    # directory merge (or bare mkdir without source)
    GIT = "git"                # git repository clone / update
    DOWNLOAD = "download"      # downloaded file, or binary out of an archive
    SYMLINK = "symlink"
    INSTALLER = "installer"    # remote install script, guarded by dest presence
    LINE = "line"              # line in a shell config file


REMOTE_KINDS = frozenset({ResourceKind.GIT, ResourceKind.DOWNLOAD, ResourceKind.INSTALLER})

# Runtime folders never merged from a config directory
DEFAULT_MERGE_EXCLUDES = [
    "logs/*",
    "shell-snapshots/*",
    "backups/*",
    "statsig/*",
    "todos/*",
    "projects/*",
    "*.backup.*",
]

_NEEDS_SOURCE = {
    ResourceKind.FILE,
    ResourceKind.GIT,
    ResourceKind.DOWNLOAD,
    ResourceKind.SYMLINK,
}


class Resource(BaseModel):
    """A resource declared in the manifest.

    ``dest`` is relative to the target home unless absolute; a leading
    ``~/`` is accepted. ``source`` is a URL for remote kinds and a path
    relative to the dotfiles source directory for local kinds.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    kind: ResourceKind
    dest: str
    source: str | None = None
    verify: list[str] = Field(default_factory=list)
    description: str = ""
    platforms: list[str] = Field(default_factory=list)   # platform.system() names; empty = all

    # git
    depth: int | None = None
    branch: str | None = None

    # download
    member: str | None = None      # path of the binary inside an archive
    mode: int | None = None
    refresh: bool = False

    # installer
    command: str | None = None

    # symlink
    alternatives: list[str] = Field(default_factory=list)

    # line
    line: str | None = None
    pattern: str | None = None

    # file / directory
    backup: bool = True
    exclude: list[str] = Field(default_factory=lambda: list(DEFAULT_MERGE_EXCLUDES))

    @field_validator("mode", mode="before")
    @classmethod
    def _parse_mode(cls, value: object) -> object:
        if isinstance(value, str):
            return int(value.removeprefix("0o"), 8)
        return value

    @field_validator("depth")
    @classmethod
    def _positive_depth(cls, value: int | None) -> int | None:
        if value is not None and value < 1:
            raise ValueError("depth must be >= 1")
        return value

    @model_validator(mode="after")
    def _check_kind_fields(self) -> Resource:
        if not self.name.strip():
            raise ValueError("resource name must not be empty")
        if self.kind in _NEEDS_SOURCE and not self.source:
            raise ValueError(f"resource '{self.name}' ({self.kind}) needs a 'source'")
        if self.kind == ResourceKind.INSTALLER and not self.command:
            raise ValueError(f"installer '{self.name}' needs a 'command'")
        if self.kind == ResourceKind.LINE and not self.line:
            raise ValueError(f"line resource '{self.name}' needs a 'line'")
        return self

    @property
    def remote(self) -> bool:
        return self.kind in REMOTE_KINDS

    def applies_to(self, system: str) -> bool:
        """Whether the resource is declared for platform ``system``."""
        return not self.platforms or system in self.platforms

    def destination(self, home: Path) -> Path:
        """Absolute destination path under ``home``."""
        return expand_home(self.dest, home)

    def source_path(self, source_dir: Path) -> Path:
        """Absolute path of a local source."""
        assert self.source is not None
        path = Path(self.source).expanduser()
        return path if path.is_absolute() else source_dir / path

    def interpolate(self, text: str, home: Path) -> str:
        """Substitute ``{home}`` and ``{dest}`` in a command string."""
        return text.replace("{home}", str(home)).replace("{dest}", str(self.destination(home)))


def expand_home(raw: str, home: Path) -> Path:
    """Resolve ``raw`` against ``home`` (``~``, ``~/x``, relative or absolute)."""
    if raw == "~":
        return home
    if raw.startswith("~/"):
        raw = raw[2:]
    path = Path(raw)
    return path if path.is_absolute() else home / path
