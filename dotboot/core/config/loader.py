"""
Manifest loader — reads the resource manifest into domain models.

The packaged ``resources.yml`` is the default; ``--manifest`` points at
another file with the same schema. YAML is validated against the
Pydantic models and any problem surfaces as a ``ConfigError``.
"""

from __future__ import annotations

import logging
from importlib import resources
from pathlib import Path

import yaml
from pydantic import ValidationError

from dotboot.core.errors import ConfigError
from dotboot.core.models.manifest import Manifest

logger = logging.getLogger(__name__)

MANIFEST_FILE = "resources.yml"


def default_manifest_text() -> str:
    """Contents of the packaged manifest."""
    return resources.files("dotboot.data").joinpath(MANIFEST_FILE).read_text(encoding="utf-8")


def load_manifest(path: Path | None = None) -> Manifest:
    """Load and validate a resource manifest.

    Args:
        path: Manifest file. None loads the packaged default.

    Returns:
        Validated Manifest.

    Raises:
        ConfigError: If the file is missing, unreadable or invalid.
    """
    if path is None:
        origin = f"packaged {MANIFEST_FILE}"
        raw = default_manifest_text()
    else:
        origin = str(path)
        if not path.is_file():
            raise ConfigError(f"Manifest not found: {path}")
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Cannot read {path}: {e}") from e

    logger.debug("Loading manifest from %s", origin)
    return parse_manifest(raw, origin)


def parse_manifest(raw: str, origin: str = "<string>") -> Manifest:
    """Validate manifest YAML text."""
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {origin}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {origin}, got {type(data).__name__}")

    try:
        manifest = Manifest.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid manifest {origin}: {e}") from e

    logger.info("Loaded manifest with %d resources", len(manifest.resources))
    return manifest
