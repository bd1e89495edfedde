"""Packaged data — the default resource manifest (``resources.yml``)."""
