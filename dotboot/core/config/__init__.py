"""Manifest configuration — loading and validation."""
