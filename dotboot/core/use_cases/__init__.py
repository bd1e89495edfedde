"""Use cases — top-level orchestrators invoked by the CLI."""
