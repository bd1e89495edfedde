"""System adapters — user database access."""
