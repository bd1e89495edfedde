"""Shell adapters — command execution and local filesystem resources."""
