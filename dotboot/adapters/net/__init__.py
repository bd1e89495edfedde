"""Network adapters — downloads and remote installers."""
