"""
Smoke tests — verify the package is healthy.

These tests ensure the basic scaffolding works:
- Package imports successfully
- CLI entrypoint responds
- Version is set
- The packaged manifest loads
"""

from click.testing import CliRunner

from dotboot import __version__
from dotboot.main import cli


class TestBootstrap:
    """Verify the project bootstrap is healthy."""

    def test_version_is_set(self):
        """Version string should be defined and non-empty."""
        assert __version__
        assert isinstance(__version__, str)

    def test_cli_help(self):
        """CLI --help should exit cleanly with usage info."""
        runner = CliRunner()
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "Bootstrap a developer environment" in result.output

    def test_cli_version(self):
        """CLI --version should print the version."""
        runner = CliRunner()
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_core_package_imports(self):
        """Core sub-packages should be importable."""
        import dotboot.core
        import dotboot.core.config
        import dotboot.core.engine
        import dotboot.core.models
        import dotboot.core.observability
        import dotboot.core.reliability
        import dotboot.core.services
        import dotboot.core.use_cases

    def test_adapter_packages_import(self):
        import dotboot.adapters
        import dotboot.adapters.net.download
        import dotboot.adapters.shell.filesystem
        import dotboot.adapters.vcs.git

    def test_packaged_manifest_loads(self):
        from dotboot.core.config.loader import load_manifest

        manifest = load_manifest()
        assert manifest.resources
