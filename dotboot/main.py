"""
dotboot — CLI entrypoint.

Usage:
    dotboot                          # manual install for the current user
    dotboot --cloud-init --user dev  # unattended install for 'dev'
    sudo DOTFILES_USER=dev dotboot   # as root on behalf of 'dev'
    python -m dotboot.main --help
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from dotboot import __version__
from dotboot.core.observability.logging_config import resolve_level, setup_logging


class BootstrapCommand(click.Command):
    """Command whose usage errors exit with status 1."""

    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        try:
            return super().parse_args(ctx, args)
        except click.UsageError as e:
            e.exit_code = 1
            raise


@click.command(
    cls=BootstrapCommand,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.version_option(version=__version__, prog_name="dotboot")
@click.option("--cloud-init", is_flag=True, help="Unattended mode (cloud-init / CI).")
@click.option("--user", "user", default=None, help="Target user (default: auto-detect).")
@click.option(
    "--home",
    "home",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Target home directory (default: the user's home).",
)
@click.option(
    "--manifest",
    "manifest_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Resource manifest (default: the packaged one).",
)
@click.option(
    "--source-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory holding the dotfiles (default: current directory).",
)
@click.option("--strict", is_flag=True, help="Exit non-zero when any resource failed.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output the report as JSON.")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
def cli(
    cloud_init: bool,
    user: str | None,
    home: Path | None,
    manifest_path: Path | None,
    source_dir: Path | None,
    strict: bool,
    as_json: bool,
    verbose: bool,
    quiet: bool,
    debug: bool,
) -> None:
    """Bootstrap a developer environment into a user's home directory.

    Copies dotfiles, clones plugins and installs tools. Safe to run
    repeatedly: resources already in place are updated or skipped.
    """
    # ── Logging setup (once, at process start) ──────────────────
    setup_logging(
        level=resolve_level(debug=debug, verbose=verbose, quiet=quiet),
        log_file=os.environ.get("DOTBOOT_LOG_FILE"),
        log_file_level=os.environ.get("DOTBOOT_LOG_FILE_LEVEL"),
    )

    from dotboot.core.services.summary import report
    from dotboot.core.use_cases.install import run_install

    result = run_install(
        cloud_init=cloud_init,
        user=user,
        home=home,
        manifest_path=manifest_path,
        source_dir=source_dir,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        if result.error:
            sys.exit(result.exit_code)
    elif result.error:
        click.secho(f"❌ {result.error}", fg="red", err=True)
        sys.exit(result.exit_code)
    else:
        assert result.report is not None
        if not quiet:
            target = result.target
            assert target is not None
            click.secho(f"\n📦 Bootstrap summary for {target.user} ({target.home})", fg="cyan", bold=True)
        report(result.report.results)

    if strict:
        code = result.strict_exit_code()
        if code:
            sys.exit(code)


if __name__ == "__main__":
    cli()
