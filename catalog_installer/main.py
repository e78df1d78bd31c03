"""
AviUtl2 catalog installer — CLI entrypoint.

Usage:
    catalog-installer --help
    catalog-installer install PACKAGE_ID --catalog index.json
    catalog-installer uninstall PACKAGE_ID --catalog index.json
    catalog-installer installed
"""

from __future__ import annotations

import os
from pathlib import Path

import click

from catalog_installer import __version__
from catalog_installer.core.observability.logging_config import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="catalog-installer")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config-dir",
    "config_dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Directory holding settings.yml and installer state "
    "(default: $CATALOG_CONFIG_DIR or the per-user config dir).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_dir: str | None,
) -> None:
    """AviUtl2 catalog installer — install and remove catalog packages."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug

    from catalog_installer.core.context import get_config_dir, set_config_dir

    set_config_dir(Path(config_dir).expanduser() if config_dir else None)
    ctx.obj["config_dir"] = get_config_dir()

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = os.environ.get("CATALOG_LOG_LEVEL", "WARNING")

    setup_logging(
        level=level,
        log_file=os.environ.get("CATALOG_LOG_FILE"),
        log_file_level=os.environ.get("CATALOG_LOG_FILE_LEVEL"),
        quiet_third_party=not debug,
    )


# ── Register command groups ─────────────────────────────────────

from catalog_installer.ui.cli.packages import dirs, install, installed, uninstall  # noqa: E402
from catalog_installer.ui.cli.telemetry import telemetry  # noqa: E402

cli.add_command(install)
cli.add_command(uninstall)
cli.add_command(installed)
cli.add_command(dirs)
cli.add_command(telemetry)


if __name__ == "__main__":
    cli()
