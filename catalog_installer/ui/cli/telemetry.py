"""
CLI commands for the package-state telemetry queue.
"""

from __future__ import annotations

import sys

import click


def _reporter():
    from catalog_installer.core.config.loader import ConfigError, load_settings
    from catalog_installer.core.context import get_config_dir
    from catalog_installer.core.services.telemetry import PackageStateReporter

    config_dir = get_config_dir()
    try:
        settings = load_settings(config_dir=config_dir)
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)
    return PackageStateReporter(
        config_dir,
        endpoint=settings.package_state_endpoint,
        opt_out=settings.package_state_opt_out,
    )


@click.group()
def telemetry() -> None:
    """Telemetry — flush or reset the package-state queue."""


@telemetry.command()
def flush() -> None:
    """Send queued package-state events now."""
    reporter = _reporter()
    if not reporter.enabled:
        click.secho("⚠️  Telemetry disabled (no endpoint or opted out)", fg="yellow")
        return
    sent = reporter.flush()
    left = len(reporter.pending)
    click.echo(f"   Sent {sent} event(s), {left} still queued")
    if left:
        sys.exit(1)


@telemetry.command()
def reset() -> None:
    """Drop queued events and forget the last snapshot time."""
    _reporter().reset_local_state()
    click.secho("✅ Telemetry state reset", fg="green")
