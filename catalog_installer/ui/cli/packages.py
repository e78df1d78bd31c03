"""
CLI commands for installing and removing catalog packages.

Thin wrappers over ``catalog_installer.core.services.installer``.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click


def _load_runtime(ctx: click.Context):
    """Settings, config dir, local host and telemetry reporter for this invocation."""
    from catalog_installer.adapters.local.host import LocalHost
    from catalog_installer.core.config.loader import ConfigError, load_settings
    from catalog_installer.core.context import get_config_dir
    from catalog_installer.core.services.telemetry import PackageStateReporter

    config_dir = get_config_dir()
    try:
        settings = load_settings(config_dir=config_dir)
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    host = LocalHost(settings, config_dir)
    reporter = PackageStateReporter(
        config_dir,
        endpoint=settings.package_state_endpoint,
        opt_out=settings.package_state_opt_out,
    )
    return settings, config_dir, host, reporter


def _load_package(catalog: str, package_id: str):
    from catalog_installer.core.config.catalog_loader import find_package, load_catalog
    from catalog_installer.core.services.installer.domain.errors import InstallerError

    try:
        return find_package(load_catalog(Path(catalog)), package_id)
    except InstallerError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)


def _progress_printer(as_json: bool, quiet: bool):
    last = {"label": None, "percent": -1}

    def _print(event) -> None:
        if as_json:
            click.echo(json.dumps(event.model_dump(mode="json")))
            return
        if quiet:
            return
        # only redraw on visible changes
        if event.label == last["label"] and event.percent == last["percent"]:
            return
        last["label"], last["percent"] = event.label, event.percent
        step = ""
        if event.step_index is not None and event.total_steps:
            step = f" [{event.step_index + 1}/{event.total_steps}]"
        click.echo(f"   {event.percent:3d}% {event.label}{step}")

    return _print


def _run(ctx: click.Context, package_id: str, catalog: str, as_json: bool, *, remove: bool) -> None:
    from catalog_installer.core.services.installer.domain.cancellation import CancelToken
    from catalog_installer.core.services.installer.domain.errors import InstallerError
    from catalog_installer.core.services.installer.execution.workdir import TMP_DIR_NAME
    from catalog_installer.core.services.installer.orchestration.orchestrator import (
        PackageInstaller,
    )

    settings, config_dir, host, reporter = _load_runtime(ctx)
    descriptor = _load_package(catalog, package_id)
    quiet = ctx.obj.get("quiet", False)

    installer = PackageInstaller.from_settings(
        host,
        settings,
        work_root=config_dir / TMP_DIR_NAME,
        login_surface=host.login_surface(),
        telemetry=reporter,
    )

    verb = "Removing" if remove else "Installing"
    if not as_json and not quiet:
        version = f" {descriptor.latest_version}" if descriptor.latest_version and not remove else ""
        click.secho(f"📦 {verb} {descriptor.display_name}{version}", fg="cyan", bold=True)

    cancel = CancelToken()
    run = installer.uninstall if remove else installer.install
    try:
        run(descriptor, _progress_printer(as_json, quiet), cancel=cancel)
    except KeyboardInterrupt:
        cancel.cancel("interrupted")
        click.secho("❌ Interrupted", fg="red")
        sys.exit(130)
    except InstallerError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)
    finally:
        reporter.close()

    if not as_json:
        done = "removed" if remove else "installed"
        click.secho(f"✅ {descriptor.display_name} {done}", fg="green")


# ── Install / uninstall ─────────────────────────────────────────


@click.command()
@click.argument("package_id")
@click.option("--catalog", "-c", required=True, type=click.Path(exists=True, dir_okay=False),
              help="Catalog file (JSON or YAML).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Emit progress as JSON lines.")
@click.pass_context
def install(ctx: click.Context, package_id: str, catalog: str, as_json: bool) -> None:
    """Install a package from the catalog."""
    _run(ctx, package_id, catalog, as_json, remove=False)


@click.command()
@click.argument("package_id")
@click.option("--catalog", "-c", required=True, type=click.Path(exists=True, dir_okay=False),
              help="Catalog file (JSON or YAML).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Emit progress as JSON lines.")
@click.pass_context
def uninstall(ctx: click.Context, package_id: str, catalog: str, as_json: bool) -> None:
    """Uninstall a package using its catalog recipe."""
    _run(ctx, package_id, catalog, as_json, remove=True)


# ── Observe ─────────────────────────────────────────────────────


@click.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def installed(ctx: click.Context, as_json: bool) -> None:
    """List packages recorded as installed."""
    _settings, _config_dir, host, reporter = _load_runtime(ctx)
    mapping = host.installed_map()
    try:
        reporter.maybe_send_snapshot(mapping)
    finally:
        reporter.close()

    if as_json:
        click.echo(json.dumps(mapping, indent=2, ensure_ascii=False))
        return

    if not mapping:
        click.secho("⚠️  No packages installed", fg="yellow")
        return

    click.secho(f"📦 Installed packages: {len(mapping)}", fg="cyan", bold=True)
    for package_id, version in sorted(mapping.items()):
        click.echo(f"   • {package_id}  {version or '-'}")


@click.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def dirs(ctx: click.Context, as_json: bool) -> None:
    """Show the directories used for path templates."""
    _settings, config_dir, host, _reporter = _load_runtime(ctx)
    d = host.app_directories()
    result = {
        "appDir": str(d.app_dir),
        "pluginsDir": str(d.plugins_dir),
        "scriptsDir": str(d.scripts_dir),
        "dataDir": str(d.data_dir),
        "configDir": str(config_dir),
    }

    if as_json:
        click.echo(json.dumps(result, indent=2))
        return

    for key, value in result.items():
        click.echo(f"   {key:<11} {value}")
