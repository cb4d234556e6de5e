"""extman CLI entry point."""

import asyncio
import sys
from pathlib import Path
from typing import Annotated

import typer

from extman import __version__, cli_logger, exit_codes
from extman.constants import ExtensionType
from extman.errors import handle_cli_error
from extman.extension_registry import ExtensionRegistry
from extman.home import get_manifest_path, resolve_home
from extman.manifest_store import ManifestError, load_extensions

app = typer.Typer(
    name="extman",
    help="Inspect the drivers and plugins installed in a home directory.",
    no_args_is_help=True,
)
driver_app = typer.Typer(help="Installed drivers.", no_args_is_help=True)
plugin_app = typer.Typer(help="Installed plugins.", no_args_is_help=True)
app.add_typer(driver_app, name="driver")
app.add_typer(plugin_app, name="plugin")

HomeOption = Annotated[
    Path | None,
    typer.Option(
        "--home",
        help="Home directory. Defaults to APPIUM_HOME, a local project, or ~/.appium/",
    ),
]

ActiveOption = Annotated[
    list[str] | None,
    typer.Option(
        "--active",
        help="Mark an extension as active in the listing. May be repeated.",
    ),
]


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        cli_logger.info(f"extman {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show extman version and exit.",
    ),
) -> None:
    """Inspect the drivers and plugins installed in a home directory."""


@app.command()
def home(
    cwd: Annotated[
        Path | None,
        typer.Option("--cwd", help="Directory to resolve the home directory from."),
    ] = None,
) -> None:
    """Show the resolved home directory and its manifest path."""
    try:
        resolved = resolve_home(cwd.absolute() if cwd else None)
    except ValueError as e:
        cli_logger.error(str(e))
        raise typer.Exit(exit_codes.INVALID_ARGS) from e

    cli_logger.info(f"Home: {resolved}")
    cli_logger.dim(f"Manifest: {get_manifest_path(resolved)}")
    raise typer.Exit(exit_codes.SUCCESS)


def _load_registry(ext_type: ExtensionType, home_dir: Path | None) -> ExtensionRegistry:
    try:
        configs = asyncio.run(load_extensions(home_dir if home_dir else resolve_home()))
    except ManifestError as e:
        cli_logger.error(str(e))
        raise typer.Exit(exit_codes.MANIFEST_ERROR) from e
    if ext_type is ExtensionType.DRIVER:
        return configs.driver_registry
    return configs.plugin_registry


@driver_app.command("list")
def list_drivers(home_dir: HomeOption = None, active: ActiveOption = None) -> None:
    """List installed drivers.

    Drivers whose manifest entries are invalid are reported and left out.
    """
    registry = _load_registry(ExtensionType.DRIVER, home_dir)
    registry.print(active)
    raise typer.Exit(exit_codes.SUCCESS)


@plugin_app.command("list")
def list_plugins(home_dir: HomeOption = None, active: ActiveOption = None) -> None:
    """List installed plugins.

    Plugins whose manifest entries are invalid are reported and left out.
    """
    registry = _load_registry(ExtensionType.PLUGIN, home_dir)
    registry.print(active)
    raise typer.Exit(exit_codes.SUCCESS)


def main_cli() -> None:
    """CLI entry point with top-level exception handling.

    Wraps the Typer app to catch any unhandled exceptions and format them
    as clean error messages instead of raw tracebacks.
    """
    try:
        app()
    except Exception as e:
        sys.exit(handle_cli_error(e))


if __name__ == "__main__":
    main_cli()
