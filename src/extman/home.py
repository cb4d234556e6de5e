"""Home directory resolution.

The home directory holds the extension manifest and every installed driver
and plugin. It is either set explicitly, detected from a local project that
depends on the host tool, or falls back to a per-user default.
"""

import json
import os
from pathlib import Path
from typing import Any

# Default home location
DEFAULT_HOME = Path.home() / ".appium"

# Environment variable for a custom home location
HOME_ENV_VAR = "APPIUM_HOME"

# When set, extension entry points are re-imported on every load
RELOAD_EXTENSIONS_ENV_VAR = "APPIUM_RELOAD_EXTENSIONS"

# Name of the host tool's package, used for local install detection
HOST_PACKAGE = "appium"

MANIFEST_BASENAME = "extensions.yaml"

# Manifest location when the home directory contains a local install
LOCAL_RELATIVE_MANIFEST_PATH = Path("node_modules") / ".cache" / HOST_PACKAGE / MANIFEST_BASENAME

DEPENDENCY_SECTIONS = ("dependencies", "devDependencies", "bundleDependencies")


def has_local_install(cwd: Path) -> bool:
    """Check whether the host tool is resolvable from cwd.

    Mirrors node module resolution: cwd and each of its ancestors are
    searched for node_modules/<host>/package.json.
    """
    cwd = Path(cwd)
    for directory in (cwd, *cwd.parents):
        if (directory / "node_modules" / HOST_PACKAGE / "package.json").is_file():
            return True
    return False


def read_package_in_dir(cwd: Path) -> dict[str, Any] | None:
    """Read package.json from cwd.

    Returns:
        Parsed package.json, or None if the file does not exist.

    Raises:
        ValueError: If package.json is not valid JSON.
    """
    package_json = Path(cwd) / "package.json"
    try:
        content = package_json.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    try:
        return json.loads(content)
    except json.JSONDecodeError as e:
        msg = f"Invalid package.json at {package_json}: {e}"
        raise ValueError(msg) from e


def get_dependency_from_package(pkg: dict[str, Any] | None) -> str | None:
    """Return the host tool's declared version range from a package.json."""
    if not isinstance(pkg, dict):
        return None
    for section in DEPENDENCY_SECTIONS:
        deps = pkg.get(section)
        if isinstance(deps, dict) and HOST_PACKAGE in deps:
            return deps[HOST_PACKAGE]
    return None


def resolve_home(cwd: Path | None = None) -> Path:
    """Get the home directory path.

    Resolution order:
    1. APPIUM_HOME environment variable (if set)
    2. cwd, if it contains a local install or declares the dependency
    3. Default: ~/.appium/

    Args:
        cwd: Absolute working directory. Defaults to the process cwd.

    Returns:
        Path to the home directory.

    Raises:
        ValueError: If cwd is not absolute.
    """
    cwd = Path.cwd() if cwd is None else Path(cwd)
    if not cwd.is_absolute():
        msg = f"Path to cwd must be absolute: {cwd}"
        raise ValueError(msg)

    env_value = os.environ.get(HOME_ENV_VAR)
    if env_value:
        return Path(env_value).expanduser()

    try:
        pkg = read_package_in_dir(cwd)
    except (OSError, ValueError):
        return DEFAULT_HOME

    if has_local_install(cwd) or get_dependency_from_package(pkg):
        return cwd
    return DEFAULT_HOME


def get_manifest_path(home: Path) -> Path:
    """Compute the manifest file path for a home directory."""
    home = Path(home)
    if has_local_install(home):
        return home / LOCAL_RELATIVE_MANIFEST_PATH
    return home / MANIFEST_BASENAME
