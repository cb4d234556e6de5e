"""Dynamic loading of extension code and schema files.

Extensions live outside of sys.path, so their entry modules are loaded
from file locations. Loaded modules are cached in sys.modules under a
name derived from their location; a reload bypasses that cache.
"""

import hashlib
import importlib.util
import json
import logging
import sys
from collections.abc import Mapping
from pathlib import Path
from types import ModuleType
from typing import Any

import yaml

logger = logging.getLogger(__name__)

# Marker carried by schemas exported through a default-export wrapper
DEFAULT_EXPORT_MARKER = "__esModule"
DEFAULT_EXPORT_KEY = "default"

ENTRY_MODULE_FILE = "__init__.py"


class ExtensionLoadError(Exception):
    """Raised when extension code or a schema file cannot be loaded."""


def module_name_for(location: Path) -> str:
    """Derive a stable sys.modules name for a file or package location."""
    digest = hashlib.sha1(str(location).encode("utf-8")).hexdigest()[:12]
    stem = location.stem.replace("-", "_").replace(".", "_") or "ext"
    return f"_extman_ext_{stem}_{digest}"


def resolve_module_file(location: Path) -> Path:
    """Resolve a package directory or module path to the file to execute.

    Raises:
        ExtensionLoadError: If nothing loadable exists at location.
    """
    if location.is_dir():
        entry = location / ENTRY_MODULE_FILE
        if entry.is_file():
            return entry
        msg = f"Package at '{location}' has no {ENTRY_MODULE_FILE}"
        raise ExtensionLoadError(msg)
    if location.is_file():
        return location
    with_suffix = location.with_suffix(".py")
    if with_suffix.is_file():
        return with_suffix
    msg = f"Cannot find module at '{location}'"
    raise ExtensionLoadError(msg)


def load_module(location: Path, reload: bool = False) -> ModuleType:
    """Load a Python module or package from a file location.

    Args:
        location: Package directory, module file, or module path without suffix.
        reload: Discard any cached load of the same location first.

    Returns:
        The loaded module.

    Raises:
        ExtensionLoadError: If the location cannot be resolved or executed.
    """
    module_file = resolve_module_file(Path(location).resolve())
    name = module_name_for(module_file)

    if name in sys.modules:
        if not reload:
            return sys.modules[name]
        logger.debug("Removing %s from module cache", module_file)
        del sys.modules[name]

    search_locations = [str(module_file.parent)] if module_file.name == ENTRY_MODULE_FILE else None
    spec = importlib.util.spec_from_file_location(
        name, module_file, submodule_search_locations=search_locations
    )
    if spec is None or spec.loader is None:
        msg = f"Cannot load module from '{module_file}'"
        raise ExtensionLoadError(msg)

    module = importlib.util.module_from_spec(spec)
    sys.modules[name] = module
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        del sys.modules[name]
        msg = f"Failed to load module '{module_file}': {e}"
        raise ExtensionLoadError(msg) from e
    return module


def load_schema_file(path: Path) -> Any:
    """Load a schema from a .json, .yaml/.yml or .py file.

    Python schema files are loaded as modules; see unwrap_default for how
    the schema is taken out of them.

    Raises:
        ExtensionLoadError: If the file is missing or cannot be parsed.
    """
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix == ".py":
        return load_module(path)

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        msg = f"Cannot read schema file '{path}': {e}"
        raise ExtensionLoadError(msg) from e

    try:
        if suffix == ".json":
            return json.loads(content)
        return yaml.safe_load(content)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        msg = f"Invalid schema file '{path}': {e}"
        raise ExtensionLoadError(msg) from e


def unwrap_default(value: Any) -> Any:
    """Take the payload out of a default-export wrapper.

    A module exposing a `default` attribute, or a mapping flagged with
    `__esModule` that carries a `default` key, is a wrapper; anything else
    is returned unchanged.
    """
    if isinstance(value, ModuleType):
        return getattr(value, DEFAULT_EXPORT_KEY, value)
    if isinstance(value, Mapping) and value.get(DEFAULT_EXPORT_MARKER) and DEFAULT_EXPORT_KEY in value:
        return value[DEFAULT_EXPORT_KEY]
    return value
