"""Reading and writing of the extension manifest (extensions.yaml).

Only one ManifestStore exists per home directory. It owns the parsed
manifest, tracks whether it changed since the last write, and makes sure
concurrent callers share a single in-flight read or write.
"""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, NamedTuple

import yaml

from extman.constants import CURRENT_SCHEMA_REV, ExtensionType
from extman.home import get_manifest_path, resolve_home
from extman.instances import InstanceTable
from extman.observed import ObservedDict

if TYPE_CHECKING:
    from extman.driver_registry import DriverRegistry
    from extman.plugin_registry import PluginRegistry

logger = logging.getLogger(__name__)

SCHEMA_REV_KEY = "schemaRev"


class ManifestError(Exception):
    """Base class for manifest I/O failures."""


class ManifestReadError(ManifestError):
    """Raised when an existing manifest cannot be read or parsed."""

    def __init__(self, path: Path, cause: BaseException) -> None:
        self.path = path
        super().__init__(
            f"Could not load the extension manifest ({path}). "
            f"Ensure it exists and is readable. Specific error: {cause}"
        )


class UnknownManifestError(ManifestError):
    """Raised when reading fails before the manifest path is known."""

    def __init__(self, cause: BaseException) -> None:
        super().__init__(f"Encountered an unknown problem. Specific error: {cause}")


class ManifestWriteError(ManifestError):
    """Raised when the manifest cannot be written."""

    def __init__(self, path: Path | None, home: str, cause: BaseException) -> None:
        self.path = path
        self.home = home
        super().__init__(
            f"Could not write to manifest at {path} using home {home}. "
            f"Please ensure it is writable. Original error: {cause}"
        )


class ManifestNotLoadedError(ManifestError, RuntimeError):
    """Raised when writing before anything was read."""

    def __init__(self) -> None:
        super().__init__("No data to write. Call `read()` first")


@dataclass
class Manifest:
    """The parsed manifest. Record mappings notify the owning store on change."""

    drivers: ObservedDict
    plugins: ObservedDict
    schema_rev: int = CURRENT_SCHEMA_REV
    extra: dict[str, Any] = field(default_factory=dict)

    def extensions(self, ext_type: ExtensionType) -> ObservedDict:
        """Return the record mapping for an extension type."""
        if ext_type is ExtensionType.DRIVER:
            return self.drivers
        return self.plugins

    def to_dict(self) -> dict[str, Any]:
        """Return the persisted shape of the manifest."""
        return {
            **self.extra,
            ExtensionType.DRIVER.config_key: self.drivers.to_dict(),
            ExtensionType.PLUGIN.config_key: self.plugins.to_dict(),
            SCHEMA_REV_KEY: self.schema_rev,
        }


def _read_manifest_file(path: Path) -> str:
    return path.read_text(encoding="utf-8")


def _write_manifest_file(path: Path, content: str) -> None:
    """Write content to path through a temporary file and an atomic rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def _parse_manifest(path: Path, content: str) -> dict[str, Any]:
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ManifestReadError(path, e) from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ManifestReadError(path, TypeError("top-level value must be a mapping"))

    for ext_type in ExtensionType:
        key = ext_type.config_key
        if data.get(key) is None:
            data[key] = {}
        elif not isinstance(data[key], dict):
            raise ManifestReadError(path, TypeError(f"'{key}' must be a mapping"))
    return data


class ManifestStore:
    """Change-tracked access to one home directory's manifest file."""

    def __init__(self, home: str) -> None:
        self._home = home
        self._manifest_path: Path | None = None
        self._manifest: Manifest | None = None
        self._dirty = False
        self._reading: asyncio.Task[Manifest] | None = None
        self._writing: asyncio.Task[bool] | None = None

    @property
    def home(self) -> str:
        """The home directory this store belongs to."""
        return self._home

    @property
    def manifest_path(self) -> Path | None:
        """Path to the manifest file; None until it has been resolved."""
        return self._manifest_path

    @property
    def dirty(self) -> bool:
        """True if the manifest changed since it was last written."""
        return self._dirty

    def _mark_dirty(self) -> None:
        self._dirty = True

    def _resolve_manifest_path(self) -> Path:
        if self._manifest_path is None:
            self._manifest_path = get_manifest_path(Path(self._home))
        return self._manifest_path

    async def read(self, force: bool = False) -> Manifest:
        """Return the manifest, reading the file if necessary.

        Concurrent calls share one read. A missing file produces an empty
        manifest, which is written out immediately.

        Args:
            force: Re-read the file even if a manifest is already loaded.
                In-memory changes that were not written are lost.

        Raises:
            ManifestReadError: If the file exists but cannot be read or parsed.
            UnknownManifestError: If the manifest path could not be resolved.
        """
        if self._manifest is not None and not force:
            return self._manifest
        if self._reading is None:
            self._reading = asyncio.ensure_future(self._read())
        return await self._reading

    async def _read(self) -> Manifest:
        try:
            is_new_file = False
            try:
                path = self._resolve_manifest_path()
            except Exception as e:
                raise UnknownManifestError(e) from e

            try:
                logger.debug("Reading %s...", path)
                content = await asyncio.to_thread(_read_manifest_file, path)
            except FileNotFoundError:
                data: dict[str, Any] = {
                    ExtensionType.DRIVER.config_key: {},
                    ExtensionType.PLUGIN.config_key: {},
                }
                is_new_file = True
            except (OSError, UnicodeDecodeError) as e:
                raise ManifestReadError(path, e) from e
            else:
                data = _parse_manifest(path, content)

            drivers = data.pop(ExtensionType.DRIVER.config_key)
            plugins = data.pop(ExtensionType.PLUGIN.config_key)
            schema_rev = data.pop(SCHEMA_REV_KEY, None)
            self._manifest = Manifest(
                drivers=ObservedDict(drivers, self._mark_dirty),
                plugins=ObservedDict(plugins, self._mark_dirty),
                schema_rev=CURRENT_SCHEMA_REV if schema_rev is None else schema_rev,
                extra=data,
            )
            self._dirty = False

            if is_new_file:
                logger.debug("Creating manifest")
                await self.write(force=True)
            return self._manifest
        finally:
            self._reading = None

    async def write(self, force: bool = False) -> bool:
        """Write the manifest if it changed since the last write.

        Concurrent calls share one write and its outcome.

        Args:
            force: Write even if nothing changed.

        Returns:
            True if the file was written.

        Raises:
            ManifestNotLoadedError: If forced before anything was read.
            ManifestWriteError: If the file cannot be written.
        """
        if self._writing is None:
            self._writing = asyncio.ensure_future(self._write(force))
        return await self._writing

    async def _write(self, force: bool) -> bool:
        try:
            if not self._dirty and not force:
                return False
            if self._manifest is None:
                raise ManifestNotLoadedError

            path = self._manifest_path
            try:
                path = self._resolve_manifest_path()
                content = yaml.safe_dump(
                    self._manifest.to_dict(), default_flow_style=False, sort_keys=False
                )
                await asyncio.to_thread(_write_manifest_file, path, content)
            except (OSError, yaml.YAMLError) as e:
                logger.error("Failed to write manifest %s: %s", path, e)
                raise ManifestWriteError(path, self._home, e) from e

            self._dirty = False
            return True
        finally:
            self._writing = None


_stores: InstanceTable[ManifestStore] = InstanceTable()


def get_manifest_store(home: str | Path) -> ManifestStore:
    """Return the ManifestStore for a home directory, creating it on first use.

    Lookups are keyed by the exact path string; no normalization is done.
    """
    return _stores.get_or_create(str(home), ManifestStore)


def reset_manifest_stores() -> None:
    """Forget every ManifestStore."""
    _stores.clear()


class ExtensionConfigs(NamedTuple):
    """Registries loaded for one home directory."""

    driver_registry: DriverRegistry
    plugin_registry: PluginRegistry


async def load_extensions(home: str | Path | None = None) -> ExtensionConfigs:
    """Read the manifest for home and build validated registries from it.

    Args:
        home: Home directory. Defaults to the resolved home directory.

    Raises:
        ManifestError: If the manifest cannot be read or bootstrapped.
    """
    from extman.driver_registry import DriverRegistry
    from extman.plugin_registry import PluginRegistry

    if home is None:
        home = resolve_home()
    logger.debug("Loading extensions from %s", home)
    store = get_manifest_store(home)
    manifest = await store.read()
    driver_registry = DriverRegistry.create(store, records=manifest.drivers)
    plugin_registry = PluginRegistry.create(store, records=manifest.plugins)
    return ExtensionConfigs(driver_registry=driver_registry, plugin_registry=plugin_registry)
