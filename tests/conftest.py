"""Shared test fixtures for extman tests."""

from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest
import yaml
from typer.testing import CliRunner

from extman.driver_registry import DriverRegistry
from extman.manifest_store import reset_manifest_stores
from extman.plugin_registry import PluginRegistry
from extman.records import DriverRecord, PluginRecord
from extman.schema import reset_schemas


def make_driver_record(**overrides: Any) -> dict[str, Any]:
    """Build a valid driver record, with optional field overrides.

    Pass a value of None to drop a field from the record.
    """
    record = DriverRecord(
        pkgName="appium-fake-driver",
        version="1.0.0",
        installSpec="appium-fake-driver",
        installType="npm",
        installPath="node_modules/appium-fake-driver",
        mainClass="FakeDriver",
        automationName="Fake",
        platformNames=["Fake"],
        driverName="fake",
    ).to_record()
    return _apply_overrides(record, overrides)


def make_plugin_record(**overrides: Any) -> dict[str, Any]:
    """Build a valid plugin record, with optional field overrides."""
    record = PluginRecord(
        pkgName="appium-fake-plugin",
        version="1.0.0",
        installSpec="appium-fake-plugin",
        installType="npm",
        installPath="node_modules/appium-fake-plugin",
        mainClass="FakePlugin",
        pluginName="fake",
    ).to_record()
    return _apply_overrides(record, overrides)


def _apply_overrides(record: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    for key, value in overrides.items():
        if value is None:
            record.pop(key, None)
        else:
            record[key] = value
    return record


def write_manifest(home: Path, data: dict[str, Any]) -> Path:
    """Write a manifest file into a home directory and return its path."""
    path = home / "extensions.yaml"
    path.write_text(yaml.safe_dump(data, sort_keys=False))
    return path


def read_manifest(home: Path) -> dict[str, Any]:
    """Parse the manifest file in a home directory."""
    return yaml.safe_load((home / "extensions.yaml").read_text())


@pytest.fixture(autouse=True)
def isolate_instances(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Reset process-wide stores, registries and schemas around each test."""
    monkeypatch.delenv("APPIUM_HOME", raising=False)
    monkeypatch.delenv("APPIUM_RELOAD_EXTENSIONS", raising=False)
    reset_manifest_stores()
    DriverRegistry.reset_instances()
    PluginRegistry.reset_instances()
    reset_schemas()
    yield
    reset_manifest_stores()
    DriverRegistry.reset_instances()
    PluginRegistry.reset_instances()
    reset_schemas()


@pytest.fixture
def home(tmp_path: Path) -> Path:
    """Provide an empty home directory."""
    home_dir = tmp_path / "home"
    home_dir.mkdir()
    return home_dir


@pytest.fixture
def log_lines() -> list[str]:
    """Collect messages passed to a registry's log function."""
    return []


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Typer CLI test runner."""
    return CliRunner()


# Type alias for the extension package factory
PackageFactory = Callable[..., Path]


@pytest.fixture
def create_package(home: Path) -> PackageFactory:
    """Factory fixture that writes an extension package into the home directory.

    The package lives at <home>/<installPath>/node_modules/<pkgName>, where
    ExtensionRegistry.get_extension_require_path looks for it.
    """

    def _create(
        record: dict[str, Any],
        source: str = "",
        files: dict[str, str] | None = None,
    ) -> Path:
        package_dir = home / record["installPath"] / "node_modules" / record["pkgName"]
        package_dir.mkdir(parents=True, exist_ok=True)
        (package_dir / "__init__.py").write_text(source)
        for name, content in (files or {}).items():
            (package_dir / name).write_text(content)
        return package_dir

    return _create
