"""Tests for manifest record models."""

import pytest
from pydantic import ValidationError

from extman.records import DriverRecord, PluginRecord
from tests.conftest import make_driver_record


class TestDriverRecord:
    """Tests for the driver record model."""

    def test_valid_record(self) -> None:
        """A complete record validates."""
        # Given
        data = make_driver_record()

        # When
        record = DriverRecord.model_validate(data)

        # Then
        assert record.automationName == "Fake"
        assert record.installType == "npm"

    def test_missing_field(self) -> None:
        """A record without automationName is rejected."""
        data = make_driver_record(automationName=None)

        with pytest.raises(ValidationError) as exc_info:
            DriverRecord.model_validate(data)

        assert exc_info.value.errors()[0]["loc"] == ("automationName",)

    def test_unknown_install_type(self) -> None:
        with pytest.raises(ValidationError):
            DriverRecord.model_validate(make_driver_record(installType="ftp"))

    def test_to_record_round_trips_manifest_keys(self) -> None:
        """Dumping uses manifest key names and drops unset optionals."""
        data = make_driver_record(schema="lib/schema.json", customKey="kept")

        dumped = DriverRecord.model_validate(data).to_record()

        assert dumped == data
        assert "scripts" not in dumped


class TestPluginRecord:
    """Tests for the plugin record model."""

    def test_embedded_schema(self) -> None:
        """The schema field accepts an embedded schema object."""
        record = PluginRecord(
            pkgName="appium-fake-plugin",
            version="1.0.0",
            installSpec="appium-fake-plugin",
            installType="local",
            installPath="node_modules/appium-fake-plugin",
            mainClass="FakePlugin",
            pluginName="fake",
            schema={"type": "object"},
        )

        assert record.to_record()["schema"] == {"type": "object"}
        assert record.to_record()["installType"] == "local"
