"""Manifest record definitions using Pydantic.

Records are stored in extensions.yaml as plain mappings keyed by the
extension name. These models document their shape and are accepted by the
registries wherever a record is written.
"""

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from extman.constants import InstallType


class CommonRecord(BaseModel):
    """Fields shared by every installed extension."""

    # Manifest files are user-editable; unknown keys must survive a round trip
    model_config = ConfigDict(extra="allow", use_enum_values=True)

    pkgName: str = Field(description="Package identifier")
    version: str = Field(description="Installed package version")
    installSpec: str = Field(description="Install target as typed by the user")
    installType: InstallType = Field(description="How the extension was installed")
    installPath: str = Field(description="Install location, relative to the home directory")
    mainClass: str = Field(description="Name of the exported entry point")
    scripts: dict[str, str] | None = Field(
        default=None,
        description="Named scripts the extension can run",
    )
    schema_: str | dict[str, Any] | None = Field(
        default=None,
        alias="schema",
        description="Path to a schema file, or an embedded schema object",
    )

    def to_record(self) -> dict[str, Any]:
        """Dump to the plain mapping stored in the manifest."""
        return self.model_dump(by_alias=True, exclude_none=True)


class DriverRecord(CommonRecord):
    """Manifest entry for an installed driver."""

    automationName: str = Field(description="Automation engine identifier")
    platformNames: list[str] = Field(description="Platforms the driver supports")
    driverName: str = Field(description="Driver name (not the package name)")


class PluginRecord(CommonRecord):
    """Manifest entry for an installed plugin."""

    pluginName: str = Field(description="Plugin name (not the package name)")


@dataclass
class Problem:
    """A single validation finding for an extension record.

    Attributes:
        err: Description of what is wrong.
        val: The offending value.
    """

    err: str
    val: Any
