"""Shared constants for extension types and manifest revisions."""

from enum import Enum

# Manifest schema revision - bump when the layout of extensions.yaml changes
CURRENT_SCHEMA_REV = 2


class ExtensionType(str, Enum):
    """Kind of extension tracked in the manifest."""

    DRIVER = "driver"
    PLUGIN = "plugin"

    @property
    def config_key(self) -> str:
        """Key of this type's record mapping in the manifest (e.g. "drivers")."""
        return f"{self.value}s"


class InstallType(str, Enum):
    """How an extension was installed."""

    NPM = "npm"
    LOCAL = "local"
    GITHUB = "github"
    GIT = "git"


INSTALL_TYPES = frozenset(t.value for t in InstallType)
