"""Plugin registry and instance management."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from extman.constants import ExtensionType
from extman.extension_registry import ExtensionRegistry, LogFn, Records
from extman.instances import InstanceTable
from extman.manifest_store import ManifestStore
from extman.records import PluginRecord


class PluginRegistry(ExtensionRegistry):
    """Installed plugins for one home directory.

    Plugins have no rules beyond the generic ones.
    """

    record_model = PluginRecord
    _instances: InstanceTable[PluginRegistry] = InstanceTable()

    def __init__(
        self,
        store: ManifestStore,
        records: Records | None = None,
        log_fn: LogFn | None = None,
    ) -> None:
        super().__init__(ExtensionType.PLUGIN, store, log_fn)

        if records is not None:
            self.validate(records)

    @classmethod
    def create(
        cls,
        store: ManifestStore,
        records: Records | None = None,
        log_fn: LogFn | None = None,
    ) -> PluginRegistry:
        """Create a PluginRegistry, replacing any existing one for store.home."""
        return cls._instances.replace(store.home, cls(store, records=records, log_fn=log_fn))

    @classmethod
    def get_instance(cls, store: ManifestStore) -> PluginRegistry | None:
        """Return the PluginRegistry registered for store.home, if any."""
        return cls._instances.get(store.home)

    @classmethod
    def reset_instances(cls) -> None:
        cls._instances.clear()

    def extension_desc(self, ext_name: str, ext_data: Mapping[str, Any]) -> str:
        return f"{ext_name}@{ext_data.get('version')}"
