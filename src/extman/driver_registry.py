"""Driver-specific validation rules and instance management."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from extman.constants import ExtensionType
from extman.extension_registry import ExtensionRegistry, LogFn, Records
from extman.instances import InstanceTable
from extman.manifest_store import ManifestStore
from extman.records import DriverRecord, Problem


class DriverRegistry(ExtensionRegistry):
    """Installed drivers for one home directory.

    Use DriverRegistry.create() so the instance is registered for its home.
    """

    record_model = DriverRecord
    _instances: InstanceTable[DriverRegistry] = InstanceTable()

    def __init__(
        self,
        store: ManifestStore,
        records: Records | None = None,
        log_fn: LogFn | None = None,
    ) -> None:
        super().__init__(ExtensionType.DRIVER, store, log_fn)
        # automationName values seen during the current validation pass
        self.known_automation_names: set[Any] = set()

        if records is not None:
            self.validate(records)

    @classmethod
    def create(
        cls,
        store: ManifestStore,
        records: Records | None = None,
        log_fn: LogFn | None = None,
    ) -> DriverRegistry:
        """Create a DriverRegistry, replacing any existing one for store.home."""
        return cls._instances.replace(store.home, cls(store, records=records, log_fn=log_fn))

    @classmethod
    def get_instance(cls, store: ManifestStore) -> DriverRegistry | None:
        """Return the DriverRegistry registered for store.home, if any."""
        return cls._instances.get(store.home)

    @classmethod
    def reset_instances(cls) -> None:
        cls._instances.clear()

    def validate(self, records: Records) -> Records:
        self.known_automation_names.clear()
        return super().validate(records)

    def get_config_problems(self, ext_data: Mapping[str, Any]) -> list[Problem]:
        problems: list[Problem] = []
        platform_names = ext_data.get("platformNames")
        automation_name = ext_data.get("automationName")

        if not isinstance(platform_names, Sequence) or isinstance(platform_names, str):
            problems.append(
                Problem(err="Missing or incorrect supported platformNames list.", val=platform_names)
            )
        elif not platform_names:
            problems.append(Problem(err="Empty platformNames list.", val=platform_names))
        else:
            for platform_name in platform_names:
                if not isinstance(platform_name, str):
                    problems.append(Problem(err="Incorrectly formatted platformName.", val=platform_name))

        if not isinstance(automation_name, str):
            problems.append(Problem(err="Missing or incorrect automationName", val=automation_name))

        if _hashable(automation_name) in self.known_automation_names:
            problems.append(
                Problem(
                    err="Multiple drivers claim support for the same automationName",
                    val=automation_name,
                )
            )

        # Recorded even when this record has problems of its own
        self.known_automation_names.add(_hashable(automation_name))

        return problems

    def extension_desc(self, ext_name: str, ext_data: Mapping[str, Any]) -> str:
        return f"{ext_name}@{ext_data.get('version')} (automationName '{ext_data.get('automationName')}')"


def _hashable(value: Any) -> Any:
    try:
        hash(value)
    except TypeError:
        return repr(value)
    return value
