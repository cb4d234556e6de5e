"""Validation and bookkeeping for one type of installed extension.

An ExtensionRegistry works on the record mapping of a single extension
type inside the shared manifest. Records that fail validation are removed
from the mapping and reported as one batch through the registry's log
function; they are never raised as errors.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Callable, Iterable, Mapping, MutableMapping
from pathlib import Path
from typing import Any

from rich.markup import escape

from extman import cli_logger
from extman.constants import INSTALL_TYPES, ExtensionType
from extman.home import RELOAD_EXTENSIONS_ENV_VAR
from extman.loader import load_module, load_schema_file, unwrap_default
from extman.manifest_store import ManifestStore
from extman.records import CommonRecord, Problem
from extman.schema import ALLOWED_SCHEMA_EXTENSIONS, is_allowed_schema_file_extension, register_schema

logger = logging.getLogger(__name__)

# Directory inside an install path that holds installed packages
PACKAGES_DIR = "node_modules"

LogFn = Callable[[str], None]
Records = MutableMapping[str, Any]


def _format_value(value: Any) -> str:
    try:
        return json.dumps(value, default=str)
    except (TypeError, ValueError):
        # Non-string keys and recursive values from YAML anchors
        return repr(value)


class ExtensionRegistry:
    """Generic validation pipeline and CRUD over one extension type's records.

    Subclasses add type-specific rules by overriding get_config_problems and
    describe records for listings via extension_desc. record_model is the
    pydantic model that records passed to add_extension must satisfy.
    """

    record_model: type[CommonRecord] = CommonRecord

    def __init__(
        self,
        extension_type: ExtensionType,
        store: ManifestStore,
        log_fn: LogFn | None = None,
    ) -> None:
        self.extension_type = extension_type
        self.config_key = extension_type.config_key
        self.installed_extensions: Records = {}
        self.log: LogFn = log_fn if callable(log_fn) else cli_logger.error
        self.store = store

    @property
    def home(self) -> str:
        return self.store.home

    @property
    def manifest_path(self) -> Path | None:
        return self.store.manifest_path

    def validate(self, records: Records) -> Records:
        """Check every record, removing the ones with problems.

        Problems for all removed records are logged together, prefixed with
        the manifest path.

        Args:
            records: Record mapping, keyed by extension name. Mutated in place.

        Returns:
            The same mapping, now containing only valid records.
        """
        found_problems: dict[str, list[Problem]] = {}
        for ext_name, ext_data in list(records.items()):
            if not isinstance(ext_data, Mapping):
                found_problems[ext_name] = [
                    Problem(err="Incorrectly formatted extension record", val=ext_data)
                ]
                continue
            found_problems[ext_name] = [
                *self.get_generic_config_problems(ext_data, ext_name),
                *self.get_config_problems(ext_data),
                *self.get_schema_problems(ext_data, ext_name),
            ]

        summaries: list[str] = []
        for ext_name, problems in found_problems.items():
            if not problems:
                continue
            del records[ext_name]
            summaries.append(
                f"{self.extension_type.value} {ext_name} had errors and will not be available. Errors:"
            )
            for problem in problems:
                summaries.append(f"  - {problem.err} (Actual value: {_format_value(problem.val)})")

        if summaries:
            self.log(
                "Encountered one or more errors while validating the "
                f"{self.config_key} extension file ({self.manifest_path}):"
            )
            for summary in summaries:
                self.log(summary)

        self.installed_extensions = records
        return records

    def get_generic_config_problems(self, ext_data: Mapping[str, Any], ext_name: str) -> list[Problem]:
        """Check the fields every extension record must have."""
        problems: list[Problem] = []

        version = ext_data.get("version")
        if not isinstance(version, str):
            problems.append(Problem(err="Missing or incorrect version", val=version))

        pkg_name = ext_data.get("pkgName")
        if not isinstance(pkg_name, str):
            problems.append(Problem(err="Missing or incorrect package name", val=pkg_name))

        install_spec = ext_data.get("installSpec")
        if not isinstance(install_spec, str):
            problems.append(Problem(err="Missing or incorrect installation spec", val=install_spec))

        install_type = ext_data.get("installType")
        if not isinstance(install_type, str) or install_type not in INSTALL_TYPES:
            problems.append(Problem(err="Missing or incorrect install type", val=install_type))

        install_path = ext_data.get("installPath")
        if not isinstance(install_path, str):
            problems.append(Problem(err="Missing or incorrect installation path", val=install_path))

        main_class = ext_data.get("mainClass")
        if not isinstance(main_class, str):
            problems.append(Problem(err="Missing or incorrect main class name", val=main_class))

        return problems

    def get_config_problems(self, ext_data: Mapping[str, Any]) -> list[Problem]:
        """Type-specific checks. Override in subclasses."""
        return []

    def get_schema_problems(self, ext_data: Mapping[str, Any], ext_name: str) -> list[Problem]:
        """Check and register the schema a record declares, if any."""
        schema = ext_data.get("schema")
        if schema is None:
            return []

        if isinstance(schema, str):
            if not is_allowed_schema_file_extension(schema):
                allowed = ", ".join(sorted(ALLOWED_SCHEMA_EXTENSIONS))
                return [Problem(err=f"Schema file has unsupported extension. Allowed: {allowed}", val=schema)]
            try:
                self.read_extension_schema(ext_name, ext_data)
            except Exception as e:
                return [Problem(err=f"Unable to register schema at path {schema}; {e}", val=schema)]
            return []

        if isinstance(schema, Mapping):
            try:
                self.read_extension_schema(ext_name, ext_data)
            except Exception as e:
                return [Problem(err=f"Unable to register embedded schema; {e}", val=schema)]
            return []

        return [
            Problem(
                err="Incorrectly formatted schema field; must be a path to a schema file or a schema object.",
                val=schema,
            )
        ]

    def read_extension_schema(self, ext_name: str, ext_data: Mapping[str, Any]) -> Any:
        """Load the schema a record declares and register it.

        A schema path is resolved relative to the extension's installed
        package.

        Returns:
            The registered schema.

        Raises:
            TypeError: If the record has no schema.
            ExtensionLoadError: If the schema file cannot be loaded.
            SchemaError: If the registrar rejects the schema.
        """
        schema_ref = ext_data.get("schema")
        if not schema_ref:
            msg = (
                f"No `schema` property found in config for {self.extension_type.value} "
                f"{ext_data.get('pkgName')}"
            )
            raise TypeError(msg)

        if isinstance(schema_ref, str):
            package_dir = self._package_dir(ext_data)
            loaded = load_schema_file(package_dir / schema_ref)
        else:
            loaded = schema_ref

        schema = unwrap_default(loaded)
        register_schema(self.extension_type, ext_name, schema)
        return schema

    async def add_extension(self, ext_name: str, ext_data: Mapping[str, Any] | CommonRecord) -> None:
        """Record a newly installed extension and persist the manifest.

        Raises:
            pydantic.ValidationError: If a plain mapping is not a complete record.
        """
        if not isinstance(ext_data, CommonRecord):
            ext_data = self.record_model.model_validate(ext_data)
        self.installed_extensions[ext_name] = ext_data.to_record()
        await self.store.write()

    async def update_extension(self, ext_name: str, ext_data: Mapping[str, Any] | CommonRecord) -> None:
        """Merge fields into an installed extension's record and persist the manifest."""
        if isinstance(ext_data, CommonRecord):
            ext_data = ext_data.model_dump(by_alias=True, exclude_unset=True)
        self.installed_extensions[ext_name] = {
            **self.installed_extensions.get(ext_name, {}),
            **ext_data,
        }
        await self.store.write()

    async def remove_extension(self, ext_name: str) -> None:
        """Forget an installed extension and persist the manifest."""
        if ext_name in self.installed_extensions:
            del self.installed_extensions[ext_name]
        await self.store.write()

    def is_installed(self, ext_name: str) -> bool:
        return ext_name in self.installed_extensions

    def print(self, active_names: Iterable[str] | None = None) -> None:
        """Print the installed extensions, marking the active ones."""
        if not self.installed_extensions:
            cli_logger.info(
                f"No {self.config_key} have been installed. Use the "
                f'"appium {self.extension_type.value}" command to install the one(s) you want to use.'
            )
            return

        active = set(active_names or ())
        cli_logger.info(f"Available {self.config_key}:")
        for ext_name, ext_data in self.installed_extensions.items():
            line = f"  - {escape(self.extension_desc(ext_name, ext_data))}"
            if ext_name in active:
                line += " [green](active)[/green]"
            cli_logger.info(line)

    def extension_desc(self, ext_name: str, ext_data: Mapping[str, Any]) -> str:
        """Describe an extension for listings."""
        raise NotImplementedError

    def _package_dir(self, ext_data: Mapping[str, Any]) -> Path:
        return (Path(self.home) / ext_data["installPath"] / PACKAGES_DIR / ext_data["pkgName"]).resolve()

    def get_install_path(self, ext_name: str) -> Path:
        """Absolute install location of an extension."""
        install_path = self.installed_extensions[ext_name]["installPath"]
        return (Path(self.home) / install_path).resolve()

    def get_extension_require_path(self, ext_name: str) -> Path:
        """Absolute location of an extension's installed package."""
        return self._package_dir(self.installed_extensions[ext_name])

    def require(self, ext_name: str) -> Any:
        """Load an extension and return its main class.

        With APPIUM_RELOAD_EXTENSIONS set, a previously loaded copy of the
        extension is discarded and its code is executed again.

        Raises:
            KeyError: If the extension is not installed.
            ExtensionLoadError: If the extension's package cannot be loaded.
            AttributeError: If the package does not export mainClass.
        """
        main_class = self.installed_extensions[ext_name]["mainClass"]
        require_path = self.get_extension_require_path(ext_name)
        reload = bool(os.environ.get(RELOAD_EXTENSIONS_ENV_VAR))
        logger.debug("Loading %s %s from %s", self.extension_type.value, ext_name, require_path)
        module = load_module(require_path, reload=reload)
        return getattr(module, main_class)
