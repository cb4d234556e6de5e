"""Registrar for extension-provided configuration schemas.

Extensions may ship a JSON Schema describing their CLI/config arguments.
Schemas are registered under (extension type, extension name) and checked
with jsonschema before they are accepted.
"""

from collections.abc import Mapping
from pathlib import PurePath
from typing import Any

from jsonschema import Draft7Validator
from jsonschema.exceptions import SchemaError as JsonSchemaError

from extman.constants import ExtensionType

ALLOWED_SCHEMA_EXTENSIONS = frozenset({".json", ".py", ".yaml", ".yml"})

_registered: dict[tuple[str, str], dict[str, Any]] = {}


class SchemaError(ValueError):
    """Raised when a schema cannot be registered."""


class SchemaNameConflictError(SchemaError):
    """Raised when a different schema is already registered under the same name."""

    def __init__(self, ext_type: str, ext_name: str) -> None:
        self.ext_type = ext_type
        self.ext_name = ext_name
        super().__init__(
            f"Name for {ext_type} schema '{ext_name}' conflicts with an existing schema"
        )


def _type_value(ext_type: ExtensionType | str) -> str:
    return ext_type.value if isinstance(ext_type, ExtensionType) else str(ext_type)


def is_allowed_schema_file_extension(path: str | PurePath) -> bool:
    """Check whether a schema file path has a supported extension."""
    return PurePath(path).suffix.lower() in ALLOWED_SCHEMA_EXTENSIONS


def register_schema(ext_type: ExtensionType | str, ext_name: str, schema: Any) -> None:
    """Register a schema for an extension.

    Registering an identical schema twice is a no-op.

    Raises:
        SchemaError: If the schema is not an object or not a valid JSON Schema.
        SchemaNameConflictError: If another schema is registered under this name.
    """
    type_value = _type_value(ext_type)
    if not ext_name:
        msg = f"Cannot register a {type_value} schema without a name"
        raise SchemaError(msg)
    if not isinstance(schema, Mapping):
        msg = f"Schema for {type_value} '{ext_name}' must be an object, got {type(schema).__name__}"
        raise SchemaError(msg)

    schema = dict(schema)
    try:
        Draft7Validator.check_schema(schema)
    except JsonSchemaError as e:
        msg = f"Invalid schema for {type_value} '{ext_name}': {e.message}"
        raise SchemaError(msg) from e

    key = (type_value, ext_name)
    existing = _registered.get(key)
    if existing is not None:
        if existing == schema:
            return
        raise SchemaNameConflictError(type_value, ext_name)
    _registered[key] = schema


def get_schema(ext_type: ExtensionType | str, ext_name: str) -> dict[str, Any] | None:
    """Return the registered schema for an extension, if any."""
    return _registered.get((_type_value(ext_type), ext_name))


def reset_schemas() -> None:
    """Forget every registered schema."""
    _registered.clear()
