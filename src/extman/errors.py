"""Error formatting utilities for extman.

Maps exceptions that reach the CLI boundary to exit codes, and turns
record validation failures into one line per offending manifest field.
"""

import yaml
from pydantic import ValidationError

from extman import cli_logger, exit_codes
from extman.loader import ExtensionLoadError
from extman.manifest_store import ManifestError

# Wording for the pydantic error types a manifest record commonly hits
FIELD_PROBLEMS = {
    "missing": "is required",
    "string_type": "must be a string",
    "list_type": "must be a list",
    "dict_type": "must be an object",
    "enum": "must be one of the known install types",
}


def format_validation_errors(error: ValidationError) -> str:
    """Describe each invalid field of a record, joined with '; '.

    Fields are named by their manifest key; list items are addressed with a
    dotted index (platformNames.1).
    """
    problems = []
    for err in error.errors():
        field = ".".join(str(part) for part in err["loc"]) or "record"
        problem = FIELD_PROBLEMS.get(err["type"], err["msg"].lower())
        problems.append(f"{field} {problem}")
    return "; ".join(problems)


# Errors whose message is already written for the user
MESSAGE_EXIT_CODES: tuple[tuple[type[Exception], int], ...] = (
    (ManifestError, exit_codes.MANIFEST_ERROR),
    (ExtensionLoadError, exit_codes.EXTENSION_INVALID),
)


def handle_cli_error(error: Exception) -> int:
    """Handle an unhandled exception at the CLI boundary.

    Args:
        error: The exception to handle.

    Returns:
        An exit code from exit_codes.
    """
    for error_type, code in MESSAGE_EXIT_CODES:
        if isinstance(error, error_type):
            cli_logger.error(str(error))
            return code

    if isinstance(error, ValidationError):
        cli_logger.error(f"Invalid {error.title}: {format_validation_errors(error)}")
        return exit_codes.EXTENSION_INVALID

    if isinstance(error, yaml.YAMLError):
        cli_logger.error(f"Invalid YAML: {error}")
        return exit_codes.GENERAL_ERROR

    if isinstance(error, OSError):
        if error.filename:
            cli_logger.error(f"{error.strerror}: {error.filename}")
        else:
            cli_logger.error(str(error))
        return exit_codes.GENERAL_ERROR

    cli_logger.error(f"Unexpected error: {error}")
    return exit_codes.GENERAL_ERROR
