"""Exit codes for extman CLI commands."""

# Success
SUCCESS = 0

# Errors
GENERAL_ERROR = 1
INVALID_ARGS = 2
MANIFEST_ERROR = 3
EXTENSION_NOT_FOUND = 4
EXTENSION_INVALID = 5
