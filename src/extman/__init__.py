"""extman - installed driver and plugin manifest management."""

__version__ = "0.1.0"
