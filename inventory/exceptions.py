"""Inventory-specific exceptions."""


class ConfigurationError(Exception):
    """Raised when application configuration is invalid."""

    pass
