"""Errors shared between the configuration layer and the backup pipeline."""

from typing import Iterable, Optional


class ConfigError(ValueError):
    """Raised when a backup configuration value is missing or invalid."""
    pass


def invalid_config_value(key: str, value, allowed: Optional[Iterable[str]] = None) -> ConfigError:
    """
    Build the error reported for an invalid configuration value.

    Args:
        key: Configuration key
        value: Offending value
        allowed: Valid values, appended to the message when given

    Returns:
        ConfigError to raise
    """
    message = f'"{value}" is not a valid cms-backup config "{key}" value.'

    if allowed is not None:
        message += f" Available values are : {', '.join(allowed)}."

    return ConfigError(message)
