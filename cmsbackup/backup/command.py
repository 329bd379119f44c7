"""
Shell command construction for database dump tools.

Provides:
- CommandBuilder: assembles `[ENV=value ...] executable options [args]`
- parse_command_option_string: splits a free-form option token into name/value
"""

import re
from dataclasses import dataclass
from typing import Dict, List


OPTION_STRING_PATTERN = re.compile(r'(?P<name>[^=,\s]+)(=|\s)*(?P<value>\S*)')


class OptionParseError(ValueError):
    """Raised when an option token has no option name."""
    pass


@dataclass(frozen=True)
class CommandOption:
    name: str
    value: str = ''


def parse_command_option_string(option_string: str) -> CommandOption:
    """
    Parse an option token such as `--user=root`, `--user root` or `-p`.

    Any run of `=` and whitespace separates the name from the value.

    Args:
        option_string: Option token from configuration

    Returns:
        CommandOption with an empty value for bare flags

    Raises:
        OptionParseError: If the token contains no option name
    """
    match = OPTION_STRING_PATTERN.match((option_string or '').strip())
    if not match:
        raise OptionParseError(f"Invalid command option: {option_string!r}")

    return CommandOption(name=match.group('name'), value=match.group('value'))


class CommandBuilder:
    """
    Builder for a shell command line.

    Options keep their insertion order and are only rendered once. Aliases
    change how an option is displayed, never how it is looked up.
    No shell escaping is applied: callers pass trusted values.
    """

    def __init__(self, executable: str):
        self.executable = executable
        self._env_vars: Dict[str, str] = {}
        self._options: List[str] = []
        self._value_per_option: Dict[str, str] = {}
        self._alias: Dict[str, str] = {}
        self._args = ''

    def add_option(self, option: str) -> 'CommandBuilder':
        if option not in self._options:
            self._options.append(option)
        return self

    def add_option_with_value(self, option: str, value) -> 'CommandBuilder':
        self._value_per_option[option] = value
        return self.add_option(option)

    def set_options_alias(self, alias: Dict[str, str]) -> 'CommandBuilder':
        self._alias = dict(alias)
        return self

    def set_args(self, args: str) -> 'CommandBuilder':
        self._args = args
        return self

    def set_env_var(self, name: str, value) -> 'CommandBuilder':
        self._env_vars[name] = value
        return self

    def has_option(self, option: str) -> bool:
        return option in self._options

    def options_to_string(self) -> str:
        rendered = []

        for option in self._options:
            display_name = self._alias.get(option, option)

            if option in self._value_per_option:
                rendered.append(f"{display_name}={self._value_per_option[option]}")
            else:
                rendered.append(display_name)

        return ' '.join(rendered)

    def build(self) -> str:
        """
        Render the command.

        Returns:
            Command string, prefixed by `NAME=value` pairs when env vars are set
        """
        parts = [self.executable]

        options = self.options_to_string()
        if options:
            parts.append(options)

        if self._args:
            parts.append(self._args)

        command = ' '.join(parts)

        if self._env_vars:
            env_string = ' '.join(f"{name}={value}" for name, value in self._env_vars.items())
            command = f"{env_string} {command}"

        return command
