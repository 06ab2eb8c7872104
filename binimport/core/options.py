"""Load options recognized by every loader."""

from __future__ import annotations

from binimport.core.exceptions import OptionError
from binimport.core.models import Option

APPLY_LABELS_OPTION_NAME = "Apply Processor Defined Labels"
ANCHOR_LABELS_OPTION_NAME = "Anchor Processor Defined Labels"

COMMAND_LINE_ARG_PREFIX = "-loader"

RECOGNIZED_OPTIONS = (APPLY_LABELS_OPTION_NAME, ANCHOR_LABELS_OPTION_NAME)

_TRUE_VALUES = {"true", "yes", "1", "on"}
_FALSE_VALUES = {"false", "no", "0", "off"}


def get_default_options(apply_labels_by_default: bool = False) -> list[Option]:
    """The processor label options with their defaults."""
    return [
        Option(
            APPLY_LABELS_OPTION_NAME,
            apply_labels_by_default,
            bool,
            COMMAND_LINE_ARG_PREFIX + "-applyLabels",
        ),
        Option(
            ANCHOR_LABELS_OPTION_NAME,
            True,
            bool,
            COMMAND_LINE_ARG_PREFIX + "-anchorLabels",
        ),
    ]


def validate_options(options: list[Option] | None) -> str | None:
    """Return an error message for the first mistyped recognized option, else None.

    Options with other names belong to the format extractor and are not
    checked here.
    """
    for option in options or []:
        if option.name in RECOGNIZED_OPTIONS:
            value_type = option.value_type
            if not (isinstance(value_type, type) and issubclass(value_type, bool)):
                return f"Invalid type for option: {option.name} - {value_type}"
    return None


def get_option(name: str, options: list[Option] | None) -> Option | None:
    for option in options or []:
        if option.name == name:
            return option
    return None


def get_boolean_option_value(name: str, options: list[Option] | None, default: bool) -> bool:
    option = get_option(name, options)
    if option is not None and isinstance(option.value, bool):
        return option.value
    return default


def parse_option_args(args: list[str], options: list[Option]) -> list[Option]:
    """Apply `key=value` overrides to a copy of `options`.

    `key` is an option's command-line flag, with or without the leading
    `-loader-`, or the option's full name.

    Raises:
        OptionError: unknown key, missing `=`, or a value of the wrong type
    """
    result = [Option(o.name, o.value, o.value_type, o.arg) for o in options]
    for arg in args:
        key, sep, raw_value = arg.partition("=")
        if not sep:
            raise OptionError(f"Expected KEY=VALUE, got '{arg}'")
        option = _match_option(key.strip(), result)
        if option is None:
            raise OptionError(f"Unknown option: '{key}'")
        option.value = _convert(option, raw_value.strip())
    return result


def _match_option(key: str, options: list[Option]) -> Option | None:
    prefix = COMMAND_LINE_ARG_PREFIX + "-"
    for option in options:
        if key in (option.name, option.arg):
            return option
        if option.arg and option.arg.startswith(prefix) and key == option.arg[len(prefix) :]:
            return option
    return None


def _convert(option: Option, raw_value: str) -> object:
    if option.value_type is bool:
        lowered = raw_value.lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        raise OptionError(f"Option '{option.name}' expects a boolean, got '{raw_value}'")
    if option.value_type is int:
        try:
            return int(raw_value, 0)
        except ValueError:
            raise OptionError(
                f"Option '{option.name}' expects an integer, got '{raw_value}'"
            ) from None
    return raw_value
