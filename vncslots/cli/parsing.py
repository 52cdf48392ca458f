"""CLI argument parsing and parameter conversion utilities."""

from __future__ import annotations

from typing import Any


def parse_bool_parameter(name: str, value: str | bool) -> bool:
    """Parse a boolean flag that may arrive as a string.

    Parameters
    ----------
    name : str
        Parameter name for error messages
    value : str | bool
        Boolean or "true"/"false" string

    Returns
    -------
    bool
        Parsed value

    Raises
    ------
    ValueError
        If string value is not "true" or "false"
    """
    if isinstance(value, bool):
        return value

    if isinstance(value, str):
        value_lower = value.lower()

        if value_lower not in ("true", "false"):
            raise ValueError(f"{name} must be 'true' or 'false', got: {value}")

        return value_lower == "true"

    raise ValueError(f"{name} must be a boolean, got: {type(value).__name__}")


def parse_int_parameter(name: str, value: str | int) -> int:
    """Parse an integer parameter that may arrive as a string.

    Parameters
    ----------
    name : str
        Parameter name for error messages
    value : str | int
        Integer or numeric string

    Returns
    -------
    int
        Parsed value

    Raises
    ------
    ValueError
        If value is not numeric
    """
    if isinstance(value, bool):
        raise ValueError(f"{name} must be an integer, got: {value}")

    if isinstance(value, int):
        return value

    try:
        return int(str(value).strip())
    except ValueError:
        raise ValueError(f"Invalid {name} value: '{value}' is not numeric") from None


def parse_display_number(display: str | int) -> int:
    """Parse a display given as 42 or ":42".

    Parameters
    ----------
    display : str | int
        Display number, optionally prefixed with a colon

    Returns
    -------
    int
        Display number

    Raises
    ------
    ValueError
        If the value is not a non-negative display number
    """
    if isinstance(display, str):
        display = display.strip().lstrip(":")

    number = parse_int_parameter("display", display)
    if number < 0:
        raise ValueError(f"Invalid display value: {number}. Display must not be negative")

    return number


def apply_cli_overrides(
    config: dict[str, Any],
    min_display: str | int | None = None,
    max_display: str | int | None = None,
    retries: str | int | None = None,
    xvnc: str | None = None,
    use_xauthority: str | bool | None = None,
    clean_up: str | bool | None = None,
) -> dict[str, Any]:
    """Apply command line overrides to a merged host configuration.

    Parameters
    ----------
    config : dict[str, Any]
        Merged host configuration, updated in place
    min_display : str | int | None
        Lowest display number override
    max_display : str | int | None
        Highest display number override
    retries : str | int | None
        Launch retry count override
    xvnc : str | None
        Server command template override
    use_xauthority : str | bool | None
        Xauthority file override
    clean_up : str | bool | None
        Host clean up override

    Returns
    -------
    dict[str, Any]
        The updated configuration
    """
    if min_display is not None:
        config["min_display_number"] = parse_int_parameter("min_display", min_display)

    if max_display is not None:
        config["max_display_number"] = parse_int_parameter("max_display", max_display)

    if retries is not None:
        config["retries"] = parse_int_parameter("retries", retries)

    if xvnc is not None:
        config["command"] = xvnc

    if use_xauthority is not None:
        config["use_xauthority"] = parse_bool_parameter("use_xauthority", use_xauthority)

    if clean_up is not None:
        config["clean_up"] = parse_bool_parameter("clean_up", clean_up)

    return config
