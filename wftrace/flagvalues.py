"""Flag value helpers: restricted string choices and key=value parsing."""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any


def _quote(s: str) -> str:
    return json.dumps(s, ensure_ascii=False)


@dataclass
class StringEnum:
    """A single string restricted to a set of allowed values."""

    allowed: list[str]
    value: str = ""
    changed_from_default: bool = field(default=False)

    def __str__(self) -> str:
        return self.value

    def set(self, value: str) -> None:
        """Set the value, raising ``ValueError`` if it is not allowed."""
        if value not in self.allowed:
            raise ValueError(
                f"{value} is not one of required values of {', '.join(self.allowed)}"
            )
        self.value = value
        self.changed_from_default = True


class StringEnumArray:
    """A list of strings, each matched case-insensitively against allowed values."""

    def __init__(self, allowed: Iterable[str], values: Iterable[str] | None = None):
        # Lower-case key to original spelling.
        self.allowed: dict[str, str] = {item.lower(): item for item in allowed}
        self.values: list[str] = list(values or [])

    def __str__(self) -> str:
        return ",".join(self.values)

    def __repr__(self) -> str:
        return f"StringEnumArray(allowed={list(self.allowed.values())!r}, values={self.values!r})"

    def set(self, value: str) -> None:
        """Append the allowed spelling of ``value`` or raise ``ValueError``."""
        try:
            original = self.allowed[value.lower()]
        except KeyError:
            choices = ", ".join(self.allowed.values())
            raise ValueError(
                f"invalid value: {value}, allowed values are: {choices}"
            ) from None
        self.values.append(original)


def string_to_proto_enum(s: str, *args: Mapping[str, int]) -> int:
    """Look ``s`` up case-insensitively in each mapping in turn.

    The error lists the sorted keys of the first mapping.
    """
    if not args:
        raise TypeError("at least one mapping is required")
    wanted = s.casefold()
    for mapping in args:
        for key, number in mapping.items():
            if key.casefold() == wanted:
                return number
    keys = ", ".join(sorted(args[0]))
    raise ValueError(f"unknown value {_quote(s)}, expected one of: {keys}")


def string_keys_values(items: Iterable[str]) -> dict[str, str]:
    """Parse ``key=value`` strings into a dict."""
    result: dict[str, str] = {}
    for item in items:
        key, sep, value = item.partition("=")
        if not sep:
            raise ValueError(f"missing expected '=' in {_quote(item)}")
        result[key] = value
    return result


def _reject_constant(name: str) -> None:
    raise ValueError(f"invalid character {name!r} looking for beginning of value")


_WHITESPACE = " \t\r\n"


def string_keys_json_values(
    items: Iterable[str], use_json_number: bool
) -> dict[str, Any] | None:
    """Parse ``key=<json>`` strings into a dict, or ``None`` when empty.

    Numbers become floats, or exact ``Decimal`` values when
    ``use_json_number`` is set. Trailing data after the value is an error.
    """
    items = list(items)
    if not items:
        return None
    number = Decimal if use_json_number else float
    decoder = json.JSONDecoder(
        parse_int=number, parse_float=number, parse_constant=_reject_constant
    )
    result: dict[str, Any] = {}
    for item in items:
        key, sep, text = item.partition("=")
        if not sep:
            raise ValueError(f"missing expected '=' in {_quote(item)}")
        start = len(text) - len(text.lstrip(_WHITESPACE))
        if start == len(text):
            raise ValueError(f"invalid JSON value for key {_quote(key)}: EOF")
        try:
            value, end = decoder.raw_decode(text, start)
        except ValueError as err:
            raise ValueError(f"invalid JSON value for key {_quote(key)}: {err}") from err
        if end != len(text):
            raise ValueError(
                f"invalid JSON value for key {_quote(key)}: unexpected trailing data"
            )
        result[key] = value
    return result