"""Print values as text cards, aligned tables, JSON or JSON lines."""

from __future__ import annotations

import base64
import dataclasses
import enum
import json as jsonlib
import math
import os
import re
import sys
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, TextIO

from wcwidth import wcswidth

from wftrace.payload import Payload

Colorer = Callable[[str], str]

_ANSI = re.compile(r"\x1b\[(?:[0-9]{1,3}(?:;[0-9]{1,3})*)?[m|K]")
_NUMERIC_TYPES = (int, float, complex)
_NUMERIC_NAMES = ("int", "float", "complex")


class Align(enum.IntEnum):
    """Column alignment in text tables."""

    DEFAULT = 0
    CENTER = 1
    RIGHT = 2
    LEFT = 3


@dataclass
class TableOptions:
    """How a table is laid out in text mode."""

    # Unset widths are the widest value (or no padding when streaming),
    # never less than the field name.
    field_widths: dict[str, int] = field(default_factory=dict)
    # Fields are left-aligned unless set here.
    field_align: dict[str, Align] = field(default_factory=dict)
    no_header: bool = False


@dataclass
class StructuredOptions:
    """Which fields to print and how; only the shorthand override affects JSON."""

    fields: list[str] = field(default_factory=list)
    exclude_fields: list[str] = field(default_factory=list)
    table: TableOptions | None = None
    override_json_payload_shorthand: bool | None = None

    def _predefined_cols(self) -> list[_Col]:
        return [_Col(name) for name in self.fields if name not in self.exclude_fields]


def cli_field(cli: str = "", json: str = "", **kwargs: Any) -> Any:
    """A dataclass field carrying ``cli`` and ``json`` tags.

    The ``cli`` tag is a comma list starting with an empty name and then any of
    ``omit``, ``cardOmitEmpty``, ``width=N`` and ``align=left|right|center|default``.
    The ``json`` tag is ``name,omitempty`` style, ``-`` to leave the field out.
    """
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata["cli"] = cli
    metadata["json"] = json
    return field(metadata=metadata, **kwargs)


@dataclass
class _Col:
    name: str
    width: int = 0  # 0 means no padding
    card_omit_empty: bool = False
    align: Align = Align.DEFAULT


@dataclass(frozen=True)
class _ColVal:
    val: Any
    text: str


def _default_colorer(text: str) -> str:
    stdout = sys.stdout
    if os.environ.get("NO_COLOR") or os.environ.get("TERM") == "dumb" or stdout is None:
        return text
    try:
        if not stdout.isatty():
            return text
    except (AttributeError, ValueError, OSError):
        return text
    return f"\x1b[35m{text}\x1b[0m"


def _display_width(text: str) -> int:
    plain = _ANSI.sub("", text)
    width = wcswidth(plain)
    return width if width >= 0 else len(plain)


def _pad_center(text: str, width: int) -> str:
    gap = width - _display_width(text)
    if gap <= 0:
        return text
    left = gap // 2
    return " " * left + text + " " * (gap - left)


def _pad_left(text: str, width: int) -> str:
    gap = width - _display_width(text)
    return " " * gap + text if gap > 0 else text


def _pad_right(text: str, width: int) -> str:
    gap = width - _display_width(text)
    return text + " " * gap if gap > 0 else text


def _is_zero_time(value: datetime) -> bool:
    return value.replace(tzinfo=None) == datetime.min and not value.utcoffset()


def _is_zero(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (bool, int, float, complex)):
        return value == 0
    if isinstance(value, datetime):
        return _is_zero_time(value)
    if isinstance(value, timedelta):
        return value == timedelta(0)
    if isinstance(value, (str, bytes, bytearray, list, tuple, set, frozenset, Mapping)):
        return len(value) == 0
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return all(_is_zero(getattr(value, f.name)) for f in dataclasses.fields(value))
    return False


def _is_empty_json(value: Any) -> bool:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return False
    if isinstance(value, datetime):
        return False
    return _is_zero(value)


def _go_float(x: float) -> str:
    if math.isnan(x):
        return "NaN"
    if math.isinf(x):
        return "+Inf" if x > 0 else "-Inf"
    if x == 0:
        return "-0" if math.copysign(1.0, x) < 0 else "0"
    sign, digits, exponent = Decimal(repr(x)).as_tuple()
    point = len(digits) + exponent
    ds = "".join(map(str, digits)).rstrip("0") or "0"
    prefix = "-" if sign else ""
    exp = point - 1
    if exp < -4 or exp >= 6:
        mantissa = ds[0] + ("." + ds[1:] if len(ds) > 1 else "")
        esign = "-" if exp < 0 else "+"
        return f"{prefix}{mantissa}e{esign}{abs(exp):02d}"
    if point <= 0:
        return f"{prefix}0.{'0' * -point}{ds}"
    if point >= len(ds):
        return prefix + ds + "0" * (point - len(ds))
    return f"{prefix}{ds[:point]}.{ds[point:]}"


def _sorted_items(mapping: Mapping[Any, Any]) -> list[tuple[Any, Any]]:
    try:
        return sorted(mapping.items(), key=lambda kv: kv[0])
    except TypeError:
        return sorted(mapping.items(), key=lambda kv: (type(kv[0]).__name__, str(kv[0])))


def _go_format(value: Any) -> str:
    """Plain value formatting in the style of a ``%v`` verb."""
    if value is None:
        return "<nil>"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, enum.Enum):
        return value.name
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _go_float(value)
    if isinstance(value, str):
        return value
    if isinstance(value, (bytes, bytearray)):
        return "[" + " ".join(str(b) for b in value) + "]"
    if isinstance(value, Mapping):
        inner = " ".join(f"{_go_format(k)}:{_go_format(v)}" for k, v in _sorted_items(value))
        return f"map[{inner}]"
    if isinstance(value, (list, tuple)):
        return "[" + " ".join(_go_format(v) for v in value) + "]"
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        inner = " ".join(_go_format(getattr(value, f.name)) for f in dataclasses.fields(value))
        return "{" + inner + "}"
    return str(value)


def _rfc3339(value: datetime, fraction: bool) -> str:
    text = value.strftime("%Y-%m-%dT%H:%M:%S")
    if fraction and value.microsecond:
        text += "." + f"{value.microsecond:06d}".rstrip("0")
    offset = value.utcoffset()
    if not offset:
        return text + "Z"
    minutes = int(offset.total_seconds()) // 60
    sign = "-" if minutes < 0 else "+"
    hours, mins = divmod(abs(minutes), 60)
    return f"{text}{sign}{hours:02d}:{mins:02d}"


def _b64(data: bytes) -> str:
    return base64.b64encode(bytes(data)).decode("ascii")


def _payload_json(payload: Payload, shorthand: bool) -> Any:
    if shorthand and bytes(payload.metadata.get("encoding", b"")) == b"json/plain":
        try:
            return _to_jsonable(jsonlib.loads(payload.data), shorthand)
        except ValueError:
            pass
    return {
        "metadata": {key: _b64(val) for key, val in sorted(payload.metadata.items())},
        "data": _b64(payload.data),
    }


def _to_jsonable(value: Any, shorthand: bool) -> Any:
    if value is None or isinstance(value, (bool, str)):
        return value
    if isinstance(value, enum.Enum):
        return _to_jsonable(value.value, shorthand)
    if isinstance(value, int):
        return int(value)
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            raise ValueError(f"json: unsupported value: {_go_float(value)}")
        if value.is_integer() and abs(value) < 1e21:
            return int(value)
        return value
    if isinstance(value, datetime):
        return _rfc3339(value, fraction=True)
    if isinstance(value, (bytes, bytearray)):
        return _b64(value)
    if isinstance(value, Payload):
        return _payload_json(value, shorthand)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        out: dict[str, Any] = {}
        for f in dataclasses.fields(value):
            if f.name.startswith("_"):
                continue
            name, *opts = f.metadata.get("json", "").split(",")
            if name == "-" and not opts:
                continue
            item = getattr(value, f.name)
            if "omitempty" in opts and _is_empty_json(item):
                continue
            out[name or f.name] = _to_jsonable(item, shorthand)
        return out
    if isinstance(value, Mapping):
        return {str(k): _to_jsonable(v, shorthand) for k, v in sorted(value.items(), key=lambda kv: str(kv[0]))}
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(v, shorthand) for v in value]
    raise TypeError(f"json: unsupported type: {type(value).__name__}")


def _json_text(value: Any, indent: str, shorthand: bool) -> str:
    obj = _to_jsonable(value, shorthand)
    if indent:
        text = jsonlib.dumps(obj, ensure_ascii=False, indent=indent, separators=(",", ": "))
    else:
        text = jsonlib.dumps(obj, ensure_ascii=False, separators=(",", ":"))
    for char, escaped in (("<", "\\u003c"), (">", "\\u003e"), ("&", "\\u0026"),
                          ("\u2028", "\\u2028"), ("\u2029", "\\u2029")):
        text = text.replace(char, escaped)
    return text


def _is_numeric_annotation(annotation: Any) -> bool:
    if isinstance(annotation, str):
        return annotation.strip() in _NUMERIC_NAMES
    return annotation in _NUMERIC_TYPES


def _col_from_field(f: dataclasses.Field) -> _Col | None:
    if f.name.startswith("_"):
        return None
    col = _Col(f.name)
    if _is_numeric_annotation(f.type):
        col.align = Align.RIGHT
    for index, part in enumerate(f.metadata.get("cli", "").split(",")):
        if index == 0:
            if part:
                raise ValueError("expected cli tag to have empty name")
        elif part == "omit":
            return None
        elif part == "cardOmitEmpty":
            col.card_omit_empty = True
        elif part.startswith("width="):
            col.width = int(part[len("width="):])
        elif part.startswith("align="):
            align = part[len("align="):]
            aligns = {"default": Align.LEFT, "center": Align.CENTER,
                      "right": Align.RIGHT, "left": Align.LEFT}
            if align not in aligns:
                raise ValueError(f"unrecognized align: {align}")
            col.align = aligns[align]
        else:
            raise ValueError(f"unrecognized CLI tag: {part}")
    if "omitempty" in f.metadata.get("json", "").split(","):
        col.card_omit_empty = True
    return col


def _derive_cols(item_type: Any) -> list[_Col]:
    if not isinstance(item_type, type):
        item_type = type(item_type)
    if issubclass(item_type, Mapping):
        raise ValueError("cannot derive fields from map")
    if not dataclasses.is_dataclass(item_type):
        raise TypeError(f"expected map, struct, or pointer to struct, got: {item_type.__name__}")
    cols = []
    for f in dataclasses.fields(item_type):
        col = _col_from_field(f)
        if col is not None:
            cols.append(col)
    return cols


def _value_getter(item: Any) -> Callable[[str], Any]:
    if isinstance(item, Mapping):
        return item.get
    if dataclasses.is_dataclass(item) and not isinstance(item, type):
        return lambda name: getattr(item, name)
    raise TypeError(f"expected map, struct, or pointer to struct, got: {type(item).__name__}")


def _adjust_cols(cols: list[_Col], options: StructuredOptions) -> list[_Col]:
    adjusted = []
    for col in cols:
        if col.name in options.exclude_fields:
            continue
        if options.table is not None:
            width = options.table.field_widths.get(col.name, 0)
            if width > 0:
                col.width = width
            if col.name in options.table.field_align:
                col.align = options.table.field_align[col.name]
        adjusted.append(col)
    return adjusted


def _calculate_unset_widths(cols: list[_Col], rows: list[dict[str, _ColVal]]) -> None:
    for col in cols:
        if col.width > 0:
            continue
        col.width = max(
            [_display_width(col.name)]
            + [_display_width(row[col.name].text) for row in rows if col.name in row]
        )


@dataclass
class Printer:
    """Writes plain text and structured values to ``output``.

    Plain text is dropped in JSON mode. ``json_indent`` empty means JSON lines.
    """

    output: TextIO | None = field(default_factory=lambda: sys.stdout)
    json: bool = False
    json_indent: str = ""
    json_payload_shorthand: bool = False
    format_time: Callable[[datetime], str] | None = None
    table_header_colorer: Colorer | None = None
    _list_mode: bool = field(default=False, init=False, repr=False)
    _list_mode_first_json: bool = field(default=False, init=False, repr=False)

    def _write(self, text: str) -> None:
        if self.output is not None:
            self.output.write(text)

    def print(self, *args: str) -> None:
        """Write strings as they are; ignored in JSON mode."""
        if not self.json:
            for text in args:
                self._write(text)

    def println(self, *args: str) -> None:
        """Write strings and a newline; ignored in JSON mode."""
        self.print(*args, "\n")

    def printlnf(self, fmt: str, *args: Any) -> None:
        """Write a %-formatted line; ignored in JSON mode."""
        self.println(fmt % args if args else fmt)

    def start_list(self) -> None:
        """Start printing structured values as one list.

        Indented JSON gets brackets and commas, unindented JSON becomes one
        value per line, text is unchanged. ``end_list`` must follow.
        """
        if self._list_mode:
            raise RuntimeError("already in list mode")
        self._list_mode = self._list_mode_first_json = True
        if self.json and self.json_indent:
            self._write("[")

    def end_list(self) -> None:
        """Finish the list begun by ``start_list``."""
        if not self._list_mode:
            raise RuntimeError("not in list mode")
        self._list_mode = self._list_mode_first_json = False
        if self.json and self.json_indent:
            self._write("\n]\n")

    def print_structured(self, value: Any, options: StructuredOptions | None = None) -> None:
        """Print a dataclass, mapping or list of them as JSON, a table or cards."""
        options = options or StructuredOptions()
        if self.json:
            self._print_json(value, options)
            return
        cols, rows = self._table_data(options._predefined_cols(), value)
        cols = _adjust_cols(cols, options)
        if options.table is not None:
            _calculate_unset_widths(cols, rows)
            if not options.table.no_header:
                self._print_header(cols)
            for row in rows:
                self._print_row(cols, row)
        else:
            for index, row in enumerate(rows):
                if index > 0:
                    self._write("\n")
                self._print_card(cols, row)

    def print_structured_table_iter(
        self, item_type: Any, items: Iterable[Any], options: StructuredOptions
    ) -> None:
        """Stream items as table rows; widths are only those given up front."""
        if options.table is None:
            raise ValueError("must be table")
        cols = options._predefined_cols()
        if not cols:
            try:
                cols = _derive_cols(item_type)
            except (ValueError, TypeError) as err:
                raise type(err)(f"unable to derive columns: {err}") from err
        cols = _adjust_cols(cols, options)
        self._print_header(cols)
        for item in items:
            if item is None:
                break
            self._print_row(cols, self._row_data(cols, item))

    def _print_json(self, value: Any, options: StructuredOptions) -> None:
        bracketed = self._list_mode and self.json and bool(self.json_indent)
        if bracketed:
            self._write("\n" if self._list_mode_first_json else ",\n")
            self._list_mode_first_json = False
        shorthand = self.json_payload_shorthand
        if options.override_json_payload_shorthand is not None:
            shorthand = options.override_json_payload_shorthand
        self._write(_json_text(value, self.json_indent, shorthand))
        if not bracketed:
            self._write("\n")

    def _text_val(self, value: Any) -> str:
        if isinstance(value, datetime):
            if _is_zero_time(value):
                return ""
            if self.format_time is None:
                return _rfc3339(value, fraction=False)
            return self.format_time(value)
        if dataclasses.is_dataclass(value) and not isinstance(value, type):
            try:
                return _json_text(value, "", True)
            except (TypeError, ValueError) as err:
                return f"<failed converting to string: {err}>"
        if isinstance(value, (list, tuple, bytes, bytearray)):
            return "[" + ", ".join(self._text_val(v) for v in value) + "]"
        return _go_format(value)

    def _table_data(self, cols: list[_Col], value: Any) -> tuple[list[_Col], list[dict[str, _ColVal]]]:
        items = list(value) if isinstance(value, (list, tuple)) else [value]
        if not cols and items:
            cols = _derive_cols(type(items[0]))
        return cols, [self._row_data(cols, item) for item in items]

    def _row_data(self, cols: list[_Col], item: Any) -> dict[str, _ColVal]:
        getter = _value_getter(item)
        row = {}
        for col in cols:
            val = getter(col.name)
            row[col.name] = _ColVal(val, self._text_val(val))
        return row

    def _print_header(self, cols: list[_Col]) -> None:
        colorer = self.table_header_colorer or _default_colorer
        for col in cols:
            self._write("  ")
            self._write(_pad_center(colorer(col.name), col.width))
        self._write("\n")

    def _print_row(self, cols: list[_Col], row: Mapping[str, _ColVal]) -> None:
        for col in cols:
            self._write("  ")
            cell = row.get(col.name)
            text = cell.text if cell is not None else ""
            if col.align == Align.CENTER:
                text = _pad_center(text, col.width)
            elif col.align == Align.RIGHT:
                text = _pad_left(text, col.width)
            else:
                text = _pad_right(text, col.width)
            self._write(text)
        self._write("\n")

    def _print_card(self, cols: list[_Col], row: Mapping[str, _ColVal]) -> None:
        card_rows = []
        for col in cols:
            cell = row[col.name]
            if not col.card_omit_empty or (cell.val is not None and not _is_zero(cell.val)):
                card_rows.append({"Name": _ColVal(col.name, col.name), "Value": cell})
        # Value stretches as far right as it needs.
        card_cols = [_Col("Name"), _Col("Value", width=1)]
        _calculate_unset_widths(card_cols, card_rows)
        for card_row in card_rows:
            self._print_row(card_cols, card_row)