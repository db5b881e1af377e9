"""Spreadsheet and CSV parsing into uniform records.

Dispatches on file extension to a format-specific decoder that produces a
rectangular grid of display strings, then zips the grid against its header
row.  Only the first worksheet of a workbook is read; cells are rendered
with their number format so dates and numbers match what a human sees in
the source file.
"""

from __future__ import annotations

import io
import re
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from pathlib import PurePath
from typing import Any

from formatdocs.errors import EmptyData, ReadError, UnsupportedFormat

Record = dict[str, str]

_KINDS = {
    "csv": "csv",
    "xlsx": "xlsx",
    "xlsm": "xlsx",
}

_MONTHS = (
    "January", "February", "March", "April", "May", "June", "July",
    "August", "September", "October", "November", "December",
)
_DAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

_DATE_TOKEN_RE = re.compile(
    r"yyyy|yy|mmmm|mmm|mm|m|dddd|ddd|dd|d|hh|h|ss|s|AM/PM|am/pm|A/P|\"[^\"]*\"|\\.|.",
    re.IGNORECASE,
)
_BRACKET_RE = re.compile(r"\[[^\]]*\]")

# Built-in formats whose code, as openpyxl reports it, differs from what
# spreadsheet applications display.
_BUILTIN_DISPLAY = {
    "mm-dd-yy": "m/d/yy",  # id 14, locale short date
    # id 44 comes back without its section separators
    r'_("$"* #,##0.00_)_("$"* \(#,##0.00\)_("$"* "-"??_)_(@_)':
        r'_("$"* #,##0.00_);_("$"* \(#,##0.00\);_("$"* "-"??_);_(@_)',
}


@dataclass(frozen=True)
class ParseResult:
    """Headers in column order and records in row order, blank rows removed."""

    headers: list[str]
    rows: list[Record] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def file_kind(filename: str) -> str:
    """Return ``"csv"`` or ``"xlsx"`` for *filename*.

    Raises:
        UnsupportedFormat: For any other extension.
    """
    ext = PurePath(filename).suffix.lower().lstrip(".")
    kind = _KINDS.get(ext)
    if kind is None:
        raise UnsupportedFormat(ext)
    return kind


def parse(file_bytes: bytes, filename: str) -> ParseResult:
    """Parse an uploaded file into a :class:`ParseResult`.

    Args:
        file_bytes: Raw file contents.
        filename: Original file name; only its extension is used.

    Raises:
        UnsupportedFormat: Extension not supported (checked before decoding).
        ReadError: The bytes could not be decoded as the declared kind.
        EmptyData: No header row plus at least one non-blank data row.
    """
    kind = file_kind(filename)
    if kind == "csv":
        try:
            text = file_bytes.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise ReadError(f"Failed to read CSV file: {exc}")
        grid = scan_delimited(text)
        label = "CSV"
    else:
        grid = read_first_sheet(file_bytes)
        label = "Spreadsheet"

    if len(grid) < 2:
        raise EmptyData(f"{label} must have at least a header row and one data row")

    result = grid_to_records(grid)
    if not result.rows:
        raise EmptyData("No data rows found in the spreadsheet")
    return result


def grid_to_records(grid: list[list[str]]) -> ParseResult:
    """Zip data rows against the first (header) row.

    Short rows pad with empty strings, cells beyond the header count are
    ignored, and a repeated header name keeps the last column's value.
    """
    headers = [h.strip() for h in grid[0]]
    rows: list[Record] = []
    for line in grid[1:]:
        if all(not cell.strip() for cell in line):
            continue
        record: Record = {}
        for idx, header in enumerate(headers):
            record[header] = line[idx] if idx < len(line) else ""
        rows.append(record)
    return ParseResult(headers=headers, rows=rows)


# ---------------------------------------------------------------------------
# Delimited text
# ---------------------------------------------------------------------------


def scan_delimited(text: str) -> list[list[str]]:
    """Split CSV *text* into lines of fields.

    Quote-aware: commas and line breaks inside double quotes are literal and
    ``""`` inside quotes is one quote character.  ``\\n`` and ``\\r\\n`` end a
    line; a stray ``\\r`` is dropped.  Trailing content without a terminator
    still yields a final line.
    """
    lines: list[list[str]] = []
    current: list[str] = []
    value: list[str] = []
    in_quotes = False
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        nxt = text[i + 1] if i + 1 < n else ""
        if ch == '"':
            if in_quotes and nxt == '"':
                value.append('"')
                i += 1
            else:
                in_quotes = not in_quotes
        elif ch == "," and not in_quotes:
            current.append("".join(value))
            value = []
        elif (ch == "\n" or (ch == "\r" and nxt == "\n")) and not in_quotes:
            current.append("".join(value))
            lines.append(current)
            current = []
            value = []
            if ch == "\r":
                i += 1
        elif ch != "\r":
            value.append(ch)
        i += 1

    if value or current:
        current.append("".join(value))
        lines.append(current)
    return lines


# ---------------------------------------------------------------------------
# Workbook
# ---------------------------------------------------------------------------


def read_first_sheet(file_bytes: bytes) -> list[list[str]]:
    """Read the first worksheet of an XLSX workbook as display strings."""
    import openpyxl

    try:
        wb = openpyxl.load_workbook(io.BytesIO(file_bytes), read_only=True, data_only=True)
    except Exception as exc:
        raise ReadError(f"Failed to parse Excel file: {exc}")

    try:
        if not wb.sheetnames:
            return []
        ws = wb[wb.sheetnames[0]]
        grid: list[list[str]] = []
        for row in ws.iter_rows():
            grid.append([
                display_value(getattr(cell, "value", None), getattr(cell, "number_format", "General"))
                for cell in row
            ])
    except Exception as exc:
        # read_only workbooks parse sheet XML lazily, during iteration
        raise ReadError(f"Failed to parse Excel file: {exc}")
    finally:
        wb.close()

    # read_only sheets may report trailing rows that hold only styling
    while grid and all(not c for c in grid[-1]):
        grid.pop()
    return grid


def display_value(value: Any, number_format: str | None = "General") -> str:
    """Render a cell value the way a spreadsheet application displays it."""
    if value is None:
        return ""
    fmt = number_format or "General"
    fmt = _BUILTIN_DISPLAY.get(fmt, fmt)
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (datetime, date, time)):
        return _format_datetime(value, fmt)
    if isinstance(value, timedelta):
        total = int(value.total_seconds())
        hours, rem = divmod(total, 3600)
        return f"{hours}:{rem // 60:02d}:{rem % 60:02d}"
    if isinstance(value, (int, float)):
        return _format_number(value, fmt)
    return str(value)


def _format_number(value: int | float, fmt: str) -> str:
    sections = fmt.split(";")
    section = sections[0]
    if value < 0 and len(sections) > 1:
        # Negative sections carry their own sign decoration, e.g. parentheses
        section = sections[1]
        value = -value
    elif value == 0 and len(sections) > 2:
        section = sections[2]
    section = _BRACKET_RE.sub("", section)
    if section in ("General", "@", ""):
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        if isinstance(value, float):
            return format(value, ".11g")
        return str(value)

    digits = [i for i, ch in enumerate(section) if ch in "0#?"]
    if not digits:
        return _literal_text(section)
    prefix = _literal_text(section[: digits[0]])
    suffix = _literal_text(section[digits[-1] + 1:])
    body = section[digits[0]: digits[-1] + 1]

    if "%" in section:
        value = value * 100
        suffix = suffix.replace("%", "") + "%"
    if value == 0 and "0" not in body:
        return prefix + suffix
    decimals = 0
    if "." in body:
        decimals = sum(1 for ch in body.split(".", 1)[1] if ch in "0#?")
    py_format = f"{',' if ',' in body else ''}.{decimals}f"
    text = format(value, py_format)
    if text.startswith("-") and prefix:
        return "-" + prefix + text[1:] + suffix
    return prefix + text + suffix


def _literal_text(part: str) -> str:
    """Displayed text of a format fragment.

    ``_x`` pads to the width of *x* and ``*x`` repeats *x* to fill the cell;
    neither adds visible text.
    """
    out: list[str] = []
    i = 0
    while i < len(part):
        ch = part[i]
        if ch == '"':
            end = part.find('"', i + 1)
            end = len(part) if end < 0 else end
            out.append(part[i + 1:end])
            i = end + 1
            continue
        if ch == "\\" and i + 1 < len(part):
            out.append(part[i + 1])
            i += 2
            continue
        if ch in "_*":
            i += 2
            continue
        out.append(ch)
        i += 1
    return "".join(out).strip()


def _format_datetime(value: date | time, fmt: str) -> str:
    section = _BRACKET_RE.sub("", fmt.split(";")[0])
    if section in ("General", ""):
        if isinstance(value, datetime):
            return value.isoformat(sep=" ")
        return value.isoformat()

    tokens = _DATE_TOKEN_RE.findall(section)
    twelve_hour = any(t.upper() in ("AM/PM", "A/P") for t in tokens)
    hour = getattr(value, "hour", 0)
    minute = getattr(value, "minute", 0)
    second = getattr(value, "second", 0)
    out: list[str] = []
    for idx, tok in enumerate(tokens):
        low = tok.lower()
        if low in ("m", "mm") and _is_minute(tokens, idx):
            out.append(f"{minute:02d}" if low == "mm" else str(minute))
        elif low == "yyyy":
            out.append(f"{getattr(value, 'year', 1900):04d}")
        elif low == "yy":
            out.append(f"{getattr(value, 'year', 1900) % 100:02d}")
        elif low == "mmmm":
            out.append(_MONTHS[getattr(value, "month", 1) - 1])
        elif low == "mmm":
            out.append(_MONTHS[getattr(value, "month", 1) - 1][:3])
        elif low == "mm":
            out.append(f"{getattr(value, 'month', 1):02d}")
        elif low == "m":
            out.append(str(getattr(value, "month", 1)))
        elif low == "dddd":
            out.append(_DAYS[value.weekday()] if isinstance(value, date) else "")
        elif low == "ddd":
            out.append(_DAYS[value.weekday()][:3] if isinstance(value, date) else "")
        elif low == "dd":
            out.append(f"{getattr(value, 'day', 1):02d}")
        elif low == "d":
            out.append(str(getattr(value, "day", 1)))
        elif low in ("hh", "h"):
            h = (hour % 12 or 12) if twelve_hour else hour
            out.append(f"{h:02d}" if low == "hh" else str(h))
        elif low in ("ss", "s"):
            out.append(f"{second:02d}" if low == "ss" else str(second))
        elif low == "am/pm":
            out.append("AM" if hour < 12 else "PM")
        elif low == "a/p":
            out.append("A" if hour < 12 else "P")
        elif tok.startswith('"'):
            out.append(tok[1:-1])
        elif tok.startswith("\\"):
            out.append(tok[1:])
        else:
            out.append(tok)
    return "".join(out)


def _is_minute(tokens: list[str], idx: int) -> bool:
    """``m``/``mm`` means minutes right after an hour or before a seconds token."""
    for prev in reversed(tokens[:idx]):
        low = prev.lower()
        if low in ("h", "hh"):
            return True
        if low.isalpha():
            break
    for nxt in tokens[idx + 1:]:
        low = nxt.lower()
        if low in ("s", "ss"):
            return True
        if low.isalpha():
            break
    return False
