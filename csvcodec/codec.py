"""
Streaming CSV codec.

- export_record: one sequence of values -> one CSV line (no terminator)
- import_record: one logical record from a line source, or None when done
- import_rows: lazy iterator over every remaining record
- export_rows: write records to a text stream

The reader is permissive: unterminated quotes and stray text after a closing
quote are reconstructed best-effort instead of being rejected.
"""

from __future__ import annotations

import logging
from typing import (
    Any,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    TextIO,
    Tuple,
    Union,
    runtime_checkable,
)

from .rules import DEFAULT_FIELD_SEPARATOR, ESCAPED_QUOTE, LINE_TERMINATOR, QUOTE, escape_chars

logger = logging.getLogger(__name__)

Replacements = Optional[Union[Sequence[Tuple[str, str]], Mapping[str, str]]]
LineSource = Union[TextIO, Iterator[str]]


@runtime_checkable
class SupportsAbsent(Protocol):
    """A value that can report it carries no data."""

    def is_absent(self) -> bool: ...


class Nullable:
    """Wraps a scalar that may be missing."""

    __slots__ = ("value",)

    def __init__(self, value: Any = None):
        self.value = value

    def is_absent(self) -> bool:
        return self.value is None

    def __str__(self) -> str:
        return "" if self.value is None else str(self.value)

    def __repr__(self) -> str:
        return f"Nullable({self.value!r})"


def is_null(item: Any) -> bool:
    if item is None:
        return True
    return isinstance(item, SupportsAbsent) and bool(item.is_absent())


def apply_replacements(value: str, replace: Replacements) -> str:
    """
    Apply each (match, substitute) pair in order as a literal replace.

    Pair k sees the output of pair k-1. Empty match strings are skipped.
    """
    if not replace:
        return value
    pairs = replace.items() if isinstance(replace, Mapping) else replace
    for match, substitute in pairs:
        if match:
            value = value.replace(match, substitute)
    return value


def add_quotes(value: str) -> str:
    """Quote a value, doubling every embedded quote. Empty stays empty."""
    if not value:
        return value
    return QUOTE + value.replace(QUOTE, ESCAPED_QUOTE) + QUOTE


def _needs_quotes(value: str, escapes: Tuple[str, ...]) -> bool:
    if any(ch in value for ch in escapes):
        return True
    return value[0].isspace() or value[-1].isspace()


def export_record(
    values: Iterable[Any],
    field_separator: str = DEFAULT_FIELD_SEPARATOR,
    trim_white_space: bool = True,
    replace: Replacements = None,
) -> str:
    """
    Convert a sequence of values into a single CSV line.

    Rules:
    - None, or anything whose is_absent() is true, becomes an empty field.
    - Other values go through str(); errors raised there propagate.
    - The value is stripped when trim_white_space is set, then replacements run.
    - The value is quoted only when it needs to be.
    """
    escapes = escape_chars(field_separator)
    out: List[str] = []

    for item in values:
        if is_null(item):
            out.append("")
            continue

        value = str(item)
        if trim_white_space:
            value = value.strip()
        value = apply_replacements(value, replace)

        if value and _needs_quotes(value, escapes):
            value = add_quotes(value)
        out.append(value)

    return field_separator.join(out)


def _read_line(source: LineSource) -> Optional[Tuple[str, str]]:
    """
    Next physical line split into (text, terminator), or None at end of input.

    The terminator is "\\r\\n", "\\n", "\\r", or "" for a last line without one.
    """
    readline = getattr(source, "readline", None)
    if readline is not None:
        line = readline()
        if not line:
            return None
    else:
        line = next(source, None)
        if line is None:
            return None

    if line.endswith("\r\n"):
        return line[:-2], "\r\n"
    if line.endswith(("\n", "\r")):
        return line[:-1], line[-1]
    return line, ""


def _read_quoted(
    source: LineSource, text: str, terminator: str, idx: int, field_separator: str
) -> Tuple[str, Optional[str], int]:
    """
    Read a quoted span starting just past its opening quote.

    Every physical line break the span crosses is kept as the terminator the
    source supplied (LINE_TERMINATOR when it supplied none). Returns the value,
    the physical line the span ended on (None if input ran out first) and the
    index just past the next separator on that line.
    """
    parts: List[str] = []
    left = idx
    line: Optional[str] = text

    while line is not None:
        found = line.find(QUOTE, idx)

        if found < 0:
            # Span continues on the next physical line.
            parts.append(line[left:])
            parts.append(terminator or LINE_TERMINATOR)
            line = None
            fetched = _read_line(source)
            while fetched is not None:
                line, terminator = fetched
                if line:
                    break
                parts.append(terminator or LINE_TERMINATOR)
                line = None
                fetched = _read_line(source)
            idx = left = 0
            continue

        if line.startswith(QUOTE, found + 1):
            # Doubled quote, keep one.
            parts.append(line[left : found + 1])
            idx = left = found + 2
            continue

        parts.append(line[left:found])
        idx = found + 1
        break

    value = "".join(parts)

    if line is None:
        logger.debug("Unterminated quoted field at end of input (%d chars)", len(value))
        return value, None, 0

    # Drop anything between the closing quote and the next separator.
    if idx < len(line):
        sep = line.find(field_separator, idx)
        idx = len(line) if sep < 0 else sep
        idx += 1

    return value, line, idx


def import_record(
    source: LineSource,
    field_separator: str = DEFAULT_FIELD_SEPARATOR,
    trim_white_space: bool = True,
    replace: Replacements = None,
) -> Optional[List[str]]:
    """
    Read one logical record from source.

    Each call consumes the physical lines of exactly one record, so repeated
    calls yield successive records. Returns None once the source is exhausted.

    Text streams should be opened with newline="" so line breaks inside quoted
    values come back exactly as written.

    Unquoted fields always lose trailing whitespace, and leading whitespace is
    skipped before every field, whatever trim_white_space says. The flag
    therefore only changes quoted values.
    """
    fetched = _read_line(source)
    if fetched is None:
        return None
    text, terminator = fetched

    fields: List[str] = []
    length = len(text)
    idx = 0

    while idx < length:
        while idx < length and text[idx] != field_separator and text[idx].isspace():
            idx += 1

        if idx >= length:
            value = ""
        elif text[idx] == QUOTE:
            value, line, idx = _read_quoted(source, text, terminator, idx + 1, field_separator)
            text = line if line is not None else ""
            length = len(text)
        else:
            sep = text.find(field_separator, idx)
            if sep < 0:
                sep = length
            value = text[idx:sep].strip()
            idx = sep + 1

        if trim_white_space:
            value = value.strip()
        fields.append(apply_replacements(value, replace))

    # A trailing separator means one more, empty, field.
    if text and text[-1] == field_separator:
        fields.append("")

    return fields


def import_rows(
    source: Union[LineSource, List[str], Tuple[str, ...]],
    field_separator: str = DEFAULT_FIELD_SEPARATOR,
    trim_white_space: bool = True,
    replace: Replacements = None,
) -> Iterator[List[str]]:
    """
    Yield records from source until it is exhausted. The source is not closed.

    A bare string is rejected; wrap CSV text in io.StringIO(text, newline="").
    """
    if isinstance(source, str):
        raise TypeError("source must be a text stream or an iterable of lines, not str")
    if not hasattr(source, "readline"):
        source = iter(source)

    while True:
        record = import_record(source, field_separator, trim_white_space, replace)
        if record is None:
            return
        yield record



def export_rows(
    rows: Iterable[Iterable[Any]],
    destination: TextIO,
    field_separator: str = DEFAULT_FIELD_SEPARATOR,
    trim_white_space: bool = True,
    replace: Replacements = None,
    line_terminator: str = LINE_TERMINATOR,
) -> int:
    count = 0
    for row in rows:
        destination.write(export_record(row, field_separator, trim_white_space, replace))
        destination.write(line_terminator)
        count += 1
    return count
