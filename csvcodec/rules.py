"""
CSV dialect rules.

- Each record is one line, fields are separated by the field separator.
- Whitespace adjacent to a field separator is ignored.
- Fields holding the separator, a quote, a line break, or leading/trailing
  whitespace are surrounded by quotes.
- A quote inside a quoted field is written as two consecutive quotes.
"""

DEFAULT_FIELD_SEPARATOR = ","
QUOTE = '"'
ESCAPED_QUOTE = QUOTE + QUOTE

# Marker stored in a quoted value for every physical line break it spans.
LINE_TERMINATOR = "\n"

TARGET_ENCODING = "utf-8"

# Separators that would make the dialect ambiguous.
FORBIDDEN_SEPARATORS = frozenset({QUOTE, "\r", "\n"})


def escape_chars(field_separator: str) -> tuple[str, ...]:
    return (field_separator, QUOTE, "\n", "\r")
