"""Quoted CSV codec used by the vault record files.

Every field is wrapped in double quotes, inner quotes are doubled, fields
are comma separated and rows are newline separated. A quoted field may span
several raw lines, so decoding walks the text character by character rather
than splitting on line breaks.
"""

from collections.abc import Iterable, Sequence

Field = str | int | float | None


def encode_field(value: Field) -> str:
    """Quote a single field; None becomes an empty quoted string."""
    if value is None:
        return '""'
    text = str(value)
    return '"' + text.replace('"', '""') + '"'


def encode_row(values: Sequence[Field]) -> str:
    """Encode one row without a trailing newline."""
    return ",".join(encode_field(value) for value in values)


def encode(rows: Iterable[Sequence[Field]]) -> str:
    """Encode rows into quoted CSV text."""
    return "\n".join(encode_row(row) for row in rows)


def decode(text: str, header: str | None = None) -> list[list[str]]:
    """
    Decode quoted CSV text into rows of strings.

    Args:
        text: CSV text, possibly with multi-line quoted fields
        header: First-column token of an optional header row (e.g. "id");
            a leading row whose first field equals it is dropped

    Returns:
        List of rows, each a list of field strings
    """
    rows: list[list[str]] = []
    row: list[str] = []
    current: list[str] = []
    in_quotes = False
    has_content = False

    def end_row() -> None:
        nonlocal row, current, has_content
        if has_content:
            row.append("".join(current))
            rows.append(row)
        row = []
        current = []
        has_content = False

    i = 0
    length = len(text)
    while i < length:
        char = text[i]

        if in_quotes:
            if char == '"':
                if i + 1 < length and text[i + 1] == '"':
                    current.append('"')
                    i += 2
                    continue
                in_quotes = False
            else:
                current.append(char)
        elif char == '"':
            in_quotes = True
            has_content = True
        elif char == ",":
            row.append("".join(current))
            current = []
            has_content = True
        elif char == "\n":
            end_row()
        elif char == "\r":
            if i + 1 < length and text[i + 1] == "\n":
                i += 1
            end_row()
        else:
            current.append(char)
            if not char.isspace():
                has_content = True
        i += 1

    end_row()
    return strip_header(rows, header) if header is not None else rows


def strip_header(rows: list[list[str]], header: str) -> list[list[str]]:
    """Drop the first row when its first column matches the header token."""
    if rows and rows[0] and rows[0][0] == header:
        return rows[1:]
    return rows
