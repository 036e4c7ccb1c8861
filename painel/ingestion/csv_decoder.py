"""Tolerant CSV decoding for published spreadsheet exports."""
from __future__ import annotations

from typing import Dict, List

COLUMN_KEY_PREFIX = "col_"


def column_letter(index: int) -> str:
    """Return the spreadsheet column letter for a 0-based column index (0 -> A, 26 -> AA)."""

    n = index + 1
    letters = ""
    while n > 0:
        n, remainder = divmod(n - 1, 26)
        letters = chr(ord("A") + remainder) + letters
    return letters


def column_key(index: int) -> str:
    """Positional pseudo-header used when header text is unreliable."""

    return f"{COLUMN_KEY_PREFIX}{column_letter(index)}"


def split_records(text: str) -> List[str]:
    """Split raw CSV text into records, keeping newlines that sit inside quotes.

    Quotes are kept in the output so each record can be tokenized by
    ``parse_record``.
    """

    normalized = text.replace("\r\n", "\n")
    records: List[str] = []
    current: List[str] = []
    in_quotes = False
    index = 0
    length = len(normalized)

    while index < length:
        char = normalized[index]
        if char == '"':
            if in_quotes and index + 1 < length and normalized[index + 1] == '"':
                current.append('""')
                index += 2
                continue
            in_quotes = not in_quotes
            current.append(char)
        elif char == "\n" and not in_quotes:
            records.append("".join(current))
            current = []
        else:
            current.append(char)
        index += 1

    if current:
        records.append("".join(current))
    return records


def parse_record(record: str) -> List[str]:
    """Tokenize one CSV record into raw (untrimmed) field values.

    Unbalanced quotes never raise: the remainder of the record is consumed
    as part of the open field.
    """

    values: List[str] = []
    current: List[str] = []
    in_quotes = False
    index = 0
    length = len(record)

    while index < length:
        char = record[index]
        if in_quotes:
            if char == '"':
                if index + 1 < length and record[index + 1] == '"':
                    current.append('"')
                    index += 1
                else:
                    in_quotes = False
            else:
                current.append(char)
        elif char == '"':
            in_quotes = True
        elif char == ",":
            values.append("".join(current))
            current = []
        else:
            current.append(char)
        index += 1

    values.append("".join(current))
    return values


def parse_csv(text: str) -> List[Dict[str, str]]:
    """Decode CSV text into rows keyed by header and by column letter.

    The first record is the header. Each data row maps every trimmed header
    to its trimmed value and also carries ``col_<LETTER>`` keys so callers
    can fall back on column position. Inputs without at least one data
    record produce an empty list.
    """

    records = split_records(text or "")
    if len(records) < 2:
        return []

    headers = [header.strip() for header in parse_record(records[0])]
    rows: List[Dict[str, str]] = []
    for record in records[1:]:
        if not record.strip():
            continue
        values = parse_record(record)
        row: Dict[str, str] = {}
        for index, header in enumerate(headers):
            value = values[index].strip() if index < len(values) else ""
            row[header] = value
            row[column_key(index)] = value
        rows.append(row)
    return rows
