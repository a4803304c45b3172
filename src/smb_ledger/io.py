# SMB Ledger - Accounting Dashboard & Reporting engine for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Tabular import parser for SMB Ledger.

This module turns delimited text (an uploaded CSV file or data pasted from
a spreadsheet) into a list of loosely-typed row mappings:

    [{"date": "2024-01-10", "category": "Events", "amount": "1500"}, ...]

Every value is a string: typing happens later, in validation.py, once the
whole batch has been checked.

Parsing rules
-------------
- Line endings are normalized (CRLF and CR become LF).
- The delimiter is auto-detected among comma, tab, semicolon and pipe.
  ``csv.Sniffer`` is tried first; if it cannot decide, the candidate that
  appears most often in the first non-blank line wins, and comma is used
  when no candidate appears at all.
- The header row supplies column names (trimmed). An empty or blank header
  cell yields an ``Unnamed: N`` column and a repeated name gets a ``.N``
  suffix, so no column is lost. Without a header row, columns are named
  ``column_1``, ``column_2``, ...
- Every value is trimmed; rows that are entirely blank are dropped.
- The result is a fully materialized list.

Unreadable input raises ``TabularParseError`` (a ValueError) so that
callers can report it as a single user-facing error.
"""

import csv
import io
import logging
import os
from collections.abc import Iterable
from typing import Any, Union

import pandas as pd

logger = logging.getLogger(__name__)

DELIMITER_CANDIDATES: tuple[str, ...] = (",", "\t", ";", "|")


class TabularParseError(ValueError):
    """Raised when delimited text cannot be parsed into rows."""


def normalize_line_endings(text: str) -> str:
    """Convert CRLF and lone CR line endings to LF."""
    return text.replace("\r\n", "\n").replace("\r", "\n")


def _first_content_line(text: str) -> str:
    for line in text.split("\n"):
        if line.strip():
            return line
    return ""


def detect_delimiter(text: str) -> str:
    """
    Guess the delimiter of `text` among comma, tab, semicolon and pipe.

    `text` is expected to have normalized line endings.
    """
    sample = "\n".join(text.split("\n")[:20])
    try:
        dialect = csv.Sniffer().sniff(sample, delimiters="".join(DELIMITER_CANDIDATES))
        if dialect.delimiter in DELIMITER_CANDIDATES:
            return dialect.delimiter
    except csv.Error:
        pass

    first_line = _first_content_line(text)
    counts = {d: first_line.count(d) for d in DELIMITER_CANDIDATES}
    # max() keeps the first candidate on ties, so comma wins by default.
    best = max(DELIMITER_CANDIDATES, key=lambda d: counts[d])
    return best if counts[best] > 0 else ","


def _clean_headers(columns: Iterable[Any]) -> list[str]:
    """Trim header cells; blank ones become ``Unnamed: N`` and repeats get ``.N``."""
    seen: dict[str, int] = {}
    headers: list[str] = []
    for position, column in enumerate(columns):
        name = str(column).strip() or f"Unnamed: {position}"
        count = seen.get(name, 0)
        seen[name] = count + 1
        headers.append(name if count == 0 else f"{name}.{count}")
    return headers


def parse_tabular_text(text: str, has_header_row: bool = True) -> list[dict[str, str]]:
    """
    Parse delimited text into a list of row mappings.

    Parameters
    ----------
    text:
        File content or pasted text.
    has_header_row:
        When True (default), the first line supplies the column names.
        Otherwise columns are named ``column_1``, ``column_2``, ...

    Returns
    -------
    list[dict[str, str]]
        One mapping per non-blank row, in input order. Every value is a
        trimmed string (missing trailing cells become "").

    Raises
    ------
    TabularParseError
        If the text cannot be parsed by the pandas CSV reader.
    """
    normalized = normalize_line_endings(text)
    if not normalized.strip():
        return []

    delimiter = detect_delimiter(normalized)
    logger.debug("Detected delimiter %r", delimiter)

    try:
        df = pd.read_csv(
            io.StringIO(normalized),
            sep=delimiter,
            header=0 if has_header_row else None,
            dtype=str,
            keep_default_na=False,
            index_col=False,
            skip_blank_lines=True,
            engine="python",
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError, csv.Error) as exc:
        raise TabularParseError(str(exc)) from exc

    if has_header_row:
        df.columns = _clean_headers(df.columns)
    else:
        df.columns = [f"column_{i + 1}" for i in range(len(df.columns))]

    df = df.fillna("")

    rows: list[dict[str, str]] = []
    for record in df.to_dict(orient="records"):
        row = {str(key): str(value).strip() for key, value in record.items()}
        if all(value == "" for value in row.values()):
            continue
        rows.append(row)

    logger.info("Parsed %d row(s) with %d column(s)", len(rows), len(df.columns))
    return rows


def read_tabular_file(
    path: Union[str, "os.PathLike[str]"],
    has_header_row: bool = True,
) -> list[dict[str, str]]:
    """
    Read a delimited text file and parse it with `parse_tabular_text`.

    The file is read as UTF-8; a leading byte-order mark is ignored.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    TabularParseError
        If the content cannot be decoded or parsed.
    """
    try:
        with open(path, encoding="utf-8-sig", newline="") as handle:
            text = handle.read()
    except UnicodeDecodeError as exc:
        raise TabularParseError(f"File is not valid UTF-8 text: {path}") from exc

    return parse_tabular_text(text, has_header_row=has_header_row)
