"""Format detection and parsing for Proof-of-Play report payloads.

Providers export play logs as CSV, as an HTML table (usually an emailed or
downloaded report page), or as a JSON ``{"records": [...]}`` envelope. All
three are reduced to a list of loosely-typed rows keyed by column header;
field validation happens later, in extraction.
"""

from __future__ import annotations

import html
import json
import re
from typing import List, Optional, Union

from kiosk_pop.pop.types import ParsedPayload, PayloadFormat, RawRow

_CSV_HEADER_HINTS = ("report date", "device", "screen", "asset", "start time", "media")

_LINE_BREAK_RE = re.compile(r"\r?\n")
_TR_RE = re.compile(r"<tr\b[^>]*>(.*?)</tr\s*>", re.IGNORECASE | re.DOTALL)
_CELL_RE = re.compile(r"<t[dh]\b[^>]*>(.*?)</t[dh]\s*>", re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r"<[^>]+>")
_WHITESPACE_RE = re.compile(r"\s+")


class BatchParseError(ValueError):
    """The payload could not be parsed by any supported strategy."""


def detect_format(text: str, content_type: Optional[str] = None) -> PayloadFormat:
    """Pick a parse strategy; an explicit content type wins over sniffing."""
    media_type = (content_type or "").split(";", 1)[0].strip().lower()
    if media_type == "text/csv":
        return PayloadFormat.csv
    if media_type == "text/html":
        return PayloadFormat.html
    if media_type == "application/json":
        return PayloadFormat.json

    stripped = text.lstrip()
    first_line = _LINE_BREAK_RE.split(stripped, maxsplit=1)[0].lower()
    if (
        not stripped.startswith(("<", "{", "["))
        and "," in first_line
        and any(hint in first_line for hint in _CSV_HEADER_HINTS)
    ):
        return PayloadFormat.csv
    if "<table" in stripped.lower():
        return PayloadFormat.html
    return PayloadFormat.json


def _split_csv_line(line: str) -> List[str]:
    # A double quote only toggles quoting; escaped quotes ("") are not supported.
    cells: List[str] = []
    current: List[str] = []
    in_quotes = False
    for char in line:
        if char == '"':
            in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            cells.append("".join(current).strip())
            current = []
        else:
            current.append(char)
    cells.append("".join(current).strip())
    return cells


def _zip_row(headers: List[str], cells: List[str]) -> RawRow:
    return {header: (cells[idx] if idx < len(cells) else "") for idx, header in enumerate(headers)}


def parse_csv(text: str) -> List[RawRow]:
    lines = [line for line in _LINE_BREAK_RE.split(text.strip()) if line.strip()]
    if not lines:
        return []
    headers = _split_csv_line(lines[0])
    return [_zip_row(headers, _split_csv_line(line)) for line in lines[1:]]


def _cell_text(fragment: str) -> str:
    text = html.unescape(_TAG_RE.sub("", fragment))
    return _WHITESPACE_RE.sub(" ", text).strip()


def parse_html_table(text: str) -> List[RawRow]:
    table = [
        [_cell_text(cell) for cell in _CELL_RE.findall(row_html)]
        for row_html in _TR_RE.findall(text)
    ]
    if not table:
        return []
    headers = table[0]
    return [_zip_row(headers, cells) for cells in table[1:]]


def parse_json_envelope(text: str) -> List[RawRow]:
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as exc:
        raise BatchParseError(f"Invalid JSON payload: {exc.msg}") from exc
    if not isinstance(parsed, dict):
        raise BatchParseError("JSON payload must be an object with a 'records' array")
    records = parsed.get("records")
    if not isinstance(records, list):
        raise BatchParseError("JSON payload must contain a 'records' array")
    return [dict(record) if isinstance(record, dict) else {} for record in records]


def parse_payload(body: Union[bytes, str], content_type: Optional[str] = None) -> ParsedPayload:
    if isinstance(body, bytes):
        text = body.decode("utf-8-sig", errors="replace")
    else:
        text = body.lstrip("\ufeff")
    if not text.strip():
        raise BatchParseError("Empty request body")

    payload_format = detect_format(text, content_type)
    if payload_format == PayloadFormat.csv:
        rows = parse_csv(text)
    elif payload_format == PayloadFormat.html:
        rows = parse_html_table(text)
    else:
        rows = parse_json_envelope(text)
    return ParsedPayload(format=payload_format, rows=rows)
