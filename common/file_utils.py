# common/file_utils.py
# -*- coding: utf-8 -*-
"""
Flat key/value file helpers: `.env`-style `KEY=value` files and
space-delimited files such as redis.conf (`maxmemory 256mb`).

The functions here are pure: they take and return file text. Writing the
result back is the caller's job, so that it can go through the command
runner and honour dry-run.
"""

import logging
import re
from typing import Dict, List, Mapping

module_logger = logging.getLogger(__name__)

# Characters that can be written unquoted on the right-hand side.
_PLAIN_VALUE_RE = re.compile(r"^[A-Za-z0-9_./:@,+%-]*$")
# Single-quoted values are taken literally, so they cannot hold these.
_SINGLE_QUOTE_UNSAFE_RE = re.compile(r"['\\\r\n]")


def _double_quote(value: str, escape_dollar: bool = True) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    if escape_dollar:
        escaped = escaped.replace("$", "\\$")
    escaped = escaped.replace("\r", "\\r").replace("\n", "\\n")
    return f'"{escaped}"'


def quote_value(value: str) -> str:
    """
    Render a value so it cannot break the line structure of the file.

    Plain values are written as-is. Values containing `$` are single-quoted
    when they can be, since dotenv parsers expand `${VAR}` inside double
    quotes but never inside single quotes. Anything else is double-quoted
    with backslash, double quote, `$`, carriage return and newline escaped,
    which keeps the assignment on one line and is understood by Laravel's
    dotenv parser and by redis.conf.
    """
    if _PLAIN_VALUE_RE.match(value):
        return value
    if "$" in value and not _SINGLE_QUOTE_UNSAFE_RE.search(value):
        return f"'{value}'"
    return _double_quote(value)


def _key_pattern(key: str, delimiter: str) -> "re.Pattern[str]":
    if delimiter.strip():
        return re.compile(rf"^\s*{re.escape(key)}\s*{re.escape(delimiter)}")
    # Whitespace-delimited: the key must be followed by whitespace or EOL so
    # that `maxmemory` does not match `maxmemory-policy`.
    return re.compile(rf"^\s*{re.escape(key)}(\s+|$)")


def format_line(key: str, value: str, delimiter: str = "=") -> str:
    return f"{key}{delimiter}{quote_value(value)}"


def upsert_key(
    text: str, key: str, value: str, delimiter: str = "="
) -> str:
    """
    Set `key` to `value` in file text.

    If one or more lines assign the key, the first is replaced in place and
    any later duplicates are dropped; otherwise one line is appended.
    Comment lines are never treated as assignments.
    """
    pattern = _key_pattern(key, delimiter)
    new_line = format_line(key, value, delimiter)
    lines: List[str] = text.splitlines()
    result: List[str] = []
    replaced = False

    for line in lines:
        if not line.lstrip().startswith("#") and pattern.match(line):
            if not replaced:
                result.append(new_line)
                replaced = True
            continue
        result.append(line)

    if not replaced:
        result.append(new_line)

    return "\n".join(result) + "\n"


def upsert_keys(
    text: str, values: Mapping[str, str], delimiter: str = "="
) -> str:
    """Apply `upsert_key` for every item of `values`, in order."""
    for key, value in values.items():
        text = upsert_key(text, key, value, delimiter)
    return text


def read_key(text: str, key: str, delimiter: str = "=") -> str:
    """
    Return the (unquoted) value assigned to `key`, or "" when absent.
    """
    pattern = _key_pattern(key, delimiter)
    for line in text.splitlines():
        if line.lstrip().startswith("#"):
            continue
        match = pattern.match(line)
        if match:
            return unquote_value(line[match.end():].strip())
    return ""


def unquote_value(raw: str) -> str:
    """Inverse of `quote_value`. Single-quoted values are literal."""
    if len(raw) >= 2 and raw[0] == raw[-1] and raw[0] in ("'", '"'):
        inner = raw[1:-1]
        if raw[0] == "'":
            return inner
        out: List[str] = []
        escapes = {"n": "\n", "r": "\r", '"': '"', "\\": "\\", "$": "$"}
        i = 0
        while i < len(inner):
            char = inner[i]
            if char == "\\" and i + 1 < len(inner) and inner[i + 1] in escapes:
                out.append(escapes[inner[i + 1]])
                i += 2
                continue
            out.append(char)
            i += 1
        return "".join(out)
    return raw


def render_assignments(values: Dict[str, str]) -> str:
    """
    Render a whole `KEY="value"` file, one assignment per line, every value
    double-quoted. `$` is left as-is: the file must be read back with
    variable expansion turned off.
    """
    lines = []
    for key, value in values.items():
        lines.append(f"{key}={_double_quote(value, escape_dollar=False)}")
    return "\n".join(lines) + "\n"
