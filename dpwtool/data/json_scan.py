"""Hand-rolled field extraction from raw JSON text.

Backend responses are small, come from trusted hosts, and only a handful of
fields are ever needed, so values are located by scanning the text rather
than building a full document model.

Bracket and brace matching runs a three-state scanner (outside a string,
inside a string, just after a backslash inside a string) so that bracket
characters inside quoted values never affect nesting depth.

Nothing in this module raises: absence is reported as ``None`` (or
``NOT_FOUND`` for indices, an empty list for splits) and the caller decides
whether that is a failure.
"""

from enum import Enum

NOT_FOUND = -1

_SIMPLE_ESCAPES = {
    '"': '"',
    "\\": "\\",
    "/": "/",
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
}


class _ScanState(Enum):
    OUTSIDE = "OUTSIDE"
    IN_STRING = "IN_STRING"
    ESCAPE = "ESCAPE"


def _advance(state: _ScanState, char: str) -> _ScanState:
    """Next scanner state after consuming ``char``."""
    if state is _ScanState.OUTSIDE:
        return _ScanState.IN_STRING if char == '"' else _ScanState.OUTSIDE
    if state is _ScanState.IN_STRING:
        if char == "\\":
            return _ScanState.ESCAPE
        if char == '"':
            return _ScanState.OUTSIDE
        return _ScanState.IN_STRING
    return _ScanState.IN_STRING


# ---------------------------------------------------------------------------
# Field lookup
# ---------------------------------------------------------------------------


def _value_start(json: str, name: str) -> int:
    """Index of the first non-blank character after ``"name":``.

    Occurrences of ``"name"`` that are not followed by a colon (for example a
    string value that happens to equal the field name) are skipped.
    """
    key = f'"{name}"'
    search_from = 0
    while True:
        key_pos = json.find(key, search_from)
        if key_pos == NOT_FOUND:
            return NOT_FOUND
        pos = _skip_whitespace(json, key_pos + len(key))
        if pos < len(json) and json[pos] == ":":
            pos = _skip_whitespace(json, pos + 1)
            return pos if pos < len(json) else NOT_FOUND
        search_from = key_pos + 1


def _skip_whitespace(json: str, pos: int) -> int:
    while pos < len(json) and json[pos].isspace():
        pos += 1
    return pos


def _read_string(json: str, quote_pos: int) -> str | None:
    """Decode the quoted string starting at ``quote_pos``.

    Returns None when the closing quote is missing.
    """
    out: list[str] = []
    pos = quote_pos + 1
    while pos < len(json):
        char = json[pos]
        if char == '"':
            return "".join(out)
        if char != "\\":
            out.append(char)
            pos += 1
            continue

        if pos + 1 >= len(json):
            return None
        escaped = json[pos + 1]
        if escaped in _SIMPLE_ESCAPES:
            out.append(_SIMPLE_ESCAPES[escaped])
            pos += 2
        elif escaped == "u" and _is_hex(json[pos + 2:pos + 6]):
            code = int(json[pos + 2:pos + 6], 16)
            pos += 6
            # Combine a UTF-16 surrogate pair into one code point.
            if 0xD800 <= code <= 0xDBFF and json[pos:pos + 2] == "\\u" and _is_hex(json[pos + 2:pos + 6]):
                low = int(json[pos + 2:pos + 6], 16)
                if 0xDC00 <= low <= 0xDFFF:
                    code = 0x10000 + ((code - 0xD800) << 10) + (low - 0xDC00)
                    pos += 6
            out.append(chr(code))
        else:
            # Unknown escape: keep it as written.
            out.append(escaped)
            pos += 2
    return None


def _is_hex(text: str) -> bool:
    return len(text) == 4 and all(c in "0123456789abcdefABCDEF" for c in text)


def find_string_field(json: str, name: str) -> str | None:
    """Return the decoded string value of field ``name``.

    ``null``, missing fields, non-string values and unterminated strings all
    return None.
    """
    pos = _value_start(json, name)
    if pos == NOT_FOUND or json[pos] != '"':
        return None
    return _read_string(json, pos)


def find_int_field(json: str, name: str) -> int | None:
    """Return the integer value of field ``name``, or None."""
    pos = _value_start(json, name)
    if pos == NOT_FOUND:
        return None
    end = pos
    if json[end] == "-":
        end += 1
    digits_start = end
    while end < len(json) and json[end].isdigit():
        end += 1
    if end == digits_start:
        return None
    return int(json[pos:end])


# ---------------------------------------------------------------------------
# Nesting
# ---------------------------------------------------------------------------


def find_matching_bracket(json: str, open_index: int, open_char: str, close_char: str) -> int:
    """Index of the ``close_char`` balancing the ``open_char`` at ``open_index``.

    Returns NOT_FOUND when ``open_index`` does not hold ``open_char`` or the
    text ends before depth returns to zero.
    """
    if open_index < 0 or open_index >= len(json) or json[open_index] != open_char:
        return NOT_FOUND

    depth = 0
    state = _ScanState.OUTSIDE
    for i in range(open_index, len(json)):
        char = json[i]
        if state is _ScanState.OUTSIDE:
            if char == open_char:
                depth += 1
            elif char == close_char:
                depth -= 1
                if depth == 0:
                    return i
        state = _advance(state, char)
    return NOT_FOUND


def split_top_level_objects(array_body: str) -> list[str]:
    """Split the inside of a JSON array into its top-level object substrings.

    Nested objects stay inside their parent. Unbalanced braces yield an
    empty list.
    """
    objects: list[str] = []
    depth = 0
    start = 0
    state = _ScanState.OUTSIDE
    for i, char in enumerate(array_body):
        if state is _ScanState.OUTSIDE:
            if char == "{":
                if depth == 0:
                    start = i
                depth += 1
            elif char == "}":
                depth -= 1
                if depth < 0:
                    return []
                if depth == 0:
                    objects.append(array_body[start:i + 1])
        state = _advance(state, char)

    if depth != 0 or state is not _ScanState.OUTSIDE:
        return []
    return objects


def find_array_body(json: str, name: str) -> str | None:
    """Text between the brackets of array field ``name``, or None."""
    pos = _value_start(json, name)
    if pos == NOT_FOUND or json[pos] != "[":
        return None
    end = find_matching_bracket(json, pos, "[", "]")
    if end == NOT_FOUND:
        return None
    return json[pos + 1:end]


def find_object(json: str, name: str) -> str | None:
    """Text of object field ``name`` including its braces, or None."""
    pos = _value_start(json, name)
    if pos == NOT_FOUND or json[pos] != "{":
        return None
    end = find_matching_bracket(json, pos, "{", "}")
    if end == NOT_FOUND:
        return None
    return json[pos:end + 1]
