"""Locate and clean up JSON inside model output before parsing."""

import json
import re
from typing import Any

# A fenced block, with or without a "json" language tag
CODE_BLOCK_JSON_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?```", re.DOTALL | re.IGNORECASE)
JSON_LABEL_RE = re.compile(r"json:", re.IGNORECASE)
INVALID_ESCAPE_RE = re.compile(r'\\(?!["\\/bfnrtu])')


def _balanced_span(text: str, start: int) -> str | None:
    """Return the balanced ``{...}`` / ``[...]`` starting at *start*.

    Tracks string state so brackets inside string values are ignored.
    Returns ``None`` when the structure is never closed.
    """
    opener = text[start]
    closer = "}" if opener == "{" else "]"
    depth = 0
    in_string = False
    i = start
    length = len(text)

    while i < length:
        ch = text[i]
        if in_string:
            if ch == "\\":
                i += 2
                continue
            if ch == '"':
                in_string = False
        else:
            if ch == '"':
                in_string = True
            elif ch == opener:
                depth += 1
            elif ch == closer:
                depth -= 1
                if depth == 0:
                    return text[start : i + 1]
        i += 1

    return None


def extract_json_candidate(text: str) -> str | None:
    """Find the most likely JSON document in *text*.

    Tried in order: a fenced code block, the text after a ``JSON:`` label,
    the first balanced object or array, and finally the whole text when it
    starts like JSON (an unclosed document is still worth healing).
    Returns ``None`` when nothing JSON-like is present.
    """
    if not text:
        return None

    match = CODE_BLOCK_JSON_RE.search(text)
    if match:
        return match.group(1).strip()

    parts = JSON_LABEL_RE.split(text)
    if len(parts) > 1:
        after_label = parts[-1].strip()
        if after_label.startswith(("{", "[")):
            return after_label

    for i, ch in enumerate(text):
        if ch in "{[":
            span = _balanced_span(text, i)
            if span is not None:
                return span.strip()
            break

    trimmed = text.strip()
    if trimmed.startswith(("{", "[")):
        return trimmed
    return None


def cleanup_syntax(json_str: str) -> str:
    """Remove trailing commas before a closing brace or bracket.

    Text inside string values is left untouched.
    """
    out: list[str] = []
    in_string = False
    i = 0
    length = len(json_str)

    while i < length:
        ch = json_str[i]
        if in_string:
            out.append(ch)
            if ch == "\\" and i + 1 < length:
                out.append(json_str[i + 1])
                i += 2
                continue
            if ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
            out.append(ch)
        elif ch == ",":
            j = i + 1
            while j < length and json_str[j].isspace():
                j += 1
            if j < length and json_str[j] in "}]":
                i = j
                continue
            out.append(ch)
        else:
            out.append(ch)
        i += 1

    return "".join(out)


def loads_lenient(json_str: str) -> Any:
    """Parse JSON, applying deterministic local repairs only when needed.

    Valid JSON is returned exactly as parsed. Otherwise tries the string
    without trailing commas, then with lone backslashes escaped, then with
    control characters removed.

    Raises:
        json.JSONDecodeError: If parsing fails even after the repairs.
    """
    try:
        return json.loads(json_str)
    except json.JSONDecodeError:
        pass

    cleaned = cleanup_syntax(json_str)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    # LLMs often emit \n-style escapes inside formulas that should be \\n
    fixed = INVALID_ESCAPE_RE.sub(r"\\\\", cleaned)
    try:
        return json.loads(fixed)
    except json.JSONDecodeError:
        pass

    fixed = re.sub(r"[\x00-\x1f\x7f-\x9f]", "", fixed)
    return json.loads(fixed)


def parse_json_payload(text: str) -> Any:
    """Parse *text* as JSON, extracting a candidate from prose if needed.

    A payload that is already valid JSON is parsed as-is; extraction and
    repairs only run when that fails.

    Raises:
        json.JSONDecodeError: If no candidate exists or it cannot be parsed.
    """
    if text:
        try:
            return json.loads(text.strip())
        except json.JSONDecodeError:
            pass

    candidate = extract_json_candidate(text)
    if candidate is None:
        raise json.JSONDecodeError("No JSON-like content found", text or "", 0)
    return loads_lenient(candidate)
