"""
Best-effort repair of malformed JSON returned by the text model.

Repairs are an ordered chain of small strategies. Each takes the current
text and returns a repaired version, or None when it has nothing to fix.
Strategies apply cumulatively and the text is re-parsed after every change,
so each one can be tested and extended on its own.
"""

import json
import re
from typing import Any, Callable, List, Optional, Tuple

from agents.editing.exceptions import FormatError
from setup_logging_optimized import get_logger, preview

logger = get_logger(__name__)

RepairStrategy = Callable[[str], Optional[str]]

_CLOSERS = {"{": "}", "[": "]"}
_VALID_ESCAPES = set('"\\/bfnrtu')
_HEX4_RE = re.compile(r'[0-9a-fA-F]{4}')
_KEY_AHEAD_RE = re.compile(r'\s*"(?:[^"\\\n]|\\.)*"\s*:')


def _closers_for(stack: List[str]) -> str:
    return "".join(_CLOSERS[opener] for opener in reversed(stack))


def _next_significant(text: str, start: int) -> int:
    i = start
    while i < len(text) and text[i] in " \t\r\n":
        i += 1
    return i


def _balanced_end(text: str, start: int) -> Optional[int]:
    """Index just past the '}' closing the object at start, ignoring braces inside strings."""
    depth = 0
    in_string = False
    escape = False
    for i in range(start, len(text)):
        char = text[i]
        if in_string:
            if escape:
                escape = False
            elif char == "\\":
                escape = True
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return i + 1
    return None


def extract_json_object(text: str) -> Optional[str]:
    """
    Drop prose before the first '{' and after the object it opens.

    Braces inside string literals (CSS in the HTML, for instance) do not
    count. When the object never closes only the leading prose is removed,
    leaving the cut-off tail for close_truncated_json.
    """
    first = text.find("{")
    if first == -1:
        return None
    end = _balanced_end(text, first)
    candidate = text[first:end] if end is not None else text[first:]
    return candidate if candidate != text else None


def close_truncated_json(text: str) -> Optional[str]:
    """
    Close a response that was cut off mid-way.

    Only applies when the text does not end with '}'. A value string that is
    still open at the end is closed where it stops, so the key survives and
    a truncated document can be detected downstream. Otherwise the text is
    cut back to the last complete value. Open arrays and objects are then
    closed in order.
    """
    stripped = text.rstrip()
    if not stripped or stripped.endswith("}"):
        return None

    stack: List[str] = []
    in_string = False
    escape = False
    string_is_value = False
    after_colon = False
    safe_cut: Optional[Tuple[int, List[str]]] = None

    for i, char in enumerate(stripped):
        if in_string:
            if escape:
                escape = False
            elif char == "\\":
                escape = True
            elif char == '"':
                in_string = False
                if string_is_value:
                    safe_cut = (i + 1, list(stack))
                    after_colon = False
            continue

        if char == '"':
            in_string = True
            top = stack[-1] if stack else None
            string_is_value = top != "{" or after_colon
        elif char in "{[":
            stack.append(char)
            after_colon = False
        elif char in "}]":
            if stack:
                stack.pop()
            safe_cut = (i + 1, list(stack))
            after_colon = False
        elif char == ":":
            after_colon = True
        elif char == ",":
            safe_cut = (i, list(stack))
            after_colon = False

    if in_string and string_is_value:
        body = stripped[:-1] if escape else stripped
        repaired = body + '"' + _closers_for(stack)
    elif safe_cut is not None:
        cut, cut_stack = safe_cut
        repaired = stripped[:cut].rstrip().rstrip(",") + _closers_for(cut_stack)
    else:
        return None

    return repaired if repaired != text else None


def _is_closing_quote(text: str, index: int, container: Optional[str], is_key: bool) -> bool:
    """Decide whether the quote at index ends the current string literal."""
    j = _next_significant(text, index + 1)
    if j >= len(text):
        return True
    nxt = text[j]
    if is_key:
        return nxt == ":"
    if container is None:
        return False
    if nxt == _CLOSERS[container]:
        return True
    if nxt != ",":
        return False
    k = _next_significant(text, j + 1)
    if k >= len(text):
        return True
    if container == "{":
        return bool(_KEY_AHEAD_RE.match(text, k))
    return text[k] in '"{[-0123456789tfn'


def escape_string_contents(text: str) -> Optional[str]:
    """
    Escape characters inside string literals that break JSON.

    Stray quotes that are not string delimiters, invalid backslash escapes
    and raw newlines, carriage returns, tabs and other control characters
    are escaped. An unterminated string and unbalanced brackets are closed.
    """
    out: List[str] = []
    stack: List[str] = []
    in_string = False
    is_key = False
    after_colon = False
    i = 0
    n = len(text)

    while i < n:
        char = text[i]
        if not in_string:
            if char == '"':
                in_string = True
                top = stack[-1] if stack else None
                is_key = top == "{" and not after_colon
            elif char in "{[":
                stack.append(char)
                after_colon = False
            elif char in "}]":
                if stack:
                    stack.pop()
                after_colon = False
            elif char == ":":
                after_colon = True
            elif char == ",":
                after_colon = False
            out.append(char)
            i += 1
            continue

        if char == "\\":
            nxt = text[i + 1] if i + 1 < n else ""
            if nxt in _VALID_ESCAPES and nxt and (nxt != "u" or _HEX4_RE.match(text, i + 2)):
                out.append(char + nxt)
                i += 2
            else:
                out.append("\\\\")
                i += 1
            continue
        if char == '"':
            container = stack[-1] if stack else None
            if _is_closing_quote(text, i, container, is_key):
                in_string = False
                if not is_key:
                    after_colon = False
                out.append(char)
            else:
                out.append('\\"')
            i += 1
            continue
        if char == "\n":
            out.append("\\n")
        elif char == "\r":
            out.append("\\r")
        elif char == "\t":
            out.append("\\t")
        elif ord(char) < 0x20:
            out.append(f"\\u{ord(char):04x}")
        else:
            out.append(char)
        i += 1

    if in_string:
        out.append('"')
    repaired = "".join(out) + _closers_for(stack)
    return repaired if repaired != text else None


DEFAULT_STRATEGIES: List[Tuple[str, RepairStrategy]] = [
    ("extract_json_object", extract_json_object),
    ("close_truncated_json", close_truncated_json),
    ("escape_string_contents", escape_string_contents),
]


class JsonRepairChain:
    """Strict parse first, then the repair strategies in order."""

    def __init__(self, strategies: Optional[List[Tuple[str, RepairStrategy]]] = None):
        self.strategies = list(strategies if strategies is not None else DEFAULT_STRATEGIES)

    def parse(self, text: str) -> Tuple[Any, List[str]]:
        """Return (value, applied strategy names); raise FormatError if nothing works."""
        try:
            return json.loads(text), []
        except json.JSONDecodeError as e:
            original_error = e
            logger.warning(f"[JSON_REPAIR] Strict parse failed: {e}; response starts {preview(text, 120)!r}")

        current = text
        applied: List[str] = []
        last_error: Exception = original_error
        for name, strategy in self.strategies:
            repaired = strategy(current)
            if repaired is None:
                continue
            applied.append(name)
            current = repaired
            try:
                value = json.loads(current)
            except json.JSONDecodeError as e:
                last_error = e
                logger.debug(f"[JSON_REPAIR] Still invalid after {name}: {e}")
                continue
            logger.info(f"[JSON_REPAIR] Parsed after repairs: {', '.join(applied)}")
            return value, applied

        raise FormatError(
            f"Failed to parse model response as JSON even after repair: {last_error}",
            original_error=str(original_error),
            repair_error=str(last_error) if applied else None,
            strategies=applied,
        )
