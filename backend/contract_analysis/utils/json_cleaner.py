"""
JSON cleanup for LLM replies.

Handles markdown code fences, chatter around the JSON object and raw
control characters inside string values. Anything still not valid JSON
after that is reported as an error; replies are never repaired.
"""
import json
import logging
import re
from typing import Any, Optional, Tuple

logger = logging.getLogger(__name__)

_FENCE_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


def strip_code_fences(text: str) -> str:
    """Return the largest fenced block of ``text``, or ``text`` unchanged."""
    matches = _FENCE_PATTERN.findall(text)
    if matches:
        return max(matches, key=len).strip()
    return text.strip()


def escape_control_chars_in_strings(s: str) -> str:
    """Escape raw control characters that appear inside JSON strings."""
    result = []
    in_string = False
    i = 0

    while i < len(s):
        char = s[i]

        # Keep existing escapes as-is
        if char == "\\" and i + 1 < len(s) and in_string:
            result.append(char)
            result.append(s[i + 1])
            i += 2
            continue

        if char == '"':
            in_string = not in_string
            result.append(char)
            i += 1
            continue

        if in_string:
            if char == "\n":
                result.append("\\n")
            elif char == "\r":
                result.append("\\r")
            elif char == "\t":
                result.append("\\t")
            elif ord(char) < 32:
                result.append(" ")
            else:
                result.append(char)
        else:
            result.append(char)

        i += 1

    return "".join(result)


def clean_llm_json_response(raw_response: Optional[str]) -> Tuple[Optional[Any], Optional[str]]:
    """
    Decode the JSON object carried by an LLM reply.

    Returns:
        (parsed, None) on success, (None, error_message) otherwise
    """
    if not raw_response or not raw_response.strip():
        return None, "Empty response"

    text = strip_code_fences(raw_response)

    start_pos = text.find("{")
    if start_pos == -1:
        return None, "No JSON object found"
    if start_pos > 0:
        text = text[start_pos:]

    text = escape_control_chars_in_strings(text)

    try:
        return json.loads(text), None
    except json.JSONDecodeError as e:
        return None, f"JSON parse error at position {e.pos}: {e.msg}"
