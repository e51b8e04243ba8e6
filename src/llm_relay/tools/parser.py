"""Recover tool calls written as JSON inside plain model text.

Used only when a provider produced no native tool calls. Two forms are
recognised inside ```json fenced blocks:

    {"tool": "read_file", "parameters": {"path": "a.txt"}}
    {"read_file": {"path": "a.txt"}}

The second form only matches names in ``KNOWN_TOOLS``. Any fenced block
that happens to have either shape is treated as a call, so false
positives are possible on JSON the model meant as an example.
"""

import json
import logging
import re
from typing import Any
from uuid import uuid4

from ..models.turn import ToolInvocation

logger = logging.getLogger(__name__)

KNOWN_TOOLS = {
    "read_file", "create_file", "edit_file", "list_directory", "delete_file",
    "bash", "glob", "grep",
    "todo_write", "todo_read",
    "mermaid", "get_diagnostics", "format_file", "undo_edit",
    "web_search",
}

FENCED_JSON_PATTERN = re.compile(r"```json\s*\n([\s\S]*?)\n```")
_EXCESS_BLANK_LINES = re.compile(r"\n\s*\n\s*\n")


def _new_call_id() -> str:
    return f"call_{uuid4().hex[:12]}"


def _load_object(payload: str) -> dict[str, Any] | None:
    try:
        data = json.loads(payload)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def _invocation_from_object(data: dict[str, Any], allow_known_keys: bool) -> ToolInvocation | None:
    if "tool" in data and "parameters" in data:
        parameters = data["parameters"] if isinstance(data["parameters"], dict) else {}
        return ToolInvocation(id=_new_call_id(), name=str(data["tool"]), parameters=parameters)

    if allow_known_keys:
        for key, value in data.items():
            if isinstance(value, dict) and key in KNOWN_TOOLS:
                return ToolInvocation(id=_new_call_id(), name=key, parameters=value)
    return None


def parse_embedded_tool_calls(text: str) -> tuple[list[ToolInvocation], str]:
    """Extract tool calls from ``text``.

    Returns:
        Tuple of (invocations, cleaned_text). Fenced blocks that produced a
        call are removed from the cleaned text; a bare JSON object is left
        in place.
    """
    invocations: list[ToolInvocation] = []
    cleaned = text

    for match in FENCED_JSON_PATTERN.finditer(text):
        data = _load_object(match.group(1))
        if data is None:
            logger.debug("Skipping fenced block that is not a JSON object")
            continue
        invocation = _invocation_from_object(data, allow_known_keys=True)
        if invocation:
            invocations.append(invocation)
            cleaned = cleaned.replace(match.group(0), "", 1)

    if not invocations:
        stripped = text.strip()
        if stripped.startswith("{") and stripped.endswith("}"):
            data = _load_object(stripped)
            if data is not None:
                invocation = _invocation_from_object(data, allow_known_keys=False)
                if invocation:
                    invocations.append(invocation)

    if invocations:
        logger.debug(f"Recovered {len(invocations)} embedded tool call(s): {[i.name for i in invocations]}")

    cleaned = _EXCESS_BLANK_LINES.sub("\n\n", cleaned).strip()
    return invocations, cleaned
