"""Textual function-call directives embedded in model replies.

The model is prompted to answer with a line such as::

    FUNCTION_CALL: create_task(title: "Call Acme", priority: high)

Only the first directive in a reply is honored. Values containing commas
or closing parentheses are not supported by this grammar.
"""

import json
import re
from typing import Any

from vea.models.functions import FunctionCallRequest

FUNCTION_CALL_PATTERN = re.compile(r"FUNCTION_CALL:\s*(\w+)\((.*?)\)")
_SURROUNDING_QUOTES = re.compile(r"^[\"']|[\"']$")


def strip_emphasis(text: str) -> str:
    """Remove markdown bold and italic asterisks."""
    return text.replace("**", "").replace("*", "")


def parse_parameters(raw: str) -> dict[str, str]:
    """Parse ``key: value, key: value`` pairs into a flat string mapping."""
    parameters: dict[str, str] = {}
    if not raw.strip():
        return parameters

    for pair in raw.split(","):
        key, _, value = pair.partition(":")
        key = key.strip()
        if not key:
            continue
        parameters[key] = _SURROUNDING_QUOTES.sub("", value.strip())

    return parameters


def parse_function_call(text: str) -> FunctionCallRequest | None:
    """Find the first function-call directive in a model reply.

    Emphasis markers are stripped first so ``**FUNCTION_CALL:**`` still matches.
    """
    match = FUNCTION_CALL_PATTERN.search(strip_emphasis(text))
    if not match:
        return None

    name, raw_parameters = match.groups()
    return FunctionCallRequest(function_name=name, parameters=parse_parameters(raw_parameters))


def _stringify(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value)


def from_tool_use(name: str, tool_input: dict[str, Any]) -> FunctionCallRequest:
    """Build a call request from a native tool-use block."""
    return FunctionCallRequest(
        function_name=name,
        parameters={key: _stringify(value) for key, value in (tool_input or {}).items() if value is not None},
    )
