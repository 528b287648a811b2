"""Base types and definitions for assistant functions."""

from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass, field, is_dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator

from vea.models.functions import FunctionDescriptor
from vea.models.llm import LLMToolDefinition

FunctionHandler = Callable[[Any, str], Awaitable[dict[str, Any]]]


class FunctionInput(BaseModel):
    """Base input schema for assistant functions.

    Parameters arrive as loosely formatted strings from the model, so
    blank values are dropped (defaults apply) and unknown keys ignored.
    """

    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def drop_blank_values(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        cleaned = {}
        for key, value in data.items():
            if isinstance(value, str):
                value = value.strip()
                if not value or value.lower() in ("null", "none", "undefined"):
                    continue
            cleaned[key] = value
        return cleaned


class EmptyInput(FunctionInput):
    """Input schema for functions that take no parameters."""


@dataclass
class FunctionDefinition:
    """Definition of a function available to the AI assistant."""

    name: str
    description: str
    input_schema_class: type[FunctionInput]
    handler: FunctionHandler
    parameters: dict[str, str] = field(default_factory=dict)

    def get_descriptor(self) -> FunctionDescriptor:
        """Get the catalog entry advertised in the system prompt."""
        return FunctionDescriptor(name=self.name, description=self.description, parameters=self.parameters)

    def get_tool_definition(self) -> LLMToolDefinition:
        """Get the native tool definition for this function."""
        schema = self.input_schema_class.model_json_schema()
        schema.pop("title", None)
        return LLMToolDefinition(name=self.name, description=self.description, input_schema=schema)

    def parse_input(self, raw_input: dict[str, Any]) -> FunctionInput:
        """Parse and validate function input."""
        return self.input_schema_class.model_validate(raw_input)


def count_by(items: list[Any], attribute: str) -> dict[str, int]:
    """Count items grouped by an attribute value."""
    counts: dict[str, int] = {}
    for item in items:
        key = getattr(item, attribute)
        counts[key] = counts.get(key, 0) + 1
    return counts


def as_record(item: Any) -> dict[str, Any]:
    """Convert a data record to a JSON-friendly dict."""
    if is_dataclass(item):
        return asdict(item)
    return dict(item)
