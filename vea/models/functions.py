"""Function registry data models."""

import json
from typing import Any

from pydantic import BaseModel, Field, model_validator


class FunctionDescriptor(BaseModel):
    """Static catalog entry advertised to the language model."""

    name: str
    description: str
    parameters: dict[str, str] = Field(default_factory=dict)

    def describe(self) -> str:
        """Render the entry for the system prompt."""
        text = f"{self.name}: {self.description}"
        if self.parameters:
            text += f"\nParameters: {json.dumps(self.parameters, separators=(',', ':'), ensure_ascii=False)}"
        return text


class FunctionCallRequest(BaseModel):
    """A function call extracted from a model reply."""

    function_name: str
    parameters: dict[str, str] = Field(default_factory=dict)

    def as_directive(self) -> str:
        """Render the call in the textual directive grammar."""
        args = ", ".join(f'{key}: "{value}"' for key, value in self.parameters.items())
        return f"FUNCTION_CALL: {self.function_name}({args})"


class FunctionResult(BaseModel):
    """Uniform dispatcher envelope."""

    success: bool
    data: Any = None
    error: str | None = None

    @model_validator(mode="after")
    def check_envelope(self) -> "FunctionResult":
        """A result carries an error exactly when it failed."""
        if self.success and self.error is not None:
            raise ValueError("Successful results cannot carry an error")
        if not self.success and not self.error:
            raise ValueError("Failed results must carry an error message")
        return self

    @classmethod
    def ok(cls, data: Any) -> "FunctionResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> "FunctionResult":
        return cls(success=False, error=error)
