"""Business functions the conversational AI assistant can call."""

from vea.functions.directive import parse_function_call, strip_emphasis
from vea.functions.registry import FunctionRegistry

__all__ = ["FunctionRegistry", "parse_function_call", "strip_emphasis"]
