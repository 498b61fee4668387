"""Tool decorator for defining agent tools.

Generates a JSON-schema tool definition from a function's signature and
Google-style docstring, so the same function can be listed to a
tool-calling model and invoked with the model's argument object.
"""

import inspect
import re
from functools import wraps
from typing import Any, Callable, Dict, List, Optional, Type, Union, get_type_hints

# Python types to JSON Schema types
TYPE_MAP: Dict[Type, str] = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
    list: "array",
    dict: "object",
}


def _json_schema_for(python_type: Any) -> Dict[str, Any]:
    """Convert a type hint to a JSON Schema fragment."""
    origin = getattr(python_type, "__origin__", None)
    args = getattr(python_type, "__args__", ())

    if origin is Union:
        # Optional[X] -> schema of X
        for arg in args:
            if arg is not type(None):
                return _json_schema_for(arg)
        return {"type": "string"}

    if origin in (list, List):
        schema: Dict[str, Any] = {"type": "array"}
        if args:
            schema["items"] = _json_schema_for(args[0])
        return schema

    if origin in (dict, Dict):
        return {"type": "object"}

    return {"type": TYPE_MAP.get(python_type, "string")}


def _parse_docstring(docstring: str) -> Dict[str, Any]:
    """Extract the description and per-argument descriptions from a docstring.

    Supports Google-style docstrings:
        '''Short description.

        Args:
            param1: Description of param1
            param2: Description of param2
        '''
    """
    if not docstring:
        return {"description": "", "args": {}}

    description_lines = []
    arg_descriptions: Dict[str, str] = {}
    section = "description"
    current_arg = None
    current_lines: list = []

    def _flush():
        if current_arg and current_lines:
            arg_descriptions[current_arg] = " ".join(current_lines).strip()

    for line in inspect.cleandoc(docstring).split("\n"):
        stripped = line.strip()
        lowered = stripped.lower()

        if lowered in ("args:", "arguments:", "parameters:"):
            section = "args"
            continue
        if lowered in ("returns:", "return:", "yields:", "raises:", "examples:"):
            _flush()
            current_arg, current_lines = None, []
            section = "other"
            continue

        if section == "description":
            description_lines.append(stripped)
        elif section == "args":
            arg_match = re.match(r"^(\w+)\s*:\s*(.*)$", stripped)
            if arg_match:
                _flush()
                current_arg = arg_match.group(1)
                current_lines = [arg_match.group(2)] if arg_match.group(2) else []
            elif current_arg and stripped:
                current_lines.append(stripped)

    _flush()

    description = re.sub(r"\s+", " ", " ".join(description_lines)).strip()
    return {"description": description, "args": arg_descriptions}


def _generate_input_schema(
    func: Callable, arg_descriptions: Dict[str, str]
) -> Dict[str, Any]:
    """Generate a JSON-schema object describing the function's parameters."""
    sig = inspect.signature(func)

    try:
        hints = get_type_hints(func)
    except Exception:
        hints = {}

    properties: Dict[str, Any] = {}
    required: list = []

    for param_name, param in sig.parameters.items():
        if param_name in ("self", "cls") or param.kind in (
            inspect.Parameter.VAR_KEYWORD,
            inspect.Parameter.VAR_POSITIONAL,
        ):
            continue

        prop = _json_schema_for(hints.get(param_name, str))
        if param_name in arg_descriptions:
            prop["description"] = arg_descriptions[param_name]
        if param.default is inspect.Parameter.empty:
            required.append(param_name)
        elif param.default is not None:
            prop["default"] = param.default

        properties[param_name] = prop

    return {
        "type": "object",
        "properties": properties,
        "required": required,
    }


class Tool:
    """Wrapper for a tool function with its schema metadata."""

    def __init__(
        self,
        func: Callable,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ):
        self.func = func
        self.name = name or func.__name__

        parsed = _parse_docstring(func.__doc__ or "")
        self.description = description or parsed["description"] or f"Execute {self.name}"
        self.arg_descriptions = parsed["args"]
        self.input_schema = _generate_input_schema(func, self.arg_descriptions)

        wraps(func)(self)

    def __call__(self, *args, **kwargs) -> Any:
        return self.func(*args, **kwargs)

    async def ainvoke(self, arguments: Dict[str, Any]) -> Any:
        """Invoke with a dict of arguments, awaiting coroutine functions."""
        if inspect.iscoroutinefunction(self.func):
            return await self.func(**arguments)
        return self.func(**arguments)

    def to_schema(self) -> Dict[str, Any]:
        """Tool definition in the shape tool-calling model APIs accept."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }

    def __repr__(self) -> str:
        return f"Tool(name={self.name!r}, description={self.description[:50]!r}...)"


def tool(
    func: Optional[Callable] = None,
    *,
    name: Optional[str] = None,
    description: Optional[str] = None,
) -> Callable:
    """Decorator to create a tool from a function.

    Can be used with or without arguments:

        @tool
        def my_func(x: str) -> str:
            '''Do something.'''
            return x

        @tool(name="custom_name", description="Custom description")
        def another_func(x: str) -> str:
            return x
    """

    def decorator(f: Callable) -> Tool:
        return Tool(f, name=name, description=description)

    if func is not None:
        return decorator(func)
    return decorator
