"""
Tool wrapping a plain Python function.

The function declaration is derived from the signature, type hints and
docstring. A parameter named ``tool_context`` is injected, not declared.
"""

import inspect
import logging
import typing
from types import UnionType
from typing import Any, Callable, Dict, List, Optional

from google.genai import types

from .base_tool import BaseTool

logger = logging.getLogger(__name__)

TOOL_CONTEXT_PARAM = "tool_context"

_PYTHON_TO_SCHEMA_TYPE = {
    str: types.Type.STRING,
    int: types.Type.INTEGER,
    float: types.Type.NUMBER,
    bool: types.Type.BOOLEAN,
    list: types.Type.ARRAY,
    tuple: types.Type.ARRAY,
    dict: types.Type.OBJECT,
}


def _schema_for_annotation(annotation: Any) -> types.Schema:
    """Convert a Python type hint to a Gemini schema."""
    origin = typing.get_origin(annotation)
    args = typing.get_args(annotation)

    if origin is typing.Union or origin is UnionType:
        non_null = [arg for arg in args if arg is not type(None)]
        if len(non_null) == 1:
            schema = _schema_for_annotation(non_null[0])
            if len(non_null) != len(args):
                schema.nullable = True
            return schema
        return types.Schema(any_of=[_schema_for_annotation(arg) for arg in non_null])

    if origin is typing.Literal:
        return types.Schema(type=types.Type.STRING, enum=[str(arg) for arg in args])

    if origin in (list, tuple, set):
        item_type = args[0] if args else str
        return types.Schema(type=types.Type.ARRAY, items=_schema_for_annotation(item_type))

    if origin is dict:
        return types.Schema(type=types.Type.OBJECT)

    schema_type = _PYTHON_TO_SCHEMA_TYPE.get(annotation, types.Type.STRING)
    if schema_type == types.Type.ARRAY:
        return types.Schema(type=schema_type, items=types.Schema(type=types.Type.STRING))
    return types.Schema(type=schema_type)


class FunctionTool(BaseTool):
    """Tool backed by a sync or async Python callable."""

    def __init__(self, func: Callable[..., Any], is_long_running: bool = False):
        name = getattr(func, "__name__", type(func).__name__)
        description = inspect.getdoc(func) or ""
        super().__init__(name=name, description=description, is_long_running=is_long_running)
        self.func = func
        self._signature = inspect.signature(func)

    def _declared_parameters(self) -> List[inspect.Parameter]:
        return [
            param for param in self._signature.parameters.values()
            if param.name != TOOL_CONTEXT_PARAM
            and param.kind not in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)
        ]

    def _required_parameters(self) -> List[str]:
        return [
            param.name for param in self._declared_parameters()
            if param.default is inspect.Parameter.empty
        ]

    def get_declaration(self) -> Optional[types.FunctionDeclaration]:
        try:
            hints = typing.get_type_hints(self.func)
        except (NameError, TypeError) as e:
            logger.warning(f"Could not resolve type hints for tool {self.name}: {e}")
            hints = {}

        declared = self._declared_parameters()
        if not declared:
            return types.FunctionDeclaration(name=self.name, description=self.description)

        properties: Dict[str, types.Schema] = {
            param.name: _schema_for_annotation(hints.get(param.name, str))
            for param in declared
        }
        return types.FunctionDeclaration(
            name=self.name,
            description=self.description,
            parameters=types.Schema(
                type=types.Type.OBJECT,
                properties=properties,
                required=self._required_parameters() or None
            )
        )

    async def run_async(self, *, args: Dict[str, Any], tool_context: Any) -> Any:
        kwargs = {
            key: value for key, value in args.items()
            if key in self._signature.parameters and key != TOOL_CONTEXT_PARAM
        }
        if TOOL_CONTEXT_PARAM in self._signature.parameters:
            kwargs[TOOL_CONTEXT_PARAM] = tool_context

        missing = [name for name in self._required_parameters() if name not in kwargs]
        if missing:
            missing_str = "\n".join(missing)
            return {
                "error": (
                    f"Invoking `{self.name}()` failed as the following mandatory input "
                    f"parameters are not present:\n{missing_str}\nYou could retry calling "
                    "this tool, but it is IMPORTANT for you to provide all the mandatory "
                    "parameters."
                )
            }

        result = self.func(**kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result
