import inspect
import json
import re
from collections.abc import Iterable, Iterator, Mapping
from typing import Any, Callable

from pydantic import BaseModel, Field, create_model


def _parse_param_descriptions(func: Callable) -> dict[str, str]:
    """Read parameter descriptions from a Google-style ``Args:`` section."""
    doc = inspect.getdoc(func) or ""
    descriptions: dict[str, str] = {}
    in_args = False
    current = None
    for line in doc.splitlines():
        stripped = line.strip()
        if stripped in ("Args:", "Arguments:", "Parameters:"):
            in_args = True
            continue
        if not in_args:
            continue
        if not stripped:
            current = None
            continue
        if not line.startswith((" ", "\t")):
            break
        match = re.match(r"^(\w+)\s*(\([^)]*\))?\s*:\s*(.*)$", stripped)
        if match:
            current = match.group(1)
            descriptions[current] = match.group(3)
        elif current is not None:
            descriptions[current] = f"{descriptions[current]} {stripped}".strip()
    return descriptions


def _summary(func: Callable) -> str:
    doc = inspect.getdoc(func) or ""
    return doc.split("\n\n", 1)[0].strip()


def _build_parameters_model(func: Callable, name: str) -> type[BaseModel]:
    descriptions = _parse_param_descriptions(func)
    fields: dict[str, Any] = {}
    for param_name, param in inspect.signature(func).parameters.items():
        if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        annotation = str if param.annotation is param.empty else param.annotation
        default = ... if param.default is param.empty else param.default
        fields[param_name] = (
            annotation,
            Field(default, description=descriptions.get(param_name)),
        )
    return create_model(f"{name}_parameters", **fields)


class Function(BaseModel):
    """A callable the model may request during generation.

    Use the :func:`function` decorator rather than building one by hand.
    The parameter schema is derived from the signature, parameter
    descriptions from the docstring's ``Args:`` section.
    """

    func: Callable = Field(exclude=True)
    name: str
    description: str = ""
    parameters_model: type[BaseModel] = Field(exclude=True)
    model_config = {"arbitrary_types_allowed": True}

    @property
    def parameters(self) -> dict:
        schema = self.parameters_model.model_json_schema()
        schema.pop("title", None)
        schema.setdefault("properties", {})
        return schema

    def openai_schema(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }

    def inject_parameters(self, raw_arguments: str | bytes) -> dict[str, Any]:
        """Validate raw JSON arguments against the function's parameters.

        Raises:
            pydantic.ValidationError: If the payload is not valid JSON or
                does not match the signature.
        """
        if isinstance(raw_arguments, bytes):
            raw_arguments = raw_arguments.decode("utf-8")
        if not raw_arguments.strip():
            raw_arguments = "{}"
        parsed = self.parameters_model.model_validate_json(raw_arguments)
        return dict(parsed)

    async def execute(self, arguments: dict[str, Any]) -> str | None:
        result = self.func(**arguments)
        if inspect.isawaitable(result):
            result = await result
        if result is None or isinstance(result, str):
            return result
        if isinstance(result, BaseModel):
            return result.model_dump_json()
        return json.dumps(result, default=str)


def function(
    func: Callable | None = None,
    *,
    name: str | None = None,
    description: str | None = None,
):
    """Turn a plain or async callable into a :class:`Function`.

    Example::

        @function
        async def get_weather(city: str) -> str:
            \"\"\"Current weather for a city.

            Args:
                city: Name of the city.
            \"\"\"
            return "72F and sunny"
    """
    def wrap(f: Callable) -> Function:
        fn_name = name or f.__name__
        return Function(
            func=f,
            name=fn_name,
            description=description if description is not None else _summary(f),
            parameters_model=_build_parameters_model(f, fn_name),
        )

    if func is not None:
        return wrap(func)
    return wrap


class FunctionRegistry(Mapping[str, Function]):
    """Read-only lookup of functions by name."""

    def __init__(self, functions: Iterable[Function] = ()):
        self._functions: dict[str, Function] = {}
        for fn in functions:
            if fn.name in self._functions:
                raise ValueError(f"Duplicate function name: '{fn.name}'")
            self._functions[fn.name] = fn

    def __getitem__(self, name: str) -> Function:
        return self._functions[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._functions)

    def __len__(self) -> int:
        return len(self._functions)

    def names(self) -> list[str]:
        return list(self._functions)

    def lookup(self, name: str) -> Function | None:
        return self._functions.get(name)

    def schemas(self) -> list[dict]:
        return [fn.openai_schema() for fn in self._functions.values()]
