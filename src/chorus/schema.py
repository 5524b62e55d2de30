from pydantic import BaseModel, Field, field_validator

from chorus.functions import Function, FunctionRegistry


class ModelParameters(BaseModel):
    """Sampling options forwarded to the completion request."""

    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    top_p: float | None = Field(default=None, ge=0.0, le=1.0)
    n: int | None = Field(default=None, ge=1)
    stop: list[str] | None = None
    max_tokens: int | None = Field(default=None, ge=1)
    presence_penalty: float | None = Field(default=None, ge=-2.0, le=2.0)
    frequency_penalty: float | None = Field(default=None, ge=-2.0, le=2.0)
    seed: int | None = None
    user: str | None = None

    def as_request_kwargs(self) -> dict:
        return self.model_dump(exclude_none=True)


class GenerationSchema(BaseModel):
    """Configuration of an :class:`~chorus.session.LLMSession`.

    Args:
        model: Model name sent to the provider.
        system_prompt: Seeded as the first message of a fresh context.
        functions: Functions the model may call.
        inject_into_context: Append streamed assistant output to the
            context while generating.
        max_rounds: Upper bound on provider round-trips per generation.
            ``None`` lets the model decide when to stop.
        parameters: Sampling options.
    """

    model: str = "gpt-4o-mini"
    system_prompt: str | None = None
    functions: list[Function] = []
    inject_into_context: bool = True
    max_rounds: int | None = Field(default=None, ge=1)
    parameters: ModelParameters = ModelParameters()

    @field_validator("functions")
    @classmethod
    def unique_function_names(cls, functions: list[Function]) -> list[Function]:
        seen: set[str] = set()
        for fn in functions:
            if fn.name in seen:
                raise ValueError(f"Duplicate function name: '{fn.name}'")
            seen.add(fn.name)
        return functions

    def registry(self) -> FunctionRegistry:
        return FunctionRegistry(self.functions)
