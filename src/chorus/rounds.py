import logging
from collections.abc import AsyncIterator

from chorus.context import ConversationContext
from chorus.errors import classify_error
from chorus.functions import FunctionRegistry
from chorus.instrumentation import (
    completion_span,
    record_error,
    record_round,
    record_usage,
)
from chorus.provider import CompletionProvider
from chorus.schema import GenerationSchema
from chorus.streaming import AccumulatedChoice, FunctionCallRequest, apply_fragment

logger = logging.getLogger(__name__)

ASSISTANT_ROLE = "assistant"


class RoundExecutor:
    """Drives a single streamed request against the provider.

    ``stream()`` yields the assistant text as it arrives.  Once it is
    exhausted, ``choices`` holds the finished record of every choice and
    ``function_calls()`` the function calls the model requested.

    Only one choice is streamed per chunk: the lowest index updated in
    that chunk that carries assistant content.  Other choices are still
    accumulated.
    """

    def __init__(
        self,
        provider: CompletionProvider,
        context: ConversationContext,
        schema: GenerationSchema,
        functions: FunctionRegistry,
        round_number: int = 1,
    ):
        self.provider = provider
        self.context = context
        self.schema = schema
        self.functions = functions
        self.round_number = round_number
        self.choices: dict[int, AccumulatedChoice] = {}
        self.usage = None
        self.response_model: str | None = None

    async def stream(self) -> AsyncIterator[str]:
        messages = self.context.to_openai()
        schemas = self.functions.schemas() or None
        parameters = self.schema.parameters.as_request_kwargs()

        async with completion_span(
            self.provider.system,
            self.schema.model,
            round_number=self.round_number,
            choice_count=parameters.get("n", 1),
        ) as span:
            try:
                async for chunk in self.provider.stream_complete(
                    model=self.schema.model,
                    messages=messages,
                    functions=schemas,
                    parameters=parameters,
                ):
                    content = self._apply(chunk)
                    if not content:
                        continue
                    if self.schema.inject_into_context:
                        self.context.append_assistant_output(content)
                    yield content
            except Exception as exc:
                error = classify_error(exc)
                record_error(span, error)
                if error is exc:
                    raise
                raise error from exc
            finally:
                self.context.complete_assistant_streaming()
            record_usage(span, self.usage, self.response_model)
            record_round(
                span,
                [c.finish_reason for _, c in sorted(self.choices.items()) if c.finish_reason],
                [request.name for request in self.function_calls()],
            )

        logger.debug(
            f"Round finished with {len(self.choices)} choice(s), "
            f"{len(self.function_calls())} function call(s)"
        )

    def _apply(self, chunk) -> str | None:
        """Fold a chunk into ``choices``; return the text to emit, if any."""
        updated: set[int] = set()
        for fragment in chunk.fragments:
            self.choices[fragment.index] = apply_fragment(
                self.choices.get(fragment.index), fragment,
            )
            updated.add(fragment.index)
        if chunk.usage is not None:
            self.usage = chunk.usage
        if chunk.model:
            self.response_model = chunk.model

        for index in sorted(updated):
            choice = self.choices[index]
            if choice.role == ASSISTANT_ROLE and choice.delta_content:
                return choice.delta_content
        return None

    def function_calls(self) -> list[FunctionCallRequest]:
        """Function calls requested in this round, in choice order."""
        requests = []
        for index in sorted(self.choices):
            request = self.choices[index].function_call_request()
            if request is not None:
                requests.append(request)
        return requests
