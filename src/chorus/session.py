import logging
from collections.abc import AsyncIterator
from contextlib import aclosing

from chorus.context import ConversationContext
from chorus.dispatch import FunctionDispatcher
from chorus.errors import ChorusError, MaxRoundsExceeded
from chorus.instrumentation import generation_span, record_error
from chorus.message import MessageRole
from chorus.provider import CompletionProvider, OpenAIProvider
from chorus.rounds import RoundExecutor
from chorus.schema import GenerationSchema
from chorus.state import SessionState, SessionStateMachine

logger = logging.getLogger(__name__)


class LLMSession:
    """A conversation with a model that may call functions.

    ``generate()`` streams the assistant's answer.  Behind the stream the
    session keeps asking the model for completions, running any function
    calls it requests and feeding the results back, until the model
    answers without calling a function.  Errors close the stream: they
    are raised from the iterator and ``state`` becomes ``ERROR``.

    Args:
        schema: Model, functions and generation options.
        provider: Completion transport.
        context: Conversation to continue.  A fresh one, seeded with
            the schema's system prompt, is created when omitted.

    Example::

        session = LLMSession.from_openai(GenerationSchema(functions=[get_weather]))
        session.context.append(MessageRole.USER, "Weather in NYC?")
        async for token in session.generate():
            print(token, end="")
    """

    def __init__(
        self,
        schema: GenerationSchema,
        provider: CompletionProvider,
        context: ConversationContext | None = None,
    ):
        self.schema = schema
        self.provider = provider
        if context is None:
            context = ConversationContext()
            if schema.system_prompt:
                context.append(MessageRole.SYSTEM, schema.system_prompt)
        self.context = context
        self.functions = schema.registry()
        self._state = SessionStateMachine()

    @classmethod
    def from_openai(
        cls,
        schema: GenerationSchema,
        api_key: str | None = None,
        context: ConversationContext | None = None,
    ) -> "LLMSession":
        return cls(schema, OpenAIProvider(api_key=api_key), context)

    @property
    def state(self) -> SessionState:
        return self._state.state

    async def run(self) -> str:
        """Drain ``generate()`` and return the streamed text."""
        return "".join([token async for token in self.generate()])

    async def generate(self) -> AsyncIterator[str]:
        self._state.transition(SessionState.GENERATING)
        logger.debug(f"Started a new inference with {self.schema.model}")

        completed = False
        try:
            async with generation_span(self.schema.model) as span:
                try:
                    async with aclosing(self._loop()) as tokens:
                        async for token in tokens:
                            yield token
                except ChorusError as exc:
                    logger.error(f"Generation failed - {exc!r}")
                    record_error(span, exc)
                    raise
            completed = True
        finally:
            self._state.transition(
                SessionState.READY if completed else SessionState.ERROR
            )

        logger.debug("Completed an inference")

    async def _loop(self) -> AsyncIterator[str]:
        rounds = 0
        while True:
            rounds += 1
            executor = RoundExecutor(
                self.provider, self.context, self.schema, self.functions,
                round_number=rounds,
            )
            async with aclosing(executor.stream()) as tokens:
                async for token in tokens:
                    yield token

            requests = executor.function_calls()
            if not requests:
                return
            if self.schema.max_rounds is not None and rounds >= self.schema.max_rounds:
                raise MaxRoundsExceeded(self.schema.max_rounds)

            for request in requests:
                self.context.append_function_call(request.name, request.arguments)
            await FunctionDispatcher(self.functions, self.context).run(requests)
