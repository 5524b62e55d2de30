import logging
import os
from collections.abc import AsyncIterator

from openai import AsyncOpenAI

from chorus.streaming import FunctionCallDelta, StreamChunk, StreamFragment

logger = logging.getLogger(__name__)


def to_stream_chunk(chunk) -> StreamChunk:
    """Normalise an OpenAI ``ChatCompletionChunk`` into a :class:`StreamChunk`."""
    fragments = []
    for choice in chunk.choices or []:
        delta = choice.delta
        function_call = None
        if delta is not None and delta.function_call is not None:
            function_call = FunctionCallDelta(
                name=delta.function_call.name,
                arguments=delta.function_call.arguments,
            )
        fragments.append(StreamFragment(
            index=choice.index,
            role=delta.role if delta is not None else None,
            content=delta.content if delta is not None else None,
            function_call=function_call,
            finish_reason=choice.finish_reason,
        ))
    return StreamChunk(
        fragments=fragments,
        usage=getattr(chunk, "usage", None),
        model=getattr(chunk, "model", None),
    )


class CompletionProvider:
    """Transport that streams chat completions.

    Subclass and implement :meth:`stream_complete` to plug in another
    backend.  Errors are raised as-is; the caller classifies them.
    """

    system = "unknown"

    async def stream_complete(
            self,
            model: str,
            messages: list[dict],
            functions: list[dict] | None = None,
            parameters: dict | None = None,
    ) -> AsyncIterator[StreamChunk]:
        raise NotImplementedError
        yield  # pragma: no cover


class OpenAIProvider(CompletionProvider):

    system = "openai"

    def __init__(
            self,
            api_key: str | None = None,
            base_url: str | None = None,
            max_retries: int = 5,
            timeout: float = 600.0,
            include_usage: bool = True,
    ):
        if not api_key:
            api_key = os.getenv("OPENAI_API_KEY")
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            max_retries=max_retries,
            timeout=timeout,
        )
        self.include_usage = include_usage

    async def stream_complete(
            self,
            model: str,
            messages: list[dict],
            functions: list[dict] | None = None,
            parameters: dict | None = None,
    ) -> AsyncIterator[StreamChunk]:
        kwargs = dict(parameters or {})
        if functions:
            kwargs["functions"] = functions
        if self.include_usage:
            kwargs["stream_options"] = {"include_usage": True}
        logger.debug(f"Requesting streamed completion from {model}")
        stream = await self.client.chat.completions.create(
            model=model,
            messages=messages,
            stream=True,
            **kwargs,
        )
        async for chunk in stream:
            yield to_stream_chunk(chunk)


class OpenAICompatibleProvider(OpenAIProvider):
    """Any server speaking the OpenAI chat-completions API (vLLM, routers)."""

    system = "openai_compatible"

    def __init__(
            self,
            base_url: str,
            api_key: str = "DUMMY",
            max_retries: int = 5,
            timeout: float = 180.0,
    ):
        base_url = base_url.rstrip("/")
        if not base_url.endswith("/v1"):
            base_url = f"{base_url}/v1"
        self.base_url = base_url
        super().__init__(
            api_key=api_key,
            base_url=base_url,
            max_retries=max_retries,
            timeout=timeout,
            include_usage=False,
        )
