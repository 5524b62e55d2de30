import json

import httpx
import pytest
from openai import APIError

from chorus.context import ConversationContext
from chorus.functions import function
from chorus.message import MessageRole
from chorus.provider import CompletionProvider
from chorus.schema import GenerationSchema
from chorus.session import LLMSession
from chorus.streaming import FunctionCallDelta, StreamChunk, StreamFragment


# ---------------------------------------------------------------------------
# Mock provider
# ---------------------------------------------------------------------------

class MockProvider(CompletionProvider):
    """Provider that replays pre-queued rounds. No network calls.

    Each queued round is a list of chunks.  An exception in the list is
    raised at that point of the stream; an exception queued instead of a
    list is raised before the first chunk.
    """

    system = "mock"

    def __init__(self):
        self.rounds: list = []
        self.call_log: list[dict] = []

    async def stream_complete(self, model, messages, functions=None, parameters=None):
        self.call_log.append({
            "model": model,
            "messages": messages,
            "functions": functions,
            "parameters": parameters,
        })
        round_ = self.rounds.pop(0)
        if isinstance(round_, BaseException):
            raise round_
        for item in round_:
            if isinstance(item, BaseException):
                raise item
            yield item


# ---------------------------------------------------------------------------
# Chunk builder helpers
# ---------------------------------------------------------------------------

def text_chunks(*pieces: str, index: int = 0) -> list[StreamChunk]:
    """Assistant text streamed as one chunk per piece."""
    chunks = [StreamChunk(fragments=[StreamFragment(index=index, role="assistant")])]
    for piece in pieces:
        chunks.append(StreamChunk(fragments=[StreamFragment(index=index, content=piece)]))
    chunks.append(StreamChunk(fragments=[StreamFragment(index=index, finish_reason="stop")]))
    return chunks


def function_call_chunks(
    name: str, args: dict, index: int = 0, pieces: int = 3,
) -> list[StreamChunk]:
    """A function call whose argument JSON is split into *pieces* chunks."""
    raw = json.dumps(args)
    size = max(1, -(-len(raw) // pieces))
    chunks = [StreamChunk(fragments=[StreamFragment(
        index=index, role="assistant",
        function_call=FunctionCallDelta(name=name, arguments=""),
    )])]
    for start in range(0, len(raw), size):
        chunks.append(StreamChunk(fragments=[StreamFragment(
            index=index,
            function_call=FunctionCallDelta(arguments=raw[start:start + size]),
        )]))
    chunks.append(StreamChunk(fragments=[StreamFragment(
        index=index, finish_reason="function_call",
    )]))
    return chunks


def api_error(code: str | None, message: str = "error") -> APIError:
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    return APIError(message, request, body={"code": code, "message": message})


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_provider():
    return MockProvider()


@pytest.fixture
def get_weather():
    @function
    async def get_weather(city: str) -> str:
        """Current weather for a city.

        Args:
            city: Name of the city.
        """
        return "72F and sunny"
    return get_weather


@pytest.fixture
def silent():
    @function
    def silent():
        """Does something and says nothing."""
        return ""
    return silent


@pytest.fixture
def make_session(mock_provider):
    """Factory fixture building a session over the mock provider."""
    def _make(functions=None, user_message="2+2?", **schema_kwargs):
        schema = GenerationSchema(
            model="mock-model", functions=functions or [], **schema_kwargs,
        )
        context = ConversationContext()
        if user_message is not None:
            context.append(MessageRole.USER, user_message)
        return LLMSession(schema, mock_provider, context)
    return _make
