"""Tests for a single streamed round."""

from unittest.mock import MagicMock

import pytest

import chorus.instrumentation as inst
from chorus.context import ConversationContext
from chorus.errors import GenerationError, InsufficientQuota
from chorus.functions import FunctionRegistry
from chorus.message import MessageRole
from chorus.rounds import RoundExecutor
from chorus.schema import GenerationSchema, ModelParameters
from chorus.streaming import FunctionCallDelta, FunctionCallRequest, StreamChunk, StreamFragment

from tests.conftest import api_error, function_call_chunks, text_chunks


def make_executor(provider, inject=True, functions=()):
    context = ConversationContext()
    context.append(MessageRole.USER, "hi")
    schema = GenerationSchema(model="m", inject_into_context=inject)
    return RoundExecutor(provider, context, schema, FunctionRegistry(functions))


async def drain(executor: RoundExecutor) -> list[str]:
    return [token async for token in executor.stream()]


class TestEmission:
    @pytest.mark.asyncio
    async def test_streams_assistant_text_in_order(self, mock_provider):
        mock_provider.rounds = [text_chunks("It's ", "72F")]
        executor = make_executor(mock_provider)

        assert await drain(executor) == ["It's ", "72F"]
        assert executor.choices[0].content == "It's 72F"
        assert executor.function_calls() == []

    @pytest.mark.asyncio
    async def test_only_lowest_updated_choice_is_emitted(self, mock_provider):
        mock_provider.rounds = [[
            StreamChunk(fragments=[
                StreamFragment(index=1, role="assistant", content="B1"),
                StreamFragment(index=0, role="assistant", content="A1"),
            ]),
            StreamChunk(fragments=[
                StreamFragment(index=0, content="A2"),
                StreamFragment(index=1, content="B2"),
            ]),
        ]]
        executor = make_executor(mock_provider)

        assert await drain(executor) == ["A1", "A2"]
        assert executor.choices[1].content == "B1B2"
        assert executor.context.messages[-1].content == "A1A2"

    @pytest.mark.asyncio
    async def test_choice_alone_in_chunk_is_emitted(self, mock_provider):
        mock_provider.rounds = [[
            StreamChunk(fragments=[
                StreamFragment(index=0, role="assistant", content="A"),
                StreamFragment(index=1, role="assistant", content="B"),
            ]),
            StreamChunk(fragments=[StreamFragment(index=1, content="C")]),
        ]]
        executor = make_executor(mock_provider)

        assert await drain(executor) == ["A", "C"]

    @pytest.mark.asyncio
    async def test_non_assistant_content_not_emitted(self, mock_provider):
        mock_provider.rounds = [[
            StreamChunk(fragments=[StreamFragment(index=0, role="tool", content="x")]),
        ]]
        executor = make_executor(mock_provider)

        assert await drain(executor) == []

    @pytest.mark.asyncio
    async def test_function_call_arguments_not_emitted(self, mock_provider):
        mock_provider.rounds = [function_call_chunks("get_weather", {"city": "NYC"})]
        executor = make_executor(mock_provider)

        assert await drain(executor) == []
        assert len(executor.context) == 1

    @pytest.mark.asyncio
    async def test_stream_end_completes_assistant_message(self, mock_provider):
        mock_provider.rounds = [text_chunks("done")]
        executor = make_executor(mock_provider)

        await drain(executor)

        assert executor.context.messages[-1].complete is True


class TestFunctionCalls:
    @pytest.mark.asyncio
    async def test_requests_in_choice_order(self, mock_provider):
        mock_provider.rounds = [[
            StreamChunk(fragments=[
                StreamFragment(index=1, role="assistant",
                               function_call=FunctionCallDelta(name="b", arguments="{")),
                StreamFragment(index=0, role="assistant",
                               function_call=FunctionCallDelta(name="a", arguments="{")),
            ]),
            StreamChunk(fragments=[
                StreamFragment(index=0, function_call=FunctionCallDelta(arguments="}")),
                StreamFragment(index=1, function_call=FunctionCallDelta(arguments="}")),
            ]),
        ]]
        executor = make_executor(mock_provider)
        await drain(executor)

        assert executor.function_calls() == [
            FunctionCallRequest(name="a", arguments="{}", index=0),
            FunctionCallRequest(name="b", arguments="{}", index=1),
        ]


class TestErrors:
    @pytest.mark.asyncio
    async def test_error_before_first_chunk_is_classified(self, mock_provider):
        mock_provider.rounds = [api_error("insufficient_quota")]
        executor = make_executor(mock_provider)

        with pytest.raises(InsufficientQuota) as excinfo:
            await drain(executor)
        assert excinfo.value.__cause__ is excinfo.value.cause

    @pytest.mark.asyncio
    async def test_unknown_failure_is_generation_error(self, mock_provider):
        mock_provider.rounds = [[ValueError("bad chunk")]]
        executor = make_executor(mock_provider)

        with pytest.raises(GenerationError):
            await drain(executor)

    @pytest.mark.asyncio
    async def test_request_uses_context_snapshot(self, mock_provider):
        mock_provider.rounds = [text_chunks("x")]
        executor = make_executor(mock_provider)
        await drain(executor)

        assert mock_provider.call_log[0]["messages"] == [{"role": "user", "content": "hi"}]


class TestTracing:
    @pytest.fixture(autouse=True)
    def _mock_tracer(self):
        self.span = MagicMock()
        self.tracer = MagicMock()
        self.tracer.start_as_current_span.return_value.__enter__ = MagicMock(return_value=self.span)
        self.tracer.start_as_current_span.return_value.__exit__ = MagicMock(return_value=False)
        inst._tracer = self.tracer
        yield
        inst._tracer = None

    @pytest.mark.asyncio
    async def test_span_carries_round_and_choice_count(self, mock_provider, get_weather):
        mock_provider.rounds = [
            function_call_chunks("get_weather", {"city": "NYC"}, index=0)
            + text_chunks("hi", index=1),
        ]
        context = ConversationContext()
        schema = GenerationSchema(model="m", parameters=ModelParameters(n=2))
        executor = RoundExecutor(
            mock_provider, context, schema, FunctionRegistry([get_weather]),
            round_number=3,
        )
        await drain(executor)

        attributes = self.tracer.start_as_current_span.call_args.kwargs["attributes"]
        assert attributes["chorus.round"] == 3
        assert attributes["gen_ai.request.choice.count"] == 2
        self.span.set_attribute.assert_any_call(
            "gen_ai.response.finish_reasons", ["function_call", "stop"],
        )
        self.span.set_attribute.assert_any_call("chorus.round.function_calls", ["get_weather"])
