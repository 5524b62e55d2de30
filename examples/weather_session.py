"""Interactive chat that can look up the weather.

Demonstrates:
- Defining functions with @function (sync and async)
- Streaming the answer token by token from LLMSession.generate()
- Reacting to the error taxonomy and the session state

Usage:
    uv run --env-file=.env examples/weather_session.py --provider openai --model gpt-4o-mini
    uv run --extra otel examples/weather_session.py --provider vllm --url http://localhost:8000 --model Qwen/Qwen3-8B --trace

``--trace`` needs the ``otel`` extra, which brings in ``opentelemetry-sdk``.
"""

import argparse
import asyncio
import logging

from chorus import (
    ChorusError,
    CompletionProvider,
    GenerationSchema,
    LLMSession,
    MessageRole,
    OpenAICompatibleProvider,
    OpenAIProvider,
    function,
)


def make_provider(provider: str, url: str | None) -> CompletionProvider:
    if provider == "vllm":
        if not url:
            raise SystemExit("--url is required for vllm provider")
        return OpenAICompatibleProvider(base_url=url)
    return OpenAIProvider()


def setup_tracing(service_name: str):
    from opentelemetry import trace
    from opentelemetry.sdk.resources import SERVICE_NAME, Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import (
        SimpleSpanProcessor, ConsoleSpanExporter,
    )
    from chorus.instrumentation import instrument

    provider = TracerProvider(
        resource=Resource({SERVICE_NAME: service_name})
    )
    provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
    trace.set_tracer_provider(provider)
    instrument()


WEATHER = {"nyc": "72F and sunny", "london": "55F and drizzling"}


@function
async def get_weather(city: str) -> str:
    """Current weather for a city.

    Args:
        city: Name of the city, e.g. "NYC".
    """
    await asyncio.sleep(0.1)
    return WEATHER.get(city.lower(), f"No weather station in {city}")


@function
def log_question(topic: str) -> None:
    """Record what the user asked about. Returns nothing.

    Args:
        topic: One or two words summarising the question.
    """
    logging.getLogger("weather").info(f"User asked about {topic}")


async def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--provider", choices=["openai", "vllm"], default="openai")
    parser.add_argument("--model", default="gpt-4o-mini")
    parser.add_argument("--url", default=None)
    parser.add_argument("--max-rounds", type=int, default=5)
    parser.add_argument("--trace", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s:%(name)s:%(levelname)s:%(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )
    if args.trace:
        setup_tracing("weather-session")

    schema = GenerationSchema(
        model=args.model,
        system_prompt="You are a concise weather assistant.",
        functions=[get_weather, log_question],
        max_rounds=args.max_rounds,
    )
    session = LLMSession(schema, make_provider(args.provider, args.url))

    while True:
        try:
            user_input = input("\n> ")
        except (EOFError, KeyboardInterrupt):
            print("\nFarewell!")
            return
        session.context.append(MessageRole.USER, user_input)
        try:
            async for token in session.generate():
                print(token, end="", flush=True)
        except ChorusError as exc:
            print(f"\n[{type(exc).__name__}] {exc}. {exc.recovery_suggestion}")
        print(f"\n({session.state.value})")


if __name__ == "__main__":
    asyncio.run(main())
