import asyncio
import logging

from chorus.context import ConversationContext
from chorus.errors import (
    ChorusError,
    FunctionCallError,
    InvalidFunctionCallArguments,
    InvalidFunctionCallName,
)
from chorus.functions import FunctionRegistry
from chorus.instrumentation import function_span, record_error
from chorus.streaming import FunctionCallRequest

logger = logging.getLogger(__name__)

EMPTY_RESPONSE = (
    "Function call to `{name}` succeeded, "
    "function intentionally didn't respond anything."
)


class FunctionDispatcher:
    """Runs the function calls of a round concurrently.

    Each call appends its result to the context as soon as it finishes.
    The first failing call cancels the others and its error is raised
    from :meth:`run`; results appended before that point are kept.
    """

    def __init__(self, functions: FunctionRegistry, context: ConversationContext):
        self.functions = functions
        self.context = context

    async def run(self, requests: list[FunctionCallRequest]) -> None:
        failures: list[ChorusError] = []
        try:
            async with asyncio.TaskGroup() as group:
                for request in requests:
                    group.create_task(
                        self._dispatch(request, failures),
                        name=f"function:{request.name}",
                    )
        except BaseExceptionGroup:
            if failures:
                raise failures[0]
            raise

    async def _dispatch(
        self, request: FunctionCallRequest, failures: list[ChorusError],
    ) -> None:
        try:
            await self._call(request)
        except ChorusError as exc:
            failures.append(exc)
            raise

    async def _call(self, request: FunctionCallRequest) -> None:
        logger.debug(f"Function call {request.name}, Arguments: {request.arguments}")

        function = self.functions.lookup(request.name)
        if function is None:
            logger.debug(f"Couldn't find the requested function to call: {request.name}")
            raise InvalidFunctionCallName(request.name)

        try:
            arguments = function.inject_parameters(request.arguments)
        except Exception as exc:
            logger.error(f"Invalid function call arguments for {request.name} - {exc}")
            raise InvalidFunctionCallArguments(str(exc), cause=exc) from exc

        logger.info(f"Calling {request.name} with {arguments}")
        async with function_span(request.name, request.index) as span:
            try:
                response = await function.execute(arguments)
            except Exception as exc:
                logger.error(f"Function call execution error in {request.name} - {exc}")
                record_error(span, exc)
                raise FunctionCallError(str(exc) or None, cause=exc) from exc
            except asyncio.CancelledError as exc:
                # Only a cancellation requested from outside stops the call quietly.
                if asyncio.current_task().cancelling():
                    raise
                logger.error(f"Function {request.name} cancelled itself")
                record_error(span, exc)
                raise FunctionCallError(
                    f"Function '{request.name}' was cancelled", cause=exc,
                ) from exc

        logger.debug(
            f"Function call {request.name} Response: {response or '<empty response>'}"
        )
        if not response:
            response = EMPTY_RESPONSE.format(name=request.name)
        self.context.append_function_result(request.name, response)
