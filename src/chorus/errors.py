"""Errors surfaced through a session's output stream.

Every error ends the generation it occurred in.  Transport failures are
mapped onto this taxonomy by :func:`classify_error`; function dispatch
failures are raised directly by the dispatcher.
"""

from __future__ import annotations

import logging

from openai import APIError

logger = logging.getLogger(__name__)

INVALID_API_KEY_CODE = "invalid_api_key"
INSUFFICIENT_QUOTA_CODE = "insufficient_quota"


class ChorusError(Exception):
    """Base class for all errors raised by chorus."""

    description = "The generation failed."
    recovery_suggestion = "Please retry the request."

    def __init__(self, message: str | None = None, cause: BaseException | None = None):
        super().__init__(message or self.description)
        self.cause = cause


class InvalidAPIToken(ChorusError):
    description = "The provided API token is invalid."
    recovery_suggestion = "Check the configured API key and try again."


class InsufficientQuota(ChorusError):
    description = "The account has exceeded its API quota."
    recovery_suggestion = "Review the plan and billing details of the account."


class GenerationError(ChorusError):
    description = "An error occurred while generating the response."
    recovery_suggestion = "Retry the generation; check network connectivity."


class InvalidFunctionCallName(ChorusError):
    description = "The model requested a function that is not registered."
    recovery_suggestion = "Make sure every function the model may call is registered."

    def __init__(self, name: str):
        super().__init__(f"No function registered under '{name}'")
        self.name = name


class InvalidFunctionCallArguments(ChorusError):
    description = "The model supplied arguments that do not match the function."
    recovery_suggestion = "Tighten the function's parameter descriptions."


class FunctionCallError(ChorusError):
    description = "A function called by the model raised an error."
    recovery_suggestion = "Inspect the cause raised by the function."


class MaxRoundsExceeded(ChorusError):
    description = "The model kept requesting function calls."
    recovery_suggestion = "Raise max_rounds or reduce the functions exposed."

    def __init__(self, max_rounds: int):
        super().__init__(f"Maximum of {max_rounds} rounds reached")
        self.max_rounds = max_rounds


class InvalidStateTransition(ChorusError):
    description = "The session cannot move to the requested state."
    recovery_suggestion = "Wait for the running generation to finish."


def classify_error(exc: BaseException) -> ChorusError:
    """Map a transport failure onto the chorus error taxonomy.

    Only ``openai`` API errors carry a provider error code; everything
    else, including unrecognised codes, becomes a :class:`GenerationError`.
    """
    if isinstance(exc, ChorusError):
        return exc
    if isinstance(exc, APIError):
        if exc.code == INVALID_API_KEY_CODE:
            logger.error(f"Invalid API token - {exc}")
            return InvalidAPIToken(cause=exc)
        if exc.code == INSUFFICIENT_QUOTA_CODE:
            logger.error(f"Insufficient API quota - {exc}")
            return InsufficientQuota(cause=exc)
    logger.error(f"Generation error occurred - {exc!r}")
    return GenerationError(str(exc) or None, cause=exc)
