"""Streaming primitives for provider responses.

Providers yield :class:`StreamChunk` objects, each carrying one
:class:`StreamFragment` per choice that changed.  :func:`apply_fragment`
folds fragments into an :class:`AccumulatedChoice`, reassembling content
and function calls whose arguments arrive split across many chunks.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any


@dataclass
class FunctionCallDelta:
    """A fragment of a function call from a streaming chunk."""

    name: str | None = None
    arguments: str | None = None


@dataclass
class StreamFragment:
    """The part of a streaming chunk that belongs to one choice."""

    index: int
    role: str | None = None
    content: str | None = None
    function_call: FunctionCallDelta | None = None
    finish_reason: str | None = None


@dataclass
class StreamChunk:
    """Normalised streaming chunk from any provider."""

    fragments: list[StreamFragment] = field(default_factory=list)
    usage: Any = None
    model: str | None = None


@dataclass(frozen=True)
class FunctionCallRequest:
    """A function call resolved at the end of a round, ready to dispatch."""

    name: str
    arguments: str
    index: int = 0


@dataclass(frozen=True)
class AccumulatedFunctionCall:
    name: str = ""
    arguments: str = ""


@dataclass(frozen=True)
class AccumulatedChoice:
    """Everything received so far for one choice index.

    ``delta_content`` is the content carried by the most recently applied
    fragment, which is what gets streamed to the caller.
    """

    index: int
    role: str | None = None
    content: str = ""
    delta_content: str | None = None
    function_call: AccumulatedFunctionCall | None = None
    finish_reason: str | None = None

    def function_call_request(self) -> FunctionCallRequest | None:
        if self.function_call is None:
            return None
        return FunctionCallRequest(
            name=self.function_call.name,
            arguments=self.function_call.arguments,
            index=self.index,
        )


def apply_fragment(
    existing: AccumulatedChoice | None, fragment: StreamFragment,
) -> AccumulatedChoice:
    """Merge *fragment* into *existing* and return the updated record.

    Role is taken from the first fragment that carries one.  Content,
    function name and argument text are concatenated in arrival order;
    arguments stay raw text since JSON may be split anywhere.
    """
    if existing is None:
        existing = AccumulatedChoice(index=fragment.index)

    role = existing.role if existing.role is not None else fragment.role
    content = existing.content + (fragment.content or "")

    function_call = existing.function_call
    delta = fragment.function_call
    if delta is not None:
        if function_call is None:
            function_call = AccumulatedFunctionCall()
        function_call = AccumulatedFunctionCall(
            name=function_call.name + (delta.name or ""),
            arguments=function_call.arguments + (delta.arguments or ""),
        )

    return replace(
        existing,
        role=role,
        content=content,
        delta_content=fragment.content or None,
        function_call=function_call,
        finish_reason=fragment.finish_reason or existing.finish_reason,
    )
