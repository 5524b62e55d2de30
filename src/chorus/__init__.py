from chorus.context import ConversationContext
from chorus.dispatch import FunctionDispatcher
from chorus.errors import (
    ChorusError,
    FunctionCallError,
    GenerationError,
    InsufficientQuota,
    InvalidAPIToken,
    InvalidFunctionCallArguments,
    InvalidFunctionCallName,
    InvalidStateTransition,
    MaxRoundsExceeded,
    classify_error,
)
from chorus.functions import Function, FunctionRegistry, function
from chorus.instrumentation import instrument, uninstrument
from chorus.message import FunctionCall, Message, MessageRole
from chorus.provider import CompletionProvider, OpenAICompatibleProvider, OpenAIProvider
from chorus.rounds import RoundExecutor
from chorus.schema import GenerationSchema, ModelParameters
from chorus.session import LLMSession
from chorus.state import SessionState, SessionStateMachine
from chorus.streaming import (
    AccumulatedChoice,
    FunctionCallDelta,
    FunctionCallRequest,
    StreamChunk,
    StreamFragment,
    apply_fragment,
)

__all__ = [
    "AccumulatedChoice",
    "ChorusError",
    "CompletionProvider",
    "ConversationContext",
    "Function",
    "FunctionCall",
    "FunctionCallDelta",
    "FunctionCallError",
    "FunctionCallRequest",
    "FunctionDispatcher",
    "FunctionRegistry",
    "GenerationError",
    "GenerationSchema",
    "InsufficientQuota",
    "InvalidAPIToken",
    "InvalidFunctionCallArguments",
    "InvalidFunctionCallName",
    "InvalidStateTransition",
    "LLMSession",
    "MaxRoundsExceeded",
    "Message",
    "MessageRole",
    "ModelParameters",
    "OpenAICompatibleProvider",
    "OpenAIProvider",
    "RoundExecutor",
    "SessionState",
    "SessionStateMachine",
    "StreamChunk",
    "StreamFragment",
    "apply_fragment",
    "classify_error",
    "function",
    "instrument",
    "uninstrument",
]
