import logging
import threading

from pydantic import BaseModel, PrivateAttr

from chorus.message import FunctionCall, Message, MessageRole

logger = logging.getLogger(__name__)


class ConversationContext(BaseModel):
    """Ordered conversation shared by every round of a session.

    The context is only ever appended to. All mutations go through the
    methods below, which hold a single re-entrant lock, so the streaming
    appends of the generation loop and the appends of concurrently running
    functions never interleave.

    Example::

        context = ConversationContext()
        context.append(MessageRole.USER, "2+2?")
    """

    messages: list[Message] = []

    _lock: threading.RLock = PrivateAttr(default_factory=threading.RLock)

    def __len__(self) -> int:
        return len(self.messages)

    def append(self, role: MessageRole, content: str) -> Message:
        message = Message(role=role, content=content)
        with self._lock:
            self.messages.append(message)
        return message

    def append_assistant_output(self, delta: str) -> Message:
        """Merge a streamed piece of assistant text into the context.

        Extends the trailing assistant message while it is still streaming,
        otherwise opens a new, incomplete assistant message.
        """
        with self._lock:
            last = self.messages[-1] if self.messages else None
            if (
                last is not None
                and last.role == MessageRole.ASSISTANT
                and not last.complete
            ):
                last.content = (last.content or "") + delta
                return last
            message = Message(
                role=MessageRole.ASSISTANT, content=delta, complete=False,
            )
            self.messages.append(message)
            return message

    def complete_assistant_streaming(self) -> None:
        """Mark the in-progress assistant message, if any, as complete."""
        with self._lock:
            for message in reversed(self.messages):
                if message.role == MessageRole.ASSISTANT and not message.complete:
                    message.complete = True
                    break

    def append_function_call(self, name: str, arguments: str) -> Message:
        message = Message(
            role=MessageRole.ASSISTANT,
            function_call=FunctionCall(name=name, arguments=arguments),
        )
        with self._lock:
            self.messages.append(message)
        return message

    def append_function_result(self, name: str, response: str) -> Message:
        message = Message(role=MessageRole.FUNCTION, name=name, content=response)
        with self._lock:
            self.messages.append(message)
        logger.debug(f"Appended result of {name} to context")
        return message

    def snapshot(self) -> list[Message]:
        with self._lock:
            return list(self.messages)

    def to_openai(self) -> list[dict]:
        """Dump the conversation in the chat-completions message format."""
        return [m.model_dump() for m in self.snapshot()]
