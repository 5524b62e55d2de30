from enum import Enum
from pydantic import BaseModel, Field, field_serializer, model_serializer


class MessageRole(Enum):
    SYSTEM = "system"
    ASSISTANT = "assistant"
    USER = "user"
    FUNCTION = "function"


class FunctionCall(BaseModel):
    name: str
    arguments: str = ""


class Message(BaseModel):
    """A single entry of the conversation context.

    ``name`` tags function results with the function that produced them.
    ``complete`` is False only while an assistant message is still being
    streamed into the context; it is never sent to the provider.
    """

    role: MessageRole
    content: str | None = None
    name: str | None = None
    function_call: FunctionCall | None = None
    complete: bool = Field(default=True, exclude=True)

    @field_serializer('role')
    def serialize_role(self, role: MessageRole, _info) -> str:
        return role.value

    @model_serializer(mode="wrap")
    def drop_unset(self, handler) -> dict:
        data = handler(self)
        return {k: v for k, v in data.items() if v is not None}
