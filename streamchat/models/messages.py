"""Client-side message and conversation state."""

from cuid2 import cuid_wrapper
from pydantic import BaseModel, ConfigDict, Field

from streamchat.models.conversation import ChatMessage, Role

cuid = cuid_wrapper()


class Message(BaseModel):
    """A message in a conversation.

    Messages are immutable values. The in-progress assistant message is updated
    by storing a new value under the same ``id``.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=cuid)
    role: Role
    content: str = ""
    is_error: bool = False

    def to_wire(self) -> ChatMessage:
        """Return the role/content pair sent to the chat endpoints."""
        return ChatMessage(role=self.role, content=self.content)


class Conversation:
    """Ordered, append-only sequence of messages addressed by message id.

    Only assistant placeholders that have not been finalized can be replaced.
    """

    def __init__(self, messages: list[Message] | None = None):
        self._messages: list[Message] = list(messages or [])
        self._pending: set[str] = set()

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self):
        return iter(list(self._messages))

    @property
    def messages(self) -> list[Message]:
        """Snapshot of the current messages."""
        return list(self._messages)

    def append(self, message: Message) -> Message:
        """Append a message and return it."""
        if any(existing.id == message.id for existing in self._messages):
            raise ValueError(f"Message {message.id} is already in the conversation")
        self._messages.append(message)
        return message

    def add_user(self, content: str) -> Message:
        """Append a user message."""
        return self.append(Message(role="user", content=content))

    def add_placeholder(self) -> Message:
        """Append an empty assistant message to be filled while streaming."""
        placeholder = self.append(Message(role="assistant"))
        self._pending.add(placeholder.id)
        return placeholder

    def finalize(self, message_id: str) -> None:
        """Mark a placeholder as complete; it can no longer be replaced."""
        self._pending.discard(message_id)

    def get(self, message_id: str) -> Message:
        """Return the message with the given id.

        Raises:
            KeyError: If no message has this id
        """
        for message in self._messages:
            if message.id == message_id:
                return message
        raise KeyError(message_id)

    def replace(self, message_id: str, *, content: str, is_error: bool = False) -> Message:
        """Store a new value for an existing message.

        Args:
            message_id: Id of the message to update
            content: New content
            is_error: New error flag; an error message cannot be turned back into content

        Returns:
            The new message value

        Raises:
            KeyError: If no message has this id
            ValueError: If the message is not a pending placeholder, or the
                update would clear the error flag
        """
        for index, message in enumerate(self._messages):
            if message.id != message_id:
                continue
            if message_id not in self._pending:
                raise ValueError(f"Message {message_id} is not a pending placeholder and cannot be replaced")
            if message.is_error and not is_error:
                raise ValueError(f"Message {message_id} is marked as an error and cannot be cleared")
            updated = message.model_copy(update={"content": content, "is_error": is_error})
            self._messages[index] = updated
            return updated
        raise KeyError(message_id)

    def clear(self) -> None:
        """Drop all messages."""
        self._messages.clear()
        self._pending.clear()

    def to_wire(self) -> list[ChatMessage]:
        """Return the full history in the shape the chat endpoints accept."""
        return [message.to_wire() for message in self._messages]
