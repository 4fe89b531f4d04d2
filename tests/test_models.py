"""Tests for data models."""

import json
from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from streamchat.models.conversation import ChatMessage, ChatRequest, ErrorResponse, HealthResponse
from streamchat.models.messages import Conversation, Message


class TestWireModels:
    """Tests for request/response models."""

    def test_chat_request_from_json(self):
        """Test chat request parsing from JSON."""
        json_data = '{"messages": [{"role": "user", "content": "Hello"}]}'
        request = ChatRequest.model_validate(json.loads(json_data))
        assert request.messages == [ChatMessage(role="user", content="Hello")]

    def test_chat_request_requires_messages(self):
        """Test that an empty message list is invalid."""
        with pytest.raises(ValidationError):
            ChatRequest(messages=[])

    def test_chat_message_invalid_role(self):
        """Test chat message with invalid role."""
        with pytest.raises(ValidationError) as exc_info:
            ChatMessage(role="system", content="Hello")  # type: ignore
        assert "Input should be 'user' or 'assistant'" in str(exc_info.value)

    def test_error_response(self):
        """Test the out-of-band error body."""
        assert ErrorResponse(error="boom").model_dump() == {"error": "boom"}

    def test_health_response_valid(self):
        """Test valid health response."""
        now = datetime.now(UTC)
        response = HealthResponse(status="healthy", timestamp=now, version="1.0.0")
        assert response.status == "healthy"
        assert response.timestamp == now


class TestMessage:
    """Tests for client-side messages."""

    def test_defaults(self):
        """Test that new messages get an id and are not errors."""
        message = Message(role="assistant")
        assert message.id
        assert message.content == ""
        assert message.is_error is False

    def test_ids_are_unique(self):
        """Test that every message gets its own id."""
        assert Message(role="user", content="a").id != Message(role="user", content="a").id

    def test_messages_are_immutable(self):
        """Test that message values cannot be changed in place."""
        message = Message(role="user", content="Hi")
        with pytest.raises(ValidationError):
            message.content = "changed"  # type: ignore

    def test_to_wire(self):
        """Test conversion to the request shape."""
        message = Message(role="assistant", content="Hello", is_error=True)
        assert message.to_wire() == ChatMessage(role="assistant", content="Hello")


class TestConversation:
    """Tests for the conversation container."""

    def test_append_order(self):
        """Test that messages keep turn order."""
        conversation = Conversation()
        user = conversation.add_user("Hi")
        placeholder = conversation.add_placeholder()

        assert conversation.messages == [user, placeholder]
        assert placeholder.role == "assistant"
        assert placeholder.content == ""

    def test_replace_by_id(self):
        """Test that updates find the message by id, not position."""
        conversation = Conversation()
        placeholder = conversation.add_placeholder()
        conversation.add_user("later")

        updated = conversation.replace(placeholder.id, content="Hello")

        assert updated.id == placeholder.id
        assert conversation.get(placeholder.id).content == "Hello"
        assert conversation.messages[1].content == "later"
        assert placeholder.content == ""

    def test_replace_unknown_id(self):
        """Test that replacing a missing message fails."""
        with pytest.raises(KeyError):
            Conversation().replace("missing", content="x")

    def test_error_flag_is_one_way(self):
        """Test that an error message cannot become content again."""
        conversation = Conversation()
        placeholder = conversation.add_placeholder()
        conversation.replace(placeholder.id, content="Error from openai: boom", is_error=True)

        with pytest.raises(ValueError, match="cannot be cleared"):
            conversation.replace(placeholder.id, content="Hello")
        assert conversation.get(placeholder.id).is_error is True

    def test_user_message_cannot_be_replaced(self):
        """Test that only assistant placeholders accept new values."""
        conversation = Conversation()
        user = conversation.add_user("Hi")

        with pytest.raises(ValueError, match="not a pending placeholder"):
            conversation.replace(user.id, content="edited")
        assert conversation.get(user.id).content == "Hi"

    def test_finalized_placeholder_cannot_be_replaced(self):
        """Test that a completed reply is no longer writable."""
        conversation = Conversation()
        placeholder = conversation.add_placeholder()
        conversation.replace(placeholder.id, content="Hello")
        conversation.finalize(placeholder.id)

        with pytest.raises(ValueError, match="not a pending placeholder"):
            conversation.replace(placeholder.id, content="Goodbye")
        assert conversation.get(placeholder.id).content == "Hello"

    def test_appended_assistant_message_cannot_be_replaced(self):
        """Test that assistant messages restored into a conversation are not placeholders."""
        restored = Message(role="assistant", content="Earlier reply")
        conversation = Conversation([restored])

        with pytest.raises(ValueError):
            conversation.replace(restored.id, content="x")

    def test_duplicate_append_rejected(self):
        """Test that the same message cannot be appended twice."""
        conversation = Conversation()
        message = conversation.add_user("Hi")
        with pytest.raises(ValueError):
            conversation.append(message)

    def test_to_wire_and_clear(self):
        """Test the wire history and clearing."""
        conversation = Conversation()
        conversation.add_user("Hi")
        conversation.add_placeholder()

        assert [m.model_dump() for m in conversation.to_wire()] == [
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": ""},
        ]

        conversation.clear()
        assert len(conversation) == 0
