"""Tests for the terminal chat front-end."""

import io

import httpx
import pytest
from rich.console import Console

from streamchat.cli import ChatCLI, render_message
from streamchat.client import ChatClient
from streamchat.models.messages import Message


async def body(chunks):
    for chunk in chunks:
        yield chunk


@pytest.fixture
def cli():
    return ChatCLI(console=Console(file=io.StringIO(), width=100))


def output(cli: ChatCLI) -> str:
    return cli.console.file.getvalue()


class TestCommands:
    """Tests for slash commands."""

    def test_quit(self, cli):
        """Test that quit commands end the session."""
        assert cli.handle_command("/quit") is False
        assert cli.handle_command("/exit") is False

    def test_model_switch(self, cli):
        """Test switching providers."""
        assert cli.handle_command("/model gemini") is True
        assert cli.provider == "gemini"
        assert "Switched to gemini model" in output(cli)

    def test_unknown_model(self, cli):
        """Test that unknown providers are refused."""
        cli.handle_command("/model claude")
        assert cli.provider == "openai"
        assert "Unknown model" in output(cli)

    def test_clear(self, cli):
        """Test clearing the conversation."""
        cli.conversation.add_user("Hi")
        cli.handle_command("/clear")
        assert len(cli.conversation) == 0

    def test_help(self, cli):
        """Test the help panel."""
        cli.handle_command("/help")
        assert "/model" in output(cli)

    @pytest.mark.asyncio
    async def test_indented_command_is_not_sent(self, cli):
        """Test that a command typed after leading spaces is applied but never sent."""
        sent = []

        def handler(request):
            sent.append(request)
            return httpx.Response(200, content=b"unexpected")

        client = ChatClient(http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://testserver"))

        assert await cli.handle_input(client, " /model gemini") is True
        assert cli.provider == "gemini"
        assert sent == []
        assert len(cli.conversation) == 0

    @pytest.mark.asyncio
    async def test_input_is_sent_stripped(self, cli):
        """Test that surrounding whitespace is removed before sending."""
        sent = []

        def handler(request):
            sent.append(request)
            return httpx.Response(200, content=b"Hello")

        client = ChatClient(http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://testserver"))

        await cli.handle_input(client, "  Hi there \n")
        await cli.handle_input(client, "   ")

        assert len(sent) == 1
        assert cli.conversation.messages[0].content == "Hi there"

    @pytest.mark.asyncio
    async def test_indented_quit_ends_session(self, cli):
        """Test that quit still ends the session with leading spaces."""
        client = ChatClient(http_client=httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(500)), base_url="http://testserver"))
        assert await cli.handle_input(client, "  /quit") is False


class TestRendering:
    """Tests for message rendering."""

    def test_error_message_panel(self):
        """Test that error messages are titled as errors."""
        panel = render_message(Message(role="assistant", content="Error from openai: x", is_error=True), "openai")
        assert panel.border_style == "red"

    def test_provider_style(self):
        """Test that assistant panels use the provider colour."""
        panel = render_message(Message(role="assistant", content="Hello"), "gemini")
        assert panel.border_style == "green"

    @pytest.mark.asyncio
    async def test_send_renders_reply(self, cli):
        """Test that a streamed reply ends up in the conversation and on screen."""
        transport = httpx.MockTransport(lambda request: httpx.Response(200, content=body([b"Hello ", b"there"])))
        client = ChatClient(http_client=httpx.AsyncClient(transport=transport, base_url="http://testserver"))

        message = await cli.send(client, "Hi")

        assert message.content == "Hello there"
        assert "Hello there" in output(cli)
