"""Interactive terminal chat for the streaming chat service."""

import asyncio
import os
import sys

import httpx
from rich.console import Console
from rich.live import Live
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Prompt
from rich.text import Text

from streamchat.client import PROVIDERS, ChatClient
from streamchat.models.messages import Conversation, Message

PROVIDER_STYLES = {"openai": "blue", "gemini": "green"}


def render_message(message: Message, provider: str) -> Panel:
    """Render a single message as a chat bubble."""
    if message.role == "user":
        return Panel(Text(message.content), title="[bold cyan]You[/bold cyan]", border_style="cyan")
    if message.is_error:
        return Panel(
            Text(message.content, style="red"),
            title=f"[bold red]⚠ Assistant ({provider})[/bold red]",
            border_style="red",
        )
    style = PROVIDER_STYLES.get(provider, "white")
    body = Markdown(message.content) if message.content else Text("Assistant is thinking...", style="dim")
    return Panel(body, title=f"[bold {style}]Assistant ({provider})[/bold {style}]", border_style=style)


class ChatCLI:
    """Interactive chat interface for the streaming chat service."""

    def __init__(self, base_url: str = "http://localhost:8000", console: Console | None = None):
        """Initialize chat CLI."""
        self.base_url = base_url
        self.provider = "openai"
        self.conversation = Conversation()
        self.console = console or Console()

    async def start(self) -> None:
        """Start the interactive chat session."""
        self.console.print(
            Panel.fit(
                "[bold blue]Streamchat[/bold blue]\n"
                "Type your messages to chat with OpenAI or Gemini.\n"
                "Commands: /help, /model <openai|gemini>, /clear, /quit",
                border_style="blue",
            )
        )

        async with ChatClient(self.base_url) as client:
            if not await self._test_connection(client):
                self.console.print(f"[red]Cannot connect to the service at {self.base_url}.[/red]")
                return

            self.console.print("[green]Connected to chat service[/green]\n")

            try:
                while True:
                    # Input is only read once the previous reply has finished streaming
                    user_input = await asyncio.to_thread(
                        Prompt.ask, f"\n[bold cyan]You[/bold cyan] [dim]({self.provider})[/dim]"
                    )
                    if not await self.handle_input(client, user_input):
                        break
            except (KeyboardInterrupt, EOFError):
                pass
            finally:
                self.console.print("\n[yellow]Goodbye![/yellow]")

    async def handle_input(self, client: ChatClient, user_input: str) -> bool:
        """Run a command or send a message.

        Returns:
            False when the session should end
        """
        text = user_input.strip()
        if text.startswith("/"):
            return self.handle_command(text)
        if text:
            await self.send(client, text)
        return True

    def handle_command(self, user_input: str) -> bool:
        """Apply a slash command.

        Returns:
            False when the session should end
        """
        command, _, argument = user_input.strip().partition(" ")
        command = command.lower()

        if command in ("/quit", "/exit"):
            return False
        if command == "/help":
            self._show_help()
        elif command == "/clear":
            self.conversation.clear()
            self.console.print("[yellow]Conversation cleared[/yellow]")
        elif command == "/model":
            self.set_provider(argument.strip().lower())
        elif command.startswith("/"):
            self.console.print(f"[red]Unknown command: {command}[/red]")
        return True

    def set_provider(self, provider: str) -> None:
        """Switch the provider used for the next turn."""
        if provider not in PROVIDERS:
            self.console.print(f"[red]Unknown model '{provider}'. Choose one of: {', '.join(PROVIDERS)}[/red]")
            return
        self.provider = provider
        self.console.print(f"[yellow]Switched to {provider} model[/yellow]")

    async def send(self, client: ChatClient, text: str) -> Message:
        """Send one turn and render the reply while it streams."""
        provider = self.provider
        with Live(console=self.console, refresh_per_second=12, transient=False) as live:

            def on_update(message: Message) -> None:
                live.update(render_message(message, provider))

            return await client.send(self.conversation, provider, text, on_update=on_update)

    async def _test_connection(self, client: ChatClient) -> bool:
        """Test connection to the service."""
        try:
            response = await client.http.get("/health")
            return response.status_code == 200
        except httpx.HTTPError:
            return False

    def _show_help(self) -> None:
        """Show help information."""
        help_text = """
[bold]Available Commands:[/bold]
• /help - Show this help message
• /model openai|gemini - Choose the model for the next message
• /clear - Clear the conversation and start over
• /quit or /exit - Exit the chat

[bold]Notes:[/bold]
• Replies appear as they stream in
• Errors are shown in red, whether reported before or during streaming
        """

        self.console.print(Panel(help_text.strip(), title="[cyan]Help[/cyan]", border_style="cyan"))


def main():
    """Main entry point for the chat CLI."""
    base_url = sys.argv[1] if len(sys.argv) > 1 else os.getenv("STREAMCHAT_URL", "http://localhost:8000")

    chat = ChatCLI(base_url)
    try:
        asyncio.run(chat.start())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
