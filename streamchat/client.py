"""HTTP client for the streaming chat endpoints."""

import httpx

from streamchat.models.conversation import ChatRequest
from streamchat.models.messages import Conversation, Message
from streamchat.services.stream_consumer import StreamConsumer, UpdateHook
from streamchat.utils.logging import get_logger

logger = get_logger(__name__)

PROVIDERS = ("openai", "gemini")


class ChatClient:
    """Send conversation turns and stream the replies into a Conversation."""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        timeout: httpx.Timeout | float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Initialize chat client.

        Args:
            base_url: Root URL of the chat service
            timeout: Optional deadline for the whole exchange; no timeout by default
            http_client: Preconfigured client (its base URL is used as-is)
        """
        self.base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        self.http = http_client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)

    async def __aenter__(self) -> "ChatClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.http.aclose()

    async def send(
        self,
        conversation: Conversation,
        provider: str,
        content: str,
        on_update: UpdateHook | None = None,
    ) -> Message:
        """Send a user turn and stream the assistant reply.

        The user message and an empty assistant placeholder are appended to
        ``conversation``; the placeholder is updated after every chunk.

        Args:
            conversation: Conversation to extend
            provider: ``openai`` or ``gemini``
            content: User message text
            on_update: Called with every new value of the placeholder

        Returns:
            The final assistant message
        """
        if provider not in PROVIDERS:
            raise ValueError(f"Unknown provider: {provider}")

        conversation.add_user(content)
        request = ChatRequest(messages=conversation.to_wire())
        placeholder = conversation.add_placeholder()
        if on_update is not None:
            on_update(placeholder)

        consumer = StreamConsumer(conversation, placeholder.id, provider, on_update=on_update)
        logger.info(f"Fetching response from {provider} API with {len(request.messages)} messages")

        try:
            async with self.http.stream(
                "POST", f"/api/chat/{provider}", json=request.model_dump()
            ) as response:
                if not response.is_success:
                    body = await response.aread()
                    return consumer.fail_http(response.status_code, body, response.reason_phrase)
                return await consumer.consume(response.aiter_bytes())
        except httpx.HTTPError as e:
            if consumer.finished:
                raise
            return consumer.fail_transport(e)
