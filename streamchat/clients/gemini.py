"""Gemini stream source using the Google Gen AI SDK."""

import os
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from streamchat.errors import (
    ChatRelayError,
    MessageFormatError,
    UpstreamBlockedError,
    UpstreamError,
    UpstreamUnavailableError,
)
from streamchat.models.conversation import ChatMessage
from streamchat.services.stream_source import SourceConfig, StreamSource
from streamchat.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class GeminiConfig(SourceConfig):
    """Configuration for the Gemini stream source."""

    model: str = field(default_factory=lambda: os.getenv("GEMINI_MODEL", "gemini-2.0-flash"))


def to_gemini_contents(messages: list[ChatMessage]) -> tuple[list[types.Content], str]:
    """Split a conversation into Gemini history and the current user turn.

    Args:
        messages: Conversation ending with a user message

    Returns:
        History contents (``assistant`` mapped to ``model``) and the last user message

    Raises:
        MessageFormatError: If the last message is missing, not from the user, or empty
    """
    if not messages:
        raise MessageFormatError("Message formatting error for Gemini: Message list cannot be empty.")

    *earlier, last = messages
    if last.role != "user":
        raise MessageFormatError(
            "Message formatting error for Gemini: Last message must be from the user for Gemini API."
        )
    if not last.content:
        raise MessageFormatError(
            "Message formatting error for Gemini: Could not determine last user message. "
            "Ensure the last message is from the user."
        )

    history = [
        types.Content(
            role="model" if message.role == "assistant" else "user",
            parts=[types.Part(text=message.content)],
        )
        for message in earlier
    ]
    return history, last.content


def _block_reason(chunk: Any) -> str | None:
    feedback = getattr(chunk, "prompt_feedback", None)
    reason = getattr(feedback, "block_reason", None) if feedback else None
    if not reason:
        return None
    return str(getattr(reason, "value", reason))


class GeminiStreamSource(StreamSource):
    """Relay Gemini content generation as a byte stream."""

    provider = "gemini"
    display_name = "Gemini"
    api_key_env = "GEMINI_API_KEY"
    requires_user_turn = True

    def __init__(self, api_key: str | None = None, config: GeminiConfig | None = None, client: Any = None):
        """Initialize Gemini stream source.

        Args:
            api_key: Gemini API key (defaults to GEMINI_API_KEY env var)
            config: Source configuration
            client: Preconfigured ``genai.Client``-compatible client
        """
        super().__init__(api_key, config or GeminiConfig())
        self._client = client

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    async def _fragments(self, messages: list[ChatMessage]) -> AsyncIterator[str]:
        history, last_user_message = to_gemini_contents(messages)
        contents = [*history, types.Content(role="user", parts=[types.Part(text=last_user_message)])]

        logger.debug(f"Requesting Gemini stream with model: {self.config.model}, history: {len(history)}")
        stream = await self.client.aio.models.generate_content_stream(model=self.config.model, contents=contents)
        try:
            async for chunk in stream:
                reason = _block_reason(chunk)
                if reason:
                    logger.error(f"Gemini stream blocked: {reason}")
                    raise UpstreamBlockedError(f"Request blocked by Gemini: {reason}")
                text = chunk.text
                if text:
                    yield text
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

    def _classify(self, error: Exception) -> ChatRelayError:
        if isinstance(error, httpx.TransportError):
            return UpstreamUnavailableError(f"Could not reach Gemini: {error}")
        if isinstance(error, genai_errors.APIError):
            if error.code == 503:
                return UpstreamUnavailableError(f"Gemini is unavailable: {error.message}")
            return UpstreamError(f"Gemini API error ({error.code}): {error.message}")
        return super()._classify(error)


_gemini_source: GeminiStreamSource | None = None


def get_gemini_source() -> GeminiStreamSource:
    """Get or create Gemini stream source instance."""
    global _gemini_source
    if _gemini_source is None:
        _gemini_source = GeminiStreamSource()
    return _gemini_source
