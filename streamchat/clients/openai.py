"""OpenAI stream source."""

import os
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

from openai import APIConnectionError, APIStatusError, AsyncOpenAI

from streamchat.errors import ChatRelayError, UpstreamBlockedError, UpstreamError, UpstreamUnavailableError
from streamchat.models.conversation import ChatMessage
from streamchat.services.stream_source import SourceConfig, StreamSource, chunk_text
from streamchat.utils.logging import get_logger

logger = get_logger(__name__)


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() not in ("0", "false", "no", "off")


@dataclass
class OpenAIConfig(SourceConfig):
    """Configuration for the OpenAI stream source."""

    model: str = field(default_factory=lambda: os.getenv("OPENAI_MODEL", "gpt-4o-mini"))
    stream: bool = field(default_factory=lambda: _env_flag("OPENAI_STREAM", "true"))
    # Fragment size used when the reply is requested in one piece
    chunk_size: int = 24
    temperature: float | None = None


class OpenAIStreamSource(StreamSource):
    """Relay OpenAI chat completions as a byte stream."""

    provider = "openai"
    display_name = "OpenAI"
    api_key_env = "OPENAI_API_KEY"

    def __init__(self, api_key: str | None = None, config: OpenAIConfig | None = None, client: Any = None):
        """Initialize OpenAI stream source.

        Args:
            api_key: OpenAI API key (defaults to OPENAI_API_KEY env var)
            config: Source configuration
            client: Preconfigured AsyncOpenAI-compatible client
        """
        super().__init__(api_key, config or OpenAIConfig())
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key)
        return self._client

    def _request_params(self, messages: list[ChatMessage]) -> dict[str, Any]:
        params: dict[str, Any] = {
            "model": self.config.model,
            "messages": [message.model_dump() for message in messages],
        }
        if self.config.temperature is not None:
            params["temperature"] = self.config.temperature
        return params

    async def _fragments(self, messages: list[ChatMessage]) -> AsyncIterator[str]:
        params = self._request_params(messages)

        if not self.config.stream:
            logger.debug(f"Requesting complete OpenAI reply with model: {params['model']}")
            completion = await self.client.chat.completions.create(**params)
            text = completion.choices[0].message.content if completion.choices else None
            for piece in chunk_text(text or "", self.config.chunk_size):
                yield piece
            return

        logger.debug(f"Requesting OpenAI stream with model: {params['model']}")
        stream = await self.client.chat.completions.create(**params, stream=True)
        try:
            async for chunk in stream:
                if not chunk.choices:
                    continue
                choice = chunk.choices[0]
                if choice.finish_reason == "content_filter":
                    raise UpstreamBlockedError("Request blocked by OpenAI: content_filter")
                content = choice.delta.content if choice.delta else None
                if content:
                    yield content
        finally:
            await stream.close()

    def _classify(self, error: Exception) -> ChatRelayError:
        if isinstance(error, APIConnectionError):
            return UpstreamUnavailableError(f"Could not reach OpenAI: {error}")
        if isinstance(error, APIStatusError):
            return UpstreamError(f"OpenAI API error ({error.status_code}): {error.message}")
        return super()._classify(error)


_openai_source: OpenAIStreamSource | None = None


def get_openai_source() -> OpenAIStreamSource:
    """Get or create OpenAI stream source instance."""
    global _openai_source
    if _openai_source is None:
        _openai_source = OpenAIStreamSource()
    return _openai_source
