"""Provider-neutral byte stream with in-band error signalling.

A stream source turns a provider's streaming call into an async iterator of
UTF-8 byte chunks. Errors found before the stream is returned are raised as
:class:`~streamchat.errors.ChatRelayError`; errors found while iterating are
written into the stream as a single ``{"error": "..."}`` chunk, after which the
stream ends.
"""

import json
import os
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass, field

from streamchat.errors import ChatRelayError, ConfigurationError, MessageFormatError, UpstreamError
from streamchat.models.conversation import ChatMessage
from streamchat.utils.logging import get_logger
from streamchat.utils.tokens import estimate_tokens

logger = get_logger(__name__)


def encode_error(message: str) -> bytes:
    """Encode an in-band error chunk."""
    return json.dumps({"error": message}).encode("utf-8")


def chunk_text(text: str, size: int) -> list[str]:
    """Split a complete reply into fragments of at most ``size`` characters."""
    if size <= 0:
        raise ValueError("Chunk size must be positive")
    return [text[i : i + size] for i in range(0, len(text), size)]


@dataclass
class SourceConfig:
    """Settings shared by all stream sources."""

    model: str = ""
    max_message_tokens: int = field(
        default_factory=lambda: int(os.getenv("STREAMCHAT_MAX_MESSAGE_TOKENS", "8000"))
    )


class StreamSource(ABC):
    """Base class for provider stream sources.

    Subclasses implement :meth:`_fragments`, an async generator of text
    fragments that closes its upstream SDK stream when it is closed, and
    :meth:`_classify`, which maps exceptions raised before the first fragment
    to a typed error.
    """

    provider: str = ""
    display_name: str = ""
    api_key_env: str = ""
    requires_user_turn: bool = False

    def __init__(self, api_key: str | None, config: SourceConfig):
        self._api_key = api_key
        self.config = config

    @property
    def api_key(self) -> str | None:
        """Explicit key, else the provider's environment variable at call time."""
        return self._api_key or os.getenv(self.api_key_env) or None

    async def open(self, messages: Sequence[ChatMessage]) -> AsyncIterator[bytes]:
        """Start the upstream call and return the byte stream.

        Args:
            messages: Conversation history ending with the current turn

        Returns:
            Async iterator of UTF-8 byte chunks

        Raises:
            ChatRelayError: If the request fails before any byte is produced
        """
        self.validate(messages)
        self._require_api_key()

        logger.info(f"Opening {self.provider} stream with {len(messages)} messages, model: {self.config.model}")
        fragments = self._fragments(list(messages))
        try:
            first = await anext(fragments)
        except StopAsyncIteration:
            first = None
        except ChatRelayError as e:
            await fragments.aclose()
            logger.warning(f"{self.display_name} request failed before streaming: {e}")
            raise
        except Exception as e:
            await fragments.aclose()
            error = self._classify(e)
            logger.warning(f"{self.display_name} request failed before streaming: {error}")
            raise error from e

        return self._relay(fragments, first)

    def validate(self, messages: Sequence[ChatMessage]) -> None:
        """Validate a conversation before any upstream call.

        Raises:
            MessageFormatError: If the conversation cannot be sent
        """
        if not messages:
            raise MessageFormatError("Missing messages in request body")

        for message in messages:
            token_count = estimate_tokens(message.content)
            if token_count > self.config.max_message_tokens:
                raise MessageFormatError(
                    f"Message exceeds token limit: {token_count} tokens > {self.config.max_message_tokens} limit"
                )

        if self.requires_user_turn and messages[-1].role != "user":
            raise MessageFormatError(
                f"Message formatting error for {self.display_name}: "
                f"Last message must be from the user for {self.display_name} API."
            )

    def _require_api_key(self) -> None:
        if not self.api_key:
            logger.error(f"{self.display_name} API key not found")
            raise ConfigurationError(f"API key not configured for {self.display_name}.")

    async def _relay(self, fragments: AsyncIterator[str], first: str | None) -> AsyncIterator[bytes]:
        emitted = 0
        try:
            if first:
                emitted += 1
                yield first.encode("utf-8")
            async for fragment in fragments:
                if not fragment:
                    continue
                emitted += 1
                yield fragment.encode("utf-8")
            logger.debug(f"{self.display_name} stream completed after {emitted} chunks")
        except ChatRelayError as e:
            logger.error(f"{self.display_name} stream stopped after {emitted} chunks: {e}")
            yield encode_error(str(e))
        except Exception as e:
            logger.error(f"Error during {self.display_name} stream processing: {e}", exc_info=True)
            yield encode_error(f"Error during streaming from {self.display_name}: {e}")
        finally:
            await fragments.aclose()

    @abstractmethod
    def _fragments(self, messages: list[ChatMessage]) -> AsyncIterator[str]:
        """Yield text fragments from the provider."""

    def _classify(self, error: Exception) -> ChatRelayError:
        """Map an exception raised before the first fragment to a typed error."""
        return UpstreamError(str(error) or f"Internal Server Error with {self.display_name} before streaming")
