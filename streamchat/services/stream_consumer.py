"""Incremental consumer for chat response streams.

The consumer reads byte chunks, decodes them incrementally and mirrors the text
received so far into a single placeholder message. A stream whose accumulated
text parses as a JSON object with an ``error`` key is an in-band error: the
placeholder becomes an error message and reading stops.

Any JSON object with an ``error`` key at the start of the stream is taken as an
error, even when the model produced it as ordinary text.
"""

import codecs
import json
from collections.abc import AsyncIterable, Callable
from enum import Enum

import httpx

from streamchat.models.messages import Conversation, Message
from streamchat.utils.logging import get_logger

logger = get_logger(__name__)

UpdateHook = Callable[[Message], None]


class StreamState(Enum):
    """Lifecycle of a single response stream."""

    AWAITING_FIRST_CHUNK = "awaiting_first_chunk"
    ACCUMULATING = "accumulating"
    ERROR_DETECTED = "error_detected"
    FINISHED_NORMAL = "finished_normal"
    FINISHED_ERROR = "finished_error"
    FINISHED_HTTP_ERROR = "finished_http_error"


FINISHED_STATES = frozenset(
    {StreamState.FINISHED_NORMAL, StreamState.FINISHED_ERROR, StreamState.FINISHED_HTTP_ERROR}
)


def detect_in_band_error(buffer: str) -> str | None:
    """Return the error text if ``buffer`` is a complete in-band error payload.

    Only buffers that start with ``{`` after leading whitespace are parsed.
    Incomplete or invalid JSON is not an error yet.
    """
    if not buffer.lstrip().startswith("{"):
        return None
    try:
        payload = json.loads(buffer.strip())
    except ValueError:
        return None
    if not isinstance(payload, dict) or "error" not in payload:
        return None
    error = payload["error"]
    return error if isinstance(error, str) else json.dumps(error)


def format_error(provider: str, detail: str) -> str:
    return f"Error from {provider}: {detail}"


def connection_error_text(provider: str) -> str:
    return f"Error: Could not connect to the {provider} server. Please ensure it's running and reachable."


def http_error_detail(body: bytes | str, reason: str | None, status_code: int) -> str:
    """Pick the text shown for a non-success response.

    Preference order: JSON ``error`` field, plain-text body, reason phrase.
    """
    text = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else body
    try:
        payload = json.loads(text)
    except ValueError:
        payload = None
    if isinstance(payload, dict) and payload.get("error"):
        error = payload["error"]
        return error if isinstance(error, str) else json.dumps(error)
    if text.strip():
        return text.strip()
    return reason or f"HTTP {status_code}"


class StreamConsumer:
    """Drive one placeholder message from a response stream.

    Args:
        conversation: Conversation holding the placeholder
        message_id: Id of the placeholder message
        provider: Provider name used in error text
        on_update: Called with every new value of the placeholder
    """

    def __init__(
        self,
        conversation: Conversation,
        message_id: str,
        provider: str,
        on_update: UpdateHook | None = None,
    ):
        self.conversation = conversation
        self.message_id = message_id
        self.provider = provider
        self.on_update = on_update
        self.state = StreamState.AWAITING_FIRST_CHUNK
        self.buffer = ""
        self.chunks_read = 0
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    @property
    def finished(self) -> bool:
        return self.state in FINISHED_STATES

    @property
    def message(self) -> Message:
        return self.conversation.get(self.message_id)

    def feed(self, chunk: bytes) -> bool:
        """Consume one chunk.

        Returns:
            True if more chunks should be read
        """
        self._require(StreamState.AWAITING_FIRST_CHUNK, StreamState.ACCUMULATING)
        self.chunks_read += 1
        self.buffer += self._decoder.decode(chunk)
        self.state = StreamState.ACCUMULATING

        error = detect_in_band_error(self.buffer)
        if error is not None:
            self.state = StreamState.ERROR_DETECTED
            logger.warning(f"In-band error from {self.provider} after {self.chunks_read} chunks: {error}")
            self._update(format_error(self.provider, error), is_error=True, final=True)
            self.state = StreamState.FINISHED_ERROR
            return False

        self._update(self.buffer)
        return True

    def finish(self) -> Message:
        """Handle a normal end of stream."""
        self._require(StreamState.AWAITING_FIRST_CHUNK, StreamState.ACCUMULATING)
        tail = self._decoder.decode(b"", final=True)
        if tail:
            self.buffer += tail
        self.state = StreamState.FINISHED_NORMAL
        logger.debug(f"Stream from {self.provider} finished after {self.chunks_read} chunks")
        return self._update(self.buffer, final=True)

    def fail_transport(self, error: BaseException) -> Message:
        """Handle a network fault; partial content is discarded."""
        if self.finished:
            raise RuntimeError(f"Stream already finished in state {self.state.value}")
        logger.error(f"Transport error while reading from {self.provider}: {error}")
        self.state = StreamState.FINISHED_ERROR
        return self._update(connection_error_text(self.provider), is_error=True, final=True)

    def fail_http(self, status_code: int, body: bytes | str, reason: str | None = None) -> Message:
        """Handle a non-success response before any chunk was read."""
        self._require(StreamState.AWAITING_FIRST_CHUNK)
        detail = http_error_detail(body, reason, status_code)
        logger.error(f"{self.provider} API error ({status_code}): {detail}")
        self.state = StreamState.FINISHED_HTTP_ERROR
        return self._update(format_error(self.provider, detail), is_error=True, final=True)

    async def consume(self, chunks: AsyncIterable[bytes]) -> Message:
        """Read chunks one at a time until the stream ends or an error is detected."""
        try:
            async for chunk in chunks:
                if not self.feed(chunk):
                    return self.message
        except (httpx.HTTPError, OSError) as e:
            return self.fail_transport(e)
        return self.finish()

    def _require(self, *states: StreamState) -> None:
        if self.state not in states:
            raise RuntimeError(f"Invalid operation in stream state {self.state.value}")

    def _update(self, content: str, is_error: bool = False, final: bool = False) -> Message:
        message = self.conversation.replace(self.message_id, content=content, is_error=is_error)
        if final:
            self.conversation.finalize(self.message_id)
        if self.on_update is not None:
            self.on_update(message)
        return message
