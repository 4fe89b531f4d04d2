"""Error types raised before a response stream is committed.

Each error carries the HTTP status the routes answer with. Once the first byte
of a stream has been sent these are never raised to the caller; the stream
source encodes them in-band instead.
"""


class ChatRelayError(Exception):
    """Base class for errors reported out-of-band with an error status."""

    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def __str__(self) -> str:
        return self.message


class MessageFormatError(ChatRelayError):
    """The conversation is empty, oversized, or in the wrong turn order."""

    status_code = 400


class ConfigurationError(ChatRelayError):
    """A provider credential or setting is missing."""

    status_code = 500


class UpstreamBlockedError(ChatRelayError):
    """The provider refused the content (e.g. safety filtering)."""

    status_code = 400


class UpstreamUnavailableError(ChatRelayError):
    """The provider could not be reached."""

    status_code = 503


class UpstreamError(ChatRelayError):
    """Any other provider failure."""

    status_code = 500
