"""API endpoints for the streaming chat service."""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, StreamingResponse

from streamchat import __version__
from streamchat.clients.gemini import get_gemini_source
from streamchat.clients.openai import get_openai_source
from streamchat.errors import ChatRelayError
from streamchat.models.conversation import ChatRequest, ErrorResponse, HealthResponse
from streamchat.services.stream_source import StreamSource
from streamchat.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()

STREAM_HEADERS = {"X-Content-Type-Options": "nosniff"}

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Malformed conversation"},
    500: {"model": ErrorResponse, "description": "Missing credential or provider failure"},
    503: {"model": ErrorResponse, "description": "Provider unreachable"},
}


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


async def relay(request: ChatRequest, source: StreamSource):
    """Open the provider stream, or answer with an error before any byte is sent."""
    try:
        stream = await source.open(request.messages)
    except ChatRelayError as e:
        logger.warning(f"Rejected {source.provider} chat request ({e.status_code}): {e}")
        return error_response(e.status_code, str(e))
    except Exception as e:
        logger.error(f"Error processing {source.display_name} chat request (pre-stream): {e}", exc_info=True)
        return error_response(500, str(e) or f"Internal Server Error with {source.display_name} before streaming")

    return StreamingResponse(stream, media_type="text/plain; charset=utf-8", headers=STREAM_HEADERS)


@router.post("/api/chat/openai", tags=["Chat"], responses=ERROR_RESPONSES)
async def chat_openai(request: ChatRequest, source: StreamSource = Depends(get_openai_source)):
    """Stream an OpenAI reply to the conversation as plain text.

    Errors found after streaming has started are sent in the body as
    ``{"error": "..."}`` with the success status already committed.
    """
    return await relay(request, source)


@router.post("/api/chat/gemini", tags=["Chat"], responses=ERROR_RESPONSES)
async def chat_gemini(request: ChatRequest, source: StreamSource = Depends(get_gemini_source)):
    """Stream a Gemini reply to the conversation as plain text."""
    return await relay(request, source)


@router.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(UTC),
        version=__version__,
    )
