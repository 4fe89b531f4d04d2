"""Main FastAPI application."""

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from streamchat import __version__
from streamchat.api.endpoints import error_response, router
from streamchat.utils import tokens
from streamchat.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load the tokenizer before serving so the first request does not block the event loop."""
    await asyncio.to_thread(tokens.get_tokenizer)
    logger.info(f"Streamchat {__version__} ready")
    yield


app = FastAPI(
    lifespan=lifespan,
    title="Streamchat",
    description="Relay chat conversations to OpenAI or Gemini and stream the reply as plain text.",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {
            "name": "Chat",
            "description": (
                "Stream an assistant reply. Errors before streaming use an error status; "
                "errors during streaming arrive in the body as a JSON error object."
            ),
        },
        {
            "name": "Health",
            "description": "Service health monitoring and status checks.",
        },
    ],
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


def describe_validation_error(exc: RequestValidationError) -> str:
    """Turn request validation errors into a single message."""
    errors = exc.errors()
    if any(error.get("type") == "json_invalid" for error in errors):
        return "Invalid JSON in request body"
    for error in errors:
        if tuple(error.get("loc", ())) in (("body",), ("body", "messages")):
            return "Missing messages in request body"
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    return f"Invalid request: {location}: {first.get('msg', 'validation failed')}"


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    message = describe_validation_error(exc)
    logger.warning(f"Invalid request to {request.url.path}: {message}")
    return error_response(400, message)


def run() -> None:
    """Run the service with uvicorn."""
    import uvicorn

    setup_logging()
    uvicorn.run("streamchat.main:app", host="0.0.0.0", port=8000, log_level="info")


if __name__ == "__main__":
    run()
