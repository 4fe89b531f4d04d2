"""Request and response models for the chat endpoints."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

Role = Literal["user", "assistant"]


class ChatMessage(BaseModel):
    """A single turn as sent to the chat endpoints."""

    role: Role
    content: str


class ChatRequest(BaseModel):
    """Request model for the chat endpoints."""

    messages: list[ChatMessage] = Field(min_length=1)


class ErrorResponse(BaseModel):
    """Out-of-band error body, sent with a non-success status."""

    error: str


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str
    timestamp: datetime
    version: str
