"""Streaming chat relay for OpenAI and Gemini."""

__version__ = "0.1.0"
