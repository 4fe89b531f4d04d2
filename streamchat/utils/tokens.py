"""Token estimation for request validation."""

from functools import lru_cache

import tiktoken

from streamchat.utils.logging import get_logger

logger = get_logger(__name__)


@lru_cache(maxsize=1)
def get_tokenizer() -> tiktoken.Encoding | None:
    """Load the shared tokenizer, or None when it cannot be loaded."""
    try:
        # Close enough for both providers
        return tiktoken.get_encoding("cl100k_base")
    except Exception as e:
        logger.warning(f"Tokenizer unavailable, falling back to character estimate: {e}")
        return None


def estimate_tokens(text: str) -> int:
    """Estimate token count for a piece of text.

    Args:
        text: Message content

    Returns:
        Estimated token count
    """
    tokenizer = get_tokenizer()
    try:
        return len(tokenizer.encode(text)) if tokenizer else len(text) // 4
    except Exception:
        # Fallback: roughly 4 characters per token
        return len(text) // 4
