"""Tests for token estimation."""

from unittest.mock import Mock

from streamchat.utils import tokens


class TestEstimateTokens:
    """Tests for estimate_tokens."""

    def test_uses_tokenizer(self, monkeypatch):
        """Test that the tokenizer count is used when available."""
        tokenizer = Mock()
        tokenizer.encode.return_value = ["token"] * 7
        monkeypatch.setattr(tokens, "get_tokenizer", lambda: tokenizer)

        assert tokens.estimate_tokens("Short message") == 7
        tokenizer.encode.assert_called_once_with("Short message")

    def test_fallback_without_tokenizer(self):
        """Test the character-based estimate when no tokenizer is loaded."""
        assert tokens.estimate_tokens("a" * 4000) == 1000

    def test_fallback_when_encoding_fails(self, monkeypatch):
        """Test that tokenizer errors fall back to the character estimate."""
        tokenizer = Mock()
        tokenizer.encode.side_effect = ValueError("disallowed special token")
        monkeypatch.setattr(tokens, "get_tokenizer", lambda: tokenizer)

        assert tokens.estimate_tokens("a" * 40) == 10
