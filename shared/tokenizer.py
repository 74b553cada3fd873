"""
Token counting for model prompts.

Encodings are loaded once per model name and kept for the lifetime of the
process. Build one EncodingCache at startup and hand it to whatever needs
token counts; get_tokenizer() gives you the shared default.
"""

import logging
from typing import Any, Callable, Dict, Optional

import tiktoken

logger = logging.getLogger(__name__)


class UnsupportedModelError(Exception):
    """Raised when no tokenizer encoding is registered for a model."""

    def __init__(self, model_name: str):
        super().__init__(f"No tokenizer encoding registered for model: {model_name}")
        self.model_name = model_name


class EncodingCache:
    """
    Load-once cache of tokenizer encodings keyed by model name.

    Entries are never invalidated; an encoding loaded for a model is reused
    for every subsequent call in the run.

    Usage:
        cache = EncodingCache()
        enc = cache.get("gpt-3.5-turbo")
    """

    def __init__(self, loader: Callable[[str], Any] = None):
        """
        Args:
            loader: Callable mapping a model name to an encoding object with
                an ``encode(text)`` method. Defaults to
                ``tiktoken.encoding_for_model``.
        """
        self._loader = loader or tiktoken.encoding_for_model
        self._encodings: Dict[str, Any] = {}

    def get(self, model_name: str):
        """Return the encoding for a model, loading it on first use."""
        if model_name not in self._encodings:
            try:
                encoding = self._loader(model_name)
            except KeyError as e:
                raise UnsupportedModelError(model_name) from e
            logger.debug(f"Loaded tokenizer encoding for {model_name}")
            self._encodings[model_name] = encoding
        return self._encodings[model_name]

    def __contains__(self, model_name: str) -> bool:
        return model_name in self._encodings


class Tokenizer:
    """Counts tokens for text under a named model's encoding."""

    def __init__(self, cache: Optional[EncodingCache] = None):
        self.cache = cache or EncodingCache()

    def count_tokens(self, text: str, model_name: str) -> int:
        """
        Count tokens in text.

        Raises:
            UnsupportedModelError: If the model has no encoding
        """
        encoding = self.cache.get(model_name)
        return len(encoding.encode(text))

    def within_limit(self, text: str, model_name: str, limit: int) -> bool:
        """True iff the token count of text is strictly less than limit."""
        return self.count_tokens(text, model_name) < limit

    def counter(self, model_name: str) -> Callable[[str], int]:
        """Return a single-argument token counter bound to a model."""
        encoding = self.cache.get(model_name)
        return lambda text: len(encoding.encode(text))


_tokenizer: Optional[Tokenizer] = None


def get_tokenizer() -> Tokenizer:
    """Get or create the process-wide tokenizer."""
    global _tokenizer
    if _tokenizer is None:
        _tokenizer = Tokenizer()
    return _tokenizer
