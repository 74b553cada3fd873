"""
Embeddings Module.

CRITICAL: Never mix vectors from different models in the same namespace.

This module handles:
- Provider clients (OpenAI API, local sentence-transformers)
- Batching with order-preserving reassembly
- Bounded retry with an injectable sleep

Usage:
    from embeddings import EmbeddingBatcher, OpenAIEmbeddingClient

    batcher = EmbeddingBatcher(OpenAIEmbeddingClient(api_key), batch_size=100)
    vectors = batcher.embed_texts(["text1", "text2"])
"""

from .batcher import EmbeddedChunks, EmbeddingBatcher, EmbeddingProviderError
from .providers import (
    DEFAULT_OPENAI_MODEL,
    EmbeddingClient,
    OpenAIEmbeddingClient,
    SentenceTransformerEmbeddingClient,
)
from .retry import (
    RetryExhaustedError,
    RetryPolicy,
    exponential_backoff,
    fixed_delay,
)

__all__ = [
    "EmbeddingBatcher",
    "EmbeddedChunks",
    "EmbeddingProviderError",
    "EmbeddingClient",
    "OpenAIEmbeddingClient",
    "SentenceTransformerEmbeddingClient",
    "DEFAULT_OPENAI_MODEL",
    "RetryPolicy",
    "RetryExhaustedError",
    "fixed_delay",
    "exponential_backoff",
]
