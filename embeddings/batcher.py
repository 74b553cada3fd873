"""
Batched embedding with bounded retry.

Texts are split into contiguous batches, each batch is sent to the provider
under a RetryPolicy, and the results are stitched back together in input
order.

Two failure modes:
- Strict (queries, embed_texts): an exhausted batch raises
  EmbeddingProviderError. A live query without an embedding is a failure.
- Lenient (ingestion, embed_chunks): an exhausted batch is logged and
  skipped along with its chunks, so the rest of the document still lands.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Sequence, Tuple

import numpy as np

from chunking.chunker import Chunk

from .providers import DEFAULT_OPENAI_MODEL, EmbeddingClient
from .retry import RetryExhaustedError, RetryPolicy

logger = logging.getLogger(__name__)


class EmbeddingProviderError(Exception):
    """Raised when the embedding provider could not embed a batch."""


@dataclass
class EmbeddedChunks:
    """Chunks that were embedded, index-aligned with their vectors."""

    chunks: List[Chunk] = field(default_factory=list)
    vectors: np.ndarray = field(
        default_factory=lambda: np.empty((0, 0), dtype=np.float32)
    )
    skipped: List[Chunk] = field(default_factory=list)
    failed_batches: int = 0

    def __len__(self) -> int:
        return len(self.chunks)


def _stack(rows: List[np.ndarray]) -> np.ndarray:
    if not rows:
        return np.empty((0, 0), dtype=np.float32)
    return np.vstack(rows).astype(np.float32, copy=False)


class EmbeddingBatcher:
    """
    Groups texts into batches and embeds them in order.

    Usage:
        batcher = EmbeddingBatcher(OpenAIEmbeddingClient(api_key), batch_size=100)
        vectors = batcher.embed_texts(["a", "b", "c"])
        query_vector = batcher.embed_query("what is the refund policy?")
    """

    def __init__(
        self,
        client: EmbeddingClient,
        model: str = DEFAULT_OPENAI_MODEL,
        batch_size: int = 100,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")

        self.client = client
        self.model = model
        self.batch_size = batch_size
        self.retry_policy = retry_policy or RetryPolicy(retryable=client.is_retryable)

    def _batches(self, count: int) -> Iterator[Tuple[int, int]]:
        for start in range(0, count, self.batch_size):
            yield start, min(count, start + self.batch_size)

    def _embed_one_batch(self, texts: Sequence[str]) -> np.ndarray:
        """
        Embed one batch under the retry policy.

        Raises:
            EmbeddingProviderError: On exhausted retries, a non-retryable
                error or a response that doesn't line up with the request
        """
        try:
            response = self.retry_policy.call(self.client.embed, list(texts), self.model)
        except RetryExhaustedError as e:
            raise EmbeddingProviderError(str(e)) from e.last_error
        except Exception as e:
            raise EmbeddingProviderError(f"Embedding request failed: {e}") from e

        if len(response) != len(texts):
            raise EmbeddingProviderError(
                f"Provider returned {len(response)} embeddings for {len(texts)} inputs"
            )

        return np.asarray(response, dtype=np.float32)

    def embed_texts(self, texts: Sequence[str]) -> np.ndarray:
        """
        Embed texts, failing on the first batch that can't be embedded.

        Returns:
            Array with one row per input text, in input order
        """
        rows = []
        for start, end in self._batches(len(texts)):
            logger.info(f"Getting embeddings for {start} -> {end} (of {len(texts)})")
            rows.append(self._embed_one_batch(texts[start:end]))
        return _stack(rows)

    def embed_query(self, text: str) -> np.ndarray:
        """Embed a single query; failures propagate."""
        try:
            return self._embed_one_batch([text])[0]
        except EmbeddingProviderError:
            logger.error("Failed to embed query")
            raise

    def embed_chunks(self, chunks: Sequence[Chunk]) -> EmbeddedChunks:
        """
        Embed chunks for ingestion, skipping batches that keep failing.

        Returns:
            EmbeddedChunks whose chunks and vectors stay index-aligned
        """
        result = EmbeddedChunks()
        rows = []

        for start, end in self._batches(len(chunks)):
            batch = chunks[start:end]
            logger.info(f"Getting embeddings for chunk {start} -> {end} (of {len(chunks)})")
            try:
                vectors = self._embed_one_batch([c.text for c in batch])
            except EmbeddingProviderError as e:
                logger.warning(f"Skipping chunks {start} -> {end}: {e}")
                result.skipped.extend(batch)
                result.failed_batches += 1
                continue

            rows.append(vectors)
            result.chunks.extend(batch)

        result.vectors = _stack(rows)
        return result
