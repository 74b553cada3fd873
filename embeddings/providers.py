"""
Embedding providers.

An EmbeddingClient turns an ordered list of strings into an index-aligned
list of vectors. Swap providers without touching the chunker or the packer.

CRITICAL: Never mix vectors from different models in the same namespace.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional

import numpy as np
import openai
from openai import OpenAI

logger = logging.getLogger(__name__)

DEFAULT_OPENAI_MODEL = "text-embedding-ada-002"

# Client-side errors that another attempt won't fix
_NON_RETRYABLE_OPENAI_ERRORS = (
    openai.BadRequestError,
    openai.AuthenticationError,
    openai.PermissionDeniedError,
    openai.NotFoundError,
    openai.UnprocessableEntityError,
)


class EmbeddingClient(ABC):
    """Capability interface for embedding providers."""

    @abstractmethod
    def embed(self, texts: List[str], model: str) -> List[List[float]]:
        """Embed texts; the result is index-aligned with the input."""

    def is_retryable(self, error: BaseException) -> bool:
        """Whether a failed call may succeed on another attempt."""
        return True


class OpenAIEmbeddingClient(EmbeddingClient):
    """
    Embeddings from the OpenAI API.

    Usage:
        client = OpenAIEmbeddingClient(api_key=settings.OPENAI_API_KEY)
        vectors = client.embed(["text1", "text2"], "text-embedding-ada-002")
    """

    def __init__(self, api_key: str = None, client: Optional[OpenAI] = None):
        self.api_key = api_key
        self._client = client

    @property
    def client(self) -> OpenAI:
        """Lazy load OpenAI client."""
        if self._client is None:
            self._client = OpenAI(api_key=self.api_key)
        return self._client

    def embed(self, texts: List[str], model: str) -> List[List[float]]:
        response = self.client.embeddings.create(model=model, input=texts)
        # The API tags each record with its input index
        records = sorted(response.data, key=lambda record: record.index)
        return [record.embedding for record in records]

    def is_retryable(self, error: BaseException) -> bool:
        return not isinstance(error, _NON_RETRYABLE_OPENAI_ERRORS)


class SentenceTransformerEmbeddingClient(EmbeddingClient):
    """
    Local embeddings from a sentence-transformers model.

    Preprocessing is deterministic (whitespace normalisation and a length
    cap); any change to it requires re-indexing.
    """

    def __init__(
        self,
        model_name: str = "all-MiniLM-L6-v2",
        normalize: bool = True,
        max_seq_length: int = 512,
    ):
        self.model_name = model_name
        self.normalize = normalize
        self.max_seq_length = max_seq_length
        self._models = {}

    def get_model(self, model_name: str):
        """Lazy load a model."""
        if model_name not in self._models:
            from sentence_transformers import SentenceTransformer

            logger.info(f"Loading embedding model: {model_name}")
            self._models[model_name] = SentenceTransformer(model_name)
        return self._models[model_name]

    def preprocess_text(self, text: str) -> str:
        # Normalize whitespace
        text = " ".join(text.split())
        max_chars = self.max_seq_length * 4  # Approximate
        return text[:max_chars]

    def embed(self, texts: List[str], model: str = None) -> List[List[float]]:
        processed = [self.preprocess_text(t) for t in texts]
        vectors = self.get_model(model or self.model_name).encode(
            processed, show_progress_bar=False, convert_to_numpy=True
        )

        # Normalize to unit length for cosine similarity
        if self.normalize:
            norms = np.linalg.norm(vectors, axis=1, keepdims=True)
            vectors = vectors / (norms + 1e-10)

        return vectors.tolist()
