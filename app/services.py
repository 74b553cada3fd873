"""
Service wiring from settings.

Builds the vector store, embedding batcher, learner and completion client
the API and CLI share.
"""

import logging
from typing import Optional

from context.prompt import BotSettings
from embeddings.batcher import EmbeddingBatcher
from embeddings.providers import OpenAIEmbeddingClient
from embeddings.retry import RetryPolicy
from ingestion.learner import Learner
from retrieval.vector_store import ChromaStorage, PineconeStorage, Storage
from shared.tokenizer import get_tokenizer

from .completion import CompletionClient
from .config import Settings, get_settings

logger = logging.getLogger(__name__)


def build_storage(settings: Optional[Settings] = None, namespace: str = "") -> Storage:
    """Vector store for the configured backend."""
    settings = settings or get_settings()

    if settings.VECTOR_BACKEND == "chroma":
        return ChromaStorage(
            path=settings.CHROMA_PATH,
            collection_name=settings.COLLECTION_NAME,
            host=settings.CHROMA_HOST,
            port=settings.CHROMA_PORT,
            namespace=namespace,
        )
    if settings.VECTOR_BACKEND == "pinecone":
        return PineconeStorage(
            api_endpoint=settings.PINECONE_URL,
            api_key=settings.PINECONE_KEY,
            namespace=namespace,
        )
    raise ValueError(f"Unknown vector backend: {settings.VECTOR_BACKEND}")


def build_batcher(settings: Optional[Settings] = None) -> EmbeddingBatcher:
    settings = settings or get_settings()
    client = OpenAIEmbeddingClient(api_key=settings.OPENAI_API_KEY)
    policy = RetryPolicy(
        max_attempts=settings.embedding.max_retries,
        delay=settings.embedding.retry_delay,
        retryable=client.is_retryable,
    )
    return EmbeddingBatcher(
        client,
        model=settings.embedding.model_name,
        batch_size=settings.embedding.batch_size,
        retry_policy=policy,
    )


def build_learner(
    namespace: str,
    settings: Optional[Settings] = None,
    storage: Optional[Storage] = None,
    batcher: Optional[EmbeddingBatcher] = None,
) -> Learner:
    settings = settings or get_settings()
    return Learner(
        storage=storage or build_storage(settings, namespace),
        batcher=batcher or build_batcher(settings),
        namespace=namespace,
        model=settings.bot.model,
        token_limit=settings.bot.token_limit,
        chunk_size=settings.chunking.chunk_size,
        overlap=settings.chunking.overlap,
        tokenizer=get_tokenizer(),
    )


def build_bot_settings(
    namespace: str, settings: Optional[Settings] = None, memory: Optional[Storage] = None
) -> BotSettings:
    settings = settings or get_settings()
    return BotSettings.from_config(settings.bot, namespace=namespace, memory=memory)


def build_completion_client(
    settings: Optional[Settings] = None, batcher: Optional[EmbeddingBatcher] = None
) -> CompletionClient:
    settings = settings or get_settings()
    return CompletionClient(
        api_key=settings.OPENAI_API_KEY,
        batcher=batcher or build_batcher(settings),
        tokenizer=get_tokenizer(),
    )
