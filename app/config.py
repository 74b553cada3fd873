"""
Configuration module for the bot service.
Manages all environment variables and settings with validation.
"""

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional


@dataclass
class EmbeddingConfig:
    """Embedding provider configuration - keep one model per namespace."""
    model_name: str = "text-embedding-ada-002"
    batch_size: int = 100
    max_retries: int = 3
    retry_delay: float = 5.0  # Seconds between attempts


@dataclass
class ChunkingConfig:
    """Chunking strategy configuration."""
    strategy: str = "sentence"  # sentence | character
    chunk_size: int = 10  # Sentences or characters per chunk
    overlap: int = 1


@dataclass
class BotConfig:
    """Completion model and prompt budget configuration."""
    model: str = "gpt-3.5-turbo"
    temperature: float = 0.6
    top_p: float = 0.6
    max_tokens: int = 4096  # Max to receive
    token_limit: int = 4096  # Max to send
    top_k: int = 3
    embedding_model: str = "text-embedding-ada-002"


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


@dataclass
class Settings:
    """Main application settings loaded from environment."""

    # OpenAI settings
    OPENAI_API_KEY: str = field(default_factory=lambda: os.getenv("OPENAI_API_KEY", ""))

    # Vector store settings
    VECTOR_BACKEND: str = field(default_factory=lambda: os.getenv("VECTOR_BACKEND", "pinecone"))
    PINECONE_KEY: str = field(default_factory=lambda: os.getenv("PINECONE_KEY", ""))
    PINECONE_URL: str = field(default_factory=lambda: os.getenv("PINECONE_URL", ""))
    CHROMA_PATH: str = field(default_factory=lambda: os.getenv("CHROMA_PATH", "./data/chroma"))
    CHROMA_HOST: Optional[str] = field(default_factory=lambda: os.getenv("CHROMA_HOST"))
    CHROMA_PORT: int = field(default_factory=lambda: _env_int("CHROMA_PORT", 8000))
    COLLECTION_NAME: str = field(default_factory=lambda: os.getenv("COLLECTION_NAME", "docs_v1"))

    # Application settings
    DEFAULT_NAMESPACE: str = field(default_factory=lambda: os.getenv("BOT_NAMESPACE", "default"))
    LOG_LEVEL: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    # Nested configs
    embedding: EmbeddingConfig = field(
        default_factory=lambda: EmbeddingConfig(
            model_name=os.getenv("EMBEDDING_MODEL", "text-embedding-ada-002"),
            batch_size=_env_int("EMBEDDING_BATCH_SIZE", 100),
            max_retries=_env_int("EMBEDDING_MAX_RETRIES", 3),
            retry_delay=float(os.getenv("EMBEDDING_RETRY_DELAY", "5.0")),
        )
    )
    chunking: ChunkingConfig = field(
        default_factory=lambda: ChunkingConfig(
            strategy=os.getenv("CHUNK_STRATEGY", "sentence"),
            chunk_size=_env_int("CHUNK_SIZE", 10),
            overlap=_env_int("CHUNK_OVERLAP", 1),
        )
    )
    bot: BotConfig = field(
        default_factory=lambda: BotConfig(
            model=os.getenv("BOT_MODEL", "gpt-3.5-turbo"),
            max_tokens=_env_int("BOT_MAX_TOKENS", 4096),
            token_limit=_env_int("BOT_TOKEN_LIMIT", 4096),
            top_k=_env_int("BOT_TOP_K", 3),
            embedding_model=os.getenv("EMBEDDING_MODEL", "text-embedding-ada-002"),
        )
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
