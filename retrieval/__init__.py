"""
Vector Store Module.

Retrieval is the optical lens for your LLM.

This module implements:
- The Storage capability interface
- Pinecone (REST) and ChromaDB backends
- Batched upserts (at most 100 records per request)
- Namespace-scoped top-K queries

Usage:
    from retrieval import PineconeStorage

    store = PineconeStorage(api_endpoint=url, api_key=key)
    store.upload_embeddings(vectors, chunks, namespace="support-bot")
    matches = store.retrieve(query_vector, top_k=3, namespace="support-bot")
"""

from .vector_store import (
    MAX_VECTORS_PER_REQUEST,
    CandidateContext,
    ChromaStorage,
    PineconeStorage,
    Storage,
    VectorStoreError,
    chunk_metadata,
    hash_title,
)

__all__ = [
    "Storage",
    "PineconeStorage",
    "ChromaStorage",
    "CandidateContext",
    "VectorStoreError",
    "MAX_VECTORS_PER_REQUEST",
    "chunk_metadata",
    "hash_title",
]
