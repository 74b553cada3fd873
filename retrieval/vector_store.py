"""
Vector store adapters.

Storage is the capability interface the ingestion and query paths depend
on. Backends:
- PineconeStorage: Pinecone REST API over requests
- ChromaStorage: ChromaDB (local persistent or remote HTTP)

Upserts go out in batches of at most 100 records. A failing batch aborts
the rest of the upload; there is no partial-success tracking.
"""

import hashlib
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import chromadb
import numpy as np
import requests
from chromadb.config import Settings as ChromaSettings

from chunking.chunker import Chunk

logger = logging.getLogger(__name__)

MAX_VECTORS_PER_REQUEST = 100


class VectorStoreError(Exception):
    """Raised when an upsert or query against the vector store fails."""


@dataclass
class CandidateContext:
    """A retrieved match decorated with its stored metadata."""

    text: str
    title: str
    score: float
    id: str = ""


def hash_title(title: str) -> str:
    """Stable identifier prefix for a document title."""
    return hashlib.sha256(title.encode("utf-8")).hexdigest()


def vector_id(chunk: Chunk, index: int) -> str:
    return f"id-{hash_title(chunk.title)}-{index}"


def chunk_metadata(chunk: Chunk) -> Dict[str, str]:
    """Metadata stored with each vector."""
    return {
        "file_name": chunk.title,
        "title": chunk.title,
        "start": str(chunk.start),
        "end": str(chunk.end),
        "text": chunk.text,
    }


def _as_list(vector) -> List[float]:
    if isinstance(vector, np.ndarray):
        return vector.astype(np.float32).tolist()
    return [float(v) for v in vector]


def _check_aligned(embeddings: Sequence, chunks: Sequence[Chunk]) -> None:
    if len(embeddings) != len(chunks):
        raise ValueError(
            f"Got {len(embeddings)} embeddings for {len(chunks)} chunks"
        )


class Storage(ABC):
    """Capability interface for vector stores."""

    @abstractmethod
    def upload_embeddings(
        self, embeddings: Sequence, chunks: Sequence[Chunk], namespace: str = None
    ) -> None:
        """Upsert index-aligned embeddings and chunks into a namespace."""

    @abstractmethod
    def retrieve(
        self, query_embedding, top_k: int, namespace: str
    ) -> List[CandidateContext]:
        """Return at most top_k matches, best first. No matches is not an error."""


class PineconeStorage(Storage):
    """
    Pinecone REST adapter.

    Usage:
        store = PineconeStorage(api_endpoint=settings.PINECONE_URL, api_key=settings.PINECONE_KEY)
        store.upload_embeddings(vectors, chunks, namespace="support-bot")
        matches = store.retrieve(query_vector, top_k=3, namespace="support-bot")
    """

    def __init__(
        self,
        api_endpoint: str,
        api_key: str,
        namespace: str = "",
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        """
        Args:
            api_endpoint: Index base URL
            api_key: Pinecone API key
            namespace: Default namespace for uploads
            timeout: Per-request timeout in seconds
            session: Optional requests session (created if None)
        """
        self.api_endpoint = api_endpoint.rstrip("/")
        self.api_key = api_key
        self.namespace = namespace
        self.timeout = timeout
        self.session = session or requests.Session()

    def _post(self, path: str, payload: Dict) -> requests.Response:
        try:
            return self.session.post(
                f"{self.api_endpoint}{path}",
                json=payload,
                headers={"Content-Type": "application/json", "Api-Key": self.api_key},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise VectorStoreError(f"Request to {path} failed: {e}") from e

    def upload_embeddings(
        self, embeddings: Sequence, chunks: Sequence[Chunk], namespace: str = None
    ) -> None:
        _check_aligned(embeddings, chunks)
        namespace = self.namespace if namespace is None else namespace

        vectors = [
            {
                "id": vector_id(chunk, i),
                "values": _as_list(embedding),
                "metadata": chunk_metadata(chunk),
            }
            for i, (embedding, chunk) in enumerate(zip(embeddings, chunks))
        ]

        for start in range(0, len(vectors), MAX_VECTORS_PER_REQUEST):
            end = min(len(vectors), start + MAX_VECTORS_PER_REQUEST)
            logger.info(f"Upserting vectors {start} -> {end} ns={namespace}")

            response = self._post(
                "/vectors/upsert",
                {"vectors": vectors[start:end], "namespace": namespace},
            )
            if response.status_code != 200:
                raise VectorStoreError(response.text)

    def retrieve(
        self, query_embedding, top_k: int, namespace: str
    ) -> List[CandidateContext]:
        response = self._post(
            "/query",
            {
                "topK": top_k,
                "includeMetadata": True,
                "namespace": namespace,
                "vector": _as_list(query_embedding),
            },
        )
        if response.status_code != 200:
            raise VectorStoreError(response.text)

        body = response.json() or {}
        matches = body.get("matches")
        if matches is None:
            # Older indexes answer batch queries with a results list
            results = body.get("results") or [{}]
            matches = results[0].get("matches") or []

        candidates = []
        for match in matches[:top_k]:
            metadata = match.get("metadata") or {}
            candidates.append(
                CandidateContext(
                    text=metadata.get("text", ""),
                    title=metadata.get("title", ""),
                    score=float(match.get("score", 0.0)),
                    id=match.get("id", ""),
                )
            )
        return candidates


class ChromaStorage(Storage):
    """
    ChromaDB adapter.

    Namespaces are stored in each record's metadata and applied as a
    filter at query time, so one collection can serve many bots.
    """

    def __init__(
        self,
        path: str = None,
        collection_name: str = None,
        host: str = None,
        port: int = None,
        namespace: str = "",
        client=None,
    ):
        self.path = path or "./data/chroma"
        self.collection_name = collection_name or "docs_v1"
        self.host = host
        self.port = port or 8000
        self.namespace = namespace

        self._client = client
        self._collection = None

    @property
    def client(self):
        """Get or create Chroma client."""
        if self._client is None:
            if self.host:
                # Remote client
                self._client = chromadb.HttpClient(host=self.host, port=self.port)
            else:
                # Local persistent client
                self._client = chromadb.PersistentClient(
                    path=self.path, settings=ChromaSettings(anonymized_telemetry=False)
                )
        return self._client

    @property
    def collection(self):
        """Get or create collection."""
        if self._collection is None:
            self._collection = self.client.get_or_create_collection(
                name=self.collection_name,
                metadata={"hnsw:space": "cosine"},
            )
        return self._collection

    def upload_embeddings(
        self, embeddings: Sequence, chunks: Sequence[Chunk], namespace: str = None
    ) -> None:
        _check_aligned(embeddings, chunks)
        namespace = self.namespace if namespace is None else namespace

        for start in range(0, len(chunks), MAX_VECTORS_PER_REQUEST):
            end = min(len(chunks), start + MAX_VECTORS_PER_REQUEST)
            batch = chunks[start:end]
            logger.info(f"Upserting vectors {start} -> {end} ns={namespace}")

            try:
                self.collection.upsert(
                    ids=[f"{namespace}:{vector_id(c, start + i)}" for i, c in enumerate(batch)],
                    documents=[c.text for c in batch],
                    metadatas=[{**chunk_metadata(c), "namespace": namespace} for c in batch],
                    embeddings=[_as_list(e) for e in embeddings[start:end]],
                )
            except Exception as e:
                raise VectorStoreError(f"Chroma upsert failed: {e}") from e

    def retrieve(
        self, query_embedding, top_k: int, namespace: str
    ) -> List[CandidateContext]:
        try:
            results = self.collection.query(
                query_embeddings=[_as_list(query_embedding)],
                n_results=top_k,
                where={"namespace": namespace},
                include=["metadatas", "distances"],
            )
        except Exception as e:
            raise VectorStoreError(f"Chroma query failed: {e}") from e

        if not results["ids"] or not results["ids"][0]:
            return []

        candidates = []
        for i, match_id in enumerate(results["ids"][0]):
            metadata = results["metadatas"][0][i] or {}
            # Cosine distance -> similarity
            score = 1.0 - results["distances"][0][i]
            candidates.append(
                CandidateContext(
                    text=metadata.get("text", ""),
                    title=metadata.get("title", ""),
                    score=score,
                    id=match_id,
                )
            )
        return candidates
