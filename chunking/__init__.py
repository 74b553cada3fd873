"""
Chunking Module.

Chunking determines what the retriever can find.
This module provides two window-based strategies:
- Sentence-based windows (overlap counted in sentences)
- Character-based windows (overlap counted in characters)

Chunks that exceed the model's token limit are dropped, never split.

Usage:
    from chunking import create_chunker

    chunker = create_chunker("sentence", chunk_size=5, overlap=1, token_limit=4096)
    chunks = chunker.segment(text, title="handbook.md")
"""

from .chunker import (
    BaseChunker,
    CharacterChunker,
    Chunk,
    ChunkingReport,
    SentenceChunker,
    create_chunker,
)
from .sentence_splitter import Sentence, split_into_sentences

__all__ = [
    "BaseChunker",
    "SentenceChunker",
    "CharacterChunker",
    "Chunk",
    "ChunkingReport",
    "create_chunker",
    "Sentence",
    "split_into_sentences",
]
