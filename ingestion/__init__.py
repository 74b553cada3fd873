"""
Ingestion Module.

Teaches a bot from documents in one pass:
Raw file -> Text -> Chunks -> Embeddings -> Vector store

Usage:
    from ingestion import Learner

    learner = Learner(storage=store, batcher=batcher, namespace="support-bot")
    stored = learner.from_file("./handbook.md")
"""

from .learner import (
    SUPPORTED_EXTENSIONS,
    IngestionStats,
    Learner,
    UnsupportedFileError,
    path_title_getter,
    run_ingestion,
)

__all__ = [
    "Learner",
    "IngestionStats",
    "UnsupportedFileError",
    "SUPPORTED_EXTENSIONS",
    "path_title_getter",
    "run_ingestion",
]
