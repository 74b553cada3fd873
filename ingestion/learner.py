"""
Document ingestion into a bot's memory.

Orchestrates the full learning workflow:
Raw file -> Text (+ title) -> Chunking -> Embedding batches -> Vector store upserts

A chunk that's too large or a batch that can't be embedded is logged and
skipped; a failed upsert aborts the document.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple

from pypdf import PdfReader

from chunking.chunker import PreProcessor, create_chunker
from embeddings.batcher import EmbeddingBatcher
from retrieval.vector_store import Storage
from shared.tokenizer import Tokenizer, get_tokenizer

logger = logging.getLogger(__name__)

TEXT_EXTENSIONS = (".txt", ".md", ".text", ".json", ".yml", ".yaml")
PDF_EXTENSIONS = (".pdf",)
SUPPORTED_EXTENSIONS = TEXT_EXTENSIONS + PDF_EXTENSIONS

TitleGetter = Callable[[str], str]


class UnsupportedFileError(Exception):
    """Raised when a file type can't be ingested."""


def path_title_getter(path: str) -> str:
    """Use the file name as the document title."""
    return Path(path).name


@dataclass
class IngestionStats:
    """Statistics from a learning run."""

    documents: int = 0
    chunks_created: int = 0
    chunks_dropped: int = 0
    chunks_skipped: int = 0
    failed_batches: int = 0
    embeddings_stored: int = 0

    def as_dict(self) -> Dict[str, int]:
        return {
            "documents": self.documents,
            "chunks_created": self.chunks_created,
            "chunks_dropped": self.chunks_dropped,
            "chunks_skipped": self.chunks_skipped,
            "failed_batches": self.failed_batches,
            "embeddings_stored": self.embeddings_stored,
        }


class Learner:
    """
    Teaches a bot from documents.

    Usage:
        learner = Learner(storage=store, batcher=batcher, namespace="support-bot")

        # Learn raw text
        stored = learner.learn(text, title="faq")

        # Learn a file
        stored = learner.from_file("./handbook.pdf")
    """

    def __init__(
        self,
        storage: Storage,
        batcher: EmbeddingBatcher,
        namespace: str = "",
        model: str = "gpt-3.5-turbo",
        token_limit: int = 4096,
        chunk_size: int = 10,
        overlap: int = 1,
        tokenizer: Optional[Tokenizer] = None,
        get_title: Optional[TitleGetter] = None,
        preprocess_body: Optional[PreProcessor] = None,
        preprocess_chunk: Optional[PreProcessor] = None,
    ):
        """
        Args:
            storage: Vector store to upload into
            batcher: Embedding batcher
            namespace: Vector store namespace (the bot id)
            model: Model whose token limit chunks must respect
            token_limit: Chunks at or above this many tokens are dropped
            chunk_size: Sentences (or characters) per chunk
            overlap: Sentences (or characters) repeated between chunks
            tokenizer: Token counter (defaults to the shared tokenizer)
            get_title: Maps a file path to a document title
            preprocess_body: Hook applied to the whole document first
            preprocess_chunk: Hook applied to each chunk
        """
        self.storage = storage
        self.batcher = batcher
        self.namespace = namespace
        self.model = model
        self.token_limit = token_limit
        self.chunk_size = chunk_size
        self.overlap = overlap
        self.tokenizer = tokenizer or get_tokenizer()
        self.get_title = get_title or path_title_getter
        self.preprocess_body = preprocess_body
        self.preprocess_chunk = preprocess_chunk
        self.stats = IngestionStats()

    @staticmethod
    def extension_supported(path: str) -> Tuple[str, bool]:
        """Return the file extension and whether it can be ingested."""
        ext = Path(path).suffix.lower()
        return ext, ext in SUPPORTED_EXTENSIONS

    def _title_for(self, path: str) -> str:
        return self.get_title(path) or Path(path).name

    def read_text_file(self, path: str) -> Tuple[str, str]:
        """
        Read a text file, returning (title, contents).

        Bytes that aren't valid UTF-8 become U+FFFD and a warning is logged.
        """
        raw = Path(path).read_bytes()
        try:
            contents = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            logger.warning(f"{path} is not valid UTF-8 ({e}), replacing undecodable bytes")
            contents = raw.decode("utf-8", errors="replace")
        return self._title_for(path), contents

    def read_pdf_file(self, path: str) -> Tuple[str, str]:
        """Extract the readable text of a PDF, returning (title, text)."""
        reader = PdfReader(path)
        text = "\n".join((page.extract_text() or "") for page in reader.pages)
        return self._title_for(path), text.strip()

    def learn(self, contents: str, title: str, sentences: bool = True) -> int:
        """
        Chunk, embed and store one document.

        Args:
            contents: Document text
            title: Document title, stored with every chunk
            sentences: Sentence-based chunks if True, character-based if False

        Returns:
            Number of embeddings stored

        Raises:
            VectorStoreError: If an upsert fails
        """
        self.stats.documents += 1

        if self.preprocess_body is not None:
            contents = self.preprocess_body(contents)

        chunker = create_chunker(
            "sentence" if sentences else "character",
            chunk_size=self.chunk_size,
            overlap=self.overlap,
            model=self.model,
            token_limit=self.token_limit,
            tokenizer=self.tokenizer,
            preprocess_chunk=self.preprocess_chunk,
        )
        report = chunker.segment_with_report(contents, title)
        self.stats.chunks_created += len(report.chunks)
        self.stats.chunks_dropped += report.dropped

        embedded = self.batcher.embed_chunks(report.chunks)
        self.stats.chunks_skipped += len(embedded.skipped)
        self.stats.failed_batches += embedded.failed_batches

        logger.info(f"Title: {title}")
        logger.info(f"Total chunks: {len(report.chunks)}")
        logger.info(f"Total embeddings: {len(embedded)}")

        if len(embedded) == 0:
            logger.info(f"No embeddings for '{title}', skipping upload")
            return 0

        self.storage.upload_embeddings(embedded.vectors, embedded.chunks, self.namespace)
        self.stats.embeddings_stored += len(embedded)
        return len(embedded)

    def from_file(self, path: str, sentences: bool = True) -> int:
        """
        Learn a file; returns the number of embeddings stored.

        Raises:
            UnsupportedFileError: If the extension isn't supported
        """
        ext, supported = self.extension_supported(path)
        if not supported:
            raise UnsupportedFileError(f"File format is not supported: {path}")

        if ext in PDF_EXTENSIONS:
            title, contents = self.read_pdf_file(path)
        else:
            title, contents = self.read_text_file(path)

        return self.learn(contents, title, sentences=sentences)

    def from_directory(self, directory: str, sentences: bool = True, recursive: bool = True) -> int:
        """Learn every supported file under a directory."""
        dir_path = Path(directory)
        if not dir_path.exists():
            logger.error(f"Directory not found: {directory}")
            return 0

        pattern = "**/*" if recursive else "*"
        stored = 0
        for file_path in sorted(dir_path.glob(pattern)):
            if file_path.is_file() and self.extension_supported(str(file_path))[1]:
                stored += self.from_file(str(file_path), sentences=sentences)

        logger.info(
            f"Learning complete: {self.stats.documents} documents, "
            f"{self.stats.embeddings_stored} embeddings stored"
        )
        return stored

    def get_stats(self) -> Dict:
        return self.stats.as_dict()


# Convenience function for CLI usage
def run_ingestion(
    input_path: str,
    namespace: str,
    sentences: bool = True,
    recursive: bool = True,
) -> Dict:
    """
    Learn a file or directory using settings from the environment.

    Returns:
        Ingestion statistics
    """
    from app.services import build_learner

    learner = build_learner(namespace=namespace)

    path = Path(input_path)
    if path.is_file():
        stored = learner.from_file(str(path), sentences=sentences)
        return {"mode": "single_file", "embeddings_stored": stored, "stats": learner.get_stats()}
    elif path.is_dir():
        stored = learner.from_directory(str(path), sentences=sentences, recursive=recursive)
        return {"mode": "directory", "embeddings_stored": stored, "stats": learner.get_stats()}
    else:
        return {"error": f"Path not found: {input_path}"}


if __name__ == "__main__":
    import argparse
    import json

    from app.config import get_settings

    parser = argparse.ArgumentParser(description="Teach a bot from documents")
    parser.add_argument("--input", required=True, help="Input file or directory")
    parser.add_argument("--namespace", default=None, help="Bot namespace")
    parser.add_argument("--characters", action="store_true", help="Character-based chunks")
    parser.add_argument("--no-recursive", action="store_true", help="Don't search subdirs")

    args = parser.parse_args()
    settings = get_settings()

    logging.basicConfig(
        level=settings.LOG_LEVEL, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    result = run_ingestion(
        input_path=args.input,
        namespace=args.namespace or settings.DEFAULT_NAMESPACE,
        sentences=not args.characters and settings.chunking.strategy == "sentence",
        recursive=not args.no_recursive,
    )

    print(json.dumps(result, indent=2))
