"""
Window-based chunking with overlap.

Chunking determines what the retriever can find. Two interchangeable
strategies share the same windowing:
- Sentence-based: windows of N sentences, overlap counted in sentences
- Character-based: windows of N characters, overlap counted in characters

Every window becomes one chunk: the tail of the previous window followed by
the window's own text. Chunks that don't fit under the token limit are
dropped, not split.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from shared.tokenizer import Tokenizer, get_tokenizer

from .sentence_splitter import Sentence, split_into_sentences

logger = logging.getLogger(__name__)

PreProcessor = Callable[[str], str]
SentenceDetector = Callable[[str], List[Sentence]]


@dataclass(frozen=True)
class Chunk:
    """
    A bounded excerpt of a source document.

    start/end are UTF-8 byte offsets (end exclusive) of the chunk's own
    content in the source document; the overlap tail is not included.
    """

    start: int
    end: int
    title: str
    text: str


@dataclass
class ChunkingReport:
    """Chunks produced for one document plus what was dropped."""

    chunks: List[Chunk] = field(default_factory=list)
    dropped: int = 0

    @property
    def windows(self) -> int:
        return len(self.chunks) + self.dropped


class _ByteOffsets:
    """Character index -> UTF-8 byte offset, cheap for increasing lookups."""

    def __init__(self, text: str):
        self._text = text
        self._char = 0
        self._byte = 0

    def __call__(self, char_index: int) -> int:
        if char_index < self._char:
            self._char, self._byte = 0, 0
        self._byte += len(self._text[self._char:char_index].encode("utf-8"))
        self._char = char_index
        return self._byte


class BaseChunker(ABC):
    """Shared windowing, preprocessing and token-limit policy."""

    strategy = "base"
    tail_separator = ""

    def __init__(
        self,
        chunk_size: int,
        overlap: int = 0,
        model: str = "gpt-3.5-turbo",
        token_limit: int = 4096,
        tokenizer: Optional[Tokenizer] = None,
        preprocess_chunk: Optional[PreProcessor] = None,
    ):
        """
        Args:
            chunk_size: Units (sentences or characters) per window
            overlap: Units of the previous window repeated at the start
            model: Model whose encoding is used for the token limit check
            token_limit: Chunks at or above this many tokens are dropped
            tokenizer: Token counter (defaults to the shared tokenizer)
            preprocess_chunk: Optional hook applied to each chunk's text
        """
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        if overlap < 0:
            raise ValueError(f"overlap must not be negative, got {overlap}")

        self.chunk_size = chunk_size
        self.overlap = overlap
        self.model = model
        self.token_limit = token_limit
        self.tokenizer = tokenizer or get_tokenizer()
        self.preprocess_chunk = preprocess_chunk

    def segment(self, text: str, title: str) -> List[Chunk]:
        """Split text into an ordered list of chunks."""
        return self.segment_with_report(text, title).chunks

    @abstractmethod
    def segment_with_report(self, text: str, title: str) -> ChunkingReport:
        """Split text into chunks, counting windows dropped for overflow."""

    def _build_chunk(
        self, tail: str, primary: str, start: int, end: int, title: str
    ) -> Optional[Chunk]:
        """Apply the preprocess hook and token limit to one window."""
        text = f"{tail}{self.tail_separator}{primary}" if tail else primary

        if self.preprocess_chunk is not None:
            try:
                text = self.preprocess_chunk(text)
            except Exception as e:
                logger.warning(f"Chunk preprocessing failed, keeping raw text: {e}")

        if not self.tokenizer.within_limit(text, self.model, self.token_limit):
            logger.warning(
                f"Chunk [{start}:{end}] of '{title}' exceeds token limit "
                f"({self.token_limit}), skipping chunk"
            )
            return None

        return Chunk(start=start, end=end, title=title, text=text)


class SentenceChunker(BaseChunker):
    """
    Groups sentences into windows of chunk_size sentences.

    Usage:
        chunker = SentenceChunker(chunk_size=5, overlap=1)
        chunks = chunker.segment(document_text, title="handbook.md")
    """

    strategy = "sentence"
    tail_separator = " "

    def __init__(self, *args, detector: Optional[SentenceDetector] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.detector = detector or split_into_sentences

    def segment_with_report(self, text: str, title: str) -> ChunkingReport:
        logger.debug("Starting sentence-based chunk generator")
        report = ChunkingReport()
        sentences = self.detector(text)
        to_bytes = _ByteOffsets(text)

        tail = ""
        for i in range(0, len(sentences), self.chunk_size):
            window = sentences[i:i + self.chunk_size]
            primary = " ".join(s.text for s in window)

            chunk = self._build_chunk(
                tail,
                primary,
                start=to_bytes(window[0].start),
                end=to_bytes(window[-1].end),
                title=title,
            )
            if chunk is None:
                report.dropped += 1
            else:
                report.chunks.append(chunk)

            if self.overlap:
                tail = " ".join(s.text for s in window[-self.overlap:])

        logger.info(
            f"'{title}' chunked into {len(report.chunks)} sentence chunks "
            f"({report.dropped} dropped)"
        )
        return report


class CharacterChunker(BaseChunker):
    """
    Cuts text into windows of chunk_size characters.

    Use when no sentence structure is available or wanted.
    """

    strategy = "character"

    def segment_with_report(self, text: str, title: str) -> ChunkingReport:
        logger.debug("Starting character-based chunk generator")
        report = ChunkingReport()
        if not text.strip():
            return report

        to_bytes = _ByteOffsets(text)

        tail = ""
        for i in range(0, len(text), self.chunk_size):
            primary = text[i:i + self.chunk_size]

            chunk = self._build_chunk(
                tail,
                primary,
                start=to_bytes(i),
                end=to_bytes(i + len(primary)),
                title=title,
            )
            if chunk is None:
                report.dropped += 1
            else:
                report.chunks.append(chunk)

            if self.overlap:
                tail = primary[-self.overlap:]

        logger.info(
            f"'{title}' chunked into {len(report.chunks)} character chunks "
            f"({report.dropped} dropped)"
        )
        return report


CHUNKERS = {
    SentenceChunker.strategy: SentenceChunker,
    CharacterChunker.strategy: CharacterChunker,
}


def create_chunker(strategy: str = "sentence", **kwargs) -> BaseChunker:
    """
    Build a chunker by strategy name ("sentence" or "character").

    Keyword arguments are passed to the chunker constructor.
    """
    try:
        chunker_cls = CHUNKERS[strategy]
    except KeyError:
        raise ValueError(
            f"Unknown chunking strategy '{strategy}', expected one of {sorted(CHUNKERS)}"
        )
    return chunker_cls(**kwargs)
