"""Tests for sentence detection and window-based chunking."""

import pytest

from chunking import (
    BaseChunker,
    CharacterChunker,
    Chunk,
    SentenceChunker,
    create_chunker,
    split_into_sentences,
)


# ============================================================================
# Sentence detection
# ============================================================================


class TestSplitIntoSentences:
    """Test the default sentence boundary detector."""

    def test_simple_sentences(self) -> None:
        sentences = split_into_sentences("A. B. C. D. E.")
        assert [s.text for s in sentences] == ["A.", "B.", "C.", "D.", "E."]

    def test_offsets_index_into_source(self) -> None:
        text = "  First one!   Second one?\nThird one.  "
        sentences = split_into_sentences(text)

        assert [s.text for s in sentences] == ["First one!", "Second one?", "Third one."]
        for s in sentences:
            assert text[s.start:s.end] == s.text
        assert [s.index for s in sentences] == [0, 1, 2]

    def test_abbreviations_and_decimals_do_not_split(self) -> None:
        text = "Dr. Smith paid 3.50 dollars. Then he left."
        sentences = split_into_sentences(text)
        assert [s.text for s in sentences] == ["Dr. Smith paid 3.50 dollars.", "Then he left."]

    def test_empty_text(self) -> None:
        assert split_into_sentences("") == []
        assert split_into_sentences("   \n ") == []


# ============================================================================
# Sentence-based chunking
# ============================================================================


def sentence_chunker(tokenizer, **kwargs) -> SentenceChunker:
    kwargs.setdefault("token_limit", 1000)
    return SentenceChunker(model="gpt-3.5-turbo", tokenizer=tokenizer, **kwargs)


class TestSentenceChunker:
    """Test sentence windows, overlap and the token limit policy."""

    def test_two_sentence_windows(self, tokenizer) -> None:
        """chunk_size=2, overlap=0 over five sentences gives three chunks."""
        chunker = sentence_chunker(tokenizer, chunk_size=2, overlap=0)
        chunks = chunker.segment("A. B. C. D. E.", title="letters")

        assert [c.text for c in chunks] == ["A. B.", "C. D.", "E."]
        assert all(c.title == "letters" for c in chunks)

    def test_byte_offsets_cover_primary_text(self, tokenizer) -> None:
        chunker = sentence_chunker(tokenizer, chunk_size=2, overlap=1)
        chunks = chunker.segment("A. B. C. D. E.", title="letters")

        assert [(c.start, c.end) for c in chunks] == [(0, 5), (6, 11), (12, 14)]

    def test_overlap_prefixes_previous_window_tail(self, tokenizer) -> None:
        chunker = sentence_chunker(tokenizer, chunk_size=2, overlap=1)
        chunks = chunker.segment("A. B. C. D. E.", title="letters")

        assert [c.text for c in chunks] == ["A. B.", "B. C. D.", "D. E."]

    def test_overlap_larger_than_window_uses_whole_window(self, tokenizer) -> None:
        chunker = sentence_chunker(tokenizer, chunk_size=2, overlap=5)
        chunks = chunker.segment("A. B. C.", title="letters")

        assert [c.text for c in chunks] == ["A. B.", "A. B. C."]

    def test_primary_text_reconstructs_document(self, tokenizer) -> None:
        source = "Alpha is first. Beta comes next! Is gamma third? Delta. Epsilon ends it."
        chunker = sentence_chunker(tokenizer, chunk_size=2, overlap=2)
        chunks = chunker.segment(source, title="greek")

        raw = source.encode("utf-8")
        primary = [raw[c.start:c.end].decode("utf-8") for c in chunks]
        assert " ".join(primary) == " ".join(s.text for s in split_into_sentences(source))

    def test_short_document_yields_one_chunk(self, tokenizer) -> None:
        chunker = sentence_chunker(tokenizer, chunk_size=10, overlap=3)
        chunks = chunker.segment("Only one sentence here.", title="short")

        assert chunks == [Chunk(start=0, end=23, title="short", text="Only one sentence here.")]

    def test_empty_document_yields_no_chunks(self, tokenizer) -> None:
        chunker = sentence_chunker(tokenizer, chunk_size=2)
        assert chunker.segment("", title="empty") == []
        assert chunker.segment("   ", title="empty") == []

    def test_oversized_chunks_are_dropped(self, tokenizer) -> None:
        """Chunks at or above the token limit are skipped, not split."""
        chunker = sentence_chunker(tokenizer, chunk_size=1, token_limit=3)
        report = chunker.segment_with_report(
            "One two three. Four. Five six seven eight.", title="mixed"
        )

        assert [c.text for c in report.chunks] == ["Four."]
        assert report.dropped == 2
        assert report.windows == 3

    def test_overlap_comes_from_dropped_window(self, tokenizer) -> None:
        """Should prefix the next chunk with the tail of a window that was dropped."""
        chunker = sentence_chunker(tokenizer, chunk_size=2, overlap=1, token_limit=5)
        report = chunker.segment_with_report("P. Q. x y z w. A. B. C.", title="gap")

        # Middle window "Q. x y z w. A." has 6 tokens and is dropped
        assert [c.text for c in report.chunks] == ["P. Q.", "A. B. C."]
        assert report.dropped == 1
        assert report.chunks[1].text.startswith("A. ")

    def test_preprocess_hook_applied(self, tokenizer) -> None:
        chunker = sentence_chunker(tokenizer, chunk_size=2, preprocess_chunk=str.upper)
        chunks = chunker.segment("a. b. c.", title="lower")

        assert [c.text for c in chunks] == ["A. B.", "C."]

    def test_failing_preprocess_hook_keeps_raw_text(self, tokenizer) -> None:
        def broken(text):
            raise RuntimeError("boom")

        chunker = sentence_chunker(tokenizer, chunk_size=2, preprocess_chunk=broken)
        chunks = chunker.segment("a. b. c.", title="raw")

        assert [c.text for c in chunks] == ["a. b.", "c."]

    def test_preprocess_result_is_token_checked(self, tokenizer) -> None:
        chunker = sentence_chunker(
            tokenizer, chunk_size=1, token_limit=3, preprocess_chunk=lambda t: t + " x y z"
        )
        assert chunker.segment("Short.", title="padded") == []

    def test_custom_detector(self, tokenizer) -> None:
        from chunking import Sentence

        def lines(text):
            out, pos = [], 0
            for i, line in enumerate(text.split("\n")):
                out.append(Sentence(text=line, start=pos, end=pos + len(line), index=i))
                pos += len(line) + 1
            return out

        chunker = sentence_chunker(tokenizer, chunk_size=2, detector=lines)
        chunks = chunker.segment("l1\nl2\nl3", title="lines")

        assert [c.text for c in chunks] == ["l1 l2", "l3"]


# ============================================================================
# Character-based chunking
# ============================================================================


class TestCharacterChunker:
    """Test character windows and overlap."""

    def test_character_windows(self, tokenizer) -> None:
        chunker = CharacterChunker(chunk_size=4, tokenizer=tokenizer, token_limit=100)
        chunks = chunker.segment("abcdefghij", title="alpha")

        assert [c.text for c in chunks] == ["abcd", "efgh", "ij"]
        assert [(c.start, c.end) for c in chunks] == [(0, 4), (4, 8), (8, 10)]

    def test_character_overlap(self, tokenizer) -> None:
        chunker = CharacterChunker(chunk_size=4, overlap=2, tokenizer=tokenizer, token_limit=100)
        chunks = chunker.segment("abcdefghij", title="alpha")

        assert [c.text for c in chunks] == ["abcd", "cdefgh", "ghij"]

    def test_byte_offsets_with_multibyte_text(self, tokenizer) -> None:
        source = "héllo wörld"
        chunker = CharacterChunker(chunk_size=5, overlap=1, tokenizer=tokenizer, token_limit=100)
        chunks = chunker.segment(source, title="unicode")

        raw = source.encode("utf-8")
        assert [(c.start, c.end) for c in chunks] == [(0, 6), (6, 12), (12, 13)]
        assert b"".join(raw[c.start:c.end] for c in chunks) == raw

    def test_short_document_yields_one_chunk(self, tokenizer) -> None:
        chunker = CharacterChunker(chunk_size=100, tokenizer=tokenizer, token_limit=100)
        assert [c.text for c in chunker.segment("tiny", title="t")] == ["tiny"]

    def test_oversized_window_dropped(self, tokenizer) -> None:
        chunker = CharacterChunker(chunk_size=6, tokenizer=tokenizer, token_limit=2)
        report = chunker.segment_with_report("a b c d e f", title="words")

        # "a b c " has 3 tokens, "d e f" has 3 tokens
        assert report.chunks == []
        assert report.dropped == 2

    def test_overlap_comes_from_dropped_window(self, tokenizer) -> None:
        """Should prefix the next chunk with the tail of a window that was dropped."""
        chunker = CharacterChunker(chunk_size=5, overlap=2, tokenizer=tokenizer, token_limit=3)
        report = chunker.segment_with_report("abcdef g hijklm", title="gap")

        # Middle window "f g h" becomes "def g h", 3 tokens, and is dropped
        assert [c.text for c in report.chunks] == ["abcde", " hijklm"]
        assert report.dropped == 1
        assert report.chunks[1].text.startswith(" h")
        assert (report.chunks[1].start, report.chunks[1].end) == (10, 15)


class TestCreateChunker:
    """Test strategy selection and argument validation."""

    def test_strategies(self, tokenizer) -> None:
        assert isinstance(create_chunker("sentence", chunk_size=2, tokenizer=tokenizer), SentenceChunker)
        assert isinstance(create_chunker("character", chunk_size=2, tokenizer=tokenizer), CharacterChunker)

    def test_unknown_strategy(self, tokenizer) -> None:
        with pytest.raises(ValueError):
            create_chunker("paragraph", chunk_size=2, tokenizer=tokenizer)

    def test_base_chunker_is_abstract(self, tokenizer) -> None:
        with pytest.raises(TypeError):
            BaseChunker(chunk_size=2, tokenizer=tokenizer)

    @pytest.mark.parametrize("chunk_size, overlap", [(0, 0), (-1, 0), (3, -1)])
    def test_invalid_sizes(self, tokenizer, chunk_size, overlap) -> None:
        with pytest.raises(ValueError):
            SentenceChunker(chunk_size=chunk_size, overlap=overlap, tokenizer=tokenizer)
