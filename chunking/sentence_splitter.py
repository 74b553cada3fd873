"""
Sentence boundary detection.

The default detector used by the sentence-based chunker. Any callable with
the same signature (text -> List[Sentence]) can be swapped in.
"""

import logging
import re
from dataclasses import dataclass
from typing import List

logger = logging.getLogger(__name__)

# Common abbreviations that shouldn't end a sentence
ABBREVIATIONS = (
    "Mr",
    "Mrs",
    "Ms",
    "Dr",
    "Prof",
    "Sr",
    "Jr",
    "vs",
    "etc",
    "eg",
    "ie",
    "al",
    "Inc",
    "Ltd",
    "Corp",
    "Jan",
    "Feb",
    "Mar",
    "Apr",
    "Jun",
    "Jul",
    "Aug",
    "Sep",
    "Oct",
    "Nov",
    "Dec",
)

# Same length as ".", so offsets in the protected text match the source
_PLACEHOLDER = "\x00"

_ABBREVIATION_RE = re.compile(
    r"\b(" + "|".join(ABBREVIATIONS) + r")\.", flags=re.IGNORECASE
)
_DECIMAL_RE = re.compile(r"(\d)\.(\d)")
_BOUNDARY_RE = re.compile(r"(?<=[.!?])\s+")


@dataclass(frozen=True)
class Sentence:
    """A sentence with character offsets into the source text."""

    text: str
    start: int
    end: int
    index: int


def _protect(text: str) -> str:
    protected = _ABBREVIATION_RE.sub(lambda m: m.group(1) + _PLACEHOLDER, text)
    return _DECIMAL_RE.sub(lambda m: m.group(1) + _PLACEHOLDER + m.group(2), protected)


def split_into_sentences(text: str) -> List[Sentence]:
    """
    Split text into sentences.

    Handles common edge cases:
    - Abbreviations (Mr., Dr., etc.)
    - Numbers with decimals
    - Question marks and exclamation points

    Args:
        text: Text to split

    Returns:
        List of Sentence objects in source order, whitespace-trimmed, with
        ``text[start:end] == sentence.text``
    """
    protected = _protect(text)

    sentences = []
    cursor = 0
    boundaries = [m.span() for m in _BOUNDARY_RE.finditer(protected)]
    boundaries.append((len(text), len(text)))

    for gap_start, gap_end in boundaries:
        raw = text[cursor:gap_start]
        stripped = raw.strip()
        if stripped:
            start = cursor + (len(raw) - len(raw.lstrip()))
            sentences.append(
                Sentence(
                    text=stripped,
                    start=start,
                    end=start + len(stripped),
                    index=len(sentences),
                )
            )
        cursor = gap_end

    return sentences
