"""
Greedy token-budget context packing.

Treat prompt context as a resource with a budget.

Candidates arrive best-first from the vector store. The packer walks them
once and keeps adding while the running total (prompt skeleton plus every
accepted context) stays under the budget. The first candidate that would
meet or exceed the budget stops the walk, so the result is always a prefix
of the candidate list. No second ranking pass, no best-fit search: the same
inputs always give the same selection.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Sequence

from retrieval.vector_store import CandidateContext

logger = logging.getLogger(__name__)


class BudgetExceededError(Exception):
    """Raised when a prompt doesn't fit in its token budget."""

    def __init__(self, token_count: int, token_limit: int, message: str = None):
        super().__init__(
            message
            or f"Prompt uses {token_count} tokens, limit is {token_limit}; "
            "please shorten your prompt"
        )
        self.token_count = token_count
        self.token_limit = token_limit


@dataclass
class PackedContext:
    """Contexts selected for a prompt."""

    contexts: List[str] = field(default_factory=list)
    titles: List[str] = field(default_factory=list)
    token_count: int = 0
    candidates_considered: int = 0

    @property
    def chunks_included(self) -> int:
        return len(self.contexts)


def clean_context(text: str) -> str:
    """Flatten a context onto one line for the prompt."""
    return text.replace("\n", " ").strip(" ")


def pack_context(
    query_tokens: int,
    candidates: Sequence[CandidateContext],
    token_budget: int,
    count_tokens: Callable[[str], int],
    header_tokens: int = 0,
) -> PackedContext:
    """
    Select the longest prefix of candidates that fits the budget.

    Args:
        query_tokens: Token cost of the prompt rendered without context
        candidates: Retrieved contexts, most relevant first
        token_budget: Total tokens the prompt may use
        count_tokens: Token cost of one candidate as it is rendered
        header_tokens: Cost charged once, with the first accepted context

    Returns:
        PackedContext with the selected texts and their titles, in
        candidate order
    """
    packed = PackedContext(token_count=query_tokens)

    for candidate in candidates:
        packed.candidates_considered += 1
        running = packed.token_count + count_tokens(candidate.text)
        if not packed.contexts:
            running += header_tokens

        if running >= token_budget:
            logger.debug(
                f"Context budget reached at candidate {packed.candidates_considered} "
                f"({running}/{token_budget} tokens)"
            )
            break

        packed.contexts.append(clean_context(candidate.text))
        packed.titles.append(candidate.title)
        packed.token_count = running

    logger.info(
        f"Packed {packed.chunks_included}/{len(candidates)} contexts "
        f"({packed.token_count}/{token_budget} tokens)"
    )
    return packed
