"""
Prompt state and context assembly for a conversation.

BotSettings holds the tuning for one bot; BotPrompt holds the state of one
conversation (instructions, current query, packed context, history).
Each turn repopulates the context; history only grows.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from embeddings.batcher import EmbeddingBatcher
from embeddings.providers import DEFAULT_OPENAI_MODEL
from retrieval.vector_store import Storage
from shared.tokenizer import Tokenizer, get_tokenizer

from .packer import BudgetExceededError, PackedContext, clean_context, pack_context

logger = logging.getLogger(__name__)

FILE_TEMPLATE_PREFIX = "file://"

# Prompt templates

DEFAULT_TEMPLATE = """
{instructions}
{context}
Human: {body}
{desired_format}
"""

GROUNDED_TEMPLATE = """{instructions}

Use ONLY the context below to answer. If the answer is not in the context, reply: "Not found in context".
{context}
Question: {body}
{desired_format}
Answer:"""

TEMPLATES = {
    "default": DEFAULT_TEMPLATE,
    "grounded": GROUNDED_TEMPLATE,
}

CONTEXT_HEADER = "Use the following context to help with your response:\n"
FORMAT_HEADER = "Provide your output using the following format:\n"
CONTEXT_ENTRY = "\nContext: {}\n"


@dataclass
class BotSettings:
    """Tuning for one bot."""

    id: str = ""  # Namespace used when retrieving contexts
    model: str = "gpt-3.5-turbo"
    temperature: float = 0.6
    top_p: float = 0.6
    frequency_penalty: float = 0.0
    presence_penalty: float = 0.6
    max_tokens: int = 4096  # Max to receive
    token_limit: int = 4096  # Max to send
    embedding_model: str = DEFAULT_OPENAI_MODEL
    top_k: int = 3
    memory: Optional[Storage] = None

    @classmethod
    def from_config(cls, config, namespace: str = "", memory: Storage = None):
        """Build settings from an app BotConfig."""
        return cls(
            id=namespace,
            model=config.model,
            temperature=config.temperature,
            top_p=config.top_p,
            max_tokens=config.max_tokens,
            token_limit=config.token_limit,
            embedding_model=config.embedding_model,
            top_k=config.top_k,
            memory=memory,
        )


@dataclass
class ChatMessage:
    role: str
    content: str

    def as_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


def load_template(template: str = "") -> str:
    """
    Resolve a template: a registered name, a file:// path or literal text.

    Empty selects the default template.
    """
    if not template:
        return DEFAULT_TEMPLATE
    if template in TEMPLATES:
        return TEMPLATES[template]
    if template.startswith(FILE_TEMPLATE_PREFIX):
        return Path(template[len(FILE_TEMPLATE_PREFIX):]).read_text(encoding="utf-8")
    return template


class BotPrompt:
    """
    The components of one conversation with the model.

    Usage:
        prompt = BotPrompt(instructions="You are a helpful support bot")
        prompt.body = "How do I reset my password?"
        text = prompt.prompt(settings, batcher=batcher)
    """

    def __init__(
        self,
        template: str = "",
        instructions: str = "",
        body: str = "",
        desired_format: str = "",
        stop: Optional[List[str]] = None,
    ):
        self.template = load_template(template)
        self.instructions = instructions
        self.body = body
        self.desired_format = desired_format
        self.stop = stop or []

        self.context_to_render: List[str] = []
        self.context_titles: List[str] = []
        self.history: List[ChatMessage] = []

        self.rendered_prompt = ""
        self.prompt_length = 0

    def render(self) -> str:
        """Render the template with the current state."""
        context = ""
        if self.context_to_render:
            context = CONTEXT_HEADER + "".join(
                CONTEXT_ENTRY.format(ctx) for ctx in self.context_to_render
            )

        desired_format = ""
        if self.desired_format:
            desired_format = FORMAT_HEADER + self.desired_format

        return self.template.format(
            instructions=self.instructions,
            context=context,
            body=self.body,
            desired_format=desired_format,
        )

    def add_turn(self, role: str, content: str) -> None:
        """Append one message to the conversation history."""
        self.history.append(ChatMessage(role=role, content=content))

    def history_tokens(self, tokenizer: Tokenizer, model: str) -> int:
        return sum(tokenizer.count_tokens(m.content, model) for m in self.history)

    def prompt(
        self,
        settings: BotSettings,
        batcher: Optional[EmbeddingBatcher] = None,
        tokenizer: Optional[Tokenizer] = None,
    ) -> str:
        """
        Render the final prompt, fetching context when memory is attached.

        Raises:
            BudgetExceededError: If the final prompt doesn't fit
        """
        tokenizer = tokenizer or get_tokenizer()

        if settings.memory is not None:
            if batcher is None:
                raise ValueError("An embedding batcher is required when memory is attached")
            get_contexts(self, settings, settings.memory, batcher, tokenizer)
        else:
            self.context_to_render = []
            self.context_titles = []

        final_prompt = self.render()
        length = tokenizer.count_tokens(final_prompt, settings.model)
        total = length + self.history_tokens(tokenizer, settings.model)
        if total >= settings.token_limit:
            raise BudgetExceededError(total, settings.token_limit)

        self.rendered_prompt = final_prompt
        self.prompt_length = length
        return final_prompt

    def as_chat_messages(self) -> List[Dict[str, str]]:
        """
        Prior turns then the rendered prompt.

        Instructions go in a system message only when the template doesn't
        already render them into the prompt.
        """
        messages = []
        if self.instructions and "{instructions}" not in self.template:
            messages.append({"role": "system", "content": self.instructions})
        messages.extend(m.as_dict() for m in self.history)
        messages.append({"role": "user", "content": self.rendered_prompt})
        return messages


def get_contexts(
    prompt: BotPrompt,
    settings: BotSettings,
    storage: Storage,
    batcher: EmbeddingBatcher,
    tokenizer: Optional[Tokenizer] = None,
) -> PackedContext:
    """
    Fetch and pack context for the prompt's current body.

    Embeds the query, retrieves top_k matches from the bot's namespace and
    replaces prompt.context_to_render with the packed selection.

    Raises:
        BudgetExceededError: If the prompt without context already fills
            the token limit
        EmbeddingProviderError: If the query can't be embedded
        VectorStoreError: If retrieval fails
    """
    tokenizer = tokenizer or get_tokenizer()

    prompt.context_to_render = []
    prompt.context_titles = []

    skeleton = prompt.render()
    query_tokens = tokenizer.count_tokens(skeleton, settings.model)
    query_tokens += prompt.history_tokens(tokenizer, settings.model)
    if query_tokens >= settings.token_limit:
        raise BudgetExceededError(query_tokens, settings.token_limit)

    query_embedding = batcher.embed_query(prompt.body)
    candidates = storage.retrieve(query_embedding, settings.top_k, settings.id)
    logger.info(f"Retrieved {len(candidates)} candidate contexts from ns={settings.id}")

    count = tokenizer.counter(settings.model)
    packed = pack_context(
        query_tokens,
        candidates,
        settings.token_limit,
        lambda text: count(CONTEXT_ENTRY.format(clean_context(text))),
        header_tokens=count(CONTEXT_HEADER),
    )

    prompt.context_to_render = packed.contexts
    prompt.context_titles = packed.titles

    # Token counts of the pieces need not add up exactly to the count of the
    # joined text, so confirm the rendered prompt and trim from the end
    history_tokens = prompt.history_tokens(tokenizer, settings.model)
    while prompt.context_to_render:
        total = count(prompt.render()) + history_tokens
        if total < settings.token_limit:
            packed.token_count = total
            break
        logger.debug(f"Rendered prompt uses {total} tokens, dropping last context")
        prompt.context_to_render.pop()
        prompt.context_titles.pop()
    else:
        packed.token_count = query_tokens

    return packed
