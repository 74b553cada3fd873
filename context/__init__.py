"""
Context Assembly Module.

Treat prompt context as a resource with a budget.

This module handles:
- Greedy prefix packing of retrieved contexts under a token budget
- Bot settings and per-conversation prompt state
- Prompt template rendering with conversation history

Usage:
    from context import BotPrompt, BotSettings, get_contexts

    prompt = BotPrompt(instructions="You are a helpful assistant")
    prompt.body = query
    packed = get_contexts(prompt, settings, storage, batcher)
"""

from .packer import BudgetExceededError, PackedContext, clean_context, pack_context
from .prompt import (
    DEFAULT_TEMPLATE,
    TEMPLATES,
    BotPrompt,
    BotSettings,
    ChatMessage,
    get_contexts,
    load_template,
)

__all__ = [
    "pack_context",
    "clean_context",
    "PackedContext",
    "BudgetExceededError",
    "BotPrompt",
    "BotSettings",
    "ChatMessage",
    "get_contexts",
    "load_template",
    "DEFAULT_TEMPLATE",
    "TEMPLATES",
]
