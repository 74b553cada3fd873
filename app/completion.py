"""
Unified completion client.

Chat models go through the chat completions API with the conversation
history; instruct-style models go through the legacy completions API with
the rendered prompt only.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from openai import OpenAI

from context.packer import BudgetExceededError
from context.prompt import BotPrompt, BotSettings
from embeddings.batcher import EmbeddingBatcher
from shared.tokenizer import Tokenizer

logger = logging.getLogger(__name__)

LEGACY_COMPLETION_MODELS = (
    "text-davinci-003",
    "text-davinci-002",
    "davinci-002",
    "babbage-002",
    "gpt-3.5-turbo-instruct",
)


def uses_completion_api(model: str) -> bool:
    return model in LEGACY_COMPLETION_MODELS or model.endswith("-instruct")


@dataclass
class CompletionResponse:
    """Model response with usage."""

    content: str
    model: str
    total_tokens: int
    raw_response: Any = None


class CompletionClient:
    """
    Call the right completion API for a bot's model.

    Usage:
        client = CompletionClient(api_key=settings.OPENAI_API_KEY, batcher=batcher)
        answer, tokens = client.call(bot_settings, prompt)
    """

    def __init__(
        self,
        api_key: str = None,
        batcher: Optional[EmbeddingBatcher] = None,
        tokenizer: Optional[Tokenizer] = None,
        client: Optional[OpenAI] = None,
    ):
        self.api_key = api_key
        self.batcher = batcher
        self.tokenizer = tokenizer
        self._client = client

    @property
    def client(self) -> OpenAI:
        """Lazy load OpenAI client."""
        if self._client is None:
            self._client = OpenAI(api_key=self.api_key)
        return self._client

    def _common_kwargs(self, settings: BotSettings, prompt: BotPrompt) -> Dict[str, Any]:
        kwargs = {
            "model": settings.model,
            "temperature": settings.temperature,
            "top_p": settings.top_p,
            "frequency_penalty": settings.frequency_penalty,
            "presence_penalty": settings.presence_penalty,
        }
        if prompt.stop:
            kwargs["stop"] = prompt.stop
        return kwargs

    def _chat(self, settings: BotSettings, prompt: BotPrompt) -> CompletionResponse:
        response = self.client.chat.completions.create(
            messages=prompt.as_chat_messages(),
            max_tokens=settings.max_tokens,
            **self._common_kwargs(settings, prompt),
        )
        return CompletionResponse(
            content=response.choices[0].message.content,
            model=response.model,
            total_tokens=response.usage.total_tokens,
            raw_response=response,
        )

    def _completion(self, settings: BotSettings, prompt: BotPrompt) -> CompletionResponse:
        # The response budget shares the window with the prompt
        max_tokens = settings.max_tokens - prompt.prompt_length
        if max_tokens < 1:
            raise BudgetExceededError(
                prompt.prompt_length,
                settings.max_tokens,
                f"Prompt uses {prompt.prompt_length} tokens, leaving no room for a "
                f"response within max_tokens={settings.max_tokens}",
            )

        response = self.client.completions.create(
            prompt=prompt.rendered_prompt,
            max_tokens=max_tokens,
            **self._common_kwargs(settings, prompt),
        )
        return CompletionResponse(
            content=response.choices[0].text,
            model=response.model,
            total_tokens=response.usage.total_tokens,
            raw_response=response,
        )

    def call(self, settings: BotSettings, prompt: BotPrompt) -> Tuple[str, int]:
        """
        Render the prompt and get the model's answer.

        The user query and the answer are appended to the prompt history.

        Returns:
            (answer text, total tokens used)

        Raises:
            BudgetExceededError: If the prompt doesn't fit
            EmbeddingProviderError, VectorStoreError: If context retrieval fails
        """
        prompt.prompt(settings, batcher=self.batcher, tokenizer=self.tokenizer)

        if uses_completion_api(settings.model):
            response = self._completion(settings, prompt)
        else:
            response = self._chat(settings, prompt)

        logger.info(f"Completion from {response.model} used {response.total_tokens} tokens")

        prompt.add_turn("user", prompt.body)
        prompt.add_turn("assistant", response.content)
        return response.content, response.total_tokens
