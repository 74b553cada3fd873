"""Tests for the completion client."""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from app.completion import CompletionClient, uses_completion_api
from context import BotPrompt, BotSettings, BudgetExceededError
from retrieval.vector_store import CandidateContext
from tests.fakes import FakeStorage


def chat_response(content, total_tokens=42, model="gpt-3.5-turbo"):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        model=model,
        usage=SimpleNamespace(total_tokens=total_tokens),
    )


def text_response(text, total_tokens=17, model="gpt-3.5-turbo-instruct"):
    return SimpleNamespace(
        choices=[SimpleNamespace(text=text)],
        model=model,
        usage=SimpleNamespace(total_tokens=total_tokens),
    )


@pytest.fixture
def sdk():
    return MagicMock()


@pytest.fixture
def client(sdk, batcher, tokenizer):
    return CompletionClient(batcher=batcher, tokenizer=tokenizer, client=sdk)


class TestChatCompletion:
    """Test the chat completions path."""

    def test_returns_answer_and_usage(self, client, sdk) -> None:
        sdk.chat.completions.create.return_value = chat_response("Paris.", total_tokens=30)
        settings = BotSettings(id="bot-a", token_limit=100)
        prompt = BotPrompt(instructions="Be brief.", body="Capital of France?")

        answer, tokens = client.call(settings, prompt)

        assert (answer, tokens) == ("Paris.", 30)
        kwargs = sdk.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-3.5-turbo"
        assert kwargs["max_tokens"] == settings.max_tokens
        assert kwargs["messages"] == [{"role": "user", "content": prompt.rendered_prompt}]
        assert "Be brief." in prompt.rendered_prompt
        sdk.completions.create.assert_not_called()

    def test_history_grows_each_turn(self, client, sdk) -> None:
        sdk.chat.completions.create.side_effect = [chat_response("one"), chat_response("two")]
        settings = BotSettings(token_limit=200)
        prompt = BotPrompt(body="first?")

        client.call(settings, prompt)
        prompt.body = "second?"
        client.call(settings, prompt)

        assert [(m.role, m.content) for m in prompt.history] == [
            ("user", "first?"),
            ("assistant", "one"),
            ("user", "second?"),
            ("assistant", "two"),
        ]
        messages = sdk.chat.completions.create.call_args.kwargs["messages"]
        assert [m["content"] for m in messages[:-1]] == ["first?", "one"]

    def test_uses_memory_for_context(self, client, sdk) -> None:
        sdk.chat.completions.create.return_value = chat_response("Five days.")
        memory = FakeStorage([CandidateContext(text="refunds take five days", title="faq", score=0.9)])
        settings = BotSettings(id="bot-a", token_limit=200, memory=memory)
        prompt = BotPrompt(body="How long do refunds take?")

        client.call(settings, prompt)

        user_message = sdk.chat.completions.create.call_args.kwargs["messages"][-1]["content"]
        assert "Context: refunds take five days" in user_message
        assert memory.queries[0][2] == "bot-a"

    def test_stop_sequences_forwarded(self, client, sdk) -> None:
        sdk.chat.completions.create.return_value = chat_response("ok")
        prompt = BotPrompt(body="hi", stop=["\nHuman:"])

        client.call(BotSettings(token_limit=100), prompt)

        assert sdk.chat.completions.create.call_args.kwargs["stop"] == ["\nHuman:"]

    def test_budget_exceeded_skips_api_call(self, client, sdk) -> None:
        prompt = BotPrompt(instructions="A very long set of instructions indeed", body="hi")

        with pytest.raises(BudgetExceededError):
            client.call(BotSettings(token_limit=4), prompt)

        sdk.chat.completions.create.assert_not_called()
        assert prompt.history == []


class TestLegacyCompletion:
    """Test the completions path for instruct models."""

    def test_response_budget_shares_window(self, client, sdk) -> None:
        sdk.completions.create.return_value = text_response(" Blue.")
        settings = BotSettings(model="gpt-3.5-turbo-instruct", max_tokens=256, token_limit=100)
        prompt = BotPrompt(instructions="Answer.", body="Sky colour?")

        answer, tokens = client.call(settings, prompt)

        assert (answer, tokens) == (" Blue.", 17)
        kwargs = sdk.completions.create.call_args.kwargs
        assert kwargs["prompt"] == prompt.rendered_prompt
        assert kwargs["max_tokens"] == 256 - prompt.prompt_length
        sdk.chat.completions.create.assert_not_called()

    def test_no_room_for_response_raises(self, client, sdk) -> None:
        """Should refuse to call the API when the prompt uses up max_tokens."""
        settings = BotSettings(model="gpt-3.5-turbo-instruct", max_tokens=5, token_limit=100)
        prompt = BotPrompt(body="one two three four five six seven eight nine")  # 10 tokens

        with pytest.raises(BudgetExceededError) as exc_info:
            client.call(settings, prompt)

        assert exc_info.value.token_count == 10
        assert exc_info.value.token_limit == 5
        sdk.completions.create.assert_not_called()
        assert prompt.history == []

    def test_prompt_exactly_max_tokens_raises(self, client, sdk) -> None:
        settings = BotSettings(model="gpt-3.5-turbo-instruct", max_tokens=3, token_limit=100)

        with pytest.raises(BudgetExceededError):
            client.call(settings, BotPrompt(body="two three"))

        sdk.completions.create.assert_not_called()


@pytest.mark.parametrize("model, legacy", [
    ("gpt-3.5-turbo", False),
    ("gpt-4", False),
    ("gpt-3.5-turbo-instruct", True),
    ("text-davinci-003", True),
    ("my-model-instruct", True),
])
def test_uses_completion_api(model, legacy) -> None:
    assert uses_completion_api(model) is legacy
