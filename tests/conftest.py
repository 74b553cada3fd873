"""
Shared test fixtures.

Provides: fake tokenizer, embedding client, batcher and storage; a recorded
sleep so retry tests run without real delays
"""

import pytest

from embeddings.batcher import EmbeddingBatcher
from embeddings.retry import RetryPolicy
from tests.fakes import FakeEmbeddingClient, FakeStorage, make_tokenizer


@pytest.fixture
def tokenizer():
    """Whitespace tokenizer, no encoding download needed."""
    return make_tokenizer()


@pytest.fixture(autouse=True)
def shared_tokenizer(monkeypatch, tokenizer):
    """Point the process-wide tokenizer at the fake one."""
    monkeypatch.setattr("shared.tokenizer._tokenizer", tokenizer)
    return tokenizer


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def retry_policy(sleeps):
    return RetryPolicy(max_attempts=3, delay=5.0, sleep=sleeps.append)


@pytest.fixture
def embedding_client():
    return FakeEmbeddingClient()


@pytest.fixture
def batcher(embedding_client, retry_policy):
    return EmbeddingBatcher(embedding_client, model="fake-embed", batch_size=2, retry_policy=retry_policy)


@pytest.fixture
def storage():
    return FakeStorage()
