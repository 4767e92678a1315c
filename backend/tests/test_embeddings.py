"""Tests for embedding providers."""

from __future__ import annotations

import math
from types import SimpleNamespace

import pytest
from openai import OpenAIError

from ragline.core.errors import ConfigurationError, EmptyInputError, UpstreamError
from ragline.providers import embeddings as embeddings_module
from ragline.providers.embeddings import HashedEmbeddingProvider, OpenAIEmbeddingProvider


class _FakeEmbeddings:
    def __init__(self, failures: int = 0, dim: int = 3) -> None:
        self.failures = failures
        self.dim = dim
        self.calls: list[list[str]] = []

    async def create(self, model, input, encoding_format):
        self.calls.append(list(input))
        if len(self.calls) <= self.failures:
            raise OpenAIError("boom")
        return SimpleNamespace(
            data=[SimpleNamespace(embedding=[float(len(text))] * self.dim) for text in input]
        )


def _client(embeddings: _FakeEmbeddings) -> SimpleNamespace:
    return SimpleNamespace(embeddings=embeddings)


@pytest.mark.asyncio
async def test_hashed_embeddings_are_normalised() -> None:
    provider = HashedEmbeddingProvider(dim=32)
    batch = await provider.embed_batch(["hello", "world"])

    assert len(batch.vectors) == 2
    assert batch.dim == 32
    assert all(len(vector) == 32 for vector in batch.vectors)
    assert math.isclose(sum(value * value for value in batch.vectors[0]), 1.0, rel_tol=1e-6)
    assert batch.vectors == (await provider.embed_batch(["hello", "world"])).vectors


@pytest.mark.asyncio
async def test_empty_inputs_are_skipped_with_indices() -> None:
    batch = await HashedEmbeddingProvider(dim=8).embed_batch(["first", "   ", "\0", "second"])
    assert batch.indices == [0, 3]
    assert len(batch.vectors) == 2


@pytest.mark.asyncio
async def test_all_empty_inputs_raise() -> None:
    with pytest.raises(EmptyInputError):
        await HashedEmbeddingProvider().embed_batch(["", "  "])


@pytest.mark.asyncio
async def test_openai_batches_requests() -> None:
    embeddings = _FakeEmbeddings()
    provider = OpenAIEmbeddingProvider(client=_client(embeddings), batch_size=2)

    batch = await provider.embed_batch(["a", "bb", "ccc"])

    assert embeddings.calls == [["a", "bb"], ["ccc"]]
    assert [vector[0] for vector in batch.vectors] == [1.0, 2.0, 3.0]
    assert batch.dim == 3
    assert batch.model == "text-embedding-3-small"


@pytest.mark.asyncio
async def test_openai_retries_then_succeeds() -> None:
    embeddings = _FakeEmbeddings(failures=2)
    provider = OpenAIEmbeddingProvider(client=_client(embeddings), backoff_base=0)

    vector = await provider.embed("hello")

    assert vector == [5.0, 5.0, 5.0]
    assert len(embeddings.calls) == 3


@pytest.mark.asyncio
async def test_openai_gives_up_after_retries() -> None:
    embeddings = _FakeEmbeddings(failures=100)
    provider = OpenAIEmbeddingProvider(client=_client(embeddings), max_retries=3, backoff_base=0)

    with pytest.raises(UpstreamError) as excinfo:
        await provider.embed("hello")

    assert excinfo.value.service == "embeddings"
    assert len(embeddings.calls) == 4


@pytest.mark.asyncio
async def test_openai_backoff_doubles_between_attempts(monkeypatch: pytest.MonkeyPatch) -> None:
    delays: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        delays.append(seconds)

    monkeypatch.setattr(embeddings_module.asyncio, "sleep", fake_sleep)
    embeddings = _FakeEmbeddings(failures=100)
    provider = OpenAIEmbeddingProvider(client=_client(embeddings))

    with pytest.raises(UpstreamError):
        await provider.embed("hello")

    assert delays == [1, 2, 4]
    assert len(embeddings.calls) == 4

def test_openai_requires_credentials() -> None:
    with pytest.raises(ConfigurationError):
        OpenAIEmbeddingProvider(api_key=None)
