"""Tests for vector store adapters."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from ragline.core.errors import ConfigurationError
from ragline.models.entities import VectorRecord
from ragline.providers.vector_store import InMemoryVectorStore, PineconeVectorStore


@pytest.mark.asyncio
async def test_in_memory_store_cosine_ranking() -> None:
    store = InMemoryVectorStore(dim=3)
    await store.upsert(
        [
            VectorRecord(id="a", values=[1.0, 0.0, 0.0], metadata={"source": "a.md"}),
            VectorRecord(id="b", values=[0.0, 1.0, 0.0], metadata={"source": "b.md"}),
        ]
    )

    matches = await store.query([0.9, 0.1, 0.0], top_k=1)

    assert [match.id for match in matches] == ["a"]
    assert matches[0].metadata == {"source": "a.md"}


@pytest.mark.asyncio
async def test_in_memory_upsert_replaces_by_id() -> None:
    store = InMemoryVectorStore(dim=2)
    await store.upsert([VectorRecord(id="a", values=[1.0, 0.0], metadata={"v": 1})])
    await store.upsert([VectorRecord(id="a", values=[0.0, 1.0], metadata={"v": 2})])

    assert store.size == 1
    matches = await store.query([0.0, 1.0], top_k=5)
    assert matches[0].metadata == {"v": 2}
    assert matches[0].score == pytest.approx(1.0)


@pytest.mark.asyncio
async def test_in_memory_filters_and_dimension_checks() -> None:
    store = InMemoryVectorStore(dim=2)
    await store.upsert(
        [
            VectorRecord(id="a", values=[1.0, 0.0], metadata={"source": "a.md"}),
            VectorRecord(id="b", values=[1.0, 0.1], metadata={"source": "b.md"}),
        ]
    )

    matches = await store.query([1.0, 0.0], top_k=5, filter={"source": ["b.md"]})
    assert [match.id for match in matches] == ["b"]

    with pytest.raises(ValueError):
        await store.upsert([VectorRecord(id="c", values=[1.0], metadata={})])
    with pytest.raises(ValueError):
        await store.query([1.0, 0.0, 0.0], top_k=1)


class _FakeIndex:
    def __init__(self) -> None:
        self.queries: list[dict] = []
        self.upserts: list[list[dict]] = []

    def query(self, **kwargs):
        self.queries.append(kwargs)
        return SimpleNamespace(
            matches=[SimpleNamespace(id="p1", score=0.42, metadata={"content": "text", "source": "p.md"})]
        )

    def upsert(self, vectors, namespace):
        self.upserts.append(vectors)


@pytest.mark.asyncio
async def test_pinecone_query_translates_filter() -> None:
    index = _FakeIndex()
    store = PineconeVectorStore(api_key=None, index_name="docs", namespace="ns", index=index)

    matches = await store.query([0.1, 0.2], top_k=3, filter={"source": "p.md", "sourceType": ["md", "txt"]})

    assert matches[0].id == "p1" and matches[0].score == pytest.approx(0.42)
    sent = index.queries[0]
    assert sent["namespace"] == "ns"
    assert sent["include_metadata"] is True
    assert sent["filter"] == {"source": {"$eq": "p.md"}, "sourceType": {"$in": ["md", "txt"]}}


@pytest.mark.asyncio
async def test_pinecone_upserts_in_batches_without_nulls() -> None:
    index = _FakeIndex()
    store = PineconeVectorStore(api_key=None, index_name="docs", index=index)
    records = [
        VectorRecord(id=f"r{i}", values=[0.0, 1.0], metadata={"source": "x.md", "title": None})
        for i in range(150)
    ]

    await store.upsert(records)

    assert [len(batch) for batch in index.upserts] == [100, 50]
    assert index.upserts[0][0]["metadata"] == {"source": "x.md"}


def test_pinecone_requires_api_key() -> None:
    with pytest.raises(ConfigurationError):
        PineconeVectorStore(api_key=None, index_name="docs")
