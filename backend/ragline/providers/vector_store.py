"""Vector store adapters."""

from __future__ import annotations

import asyncio
import math
from typing import Any, Mapping, Protocol, Sequence

from pinecone import Pinecone

from ragline.core.errors import ConfigurationError
from ragline.core.logging import get_logger
from ragline.models.entities import VectorMatch, VectorRecord

logger = get_logger(__name__)

UPSERT_BATCH_SIZE = 100


class VectorStore(Protocol):
    async def query(
        self,
        vector: Sequence[float],
        top_k: int,
        filter: Mapping[str, Any] | None = None,
    ) -> list[VectorMatch]:
        ...

    async def upsert(self, records: Sequence[VectorRecord]) -> None:
        ...


class InMemoryVectorStore:
    """Simple in-memory vector store using cosine similarity."""

    def __init__(self, dim: int) -> None:
        self.dim = dim
        self._ids: list[str] = []
        self._vectors: list[list[float]] = []
        self._metadata: list[dict[str, Any]] = []

    @property
    def size(self) -> int:
        return len(self._vectors)

    async def upsert(self, records: Sequence[VectorRecord]) -> None:
        for record in records:
            if len(record.values) != self.dim:
                raise ValueError("Vector dimension mismatch")
        positions = {identifier: idx for idx, identifier in enumerate(self._ids)}
        for record in records:
            existing = positions.get(record.id)
            if existing is not None:
                self._vectors[existing] = list(record.values)
                self._metadata[existing] = dict(record.metadata)
                continue
            positions[record.id] = len(self._ids)
            self._ids.append(record.id)
            self._vectors.append(list(record.values))
            self._metadata.append(dict(record.metadata))

    async def query(
        self,
        vector: Sequence[float],
        top_k: int,
        filter: Mapping[str, Any] | None = None,
    ) -> list[VectorMatch]:
        if not self._vectors:
            return []
        if len(vector) != self.dim:
            raise ValueError("Query vector dimension mismatch")
        scores = [
            (idx, _cosine(self._vectors[idx], vector))
            for idx in range(len(self._vectors))
            if _matches_filter(self._metadata[idx], filter)
        ]
        scores.sort(key=lambda item: item[1], reverse=True)
        return [
            VectorMatch(id=self._ids[idx], score=score, metadata=dict(self._metadata[idx]))
            for idx, score in scores[:top_k]
        ]


class PineconeVectorStore:
    """Pinecone index wrapper; the synchronous SDK runs in worker threads."""

    def __init__(
        self,
        api_key: str | None,
        index_name: str,
        namespace: str = "default",
        index: Any | None = None,
    ) -> None:
        self.index_name = index_name
        self.namespace = namespace
        if index is None:
            if not api_key:
                raise ConfigurationError("Pinecone API key not configured (set RAGL_PINECONE_API_KEY)")
            index = Pinecone(api_key=api_key).Index(index_name)
        self.index = index

    async def query(
        self,
        vector: Sequence[float],
        top_k: int,
        filter: Mapping[str, Any] | None = None,
    ) -> list[VectorMatch]:
        response = await asyncio.to_thread(
            self.index.query,
            vector=list(vector),
            top_k=top_k,
            include_metadata=True,
            namespace=self.namespace,
            filter=_pinecone_filter(filter),
        )
        return [
            VectorMatch(id=match.id, score=float(match.score or 0.0), metadata=dict(match.metadata or {}))
            for match in response.matches
        ]

    async def upsert(self, records: Sequence[VectorRecord]) -> None:
        payload = [
            {"id": record.id, "values": list(record.values), "metadata": _sanitize_metadata(record.metadata)}
            for record in records
        ]
        for start in range(0, len(payload), UPSERT_BATCH_SIZE):
            batch = payload[start : start + UPSERT_BATCH_SIZE]
            await asyncio.to_thread(self.index.upsert, vectors=batch, namespace=self.namespace)
            logger.debug("Upserted %s/%s vectors", min(start + UPSERT_BATCH_SIZE, len(payload)), len(payload))


def _cosine(a: Sequence[float], b: Sequence[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    if norm == 0:
        return 0.0
    return dot / norm


def _matches_filter(metadata: Mapping[str, Any], filter: Mapping[str, Any] | None) -> bool:
    if not filter:
        return True
    for key, expected in filter.items():
        value = metadata.get(key)
        if isinstance(expected, (list, tuple, set)):
            if value not in expected:
                return False
        elif value != expected:
            return False
    return True


def _pinecone_filter(filter: Mapping[str, Any] | None) -> dict[str, Any] | None:
    if not filter:
        return None
    translated: dict[str, Any] = {}
    for key, value in filter.items():
        if key.startswith("$") or isinstance(value, Mapping):
            translated[key] = value
        elif isinstance(value, (list, tuple, set)):
            translated[key] = {"$in": list(value)}
        else:
            translated[key] = {"$eq": value}
    return translated


def _sanitize_metadata(metadata: Mapping[str, Any]) -> dict[str, Any]:
    """Pinecone rejects null metadata values."""
    return {key: value for key, value in metadata.items() if value is not None}


__all__ = ["VectorStore", "InMemoryVectorStore", "PineconeVectorStore"]
