"""Vector retrieval over an external embedding provider and vector store."""

from __future__ import annotations

import asyncio
from typing import Any, Mapping

from ragline.core.errors import RaglineError, UpstreamError, ValidationError
from ragline.core.logging import get_logger
from ragline.models.entities import Candidate, CandidateMetadata, VectorMatch
from ragline.providers.embeddings import EmbeddingProvider
from ragline.providers.vector_store import VectorStore

logger = get_logger(__name__)


class VectorRetriever:
    """Embed the query, then ask the vector store for nearest neighbours."""

    def __init__(self, embedder: EmbeddingProvider, store: VectorStore, timeout: float | None = None) -> None:
        self.embedder = embedder
        self.store = store
        self.timeout = timeout

    async def search(
        self,
        query: str,
        top_k: int = 10,
        filter: Mapping[str, Any] | None = None,
        timeout: float | None = None,
    ) -> list[Candidate]:
        if top_k < 1:
            raise ValidationError("top_k must be at least 1")
        limit = timeout if timeout is not None else self.timeout
        try:
            vector = await asyncio.wait_for(self.embedder.embed(query), timeout=limit)
        except asyncio.TimeoutError as exc:
            raise UpstreamError("embeddings", f"timed out after {limit}s") from exc
        except RaglineError:
            raise
        except Exception as exc:
            raise UpstreamError("embeddings", str(exc)) from exc

        try:
            matches = await asyncio.wait_for(self.store.query(vector, top_k, filter), timeout=limit)
        except asyncio.TimeoutError as exc:
            raise UpstreamError("vector_store", f"timed out after {limit}s") from exc
        except RaglineError:
            raise
        except Exception as exc:
            logger.error("Vector store query failed: %s", exc)
            raise UpstreamError("vector_store", str(exc)) from exc

        candidates = [to_candidate(match) for match in matches]
        candidates.sort(key=lambda candidate: candidate.score, reverse=True)
        return candidates[:top_k]


def to_candidate(match: VectorMatch) -> Candidate:
    content = match.metadata.get("content") or ""
    return Candidate(
        id=match.id,
        content=str(content),
        score=float(match.score),
        metadata=CandidateMetadata.from_mapping(match.metadata),
    )


__all__ = ["VectorRetriever", "to_candidate"]
