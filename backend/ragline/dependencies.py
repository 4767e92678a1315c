"""Shared component factories for the CLI and embedding applications."""

from __future__ import annotations

from functools import lru_cache
from typing import Sequence

from ragline.core.config import Settings, get_settings
from ragline.core.logging import get_logger
from ragline.models.entities import Candidate, VectorRecord
from ragline.providers.embeddings import EmbeddingProvider, HashedEmbeddingProvider, OpenAIEmbeddingProvider
from ragline.providers.llm import LLMProvider, OpenAIChatProvider
from ragline.providers.vector_store import InMemoryVectorStore, PineconeVectorStore, VectorStore
from ragline.rag.context import ContextAssembler
from ragline.rag.orchestrator import QueryOrchestrator
from ragline.retrieval import FusionCombiner, HybridSearch, KeywordRetriever, RerankService, VectorRetriever

logger = get_logger(__name__)


@lru_cache(maxsize=1)
def get_app_settings() -> Settings:
    return get_settings()


def get_embedding_provider(settings: Settings) -> EmbeddingProvider:
    if settings.embedding_provider == "hashed":
        return HashedEmbeddingProvider(dim=settings.embedding_dim)
    return OpenAIEmbeddingProvider(
        api_key=settings.openai_api_key,
        model_name=settings.embedding_model,
        batch_size=settings.embedding_batch_size,
        max_retries=settings.embedding_max_retries,
        timeout=settings.upstream_timeout,
    )


def get_vector_store(settings: Settings) -> VectorStore:
    if settings.vector_store == "memory":
        return InMemoryVectorStore(dim=settings.embedding_dim)
    return PineconeVectorStore(
        api_key=settings.pinecone_api_key,
        index_name=settings.pinecone_index,
        namespace=settings.pinecone_namespace,
    )


def get_llm_provider(settings: Settings) -> LLMProvider:
    return OpenAIChatProvider(
        api_key=settings.openai_api_key,
        model_name=settings.llm_model,
        temperature=settings.llm_temperature,
        max_tokens=settings.llm_max_tokens,
    )


def build_search(settings: Settings) -> HybridSearch:
    vector = VectorRetriever(
        embedder=get_embedding_provider(settings),
        store=get_vector_store(settings),
        timeout=settings.upstream_timeout,
    )
    keyword = KeywordRetriever(scorer=settings.keyword_scorer, k1=settings.bm25_k1, b=settings.bm25_b)
    return HybridSearch(vector, keyword, FusionCombiner.from_config(settings.ranking()))


def build_orchestrator(settings: Settings, search: HybridSearch | None = None) -> QueryOrchestrator:
    return QueryOrchestrator(
        search=search or build_search(settings),
        llm=get_llm_provider(settings),
        reranker=RerankService(settings.ranking()),
        assembler=ContextAssembler(settings.context_config()),
        rerank_enabled=settings.rerank_enabled,
        timeout=settings.upstream_timeout,
    )


async def load_corpus_into(search: HybridSearch, corpus: Sequence[Candidate], upsert_vectors: bool = False) -> None:
    """Index a chunk snapshot for keyword search, optionally embedding it into the vector store."""
    if upsert_vectors and corpus:
        batch = await search.vector.embedder.embed_batch([candidate.content for candidate in corpus])
        records = []
        for position, vector in zip(batch.indices, batch.vectors):
            candidate = corpus[position]
            metadata = candidate.metadata.to_mapping()
            metadata["content"] = candidate.content
            records.append(VectorRecord(id=candidate.id, values=vector, metadata=metadata))
        await search.vector.store.upsert(records)
        logger.info("Upserted %s vectors", len(records))
    search.index_documents(corpus)


__all__ = [
    "get_app_settings",
    "get_embedding_provider",
    "get_vector_store",
    "get_llm_provider",
    "build_search",
    "build_orchestrator",
    "load_corpus_into",
]
