"""Embedding providers."""

from __future__ import annotations

import asyncio
import hashlib
import math
from dataclasses import dataclass
from typing import Any, Protocol, Sequence

from openai import AsyncOpenAI, OpenAIError

from ragline.core.errors import ConfigurationError, EmptyInputError, UpstreamError
from ragline.core.logging import get_logger
from ragline.core.metrics import EMBEDDING_RETRIES
from ragline.utils.text import clean_for_embedding, word_tokens

logger = get_logger(__name__)

MAX_BATCH_SIZE = 100


@dataclass(slots=True)
class EmbeddingBatch:
    """Vectors for the non-empty inputs; ``indices[i]`` is the input position of ``vectors[i]``."""

    vectors: list[list[float]]
    indices: list[int]
    model: str
    dim: int


class EmbeddingProvider(Protocol):
    model_name: str

    async def embed(self, text: str) -> list[float]:
        ...

    async def embed_batch(self, texts: Sequence[str]) -> EmbeddingBatch:
        ...


def _clean_inputs(texts: Sequence[str]) -> tuple[list[str], list[int]]:
    cleaned: list[str] = []
    indices: list[int] = []
    for idx, text in enumerate(texts):
        if not isinstance(text, str):
            logger.warning("Skipping non-string embedding input at position %s", idx)
            continue
        value = clean_for_embedding(text)
        if not value:
            logger.warning("Skipping empty embedding input at position %s", idx)
            continue
        cleaned.append(value)
        indices.append(idx)
    if not cleaned:
        raise EmptyInputError("All texts were empty or invalid after cleaning")
    return cleaned, indices


class OpenAIEmbeddingProvider:
    """OpenAI embeddings with batching and exponential-backoff retries."""

    def __init__(
        self,
        api_key: str | None = None,
        model_name: str = "text-embedding-3-small",
        batch_size: int = MAX_BATCH_SIZE,
        max_retries: int = 3,
        backoff_base: float = 1.0,
        timeout: float | None = None,
        client: Any | None = None,
    ) -> None:
        if client is None and not api_key:
            raise ConfigurationError("OpenAI API key not configured (set RAGL_OPENAI_API_KEY)")
        self.client = client or AsyncOpenAI(api_key=api_key)
        self.model_name = model_name
        self.batch_size = min(batch_size, MAX_BATCH_SIZE)
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.timeout = timeout

    async def embed(self, text: str) -> list[float]:
        batch = await self.embed_batch([text])
        return batch.vectors[0]

    async def embed_batch(self, texts: Sequence[str]) -> EmbeddingBatch:
        cleaned, indices = _clean_inputs(texts)
        vectors: list[list[float]] = []
        for start in range(0, len(cleaned), self.batch_size):
            batch = cleaned[start : start + self.batch_size]
            vectors.extend(await self._embed_with_retry(batch))
            logger.debug(
                "Embedded %s/%s texts",
                min(start + self.batch_size, len(cleaned)),
                len(cleaned),
            )
        dim = len(vectors[0]) if vectors else 0
        return EmbeddingBatch(vectors=vectors, indices=indices, model=self.model_name, dim=dim)

    async def _embed_with_retry(self, texts: list[str]) -> list[list[float]]:
        attempts = self.max_retries + 1
        last_error: Exception | None = None
        for attempt in range(attempts):
            try:
                response = await asyncio.wait_for(
                    self.client.embeddings.create(
                        model=self.model_name,
                        input=texts,
                        encoding_format="float",
                    ),
                    timeout=self.timeout,
                )
                return [list(item.embedding) for item in response.data]
            except (OpenAIError, asyncio.TimeoutError) as exc:
                last_error = exc
                logger.warning(
                    "Embedding attempt %s/%s failed for %s texts: %s",
                    attempt + 1,
                    attempts,
                    len(texts),
                    exc,
                )
                if attempt < attempts - 1:
                    EMBEDDING_RETRIES.inc()
                    await asyncio.sleep(self.backoff_base * (2**attempt))
        raise UpstreamError(
            "embeddings",
            f"failed after {attempts} attempts: {last_error}",
        ) from last_error


class HashedEmbeddingProvider:
    """Lightweight hashed embedding model with deterministic output."""

    def __init__(self, model_name: str = "hashed", dim: int = 384) -> None:
        self.model_name = model_name
        self.dim = dim

    async def embed(self, text: str) -> list[float]:
        batch = await self.embed_batch([text])
        return batch.vectors[0]

    async def embed_batch(self, texts: Sequence[str]) -> EmbeddingBatch:
        cleaned, indices = _clean_inputs(texts)
        vectors = [self._encode(text) for text in cleaned]
        return EmbeddingBatch(vectors=vectors, indices=indices, model=self.model_name, dim=self.dim)

    def _encode(self, text: str) -> list[float]:
        vector = [0.0] * self.dim
        for token in word_tokens(text):
            vector[_hash_token(token, self.dim)] += 1.0
        _normalize(vector)
        return vector


def _hash_token(token: str, dim: int) -> int:
    digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
    value = int.from_bytes(digest, "big")
    return value % dim


def _normalize(vector: list[float]) -> None:
    norm = math.sqrt(sum(value * value for value in vector))
    if norm == 0:
        return
    inv = 1.0 / norm
    for idx, value in enumerate(vector):
        vector[idx] = value * inv


__all__ = [
    "EmbeddingBatch",
    "EmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "HashedEmbeddingProvider",
    "MAX_BATCH_SIZE",
]
