"""Application configuration handling."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, Mapping

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from ragline.core.errors import ConfigurationError

ENV_PREFIX = "RAGL_"
DEFAULT_CONFIG_PATH = Path("~/.config/ragline/config.yaml")

_YAML_KEY_MAP: Mapping[tuple[str, ...], str] = {
    ("openai", "api_key"): "openai_api_key",
    ("openai", "model"): "llm_model",
    ("openai", "temperature"): "llm_temperature",
    ("openai", "max_tokens"): "llm_max_tokens",
    ("embeddings", "provider"): "embedding_provider",
    ("embeddings", "model"): "embedding_model",
    ("embeddings", "batch_size"): "embedding_batch_size",
    ("embeddings", "max_retries"): "embedding_max_retries",
    ("embeddings", "dim"): "embedding_dim",
    ("pinecone", "api_key"): "pinecone_api_key",
    ("pinecone", "index_name"): "pinecone_index",
    ("pinecone", "namespace"): "pinecone_namespace",
    ("retrieval", "vector_store"): "vector_store",
    ("retrieval", "top_k"): "top_k",
    ("retrieval", "keyword_scorer"): "keyword_scorer",
    ("retrieval", "bm25_k1"): "bm25_k1",
    ("retrieval", "bm25_b"): "bm25_b",
    ("retrieval", "upstream_timeout"): "upstream_timeout",
    ("fusion", "k"): "rrf_k",
    ("fusion", "mode"): "fusion_mode",
    ("fusion", "vector_weight"): "vector_weight",
    ("fusion", "keyword_weight"): "keyword_weight",
    ("rerank", "enabled"): "rerank_enabled",
    ("rerank", "strategy"): "rerank_strategy",
    ("rerank", "title_boost"): "title_boost",
    ("rerank", "heading_boost"): "heading_boost",
    ("rerank", "position_boost"): "position_boost",
    ("rerank", "similarity_threshold"): "similarity_threshold",
    ("rerank", "source_bonus"): "source_bonus",
    ("rerank", "source_weighting"): "source_weighting",
    ("rerank", "mmr_lambda"): "mmr_lambda",
    ("rerank", "cross_encoder_model"): "cross_encoder_model",
    ("context", "max_tokens"): "max_context_tokens",
    ("context", "max_results"): "max_results_in_context",
    ("context", "template"): "prompt_template",
    ("context", "include_metadata"): "include_metadata",
    ("context", "tokenizer_model"): "tokenizer_model",
}

FusionMode = Literal["rrf", "weighted"]
RerankStrategy = Literal["relevance", "diversity", "mmr", "cross-encoder"]
TemplateName = Literal["default", "concise", "code", "comparison", "tutorial"]


class RankingConfig(BaseModel):
    """Tuning constants for fusion and re-ranking."""

    rrf_k: int = Field(default=60, ge=0)
    vector_weight: float = Field(default=0.5, ge=0.0)
    keyword_weight: float = Field(default=0.5, ge=0.0)
    fusion_mode: FusionMode = "rrf"
    rerank_strategy: RerankStrategy = "relevance"
    title_boost: float = 0.2
    heading_boost: float = 0.1
    position_boost: float = 0.05
    similarity_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    source_bonus: float = 0.1
    source_weighting: bool = True
    mmr_lambda: float = Field(default=0.5, ge=0.0, le=1.0)
    cross_encoder_model: str = "cross-encoder/ms-marco-MiniLM-L-6-v2"

    model_config = {"frozen": True}


class ContextConfig(BaseModel):
    """Limits and template selection for prompt assembly."""

    max_context_tokens: int = Field(default=3000, ge=1)
    max_results: int = Field(default=10, ge=1)
    template: TemplateName = "default"
    include_metadata: bool = True
    tokenizer_model: str = "gpt-3.5-turbo"

    model_config = {"frozen": True}


class Settings(BaseModel):
    """Runtime configuration loaded from YAML file and environment variables."""

    openai_api_key: str | None = None
    llm_model: str = "gpt-4o-mini"
    llm_temperature: float = 0.3
    llm_max_tokens: int = 2000

    embedding_provider: Literal["openai", "hashed"] = "openai"
    embedding_model: str = "text-embedding-3-small"
    embedding_batch_size: int = Field(default=100, ge=1)
    embedding_max_retries: int = Field(default=3, ge=0)
    embedding_dim: int = 384

    vector_store: Literal["pinecone", "memory"] = "pinecone"
    pinecone_api_key: str | None = None
    pinecone_index: str = "technical-docs"
    pinecone_namespace: str = "default"

    top_k: int = Field(default=5, ge=1)
    keyword_scorer: Literal["tfidf", "bm25"] = "tfidf"
    bm25_k1: float = 1.2
    bm25_b: float = 0.75
    upstream_timeout: float | None = None

    rrf_k: int = Field(default=60, ge=0)
    fusion_mode: FusionMode = "rrf"
    vector_weight: float = Field(default=0.7, ge=0.0)
    keyword_weight: float = Field(default=0.3, ge=0.0)

    rerank_enabled: bool = True
    rerank_strategy: RerankStrategy = "relevance"
    title_boost: float = 0.2
    heading_boost: float = 0.1
    position_boost: float = 0.05
    similarity_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    source_bonus: float = 0.1
    source_weighting: bool = True
    mmr_lambda: float = Field(default=0.5, ge=0.0, le=1.0)
    cross_encoder_model: str = "cross-encoder/ms-marco-MiniLM-L-6-v2"

    max_context_tokens: int = Field(default=3000, ge=1)
    max_results_in_context: int = Field(default=10, ge=1)
    prompt_template: TemplateName = "default"
    include_metadata: bool = True
    tokenizer_model: str = "gpt-3.5-turbo"

    model_config = {
        "validate_assignment": True,
        "extra": "ignore",
    }

    @field_validator("upstream_timeout", mode="before")
    @classmethod
    def _blank_timeout(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @classmethod
    def from_yaml(cls, path: Path | None = None) -> "Settings":
        """Load YAML config and overlay env vars; fall back to defaults."""
        config_path = cls._resolve_config_path(path)
        data: dict[str, Any] = {}
        if config_path and config_path.exists():
            with config_path.open("r", encoding="utf-8") as fh:
                raw = yaml.safe_load(fh) or {}
            data.update(_flatten_yaml(raw))
        data.update(_load_env_overrides())
        try:
            return cls(**data)
        except PydanticValidationError as exc:
            raise ConfigurationError(_describe(exc)) from exc

    @staticmethod
    def _resolve_config_path(path: Path | None) -> Path | None:
        if path is not None:
            return path.expanduser()
        env_path = os.environ.get(f"{ENV_PREFIX}CONFIG")
        if env_path:
            return Path(env_path).expanduser()
        resolved_default = DEFAULT_CONFIG_PATH.expanduser()
        return resolved_default if resolved_default.exists() else None

    def ranking(self) -> RankingConfig:
        try:
            return RankingConfig(
                rrf_k=self.rrf_k,
                vector_weight=self.vector_weight,
                keyword_weight=self.keyword_weight,
                fusion_mode=self.fusion_mode,
                rerank_strategy=self.rerank_strategy,
                title_boost=self.title_boost,
                heading_boost=self.heading_boost,
                position_boost=self.position_boost,
                similarity_threshold=self.similarity_threshold,
                source_bonus=self.source_bonus,
                source_weighting=self.source_weighting,
                mmr_lambda=self.mmr_lambda,
                cross_encoder_model=self.cross_encoder_model,
            )
        except PydanticValidationError as exc:
            raise ConfigurationError(_describe(exc)) from exc

    def context_config(self) -> ContextConfig:
        try:
            return ContextConfig(
                max_context_tokens=self.max_context_tokens,
                max_results=self.max_results_in_context,
                template=self.prompt_template,
                include_metadata=self.include_metadata,
                tokenizer_model=self.tokenizer_model,
            )
        except PydanticValidationError as exc:
            raise ConfigurationError(_describe(exc)) from exc

    def redacted(self) -> dict[str, Any]:
        """Dump settings with credentials masked."""
        payload = self.model_dump()
        for key in ("openai_api_key", "pinecone_api_key"):
            if payload.get(key):
                payload[key] = "***"
        return payload


def _describe(exc: PydanticValidationError) -> str:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"]) or "settings"
        problems.append(f"{location}: {error['msg']}")
    return "invalid configuration: " + "; ".join(problems)


def _flatten_yaml(raw: Mapping[str, Any], prefix: tuple[str, ...] = ()) -> dict[str, Any]:
    """Flatten nested YAML configuration to Settings field names."""
    flat: dict[str, Any] = {}
    for key, value in raw.items():
        next_prefix = prefix + (key,)
        if isinstance(value, Mapping):
            flat.update(_flatten_yaml(value, prefix=next_prefix))
        else:
            mapped_key = _YAML_KEY_MAP.get(next_prefix)
            if mapped_key:
                flat[mapped_key] = value
            elif key in Settings.model_fields:
                flat[key] = value
    return flat


def _load_env_overrides() -> dict[str, Any]:
    """Map environment variables with RAGL_ prefix into Settings fields."""
    overrides: dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        field_name = key[len(ENV_PREFIX) :].lower()
        if field_name in Settings.model_fields:
            overrides[field_name] = value
    if "openai_api_key" not in overrides and os.environ.get("OPENAI_API_KEY"):
        overrides["openai_api_key"] = os.environ["OPENAI_API_KEY"]
    if "pinecone_api_key" not in overrides and os.environ.get("PINECONE_API_KEY"):
        overrides["pinecone_api_key"] = os.environ["PINECONE_API_KEY"]
    return overrides


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings accessor for dependency injection."""
    return Settings.from_yaml()


__all__ = ["Settings", "RankingConfig", "ContextConfig", "get_settings"]
