"""Test fixtures for Ragline."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any, Callable

import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from ragline.models.entities import (  # noqa: E402
    Candidate,
    CandidateMetadata,
    LLMResponse,
    StreamChunk,
    TokenUsage,
)
from ragline.providers.llm import emit_chunk  # noqa: E402


@pytest.fixture(autouse=True)
def reset_state(monkeypatch: pytest.MonkeyPatch) -> None:
    """Reset cached settings and environment between tests."""
    for key in list(os.environ):
        if key.startswith("RAGL_") and key != "RAGL_LOG_LEVEL":
            monkeypatch.delenv(key, raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("PINECONE_API_KEY", raising=False)
    monkeypatch.setenv("RAGL_CONFIG", str(BACKEND_ROOT / "tests" / "missing-config.yaml"))

    from ragline import dependencies as deps
    from ragline.core.config import get_settings

    get_settings.cache_clear()
    deps.get_app_settings.cache_clear()
    yield
    get_settings.cache_clear()
    deps.get_app_settings.cache_clear()


def make_candidate(
    identifier: str,
    content: str,
    score: float = 0.0,
    **metadata: Any,
) -> Candidate:
    metadata.setdefault("source", f"{identifier}.md")
    return Candidate(id=identifier, content=content, score=score, metadata=CandidateMetadata(**metadata))


@pytest.fixture
def candidate_factory() -> Callable[..., Candidate]:
    return make_candidate


@pytest.fixture
def docs_corpus() -> list[Candidate]:
    return [
        make_candidate(
            "hooks-1",
            "useState returns a stateful value and a function to update it.",
            source="hooks-intro.md",
            title="Hooks Intro",
            heading="State Hook",
            chunk_index=0,
        ),
        make_candidate(
            "hooks-2",
            "useEffect lets you perform side effects in function components.",
            source="hooks-intro.md",
            title="Hooks Intro",
            heading="Effect Hook",
            chunk_index=1,
        ),
        make_candidate(
            "routing-1",
            "The router maps URL paths to components and supports nested routes.",
            source="routing.md",
            title="Routing Guide",
            heading="Basics",
            chunk_index=0,
        ),
        make_candidate(
            "testing-1",
            "Write tests with a test runner and render components in isolation.",
            source="testing.md",
            title="Testing",
            chunk_index=3,
        ),
    ]


def word_count(text: str) -> int:
    return len(text.split())


@pytest.fixture
def token_counter() -> Callable[[str], int]:
    """Whitespace word counter standing in for the model tokenizer."""
    return word_count


class FakeLLM:
    """LLM provider double that records prompts and replays a fixed answer."""

    def __init__(self, answer: str = "useState returns a value [Source: hooks-intro.md]", deltas: int = 3) -> None:
        self.answer = answer
        self.deltas = deltas
        self.model_name = "fake-llm"
        self.calls: list[tuple[str, str]] = []

    async def generate(self, system_prompt: str, user_prompt: str) -> LLMResponse:
        self.calls.append((system_prompt, user_prompt))
        return LLMResponse(
            text=self.answer,
            model=self.model_name,
            token_usage=TokenUsage(prompt=10, completion=5, total=15),
            finish_reason="stop",
        )

    async def generate_streaming(self, system_prompt: str, user_prompt: str, on_chunk) -> LLMResponse:
        self.calls.append((system_prompt, user_prompt))
        size = max(1, -(-len(self.answer) // self.deltas))
        for start in range(0, len(self.answer), size):
            await emit_chunk(on_chunk, StreamChunk(content=self.answer[start : start + size]))
        await emit_chunk(on_chunk, StreamChunk(content="", done=True))
        completion = -(-len(self.answer) // 4)
        return LLMResponse(
            text=self.answer,
            model=self.model_name,
            token_usage=TokenUsage(prompt=0, completion=completion, total=completion),
            finish_reason="stop",
        )


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()
