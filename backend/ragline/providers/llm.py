"""LLM provider implementations."""

from __future__ import annotations

import inspect
from typing import Any, Awaitable, Callable, Protocol, Union

from openai import AsyncOpenAI, OpenAIError

from ragline.core.errors import ConfigurationError, UpstreamError
from ragline.core.logging import get_logger
from ragline.models.entities import LLMResponse, StreamChunk, TokenUsage
from ragline.utils.tokens import estimate_tokens

logger = get_logger(__name__)

StreamCallback = Callable[[StreamChunk], Union[None, Awaitable[None]]]


class LLMProvider(Protocol):
    model_name: str

    async def generate(self, system_prompt: str, user_prompt: str) -> LLMResponse:
        ...

    async def generate_streaming(
        self,
        system_prompt: str,
        user_prompt: str,
        on_chunk: StreamCallback,
    ) -> LLMResponse:
        ...


async def emit_chunk(on_chunk: StreamCallback, chunk: StreamChunk) -> None:
    """Invoke a sync or async chunk callback on the calling task."""
    result = on_chunk(chunk)
    if inspect.isawaitable(result):
        await result


class OpenAIChatProvider:
    """OpenAI chat completions for answer generation."""

    def __init__(
        self,
        api_key: str | None = None,
        model_name: str = "gpt-4o-mini",
        temperature: float = 0.3,
        max_tokens: int = 2000,
        client: Any | None = None,
    ) -> None:
        if client is None and not api_key:
            raise ConfigurationError("OpenAI API key not configured (set RAGL_OPENAI_API_KEY)")
        if not 0 <= temperature <= 2:
            raise ConfigurationError("Temperature must be between 0 and 2")
        self.client = client or AsyncOpenAI(api_key=api_key)
        self.model_name = model_name
        self.temperature = temperature
        self.max_tokens = max_tokens

    def _messages(self, system_prompt: str, user_prompt: str) -> list[dict[str, str]]:
        return [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]

    async def generate(self, system_prompt: str, user_prompt: str) -> LLMResponse:
        try:
            completion = await self.client.chat.completions.create(
                model=self.model_name,
                messages=self._messages(system_prompt, user_prompt),
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except OpenAIError as exc:
            logger.error("Chat completion failed: %s", exc)
            raise UpstreamError("llm", str(exc)) from exc

        choice = completion.choices[0]
        usage = completion.usage
        return LLMResponse(
            text=choice.message.content or "",
            model=completion.model or self.model_name,
            token_usage=TokenUsage(
                prompt=getattr(usage, "prompt_tokens", 0) or 0,
                completion=getattr(usage, "completion_tokens", 0) or 0,
                total=getattr(usage, "total_tokens", 0) or 0,
            ),
            finish_reason=choice.finish_reason,
        )

    async def generate_streaming(
        self,
        system_prompt: str,
        user_prompt: str,
        on_chunk: StreamCallback,
    ) -> LLMResponse:
        parts: list[str] = []
        finish_reason: str | None = None
        try:
            stream = await self.client.chat.completions.create(
                model=self.model_name,
                messages=self._messages(system_prompt, user_prompt),
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                stream=True,
            )
            async for chunk in stream:
                if not chunk.choices:
                    continue
                choice = chunk.choices[0]
                finish_reason = choice.finish_reason or finish_reason
                delta = choice.delta.content if choice.delta else None
                if delta:
                    parts.append(delta)
                    await emit_chunk(on_chunk, StreamChunk(content=delta, done=False))
        except OpenAIError as exc:
            logger.error("Streaming chat completion failed: %s", exc)
            raise UpstreamError("llm", str(exc)) from exc

        await emit_chunk(on_chunk, StreamChunk(content="", done=True))
        text = "".join(parts)
        # Usage is not reported for streamed completions.
        completion_tokens = estimate_tokens(text)
        return LLMResponse(
            text=text,
            model=self.model_name,
            token_usage=TokenUsage(prompt=0, completion=completion_tokens, total=completion_tokens),
            finish_reason=finish_reason,
        )


__all__ = ["LLMProvider", "OpenAIChatProvider", "StreamCallback", "emit_chunk"]
