"""End-to-end question answering over the hybrid search pipeline."""

from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Sequence, TypeVar

from ragline.core.errors import UpstreamError
from ragline.core.logging import get_logger
from ragline.core.metrics import QUERY_COUNT, STAGE_LATENCY
from ragline.models.dto import AskOptions
from ragline.models.entities import Candidate, QueryResult, QueryTiming, StreamChunk
from ragline.providers.llm import LLMProvider, StreamCallback
from ragline.rag.context import ContextAssembler
from ragline.retrieval.rerank import RerankService, should_rerank
from ragline.retrieval.search import HybridSearch, validate_query

logger = get_logger(__name__)

T = TypeVar("T")


class QueryOrchestrator:
    """Retrieve, optionally rerank, assemble context and generate a cited answer."""

    def __init__(
        self,
        search: HybridSearch,
        llm: LLMProvider,
        reranker: RerankService | None = None,
        assembler: ContextAssembler | None = None,
        rerank_enabled: bool = True,
        timeout: float | None = None,
    ) -> None:
        self.search = search
        self.llm = llm
        self.reranker = reranker or RerankService()
        self.assembler = assembler or ContextAssembler()
        self.rerank_enabled = rerank_enabled
        self.timeout = timeout

    def index_documents(self, corpus: Sequence[Candidate]) -> None:
        self.search.index_documents(corpus)

    async def ask(
        self,
        query: str,
        options: AskOptions | None = None,
        on_chunk: StreamCallback | None = None,
    ) -> QueryResult:
        options = options or AskOptions()
        try:
            result = await self._ask(query, options, on_chunk)
        except Exception:
            QUERY_COUNT.labels(strategy=options.strategy, status="error").inc()
            raise
        QUERY_COUNT.labels(strategy=options.strategy, status="ok").inc()
        return result

    async def _ask(
        self,
        query: str,
        options: AskOptions,
        on_chunk: StreamCallback | None,
    ) -> QueryResult:
        validate_query(query)
        start_time = time.perf_counter()

        search_options = options.search
        if search_options.timeout is None and self.timeout is not None:
            search_options = search_options.model_copy(update={"timeout": self.timeout})
        stage_start = time.perf_counter()
        search_result = await self.search.search(query, options.strategy, search_options)
        candidates: list[Candidate] = list(search_result.results)
        retrieval_time = self._observe("retrieval", stage_start)

        rerank_time: float | None = None
        if should_rerank(self.rerank_enabled, options.use_reranking) and candidates:
            stage_start = time.perf_counter()
            reranked, rerank_metrics = self.reranker.rerank(candidates, query, options.top_k)
            candidates = list(reranked)
            rerank_time = self._observe("rerank", stage_start)
            logger.debug(
                "Reranked candidates",
                extra={
                    "ctx_strategy": rerank_metrics.strategy,
                    "ctx_before": rerank_metrics.original_count,
                    "ctx_after": rerank_metrics.reranked_count,
                },
            )

        stage_start = time.perf_counter()
        context = self.assembler.build(query, candidates)
        self._observe("context", stage_start)
        if context.truncated:
            logger.warning(
                "Context truncated: using %s of %s candidates within %s tokens",
                len(context.candidates_used),
                len(candidates),
                self.assembler.config.max_context_tokens,
            )

        stage_start = time.perf_counter()
        timeout = options.timeout if options.timeout is not None else self.timeout
        if on_chunk is not None:
            response = await self._bounded(
                self.llm.generate_streaming(context.system_prompt, context.user_prompt, on_chunk),
                timeout,
            )
        else:
            response = await self._bounded(
                self.llm.generate(context.system_prompt, context.user_prompt),
                timeout,
            )
        generation_time = self._observe("generation", stage_start)

        total_time = self._observe("total", start_time)
        return QueryResult(
            question=query,
            answer=response.text,
            citations=self.assembler.extract_citations(context.candidates_used),
            candidates=list(context.candidates_used),
            timing=QueryTiming(
                retrieval=retrieval_time,
                generation=generation_time,
                total=total_time,
                rerank=rerank_time,
            ),
            token_usage=response.token_usage,
            model_name=response.model,
            truncated=context.truncated,
        )

    def ask_stream(self, query: str, options: AskOptions | None = None) -> "AnswerStream":
        """Stream answer deltas; the finished ``QueryResult`` lands on ``last_result``."""
        return AnswerStream(self, query, options)

    def format_answer_with_citations(self, result: QueryResult) -> str:
        if not result.citations:
            return result.answer
        return f"{result.answer}\n\n{self.assembler.format_citations(result.citations)}"

    @staticmethod
    def _observe(stage: str, started: float) -> float:
        elapsed = time.perf_counter() - started
        STAGE_LATENCY.labels(stage=stage).observe(elapsed)
        return elapsed

    @staticmethod
    async def _bounded(call: Awaitable[T], timeout: float | None) -> T:
        if timeout is None:
            return await call
        try:
            return await asyncio.wait_for(call, timeout)
        except asyncio.TimeoutError as exc:
            raise UpstreamError("llm", f"generation timed out after {timeout}s") from exc


class AnswerStream:
    """Async iterator over the chunks of one streamed answer."""

    def __init__(self, orchestrator: QueryOrchestrator, query: str, options: AskOptions | None) -> None:
        self._orchestrator = orchestrator
        self._query = query
        self._options = options
        self._queue: asyncio.Queue[StreamChunk | None] = asyncio.Queue()
        self._task: asyncio.Task[Any] | None = None
        self._finished = False
        self._saw_done = False
        self.last_result: QueryResult | None = None

    def __aiter__(self) -> "AnswerStream":
        return self

    async def __anext__(self) -> StreamChunk:
        if self._finished:
            raise StopAsyncIteration
        if self._task is None:
            self._task = asyncio.create_task(self._run())
        chunk = await self._queue.get()
        if chunk is None:
            self._finished = True
            # surfaces any error raised by the pipeline
            await self._task
            raise StopAsyncIteration
        return chunk

    def _push(self, chunk: StreamChunk) -> None:
        if chunk.done:
            self._saw_done = True
        self._queue.put_nowait(chunk)

    async def _run(self) -> None:
        try:
            self.last_result = await self._orchestrator.ask(
                self._query,
                self._options,
                on_chunk=self._push,
            )
            if not self._saw_done:
                self._queue.put_nowait(StreamChunk(content="", done=True))
        finally:
            self._queue.put_nowait(None)

    async def aclose(self) -> None:
        self._finished = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass


__all__ = ["QueryOrchestrator", "AnswerStream"]
