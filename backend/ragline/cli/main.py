"""CLI entrypoint for Ragline."""

from __future__ import annotations

import asyncio
import json
from dataclasses import asdict
from pathlib import Path
from typing import Any, Coroutine, Optional, TypeVar

import typer

from ragline.core.config import Settings
from ragline.core.errors import RaglineError
from ragline.core.logging import configure_logging
from ragline.core.metrics import metrics_payload
from ragline.dependencies import build_orchestrator, build_search, get_app_settings, load_corpus_into
from ragline.models.dto import AskOptions, SearchOptions
from ragline.models.entities import StreamChunk
from ragline.utils.io import load_corpus

app = typer.Typer(name="ragline", help="Ragline retrieval and ranking command-line interface")

T = TypeVar("T")

STRATEGIES = ("vector", "keyword", "hybrid")


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Override RAGL_LOG_LEVEL"),
    log_format: Optional[str] = typer.Option(None, "--log-format", help="json or text"),
) -> None:
    """Ragline retrieval and ranking tools."""
    if log_level or log_format:
        configure_logging(level=log_level or "INFO", fmt=log_format or "json")


def _fail(exc: RaglineError) -> typer.Exit:
    typer.echo(f"Error ({type(exc).__name__}): {exc}", err=True)
    return typer.Exit(code=1)


def _settings() -> Settings:
    try:
        return get_app_settings()
    except RaglineError as exc:
        raise _fail(exc) from exc


def _run(coro: Coroutine[Any, Any, T]) -> T:
    try:
        return asyncio.run(coro)
    except RaglineError as exc:
        raise _fail(exc) from exc


def _check_strategy(strategy: str) -> str:
    if strategy not in STRATEGIES:
        raise typer.BadParameter(f"strategy must be one of {', '.join(STRATEGIES)}")
    return strategy


@app.command()
def search(
    q: str = typer.Argument(..., help="Query text"),
    corpus: Path = typer.Option(..., "--corpus", exists=True, dir_okay=False, help="JSONL chunk snapshot"),
    strategy: str = typer.Option("hybrid", "--strategy", callback=_check_strategy, help="vector, keyword or hybrid"),
    k: int = typer.Option(10, "--k", min=1, help="Number of results to return"),
    min_score: Optional[float] = typer.Option(None, "--min-score", help="Drop results scoring below this"),
) -> None:
    """Run a retrieval query against a corpus snapshot."""
    settings = _settings()

    async def _search() -> dict[str, Any]:
        engine = build_search(settings)
        await load_corpus_into(engine, load_corpus(corpus), upsert_vectors=settings.vector_store == "memory")
        result = await engine.search(q, strategy, SearchOptions(top_k=k, min_score=min_score))  # type: ignore[arg-type]
        return asdict(result)

    typer.echo(json.dumps(_run(_search()), indent=2))


@app.command()
def ask(
    q: str = typer.Argument(..., help="Question text"),
    corpus: Path = typer.Option(..., "--corpus", exists=True, dir_okay=False, help="JSONL chunk snapshot"),
    strategy: str = typer.Option("hybrid", "--strategy", callback=_check_strategy, help="vector, keyword or hybrid"),
    k: int = typer.Option(5, "--k", min=1, help="Candidates kept after re-ranking"),
    rerank: Optional[bool] = typer.Option(None, "--rerank/--no-rerank", help="Force reranking on/off"),
    stream: bool = typer.Option(False, "--stream", help="Print the answer as it is generated"),
) -> None:
    """Answer a question with citations."""
    settings = _settings()
    options = AskOptions(strategy=strategy, use_reranking=rerank, top_k=k)  # type: ignore[arg-type]

    def _print_chunk(chunk: StreamChunk) -> None:
        if chunk.done:
            typer.echo("")
        else:
            typer.echo(chunk.content, nl=False)

    async def _ask() -> str:
        orchestrator = build_orchestrator(settings)
        await load_corpus_into(
            orchestrator.search,
            load_corpus(corpus),
            upsert_vectors=settings.vector_store == "memory",
        )
        if stream:
            result = await orchestrator.ask(q, options, on_chunk=_print_chunk)
            return orchestrator.assembler.format_citations(result.citations) if result.citations else ""
        result = await orchestrator.ask(q, options)
        return orchestrator.format_answer_with_citations(result)

    output = _run(_ask())
    if output:
        typer.echo(output)


@app.command("config")
def show_config() -> None:
    """Print the resolved configuration with credentials masked."""
    typer.echo(json.dumps(_settings().redacted(), indent=2, default=str))


@app.command()
def metrics() -> None:
    """Print process metrics in the Prometheus text format."""
    payload, _ = metrics_payload()
    typer.echo(payload.decode("utf-8"))


if __name__ == "__main__":
    app()
