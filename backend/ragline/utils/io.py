"""JSONL corpus snapshot helpers."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable

import orjson

from ragline.models.dto import CorpusChunk
from ragline.models.entities import Candidate, CandidateMetadata


def load_jsonl(path: Path) -> list[dict[str, Any]]:
    """Load a JSONL file into a list of dictionaries, skipping blank lines."""
    rows: list[dict[str, Any]] = []
    with path.open("rb") as fh:
        for line in fh:
            line = line.strip()
            if line:
                rows.append(orjson.loads(line))
    return rows


def save_jsonl(rows: Iterable[dict[str, Any]], path: Path) -> None:
    with path.open("wb") as fh:
        for row in rows:
            fh.write(orjson.dumps(row))
            fh.write(b"\n")


def load_corpus(path: Path) -> list[Candidate]:
    """Read a chunk snapshot into zero-score candidates."""
    corpus: list[Candidate] = []
    for row in load_jsonl(path):
        chunk = CorpusChunk.model_validate(row)
        corpus.append(
            Candidate(
                id=chunk.id,
                content=chunk.content,
                score=0.0,
                metadata=CandidateMetadata.from_mapping(chunk.metadata),
            )
        )
    return corpus


__all__ = ["load_jsonl", "save_jsonl", "load_corpus"]
