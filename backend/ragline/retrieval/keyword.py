"""In-memory keyword retrieval over a corpus snapshot."""

from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass, replace
from typing import Literal, Mapping, Sequence

from rank_bm25 import BM25Okapi

from ragline.core.errors import NotIndexedError, ValidationError
from ragline.core.logging import get_logger
from ragline.core.metrics import KEYWORD_INDEX_SIZE
from ragline.models.entities import Candidate
from ragline.utils.text import word_tokens

logger = get_logger(__name__)

KeywordScorer = Literal["tfidf", "bm25"]

TITLE_REPEAT = 3
HEADING_REPEAT = 2


@dataclass(slots=True, frozen=True)
class KeywordIndex:
    """Immutable term statistics for one corpus snapshot."""

    documents: tuple[Candidate, ...]
    term_counts: tuple[Counter, ...]
    doc_freq: Mapping[str, int]
    bm25: BM25Okapi | None = None

    @property
    def size(self) -> int:
        return len(self.documents)

    def idf(self, term: str) -> float:
        return 1.0 + math.log(len(self.documents) / (1 + self.doc_freq.get(term, 0)))


def searchable_text(candidate: Candidate) -> str:
    """Content plus repeated title and heading so structural matches weigh more."""
    parts = [candidate.content]
    if candidate.metadata.title:
        parts.append(" ".join([candidate.metadata.title] * TITLE_REPEAT))
    if candidate.metadata.heading:
        parts.append(" ".join([candidate.metadata.heading] * HEADING_REPEAT))
    return " ".join(parts).lower()


def build_keyword_index(
    corpus: Sequence[Candidate],
    scorer: KeywordScorer = "tfidf",
    k1: float = 1.2,
    b: float = 0.75,
) -> KeywordIndex:
    documents = tuple(corpus)
    tokenized = [word_tokens(searchable_text(candidate)) for candidate in documents]
    term_counts = tuple(Counter(tokens) for tokens in tokenized)
    doc_freq: Counter = Counter()
    for counts in term_counts:
        doc_freq.update(counts.keys())
    bm25 = None
    if scorer == "bm25" and documents:
        bm25 = BM25Okapi(tokenized, k1=k1, b=b)
    return KeywordIndex(documents=documents, term_counts=term_counts, doc_freq=dict(doc_freq), bm25=bm25)


def squash(score: float) -> float:
    """Map a raw keyword score into (0, 1)."""
    return 1.0 / (1.0 + math.exp(-score / 2.0))


class KeywordRetriever:
    """TF-IDF (or BM25) keyword search with rebuild-then-swap indexing."""

    def __init__(self, scorer: KeywordScorer = "tfidf", k1: float = 1.2, b: float = 0.75) -> None:
        self.scorer = scorer
        self.k1 = k1
        self.b = b
        self._index: KeywordIndex | None = None

    @property
    def is_indexed(self) -> bool:
        return self._index is not None

    @property
    def document_count(self) -> int:
        index = self._index
        return index.size if index is not None else 0

    def index(self, corpus: Sequence[Candidate]) -> None:
        """Build a fresh index and publish it in a single reference swap."""
        ids = [candidate.id for candidate in corpus]
        if len(set(ids)) != len(ids):
            logger.warning("Corpus contains duplicate chunk ids; keyword results may repeat ids")
        new_index = build_keyword_index(corpus, scorer=self.scorer, k1=self.k1, b=self.b)
        self._index = new_index
        KEYWORD_INDEX_SIZE.set(new_index.size)
        logger.info("Indexed %s documents for keyword search", new_index.size)

    def clear(self) -> None:
        self._index = build_keyword_index([], scorer=self.scorer)
        KEYWORD_INDEX_SIZE.set(0)

    def search(self, query: str, top_k: int = 10) -> list[Candidate]:
        index = self._index
        if index is None:
            raise NotIndexedError("Keyword index not ready. Call index() first.")
        if top_k < 1:
            raise ValidationError("top_k must be at least 1")
        if not index.documents:
            return []
        query_terms = word_tokens(query)
        if not query_terms:
            return []

        if index.bm25 is not None:
            # BM25 idf can go non-positive for common terms; match on term presence
            bm25_scores = index.bm25.get_scores(query_terms)
            scored = [
                (position, float(bm25_scores[position]))
                for position, counts in enumerate(index.term_counts)
                if any(term in counts for term in query_terms)
            ]
        else:
            raw_scores = [_tfidf(index, counts, query_terms) for counts in index.term_counts]
            scored = [(position, score) for position, score in enumerate(raw_scores) if score > 0]

        # sort is stable, so equal scores keep corpus order
        scored.sort(key=lambda item: item[1], reverse=True)
        return [
            replace(index.documents[position], score=squash(score))
            for position, score in scored[:top_k]
        ]


def _tfidf(index: KeywordIndex, counts: Counter, query_terms: Sequence[str]) -> float:
    return sum(counts.get(term, 0) * index.idf(term) for term in query_terms)


__all__ = ["KeywordRetriever", "KeywordIndex", "build_keyword_index", "searchable_text", "squash"]
