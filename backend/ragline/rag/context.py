"""Token-budgeted context assembly and citation helpers."""

from __future__ import annotations

from functools import partial
from typing import Callable, Sequence

from ragline.core.config import ContextConfig
from ragline.core.logging import get_logger
from ragline.core.metrics import CONTEXT_TRUNCATIONS
from ragline.models.entities import Candidate, Citation, GeneratedContext
from ragline.rag.prompts import PromptTemplate, get_template
from ragline.utils.tokens import count_tokens

logger = get_logger(__name__)

BLOCK_SEPARATOR = "\n\n---\n\n"

TokenCounter = Callable[[str], int]


class ContextAssembler:
    """Selects a prefix of ranked candidates that fits the context token budget."""

    def __init__(
        self,
        config: ContextConfig | None = None,
        template: PromptTemplate | None = None,
        token_counter: TokenCounter | None = None,
    ) -> None:
        self.config = config or ContextConfig()
        self.template = template or get_template(self.config.template)
        self.count_tokens = token_counter or partial(count_tokens, model=self.config.tokenizer_model)

    def build(
        self,
        query: str,
        candidates: Sequence[Candidate],
        include_metadata: bool | None = None,
    ) -> GeneratedContext:
        """Render the prompt pair from as many leading candidates as the budget allows."""
        if include_metadata is None:
            include_metadata = self.config.include_metadata
        offered = list(candidates)[: self.config.max_results]
        budget = self.config.max_context_tokens
        separator_tokens = self.count_tokens(BLOCK_SEPARATOR)

        blocks: list[str] = []
        used: list[Candidate] = []
        context_tokens = 0
        truncated = False
        for candidate in offered:
            block = self.render_block(candidate, include_metadata)
            cost = self.count_tokens(block) + (separator_tokens if blocks else 0)
            if context_tokens + cost > budget:
                truncated = True
                break
            blocks.append(block)
            used.append(candidate)
            context_tokens += cost

        if truncated:
            CONTEXT_TRUNCATIONS.inc()
            logger.info(
                "Context truncated to %s of %s candidates (%s/%s tokens)",
                len(used),
                len(offered),
                context_tokens,
                budget,
            )

        system_prompt = self.template.system
        user_prompt = self.template.render_user(query, BLOCK_SEPARATOR.join(blocks))
        return GeneratedContext(
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            candidates_used=used,
            total_tokens=self.count_tokens(system_prompt) + self.count_tokens(user_prompt),
            context_tokens=context_tokens,
            truncated=truncated,
        )

    @staticmethod
    def render_block(candidate: Candidate, include_metadata: bool = True) -> str:
        parts: list[str] = []
        if include_metadata:
            fields: list[str] = []
            if candidate.metadata.source:
                fields.append(f"Source: {candidate.metadata.source}")
            if candidate.metadata.title:
                fields.append(f"Title: {candidate.metadata.title}")
            if candidate.metadata.heading:
                fields.append(f"Section: {candidate.metadata.heading}")
            if fields:
                parts.append(f"[{' | '.join(fields)}]")
        parts.append(candidate.content)
        return "\n".join(parts)

    @staticmethod
    def extract_citations(candidates: Sequence[Candidate]) -> list[Citation]:
        return [
            Citation(
                source=candidate.metadata.source,
                title=candidate.metadata.title,
                heading=candidate.metadata.heading,
                start_line=candidate.metadata.start_line,
                end_line=candidate.metadata.end_line,
                chunk_index=candidate.metadata.chunk_index,
            )
            for candidate in candidates
        ]

    @staticmethod
    def format_citations(citations: Sequence[Citation]) -> str:
        """Markdown source list grouped by document, headings in encounter order."""
        by_source: dict[str, list[Citation]] = {}
        for citation in citations:
            by_source.setdefault(citation.source, []).append(citation)

        lines = ["## Sources\n"]
        for source, group in by_source.items():
            line = f"- **{source}**"
            if group[0].title:
                line += f" - {group[0].title}"
            sections = list(dict.fromkeys(citation.heading for citation in group if citation.heading))
            if sections:
                line += f" ({', '.join(sections)})"
            lines.append(line)
        return "\n".join(lines)


__all__ = ["ContextAssembler", "BLOCK_SEPARATOR"]
