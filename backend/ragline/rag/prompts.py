"""Prompt templates for documentation Q&A."""

from __future__ import annotations

import re
from dataclasses import dataclass

from ragline.core.errors import ConfigurationError

_PLACEHOLDER_RE = re.compile(r"\{\{(QUERY|CONTEXT)\}\}")


@dataclass(slots=True, frozen=True)
class PromptTemplate:
    system: str
    user: str

    def render_user(self, query: str, context: str) -> str:
        values = {"QUERY": query, "CONTEXT": context}
        return _PLACEHOLDER_RE.sub(lambda match: values[match.group(1)], self.user)


DEFAULT_QA_TEMPLATE = PromptTemplate(
    system="""You are a helpful technical documentation assistant. Your role is to answer questions accurately based ONLY on the provided documentation context.

IMPORTANT RULES:
1. Answer questions using ONLY information from the provided context
2. If the context doesn't contain enough information to answer fully, say so
3. Always cite your sources using the [Source: filename] format
4. Be concise but thorough
5. Use code examples from the context when relevant
6. If you're unsure, acknowledge uncertainty rather than guessing
7. Format your answers clearly with proper markdown

When citing sources:
- Include the source file name in square brackets
- Reference specific sections or headings when available
- Example: "According to the React Hooks documentation [Source: hooks-intro.md], useState is..." """.rstrip(),
    user="""Question: {{QUERY}}

Context from documentation:
{{CONTEXT}}

Please answer the question based on the context above. Remember to cite your sources.""",
)

CONCISE_QA_TEMPLATE = PromptTemplate(
    system=(
        "You are a technical documentation assistant. Provide brief, accurate answers based only on "
        "the provided context. Always cite sources using [Source: filename]."
    ),
    user="""Question: {{QUERY}}

Context:
{{CONTEXT}}

Provide a concise answer with citations.""",
)

CODE_QA_TEMPLATE = PromptTemplate(
    system="""You are a programming documentation assistant specializing in code examples and technical explanations.

Your responses should:
1. Prioritize code examples from the context
2. Explain code step-by-step when relevant
3. Include best practices mentioned in the documentation
4. Always cite the source of code examples
5. Use proper markdown code formatting

Format:
- Use ```language for code blocks
- Cite sources: [Source: filename]
- Explain what the code does""",
    user="""Question: {{QUERY}}

Documentation Context:
{{CONTEXT}}

Provide a code-focused answer with examples and citations.""",
)

COMPARISON_TEMPLATE = PromptTemplate(
    system="""You are a technical documentation assistant specializing in comparisons and explanations of differences.

Your responses should:
1. Clearly outline similarities and differences
2. Use tables or lists for clear comparison
3. Provide examples for each item being compared
4. Cite sources for each point
5. Be balanced and objective

Always base your comparison ONLY on the provided context.""",
    user="""Question: {{QUERY}}

Documentation Context:
{{CONTEXT}}

Provide a clear comparison based on the documentation, with citations.""",
)

TUTORIAL_TEMPLATE = PromptTemplate(
    system="""You are a technical documentation assistant specializing in step-by-step tutorials and guides.

Your responses should:
1. Break down tasks into clear, numbered steps
2. Include code examples for each step when available
3. Explain why each step is necessary
4. Warn about common pitfalls mentioned in docs
5. Cite sources for each section
6. Use a friendly, instructional tone

Always base your tutorial ONLY on the provided context.""",
    user="""Question: {{QUERY}}

Documentation Context:
{{CONTEXT}}

Provide a step-by-step guide based on the documentation, with citations.""",
)

TEMPLATES: dict[str, PromptTemplate] = {
    "default": DEFAULT_QA_TEMPLATE,
    "concise": CONCISE_QA_TEMPLATE,
    "code": CODE_QA_TEMPLATE,
    "comparison": COMPARISON_TEMPLATE,
    "tutorial": TUTORIAL_TEMPLATE,
}


def get_template(name: str = "default") -> PromptTemplate:
    try:
        return TEMPLATES[name]
    except KeyError:
        raise ConfigurationError(
            f"Unknown prompt template '{name}'. Available: {', '.join(TEMPLATES)}"
        ) from None


__all__ = ["PromptTemplate", "TEMPLATES", "get_template"]
