"""Markdown + LaTeX rendering helpers for question text and explanations.

Architecture note:
    The renderer converts question markup into HTML on the server and leaves
    the math to MathJax in the browser. Pre-rendering the math would remove
    the client-side work but would tie the stored question bank to one math
    engine, so the fragments are produced on every request instead.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from markdown_it import MarkdownIt


@dataclass(slots=True)
class MarkdownMathRenderer:
    """Converts markdown-with-math into HTML fragments."""

    enable_html: bool = False
    _markdown: MarkdownIt = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._markdown = (
            MarkdownIt("commonmark", {"html": self.enable_html})
            .enable("table")
            .enable("strikethrough")
        )

    def render_fragment(self, markdown_text: str) -> str:
        """Render a markdown string into an HTML fragment."""

        sanitized = (markdown_text or "").strip()
        if not sanitized:
            return "<p><em>No content provided.</em></p>"
        return self._markdown.render(sanitized)

    def render_inline(self, markdown_text: str) -> str:
        """Render a single line (an option label) without the wrapping paragraph."""

        return self._markdown.renderInline((markdown_text or "").strip())


renderer = MarkdownMathRenderer()
# Raw HTML is disabled, so text coming from the question bank is escaped.
# MarkdownIt is safe to share between request threads for read-only renders.
