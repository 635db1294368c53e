"""
MARKDOWN RENDERER
=================

Turns the final answer (markdown written by the LLM) into HTML for the UI.
Fenced code blocks and tables are enabled because LLM answers use both.
"""

import markdown

_EXTENSIONS = ["fenced_code", "tables"]


def render_markdown(text: str) -> str:
    """Render markdown text to an HTML fragment ("" for empty text)."""
    if not text:
        return ""
    return markdown.markdown(text, extensions=_EXTENSIONS)
