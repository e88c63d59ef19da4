"""
Render Module.

Markdown to HTML and SCSS to CSS conversions used as cache recomputation
functions.
"""

from __future__ import annotations

import sass
from markdown_it import MarkdownIt

# Raw HTML in page sources is escaped, not passed through
_markdown = MarkdownIt("commonmark", {"html": False})


def render_markdown(src: str) -> str:
    """Render a Markdown body to an HTML fragment."""
    return _markdown.render(src)


def compile_scss(src: str) -> str:
    """
    Compile an SCSS stylesheet to CSS.

    CPU-bound, wrap it with BlockingRuntime.offload() when caching.

    Raises:
        sass.CompileError: The stylesheet is invalid
    """
    return sass.compile(string=src, output_style="expanded")
