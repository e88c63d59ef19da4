"""
Front Matter Module.

Splits a page source into its YAML front matter and Markdown body, and
renders the body to HTML.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import yaml

from .render import render_markdown

OPENING = "---\n"
CLOSING = "\n---\n"


class InvalidFrontMatter(ValueError):
    """Front matter is not a YAML mapping of string values."""


@dataclass(frozen=True)
class Page:
    """ページ（front matter + Markdown本文 + 描画済みHTML）"""

    body: str
    html: str = ""
    meta: dict[str, str] = field(default_factory=dict)

    @property
    def title(self) -> str | None:
        return self.meta.get("title")


def split_front_matter(src: str) -> tuple[str, str] | None:
    """Return (front matter, body), or None when the page has no header."""
    data = src.lstrip()
    if not data.startswith(OPENING):
        return None
    data = data[len(OPENING) :]
    i = data.find(CLOSING)
    if i < 0:
        return None
    return data[:i], data[i + len(CLOSING) :]


def parse_meta(header: str) -> dict[str, str]:
    try:
        data = yaml.safe_load(header)
    except yaml.YAMLError as e:
        raise InvalidFrontMatter(f"invalid front matter: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidFrontMatter("front matter must be a mapping")

    meta: dict[str, str] = {}
    for key, value in data.items():
        if not isinstance(value, str):
            raise InvalidFrontMatter(f"front matter value for {key!r} is not a string")
        meta[str(key)] = value
    return meta


def parse_page(src: str) -> Page:
    """
    Parse and render a page source.

    Args:
        src: Raw page.md text

    Returns:
        Page with front matter values in ``meta``, the Markdown in ``body``
        and its rendering in ``html``

    Raises:
        InvalidFrontMatter: Header is not valid YAML or has non-string values
    """
    parts = split_front_matter(src)
    if parts is None:
        meta, body = {}, src
    else:
        header, body = parts
        meta = parse_meta(header)
    return Page(body=body, html=render_markdown(body), meta=meta)
