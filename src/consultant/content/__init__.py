"""Structured content parsing for assistant messages."""

from .models import (
    BulletList,
    ContentBlock,
    Heading,
    NumberedList,
    Paragraph,
    ProductCard,
    TruncatableParagraph,
)
from .parser import normalize_lines, parse_content, strip_inline_markup
from .render import render_block, render_blocks

__all__ = [
    "BulletList",
    "ContentBlock",
    "Heading",
    "NumberedList",
    "Paragraph",
    "ProductCard",
    "TruncatableParagraph",
    "normalize_lines",
    "parse_content",
    "render_block",
    "render_blocks",
    "strip_inline_markup",
]
