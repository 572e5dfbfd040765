"""Structured content parser for assistant text.

Turns raw (possibly still growing) assistant text into an ordered list
of content blocks. The parse is pure: it keeps no state between calls,
so re-parsing the whole text on every streamed delta is always safe.

Grammar, one normalized line at a time:
- blank line            closes the open block
- [PRODUCT_CARD]        starts a `key: value` card ending at [/PRODUCT_CARD]
- "* item" / "- item"   bullet list item
- "1. item"             numbered list item
- "#", "##", "###"      heading
- longer than 280 chars truncatable paragraph
- anything else         joins the open paragraph
"""

import re
from collections.abc import Mapping

from ..config import TRUNCATION_THRESHOLD
from .models import (
    BulletList,
    ContentBlock,
    Heading,
    NumberedList,
    Paragraph,
    ProductCard,
    TruncatableParagraph,
)

CARD_OPEN = "[PRODUCT_CARD]"
CARD_CLOSE = "[/PRODUCT_CARD]"

# Map card keys to ProductCard fields
CARD_FIELDS = {
    "id": "id",
    "name": "name",
    "price": "price",
    "image": "image_url",
    "reason": "reason",
}

_WHITESPACE = re.compile(r"\s+")
_BOILERPLATE = (
    re.compile(r"^in summary:?", re.IGNORECASE),
    re.compile(r"^here'?s a strategy:?", re.IGNORECASE),
    re.compile(r"^conclusion:?", re.IGNORECASE),
)
_BULLET = re.compile(r"^[*-]\s+")
_NUMBERED = re.compile(r"^\d+\.\s+")
_HEADING = re.compile(r"^(#{1,3})\s+")
_STRONG = re.compile(r"\*\*([^*]+)\*\*")

ExpandFlags = bool | Mapping[int, bool]


def strip_inline_markup(text: str) -> str:
    """Remove `**strong**` and `*emphasis*` markers, keeping the text."""
    text = _STRONG.sub(r"\1", text)
    return text.replace("*", "")


def normalize_lines(raw: str) -> list[str]:
    """Collapse whitespace, drop boilerplate openers and repeated lines.

    Blank lines are kept since they separate blocks.
    """
    lines: list[str] = []
    for line in raw.split("\n"):
        line = _WHITESPACE.sub(" ", line).strip()
        if line and any(rx.match(line) for rx in _BOILERPLATE):
            continue
        if lines and lines[-1].lower() == line.lower():
            continue
        lines.append(line)
    return lines


def _card_from_lines(card_lines: list[str]) -> ProductCard:
    data: dict[str, str] = {}
    for line in card_lines:
        key, sep, value = line.partition(":")
        key = key.strip().lower()
        if not sep or not key:
            continue
        data[key] = value.strip()
    fields = {
        field: data[key]
        for key, field in CARD_FIELDS.items()
        if data.get(key)
    }
    return ProductCard(**fields)


class _Segmenter:
    """Single forward pass state: the open paragraph or list."""

    def __init__(self, expanded: ExpandFlags):
        self._expanded = expanded
        self.blocks: list[ContentBlock] = []
        self._paragraph: list[str] = []
        self._list_kind: type[BulletList] | type[NumberedList] | None = None
        self._list_items: list[str] = []

    def _is_expanded(self, position: int) -> bool:
        if isinstance(self._expanded, bool):
            return self._expanded
        return bool(self._expanded.get(position, False))

    def flush(self) -> None:
        if self._paragraph:
            self.blocks.append(Paragraph(text=" ".join(self._paragraph)))
            self._paragraph = []
        if self._list_kind is not None and self._list_items:
            self.blocks.append(self._list_kind(items=self._list_items))
        self._list_kind = None
        self._list_items = []

    def list_item(self, kind: type[BulletList] | type[NumberedList], text: str) -> None:
        if self._list_kind is not kind:
            self.flush()
            self._list_kind = kind
        self._list_items.append(strip_inline_markup(text))

    def paragraph_line(self, text: str) -> None:
        text = strip_inline_markup(text).strip()
        if not text:
            return
        if self._list_kind is not None:
            self.flush()
        self._paragraph.append(text)

    def emit(self, block: ContentBlock) -> None:
        self.flush()
        self.blocks.append(block)

    def emit_truncatable(self, text: str) -> None:
        self.flush()
        position = len(self.blocks)
        self.blocks.append(
            TruncatableParagraph(full_text=strip_inline_markup(text), is_expanded=self._is_expanded(position))
        )


def parse_content(raw: str, expanded: ExpandFlags = False) -> list[ContentBlock]:
    """Parse assistant text into content blocks.

    Args:
        raw: Assistant text, complete or partially streamed
        expanded: Expansion flag for truncatable paragraphs, either one
            bool for all of them or a mapping from block position (index
            in the returned list) to bool

    Returns:
        Fresh list of blocks in document order
    """
    lines = normalize_lines(raw)
    seg = _Segmenter(expanded)

    i = 0
    while i < len(lines):
        line = lines[i]
        i += 1

        if not line:
            seg.flush()
            continue

        if line == CARD_OPEN:
            seg.flush()
            card_lines: list[str] = []
            # An unterminated card runs to the end of the text.
            while i < len(lines) and lines[i] != CARD_CLOSE:
                if lines[i]:
                    card_lines.append(lines[i])
                i += 1
            i += 1
            if card_lines:
                seg.emit(_card_from_lines(card_lines))
            continue

        if match := _BULLET.match(line):
            seg.list_item(BulletList, line[match.end():])
            continue

        if match := _NUMBERED.match(line):
            seg.list_item(NumberedList, line[match.end():])
            continue

        if match := _HEADING.match(line):
            level = len(match.group(1))
            seg.emit(Heading(level=level, text=strip_inline_markup(line[match.end():])))
            continue

        if len(line) > TRUNCATION_THRESHOLD:
            seg.emit_truncatable(line)
            continue

        seg.paragraph_line(line)

    seg.flush()
    return seg.blocks
