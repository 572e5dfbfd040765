"""Terminal rendering of content blocks.

Hides how each block kind maps onto Rich renderables.
"""

from collections.abc import Sequence

from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.text import Text

from .models import (
    BulletList,
    ContentBlock,
    Heading,
    NumberedList,
    Paragraph,
    ProductCard,
    TruncatableParagraph,
)

HEADING_STYLES = {
    1: "bold underline",
    2: "bold",
    3: "italic",
}


def render_product_card(card: ProductCard) -> Panel:
    """Render a product suggestion as a bordered panel."""
    body = Text()
    body.append(card.name or "Recommended item", style="bold")
    if card.price:
        body.append(f"\n{card.price}")
    if card.id:
        body.append(f"\nID: {card.id}", style="dim")
    if card.image_url:
        body.append(f"\n{card.image_url}", style="dim underline")
    if card.reason:
        body.append(f"\n{card.reason}", style="italic")
    return Panel(body, title="Suggested product", title_align="left", border_style="cyan", expand=False)


def render_block(block: ContentBlock) -> RenderableType:
    """Render a single block."""
    if isinstance(block, Paragraph):
        return Text(block.text, overflow="fold")
    if isinstance(block, BulletList):
        return Text("\n".join(f"  • {item}" for item in block.items), overflow="fold")
    if isinstance(block, NumberedList):
        return Text("\n".join(f"  {n}. {item}" for n, item in enumerate(block.items, 1)), overflow="fold")
    if isinstance(block, Heading):
        return Text(block.text, style=HEADING_STYLES[block.level])
    if isinstance(block, TruncatableParagraph):
        hint = "show less" if block.is_expanded else "read more"
        text = Text(block.display_text, overflow="fold")
        text.append(f" [{hint}]", style="dim")
        return text
    if isinstance(block, ProductCard):
        return render_product_card(block)
    raise TypeError(f"Unknown content block: {type(block).__name__}")


def render_blocks(blocks: Sequence[ContentBlock]) -> Group:
    """Render blocks in order, one blank line apart."""
    renderables: list[RenderableType] = []
    for i, block in enumerate(blocks):
        if i:
            renderables.append(Text(""))
        renderables.append(render_block(block))
    return Group(*renderables)
