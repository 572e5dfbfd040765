"""Content block models produced by the parser.

Blocks are derived, never persisted; every parse builds fresh ones.
"""

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

from ..config import TRUNCATION_SUFFIX, TRUNCATION_THRESHOLD


class _Block(BaseModel):
    model_config = ConfigDict(frozen=True)


class Paragraph(_Block):
    kind: Literal["paragraph"] = "paragraph"
    text: str


class BulletList(_Block):
    kind: Literal["bullet_list"] = "bullet_list"
    items: list[str] = Field(default_factory=list)


class NumberedList(_Block):
    kind: Literal["numbered_list"] = "numbered_list"
    items: list[str] = Field(default_factory=list)


class Heading(_Block):
    kind: Literal["heading"] = "heading"
    level: int = Field(ge=1, le=3)
    text: str


class TruncatableParagraph(_Block):
    """A long passage shown collapsed unless expanded."""

    kind: Literal["truncatable_paragraph"] = "truncatable_paragraph"
    full_text: str
    is_expanded: bool = False

    @property
    def preview(self) -> str:
        """Collapsed form: the leading characters followed by an ellipsis."""
        return f"{self.full_text[:TRUNCATION_THRESHOLD]}{TRUNCATION_SUFFIX}"

    @property
    def display_text(self) -> str:
        return self.full_text if self.is_expanded else self.preview


class ProductCard(_Block):
    """A structured product suggestion embedded in assistant text."""

    kind: Literal["product_card"] = "product_card"
    id: str | None = None
    name: str | None = None
    price: str | None = None
    image_url: str | None = None
    reason: str | None = None


ContentBlock = Annotated[
    Paragraph | BulletList | NumberedList | Heading | TruncatableParagraph | ProductCard,
    Field(discriminator="kind"),
]
