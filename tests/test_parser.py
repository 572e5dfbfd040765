"""Unit and property-based tests for the content parser."""
import pytest
from hypothesis import given
from hypothesis import strategies as st
from rich.console import Console

from consultant.content import (
    BulletList,
    Heading,
    NumberedList,
    Paragraph,
    ProductCard,
    TruncatableParagraph,
    normalize_lines,
    parse_content,
    render_blocks,
    strip_inline_markup,
)


class TestNormalizeLines:
    """Tests for line normalization."""

    def test_collapses_internal_whitespace(self):
        """Test that whitespace runs become single spaces and edges are trimmed."""
        assert normalize_lines("  a \t  b  ") == ["a b"]

    @pytest.mark.parametrize("line", [
        "In summary: buy low",
        "in summary",
        "Here's a strategy:",
        "Heres a strategy for you",
        "CONCLUSION: done",
    ])
    def test_drops_boilerplate_openers(self, line):
        """Test that boilerplate openers are removed."""
        assert normalize_lines(f"keep\n{line}") == ["keep"]

    def test_drops_case_insensitive_repeat(self):
        """Test that a line repeating the previous one is dropped."""
        assert normalize_lines("hello\nHELLO\nworld") == ["hello", "world"]

    def test_repeat_check_uses_previous_retained_line(self):
        """Test that non-adjacent repeats survive."""
        assert normalize_lines("a\nb\na") == ["a", "b", "a"]

    def test_keeps_blank_separators(self):
        """Test that blank lines survive normalization."""
        assert normalize_lines("a\n\nb") == ["a", "", "b"]


class TestStripInlineMarkup:
    """Tests for emphasis marker removal."""

    @pytest.mark.parametrize("raw,expected", [
        ("**bold** text", "bold text"),
        ("*light* text", "light text"),
        ("dangling ** marker", "dangling  marker"),
        ("a*b", "ab"),
        ("plain", "plain"),
    ])
    def test_strip(self, raw, expected):
        """Test paired and singleton markers are removed, text kept."""
        assert strip_inline_markup(raw) == expected


class TestParseContent:
    """Tests for block segmentation."""

    def test_flush_on_blank(self):
        """Test that a blank line separates paragraphs."""
        assert parse_content("a\nb\n\nc") == [Paragraph(text="a b"), Paragraph(text="c")]

    def test_marker_only_lines_produce_no_paragraph(self):
        """Test that lines made only of emphasis markers are skipped."""
        assert parse_content("**") == []
        assert parse_content("*") == []
        assert parse_content("Hello\n**\nworld") == [Paragraph(text="Hello world")]
        assert parse_content("- a\n**\n- b") == [BulletList(items=["a", "b"])]

    def test_list_type_switch_forces_new_block(self):
        """Test that bullet and numbered items never merge."""
        assert parse_content("* a\n1. b") == [
            BulletList(items=["a"]),
            NumberedList(items=["b"]),
        ]

    def test_consecutive_items_merge(self):
        """Test that consecutive items of one kind form one list."""
        blocks = parse_content("- one\n* two\n- three")
        assert blocks == [BulletList(items=["one", "two", "three"])]

    def test_numbered_list(self):
        """Test numbered items and markup stripping inside them."""
        blocks = parse_content("1. **First** step\n2. Second")
        assert blocks == [NumberedList(items=["First step", "Second"])]

    def test_paragraph_after_list_closes_list(self):
        """Test that a plain line after a list starts a paragraph."""
        assert parse_content("* a\nafter") == [BulletList(items=["a"]), Paragraph(text="after")]

    def test_list_after_paragraph_closes_paragraph(self):
        """Test that a list item closes the open paragraph."""
        assert parse_content("intro\n* a") == [Paragraph(text="intro"), BulletList(items=["a"])]

    @pytest.mark.parametrize("line,level", [
        ("# Title", 1),
        ("## Title", 2),
        ("### Title", 3),
    ])
    def test_headings(self, line, level):
        """Test heading level equals the number of hashes."""
        assert parse_content(line) == [Heading(level=level, text="Title")]

    def test_four_hashes_is_not_a_heading(self):
        """Test that deeper headings fall back to paragraphs."""
        assert parse_content("#### Deep") == [Paragraph(text="#### Deep")]

    def test_heading_closes_paragraph(self):
        """Test that a heading flushes the open paragraph."""
        blocks = parse_content("text\n## *Pricing*\nmore")
        assert blocks == [
            Paragraph(text="text"),
            Heading(level=2, text="Pricing"),
            Paragraph(text="more"),
        ]

    def test_card_extraction(self):
        """Test that a product card is extracted with no stray paragraphs."""
        blocks = parse_content("[PRODUCT_CARD]\nname: Oud\nprice: ₦10,000\n[/PRODUCT_CARD]")
        assert blocks == [ProductCard(name="Oud", price="₦10,000")]

    def test_card_all_fields_and_unknown_keys(self):
        """Test recognized keys map to fields and unknown keys are dropped."""
        raw = "\n".join([
            "Try this:",
            "[PRODUCT_CARD]",
            "ID: p-42",
            "name: Amber **Noir**",
            "image: https://cdn.test/a.png",
            "reason: Long lasting: 12h",
            "stock: 4",
            "not a pair",
            "[/PRODUCT_CARD]",
            "Anything else?",
        ])
        assert parse_content(raw) == [
            Paragraph(text="Try this:"),
            ProductCard(
                id="p-42",
                name="Amber **Noir**",
                image_url="https://cdn.test/a.png",
                reason="Long lasting: 12h",
            ),
            Paragraph(text="Anything else?"),
        ]

    def test_unterminated_card_consumes_rest(self):
        """Test that an unterminated card keeps whatever was captured."""
        blocks = parse_content("[PRODUCT_CARD]\nname: Musk\n* not a list")
        assert blocks == [ProductCard(name="Musk")]

    def test_empty_card_is_skipped(self):
        """Test that a card without lines emits nothing."""
        assert parse_content("[PRODUCT_CARD]\n[/PRODUCT_CARD]\nafter") == [Paragraph(text="after")]

    def test_truncation_threshold(self):
        """Test 281 characters is truncatable and 280 is not."""
        assert parse_content("a" * 281) == [TruncatableParagraph(full_text="a" * 281, is_expanded=False)]
        assert parse_content("a" * 280) == [Paragraph(text="a" * 280)]

    def test_truncatable_preview(self):
        """Test collapsed and expanded display text."""
        block = parse_content("b" * 300)[0]
        assert block.display_text == "b" * 280 + "..."
        expanded = parse_content("b" * 300, expanded=True)[0]
        assert expanded.display_text == "b" * 300

    def test_expand_flag_by_position(self):
        """Test that expansion flags are looked up by block position."""
        long_a, long_b = "a" * 300, "b" * 300
        blocks = parse_content(f"intro\n{long_a}\n{long_b}", expanded={2: True})
        assert blocks[1] == TruncatableParagraph(full_text=long_a, is_expanded=False)
        assert blocks[2] == TruncatableParagraph(full_text=long_b, is_expanded=True)

    def test_duplicate_line_collapse(self):
        """Test that a repeated line yields one paragraph."""
        assert parse_content("hello\nHELLO") == [Paragraph(text="hello")]

    def test_partial_text_parses(self):
        """Test that text cut mid-stream still parses."""
        assert parse_content("* first\n* sec") == [BulletList(items=["first", "sec"])]

    def test_empty_text(self):
        """Test that empty input yields no blocks."""
        assert parse_content("") == []
        assert parse_content("\n\n  \n") == []

    @given(
        st.text(alphabet=st.sampled_from(list("ab*-#1. \n:[]PRODUCT_CARD/")), max_size=200),
        st.one_of(st.booleans(), st.dictionaries(st.integers(0, 20), st.booleans(), max_size=5)),
    )
    def test_idempotent_reparse(self, text: str, expanded):
        """Property test: parsing the same input twice gives equal results."""
        assert parse_content(text, expanded) == parse_content(text, expanded)

    @given(st.text(max_size=300))
    def test_arbitrary_text_never_raises(self, text: str):
        """Property test: any text parses into a list of blocks."""
        blocks = parse_content(text)
        assert isinstance(blocks, list)


class TestRenderBlocks:
    """Tests for terminal rendering."""

    def test_renders_every_block_kind(self):
        """Test that every block kind renders to text."""
        blocks = parse_content(
            "# Plan\nIntro line\n\n* a\n1. b\n"
            + "x" * 290
            + "\n[PRODUCT_CARD]\nname: Oud\nprice: ₦10,000\n[/PRODUCT_CARD]"
        )
        console = Console(record=True, width=400)
        console.print(render_blocks(blocks))
        output = console.export_text()

        assert "Plan" in output
        assert "Intro line" in output
        assert "• a" in output
        assert "1. b" in output
        assert "x" * 280 + "..." in output
        assert "read more" in output
        assert "Suggested product" in output
        assert "₦10,000" in output
