"""Tests for link and tag extraction."""
import pytest

from zettelkit.storage.markdown_parser import (
    MarkdownParser,
    normalize_title,
    strip_backlinks_section,
)


@pytest.fixture
def parser():
    return MarkdownParser()


class TestFindLinks:
    """Tests for [[Title]] extraction."""

    def test_links_in_source_order_with_duplicates(self, parser):
        """Links come back in order of appearance, duplicates kept."""
        content = "See [[B]] and [[A]], then [[B]] again."
        assert parser.find_links(content) == ["B", "A", "B"]

    def test_link_spanning_line_break(self, parser):
        """Whitespace inside a link, line breaks included, collapses to one space."""
        content = "A link to [[Multi\nWord   Title]] here."
        assert parser.find_links(content) == ["Multi Word Title"]

    def test_empty_reference_ignored(self, parser):
        assert parser.find_links("nothing [[ ]] here [[X]]") == ["X"]

    def test_unterminated_link_does_not_swallow_next(self, parser):
        """An unclosed [[ does not capture text up to a later link."""
        assert parser.find_links("broken [[start and [[Real]] end") == ["Real"]

    def test_no_links(self, parser):
        assert parser.find_links("plain text") == []


class TestFindTags:
    """Tests for #tag extraction."""

    def test_tags_followed_by_whitespace(self, parser):
        content = "#alpha #beta/gamma text\n#last"
        assert parser.find_tags(content) == ["alpha", "beta/gamma"]

    def test_tag_characters(self, parser):
        content = "#multi-word_tag and #area/sub-area\n"
        assert parser.find_tags(content) == ["multi-word_tag", "area/sub-area"]

    def test_heading_is_not_a_tag(self, parser):
        assert parser.find_tags("# Title\n## Section\n") == []


class TestParseNote:
    """Tests for building the indexed view of a note."""

    def test_parse_links_and_tags(self, parser):
        note = parser.parse_note("A", None, "# A\nLinks [[B]] and [[C]] #topic \n")
        assert note.title == "A"
        assert note.project is None
        assert note.links == ["B", "C"]
        assert note.tags == ["topic"]

    def test_backlinks_section_excluded(self, parser):
        """A generated backlinks section contributes no links or tags."""
        content = (
            "# A\n[[B]] #t \n"
            "\n## Backlinks\n\n* [[C]]\n\t* mention #other \n\n"
        )
        note = parser.parse_note("A", "proj", content)
        assert note.links == ["B"]
        assert note.tags == ["t"]
        assert note.project == "proj"

    def test_frontmatter_tags_appended(self, parser):
        content = "---\ntags: [x, y]\n---\n# A\n#z \n"
        note = parser.parse_note("A", None, content)
        assert note.tags == ["z", "x", "y"]

    def test_frontmatter_tags_as_string(self, parser):
        content = "---\ntags: alpha, beta\n---\nbody\n"
        assert parser.parse_note("A", None, content).tags == ["alpha", "beta"]

    def test_frontmatter_tag_not_duplicated(self, parser):
        content = "---\ntags: [x]\n---\n#x \n"
        assert parser.parse_note("A", None, content).tags == ["x"]

    def test_malformed_frontmatter_ignored(self, parser):
        """Unparseable frontmatter is treated as body text."""
        content = "---\ntags: [unclosed\n---\n[[B]]\n"
        note = parser.parse_note("A", None, content)
        assert note.links == ["B"]
        assert note.tags == []

    def test_empty_project_is_default(self, parser):
        assert parser.parse_note("A", "", "").project is None


class TestHelpers:
    """Tests for the text helpers."""

    def test_normalize_title(self):
        assert normalize_title("  a \n b\t c ") == "a b c"

    def test_strip_backlinks_section(self):
        content = "body\n\n## Backlinks\n\n* [[X]]\n"
        assert strip_backlinks_section(content) == "body\n"

    def test_strip_without_section(self):
        assert strip_backlinks_section("body\n") == "body\n"

    def test_split_blocks(self):
        content = "# Heading\nline one\nline two\n\n  \npara two\n"
        assert MarkdownParser().split_blocks(content) == [
            "line one line two",
            "para two",
        ]
